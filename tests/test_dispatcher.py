"""Tests for CommandDispatcher: validation, serialization and bus faults."""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from oled_rpc.dispatcher import CommandDispatcher, WriteCommand, WriteParams
from oled_rpc.display_driver import MockDisplayDriver
from oled_rpc.display_resource import DisplayResource
from oled_rpc.errors import (
    BusError,
    DisplayBusyError,
    DisplayUnavailableError,
    MissingParameterError,
    ValidationFailedError,
)
from oled_rpc.fonts import FontSize


def write_params(**overrides) -> dict:
    params = {"x_coord": 0, "y_coord": 0, "string": "Hello", "font_size": "6x8"}
    params.update(overrides)
    return params


def test_write_success_draws_once(dispatcher, mock_driver):
    assert dispatcher.handle_write(write_params()) == "success"
    assert mock_driver.calls == [("draw", 5, 0, 0)]
    # write does not flush
    assert not mock_driver.panel.any()


def test_write_out_of_range_touches_nothing(dispatcher, mock_driver):
    with pytest.raises(ValidationFailedError) as exc:
        dispatcher.handle_write(write_params(x_coord=200))
    assert [v.field for v in exc.value.violations] == ["x_coord"]
    assert mock_driver.calls == []
    assert not mock_driver.buffer.any()


@pytest.mark.parametrize(
    "overrides",
    [{"x_coord": -1}, {"x_coord": 129}, {"y_coord": -1}, {"y_coord": 58}, {"string": "z" * 22}],
)
def test_invalid_writes_never_reach_driver(dispatcher, mock_driver, overrides):
    with pytest.raises(ValidationFailedError):
        dispatcher.handle_write(write_params(**overrides))
    assert mock_driver.calls == []


def test_unknown_font_fails_validation(dispatcher, mock_driver):
    with pytest.raises(ValidationFailedError) as exc:
        dispatcher.handle_write(write_params(string="", font_size="bogus"))
    assert [v.field for v in exc.value.violations] == ["font_size"]
    assert mock_driver.calls == []


def test_missing_string_is_a_parameter_error(dispatcher, mock_driver):
    params = write_params()
    del params["string"]
    with pytest.raises(MissingParameterError, match="string"):
        dispatcher.handle_write(params)
    assert mock_driver.calls == []


@pytest.mark.parametrize(
    "params",
    [
        None,
        "hello",
        [0, 0, "Hello"],
        {"x_coord": "0", "y_coord": 0, "string": "Hi", "font_size": "6x8"},
        {"x_coord": 1.5, "y_coord": 0, "string": "Hi", "font_size": "6x8"},
        {"x_coord": True, "y_coord": 0, "string": "Hi", "font_size": "6x8"},
        {"x_coord": 0, "y_coord": 0, "string": 5, "font_size": "6x8"},
    ],
)
def test_malformed_params(params):
    with pytest.raises(MissingParameterError):
        WriteParams.parse(params)


def test_positional_params(dispatcher, mock_driver):
    assert dispatcher.handle_write([3, 4, "Hi", "12x16"]) == "success"
    assert mock_driver.calls == [("draw", 2, 3, 4)]


def test_extra_params_are_ignored():
    parsed = WriteParams.parse(write_params(colour="white"))
    assert parsed.to_command() == WriteCommand(0, 0, "Hello", FontSize.Small6x8)


def test_write_accepts_command_with_wire_font(dispatcher, mock_driver):
    dispatcher.write(WriteCommand(0, 10, "ok", "8x16"))
    assert mock_driver.calls == [("draw", 2, 0, 10)]


def test_flush_pushes_buffer(dispatcher, mock_driver):
    dispatcher.handle_write(write_params(string="HHHH"))
    assert dispatcher.handle_flush() == "success"
    assert mock_driver.call_names() == ["draw", "flush"]
    assert mock_driver.panel.any()
    assert np.array_equal(mock_driver.panel, mock_driver.buffer)


def test_clear_is_clear_then_flush(dispatcher, mock_driver):
    assert dispatcher.handle_clear() == "success"
    assert mock_driver.calls == [("clear",), ("flush",)]


def test_clear_twice_is_idempotent(dispatcher, mock_driver):
    dispatcher.handle_write(write_params(string="HELLO"))
    dispatcher.handle_flush()
    assert mock_driver.panel.any()

    dispatcher.handle_clear()
    once = mock_driver.panel.copy()
    dispatcher.handle_clear()

    assert not once.any()
    assert np.array_equal(mock_driver.panel, once)
    assert mock_driver.call_names()[-4:] == ["clear", "flush", "clear", "flush"]


def test_concurrent_writes_are_serialized(display_config):
    driver = MockDisplayDriver(display_config, latency=0.002)
    dispatcher = CommandDispatcher(DisplayResource(driver))
    n = 24

    def job(i):
        return dispatcher.handle_write(
            write_params(x_coord=i, y_coord=i, string="ab" * (i % 5 + 1))
        )

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(job, range(n)))

    assert results == ["success"] * n
    assert driver.call_names() == ["draw"] * n
    assert sorted(c[2] for c in driver.calls) == list(range(n))
    assert driver.overlaps == 0


def test_concurrent_mixed_commands_do_not_interleave(display_config):
    driver = MockDisplayDriver(display_config, latency=0.001)
    dispatcher = CommandDispatcher(DisplayResource(driver))

    def job(i):
        if i % 3 == 0:
            return dispatcher.clear()
        if i % 3 == 1:
            return dispatcher.handle_write(write_params(x_coord=i))
        return dispatcher.flush()

    with ThreadPoolExecutor(max_workers=6) as pool:
        list(pool.map(job, range(30)))

    names = driver.call_names()
    assert names.count("draw") == 10
    assert driver.overlaps == 0
    # every clear is immediately followed by its own flush
    for i, name in enumerate(names):
        if name == "clear":
            assert names[i + 1] == "flush"


def test_flush_failure_faults_display(display_config):
    driver = MockDisplayDriver(display_config, fail_on={"flush"})
    resource = DisplayResource(driver)
    seen = []
    dispatcher = CommandDispatcher(resource, on_bus_error=seen.append)

    with pytest.raises(BusError) as exc:
        dispatcher.flush()
    assert exc.value.operation == "flush"
    assert "Remote I/O error" in exc.value.detail
    assert resource.faulted
    assert seen == [exc.value]

    with pytest.raises(DisplayUnavailableError):
        dispatcher.handle_write(write_params())
    assert driver.calls == []


def test_clear_with_failing_flush_reports_bus_error(display_config):
    driver = MockDisplayDriver(display_config, fail_on={"flush"})
    dispatcher = CommandDispatcher(DisplayResource(driver))

    with pytest.raises(BusError) as exc:
        dispatcher.clear()
    assert exc.value.operation == "clear"
    assert driver.calls == [("clear",)]


def test_busy_when_pending_bound_reached(mock_driver):
    resource = DisplayResource(mock_driver, max_pending=1)
    dispatcher = CommandDispatcher(resource)
    with resource.exclusive():
        with pytest.raises(DisplayBusyError):
            dispatcher.flush()
    assert dispatcher.flush() == "success"
