"""Tests for the exclusive-access gate around the display."""

import threading

import pytest

from oled_rpc.display_resource import DisplayResource
from oled_rpc.errors import DisplayBusyError, DisplayUnavailableError


def test_exclusive_yields_driver(resource, mock_driver):
    with resource.exclusive() as driver:
        assert driver is mock_driver
        assert resource.pending == 1
    assert resource.pending == 0


def test_exclusive_blocks_second_caller(resource):
    entered = threading.Event()
    release = threading.Event()
    second_done = threading.Event()

    def holder():
        with resource.exclusive():
            entered.set()
            release.wait(timeout=5)

    def waiter():
        with resource.exclusive():
            second_done.set()

    t1 = threading.Thread(target=holder)
    t1.start()
    assert entered.wait(timeout=5)

    t2 = threading.Thread(target=waiter)
    t2.start()
    assert not second_done.wait(timeout=0.1)

    release.set()
    t1.join(timeout=5)
    t2.join(timeout=5)
    assert second_done.is_set()


def test_faulted_resource_refuses_access(resource):
    resource.mark_faulted("flush failed: Remote I/O error")
    resource.mark_faulted("second reason is ignored")

    assert resource.faulted
    assert resource.fault_reason == "flush failed: Remote I/O error"
    with pytest.raises(DisplayUnavailableError):
        with resource.exclusive():
            pass
    assert resource.pending == 0


def test_pending_bound(mock_driver):
    resource = DisplayResource(mock_driver, max_pending=1)
    with resource.exclusive():
        with pytest.raises(DisplayBusyError):
            with resource.exclusive():
                pass
    assert resource.pending == 0


def test_stats(resource):
    stats = resource.get_stats()
    assert stats["bus"] == "/dev/i2c-1"
    assert stats["address"] == "0x3c"
    assert stats["size"] == "128x64"
    assert stats["available"] is True
