"""Shared fixtures: a mock display behind a resource and dispatcher."""

import pytest

from oled_rpc.config import DisplayConfig
from oled_rpc.dispatcher import CommandDispatcher
from oled_rpc.display_driver import MockDisplayDriver
from oled_rpc.display_resource import DisplayResource


@pytest.fixture
def display_config() -> DisplayConfig:
    return DisplayConfig(driver="ssd1306", i2c_port=1, address=0x3C, mock=True)


@pytest.fixture
def mock_driver(display_config) -> MockDisplayDriver:
    return MockDisplayDriver(display_config)


@pytest.fixture
def resource(mock_driver) -> DisplayResource:
    return DisplayResource(mock_driver)


@pytest.fixture
def dispatcher(resource) -> CommandDispatcher:
    return CommandDispatcher(resource)
