"""Fan control for ThinkPad laptops through the thinkpad_acpi hwmon interface."""

from .config import Config, ConfigError, load_config
from .hardware import (
    ChannelAbsent,
    DeviceIoError,
    DeviceNotFoundError,
    HardwareController,
    HardwareError,
    UnrecognizedHardwareCode,
    find_hwmon_device,
)
from .policy import select_fan_level

__all__ = [
    "Config",
    "ConfigError",
    "load_config",
    "ChannelAbsent",
    "DeviceIoError",
    "DeviceNotFoundError",
    "HardwareController",
    "HardwareError",
    "UnrecognizedHardwareCode",
    "find_hwmon_device",
    "select_fan_level",
]
