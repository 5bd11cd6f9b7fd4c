"""Configuration loading and validation."""

import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from .data import (
    DesiredFanMode,
    FanLevel,
    Temperature,
    TempScale,
    ThresholdTable,
    VisibleTempSensors,
)
from .hardware import HWMON_ROOT, THINKPAD_HWMON_NAME

DEFAULT_CONFIG_PATH = "/etc/tpfancontrol/config.yaml"
CONFIG_ENV_VAR = "TPFANCONTROL_CONFIG"

FULL_SPEED_SELECTOR = "full-speed"


class ConfigError(Exception):
    """Malformed configuration."""

    pass


class UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects a mapping key given more than once."""

    def construct_mapping(self, node, deep=False):
        if isinstance(node, yaml.MappingNode):
            self.flatten_mapping(node)
            seen = set()
            for key_node, _ in node.value:
                key = self.construct_object(key_node, deep=deep)
                try:
                    duplicate = key in seen
                except TypeError:
                    # Unhashable keys are reported by SafeLoader itself
                    continue
                if duplicate:
                    raise yaml.constructor.ConstructorError(
                        "while constructing a mapping",
                        node.start_mark,
                        f"found duplicate key {key!r}",
                        key_node.start_mark,
                    )
                seen.add(key)
        return super().construct_mapping(node, deep=deep)


@dataclass(frozen=True)
class Config:
    """
    Validated configuration.

    ``sensors`` holds one optional display name per sampled channel; its
    length is the number of temperature channels read each tick.
    """

    sensors: Tuple[Optional[str], ...]
    fan_level: ThresholdTable

    # Hardware
    hwmon_device_name: str = THINKPAD_HWMON_NAME
    hwmon_root: str = HWMON_ROOT

    # Control loop
    interval: float = 1.0  # Seconds between ticks
    watchdog_interval: int = 5  # Seconds, armed at twice this value

    # Initial display selection
    temp_scale: TempScale = TempScale.CELSIUS
    visible_sensors: VisibleTempSensors = VisibleTempSensors.ACTIVE
    fan_mode: DesiredFanMode = DesiredFanMode.SMART
    manual_level: FanLevel = FanLevel.full_speed()


def parse_level_selector(value: Any) -> FanLevel:
    """Parse ``"0"``-``"7"`` or ``"full-speed"``."""
    if isinstance(value, bool):
        raise ConfigError(f"Invalid fan level {value!r}, expected 0-7 or {FULL_SPEED_SELECTOR}")
    selector = str(value).strip()
    if selector == FULL_SPEED_SELECTOR:
        return FanLevel.full_speed()
    if len(selector) == 1 and selector in "01234567":
        return FanLevel.firmware(int(selector))
    raise ConfigError(f"Invalid fan level {value!r}, expected 0-7 or {FULL_SPEED_SELECTOR}")


def parse_sensor_names(raw: Any) -> Tuple[Optional[str], ...]:
    """Turn a 1-based ``{index: name}`` mapping into a positional tuple."""
    if not isinstance(raw, dict):
        raise ConfigError("'sensors' must be a mapping of sensor index to name")

    names: Dict[int, str] = {}
    for key, value in raw.items():
        try:
            index = int(str(key).strip())
        except ValueError:
            raise ConfigError(f"Invalid sensor index {key!r}") from None
        if index < 1:
            raise ConfigError(f"Invalid sensor index {key!r}, must be 1 or greater")
        if index in names:
            raise ConfigError(f"Duplicate sensor index {key!r}")
        if not isinstance(value, str):
            raise ConfigError(f"Sensor {key} name must be a string, got {value!r}")
        names[index] = value

    count = max(names, default=0)
    return tuple(names.get(i) for i in range(1, count + 1))


def parse_threshold_table(raw: Any) -> ThresholdTable:
    """Turn a ``{celsius: selector}`` mapping into a sorted threshold table."""
    if not isinstance(raw, dict):
        raise ConfigError("'fan_level' must be a mapping of temperature to fan level")

    entries = []
    for key, value in raw.items():
        try:
            celsius = float(str(key).strip())
        except ValueError:
            raise ConfigError(f"Invalid temperature {key!r}") from None
        if math.isnan(celsius):
            raise ConfigError(f"Invalid temperature {key!r}")
        entries.append((Temperature(celsius), parse_level_selector(value)))

    try:
        return ThresholdTable.from_entries(entries)
    except ValueError as e:
        raise ConfigError(str(e)) from e


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return section


def _enum_option(enum_cls, section: Dict[str, Any], key: str, default):
    value = section.get(key)
    if value is None:
        return default
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigError(f"Invalid {key} {value!r}, expected one of: {choices}") from None


def _positive_number(section: Dict[str, Any], key: str, default) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"'{key}' must be a positive number, got {value!r}")
    return float(value)


def _positive_int(section: Dict[str, Any], key: str, default) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"'{key}' must be a positive whole number, got {value!r}")
    return value


def config_from_dict(raw: Any) -> Config:
    """
    Validate an already-deserialized configuration.

    Raises:
        ConfigError: If a section is missing or malformed
    """
    if not isinstance(raw, dict):
        raise ConfigError("Configuration must be a mapping")

    for required in ("sensors", "fan_level"):
        if required not in raw:
            raise ConfigError(f"Missing required section '{required}'")

    hw_cfg = _section(raw, "hardware")
    ctl_cfg = _section(raw, "controller")
    display_cfg = _section(raw, "display")

    manual_level = display_cfg.get("manual_level")

    return Config(
        sensors=parse_sensor_names(raw["sensors"]),
        fan_level=parse_threshold_table(raw["fan_level"]),
        hwmon_device_name=str(hw_cfg.get("hwmon_device_name", THINKPAD_HWMON_NAME)),
        hwmon_root=str(hw_cfg.get("hwmon_root", HWMON_ROOT)),
        interval=_positive_number(ctl_cfg, "interval", 1.0),
        watchdog_interval=_positive_int(ctl_cfg, "watchdog_interval", 5),
        temp_scale=_enum_option(TempScale, display_cfg, "temp_scale", TempScale.CELSIUS),
        visible_sensors=_enum_option(
            VisibleTempSensors, display_cfg, "visible_sensors", VisibleTempSensors.ACTIVE
        ),
        fan_mode=_enum_option(DesiredFanMode, display_cfg, "fan_mode", DesiredFanMode.SMART),
        manual_level=(
            FanLevel.full_speed()
            if manual_level is None
            else parse_level_selector(manual_level)
        ),
    )


def default_config_path() -> Path:
    """Config path from the environment, falling back to the system-wide file."""
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))


def load_config(config_path: Union[str, Path]) -> Config:
    """
    Load configuration from a YAML file.

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    try:
        with open(config_path, "r") as f:
            raw = yaml.load(f, Loader=UniqueKeyLoader)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {config_path}") from None
    except OSError as e:
        raise ConfigError(f"Could not read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing config file {config_path}: {e}") from e

    return config_from_dict(raw)
