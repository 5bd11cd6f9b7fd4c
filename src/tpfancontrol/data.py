"""Data models for temperatures, fan levels and the smart-mode threshold table."""

import math
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable, Iterator, Optional, Tuple


class TempScale(Enum):
    """Scale used when displaying temperatures."""

    CELSIUS = "celsius"
    FAHRENHEIT = "fahrenheit"

    def __str__(self) -> str:
        return "°C" if self is TempScale.CELSIUS else "°F"


def _round_half_away(value: float) -> float:
    return math.copysign(math.floor(abs(value) + 0.5), value)


@dataclass(frozen=True, order=True)
class Temperature:
    """A temperature reading in degrees Celsius."""

    celsius: float

    def __post_init__(self):
        if math.isnan(self.celsius):
            raise ValueError("temperature must not be NaN")

    @classmethod
    def from_millidegrees(cls, raw: int) -> "Temperature":
        """Convert a hwmon ``temp*_input`` value."""
        return cls(raw / 1000.0)

    def converted(self, scale: TempScale) -> float:
        if scale is TempScale.FAHRENHEIT:
            return self.celsius * 9.0 / 5.0 + 32.0
        return self.celsius

    def display(self, scale: TempScale = TempScale.CELSIUS) -> str:
        """
        Format the temperature rounded to a whole degree.

        Example:
            Temperature(36.6).display(TempScale.FAHRENHEIT) == "98 °F"
        """
        return f"{int(_round_half_away(self.converted(scale)))} {scale}"


# Raw pwm1 codes of the eight firmware steps, indexed by level ordinal.
# The spacing is defined by the embedded controller, not a linear scale.
FIRMWARE_HWMON_CODES: Tuple[int, ...] = (0, 36, 72, 109, 145, 182, 218, 255)


class FirmwareLevel(IntEnum):
    """One of the eight fan steps of the ThinkPad embedded controller."""

    ZERO = 0
    ONE = 1
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7

    @property
    def hwmon_code(self) -> int:
        return FIRMWARE_HWMON_CODES[self.value]

    @classmethod
    def from_hwmon_code(cls, code: int) -> Optional["FirmwareLevel"]:
        """Return the level for an exact raw code, or None if the code is unknown."""
        try:
            return cls(FIRMWARE_HWMON_CODES.index(code))
        except ValueError:
            return None

    def __str__(self) -> str:
        return str(self.value)


class FanLevelKind(Enum):
    AUTO = "auto"
    FIRMWARE = "firmware"
    FULL_SPEED = "full-speed"


@dataclass(frozen=True)
class FanLevel:
    """
    Fan actuation mode, used both for the state read from the device and the
    state written to it.

    Attributes:
        kind: Auto (BIOS control), a firmware step, or full speed
        firmware_level: Set only when kind is FIRMWARE
    """

    kind: FanLevelKind
    firmware_level: Optional[FirmwareLevel] = None

    def __post_init__(self):
        if (self.kind is FanLevelKind.FIRMWARE) != (self.firmware_level is not None):
            raise ValueError(
                f"firmware_level must be set exactly when kind is FIRMWARE, got {self.kind} / {self.firmware_level}"
            )

    @classmethod
    def auto(cls) -> "FanLevel":
        return cls(FanLevelKind.AUTO)

    @classmethod
    def firmware(cls, level: int) -> "FanLevel":
        return cls(FanLevelKind.FIRMWARE, FirmwareLevel(level))

    @classmethod
    def full_speed(cls) -> "FanLevel":
        return cls(FanLevelKind.FULL_SPEED)

    def __str__(self) -> str:
        if self.kind is FanLevelKind.AUTO:
            return "Auto"
        if self.kind is FanLevelKind.FULL_SPEED:
            return "Full speed"
        return str(self.firmware_level)


# Levels offered for manual control, coldest first
MANUAL_FAN_LEVELS: Tuple[FanLevel, ...] = tuple(
    FanLevel.firmware(level) for level in FirmwareLevel
) + (FanLevel.full_speed(),)


@dataclass(frozen=True)
class FanSpeed:
    """Fan rotational speed."""

    rpm: int

    def __post_init__(self):
        if self.rpm < 0:
            raise ValueError(f"Fan speed must be non-negative, got {self.rpm}")

    def __str__(self) -> str:
        return f"{self.rpm} RPM"


class ThresholdTable:
    """
    Smart-mode table of (lower bound, fan level) pairs.

    Entries are sorted ascending by bound when the table is built. Duplicate
    bounds and AUTO levels are rejected.
    """

    def __init__(self, entries: Tuple[Tuple[Temperature, FanLevel], ...]):
        self._entries = entries

    @classmethod
    def from_entries(
        cls, entries: Iterable[Tuple[Temperature, FanLevel]]
    ) -> "ThresholdTable":
        ordered = sorted(entries, key=lambda entry: entry[0])

        for bound, level in ordered:
            if level.kind is FanLevelKind.AUTO:
                raise ValueError(f"Threshold {bound.celsius}°C cannot select auto mode")

        for (lower, _), (upper, _) in zip(ordered, ordered[1:]):
            if lower == upper:
                raise ValueError(f"Duplicate threshold {lower.celsius}°C")

        return cls(tuple(ordered))

    def __iter__(self) -> Iterator[Tuple[Temperature, FanLevel]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ThresholdTable):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        pairs = ", ".join(f"{bound.celsius}: {level}" for bound, level in self._entries)
        return f"ThresholdTable({pairs})"


class DesiredFanMode(Enum):
    """Who decides the fan level."""

    BIOS = "bios"
    SMART = "smart"
    MANUAL = "manual"

    def __str__(self) -> str:
        return {
            DesiredFanMode.BIOS: "BIOS",
            DesiredFanMode.SMART: "Smart",
            DesiredFanMode.MANUAL: "Manual",
        }[self]


class VisibleTempSensors(Enum):
    """Which named sensors the temperature list shows."""

    ALL = "all"
    ACTIVE = "active"

    def __str__(self) -> str:
        return self.value
