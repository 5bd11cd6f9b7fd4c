"""Control state owned by the control loop, and the records exchanged with the view."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import Config
from .data import (
    DesiredFanMode,
    FanLevel,
    FanSpeed,
    Temperature,
    TempScale,
    VisibleTempSensors,
)
from .hardware import DeviceIoError, HardwareController
from .policy import desired_fan_level

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selection:
    """User choices sent from the view to the control loop."""

    visible_temp_sensors: VisibleTempSensors = VisibleTempSensors.ACTIVE
    temp_scale: TempScale = TempScale.CELSIUS
    desired_fan_mode: DesiredFanMode = DesiredFanMode.SMART
    desired_manual_fan_level: FanLevel = FanLevel.full_speed()

    @classmethod
    def from_config(cls, config: Config) -> "Selection":
        return cls(
            visible_temp_sensors=config.visible_sensors,
            temp_scale=config.temp_scale,
            desired_fan_mode=config.fan_mode,
            desired_manual_fan_level=config.manual_level,
        )


@dataclass(frozen=True)
class StateSnapshot:
    """Read-only copy of the control state after one tick."""

    config: Config
    selection: Selection

    # Exactly one of each value/error pair is set
    temps: Optional[Tuple[Optional[Temperature], ...]]
    temps_error: Optional[DeviceIoError]
    fan: Optional[Tuple[FanLevel, FanSpeed]]
    fan_error: Optional[DeviceIoError]

    fan_is_writable: Optional[bool]  # None when not checked
    written_level: Optional[FanLevel] = None
    write_error: Optional[DeviceIoError] = None

    @property
    def has_errors(self) -> bool:
        return any((self.temps_error, self.fan_error, self.write_error))


class ControlState:
    """
    Aggregate of sensor readings, fan telemetry and user selection.

    Only the control loop mutates this object; the view gets snapshots.
    """

    def __init__(
        self,
        config: Config,
        hardware: HardwareController,
        fan_is_writable: Optional[bool],
        selection: Optional[Selection] = None,
    ):
        self.config = config
        self.hardware = hardware
        self.fan_is_writable = fan_is_writable
        self.selection = selection or Selection.from_config(config)

        self.temps: Optional[List[Optional[Temperature]]] = None
        self.temps_error: Optional[DeviceIoError] = None
        self.fan: Optional[Tuple[FanLevel, FanSpeed]] = None
        self.fan_error: Optional[DeviceIoError] = None

        self.written_level: Optional[FanLevel] = None
        self.write_error: Optional[DeviceIoError] = None

    def refresh(self) -> None:
        """Re-read temperatures, then fan telemetry."""
        temps = list(self.temps) if self.temps is not None else [None] * len(self.config.sensors)
        try:
            self.hardware.read_temps(temps)
        except DeviceIoError as e:
            logger.error(f"Temperature read failed: {e}")
            self.temps = None
            self.temps_error = e
        else:
            self.temps = temps
            self.temps_error = None

        try:
            self.fan = self.hardware.read_fan()
            self.fan_error = None
        except DeviceIoError as e:
            logger.error(f"Fan read failed: {e}")
            self.fan = None
            self.fan_error = e

    def apply(self, selection: Selection) -> None:
        """Replace the user-selected fields."""
        if selection.desired_fan_mode != self.selection.desired_fan_mode:
            logger.info(f"Fan mode changed to {selection.desired_fan_mode}")
        self.selection = selection

    def desired_fan_level(self) -> FanLevel:
        return desired_fan_level(
            self.selection.desired_fan_mode,
            self.selection.desired_manual_fan_level,
            self.config.fan_level,
            self.temps,
        )

    def actuate(self) -> Optional[FanLevel]:
        """
        Write the desired level if the fan is writable.

        Returns:
            The level written, or None if nothing was written
        """
        self.written_level = None
        self.write_error = None

        if not self.fan_is_writable:
            return None

        level = self.desired_fan_level()
        try:
            self.hardware.write_fan(level)
        except DeviceIoError as e:
            logger.error(f"Failed to set fan level {level}: {e}")
            self.write_error = e
            return None

        self.written_level = level
        return level

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(
            config=self.config,
            selection=self.selection,
            temps=tuple(self.temps) if self.temps is not None else None,
            temps_error=self.temps_error,
            fan=self.fan,
            fan_error=self.fan_error,
            fan_is_writable=self.fan_is_writable,
            written_level=self.written_level,
            write_error=self.write_error,
        )
