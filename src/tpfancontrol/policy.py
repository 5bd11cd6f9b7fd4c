"""Fan level selection for smart, BIOS and manual modes."""

from typing import Optional, Sequence

from .data import DesiredFanMode, FanLevel, Temperature, ThresholdTable


def select_fan_level(
    table: ThresholdTable, temps: Optional[Sequence[Optional[Temperature]]]
) -> FanLevel:
    """
    Pick the smart-mode fan level for the hottest sensor.

    The result is the level of the highest bound that the hottest reading
    strictly exceeds. Without any reading, or below every bound, the fan runs
    at full speed.

    Args:
        table: Threshold table sorted ascending by bound
        temps: Channel readings (None for absent channels), or None if the
            read itself failed

    Returns:
        The desired fan level, never AUTO
    """
    readings = [temp for temp in (temps or ()) if temp is not None]
    if not readings:
        return FanLevel.full_speed()

    max_temp = max(readings)

    level = FanLevel.full_speed()
    for lower_bound, threshold_level in table:
        if max_temp > lower_bound:
            level = threshold_level

    return level


def desired_fan_level(
    mode: DesiredFanMode,
    manual_level: FanLevel,
    table: ThresholdTable,
    temps: Optional[Sequence[Optional[Temperature]]],
) -> FanLevel:
    """Resolve the user's fan mode into the level to write."""
    if mode is DesiredFanMode.BIOS:
        return FanLevel.auto()
    if mode is DesiredFanMode.MANUAL:
        return manual_level
    return select_fan_level(table, temps)
