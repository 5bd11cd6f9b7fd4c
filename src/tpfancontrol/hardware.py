"""Hardware access for the thinkpad_acpi fan and temperature sensors."""

import errno
import glob
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .data import FanLevel, FanLevelKind, FanSpeed, FirmwareLevel, Temperature

logger = logging.getLogger(__name__)

HWMON_ROOT = "/sys/class/hwmon"
THINKPAD_HWMON_NAME = "thinkpad"

# pwm1_enable codes
PWM_MODE_FULL_SPEED = 0
PWM_MODE_MANUAL = 1
PWM_MODE_AUTO = 2

# thinkpad_acpi answers reads of missing sensors with ENXIO
_ABSENT_ERRNOS = (errno.ENXIO, errno.ENODEV)

_U32_PATTERN = re.compile(r"\+?[0-9]+")
_U32_MAX = 2**32 - 1


class HardwareError(Exception):
    """Hardware access error."""

    pass


class DeviceNotFoundError(HardwareError):
    """The hwmon device could not be located unambiguously."""

    pass


class ChannelAbsent(HardwareError):
    """A sensor channel is not present on this machine."""

    def __init__(self, path: Union[str, Path]):
        super().__init__(f"{path}: channel absent")
        self.path = Path(path)


class DeviceIoError(HardwareError):
    """Unexpected I/O failure or protocol violation on a device file."""

    def __init__(self, path: Union[str, Path], cause: Union[str, Exception]):
        super().__init__(f"{path}: {cause}")
        self.path = Path(path)
        self.cause = cause


class UnrecognizedHardwareCode(DeviceIoError):
    """The device reported a mode or level outside the known set."""

    def __init__(self, path: Union[str, Path], kind: str, code: int):
        super().__init__(path, f"unrecognized {kind} {code}")
        self.code = code


@dataclass(frozen=True)
class HwmonDevice:
    """Paths of the located hwmon device directory."""

    path: Path

    def temp_input(self, index: int) -> Path:
        return self.path / f"temp{index}_input"

    @property
    def fan_input(self) -> Path:
        return self.path / "fan1_input"

    @property
    def pwm_enable(self) -> Path:
        return self.path / "pwm1_enable"

    @property
    def pwm(self) -> Path:
        return self.path / "pwm1"

    @property
    def fan_watchdog(self) -> Path:
        return self.path / "device" / "driver" / "fan_watchdog"


def find_hwmon_device(
    name: str = THINKPAD_HWMON_NAME, root: Union[str, Path] = HWMON_ROOT
) -> HwmonDevice:
    """
    Find the hwmon device directory whose ``name`` file matches.

    Raises:
        DeviceNotFoundError: If no directory or more than one directory matches
    """
    matches: List[str] = []
    for hwmon_path in sorted(glob.glob(str(Path(root) / "hwmon*"))):
        name_file = Path(hwmon_path) / "name"
        try:
            with open(name_file, "r") as f:
                device_name = f.read()
        except OSError:
            continue

        if device_name.rstrip("\n") == name:
            matches.append(hwmon_path)

    if not matches:
        raise DeviceNotFoundError(f"Could not find hwmon device: {name}")
    if len(matches) > 1:
        raise DeviceNotFoundError(
            f"Found {len(matches)} hwmon devices named {name}: {', '.join(matches)}"
        )

    logger.debug(f"Found hwmon device {name} at {matches[0]}")
    return HwmonDevice(Path(matches[0]))


def read_u32(path: Union[str, Path]) -> int:
    """
    Read the first line of a sysfs node as an unsigned 32-bit integer.

    Raises:
        ChannelAbsent: If the kernel reports the channel as not present
        DeviceIoError: On any other I/O failure, empty content or bad number
    """
    try:
        with open(path, "rb") as f:
            raw = f.readline()
    except OSError as e:
        if e.errno in _ABSENT_ERRNOS:
            raise ChannelAbsent(path) from e
        raise DeviceIoError(path, e) from e

    try:
        line = raw.decode("ascii").rstrip("\n")
    except UnicodeDecodeError as e:
        raise DeviceIoError(path, f"undecodable content {raw!r}") from e

    if not line:
        raise DeviceIoError(path, "empty file")

    if not _U32_PATTERN.fullmatch(line):
        raise DeviceIoError(path, f"invalid integer {line!r}")

    value = int(line)
    if value > _U32_MAX:
        raise DeviceIoError(path, f"integer out of range {line!r}")

    return value


class HardwareController:
    """Read temperatures and fan telemetry, and set the fan level."""

    def __init__(self, device: HwmonDevice):
        self.device = device

    def read_temps(self, temps: List[Optional[Temperature]]) -> None:
        """
        Fill ``temps`` in place, slot i holding channel i + 1.

        Absent channels become None. Any other failure aborts the whole read.

        Raises:
            DeviceIoError: If a channel could not be read
        """
        for i in range(len(temps)):
            try:
                raw = read_u32(self.device.temp_input(i + 1))
            except ChannelAbsent:
                temps[i] = None
                continue
            temps[i] = Temperature.from_millidegrees(raw)

    def read_fan(self) -> Tuple[FanLevel, FanSpeed]:
        """
        Read the current fan level and speed.

        Raises:
            DeviceIoError: On read failure
            UnrecognizedHardwareCode: If the mode or level code is unknown
        """
        pwm_mode = self._read_required(self.device.pwm_enable)

        if pwm_mode == PWM_MODE_AUTO:
            level = FanLevel.auto()
        elif pwm_mode == PWM_MODE_MANUAL:
            code = self._read_required(self.device.pwm)
            firmware_level = FirmwareLevel.from_hwmon_code(code)
            if firmware_level is None:
                raise UnrecognizedHardwareCode(self.device.pwm, "hwmon level", code)
            level = FanLevel(FanLevelKind.FIRMWARE, firmware_level)
        elif pwm_mode == PWM_MODE_FULL_SPEED:
            level = FanLevel.full_speed()
        else:
            raise UnrecognizedHardwareCode(self.device.pwm_enable, "PWM mode", pwm_mode)

        speed = FanSpeed(self._read_required(self.device.fan_input))

        return level, speed

    def fan_is_writable(self, watchdog_interval: int) -> bool:
        """
        Check write access by arming the fan watchdog.

        The watchdog is set to twice ``watchdog_interval`` seconds, after which
        the firmware takes the fan back unless it is written again.

        Returns:
            False if permission is denied, True if the write succeeded

        Raises:
            DeviceIoError: On any other failure
        """
        path = self.device.fan_watchdog
        try:
            with open(path, "w") as f:
                f.write(str(watchdog_interval * 2))
        except PermissionError:
            logger.info(f"No write access to {path}, fan control is read-only")
            return False
        except OSError as e:
            raise DeviceIoError(path, e) from e

        return True

    def write_fan(self, level: FanLevel) -> None:
        """
        Set the fan level.

        Firmware levels take two writes (mode, then level). They are not
        atomic and nothing is read back.

        Raises:
            DeviceIoError: If a write fails; later writes are skipped
        """
        if level.kind is FanLevelKind.AUTO:
            self._write(self.device.pwm_enable, PWM_MODE_AUTO)
        elif level.kind is FanLevelKind.FIRMWARE:
            self._write(self.device.pwm_enable, PWM_MODE_MANUAL)
            self._write(self.device.pwm, level.firmware_level.hwmon_code)
        else:
            self._write(self.device.pwm_enable, PWM_MODE_FULL_SPEED)

    def _read_required(self, path: Path) -> int:
        # Fan files are always present; treat "absent" as a device fault
        try:
            return read_u32(path)
        except ChannelAbsent as e:
            raise DeviceIoError(path, "no such device") from e

    def _write(self, path: Path, value: int) -> None:
        logger.debug(f"Writing {value} to {path}")
        try:
            with open(path, "w") as f:
                f.write(str(value))
        except OSError as e:
            raise DeviceIoError(path, e) from e
