import builtins
import errno
from pathlib import Path

import pytest

from tpfancontrol import hardware
from tpfancontrol.config import Config
from tpfancontrol.data import FanLevel, Temperature, ThresholdTable
from tpfancontrol.hardware import HardwareController, HwmonDevice


def write_node(path: Path, value) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"{value}\n")


@pytest.fixture
def hwmon_root(tmp_path):
    """A /sys/class/hwmon lookalike with an unrelated device and a thinkpad one."""
    root = tmp_path / "hwmon"
    write_node(root / "hwmon0" / "name", "acpitz")

    device = root / "hwmon4"
    write_node(device / "name", "thinkpad")
    for i, millidegrees in enumerate([45000, 52000, 38000, 61000], start=1):
        write_node(device / f"temp{i}_input", millidegrees)
    write_node(device / "fan1_input", 2650)
    write_node(device / "pwm1_enable", 2)
    write_node(device / "pwm1", 72)
    write_node(device / "device" / "driver" / "fan_watchdog", 0)
    return root


@pytest.fixture
def device(hwmon_root) -> HwmonDevice:
    return HwmonDevice(hwmon_root / "hwmon4")


@pytest.fixture
def controller(device) -> HardwareController:
    return HardwareController(device)


@pytest.fixture
def threshold_table() -> ThresholdTable:
    return ThresholdTable.from_entries(
        [
            (Temperature(40.0), FanLevel.firmware(2)),
            (Temperature(60.0), FanLevel.firmware(5)),
            (Temperature(80.0), FanLevel.full_speed()),
        ]
    )


@pytest.fixture
def config(threshold_table, hwmon_root) -> Config:
    return Config(
        sensors=("CPU", None, "GPU", "Battery"),
        fan_level=threshold_table,
        hwmon_root=str(hwmon_root),
        interval=0.01,
    )


@pytest.fixture
def fail_open(monkeypatch):
    """
    Make ``open`` inside tpfancontrol.hardware raise OSError for chosen paths.

    Usage: fail_open({"temp3_input": errno.ENXIO})
    """

    def install(failures):
        def fake_open(path, *args, **kwargs):
            name = Path(path).name
            if name in failures:
                code = failures[name]
                if code in (errno.EACCES, errno.EPERM):
                    raise PermissionError(code, "Permission denied", str(path))
                raise OSError(code, "injected failure", str(path))
            return builtins.open(path, *args, **kwargs)

        monkeypatch.setattr(hardware, "open", fake_open, raising=False)

    return install
