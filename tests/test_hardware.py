import errno

import pytest

from tpfancontrol import hardware
from tpfancontrol.data import (
    FIRMWARE_HWMON_CODES,
    FanLevel,
    FanSpeed,
    FirmwareLevel,
    Temperature,
)
from tpfancontrol.hardware import (
    ChannelAbsent,
    DeviceIoError,
    DeviceNotFoundError,
    UnrecognizedHardwareCode,
    find_hwmon_device,
    read_u32,
)

from conftest import write_node


# --- Device discovery ---


def test_find_hwmon_device_matches_name(hwmon_root):
    device = find_hwmon_device("thinkpad", hwmon_root)
    assert device.path == hwmon_root / "hwmon4"
    assert device.fan_watchdog == hwmon_root / "hwmon4" / "device" / "driver" / "fan_watchdog"


def test_find_hwmon_device_missing(hwmon_root):
    with pytest.raises(DeviceNotFoundError):
        find_hwmon_device("nct6775", hwmon_root)


def test_find_hwmon_device_ambiguous(hwmon_root):
    write_node(hwmon_root / "hwmon7" / "name", "thinkpad")
    with pytest.raises(DeviceNotFoundError, match="Found 2"):
        find_hwmon_device("thinkpad", hwmon_root)


def test_find_hwmon_device_skips_directories_without_name(hwmon_root):
    (hwmon_root / "hwmon9").mkdir()
    assert find_hwmon_device("thinkpad", hwmon_root).path.name == "hwmon4"


def test_find_hwmon_device_requires_exact_name(hwmon_root):
    write_node(hwmon_root / "hwmon0" / "name", "thinkpad_acpi")
    assert find_hwmon_device("thinkpad", hwmon_root).path.name == "hwmon4"


# --- read_u32 ---


def test_read_u32_first_line(tmp_path):
    path = tmp_path / "node"
    path.write_text("1234\ntrailing garbage\n")
    assert read_u32(path) == 1234


@pytest.mark.parametrize("content", ["", "\n", "-5\n", "12.5\n", "abc\n", " 7\n", "4294967296\n"])
def test_read_u32_rejects_bad_content(tmp_path, content):
    path = tmp_path / "node"
    path.write_text(content)
    with pytest.raises(DeviceIoError) as excinfo:
        read_u32(path)
    assert excinfo.value.path == path


@pytest.mark.parametrize("content", [b"\xff\n", b"\xff\xfe12\n", b"4\xc3\xa92\n"])
def test_read_u32_rejects_undecodable_content(tmp_path, content):
    path = tmp_path / "node"
    path.write_bytes(content)
    with pytest.raises(DeviceIoError) as excinfo:
        read_u32(path)
    assert excinfo.value.path == path


def test_read_temps_undecodable_channel_is_io_error(controller, device):
    device.temp_input(2).write_bytes(b"\xff\n")
    with pytest.raises(DeviceIoError) as excinfo:
        controller.read_temps([None] * 4)
    assert excinfo.value.path == device.temp_input(2)


def test_read_u32_missing_file_is_io_error(tmp_path):
    with pytest.raises(DeviceIoError):
        read_u32(tmp_path / "does_not_exist")


def test_read_u32_enxio_is_channel_absent(device, fail_open):
    fail_open({"temp2_input": errno.ENXIO})
    with pytest.raises(ChannelAbsent):
        read_u32(device.temp_input(2))


def test_channel_absent_is_not_an_io_error(device, fail_open):
    fail_open({"temp2_input": errno.ENXIO})
    try:
        read_u32(device.temp_input(2))
    except DeviceIoError:
        pytest.fail("absent channel reported as I/O error")
    except ChannelAbsent:
        pass


def test_read_u32_other_errno_is_io_error(device, fail_open):
    fail_open({"temp2_input": errno.EIO})
    with pytest.raises(DeviceIoError) as excinfo:
        read_u32(device.temp_input(2))
    assert excinfo.value.cause.errno == errno.EIO


# --- Temperatures ---


def test_read_temps_converts_millidegrees(controller):
    temps = [None] * 4
    controller.read_temps(temps)
    assert temps == [Temperature(45.0), Temperature(52.0), Temperature(38.0), Temperature(61.0)]


def test_read_temps_absent_channel_becomes_none(controller, fail_open):
    fail_open({"temp3_input": errno.ENXIO})
    temps = [None] * 4
    controller.read_temps(temps)
    assert temps == [Temperature(45.0), Temperature(52.0), None, Temperature(61.0)]


def test_read_temps_channel_can_come_and_go(controller, device, fail_open):
    temps = [None] * 4
    fail_open({"temp1_input": errno.ENXIO})
    controller.read_temps(temps)
    assert temps[0] is None

    fail_open({})
    write_node(device.temp_input(1), 47500)
    controller.read_temps(temps)
    assert temps[0] == Temperature(47.5)

    fail_open({"temp1_input": errno.ENXIO})
    controller.read_temps(temps)
    assert temps[0] is None


def test_read_temps_io_error_propagates(controller, fail_open):
    fail_open({"temp2_input": errno.EIO})
    with pytest.raises(DeviceIoError):
        controller.read_temps([None] * 4)


def test_read_temps_missing_channel_file_propagates(controller):
    with pytest.raises(DeviceIoError):
        controller.read_temps([None] * 6)


# --- Fan telemetry ---


def test_read_fan_auto(controller):
    assert controller.read_fan() == (FanLevel.auto(), FanSpeed(2650))


def test_read_fan_full_speed(controller, device):
    write_node(device.pwm_enable, 0)
    assert controller.read_fan() == (FanLevel.full_speed(), FanSpeed(2650))


@pytest.mark.parametrize("ordinal, code", list(enumerate(FIRMWARE_HWMON_CODES)))
def test_read_fan_firmware_levels(controller, device, ordinal, code):
    write_node(device.pwm_enable, 1)
    write_node(device.pwm, code)
    level, _ = controller.read_fan()
    assert level == FanLevel.firmware(ordinal)
    assert level.firmware_level.hwmon_code == code


@pytest.mark.parametrize("code", [1, 35, 37, 100, 254, 256])
def test_read_fan_unknown_level_code(controller, device, code):
    write_node(device.pwm_enable, 1)
    write_node(device.pwm, code)
    with pytest.raises(UnrecognizedHardwareCode) as excinfo:
        controller.read_fan()
    assert excinfo.value.code == code
    assert excinfo.value.path == device.pwm


def test_read_fan_unknown_mode(controller, device):
    write_node(device.pwm_enable, 5)
    with pytest.raises(UnrecognizedHardwareCode) as excinfo:
        controller.read_fan()
    assert isinstance(excinfo.value, DeviceIoError)
    assert excinfo.value.path == device.pwm_enable


def test_read_fan_absent_speed_is_io_error(controller, fail_open):
    fail_open({"fan1_input": errno.ENXIO})
    with pytest.raises(DeviceIoError):
        controller.read_fan()


# --- Actuation ---


def test_fan_is_writable_arms_watchdog(controller, device):
    assert controller.fan_is_writable(5) is True
    assert device.fan_watchdog.read_text() == "10"


def test_fan_is_writable_permission_denied(controller, fail_open):
    fail_open({"fan_watchdog": errno.EACCES})
    assert controller.fan_is_writable(5) is False


def test_fan_is_writable_permission_denied_on_write(controller, monkeypatch):
    class RejectingFile:
        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def write(self, data):
            raise PermissionError(errno.EACCES, "Permission denied")

    monkeypatch.setattr(
        hardware, "open", lambda path, *args, **kwargs: RejectingFile(), raising=False
    )
    assert controller.fan_is_writable(5) is False


def test_fan_is_writable_other_error_propagates(controller, fail_open):
    fail_open({"fan_watchdog": errno.EIO})
    with pytest.raises(DeviceIoError):
        controller.fan_is_writable(5)


def test_write_fan_auto(controller, device):
    write_node(device.pwm_enable, 0)
    controller.write_fan(FanLevel.auto())
    assert device.pwm_enable.read_text() == "2"


def test_write_fan_full_speed(controller, device):
    controller.write_fan(FanLevel.full_speed())
    assert device.pwm_enable.read_text() == "0"


def test_write_fan_firmware_level(controller, device):
    controller.write_fan(FanLevel.firmware(FirmwareLevel.FIVE))
    assert device.pwm_enable.read_text() == "1"
    assert device.pwm.read_text() == "182"


def test_write_then_read_round_trip(controller):
    level = FanLevel.firmware(3)
    controller.write_fan(level)
    assert controller.read_fan()[0] == level


def test_write_fan_stops_after_failed_mode_write(controller, device, fail_open):
    fail_open({"pwm1_enable": errno.EIO})
    with pytest.raises(DeviceIoError):
        controller.write_fan(FanLevel.firmware(7))
    # Level file untouched
    assert device.pwm.read_text() == "72\n"
