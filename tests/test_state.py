import errno
from dataclasses import replace

import pytest

from tpfancontrol.data import DesiredFanMode, FanLevel, FanSpeed, Temperature
from tpfancontrol.hardware import DeviceIoError
from tpfancontrol.state import ControlState, Selection

from conftest import write_node


def test_initial_selection_comes_from_config(config, controller):
    state = ControlState(config, controller, fan_is_writable=True)
    assert state.selection == Selection.from_config(config)


def test_refresh_reads_all_configured_channels(config, controller):
    state = ControlState(config, controller, fan_is_writable=True)
    state.refresh()
    assert state.temps == [Temperature(45.0), Temperature(52.0), Temperature(38.0), Temperature(61.0)]
    assert state.temps_error is None
    assert state.fan == (FanLevel.auto(), FanSpeed(2650))


def test_refresh_absent_channel(config, controller, fail_open):
    fail_open({"temp3_input": errno.ENXIO})
    state = ControlState(config, controller, fan_is_writable=True)
    state.refresh()
    assert state.temps[2] is None
    assert state.temps_error is None


def test_refresh_records_errors_and_recovers(config, controller, fail_open):
    state = ControlState(config, controller, fan_is_writable=True)

    fail_open({"temp2_input": errno.EIO, "pwm1_enable": errno.EIO})
    state.refresh()
    assert state.temps is None
    assert isinstance(state.temps_error, DeviceIoError)
    assert state.fan is None
    assert isinstance(state.fan_error, DeviceIoError)

    fail_open({})
    state.refresh()
    assert state.temps is not None
    assert state.temps_error is None
    assert state.fan_error is None


def test_refresh_undecodable_channel_is_recorded(config, controller, device):
    device.temp_input(2).write_bytes(b"\xff\n")
    state = ControlState(config, controller, fan_is_writable=True)
    state.refresh()
    assert state.temps is None
    assert isinstance(state.temps_error, DeviceIoError)
    # Smart mode falls back to full speed
    assert state.actuate() == FanLevel.full_speed()


def test_smart_mode_actuation(config, controller, device):
    state = ControlState(config, controller, fan_is_writable=True)
    state.refresh()
    # Hottest channel is 61 °C
    assert state.actuate() == FanLevel.firmware(5)
    assert device.pwm_enable.read_text() == "1"
    assert device.pwm.read_text() == "182"


def test_smart_mode_read_failure_is_full_speed(config, controller, device, fail_open):
    state = ControlState(config, controller, fan_is_writable=True)
    fail_open({"temp1_input": errno.EIO})
    state.refresh()
    assert state.actuate() == FanLevel.full_speed()
    fail_open({})
    assert device.pwm_enable.read_text() == "0"


def test_bios_and_manual_modes(config, controller, device):
    state = ControlState(config, controller, fan_is_writable=True)
    state.refresh()

    state.apply(replace(state.selection, desired_fan_mode=DesiredFanMode.BIOS))
    assert state.actuate() == FanLevel.auto()
    assert device.pwm_enable.read_text() == "2"

    state.apply(
        replace(
            state.selection,
            desired_fan_mode=DesiredFanMode.MANUAL,
            desired_manual_fan_level=FanLevel.firmware(1),
        )
    )
    assert state.actuate() == FanLevel.firmware(1)
    assert device.pwm.read_text() == "36"


def test_read_only_fan_is_never_written(config, controller, device):
    state = ControlState(config, controller, fan_is_writable=False)
    state.refresh()
    assert state.actuate() is None
    assert device.pwm_enable.read_text() == "2\n"


def test_write_failure_is_recorded(config, controller, fail_open):
    state = ControlState(config, controller, fan_is_writable=True)
    state.refresh()
    fail_open({"pwm1_enable": errno.EIO})
    assert state.actuate() is None
    assert isinstance(state.write_error, DeviceIoError)

    fail_open({})
    assert state.actuate() == FanLevel.firmware(5)
    assert state.write_error is None


def test_snapshot_is_a_copy(config, controller, device):
    state = ControlState(config, controller, fan_is_writable=True)
    state.refresh()
    snapshot = state.snapshot()

    write_node(device.temp_input(1), 90000)
    state.refresh()

    assert snapshot.temps[0] == Temperature(45.0)
    assert state.snapshot().temps[0] == Temperature(90.0)
    with pytest.raises(AttributeError):
        snapshot.temps = None


def test_snapshot_has_errors(config, controller, fail_open):
    state = ControlState(config, controller, fan_is_writable=None)
    state.refresh()
    assert not state.snapshot().has_errors

    fail_open({"fan1_input": errno.EIO})
    state.refresh()
    assert state.snapshot().has_errors
