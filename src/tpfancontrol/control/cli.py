"""
CLI interface for the fan controller.
"""

import logging
import queue
import sys
from dataclasses import replace
from pathlib import Path

from ..config import ConfigError, default_config_path, load_config, parse_level_selector
from ..data import DesiredFanMode, TempScale, VisibleTempSensors
from ..hardware import HardwareController, HardwareError, find_hwmon_device
from ..state import ControlState, Selection
from ..view import ConsoleView, render
from .controller import FanController

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    # stdout carries the status display
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _initialize(args):
    """Load config and locate the hwmon device, exiting on failure."""
    config_path = Path(args.config) if args.config else default_config_path()

    try:
        config = load_config(config_path)
    except ConfigError as e:
        print(f"✗ {e}")
        sys.exit(1)

    try:
        device = find_hwmon_device(config.hwmon_device_name, config.hwmon_root)
    except HardwareError as e:
        print(f"✗ Hardware initialization failed: {e}")
        sys.exit(1)

    print(f"Config: {config_path}")
    print(f"✓ Found hwmon device at: {device.path}")
    return config, HardwareController(device)


def _selection_from_args(args, selection: Selection) -> Selection:
    """Apply command-line overrides to the configured selection."""
    if getattr(args, "mode", None):
        selection = replace(selection, desired_fan_mode=DesiredFanMode(args.mode))
    if getattr(args, "level", None):
        try:
            level = parse_level_selector(args.level)
        except ConfigError as e:
            print(f"✗ {e}")
            sys.exit(1)
        selection = replace(selection, desired_manual_fan_level=level)
    if getattr(args, "scale", None):
        selection = replace(selection, temp_scale=TempScale(args.scale))
    if getattr(args, "show", None):
        selection = replace(selection, visible_temp_sensors=VisibleTempSensors(args.show))
    return selection


def run_mode(args) -> None:
    """
    Run the fan controller loop with the console view.
    """
    configure_logging(args.log_level)

    print("\n" + "=" * 70)
    print("THINKPAD FAN CONTROL")
    print("=" * 70 + "\n")

    config, hardware = _initialize(args)
    selection = _selection_from_args(args, Selection.from_config(config))

    selections: queue.Queue = queue.Queue()
    snapshots: queue.Queue = queue.Queue()

    controller = FanController(
        config, hardware, selections=selections, snapshots=snapshots, selection=selection
    )
    view = ConsoleView(selections, snapshots, selection, on_quit=controller.stop)

    try:
        controller.setup()
    except HardwareError as e:
        print(f"✗ Fan write access check failed: {e}")
        sys.exit(1)

    print("\nStarting controller... (Press Ctrl+C to stop)")

    view.start(read_input=not args.no_input)
    try:
        controller.start()
    except KeyboardInterrupt:
        pass
    except Exception as e:
        print(f"\n✗ Fatal error: {e}")
        sys.exit(1)
    finally:
        view.stop()


def status_mode(args) -> None:
    """
    Print a single reading without writing to the device.
    """
    configure_logging(args.log_level)

    config, hardware = _initialize(args)
    selection = _selection_from_args(args, Selection.from_config(config))

    state = ControlState(config, hardware, fan_is_writable=None, selection=selection)
    state.refresh()
    snapshot = state.snapshot()

    print(render(snapshot))
    if snapshot.has_errors:
        sys.exit(1)
