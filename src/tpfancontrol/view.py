"""
Console presentation of the control state.

The view never touches device files. It renders snapshots received from the
control loop and turns typed commands into ``Selection`` records sent back to it.
"""

import logging
import queue
import sys
import threading
from dataclasses import replace
from typing import List, Optional, TextIO, Tuple

from .config import ConfigError, parse_level_selector
from .data import MANUAL_FAN_LEVELS, DesiredFanMode, FanLevel, TempScale, VisibleTempSensors
from .state import Selection, StateSnapshot

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "n/a"

QUIT_COMMANDS = ("quit", "exit", "q")

HELP_TEXT = (
    "Commands: bios | smart | manual [0-7|full-speed] | level <0-7|full-speed> | up | down | "
    "scale c|f | show all|active | quit"
)

_SCALE_ALIASES = {
    "c": TempScale.CELSIUS,
    "celsius": TempScale.CELSIUS,
    "f": TempScale.FAHRENHEIT,
    "fahrenheit": TempScale.FAHRENHEIT,
}


def temperature_rows(snapshot: StateSnapshot) -> List[Tuple[str, str]]:
    """
    (name, value) rows for the temperature list.

    Unnamed channels are never listed. Absent channels are listed as n/a only
    when all sensors are visible.
    """
    if snapshot.temps is None:
        return []

    selection = snapshot.selection
    rows = []
    for name, temp in zip(snapshot.config.sensors, snapshot.temps):
        if name is None:
            continue
        if temp is not None:
            rows.append((name, temp.display(selection.temp_scale)))
        elif selection.visible_temp_sensors is VisibleTempSensors.ALL:
            rows.append((name, NOT_AVAILABLE))
    return rows


def fan_rows(snapshot: StateSnapshot) -> List[Tuple[str, str]]:
    if snapshot.fan is None:
        return []
    level, speed = snapshot.fan
    return [("Level", str(level)), ("Speed", str(speed))]


def level_picker(selected: FanLevel) -> str:
    """The manual levels in order, with the selected one in brackets."""
    labels = (
        f"[{level}]" if level == selected else str(level) for level in MANUAL_FAN_LEVELS
    )
    return "Levels " + " ".join(labels)


def _step_manual_level(current: FanLevel, step: int) -> FanLevel:
    try:
        index = MANUAL_FAN_LEVELS.index(current)
    except ValueError:
        raise ValueError(f"{current} is not a manual level") from None
    index = min(max(index + step, 0), len(MANUAL_FAN_LEVELS) - 1)
    return MANUAL_FAN_LEVELS[index]


def _writable_label(fan_is_writable: Optional[bool]) -> str:
    if fan_is_writable is None:
        return "not checked"
    return "writable" if fan_is_writable else "read-only"


def render(snapshot: StateSnapshot, width: int = 70) -> str:
    """Render a snapshot as a block of text."""
    selection = snapshot.selection
    lines = ["=" * width, "Temperatures", "-" * width]

    if snapshot.temps_error is not None:
        lines.append(f"✗ {snapshot.temps_error}")
    else:
        rows = temperature_rows(snapshot)
        label_width = max((len(name) for name, _ in rows), default=0)
        lines.extend(f"{name:<{label_width}}  {value:>8}" for name, value in rows)

    lines.append(
        f"[show: {selection.visible_temp_sensors}] [scale: {selection.temp_scale}]"
    )
    lines += ["", "Fan", "-" * width]

    if snapshot.fan_error is not None:
        lines.append(f"✗ {snapshot.fan_error}")
    else:
        lines.extend(f"{label:<6} {value}" for label, value in fan_rows(snapshot))

    mode = str(selection.desired_fan_mode)
    if selection.desired_fan_mode is DesiredFanMode.MANUAL:
        mode += f" ({selection.desired_manual_fan_level})"
    lines.append(f"Mode   {mode} [{_writable_label(snapshot.fan_is_writable)}]")
    if selection.desired_fan_mode is DesiredFanMode.MANUAL:
        lines.append(level_picker(selection.desired_manual_fan_level))

    if snapshot.write_error is not None:
        lines.append(f"✗ {snapshot.write_error}")

    lines.append("=" * width)
    return "\n".join(lines)


def parse_command(line: str, current: Selection) -> Selection:
    """
    Apply a console command to the current selection.

    Raises:
        ValueError: If the command is not recognized
    """
    words = line.strip().lower().split()
    if not words:
        raise ValueError("empty command")

    command, args = words[0], words[1:]

    if command == "bios" and not args:
        return replace(current, desired_fan_mode=DesiredFanMode.BIOS)

    if command == "smart" and not args:
        return replace(current, desired_fan_mode=DesiredFanMode.SMART)

    if command in ("manual", "level") and len(args) <= 1:
        if command == "level" and not args:
            raise ValueError("level requires 0-7 or full-speed")
        selection = replace(current, desired_fan_mode=DesiredFanMode.MANUAL)
        if args:
            try:
                level = parse_level_selector(args[0])
            except ConfigError as e:
                raise ValueError(str(e)) from e
            selection = replace(selection, desired_manual_fan_level=level)
        return selection

    if command in ("up", "down") and not args:
        level = _step_manual_level(
            current.desired_manual_fan_level, 1 if command == "up" else -1
        )
        return replace(
            current, desired_fan_mode=DesiredFanMode.MANUAL, desired_manual_fan_level=level
        )

    if command == "scale" and len(args) == 1 and args[0] in _SCALE_ALIASES:
        return replace(current, temp_scale=_SCALE_ALIASES[args[0]])

    if command == "show" and len(args) == 1:
        try:
            visible = VisibleTempSensors(args[0])
        except ValueError:
            raise ValueError(f"unknown sensor filter {args[0]!r}") from None
        return replace(current, visible_temp_sensors=visible)

    raise ValueError(f"unknown command {line.strip()!r}")


class ConsoleView:
    """
    Terminal front end running on two daemon threads.

    The render worker prints every snapshot taken from ``snapshots``; the input
    worker reads commands from ``stdin`` and puts the resulting selections on
    ``selections``.
    """

    def __init__(
        self,
        selections: queue.Queue,
        snapshots: queue.Queue,
        selection: Selection,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        on_quit=None,
    ):
        self.selections = selections
        self.snapshots = snapshots
        self.selection = selection
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.on_quit = on_quit

        self.stop_event = threading.Event()
        self._threads: List[threading.Thread] = []

    def start(self, read_input: bool = True) -> None:
        workers = [("render", self._render_worker)]
        if read_input:
            workers.append(("input", self._input_worker))

        for name, target in workers:
            thread = threading.Thread(target=target, name=name, daemon=True)
            self._threads.append(thread)
            thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self.stop_event.set()
        for thread in self._threads:
            # The input worker may stay blocked on stdin; it is a daemon thread
            if thread.name == "render":
                thread.join(timeout=timeout)

    def handle_command(self, line: str) -> bool:
        """
        Process one line of input.

        Returns:
            False if the user asked to quit, True otherwise
        """
        if line.strip().lower() in QUIT_COMMANDS:
            return False
        if not line.strip():
            return True

        try:
            self.selection = parse_command(line, self.selection)
        except ValueError as e:
            logger.warning(f"{e}. {HELP_TEXT}")
            return True

        self.selections.put(self.selection)
        return True

    def show(self, snapshot: StateSnapshot) -> None:
        if self.stdout.isatty():
            # Clear screen and move cursor home
            self.stdout.write("\033[H\033[J")
        self.stdout.write(render(snapshot) + "\n")
        self.stdout.write(HELP_TEXT + "\n")
        self.stdout.flush()

    def _render_worker(self) -> None:
        while not self.stop_event.is_set():
            try:
                snapshot = self.snapshots.get(timeout=0.5)
            except queue.Empty:
                continue
            self.show(snapshot)

    def _input_worker(self) -> None:
        while not self.stop_event.is_set():
            line = self.stdin.readline()
            if not line:  # EOF, keep running without input
                return
            if not self.handle_command(line):
                break

        if self.on_quit is not None:
            self.on_quit()
