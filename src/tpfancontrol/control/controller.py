import logging
import queue
import signal
import threading
import time
from typing import Optional

from ..config import Config
from ..data import FanLevel
from ..hardware import HardwareController
from ..state import ControlState, Selection, StateSnapshot

logger = logging.getLogger(__name__)


class FanController:
    """
    Main control loop.
    Reads sensors -> Picks a fan level -> Sets the fan.

    Selections arrive on ``selections`` and snapshots of every tick are put on
    ``snapshots``; the control state itself never leaves this object.
    """

    def __init__(
        self,
        config: Config,
        hardware: HardwareController,
        selections: Optional[queue.Queue] = None,
        snapshots: Optional[queue.Queue] = None,
        selection: Optional[Selection] = None,
    ):
        self.config = config
        self.hw = hardware
        self.selections = selections if selections is not None else queue.Queue()
        self.snapshots = snapshots if snapshots is not None else queue.Queue()
        self.initial_selection = selection or Selection.from_config(config)

        self.interval = config.interval  # Seconds
        self.state: Optional[ControlState] = None
        self.stop_event = threading.Event()

        self.last_level: Optional[FanLevel] = None

    def setup(self) -> ControlState:
        """Check fan write access and build the initial state."""
        fan_is_writable = self.hw.fan_is_writable(self.config.watchdog_interval)
        if fan_is_writable:
            logger.info(
                f"Fan is writable (watchdog: {self.config.watchdog_interval * 2}s)"
            )
        else:
            logger.warning("Fan is not writable, running in monitor-only mode")

        self.state = ControlState(
            self.config, self.hw, fan_is_writable, self.initial_selection
        )
        return self.state

    def start(self, install_signal_handlers: bool = True) -> None:
        """Run ticks until stopped."""
        if self.state is None:
            self.setup()

        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._shutdown)
            signal.signal(signal.SIGTERM, self._shutdown)

        logger.info(f"Starting control loop (Interval: {self.interval}s)")

        while not self.stop_event.is_set():
            self.tick()
            self.stop_event.wait(self.interval)

        logger.info("Control loop stopped")

    def tick(self) -> StateSnapshot:
        """Single control iteration."""
        t_start = time.time()

        # 1. Latest user selection
        self._drain_selections()

        # 2. Read sensors
        self.state.refresh()

        # 3. Decide and apply
        level = self.state.actuate()
        if level is not None and level != self.last_level:
            logger.info(f"Fan level set to {level}")
            self.last_level = level

        # 4. Publish
        snapshot = self.state.snapshot()
        self.snapshots.put(snapshot)

        duration = time.time() - t_start
        logger.debug(f"Tick: level={level} | Time: {duration:.3f}s")
        return snapshot

    def stop(self) -> None:
        self.stop_event.set()

    def _drain_selections(self) -> None:
        latest = None
        while True:
            try:
                latest = self.selections.get_nowait()
            except queue.Empty:
                break

        if latest is not None:
            self.state.apply(latest)

    def _shutdown(self, signum, frame):
        """Graceful shutdown handler."""
        logger.info("Shutdown signal received. Stopping...")
        # The firmware watchdog hands the fan back to the BIOS once it expires
        self.stop()
