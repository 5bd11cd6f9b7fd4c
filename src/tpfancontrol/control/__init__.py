"""
Control module for the runtime fan loop.
"""

from .cli import run_mode, status_mode
from .controller import FanController

__all__ = ["run_mode", "status_mode", "FanController"]
