# StayAwake - Idle Presence Keeper
#
# This package contains modules for:
# - Idle detection (input age + external pointer movement)
# - Activity scheduling with randomized intervals and timed sessions
# - Human-looking pointer gesture synthesis
# - Windows backend (input probe, SendInput injection, power assertion)
#
# The Windows backend modules (input_simulator, power) and the tkinter UI
# are not imported here so the core stays importable on any platform.

__version__ = "1.0.0"
__author__ = "StayAwake Team"

from .geometry import Point, ScreenRegion
from .settings import Settings, format_duration
from .idle_detector import InputClass, SelfMovementFilter
from .motion import MotionConfig, MotionEngine, PathType, TimingPattern, Trajectory, TrajectoryGenerator
from .engine import EngineController, EnginePhase, EngineState
