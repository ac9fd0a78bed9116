"""
Idle Detector Module
====================

Answers two questions each tick:

1. How long has it been since the user last touched ANY input device?
   The probe is asked per input class and the smallest answer wins, so a
   single key press resets idleness just as well as a mouse move.

2. Did the pointer move since the last tick without us moving it?
   Some remote-control and screen-sharing paths reposition the cursor
   without producing a local input event, so the input age alone would
   call a remotely driven machine "idle". The SelfMovementFilter catches
   those moves by comparing pointer samples between ticks.

Self-injection:
---------------
The filter cannot tell our own injected moves from real ones by position
alone. Instead the motion engine reports every point it injects through
record_synthetic_position(), so the next sample is compared against our
own last output rather than against a stale pre-injection position.
"""

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from .geometry import Point

logger = logging.getLogger(__name__)


class InputClass(Enum):
    """Classes of input monitored for user activity."""
    POINTER_MOVE = auto()
    LEFT_BUTTON_DOWN = auto()
    LEFT_BUTTON_DRAG = auto()
    RIGHT_BUTTON_DOWN = auto()
    RIGHT_BUTTON_DRAG = auto()
    OTHER_BUTTON_DOWN = auto()
    OTHER_BUTTON_DRAG = auto()
    SCROLL = auto()
    KEY_DOWN = auto()
    KEY_UP = auto()
    MODIFIER_CHANGE = auto()


MONITORED_INPUT_CLASSES = tuple(InputClass)


def seconds_since_last_input(probe) -> float:
    """
    Seconds since the most recent genuine input of any monitored class.

    Args:
        probe: Object with seconds_since_last_input(input_class) -> float

    Returns:
        The minimum over all monitored classes
    """
    return min(probe.seconds_since_last_input(cls) for cls in MONITORED_INPUT_CLASSES)


@dataclass
class MovementState:
    """Rolling state of the self-movement filter."""
    last_known_pointer: Optional[Point] = None
    last_move_observed_at: Optional[float] = None


class SelfMovementFilter:
    """
    Detects pointer moves that did not come from the motion engine.

    Attributes:
        epsilon: Displacement (per axis) below which a sample counts as still
        recency_window: Seconds within which consecutive moves count as
            continuous movement
    """

    DEFAULT_EPSILON = 0.5
    DEFAULT_RECENCY_WINDOW = 2.0

    def __init__(
        self,
        epsilon: float = DEFAULT_EPSILON,
        recency_window: float = DEFAULT_RECENCY_WINDOW
    ):
        self.epsilon = epsilon
        self.recency_window = recency_window
        self._state = MovementState()

    @property
    def state(self) -> MovementState:
        return MovementState(
            last_known_pointer=self._state.last_known_pointer,
            last_move_observed_at=self._state.last_move_observed_at
        )

    def observe(self, position: Point, now: float, idle_threshold: float) -> bool:
        """
        Feed a fresh pointer sample.

        Args:
            position: Current pointer position (placement space)
            now: Current time
            idle_threshold: Seconds of stillness after which the recency
                memory is dropped

        Returns:
            True if the pointer was moved by something other than us
        """
        previous = self._state.last_known_pointer
        self._state.last_known_pointer = position

        if previous is None:
            return False

        dx = abs(position.x - previous.x)
        dy = abs(position.y - previous.y)

        if dx > self.epsilon or dy > self.epsilon:
            last_move = self._state.last_move_observed_at
            self._state.last_move_observed_at = now

            if last_move is not None and now - last_move <= self.recency_window:
                logger.debug(f"Continuous external pointer movement ({dx:.1f}, {dy:.1f})")
            else:
                logger.info(f"External pointer movement detected ({dx:.1f}, {dy:.1f})")
            return True

        last_move = self._state.last_move_observed_at
        if last_move is not None and now - last_move > idle_threshold:
            self._state.last_move_observed_at = None

        return False

    def record_synthetic_position(self, position: Point) -> None:
        """Note a position we injected ourselves so it is not mistaken for a user move."""
        self._state.last_known_pointer = position

    def reset(self) -> None:
        self._state = MovementState()
