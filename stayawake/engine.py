"""
Activity Engine Module
======================

The idle/activity state machine. It is driven by a 1 second tick and
decides, every tick, whether the user is away long enough for synthetic
activity to be due.

Tick Order:
-----------
1. Session deadline reached?      -> force off
2. Disabled?                      -> nothing to do
3. Pointer moved by someone else? -> user is here, reset
4. Any input within threshold?    -> user is here, reset
5. Idle past threshold:
   - first tick past threshold    -> move now, roll next deadline
   - deadline reached             -> move, roll next deadline
   - otherwise                    -> wait

Step 3 runs before step 4 because remote-control sessions move the pointer
without producing local input events.

Scheduling:
-----------
The first activity fires as soon as the threshold is crossed; after that
the spacing is a random whole number of seconds in [interval_min,
interval_max], so there is no fixed cadence to spot.

Sessions:
---------
enable_for_preset() arms a deadline after which the engine switches itself
off. Manual toggles always clear that deadline.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import Callable, Optional

from .idle_detector import SelfMovementFilter, seconds_since_last_input
from .motion import MotionConfig, MotionEngine

logger = logging.getLogger(__name__)


TICK_INTERVAL = 1.0


class EnginePhase(Enum):
    """Derived phase of the state machine."""
    DISABLED = auto()   # Master switch off
    ARMED = auto()      # Enabled, not (or no longer) past the idle threshold
    COOLDOWN = auto()   # Past threshold, waiting for the next deadline
    DUE = auto()        # Past threshold, deadline reached


@dataclass
class EngineState:
    """
    Mutable engine state.

    Only touched from the scheduler's execution context. The controller
    hands out copies through EngineController.state.
    """
    enabled: bool = False
    next_activity_due_at: Optional[float] = None
    session_expires_at: Optional[float] = None
    is_animating: bool = False
    animation_generation: int = 0
    activity_count: int = 0


class EngineController:
    """
    Owns EngineState and runs the per-tick algorithm.

    Collaborators (all injected):
        settings:   Settings (idle threshold, interval, presets)
        scheduler:  Timer source (now, call_every, call_later)
        probe:      Input probe (input age, pointer position, screens)
        injector:   Pointer injection primitive
        power:      Power-assertion gateway (begin/end prevent sleep)
    """

    def __init__(
        self,
        settings,
        scheduler,
        probe,
        injector,
        power,
        motion_config: Optional[MotionConfig] = None,
        rng=None,
        on_state_change: Optional[Callable[[EngineState], None]] = None
    ):
        self.settings = settings
        self._scheduler = scheduler
        self._probe = probe
        self._power = power
        self._on_state_change = on_state_change

        self._state = EngineState()
        self.movement_filter = SelfMovementFilter()
        self.motion = MotionEngine(
            state=self._state,
            scheduler=scheduler,
            injector=injector,
            probe=probe,
            movement_filter=self.movement_filter,
            config=motion_config,
            rng=rng
        )

        self._started = False
        logger.info("EngineController initialized")

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        """Copy of the current state."""
        return replace(self._state)

    @property
    def is_enabled(self) -> bool:
        return self._state.enabled

    @property
    def phase(self) -> EnginePhase:
        if not self._state.enabled:
            return EnginePhase.DISABLED
        due = self._state.next_activity_due_at
        if due is None:
            return EnginePhase.ARMED
        if self._scheduler.now() >= due:
            return EnginePhase.DUE
        return EnginePhase.COOLDOWN

    @property
    def seconds_until_next_activity(self) -> Optional[float]:
        due = self._state.next_activity_due_at
        if due is None:
            return None
        return max(0.0, due - self._scheduler.now())

    @property
    def seconds_until_session_end(self) -> Optional[float]:
        expires = self._state.session_expires_at
        if expires is None:
            return None
        return max(0.0, expires - self._scheduler.now())

    def _notify(self) -> None:
        if self._on_state_change:
            try:
                self._on_state_change(self.state)
            except Exception as e:
                logger.error(f"Error in on_state_change callback: {e}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Register the 1 second tick with the scheduler."""
        if self._started:
            logger.warning("EngineController is already started")
            return False
        self._scheduler.call_every(TICK_INTERVAL, self.tick)
        self._started = True
        logger.info("Engine tick started")
        return True

    def shutdown(self) -> None:
        """Switch off and release the power assertion."""
        self._state.session_expires_at = None
        if self._state.enabled:
            self._disable()
        self._power.end_prevent_sleep()
        self._notify()
        logger.info("Engine shut down")

    # ------------------------------------------------------------------
    # Exposed controls
    # ------------------------------------------------------------------

    def toggle_enabled(self) -> bool:
        """
        Manual on/off switch.

        Always clears any session deadline and pending activity deadline.

        Returns:
            The new enabled state
        """
        self._state.session_expires_at = None
        self._state.next_activity_due_at = None

        if self._state.enabled:
            self._disable()
            logger.info("Disabled manually")
        else:
            self._enable()
            logger.info("Enabled manually")

        self._notify()
        return self._state.enabled

    def enable_for_preset(self, index: int) -> None:
        """
        Enable for timer preset 1, 2 or 3.

        Arms a session deadline; if the engine is already enabled the running
        session (and its power assertion) is kept and only the deadline moves.
        """
        if index not in (1, 2, 3):
            raise ValueError(f"Preset index must be 1, 2 or 3, got {index}")

        duration = self.settings.preset_durations[index - 1]
        self._state.session_expires_at = self._scheduler.now() + duration

        if not self._state.enabled:
            self._enable()

        logger.info(f"Enabled for preset {index} ({duration:.0f}s)")
        self._notify()

    def _enable(self) -> None:
        self._state.enabled = True
        self._state.next_activity_due_at = None
        self.movement_filter.reset()
        if not self._power.held:
            if not self._power.begin_prevent_sleep():
                logger.warning("Sleep prevention unavailable - continuing without it")

    def _disable(self) -> None:
        self._state.enabled = False
        self._state.next_activity_due_at = None
        self.motion.cancel()
        self._power.end_prevent_sleep()

    def _reset_schedule(self) -> None:
        """User is present: drop the deadline and any gesture in flight."""
        self.motion.cancel()
        self._state.next_activity_due_at = None

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self) -> None:
        now = self._scheduler.now()

        expires = self._state.session_expires_at
        if expires is not None and now >= expires:
            self._state.session_expires_at = None
            if self._state.enabled:
                self._disable()
                logger.info("Session expired - disabled")
            self._notify()
            return

        if not self._state.enabled:
            return

        idle_threshold = self.settings.idle_threshold

        position = self._probe.current_pointer_position()
        if position is not None:
            if self.movement_filter.observe(position, now, idle_threshold):
                had_deadline = self._state.next_activity_due_at is not None
                self._reset_schedule()
                if had_deadline:
                    self._notify()
                return

        idle_for = seconds_since_last_input(self._probe)
        if idle_for < idle_threshold:
            had_deadline = self._state.next_activity_due_at is not None
            self._reset_schedule()
            if had_deadline:
                logger.info(f"User active ({idle_for:.0f}s since input) - schedule reset")
                self._notify()
            return

        due = self._state.next_activity_due_at
        if due is None or now >= due:
            self._perform_activity(position)
            interval = self.settings.random_jiggle_interval()
            self._state.next_activity_due_at = now + interval
            logger.info(f"Idle {idle_for:.0f}s - next activity in {interval:.0f}s")
            self._notify()

    def _perform_activity(self, position) -> None:
        screens = self._probe.list_screen_regions()
        if self.motion.trigger(position, screens):
            self._state.activity_count += 1
