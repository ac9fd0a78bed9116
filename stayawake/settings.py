"""
Settings Module
===============

User-facing durations consumed by the engine: idle threshold, the
randomized jiggle interval and the three timer presets.

Values are plain seconds stored under flat keys in any mutable mapping,
so where (and whether) they are persisted is up to the caller. Writes are
validated and corrected in place, never rejected:

- timer presets are floored at 5 minutes
- the idle threshold must stay positive
- the interval maximum is pulled up to the minimum whenever it would
  fall below it

Observers registered with subscribe() are notified with the key that
changed after every write.
"""

import logging
import math
import random
from typing import Callable, Dict, List, MutableMapping, Optional

logger = logging.getLogger(__name__)


TIMER_DURATION_1 = "timer_duration_1"
TIMER_DURATION_2 = "timer_duration_2"
TIMER_DURATION_3 = "timer_duration_3"
IDLE_THRESHOLD = "idle_threshold"
JIGGLE_INTERVAL_MIN = "jiggle_interval_min"
JIGGLE_INTERVAL_MAX = "jiggle_interval_max"

DEFAULTS: Dict[str, float] = {
    TIMER_DURATION_1: 3600.0,     # 1 hour
    TIMER_DURATION_2: 14400.0,    # 4 hours
    TIMER_DURATION_3: 32400.0,    # 9 hours
    IDLE_THRESHOLD: 42.0,
    JIGGLE_INTERVAL_MIN: 42.0,
    JIGGLE_INTERVAL_MAX: 79.0,
}

PRESET_KEYS = (TIMER_DURATION_1, TIMER_DURATION_2, TIMER_DURATION_3)

MIN_PRESET_DURATION = 300.0
MIN_IDLE_THRESHOLD = 1.0
MIN_JIGGLE_INTERVAL = 1.0


def format_duration(seconds: float) -> str:
    """
    Format a preset duration for display.

    Examples:
        3600  -> "1 hour"
        14400 -> "4 hours"
        5400  -> "1 hr 30 min"
        300   -> "5 minutes"
    """
    hours = int(seconds) // 3600
    minutes = (int(seconds) % 3600) // 60

    if minutes == 0:
        return "1 hour" if hours == 1 else f"{hours} hours"
    if hours == 0:
        return "1 minute" if minutes == 1 else f"{minutes} minutes"

    h = "1 hr" if hours == 1 else f"{hours} hrs"
    m = "1 min" if minutes == 1 else f"{minutes} min"
    return f"{h} {m}"


class Settings:
    """
    Validated view over a flat key -> seconds mapping.

    Missing keys read as their defaults; nothing is written to the store
    until a value is explicitly set.
    """

    def __init__(
        self,
        store: Optional[MutableMapping[str, float]] = None,
        rng: Optional[random.Random] = None
    ):
        self._store: MutableMapping[str, float] = store if store is not None else {}
        self._rng = rng or random.Random()
        self._observers: List[Callable[[str], None]] = []

    # ------------------------------------------------------------------
    # Generic access
    # ------------------------------------------------------------------

    def get(self, key: str) -> float:
        if key not in DEFAULTS:
            raise KeyError(f"Unknown setting: {key}")
        value = self._store.get(key)
        if value is None:
            return DEFAULTS[key]
        return float(value)

    def set(self, key: str, value: float) -> None:
        """Validate and store a value, then notify observers."""
        if key not in DEFAULTS:
            raise KeyError(f"Unknown setting: {key}")

        value = float(value)
        changed = [key]

        if key in PRESET_KEYS:
            value = max(MIN_PRESET_DURATION, value)
        elif key == IDLE_THRESHOLD:
            value = max(MIN_IDLE_THRESHOLD, value)
        elif key in (JIGGLE_INTERVAL_MIN, JIGGLE_INTERVAL_MAX):
            value = max(MIN_JIGGLE_INTERVAL, value)

        self._store[key] = value

        if key in (JIGGLE_INTERVAL_MIN, JIGGLE_INTERVAL_MAX):
            low = self.get(JIGGLE_INTERVAL_MIN)
            if self.get(JIGGLE_INTERVAL_MAX) < low:
                logger.info(f"Jiggle interval max raised to match min ({low:.0f}s)")
                self._store[JIGGLE_INTERVAL_MAX] = low
                if key != JIGGLE_INTERVAL_MAX:
                    changed.append(JIGGLE_INTERVAL_MAX)

        for changed_key in changed:
            self._notify(changed_key)

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """
        Register a change observer.

        Returns:
            A function that removes the observer again
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self, key: str) -> None:
        for callback in list(self._observers):
            try:
                callback(key)
            except Exception as e:
                logger.error(f"Error in settings observer: {e}")

    def reset_to_defaults(self) -> None:
        for key, value in DEFAULTS.items():
            self.set(key, value)

    # ------------------------------------------------------------------
    # Typed accessors
    # ------------------------------------------------------------------

    @property
    def idle_threshold(self) -> float:
        return self.get(IDLE_THRESHOLD)

    @idle_threshold.setter
    def idle_threshold(self, value: float) -> None:
        self.set(IDLE_THRESHOLD, value)

    @property
    def jiggle_interval_min(self) -> float:
        return self.get(JIGGLE_INTERVAL_MIN)

    @jiggle_interval_min.setter
    def jiggle_interval_min(self, value: float) -> None:
        self.set(JIGGLE_INTERVAL_MIN, value)

    @property
    def jiggle_interval_max(self) -> float:
        return self.get(JIGGLE_INTERVAL_MAX)

    @jiggle_interval_max.setter
    def jiggle_interval_max(self, value: float) -> None:
        self.set(JIGGLE_INTERVAL_MAX, value)

    @property
    def preset_durations(self) -> List[float]:
        """Timer presets 1-3, in menu order."""
        return [self.get(key) for key in PRESET_KEYS]

    def set_preset_duration(self, index: int, seconds: float) -> None:
        """Set preset 1, 2 or 3."""
        if index not in (1, 2, 3):
            raise ValueError(f"Preset index must be 1, 2 or 3, got {index}")
        self.set(PRESET_KEYS[index - 1], seconds)

    def random_jiggle_interval(self) -> float:
        """
        Whole number of seconds drawn uniformly from [min, max].

        Fractional bounds are rounded inward. When no whole second fits
        (e.g. 42.2-42.7) the minimum itself is returned.
        """
        low = math.ceil(self.jiggle_interval_min)
        high = math.floor(self.jiggle_interval_max)
        if low > high:
            return self.jiggle_interval_min
        return float(self._rng.randint(low, high))
