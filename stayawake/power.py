"""
Power Assertion Module
======================

Keeps Windows from sleeping or blanking the display while the engine is
enabled.

How it works:
-------------
SetThreadExecutionState(ES_CONTINUOUS | ES_SYSTEM_REQUIRED |
ES_DISPLAY_REQUIRED) tells the power manager that this thread needs the
system and the display until further notice. Calling it again with only
ES_CONTINUOUS clears the request.

The state is per thread, so begin/end must be called from the same thread
(the scheduler's thread, which is where the engine runs anyway).

Failure is not fatal: the engine keeps moving the pointer even if the
assertion cannot be taken.
"""

import ctypes
import logging

logger = logging.getLogger(__name__)


ES_CONTINUOUS = 0x80000000
ES_SYSTEM_REQUIRED = 0x00000001
ES_DISPLAY_REQUIRED = 0x00000002


class PowerAssertion:
    """Windows no-sleep assertion with idempotent begin/end."""

    def __init__(self, reason: str = "stayawake active"):
        self.reason = reason
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def begin_prevent_sleep(self) -> bool:
        """
        Take the assertion if not already held.

        Returns:
            True if the assertion is held afterwards
        """
        if self._held:
            return True

        try:
            previous = ctypes.windll.kernel32.SetThreadExecutionState(
                ES_CONTINUOUS | ES_SYSTEM_REQUIRED | ES_DISPLAY_REQUIRED
            )
        except Exception as e:
            logger.error(f"Error taking power assertion: {e}")
            return False

        if previous == 0:
            logger.error("SetThreadExecutionState failed - sleep prevention not active")
            return False

        self._held = True
        logger.info(f"Power assertion taken ({self.reason})")
        return True

    def end_prevent_sleep(self) -> None:
        """Release the assertion if held."""
        if not self._held:
            return

        self._held = False
        try:
            ctypes.windll.kernel32.SetThreadExecutionState(ES_CONTINUOUS)
            logger.info("Power assertion released")
        except Exception as e:
            logger.error(f"Error releasing power assertion: {e}")
