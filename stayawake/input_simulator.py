"""
Input Simulator Module
======================

Windows backend for the engine: reads user input age, pointer position
and display layout, and injects pointer moves. Uses the Windows API through
ctypes and pywin32.

Key Concepts:
- SendInput: Windows API function that synthesizes input events
- GetLastInputInfo: tick count of the last input event the session saw
- EnumDisplayMonitors / GetMonitorInfo: rectangles of attached displays

How OS-Level Input Simulation Works:
------------------------------------
Windows processes input through a queue system. SendInput inserts synthetic
events into the same queue hardware drivers use, so applications (and the
idle timer) treat them like real input. Moves are sent with ABSOLUTE and
VIRTUALDESK, which map 0-65535 onto the whole virtual desktop so every
display is reachable.

Telling our input apart from the user's:
----------------------------------------
GetLastInputInfo cannot tell injected input from real input, and it has a
single timestamp for every kind of input. The simulator records the tick
count just before and just after each SendInput call, and the probe ignores
an input timestamp only if it falls inside that span plus one timer tick of
slack (the same idea as suppressing activity detection during simulated
input). Anything later is genuine user input, so a key press right after a
gesture still counts.

Limitation: the counter only keeps the newest timestamp, so real input made
during the few milliseconds of a SendInput call, or overwritten by a later
waypoint of the same gesture, cannot be seen. The next genuine input after
the gesture resets idleness as usual.

Coordinates:
------------
Windows reports device space (top-left origin, y down). The probe converts
to placement space (bottom-left origin, y up) using the primary display's
height; the injector takes device space.
"""

import ctypes
from ctypes import wintypes
import logging
from enum import IntEnum
from typing import List, Optional

import win32api

from .geometry import Point, ScreenRegion

logger = logging.getLogger(__name__)


# ============================================================================
# Windows API Constants and Structures
# ============================================================================

class InputType(IntEnum):
    """Types of input that can be simulated via SendInput."""
    MOUSE = 0
    KEYBOARD = 1
    HARDWARE = 2


class MouseEventFlags(IntEnum):
    """Flags for mouse input events."""
    MOVE = 0x0001           # Mouse movement
    ABSOLUTE = 0x8000       # Absolute coordinates (0-65535)
    VIRTUALDESK = 0x4000    # Map to entire virtual desktop


# GetSystemMetrics indices
SM_CYSCREEN = 1
SM_XVIRTUALSCREEN = 76
SM_YVIRTUALSCREEN = 77
SM_CXVIRTUALSCREEN = 78
SM_CYVIRTUALSCREEN = 79

MONITORINFOF_PRIMARY = 0x1

# GetTickCount resolution is 10-16 ms, so an echo can be stamped up to one
# tick after SendInput returns
INJECTION_ECHO_SLACK_MS = 32

ABSOLUTE_RANGE = 65536


class MOUSEINPUT(ctypes.Structure):
    _fields_ = [
        ("dx", wintypes.LONG),
        ("dy", wintypes.LONG),
        ("mouseData", wintypes.DWORD),
        ("dwFlags", wintypes.DWORD),
        ("time", wintypes.DWORD),
        ("dwExtraInfo", ctypes.POINTER(ctypes.c_ulong))
    ]


class KEYBDINPUT(ctypes.Structure):
    # Unused, but INPUT must be sized for the largest union member
    _fields_ = [
        ("wVk", wintypes.WORD),
        ("wScan", wintypes.WORD),
        ("dwFlags", wintypes.DWORD),
        ("time", wintypes.DWORD),
        ("dwExtraInfo", ctypes.POINTER(ctypes.c_ulong))
    ]


class HARDWAREINPUT(ctypes.Structure):
    _fields_ = [
        ("uMsg", wintypes.DWORD),
        ("wParamL", wintypes.WORD),
        ("wParamH", wintypes.WORD)
    ]


class INPUTUNION(ctypes.Union):
    _fields_ = [
        ("mi", MOUSEINPUT),
        ("ki", KEYBDINPUT),
        ("hi", HARDWAREINPUT)
    ]


class INPUT(ctypes.Structure):
    _fields_ = [
        ("type", wintypes.DWORD),
        ("union", INPUTUNION)
    ]


class LASTINPUTINFO(ctypes.Structure):
    _fields_ = [
        ("cbSize", wintypes.UINT),
        ("dwTime", wintypes.DWORD)
    ]


def _tick_count() -> int:
    """Milliseconds since boot, wrapped to 32 bits like LASTINPUTINFO.dwTime."""
    return ctypes.windll.kernel32.GetTickCount() & 0xFFFFFFFF


def _ticks_between(earlier: int, later: int) -> int:
    """Elapsed ms between two 32-bit tick counts, wrap-safe."""
    return (later - earlier) & 0xFFFFFFFF


def to_absolute(pixel: float, origin: int, extent: int) -> int:
    """
    Device pixel to a SendInput ABSOLUTE coordinate.

    Windows maps an absolute coordinate back to
    origin + floor(value * extent / 65536). Rounding up here keeps that
    floor on the requested pixel for every pixel of the desktop, so the
    cursor lands exactly where the movement filter is told it did.
    """
    offset = min(max(int(round(pixel)) - origin, 0), extent - 1)
    return -((-offset * ABSOLUTE_RANGE) // extent)


def from_absolute(value: int, origin: int, extent: int) -> int:
    """Inverse of to_absolute, the way Windows applies it."""
    return origin + (value * extent) // ABSOLUTE_RANGE


# ============================================================================
# Injector
# ============================================================================

class InputSimulator:
    """
    Injects pointer moves at the OS level through SendInput.

    Remembers the tick count of its last injection so InputProbe can
    discount the echo in GetLastInputInfo.
    """

    def __init__(self):
        self.user32 = ctypes.windll.user32
        # Tick counts bracketing the last SendInput call
        self.last_injection_tick: Optional[int] = None
        self.last_injection_end_tick: Optional[int] = None
        logger.info("InputSimulator initialized")

    def _send_input(self, *inputs: INPUT) -> int:
        """
        Send one or more input events to the system.

        Returns:
            Number of events successfully sent
        """
        input_array = (INPUT * len(inputs))(*inputs)
        return self.user32.SendInput(
            len(inputs),
            ctypes.pointer(input_array),
            ctypes.sizeof(INPUT)
        )

    def inject_pointer_move(self, point: Point) -> bool:
        """
        Move the cursor to a device-space position.

        Args:
            point: Target in device coordinates (top-left origin)

        Returns:
            True if the event was accepted
        """
        try:
            vx = self.user32.GetSystemMetrics(SM_XVIRTUALSCREEN)
            vy = self.user32.GetSystemMetrics(SM_YVIRTUALSCREEN)
            vw = max(1, self.user32.GetSystemMetrics(SM_CXVIRTUALSCREEN))
            vh = max(1, self.user32.GetSystemMetrics(SM_CYVIRTUALSCREEN))

            inp = INPUT()
            inp.type = InputType.MOUSE
            inp.union.mi.dx = to_absolute(point.x, vx, vw)
            inp.union.mi.dy = to_absolute(point.y, vy, vh)
            inp.union.mi.dwFlags = (MouseEventFlags.MOVE |
                                    MouseEventFlags.ABSOLUTE |
                                    MouseEventFlags.VIRTUALDESK)
            inp.union.mi.time = 0
            inp.union.mi.dwExtraInfo = None

            start = _tick_count()
            self.last_injection_tick = start
            self.last_injection_end_tick = start
            result = self._send_input(inp)
            self.last_injection_end_tick = _tick_count()
        except Exception as e:
            logger.error(f"Error injecting pointer move: {e}")
            return False

        logger.debug(f"Mouse moved to ({point.x:.0f}, {point.y:.0f})")
        return result > 0

    def get_mouse_position(self) -> Optional[Point]:
        """Raw cursor position in device space, straight from user32."""
        point = wintypes.POINT()
        if not self.user32.GetCursorPos(ctypes.byref(point)):
            return None
        return Point(float(point.x), float(point.y))


# ============================================================================
# Probe
# ============================================================================

class InputProbe:
    """
    Reads input age, pointer position and display layout.

    Args:
        simulator: The InputSimulator whose injections should not count
            as user input
    """

    def __init__(self, simulator: InputSimulator):
        self.user32 = ctypes.windll.user32
        self._simulator = simulator
        self._last_seen_input_tick: Optional[int] = None
        self._last_genuine_input_tick: Optional[int] = None
        logger.info("InputProbe initialized")

    def _last_input_tick(self) -> Optional[int]:
        info = LASTINPUTINFO()
        info.cbSize = ctypes.sizeof(LASTINPUTINFO)
        if not self.user32.GetLastInputInfo(ctypes.byref(info)):
            return None
        return info.dwTime & 0xFFFFFFFF

    def _is_injection_echo(self, input_tick: int) -> bool:
        """True if input_tick falls inside the last SendInput call (plus slack)."""
        start = self._simulator.last_injection_tick
        end = self._simulator.last_injection_end_tick
        if start is None:
            return False
        if end is None:
            end = start
        window = _ticks_between(start, end) + INJECTION_ECHO_SLACK_MS
        return _ticks_between(start, input_tick) <= window

    def seconds_since_last_input(self, input_class=None) -> float:
        """
        Seconds since the last genuine input event.

        GetLastInputInfo keeps one timestamp for keyboard, mouse and
        touch alike, so the answer is the same for every input class.
        """
        input_tick = self._last_input_tick()
        if input_tick is None:
            logger.warning("GetLastInputInfo failed - treating user as active")
            return 0.0

        if self._last_genuine_input_tick is None:
            self._last_genuine_input_tick = input_tick
        elif input_tick != self._last_seen_input_tick:
            if self._is_injection_echo(input_tick):
                logger.debug("Ignoring input timestamp caused by our own injection")
            else:
                self._last_genuine_input_tick = input_tick
        self._last_seen_input_tick = input_tick

        return _ticks_between(self._last_genuine_input_tick, _tick_count()) / 1000.0

    def _primary_height(self) -> int:
        return win32api.GetSystemMetrics(SM_CYSCREEN)

    def current_pointer_position(self) -> Optional[Point]:
        """Cursor position in placement space, or None if the query failed."""
        try:
            x, y = win32api.GetCursorPos()
            height = self._primary_height()
        except Exception as e:
            logger.warning(f"GetCursorPos failed: {e}")
            return None
        return Point(float(x), float(height - 1 - y))

    def device_pointer_position(self) -> Optional[Point]:
        """Cursor position in device space via the raw user32 call."""
        try:
            return self._simulator.get_mouse_position()
        except Exception as e:
            logger.error(f"Error reading cursor position: {e}")
            return None

    def list_screen_regions(self) -> List[ScreenRegion]:
        """
        All attached displays in placement space.

        Queried fresh every call; displays come and go.
        """
        try:
            monitors = win32api.EnumDisplayMonitors()
            infos = [win32api.GetMonitorInfo(handle) for handle, _, _ in monitors]
        except Exception as e:
            logger.error(f"Error enumerating displays: {e}")
            return []

        primary_bottom = None
        for info in infos:
            if info.get("Flags", 0) & MONITORINFOF_PRIMARY:
                primary_bottom = info["Monitor"][3]
        if primary_bottom is None:
            primary_bottom = self._primary_height()

        regions = []
        for info in infos:
            left, top, right, bottom = info["Monitor"]
            regions.append(ScreenRegion(
                x=float(left),
                y=float(primary_bottom - bottom),
                width=float(right - left),
                height=float(bottom - top),
                primary=bool(info.get("Flags", 0) & MONITORINFOF_PRIMARY)
            ))

        logger.debug(f"Found {len(regions)} display(s)")
        return regions
