import ctypes
import importlib
import sys
from types import SimpleNamespace

import pytest

from stayawake.geometry import Point, ScreenRegion, device_to_placement, primary_region
from stayawake.idle_detector import InputClass


MASK = 0xFFFFFFFF


class FakeKernel32:
    def __init__(self, now=1000):
        self.now = now

    def GetTickCount(self):
        return self.now & MASK


class FakeUser32:
    """user32 stand-in. SendInput stamps the input counter like Windows does."""

    def __init__(self, kernel32, metrics=None):
        self.kernel32 = kernel32
        self.metrics = metrics or {76: 0, 77: 0, 78: 1920, 79: 1080}
        self.last_input = kernel32.now
        self.last_input_fails = False
        self.sent = []
        self.send_duration_ms = 0
        self.cursor = (0, 0)

    def GetLastInputInfo(self, ref):
        if self.last_input_fails:
            return 0
        ref._obj.dwTime = self.last_input & MASK
        return 1

    def GetSystemMetrics(self, index):
        return self.metrics[index]

    def SendInput(self, count, array_pointer, size):
        mi = array_pointer.contents[0].union.mi
        self.sent.append((mi.dx, mi.dy, mi.dwFlags))
        self.last_input = self.kernel32.now
        self.kernel32.now += self.send_duration_ms
        return count

    def GetCursorPos(self, ref):
        ref._obj.x, ref._obj.y = self.cursor
        return 1


class FakeWin32Api:
    def __init__(self):
        self.cursor = (0, 0)
        self.cursor_fails = False
        self.screen_height = 1080
        self.monitors = [((0, 0, 1920, 1080), 1)]

    def GetCursorPos(self):
        if self.cursor_fails:
            raise OSError("access denied")
        return self.cursor

    def GetSystemMetrics(self, index):
        return self.screen_height

    def EnumDisplayMonitors(self):
        return [(handle, None, rect) for handle, (rect, _) in enumerate(self.monitors)]

    def GetMonitorInfo(self, handle):
        rect, flags = self.monitors[handle]
        return {"Monitor": rect, "Work": rect, "Flags": flags}


@pytest.fixture
def win32api(monkeypatch):
    fake = FakeWin32Api()
    monkeypatch.setitem(sys.modules, "win32api", fake)
    return fake


@pytest.fixture
def backend(monkeypatch, win32api):
    module = importlib.import_module("stayawake.input_simulator")
    monkeypatch.setattr(module, "win32api", win32api)
    return module


@pytest.fixture
def kernel32():
    return FakeKernel32()


@pytest.fixture
def user32(monkeypatch, kernel32):
    fake = FakeUser32(kernel32)
    monkeypatch.setattr(ctypes, "windll", SimpleNamespace(user32=fake, kernel32=kernel32), raising=False)
    return fake


@pytest.fixture
def simulator(backend, user32):
    return backend.InputSimulator()


@pytest.fixture
def probe(backend, simulator):
    return backend.InputProbe(simulator)


# ----------------------------------------------------------------------
# Absolute coordinates
# ----------------------------------------------------------------------

@pytest.mark.parametrize("extent", [1920, 2560, 3840])
def test_every_pixel_maps_back_to_itself(backend, extent):
    for pixel in range(extent):
        value = backend.to_absolute(pixel, 0, extent)
        assert 0 <= value <= 65535
        assert backend.from_absolute(value, 0, extent) == pixel


def test_pixels_left_of_primary_map_back(backend):
    # Virtual desktop starting on a display left of the primary
    for pixel in range(-1280, 1920):
        value = backend.to_absolute(pixel, -1280, 3200)
        assert backend.from_absolute(value, -1280, 3200) == pixel


def test_off_desktop_pixels_clamp_to_edges(backend):
    assert backend.to_absolute(-50, 0, 1920) == 0
    assert backend.from_absolute(backend.to_absolute(5000, 0, 1920), 0, 1920) == 1919


def test_injection_sends_absolute_virtual_desktop_move(backend, simulator, user32):
    user32.metrics = {76: -1920, 77: 0, 78: 3840, 79: 1080}

    assert simulator.inject_pointer_move(Point(-7, 1079)) is True

    dx, dy, flags = user32.sent[0]
    assert backend.from_absolute(dx, -1920, 3840) == -7
    assert backend.from_absolute(dy, 0, 1080) == 1079
    assert flags == (backend.MouseEventFlags.MOVE |
                     backend.MouseEventFlags.ABSOLUTE |
                     backend.MouseEventFlags.VIRTUALDESK)


def test_injection_error_returns_false(simulator, user32):
    user32.metrics = {}

    assert simulator.inject_pointer_move(Point(10, 10)) is False


def test_raw_cursor_position_is_device_space(simulator, user32):
    user32.cursor = (300, 40)

    assert simulator.get_mouse_position() == Point(300, 40)


# ----------------------------------------------------------------------
# Input age
# ----------------------------------------------------------------------

def test_first_sample_is_taken_as_genuine(probe, kernel32, user32):
    user32.last_input = 1000
    kernel32.now = 61000

    assert probe.seconds_since_last_input() == 60.0


def test_own_injection_does_not_reset_input_age(probe, simulator, kernel32, user32):
    probe.seconds_since_last_input()
    kernel32.now = 61000

    simulator.inject_pointer_move(Point(100, 100))
    kernel32.now = 62000

    assert probe.seconds_since_last_input() == 61.0


def test_slow_send_input_is_still_an_echo(probe, simulator, kernel32, user32):
    probe.seconds_since_last_input()
    kernel32.now = 61000
    user32.send_duration_ms = 80

    simulator.inject_pointer_move(Point(100, 100))
    user32.last_input = kernel32.now + 16
    kernel32.now = 62000

    assert probe.seconds_since_last_input() == 61.0


def test_key_press_right_after_injection_counts(probe, simulator, kernel32, user32):
    probe.seconds_since_last_input()
    kernel32.now = 61000

    simulator.inject_pointer_move(Point(100, 100))
    user32.last_input = 61100
    kernel32.now = 62000

    assert probe.seconds_since_last_input() == pytest.approx(0.9)


def test_input_age_survives_tick_count_wrap(probe, simulator, kernel32, user32):
    kernel32.now = MASK - 255
    user32.last_input = MASK - 255
    probe.seconds_since_last_input()

    kernel32.now = MASK - 15
    simulator.inject_pointer_move(Point(100, 100))
    # Echo stamped just after the counter wrapped
    user32.last_input = 0x10
    kernel32.now = MASK - 255 + 5000

    assert probe.seconds_since_last_input() == 5.0


def test_failed_input_query_reads_as_active(probe, user32):
    user32.last_input_fails = True

    assert probe.seconds_since_last_input() == 0.0


def test_every_input_class_gets_the_same_answer(probe, kernel32):
    kernel32.now = 4000

    ages = {probe.seconds_since_last_input(cls) for cls in InputClass}

    assert ages == {3.0}


# ----------------------------------------------------------------------
# Pointer and displays
# ----------------------------------------------------------------------

def test_pointer_position_is_flipped_to_placement(probe, win32api):
    win32api.cursor = (100, 0)

    assert probe.current_pointer_position() == Point(100, 1079)


def test_pointer_query_failure_returns_none(probe, win32api):
    win32api.cursor_fails = True

    assert probe.current_pointer_position() is None


def test_primary_display_region(probe):
    assert probe.list_screen_regions() == [ScreenRegion(0, 0, 1920, 1080, primary=True)]


@pytest.mark.parametrize("rect, expected", [
    # Above the primary
    ((0, -1440, 2560, 0), ScreenRegion(0, 1080, 2560, 1440)),
    # Below the primary
    ((0, 1080, 1920, 2160), ScreenRegion(0, -1080, 1920, 1080)),
    # Left of the primary, top edges offset
    ((-1280, 100, 0, 1124), ScreenRegion(-1280, -44, 1280, 1024)),
])
def test_secondary_display_regions(probe, win32api, rect, expected):
    win32api.monitors = [((0, 0, 1920, 1080), 1), (rect, 0)]

    regions = probe.list_screen_regions()

    assert regions[1] == expected
    primary = primary_region(regions)
    left, top, right, bottom = rect
    # Device corner pixels of the display land inside its placement region
    for corner in (Point(left, top), Point(right - 1, bottom - 1)):
        assert expected.contains(device_to_placement(corner, primary))


def test_enumeration_failure_returns_no_screens(probe, win32api):
    win32api.monitors = None

    assert probe.list_screen_regions() == []
