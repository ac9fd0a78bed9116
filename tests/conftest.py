import heapq
import os
import random
import sys

import pytest

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from stayawake.engine import EngineController
from stayawake.geometry import Point, ScreenRegion, device_to_placement, primary_region
from stayawake.settings import Settings


class FakeScheduler:
    """Virtual clock: callbacks only run when the test advances time."""

    def __init__(self, start: float = 1000.0):
        self._now = start
        self._queue = []
        self._seq = 0

    def now(self) -> float:
        return self._now

    def call_later(self, delay, callback):
        heapq.heappush(self._queue, (self._now + max(0.0, delay), self._seq, callback))
        self._seq += 1

    def call_every(self, seconds, callback):
        def repeat():
            callback()
            self.call_later(seconds, repeat)

        self.call_later(seconds, repeat)

    def advance(self, seconds: float) -> None:
        end = self._now + seconds
        while self._queue and self._queue[0][0] <= end:
            due, _, callback = heapq.heappop(self._queue)
            self._now = due
            callback()
        self._now = end

    @property
    def pending(self) -> int:
        return len(self._queue)


class FakeProbe:
    """
    Input probe driven by the virtual clock.

    Input age is `now - last_input_at`; touch() records genuine input.
    """

    def __init__(self, scheduler: FakeScheduler, screens=None):
        self.scheduler = scheduler
        self.last_input_at = scheduler.now()
        self.pointer = Point(960.0, 540.0)
        self.pointer_query_fails = False
        self.device_pointer = None
        self.screens = screens if screens is not None else [
            ScreenRegion(0, 0, 1920, 1080, primary=True)
        ]
        self.queried_classes = []

    def touch(self) -> None:
        self.last_input_at = self.scheduler.now()

    def seconds_since_last_input(self, input_class) -> float:
        self.queried_classes.append(input_class)
        return self.scheduler.now() - self.last_input_at

    def current_pointer_position(self):
        if self.pointer_query_fails:
            return None
        return self.pointer

    def device_pointer_position(self):
        return self.device_pointer

    def list_screen_regions(self):
        return list(self.screens)


class FakeInjector:
    """Records injected device points and moves the fake pointer like the OS would."""

    def __init__(self, probe: FakeProbe):
        self.probe = probe
        self.calls = []
        self.fail_on_calls = set()

    def inject_pointer_move(self, point: Point) -> bool:
        self.calls.append(point)
        if len(self.calls) in self.fail_on_calls:
            return False
        primary = primary_region(self.probe.screens)
        self.probe.pointer = device_to_placement(point, primary)
        return True


class FakePower:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.held = False
        self.begin_count = 0
        self.end_count = 0

    def begin_prevent_sleep(self) -> bool:
        if self.fail:
            return False
        self.held = True
        self.begin_count += 1
        return True

    def end_prevent_sleep(self) -> None:
        if self.held:
            self.held = False
            self.end_count += 1


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def probe(scheduler):
    return FakeProbe(scheduler)


@pytest.fixture
def injector(probe):
    return FakeInjector(probe)


@pytest.fixture
def power():
    return FakePower()


@pytest.fixture
def settings(rng):
    return Settings(rng=rng)


@pytest.fixture
def controller(settings, scheduler, probe, injector, power, rng):
    engine = EngineController(
        settings=settings,
        scheduler=scheduler,
        probe=probe,
        injector=injector,
        power=power,
        rng=rng
    )
    engine.start()
    return engine
