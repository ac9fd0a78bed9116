"""
Motion Synthesis Module
=======================

Turns "do some activity now" into a short, human-looking pointer gesture.

How a gesture is built:
-----------------------
1. TARGET: a nearby point, biased toward the centre of the current display
   about half the time, otherwise in a random direction. Always clamped
   to the display the pointer is on.

2. WAYPOINTS: 4-8 intermediate points along the straight line to the
   target, pushed sideways according to a randomly drawn path type:
   - arc:    one smooth bow, widest in the middle
   - zigzag: alternating left/right offsets
   - direct: barely any deviation, just a little wobble
   Each step is then stretched or shrunk slightly so the spacing is never
   perfectly even. The last waypoint is always exactly the target.

3. TIMING: a total duration of 0.5-1.0s split across the steps according
   to a randomly drawn timing pattern (accelerate-decelerate, steady,
   quick-pause-quick). The per-step delays always add up to the total.

4. EXECUTION: every waypoint is handed to the scheduler as a separate
   deferred callback. Each callback re-checks that the engine is still
   enabled and still animating before it injects anything, so clearing
   either flag cancels the rest of the gesture without tracking timers.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import List, Optional, Sequence, Tuple, TypeVar

from .geometry import (
    Point,
    ScreenRegion,
    device_to_placement,
    placement_to_device,
    primary_region,
    region_containing,
)

logger = logging.getLogger(__name__)


class PathType(Enum):
    """Lateral shaping applied to the straight line toward the target."""
    ARC = "arc"
    ZIGZAG = "zigzag"
    DIRECT = "direct"


class TimingPattern(Enum):
    """Shaping applied to the per-step delays."""
    ACCELERATE_DECELERATE = "accelerate-decelerate"
    STEADY = "steady"
    QUICK_PAUSE_QUICK = "quick-pause-quick"


PATH_TYPE_WEIGHTS: Tuple[Tuple[PathType, float], ...] = (
    (PathType.ARC, 0.40),
    (PathType.ZIGZAG, 0.35),
    (PathType.DIRECT, 0.25),
)

TIMING_PATTERN_WEIGHTS: Tuple[Tuple[TimingPattern, float], ...] = (
    (TimingPattern.ACCELERATE_DECELERATE, 0.50),
    (TimingPattern.STEADY, 0.30),
    (TimingPattern.QUICK_PAUSE_QUICK, 0.20),
)

T = TypeVar("T")


def weighted_choice(table: Sequence[Tuple[T, float]], rng: random.Random) -> T:
    """Draw one tag from a (tag, weight) table."""
    tags = [tag for tag, _ in table]
    weights = [weight for _, weight in table]
    return rng.choices(tags, weights=weights, k=1)[0]


@dataclass
class MotionConfig:
    """
    Tuning knobs for gesture generation.

    Attributes:
        center_bias_probability: Chance of heading toward the display centre
        distance_range: Total gesture length, in pixels
        step_range: Number of waypoints (inclusive)
        deviation_range: Sideways offset band for arc/zigzag, in pixels
        direct_wobble: Max sideways wobble for direct paths, in pixels
        step_jitter_range: Random scale applied to each step's delta
        duration_range: Total gesture duration, in seconds
        min_step_delay: Floor for a single step's delay before rescaling
        delay_jitter_range: Random scale applied to each step's delay
        fallback_step_range: Per-axis displacement for the single-step fallback
        path_type_weights: (PathType, weight) table
        timing_pattern_weights: (TimingPattern, weight) table
    """
    center_bias_probability: float = 0.52
    distance_range: Tuple[float, float] = (15.0, 35.0)
    step_range: Tuple[int, int] = (4, 8)
    deviation_range: Tuple[float, float] = (2.0, 6.0)
    direct_wobble: float = 1.0
    step_jitter_range: Tuple[float, float] = (0.85, 1.15)
    duration_range: Tuple[float, float] = (0.5, 1.0)
    min_step_delay: float = 0.04
    delay_jitter_range: Tuple[float, float] = (0.9, 1.1)
    fallback_step_range: Tuple[int, int] = (11, 23)
    path_type_weights: Tuple[Tuple[PathType, float], ...] = field(
        default_factory=lambda: PATH_TYPE_WEIGHTS
    )
    timing_pattern_weights: Tuple[Tuple[TimingPattern, float], ...] = field(
        default_factory=lambda: TIMING_PATTERN_WEIGHTS
    )


@dataclass
class Trajectory:
    """One gesture: waypoints with the delay before each one."""
    steps: List[Tuple[Point, float]]
    target: Point
    path_type: PathType
    timing_pattern: TimingPattern
    total_duration: float

    @property
    def waypoints(self) -> List[Point]:
        return [point for point, _ in self.steps]

    @property
    def delays(self) -> List[float]:
        return [delay for _, delay in self.steps]


def timing_multiplier(pattern: TimingPattern, index: int, step_count: int) -> float:
    """Relative length of step `index` under a timing pattern."""
    if pattern == TimingPattern.ACCELERATE_DECELERATE:
        # Long steps at both ends, short in the middle
        progress = (index + 0.5) / step_count
        return 1.4 - 0.8 * math.sin(math.pi * progress)
    if pattern == TimingPattern.QUICK_PAUSE_QUICK:
        return 2.2 if index == step_count // 2 else 0.7
    return 1.0


class TrajectoryGenerator:
    """Builds Trajectory objects. Pure apart from the injected random source."""

    def __init__(self, config: Optional[MotionConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or MotionConfig()
        self._rng = rng or random.Random()

    def _random_direction(self) -> Tuple[float, float]:
        angle = self._rng.uniform(0, 2 * math.pi)
        return math.cos(angle), math.sin(angle)

    def choose_target(self, start: Point, region: ScreenRegion) -> Point:
        """Pick the (clamped) end point of a gesture."""
        distance = self._rng.uniform(*self.config.distance_range)

        if self._rng.random() < self.config.center_bias_probability:
            center = region.center
            to_center = start.distance_to(center)
            if to_center < 1.0:
                direction = self._random_direction()
            else:
                direction = ((center.x - start.x) / to_center,
                             (center.y - start.y) / to_center)
        else:
            direction = self._random_direction()

        target = start.offset(direction[0] * distance, direction[1] * distance)
        return region.clamp(target)

    def _deviation(self, path_type: PathType, index: int, step_count: int,
                   amplitude: float, sign: float) -> float:
        low, high = self.config.deviation_range

        if path_type == PathType.ARC:
            progress = index / step_count
            return sign * math.sin(math.pi * progress) * amplitude * self._rng.uniform(0.8, 1.2)

        if path_type == PathType.ZIGZAG:
            magnitude = self._rng.uniform(low + 0.6 * (high - low), high)
            return sign * magnitude * (1 if index % 2 else -1)

        return self._rng.uniform(-self.config.direct_wobble, self.config.direct_wobble)

    def generate_waypoints(self, start: Point, target: Point, region: ScreenRegion,
                           step_count: int, path_type: PathType) -> List[Point]:
        """
        Waypoints from start (exclusive) to target (inclusive).

        Every waypoint is clamped to `region`; the final one is `target`.
        """
        dx = target.x - start.x
        dy = target.y - start.y
        length = math.hypot(dx, dy)
        if length > 0:
            perp_x, perp_y = -dy / length, dx / length
        else:
            perp_x, perp_y = 0.0, 0.0

        amplitude = self._rng.uniform(*self.config.deviation_range)
        sign = self._rng.choice((-1.0, 1.0))

        waypoints: List[Point] = []
        previous = start
        for i in range(1, step_count + 1):
            progress = i / step_count
            deviation = self._deviation(path_type, i, step_count, amplitude, sign)
            point = Point(start.x + dx * progress + perp_x * deviation,
                          start.y + dy * progress + perp_y * deviation)

            scale = self._rng.uniform(*self.config.step_jitter_range)
            point = Point(previous.x + (point.x - previous.x) * scale,
                          previous.y + (point.y - previous.y) * scale)

            point = region.clamp(point)
            waypoints.append(point)
            previous = point

        # Land exactly on the target whatever the jitter did
        waypoints[-1] = target
        return waypoints

    def generate_delays(self, step_count: int, total_duration: float,
                        pattern: TimingPattern) -> List[float]:
        """Per-step delays that sum to total_duration."""
        base = total_duration / step_count
        raw = []
        for i in range(step_count):
            delay = base * timing_multiplier(pattern, i, step_count)
            delay *= self._rng.uniform(*self.config.delay_jitter_range)
            raw.append(max(self.config.min_step_delay, delay))

        scale = total_duration / sum(raw)
        return [delay * scale for delay in raw]

    def generate(self, start: Point, region: ScreenRegion) -> Trajectory:
        target = self.choose_target(start, region)
        step_count = self._rng.randint(*self.config.step_range)
        path_type = weighted_choice(self.config.path_type_weights, self._rng)
        waypoints = self.generate_waypoints(start, target, region, step_count, path_type)

        total_duration = self._rng.uniform(*self.config.duration_range)
        timing_pattern = weighted_choice(self.config.timing_pattern_weights, self._rng)
        delays = self.generate_delays(step_count, total_duration, timing_pattern)

        return Trajectory(
            steps=list(zip(waypoints, delays)),
            target=target,
            path_type=path_type,
            timing_pattern=timing_pattern,
            total_duration=total_duration
        )

    def fallback_target(self, start: Point, region: ScreenRegion) -> Point:
        """Single random hop used when only a low-fidelity position is known."""
        low, high = self.config.fallback_step_range
        dx = self._rng.randint(low, high) * self._rng.choice((-1, 1))
        dy = self._rng.randint(low, high) * self._rng.choice((-1, 1))
        return region.clamp(start.offset(dx, dy))


class MotionEngine:
    """
    Plays trajectories through the injection primitive.

    The engine shares the controller's EngineState: it sets is_animating
    while a trajectory is in flight and reads enabled/is_animating before
    every waypoint. At most one trajectory is ever in flight.
    """

    def __init__(
        self,
        state,
        scheduler,
        injector,
        probe,
        movement_filter,
        config: Optional[MotionConfig] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Args:
            state: Shared EngineState
            scheduler: Timer source used for the deferred waypoints
            injector: Object with inject_pointer_move(device_point) -> bool
            probe: Input probe, used for its device_pointer_position() fallback
            movement_filter: SelfMovementFilter that is told about our own moves
            config: Gesture tuning (defaults if None)
            rng: Random source (seed it for reproducible gestures)
        """
        self._state = state
        self._scheduler = scheduler
        self._injector = injector
        self._probe = probe
        self._filter = movement_filter
        self.generator = TrajectoryGenerator(config, rng)

    def trigger(self, current_position: Optional[Point], screens: List[ScreenRegion]) -> bool:
        """
        Start a gesture from the current pointer position.

        Args:
            current_position: Pointer in placement space, or None if the
                primary position query failed
            screens: Freshly queried screen regions

        Returns:
            True if any movement was started or performed
        """
        if self._state.is_animating:
            logger.debug("Gesture already in flight - trigger dropped")
            return False

        if not screens:
            logger.warning("No screens available - skipping activity")
            return False

        if current_position is None:
            return self._fallback_move(screens)

        region = region_containing(current_position, screens)
        primary = primary_region(screens)
        trajectory = self.generator.generate(current_position, region)

        self._state.is_animating = True
        self._state.animation_generation += 1
        generation = self._state.animation_generation

        last_index = len(trajectory.steps) - 1
        offset = 0.0
        for index, (point, delay) in enumerate(trajectory.steps):
            offset += delay
            self._scheduler.call_later(
                offset,
                partial(self._fire_waypoint, generation, index == last_index, point, primary)
            )

        logger.info(
            f"Gesture: {trajectory.path_type.value}/{trajectory.timing_pattern.value}, "
            f"{len(trajectory.steps)} steps over {trajectory.total_duration:.2f}s "
            f"to ({trajectory.target.x:.0f}, {trajectory.target.y:.0f})"
        )
        return True

    def cancel(self) -> bool:
        """Abandon the in-flight gesture, if any."""
        if not self._state.is_animating:
            return False
        self._state.is_animating = False
        self._state.animation_generation += 1
        logger.debug("Gesture cancelled")
        return True

    def _fire_waypoint(self, generation: int, is_last: bool, point: Point,
                       primary: ScreenRegion) -> None:
        if generation != self._state.animation_generation:
            # Superseded by a cancel or a newer gesture
            return

        if not (self._state.enabled and self._state.is_animating):
            self._state.is_animating = False
            self._state.animation_generation += 1
            return

        self._inject(point, primary)

        if is_last:
            self._state.is_animating = False
            logger.debug("Gesture complete")

    def _inject(self, point: Point, primary: ScreenRegion) -> bool:
        device_point = placement_to_device(point, primary).rounded()
        if not self._injector.inject_pointer_move(device_point):
            logger.warning(f"Pointer injection failed at ({device_point.x:.0f}, {device_point.y:.0f})")
            return False
        self._filter.record_synthetic_position(device_to_placement(device_point, primary))
        return True

    def _fallback_move(self, screens: List[ScreenRegion]) -> bool:
        device_position = self._probe.device_pointer_position()
        if device_position is None:
            logger.info("Pointer position unavailable - skipping activity this cycle")
            return False

        primary = primary_region(screens)
        start = device_to_placement(device_position, primary)
        region = region_containing(start, screens)
        target = self.generator.fallback_target(start, region)

        logger.info(f"Fallback hop to ({target.x:.0f}, {target.y:.0f})")
        return self._inject(target, primary)
