"""
Screen Geometry Module
======================

Points, screen regions and the conversion between the two coordinate
conventions used by the package.

Coordinate Spaces:
------------------
- Placement space: origin at the bottom-left corner of the primary
  display, y grows upward. Screen regions and the motion engine work here.
- Device space: origin at the top-left corner of the primary display,
  y grows downward. This is what the injection primitive expects.

The top edge of the primary region anchors the vertical flip between them.
Both spaces address whole pixels, so device row 0 (the top row of the
primary display) is placement row primary_top - 1:

    device_y = primary_top - 1 - placement_y

That keeps every pixel of a region's [min_y, max_y) span on a real device
row, and the flip stays its own inverse.
"""

import math
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Point:
    """A 2D coordinate."""
    x: float
    y: float

    def offset(self, dx: float, dy: float) -> "Point":
        return Point(self.x + dx, self.y + dy)

    def distance_to(self, other: "Point") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def rounded(self) -> "Point":
        """Snap to whole pixels."""
        return Point(float(round(self.x)), float(round(self.y)))


@dataclass(frozen=True)
class ScreenRegion:
    """
    A rectangular display area in placement space.

    Attributes:
        x, y: Bottom-left corner
        width, height: Size in pixels
        primary: True for the display that anchors the coordinate flip
    """
    x: float
    y: float
    width: float
    height: float
    primary: bool = False

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    def contains(self, point: Point) -> bool:
        """Half-open containment, matching how displays tile the desktop."""
        return (self.min_x <= point.x < self.max_x and
                self.min_y <= point.y < self.max_y)

    def clamp(self, point: Point) -> Point:
        """
        Clamp a point into this region.

        The upper bound is one unit inside the far edge so a clamped point
        never lands on the boundary shared with a neighbouring display.
        """
        x = max(self.min_x, min(point.x, self.max_x - 1))
        y = max(self.min_y, min(point.y, self.max_y - 1))
        return Point(x, y)


def primary_region(screens: List[ScreenRegion]) -> Optional[ScreenRegion]:
    """Return the primary region, or the first one if none is flagged."""
    if not screens:
        return None
    for screen in screens:
        if screen.primary:
            return screen
    return screens[0]


def region_containing(point: Point, screens: List[ScreenRegion]) -> Optional[ScreenRegion]:
    """
    Find the region under a point.

    Falls back to the primary region when the point sits in a gap
    between displays (or off every display).
    """
    for screen in screens:
        if screen.contains(point):
            return screen
    return primary_region(screens)


def placement_to_device(point: Point, primary: ScreenRegion) -> Point:
    """Convert a bottom-left-origin point to top-left-origin."""
    return Point(point.x, primary.max_y - 1 - point.y)


def device_to_placement(point: Point, primary: ScreenRegion) -> Point:
    """Convert a top-left-origin point to bottom-left-origin."""
    # The flip is its own inverse
    return Point(point.x, primary.max_y - 1 - point.y)
