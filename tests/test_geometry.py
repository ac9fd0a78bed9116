from stayawake.geometry import (
    Point,
    ScreenRegion,
    device_to_placement,
    placement_to_device,
    primary_region,
    region_containing,
)


MAIN = ScreenRegion(0, 0, 1920, 1080, primary=True)
# Second display to the right, bottom edges aligned
SIDE = ScreenRegion(1920, 0, 1280, 1024)
# Display stacked above the main one
ABOVE = ScreenRegion(0, 1080, 1920, 1080)


def test_clamp_keeps_one_unit_inside_far_edges():
    assert MAIN.clamp(Point(5000, 5000)) == Point(1919, 1079)
    assert MAIN.clamp(Point(-50, -50)) == Point(0, 0)
    assert MAIN.clamp(Point(100.5, 200.25)) == Point(100.5, 200.25)


def test_contains_is_half_open():
    assert MAIN.contains(Point(0, 0))
    assert MAIN.contains(Point(1919.5, 1079.5))
    assert not MAIN.contains(Point(1920, 500))
    assert SIDE.contains(Point(1920, 500))


def test_region_containing_picks_display_under_point():
    screens = [MAIN, SIDE]

    assert region_containing(Point(2000, 100), screens) is SIDE
    assert region_containing(Point(10, 10), screens) is MAIN


def test_region_containing_falls_back_to_primary_in_gaps():
    screens = [SIDE, MAIN]

    # Above the shorter side display
    assert region_containing(Point(2000, 1050), screens) is MAIN


def test_primary_region_defaults_to_first_when_unflagged():
    plain = ScreenRegion(0, 0, 800, 600)

    assert primary_region([SIDE, MAIN]) is MAIN
    assert primary_region([plain]) is plain
    assert primary_region([]) is None


def test_flip_uses_primary_top_edge():
    # Top row of the main display is device row 0
    assert placement_to_device(Point(0, 1079), MAIN) == Point(0, 0)
    assert placement_to_device(Point(100, 80), MAIN) == Point(100, 999)
    # A display above the primary has negative device y
    assert placement_to_device(Point(10, 2000), MAIN) == Point(10, -921)


def test_clamped_rows_stay_on_the_device_display():
    # Bottom and top rows allowed by clamp must be real device rows 1079 and 0
    bottom = placement_to_device(MAIN.clamp(Point(5, -100)), MAIN)
    top = placement_to_device(MAIN.clamp(Point(5, 5000)), MAIN)

    assert bottom == Point(5, 1079)
    assert top == Point(5, 0)


def test_flip_is_its_own_inverse():
    for point in (Point(0, 0), Point(123.0, 456.0), Point(2500.0, -40.0)):
        assert device_to_placement(placement_to_device(point, MAIN), MAIN) == point


def test_point_helpers():
    assert Point(1, 1).offset(2, -3) == Point(3, -2)
    assert Point(0, 0).distance_to(Point(3, 4)) == 5
    assert Point(1.4, 2.6).rounded() == Point(1.0, 3.0)
    assert ABOVE.center == Point(960, 1620)
