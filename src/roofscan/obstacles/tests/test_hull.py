import math

from roofscan.obstacles.hull import convex_hull, simplify_polygon, region_outline, perpendicular_distance


def test_three_points_returned_unchanged():
    pts = [(0.0, 0.0), (2.0, 0.0), (1.0, 1.0)]
    assert convex_hull(pts) == pts
    assert region_outline(pts) == pts


def test_square_grid_hull_is_corners():
    pts = [(x, y) for y in range(5) for x in range(5)]
    hull = convex_hull(pts)
    assert len(hull) == 4
    assert set(hull) == {(0, 0), (4, 0), (4, 4), (0, 4)}
    assert hull[0] == (0, 0)


def test_hull_is_counter_clockwise():
    pts = [(0, 0), (3, 0), (3, 2), (0, 2), (1, 1), (2, 1)]
    hull = convex_hull(pts)
    area2 = sum(hull[i][0] * hull[(i + 1) % len(hull)][1] - hull[(i + 1) % len(hull)][0] * hull[i][1]
                for i in range(len(hull)))
    assert area2 > 0


def test_collinear_points_give_extremes():
    pts = [(float(i), 0.0) for i in range(6)]
    hull = convex_hull(pts)
    assert sorted(hull) == [(0.0, 0.0), (5.0, 0.0)]


def test_perpendicular_distance_clamps_to_segment():
    assert perpendicular_distance((1, 1), (0, 0), (2, 0)) == 1.0
    assert perpendicular_distance((3, 0), (0, 0), (2, 0)) == 1.0
    assert perpendicular_distance((1, 1), (0, 0), (0, 0)) == math.sqrt(2)


def test_circle_outline_capped_at_eight():
    circle = [(20 * math.cos(2 * math.pi * k / 32), 20 * math.sin(2 * math.pi * k / 32)) for k in range(32)]
    outline = region_outline(circle)
    assert 3 <= len(outline) <= 8
    assert set(outline) <= set(convex_hull(circle))


def test_simplify_keeps_endpoints_and_respects_tolerance():
    line = [(float(x), 0.0) for x in range(10)] + [(10.0, 5.0)]
    out = simplify_polygon(line, tolerance=1.5)
    assert out[0] == (0.0, 0.0) and out[-1] == (10.0, 5.0)
    assert len(out) <= len(line)


def test_simplify_large_input_is_iterative():
    pts = [(float(i), math.sin(i / 50.0) * 30.0) for i in range(20000)]
    out = simplify_polygon(pts, tolerance=0.01, max_vertices=8)
    assert len(out) == 8


def test_collapsed_simplification_falls_back_to_hull():
    # points on a shallow parabola: every hull vertex is within tolerance of the closing chord
    pts = [(float(x), x * x / 100.0) for x in range(21)]
    hull = convex_hull(pts)
    assert len(hull) > 8
    assert region_outline(pts) == hull
