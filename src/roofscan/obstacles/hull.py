"""Convex hull and vertex-count reduction for pixel regions.

`region_outline` is the entry point used by the detectors: the convex hull
gives a simple polygon, and only when it has more than ``max_vertices``
corners is it thinned by furthest-point simplification. Simplification
always runs on the hull, never on the raw pixel cloud.
"""
from functools import cmp_to_key
from typing import List, Sequence, Tuple
import heapq
import math

from roofscan.obstacles.config import HULL

Point = Tuple[float, float]


def _cross(o: Point, a: Point, b: Point) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def convex_hull(points: Sequence[Point]) -> List[Point]:
    """Graham scan from the lowest (then left-most) point.

    Inputs of 3 points or fewer are returned unchanged. Collinear boundary
    points are dropped, so an all-collinear input yields its two extremes.
    """
    pts = [(p[0], p[1]) for p in points]
    if len(pts) <= 3:
        return pts

    pivot = min(pts, key=lambda p: (p[1], p[0]))
    rest = list(pts)
    rest.remove(pivot)

    def by_angle(a, b):
        cross = _cross(pivot, a, b)
        if cross != 0:
            return -1 if cross > 0 else 1
        da = (a[0] - pivot[0]) ** 2 + (a[1] - pivot[1]) ** 2
        db = (b[0] - pivot[0]) ** 2 + (b[1] - pivot[1]) ** 2
        return (da > db) - (da < db)

    rest.sort(key=cmp_to_key(by_angle))
    hull = [pivot]
    for p in rest:
        while len(hull) >= 2 and _cross(hull[-2], hull[-1], p) <= 0:
            hull.pop()
        hull.append(p)
    return hull


def perpendicular_distance(point: Point, start: Point, end: Point) -> float:
    """Distance from ``point`` to the segment ``start``-``end``."""
    dx = end[0] - start[0]
    dy = end[1] - start[1]
    len_sq = dx * dx + dy * dy
    if len_sq == 0:
        return math.hypot(point[0] - start[0], point[1] - start[1])
    t = ((point[0] - start[0]) * dx + (point[1] - start[1]) * dy) / len_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(point[0] - (start[0] + t * dx), point[1] - (start[1] + t * dy))


def simplify_polygon(points: Sequence[Point], tolerance: float, max_vertices: int = None) -> List[Point]:
    """Furthest-point (Ramer-Douglas-Peucker) simplification without recursion.

    The first and last points are always kept. Candidate splits sit in a
    heap keyed by deviation, so the worst-fitting point is inserted first;
    refinement stops once every remaining deviation is within
    ``tolerance`` or ``max_vertices`` points have been kept.
    """
    pts = list(points)
    n = len(pts)
    if n <= 2:
        return pts
    cap = n if max_vertices is None else max(2, int(max_vertices))

    heap = []

    def push(s, e):
        if e - s < 2:
            return
        best_i, best_d = s + 1, -1.0
        for i in range(s + 1, e):
            d = perpendicular_distance(pts[i], pts[s], pts[e])
            if d > best_d:
                best_i, best_d = i, d
        heapq.heappush(heap, (-best_d, s, e, best_i))

    keep = {0, n - 1}
    push(0, n - 1)
    while heap and len(keep) < cap:
        neg_d, s, e, idx = heapq.heappop(heap)
        if -neg_d <= tolerance:
            break
        keep.add(idx)
        push(s, idx)
        push(idx, e)
    return [pts[i] for i in sorted(keep)]


def region_outline(pixel_points, max_vertices: int = None, tolerance: float = None) -> List[Point]:
    """Compact boundary polygon, in pixel space, for a region's pixels.

    Returns the convex hull, simplified when it has more than
    ``max_vertices`` corners. If simplification collapses below 3 vertices
    the unsimplified hull is returned.
    """
    max_vertices = HULL['max_vertices'] if max_vertices is None else max_vertices
    tolerance = HULL['tolerance_px'] if tolerance is None else tolerance
    hull = convex_hull([(float(p[0]), float(p[1])) for p in pixel_points])
    if len(hull) <= max_vertices:
        return hull
    simplified = simplify_polygon(hull, tolerance, max_vertices)
    if len(simplified) < 3:
        return hull
    return simplified
