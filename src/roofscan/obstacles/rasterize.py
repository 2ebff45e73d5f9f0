"""Polygon rasterization by scanline point-in-polygon testing.

A pixel belongs to a polygon when its centre lies inside it under the
even-odd rule. Only pixels within the polygon's bounding box (clamped to
the raster) are tested.
"""
from typing import Sequence
import math

import numpy as np

from roofscan.obstacles.geometry import geo_to_pixel_float


def point_in_polygon(x: float, y: float, polygon: Sequence[Sequence[float]]) -> bool:
    """Even-odd test of ``(x, y)`` against an implicitly closed ``polygon``."""
    inside = False
    n = len(polygon)
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i][0], polygon[i][1]
        xj, yj = polygon[j][0], polygon[j][1]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def polygon_pixel_mask(pixel_polygon, width: int, height: int) -> np.ndarray:
    """Boolean (height, width) mask of pixel indices inside a pixel-space polygon.

    ``pixel_polygon`` holds (px, py) vertices, fractional values allowed.
    Each scanline row is tested at once: edge crossings are computed for
    the row and every pixel column is assigned the parity of the crossings
    to its right.
    """
    mask = np.zeros((height, width), dtype=bool)
    pts = np.asarray(pixel_polygon, dtype=float)
    if pts.ndim != 2 or pts.shape[0] < 3 or width <= 0 or height <= 0:
        return mask

    min_x = max(0, int(math.ceil(pts[:, 0].min())))
    max_x = min(width - 1, int(math.floor(pts[:, 0].max())))
    min_y = max(0, int(math.ceil(pts[:, 1].min())))
    max_y = min(height - 1, int(math.floor(pts[:, 1].max())))
    if min_x > max_x or min_y > max_y:
        return mask

    xi, yi = pts[:, 0], pts[:, 1]
    xj, yj = np.roll(xi, 1), np.roll(yi, 1)
    cols = np.arange(min_x, max_x + 1, dtype=float)
    for y in range(min_y, max_y + 1):
        spans = (yi > y) != (yj > y)
        if not spans.any():
            continue
        x_cross = (xj[spans] - xi[spans]) * (y - yi[spans]) / (yj[spans] - yi[spans]) + xi[spans]
        # a column is inside when an odd number of crossings lie strictly to its right
        crossings = (cols[:, None] < x_cross[None, :]).sum(axis=1)
        mask[y, min_x:max_x + 1] = (crossings % 2) == 1
    return mask


def rasterize_polygon(coordinates, transform, width: int, height: int) -> np.ndarray:
    """Rasterize a geographic polygon of (lon, lat) vertices onto a raster grid.

    Returns a boolean (height, width) `PixelMask`. A polygon entirely outside
    the raster yields an all-false mask.
    """
    coords = np.asarray(coordinates, dtype=float)
    if coords.ndim != 2 or coords.shape[0] < 3:
        raise ValueError('polygon needs at least 3 (lon, lat) vertices')
    cols, rows = geo_to_pixel_float(transform, coords[:, 0], coords[:, 1])
    return polygon_pixel_mask(np.column_stack([cols, rows]), width, height)
