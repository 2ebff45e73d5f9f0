"""
geometry.py

Conversions between raster pixel indices and geographic (lon, lat)
coordinates using affine transforms, plus pixel sizes in metres.

Pixel ``(px, py)`` is column ``px``, row ``py``; its position on the
ground is the pixel centre, ``transform * (px + 0.5, py + 0.5)``.
North-up rasters have a negative ``e`` coefficient, so latitude decreases
as ``py`` grows while longitude increases with ``px``.

Public functions:
- `make_geotransform(origin_lon, origin_lat, pixel_width, pixel_height)` -> Affine
- `pixel_to_geo(transform, px, py)` -> (lons, lats)
- `geo_to_pixel(transform, lon, lat)` -> (pxs, pys), rounded half away from zero
- `geo_to_pixel_float(transform, lon, lat)` -> unrounded (pxs, pys)
- `meters_per_pixel(transform, latitude)` -> (width_m, height_m)

"""
from typing import Tuple
import math

import numpy as np
from affine import Affine

from roofscan.obstacles.config import METERS_PER_DEGREE_LAT


def make_geotransform(origin_lon, origin_lat, pixel_width, pixel_height) -> Affine:
    """Build a north-up transform from the upper-left corner and pixel size.

    ``pixel_width`` and ``pixel_height`` are positive sizes in degrees; the
    vertical size is stored negated.
    """
    if pixel_width == 0 or pixel_height == 0:
        raise ValueError('pixel size components must be non-zero')
    return Affine(float(pixel_width), 0.0, float(origin_lon),
                  0.0, -abs(float(pixel_height)), float(origin_lat))


def check_transform(transform) -> None:
    """Raise ``ValueError`` when ``transform`` cannot be inverted."""
    if transform.a == 0 and transform.b == 0:
        raise ValueError('horizontal pixel size must be non-zero')
    if transform.d == 0 and transform.e == 0:
        raise ValueError('vertical pixel size must be non-zero')
    if transform.determinant == 0:
        raise ValueError('transform is degenerate')


def round_half_away(values):
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    v = np.asarray(values, dtype=float)
    return (np.sign(v) * np.floor(np.abs(v) + 0.5)).astype(int)


def pixel_to_geo(transform, px, py) -> Tuple[np.ndarray, np.ndarray]:
    """Convert pixel indices to the geographic coordinates of pixel centres.

    Parameters:
    - transform: `affine.Affine` mapping (col, row) corners to (lon, lat)
    - px, py: scalars or array-like of the same shape (column, row)

    Returns: (lons, lats) with the shape of the input; floats for scalars.
    """
    cols = np.asarray(px, dtype=float) + 0.5
    rows = np.asarray(py, dtype=float) + 0.5
    lons = transform.a * cols + transform.b * rows + transform.c
    lats = transform.d * cols + transform.e * rows + transform.f
    if lons.shape == ():
        return float(lons), float(lats)
    return lons, lats


def geo_to_pixel_float(transform, lon, lat) -> Tuple[np.ndarray, np.ndarray]:
    """Inverse of `pixel_to_geo` without rounding."""
    check_transform(transform)
    inv = ~transform
    x = np.asarray(lon, dtype=float)
    y = np.asarray(lat, dtype=float)
    cols = inv.a * x + inv.b * y + inv.c - 0.5
    rows = inv.d * x + inv.e * y + inv.f - 0.5
    if cols.shape == ():
        return float(cols), float(rows)
    return cols, rows


def geo_to_pixel(transform, lon, lat) -> Tuple[np.ndarray, np.ndarray]:
    """Convert geographic coordinates to integer pixel indices (px, py).

    Rounds half away from zero, so a point exactly between two pixel
    centres goes to the pixel further from the origin.
    """
    cols, rows = geo_to_pixel_float(transform, lon, lat)
    pxs = round_half_away(cols)
    pys = round_half_away(rows)
    if pxs.shape == ():
        return int(pxs), int(pys)
    return pxs, pys


def meters_per_pixel(transform, latitude) -> Tuple[float, float]:
    """Ground size of one pixel in metres at ``latitude``.

    Uses 111,320 m per degree of latitude and scales the longitude degree
    by ``cos(latitude)``.
    """
    deg_w = math.hypot(transform.a, transform.d)
    deg_h = math.hypot(transform.b, transform.e)
    width_m = deg_w * METERS_PER_DEGREE_LAT * math.cos(math.radians(latitude))
    height_m = deg_h * METERS_PER_DEGREE_LAT
    return float(width_m), float(height_m)


def center_latitude(transform, width, height) -> float:
    """Latitude at the geometric centre of a ``width`` x ``height`` raster."""
    _, lat = transform * (width / 2.0, height / 2.0)
    return float(lat)


def pixel_area_sq_m(transform, width, height) -> float:
    """Area of one pixel in m² evaluated at the raster's centre latitude."""
    w_m, h_m = meters_per_pixel(transform, center_latitude(transform, width, height))
    return w_m * h_m
