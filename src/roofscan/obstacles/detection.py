"""Threshold detectors for DSM obstacles and flux shadow zones.

Both detectors run the same pass over every solar polygon:

1. rasterize the polygon and keep the valid samples inside it
2. derive a reference level from those samples (median elevation, mean flux)
3. flag pixels beyond the threshold and label 8-connected regions
4. drop regions below the minimum area, outline the rest with a hull
5. convert the outline to lon/lat and emit a `DetectedConstraint`

The flux pass additionally drops shadow regions whose centroid lies inside
an already detected DSM obstacle.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence
import logging

import numpy as np
from shapely.geometry import Point, Polygon
from shapely.prepared import prep

from roofscan.obstacles.config import DSM_DETECTION, FLUX_DETECTION, HULL
from roofscan.obstacles.errors import InsufficientDataError
from roofscan.obstacles.geometry import pixel_to_geo, meters_per_pixel, round_half_away
from roofscan.obstacles.hull import region_outline
from roofscan.obstacles.models import ConstraintSource, DetectedConstraint
from roofscan.obstacles.rasterize import rasterize_polygon
from roofscan.obstacles.regions import label_regions, region_pixels
from roofscan.obstacles.utils import vertex_centroid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdPass:
    """Parameters of one threshold -> label -> hull -> filter pass."""
    name: str
    source: ConstraintSource
    is_valid: Callable[[np.ndarray], np.ndarray]
    reference: Callable[[np.ndarray], float]
    is_flagged: Callable[[np.ndarray, float], np.ndarray]
    min_area_sq_m: float
    min_valid_samples: int
    label_prefix: str
    measure_height: bool = False


def _valid_elevation(values):
    with np.errstate(invalid='ignore'):
        return np.isfinite(values) & (values != 0)


def _valid_flux(values):
    with np.errstate(invalid='ignore'):
        return np.isfinite(values) & (values > 0)


def obstacle_pass(elevation_margin_m=None, min_area_sq_m=None, min_valid_samples=None) -> ThresholdPass:
    """Pass flagging pixels higher than ``median + elevation_margin_m``."""
    margin = DSM_DETECTION['elevation_margin_m'] if elevation_margin_m is None else elevation_margin_m
    return ThresholdPass(
        name='DSM',
        source=ConstraintSource.DSM,
        is_valid=_valid_elevation,
        reference=lambda values: float(np.median(values)),
        is_flagged=lambda values, ref: values > ref + margin,
        min_area_sq_m=DSM_DETECTION['min_area_sq_m'] if min_area_sq_m is None else min_area_sq_m,
        min_valid_samples=DSM_DETECTION['min_valid_samples'] if min_valid_samples is None else min_valid_samples,
        label_prefix='Obstacle',
        measure_height=True,
    )


def shadow_pass(shadow_ratio=None, min_area_sq_m=None, min_valid_samples=None) -> ThresholdPass:
    """Pass flagging pixels darker than ``shadow_ratio * mean``."""
    ratio = FLUX_DETECTION['shadow_ratio'] if shadow_ratio is None else shadow_ratio
    return ThresholdPass(
        name='Flux',
        source=ConstraintSource.FLUX,
        is_valid=_valid_flux,
        reference=lambda values: float(np.mean(values)),
        is_flagged=lambda values, ref: values < ref * ratio,
        min_area_sq_m=FLUX_DETECTION['min_area_sq_m'] if min_area_sq_m is None else min_area_sq_m,
        min_valid_samples=FLUX_DETECTION['min_valid_samples'] if min_valid_samples is None else min_valid_samples,
        label_prefix='Shadow zone',
    )


def generic_label(prefix: str, area_sq_m: float) -> str:
    return f'{prefix} — {int(round_half_away(area_sq_m))} m²'


def _polygon_coordinates(polygon):
    if isinstance(polygon, dict):
        return polygon['coordinates']
    return getattr(polygon, 'coordinates', polygon)


def flag_polygon(raster, coordinates, params: ThresholdPass):
    """Flag candidate pixels inside one polygon.

    Returns ``(flagged, reference)``; raises `InsufficientDataError` when the
    polygon holds fewer than ``params.min_valid_samples`` valid samples.
    """
    mask = rasterize_polygon(coordinates, raster.transform, raster.width, raster.height)
    valid = mask & params.is_valid(raster.samples)
    count = int(valid.sum())
    if count < params.min_valid_samples:
        raise InsufficientDataError(
            f'{params.name}: polygon has only {count} valid pixels',
            valid_samples=count,
            required=params.min_valid_samples,
        )
    values = raster.samples[valid]
    reference = params.reference(values)
    flagged = np.zeros(valid.shape, dtype=bool)
    flagged[valid] = params.is_flagged(values, reference)
    logger.info('%s polygon: %d valid pixels, reference=%.3f, %d flagged',
                params.name, count, reference, int(flagged.sum()))
    return flagged, reference


def run_threshold_pass(raster, polygons: Sequence, params: ThresholdPass, suppress: Optional[Callable] = None,
                       max_vertices=None, tolerance=None) -> List[DetectedConstraint]:
    """Run ``params`` over every polygon of ``polygons`` on ``raster``.

    ``suppress`` receives each candidate's lon/lat outline and returns True
    to drop it.
    """
    max_vertices = HULL['max_vertices'] if max_vertices is None else max_vertices
    tolerance = HULL['tolerance_px'] if tolerance is None else tolerance
    pixel_w, pixel_h = meters_per_pixel(raster.transform, raster.center_latitude)
    pixel_area = pixel_w * pixel_h
    logger.info('%s pixel size: %.3fm x %.3fm = %.4f m²/pixel', params.name, pixel_w, pixel_h, pixel_area)

    flat_samples = raster.samples.ravel()
    constraints = []
    for polygon in polygons:
        try:
            flagged, reference = flag_polygon(raster, _polygon_coordinates(polygon), params)
        except InsufficientDataError as e:
            logger.warning('%s, skipping polygon', e)
            continue

        for region in label_regions(flagged):
            area = len(region) * pixel_area
            if area < params.min_area_sq_m:
                continue
            outline = region_outline(region_pixels(region, raster.width), max_vertices, tolerance)
            lons, lats = pixel_to_geo(raster.transform, [p[0] for p in outline], [p[1] for p in outline])
            coords = tuple((float(lon), float(lat)) for lon, lat in zip(lons, lats))
            if suppress is not None and suppress(coords):
                logger.info('%s region of %.1f m² suppressed', params.name, area)
                continue
            height = None
            if params.measure_height:
                height = round(float(np.nanmax(flat_samples[region])) - reference, 1)
            constraints.append(DetectedConstraint(
                coordinates=coords,
                area_sq_m=area,
                label=generic_label(params.label_prefix, area),
                source=params.source,
                pixel_count=len(region),
                estimated_height_m=height,
            ))
    return constraints


def centroid_suppressor(obstacles: Sequence[DetectedConstraint]) -> Callable:
    """Predicate that is True when an outline's vertex centroid lies strictly inside an obstacle."""
    shapes = [prep(Polygon(o.coordinates)) for o in obstacles if len(o.coordinates) >= 3]

    def suppress(coords):
        centroid = Point(vertex_centroid(coords))
        return any(shape.contains(centroid) for shape in shapes)

    return suppress


def detect_obstacles(raster, polygons, elevation_margin_m=None, min_area_sq_m=None, min_valid_samples=None,
                     max_vertices=None, tolerance=None) -> List[DetectedConstraint]:
    """Find objects protruding above the roof plane in a DSM raster."""
    params = obstacle_pass(elevation_margin_m, min_area_sq_m, min_valid_samples)
    return run_threshold_pass(raster, polygons, params, max_vertices=max_vertices, tolerance=tolerance)


def detect_shadows(raster, polygons, obstacles=(), shadow_ratio=None, min_area_sq_m=None, min_valid_samples=None,
                   max_vertices=None, tolerance=None) -> List[DetectedConstraint]:
    """Find persistently shaded areas in a flux raster.

    Shadow regions explained by one of ``obstacles`` (DSM constraints) are
    not reported.
    """
    params = shadow_pass(shadow_ratio, min_area_sq_m, min_valid_samples)
    dsm_obstacles = [o for o in obstacles if o.source is ConstraintSource.DSM]
    return run_threshold_pass(raster, polygons, params, suppress=centroid_suppressor(dsm_obstacles),
                              max_vertices=max_vertices, tolerance=tolerance)
