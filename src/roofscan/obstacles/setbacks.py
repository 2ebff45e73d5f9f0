"""Clearance (setback) zones around detected obstacles.

Buffers are computed in a local metric frame: lon/lat are scaled about the
obstacle centroid by metres-per-degree, buffered with shapely, and scaled
back.
"""
from typing import List, Sequence
import logging
import math

from shapely import affinity
from shapely.geometry import JOIN_STYLE, MultiPoint, Polygon

from roofscan.obstacles.config import METERS_PER_DEGREE_LAT, SETBACKS
from roofscan.obstacles.detection import generic_label
from roofscan.obstacles.models import ConstraintSource, DetectedConstraint
from roofscan.obstacles.utils import vertex_centroid

logger = logging.getLogger(__name__)


def setback_distance(area_sq_m: float, height_m=None, rules=None) -> float:
    """Setback width in metres for an obstacle of ``area_sq_m`` and ``height_m``."""
    rules = SETBACKS['rules'] if rules is None else rules
    height = height_m or 0.0
    for max_area, inclusive, minimum, per_height in rules:
        if area_sq_m < max_area or (inclusive and area_sq_m == max_area):
            return max(minimum, per_height * height)
    _, _, minimum, per_height = rules[-1]
    return max(minimum, per_height * height)


def buffer_outline(coordinates, distance_m: float):
    """Buffer a lon/lat outline by ``distance_m``; returns (lon/lat polygon, metric polygon)."""
    lon0, lat0 = vertex_centroid(coordinates)
    m_per_deg_lon = METERS_PER_DEGREE_LAT * math.cos(math.radians(lat0))
    footprint = MultiPoint([tuple(c) for c in coordinates]).convex_hull
    metric = affinity.scale(footprint, xfact=m_per_deg_lon, yfact=METERS_PER_DEGREE_LAT, origin=(lon0, lat0))
    buffered = metric.buffer(distance_m, join_style=JOIN_STYLE.mitre)
    geographic = affinity.scale(buffered, xfact=1.0 / m_per_deg_lon, yfact=1.0 / METERS_PER_DEGREE_LAT,
                                origin=(lon0, lat0))
    return geographic, buffered


def generate_setbacks(obstacles: Sequence[DetectedConstraint], solar_polygons, settings=None) -> List[DetectedConstraint]:
    """Setback constraints for DSM obstacles that touch a solar polygon."""
    settings = SETBACKS if settings is None else settings
    roofs = [Polygon(getattr(p, 'coordinates', p)) for p in solar_polygons]
    eligible = [o for o in obstacles
                if o.source is ConstraintSource.DSM and o.area_sq_m >= settings['min_obstacle_area_sq_m']]
    logger.info('Generating setback buffers for %d obstacles', len(eligible))

    setbacks = []
    for obstacle in eligible:
        distance = setback_distance(obstacle.area_sq_m, obstacle.estimated_height_m, settings['rules'])
        geographic, metric = buffer_outline(obstacle.coordinates, distance)
        if not any(geographic.intersects(roof) for roof in roofs):
            continue
        ring_area = max(0.0, metric.area - obstacle.area_sq_m)
        coords = tuple((float(x), float(y)) for x, y in list(geographic.exterior.coords)[:-1])
        setbacks.append(DetectedConstraint(
            coordinates=coords,
            area_sq_m=ring_area,
            label=generic_label('Setback zone', ring_area),
            source=ConstraintSource.SETBACK,
        ))
    logger.info('Setback buffers: %d setback zones generated', len(setbacks))
    return setbacks
