"""Raster-to-polygon detection of rooftop obstacles and shadow zones.

Typical use::

    from roofscan.obstacles import DetectionRequest, detect_roof_constraints

    request = DetectionRequest.from_dict(payload)
    result = detect_roof_constraints(request)
    result.to_dict()
"""
from roofscan.obstacles.errors import (
    RoofConstraintError,
    ConfigurationError,
    FetchError,
    DecodeError,
    InsufficientDataError,
    ClassificationError,
)
from roofscan.obstacles.models import (
    ConstraintSource,
    DetectedConstraint,
    DetectionRequest,
    DetectionResult,
    SolarPolygon,
)
from roofscan.obstacles.pipeline import detect_roof_constraints

__all__ = [
    'RoofConstraintError',
    'ConfigurationError',
    'FetchError',
    'DecodeError',
    'InsufficientDataError',
    'ClassificationError',
    'ConstraintSource',
    'DetectedConstraint',
    'DetectionRequest',
    'DetectionResult',
    'SolarPolygon',
    'detect_roof_constraints',
]
