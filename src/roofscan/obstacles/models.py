"""Request, constraint and result types for the obstacle detector."""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

Coordinate = Tuple[float, float]


class ConstraintSource(str, Enum):
    DSM = 'dsm'
    FLUX = 'flux'
    SETBACK = 'setback'


@dataclass(frozen=True)
class DetectedConstraint:
    """One detected obstacle, shadow zone or setback as a lon/lat polygon.

    ``area_sq_m`` is the source region's pixel count times the pixel area at
    the raster's centre latitude; it is not rounded.
    """
    coordinates: Tuple[Coordinate, ...]
    area_sq_m: float
    label: str
    source: ConstraintSource
    pixel_count: int = 0
    estimated_height_m: Optional[float] = None

    def with_label(self, label: str) -> 'DetectedConstraint':
        """Copy of this constraint carrying ``label``."""
        return replace(self, label=label)

    def to_dict(self) -> Dict[str, Any]:
        out = {
            'coordinates': [[lon, lat] for lon, lat in self.coordinates],
            'area_sq_m': self.area_sq_m,
            'label': self.label,
            'source': self.source.value,
        }
        if self.estimated_height_m is not None:
            out['estimated_height_m'] = self.estimated_height_m
        return out


@dataclass(frozen=True)
class SolarPolygon:
    coordinates: Tuple[Coordinate, ...]
    label: Optional[str] = None

    @classmethod
    def from_dict(cls, data) -> 'SolarPolygon':
        coords = data['coordinates'] if isinstance(data, dict) else data
        label = data.get('label') if isinstance(data, dict) else None
        try:
            vertices = tuple((float(c[0]), float(c[1])) for c in coords)
        except (TypeError, IndexError, ValueError) as e:
            raise ValueError(f'solar polygon vertices must be (lon, lat) pairs: {e}') from e
        if len(vertices) < 3:
            raise ValueError(f'solar polygon needs at least 3 vertices, got {len(vertices)}')
        return cls(coordinates=vertices, label=label)


def _pick(data: Dict[str, Any], *keys, default=None):
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class DetectionRequest:
    """Input of a single detection call.

    Accepts snake_case keys and the camelCase keys used by the web client.
    """
    latitude: float
    longitude: float
    solar_polygons: Tuple[SolarPolygon, ...]
    dsm_url: str
    annual_flux_url: Optional[str] = None
    rgb_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DetectionRequest':
        try:
            latitude = float(data['latitude'])
            longitude = float(data['longitude'])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f'latitude/longitude missing or invalid: {e}') from e
        dsm_url = _pick(data, 'dsm_url', 'dsmUrl')
        if not dsm_url:
            raise ValueError('dsm_url is required')
        polygons = _pick(data, 'solar_polygons', 'solarPolygons', default=[])
        return cls(
            latitude=latitude,
            longitude=longitude,
            solar_polygons=tuple(SolarPolygon.from_dict(p) for p in polygons),
            dsm_url=dsm_url,
            annual_flux_url=_pick(data, 'annual_flux_url', 'annualFluxUrl'),
            rgb_url=_pick(data, 'rgb_url', 'rgbUrl'),
        )


@dataclass
class DetectionResult:
    constraints: List[DetectedConstraint] = field(default_factory=list)
    analysis_notes: str = ''

    def by_source(self, source) -> List[DetectedConstraint]:
        source = ConstraintSource(source)
        return [c for c in self.constraints if c.source is source]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'constraints': [c.to_dict() for c in self.constraints],
            'analysis_notes': self.analysis_notes,
        }
