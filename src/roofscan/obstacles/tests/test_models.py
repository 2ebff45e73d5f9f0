import pytest

from roofscan.obstacles.models import (
    ConstraintSource,
    DetectedConstraint,
    DetectionRequest,
    DetectionResult,
    SolarPolygon,
)

SQUARE = [[-97.0, 30.0], [-96.999, 30.0], [-96.999, 30.001], [-97.0, 30.001]]


def test_request_accepts_camel_case():
    req = DetectionRequest.from_dict({
        'latitude': '30.0005',
        'longitude': -96.9995,
        'solarPolygons': [{'coordinates': SQUARE, 'label': 'south face'}],
        'dsmUrl': 'https://imagery.test/dsm',
        'annualFluxUrl': 'https://imagery.test/flux',
        'rgbUrl': 'https://imagery.test/rgb',
    })
    assert req.latitude == 30.0005
    assert req.solar_polygons[0].label == 'south face'
    assert req.solar_polygons[0].coordinates[1] == (-96.999, 30.0)
    assert req.annual_flux_url.endswith('flux')
    assert req.rgb_url.endswith('rgb')


def test_request_accepts_snake_case_and_bare_rings():
    req = DetectionRequest.from_dict({
        'latitude': 1, 'longitude': 2, 'solar_polygons': [SQUARE], 'dsm_url': 'https://imagery.test/dsm',
    })
    assert len(req.solar_polygons) == 1
    assert req.annual_flux_url is None and req.rgb_url is None


def test_request_validation():
    with pytest.raises(ValueError):
        DetectionRequest.from_dict({'longitude': 2, 'dsm_url': 'u'})
    with pytest.raises(ValueError):
        DetectionRequest.from_dict({'latitude': 1, 'longitude': 2})
    with pytest.raises(ValueError):
        SolarPolygon.from_dict({'coordinates': SQUARE[:2]})


def test_constraint_to_dict_and_relabel():
    c = DetectedConstraint(coordinates=((1.0, 2.0), (3.0, 4.0), (5.0, 2.0)), area_sq_m=2.4999,
                           label='Obstacle — 2 m²', source=ConstraintSource.DSM, estimated_height_m=1.3)
    d = c.to_dict()
    assert d == {
        'coordinates': [[1.0, 2.0], [3.0, 4.0], [5.0, 2.0]],
        'area_sq_m': 2.4999,
        'label': 'Obstacle — 2 m²',
        'source': 'dsm',
        'estimated_height_m': 1.3,
    }
    relabelled = c.with_label('HVAC — 2 m²')
    assert relabelled.label == 'HVAC — 2 m²'
    assert c.label == 'Obstacle — 2 m²'
    shadow = DetectedConstraint(coordinates=c.coordinates, area_sq_m=1.0, label='x', source=ConstraintSource.FLUX)
    assert 'estimated_height_m' not in shadow.to_dict()


def test_result_by_source():
    dsm = DetectedConstraint(coordinates=(), area_sq_m=1.0, label='a', source=ConstraintSource.DSM)
    flux = DetectedConstraint(coordinates=(), area_sq_m=1.0, label='b', source=ConstraintSource.FLUX)
    result = DetectionResult(constraints=[dsm, flux], analysis_notes='ok.')
    assert result.by_source('flux') == [flux]
    assert result.by_source(ConstraintSource.DSM) == [dsm]
    assert result.to_dict()['analysis_notes'] == 'ok.'


def test_solar_polygon_rejects_non_pair_vertices():
    with pytest.raises(ValueError):
        SolarPolygon.from_dict({'coordinates': [1, 2, 3]})
    with pytest.raises(ValueError):
        SolarPolygon.from_dict([[1.0], [2.0, 3.0], [4.0, 5.0]])
    with pytest.raises(ValueError):
        SolarPolygon.from_dict([['east', 1.0], [2.0, 3.0], [4.0, 5.0]])
