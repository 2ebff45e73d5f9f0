import pytest

from roofscan.obstacles import config
from roofscan.obstacles.config import resolve_settings


def test_defaults():
    s = resolve_settings()
    assert s['DSM_DETECTION']['elevation_margin_m'] == 0.5
    assert s['DSM_DETECTION']['min_area_sq_m'] == 2.0
    assert s['FLUX_DETECTION']['shadow_ratio'] == 0.7
    assert s['FLUX_DETECTION']['min_area_sq_m'] == 3.0
    assert s['HULL']['max_vertices'] == 8
    assert s['SETBACKS']['enabled'] is False


def test_overrides_do_not_mutate_module_defaults():
    s = resolve_settings({'DSM_DETECTION': {'min_area_sq_m': 1.0}})
    assert s['DSM_DETECTION']['min_area_sq_m'] == 1.0
    assert config.DSM_DETECTION['min_area_sq_m'] == 2.0
    s['CLASSIFICATION']['categories'].append('Solar panel')
    assert 'Solar panel' not in config.CLASSIFICATION['categories']


def test_unknown_keys_rejected():
    with pytest.raises(KeyError):
        resolve_settings({'DSM': {}})
    with pytest.raises(KeyError):
        resolve_settings({'HULL': {'max_vertex': 6}})
