import json
import os

import pytest

from roofscan.obstacles import detect_roof_constraints


@pytest.mark.online
def test_live_request():
    """Run a saved request against the real services.

    ROOFSCAN_TEST_REQUEST points at a request JSON with fresh raster URLs;
    the credential comes from GOOGLE_SOLAR_API_KEY.
    """
    path = os.environ.get('ROOFSCAN_TEST_REQUEST')
    if not path or not os.environ.get('GOOGLE_SOLAR_API_KEY'):
        pytest.skip('ROOFSCAN_TEST_REQUEST and GOOGLE_SOLAR_API_KEY required')
    with open(path, encoding='utf-8') as f:
        request = json.load(f)
    result = detect_roof_constraints(request)
    assert result.analysis_notes.startswith('DSM analysis:')
    for c in result.constraints:
        assert len(c.coordinates) >= 2
        assert c.area_sq_m > 0
