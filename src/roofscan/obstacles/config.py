# -*- coding: utf-8 -*-

"""
obstacles/config.py

Central place for the tunable constants of the rooftop obstacle detector.
The thresholds below were chosen empirically against aerial DSM/flux
rasters; they are kept here as named values so they can be overridden per
call instead of being re-derived.

Contents:
---------
1. DSM_DETECTION:
   - Elevation margin above the roof-plane median that marks an obstacle.
   - Minimum obstacle area (smaller regions are sensor noise).

2. FLUX_DETECTION:
   - Fraction of the mean annual irradiance below which a pixel is shaded.
   - Minimum shadow-zone area.

3. HULL:
   - Vertex cap and pixel tolerance for boundary simplification.

4. FETCH:
   - Network timeout and response-size guard for raster downloads.
   - Fallback coverage radius used when a raster arrives mis-scaled.

5. CLASSIFICATION:
   - Category list and timeout for the vision labelling service.

6. SETBACKS:
   - Optional clearance buffers around detected obstacles.

Usage:
------
    from roofscan.obstacles.config import resolve_settings

    settings = resolve_settings({'DSM_DETECTION': {'min_area_sq_m': 1.0}})

`resolve_settings` returns a deep copy, the module dictionaries are never
mutated.
"""
import copy

# Environment variables consulted by the pipeline
API_KEY_ENV = 'GOOGLE_SOLAR_API_KEY'
VISION_URL_ENV = 'ROOFSCAN_VISION_URL'
VISION_KEY_ENV = 'ROOFSCAN_VISION_KEY'

# Spherical approximation of the earth used for pixel sizes
METERS_PER_DEGREE_LAT = 111320.0

# ───────────────────────────────────────────────────────────────────────────────
# 1) DSM OBSTACLE DETECTION
# ───────────────────────────────────────────────────────────────────────────────
DSM_DETECTION = {
    'elevation_margin_m': 0.5,   # height above roof median that flags a pixel (m)
    'min_area_sq_m': 2.0,        # smaller regions are discarded as noise (m²)
    'min_valid_samples': 10,     # fewer in-polygon samples -> polygon skipped
}

# ───────────────────────────────────────────────────────────────────────────────
# 2) FLUX SHADOW DETECTION
# ───────────────────────────────────────────────────────────────────────────────
FLUX_DETECTION = {
    'shadow_ratio': 0.7,         # pixel flagged when flux < ratio * polygon mean
    'min_area_sq_m': 3.0,        # minimum shadow-zone area (m²)
    'min_valid_samples': 10,
}

# ───────────────────────────────────────────────────────────────────────────────
# 3) HULL SIMPLIFICATION
# ───────────────────────────────────────────────────────────────────────────────
HULL = {
    'max_vertices': 8,           # simplified boundary vertex cap
    'tolerance_px': 1.5,         # furthest-point tolerance (pixels)
}

# ───────────────────────────────────────────────────────────────────────────────
# 4) RASTER FETCH
# ───────────────────────────────────────────────────────────────────────────────
FETCH = {
    'timeout_s': 60.0,                 # per-request timeout (s)
    'max_bytes': 200 * 1024 * 1024,    # larger responses are rejected before decode
    'radius_m': 75.0,                  # coverage radius assumed for mis-scaled rasters (m)
    'max_degrees_per_pixel': 0.01,     # larger geographic pixel sizes are treated as mis-scaled
}

# ───────────────────────────────────────────────────────────────────────────────
# 5) CLASSIFICATION SERVICE
# ───────────────────────────────────────────────────────────────────────────────
CLASSIFICATION = {
    'timeout_s': 60.0,
    'categories': [
        'HVAC',
        'Ventilation',
        'Chimney',
        'Skylight',
        'Parapet',
        'Antenna',
        'Conduit',
        'Shadow zone',
        'Unknown',
    ],
}

# ───────────────────────────────────────────────────────────────────────────────
# 6) SETBACK BUFFERS
# ───────────────────────────────────────────────────────────────────────────────
SETBACKS = {
    'enabled': False,
    'min_obstacle_area_sq_m': 0.3,
    # (max obstacle area m², max inclusive, minimum setback m, setback per metre of height)
    'rules': [
        (4.0, False, 1.2, 0.0),
        (15.0, True, 1.5, 0.8),
        (float('inf'), True, 2.0, 1.0),
    ],
}

DEFAULTS = {
    'DSM_DETECTION': DSM_DETECTION,
    'FLUX_DETECTION': FLUX_DETECTION,
    'HULL': HULL,
    'FETCH': FETCH,
    'CLASSIFICATION': CLASSIFICATION,
    'SETBACKS': SETBACKS,
}


def resolve_settings(overrides=None):
    """Return a deep copy of ``DEFAULTS`` with ``overrides`` merged in.

    ``overrides`` maps section names to partial dictionaries. Unknown
    sections or keys raise ``KeyError`` so typos do not pass silently.
    """
    settings = copy.deepcopy(DEFAULTS)
    for section, values in (overrides or {}).items():
        if section not in settings:
            raise KeyError(f"Unknown settings section '{section}'")
        for key, value in values.items():
            if key not in settings[section]:
                raise KeyError(f"Unknown setting '{section}.{key}'")
            settings[section][key] = value
    return settings
