"""End-to-end roof constraint detection.

Sequence for one request:

1. DSM raster -> obstacle detection (fatal on fetch/decode failure)
2. optional setback buffers around the obstacles
3. flux raster -> shadow detection, deduplicated against the obstacles
4. true-colour image -> label refinement by the classifier

Optional stages degrade into ``analysis_notes`` instead of raising.
"""
from typing import Optional
import logging
import os

from roofscan.obstacles.classify import NullClassifier, VisionServiceClassifier, refine_labels, render_png
from roofscan.obstacles.config import API_KEY_ENV, VISION_KEY_ENV, VISION_URL_ENV, resolve_settings
from roofscan.obstacles.detection import detect_obstacles, detect_shadows
from roofscan.obstacles.errors import ConfigurationError, DecodeError, RoofConstraintError
from roofscan.obstacles.models import ConstraintSource, DetectionRequest, DetectionResult
from roofscan.obstacles.raster import fetch_bytes, fetch_raster, read_georeference
from roofscan.obstacles.setbacks import generate_setbacks
from roofscan.obstacles.utils import log_stage_failure, with_api_key

logger = logging.getLogger(__name__)


def resolve_api_key(api_key: Optional[str] = None) -> str:
    """Explicit key, else the ``GOOGLE_SOLAR_API_KEY`` environment variable."""
    key = api_key or os.environ.get(API_KEY_ENV)
    if not key:
        raise ConfigurationError(f'{API_KEY_ENV} not configured')
    return key


def default_classifier(session=None):
    """`VisionServiceClassifier` when ``ROOFSCAN_VISION_URL`` is set, else None."""
    url = os.environ.get(VISION_URL_ENV)
    if not url:
        return None
    return VisionServiceClassifier(url, api_key=os.environ.get(VISION_KEY_ENV), session=session)


def _load_raster(url, api_key, request, fetch, session):
    return fetch_raster(with_api_key(url, api_key), timeout=fetch['timeout_s'], session=session,
                        center=(request.latitude, request.longitude), radius_m=fetch['radius_m'],
                        max_bytes=fetch['max_bytes'], max_degrees_per_pixel=fetch['max_degrees_per_pixel'])


def detect_roof_constraints(request, api_key: str = None, classifier=None, session=None,
                            settings=None) -> DetectionResult:
    """Detect obstacles and shadow zones inside the request's solar polygons.

    Parameters
    - request: `DetectionRequest` or the equivalent dict
    - api_key: imagery credential; defaults to ``GOOGLE_SOLAR_API_KEY``
    - classifier: `Classifier` for label refinement; defaults to the vision
      service configured through ``ROOFSCAN_VISION_URL``
    - session: optional `requests.Session` used for every download
    - settings: overrides merged into `config.DEFAULTS`

    Raises `ConfigurationError` without a credential, and `FetchError` /
    `DecodeError` when the DSM raster is unusable.
    """
    if isinstance(request, dict):
        request = DetectionRequest.from_dict(request)
    key = resolve_api_key(api_key)
    cfg = resolve_settings(settings)
    fetch, hull = cfg['FETCH'], cfg['HULL']
    dsm_cfg, flux_cfg = cfg['DSM_DETECTION'], cfg['FLUX_DETECTION']
    notes = []

    logger.info('Step 1: DSM obstacle detection')
    dsm = _load_raster(request.dsm_url, key, request, fetch, session)
    obstacles = detect_obstacles(
        dsm, request.solar_polygons,
        elevation_margin_m=dsm_cfg['elevation_margin_m'],
        min_area_sq_m=dsm_cfg['min_area_sq_m'],
        min_valid_samples=dsm_cfg['min_valid_samples'],
        max_vertices=hull['max_vertices'],
        tolerance=hull['tolerance_px'],
    )
    notes.append(f'DSM analysis: {len(obstacles)} obstacle(s) detected')
    logger.info('DSM: %d obstacles detected', len(obstacles))
    constraints = list(obstacles)

    setbacks = []
    if cfg['SETBACKS']['enabled']:
        setbacks = generate_setbacks(obstacles, request.solar_polygons, cfg['SETBACKS'])
        notes.append(f'Setback buffers: {len(setbacks)} setback zone(s) generated')

    if request.annual_flux_url:
        logger.info('Step 2: flux shadow detection')
        try:
            flux = _load_raster(request.annual_flux_url, key, request, fetch, session)
            shadows = detect_shadows(
                flux, request.solar_polygons, obstacles,
                shadow_ratio=flux_cfg['shadow_ratio'],
                min_area_sq_m=flux_cfg['min_area_sq_m'],
                min_valid_samples=flux_cfg['min_valid_samples'],
                max_vertices=hull['max_vertices'],
                tolerance=hull['tolerance_px'],
            )
        except RoofConstraintError as e:
            log_stage_failure('Flux analysis', e)
            notes.append('Flux analysis: skipped (data unavailable)')
        else:
            constraints.extend(shadows)
            notes.append(f'Flux analysis: {len(shadows)} shadow zone(s) detected')
            logger.info('Flux: %d shadow zones detected', len(shadows))
    else:
        notes.append('Flux analysis: skipped (no annual flux URL)')

    if classifier is None:
        classifier = default_classifier(session)
    if not request.rgb_url:
        notes.append('Classification: skipped (no RGB URL)')
    elif not constraints:
        notes.append('Classification: skipped (nothing to classify)')
    elif classifier is None or isinstance(classifier, NullClassifier):
        notes.append('Classification: skipped (no classification service configured)')
    else:
        logger.info('Step 3: classifying %d constraints', len(constraints))
        try:
            constraints = _classify(request.rgb_url, key, constraints, dsm, classifier, fetch, session)
        except Exception as e:
            log_stage_failure('Classification', e)
            notes.append('Classification: fallback to generic labels')
        else:
            notes.append('Classification: applied')

    constraints.extend(setbacks)
    logger.info('Detection complete: %d constraints (%d DSM, %d flux, %d setback)', len(constraints),
                len(obstacles), sum(1 for c in constraints if c.source is ConstraintSource.FLUX), len(setbacks))
    return DetectionResult(constraints=constraints, analysis_notes='. '.join(notes) + '.')


def _classify(rgb_url, key, constraints, dsm, classifier, fetch, session):
    payload = fetch_bytes(with_api_key(rgb_url, key), timeout=fetch['timeout_s'], session=session,
                          max_bytes=fetch['max_bytes'])
    try:
        transform, width, height = read_georeference(payload)
    except DecodeError as e:
        logger.info('RGB image not geo-referenced (%s); using DSM pixel grid', e)
        transform, width, height = dsm.transform, dsm.width, dsm.height
    image = render_png(payload)
    return refine_labels(constraints, classifier, image, transform, width, height)
