"""Raster fetching and decoding.

Downloads a geo-referenced raster (GeoTIFF) over HTTP and decodes its first
band into a `GeoRaster`: a float grid plus the affine transform mapping
pixel corners to (lon, lat).

Rasters served in a projected CRS are brought to a geographic north-up
transform by reprojecting their bounds. Rasters without a CRS whose pixel
size is implausibly large for a roof (more than ``max_degrees_per_pixel``)
are re-scaled from the request centre and coverage radius when those are
known.

No retries happen here; the caller owns retry policy.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import math
import warnings

import numpy as np
import requests
from rasterio._err import CPLE_BaseError
from rasterio.errors import CRSError, RasterioError, NotGeoreferencedWarning
from rasterio.io import MemoryFile
from rasterio.transform import from_bounds
from rasterio.warp import transform_bounds

from roofscan.obstacles.config import FETCH, METERS_PER_DEGREE_LAT
from roofscan.obstacles.errors import FetchError, DecodeError
from roofscan.obstacles.geometry import check_transform, make_geotransform, center_latitude, pixel_area_sq_m

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoRaster:
    """Single-band raster with its pixel-to-geographic transform.

    ``samples`` has shape (height, width); missing values are NaN.
    """
    samples: np.ndarray
    transform: object
    crs: Optional[str] = None

    @property
    def height(self) -> int:
        return int(self.samples.shape[0])

    @property
    def width(self) -> int:
        return int(self.samples.shape[1])

    @property
    def center_latitude(self) -> float:
        return center_latitude(self.transform, self.width, self.height)

    @property
    def pixel_area_sq_m(self) -> float:
        return pixel_area_sq_m(self.transform, self.width, self.height)


def fetch_bytes(url: str, timeout: float = None, session=None, max_bytes: int = None) -> bytes:
    """GET ``url`` and return the body.

    Raises `FetchError` on connection problems, timeouts, non-2xx status or a
    body larger than ``max_bytes``.
    """
    timeout = FETCH['timeout_s'] if timeout is None else timeout
    max_bytes = FETCH['max_bytes'] if max_bytes is None else max_bytes
    http = session if session is not None else requests
    safe_url = url.split('key=')[0]
    logger.info('Fetching raster: %s', safe_url[:80])
    try:
        response = http.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.HTTPError as e:
        status = getattr(e.response, 'status_code', None)
        raise FetchError(f'HTTP {status} fetching {safe_url}', url=safe_url, status_code=status) from e
    except requests.RequestException as e:
        raise FetchError(f'Request failed for {safe_url}: {e}', url=safe_url) from e

    declared = response.headers.get('Content-Length') if response.headers else None
    if declared is not None and declared.isdigit() and int(declared) > max_bytes:
        raise FetchError(f'Response of {declared} bytes exceeds limit of {max_bytes}', url=safe_url)
    content = response.content
    if len(content) > max_bytes:
        raise FetchError(f'Response of {len(content)} bytes exceeds limit of {max_bytes}', url=safe_url)
    return content


def _open_band(payload: bytes):
    """Read band 1, nodata, transform and CRS from an in-memory raster."""
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', NotGeoreferencedWarning)
        with MemoryFile(payload) as memfile:
            with memfile.open() as src:
                band = src.read(1).astype(np.float64)
                return band, src.nodata, src.transform, src.crs, src.bounds


def read_georeference(payload: bytes) -> Tuple[object, int, int]:
    """Return ``(transform, width, height)`` of an encoded raster without its pixels."""
    if not payload:
        raise DecodeError('raster payload is empty')
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', NotGeoreferencedWarning)
            with MemoryFile(payload) as memfile:
                with memfile.open() as src:
                    transform, crs, bounds = src.transform, src.crs, src.bounds
                    width, height = src.width, src.height
    except RasterioError as e:
        raise DecodeError(f'not a readable raster: {e}') from e
    transform = _geographic_transform(transform, crs, bounds, width, height)
    return transform, width, height


def _geographic_transform(transform, crs, bounds, width, height, center=None, radius_m=None,
                          max_degrees_per_pixel=None):
    """Normalise a dataset transform to lon/lat degrees, or raise `DecodeError`."""
    if transform.is_identity:
        raise DecodeError('raster lacks pixel-scale/tie-point georeferencing')
    if crs is not None and not crs.is_geographic:
        try:
            west, south, east, north = transform_bounds(crs, 'EPSG:4326', *bounds)
        except (RasterioError, CRSError, CPLE_BaseError, ValueError) as e:
            raise DecodeError(f'cannot reproject raster from {crs}: {e}') from e
        logger.info('Reprojected raster bounds from %s to EPSG:4326', crs.to_string())
        transform = from_bounds(west, south, east, north, width, height)
    elif crs is None and max_degrees_per_pixel is not None and abs(transform.a) > max_degrees_per_pixel:
        if center is None:
            raise DecodeError(
                f'pixel size {abs(transform.a):.6f} deg is implausible and no centre is known to rescale it'
            )
        transform = _rescale_from_center(center, radius_m, width, height)
    try:
        check_transform(transform)
    except ValueError as e:
        raise DecodeError(str(e)) from e
    return transform


def _rescale_from_center(center, radius_m, width, height):
    """Transform covering ``2 * radius_m`` metres centred on ``center`` (lat, lon)."""
    lat, lon = center
    coverage_m = 2.0 * radius_m
    m_per_deg_lon = METERS_PER_DEGREE_LAT * math.cos(math.radians(lat))
    scale_x = coverage_m / (width * m_per_deg_lon)
    scale_y = coverage_m / (height * METERS_PER_DEGREE_LAT)
    logger.warning('Raster scale unreasonably large; recomputing from radius=%.0fm around (%.5f, %.5f)',
                   radius_m, lat, lon)
    return make_geotransform(lon - (width / 2.0) * scale_x, lat + (height / 2.0) * scale_y, scale_x, scale_y)


def decode_raster(payload: bytes, center=None, radius_m=None, max_degrees_per_pixel=None) -> GeoRaster:
    """Decode the first band of a GeoTIFF payload into a `GeoRaster`.

    Parameters
    - payload: encoded raster bytes
    - center: optional (lat, lon) of the request, used to rescale rasters
      without a CRS whose pixel size is implausible
    - radius_m: coverage radius for that rescale (defaults to ``FETCH['radius_m']``)
    - max_degrees_per_pixel: plausibility limit (defaults to ``FETCH``)

    Declared nodata values become NaN.
    """
    if not payload:
        raise DecodeError('raster payload is empty')
    radius_m = FETCH['radius_m'] if radius_m is None else radius_m
    if max_degrees_per_pixel is None:
        max_degrees_per_pixel = FETCH['max_degrees_per_pixel']
    try:
        band, nodata, transform, crs, bounds = _open_band(payload)
    except RasterioError as e:
        raise DecodeError(f'not a readable raster: {e}') from e
    if band.size == 0:
        raise DecodeError('raster contains no samples')

    height, width = band.shape
    transform = _geographic_transform(transform, crs, bounds, width, height, center=center,
                                      radius_m=radius_m, max_degrees_per_pixel=max_degrees_per_pixel)
    if nodata is not None and not np.isnan(nodata):
        band[band == nodata] = np.nan

    raster = GeoRaster(samples=band, transform=transform, crs=crs.to_string() if crs is not None else None)
    w_m = math.sqrt(raster.pixel_area_sq_m)
    logger.info('Raster decoded: %dx%d, scale=[%.10f, %.10f], ~%.3f m/pixel',
                width, height, transform.a, transform.e, w_m)
    return raster


def fetch_raster(url: str, timeout: float = None, session=None, center=None, radius_m=None,
                 max_bytes: int = None, max_degrees_per_pixel=None) -> GeoRaster:
    """Fetch ``url`` and decode it; see `fetch_bytes` and `decode_raster`."""
    payload = fetch_bytes(url, timeout=timeout, session=session, max_bytes=max_bytes)
    return decode_raster(payload, center=center, radius_m=radius_m, max_degrees_per_pixel=max_degrees_per_pixel)

