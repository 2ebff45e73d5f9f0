import math

import numpy as np
import requests
from rasterio.io import MemoryFile

from roofscan.obstacles.config import METERS_PER_DEGREE_LAT
from roofscan.obstacles.geometry import make_geotransform


def make_transform(width, height, center_lat=0.0, center_lon=0.0, pixel_m=1.0):
    """North-up transform whose pixels measure ``pixel_m`` metres at ``center_lat``."""
    deg_y = pixel_m / METERS_PER_DEGREE_LAT
    deg_x = pixel_m / (METERS_PER_DEGREE_LAT * math.cos(math.radians(center_lat)))
    return make_geotransform(center_lon - width / 2.0 * deg_x, center_lat + height / 2.0 * deg_y, deg_x, deg_y)


def raster_outline(transform, width, height, margin=0.25):
    """Lon/lat rectangle enclosing every pixel centre of the raster."""
    corners = [(-margin, -margin), (width + margin, -margin), (width + margin, height + margin), (-margin, height + margin)]
    return [tuple(transform * c) for c in corners]


def block_outline(transform, col0, row0, col1, row1):
    """Lon/lat rectangle around the pixel block [col0, col1) x [row0, row1)."""
    corners = [(col0, row0), (col1, row0), (col1, row1), (col0, row1)]
    return [tuple(transform * c) for c in corners]


def dsm_with_block(size=100, base=10.0, raised=12.0, block=3, center=50):
    """Flat DSM with a square raised block centred on pixel (center, center)."""
    grid = np.full((size, size), base, dtype=np.float32)
    half = block // 2
    grid[center - half:center - half + block, center - half:center - half + block] = raised
    return grid


def flux_with_block(size=100, base=800.0, shaded=400.0, block=5, center=50):
    grid = np.full((size, size), base, dtype=np.float32)
    half = block // 2
    grid[center - half:center - half + block, center - half:center - half + block] = shaded
    return grid


def encode_geotiff(samples, transform=None, crs='EPSG:4326', nodata=None):
    """Encode a 2-D array, or a (bands, H, W) stack, as GeoTIFF bytes."""
    data = np.asarray(samples)
    if data.ndim == 2:
        data = data[None, :, :]
    count, height, width = data.shape
    profile = dict(driver='GTiff', height=height, width=width, count=count, dtype=data.dtype.name)
    if crs is not None:
        profile['crs'] = crs
    if transform is not None:
        profile['transform'] = transform
    if nodata is not None:
        profile['nodata'] = nodata
    with MemoryFile() as memfile:
        with memfile.open(**profile) as dataset:
            dataset.write(data)
        memfile.seek(0)
        return memfile.read()


class FakeResponse:
    def __init__(self, content=b'', status_code=200, headers=None, text=None):
        self.content = content
        self.status_code = status_code
        self.headers = headers or {}
        self.text = text if text is not None else content.decode('utf-8', errors='ignore')

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error', response=self)


class FakeSession:
    """Serves canned responses keyed by URL without its query string.

    A value may be bytes (200 response), a `FakeResponse`, or an exception
    instance to raise.
    """

    def __init__(self, routes=None, post_response=None):
        self.routes = dict(routes or {})
        self.post_response = post_response
        self.requested = []
        self.posted = []

    def _serve(self, value):
        if isinstance(value, BaseException):
            raise value
        if isinstance(value, FakeResponse):
            return value
        return FakeResponse(content=value)

    def get(self, url, timeout=None, **kwargs):
        self.requested.append(url)
        base = url.split('?')[0]
        if base not in self.routes:
            return FakeResponse(status_code=404)
        return self._serve(self.routes[base])

    def post(self, url, json=None, headers=None, timeout=None, **kwargs):
        self.posted.append({'url': url, 'json': json, 'headers': headers})
        if self.post_response is None:
            return FakeResponse(status_code=404)
        return self._serve(self.post_response)
