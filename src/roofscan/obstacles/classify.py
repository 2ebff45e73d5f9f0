"""Semantic labelling of detected constraints by a vision service.

The refiner never touches geometry: it sends the true-colour image and
each DSM/flux constraint's centroid (in image pixels) to a `Classifier`
and swaps the generic label for ``"<category> — <area> m²"`` wherever the
classifier answered. `NullClassifier` keeps every generic label and lets
the pipeline run without network access.
"""
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Sequence
import base64
import json
import logging
import re
import warnings

import numpy as np
import requests
from PIL import Image
from rasterio.errors import RasterioError, NotGeoreferencedWarning
from rasterio.io import MemoryFile

from roofscan.obstacles.config import CLASSIFICATION
from roofscan.obstacles.detection import generic_label
from roofscan.obstacles.errors import ClassificationError, DecodeError
from roofscan.obstacles.geometry import geo_to_pixel
from roofscan.obstacles.models import ConstraintSource, DetectedConstraint
from roofscan.obstacles.utils import vertex_centroid

logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r'\[[\s\S]*\]')


@dataclass(frozen=True)
class ClassificationPoint:
    """One constraint as seen by the classifier; ``id`` is 1-based."""
    id: int
    px: int
    py: int
    area_sq_m: float
    source: str


class Classifier:
    """Maps an image and a list of points to one optional label per point."""

    def classify(self, image: bytes, points: Sequence[ClassificationPoint]) -> List[Optional[str]]:
        raise NotImplementedError


class NullClassifier(Classifier):
    """Leaves every label unchanged."""

    def classify(self, image, points):
        return [None] * len(points)


class VisionServiceClassifier(Classifier):
    """Client for a multimodal classification endpoint speaking JSON over HTTP.

    Request body::

        {"image": {"mime_type": "image/png", "data": "<base64>"},
         "prompt": "...", "categories": [...],
         "obstacles": [{"id": 1, "x": 120, "y": 88, "area_sq_m": 4.2, "source": "dsm"}]}

    The reply may be a JSON array of ``{"id", "label"}`` objects, an object
    holding that array under ``labels``, or an object whose ``text`` embeds
    the array (as language models tend to answer).
    """

    def __init__(self, url: str, api_key: str = None, timeout: float = None, categories=None, session=None):
        self.url = url
        self.api_key = api_key
        self.timeout = CLASSIFICATION['timeout_s'] if timeout is None else timeout
        self.categories = list(CLASSIFICATION['categories'] if categories is None else categories)
        self.session = session if session is not None else requests

    def build_prompt(self, points: Sequence[ClassificationPoint]) -> str:
        lines = [f'Obstacle {p.id}: pixel position ({p.px}, {p.py}), area {p.area_sq_m:.1f} m², source: {p.source}'
                 for p in points]
        categories = '\n'.join(f'- {c}' for c in self.categories)
        return (
            f'This is a satellite view of a commercial/industrial rooftop. I detected {len(points)} obstacles on this roof.\n'
            f'Their approximate pixel locations and areas are:\n' + '\n'.join(lines) + '\n\n'
            f'For each obstacle, classify it as one of these categories:\n{categories}\n\n'
            'Return ONLY a valid JSON array:\n[{ "id": 1, "label": "HVAC" }, ...]'
        )

    def classify(self, image, points):
        if not points:
            return []
        body = {
            'image': {'mime_type': 'image/png', 'data': base64.b64encode(image).decode('ascii')},
            'prompt': self.build_prompt(points),
            'categories': self.categories,
            'obstacles': [
                {'id': p.id, 'x': p.px, 'y': p.py, 'area_sq_m': p.area_sq_m, 'source': p.source} for p in points
            ],
        }
        headers = {'Authorization': f'Bearer {self.api_key}'} if self.api_key else {}
        try:
            response = self.session.post(self.url, json=body, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ClassificationError(f'classification request failed: {e}') from e
        entries = parse_labels(response.text)
        by_id = {}
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            label = entry.get('label') or entry.get('label_en') or entry.get('category')
            try:
                key = int(entry.get('id'))
            except (TypeError, ValueError):
                continue
            if isinstance(label, str) and label.strip():
                by_id[key] = label.strip()
        return [by_id.get(p.id) for p in points]


def parse_labels(text: str) -> list:
    """Extract the list of label entries from a service reply body."""
    try:
        reply = json.loads(text)
    except ValueError:
        reply = text
    if isinstance(reply, dict):
        if isinstance(reply.get('labels'), list):
            return reply['labels']
        reply = reply.get('text', '')
    if isinstance(reply, list):
        return reply
    if not isinstance(reply, str):
        raise ClassificationError('classification reply has no label list')
    match = _JSON_ARRAY.search(reply)
    if not match:
        raise ClassificationError('no JSON array found in classification reply')
    cleaned = re.sub(r'```(json)?\s*', '', match.group(0))
    cleaned = re.sub(r',\s*([}\]])', r'\1', cleaned)
    try:
        entries = json.loads(cleaned)
    except ValueError as e:
        raise ClassificationError(f'unparseable classification reply: {e}') from e
    if not isinstance(entries, list):
        raise ClassificationError('classification reply is not a list')
    return entries


def render_png(payload: bytes) -> bytes:
    """Render an encoded true-colour raster as an 8-bit RGB PNG."""
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', NotGeoreferencedWarning)
            with MemoryFile(payload) as memfile:
                with memfile.open() as src:
                    data = src.read()
    except RasterioError as e:
        raise DecodeError(f'not a readable image raster: {e}') from e

    bands = data[:3] if data.shape[0] >= 3 else np.repeat(data[:1], 3, axis=0)
    rgb = np.moveaxis(bands, 0, -1)
    if rgb.dtype != np.uint8:
        rgb = rgb.astype(float)
        lo, hi = np.nanmin(rgb), np.nanmax(rgb)
        span = hi - lo if hi > lo else 1.0
        rgb = np.nan_to_num((rgb - lo) / span * 255.0).clip(0, 255).astype(np.uint8)
    buffer = BytesIO()
    Image.fromarray(np.ascontiguousarray(rgb)).save(buffer, format='PNG')
    return buffer.getvalue()


def classification_points(constraints, transform, width: int, height: int) -> List[ClassificationPoint]:
    """Centroid of each constraint mapped to image pixels and clamped to the image."""
    points = []
    for i, c in enumerate(constraints):
        lon, lat = vertex_centroid(c.coordinates)
        px, py = geo_to_pixel(transform, lon, lat)
        points.append(ClassificationPoint(
            id=i + 1,
            px=min(max(int(px), 0), width - 1),
            py=min(max(int(py), 0), height - 1),
            area_sq_m=round(c.area_sq_m, 1),
            source=c.source.value,
        ))
    return points


def refine_labels(constraints: Sequence[DetectedConstraint], classifier: Classifier, image: bytes,
                  transform, width: int, height: int) -> List[DetectedConstraint]:
    """Return ``constraints`` with DSM/flux labels replaced by the classifier's categories.

    Constraints the classifier has no label for keep their generic label.
    `ClassificationError` from the classifier propagates to the caller.
    """
    targets = [i for i, c in enumerate(constraints) if c.source in (ConstraintSource.DSM, ConstraintSource.FLUX)]
    if not targets:
        return list(constraints)
    points = classification_points([constraints[i] for i in targets], transform, width, height)
    labels = classifier.classify(image, points)

    refined = list(constraints)
    applied = 0
    for position, index in enumerate(targets):
        category = labels[position] if position < len(labels) else None
        if category:
            refined[index] = refined[index].with_label(generic_label(category, refined[index].area_sq_m))
            applied += 1
    logger.info('Classification labelled %d of %d constraints', applied, len(targets))
    return refined
