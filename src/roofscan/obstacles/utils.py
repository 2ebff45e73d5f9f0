"""
utils.py

Small helpers shared by the raster and pipeline modules.

The public helpers:
- `log_stage_failure(stage, exc, **ctx)` : logs a soft stage failure robustly
- `with_api_key(url, api_key)` : attaches the imagery credential to a URL
- `vertex_centroid(coords)` : mean of a polygon's vertices

"""

from typing import Any, Sequence, Tuple
import sys
import logging
from urllib.parse import urlsplit, parse_qs

import numpy as np

logger = logging.getLogger(__name__)


def log_stage_failure(stage: str, exc: Exception, **ctx: Any) -> None:
	"""Log a failed optional stage at WARNING level.

	Never raises: if logging itself fails a compact message is written to
	`sys.stderr` instead.
	"""
	try:
		if ctx:
			ctx_s = ' | '.join(f"{k}={v!r}" for k, v in ctx.items())
			logger.warning('%s failed: %s | %s', stage, exc, ctx_s)
		else:
			logger.warning('%s failed: %s', stage, exc)
	except Exception:
		try:
			sys.stderr.write(f'LOGGING FAILURE: {stage} {exc}\n')
		except Exception:
			pass


def with_api_key(url: str, api_key: str) -> str:
	"""Return ``url`` with ``key=<api_key>`` appended unless it already has one."""
	if not api_key:
		return url
	query = urlsplit(url).query
	if 'key' in parse_qs(query):
		return url
	separator = '&' if query else '?'
	return f'{url}{separator}key={api_key}'


def vertex_centroid(coords: Sequence[Sequence[float]]) -> Tuple[float, float]:
	"""Mean of the vertices of ``coords`` as ``(x, y)``."""
	arr = np.asarray(coords, dtype=float)
	if arr.ndim != 2 or arr.shape[0] == 0:
		raise ValueError('coords must be a non-empty (N, 2) sequence')
	return float(arr[:, 0].mean()), float(arr[:, 1].mean())
