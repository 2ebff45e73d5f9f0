"""8-connected region extraction by iterative flood fill.

Regions are returned as arrays of flat pixel indices (``row * width + col``).
Seeds are taken in raster order, so a fixed grid always produces the same
regions in the same order.
"""
from typing import List

import numpy as np

_NEIGHBOURS = [(-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1)]


def label_regions(flagged) -> List[np.ndarray]:
    """Return the maximal 8-connected regions of ``True`` pixels.

    Parameters
    - flagged: 2-D boolean array (height, width)

    Each flagged pixel is pushed and labelled exactly once; unflagged
    pixels are never visited beyond a neighbour check.
    """
    grid = np.asarray(flagged, dtype=bool)
    if grid.ndim != 2:
        raise ValueError('flagged must be a 2-D array')
    height, width = grid.shape
    flat = grid.ravel()
    visited = np.zeros(flat.shape, dtype=bool)
    regions = []

    for seed in np.flatnonzero(flat):
        if visited[seed]:
            continue
        visited[seed] = True
        stack = [int(seed)]
        component = []
        while stack:
            idx = stack.pop()
            component.append(idx)
            cy, cx = divmod(idx, width)
            for dy, dx in _NEIGHBOURS:
                ny = cy + dy
                nx = cx + dx
                if 0 <= nx < width and 0 <= ny < height:
                    ni = ny * width + nx
                    if flat[ni] and not visited[ni]:
                        visited[ni] = True
                        stack.append(ni)
        regions.append(np.array(sorted(component), dtype=np.int64))
    return regions


def region_pixels(region, width: int) -> np.ndarray:
    """Convert flat indices to an (N, 2) array of (px, py) pixel coordinates."""
    idx = np.asarray(region, dtype=np.int64)
    rows, cols = np.divmod(idx, width)
    return np.column_stack([cols, rows])
