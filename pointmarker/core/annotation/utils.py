"""
Pure geometry helpers for annotation logic.

These functions have no side effects and can be tested in isolation.
Coordinates are passed as sequences of objects exposing ``x`` and ``y``.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np


def as_xy_array(items: Iterable) -> np.ndarray:
    """
    Stack entity positions into an (N, 2) float array.

    Args:
        items: Objects with ``x`` and ``y`` attributes

    Returns:
        Array of shape (N, 2); (0, 2) when empty
    """
    coords = [(item.x, item.y) for item in items]
    if not coords:
        return np.zeros((0, 2), dtype=np.float64)
    return np.asarray(coords, dtype=np.float64)


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Euclidean distance between two points."""
    return float(np.hypot(x1 - x2, y1 - y2))


def find_first_within(items: Sequence, x: float, y: float, radius: float) -> int:
    """
    Find the lowest index whose position lies within ``radius`` of (x, y).

    Args:
        items: Entities with ``x``/``y``
        x: Query X coordinate
        y: Query Y coordinate
        radius: Inclusive hit radius

    Returns:
        Index of the first match, or -1
    """
    coords = as_xy_array(items)
    if len(coords) == 0:
        return -1
    dists = np.hypot(coords[:, 0] - x, coords[:, 1] - y)
    hits = np.flatnonzero(dists <= radius)
    if len(hits) == 0:
        return -1
    return int(hits[0])


def find_nearest_within(
    items: Sequence, x: float, y: float, max_dist: float
) -> Tuple[int, float]:
    """
    Find the entity closest to (x, y), ties resolved by the lowest index.

    Returns:
        (index, distance); index is -1 when nothing lies within ``max_dist``
    """
    coords = as_xy_array(items)
    if len(coords) == 0:
        return -1, float("inf")
    dists = np.hypot(coords[:, 0] - x, coords[:, 1] - y)
    best = int(np.argmin(dists))
    if dists[best] > max_dist:
        return -1, float(dists[best])
    return best, float(dists[best])


def normalize_box(
    x1: float, y1: float, x2: float, y2: float
) -> Tuple[float, float, float, float]:
    """Return (min_x, min_y, max_x, max_y) regardless of corner order."""
    return min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2)


def indices_within_box(
    items: Sequence, x1: float, y1: float, x2: float, y2: float
) -> List[int]:
    """
    Indices of entities inside the (inclusive) box spanned by two corners.
    """
    coords = as_xy_array(items)
    if len(coords) == 0:
        return []
    min_x, min_y, max_x, max_y = normalize_box(x1, y1, x2, y2)
    inside = (
        (coords[:, 0] >= min_x)
        & (coords[:, 0] <= max_x)
        & (coords[:, 1] >= min_y)
        & (coords[:, 1] <= max_y)
    )
    return [int(i) for i in np.flatnonzero(inside)]


def centroid(items: Sequence) -> Optional[Tuple[float, float]]:
    """
    Mean position of the given entities.

    Returns:
        (cx, cy), or None for an empty sequence
    """
    coords = as_xy_array(items)
    if len(coords) == 0:
        return None
    cx, cy = coords.mean(axis=0)
    return float(cx), float(cy)


def centroid_angle_order(items: Sequence) -> List[int]:
    """
    Order that sorts entities by angle around their centroid.

    Uses a stable sort so vertices sharing an angle keep their relative
    order, which keeps the result deterministic.

    Returns:
        Permutation of ``range(len(items))``
    """
    coords = as_xy_array(items)
    if len(coords) == 0:
        return []
    cx, cy = coords.mean(axis=0)
    angles = np.arctan2(coords[:, 1] - cy, coords[:, 0] - cx)
    return [int(i) for i in np.argsort(angles, kind="stable")]


def polygon_area(items: Sequence) -> float:
    """
    Absolute area of the polygon described by ``items`` (shoelace formula).

    Returns 0.0 for fewer than three vertices.
    """
    coords = as_xy_array(items)
    if len(coords) < 3:
        return 0.0
    xs, ys = coords[:, 0], coords[:, 1]
    return float(abs(np.dot(xs, np.roll(ys, -1)) - np.dot(ys, np.roll(xs, -1))) / 2.0)
