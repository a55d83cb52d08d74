"""
Polygon utilities for converting masks to export-ready contours.

Contours are traced with a left-hand boundary walk over the 4-neighbourhood,
simplified with Douglas-Peucker and scaled from mask to image coordinates.
"""

import logging
from typing import Optional

import numpy as np

from maskcore.config import DEFAULT_SIMPLIFY_EPSILON, EXPORT_SIMPLIFY_EPSILON
from maskcore.mask_store import MaskStore

logger = logging.getLogger(__name__)

Polygon = list[tuple[float, float]]

# Headings: 0 right, 1 down, 2 left, 3 up (clockwise on screen)
_DX = (1, 0, -1, 0)
_DY = (0, 1, 0, -1)


def boundary_pixels(mask: np.ndarray) -> np.ndarray:
    """
    Foreground pixels touching background or the image edge (4-connected).

    Args:
        mask: Binary mask (H, W)

    Returns:
        Boolean (H, W) array
    """
    fg = mask > 0
    padded = np.pad(fg, 1, mode="constant", constant_values=False)
    interior = (
        padded[:-2, 1:-1] & padded[2:, 1:-1] & padded[1:-1, :-2] & padded[1:-1, 2:]
    )
    return fg & ~interior


def extract_contours(
    mask: np.ndarray,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> list[np.ndarray]:
    """
    Extract boundary contours from a binary mask.

    Args:
        mask: Binary mask (H, W), or a flat row-major buffer with width/height
        width: Mask width (required for flat buffers)
        height: Mask height (required for flat buffers)

    Returns:
        List of contours, each an (N, 2) int array of (x, y) points, N >= 3
    """
    mask = np.asarray(mask)
    if mask.ndim == 1:
        if width is None or height is None:
            raise ValueError("width and height are required for a flat mask")
        mask = mask.reshape(height, width)
    elif mask.ndim != 2:
        raise ValueError(f"Mask must be 2D, got shape {mask.shape}")

    height, width = mask.shape
    if mask.size == 0:
        return []

    fg = (mask > 0).astype(np.uint8).tobytes()
    visited = bytearray(width * height)
    max_iterations = 4 * width * height

    contours = []
    for y, x in np.argwhere(boundary_pixels(mask)):
        x, y = int(x), int(y)
        if visited[y * width + x]:
            continue
        contour = _trace_contour(fg, visited, x, y, width, height, max_iterations)
        if len(contour) >= 3:
            contours.append(np.array(contour, dtype=np.int32))

    return contours


def _trace_contour(
    fg: bytes,
    visited: bytearray,
    start_x: int,
    start_y: int,
    width: int,
    height: int,
    max_iterations: int,
) -> list[tuple[int, int]]:
    """Walk the boundary from a start pixel, turning left first."""
    contour = []
    x, y = start_x, start_y
    direction = 0

    for _ in range(max_iterations):
        visited[y * width + x] = 1
        contour.append((x, y))

        for i in range(4):
            new_dir = (direction + 3 + i) % 4
            nx = x + _DX[new_dir]
            ny = y + _DY[new_dir]
            if 0 <= nx < width and 0 <= ny < height and fg[ny * width + nx]:
                x, y, direction = nx, ny, new_dir
                break
        else:
            # Isolated pixel
            break

        if x == start_x and y == start_y and len(contour) > 2:
            break

    return contour


def _segment_distances(points: np.ndarray, start: np.ndarray, end: np.ndarray) -> np.ndarray:
    """Distance from each point to the segment start-end."""
    d = end - start
    length_sq = float(d @ d)
    if length_sq == 0:
        return np.linalg.norm(points - start, axis=1)

    t = np.clip(((points - start) @ d) / length_sq, 0.0, 1.0)
    projection = start + t[:, None] * d
    return np.linalg.norm(points - projection, axis=1)


def simplify_contour(contour: np.ndarray, epsilon: float = DEFAULT_SIMPLIFY_EPSILON) -> np.ndarray:
    """
    Simplify a contour using the Douglas-Peucker algorithm.

    A segment keeps its farthest point when that point is more than
    `epsilon` from the chord, otherwise it collapses to its endpoints.

    Args:
        contour: (N, 2) array of points
        epsilon: Tolerance in the contour's units

    Returns:
        Simplified (M, 2) float array
    """
    points = np.asarray(contour, dtype=np.float64).reshape(-1, 2)
    n = len(points)
    if n <= 2:
        return points.copy()

    keep = np.zeros(n, dtype=bool)
    keep[0] = keep[-1] = True

    stack = [(0, n - 1)]
    while stack:
        start, end = stack.pop()
        if end - start < 2:
            continue

        distances = _segment_distances(points[start + 1:end], points[start], points[end])
        index = int(np.argmax(distances))
        if distances[index] > epsilon:
            split = start + 1 + index
            keep[split] = True
            stack.append((start, split))
            stack.append((split, end))

    return points[keep]


def scale_contour(contour: np.ndarray, mask_scale: float) -> np.ndarray:
    """
    Convert contour points from mask to image coordinates.

    Args:
        contour: (N, 2) points in mask space
        mask_scale: Image-to-mask scale factor

    Returns:
        (N, 2) float array in image space
    """
    if not mask_scale > 0:
        raise ValueError(f"mask_scale must be positive, got {mask_scale}")
    return np.asarray(contour, dtype=np.float64) / mask_scale


def contour_to_polygon(contour: np.ndarray) -> Polygon:
    """
    Convert a contour array to a list of (x, y) points.

    Args:
        contour: (N, 2) array

    Returns:
        List of (x, y) tuples
    """
    return [(float(p[0]), float(p[1])) for p in np.asarray(contour).reshape(-1, 2)]


def polygon_area(polygon: Polygon) -> float:
    """
    Calculate the area of a polygon using the shoelace formula.

    Args:
        polygon: List of (x, y) coordinates

    Returns:
        Area (in whatever units the coordinates are in)
    """
    n = len(polygon)
    if n < 3:
        return 0.0

    area = 0.0
    for i in range(n):
        j = (i + 1) % n
        area += polygon[i][0] * polygon[j][1]
        area -= polygon[j][0] * polygon[i][1]

    return abs(area) / 2.0


def mask_to_polygons(
    mask: np.ndarray,
    mask_scale: float = 1.0,
    epsilon: float = DEFAULT_SIMPLIFY_EPSILON,
    min_points: int = 3,
) -> list[Polygon]:
    """
    Convert a binary mask to simplified polygons.

    Args:
        mask: Binary mask (H, W) in mask space
        mask_scale: Image-to-mask scale; points are divided by it
        epsilon: Simplification tolerance in mask pixels
        min_points: Polygons with fewer points after simplification are dropped

    Returns:
        List of polygons in image coordinates
    """
    polygons = []
    for contour in extract_contours(mask):
        simplified = simplify_contour(contour, epsilon)
        if len(simplified) < min_points:
            continue
        polygons.append(contour_to_polygon(scale_contour(simplified, mask_scale)))
    return polygons


def extract_class_polygons(
    store: MaskStore,
    epsilon: float = EXPORT_SIMPLIFY_EPSILON,
    min_points: int = 3,
) -> dict[int, list[Polygon]]:
    """
    Polygons for every class present in the store's raster.

    Args:
        store: Loaded MaskStore
        epsilon: Simplification tolerance in mask pixels
        min_points: Minimum points per polygon

    Returns:
        Raster class value -> polygons in image coordinates
    """
    result = {}
    for value in store.class_values():
        polygons = mask_to_polygons(
            store.class_mask(value),
            mask_scale=store.mask_scale,
            epsilon=epsilon,
            min_points=min_points,
        )
        if polygons:
            result[value] = polygons

    logger.debug(f"Extracted polygons for {len(result)} classes")
    return result
