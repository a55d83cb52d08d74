"""
Mask utilities - bounding boxes, areas and resizing of 2-D label arrays.
"""

import numpy as np
import cv2


def mask_to_bbox(mask: np.ndarray) -> list[float]:
    """
    Get bounding box from binary mask.

    Args:
        mask: Binary mask of shape (H, W)

    Returns:
        Bounding box [x1, y1, x2, y2] in pixel coordinates (x2/y2 exclusive)
    """
    rows = np.any(mask, axis=1)
    cols = np.any(mask, axis=0)

    if not rows.any():
        return [0, 0, 0, 0]

    y1, y2 = np.where(rows)[0][[0, -1]]
    x1, x2 = np.where(cols)[0][[0, -1]]

    return [float(x1), float(y1), float(x2 + 1), float(y2 + 1)]


def mask_area(mask: np.ndarray) -> int:
    """Get the area (number of pixels) of a mask."""
    return int(np.sum(mask > 0))


def resize_mask(mask: np.ndarray, target_size: tuple[int, int]) -> np.ndarray:
    """
    Resize a label mask with nearest-neighbour sampling.

    Label values are preserved exactly, so this works for binary masks and
    class-indexed rasters alike.

    Args:
        mask: Mask of shape (H, W)
        target_size: Target (height, width)

    Returns:
        Resized uint8 mask
    """
    target_h, target_w = target_size
    if mask.shape == (target_h, target_w):
        return mask.astype(np.uint8, copy=True)

    resized = cv2.resize(
        mask.astype(np.uint8),
        (target_w, target_h),
        interpolation=cv2.INTER_NEAREST
    )
    return resized.astype(np.uint8)
