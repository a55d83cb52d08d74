"""
MaskStore - owns the class-indexed raster and all pixel I/O on it.

The raster is a row-major (height, width) uint8 array, one byte per pixel:
0 = unlabeled, 1..MAX_CLASSES = class. Every coordinate here is in mask
space. Callers never get a reference to the live array; reads return
copies.
"""

import math
import logging
from typing import Optional, Union

import numpy as np
import cv2

from maskcore.config import MAX_CLASSES, MAX_MASK_DIMENSION, MAX_MASK_SCALE
from maskcore.errors import (
    ImageLoadError, InvalidClassError, InvalidPatchSizeError, NoImageLoadedError
)
from maskcore.masks import resize_mask
from maskcore.models import ParsedAnnotation, Point, Rect

logger = logging.getLogger(__name__)

PatchData = Union[bytes, bytearray, memoryview]


def calculate_mask_dimensions(width: int, height: int) -> tuple[int, int, float]:
    """
    Compute raster geometry for an image.

    The raster is 2x the image, reduced so neither axis exceeds
    MAX_MASK_DIMENSION.

    Args:
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        (mask_width, mask_height, mask_scale)
    """
    if not _valid_dimension(width) or not _valid_dimension(height):
        raise ImageLoadError(f"Invalid image dimensions: {width}x{height}")

    mask_scale = min(MAX_MASK_SCALE, MAX_MASK_DIMENSION / max(width, height))
    mask_width = min(MAX_MASK_DIMENSION, max(1, math.floor(width * mask_scale + 0.5)))
    mask_height = min(MAX_MASK_DIMENSION, max(1, math.floor(height * mask_scale + 0.5)))
    return mask_width, mask_height, mask_scale


def _valid_dimension(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool) and value > 0


def _check_class_value(value: int):
    if not 0 <= value <= MAX_CLASSES:
        raise InvalidClassError(f"Class value must be in [0, {MAX_CLASSES}], got {value}")


class MaskStore:
    """
    Exclusive owner of one raster per loaded image.
    """

    def __init__(self):
        self._data: Optional[np.ndarray] = None
        self.image_width = 0
        self.image_height = 0
        self.mask_scale = MAX_MASK_SCALE

    @property
    def is_loaded(self) -> bool:
        return self._data is not None

    @property
    def width(self) -> int:
        return self._require().shape[1]

    @property
    def height(self) -> int:
        return self._require().shape[0]

    def _require(self) -> np.ndarray:
        if self._data is None:
            raise NoImageLoadedError("No image loaded")
        return self._data

    def _bounds(self, bbox: Rect) -> tuple[int, int, int, int]:
        data = self._require()
        return bbox.integer_bounds(data.shape[1], data.shape[0])

    # ==================== Lifecycle ====================

    def load_image(self, width: int, height: int) -> tuple[int, int]:
        """
        Allocate a zero-filled raster for an image, replacing any prior one.

        The new buffer is created before the old one is dropped, so a failed
        allocation leaves the previous raster intact.

        Args:
            width: Image width in pixels
            height: Image height in pixels

        Returns:
            (mask_width, mask_height)
        """
        mask_width, mask_height, mask_scale = calculate_mask_dimensions(width, height)

        try:
            data = np.zeros((mask_height, mask_width), dtype=np.uint8)
        except MemoryError as e:
            raise ImageLoadError(
                f"Could not allocate {mask_width}x{mask_height} mask: {e}"
            ) from e

        self._data = data
        self.image_width = int(width)
        self.image_height = int(height)
        self.mask_scale = mask_scale

        logger.info(
            f"Allocated {mask_width}x{mask_height} mask for {width}x{height} image "
            f"(mask scale {mask_scale:.4f})"
        )
        return mask_width, mask_height

    def unload(self):
        """Release the raster."""
        self._data = None
        self.image_width = 0
        self.image_height = 0
        self.mask_scale = MAX_MASK_SCALE

    # ==================== Region I/O ====================

    def region_rect(self, bbox: Rect) -> Rect:
        """Pixel-aligned, clamped rect that read/write_region actually touch."""
        return Rect.from_bounds(*self._bounds(bbox))

    def read_region(self, bbox: Rect) -> bytes:
        """
        Read a rectangular region as raw bytes.

        Args:
            bbox: Region in mask coordinates (floored min, ceiled max, clamped)

        Returns:
            Row-major bytes of the region; empty if it has zero area
        """
        x0, y0, x1, y1 = self._bounds(bbox)
        if x1 <= x0 or y1 <= y0:
            return b""
        return self._data[y0:y1, x0:x1].tobytes()

    def write_region(self, bbox: Rect, data: PatchData):
        """
        Write raw bytes into a rectangular region.

        Uses the same rounding and clamping as read_region, so writing back
        what was read is a no-op.
        """
        x0, y0, x1, y1 = self._bounds(bbox)
        region_w, region_h = x1 - x0, y1 - y0
        expected = region_w * region_h

        if len(data) != expected:
            raise InvalidPatchSizeError(
                f"Patch has {len(data)} bytes, region {region_w}x{region_h} needs {expected}"
            )
        if expected == 0:
            return

        patch = np.frombuffer(data, dtype=np.uint8).reshape(region_h, region_w)
        if patch.max() > MAX_CLASSES:
            raise InvalidClassError(f"Patch contains class value {int(patch.max())}")
        self._data[y0:y1, x0:x1] = patch

    # ==================== Painting ====================

    @staticmethod
    def stamp_bounds(center: Point, radius: float) -> Rect:
        """Pixel-aligned rect containing every pixel a stamp can touch."""
        cx, cy = center
        r = max(radius, 0.0)
        return Rect.from_bounds(
            math.floor(cx - r), math.floor(cy - r),
            math.floor(cx + r) + 1, math.floor(cy + r) + 1,
        )

    def stamp(self, center: Point, radius: float, value: int) -> Optional[Rect]:
        """
        Write `value` to every pixel within `radius` of `center`.

        A pixel is inside when the Euclidean distance from its integer
        coordinate to `center` is <= radius. value 0 erases.

        Returns:
            The clipped rect that was touched, or None if nothing was
        """
        data = self._require()
        _check_class_value(value)

        cx, cy = center
        if not (math.isfinite(cx) and math.isfinite(cy) and math.isfinite(radius)) or radius < 0:
            return None

        x0, y0, x1, y1 = self.stamp_bounds(center, radius).integer_bounds(
            data.shape[1], data.shape[0]
        )
        if x1 <= x0 or y1 <= y0:
            return None

        ys, xs = np.ogrid[y0:y1, x0:x1]
        inside = (xs - cx) ** 2 + (ys - cy) ** 2 <= radius * radius
        data[y0:y1, x0:x1][inside] = value
        return Rect.from_bounds(x0, y0, x1, y1)

    def connected_region(self, x: int, y: int) -> np.ndarray:
        """
        4-connected region of pixels sharing the value at (x, y).

        Returns:
            Boolean (H, W) array
        """
        data = self._require()
        height, width = data.shape
        if not (0 <= x < width and 0 <= y < height):
            raise ValueError(f"Seed ({x}, {y}) outside {width}x{height} mask")

        flood_mask = np.zeros((height + 2, width + 2), dtype=np.uint8)
        flags = 4 | cv2.FLOODFILL_MASK_ONLY | (1 << 8)
        # Mask-only fill leaves the raster untouched
        cv2.floodFill(data, flood_mask, (int(x), int(y)), 0, 0, 0, flags)
        return flood_mask[1:-1, 1:-1] > 0

    def fill_region(self, region: np.ndarray, value: int):
        """Set every pixel selected by a boolean region to `value`."""
        data = self._require()
        _check_class_value(value)
        if region.shape != data.shape:
            raise ValueError(f"Region shape {region.shape} does not match mask {data.shape}")
        data[region] = value

    def clear(self):
        """Zero-fill the raster in place."""
        self._require().fill(0)

    # ==================== Bulk access ====================

    def read_full(self) -> np.ndarray:
        """Snapshot copy of the whole raster."""
        return self._require().copy()

    def to_bytes(self) -> bytes:
        """Whole raster as row-major bytes."""
        return self._require().tobytes()

    def restore_full(self, data: Union[PatchData, np.ndarray]):
        """
        Replace the whole raster content (bulk restore).

        Args:
            data: Row-major bytes or an array with the raster's size
        """
        current = self._require()
        if isinstance(data, np.ndarray):
            # Range check on the source dtype; casting would wrap 256 to 0
            in_range = (data >= 0) & (data <= MAX_CLASSES)
            if not np.all(in_range):
                raise InvalidClassError("Restore data contains values outside the class range")
            values = data.astype(np.uint8, copy=False).reshape(-1)
        else:
            values = np.frombuffer(data, dtype=np.uint8)

        if values.size != current.size:
            raise InvalidPatchSizeError(
                f"Restore data has {values.size} values, mask needs {current.size}"
            )
        if values.size and values.max() > MAX_CLASSES:
            raise InvalidClassError(f"Restore data contains class value {int(values.max())}")
        np.copyto(current, values.reshape(current.shape))

    def class_mask(self, value: int) -> np.ndarray:
        """Binary (H, W) uint8 mask of pixels holding `value`."""
        _check_class_value(value)
        return (self._require() == value).astype(np.uint8)

    def is_empty(self) -> bool:
        """True if no pixel is labeled."""
        return not np.any(self._require())

    def class_values(self) -> list[int]:
        """Non-zero class values present in the raster, ascending."""
        values = np.unique(self._require())
        return [int(v) for v in values if v != 0]

    def populate(self, parsed: ParsedAnnotation):
        """
        Replace the raster content with a parsed colour annotation.

        Each class mask is scaled from image resolution to the raster with
        nearest-neighbour sampling and written as `class.id + 1`.
        """
        current = self._require()
        result = np.zeros_like(current)
        for mask_class in parsed.classes:
            class_mask = parsed.masks.get(mask_class.id)
            if class_mask is None:
                continue
            scaled = resize_mask(class_mask, current.shape)
            result[scaled > 0] = mask_class.raster_value

        np.copyto(current, result)
        logger.info(
            f"Populated mask from {parsed.width}x{parsed.height} annotation "
            f"with {len(parsed.classes)} classes"
        )
