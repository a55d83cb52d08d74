"""
Colour annotation import - quantise a hand-drawn colour image into
per-class binary masks.

- White and near-white pixels are background
- Each distinct remaining colour becomes a class, ordered by packed RGB value
- Anti-aliased pixels snap to the nearest class colour within a threshold
"""

import logging
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from maskcore.config import COLOR_SNAP_THRESHOLD, MAX_CLASSES, NEAR_WHITE_THRESHOLD
from maskcore.errors import ImageLoadError
from maskcore.models import MaskClass, ParsedAnnotation

logger = logging.getLogger(__name__)

ImageInput = Union[Image.Image, np.ndarray]


def pack_rgb(r: int, g: int, b: int) -> int:
    """Pack an RGB triple into a 24-bit integer (0xRRGGBB)."""
    return (int(r) << 16) | (int(g) << 8) | int(b)


def unpack_rgb(key: int) -> tuple[int, int, int]:
    key = int(key)
    return (key >> 16) & 0xFF, (key >> 8) & 0xFF, key & 0xFF


def to_rgb_array(image: ImageInput) -> np.ndarray:
    """
    Convert an image to an (H, W, 3) uint8 array.

    Alpha is composited over white, so transparent pixels become background.
    """
    if isinstance(image, np.ndarray):
        if image.ndim not in (2, 3):
            raise ValueError(f"Image must be 2D or 3D, got shape {image.shape}")
        image = Image.fromarray(image.astype(np.uint8))

    rgba = image.convert("RGBA")
    background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
    flattened = Image.alpha_composite(background, rgba).convert("RGB")
    return np.asarray(flattened, dtype=np.uint8)


class ColorMaskParser:
    """
    Parses colour annotation images into class-separated binary masks.
    """

    background_color = 0xFFFFFF

    def __init__(
        self,
        snap_threshold: int = COLOR_SNAP_THRESHOLD,
        near_white_threshold: int = NEAR_WHITE_THRESHOLD,
        max_classes: int = MAX_CLASSES,
    ):
        self.snap_threshold = snap_threshold
        self.near_white_threshold = near_white_threshold
        self.max_classes = max_classes

    def parse(self, image: ImageInput) -> ParsedAnnotation:
        """
        Parse a colour annotation image.

        Args:
            image: PIL image or (H, W), (H, W, 3) or (H, W, 4) uint8 array

        Returns:
            ParsedAnnotation with binary masks at image resolution
        """
        rgb = to_rgb_array(image)
        height, width = rgb.shape[:2]

        pixels = rgb.reshape(-1, 3).astype(np.int32)
        keys = (pixels[:, 0] << 16) | (pixels[:, 1] << 8) | pixels[:, 2]
        near_white = np.all(pixels >= self.near_white_threshold, axis=1)

        # np.unique sorts, which gives the deterministic class order
        class_keys = np.unique(keys[~near_white])
        if len(class_keys) > self.max_classes:
            logger.warning(
                f"Annotation has {len(class_keys)} colours, keeping the first "
                f"{self.max_classes} by RGB value"
            )
            class_keys = class_keys[:self.max_classes]

        classes = [
            MaskClass(id=class_id, color=unpack_rgb(key))
            for class_id, key in enumerate(class_keys)
        ]

        labels = self._classify(pixels, keys, near_white, class_keys)

        masks = {
            mask_class.id: (labels == mask_class.id).reshape(height, width).astype(np.uint8)
            for mask_class in classes
        }

        logger.info(f"Parsed {width}x{height} annotation into {len(classes)} classes")
        return ParsedAnnotation(classes=classes, masks=masks, width=width, height=height)

    def _classify(
        self,
        pixels: np.ndarray,
        keys: np.ndarray,
        near_white: np.ndarray,
        class_keys: np.ndarray,
    ) -> np.ndarray:
        """Per-pixel class id, -1 for unlabeled."""
        labels = np.full(keys.shape, -1, dtype=np.int16)
        if class_keys.size == 0:
            return labels

        # Exact matches
        index = np.clip(np.searchsorted(class_keys, keys), 0, class_keys.size - 1)
        exact = class_keys[index] == keys
        labels[exact] = index[exact]

        # Anti-aliased pixels: nearest class colour within the threshold
        pending = ~exact & ~near_white
        if not pending.any():
            return labels

        candidates = pixels[pending]
        best_dist = np.full(candidates.shape[0], np.iinfo(np.int32).max, dtype=np.int64)
        best_class = np.full(candidates.shape[0], -1, dtype=np.int16)
        limit = self.snap_threshold * self.snap_threshold

        for class_id, key in enumerate(class_keys):
            color = np.array(unpack_rgb(key), dtype=np.int32)
            dist = np.sum((candidates - color) ** 2, axis=1, dtype=np.int64)
            better = (dist < best_dist) & (dist < limit)
            best_dist[better] = dist[better]
            best_class[better] = class_id

        labels[pending] = best_class
        return labels


def read_annotation_image(path: Union[str, Path]) -> np.ndarray:
    """Read an annotation image from disk as an (H, W, 3) array over white."""
    try:
        with Image.open(path) as img:
            return to_rgb_array(img)
    except OSError as e:
        raise ImageLoadError(f"Could not read annotation image {path}: {e}") from e


def load_color_annotation(path: Union[str, Path], parser: ColorMaskParser = None) -> ParsedAnnotation:
    """
    Read a colour annotation image from disk and parse it.

    Args:
        path: Image file path
        parser: Parser to use (default settings if not provided)

    Returns:
        ParsedAnnotation
    """
    parser = parser or ColorMaskParser()
    return parser.parse(read_annotation_image(path))
