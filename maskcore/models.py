"""
Core data models for the mask engine.

Dataclasses representing regions, undo patches, classes and parsed
colour annotations.
"""

import math
import time
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from maskcore.config import MAX_CLASSES, UNDO_ENTRY_OVERHEAD_BYTES

Point = tuple[float, float]
RGB = tuple[int, int, int]

# Default class colours (index + 1 = raster value)
DEFAULT_CLASS_COLORS: list[RGB] = [
    (255, 0, 0),      # red
    (255, 128, 0),    # orange
    (255, 255, 0),    # yellow
    (0, 255, 0),      # green
    (0, 255, 255),    # cyan
    (0, 0, 255),      # blue
    (128, 0, 255),    # purple
    (255, 102, 178),  # pink
]


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in mask coordinates."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_bounds(cls, x0: float, y0: float, x1: float, y1: float) -> 'Rect':
        """Build a rect from min/max corners."""
        return cls(x0, y0, x1 - x0, y1 - y0)

    @classmethod
    def around(cls, center: Point, radius: float) -> 'Rect':
        """Square rect covering a circle of `radius` around `center`."""
        cx, cy = center
        return cls(cx - radius, cy - radius, radius * 2, radius * 2)

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.width, self.height))

    def union(self, other: 'Rect') -> 'Rect':
        """Smallest rect containing both rects."""
        return Rect.from_bounds(
            min(self.x, other.x),
            min(self.y, other.y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )

    def integer_bounds(self, max_width: int, max_height: int) -> tuple[int, int, int, int]:
        """
        Round to whole pixels and clamp to a buffer.

        Min edges are floored and max edges ceiled so the result covers every
        pixel the rect touches.

        Args:
            max_width: Buffer width
            max_height: Buffer height

        Returns:
            (x0, y0, x1, y1) with x1 >= x0 and y1 >= y0; zero area if the
            rect is outside the buffer or not finite
        """
        if not self.is_finite():
            return 0, 0, 0, 0

        x0 = min(max(0, math.floor(self.x)), max_width)
        y0 = min(max(0, math.floor(self.y)), max_height)
        x1 = max(min(max_width, math.ceil(self.max_x)), x0)
        y1 = max(min(max_height, math.ceil(self.max_y)), y0)
        return x0, y0, x1, y1


@dataclass
class UndoAction:
    """
    A single undoable edit stored as a before-state patch.

    `bbox` is pixel aligned, so `previous_patch` holds exactly
    `bbox.width * bbox.height` bytes, row-major.
    """
    class_id: int
    bbox: Rect
    previous_patch: bytes
    timestamp: float = field(default_factory=time.time)

    @property
    def patch_width(self) -> int:
        return int(self.bbox.width)

    @property
    def patch_height(self) -> int:
        return int(self.bbox.height)

    @property
    def memory_size(self) -> int:
        """Estimated memory usage in bytes."""
        return len(self.previous_patch) + UNDO_ENTRY_OVERHEAD_BYTES


@dataclass(frozen=True)
class MaskClass:
    """A segmentation class with its display colour."""
    id: int  # 0..MAX_CLASSES-1
    color: RGB
    name: Optional[str] = None

    def __post_init__(self):
        if not 0 <= self.id < MAX_CLASSES:
            raise ValueError(f"Class id must be in [0, {MAX_CLASSES - 1}], got {self.id}")
        if self.name is None:
            object.__setattr__(self, "name", f"Class {self.id}")

    @property
    def raster_value(self) -> int:
        """Value written into the raster for this class."""
        return self.id + 1

    @property
    def packed_rgb(self) -> int:
        r, g, b = self.color
        return (r << 16) | (g << 8) | b

    @property
    def color_hex(self) -> str:
        return "#{:02X}{:02X}{:02X}".format(*self.color)


def default_classes() -> list[MaskClass]:
    """The eight built-in classes with their default colours."""
    return [MaskClass(id=i, color=color) for i, color in enumerate(DEFAULT_CLASS_COLORS)]


@dataclass
class ParsedAnnotation:
    """Result of parsing a colour annotation image."""
    classes: list[MaskClass]
    masks: dict[int, np.ndarray]  # class id -> binary (H, W) uint8 at image resolution
    width: int
    height: int
