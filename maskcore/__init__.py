"""
Mask engine - raster store, view transform, undo history, colour import and
polygon export
"""

from maskcore.models import Rect, UndoAction, MaskClass, ParsedAnnotation, default_classes
from maskcore.errors import (
    MaskEngineError, NoImageLoadedError, InvalidPatchSizeError, InvalidClassError, ImageLoadError
)
from maskcore.transform import CanvasTransform
from maskcore.mask_store import MaskStore, calculate_mask_dimensions
from maskcore.undo import UndoLog
from maskcore.color_parser import ColorMaskParser, load_color_annotation
from maskcore.polygons import (
    extract_contours, simplify_contour, scale_contour, mask_to_polygons, extract_class_polygons
)
from maskcore.canvas import Canvas

__version__ = "0.1.0"

__all__ = [
    "Rect", "UndoAction", "MaskClass", "ParsedAnnotation", "default_classes",
    "MaskEngineError", "NoImageLoadedError", "InvalidPatchSizeError",
    "InvalidClassError", "ImageLoadError",
    "CanvasTransform",
    "MaskStore", "calculate_mask_dimensions",
    "UndoLog",
    "ColorMaskParser", "load_color_annotation",
    "extract_contours", "simplify_contour", "scale_contour",
    "mask_to_polygons", "extract_class_polygons",
    "Canvas",
]
