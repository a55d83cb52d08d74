"""
Canvas - one editing session over a loaded image.

Ties the view transform, the raster store and the undo log together.
Every mutation runs under a single re-entrant lock, so the raster has one
mutator at a time.
"""

import math
import logging
import threading
from dataclasses import dataclass
from typing import Optional

import numpy as np

from maskcore import commands
from maskcore.color_parser import ColorMaskParser, ImageInput
from maskcore.config import (
    EXPORT_SIMPLIFY_EPSILON, MAX_CLASSES, STROKE_MIN_STEP, STROKE_STEP_FRACTION
)
from maskcore.errors import InvalidClassError, NoImageLoadedError
from maskcore.mask_store import MaskStore
from maskcore.masks import mask_area, mask_to_bbox
from maskcore.models import MaskClass, ParsedAnnotation, Point, Rect, UndoAction, default_classes
from maskcore.polygons import Polygon, extract_class_polygons
from maskcore.transform import CanvasTransform
from maskcore.undo import UndoLog

logger = logging.getLogger(__name__)


def _is_finite_point(p: Point) -> bool:
    return math.isfinite(p[0]) and math.isfinite(p[1])


@dataclass
class _StrokeState:
    """Pixels a stroke has touched so far and their before-state."""
    value: int
    class_id: int
    last_point: Point
    bbox: Optional[Rect] = None
    patch: bytes = b""


class Canvas:
    """
    Editing session: paint, erase, fill, clear, undo/redo, import, export.

    Points passed in are screen coordinates; brush radius is in image pixels
    and does not change with zoom.
    """

    def __init__(self, history: Optional[UndoLog] = None, parser: Optional[ColorMaskParser] = None):
        self.transform = CanvasTransform()
        self.store = MaskStore()
        self.history = history or UndoLog()
        self.parser = parser or ColorMaskParser()
        self.classes: list[MaskClass] = default_classes()
        self.current_class = 1
        self.brush_radius = 5.0
        self._stroke: Optional[_StrokeState] = None
        self._lock = threading.RLock()

    @property
    def is_drawing(self) -> bool:
        return self._stroke is not None

    # ==================== Image lifecycle ====================

    def load_image(self, width: int, height: int, view_size: Optional[tuple[float, float]] = None):
        """
        Start a session on a new image.

        Allocates a fresh raster and drops history. If allocation fails the
        previous image, raster and history stay as they were.
        """
        with self._lock:
            self.store.load_image(width, height)
            self._stroke = None
            self.history.clear()
            self.transform.mask_scale = self.store.mask_scale
            if view_size is not None:
                self.transform.fit_to_view((width, height), view_size)
            else:
                self.transform.reset()

    def unload(self):
        """Release the raster and history."""
        with self._lock:
            self._stroke = None
            self.store.unload()
            self.history.clear()

    # ==================== View ====================

    def pan(self, delta: Point):
        with self._lock:
            self.transform.apply_pan(delta)

    def pinch(self, scale_factor: float, center: Point):
        with self._lock:
            self.transform.apply_pinch(scale_factor, center)

    def rotate(self, angle_delta: float, center: Point):
        with self._lock:
            self.transform.apply_rotation(angle_delta, center)

    def fit_to_view(self, view_size: tuple[float, float]):
        with self._lock:
            self.transform.fit_to_view(
                (self.store.image_width, self.store.image_height), view_size
            )

    def reset_view(self):
        with self._lock:
            self.transform.reset()

    # ==================== Tool state ====================

    def select_class(self, class_value: int):
        """Select the raster value (1..MAX_CLASSES) used for painting and fill."""
        if not 1 <= class_value <= MAX_CLASSES:
            raise InvalidClassError(f"Class must be in [1, {MAX_CLASSES}], got {class_value}")
        self.current_class = class_value

    def set_brush_radius(self, radius: float):
        if not (math.isfinite(radius) and radius > 0):
            raise ValueError(f"Brush radius must be positive, got {radius}")
        self.brush_radius = radius

    # ==================== Strokes ====================

    def begin_stroke(self, point: Point, erase: bool = False) -> bool:
        """
        Start a paint (or erase) stroke and apply its first stamp.

        An unfinished stroke is committed first.

        Returns:
            False if the point was not usable
        """
        with self._lock:
            if not self.store.is_loaded:
                raise NoImageLoadedError("No image loaded")
            if self._stroke is not None:
                self.end_stroke()

            if not _is_finite_point(point):
                logger.debug(f"Ignoring stroke start at invalid point {point}")
                return False

            self._stroke = _StrokeState(
                value=0 if erase else self.current_class,
                class_id=self.current_class,
                last_point=point,
            )
            self._stamp_points([point])
            return True

    def continue_stroke(self, point: Point) -> bool:
        """
        Extend the active stroke to `point`.

        Stamps are interpolated in mask space every 30% of the mask-space
        brush radius (at least STROKE_MIN_STEP mask pixels), so fast
        movement still draws a continuous line at any zoom level.
        """
        with self._lock:
            stroke = self._stroke
            if stroke is None or not _is_finite_point(point):
                return False

            last_x, last_y = stroke.last_point
            start_x, start_y = self.transform.screen_to_mask(stroke.last_point)
            end_x, end_y = self.transform.screen_to_mask(point)
            distance = math.hypot(end_x - start_x, end_y - start_y)
            radius = self.transform.screen_radius_to_mask(self.brush_radius)
            step = max(STROKE_MIN_STEP, radius * STROKE_STEP_FRACTION)
            steps = max(1, math.ceil(distance / step))

            # Affine view: even spacing on screen is even spacing in the mask
            points = [
                (last_x + (point[0] - last_x) * i / steps, last_y + (point[1] - last_y) * i / steps)
                for i in range(1, steps + 1)
            ]
            self._stamp_points(points)
            stroke.last_point = point
            return True

    def end_stroke(self) -> Optional[UndoAction]:
        """Finish the active stroke and record it as one undo entry."""
        with self._lock:
            stroke = self._stroke
            self._stroke = None
            if stroke is None or stroke.bbox is None:
                return None

            action = UndoAction(class_id=stroke.class_id, bbox=stroke.bbox, previous_patch=stroke.patch)
            self.history.commit(action)
            return action

    def cancel_stroke(self):
        """Abort the active stroke and restore the pixels it changed."""
        with self._lock:
            stroke = self._stroke
            self._stroke = None
            if stroke is None or stroke.bbox is None:
                return
            self.store.write_region(stroke.bbox, stroke.patch)
            logger.debug("Stroke cancelled, previous state restored")

    def _stamp_points(self, screen_points: list[Point]):
        radius = self.transform.screen_radius_to_mask(self.brush_radius)
        mask_points = [self.transform.screen_to_mask(p) for p in screen_points]

        covering = None
        for mask_point in mask_points:
            bounds = MaskStore.stamp_bounds(mask_point, radius)
            covering = bounds if covering is None else covering.union(bounds)

        # Before-state must cover every pixel before any of them changes
        self._expand_patch(covering)
        for mask_point in mask_points:
            self.store.stamp(mask_point, radius, self._stroke.value)

    def _expand_patch(self, rect: Rect):
        """
        Grow the stroke's captured region to include `rect`.

        Pixels already covered keep their captured before-state; only newly
        covered pixels are read from the raster.
        """
        stroke = self._stroke
        if stroke.bbox is not None:
            rect = rect.union(stroke.bbox)
        new_bbox = self.store.region_rect(rect)
        new_w, new_h = int(new_bbox.width), int(new_bbox.height)
        if new_w == 0 or new_h == 0 or new_bbox == stroke.bbox:
            return

        patch = np.frombuffer(self.store.read_region(new_bbox), dtype=np.uint8)
        patch = patch.reshape(new_h, new_w).copy()

        if stroke.bbox is not None:
            old_w, old_h = int(stroke.bbox.width), int(stroke.bbox.height)
            off_x = int(stroke.bbox.x - new_bbox.x)
            off_y = int(stroke.bbox.y - new_bbox.y)
            previous = np.frombuffer(stroke.patch, dtype=np.uint8).reshape(old_h, old_w)
            patch[off_y:off_y + old_h, off_x:off_x + old_w] = previous

        stroke.bbox = new_bbox
        stroke.patch = patch.tobytes()

    # ==================== Fill / clear ====================

    def flood_fill(self, point: Point) -> Optional[UndoAction]:
        """
        Replace the 4-connected region under `point` with the current class.

        Returns:
            The recorded undo entry, or None if nothing changed
        """
        with self._lock:
            width, height = self.store.width, self.store.height
            if not _is_finite_point(point):
                logger.debug(f"Ignoring fill at invalid point {point}")
                return None

            mask_x, mask_y = self.transform.screen_to_mask(point)
            x, y = math.floor(mask_x), math.floor(mask_y)
            if not (0 <= x < width and 0 <= y < height):
                logger.debug(f"Fill point ({x}, {y}) outside mask")
                return None

            target = self.store.read_region(Rect(x, y, 1, 1))[0]
            fill_value = self.current_class
            if target == fill_value:
                return None

            region = self.store.connected_region(x, y)
            bbox = Rect.from_bounds(*mask_to_bbox(region))
            action = self.history.begin_edit(self.store, bbox, fill_value)
            self.store.fill_region(region, fill_value)
            self.history.commit(action)

            verb = "Filled" if target == 0 else f"Replaced class {target} with"
            logger.info(f"{verb} {mask_area(region)} pixels -> class {fill_value}")
            return action

    def clear_all(self) -> Optional[UndoAction]:
        """Clear every label as one undoable edit (class id 0)."""
        with self._lock:
            if self.store.is_empty():
                logger.debug("Mask already empty")
                return None

            full = Rect(0, 0, self.store.width, self.store.height)
            action = self.history.begin_edit(self.store, full, 0)
            self.store.clear()
            self.history.commit(action)
            logger.info("Cleared all annotations")
            return action

    # ==================== History ====================

    def undo(self) -> Optional[UndoAction]:
        with self._lock:
            self.end_stroke()
            return self.history.undo(self.store)

    def redo(self) -> Optional[UndoAction]:
        with self._lock:
            self.end_stroke()
            return self.history.redo(self.store)

    # ==================== Import / export ====================

    def import_annotation(self, image: ImageInput) -> ParsedAnnotation:
        """
        Replace the raster with a parsed colour annotation.

        This is a load boundary: history is dropped.
        """
        if not self.store.is_loaded:
            raise NoImageLoadedError("No image loaded")
        parsed = self.parser.parse(image)
        with self._lock:
            self._stroke = None
            self.store.populate(parsed)
            self.history.clear()
            if parsed.classes:
                self.classes = list(parsed.classes)
        return parsed

    def restore_mask(self, data: bytes):
        """Bulk-restore the raster from saved bytes. Drops history."""
        with self._lock:
            self._stroke = None
            self.store.restore_full(data)
            self.history.clear()

    def export_polygons(self, epsilon: float = EXPORT_SIMPLIFY_EPSILON) -> dict[int, list[Polygon]]:
        """Per-class polygons in image coordinates."""
        with self._lock:
            return extract_class_polygons(self.store, epsilon=epsilon)

    # ==================== Commands ====================

    def dispatch(self, command: commands.Command):
        """
        Apply a command object.

        Returns:
            Whatever the underlying operation returns
        """
        handler = _HANDLERS.get(type(command))
        if handler is None:
            raise TypeError(f"Unknown command: {command!r}")
        return handler(self, command)


_HANDLERS = {
    commands.Pan: lambda canvas, c: canvas.pan(c.delta),
    commands.Pinch: lambda canvas, c: canvas.pinch(c.scale_factor, c.center),
    commands.Rotate: lambda canvas, c: canvas.rotate(c.angle_delta, c.center),
    commands.FitToView: lambda canvas, c: canvas.fit_to_view(c.view_size),
    commands.ResetView: lambda canvas, c: canvas.reset_view(),
    commands.BeginStroke: lambda canvas, c: canvas.begin_stroke(c.point, erase=c.erase),
    commands.ContinueStroke: lambda canvas, c: canvas.continue_stroke(c.point),
    commands.EndStroke: lambda canvas, c: canvas.end_stroke(),
    commands.CancelStroke: lambda canvas, c: canvas.cancel_stroke(),
    commands.FloodFill: lambda canvas, c: canvas.flood_fill(c.point),
    commands.ClearAll: lambda canvas, c: canvas.clear_all(),
    commands.Undo: lambda canvas, c: canvas.undo(),
    commands.Redo: lambda canvas, c: canvas.redo(),
    commands.SelectClass: lambda canvas, c: canvas.select_class(c.class_value),
    commands.SetBrushRadius: lambda canvas, c: canvas.set_brush_radius(c.radius),
}
