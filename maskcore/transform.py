"""
View transform - pan, zoom and rotation of the canvas.

Converts between screen, image and mask coordinates. The forward matrix is
T * R * S (translate, rotate, scale), so screen = M @ image.
"""

import math
import logging

import numpy as np

from maskcore.config import MAX_MASK_SCALE, MIN_SCALE, MAX_SCALE
from maskcore.models import Point

logger = logging.getLogger(__name__)

_IDENTITY = np.eye(3, dtype=np.float64)


def _is_finite_point(p: Point) -> bool:
    return math.isfinite(p[0]) and math.isfinite(p[1])


def _apply(matrix: np.ndarray, point: Point) -> Point:
    x, y = point
    tx = matrix[0, 0] * x + matrix[0, 1] * y + matrix[0, 2]
    ty = matrix[1, 0] * x + matrix[1, 1] * y + matrix[1, 2]
    return float(tx), float(ty)


class CanvasTransform:
    """
    Mutable view state with forward/inverse coordinate mappings.

    Every mutating method rejects non-finite input and leaves the state
    untouched instead of raising.
    """

    def __init__(self, mask_scale: float = MAX_MASK_SCALE):
        self.translation: Point = (0.0, 0.0)
        self.scale: float = 1.0
        self.rotation: float = 0.0
        self.mask_scale: float = mask_scale

    def __repr__(self) -> str:
        return (
            f"CanvasTransform(translation={self.translation}, scale={self.scale:.4f}, "
            f"rotation={self.rotation:.4f}, mask_scale={self.mask_scale})"
        )

    # ==================== Matrices ====================

    @property
    def matrix(self) -> np.ndarray:
        """Forward 3x3 affine matrix (image -> screen)."""
        tx, ty = self.translation
        c, s = math.cos(self.rotation), math.sin(self.rotation)
        translate = np.array([[1.0, 0.0, tx], [0.0, 1.0, ty], [0.0, 0.0, 1.0]])
        rotate = np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])
        scale = np.diag([self.scale, self.scale, 1.0])
        return translate @ rotate @ scale

    @property
    def inverse_matrix(self) -> np.ndarray:
        """
        Inverse affine matrix (screen -> image).

        Falls back to identity when the forward matrix is degenerate.
        """
        forward = self.matrix
        try:
            inverted = np.linalg.inv(forward)
        except np.linalg.LinAlgError:
            inverted = None

        if inverted is None or not np.all(np.isfinite(inverted)):
            logger.debug("Degenerate view matrix, using identity")
            return _IDENTITY.copy()
        return inverted

    # ==================== Conversions ====================

    def screen_to_image(self, screen_point: Point) -> Point:
        return _apply(self.inverse_matrix, screen_point)

    def image_to_screen(self, image_point: Point) -> Point:
        return _apply(self.matrix, image_point)

    def screen_to_mask(self, screen_point: Point) -> Point:
        """Screen point to mask coordinates; (0, 0) if the result is not finite."""
        ix, iy = self.screen_to_image(screen_point)
        mask_point = (ix * self.mask_scale, iy * self.mask_scale)
        if _is_finite_point(mask_point):
            return mask_point
        return 0.0, 0.0

    def mask_to_screen(self, mask_point: Point) -> Point:
        mx, my = mask_point
        return self.image_to_screen((mx / self.mask_scale, my / self.mask_scale))

    def screen_radius_to_mask(self, radius: float) -> float:
        """
        Convert a brush radius to mask pixels.

        Brush size is fixed in mask units, so only `mask_scale` applies and
        the zoom level is ignored.
        """
        return radius * self.mask_scale

    # ==================== Gestures ====================

    def apply_pan(self, delta: Point):
        """Translate the view by a screen-space delta."""
        if not _is_finite_point(delta):
            return
        tx, ty = self.translation
        self.translation = (tx + delta[0], ty + delta[1])

    def apply_pinch(self, scale_factor: float, center: Point):
        """
        Zoom by `scale_factor` keeping `center` fixed on screen.

        Args:
            scale_factor: Relative zoom (> 0)
            center: Pivot in screen coordinates
        """
        if not (math.isfinite(scale_factor) and scale_factor > 0 and _is_finite_point(center)):
            return

        new_scale = min(max(self.scale * scale_factor, MIN_SCALE), MAX_SCALE)
        ratio = new_scale / self.scale

        cx, cy = center
        tx, ty = self.translation
        new_tx = cx - (cx - tx) * ratio
        new_ty = cy - (cy - ty) * ratio

        if math.isfinite(new_tx) and math.isfinite(new_ty):
            self.translation = (new_tx, new_ty)
            self.scale = new_scale

    def apply_rotation(self, angle_delta: float, center: Point):
        """Rotate the view by `angle_delta` radians around a screen point (no snapping)."""
        if not (math.isfinite(angle_delta) and _is_finite_point(center)):
            return

        cos_a = math.cos(angle_delta)
        sin_a = math.sin(angle_delta)
        cx, cy = center
        dx = self.translation[0] - cx
        dy = self.translation[1] - cy

        new_tx = cx + dx * cos_a - dy * sin_a
        new_ty = cy + dx * sin_a + dy * cos_a

        if math.isfinite(new_tx) and math.isfinite(new_ty):
            self.rotation += angle_delta
            self.translation = (new_tx, new_ty)

    def reset(self):
        """Reset to the identity view."""
        self.translation = (0.0, 0.0)
        self.scale = 1.0
        self.rotation = 0.0

    def fit_to_view(self, image_size: tuple[float, float], view_size: tuple[float, float]):
        """
        Aspect-fit the image into the view, centred, with no rotation.

        Args:
            image_size: (width, height) of the image in pixels
            view_size: (width, height) of the view in screen pixels
        """
        image_w, image_h = image_size
        view_w, view_h = view_size
        sizes = (image_w, image_h, view_w, view_h)
        if not all(math.isfinite(v) and v > 0 for v in sizes):
            self.reset()
            return

        fit_scale = min(max(min(view_w / image_w, view_h / image_h), MIN_SCALE), MAX_SCALE)
        offset_x = (view_w - image_w * fit_scale) / 2
        offset_y = (view_h - image_h * fit_scale) / 2

        self.scale = fit_scale
        self.translation = (offset_x, offset_y)
        self.rotation = 0.0
