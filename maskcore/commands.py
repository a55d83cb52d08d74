"""
Edit and navigation commands dispatched into a Canvas.

Input layers translate their gestures into these values instead of wiring
callbacks into the engine.
"""

from dataclasses import dataclass
from typing import Union

from maskcore.models import Point


@dataclass(frozen=True)
class Pan:
    delta: Point


@dataclass(frozen=True)
class Pinch:
    scale_factor: float
    center: Point


@dataclass(frozen=True)
class Rotate:
    angle_delta: float
    center: Point


@dataclass(frozen=True)
class FitToView:
    view_size: tuple[float, float]


@dataclass(frozen=True)
class ResetView:
    pass


@dataclass(frozen=True)
class BeginStroke:
    point: Point
    erase: bool = False


@dataclass(frozen=True)
class ContinueStroke:
    point: Point


@dataclass(frozen=True)
class EndStroke:
    pass


@dataclass(frozen=True)
class CancelStroke:
    pass


@dataclass(frozen=True)
class FloodFill:
    point: Point


@dataclass(frozen=True)
class ClearAll:
    pass


@dataclass(frozen=True)
class Undo:
    pass


@dataclass(frozen=True)
class Redo:
    pass


@dataclass(frozen=True)
class SelectClass:
    class_value: int  # raster value, 1..MAX_CLASSES


@dataclass(frozen=True)
class SetBrushRadius:
    radius: float  # image pixels


Command = Union[
    Pan, Pinch, Rotate, FitToView, ResetView,
    BeginStroke, ContinueStroke, EndStroke, CancelStroke,
    FloodFill, ClearAll, Undo, Redo, SelectClass, SetBrushRadius,
]
