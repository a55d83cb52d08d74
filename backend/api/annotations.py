"""
Annotations API endpoints - colour annotation import and polygon export
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Optional

from maskcore.color_parser import read_annotation_image
from maskcore.config import EXPORT_SIMPLIFY_EPSILON
from maskcore.polygons import polygon_area
from backend.api.canvas import get_canvas, get_session

router = APIRouter()


class ClassResponse(BaseModel):
    id: int
    class_value: int
    name: str
    color: str


class ImportRequest(BaseModel):
    path: str


class ImportResponse(BaseModel):
    width: int
    height: int
    classes: list[ClassResponse]
    pixel_counts: dict[int, int]  # class value -> labelled pixels at image resolution


class ClassPolygons(BaseModel):
    class_value: int
    name: Optional[str] = None
    color: Optional[str] = None
    polygons: list[list[list[float]]]  # [[[x, y], ...], ...] image pixels
    areas: list[float]


class PolygonsResponse(BaseModel):
    image_width: int
    image_height: int
    mask_scale: float
    epsilon: float
    classes: list[ClassPolygons]


def class_to_response(mask_class) -> ClassResponse:
    return ClassResponse(
        id=mask_class.id,
        class_value=mask_class.raster_value,
        name=mask_class.name,
        color=mask_class.color_hex,
    )


@router.get("/classes", response_model=list[ClassResponse])
async def list_classes():
    """List the session's classes."""
    return [class_to_response(c) for c in get_session().classes]


@router.post("/import", response_model=ImportResponse)
async def import_annotation(request: ImportRequest):
    """
    Replace the current mask with a colour annotation image from disk.

    Annotations of a different size than the image are scaled to the mask
    with nearest-neighbour sampling.
    """
    canvas = get_canvas()
    image = read_annotation_image(request.path)
    parsed = canvas.import_annotation(image)
    return ImportResponse(
        width=parsed.width,
        height=parsed.height,
        classes=[class_to_response(c) for c in parsed.classes],
        pixel_counts={c.raster_value: int(parsed.masks[c.id].sum()) for c in parsed.classes},
    )


@router.get("/polygons", response_model=PolygonsResponse)
async def export_polygons(epsilon: float = EXPORT_SIMPLIFY_EPSILON):
    """Per-class polygons in image coordinates."""
    if not epsilon >= 0:
        raise HTTPException(status_code=422, detail="epsilon must be >= 0")

    canvas = get_canvas()
    by_value = {c.raster_value: c for c in canvas.classes}
    polygons = canvas.export_polygons(epsilon=epsilon)

    classes = []
    for value, class_polygons in sorted(polygons.items()):
        mask_class = by_value.get(value)
        classes.append(ClassPolygons(
            class_value=value,
            name=mask_class.name if mask_class else None,
            color=mask_class.color_hex if mask_class else None,
            polygons=[[[x, y] for x, y in polygon] for polygon in class_polygons],
            areas=[polygon_area(polygon) for polygon in class_polygons],
        ))

    return PolygonsResponse(
        image_width=canvas.store.image_width,
        image_height=canvas.store.image_height,
        mask_scale=canvas.store.mask_scale,
        epsilon=epsilon,
        classes=classes,
    )
