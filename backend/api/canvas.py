"""
Canvas API endpoints - image session, view, strokes, fill, history
"""

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel
from typing import Optional

from maskcore import commands
from maskcore.canvas import Canvas
from maskcore.models import UndoAction
from backend.config import MAX_RESTORE_BYTES

router = APIRouter()

# The single editing session
_canvas = Canvas()


def get_canvas() -> Canvas:
    """Get the session, requiring a loaded image."""
    if not _canvas.store.is_loaded:
        raise HTTPException(status_code=400, detail="No image loaded")
    return _canvas


def get_session() -> Canvas:
    """Get the session whether or not an image is loaded."""
    return _canvas


class LoadImageRequest(BaseModel):
    width: int
    height: int
    view_width: Optional[float] = None
    view_height: Optional[float] = None


class PointRequest(BaseModel):
    x: float
    y: float


class StrokeBeginRequest(BaseModel):
    x: float
    y: float
    erase: bool = False


class PanRequest(BaseModel):
    dx: float
    dy: float


class PinchRequest(BaseModel):
    scale: float
    x: float
    y: float


class RotateRequest(BaseModel):
    angle: float  # radians
    x: float
    y: float


class FitRequest(BaseModel):
    view_width: float
    view_height: float


class ToolRequest(BaseModel):
    class_value: Optional[int] = None
    brush_radius: Optional[float] = None


class ViewResponse(BaseModel):
    translation: list[float]
    scale: float
    rotation: float
    mask_scale: float


class HistoryResponse(BaseModel):
    can_undo: bool
    can_redo: bool
    undo_count: int
    redo_count: int
    memory_usage: int


class CanvasStateResponse(BaseModel):
    loaded: bool
    image_width: int
    image_height: int
    mask_width: int
    mask_height: int
    current_class: int
    brush_radius: float
    is_drawing: bool
    view: ViewResponse
    history: HistoryResponse


class EditResponse(BaseModel):
    applied: bool
    bbox: Optional[list[float]] = None  # [x, y, width, height] in mask pixels
    history: HistoryResponse


class MaskPointResponse(BaseModel):
    image: list[float]
    mask: list[float]


def view_response(canvas: Canvas) -> ViewResponse:
    t = canvas.transform
    return ViewResponse(
        translation=list(t.translation),
        scale=t.scale,
        rotation=t.rotation,
        mask_scale=t.mask_scale,
    )


def history_response(canvas: Canvas) -> HistoryResponse:
    h = canvas.history
    return HistoryResponse(
        can_undo=h.can_undo,
        can_redo=h.can_redo,
        undo_count=h.undo_count,
        redo_count=h.redo_count,
        memory_usage=h.memory_usage,
    )


def state_response(canvas: Canvas) -> CanvasStateResponse:
    loaded = canvas.store.is_loaded
    return CanvasStateResponse(
        loaded=loaded,
        image_width=canvas.store.image_width,
        image_height=canvas.store.image_height,
        mask_width=canvas.store.width if loaded else 0,
        mask_height=canvas.store.height if loaded else 0,
        current_class=canvas.current_class,
        brush_radius=canvas.brush_radius,
        is_drawing=canvas.is_drawing,
        view=view_response(canvas),
        history=history_response(canvas),
    )


def edit_response(canvas: Canvas, action: Optional[UndoAction]) -> EditResponse:
    bbox = None
    if action is not None:
        bbox = [action.bbox.x, action.bbox.y, action.bbox.width, action.bbox.height]
    return EditResponse(applied=action is not None, bbox=bbox, history=history_response(canvas))


# ==================== Session ====================

@router.get("", response_model=CanvasStateResponse)
async def get_state():
    """Get the current session state."""
    return state_response(get_session())


@router.post("/image", response_model=CanvasStateResponse)
async def load_image(request: LoadImageRequest):
    """Start editing an image of the given size."""
    canvas = get_session()
    view_size = None
    if request.view_width is not None and request.view_height is not None:
        view_size = (request.view_width, request.view_height)

    canvas.load_image(request.width, request.height, view_size=view_size)
    return state_response(canvas)


@router.delete("/image")
async def unload_image():
    """Release the current image's mask and history."""
    get_session().unload()
    return {"status": "unloaded"}


@router.put("/tool", response_model=CanvasStateResponse)
async def set_tool(request: ToolRequest):
    """Select the paint class and/or brush radius."""
    canvas = get_session()
    try:
        if request.class_value is not None:
            canvas.dispatch(commands.SelectClass(request.class_value))
        if request.brush_radius is not None:
            canvas.dispatch(commands.SetBrushRadius(request.brush_radius))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return state_response(canvas)


# ==================== View ====================

@router.post("/view/pan", response_model=ViewResponse)
async def pan(request: PanRequest):
    canvas = get_canvas()
    canvas.dispatch(commands.Pan((request.dx, request.dy)))
    return view_response(canvas)


@router.post("/view/pinch", response_model=ViewResponse)
async def pinch(request: PinchRequest):
    canvas = get_canvas()
    canvas.dispatch(commands.Pinch(request.scale, (request.x, request.y)))
    return view_response(canvas)


@router.post("/view/rotate", response_model=ViewResponse)
async def rotate(request: RotateRequest):
    canvas = get_canvas()
    canvas.dispatch(commands.Rotate(request.angle, (request.x, request.y)))
    return view_response(canvas)


@router.post("/view/fit", response_model=ViewResponse)
async def fit(request: FitRequest):
    canvas = get_canvas()
    canvas.dispatch(commands.FitToView((request.view_width, request.view_height)))
    return view_response(canvas)


@router.post("/view/reset", response_model=ViewResponse)
async def reset_view():
    canvas = get_canvas()
    canvas.dispatch(commands.ResetView())
    return view_response(canvas)


@router.post("/view/locate", response_model=MaskPointResponse)
async def locate(request: PointRequest):
    """Convert a screen point to image and mask coordinates."""
    canvas = get_canvas()
    point = (request.x, request.y)
    return MaskPointResponse(
        image=list(canvas.transform.screen_to_image(point)),
        mask=list(canvas.transform.screen_to_mask(point)),
    )


# ==================== Edits ====================

@router.post("/stroke/begin", response_model=CanvasStateResponse)
async def begin_stroke(request: StrokeBeginRequest):
    canvas = get_canvas()
    canvas.dispatch(commands.BeginStroke((request.x, request.y), erase=request.erase))
    return state_response(canvas)


@router.post("/stroke/continue", response_model=CanvasStateResponse)
async def continue_stroke(request: PointRequest):
    canvas = get_canvas()
    canvas.dispatch(commands.ContinueStroke((request.x, request.y)))
    return state_response(canvas)


@router.post("/stroke/end", response_model=EditResponse)
async def end_stroke():
    canvas = get_canvas()
    return edit_response(canvas, canvas.dispatch(commands.EndStroke()))


@router.post("/stroke/cancel", response_model=CanvasStateResponse)
async def cancel_stroke():
    canvas = get_canvas()
    canvas.dispatch(commands.CancelStroke())
    return state_response(canvas)


@router.post("/fill", response_model=EditResponse)
async def flood_fill(request: PointRequest):
    canvas = get_canvas()
    return edit_response(canvas, canvas.dispatch(commands.FloodFill((request.x, request.y))))


@router.post("/clear", response_model=EditResponse)
async def clear_all():
    canvas = get_canvas()
    return edit_response(canvas, canvas.dispatch(commands.ClearAll()))


@router.post("/undo", response_model=EditResponse)
async def undo():
    canvas = get_canvas()
    return edit_response(canvas, canvas.dispatch(commands.Undo()))


@router.post("/redo", response_model=EditResponse)
async def redo():
    canvas = get_canvas()
    return edit_response(canvas, canvas.dispatch(commands.Redo()))


# ==================== Raw mask ====================

@router.get("/mask")
async def download_mask():
    """Raw mask bytes (row-major, one byte per pixel, values 0-8)."""
    canvas = get_canvas()
    return Response(
        content=canvas.store.to_bytes(),
        media_type="application/octet-stream",
        headers={
            "X-Mask-Width": str(canvas.store.width),
            "X-Mask-Height": str(canvas.store.height),
            "X-Mask-Scale": str(canvas.store.mask_scale),
        },
    )


@router.put("/mask", response_model=CanvasStateResponse)
async def restore_mask(request: Request):
    """Replace the mask with raw bytes from a previous download. Drops history."""
    canvas = get_canvas()
    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            declared = int(content_length)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid Content-Length")
        if declared > MAX_RESTORE_BYTES:
            raise HTTPException(status_code=413, detail="Mask data too large")

    data = await request.body()
    if len(data) > MAX_RESTORE_BYTES:
        raise HTTPException(status_code=413, detail="Mask data too large")

    canvas.restore_mask(data)
    return state_response(canvas)
