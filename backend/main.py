"""
FastAPI application entry point
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from maskcore.errors import (
    ImageLoadError, InvalidClassError, InvalidPatchSizeError, NoImageLoadedError
)
from backend.config import CORS_ORIGINS, API_HOST, API_PORT
from backend.api import canvas, annotations

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("annomask API starting...")
    yield
    # Shutdown
    logger.info("annomask API shutting down...")


app = FastAPI(
    title="annomask API",
    description="Class-indexed annotation mask editing with undo and polygon export",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(NoImageLoadedError)
async def no_image_handler(request: Request, exc: NoImageLoadedError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ImageLoadError)
async def image_load_handler(request: Request, exc: ImageLoadError):
    logger.warning(f"Could not load image: {exc}")
    return JSONResponse(status_code=400, content={"detail": f"Could not load image: {exc}"})


@app.exception_handler(InvalidPatchSizeError)
@app.exception_handler(InvalidClassError)
async def invalid_data_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log all unhandled exceptions with full traceback."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}:")
    logger.error(traceback.format_exc())
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(canvas.router, prefix="/api/canvas", tags=["Canvas"])
app.include_router(annotations.router, prefix="/api/annotations", tags=["Annotations"])


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "annomask-api"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=API_HOST, port=API_PORT)
