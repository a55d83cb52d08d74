"""
Engine configuration - raster limits, view limits, undo budget and tunables.
"""

import os

# Class limits (raster value 0 = unlabeled, 1..MAX_CLASSES = class)
MAX_CLASSES = 8

# Raster resolution policy
MAX_MASK_DIMENSION = 4096
MAX_MASK_SCALE = 2.0

# View zoom limits
MIN_SCALE = 0.1
MAX_SCALE = 10.0

# Colour annotation import
COLOR_SNAP_THRESHOLD = int(os.getenv("ANNOMASK_COLOR_SNAP_THRESHOLD", "30"))
NEAR_WHITE_THRESHOLD = 250  # per channel, out of 255

# Undo budget (patches are stored uncompressed)
UNDO_MAX_LEVELS = int(os.getenv("ANNOMASK_UNDO_MAX_LEVELS", "50"))
UNDO_MAX_MEMORY_BYTES = int(
    os.getenv("ANNOMASK_UNDO_MAX_MEMORY_BYTES", str(100 * 1024 * 1024))
)
UNDO_ENTRY_OVERHEAD_BYTES = 64

# Contour simplification (mask pixels)
DEFAULT_SIMPLIFY_EPSILON = 1.0
EXPORT_SIMPLIFY_EPSILON = float(os.getenv("ANNOMASK_EXPORT_EPSILON", "2.0"))

# Stroke interpolation step as a fraction of the mask-space brush radius
STROKE_STEP_FRACTION = 0.3
STROKE_MIN_STEP = 0.5  # mask pixels
