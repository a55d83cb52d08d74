"""
Backend configuration
"""

import os

# API settings
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

# CORS origins (frontend URL)
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
).split(",")

# Upper bound on mask bytes accepted by a bulk restore (4096 x 4096)
MAX_RESTORE_BYTES = int(os.getenv("MAX_RESTORE_BYTES", str(4096 * 4096)))
