"""
Constants for the CoachDesk methodology and sync core.

This module contains configuration constants used throughout the application.
"""

# Application metadata
APP_TITLE = "CoachDesk"

# Pitch drawing surface
PITCH_ASPECT_RATIO = 16 / 9
DEFAULT_PITCH_WIDTH = 800
DEFAULT_PITCH_HEIGHT = DEFAULT_PITCH_WIDTH / PITCH_ASPECT_RATIO

# Zone geometry (percentage of pitch dimensions)
PITCH_EXTENT = 100.0
MIN_ZONE_SIZE = 5.0
DEFAULT_ZONE_TITLE = "New Zone"
ZONE_ID_PREFIX = "zone"

# Semi-transparent zone fills; a new zone takes the first unused one
ZONE_COLORS = [
    "rgba(239, 191, 4, 0.3)",   # Gold
    "rgba(59, 130, 246, 0.3)",  # Blue
    "rgba(34, 197, 94, 0.3)",   # Green
    "rgba(249, 115, 22, 0.3)",  # Orange
    "rgba(168, 85, 247, 0.3)",  # Purple
    "rgba(236, 72, 153, 0.3)",  # Pink
    "rgba(20, 184, 166, 0.3)",  # Teal
    "rgba(239, 68, 68, 0.3)",   # Red
]

# Candidate rectangle preview while drawing
PREVIEW_VALID_FILL = "rgba(239, 191, 4, 0.3)"
PREVIEW_INVALID_FILL = "rgba(239, 68, 68, 0.3)"
PREVIEW_VALID_STROKE = "#EFBF04"
PREVIEW_INVALID_STROKE = "#EF4444"

# Realtime sync discipline
READ_TIMEOUT_SECONDS = 5.0
WRITE_TIMEOUT_SECONDS = 10.0
MAX_RETRIES = 3
BASE_RETRY_DELAY_SECONDS = 1.0
DEFAULT_POLL_INTERVAL_SECONDS = 2.0

# Channel status values reported by change subscriptions
CHANNEL_SUBSCRIBED = "SUBSCRIBED"
CHANNEL_ERROR = "CHANNEL_ERROR"
CHANNEL_TIMED_OUT = "TIMED_OUT"
CHANNEL_CLOSED = "CLOSED"

# File storage
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
ALLOWED_UPLOAD_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg"}
DEFAULT_STORAGE_DIR = "storage"
