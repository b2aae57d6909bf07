"""Runtime configuration. Values come from the environment (.env loaded by server.py)."""

import os
import tempfile
from pathlib import Path

DEFAULT_API_URL = "http://localhost:8080"
DEFAULT_RECORDINGS_DIR = "recordings"
DEFAULT_ARCHIVE_PATH = "archive_log.txt"
DEFAULT_MEDIA_DIR = "media"
DEFAULT_SETTLE_DELAY_SECONDS = 1.0

# Fixed analysis parameters sent with every /analyze3 request.
ANALYZE_THRESH = 0.3
ANALYZE_SAMPLE_RATE = 1
ANALYZE_BATCH_SIZE = 30

REQUEST_TIMEOUT_SECONDS = 300.0
ANALYZE_TOTAL_TIMEOUT_SECONDS = 600.0
PROGRESS_TICK_SECONDS = 0.1

# Court classification sampling.
CLASSIFY_EVERY_N_FRAMES = 5
CLASSIFY_FRAME_SIZE = (320, 180)


def _env(name: str) -> str:
    return os.environ.get(name, "").strip()


def get_api_base_url() -> str:
    """Remote analysis service base URL, without trailing slash."""
    return (_env("COURTCAM_API_URL") or DEFAULT_API_URL).rstrip("/")


def get_results_dir() -> Path:
    return Path(_env("COURTCAM_RESULTS_DIR") or tempfile.gettempdir())


def get_recordings_dir() -> Path:
    return Path(_env("COURTCAM_RECORDINGS_DIR") or DEFAULT_RECORDINGS_DIR)


def get_archive_path() -> Path:
    return Path(_env("COURTCAM_ARCHIVE_PATH") or DEFAULT_ARCHIVE_PATH)


def get_settle_delay() -> float:
    raw = _env("COURTCAM_SETTLE_DELAY_SECONDS")
    if not raw:
        return DEFAULT_SETTLE_DELAY_SECONDS
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_SETTLE_DELAY_SECONDS
    return value if value > 0 else DEFAULT_SETTLE_DELAY_SECONDS


def get_media_dir() -> Path:
    """Only files under this directory may be submitted by path."""
    return Path(_env("COURTCAM_MEDIA_DIR") or DEFAULT_MEDIA_DIR)


def get_uploads_dir() -> Path:
    """Where uploaded videos are staged until their job finishes."""
    return Path(_env("COURTCAM_UPLOADS_DIR") or tempfile.gettempdir())
