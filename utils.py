"""
utils.py — Centralized logging configuration and file-storage helpers.
"""

import logging
import os
import time
import uuid
from typing import Optional

from config import get_settings

# ── Logging setup ─────────────────────────────────────

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_settings = get_settings()

_handlers = [logging.StreamHandler()]
if _settings.LOG_FILE:
    _handlers.append(logging.FileHandler(_settings.LOG_FILE, encoding="utf-8"))

logging.basicConfig(
    level=_settings.LOG_LEVEL,
    format=LOG_FORMAT,
    handlers=_handlers,
)

logger = logging.getLogger("resume_analyzer")
logger.setLevel(_settings.LOG_LEVEL)


# ── Upload storage ────────────────────────────────────

def upload_dir() -> str:
    """Absolute path of the uploads directory, created on first use."""
    path = os.path.abspath(get_settings().UPLOAD_DIR)
    os.makedirs(path, exist_ok=True)
    return path


def unique_upload_name(original_name: Optional[str]) -> str:
    """Collision-free stored name: random id + epoch millis + original extension."""
    ext = os.path.splitext(original_name or "")[1].lower()
    return f"{uuid.uuid4()}-{int(time.time() * 1000)}{ext}"


def stored_file_path(stored_name: str) -> str:
    # basename keeps stored names from escaping the uploads directory
    return os.path.join(upload_dir(), os.path.basename(stored_name))


def remove_stored_file(stored_name: Optional[str]) -> bool:
    """Delete a stored upload. A missing file is not an error."""
    if not stored_name:
        return False
    path = stored_file_path(stored_name)
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.debug("Stored file already gone: %s", path)
        return False
    logger.info("Removed stored file: %s", path)
    return True
