"""
Path utilities for StoryReel.
"""

import re
import uuid
from pathlib import Path

from config.settings import get_settings

_UNSAFE_RE = re.compile(r"[^0-9A-Za-z]")


def ensure_dirs() -> None:
    """Create all required data directories."""
    settings = get_settings()
    dirs = [
        settings.audio_dir,
        settings.output_dir,
        settings.cache_dir,
        settings.projects_dir,
    ]
    for d in dirs:
        d.mkdir(parents=True, exist_ok=True)


def safe_filename(title: str, extension: str = ".mp4") -> str:
    """Download filename for a project title: non-alphanumerics become ``_``."""
    stem = _UNSAFE_RE.sub("_", title.strip()) or "video"
    return f"{stem}{extension}"


def new_job_dir(prefix: str = "job", base: Path | None = None) -> Path:
    """Create a fresh scratch directory for one render job."""
    job_dir = (base or get_settings().cache_dir) / f"{prefix}-{uuid.uuid4().hex[:12]}"
    job_dir.mkdir(parents=True, exist_ok=True)
    return job_dir
