"""
Utility functions for StoryReel.
"""

from .colors import parse_color, to_ass_color
from .paths import (
    ensure_dirs,
    new_job_dir,
    safe_filename,
)
from .retry import retry

__all__ = [
    "retry",
    "ensure_dirs",
    "new_job_dir",
    "safe_filename",
    "parse_color",
    "to_ass_color",
]
