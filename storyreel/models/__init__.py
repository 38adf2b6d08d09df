"""
Data models for StoryReel.
"""

from .caption import (
    CaptionChunk,
    WordState,
    WordTiming,
    check_timing_order,
    word_state,
    words_to_text,
)
from .project import (
    AudioClip,
    AudioKind,
    CaptionAnimation,
    CaptionPosition,
    MediaClip,
    MediaType,
    Project,
    Segment,
    TextOverlayStyle,
    Timeline,
    Transition,
    new_id,
)

__all__ = [
    "WordTiming",
    "CaptionChunk",
    "WordState",
    "word_state",
    "check_timing_order",
    "words_to_text",
    "MediaClip",
    "MediaType",
    "TextOverlayStyle",
    "CaptionPosition",
    "CaptionAnimation",
    "Segment",
    "Transition",
    "AudioClip",
    "AudioKind",
    "Timeline",
    "Project",
    "new_id",
]
