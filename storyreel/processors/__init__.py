"""
Content processors: narration, timing estimates and stock media search.
"""

from .queue import NarrationFailure, NarrationQueue, NarrationReport, NarrationResult
from .search import MediaSearchProvider, PexelsClient, StockMedia
from .timings import estimate_duration, estimate_word_timings
from .tts import Narration, NarrationEngine

__all__ = [
    "NarrationEngine",
    "Narration",
    "NarrationQueue",
    "NarrationReport",
    "NarrationResult",
    "NarrationFailure",
    "MediaSearchProvider",
    "PexelsClient",
    "StockMedia",
    "estimate_word_timings",
    "estimate_duration",
]
