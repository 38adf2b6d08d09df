"""
Exception types raised by StoryReel.
"""


class StoryReelError(Exception):
    """Base class for all StoryReel errors."""


class EditError(StoryReelError):
    """A timeline edit was rejected. The timeline is left unchanged."""


class AssetError(StoryReelError):
    """A media or audio asset could not be fetched or decoded."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        shown = url if len(url) <= 80 else url[:77] + "..."
        super().__init__(f"Failed to load asset {shown}: {reason}")


class RenderError(StoryReelError):
    """The render engine failed to produce output."""


class ExportCancelled(StoryReelError):
    """An export was cancelled while in flight."""


class ExportStateError(StoryReelError):
    """An export transition is not allowed from the current state."""


class ServiceError(StoryReelError):
    """An external service (narration, stock search) failed."""
