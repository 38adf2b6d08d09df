"""
Video processing modules: synchronization, captions, audio mix and rendering.
"""

from .assembler import FfmpegRenderer
from .assets import AssetStore, project_asset_urls
from .audio import AudioPlacement, AudioPlan, build_audio_plan
from .cancel import CancelToken
from .captions import CaptionLayout, chunk_word_timings, resolve_caption, write_ass_file
from .compositor import FrameCompositor, FrameRenderer
from .export import Exporter, ExportResult, ExportStatus, make_renderer
from .sync import PlaybackPosition, clip_schedule, resolve

__all__ = [
    "AssetStore",
    "project_asset_urls",
    "AudioPlacement",
    "AudioPlan",
    "build_audio_plan",
    "CancelToken",
    "CaptionLayout",
    "chunk_word_timings",
    "resolve_caption",
    "write_ass_file",
    "FrameCompositor",
    "FrameRenderer",
    "FfmpegRenderer",
    "Exporter",
    "ExportResult",
    "ExportStatus",
    "make_renderer",
    "PlaybackPosition",
    "clip_schedule",
    "resolve",
]
