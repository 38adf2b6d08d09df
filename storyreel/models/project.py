"""
Data models for the editable timeline: segments, clips, audio tracks.
"""

import json
import uuid
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storyreel.models.caption import WordTiming, check_timing_order


def new_id(prefix: str) -> str:
    """Mint a fresh entity id such as ``clip-3f9a1c2e``."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class Transition(str, Enum):
    """Outgoing transition from a segment to the next one."""

    FADE = "fade"
    SLIDE = "slide"
    ZOOM = "zoom"


class CaptionPosition(str, Enum):
    TOP = "top"
    CENTER = "center"
    BOTTOM = "bottom"


class CaptionAnimation(str, Enum):
    NONE = "none"
    SCALE = "scale"
    SLIDE_UP = "slide-up"
    HIGHLIGHT = "highlight"


class AudioKind(str, Enum):
    """Explicit discriminant for every audio entity."""

    NARRATION = "narration"
    MUSIC = "music"
    SFX = "sfx"


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class MediaClip(_Model):
    """A single image or video asset owned by one segment."""

    id: str = Field(default_factory=lambda: new_id("clip"))
    url: str = Field(description="Asset URL, data: URL or local path")
    type: MediaType = Field(default=MediaType.IMAGE)

    def duplicate(self) -> "MediaClip":
        """Copy this clip under a freshly minted id."""
        return self.model_copy(update={"id": new_id("clip")})


class TextOverlayStyle(_Model):
    """Per-segment caption style."""

    font_family: str = Field(default="Arial, sans-serif", alias="fontFamily")
    font_size: int = Field(default=40, gt=0, alias="fontSize")
    color: str = Field(default="#EAB308")
    background_color: str = Field(
        default="rgba(0, 0, 0, 0.5)", alias="backgroundColor"
    )
    position: CaptionPosition = Field(default=CaptionPosition.BOTTOM)
    animation: CaptionAnimation = Field(default=CaptionAnimation.SCALE)
    max_caption_lines: int = Field(default=2, ge=1, alias="maxCaptionLines")


class Segment(_Model):
    """One narrated beat of the video."""

    id: str = Field(default_factory=lambda: new_id("segment"))
    narration_text: str = Field(default="")
    search_keywords_for_media: str = Field(default="")
    media: list[MediaClip] = Field(min_length=1)
    duration: float = Field(gt=0, description="Seconds on the timeline")
    audio_url: str | None = Field(default=None, alias="audioUrl")
    word_timings: list[WordTiming] | None = Field(default=None, alias="wordTimings")
    audio_volume: float = Field(default=1.0, ge=0, le=1, alias="audioVolume")
    transition: Transition = Field(default=Transition.FADE)
    text_overlay_style: TextOverlayStyle = Field(
        default_factory=TextOverlayStyle, alias="textOverlayStyle"
    )

    @field_validator("word_timings")
    @classmethod
    def _sorted_timings(cls, value: list[WordTiming] | None):
        if value:
            check_timing_order(value)
        return value

    @property
    def clip_duration(self) -> float:
        """Equal share of the segment shown per clip."""
        return self.duration / len(self.media)

    @property
    def has_timings(self) -> bool:
        return bool(self.word_timings)


class AudioClip(_Model):
    """Background music or sound effect placed on the absolute timeline."""

    id: str = Field(default_factory=lambda: new_id("audio"))
    url: str
    name: str = Field(default="")
    kind: AudioKind = Field(default=AudioKind.MUSIC, alias="type")
    start_time: float = Field(default=0.0, ge=0, alias="startTime")
    duration: float = Field(default=10.0, gt=0)
    volume: float = Field(default=0.8, ge=0, le=1)

    @field_validator("kind")
    @classmethod
    def _background_only(cls, value: AudioKind) -> AudioKind:
        if value == AudioKind.NARRATION:
            raise ValueError("narration belongs to segments, not audio tracks")
        return value

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


class Timeline(_Model):
    """The undoable part of a project: ordered segments plus audio tracks."""

    segments: list[Segment] = Field(min_length=1)
    audio_tracks: list[AudioClip] = Field(default_factory=list, alias="audioTracks")

    @property
    def total_duration(self) -> float:
        return sum(s.duration for s in self.segments)

    def index_of(self, segment_id: str) -> int:
        for i, segment in enumerate(self.segments):
            if segment.id == segment_id:
                return i
        return -1

    def get(self, segment_id: str) -> Segment | None:
        index = self.index_of(segment_id)
        return self.segments[index] if index >= 0 else None


class Project(_Model):
    """Persisted project: title plus timeline."""

    title: str = Field(default="Untitled")
    segments: list[Segment] = Field(min_length=1)
    audio_tracks: list[AudioClip] = Field(default_factory=list, alias="audioTracks")
    background_music_keywords: str = Field(
        default="", alias="backgroundMusicKeywords"
    )

    @property
    def timeline(self) -> Timeline:
        return Timeline(segments=self.segments, audio_tracks=self.audio_tracks)

    @property
    def total_duration(self) -> float:
        return sum(s.duration for s in self.segments)

    def with_timeline(self, timeline: Timeline) -> "Project":
        return self.model_copy(
            update={
                "segments": list(timeline.segments),
                "audio_tracks": list(timeline.audio_tracks),
            }
        )

    def snapshot(self) -> "Project":
        """Deep copy used by exports so later edits cannot leak in."""
        return self.model_copy(deep=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2, exclude_none=True)

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")
        return path

    @classmethod
    def load(cls, path: Path) -> "Project":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.model_validate(data)
