"""
Audio mix plan shared by both render engines.

Narration is laid end to end at segment offsets (silence where a segment
has no voice track); background tracks sit at their own absolute start.
"""

from dataclasses import dataclass, field

from loguru import logger

from storyreel.models import AudioKind, Project
from storyreel.video.sync import segment_offsets


@dataclass(frozen=True)
class AudioPlacement:
    """One audio source on the timeline-absolute clock."""

    kind: AudioKind
    url: str | None
    start: float
    duration: float
    volume: float
    source_id: str

    @property
    def is_silence(self) -> bool:
        return self.url is None


@dataclass
class AudioPlan:
    """Everything the mixer needs; output length follows the video."""

    total_duration: float
    narration: list[AudioPlacement] = field(default_factory=list)
    background: list[AudioPlacement] = field(default_factory=list)

    @property
    def placements(self) -> list[AudioPlacement]:
        return [*self.narration, *self.background]

    @property
    def has_audio(self) -> bool:
        return any(not p.is_silence for p in self.placements)


def build_audio_plan(project: Project) -> AudioPlan:
    """
    Place every narration and background source on the timeline.

    Background tracks starting after the end of the video are dropped and
    the rest are cut at the video end.
    """
    total = project.total_duration
    plan = AudioPlan(total_duration=total)

    for segment, offset in zip(project.segments, segment_offsets(project.segments)):
        plan.narration.append(
            AudioPlacement(
                kind=AudioKind.NARRATION,
                url=segment.audio_url,
                start=offset,
                duration=segment.duration,
                volume=segment.audio_volume,
                source_id=segment.id,
            )
        )

    for track in project.audio_tracks:
        if track.start_time >= total:
            logger.warning(f"Audio track {track.name or track.id} starts after the video ends, skipping")
            continue
        plan.background.append(
            AudioPlacement(
                kind=track.kind,
                url=track.url,
                start=track.start_time,
                duration=min(track.duration, total - track.start_time),
                volume=track.volume,
                source_id=track.id,
            )
        )

    return plan
