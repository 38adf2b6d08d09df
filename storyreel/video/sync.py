"""
Playback synchronizer: maps a timeline-absolute time to what is on screen.

The same functions drive interactive scrubbing and per-frame lookup in both
render engines.
"""

from dataclasses import dataclass
from typing import Sequence

from storyreel.models import MediaClip, Segment, Transition


@dataclass(frozen=True)
class PlaybackPosition:
    """Resolved position of a global time on the timeline."""

    segment: Segment
    segment_index: int
    segment_start: float
    local_time: float
    clip: MediaClip
    clip_index: int

    @property
    def clip_time(self) -> float:
        """Time inside the active clip's equal share of the segment."""
        return self.local_time % self.segment.clip_duration

    @property
    def time_to_segment_end(self) -> float:
        return self.segment.duration - self.local_time


def total_duration(segments: Sequence[Segment]) -> float:
    return sum(s.duration for s in segments)


def segment_offsets(segments: Sequence[Segment]) -> list[float]:
    """Timeline-absolute start time of every segment."""
    offsets = []
    elapsed = 0.0
    for segment in segments:
        offsets.append(elapsed)
        elapsed += segment.duration
    return offsets


def clip_index_at(segment: Segment, local_time: float) -> int:
    """Index of the clip shown at ``local_time`` within a segment."""
    count = len(segment.media)
    return min(count - 1, int(local_time // segment.clip_duration))


def resolve(segments: Sequence[Segment], global_time: float) -> PlaybackPosition | None:
    """
    Resolve ``global_time`` to the active segment and clip.

    Returns:
        The position, or None before zero and at or past the timeline end
    """
    if global_time < 0:
        return None
    elapsed = 0.0
    for index, segment in enumerate(segments):
        if elapsed <= global_time < elapsed + segment.duration:
            local_time = global_time - elapsed
            clip_index = clip_index_at(segment, local_time)
            return PlaybackPosition(
                segment=segment,
                segment_index=index,
                segment_start=elapsed,
                local_time=local_time,
                clip=segment.media[clip_index],
                clip_index=clip_index,
            )
        elapsed += segment.duration
    return None


def transition_progress(
    segments: Sequence[Segment],
    position: PlaybackPosition,
    window: float,
) -> float | None:
    """
    Blend factor of the next segment's first clip, or None outside a fade.

    Only ``fade`` cross-fades; ``slide`` and ``zoom`` cut hard.
    """
    if position.segment.transition != Transition.FADE:
        return None
    if position.segment_index >= len(segments) - 1:
        return None
    remaining = position.time_to_segment_end
    if window <= 0 or remaining >= window:
        return None
    return 1.0 - remaining / window


@dataclass(frozen=True)
class ClipSchedule:
    """
    Cross-faded layout of a segment's clips.

    Each clip is rendered ``per_clip`` seconds long and overlaps its
    neighbour by ``window`` so the visible time still sums to the segment
    duration: ``per_clip = (duration + (n - 1) * window) / n``.
    """

    per_clip: float
    window: float
    offsets: tuple[float, ...]

    def crossfade_at(self, local_time: float) -> tuple[int, float] | None:
        """Incoming clip index and its blend factor while two clips overlap."""
        for index in range(1, len(self.offsets)):
            start = self.offsets[index]
            if start <= local_time < start + self.window:
                return index, (local_time - start) / self.window
        return None

    def clip_time(self, index: int, local_time: float) -> float:
        """Time inside clip ``index`` measured from its own start."""
        return max(0.0, local_time - self.offsets[index])


def clip_schedule(duration: float, clip_count: int, window: float) -> ClipSchedule:
    """
    Lay out ``clip_count`` clips over ``duration`` seconds.

    The overlap shrinks to half the segment for very short segments so
    every clip keeps a positive visible share.
    """
    count = max(1, clip_count)
    overlap = min(window, duration / 2) if count > 1 else 0.0
    per_clip = (duration + (count - 1) * overlap) / count
    offsets = tuple(index * (per_clip - overlap) for index in range(count))
    return ClipSchedule(per_clip=per_clip, window=overlap, offsets=offsets)
