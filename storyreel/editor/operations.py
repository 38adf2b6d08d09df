"""
Pure timeline edits.

Every function takes a Timeline and returns a new Timeline; nothing is
mutated in place. Rejected edits raise EditError and leave the input as is.
"""

import re
from typing import Any, Callable

from storyreel.exceptions import EditError
from storyreel.models import (
    AudioClip,
    AudioKind,
    MediaClip,
    MediaType,
    Segment,
    TextOverlayStyle,
    Timeline,
    Transition,
    WordTiming,
    check_timing_order,
    new_id,
    words_to_text,
)
from storyreel.processors.timings import estimate_word_timings

MIN_DURATION = 1.0
SPLIT_MARGIN = 0.5
NEW_SEGMENT_DURATION = 3.0
SCRIPT_SEPARATOR = "\n\n"
_PARAGRAPH_RE = re.compile(r"\n\n+")


def _require(timeline: Timeline, segment_id: str) -> int:
    index = timeline.index_of(segment_id)
    if index < 0:
        raise EditError(f"Segment not found: {segment_id}")
    return index


def _replace_segment(
    timeline: Timeline, segment_id: str, change: Callable[[Segment], Segment]
) -> Timeline:
    index = _require(timeline, segment_id)
    segments = list(timeline.segments)
    segments[index] = change(segments[index])
    return timeline.model_copy(update={"segments": segments})


def _update(timeline: Timeline, segment_id: str, **fields: Any) -> Timeline:
    return _replace_segment(timeline, segment_id, lambda s: s.model_copy(update=fields))


# --- Segment fields -----------------------------------------------------------


def update_text(timeline: Timeline, segment_id: str, text: str) -> Timeline:
    """Change narration text; existing word timings no longer match it."""
    return _update(timeline, segment_id, narration_text=text, word_timings=None)


def update_duration(timeline: Timeline, segment_id: str, duration: float) -> Timeline:
    """Set a segment's duration, never below one second. No ripple."""
    return _update(timeline, segment_id, duration=max(MIN_DURATION, float(duration)))


def update_audio(
    timeline: Timeline,
    segment_id: str,
    url: str | None,
    measured_duration: float | None = None,
) -> Timeline:
    """
    Attach (or clear) a narration track.

    A measured duration shorter than the segment shrinks it; a longer one
    never grows it.
    """

    def change(segment: Segment) -> Segment:
        duration = segment.duration
        if url and measured_duration and 0 < measured_duration < duration:
            duration = measured_duration
        return segment.model_copy(update={"audio_url": url, "duration": duration})

    return _replace_segment(timeline, segment_id, change)


def update_word_timings(
    timeline: Timeline, segment_id: str, timings: list[WordTiming] | None
) -> Timeline:
    """Replace a segment's word timings; they must be sorted and non-overlapping."""
    if timings:
        try:
            check_timing_order(list(timings))
        except ValueError as e:
            raise EditError(f"Invalid word timings: {e}") from e
    return _update(timeline, segment_id, word_timings=list(timings) if timings else None)


def auto_generate_subtitles(timeline: Timeline, segment_id: str | None = None) -> Timeline:
    """Fill word timings with the even-spacing estimate (one or all segments)."""
    if segment_id is not None:
        _require(timeline, segment_id)
    segments = [
        s
        if segment_id is not None and s.id != segment_id
        else s.model_copy(
            update={"word_timings": estimate_word_timings(s.narration_text, s.duration) or None}
        )
        for s in timeline.segments
    ]
    return timeline.model_copy(update={"segments": segments})


def update_volume(timeline: Timeline, segment_id: str, volume: float) -> Timeline:
    return _update(timeline, segment_id, audio_volume=min(1.0, max(0.0, float(volume))))


def update_transition(
    timeline: Timeline, segment_id: str, transition: Transition | str
) -> Timeline:
    return _update(timeline, segment_id, transition=Transition(transition))


def update_style(timeline: Timeline, segment_id: str, **changes: Any) -> Timeline:
    """Partially update a segment's caption style (field names or aliases)."""

    def change(segment: Segment) -> Segment:
        merged = segment.text_overlay_style.model_dump()
        merged.update(changes)
        try:
            style = TextOverlayStyle.model_validate(merged)
        except ValueError as e:
            raise EditError(f"Invalid caption style: {e}") from e
        return segment.model_copy(update={"text_overlay_style": style})

    return _replace_segment(timeline, segment_id, change)


# --- Media clips --------------------------------------------------------------


def update_media(
    timeline: Timeline,
    segment_id: str,
    clip_id: str | None,
    url: str,
    media_type: MediaType | str,
) -> Timeline:
    """Replace the clip ``clip_id`` or, when it is None, append a new clip."""
    media_type = MediaType(media_type)

    def change(segment: Segment) -> Segment:
        if clip_id is None:
            media = [*segment.media, MediaClip(url=url, type=media_type)]
        else:
            if not any(c.id == clip_id for c in segment.media):
                raise EditError(f"Clip not found: {clip_id}")
            media = [
                c.model_copy(update={"url": url, "type": media_type}) if c.id == clip_id else c
                for c in segment.media
            ]
        return segment.model_copy(update={"media": media})

    return _replace_segment(timeline, segment_id, change)


def remove_media(timeline: Timeline, segment_id: str, clip_id: str) -> Timeline:
    """Remove a clip. A segment always keeps at least one clip."""

    def change(segment: Segment) -> Segment:
        if not any(c.id == clip_id for c in segment.media):
            raise EditError(f"Clip not found: {clip_id}")
        if len(segment.media) <= 1:
            raise EditError("Cannot remove the only clip of a segment.")
        return segment.model_copy(
            update={"media": [c for c in segment.media if c.id != clip_id]}
        )

    return _replace_segment(timeline, segment_id, change)


def reorder_clips(timeline: Timeline, segment_id: str, clip_ids: list[str]) -> Timeline:
    """Apply a permutation of a segment's clips, given as clip ids."""

    def change(segment: Segment) -> Segment:
        by_id = {c.id: c for c in segment.media}
        if sorted(clip_ids) != sorted(by_id):
            raise EditError("New clip order must be a permutation of the segment's clips.")
        return segment.model_copy(update={"media": [by_id[i] for i in clip_ids]})

    return _replace_segment(timeline, segment_id, change)


# --- Segment list -------------------------------------------------------------


def add_segment(
    timeline: Timeline, url: str, media_type: MediaType | str
) -> tuple[Timeline, str]:
    """Append a new 3 second segment showing one clip. Returns its id."""
    segment = Segment(
        media=[MediaClip(url=url, type=MediaType(media_type))],
        duration=NEW_SEGMENT_DURATION,
    )
    updated = timeline.model_copy(update={"segments": [*timeline.segments, segment]})
    return updated, segment.id


def delete_segment(timeline: Timeline, segment_id: str) -> tuple[Timeline, str]:
    """
    Remove a segment and pick the neighbour to its left as the new active one.

    Raises:
        EditError: if it is the only segment
    """
    index = _require(timeline, segment_id)
    if len(timeline.segments) <= 1:
        raise EditError("Cannot delete the only segment.")
    segments = [s for s in timeline.segments if s.id != segment_id]
    active = segments[max(0, index - 1)].id
    return timeline.model_copy(update={"segments": segments}), active


def reorder_segments(timeline: Timeline, segment_ids: list[str]) -> Timeline:
    """Apply a full permutation of the segment list. Transitions move with their segment."""
    by_id = {s.id: s for s in timeline.segments}
    if sorted(segment_ids) != sorted(by_id):
        raise EditError("New segment order must be a permutation of the timeline.")
    return timeline.model_copy(update={"segments": [by_id[i] for i in segment_ids]})


def nudge(timeline: Timeline, segment_id: str, direction: str) -> Timeline:
    """Swap a segment with its left or right neighbour; no-op at the edges."""
    if direction not in ("left", "right"):
        raise EditError(f"Unknown direction: {direction}")
    index = _require(timeline, segment_id)
    other = index - 1 if direction == "left" else index + 1
    if other < 0 or other >= len(timeline.segments):
        return timeline
    segments = list(timeline.segments)
    segments[index], segments[other] = segments[other], segments[index]
    return timeline.model_copy(update={"segments": segments})


def split_segment(timeline: Timeline, segment_id: str, split_time: float) -> tuple[Timeline, str]:
    """
    Split a segment in two at ``split_time`` (segment-local seconds).

    Word timings ending at or before the split stay in the first half; the
    rest move to the second half, re-based to its start. Narration text of
    each half is rebuilt from its words. The second half shows copies of the
    same clips under fresh ids. Both halves drop their narration audio.

    Returns:
        The new timeline and the id of the second half

    Raises:
        EditError: if the split point is within 0.5s of either edge
    """
    index = _require(timeline, segment_id)
    original = timeline.segments[index]
    if split_time < SPLIT_MARGIN or split_time > original.duration - SPLIT_MARGIN:
        raise EditError("Split point too close to edge.")

    text_a, text_b = original.narration_text, ""
    timings_a: list[WordTiming] | None = None
    timings_b: list[WordTiming] | None = None
    if original.word_timings:
        timings_a = [w for w in original.word_timings if w.end <= split_time]
        timings_b = [w.shifted(-split_time) for w in original.word_timings if w.end > split_time]
        text_a, text_b = words_to_text(timings_a), words_to_text(timings_b)

    first = original.model_copy(
        update={
            "duration": split_time,
            "narration_text": text_a,
            "word_timings": timings_a or None,
            "audio_url": None,
        }
    )
    second = original.model_copy(
        update={
            "id": new_id("segment"),
            "duration": original.duration - split_time,
            "narration_text": text_b,
            "word_timings": timings_b or None,
            "media": [c.duplicate() for c in original.media],
            "audio_url": None,
        }
    )
    segments = list(timeline.segments)
    segments[index : index + 1] = [first, second]
    return timeline.model_copy(update={"segments": segments}), second.id


# --- Script text --------------------------------------------------------------


def script_text(segments: list[Segment]) -> str:
    """The combined script: narration of every segment, blank-line separated."""
    return SCRIPT_SEPARATOR.join(s.narration_text for s in segments)


def apply_script_text(timeline: Timeline, text: str) -> Timeline:
    """
    Re-split an edited combined script by blank lines and zip it onto segments.

    Changed paragraphs invalidate narration audio and timings. Extra
    paragraphs spawn segments cloned from the last segment (fresh clip ids).
    Segments left without a paragraph are kept with their text cleared.
    """
    parts = _PARAGRAPH_RE.split(text)
    segments = list(timeline.segments)
    last = segments[-1]
    updated: list[Segment] = []

    for i in range(max(len(parts), len(segments))):
        if i < len(parts) and i < len(segments):
            segment = segments[i]
            if segment.narration_text != parts[i]:
                segment = segment.model_copy(
                    update={"narration_text": parts[i], "audio_url": None, "word_timings": None}
                )
            updated.append(segment)
        elif i < len(parts):
            updated.append(
                last.model_copy(
                    update={
                        "id": new_id("segment"),
                        "narration_text": parts[i],
                        "audio_url": None,
                        "word_timings": None,
                        "media": [c.duplicate() for c in last.media],
                    }
                )
            )
        else:
            updated.append(
                segments[i].model_copy(
                    update={"narration_text": "", "audio_url": None, "word_timings": None}
                )
            )

    if updated == segments:
        return timeline
    return timeline.model_copy(update={"segments": updated})


# --- Background audio ---------------------------------------------------------


def add_audio_track(
    timeline: Timeline,
    url: str,
    kind: AudioKind | str,
    duration: float | None = None,
    name: str = "",
) -> tuple[Timeline, str]:
    """Add a background music or SFX track at the timeline start."""
    try:
        track = AudioClip(
            url=url,
            name=name,
            kind=AudioKind(kind),
            start_time=0.0,
            duration=duration or 10.0,
            volume=0.8,
        )
    except ValueError as e:
        raise EditError(f"Invalid audio track: {e}") from e
    return timeline.model_copy(update={"audio_tracks": [*timeline.audio_tracks, track]}), track.id


def update_audio_track(timeline: Timeline, track_id: str, **changes: Any) -> Timeline:
    """Partially update a background track. ``start_time`` is clamped at zero."""
    if not any(t.id == track_id for t in timeline.audio_tracks):
        raise EditError(f"Audio track not found: {track_id}")
    if "start_time" in changes:
        changes["start_time"] = max(0.0, float(changes["start_time"]))
    if "volume" in changes:
        changes["volume"] = min(1.0, max(0.0, float(changes["volume"])))

    tracks = []
    for track in timeline.audio_tracks:
        if track.id == track_id:
            try:
                track = AudioClip.model_validate({**track.model_dump(), **changes})
            except ValueError as e:
                raise EditError(f"Invalid audio track: {e}") from e
        tracks.append(track)
    return timeline.model_copy(update={"audio_tracks": tracks})


def delete_audio_track(timeline: Timeline, track_id: str) -> Timeline:
    if not any(t.id == track_id for t in timeline.audio_tracks):
        raise EditError(f"Audio track not found: {track_id}")
    return timeline.model_copy(
        update={"audio_tracks": [t for t in timeline.audio_tracks if t.id != track_id]}
    )


def apply_narration(
    timeline: Timeline,
    segment_id: str,
    url: str,
    measured_duration: float | None,
    timings: list[WordTiming] | None,
) -> Timeline:
    """Attach freshly generated narration and its word timings in one edit."""
    updated = update_audio(timeline, segment_id, url, measured_duration)
    if timings:
        updated = update_word_timings(updated, segment_id, timings)
    return updated
