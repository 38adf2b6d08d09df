"""
Editing session: the single writer of a project.

Owns the undo history, the active segment and the playback cursor. Views
call the named methods here; nothing else changes the timeline.
"""

from typing import Any, Callable, Iterable

from loguru import logger

from storyreel.editor import operations as ops
from storyreel.editor.history import History
from storyreel.models import MediaType, Project, Segment, Timeline, Transition, WordTiming
from storyreel.processors.queue import NarrationResult
from storyreel.video.sync import PlaybackPosition, resolve


class EditingSession:
    """Mutable store wrapping an immutable project timeline."""

    def __init__(self, project: Project):
        self.title = project.title
        self._project = project
        self.history = History(present=project.timeline)
        self.active_segment_id: str | None = project.segments[0].id
        self.current_time = 0.0
        self.is_playing = False

    # --- State access ---------------------------------------------------------

    @property
    def timeline(self) -> Timeline:
        return self.history.present

    @property
    def segments(self) -> list[Segment]:
        return self.timeline.segments

    @property
    def total_duration(self) -> float:
        return self.timeline.total_duration

    @property
    def active_segment(self) -> Segment | None:
        if self.active_segment_id is None:
            return None
        return self.timeline.get(self.active_segment_id)

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def project(self) -> Project:
        """Current state as a persistable project."""
        return self._project.model_copy(update={"title": self.title}).with_timeline(self.timeline)

    def position(self) -> PlaybackPosition | None:
        return resolve(self.segments, self.current_time)

    # --- History --------------------------------------------------------------

    def edit(self, operation: Callable[..., Timeline], *args: Any, **kwargs: Any) -> Timeline:
        """Apply a pure timeline operation and record it in the history."""
        timeline = self.history.commit(operation(self.timeline, *args, **kwargs))
        self._ensure_active()
        return timeline

    def undo(self) -> Timeline:
        timeline = self.history.undo()
        self._ensure_active()
        return timeline

    def redo(self) -> Timeline:
        timeline = self.history.redo()
        self._ensure_active()
        return timeline

    def _ensure_active(self) -> None:
        if self.active_segment_id is None or self.timeline.get(self.active_segment_id) is None:
            self.active_segment_id = self.segments[0].id
        self.current_time = min(self.current_time, self.total_duration)

    # --- Named edits ----------------------------------------------------------

    def rename(self, title: str) -> None:
        self.title = title

    def select(self, segment_id: str) -> None:
        if self.timeline.get(segment_id) is not None:
            self.active_segment_id = segment_id

    def update_text(self, segment_id: str, text: str) -> Timeline:
        return self.edit(ops.update_text, segment_id, text)

    def update_duration(self, segment_id: str, duration: float) -> Timeline:
        return self.edit(ops.update_duration, segment_id, duration)

    def update_audio(
        self, segment_id: str, url: str | None, measured_duration: float | None = None
    ) -> Timeline:
        return self.edit(ops.update_audio, segment_id, url, measured_duration)

    def update_word_timings(self, segment_id: str, timings: list[WordTiming] | None) -> Timeline:
        return self.edit(ops.update_word_timings, segment_id, timings)

    def auto_generate_subtitles(self, segment_id: str | None = None) -> Timeline:
        return self.edit(ops.auto_generate_subtitles, segment_id)

    def update_volume(self, segment_id: str, volume: float) -> Timeline:
        return self.edit(ops.update_volume, segment_id, volume)

    def update_transition(self, segment_id: str, transition: Transition | str) -> Timeline:
        return self.edit(ops.update_transition, segment_id, transition)

    def update_style(self, segment_id: str, **changes: Any) -> Timeline:
        return self.edit(ops.update_style, segment_id, **changes)

    def update_media(
        self, segment_id: str, clip_id: str | None, url: str, media_type: MediaType | str
    ) -> Timeline:
        return self.edit(ops.update_media, segment_id, clip_id, url, media_type)

    def remove_media(self, segment_id: str, clip_id: str) -> Timeline:
        return self.edit(ops.remove_media, segment_id, clip_id)

    def reorder_clips(self, segment_id: str, clip_ids: list[str]) -> Timeline:
        return self.edit(ops.reorder_clips, segment_id, clip_ids)

    def reorder_segments(self, segment_ids: list[str]) -> Timeline:
        return self.edit(ops.reorder_segments, segment_ids)

    def nudge(self, segment_id: str, direction: str) -> Timeline:
        return self.edit(ops.nudge, segment_id, direction)

    def apply_script_text(self, text: str) -> Timeline:
        return self.edit(ops.apply_script_text, text)

    def script_text(self) -> str:
        return ops.script_text(self.segments)

    def add_segment(self, url: str, media_type: MediaType | str) -> str:
        timeline, segment_id = ops.add_segment(self.timeline, url, media_type)
        self.history.commit(timeline)
        self.active_segment_id = segment_id
        return segment_id

    def delete_segment(self, segment_id: str | None = None) -> str:
        """Delete a segment (the active one by default) and select its neighbour."""
        segment_id = segment_id or self.active_segment_id
        timeline, active = ops.delete_segment(self.timeline, segment_id)
        self.history.commit(timeline)
        self.active_segment_id = active
        self._ensure_active()
        logger.debug(f"Deleted segment {segment_id}, active is now {active}")
        return active

    def split_segment(self, segment_id: str, split_time: float) -> str:
        timeline, new_id = ops.split_segment(self.timeline, segment_id, split_time)
        self.history.commit(timeline)
        self.active_segment_id = segment_id
        return new_id

    def add_audio_track(self, url: str, kind: str, duration: float | None = None, name: str = "") -> str:
        timeline, track_id = ops.add_audio_track(self.timeline, url, kind, duration, name)
        self.history.commit(timeline)
        return track_id

    def update_audio_track(self, track_id: str, **changes: Any) -> Timeline:
        return self.edit(ops.update_audio_track, track_id, **changes)

    def delete_audio_track(self, track_id: str) -> Timeline:
        return self.edit(ops.delete_audio_track, track_id)

    def apply_narration(self, results: Iterable[NarrationResult]) -> Timeline:
        """Attach a batch of generated narrations as a single undoable edit."""

        def apply_all(timeline: Timeline) -> Timeline:
            for result in results:
                if timeline.get(result.segment_id) is None:
                    logger.warning(f"Segment {result.segment_id} no longer exists, dropping its narration")
                    continue
                timeline = ops.apply_narration(
                    timeline, result.segment_id, result.url, result.duration, result.timings
                )
            return timeline

        return self.edit(apply_all)

    # --- Playback -------------------------------------------------------------

    def play(self) -> None:
        self.is_playing = True

    def pause(self) -> None:
        self.is_playing = False

    def toggle_play(self) -> None:
        self.is_playing = not self.is_playing

    def seek(self, time: float) -> PlaybackPosition | None:
        """Move the cursor (clamped to the timeline) and follow it with the selection."""
        self.current_time = max(0.0, min(float(time), self.total_duration))
        position = self.position()
        if position is not None:
            self.active_segment_id = position.segment.id
        return position

    def tick(self, delta: float) -> PlaybackPosition | None:
        """
        Advance the cursor by one frame's ``delta`` while playing.

        Reaching the end stops playback and rewinds to zero.
        """
        if not self.is_playing:
            return self.position()
        next_time = self.current_time + delta
        if next_time >= self.total_duration:
            self.is_playing = False
            self.current_time = 0.0
        else:
            self.current_time = next_time
        position = self.position()
        if position is not None:
            self.active_segment_id = position.segment.id
        return position
