"""Tests for storyreel.video.sync: time resolution and transition math."""

import pytest

from storyreel.models import MediaClip, Segment, Transition
from storyreel.video.sync import (
    clip_index_at,
    clip_schedule,
    resolve,
    segment_offsets,
    total_duration,
    transition_progress,
)

from factories import make_segment


def two_clip_segment():
    return Segment(media=[MediaClip(url="A.png"), MediaClip(url="B.png")], duration=10)


class TestResolve:
    def test_clip_sub_slices(self):
        segment = two_clip_segment()
        assert resolve([segment], 4).clip.url == "A.png"
        assert resolve([segment], 6).clip.url == "B.png"

    def test_clip_index_never_overflows(self):
        segment = make_segment(duration=3, clips=3)
        assert clip_index_at(segment, 2.9999999) == 2

    def test_second_segment(self):
        segments = [make_segment(4), make_segment(6)]
        position = resolve(segments, 5.5)
        assert position.segment_index == 1
        assert position.segment_start == 4
        assert position.local_time == pytest.approx(1.5)
        assert position.time_to_segment_end == pytest.approx(4.5)

    def test_boundary_belongs_to_next_segment(self):
        segments = [make_segment(4), make_segment(6)]
        assert resolve(segments, 4.0).segment_index == 1

    def test_out_of_range(self):
        segments = [make_segment(4)]
        assert resolve(segments, -0.1) is None
        assert resolve(segments, 4.0) is None

    def test_monotonic_stepping_visits_every_segment(self):
        segments = [make_segment(d) for d in (1.0, 0.3, 2.5, 1.2)]
        seen = []
        t = 0.0
        while t < total_duration(segments):
            index = resolve(segments, t).segment_index
            if not seen or seen[-1] != index:
                seen.append(index)
            t += 1 / 30
        assert seen == [0, 1, 2, 3]

    def test_offsets_sum_to_total(self):
        segments = [make_segment(d) for d in (1.5, 2.5, 3.0)]
        assert segment_offsets(segments) == [0.0, 1.5, 4.0]
        assert total_duration(segments) == 7.0


class TestTransitionProgress:
    def test_fade_ramps_in_last_window(self):
        segments = [make_segment(4), make_segment(4)]
        assert transition_progress(segments, resolve(segments, 3.0), 0.5) is None
        assert transition_progress(segments, resolve(segments, 3.75), 0.5) == pytest.approx(0.5)

    def test_last_segment_has_no_fade(self):
        segments = [make_segment(4), make_segment(4)]
        assert transition_progress(segments, resolve(segments, 7.9), 0.5) is None

    @pytest.mark.parametrize("transition", [Transition.SLIDE, Transition.ZOOM])
    def test_other_transitions_cut(self, transition):
        segments = [make_segment(4, transition=transition), make_segment(4)]
        assert transition_progress(segments, resolve(segments, 3.9), 0.5) is None


class TestClipSchedule:
    def test_cross_fade_inflation(self):
        schedule = clip_schedule(10, 2, 0.5)
        assert schedule.per_clip == pytest.approx(5.25)
        assert schedule.offsets[1] == pytest.approx(4.75)

    def test_visible_time_sums_to_duration(self):
        schedule = clip_schedule(7, 3, 0.5)
        assert schedule.offsets[-1] + schedule.per_clip == pytest.approx(7)

    def test_single_clip_has_no_overlap(self):
        schedule = clip_schedule(4, 1, 0.5)
        assert schedule.per_clip == 4
        assert schedule.window == 0
        assert schedule.crossfade_at(3.9) is None

    def test_crossfade_window(self):
        schedule = clip_schedule(10, 2, 0.5)
        assert schedule.crossfade_at(4.7) is None
        incoming, factor = schedule.crossfade_at(5.0)
        assert incoming == 1
        assert factor == pytest.approx(0.5)
        assert schedule.clip_time(1, 6.0) == pytest.approx(1.25)

    def test_short_segment_shrinks_overlap(self):
        schedule = clip_schedule(0.6, 2, 0.5)
        assert schedule.window == pytest.approx(0.3)
        assert schedule.per_clip > schedule.window
