"""Tests for storyreel.editor.operations: pure timeline edits."""

import pytest

from storyreel.editor import operations as ops
from storyreel.exceptions import EditError
from storyreel.models import AudioClip, AudioKind, Timeline, WordTiming, words_to_text

from factories import make_segment, make_timeline, timings


def narrated_timeline():
    segment = make_segment(
        duration=10,
        clips=2,
        text="the quick brown fox",
        audio_url="file:///tmp/a.mp3",
        word_timings=timings(
            ("the", 0.0, 1.0), ("quick", 1.0, 3.0), ("brown", 3.0, 5.5), ("fox", 5.5, 8.0)
        ),
    )
    return Timeline(segments=[segment]), segment


class TestSplit:
    def test_durations_add_up(self):
        timeline, segment = narrated_timeline()
        result, second_id = ops.split_segment(timeline, segment.id, 4.0)
        first, second = result.segments
        assert first.duration + second.duration == pytest.approx(10)
        assert second.id == second_id != segment.id

    def test_text_rejoins(self):
        timeline, segment = narrated_timeline()
        result, _ = ops.split_segment(timeline, segment.id, 4.0)
        first, second = result.segments
        assert first.narration_text == "the quick"
        assert f"{first.narration_text} {second.narration_text}" == segment.narration_text

    def test_second_half_rebased(self):
        timeline, segment = narrated_timeline()
        result, _ = ops.split_segment(timeline, segment.id, 4.0)
        second = result.segments[1]
        # "brown" straddles the split and is clamped to zero
        assert second.word_timings[0].start == 0.0
        assert second.word_timings[0].end == pytest.approx(1.5)
        assert second.word_timings[1].start == pytest.approx(1.5)

    def test_fresh_clip_ids_and_no_audio(self):
        timeline, segment = narrated_timeline()
        result, _ = ops.split_segment(timeline, segment.id, 4.0)
        first, second = result.segments
        assert {c.id for c in first.media}.isdisjoint(c.id for c in second.media)
        assert [c.url for c in second.media] == [c.url for c in first.media]
        assert first.audio_url is None and second.audio_url is None

    def test_without_timings_keeps_text_on_first_half(self):
        timeline = Timeline(segments=[make_segment(6, text="plain")])
        result, _ = ops.split_segment(timeline, timeline.segments[0].id, 3)
        assert [s.narration_text for s in result.segments] == ["plain", ""]

    @pytest.mark.parametrize("split_time", [0.0, 0.49, 9.51, 10.0])
    def test_too_close_to_edge_rejected(self, split_time):
        timeline, segment = narrated_timeline()
        with pytest.raises(EditError, match="too close to edge"):
            ops.split_segment(timeline, segment.id, split_time)

    def test_margin_itself_allowed(self):
        timeline, segment = narrated_timeline()
        result, _ = ops.split_segment(timeline, segment.id, 0.5)
        assert result.segments[0].duration == 0.5

    def test_input_untouched(self):
        timeline, segment = narrated_timeline()
        ops.split_segment(timeline, segment.id, 4.0)
        assert timeline.segments == [segment]


class TestSegmentList:
    def test_delete_only_segment_rejected(self):
        timeline = make_timeline(3)
        with pytest.raises(EditError):
            ops.delete_segment(timeline, timeline.segments[0].id)

    def test_delete_selects_left_neighbour(self):
        timeline = make_timeline(1, 2, 3)
        ids = [s.id for s in timeline.segments]
        result, active = ops.delete_segment(timeline, ids[1])
        assert [s.id for s in result.segments] == [ids[0], ids[2]]
        assert active == ids[0]

    def test_delete_first_selects_new_first(self):
        timeline = make_timeline(1, 2)
        ids = [s.id for s in timeline.segments]
        _, active = ops.delete_segment(timeline, ids[0])
        assert active == ids[1]

    def test_add_segment(self):
        timeline, new_id = ops.add_segment(make_timeline(2), "https://x/y.mp4", "video")
        added = timeline.segments[-1]
        assert added.id == new_id
        assert added.duration == 3.0
        assert added.media[0].type.value == "video"

    def test_reorder_requires_permutation(self):
        timeline = make_timeline(1, 2)
        ids = [s.id for s in timeline.segments]
        assert [s.id for s in ops.reorder_segments(timeline, ids[::-1]).segments] == ids[::-1]
        with pytest.raises(EditError):
            ops.reorder_segments(timeline, ids[:1])

    def test_nudge(self):
        timeline = make_timeline(1, 2, 3)
        ids = [s.id for s in timeline.segments]
        moved = ops.nudge(timeline, ids[1], "left")
        assert [s.id for s in moved.segments] == [ids[1], ids[0], ids[2]]
        assert ops.nudge(timeline, ids[0], "left") is timeline
        assert ops.nudge(timeline, ids[2], "right") is timeline

    def test_unknown_segment(self):
        with pytest.raises(EditError, match="not found"):
            ops.update_text(make_timeline(1), "segment-missing", "x")


class TestSegmentFields:
    def test_update_audio_shrinks_only(self):
        timeline = Timeline(segments=[make_segment(5)])
        segment_id = timeline.segments[0].id
        shorter = ops.update_audio(timeline, segment_id, "file:///a.mp3", 3)
        longer = ops.update_audio(timeline, segment_id, "file:///a.mp3", 8)
        assert shorter.segments[0].duration == 3
        assert longer.segments[0].duration == 5
        assert longer.segments[0].audio_url == "file:///a.mp3"

    def test_update_duration_floor(self):
        timeline = make_timeline(5)
        result = ops.update_duration(timeline, timeline.segments[0].id, 0.2)
        assert result.segments[0].duration == 1.0

    def test_update_text_clears_timings(self):
        timeline, segment = narrated_timeline()
        result = ops.update_text(timeline, segment.id, "new words")
        assert result.segments[0].word_timings is None

    def test_auto_generate_subtitles(self):
        timeline = Timeline(segments=[make_segment(4, text="a b c d"), make_segment(2)])
        result = ops.auto_generate_subtitles(timeline)
        generated = result.segments[0].word_timings
        assert [w.word for w in generated] == ["a", "b", "c", "d"]
        assert generated[-1].end == 4
        assert result.segments[1].word_timings is None

    def test_volume_clamped(self):
        timeline = make_timeline(2)
        result = ops.update_volume(timeline, timeline.segments[0].id, 1.7)
        assert result.segments[0].audio_volume == 1.0

    def test_update_style_partial(self):
        timeline = make_timeline(2)
        result = ops.update_style(timeline, timeline.segments[0].id, font_size=64, position="top")
        style = result.segments[0].text_overlay_style
        assert style.font_size == 64
        assert style.position.value == "top"
        assert style.color == "#EAB308"

    def test_update_style_invalid(self):
        timeline = make_timeline(2)
        with pytest.raises(EditError):
            ops.update_style(timeline, timeline.segments[0].id, max_caption_lines=0)

    def test_update_word_timings_rejects_overlap(self):
        timeline, segment = narrated_timeline()
        overlapping = [WordTiming(word="a", start=0, end=2), WordTiming(word="b", start=1, end=3)]
        with pytest.raises(EditError):
            ops.update_word_timings(timeline, segment.id, overlapping)

    def test_update_word_timings_accepts_touching(self):
        timeline, segment = narrated_timeline()
        result = ops.update_word_timings(timeline, segment.id, timings(("a", 0, 1), ("b", 1, 2)))
        assert [w.word for w in result.segments[0].word_timings] == ["a", "b"]


class TestMedia:
    def test_remove_last_clip_rejected(self):
        timeline = make_timeline(2)
        segment = timeline.segments[0]
        with pytest.raises(EditError):
            ops.remove_media(timeline, segment.id, segment.media[0].id)

    def test_append_and_replace(self):
        timeline = make_timeline(2)
        segment = timeline.segments[0]
        appended = ops.update_media(timeline, segment.id, None, "b.jpg", "image")
        assert [c.url for c in appended.segments[0].media] == ["clip0.png", "b.jpg"]
        replaced = ops.update_media(timeline, segment.id, segment.media[0].id, "c.mp4", "video")
        assert replaced.segments[0].media[0].url == "c.mp4"
        assert replaced.segments[0].media[0].id == segment.media[0].id

    def test_reorder_clips(self):
        timeline = Timeline(segments=[make_segment(4, clips=3)])
        segment = timeline.segments[0]
        ids = [c.id for c in segment.media]
        result = ops.reorder_clips(timeline, segment.id, [ids[2], ids[0], ids[1]])
        assert [c.url for c in result.segments[0].media] == ["clip2.png", "clip0.png", "clip1.png"]
        with pytest.raises(EditError):
            ops.reorder_clips(timeline, segment.id, [ids[0], ids[0], ids[1]])


class TestScriptText:
    def test_round_trip(self):
        timeline = Timeline(segments=[make_segment(2, text="one"), make_segment(2, text="two")])
        assert ops.script_text(timeline.segments) == "one\n\ntwo"
        assert ops.apply_script_text(timeline, "one\n\ntwo") is timeline

    def test_changed_paragraph_invalidates_audio(self):
        first = make_segment(2, text="one", audio_url="file:///1.mp3")
        second = make_segment(2, text="two", audio_url="file:///2.mp3")
        result = ops.apply_script_text(Timeline(segments=[first, second]), "one\n\n\n2")
        assert result.segments[0].audio_url == "file:///1.mp3"
        assert result.segments[1].narration_text == "2"
        assert result.segments[1].audio_url is None

    def test_extra_paragraphs_clone_last_segment(self):
        timeline = Timeline(segments=[make_segment(2, clips=2, text="one")])
        result = ops.apply_script_text(timeline, "one\n\ntwo\n\nthree")
        assert [s.narration_text for s in result.segments] == ["one", "two", "three"]
        last = timeline.segments[0]
        clone = result.segments[2]
        assert clone.id != last.id
        assert [c.url for c in clone.media] == [c.url for c in last.media]
        assert {c.id for c in clone.media}.isdisjoint(c.id for c in last.media)

    def test_orphans_kept_blank(self):
        timeline = Timeline(segments=[make_segment(2, text="one"), make_segment(2, text="two")])
        result = ops.apply_script_text(timeline, "only")
        assert [s.narration_text for s in result.segments] == ["only", ""]


class TestAudioTracks:
    def test_add_defaults(self):
        timeline, track_id = ops.add_audio_track(make_timeline(2), "bg.mp3", "music")
        track = timeline.audio_tracks[0]
        assert track.id == track_id
        assert (track.start_time, track.volume, track.duration) == (0.0, 0.8, 10.0)

    def test_add_narration_kind_rejected(self):
        with pytest.raises(EditError):
            ops.add_audio_track(make_timeline(2), "v.mp3", AudioKind.NARRATION)

    def test_update_clamps_start(self):
        track = AudioClip(url="bg.mp3")
        timeline = Timeline(segments=[make_segment(2)], audio_tracks=[track])
        result = ops.update_audio_track(timeline, track.id, start_time=-3, volume=0.5)
        assert result.audio_tracks[0].start_time == 0.0
        assert result.audio_tracks[0].volume == 0.5

    def test_delete(self):
        track = AudioClip(url="bg.mp3")
        timeline = Timeline(segments=[make_segment(2)], audio_tracks=[track])
        assert ops.delete_audio_track(timeline, track.id).audio_tracks == []
        with pytest.raises(EditError):
            ops.delete_audio_track(timeline, "audio-missing")


def test_apply_narration_sets_audio_and_timings():
    timeline = Timeline(segments=[make_segment(5, text="hi there")])
    segment_id = timeline.segments[0].id
    result = ops.apply_narration(
        timeline, segment_id, "file:///n.mp3", 2.0, timings(("hi", 0, 1), ("there", 1, 2))
    )
    segment = result.segments[0]
    assert segment.duration == 2.0
    assert segment.audio_url == "file:///n.mp3"
    assert words_to_text(segment.word_timings) == "hi there"
