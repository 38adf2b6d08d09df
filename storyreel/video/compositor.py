"""
Frame compositor and the frame-by-frame render engine.

Every output frame is composed from the playback synchronizer's answer for
that instant: the active clip letterboxed onto black, the next segment's
first clip faded in near a ``fade`` boundary, and karaoke captions on top.
The same compositor backs still previews.
"""

from bisect import bisect_right
from pathlib import Path
from typing import Callable, Literal, Mapping

import numpy as np
from loguru import logger
from moviepy import AudioFileClip, CompositeAudioClip, VideoClip, VideoFileClip, afx
from PIL import Image, ImageOps

from config.settings import Settings, get_settings
from storyreel.exceptions import AssetError
from storyreel.models import CaptionChunk, MediaClip, MediaType, Project
from storyreel.video.audio import AudioPlan, build_audio_plan
from storyreel.video.cancel import CancelToken
from storyreel.video.captions import CaptionLayout, caption_chunks, resolve_caption
from storyreel.video.painter import CaptionPainter
from storyreel.video.sync import clip_schedule, resolve, segment_offsets, transition_progress

PLACEHOLDER_COLOR = (51, 51, 51)

MissingPolicy = Literal["placeholder", "error"]


class MediaFrames:
    """Decoded, letterboxed frames of every clip, keyed by URL."""

    def __init__(
        self,
        paths: Mapping[str, Path],
        size: tuple[int, int],
        missing: MissingPolicy = "placeholder",
    ):
        self.paths = paths
        self.size = size
        self.missing = missing
        self._images: dict[str, Image.Image] = {}
        self._videos: dict[str, VideoFileClip] = {}

    def frame(self, clip: MediaClip, clip_time: float) -> Image.Image:
        """Frame of ``clip`` at ``clip_time``; videos loop when shorter."""
        try:
            if clip.type == MediaType.VIDEO:
                return self._video_frame(clip.url, clip_time)
            return self._image(clip.url)
        except (OSError, KeyError, ValueError) as e:
            if self.missing == "error":
                raise AssetError(clip.url, str(e) or "asset is missing") from e
            logger.debug(f"Drawing placeholder for {clip.url[:60]}: {e}")
            return Image.new("RGB", self.size, PLACEHOLDER_COLOR)

    def _letterbox(self, image: Image.Image) -> Image.Image:
        return ImageOps.pad(image.convert("RGB"), self.size, color=(0, 0, 0))

    def _image(self, url: str) -> Image.Image:
        if url not in self._images:
            with Image.open(self.paths[url]) as image:
                self._images[url] = self._letterbox(image)
        return self._images[url]

    def _video_frame(self, url: str, clip_time: float) -> Image.Image:
        video = self._videos.get(url)
        if video is None:
            video = VideoFileClip(str(self.paths[url]), audio=False)
            self._videos[url] = video
        local = clip_time % video.duration if video.duration else 0.0
        return self._letterbox(Image.fromarray(video.get_frame(local)))

    def close(self) -> None:
        for video in self._videos.values():
            video.close()
        self._videos.clear()
        self._images.clear()


class FrameCompositor:
    """Compose single frames of a project at timeline-absolute times."""

    def __init__(
        self,
        project: Project,
        paths: Mapping[str, Path],
        settings: Settings | None = None,
        missing: MissingPolicy = "placeholder",
    ):
        self.settings = settings or get_settings()
        self.project = project
        self.size = (self.settings.render.width, self.settings.render.height)
        self.layout = CaptionLayout.from_settings(self.settings)
        self.painter = CaptionPainter(self.layout, self.settings)
        self.media = MediaFrames(paths, self.size, missing)
        self._chunks: dict[str, list[CaptionChunk]] = {
            segment.id: caption_chunks(segment, self.layout) for segment in project.segments
        }

    def compose_image(self, time: float) -> Image.Image:
        segments = self.project.segments
        total = self.project.total_duration
        position = resolve(segments, min(time, total - 1e-6))
        if position is None:
            return Image.new("RGB", self.size, (0, 0, 0))

        segment = position.segment
        window = self.settings.render.transition_duration
        schedule = clip_schedule(segment.duration, len(segment.media), window)
        local = position.local_time
        crossfade = schedule.crossfade_at(local)
        if crossfade is not None:
            incoming, factor = crossfade
            outgoing = self.media.frame(segment.media[incoming - 1], schedule.clip_time(incoming - 1, local))
            image = Image.blend(
                outgoing,
                self.media.frame(segment.media[incoming], schedule.clip_time(incoming, local)),
                factor,
            )
        else:
            image = self.media.frame(position.clip, schedule.clip_time(position.clip_index, local))

        progress = transition_progress(segments, position, window)
        if progress is not None:
            following = segments[position.segment_index + 1]
            incoming = self.media.frame(following.media[0], 0.0)
            image = Image.blend(image, incoming, progress)

        caption = resolve_caption(segment, local, self.layout, self._chunks[segment.id])
        if caption is not None:
            image = self.painter.paint(image, caption, segment.text_overlay_style)
        return image

    def compose(self, time: float) -> np.ndarray:
        """RGB frame as an ``(height, width, 3)`` uint8 array."""
        return np.asarray(self.compose_image(time), dtype=np.uint8)

    def close(self) -> None:
        self.media.close()


def build_audio_clip(plan: AudioPlan, paths: Mapping[str, Path]) -> tuple[CompositeAudioClip | None, list]:
    """
    Assemble the mixed soundtrack for the frame engine.

    Returns:
        The composite clip (None when nothing is audible) and the source
        clips the caller must close after writing. If any source fails to
        open, the ones already opened are closed before the error propagates.
    """
    if not plan.has_audio:
        return None, []
    sources = []
    layers = []
    try:
        for placement in plan.placements:
            if placement.is_silence or placement.volume <= 0:
                continue
            source = AudioFileClip(str(paths[placement.url]))
            sources.append(source)
            length = min(placement.duration, source.duration)
            layers.append(
                source.subclipped(0, length)
                .with_start(placement.start)
                .with_volume_scaled(placement.volume)
            )
        if not layers:
            return None, sources
        mix = CompositeAudioClip(layers).with_duration(plan.total_duration)
        return mix.with_effects([afx.AudioNormalize()]), sources
    except Exception:
        close_all(sources)
        raise


def close_all(clips: list) -> None:
    for clip in clips:
        clip.close()


class FrameRenderer:
    """Render engine that composes every frame in Python and encodes with moviepy."""

    name = "frames"

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def render(
        self,
        project: Project,
        paths: Mapping[str, Path],
        output_path: Path,
        job_dir: Path,
        progress: Callable[[float, str], None],
        cancel: CancelToken,
    ) -> Path:
        """
        Encode ``project`` to ``output_path``.

        Raises:
            AssetError: if a clip cannot be decoded
            ExportCancelled: if ``cancel`` fires mid-render
        """
        render = self.settings.render
        total = project.total_duration
        compositor = None
        sources = []

        offsets = segment_offsets(project.segments)
        count = len(offsets)

        def frame_function(t):
            cancel.raise_if_cancelled()
            index = max(1, bisect_right(offsets, t))
            progress(min(1.0, t / total), f"Rendering segment {index} of {count}")
            return compositor.compose(t)

        try:
            compositor = FrameCompositor(project, paths, self.settings, missing="error")
            audio, sources = build_audio_clip(build_audio_plan(project), paths)
            video = VideoClip(frame_function=frame_function, duration=total)
            if audio is not None:
                video = video.with_audio(audio)

            logger.info(f"Composing {total:.1f}s at {render.width}x{render.height} ({render.fps} fps)")
            video.write_videofile(
                str(output_path),
                fps=render.fps,
                codec=render.codec,
                audio_codec=render.audio_codec,
                audio_fps=render.sample_rate,
                preset=render.preset,
                temp_audiofile_path=str(job_dir),
                logger=None,
            )
        finally:
            if compositor is not None:
                compositor.close()
            close_all(sources)
        return Path(output_path)
