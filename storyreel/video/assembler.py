"""
ffmpeg graph render engine.

Renders each segment with its own ffmpeg process (letterboxed clips,
cross-fades, burned-in karaoke subtitles and the narration bed), joins the
segments with the concat demuxer and mixes the background tracks in a final
pass. Command builders are pure functions so the graphs can be inspected
without running ffmpeg.
"""

import math
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping

from loguru import logger

from config.settings import RenderSettings, Settings, get_settings
from storyreel.exceptions import ExportCancelled, RenderError
from storyreel.models import MediaType, Project, Segment, Transition
from storyreel.video.audio import AudioPlacement, build_audio_plan
from storyreel.video.cancel import CancelToken
from storyreel.video.captions import CaptionLayout, write_ass_file
from storyreel.video.sync import clip_schedule


def fmt(value: float) -> str:
    """Compact decimal for filter arguments: 4.75, 5.25, 12."""
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text or "0"


@dataclass(frozen=True)
class ClipInput:
    path: Path
    type: MediaType


@dataclass(frozen=True)
class SegmentJob:
    """Everything one per-segment ffmpeg run needs."""

    segment: Segment
    clips: list[ClipInput]
    output: Path
    audio: Path | None = None
    subtitles: Path | None = None
    fade_to: ClipInput | None = None


def letterbox_filter(render: RenderSettings) -> str:
    w, h = render.width, render.height
    return (
        f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,setsar=1,fps={render.fps},format=yuv420p"
    )


def subtitles_filter(path: Path) -> str:
    escaped = str(path).replace("\\", "/").replace(":", "\\:").replace("'", "\\'")
    return f"subtitles=filename='{escaped}'"


def segment_inputs(job: SegmentJob, render: RenderSettings) -> list[str]:
    """Input arguments: clips, optional next-segment clip, then narration."""
    schedule = clip_schedule(job.segment.duration, len(job.clips), render.transition_duration)
    args: list[str] = []
    for clip in job.clips:
        if clip.type == MediaType.IMAGE:
            args += ["-loop", "1", "-framerate", str(render.fps)]
        else:
            args += ["-stream_loop", "-1"]
        args += ["-t", fmt(schedule.per_clip), "-i", str(clip.path)]
    if job.fade_to is not None:
        args += ["-i", str(job.fade_to.path)]
    if job.audio is not None:
        args += ["-i", str(job.audio)]
    else:
        args += [
            "-f", "lavfi",
            "-i", f"anullsrc=channel_layout=stereo:sample_rate={render.sample_rate}",
        ]
    return args


def segment_filter_graph(job: SegmentJob, render: RenderSettings) -> str:
    """
    Build the filter graph for one segment.

    Outputs are labelled ``[vout]`` and ``[aout]``.
    """
    segment = job.segment
    duration = segment.duration
    schedule = clip_schedule(duration, len(job.clips), render.transition_duration)
    letterbox = letterbox_filter(render)
    filters = []

    for index in range(len(job.clips)):
        filters.append(
            f"[{index}:v]{letterbox},trim=duration={fmt(schedule.per_clip)},"
            f"setpts=PTS-STARTPTS[v{index}]"
        )

    label = "v0"
    for index in range(1, len(job.clips)):
        out = f"x{index}"
        filters.append(
            f"[{label}][v{index}]xfade=transition=fade:duration={fmt(schedule.window)}"
            f":offset={fmt(schedule.offsets[index])}[{out}]"
        )
        label = out

    next_input = len(job.clips)
    if job.fade_to is not None:
        window = min(render.transition_duration, duration)
        frames = max(1, math.ceil(window * render.fps))
        filters.append(
            f"[{next_input}:v]trim=end_frame=1,{letterbox},"
            f"loop=loop={frames}:size=1:start=0,setpts=N/({render.fps}*TB),"
            f"format=yuva420p,fade=t=in:st=0:d={fmt(window)}:alpha=1,"
            f"setpts=PTS-STARTPTS+{fmt(duration - window)}/TB[next]"
        )
        filters.append(f"[{label}][next]overlay=eof_action=pass,format=yuv420p[faded]")
        label = "faded"
        next_input += 1

    if job.subtitles is not None:
        filters.append(f"[{label}]{subtitles_filter(job.subtitles)}[subbed]")
        label = "subbed"
    filters.append(f"[{label}]null[vout]")

    audio_format = f"aformat=sample_rates={render.sample_rate}:channel_layouts=stereo"
    if job.audio is not None:
        filters.append(
            f"[{next_input}:a]{audio_format},volume={fmt(segment.audio_volume)},"
            f"apad,atrim=duration={fmt(duration)}[aout]"
        )
    else:
        filters.append(f"[{next_input}:a]{audio_format},atrim=duration={fmt(duration)}[aout]")

    return ";".join(filters)


def segment_command(job: SegmentJob, render: RenderSettings) -> list[str]:
    return [
        render.ffmpeg_binary, "-hide_banner", "-loglevel", "error", "-y",
        *segment_inputs(job, render),
        "-filter_complex", segment_filter_graph(job, render),
        "-map", "[vout]", "-map", "[aout]",
        "-c:v", render.codec, "-preset", render.preset, "-pix_fmt", "yuv420p",
        "-r", str(render.fps),
        "-c:a", render.audio_codec, "-ar", str(render.sample_rate),
        "-t", fmt(job.segment.duration),
        str(job.output),
    ]


def concat_list(paths: list[Path]) -> str:
    """Concat demuxer script listing segment files in order."""
    lines = []
    for path in paths:
        quoted = str(Path(path).resolve()).replace("'", "'\\''")
        lines.append(f"file '{quoted}'")
    return "\n".join(lines) + "\n"


def concat_command(list_path: Path, output: Path, render: RenderSettings) -> list[str]:
    return [
        render.ffmpeg_binary, "-hide_banner", "-loglevel", "error", "-y",
        "-f", "concat", "-safe", "0", "-i", str(list_path),
        "-c", "copy", str(output),
    ]


def mix_filter_graph(tracks: list[AudioPlacement]) -> str | None:
    """
    Mix background tracks into the narration bed of input 0.

    Each track is cut to its duration, delayed to its start time and
    scaled by its volume; the bed decides the output length.
    """
    if not tracks:
        return None
    filters = []
    labels = ["[0:a]"]
    for index, track in enumerate(tracks, start=1):
        delay = int(round(track.start * 1000))
        filters.append(
            f"[{index}:a]atrim=duration={fmt(track.duration)},asetpts=PTS-STARTPTS,"
            f"adelay={delay}|{delay},volume={fmt(track.volume)}[a{index}]"
        )
        labels.append(f"[a{index}]")
    filters.append(
        f"{''.join(labels)}amix=inputs={len(labels)}:duration=first:"
        f"dropout_transition=0,dynaudnorm[aout]"
    )
    return ";".join(filters)


def mix_command(
    visuals: Path,
    tracks: list[AudioPlacement],
    paths: Mapping[str, Path],
    output: Path,
    render: RenderSettings,
) -> list[str]:
    cmd = [render.ffmpeg_binary, "-hide_banner", "-loglevel", "error", "-y", "-i", str(visuals)]
    for track in tracks:
        cmd += ["-i", str(paths[track.url])]
    graph = mix_filter_graph(tracks)
    if graph is None:
        cmd += ["-map", "0:v", "-map", "0:a"]
    else:
        cmd += ["-filter_complex", graph, "-map", "0:v", "-map", "[aout]"]
    cmd += ["-c:v", "copy", "-c:a", render.audio_codec, "-shortest", str(output)]
    return cmd


def build_segment_jobs(
    project: Project,
    paths: Mapping[str, Path],
    job_dir: Path,
    layout: CaptionLayout,
) -> list[SegmentJob]:
    """Resolve a project into per-segment jobs, writing subtitle files."""
    segments = project.segments
    jobs = []
    for index, segment in enumerate(segments):
        fade_to = None
        if segment.transition == Transition.FADE and index < len(segments) - 1:
            first = segments[index + 1].media[0]
            fade_to = ClipInput(paths[first.url], first.type)
        jobs.append(
            SegmentJob(
                segment=segment,
                clips=[ClipInput(paths[clip.url], clip.type) for clip in segment.media],
                output=job_dir / f"seg_{index:03d}.mp4",
                audio=paths[segment.audio_url] if segment.audio_url else None,
                subtitles=write_ass_file(segment, layout, job_dir / f"subs_{index:03d}.ass"),
                fade_to=fade_to,
            )
        )
    return jobs


class FfmpegRenderer:
    """Render engine driving ffmpeg processes."""

    name = "ffmpeg"

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
        Render ``project`` to ``output_path`` using the assets in ``paths``.

        Raises:
            RenderError: if ffmpeg is missing or exits with an error
            ExportCancelled: if ``cancel`` fires between or during runs
        """
        render = self.settings.render
        layout = CaptionLayout.from_settings(self.settings)
        jobs = build_segment_jobs(project, paths, job_dir, layout)
        steps = len(jobs) + 2

        for index, job in enumerate(jobs, start=1):
            cancel.raise_if_cancelled()
            logger.info(f"Rendering segment {index} of {len(jobs)} ({job.segment.duration:.2f}s)")
            progress((index - 1) / steps, f"Rendering segment {index} of {len(jobs)}")
            self._run(segment_command(job, render), cancel, f"segment {index}")
            progress(index / steps, f"Rendered segment {index} of {len(jobs)}")

        list_path = job_dir / "concat_list.txt"
        list_path.write_text(concat_list([job.output for job in jobs]), encoding="utf-8")
        merged = job_dir / "merged_visuals.mp4"
        self._run(concat_command(list_path, merged, render), cancel, "concat")
        progress((steps - 1) / steps, "Mixing audio")

        tracks = build_audio_plan(project).background
        self._run(mix_command(merged, tracks, paths, Path(output_path), render), cancel, "mix")
        progress(1.0, "Finalizing")
        return Path(output_path)

    def _run(self, cmd: list[str], cancel: CancelToken, stage: str) -> None:
        logger.debug(f"ffmpeg {stage}: {' '.join(cmd)}")
        try:
            process = subprocess.Popen(
                cmd, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, text=True
            )
        except FileNotFoundError as e:
            raise RenderError(f"ffmpeg not found: {cmd[0]}") from e

        while True:
            try:
                _, stderr = process.communicate(timeout=0.25)
                break
            except subprocess.TimeoutExpired:
                if cancel.cancelled:
                    process.terminate()
                    process.wait()
                    raise ExportCancelled("Export cancelled") from None

        if process.returncode != 0:
            detail = (stderr or "").strip()[-800:]
            raise RenderError(f"ffmpeg failed during {stage} (exit {process.returncode}): {detail}")


def ffmpeg_available(binary: str = "ffmpeg") -> bool:
    """Check that the ffmpeg binary runs."""
    try:
        subprocess.run([binary, "-version"], capture_output=True, check=True)
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False
