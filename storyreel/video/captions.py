"""
Karaoke caption logic shared by preview and both render engines.

Chunking, caption resolution and ASS generation all go through the same
width estimate so every consumer picks identical chunk boundaries.
"""

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from config.settings import Settings, get_settings
from storyreel.models import (
    CaptionAnimation,
    CaptionChunk,
    CaptionPosition,
    Segment,
    WordState,
    WordTiming,
    word_state,
)
from storyreel.utils.colors import parse_color, to_ass_color


@dataclass(frozen=True)
class CaptionLayout:
    """Geometry inputs for chunking, derived from the render configuration."""

    width: int
    height: int
    max_width: float
    char_width_factor: float = 0.55
    first_chunk_grace: float = 0.1
    line_height: float = 1.2
    margin: int = 60
    padding: int = 20

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "CaptionLayout":
        settings = settings or get_settings()
        return cls(
            width=settings.render.width,
            height=settings.render.height,
            max_width=settings.render.width * settings.caption.width_ratio,
            char_width_factor=settings.caption.char_width_factor,
            first_chunk_grace=settings.caption.first_chunk_grace,
            line_height=settings.caption.line_height,
            margin=settings.caption.margin,
            padding=settings.caption.padding,
        )


@dataclass(frozen=True)
class CaptionFrame:
    """The chunk on screen at a given instant, with a state per word."""

    chunk: CaptionChunk
    lines: list[list[tuple[WordTiming, WordState]]]

    @property
    def active_word(self) -> WordTiming | None:
        for line in self.lines:
            for timing, state in line:
                if state == WordState.ACTIVE:
                    return timing
        return None


def estimate_word_width(word: str, font_size: float, char_width_factor: float = 0.55) -> float:
    """Estimated pixel width of a word plus its trailing space."""
    return (len(word) + 1) * font_size * char_width_factor


def chunk_word_timings(
    timings: list[WordTiming],
    font_size: float,
    max_lines: int,
    max_width: float,
    char_width_factor: float = 0.55,
) -> list[CaptionChunk]:
    """
    Greedily pack words into lines and lines into caption pages.

    A line closes when the next word would push it past ``max_width``; a
    chunk closes once ``max_lines`` lines are full. A word wider than
    ``max_width`` sits alone on its own line.

    Args:
        timings: Sorted word timings of one segment
        font_size: Caption font size in pixels
        max_lines: Lines per chunk
        max_width: Maximum line width in pixels
        char_width_factor: Glyph width estimate as a fraction of font size

    Returns:
        Contiguous chunks covering all timings in order
    """
    max_lines = max(1, max_lines)
    chunks: list[CaptionChunk] = []
    lines: list[list[WordTiming]] = []
    line: list[WordTiming] = []
    line_width = 0.0

    def close_chunk() -> None:
        chunks.append(
            CaptionChunk(start=lines[0][0].start, end=lines[-1][-1].end, lines=list(lines))
        )
        lines.clear()

    for timing in timings:
        width = estimate_word_width(timing.word, font_size, char_width_factor)
        if line and line_width + width > max_width:
            lines.append(line)
            line, line_width = [], 0.0
            if len(lines) >= max_lines:
                close_chunk()
        line.append(timing)
        line_width += width

    if line:
        lines.append(line)
    if lines:
        close_chunk()
    return chunks


def caption_chunks(segment: Segment, layout: CaptionLayout) -> list[CaptionChunk]:
    """Chunks for a segment using its own caption style."""
    if not segment.word_timings:
        return []
    style = segment.text_overlay_style
    return chunk_word_timings(
        segment.word_timings,
        style.font_size,
        style.max_caption_lines,
        layout.max_width,
        layout.char_width_factor,
    )


def resolve_caption(
    segment: Segment,
    local_time: float,
    layout: CaptionLayout,
    chunks: list[CaptionChunk] | None = None,
) -> CaptionFrame | None:
    """
    Find the caption page shown at ``local_time`` within a segment.

    Segments without word timings never show captions. Before the first
    chunk starts, the first chunk is shown during the grace window.
    """
    if chunks is None:
        chunks = caption_chunks(segment, layout)
    if not chunks:
        return None

    chunk = next((c for c in chunks if c.contains(local_time)), None)
    if chunk is None and local_time < layout.first_chunk_grace:
        chunk = chunks[0]
    if chunk is None:
        return None

    lines = [[(t, word_state(t, local_time)) for t in line] for line in chunk.lines]
    return CaptionFrame(chunk=chunk, lines=lines)


# --- ASS subtitles for the ffmpeg engine -------------------------------------

_ALIGNMENT = {
    CaptionPosition.BOTTOM: 2,
    CaptionPosition.CENTER: 5,
    CaptionPosition.TOP: 8,
}
_UPCOMING_TAGS = r"\c&HFFFFFF&\alpha&H4D&"


def _ass_time(seconds: float) -> str:
    """Format seconds as ASS timestamp (H:MM:SS.cc)."""
    centis = int(round(max(0.0, seconds) * 100))
    hours, centis = divmod(centis, 360000)
    minutes, centis = divmod(centis, 6000)
    secs, centis = divmod(centis, 100)
    return f"{hours}:{minutes:02d}:{secs:02d}.{centis:02d}"


def _ass_escape(word: str) -> str:
    return (
        word.replace("\\", "/")
        .replace("{", "(")
        .replace("}", ")")
        .replace("\n", " ")
    )


def _word_tags(segment: Segment, state: WordState) -> str:
    style = segment.text_overlay_style
    color = to_ass_color(style.color)[4:]  # drop alpha: &HBBGGRR
    if state == WordState.UPCOMING:
        return _UPCOMING_TAGS
    if state == WordState.PAST:
        return rf"\c&H{color}&\alpha&H00&"
    if style.animation == CaptionAnimation.SCALE:
        return rf"\c&H{color}&\alpha&H00&\fscx120\fscy120"
    if style.animation == CaptionAnimation.HIGHLIGHT:
        return rf"\c&H000000&\alpha&H00&\3c&H{color}&\bord4"
    return rf"\c&H{color}&\alpha&H00&"


def _dialogue(segment: Segment, frame: CaptionFrame, start: float, end: float) -> str:
    rendered_lines = []
    for line in frame.lines:
        words = [
            "{\\r" + _word_tags(segment, state) + "}" + _ass_escape(timing.word)
            for timing, state in line
        ]
        rendered_lines.append(" ".join(words))
    text = r"\N".join(rendered_lines)
    return f"Dialogue: 0,{_ass_time(start)},{_ass_time(end)},Default,,0,0,0,,{text}"


def caption_events(
    segment: Segment, layout: CaptionLayout
) -> list[tuple[float, float, CaptionFrame]]:
    """
    Break a segment's captions into intervals of constant word states.

    Each interval is evaluated with the same resolver the preview uses, so
    the burned-in subtitles change exactly where the preview does.
    """
    chunks = caption_chunks(segment, layout)
    if not chunks:
        return []

    cut_points = {0.0, segment.duration}
    first_start = chunks[0].start
    if first_start > 0:
        cut_points.add(min(first_start, layout.first_chunk_grace))
    for chunk in chunks:
        cut_points.update((chunk.start, chunk.end))
        for timing in chunk.timings:
            cut_points.update((timing.start, timing.end))

    ordered = sorted(t for t in cut_points if 0.0 <= t <= segment.duration)
    events = []
    for start, end in zip(ordered, ordered[1:]):
        if end - start < 0.005:
            continue
        frame = resolve_caption(segment, (start + end) / 2, layout, chunks)
        if frame is not None:
            events.append((start, end, frame))
    return events


def build_ass_script(segment: Segment, layout: CaptionLayout) -> str:
    """Render a segment's karaoke captions as an ASS subtitle script."""
    style = segment.text_overlay_style
    font_name = style.font_family.split(",")[0].strip().strip("'\"") or "Sans"
    _, _, _, bg_alpha = parse_color(style.background_color)
    if bg_alpha > 0:
        border_style, outline_colour, outline = 3, to_ass_color(style.background_color), 4
    else:
        border_style, outline_colour, outline = 1, "&H00000000", 2

    header = (
        "[Script Info]\n"
        "ScriptType: v4.00+\n"
        f"PlayResX: {layout.width}\n"
        f"PlayResY: {layout.height}\n"
        "WrapStyle: 2\n"
        "\n"
        "[V4+ Styles]\n"
        "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, "
        "OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, "
        "ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, "
        "MarginL, MarginR, MarginV, Encoding\n"
        f"Style: Default,{font_name},{style.font_size},&H00FFFFFF,&H000000FF,"
        f"{outline_colour},&H80000000,-1,0,0,0,100,100,0,0,{border_style},"
        f"{outline},0,{_ALIGNMENT[style.position]},10,10,{layout.margin},1\n"
        "\n"
        "[Events]\n"
        "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, "
        "Effect, Text\n"
    )
    lines = [_dialogue(segment, frame, start, end) for start, end, frame in caption_events(segment, layout)]
    return header + "".join(line + "\n" for line in lines)


def write_ass_file(segment: Segment, layout: CaptionLayout, output_path: Path) -> Path | None:
    """
    Write the segment's ASS file, or return None when it has no captions.
    """
    if not segment.word_timings:
        return None
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(build_ass_script(segment, layout), encoding="utf-8")
    logger.debug(f"Wrote subtitles for segment {segment.id} to {output_path}")
    return output_path
