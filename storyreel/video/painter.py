"""
Karaoke caption painter for the frame compositor and still previews.

Draws a resolved CaptionFrame onto a Pillow image: the background box,
then every word colored by its state, with the active word animated.
"""

from functools import lru_cache

from loguru import logger
from PIL import Image, ImageDraw, ImageFont

from config.settings import Settings, get_settings
from storyreel.models import CaptionAnimation, CaptionPosition, TextOverlayStyle, WordState
from storyreel.utils.colors import parse_color
from storyreel.video.captions import CaptionFrame, CaptionLayout

UPCOMING_COLOR = (255, 255, 255, int(255 * 0.7))
ACTIVE_SCALE = 1.2
SLIDE_UP_OFFSET = -10
_FALLBACK_FONTS = ("DejaVuSans-Bold.ttf", "DejaVuSans.ttf", "Arial.ttf", "arial.ttf")


@lru_cache(maxsize=64)
def load_font(family: str, size: int, font_path: str | None = None) -> ImageFont.FreeTypeFont:
    """
    Resolve a CSS font family to a Pillow font.

    Tries the configured font file, then every family in the list, then a
    few common system fonts, and finally Pillow's bundled default.
    """
    candidates = []
    if font_path:
        candidates.append(font_path)
    for name in family.split(","):
        name = name.strip().strip("'\"")
        if name and name not in ("sans-serif", "serif", "monospace"):
            candidates.extend((name, f"{name}.ttf"))
    candidates.extend(_FALLBACK_FONTS)

    for candidate in candidates:
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue

    logger.warning(f"No TrueType font found for '{family}', using Pillow default")
    return ImageFont.load_default(size=size)


class CaptionPainter:
    """Paint caption frames with a segment's text overlay style."""

    def __init__(self, layout: CaptionLayout | None = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.layout = layout or CaptionLayout.from_settings(self.settings)

    def _font(self, style: TextOverlayStyle, size: float) -> ImageFont.FreeTypeFont:
        return load_font(style.font_family, int(round(size)), self.settings.caption.font_path)

    def block_origin(self, style: TextOverlayStyle, line_count: int) -> tuple[float, float]:
        """Vertical center of the caption block and its height."""
        block_height = line_count * style.font_size * self.layout.line_height
        if style.position == CaptionPosition.TOP:
            center_y = self.layout.margin + block_height / 2
        elif style.position == CaptionPosition.CENTER:
            center_y = self.layout.height / 2
        else:
            center_y = self.layout.height - self.layout.margin - block_height / 2
        return center_y, block_height

    def paint(self, image: Image.Image, frame: CaptionFrame, style: TextOverlayStyle) -> Image.Image:
        """
        Composite the caption frame onto ``image``.

        Returns:
            A new RGB image of the same size
        """
        base = image.convert("RGBA")
        overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)

        font = self._font(style, style.font_size)
        space = draw.textlength(" ", font=font)
        line_height = style.font_size * self.layout.line_height
        center_y, block_height = self.block_origin(style, len(frame.lines))

        line_widths = [
            sum(draw.textlength(timing.word, font=font) for timing, _ in line)
            + space * max(0, len(line) - 1)
            for line in frame.lines
        ]
        block_width = max(line_widths, default=0)

        background = parse_color(style.background_color)
        if background[3] > 0:
            pad = self.layout.padding
            left = self.layout.width / 2 - block_width / 2 - pad
            top = center_y - block_height / 2 - pad
            draw.rectangle(
                (left, top, left + block_width + 2 * pad, top + block_height + 2 * pad),
                fill=background,
            )

        color = parse_color(style.color)
        top = center_y - block_height / 2
        for index, line in enumerate(frame.lines):
            line_center_y = top + (index + 0.5) * line_height
            x = self.layout.width / 2 - line_widths[index] / 2
            for timing, state in line:
                word_width = draw.textlength(timing.word, font=font)
                self._paint_word(
                    draw, timing.word, state, style, font, color,
                    x + word_width / 2, line_center_y, word_width,
                )
                x += word_width + space

        return Image.alpha_composite(base, overlay).convert("RGB")

    def _paint_word(self, draw, word, state, style, font, color, center_x, center_y, width):
        if state == WordState.UPCOMING:
            draw.text((center_x, center_y), word, font=font, fill=UPCOMING_COLOR, anchor="mm")
            return
        if state == WordState.PAST or style.animation == CaptionAnimation.NONE:
            draw.text((center_x, center_y), word, font=font, fill=color, anchor="mm")
            return

        if style.animation == CaptionAnimation.SCALE:
            scaled = self._font(style, style.font_size * ACTIVE_SCALE)
            draw.text((center_x, center_y), word, font=scaled, fill=color, anchor="mm")
        elif style.animation == CaptionAnimation.SLIDE_UP:
            draw.text(
                (center_x, center_y + SLIDE_UP_OFFSET), word, font=font, fill=color, anchor="mm"
            )
        elif style.animation == CaptionAnimation.HIGHLIGHT:
            half_height = style.font_size * self.layout.line_height / 2
            draw.rectangle(
                (center_x - width / 2 - 4, center_y - half_height,
                 center_x + width / 2 + 4, center_y + half_height),
                fill=color,
            )
            draw.text((center_x, center_y), word, font=font, fill=(0, 0, 0, 255), anchor="mm")
