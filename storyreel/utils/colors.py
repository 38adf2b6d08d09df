"""
CSS color parsing shared by the Pillow painter and the ASS writer.
"""

import re

from PIL import ImageColor

_RGBA_RE = re.compile(
    r"^rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+%?)\s*)?\)$",
    re.IGNORECASE,
)


def parse_color(value: str) -> tuple[int, int, int, int]:
    """
    Parse a CSS color into an RGBA tuple (0-255 per channel).

    Accepts hex forms, ``rgb()``/``rgba()`` with a fractional alpha as the
    browser does, and any named color Pillow knows.

    Raises:
        ValueError: if the color cannot be parsed
    """
    text = value.strip()
    match = _RGBA_RE.match(text)
    if match:
        r, g, b = (int(round(float(c))) for c in match.groups()[:3])
        alpha = match.group(4)
        if alpha is None:
            a = 255
        elif alpha.endswith("%"):
            a = int(round(float(alpha[:-1]) * 2.55))
        else:
            a = int(round(float(alpha) * 255))
        return (_clamp(r), _clamp(g), _clamp(b), _clamp(a))

    rgb = ImageColor.getrgb(text)
    if len(rgb) == 3:
        return (*rgb, 255)
    return rgb


def to_ass_color(value: str) -> str:
    """Convert a CSS color to an ASS ``&HAABBGGRR`` literal."""
    r, g, b, a = parse_color(value)
    return f"&H{255 - a:02X}{b:02X}{g:02X}{r:02X}"


def _clamp(channel: int) -> int:
    return max(0, min(255, channel))
