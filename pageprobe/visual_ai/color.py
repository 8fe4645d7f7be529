"""Color parsing and WCAG 2.1 luminance/contrast math.

WCAG 2.1 Contrast Requirements:
- AA Normal Text: 4.5:1 minimum contrast ratio
- AA Large Text (24px+ or 18.66px bold): 3:1 minimum contrast ratio
- AAA Normal Text: 7:1 minimum contrast ratio
- AAA Large Text: 4.5:1 minimum contrast ratio

Relative luminance:
    L = 0.2126 * R + 0.7152 * G + 0.0722 * B
where R, G, B are linearized sRGB channels.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import NamedTuple

from ..exceptions import ParseError


class RGBA(NamedTuple):
    """An sRGB color with 0-255 channels and 0-1 alpha."""

    r: float
    g: float
    b: float
    a: float = 1.0

    @property
    def is_transparent(self) -> bool:
        return self.a <= 0

    @property
    def is_opaque(self) -> bool:
        return self.a >= 1

    def to_hex(self) -> str:
        r, g, b = (int(round(c)) for c in (self.r, self.g, self.b))
        return f"#{r:02X}{g:02X}{b:02X}"

    def to_css(self) -> str:
        r, g, b = (int(round(c)) for c in (self.r, self.g, self.b))
        if self.is_opaque:
            return f"rgb({r}, {g}, {b})"
        return f"rgba({r}, {g}, {b}, {round(self.a, 3)})"


WHITE = RGBA(255, 255, 255, 1.0)
BLACK = RGBA(0, 0, 0, 1.0)
TRANSPARENT = RGBA(0, 0, 0, 0.0)

# Guards the ancestor walk; real documents are far shallower
MAX_ANCESTOR_DEPTH = 1024

NAMED_COLORS = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "lime": (0, 255, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "yellow": (255, 255, 0),
    "cyan": (0, 255, 255),
    "aqua": (0, 255, 255),
    "magenta": (255, 0, 255),
    "fuchsia": (255, 0, 255),
    "silver": (192, 192, 192),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
    "maroon": (128, 0, 0),
    "olive": (128, 128, 0),
    "purple": (128, 0, 128),
    "teal": (0, 128, 128),
    "navy": (0, 0, 128),
    "orange": (255, 165, 0),
    "darkgray": (169, 169, 169),
    "darkgrey": (169, 169, 169),
    "lightgray": (211, 211, 211),
    "lightgrey": (211, 211, 211),
    "whitesmoke": (245, 245, 245),
}

_HEX_RE = re.compile(r"^#([0-9a-f]{3,4}|[0-9a-f]{6}|[0-9a-f]{8})$")
_FUNC_RE = re.compile(r"^rgba?\(\s*(.*?)\s*\)$")
_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)(e[+-]?\d+)?%?$")


def _parse_channel(token: str, original: str) -> float:
    if not _NUMBER_RE.match(token):
        raise ParseError(f"Invalid color channel '{token}'", value=original)
    if token.endswith("%"):
        value = float(token[:-1]) * 255 / 100
    else:
        value = float(token)
    return min(255.0, max(0.0, value))


def _parse_alpha(token: str, original: str) -> float:
    if not _NUMBER_RE.match(token):
        raise ParseError(f"Invalid alpha value '{token}'", value=original)
    value = float(token[:-1]) / 100 if token.endswith("%") else float(token)
    return min(1.0, max(0.0, value))


def parse_color(value: str) -> RGBA:
    """Parse a CSS color value.

    Handles:
    - Hex: #RGB, #RGBA, #RRGGBB, #RRGGBBAA
    - rgb()/rgba() in comma or space syntax, with optional percentages
    - ``transparent`` and common named colors

    Raises:
        ParseError: if the value is not a supported color
    """
    if not isinstance(value, str) or not value.strip():
        raise ParseError("Empty color value", value=value)

    text = value.strip().lower()

    if text == "transparent":
        return TRANSPARENT

    if text in NAMED_COLORS:
        return RGBA(*NAMED_COLORS[text], 1.0)

    hex_match = _HEX_RE.match(text)
    if hex_match:
        digits = hex_match.group(1)
        if len(digits) in (3, 4):
            digits = "".join(c * 2 for c in digits)
        r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
        a = int(digits[6:8], 16) / 255 if len(digits) == 8 else 1.0
        return RGBA(r, g, b, a)

    func_match = _FUNC_RE.match(text)
    if func_match:
        body = func_match.group(1)
        alpha_token = None
        if "/" in body:
            body, alpha_token = (part.strip() for part in body.split("/", 1))
        parts = [p for p in re.split(r"[\s,]+", body) if p]
        if alpha_token is None and len(parts) == 4:
            alpha_token = parts.pop()
        if len(parts) != 3:
            raise ParseError(f"Expected 3 color channels in '{value}'", value=value)
        r, g, b = (_parse_channel(p, value) for p in parts)
        a = _parse_alpha(alpha_token, value) if alpha_token is not None else 1.0
        return RGBA(r, g, b, a)

    raise ParseError(f"Unsupported color value '{value}'", value=value)


def _linearize(channel: float) -> float:
    c = channel / 255
    if c <= 0.03928:
        return c / 12.92
    return ((c + 0.055) / 1.055) ** 2.4


def relative_luminance(rgb: Sequence[float]) -> float:
    """Calculate WCAG relative luminance (0 to 1) of an sRGB color."""
    r, g, b = rgb[0], rgb[1], rgb[2]
    return 0.2126 * _linearize(r) + 0.7152 * _linearize(g) + 0.0722 * _linearize(b)


def contrast_ratio(lum_a: float, lum_b: float) -> float:
    """WCAG contrast ratio between two luminances (1:1 to 21:1)."""
    lighter = max(lum_a, lum_b)
    darker = min(lum_a, lum_b)
    return (lighter + 0.05) / (darker + 0.05)


def composite(top: RGBA, bottom: RGBA) -> RGBA:
    """Alpha-blend ``top`` over ``bottom``."""
    if top.is_opaque:
        return top
    alpha = top.a + bottom.a * (1 - top.a)
    if alpha <= 0:
        return TRANSPARENT

    def blend(t: float, b: float) -> float:
        return (t * top.a + b * bottom.a * (1 - top.a)) / alpha

    return RGBA(blend(top.r, bottom.r), blend(top.g, bottom.g), blend(top.b, bottom.b), alpha)


def color_contrast(foreground: RGBA, background: RGBA) -> float:
    """Contrast ratio of text drawn in ``foreground`` on ``background``."""
    fg = composite(foreground, background) if not foreground.is_opaque else foreground
    return contrast_ratio(relative_luminance(fg), relative_luminance(background))


@dataclass(frozen=True)
class BackgroundResolution:
    """Result of walking an element's ancestors for its background.

    Attributes:
        color: Effective opaque background color
        fallback: True if the document root was reached without an opaque
            background and the default color filled in
        depth: Ancestor depth of the opaque background (0 = the element
            itself), or None when the fallback was used
    """

    color: RGBA
    fallback: bool
    depth: int | None


def resolve_effective_background(
    chain: Sequence[str | RGBA],
    default: RGBA = WHITE,
) -> BackgroundResolution:
    """Find the background an element's text is actually drawn on.

    ``chain`` lists background colors from the element outward to the
    document root. The walk stops at the first opaque color; translucent
    layers passed on the way are composited over it.

    Raises:
        ParseError: if a color in the chain is malformed
    """
    layers: list[RGBA] = []
    base: RGBA | None = None
    depth: int | None = None

    for index, value in enumerate(chain[:MAX_ANCESTOR_DEPTH]):
        color = value if isinstance(value, RGBA) else parse_color(value)
        if color.is_transparent:
            continue
        if color.is_opaque:
            base = color
            depth = index
            break
        layers.append(color)

    fallback = base is None
    result = default if base is None else base
    for layer in reversed(layers):
        result = composite(layer, result)

    return BackgroundResolution(color=result, fallback=fallback, depth=depth)
