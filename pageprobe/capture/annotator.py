"""DevTools-style screenshot annotation.

Draws a highlight box over the inspected element and an info tooltip next
to it (tag and size, color, font, margin and an accessibility section). The
tooltip is placed right of the element when it fits, then left, above and
below. With ``crop_to_element`` the image is cut down to the element plus
tooltip and every coordinate is re-projected into the crop.
"""

import io
from dataclasses import dataclass
from typing import Any

import structlog
from PIL import Image, ImageDraw, ImageFont

from ..exceptions import CaptureError, ParseError
from ..visual_ai.color import parse_color
from ..visual_ai.models import AccessibilitySnapshot, ElementSnapshot, Rect, Size

logger = structlog.get_logger(__name__)

TOOLTIP_WIDTH = 280
TOOLTIP_PADDING = 12
LINE_HEIGHT = 20
GAP = 20
EDGE_MARGIN = 20
CROP_PADDING = 40

HIGHLIGHT_FILL = (111, 168, 220, 77)
HIGHLIGHT_STROKE = (111, 168, 220, 204)
TOOLTIP_FILL = (255, 255, 255, 250)
TOOLTIP_STROKE = (0, 0, 0, 26)
TEXT_COLOR = (17, 24, 39, 255)
LABEL_COLOR = (107, 114, 128, 255)
SEPARATOR = "separator"


@dataclass(frozen=True)
class TooltipLine:
    label: str
    value: str = ""
    color: str | None = None


@dataclass
class AnnotatedImage:
    """An annotated screenshot and where things ended up in it."""

    data: bytes
    size: Size
    element_rect: Rect
    tooltip_rect: Rect
    crop_offset: tuple[float, float] = (0.0, 0.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "imageSize": self.size.to_dict(),
            "elementRect": self.element_rect.to_dict(),
            "tooltip": self.tooltip_rect.to_dict(),
            "cropOffset": {"x": self.crop_offset[0], "y": self.crop_offset[1]},
        }


def _px(value: float) -> str:
    return f"{int(round(value))}px"


def _format_color(value: str) -> str:
    try:
        return parse_color(value).to_hex()
    except ParseError:
        return value


def tooltip_lines(
    element: ElementSnapshot,
    accessibility: AccessibilitySnapshot | None = None,
) -> list[TooltipLine]:
    """Info lines shown in the tooltip, top to bottom."""
    rect = element.rect
    lines = [TooltipLine(element.tag_name, f"{round(rect.width)} × {round(rect.height)}", "#A855F7")]

    styles = element.styles
    if styles.get("color"):
        lines.append(TooltipLine("Color", _format_color(styles["color"])))

    font_parts = []
    if styles.get("fontSize"):
        font_parts.append(styles["fontSize"])
    if styles.get("fontFamily"):
        family = styles["fontFamily"].split(",")[0].strip().strip("\"'")
        font_parts.append(family if len(family) <= 20 else family[:17] + "...")
    if font_parts:
        lines.append(TooltipLine("Font", " ".join(font_parts)))

    m = element.box_model.margin
    margin = " ".join(_px(v) for v in (m.top, m.right, m.bottom, m.left))
    if margin != "0px 0px 0px 0px":
        lines.append(TooltipLine("Margin", margin))

    if accessibility is not None:
        lines.append(TooltipLine("", "", SEPARATOR))
        lines.append(TooltipLine("ACCESSIBILITY", "", "#9CA3AF"))
        if accessibility.contrast_ratio is not None:
            good = accessibility.contrast_ratio >= 4.5
            lines.append(
                TooltipLine(
                    "Contrast",
                    f"Aa {accessibility.contrast_ratio:.2f} {'✓' if good else '✗'}",
                    "#10B981" if good else "#EF4444",
                )
            )
        elif accessibility.contrast_error:
            lines.append(TooltipLine("Contrast", "unknown", "#9CA3AF"))
        if accessibility.accessible_name:
            lines.append(TooltipLine("Name", accessibility.accessible_name[:30]))
        if accessibility.role:
            lines.append(TooltipLine("Role", accessibility.role))
        lines.append(
            TooltipLine(
                "Keyboard-focusable",
                "✓" if accessibility.keyboard_focusable else "✗",
                "#10B981" if accessibility.keyboard_focusable else "#9CA3AF",
            )
        )
    return lines


def estimated_tooltip_height(has_accessibility: bool) -> int:
    return TOOLTIP_PADDING * 2 + (8 + (5 if has_accessibility else 0)) * LINE_HEIGHT


def place_tooltip(rect: Rect, image_size: Size, tooltip_height: float) -> tuple[float, float]:
    """Pick the tooltip corner: right, left, above, then below the element."""
    width, height = image_size.width, image_size.height
    candidates = [
        (
            rect.right + GAP,
            rect.y,
            rect.right + GAP + TOOLTIP_WIDTH < width - EDGE_MARGIN
            and rect.y + tooltip_height < height - EDGE_MARGIN,
        ),
        (
            rect.x - TOOLTIP_WIDTH - GAP,
            rect.y,
            rect.x - TOOLTIP_WIDTH - GAP > EDGE_MARGIN and rect.y + tooltip_height < height - EDGE_MARGIN,
        ),
        (
            rect.x,
            rect.y - tooltip_height - GAP,
            rect.y - tooltip_height - GAP > EDGE_MARGIN and rect.x + TOOLTIP_WIDTH < width - EDGE_MARGIN,
        ),
        (
            rect.x,
            rect.bottom + GAP,
            rect.bottom + GAP + tooltip_height < height - EDGE_MARGIN
            and rect.x + TOOLTIP_WIDTH < width - EDGE_MARGIN,
        ),
    ]
    x, y = next(((cx, cy) for cx, cy, fits in candidates if fits), candidates[0][:2])
    x = max(EDGE_MARGIN, min(x, width - TOOLTIP_WIDTH - EDGE_MARGIN))
    y = max(EDGE_MARGIN, min(y, height - tooltip_height - EDGE_MARGIN))
    return x, y


class ScreenshotAnnotator:
    """Draws element highlights and info tooltips onto screenshots."""

    def __init__(self, font_size: int = 13):
        self.font = ImageFont.load_default(size=font_size)
        self.small_font = ImageFont.load_default(size=max(8, font_size - 3))
        self.log = logger.bind(component="screenshot_annotator")

    def annotate(
        self,
        image_data: bytes,
        element: ElementSnapshot,
        element_rect: Rect,
        accessibility: AccessibilitySnapshot | None = None,
        crop_to_element: bool = False,
    ) -> AnnotatedImage:
        """Annotate a screenshot.

        Args:
            image_data: PNG bytes of the screenshot
            element: Snapshot supplying tag, styles and margins
            element_rect: Element rectangle in the screenshot's pixel space
            accessibility: Optional accessibility section
            crop_to_element: Cut the image down to element and tooltip
        """
        try:
            image = Image.open(io.BytesIO(image_data)).convert("RGBA")
        except Exception as e:
            raise CaptureError(f"Could not read screenshot: {e}") from e

        size = Size(*image.size)
        offset = (0.0, 0.0)
        rect = element_rect

        if crop_to_element:
            approx_height = estimated_tooltip_height(accessibility is not None)
            tx, ty = place_tooltip(rect, size, approx_height)
            left = max(0, int(min(rect.x, tx) - CROP_PADDING))
            top = max(0, int(min(rect.y, ty) - CROP_PADDING))
            right = min(size.width, int(max(rect.right, tx + TOOLTIP_WIDTH) + CROP_PADDING))
            bottom = min(size.height, int(max(rect.bottom, ty + approx_height) + CROP_PADDING))
            image = image.crop((left, top, right, bottom))
            size = Size(*image.size)
            offset = (float(left), float(top))
            rect = rect.translate(-left, -top)

        lines = tooltip_lines(element, accessibility)
        tooltip_height = TOOLTIP_PADDING * 2 + len(lines) * LINE_HEIGHT
        tx, ty = place_tooltip(rect, size, tooltip_height)
        tooltip = Rect(tx, ty, TOOLTIP_WIDTH, tooltip_height)

        overlay = Image.new("RGBA", image.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        draw.rectangle(
            [rect.x, rect.y, rect.right, rect.bottom],
            fill=HIGHLIGHT_FILL,
            outline=HIGHLIGHT_STROKE,
            width=1,
        )
        draw.rounded_rectangle(
            [tooltip.x, tooltip.y, tooltip.right, tooltip.bottom],
            radius=4,
            fill=TOOLTIP_FILL,
            outline=TOOLTIP_STROKE,
        )
        self._draw_lines(draw, lines, tooltip)

        annotated = Image.alpha_composite(image, overlay).convert("RGB")
        buffer = io.BytesIO()
        annotated.save(buffer, format="PNG")

        self.log.debug("Screenshot annotated", tag=element.tag_name, cropped=crop_to_element)
        return AnnotatedImage(
            data=buffer.getvalue(),
            size=size,
            element_rect=rect,
            tooltip_rect=tooltip,
            crop_offset=offset,
        )

    def outline(self, image_data: bytes, rect: Rect, color: str = "#FF0000", width: int = 3) -> bytes:
        """Draw a solid outline just outside ``rect`` (image space).

        The outline is clipped to the image, so an element touching the
        image edge keeps its outline on the remaining sides.

        Raises:
            ParseError: if ``color`` is not a CSS color
            CaptureError: if the screenshot cannot be read
        """
        if width < 1:
            raise ValueError(f"width must be >= 1, got {width}")
        stroke = parse_color(color)
        fill = (int(round(stroke.r)), int(round(stroke.g)), int(round(stroke.b)), int(round(stroke.a * 255)))

        try:
            image = Image.open(io.BytesIO(image_data)).convert("RGBA")
        except Exception as e:
            raise CaptureError(f"Could not read screenshot: {e}") from e

        left = max(0.0, rect.x - width)
        top = max(0.0, rect.y - width)
        right = min(float(image.width - 1), rect.right + width - 1)
        bottom = min(float(image.height - 1), rect.bottom + width - 1)

        overlay = Image.new("RGBA", image.size, (0, 0, 0, 0))
        ImageDraw.Draw(overlay).rectangle([left, top, right, bottom], outline=fill, width=width)
        outlined = Image.alpha_composite(image, overlay).convert("RGB")
        buffer = io.BytesIO()
        outlined.save(buffer, format="PNG")
        return buffer.getvalue()

    def _draw_lines(self, draw: ImageDraw.ImageDraw, lines: list[TooltipLine], tooltip: Rect) -> None:
        y = tooltip.y + TOOLTIP_PADDING
        left = tooltip.x + TOOLTIP_PADDING
        right = tooltip.right - TOOLTIP_PADDING

        for index, line in enumerate(lines):
            if line.color == SEPARATOR:
                draw.line([left, y + LINE_HEIGHT / 2, right, y + LINE_HEIGHT / 2], fill=TOOLTIP_STROKE, width=1)
            elif line.label == "ACCESSIBILITY":
                draw.text((left, y + 4), line.label, fill=LABEL_COLOR, font=self.small_font)
            else:
                label_color = line.color if (index == 0 and line.color) else LABEL_COLOR
                draw.text((left, y + 3), line.label, fill=label_color, font=self.font)
                value_color = line.color if (line.color and index > 0) else TEXT_COLOR
                value_width = draw.textlength(line.value, font=self.font)
                draw.text((right - value_width, y + 3), line.value, fill=value_color, font=self.font)
            y += LINE_HEIGHT
