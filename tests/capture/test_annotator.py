"""Tests for capture/annotator.py."""

import io

import pytest
from PIL import Image

from pageprobe.capture.annotator import (
    EDGE_MARGIN,
    GAP,
    TOOLTIP_WIDTH,
    ScreenshotAnnotator,
    place_tooltip,
    tooltip_lines,
)
from pageprobe.exceptions import CaptureError, ParseError
from pageprobe.visual_ai.models import (
    AccessibilitySnapshot,
    BoxEdges,
    BoxModel,
    ElementSnapshot,
    Rect,
    Size,
)


@pytest.fixture
def button():
    return ElementSnapshot(
        tag_name="button",
        rect=Rect(600, 300, 120.4, 40),
        styles={"color": "rgb(255, 255, 255)", "fontSize": "16px", "fontFamily": '"Inter", sans-serif'},
        box_model=BoxModel(margin=BoxEdges(top=4, right=8, bottom=4, left=8)),
    )


@pytest.fixture
def button_a11y():
    return AccessibilitySnapshot(
        contrast_ratio=3.2,
        passes_aa=False,
        passes_aaa=False,
        accessible_name="Start free trial",
        role="button",
        keyboard_focusable=True,
    )


class TestTooltipLines:
    """Tests for tooltip content."""

    def test_element_lines(self, button):
        lines = tooltip_lines(button)
        assert [(line.label, line.value) for line in lines] == [
            ("button", "120 × 40"),
            ("Color", "#FFFFFF"),
            ("Font", "16px Inter"),
            ("Margin", "4px 8px 4px 8px"),
        ]

    def test_zero_margin_omitted(self):
        element = ElementSnapshot(tag_name="div", rect=Rect(0, 0, 10, 10))
        assert [line.label for line in tooltip_lines(element)] == ["div"]

    def test_accessibility_section(self, button, button_a11y):
        lines = tooltip_lines(button, button_a11y)
        labels = [line.label for line in lines]
        assert "ACCESSIBILITY" in labels
        contrast = next(line for line in lines if line.label == "Contrast")
        assert contrast.value == "Aa 3.20 ✗"
        assert contrast.color == "#EF4444"
        assert next(line for line in lines if line.label == "Role").value == "button"

    def test_unknown_contrast(self, button):
        a11y = AccessibilitySnapshot(
            contrast_ratio=None, passes_aa=None, passes_aaa=None, contrast_error="Unparseable color: var(--x)"
        )
        contrast = next(line for line in tooltip_lines(button, a11y) if line.label == "Contrast")
        assert contrast.value == "unknown"


class TestPlaceTooltip:
    """Tests for tooltip placement order."""

    SIZE = Size(1000, 600)

    def test_right(self):
        assert place_tooltip(Rect(100, 100, 200, 50), self.SIZE, 200) == (300 + GAP, 100)

    def test_left(self):
        assert place_tooltip(Rect(650, 100, 200, 50), self.SIZE, 200) == (650 - TOOLTIP_WIDTH - GAP, 100)

    def test_above(self):
        assert place_tooltip(Rect(100, 400, 850, 50), self.SIZE, 200) == (100, 400 - 200 - GAP)

    def test_nothing_fits_stays_inside(self):
        """Test the fallback is clamped into the image."""
        x, y = place_tooltip(Rect(0, 0, 1000, 600), self.SIZE, 200)
        assert EDGE_MARGIN <= x <= 1000 - TOOLTIP_WIDTH - EDGE_MARGIN
        assert EDGE_MARGIN <= y <= 600 - 200 - EDGE_MARGIN


class TestAnnotate:
    """Tests for ScreenshotAnnotator.annotate."""

    def test_annotate_full_image(self, png_factory, button):
        annotator = ScreenshotAnnotator()
        rect = Rect(600, 300, 100, 40)

        result = annotator.annotate(png_factory(1280, 720), button, rect)

        assert result.size == Size(1280, 720)
        assert result.element_rect == rect
        assert result.tooltip_rect.x == rect.right + GAP
        assert result.crop_offset == (0.0, 0.0)
        with Image.open(io.BytesIO(result.data)) as image:
            assert image.size == (1280, 720)
            # Highlight tints the element area
            assert image.getpixel((650, 320)) != (255, 255, 255)

    def test_crop_to_element(self, png_factory, button, button_a11y):
        """Test cropping re-projects the element into the crop."""
        annotator = ScreenshotAnnotator()

        result = annotator.annotate(
            png_factory(1280, 720), button, Rect(600, 300, 100, 40), button_a11y, crop_to_element=True
        )

        assert result.crop_offset == (560.0, 260.0)
        assert result.element_rect == Rect(40, 40, 100, 40)
        assert result.size.width < 1280 and result.size.height < 720
        assert Rect(0, 0, result.size.width, result.size.height).contains(result.element_rect)
        assert result.to_dict()["cropOffset"] == {"x": 560.0, "y": 260.0}

    def test_unreadable_image(self, button):
        with pytest.raises(CaptureError):
            ScreenshotAnnotator().annotate(b"garbage", button, Rect(0, 0, 10, 10))


class TestOutline:
    """Tests for the solid highlight outline."""

    def test_outline_just_outside_element(self, png_factory):
        annotator = ScreenshotAnnotator()
        data = annotator.outline(png_factory(100, 60), Rect(10, 10, 80, 40), "#FF0000", width=3)

        with Image.open(io.BytesIO(data)) as image:
            image = image.convert("RGB")
            assert image.size == (100, 60)
            assert image.getpixel((8, 30)) == (255, 0, 0)
            assert image.getpixel((91, 30)) == (255, 0, 0)
            assert image.getpixel((50, 30)) == (255, 255, 255)
            assert image.getpixel((5, 30)) == (255, 255, 255)

    def test_outline_clipped_to_image(self, png_factory):
        """Test an element filling the image keeps its outline on the border."""
        annotator = ScreenshotAnnotator()
        data = annotator.outline(png_factory(100, 60), Rect(0, 0, 100, 60), "rgb(0, 128, 0)", width=2)
        with Image.open(io.BytesIO(data)) as image:
            image = image.convert("RGB")
            assert image.getpixel((0, 30)) == (0, 128, 0)
            assert image.getpixel((99, 30)) == (0, 128, 0)
            assert image.getpixel((50, 30)) == (255, 255, 255)

    def test_bad_color(self, png_factory):
        with pytest.raises(ParseError):
            ScreenshotAnnotator().outline(png_factory(10, 10), Rect(2, 2, 4, 4), "not-a-color")
