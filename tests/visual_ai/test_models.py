"""Tests for visual_ai/models.py."""

import pytest

from pageprobe.visual_ai.models import (
    AccessibilitySnapshot,
    BoxEdges,
    BoxModel,
    CaptureRegion,
    ElementSnapshot,
    ElementSummary,
    Rect,
    Size,
)


@pytest.fixture
def measure_payload():
    """Element probe ``measure`` payload for a navigation link."""
    return {
        "tagName": "a",
        "id": "docs-link",
        "className": "nav-link active",
        "textContent": "Documentation",
        "rect": {"x": 660, "y": 133, "width": 600, "height": 38},
        "viewportPosition": {"x": 660, "y": 33, "width": 600, "height": 38},
        "boxModel": {
            "margin": {"top": 0, "right": 8, "bottom": 0, "left": 8},
            "padding": {"top": 4, "right": 12, "bottom": 4, "left": 12},
            "border": {"top": 1, "right": 1, "bottom": 1, "left": 1},
        },
        "styles": {"color": "rgb(17, 24, 39)", "fontSize": "16px"},
        "attributes": {"href": "/docs", "class": "nav-link active"},
        "parent": {"tagName": "nav", "id": "", "className": "top-nav"},
        "children": [],
        "visibility": {"isVisible": True, "inViewport": True, "displayed": True},
    }


class TestRect:
    """Tests for the Rect dataclass."""

    def test_edges_and_area(self):
        rect = Rect(10, 20, 100, 50)
        assert rect.right == 110
        assert rect.bottom == 70
        assert rect.area == 5000

    def test_contains_with_tolerance(self):
        outer = Rect(0, 0, 100, 100)
        assert outer.contains(Rect(0, 0, 100, 100))
        assert outer.contains(Rect(0, 0, 100.0000000001, 100))
        assert not outer.contains(Rect(-1, 0, 10, 10))

    def test_intersection(self):
        assert Rect(0, 0, 100, 100).intersection(Rect(50, 50, 100, 100)) == Rect(50, 50, 50, 50)
        assert Rect(0, 0, 10, 10).intersection(Rect(20, 20, 10, 10)) is None

    def test_intersection_zero_area(self):
        """Test a zero-height rect keeps its span when it lies inside the other."""
        page = Rect(0, 0, 1920, 3000)
        assert Rect(100, 200, 300, 0).intersection(page) == Rect(100, 200, 300, 0)
        assert Rect(100, 200, 300, 0).intersects(page)
        assert not Rect(0, 0, 10, 10).intersects(Rect(10, 0, 10, 10))

    def test_translate_and_scale(self):
        assert Rect(10, 10, 20, 20).translate(-10, 5) == Rect(0, 15, 20, 20)
        assert Rect(1, 2, 3, 4).scale(2) == Rect(2, 4, 6, 8)

    def test_frozen(self):
        rect = Rect(0, 0, 1, 1)
        with pytest.raises(AttributeError):
            rect.x = 5

    def test_from_dict_tolerates_missing_keys(self):
        assert Rect.from_dict({"x": 3}) == Rect(3, 0, 0, 0)


class TestBoxModel:
    """Tests for BoxEdges and BoxModel."""

    def test_from_dict_none(self):
        assert BoxModel.from_dict(None) == BoxModel()

    def test_edges_from_dict_nulls(self):
        assert BoxEdges.from_dict({"top": None, "left": 4}) == BoxEdges(0, 0, 0, 4)

    def test_to_dict(self):
        model = BoxModel(margin=BoxEdges.uniform(8))
        assert model.to_dict()["margin"] == {"top": 8, "right": 8, "bottom": 8, "left": 8}


class TestElementSnapshot:
    """Tests for ElementSnapshot serialization."""

    def test_from_dict(self, measure_payload):
        snapshot = ElementSnapshot.from_dict(measure_payload)
        assert snapshot.tag_name == "a"
        assert snapshot.id == "docs-link"
        assert snapshot.rect == Rect(660, 133, 600, 38)
        assert snapshot.viewport_rect == Rect(660, 33, 600, 38)
        assert snapshot.box_model.padding.left == 12
        assert snapshot.parent == ElementSummary(tag_name="nav", class_name="top-nav")
        assert snapshot.children == ()
        assert snapshot.visibility["inViewport"] is True

    def test_to_dict_wire_keys(self, measure_payload):
        data = ElementSnapshot.from_dict(measure_payload).to_dict()
        assert data["tagName"] == "a"
        assert data["viewportPosition"] == {"x": 660, "y": 33, "width": 600, "height": 38}
        assert data["boxModel"]["margin"]["right"] == 8
        assert data["parent"]["tagName"] == "nav"
        assert data["children"] == []
        assert "computedStyles" not in data

    def test_optional_sections_omitted(self):
        data = ElementSnapshot(tag_name="div", rect=Rect(0, 0, 1, 1)).to_dict()
        assert "parent" not in data
        assert "children" not in data
        assert "attributes" not in data


class TestAccessibilitySnapshot:
    """Tests for AccessibilitySnapshot."""

    def test_to_dict_rounds_contrast(self):
        snapshot = AccessibilitySnapshot(contrast_ratio=4.4786, passes_aa=False, passes_aaa=False)
        assert snapshot.to_dict()["contrast"] == 4.48
        assert snapshot.contrast_known

    def test_unknown_contrast(self):
        snapshot = AccessibilitySnapshot(
            contrast_ratio=None,
            passes_aa=None,
            passes_aaa=None,
            contrast_error="could not compute contrast",
        )
        data = snapshot.to_dict()
        assert data["contrast"] is None
        assert data["passesAA"] is None
        assert data["contrastError"] == "could not compute contrast"
        assert not snapshot.contrast_known


class TestCaptureRegion:
    """Tests for CaptureRegion."""

    def test_image_rect_and_expected_size(self):
        region = CaptureRegion(
            region=Rect(630, 103, 660, 98),
            image_size=Size(1320, 196),
            element_bounding_box=Rect(60, 60, 1200, 76),
            padding=30,
            zoom=2,
        )
        assert region.image_rect == Rect(0, 0, 1320, 196)
        assert region.expected_image_size == Size(1320, 196)
        assert region.image_rect.contains(region.element_bounding_box)

    def test_with_image_size(self):
        region = CaptureRegion(region=Rect(0, 0, 10, 10), image_size=Size(10, 10), element_bounding_box=None)
        assert region.with_image_size(Size(20, 20)).image_size == Size(20, 20)
        assert region.image_size == Size(10, 10)

    def test_dict_round_trip(self):
        region = CaptureRegion(
            region=Rect(630, 103, 660, 98),
            image_size=Size(660, 98),
            element_bounding_box=Rect(30, 30, 600, 38),
            padding=30,
            effective_padding=BoxEdges.uniform(30),
        )
        assert CaptureRegion.from_dict(region.to_dict()) == region
