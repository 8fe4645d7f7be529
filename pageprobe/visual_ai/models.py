"""Data models for element inspection.

This module contains the immutable records produced by inspection calls:
rectangles and box models, element and accessibility snapshots, and the
capture region metadata that ties page space to image space.

Wire format (``to_dict``) uses camelCase keys so the JSON artifacts read the
same as the probe payloads they are built from.
"""

from dataclasses import dataclass, field, replace
from typing import Any


def _overlap(a0: float, a1: float, b0: float, b1: float) -> tuple[float, float] | None:
    """Common span of two intervals on one axis.

    Degenerate intervals (zero extent) use closed bounds.
    """
    low, high = max(a0, b0), min(a1, b1)
    if a1 == a0 or b1 == b0:
        return (low, high) if low <= high else None
    return (low, high) if low < high else None


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle: x, y, width, height."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, other: "Rect", tolerance: float = 1e-6) -> bool:
        """Check if ``other`` lies fully inside this rectangle."""
        return (
            other.x >= self.x - tolerance
            and other.y >= self.y - tolerance
            and other.right <= self.right + tolerance
            and other.bottom <= self.bottom + tolerance
        )

    def intersects(self, other: "Rect") -> bool:
        """Check if the two rectangles overlap.

        Rectangles with area must share a region of non-zero area; touching
        edges do not count. On an axis where either rectangle has zero
        extent, lying on the other's closed interval is enough, so an empty
        ``div`` inside the viewport still intersects it.
        """
        return self.intersection(other) is not None

    def intersection(self, other: "Rect") -> "Rect | None":
        span_x = _overlap(self.x, self.right, other.x, other.right)
        span_y = _overlap(self.y, self.bottom, other.y, other.bottom)
        if span_x is None or span_y is None:
            return None
        (left, right), (top, bottom) = span_x, span_y
        return Rect(left, top, right - left, bottom - top)

    def translate(self, dx: float, dy: float) -> "Rect":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def scale(self, factor: float) -> "Rect":
        return Rect(self.x * factor, self.y * factor, self.width * factor, self.height * factor)

    def rounded(self, ndigits: int = 2) -> "Rect":
        return Rect(
            round(self.x, ndigits),
            round(self.y, ndigits),
            round(self.width, ndigits),
            round(self.height, ndigits),
        )

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Rect":
        return cls(
            x=float(data.get("x", 0)),
            y=float(data.get("y", 0)),
            width=float(data.get("width", 0)),
            height=float(data.get("height", 0)),
        )

    @classmethod
    def from_edges(cls, left: float, top: float, right: float, bottom: float) -> "Rect":
        return cls(left, top, right - left, bottom - top)


@dataclass(frozen=True)
class Size:
    """Pixel dimensions of an image or page."""

    width: int
    height: int

    def to_dict(self) -> dict[str, int]:
        return {"width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Size":
        return cls(width=int(data["width"]), height=int(data["height"]))


@dataclass(frozen=True)
class BoxEdges:
    """Per-edge widths (top, right, bottom, left) of one box-model layer."""

    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0
    left: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"top": self.top, "right": self.right, "bottom": self.bottom, "left": self.left}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "BoxEdges":
        data = data or {}
        return cls(
            top=float(data.get("top", 0) or 0),
            right=float(data.get("right", 0) or 0),
            bottom=float(data.get("bottom", 0) or 0),
            left=float(data.get("left", 0) or 0),
        )

    @classmethod
    def uniform(cls, value: float) -> "BoxEdges":
        return cls(value, value, value, value)


@dataclass(frozen=True)
class BoxModel:
    """Margin, padding and border widths of an element."""

    margin: BoxEdges = field(default_factory=BoxEdges)
    padding: BoxEdges = field(default_factory=BoxEdges)
    border: BoxEdges = field(default_factory=BoxEdges)

    def to_dict(self) -> dict[str, Any]:
        return {
            "margin": self.margin.to_dict(),
            "padding": self.padding.to_dict(),
            "border": self.border.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "BoxModel":
        data = data or {}
        return cls(
            margin=BoxEdges.from_dict(data.get("margin")),
            padding=BoxEdges.from_dict(data.get("padding")),
            border=BoxEdges.from_dict(data.get("border")),
        )


@dataclass(frozen=True)
class ElementSpacing:
    """Distances and shared alignment lines between two elements.

    Gaps are the empty space between the boxes on each axis and are 0 when
    the boxes overlap on that axis. ``alignment`` lists the edges and
    centers the two boxes share (left, right, top, bottom, centerX,
    centerY).
    """

    horizontal_gap: float
    vertical_gap: float
    center_distance: float
    overlapping: bool
    alignment: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "horizontal": round(self.horizontal_gap, 2),
            "vertical": round(self.vertical_gap, 2),
            "centerDistance": round(self.center_distance, 2),
            "overlapping": self.overlapping,
            "alignment": list(self.alignment),
        }


@dataclass(frozen=True)
class ElementSummary:
    """Short description of a parent or child element."""

    tag_name: str
    id: str | None = None
    class_name: str | None = None
    text_content: str | None = None
    rect: Rect | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "tagName": self.tag_name,
            "id": self.id,
            "className": self.class_name,
        }
        if self.text_content is not None:
            result["textContent"] = self.text_content
        if self.rect is not None:
            result["rect"] = self.rect.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ElementSummary":
        rect = data.get("rect")
        return cls(
            tag_name=data.get("tagName", ""),
            id=data.get("id") or None,
            class_name=data.get("className") or None,
            text_content=data.get("textContent"),
            rect=Rect.from_dict(rect) if rect and "x" in rect else None,
        )


@dataclass(frozen=True)
class ElementSnapshot:
    """Geometry and styling of one element at the moment it was inspected.

    Snapshots are never mutated; every inspection call produces a new one.
    ``rect`` is in page space, ``viewport_rect`` in viewport space.
    """

    tag_name: str
    rect: Rect
    box_model: BoxModel = field(default_factory=BoxModel)
    id: str | None = None
    class_name: str | None = None
    text_content: str | None = None
    viewport_rect: Rect | None = None
    styles: dict[str, str] = field(default_factory=dict)
    computed_styles: dict[str, str] | None = None
    attributes: dict[str, str] | None = None
    parent: ElementSummary | None = None
    children: tuple[ElementSummary, ...] | None = None
    visibility: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "tagName": self.tag_name,
            "id": self.id,
            "className": self.class_name,
            "textContent": self.text_content,
            "rect": self.rect.to_dict(),
            "boxModel": self.box_model.to_dict(),
            "styles": dict(self.styles),
            "visibility": dict(self.visibility),
        }
        if self.viewport_rect is not None:
            result["viewportPosition"] = self.viewport_rect.to_dict()
        if self.computed_styles is not None:
            result["computedStyles"] = dict(self.computed_styles)
        if self.attributes is not None:
            result["attributes"] = dict(self.attributes)
        if self.parent is not None:
            result["parent"] = self.parent.to_dict()
        if self.children is not None:
            result["children"] = [child.to_dict() for child in self.children]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ElementSnapshot":
        viewport = data.get("viewportPosition")
        parent = data.get("parent")
        children = data.get("children")
        return cls(
            tag_name=data.get("tagName", ""),
            id=data.get("id") or None,
            class_name=data.get("className") or None,
            text_content=data.get("textContent"),
            rect=Rect.from_dict(data.get("rect") or {}),
            viewport_rect=Rect.from_dict(viewport) if viewport else None,
            box_model=BoxModel.from_dict(data.get("boxModel")),
            styles=dict(data.get("styles") or {}),
            computed_styles=data.get("computedStyles"),
            attributes=data.get("attributes"),
            parent=ElementSummary.from_dict(parent) if parent else None,
            children=tuple(ElementSummary.from_dict(c) for c in children) if children is not None else None,
            visibility=dict(data.get("visibility") or {}),
        )


@dataclass(frozen=True)
class AccessibilitySnapshot:
    """Accessibility metrics derived from an element's styles and attributes.

    ``contrast_ratio`` is ``None`` when a color could not be parsed; the
    reason is kept in ``contrast_error``. ``background_fallback`` is set when
    no opaque background was found up to the document root and the default
    was used, so the pass/fail flags can be treated with care.
    """

    contrast_ratio: float | None
    passes_aa: bool | None
    passes_aaa: bool | None
    accessible_name: str | None = None
    role: str | None = None
    keyboard_focusable: bool = False
    foreground: str | None = None
    background: str | None = None
    background_fallback: bool = False
    is_large_text: bool = False
    contrast_error: str | None = None

    @property
    def contrast_known(self) -> bool:
        return self.contrast_ratio is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "contrast": round(self.contrast_ratio, 2) if self.contrast_ratio is not None else None,
            "passesAA": self.passes_aa,
            "passesAAA": self.passes_aaa,
            "name": self.accessible_name,
            "role": self.role,
            "keyboardFocusable": self.keyboard_focusable,
            "foreground": self.foreground,
            "background": self.background,
            "backgroundFallback": self.background_fallback,
            "isLargeText": self.is_large_text,
            "contrastError": self.contrast_error,
        }


@dataclass(frozen=True)
class CaptureRegion:
    """Where a screenshot was taken and where the element sits inside it.

    ``region`` is the page-space clip passed to the screenshot call.
    ``image_size`` is the size of the produced image in pixels and is the
    ground truth for callers. ``element_bounding_box`` is in image space and
    always lies inside ``[0, 0, image_size.width, image_size.height]``.
    ``padding`` is the requested padding; ``effective_padding`` is what was
    applied on each edge after clamping to the page.
    """

    region: Rect
    image_size: Size
    element_bounding_box: Rect | None
    padding: float = 0.0
    effective_padding: BoxEdges = field(default_factory=BoxEdges)
    zoom: float = 1.0

    @property
    def image_rect(self) -> Rect:
        return Rect(0, 0, self.image_size.width, self.image_size.height)

    @property
    def expected_image_size(self) -> Size:
        return Size(
            width=int(round(self.region.width * self.zoom)),
            height=int(round(self.region.height * self.zoom)),
        )

    def with_image_size(self, size: Size) -> "CaptureRegion":
        return replace(self, image_size=size)

    def to_dict(self) -> dict[str, Any]:
        return {
            "region": self.region.to_dict(),
            "imageSize": self.image_size.to_dict(),
            "elementBoundingBox": (
                self.element_bounding_box.to_dict() if self.element_bounding_box is not None else None
            ),
            "padding": self.padding,
            "effectivePadding": self.effective_padding.to_dict(),
            "zoom": self.zoom,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CaptureRegion":
        bbox = data.get("elementBoundingBox")
        return cls(
            region=Rect.from_dict(data["region"]),
            image_size=Size.from_dict(data["imageSize"]),
            element_bounding_box=Rect.from_dict(bbox) if bbox else None,
            padding=float(data.get("padding", 0)),
            effective_padding=BoxEdges.from_dict(data.get("effectivePadding")),
            zoom=float(data.get("zoom", 1.0)),
        )
