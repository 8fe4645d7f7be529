"""Geometry, color math, data models and accessibility grading."""

from .accessibility_analyzer import (
    AccessibilityAnalyzer,
    ContrastGrade,
    ContrastIssue,
    ContrastReport,
)
from .color import (
    RGBA,
    BackgroundResolution,
    color_contrast,
    contrast_ratio,
    parse_color,
    relative_luminance,
    resolve_effective_background,
)
from .geometry import (
    alignment,
    clamp_to_page,
    edges_between,
    element_spacing,
    expand_box,
    intersects,
    normalize_clip,
    project_to_image_space,
    quad_to_rect,
)
from .models import (
    AccessibilitySnapshot,
    BoxEdges,
    BoxModel,
    CaptureRegion,
    ElementSnapshot,
    ElementSpacing,
    ElementSummary,
    Rect,
    Size,
)

__all__ = [
    "AccessibilityAnalyzer",
    "ContrastGrade",
    "ContrastIssue",
    "ContrastReport",
    "RGBA",
    "BackgroundResolution",
    "color_contrast",
    "contrast_ratio",
    "parse_color",
    "relative_luminance",
    "resolve_effective_background",
    "alignment",
    "clamp_to_page",
    "edges_between",
    "element_spacing",
    "expand_box",
    "intersects",
    "normalize_clip",
    "project_to_image_space",
    "quad_to_rect",
    "AccessibilitySnapshot",
    "BoxEdges",
    "BoxModel",
    "CaptureRegion",
    "ElementSnapshot",
    "ElementSpacing",
    "ElementSummary",
    "Rect",
    "Size",
]
