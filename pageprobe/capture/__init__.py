"""Screenshot region planning, capture and annotation."""

from .annotator import AnnotatedImage, ScreenshotAnnotator, TooltipLine, place_tooltip, tooltip_lines
from .projector import (
    CaptureOutcome,
    CaptureProjector,
    CaptureRequest,
    CaptureResult,
    decode_image_size,
)

__all__ = [
    "AnnotatedImage",
    "ScreenshotAnnotator",
    "TooltipLine",
    "place_tooltip",
    "tooltip_lines",
    "CaptureOutcome",
    "CaptureProjector",
    "CaptureRequest",
    "CaptureResult",
    "decode_image_size",
]
