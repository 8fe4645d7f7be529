"""Protocol-level (CDP) element inspection."""

from .protocol_inspector import (
    BoxModelQuads,
    InspectionResult,
    InspectorState,
    LayoutMetrics,
    ProtocolInspector,
)

__all__ = [
    "BoxModelQuads",
    "InspectionResult",
    "InspectorState",
    "LayoutMetrics",
    "ProtocolInspector",
]
