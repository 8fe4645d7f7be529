"""pageprobe: browser element inspection, probe injection and precise captures."""

from .config import CaptureMode, Settings, get_settings
from .element_inspector import (
    BeforeAfterCapture,
    ElementInspection,
    ElementInspector,
    ElementMeasurement,
    MultiInspection,
)
from .exceptions import (
    CaptureError,
    DuplicateIdError,
    ElementNotFoundError,
    ExtensionError,
    GeometryError,
    InjectionError,
    PageProbeError,
    ParseError,
    ProtocolError,
    SessionClosedError,
)
from .extensions import ExtensionRegistry, ExtensionResult, create_default_registry
from .inspector import ProtocolInspector
from .interaction import ActionSequencer, ActionStep, ActionType, CancellationToken, SequenceResult

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "CaptureMode",
    "Settings",
    "get_settings",
    "BeforeAfterCapture",
    "ElementInspection",
    "ElementInspector",
    "ElementMeasurement",
    "MultiInspection",
    "CaptureError",
    "DuplicateIdError",
    "ElementNotFoundError",
    "ExtensionError",
    "GeometryError",
    "InjectionError",
    "PageProbeError",
    "ParseError",
    "ProtocolError",
    "SessionClosedError",
    "ExtensionRegistry",
    "ExtensionResult",
    "create_default_registry",
    "ProtocolInspector",
    "ActionSequencer",
    "ActionStep",
    "ActionType",
    "CancellationToken",
    "SequenceResult",
]
