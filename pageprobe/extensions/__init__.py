"""Browser-side probes and the registry that injects and dispatches them."""

from .a11y_overlay import A11yOverlayMethod, A11yOverlayProbe
from .base import (
    OVERLAY_ATTRIBUTE,
    BaseProbe,
    ExtensionCall,
    ExtensionDescriptor,
    ExtensionResult,
    create_browser_api,
    marker_for,
)
from .component_detector import ComponentDetectorMethod, ComponentDetectorProbe
from .contrast_checker import ContrastCheckerMethod, ContrastCheckerProbe
from .element_probe import ElementProbe, ElementProbeMethod
from .element_ruler import ElementRulerMethod, ElementRulerProbe
from .registry import ExtensionRegistry, create_default_registry

__all__ = [
    "OVERLAY_ATTRIBUTE",
    "BaseProbe",
    "ExtensionCall",
    "ExtensionDescriptor",
    "ExtensionResult",
    "create_browser_api",
    "marker_for",
    "ExtensionRegistry",
    "create_default_registry",
    "ElementProbe",
    "ElementProbeMethod",
    "ElementRulerProbe",
    "ElementRulerMethod",
    "ComponentDetectorProbe",
    "ComponentDetectorMethod",
    "ContrastCheckerProbe",
    "ContrastCheckerMethod",
    "A11yOverlayProbe",
    "A11yOverlayMethod",
]
