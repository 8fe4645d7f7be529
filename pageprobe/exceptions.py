"""Error taxonomy for page inspection.

Every error carries the context (selector, extension id, method, ...) needed
to reproduce it, and renders that context in its message.
"""

from typing import Any


class PageProbeError(Exception):
    """Base exception for page inspection errors."""

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(self._format())

    def _format(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.message} ({details})"

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON results."""
        return {
            "kind": self.kind,
            "message": self.message,
            "context": dict(self.context),
        }


class ElementNotFoundError(PageProbeError):
    """Selector matched no element."""

    def __init__(self, selector: str, message: str | None = None, **context: Any):
        self.selector = selector
        super().__init__(message or f"Element not found: {selector}", selector=selector, **context)


class SessionClosedError(PageProbeError):
    """Protocol session was closed or its target went away."""
    pass


class ProtocolError(PageProbeError):
    """A protocol command failed."""
    pass


class InjectionError(PageProbeError):
    """Probe code could not be evaluated in the page."""
    pass


class ExtensionError(PageProbeError):
    """A probe method failed, or could not be dispatched."""

    def __init__(
        self,
        message: str,
        extension_id: str | None = None,
        method: str | None = None,
        **context: Any,
    ):
        self.extension_id = extension_id
        self.method = method
        super().__init__(message, extension_id=extension_id, method=method, **context)


class DuplicateIdError(ExtensionError):
    """An extension with the same id is already registered."""

    def __init__(self, extension_id: str):
        super().__init__(
            f"Extension with id '{extension_id}' is already registered",
            extension_id=extension_id,
        )


class ParseError(PageProbeError, ValueError):
    """Malformed style or color value."""

    def __init__(self, message: str, value: Any = None, **context: Any):
        self.value = value
        super().__init__(message, value=value, **context)


class GeometryError(PageProbeError, AssertionError):
    """A projected rectangle fell outside its image."""
    pass


class CaptureError(PageProbeError):
    """Screenshot could not be produced."""
    pass
