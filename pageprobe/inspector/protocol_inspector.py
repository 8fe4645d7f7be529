"""Protocol-level element inspection over the Chrome DevTools Protocol.

Gets exact box-model geometry and draws native DevTools highlight overlays
without relying on injected script. One CDP session is kept per page.

State machine per page:
    UNINITIALIZED -> SESSION_OPEN -> INSPECTING -> CLEARED -> ... -> CLOSED

Usage:
    inspector = ProtocolInspector()
    await inspector.initialize(page)
    result = await inspector.inspect(page, "#hero")
    await inspector.clear(page)
    await inspector.cleanup(page)
"""

import time
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from ..exceptions import ElementNotFoundError, PageProbeError, ProtocolError, SessionClosedError
from ..visual_ai.geometry import edges_between, quad_to_rect
from ..visual_ai.models import BoxModel, ElementSnapshot, Rect, Size

logger = structlog.get_logger(__name__)


class InspectorState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SESSION_OPEN = "session_open"
    INSPECTING = "inspecting"
    CLEARED = "cleared"
    CLOSED = "closed"


# DevTools default highlight colors
HIGHLIGHT_COLORS = {
    "contentColor": {"r": 111, "g": 168, "b": 220, "a": 0.66},
    "paddingColor": {"r": 147, "g": 196, "b": 125, "a": 0.55},
    "borderColor": {"r": 255, "g": 229, "b": 153, "a": 0.66},
    "marginColor": {"r": 246, "g": 178, "b": 107, "a": 0.66},
}

KEY_STYLES = {
    "position": "position",
    "display": "display",
    "color": "color",
    "background-color": "backgroundColor",
    "font-size": "fontSize",
    "font-family": "fontFamily",
    "font-weight": "fontWeight",
    "line-height": "lineHeight",
    "text-align": "textAlign",
    "z-index": "zIndex",
    "opacity": "opacity",
    "visibility": "visibility",
    "overflow": "overflow",
    "cursor": "cursor",
}

_CLOSED_MARKERS = ("target closed", "session closed", "has been closed", "detached")


@dataclass(frozen=True)
class BoxModelQuads:
    """Box-model quads of one node, in page space.

    Each quad is ``[x1, y1, x2, y2, x3, y3, x4, y4]``, clockwise from the
    top-left corner.
    """

    content: tuple[float, ...]
    padding: tuple[float, ...]
    border: tuple[float, ...]
    margin: tuple[float, ...]
    width: float
    height: float

    @property
    def border_rect(self) -> Rect:
        return quad_to_rect(self.border)

    def rect(self, layer: str) -> Rect:
        return quad_to_rect(getattr(self, layer))

    def to_box_model(self) -> BoxModel:
        return BoxModel(
            margin=edges_between(self.rect("margin"), self.rect("border")),
            border=edges_between(self.rect("border"), self.rect("padding")),
            padding=edges_between(self.rect("padding"), self.rect("content")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": list(self.content),
            "padding": list(self.padding),
            "border": list(self.border),
            "margin": list(self.margin),
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class LayoutMetrics:
    """Viewport (in page space) and full content size of a page."""

    viewport: Rect
    content_size: Size

    @property
    def scroll_x(self) -> float:
        return self.viewport.x

    @property
    def scroll_y(self) -> float:
        return self.viewport.y


@dataclass
class InspectionResult:
    """Outcome of one protocol inspection."""

    success: bool
    selector: str
    snapshot: ElementSnapshot | None = None
    quads: BoxModelQuads | None = None
    error: PageProbeError | None = None
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "selector": self.selector,
            "element": self.snapshot.to_dict() if self.snapshot else None,
            "quads": self.quads.to_dict() if self.quads else None,
            "error": self.error.to_dict() if self.error else None,
            "duration": self.duration_ms,
        }


def _offset_quad(quad: list[float], dx: float, dy: float) -> tuple[float, ...]:
    return tuple(v + (dx if i % 2 == 0 else dy) for i, v in enumerate(quad))


class ProtocolInspector:
    """Element inspection through a per-page CDP session."""

    def __init__(self):
        self._sessions: "weakref.WeakKeyDictionary[Any, Any]" = weakref.WeakKeyDictionary()
        self._states: "weakref.WeakKeyDictionary[Any, InspectorState]" = weakref.WeakKeyDictionary()
        self.log = logger.bind(component="protocol_inspector")

    def state(self, page: Any) -> InspectorState:
        return self._states.get(page, InspectorState.UNINITIALIZED)

    async def initialize(self, page: Any) -> Any:
        """Open the CDP session for a page. Idempotent while it is open."""
        if self.state(page) not in (InspectorState.UNINITIALIZED, InspectorState.CLOSED):
            return self._sessions[page]

        try:
            session = await page.context.new_cdp_session(page)
            for domain in ("DOM", "CSS", "Overlay"):
                await session.send(f"{domain}.enable")
        except Exception as e:
            raise ProtocolError(f"Could not open inspection session: {e}", page=getattr(page, "url", None)) from e

        self._sessions[page] = session
        self._states[page] = InspectorState.SESSION_OPEN
        self.log.debug("Inspection session opened", page=getattr(page, "url", None))
        return session

    async def send(self, page: Any, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Issue one protocol command.

        Raises:
            SessionClosedError: if ``cleanup`` was called or the target went away
            ProtocolError: if the command failed
        """
        state = self.state(page)
        if state == InspectorState.CLOSED:
            raise SessionClosedError("Inspection session is closed", method=method)
        if state == InspectorState.UNINITIALIZED:
            await self.initialize(page)

        session = self._sessions[page]
        try:
            return await session.send(method, params or {}) or {}
        except Exception as e:
            message = str(e)
            if any(marker in message.lower() for marker in _CLOSED_MARKERS):
                self._states[page] = InspectorState.CLOSED
                raise SessionClosedError(f"Inspection session closed: {message}", method=method) from e
            raise ProtocolError(f"{method} failed: {message}", method=method) from e

    async def resolve_node(self, page: Any, selector: str) -> int:
        """Resolve a selector to a DOM node id.

        Raises:
            ElementNotFoundError: if nothing matches
        """
        document = await self.send(page, "DOM.getDocument", {"depth": 0})
        try:
            found = await self.send(
                page,
                "DOM.querySelector",
                {"nodeId": document["root"]["nodeId"], "selector": selector},
            )
        except ProtocolError as e:
            # Invalid selector syntax
            raise ElementNotFoundError(selector, f"Invalid selector: {selector}", reason=e.message) from e

        node_id = found.get("nodeId", 0)
        if not node_id:
            raise ElementNotFoundError(selector)
        return node_id

    async def get_layout_metrics(self, page: Any) -> LayoutMetrics:
        metrics = await self.send(page, "Page.getLayoutMetrics")
        viewport = metrics.get("cssVisualViewport") or metrics.get("visualViewport") or {}
        content = metrics.get("cssContentSize") or metrics.get("contentSize") or {}
        return LayoutMetrics(
            viewport=Rect(
                x=float(viewport.get("pageX", 0)),
                y=float(viewport.get("pageY", 0)),
                width=float(viewport.get("clientWidth", 0)),
                height=float(viewport.get("clientHeight", 0)),
            ),
            content_size=Size(
                width=int(round(content.get("width", 0))),
                height=int(round(content.get("height", 0))),
            ),
        )

    async def get_box_model(
        self,
        page: Any,
        selector: str,
        node_id: int | None = None,
        metrics: LayoutMetrics | None = None,
    ) -> BoxModelQuads:
        """Box-model quads of the first element matching ``selector``.

        Protocol quads are viewport-relative; they are shifted by the scroll
        offset into page space.
        """
        if node_id is None:
            node_id = await self.resolve_node(page, selector)
        try:
            response = await self.send(page, "DOM.getBoxModel", {"nodeId": node_id})
        except ProtocolError as e:
            # Nodes that are not rendered (display: none) have no box model
            raise ElementNotFoundError(selector, f"Element has no box model: {selector}", reason=e.message) from e

        metrics = metrics or await self.get_layout_metrics(page)
        model = response["model"]
        dx, dy = metrics.scroll_x, metrics.scroll_y
        return BoxModelQuads(
            content=_offset_quad(model["content"], dx, dy),
            padding=_offset_quad(model["padding"], dx, dy),
            border=_offset_quad(model["border"], dx, dy),
            margin=_offset_quad(model["margin"], dx, dy),
            width=float(model.get("width", 0)),
            height=float(model.get("height", 0)),
        )

    async def inspect(
        self,
        page: Any,
        selector: str,
        show_overlay: bool = True,
        show_info: bool = True,
        show_rulers: bool = False,
        show_extension_lines: bool = True,
        include_styles: bool = True,
    ) -> InspectionResult:
        """Inspect the first element matching ``selector``.

        A selector that matches nothing gives ``success=False`` with an
        ElementNotFoundError; no exception escapes for it.

        Raises:
            SessionClosedError: if the session was closed
        """
        start = time.time()
        log = self.log.bind(selector=selector)

        def elapsed() -> int:
            return int((time.time() - start) * 1000)

        try:
            node_id = await self.resolve_node(page, selector)
            metrics = await self.get_layout_metrics(page)
            quads = await self.get_box_model(page, selector, node_id=node_id, metrics=metrics)
            described = await self.send(page, "DOM.describeNode", {"nodeId": node_id})

            computed: dict[str, str] = {}
            if include_styles:
                response = await self.send(page, "CSS.getComputedStyleForNode", {"nodeId": node_id})
                computed = {item["name"]: item["value"] for item in response.get("computedStyle", [])}

            snapshot = self._build_snapshot(described.get("node", {}), quads, metrics, computed, include_styles)

            if show_overlay:
                await self.send(
                    page,
                    "Overlay.highlightNode",
                    {
                        "highlightConfig": {
                            "showInfo": show_info,
                            "showRulers": show_rulers,
                            "showExtensionLines": show_extension_lines,
                            **HIGHLIGHT_COLORS,
                        },
                        "nodeId": node_id,
                    },
                )
                self._states[page] = InspectorState.INSPECTING
        except SessionClosedError:
            raise
        except PageProbeError as e:
            log.info("Inspection failed", error=str(e), kind=e.kind)
            return InspectionResult(success=False, selector=selector, error=e, duration_ms=elapsed())

        log.debug("Element inspected", rect=snapshot.rect.to_dict())
        return InspectionResult(
            success=True,
            selector=selector,
            snapshot=snapshot,
            quads=quads,
            duration_ms=elapsed(),
        )

    def _build_snapshot(
        self,
        node: dict[str, Any],
        quads: BoxModelQuads,
        metrics: LayoutMetrics,
        computed: dict[str, str],
        include_styles: bool,
    ) -> ElementSnapshot:
        raw_attributes = node.get("attributes") or []
        attributes = dict(zip(raw_attributes[0::2], raw_attributes[1::2]))

        rect = quads.border_rect
        styles = {key: computed[name] for name, key in KEY_STYLES.items() if name in computed}
        if "fontFamily" in styles:
            styles["fontFamily"] = styles["fontFamily"].split(",")[0].strip().strip("\"'")

        display = computed.get("display", "")
        visible = display != "none" and computed.get("visibility", "visible") != "hidden" and rect.area > 0

        return ElementSnapshot(
            tag_name=(node.get("localName") or node.get("nodeName") or "").lower(),
            id=attributes.get("id") or None,
            class_name=attributes.get("class") or None,
            rect=rect,
            viewport_rect=rect.translate(-metrics.scroll_x, -metrics.scroll_y),
            box_model=quads.to_box_model(),
            styles=styles,
            computed_styles=computed if include_styles else None,
            attributes=attributes,
            visibility={
                "isVisible": visible,
                "inViewport": rect.intersects(metrics.viewport),
                "displayed": display != "none",
            },
        )

    async def clear(self, page: Any) -> None:
        """Hide the highlight overlay; the session stays open."""
        await self.send(page, "Overlay.hideHighlight")
        self._states[page] = InspectorState.CLEARED

    async def cleanup(self, page: Any) -> None:
        """Close the session. Later calls raise SessionClosedError."""
        if self.state(page) == InspectorState.CLOSED:
            raise SessionClosedError("Inspection session is already closed")

        session = self._sessions.pop(page, None)
        self._states[page] = InspectorState.CLOSED
        if session is None:
            return

        try:
            await session.send("Overlay.hideHighlight")
            await session.send("Overlay.disable")
        except Exception as e:
            self.log.debug("Overlay teardown failed", error=str(e))
        try:
            await session.detach()
        except Exception as e:
            self.log.debug("Session detach failed", error=str(e))
        self.log.debug("Inspection session closed", page=getattr(page, "url", None))
