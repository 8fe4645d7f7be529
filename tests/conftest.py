"""Shared fixtures for pageprobe tests.

The fake CDP session models a scrolled page: elements have page-space
rectangles, box-model quads come back viewport-relative, and
``Page.captureScreenshot`` returns real PNG bytes of the clip size times the
scale, generated with Pillow.
"""

import asyncio
import base64
import io
import json
import re
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "smoke: mark test as smoke test (fast, critical path)")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def make_png(width: int, height: int, color=(255, 255, 255)) -> bytes:
    image = Image.new("RGB", (max(1, width), max(1, height)), color)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class FakeElement:
    def __init__(
        self,
        node_id: int,
        x: float,
        y: float,
        width: float,
        height: float,
        tag: str = "div",
        attributes: dict[str, str] | None = None,
        computed: dict[str, str] | None = None,
        margin: float = 0,
    ):
        self.node_id = node_id
        self.x, self.y, self.width, self.height = x, y, width, height
        self.tag = tag
        self.attributes = attributes or {}
        self.computed = computed or {
            "display": "block",
            "visibility": "visible",
            "color": "rgb(17, 24, 39)",
            "background-color": "rgba(0, 0, 0, 0)",
            "font-size": "16px",
            "font-weight": "400",
            "font-family": "Inter, sans-serif",
        }
        self.margin = margin

    def right_of(self, x: float) -> bool:
        return self.x >= x


def _quad(x: float, y: float, w: float, h: float) -> list[float]:
    return [x, y, x + w, y, x + w, y + h, x, y + h]


class FakeCDPSession:
    """Answers the protocol commands used by the inspector and projector."""

    def __init__(self, viewport=(1280, 720), content=(1920, 3000)):
        self.viewport = viewport
        self.content = content
        self.scroll_x = 0.0
        self.scroll_y = 0.0
        self.elements: dict[str, FakeElement] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.closed = False
        self.fail_methods: dict[str, str] = {}
        self.screenshot_override: tuple[int, int] | None = None
        self.detach = AsyncMock()

    def add(self, selector: str, *args, **kwargs) -> FakeElement:
        element = FakeElement(len(self.elements) + 2, *args, **kwargs)
        self.elements[selector] = element
        return element

    def by_node(self, node_id: int) -> FakeElement:
        return next(e for e in self.elements.values() if e.node_id == node_id)

    def scroll_to(self, element: FakeElement) -> None:
        self.scroll_y = max(0.0, min(element.y, self.content[1] - self.viewport[1]))
        if element.right_of(self.viewport[0]):
            self.scroll_x = max(0.0, min(element.x, self.content[0] - self.viewport[0]))

    def scroll_window(self, position: dict[str, float]) -> dict[str, float]:
        self.scroll_x = max(0.0, min(float(position["x"]), self.content[0] - self.viewport[0]))
        self.scroll_y = max(0.0, min(float(position["y"]), self.content[1] - self.viewport[1]))
        return {"x": self.scroll_x, "y": self.scroll_y}

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        params = params or {}
        self.calls.append((method, params))
        if self.closed:
            raise Exception("Target page, context or browser has been closed")
        if method in self.fail_methods:
            raise Exception(self.fail_methods[method])

        if method == "DOM.getDocument":
            return {"root": {"nodeId": 1}}
        if method == "DOM.querySelector":
            selector = params["selector"]
            if selector.startswith("!!"):
                raise Exception(f"DOM Error while querying: '{selector}' is not a valid selector")
            element = self.elements.get(selector)
            return {"nodeId": element.node_id if element else 0}
        if method == "Page.getLayoutMetrics":
            return {
                "cssVisualViewport": {
                    "pageX": self.scroll_x,
                    "pageY": self.scroll_y,
                    "clientWidth": self.viewport[0],
                    "clientHeight": self.viewport[1],
                },
                "cssContentSize": {"x": 0, "y": 0, "width": self.content[0], "height": self.content[1]},
            }
        if method == "DOM.getBoxModel":
            e = self.by_node(params["nodeId"])
            x, y = e.x - self.scroll_x, e.y - self.scroll_y
            m = e.margin
            return {
                "model": {
                    "content": _quad(x + 1, y + 1, e.width - 2, e.height - 2),
                    "padding": _quad(x + 1, y + 1, e.width - 2, e.height - 2),
                    "border": _quad(x, y, e.width, e.height),
                    "margin": _quad(x - m, y - m, e.width + 2 * m, e.height + 2 * m),
                    "width": e.width,
                    "height": e.height,
                }
            }
        if method == "DOM.describeNode":
            e = self.by_node(params["nodeId"])
            flat = [item for pair in e.attributes.items() for item in pair]
            return {"node": {"nodeId": e.node_id, "localName": e.tag, "nodeName": e.tag.upper(), "attributes": flat}}
        if method == "CSS.getComputedStyleForNode":
            e = self.by_node(params["nodeId"])
            return {"computedStyle": [{"name": k, "value": v} for k, v in e.computed.items()]}
        if method == "Page.captureScreenshot":
            clip = params["clip"]
            if self.screenshot_override:
                width, height = self.screenshot_override
            else:
                width = int(round(clip["width"] * clip["scale"]))
                height = int(round(clip["height"] * clip["scale"]))
            return {"data": base64.b64encode(make_png(width, height)).decode()}
        return {}

    def sent(self, method: str) -> list[dict[str, Any]]:
        return [params for name, params in self.calls if name == method]


class FakeWindow:
    """Page-side state for probe injection and dispatch.

    Probe code is recognized by its EXTENSION_ID constant; evaluating it bumps
    the injection counter and installs the marker. Method calls are answered
    by ``handlers[(extension_id, method)]``.
    """

    def __init__(self):
        self.installed: dict[str, str] = {}
        self.counters: dict[str, int] = {}
        self.handlers: dict[tuple[str, str], Any] = {}
        self.evaluations: list[tuple[str, Any]] = []
        self.fail_injection: str | None = None
        self.eval_delay = 0.0
        self.on_scroll = None

    def reload(self) -> None:
        self.installed.clear()

    def calls_to(self, extension_id: str, method: str) -> list[dict[str, Any]]:
        from pageprobe.extensions.base import INVOKE_JS, marker_for

        return [
            arg["params"]
            for expression, arg in self.evaluations
            if expression == INVOKE_JS and arg["marker"] == marker_for(extension_id) and arg["method"] == method
        ]

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        from pageprobe.capture.projector import SCROLL_TO_JS
        from pageprobe.extensions.base import (
            INJECTION_COUNT_JS,
            INVOKE_JS,
            IS_INJECTED_JS,
            REMOVE_JS,
            marker_for,
        )

        self.evaluations.append((expression, arg))
        if expression == SCROLL_TO_JS:
            return self.on_scroll(arg) if self.on_scroll else None
        if expression == IS_INJECTED_JS:
            return arg in self.installed
        if expression == INJECTION_COUNT_JS:
            return self.counters.get(arg, 0)
        if expression == REMOVE_JS:
            self.installed.pop(arg["marker"], None)
            return True
        if expression == INVOKE_JS:
            extension_id = self.installed.get(arg["marker"])
            if extension_id is None:
                return {"ok": False, "missing": True, "error": "Extension is not installed"}
            handler = self.handlers.get((extension_id, arg["method"]))
            if handler is None:
                return {"ok": True, "data": None}
            try:
                return {"ok": True, "data": handler(arg["params"])}
            except Exception as e:
                return {"ok": False, "error": str(e)}

        match = re.search(r'const EXTENSION_ID = (".*?");', expression)
        if match:
            if self.eval_delay:
                await asyncio.sleep(self.eval_delay)
            if self.fail_injection:
                raise Exception(self.fail_injection)
            extension_id = json.loads(match.group(1))
            self.counters[extension_id] = self.counters.get(extension_id, 0) + 1
            self.installed[marker_for(extension_id)] = extension_id
            return True
        return None


@pytest.fixture
def page_window():
    """Page-side probe state shared by mock_page."""
    return FakeWindow()


@pytest.fixture
def cdp_session():
    """Fake CDP session with a scrolled 1280x720 viewport over a 1920x3000 page."""
    return FakeCDPSession()


@pytest.fixture
def mock_page(cdp_session, page_window):
    """Playwright-like page backed by the fake CDP session."""
    page = MagicMock()
    page.url = "http://localhost:3000/"
    page.context.new_cdp_session = AsyncMock(return_value=cdp_session)
    page_window.on_scroll = cdp_session.scroll_window
    page.evaluate = AsyncMock(side_effect=page_window.evaluate)
    page.wait_for_timeout = AsyncMock()

    async def screenshot(full_page: bool = False, type: str = "png", **kwargs) -> bytes:
        size = cdp_session.content if full_page else cdp_session.viewport
        return make_png(*size)

    page.screenshot = AsyncMock(side_effect=screenshot)

    locators: dict[str, MagicMock] = {}

    def locator(selector: str) -> MagicMock:
        if selector not in locators:
            loc = MagicMock()
            first = loc.first
            for name in ("click", "hover", "focus", "press_sequentially"):
                setattr(first, name, AsyncMock())

            async def scroll_into_view_if_needed(*args, **kwargs):
                element = cdp_session.elements.get(selector)
                if element is not None:
                    cdp_session.scroll_to(element)

            first.scroll_into_view_if_needed = AsyncMock(side_effect=scroll_into_view_if_needed)
            locators[selector] = loc
        return locators[selector]

    page.locator = MagicMock(side_effect=locator)
    return page


@pytest.fixture
def settings(tmp_path):
    """Settings writing into a temporary directory with no settle delays."""
    from pageprobe.config import Settings

    return Settings(
        output_dir=str(tmp_path / "out"),
        capture_delay_ms=0,
        scroll_settle_ms=0,
        default_wait_ms=10,
    )


@pytest.fixture
def png_factory():
    """Create PNG bytes of a given size."""
    return make_png


@pytest.fixture
def window_page_factory():
    """Create independent (page, FakeWindow) pairs."""

    def factory():
        window = FakeWindow()
        page = MagicMock()
        page.evaluate = AsyncMock(side_effect=window.evaluate)
        return page, window

    return factory
