"""Tests for extensions/registry.py.

Tests the descriptor table, lazy and idempotent injection, the
per-(page, probe) injection lock, and the never-raising dispatch envelope.
"""

import asyncio
from enum import Enum
from unittest.mock import AsyncMock, MagicMock

import pytest

from pageprobe.exceptions import (
    DuplicateIdError,
    ElementNotFoundError,
    ExtensionError,
    InjectionError,
)
from pageprobe.extensions.base import (
    BaseProbe,
    ExtensionCall,
    ExtensionDescriptor,
    create_browser_api,
    marker_for,
)
from pageprobe.extensions.component_detector import ComponentDetectorMethod
from pageprobe.extensions.element_probe import ElementProbe, ElementProbeMethod
from pageprobe.extensions.registry import ExtensionRegistry, create_default_registry


class EchoMethod(str, Enum):
    ECHO = "echo"
    FIND = "find"
    CLEAR = "clear"


class EchoProbe(BaseProbe):
    id = "echo"
    name = "Echo"
    description = "Returns its parameters"
    Methods = EchoMethod
    cleanup_method = EchoMethod.CLEAR.value
    functions = {
        "echo": "(params) => params",
        "find": "(params) => notFound(params.selector)",
        "clear": "() => ({ removed: removeOverlays() })",
    }


@pytest.fixture
def registry():
    registry = ExtensionRegistry()
    registry.register(EchoProbe.descriptor())
    return registry


@pytest.fixture
def echo_window(page_window):
    page_window.handlers[("echo", "echo")] = lambda params: params
    page_window.handlers[("echo", "find")] = lambda params: {
        "success": False,
        "notFound": True,
        "selector": params["selector"],
        "error": f"Element not found: {params['selector']}",
    }
    page_window.handlers[("echo", "clear")] = lambda params: {"removed": 2}
    return page_window


class TestDescriptorTable:
    """Tests for register/get/list/unregister."""

    def test_register_and_get(self, registry):
        descriptor = registry.get("echo")
        assert descriptor.name == "Echo"
        assert descriptor.marker == "__pageprobe_echo__"
        assert "echo" in registry
        assert [d.id for d in registry.list()] == ["echo"]

    def test_duplicate_id(self, registry):
        """Test registering an existing id raises DuplicateIdError."""
        with pytest.raises(DuplicateIdError) as exc_info:
            registry.register(EchoProbe.descriptor())
        assert exc_info.value.extension_id == "echo"
        assert isinstance(exc_info.value, ExtensionError)

    def test_unknown_id(self, registry):
        with pytest.raises(ExtensionError) as exc_info:
            registry.get("nope")
        assert exc_info.value.context["registered"] == ["echo"]

    def test_unregister(self, registry):
        assert registry.unregister("echo") is True
        assert registry.unregister("echo") is False
        assert "echo" not in registry

    def test_default_registry(self):
        registry = create_default_registry()
        assert sorted(d.id for d in registry.list()) == [
            "a11y-overlay",
            "component-detector",
            "contrast-checker",
            "element-probe",
            "element-ruler",
        ]


class TestDescriptor:
    """Tests for ExtensionDescriptor and BaseProbe."""

    def test_resolve_method(self):
        descriptor = EchoProbe.descriptor()
        assert descriptor.resolve_method("echo") == "echo"
        assert descriptor.resolve_method(EchoMethod.FIND) == "find"

    def test_resolve_unknown_method(self):
        descriptor = EchoProbe.descriptor()
        with pytest.raises(ExtensionError) as exc_info:
            descriptor.resolve_method("explode")
        assert exc_info.value.context["available"] == ["echo", "find", "clear"]

    def test_resolve_foreign_enum(self):
        """Test a method Enum of another probe is rejected."""
        with pytest.raises(ExtensionError):
            EchoProbe.descriptor().resolve_method(ElementProbeMethod.MEASURE)

    def test_functions_must_match_methods(self):
        class Broken(BaseProbe):
            id = "broken"
            name = "Broken"
            Methods = EchoMethod
            functions = {"echo": "(p) => p"}

        with pytest.raises(ExtensionError) as exc_info:
            Broken.descriptor()
        assert exc_info.value.context["missing"] == ["clear", "find"]

    def test_browser_code(self):
        code = create_browser_api("echo", {"echo": "(params) => params"}, styles=".x { color: red; }")
        assert code.startswith("(() => {")
        assert 'const EXTENSION_ID = "echo";' in code
        assert marker_for("echo") in code
        assert "__pageprobe_injections__" in code
        assert "data-pageprobe-style" in code

    def test_to_dict(self):
        data = EchoProbe.descriptor().to_dict()
        assert data["methods"] == ["echo", "find", "clear"]
        assert data["cleanupMethod"] == "clear"
        assert data["hasStyles"] is False


class TestInjection:
    """Tests for lazy, idempotent injection."""

    @pytest.mark.asyncio
    async def test_inject_once(self, registry, mock_page, page_window):
        """Test repeated injection evaluates the probe code once."""
        assert await registry.inject(mock_page, "echo") is True
        assert await registry.inject(mock_page, "echo") is False
        assert await registry.injection_count(mock_page, "echo") == 1
        assert await registry.is_injected(mock_page, "echo") is True

    @pytest.mark.asyncio
    async def test_concurrent_injection_single_flight(self, registry, mock_page, page_window):
        """Test concurrent callers share one evaluation."""
        page_window.eval_delay = 0.01
        results = await asyncio.gather(*(registry.inject(mock_page, "echo") for _ in range(5)))
        assert results.count(True) == 1
        assert page_window.counters["echo"] == 1

    @pytest.mark.asyncio
    async def test_injection_failure(self, registry, mock_page, page_window):
        page_window.fail_injection = "Execution context was destroyed"
        with pytest.raises(InjectionError) as exc_info:
            await registry.inject(mock_page, "echo")
        assert exc_info.value.context["extension_id"] == "echo"
        assert "Execution context was destroyed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_reinjects_after_reload(self, registry, mock_page, echo_window):
        """Test a navigation that wiped the probe triggers a fresh injection."""
        await registry.invoke(mock_page, "echo", "echo", {"n": 1})
        echo_window.reload()
        result = await registry.invoke(mock_page, "echo", "echo", {"n": 2})
        assert result.success
        assert echo_window.counters["echo"] == 2

    @pytest.mark.asyncio
    async def test_page_close_forgets_state(self, registry, mock_page):
        await registry.inject(mock_page, "echo")
        event, callback = mock_page.once.call_args.args
        assert event == "close"
        callback()
        assert mock_page not in registry._pages


class TestInvoke:
    """Tests for dispatch envelopes."""

    @pytest.mark.asyncio
    async def test_success(self, registry, mock_page, echo_window):
        result = await registry.invoke(mock_page, "echo", EchoMethod.ECHO, {"value": 42})
        assert result.success
        assert result.data == {"value": 42}
        assert result.method == "echo"
        assert result.unwrap() == {"value": 42}
        assert result.to_dict()["extensionId"] == "echo"

    @pytest.mark.asyncio
    async def test_lazy_injection(self, registry, mock_page, echo_window):
        """Test invoke injects the probe when needed."""
        await registry.invoke(mock_page, "echo", "echo")
        assert echo_window.counters["echo"] == 1

    @pytest.mark.asyncio
    async def test_not_found(self, registry, mock_page, echo_window):
        """Test a probe-side not-found becomes ElementNotFoundError."""
        result = await registry.invoke(mock_page, "echo", "find", {"selector": "#missing"})
        assert not result.success
        assert result.not_found
        assert isinstance(result.error, ElementNotFoundError)
        assert result.error.selector == "#missing"
        with pytest.raises(ElementNotFoundError):
            result.unwrap()

    @pytest.mark.asyncio
    async def test_unknown_extension(self, registry, mock_page):
        result = await registry.invoke(mock_page, "nope", "echo")
        assert not result.success
        assert isinstance(result.error, ExtensionError)

    @pytest.mark.asyncio
    async def test_unknown_method(self, registry, mock_page, echo_window):
        result = await registry.invoke(mock_page, "echo", "explode")
        assert not result.success
        assert result.error.context["method"] == "explode"
        assert echo_window.counters == {}

    @pytest.mark.asyncio
    async def test_non_json_params(self, registry, mock_page, echo_window):
        """Test parameters that are not JSON never reach the page."""
        result = await registry.invoke(mock_page, "echo", "echo", {"when": object()})
        assert not result.success
        assert "JSON" in result.error.message
        assert echo_window.calls_to("echo", "echo") == []

    @pytest.mark.asyncio
    async def test_page_side_exception(self, registry, mock_page, echo_window):
        def boom(params):
            raise RuntimeError("TypeError: cannot read properties of null")

        echo_window.handlers[("echo", "echo")] = boom
        result = await registry.invoke(mock_page, "echo", "echo")
        assert not result.success
        assert "cannot read properties" in result.error.message

    @pytest.mark.asyncio
    async def test_injection_failure_envelope(self, registry, mock_page, page_window):
        page_window.fail_injection = "Target closed"
        result = await registry.invoke(mock_page, "echo", "echo")
        assert not result.success
        assert isinstance(result.error, InjectionError)

    @pytest.mark.asyncio
    async def test_evaluate_failure(self, registry):
        page = MagicMock()
        page.evaluate = AsyncMock(side_effect=[False, True, Exception("Page crashed")])
        result = await registry.invoke(page, "echo", "echo")
        assert not result.success
        assert "Page crashed" in result.error.message

    @pytest.mark.asyncio
    async def test_invoke_many(self, registry, mock_page, echo_window):
        """Test batch dispatch keeps call order and collects failures."""
        results = await registry.invoke_many(
            [
                ExtensionCall(mock_page, "echo", "echo", {"i": 0}),
                ExtensionCall(mock_page, "echo", "find", {"selector": ".gone"}),
                ExtensionCall(mock_page, "echo", "echo", {"i": 2}),
            ]
        )
        assert [r.success for r in results] == [True, False, True]
        assert results[2].data == {"i": 2}
        assert [p.get("i") for p in echo_window.calls_to("echo", "echo")] == [0, 2]

    @pytest.mark.asyncio
    async def test_invoke_many_across_pages(self, registry, window_page_factory):
        """Test calls on different pages each inject their own probe."""
        pages = [window_page_factory() for _ in range(3)]
        for _, window in pages:
            window.handlers[("echo", "echo")] = lambda params: params
        results = await registry.invoke_many(
            ExtensionCall(page, "echo", "echo", {"n": i}) for i, (page, _) in enumerate(pages)
        )
        assert [r.data["n"] for r in results] == [0, 1, 2]
        assert all(window.counters["echo"] == 1 for _, window in pages)


class TestClearAndRemove:
    """Tests for overlay cleanup and uninstall."""

    @pytest.mark.asyncio
    async def test_clear_only_injected(self, registry, mock_page, echo_window):
        """Test clear does not inject a probe just to clean it up."""
        assert await registry.clear(mock_page, "echo") is None
        assert echo_window.counters == {}

    @pytest.mark.asyncio
    async def test_clear_runs_cleanup_method(self, registry, mock_page, echo_window):
        await registry.invoke(mock_page, "echo", "echo")
        result = await registry.clear(mock_page, "echo")
        assert result.success
        assert result.data == {"removed": 2}

    @pytest.mark.asyncio
    async def test_clear_all(self, mock_page, page_window):
        registry = create_default_registry()
        await registry.invoke(mock_page, ElementProbe.id, ElementProbeMethod.INJECTION_COUNT)
        await registry.invoke(mock_page, "component-detector", ComponentDetectorMethod.DETECT_COMPONENTS)
        results = await registry.clear_all(mock_page)
        assert sorted(r.extension_id for r in results) == ["component-detector", "element-probe"]
        assert [r.method for r in results] == ["clearHighlights", "clearHighlights"]

    @pytest.mark.asyncio
    async def test_remove(self, registry, mock_page, echo_window):
        await registry.invoke(mock_page, "echo", "echo")
        await registry.remove(mock_page, "echo")
        assert await registry.is_injected(mock_page, "echo") is False
        assert echo_window.calls_to("echo", "clear") == [{}]


class TestDescriptorImmutability:
    """Tests for descriptor immutability."""

    def test_frozen(self):
        descriptor = EchoProbe.descriptor()
        with pytest.raises(AttributeError):
            descriptor.code = ""

    def test_descriptor_is_dataclass(self):
        assert isinstance(EchoProbe.descriptor(), ExtensionDescriptor)
