"""Extension registry and dispatcher.

The registry owns the table of probe descriptors, injects probe code into
pages lazily, and routes calls to probe methods. It never clears overlays on
its own; callers use ``clear()`` when they are done with them.

Usage:
    registry = create_default_registry()
    result = await registry.invoke(page, "element-probe", "measure", {"selector": "#hero"})
    if result.success:
        snapshot = ElementSnapshot.from_dict(result.data)
"""

from __future__ import annotations

import asyncio
import json
import time
import weakref
from collections.abc import Iterable
from enum import Enum
from typing import Any

import structlog

from ..exceptions import (
    DuplicateIdError,
    ElementNotFoundError,
    ExtensionError,
    InjectionError,
    PageProbeError,
)
from .base import (
    INJECTION_COUNT_JS,
    INVOKE_JS,
    IS_INJECTED_JS,
    REMOVE_JS,
    ExtensionCall,
    ExtensionDescriptor,
    ExtensionResult,
)

logger = structlog.get_logger(__name__)


class _PageState:
    """Per-page bookkeeping: injection locks and injected ids."""

    def __init__(self):
        self.locks: dict[str, asyncio.Lock] = {}
        self.injected: set[str] = set()

    def lock_for(self, extension_id: str) -> asyncio.Lock:
        if extension_id not in self.locks:
            self.locks[extension_id] = asyncio.Lock()
        return self.locks[extension_id]


class ExtensionRegistry:
    """Registers probes and dispatches calls into pages.

    Descriptors are registered once at startup. Per-page state is created on
    first use and dropped when the page closes.
    """

    def __init__(self):
        self._descriptors: dict[str, ExtensionDescriptor] = {}
        self._pages: "weakref.WeakKeyDictionary[Any, _PageState]" = weakref.WeakKeyDictionary()
        self.log = logger.bind(component="extension_registry")

    # Descriptor table

    def register(self, descriptor: ExtensionDescriptor) -> None:
        """Add a probe to the table.

        Raises:
            DuplicateIdError: if a probe with the same id is registered
        """
        if descriptor.id in self._descriptors:
            raise DuplicateIdError(descriptor.id)
        self._descriptors[descriptor.id] = descriptor
        self.log.debug("Extension registered", extension_id=descriptor.id, methods=descriptor.method_names)

    def unregister(self, extension_id: str) -> bool:
        return self._descriptors.pop(extension_id, None) is not None

    def get(self, extension_id: str) -> ExtensionDescriptor:
        try:
            return self._descriptors[extension_id]
        except KeyError:
            raise ExtensionError(
                f"Extension '{extension_id}' is not registered",
                extension_id=extension_id,
                registered=sorted(self._descriptors),
            )

    def list(self) -> list[ExtensionDescriptor]:
        return list(self._descriptors.values())

    def __contains__(self, extension_id: str) -> bool:
        return extension_id in self._descriptors

    # Per-page lifecycle

    def _state(self, page: Any) -> _PageState:
        state = self._pages.get(page)
        if state is None:
            state = _PageState()
            self._pages[page] = state
            try:
                page.once("close", lambda *_: self.forget(page))
            except AttributeError:
                pass
        return state

    def forget(self, page: Any) -> None:
        """Drop everything known about a page."""
        if self._pages.pop(page, None) is not None:
            self.log.debug("Page state dropped")

    async def inject(self, page: Any, extension_id: str) -> bool:
        """Inject a probe into a page unless it is already there.

        Concurrent calls for the same page and probe share one lock, so the
        code is evaluated at most once.

        Returns:
            True if the code was evaluated, False if it was already present

        Raises:
            ExtensionError: if the probe is not registered
            InjectionError: if the page could not evaluate the code
        """
        descriptor = self.get(extension_id)
        state = self._state(page)

        async with state.lock_for(extension_id):
            try:
                if await page.evaluate(IS_INJECTED_JS, descriptor.marker):
                    state.injected.add(extension_id)
                    return False
                await page.evaluate(descriptor.code)
            except PageProbeError:
                raise
            except Exception as e:
                state.injected.discard(extension_id)
                self.log.warning("Injection failed", extension_id=extension_id, error=str(e))
                raise InjectionError(
                    f"Failed to inject extension '{extension_id}': {e}",
                    extension_id=extension_id,
                    page=getattr(page, "url", None),
                ) from e

            state.injected.add(extension_id)
            self.log.info("Extension injected", extension_id=extension_id)
            return True

    async def is_injected(self, page: Any, extension_id: str) -> bool:
        descriptor = self.get(extension_id)
        try:
            return bool(await page.evaluate(IS_INJECTED_JS, descriptor.marker))
        except Exception as e:
            raise InjectionError(
                f"Could not query extension '{extension_id}': {e}",
                extension_id=extension_id,
            ) from e

    async def injection_count(self, page: Any, extension_id: str) -> int:
        """How many times the probe code ran in the page (page-side counter)."""
        self.get(extension_id)
        return int(await page.evaluate(INJECTION_COUNT_JS, extension_id) or 0)

    # Dispatch

    async def invoke(
        self,
        page: Any,
        extension_id: str,
        method: "str | Enum",
        params: dict[str, Any] | None = None,
    ) -> ExtensionResult:
        """Call a probe method in the page.

        Never raises for probe-side problems: unknown methods, parameters that
        are not JSON, page-side exceptions and injection failures come back as
        a failed ExtensionResult.
        """
        start = time.time()
        method_name = method.value if isinstance(method, Enum) else str(method)

        def result(success: bool, data: Any = None, error: Exception | None = None) -> ExtensionResult:
            return ExtensionResult(
                success=success,
                extension_id=extension_id,
                method=method_name,
                data=data,
                error=error,
                duration_ms=int((time.time() - start) * 1000),
            )

        try:
            descriptor = self.get(extension_id)
            method_name = descriptor.resolve_method(method)
            params = params or {}
            try:
                json.dumps(params)
            except (TypeError, ValueError) as e:
                raise ExtensionError(
                    f"Parameters are not JSON-serializable: {e}",
                    extension_id=extension_id,
                    method=method_name,
                )
            await self.inject(page, extension_id)
        except PageProbeError as e:
            return result(False, error=e)

        try:
            response = await page.evaluate(
                INVOKE_JS,
                {"marker": descriptor.marker, "method": method_name, "params": params},
            )
        except Exception as e:
            self.log.warning(
                "Extension call failed",
                extension_id=extension_id,
                method=method_name,
                error=str(e),
            )
            return result(
                False,
                error=ExtensionError(
                    f"Evaluation failed: {e}",
                    extension_id=extension_id,
                    method=method_name,
                ),
            )

        response = response or {}
        if not response.get("ok"):
            if response.get("missing"):
                self._state(page).injected.discard(extension_id)
            return result(
                False,
                error=ExtensionError(
                    response.get("error") or "Extension call failed",
                    extension_id=extension_id,
                    method=method_name,
                ),
            )

        data = response.get("data")
        if isinstance(data, dict) and data.get("success") is False:
            if data.get("notFound"):
                error: PageProbeError = ElementNotFoundError(
                    data.get("selector", ""),
                    extension_id=extension_id,
                    method=method_name,
                )
            else:
                error = ExtensionError(
                    data.get("error") or "Extension reported failure",
                    extension_id=extension_id,
                    method=method_name,
                )
            return result(False, data=data, error=error)

        self.log.debug("Extension call completed", extension_id=extension_id, method=method_name)
        return result(True, data=data)

    async def invoke_many(self, calls: Iterable[ExtensionCall]) -> list[ExtensionResult]:
        """Dispatch independent calls, collecting every result.

        Calls on the same page run in order; different pages run
        concurrently.
        """
        calls = list(calls)
        by_page: dict[int, list[tuple[int, ExtensionCall]]] = {}
        for index, call in enumerate(calls):
            by_page.setdefault(id(call.page), []).append((index, call))

        results: list[ExtensionResult | None] = [None] * len(calls)

        async def run_page(entries: list[tuple[int, ExtensionCall]]) -> None:
            for index, call in entries:
                results[index] = await self.invoke(call.page, call.extension_id, call.method, call.params)

        await asyncio.gather(*(run_page(entries) for entries in by_page.values()))
        return [r for r in results if r is not None]

    async def clear(self, page: Any, extension_id: str) -> ExtensionResult | None:
        """Remove the overlays of one probe. No-op for probes without cleanup."""
        descriptor = self.get(extension_id)
        if descriptor.cleanup_method is None:
            return None
        if extension_id not in self._state(page).injected:
            return None
        return await self.invoke(page, extension_id, descriptor.cleanup_method)

    async def remove(self, page: Any, extension_id: str) -> None:
        """Clear a probe's overlays and uninstall it from the page."""
        descriptor = self.get(extension_id)
        await self.clear(page, extension_id)
        try:
            await page.evaluate(REMOVE_JS, {"marker": descriptor.marker, "id": extension_id})
        except Exception as e:
            raise InjectionError(
                f"Failed to remove extension '{extension_id}': {e}",
                extension_id=extension_id,
            ) from e
        self._state(page).injected.discard(extension_id)
        self.log.info("Extension removed", extension_id=extension_id)

    async def clear_all(self, page: Any) -> list[ExtensionResult]:
        """Clear the overlays of every probe injected in the page."""
        results = []
        for extension_id in sorted(self._state(page).injected):
            result = await self.clear(page, extension_id)
            if result is not None:
                results.append(result)
        return results


def create_default_registry() -> ExtensionRegistry:
    """Registry with the built-in probes."""
    from .a11y_overlay import A11yOverlayProbe
    from .component_detector import ComponentDetectorProbe
    from .contrast_checker import ContrastCheckerProbe
    from .element_probe import ElementProbe
    from .element_ruler import ElementRulerProbe

    registry = ExtensionRegistry()
    for probe in (ElementProbe, ElementRulerProbe, ComponentDetectorProbe, ContrastCheckerProbe, A11yOverlayProbe):
        registry.register(probe.descriptor())
    return registry
