"""Element inspection facade.

Combines the protocol inspector, probes, accessibility analyzer, capture
projector, annotator and action sequencer into the inspection workflows
used by callers:

- ``inspect``: geometry, styles and accessibility of one element, plus
  full-page, viewport, element and zoomed screenshots, annotated variants
  and a JSON metadata file
- ``inspect_multiple``: several elements with per-element success/failure
- ``inspect_with_action_sequence``: ordered interactions with screenshots
- ``capture_before_after``: one interaction with before/after screenshots
- ``measure_element`` and ``compare_elements``: box-model rulers, spacing
  and alignment between elements
- ``capture_with_highlight`` and ``capture_at_scroll_position``: outlined
  element close-ups and viewport shots at a given scroll offset

Usage:
    inspector = ElementInspector(output_dir="./inspection-output")
    result = await inspector.inspect(page, "#hero", capture_zoomed=True)
    if not result.success:
        print(result.error)
"""

import json
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from .capture.annotator import ScreenshotAnnotator
from .capture.projector import CaptureProjector, CaptureResult
from .config import Settings, get_settings
from .exceptions import CaptureError, ExtensionError, PageProbeError, SessionClosedError
from .extensions.element_probe import ElementProbe, ElementProbeMethod
from .extensions.element_ruler import ElementRulerMethod, ElementRulerProbe
from .extensions.registry import ExtensionRegistry, create_default_registry
from .inspector.protocol_inspector import BoxModelQuads, ProtocolInspector
from .interaction.sequencer import ActionSequencer, ActionStep, ActionType, SequenceResult
from .utils.logging import LogContext, log_operation
from .visual_ai.accessibility_analyzer import AccessibilityAnalyzer, ContrastReport
from .visual_ai.geometry import element_spacing
from .visual_ai.models import (
    AccessibilitySnapshot,
    BoxModel,
    ElementSnapshot,
    ElementSpacing,
    ElementSummary,
    Rect,
)

logger = structlog.get_logger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", text, flags=re.IGNORECASE)


@dataclass
class ElementInspection:
    """Everything gathered about one element."""

    success: bool
    selector: str
    element: ElementSnapshot | None = None
    accessibility: AccessibilitySnapshot | None = None
    quads: BoxModelQuads | None = None
    screenshots: dict[str, CaptureResult] = field(default_factory=dict)
    files: dict[str, str] = field(default_factory=dict)
    error: PageProbeError | None = None
    warnings: list[str] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "timestamp": self.timestamp,
            "selector": self.selector,
            "element": self.element.to_dict() if self.element else None,
            "accessibility": self.accessibility.to_dict() if self.accessibility else None,
            "quads": self.quads.to_dict() if self.quads else None,
            "screenshots": {name: shot.to_dict() for name, shot in self.screenshots.items()},
            "files": dict(self.files),
            "error": self.error.to_dict() if self.error else None,
            "warnings": list(self.warnings),
        }


@dataclass
class MultiInspection:
    """Per-element results of a batch inspection."""

    results: list[ElementInspection] = field(default_factory=list)
    files: dict[str, str] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.successful

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "totalElements": len(self.results),
            "successful": self.successful,
            "failed": self.failed,
            "elements": [r.to_dict() for r in self.results],
            "files": dict(self.files),
        }


@dataclass
class BeforeAfterCapture:
    """Screenshots around one interaction."""

    selector: str
    action: ActionStep
    sequence: SequenceResult
    files: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.sequence.success

    @property
    def before(self) -> str | None:
        return self.sequence.screenshots[0].path if self.sequence.screenshots else None

    @property
    def after(self) -> str | None:
        if len(self.sequence.screenshots) < 2:
            return None
        return self.sequence.screenshots[-1].path

    def to_dict(self) -> dict[str, Any]:
        final = self.sequence.final_snapshot
        return {
            "success": self.success,
            "timestamp": self.sequence.timestamp,
            "selector": self.selector,
            "action": self.action.to_dict(),
            "screenshots": {"before": self.before, "after": self.after},
            "elementState": final.to_dict() if final else None,
            "error": self.sequence.to_dict()["error"],
            "files": dict(self.files),
        }


@dataclass
class ElementMeasurement:
    """Box-model measurement drawn by the element ruler."""

    selector: str
    rect: Rect
    box_model: BoxModel
    layout: dict[str, Any] | None = None
    overlays: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "rect": self.rect.to_dict(),
            "boxModel": self.box_model.to_dict(),
            "layout": dict(self.layout) if self.layout is not None else None,
            "overlays": self.overlays,
        }


class ElementInspector:
    """High-level element inspection workflows."""

    def __init__(
        self,
        registry: ExtensionRegistry | None = None,
        inspector: ProtocolInspector | None = None,
        settings: Settings | None = None,
        output_dir: Path | str | None = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry or create_default_registry()
        self.inspector = inspector or ProtocolInspector()
        self.projector = CaptureProjector(self.inspector, self.settings)
        self.analyzer = AccessibilityAnalyzer(self.settings)
        self.annotator = ScreenshotAnnotator()
        self.sequencer = ActionSequencer(self.projector, self.registry, self.settings)
        self.output_dir = Path(output_dir or self.settings.output_dir).resolve()
        self.log = logger.bind(component="element_inspector")

    def set_output_dir(self, directory: Path | str) -> None:
        self.output_dir = Path(directory).resolve()
        self.output_dir.mkdir(parents=True, exist_ok=True)

    async def initialize(self, page: Any) -> None:
        await self.inspector.initialize(page)

    async def clear(self, page: Any) -> None:
        """Hide the protocol overlay and remove probe overlays."""
        await self.inspector.clear(page)
        await self.registry.clear_all(page)

    async def cleanup(self, page: Any) -> None:
        await self.registry.clear_all(page)
        await self.inspector.cleanup(page)

    async def inspect(
        self,
        page: Any,
        selector: str,
        show_overlay: bool = True,
        show_info: bool = True,
        show_rulers: bool = False,
        show_extension_lines: bool = True,
        capture_screenshot: bool = True,
        capture_viewport_screenshot: bool = True,
        capture_element_screenshot: bool = True,
        capture_zoomed: bool = False,
        zoom_level: float | None = None,
        annotate: bool = True,
        include_parent: bool = True,
        include_children: bool = True,
        include_computed_styles: bool = True,
        include_attributes: bool = True,
        auto_save: bool = True,
        output_name: str | None = None,
    ) -> ElementInspection:
        """Inspect one element.

        A selector that matches nothing gives ``success=False`` with an
        ElementNotFoundError in ``error``. Failures of single screenshots or
        of the accessibility metrics are recorded in ``warnings`` and do not
        fail the inspection.
        """
        base_name = output_name or f"element-{_slug(selector)}-{_timestamp()}"
        zoom_level = zoom_level or self.settings.inspect_zoom

        with LogContext(selector=selector):
            try:
                if not await self.projector.viewport_intersects(page, selector):
                    await self.projector.scroll_into_view(page, selector)
            except SessionClosedError:
                raise
            except PageProbeError as e:
                self.log.info("Inspection failed", error=str(e))
                return ElementInspection(success=False, selector=selector, error=e)

            protocol = await self.inspector.inspect(
                page,
                selector,
                show_overlay=show_overlay,
                show_info=show_info,
                show_rulers=show_rulers,
                show_extension_lines=show_extension_lines,
                include_styles=include_computed_styles,
            )
            if not protocol.success:
                return ElementInspection(success=False, selector=selector, error=protocol.error)

            result = ElementInspection(success=True, selector=selector, quads=protocol.quads)
            result.element = await self._merge_probe_measurement(
                page,
                selector,
                protocol.snapshot,
                result,
                include_parent=include_parent,
                include_children=include_children,
                include_attributes=include_attributes,
            )
            result.accessibility = await self._accessibility(page, selector, result)

            if auto_save:
                self.output_dir.mkdir(parents=True, exist_ok=True)
            await self._capture_all(
                page,
                result,
                base_name,
                capture_screenshot=capture_screenshot,
                capture_viewport=capture_viewport_screenshot,
                capture_element=capture_element_screenshot,
                capture_zoomed=capture_zoomed,
                zoom_level=zoom_level,
                annotate=annotate,
                save=auto_save,
            )

            if auto_save:
                metadata_path = self.output_dir / f"{base_name}-metadata.json"
                result.files["metadata"] = str(metadata_path)
                self._write_json(metadata_path, result.to_dict())

            self.log.info(
                "Element inspected",
                screenshots=sorted(result.screenshots),
                warnings=len(result.warnings),
            )
            return result

    async def inspect_multiple(
        self,
        page: Any,
        selectors: list[str],
        capture_screenshots: bool = True,
        capture_viewport_screenshots: bool = False,
        output_name: str | None = None,
        auto_save: bool = True,
    ) -> MultiInspection:
        """Inspect several elements; one failure never stops the others."""
        base_name = output_name or f"multi-element-inspection-{_timestamp()}"
        batch = MultiInspection()

        for index, selector in enumerate(selectors):
            try:
                result = await self.inspect(
                    page,
                    selector,
                    show_overlay=False,
                    capture_screenshot=False,
                    capture_viewport_screenshot=capture_viewport_screenshots,
                    capture_element_screenshot=capture_screenshots,
                    annotate=False,
                    include_parent=False,
                    include_children=False,
                    include_computed_styles=False,
                    auto_save=auto_save,
                    output_name=f"{base_name}-{index}",
                )
            except PageProbeError as e:
                result = ElementInspection(success=False, selector=selector, error=e)
            batch.results.append(result)

        if auto_save:
            summary_path = self.output_dir / f"{base_name}-summary.json"
            batch.files["summary"] = str(summary_path)
            self._write_json(summary_path, batch.to_dict())

        self.log.info("Batch inspection complete", total=len(selectors), failed=batch.failed)
        return batch

    async def inspect_with_action_sequence(
        self,
        page: Any,
        selector: str,
        actions: list[ActionStep | dict[str, Any]],
        capture_intermediate: bool = False,
        capture_viewport: bool = False,
        capture_delay_ms: int | None = None,
        output_name: str | None = None,
        auto_save: bool = True,
        cancel_token: Any = None,
    ) -> SequenceResult:
        """Run an action sequence and write its JSON result."""
        base_name = output_name or f"action-sequence-{_slug(selector)}-{_timestamp()}"
        with log_operation("action_sequence", self.log, selector=selector, steps=len(actions)) as op:
            result = await self.sequencer.run(
                page,
                selector,
                actions,
                capture_intermediate=capture_intermediate,
                capture_viewport=capture_viewport,
                capture_delay_ms=capture_delay_ms,
                output_dir=self.output_dir,
                output_name=base_name,
                cancel_token=cancel_token,
            )
            op["completed_steps"] = result.completed_steps
            op["failed_at_step"] = result.failed_at_step
        if auto_save:
            self._write_json(self.output_dir / f"{base_name}-sequence-result.json", result.to_dict())
        return result

    async def capture_before_after(
        self,
        page: Any,
        selector: str,
        action: ActionType | str = ActionType.HOVER,
        target: str | None = None,
        capture_delay_ms: int | None = None,
        output_name: str | None = None,
        auto_save: bool = True,
    ) -> BeforeAfterCapture:
        """Screenshot the page before and after one click, hover or focus."""
        step = ActionStep(type=ActionType(action), target=target)
        base_name = output_name or f"action-{step.type.value}-{_slug(selector)}-{_timestamp()}"
        sequence = await self.sequencer.run(
            page,
            selector,
            [step],
            capture_delay_ms=capture_delay_ms,
            output_dir=self.output_dir,
            output_name=base_name,
        )
        capture = BeforeAfterCapture(selector=selector, action=step, sequence=sequence)
        if auto_save:
            path = self.output_dir / f"{base_name}-action-result.json"
            capture.files["result"] = str(path)
            self._write_json(path, capture.to_dict())
        return capture

    async def check_page_contrast(
        self,
        page: Any,
        viewport_only: bool = False,
        mark_issues: bool = False,
    ) -> ContrastReport:
        return await self.analyzer.check_page_contrast(
            page, self.registry, viewport_only=viewport_only, mark_issues=mark_issues
        )

    async def measure_element(
        self,
        page: Any,
        selector: str,
        show_dimensions: bool = True,
        show_margin: bool = True,
        show_padding: bool = True,
        show_position: bool = True,
        persistent: bool = False,
        include_layout: bool = True,
    ) -> ElementMeasurement:
        """Draw box-model rulers on an element and return its measurements.

        The overlays stay on the page until ``clear``; with ``persistent``
        earlier measurements are kept as well.

        Raises:
            ElementNotFoundError: if the selector matches nothing
            ExtensionError: if the ruler could not measure the element
        """
        response = await self.registry.invoke(
            page,
            ElementRulerProbe.id,
            ElementRulerMethod.MEASURE_ELEMENT,
            {
                "selector": selector,
                "showDimensions": show_dimensions,
                "showMargin": show_margin,
                "showPadding": show_padding,
                "showPosition": show_position,
                "persistent": persistent,
            },
        )
        data = response.unwrap()
        if not data:
            raise ExtensionError(
                "Ruler returned no measurement",
                extension_id=ElementRulerProbe.id,
                method=ElementRulerMethod.MEASURE_ELEMENT.value,
            )

        layout = None
        if include_layout:
            layout_response = await self.registry.invoke(
                page, ElementRulerProbe.id, ElementRulerMethod.GET_LAYOUT_INFO, {"selector": selector}
            )
            layout = layout_response.unwrap()

        measurement = ElementMeasurement(
            selector=selector,
            rect=Rect.from_dict(data.get("rect") or {}),
            box_model=BoxModel.from_dict(data.get("boxModel")),
            layout=layout,
            overlays=int(data.get("overlays", 0)),
        )
        self.log.info("Element measured", selector=selector, rect=measurement.rect.to_dict())
        return measurement

    async def compare_elements(
        self,
        page: Any,
        first: str,
        second: str,
        tolerance: float | None = None,
    ) -> ElementSpacing:
        """Spacing and alignment between two elements in page space.

        Raises:
            ElementNotFoundError: if either selector matches nothing
            ExtensionError: if the ruler could not read the elements
        """
        tolerance = self.settings.alignment_tolerance if tolerance is None else tolerance
        response = await self.registry.invoke(
            page,
            ElementRulerProbe.id,
            ElementRulerMethod.COMPARE_ELEMENTS,
            {"first": first, "second": second},
        )
        data = response.unwrap()
        if not data:
            raise ExtensionError(
                "Ruler returned no rectangles",
                extension_id=ElementRulerProbe.id,
                method=ElementRulerMethod.COMPARE_ELEMENTS.value,
            )
        spacing = element_spacing(Rect.from_dict(data["first"]), Rect.from_dict(data["second"]), tolerance)
        self.log.debug("Elements compared", first=first, second=second, spacing=spacing.to_dict())
        return spacing

    async def capture_with_highlight(
        self,
        page: Any,
        selector: str,
        color: str | None = None,
        width: int | None = None,
        padding: float | None = None,
        zoom: float | None = None,
        output_name: str | None = None,
        auto_save: bool = True,
    ) -> CaptureResult:
        """Element close-up with a solid outline drawn around the element.

        The outline is drawn into the image, so the page is left untouched.

        Raises:
            ElementNotFoundError: if the selector matches nothing
            CaptureError: if the screenshot could not be produced
        """
        base_name = output_name or f"element-{_slug(selector)}-{_timestamp()}"
        padding = self.settings.element_padding if padding is None else padding
        shot = await self.projector.capture_element(page, selector, padding=padding, zoom=zoom)
        bbox = shot.region.element_bounding_box
        if bbox is None:
            raise CaptureError("Element is not inside the captured image", selector=selector)

        data = self.annotator.outline(
            shot.data,
            bbox,
            color or self.settings.highlight_color,
            width or self.settings.highlight_width,
        )
        result = CaptureResult(region=shot.region, data=data)
        if auto_save:
            result.save(self.output_dir / f"{base_name}-highlighted.png")
        return result

    async def capture_at_scroll_position(
        self,
        page: Any,
        x: float,
        y: float,
        output_name: str | None = None,
        auto_save: bool = True,
    ) -> CaptureResult:
        """Viewport screenshot after scrolling the window to (x, y)."""
        base_name = output_name or f"scroll-{_timestamp()}"
        path = self.output_dir / f"{base_name}-scroll-{int(x)}-{int(y)}.png" if auto_save else None
        return await self.projector.capture_at_scroll_position(page, x, y, path=path)

    # Internals

    async def _merge_probe_measurement(
        self,
        page: Any,
        selector: str,
        snapshot: ElementSnapshot,
        result: ElementInspection,
        include_parent: bool,
        include_children: bool,
        include_attributes: bool,
    ) -> ElementSnapshot:
        """Add text, parent and children from the element probe."""
        response = await self.registry.invoke(
            page,
            ElementProbe.id,
            ElementProbeMethod.MEASURE,
            {"selector": selector, "includeChildren": include_children, "includeAttributes": include_attributes},
        )
        if not response.success or not response.data:
            self.log.warning("Probe measurement failed", error=str(response.error))
            result.warnings.append(f"measure: {response.error or 'no data'}")
            return snapshot if include_attributes else replace(snapshot, attributes=None)

        measured = ElementSnapshot.from_dict(response.data)
        parent: ElementSummary | None = measured.parent if include_parent else None
        return replace(
            snapshot,
            text_content=measured.text_content,
            styles={**measured.styles, **snapshot.styles},
            attributes=snapshot.attributes if include_attributes else None,
            parent=parent,
            children=measured.children if include_children else None,
            visibility={**measured.visibility, **snapshot.visibility},
        )

    async def _accessibility(
        self,
        page: Any,
        selector: str,
        result: ElementInspection,
    ) -> AccessibilitySnapshot | None:
        response = await self.registry.invoke(
            page,
            ElementProbe.id,
            ElementProbeMethod.ACCESSIBILITY,
            {"selector": selector},
        )
        if not response.success or not response.data:
            result.warnings.append(f"accessibility: {response.error or 'no data'}")
            return None
        accessibility = self.analyzer.analyze(response.data)
        if accessibility.contrast_error:
            result.warnings.append(f"accessibility: {accessibility.contrast_error}")
        return accessibility

    async def _capture_all(
        self,
        page: Any,
        result: ElementInspection,
        base_name: str,
        capture_screenshot: bool,
        capture_viewport: bool,
        capture_element: bool,
        capture_zoomed: bool,
        zoom_level: float,
        annotate: bool,
        save: bool,
    ) -> None:
        element = result.element

        def path_for(suffix: str) -> Path | None:
            return self.output_dir / f"{base_name}-{suffix}.png" if save else None

        async def attempt(name: str, coro) -> CaptureResult | None:
            try:
                shot = await coro
            except PageProbeError as e:
                result.warnings.append(f"{name}: {e}")
                self.log.warning("Screenshot failed", screenshot=name, error=str(e))
                return None
            result.screenshots[name] = shot
            if shot.path:
                result.files[name] = shot.path
            return shot

        if capture_screenshot:
            shot = await attempt("fullPage", self.projector.capture_page(page, True, path_for("fullpage")))
            if shot and annotate:
                self._annotate(result, "annotated", shot.data, element.rect, False, path_for("annotated"))
                self._annotate(
                    result, "annotatedElement", shot.data, element.rect, True, path_for("annotated-element")
                )

        if capture_viewport:
            shot = await attempt("viewport", self.projector.capture_page(page, False, path_for("viewport")))
            if shot and annotate and element.viewport_rect is not None:
                self._annotate(
                    result, "viewportAnnotated", shot.data, element.viewport_rect, False, path_for("viewport-annotated")
                )
                self._annotate(
                    result,
                    "viewportAnnotatedElement",
                    shot.data,
                    element.viewport_rect,
                    True,
                    path_for("viewport-annotated-element"),
                )

        if capture_element:
            shot = await attempt(
                "element",
                self.projector.capture_element(
                    page, result.selector, padding=self.settings.element_padding, path=path_for("element")
                ),
            )
            if shot and annotate and shot.region.element_bounding_box is not None:
                self._annotate(
                    result,
                    "elementAnnotated",
                    shot.data,
                    shot.region.element_bounding_box,
                    False,
                    path_for("element-annotated"),
                )

        if capture_zoomed:
            suffix = f"zoomed-{zoom_level:g}x"
            await attempt(
                "zoomed",
                self.projector.capture_element(
                    page,
                    result.selector,
                    padding=self.settings.element_padding,
                    zoom=zoom_level,
                    path=path_for(suffix),
                ),
            )

    def _annotate(
        self,
        result: ElementInspection,
        name: str,
        data: bytes,
        rect,
        crop: bool,
        path: Path | None,
    ) -> None:
        try:
            annotated = self.annotator.annotate(data, result.element, rect, result.accessibility, crop)
        except PageProbeError as e:
            result.warnings.append(f"{name}: {e}")
            return
        if path is not None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(annotated.data)
            result.files[name] = str(path)

    def _write_json(self, path: Path, payload: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        self.log.debug("JSON written", path=str(path))
