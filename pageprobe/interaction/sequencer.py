"""Action sequencer: ordered interaction steps with screenshots.

Runs click/hover/focus/type/wait steps strictly in order against one
primary element (or a per-step target). Before a step that needs the
element to be visible, the element is scrolled into view, but only when its
page-space box does not already intersect the viewport.

Screenshots: the initial state, then one after every step when
``capture_intermediate`` is set, otherwise one after the last step.
"""

import asyncio
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from ..capture.projector import CaptureProjector
from ..config import CaptureMode, Settings, get_settings
from ..exceptions import PageProbeError
from ..extensions.element_probe import ElementProbe, ElementProbeMethod
from ..extensions.registry import ExtensionRegistry
from ..utils.logging import SequenceLogger
from ..visual_ai.models import ElementSnapshot

logger = structlog.get_logger(__name__)


class ActionType(str, Enum):
    CLICK = "click"
    HOVER = "hover"
    FOCUS = "focus"
    TYPE = "type"
    WAIT = "wait"

    @property
    def needs_visibility(self) -> bool:
        return self is not ActionType.WAIT


@dataclass(frozen=True)
class ActionStep:
    """One interaction step."""

    type: ActionType
    target: str | None = None
    value: str | None = None
    duration_ms: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActionStep":
        try:
            action = ActionType(data["type"])
        except (KeyError, ValueError):
            raise ValueError(f"Unknown action type: {data.get('type')!r}")
        duration = data.get("duration_ms", data.get("duration"))
        return cls(
            type=action,
            target=data.get("target"),
            value=data.get("value"),
            duration_ms=int(duration) if duration is not None else None,
        )

    def describe(self) -> str:
        return f"{self.type.value}: {self.value}" if self.value else self.type.value

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type.value, "target": self.target}
        if self.value is not None:
            result["value"] = self.value
        if self.duration_ms is not None:
            result["duration"] = self.duration_ms
        return result


@dataclass
class StepRecord:
    """What happened at one step."""

    step: int
    action_type: ActionType
    target: str
    value: str | None = None
    scrolled: bool = False
    visible_before: bool | None = None
    visible_after: bool | None = None
    screenshot_path: str | None = None
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "type": self.action_type.value,
            "target": self.target,
            "value": self.value,
            "scrolled": self.scrolled,
            "visibleBefore": self.visible_before,
            "visibleAfter": self.visible_after,
            "screenshot": self.screenshot_path,
            "duration": self.duration_ms,
        }


@dataclass
class ScreenshotRecord:
    step: int
    action: str
    path: str

    def to_dict(self) -> dict[str, Any]:
        return {"step": self.step, "action": self.action, "path": self.path}


@dataclass
class SequenceResult:
    """Outcome of a sequence run. Prior steps are kept when a step fails."""

    selector: str
    steps: list[StepRecord] = field(default_factory=list)
    screenshots: list[ScreenshotRecord] = field(default_factory=list)
    final_snapshot: ElementSnapshot | None = None
    failed_at_step: int | None = None
    error: PageProbeError | Exception | None = None
    cancelled: bool = False
    capture_mode: CaptureMode = CaptureMode.FULL_PAGE
    total_steps: int = 0
    duration_ms: int = 0
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def success(self) -> bool:
        return self.failed_at_step is None and not self.cancelled and self.error is None

    @property
    def completed_steps(self) -> int:
        return len(self.steps)

    def to_dict(self) -> dict[str, Any]:
        error = None
        if self.error is not None:
            error = self.error.to_dict() if isinstance(self.error, PageProbeError) else {"message": str(self.error)}
        return {
            "success": self.success,
            "timestamp": self.timestamp,
            "selector": self.selector,
            "actionsPerformed": self.completed_steps,
            "totalActions": self.total_steps,
            "actions": [record.to_dict() for record in self.steps],
            "screenshots": [shot.to_dict() for shot in self.screenshots],
            "finalElementState": self.final_snapshot.to_dict() if self.final_snapshot else None,
            "captureMode": self.capture_mode.value,
            "failedAtStep": self.failed_at_step,
            "completedSteps": self.completed_steps,
            "cancelled": self.cancelled,
            "error": error,
            "duration": self.duration_ms,
        }


class CancellationToken:
    """Checked between steps; cancelling stops the run before the next step."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", text, flags=re.IGNORECASE)


class ActionSequencer:
    """Executes ActionStep lists against a page."""

    def __init__(
        self,
        projector: CaptureProjector,
        registry: ExtensionRegistry,
        settings: Settings | None = None,
    ):
        self.projector = projector
        self.registry = registry
        self.settings = settings or get_settings()
        self.log = logger.bind(component="action_sequencer")

    async def run(
        self,
        page: Any,
        selector: str,
        steps: list[ActionStep | dict[str, Any]],
        capture_intermediate: bool = False,
        capture_viewport: bool = False,
        capture_delay_ms: int | None = None,
        output_dir: Path | str | None = None,
        output_name: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> SequenceResult:
        """Run steps in order and capture screenshots.

        Args:
            page: Playwright page
            selector: Primary element; steps without a target act on it
            steps: ActionStep objects or their wire dicts
            capture_intermediate: Screenshot after every step
            capture_viewport: Capture the viewport instead of the full page
            capture_delay_ms: Settle time after each step
            output_dir: Directory for screenshots
            output_name: File name prefix
            cancel_token: Checked between steps

        Returns:
            SequenceResult; ``failed_at_step`` is 1-based and None on success
        """
        start = time.time()
        actions = [s if isinstance(s, ActionStep) else ActionStep.from_dict(s) for s in steps]
        delay = self.settings.capture_delay_ms if capture_delay_ms is None else capture_delay_ms
        directory = Path(output_dir) if output_dir else Path(self.settings.output_dir) / self.settings.screenshot_dir_name
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        base_name = output_name or f"action-sequence-{_slug(selector)}-{stamp}"

        result = SequenceResult(
            selector=selector,
            capture_mode=CaptureMode.VIEWPORT if capture_viewport else CaptureMode.FULL_PAGE,
            total_steps=len(actions),
        )
        seq_log = SequenceLogger(selector, len(actions))
        seq_log.sequence_started(capture_intermediate=capture_intermediate, capture_mode=result.capture_mode.value)

        try:
            await self._screenshot(page, result, seq_log, directory, base_name, 0, "initial", capture_viewport)
        except PageProbeError as e:
            result.error = e
            result.duration_ms = int((time.time() - start) * 1000)
            seq_log.sequence_completed("failed", result.duration_ms)
            return result

        for index, action in enumerate(actions, start=1):
            if cancel_token is not None and cancel_token.cancelled:
                result.cancelled = True
                self.log.info("Sequence cancelled", selector=selector, step=index)
                break

            target = action.target or selector
            seq_log.step_started(index, action.type.value, target)
            step_start = time.time()
            record = StepRecord(step=index, action_type=action.type, target=target, value=action.value)

            try:
                if action.type.needs_visibility:
                    await self._ensure_visible(page, record, seq_log)
                await self._perform(page, action, target)
                await page.wait_for_timeout(delay)
            except Exception as e:
                error = e
                if not isinstance(e, PageProbeError):
                    error = PageProbeError(f"Step {index} ({action.type.value}) failed: {e}", selector=target, step=index)
                result.failed_at_step = index
                result.error = error
                seq_log.step_failed(index, action.type.value, str(error))
                break

            record.duration_ms = int((time.time() - step_start) * 1000)
            result.steps.append(record)
            seq_log.step_completed(index, action.type.value, record.duration_ms)

            if capture_intermediate or index == len(actions):
                try:
                    record.screenshot_path = await self._screenshot(
                        page, result, seq_log, directory, base_name, index, action, capture_viewport
                    )
                except PageProbeError as e:
                    result.failed_at_step = index
                    result.error = e
                    break

        if not actions and result.success:
            try:
                await self._screenshot(page, result, seq_log, directory, base_name, 0, "final", capture_viewport)
            except PageProbeError as e:
                result.error = e

        result.final_snapshot = await self._final_snapshot(page, selector)
        result.duration_ms = int((time.time() - start) * 1000)
        status = "passed" if result.success else ("cancelled" if result.cancelled else "failed")
        seq_log.sequence_completed(status, result.duration_ms)
        return result

    async def _ensure_visible(self, page: Any, record: StepRecord, seq_log: SequenceLogger) -> None:
        """Scroll the target into view only if it is outside the viewport."""
        visible = await self.projector.viewport_intersects(page, record.target)
        record.visible_before = visible
        record.visible_after = visible
        if visible:
            return

        await self.projector.scroll_into_view(page, record.target)
        record.scrolled = True
        record.visible_after = await self.projector.viewport_intersects(page, record.target)
        seq_log.scrolled(record.step, record.target, record.visible_after)

    async def _perform(self, page: Any, action: ActionStep, target: str) -> None:
        if action.type == ActionType.WAIT:
            await page.wait_for_timeout(action.duration_ms or self.settings.default_wait_ms)
            return

        locator = page.locator(target).first
        if action.type == ActionType.CLICK:
            await locator.click()
        elif action.type == ActionType.HOVER:
            await locator.hover()
        elif action.type == ActionType.FOCUS:
            await locator.focus()
        elif action.type == ActionType.TYPE:
            if action.value:
                await locator.press_sequentially(action.value)

    async def _screenshot(
        self,
        page: Any,
        result: SequenceResult,
        seq_log: SequenceLogger,
        directory: Path,
        base_name: str,
        step: int,
        action: ActionStep | str,
        capture_viewport: bool,
    ) -> str:
        label = action if isinstance(action, str) else action.type.value
        path = directory / f"{base_name}-{step}-{label}.png"
        capture = await self.projector.capture_page(page, full_page=not capture_viewport, path=path)
        description = action if isinstance(action, str) else action.describe()
        result.screenshots.append(ScreenshotRecord(step=step, action=description, path=capture.path))
        seq_log.screenshot_taken(step, capture.path)
        return capture.path

    async def _final_snapshot(self, page: Any, selector: str) -> ElementSnapshot | None:
        response = await self.registry.invoke(
            page,
            ElementProbe.id,
            ElementProbeMethod.MEASURE,
            {"selector": selector},
        )
        if not response.success or not response.data:
            self.log.warning("Final measurement failed", selector=selector, error=str(response.error))
            return None
        return ElementSnapshot.from_dict(response.data)
