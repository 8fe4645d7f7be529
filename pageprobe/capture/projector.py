"""Capture projector: element geometry to screenshot regions.

Turns "element + padding [+ zoom]" or an arbitrary page rectangle into a
screenshot clip and reports where the element sits inside the produced
image. The clip is computed in page space; the image is in pixels of the
(possibly zoomed) screenshot. Both are reported in a CaptureRegion.

The decoded size of the PNG is the ground truth for ``image_size``.
"""

import base64
import io
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import structlog
from PIL import Image

from ..config import Settings, get_settings
from ..exceptions import CaptureError, GeometryError, PageProbeError
from ..inspector.protocol_inspector import ProtocolInspector
from ..visual_ai.geometry import (
    clamp_to_page,
    edges_between,
    expand_box,
    normalize_clip,
    project_to_image_space,
)
from ..visual_ai.models import BoxEdges, CaptureRegion, Rect, Size

logger = structlog.get_logger(__name__)

CAPTURE_STYLE_ID = "__pageprobe_capture_style__"

HIDE_OVERLAYS_JS = """
(styleId) => {
    if (document.getElementById(styleId)) return false;
    const style = document.createElement('style');
    style.id = styleId;
    style.textContent = '[data-pageprobe-overlay] { visibility: hidden !important; }';
    (document.head || document.documentElement).appendChild(style);
    return true;
}
"""

SHOW_OVERLAYS_JS = """
(styleId) => {
    const style = document.getElementById(styleId);
    if (style) style.remove();
    return Boolean(style);
}
"""

SCROLL_TO_JS = """
({ x, y }) => {
    window.scrollTo(x, y);
    return { x: window.scrollX, y: window.scrollY };
}
"""


@dataclass
class CaptureResult:
    """A captured image with its region metadata."""

    region: CaptureRegion
    data: bytes = field(repr=False)
    path: str | None = None

    @property
    def base64(self) -> str:
        return base64.standard_b64encode(self.data).decode()

    @property
    def data_uri(self) -> str:
        return f"data:image/png;base64,{self.base64}"

    def save(self, path: Path | str) -> str:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        self.path = str(path)
        return self.path

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, **self.region.to_dict()}


@dataclass
class CaptureRequest:
    """One element capture in a batch."""

    selector: str
    padding: float | None = None
    zoom: float | None = None
    path: str | None = None


@dataclass
class CaptureOutcome:
    """Per-element result of a batch capture."""

    selector: str
    success: bool
    result: CaptureResult | None = None
    error: PageProbeError | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "success": self.success,
            "capture": self.result.to_dict() if self.result else None,
            "error": self.error.to_dict() if self.error else None,
        }


def decode_image_size(data: bytes) -> Size:
    """Pixel size of an encoded image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
    except Exception as e:
        raise CaptureError(f"Screenshot could not be decoded: {e}") from e
    return Size(width=width, height=height)


class CaptureProjector:
    """Plans and takes element, clip and page screenshots."""

    def __init__(self, inspector: ProtocolInspector, settings: Settings | None = None):
        self.inspector = inspector
        self.settings = settings or get_settings()
        self.log = logger.bind(component="capture_projector")

    # Planning (pure)

    def plan_element_capture(
        self,
        element_rect: Rect,
        padding: float = 0,
        zoom: float = 1.0,
        page_size: Size | None = None,
    ) -> CaptureRegion:
        """Compute the clip and image-space element box for an element.

        The part of the element that lies off the page is cut away first, so
        the element box always lies inside the image.

        Raises:
            CaptureError: if no part of the element lies on the page, or it has
                no area and no padding
        """
        if zoom <= 0:
            raise ValueError(f"zoom must be > 0, got {zoom}")

        visible = clamp_to_page(element_rect, page_size)
        if visible is None:
            raise CaptureError(
                "Element lies entirely outside the page",
                rect=element_rect.to_dict(),
                page_size=page_size.to_dict() if page_size else None,
            )

        try:
            clip, _ = expand_box(visible, padding, page_size)
        except GeometryError as e:
            raise CaptureError(
                "Element has no area and no padding to capture",
                rect=element_rect.to_dict(),
                padding=padding,
            ) from e
        clip = normalize_clip(clip)
        if page_size is not None:
            clip = clamp_to_page(clip, page_size) or clip

        image_size = self._image_size(clip, zoom)
        bbox = project_to_image_space(visible, clip, zoom)
        image_rect = Rect(0, 0, image_size.width, image_size.height)
        if not image_rect.contains(bbox):
            # Image size is rounded to whole pixels at fractional zoom
            bbox = bbox.intersection(image_rect) or bbox

        return CaptureRegion(
            region=clip,
            image_size=image_size,
            element_bounding_box=bbox,
            padding=padding,
            effective_padding=edges_between(clip, visible),
            zoom=zoom,
        )

    def plan_clip_capture(
        self,
        rect: Rect,
        zoom: float = 1.0,
        page_size: Size | None = None,
    ) -> CaptureRegion:
        """Compute the region for an arbitrary page rectangle."""
        if zoom <= 0:
            raise ValueError(f"zoom must be > 0, got {zoom}")

        visible = clamp_to_page(rect, page_size)
        if visible is None or visible.area == 0:
            raise CaptureError("Clip lies entirely outside the page", rect=rect.to_dict())

        clip = normalize_clip(visible)
        if page_size is not None:
            clip = clamp_to_page(clip, page_size) or clip

        return CaptureRegion(
            region=clip,
            image_size=self._image_size(clip, zoom),
            element_bounding_box=None,
            padding=0.0,
            effective_padding=BoxEdges(),
            zoom=zoom,
        )

    @staticmethod
    def _image_size(clip: Rect, zoom: float) -> Size:
        return Size(width=max(1, int(round(clip.width * zoom))), height=max(1, int(round(clip.height * zoom))))

    # Capturing

    async def capture_element(
        self,
        page: Any,
        selector: str,
        padding: float | None = None,
        zoom: float | None = None,
        path: Path | str | None = None,
        scroll_into_view: bool = True,
        include_overlays: bool = False,
    ) -> CaptureResult:
        """Screenshot an element with padding and zoom.

        The element is scrolled into view first, and only when it does not
        already intersect the viewport. Geometry is measured after the scroll.

        Raises:
            ElementNotFoundError: if the selector matches nothing
            CaptureError: if the screenshot could not be produced
        """
        padding = self.settings.default_padding if padding is None else padding
        zoom = self.settings.default_zoom if zoom is None else zoom

        metrics = await self.inspector.get_layout_metrics(page)
        quads = await self.inspector.get_box_model(page, selector, metrics=metrics)

        if scroll_into_view and not quads.border_rect.intersects(metrics.viewport):
            await self.scroll_into_view(page, selector)
            metrics = await self.inspector.get_layout_metrics(page)
            quads = await self.inspector.get_box_model(page, selector, metrics=metrics)

        region = self.plan_element_capture(quads.border_rect, padding, zoom, metrics.content_size)
        data = await self._screenshot_clip(page, region.region, zoom, include_overlays)
        result = CaptureResult(region=self._reconcile(region, data, selector), data=data)

        if path is not None:
            result.save(path)
        self.log.info(
            "Element captured",
            selector=selector,
            region=region.region.to_dict(),
            image_size=result.region.image_size.to_dict(),
            path=result.path,
        )
        return result

    async def capture_clip(
        self,
        page: Any,
        rect: Rect,
        zoom: float | None = None,
        path: Path | str | None = None,
        include_overlays: bool = False,
    ) -> CaptureResult:
        """Screenshot an arbitrary page-space rectangle."""
        zoom = self.settings.default_zoom if zoom is None else zoom
        metrics = await self.inspector.get_layout_metrics(page)
        region = self.plan_clip_capture(rect, zoom, metrics.content_size)
        data = await self._screenshot_clip(page, region.region, zoom, include_overlays)
        result = CaptureResult(region=self._reconcile(region, data), data=data)
        if path is not None:
            result.save(path)
        return result

    async def capture_page(
        self,
        page: Any,
        full_page: bool = True,
        path: Path | str | None = None,
        include_overlays: bool = False,
    ) -> CaptureResult:
        """Screenshot the full page or the current viewport."""
        metrics = await self.inspector.get_layout_metrics(page)
        if full_page:
            rect = Rect(0, 0, metrics.content_size.width, metrics.content_size.height)
        else:
            rect = metrics.viewport

        async with self._overlays_hidden(page, include_overlays):
            try:
                data = await page.screenshot(full_page=full_page, type="png")
            except Exception as e:
                raise CaptureError(f"Page screenshot failed: {e}", full_page=full_page) from e

        region = CaptureRegion(region=rect, image_size=decode_image_size(data), element_bounding_box=None)
        result = CaptureResult(region=region, data=data)
        if path is not None:
            result.save(path)
        self.log.debug("Page captured", full_page=full_page, image_size=region.image_size.to_dict())
        return result

    async def capture_at_scroll_position(
        self,
        page: Any,
        x: float,
        y: float,
        path: Path | str | None = None,
        include_overlays: bool = False,
    ) -> CaptureResult:
        """Scroll the window to (x, y) and screenshot the viewport.

        The browser clamps the position to the scrollable range; the
        returned region is the viewport actually shown.

        Raises:
            CaptureError: if the page could not be scrolled or captured
        """
        if x < 0 or y < 0:
            raise ValueError(f"scroll position must be >= 0, got ({x}, {y})")
        try:
            reached = await page.evaluate(SCROLL_TO_JS, {"x": x, "y": y})
        except Exception as e:
            raise CaptureError(f"Could not scroll the page: {e}", x=x, y=y) from e
        await page.wait_for_timeout(self.settings.scroll_settle_ms)
        self.log.debug("Scrolled for capture", requested={"x": x, "y": y}, reached=reached)
        return await self.capture_page(page, full_page=False, path=path, include_overlays=include_overlays)

    async def capture_elements(
        self,
        page: Any,
        requests: list[CaptureRequest | str],
        include_overlays: bool = False,
    ) -> list[CaptureOutcome]:
        """Capture several elements, collecting per-element failures."""
        outcomes = []
        for request in requests:
            if isinstance(request, str):
                request = CaptureRequest(selector=request)
            try:
                result = await self.capture_element(
                    page,
                    request.selector,
                    padding=request.padding,
                    zoom=request.zoom,
                    path=request.path,
                    include_overlays=include_overlays,
                )
                outcomes.append(CaptureOutcome(selector=request.selector, success=True, result=result))
            except PageProbeError as e:
                self.log.warning("Element capture failed", selector=request.selector, error=str(e))
                outcomes.append(CaptureOutcome(selector=request.selector, success=False, error=e))
        return outcomes

    async def scroll_into_view(self, page: Any, selector: str) -> None:
        """Scroll the first match into view.

        Raises:
            CaptureError: if the driver could not scroll the element
        """
        try:
            await page.locator(selector).first.scroll_into_view_if_needed()
        except PageProbeError:
            raise
        except Exception as e:
            raise CaptureError(f"Could not scroll element into view: {e}", selector=selector) from e
        await page.wait_for_timeout(self.settings.scroll_settle_ms)

    async def viewport_intersects(self, page: Any, selector: str) -> bool:
        metrics = await self.inspector.get_layout_metrics(page)
        quads = await self.inspector.get_box_model(page, selector, metrics=metrics)
        return quads.border_rect.intersects(metrics.viewport)

    # Internals

    def _reconcile(self, region: CaptureRegion, data: bytes, selector: str | None = None) -> CaptureRegion:
        actual = decode_image_size(data)
        if actual != region.image_size:
            self.log.warning(
                "Captured image size differs from plan",
                selector=selector,
                planned=region.image_size.to_dict(),
                actual=actual.to_dict(),
            )
        region = region.with_image_size(actual)

        bbox = region.element_bounding_box
        if bbox is not None and not region.image_rect.contains(bbox):
            fitted = bbox.intersection(region.image_rect)
            if fitted is None:
                raise GeometryError(
                    "Element bounding box falls outside the captured image",
                    element=bbox.to_dict(),
                    image_size=actual.to_dict(),
                )
            region = replace(region, element_bounding_box=fitted)
        return region

    async def _screenshot_clip(self, page: Any, clip: Rect, zoom: float, include_overlays: bool) -> bytes:
        async with self._overlays_hidden(page, include_overlays):
            try:
                response = await self.inspector.send(
                    page,
                    "Page.captureScreenshot",
                    {
                        "format": "png",
                        "clip": {
                            "x": clip.x,
                            "y": clip.y,
                            "width": clip.width,
                            "height": clip.height,
                            "scale": zoom,
                        },
                        "captureBeyondViewport": True,
                    },
                )
            except PageProbeError as e:
                raise CaptureError(f"Screenshot failed: {e.message}", clip=clip.to_dict()) from e

        encoded = response.get("data")
        if not encoded:
            raise CaptureError("Screenshot returned no data", clip=clip.to_dict())
        return base64.b64decode(encoded)

    def _overlays_hidden(self, page: Any, include_overlays: bool) -> "_OverlaysHidden":
        return _OverlaysHidden(page, active=not include_overlays)


class _OverlaysHidden:
    """Hides probe overlays for the duration of a capture."""

    def __init__(self, page: Any, active: bool):
        self.page = page
        self.active = active

    async def __aenter__(self) -> None:
        if self.active:
            await self.page.evaluate(HIDE_OVERLAYS_JS, CAPTURE_STYLE_ID)

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.active:
            await self.page.evaluate(SHOW_OVERLAYS_JS, CAPTURE_STYLE_ID)
