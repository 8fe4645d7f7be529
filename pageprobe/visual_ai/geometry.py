"""Box-model arithmetic and coordinate projection.

Three coordinate systems are involved in every capture:

- page space: the full rendered document, before scrolling or cropping
- viewport space: what is currently visible, offset by the scroll position
- image space: the pixel buffer of one particular screenshot

Everything here is pure and total over well-formed input.
"""

import math
from collections.abc import Sequence

from ..exceptions import GeometryError
from .models import BoxEdges, ElementSpacing, Rect, Size


def expand_box(
    rect: Rect,
    padding: float,
    bounds: Size | None = None,
) -> tuple[Rect, BoxEdges]:
    """Grow ``rect`` by ``padding`` on every side, clamped to the page.

    The clip never starts before ``(0, 0)`` and, when ``bounds`` is given,
    never extends past the page content size.

    Args:
        rect: Element rectangle in page space
        padding: Requested padding in CSS pixels
        bounds: Page content size, if known

    Returns:
        Tuple of (clip rectangle, padding actually applied on each edge)
    """
    if padding < 0:
        raise ValueError(f"padding must be >= 0, got {padding}")

    left = max(0.0, rect.x - padding)
    top = max(0.0, rect.y - padding)
    right = rect.right + padding
    bottom = rect.bottom + padding

    if bounds is not None:
        right = min(right, float(bounds.width))
        bottom = min(bottom, float(bounds.height))

    if right <= left or bottom <= top:
        raise GeometryError(
            "Clip region is empty after clamping to the page",
            rect=rect.to_dict(),
            padding=padding,
        )

    effective = BoxEdges(
        top=max(0.0, rect.y - top),
        right=max(0.0, right - rect.right),
        bottom=max(0.0, bottom - rect.bottom),
        left=max(0.0, rect.x - left),
    )
    return Rect.from_edges(left, top, right, bottom), effective


def clamp_to_page(rect: Rect, bounds: Size | None) -> Rect | None:
    """Cut ``rect`` down to the part that lies on the page."""
    page = Rect(0, 0, bounds.width, bounds.height) if bounds is not None else Rect(0, 0, math.inf, math.inf)
    return rect.intersection(page)


def normalize_clip(rect: Rect) -> Rect:
    """Snap a clip rectangle outward to whole pixels."""
    left = math.floor(round(rect.x, 6))
    top = math.floor(round(rect.y, 6))
    right = math.ceil(round(rect.right, 6))
    bottom = math.ceil(round(rect.bottom, 6))
    return Rect.from_edges(float(left), float(top), float(right), float(bottom))


def project_to_image_space(element_rect: Rect, clip_rect: Rect, zoom: float = 1.0) -> Rect:
    """Express an element's page-space rectangle in a screenshot's pixel space.

    ``x' = (x - clip.x) * zoom``, likewise for y; width and height are only
    scaled by ``zoom``.

    Raises:
        GeometryError: if the element does not lie inside the clip. Callers
            clamp off-page elements before projecting.
    """
    if zoom <= 0:
        raise ValueError(f"zoom must be > 0, got {zoom}")

    projected = element_rect.translate(-clip_rect.x, -clip_rect.y).scale(zoom)
    image = Rect(0, 0, clip_rect.width * zoom, clip_rect.height * zoom)

    if not image.contains(projected):
        raise GeometryError(
            "Element bounding box falls outside the captured image",
            element=element_rect.to_dict(),
            clip=clip_rect.to_dict(),
            zoom=zoom,
        )
    return projected


def intersects(a: Rect, b: Rect) -> bool:
    return a.intersects(b)


def _gap(a0: float, a1: float, b0: float, b1: float) -> float:
    return max(0.0, max(a0, b0) - min(a1, b1))


def alignment(a: Rect, b: Rect, tolerance: float = 0.5) -> tuple[str, ...]:
    """Edges and centers shared by two rectangles, within ``tolerance`` px."""
    lines = {
        "left": (a.x, b.x),
        "right": (a.right, b.right),
        "top": (a.y, b.y),
        "bottom": (a.bottom, b.bottom),
        "centerX": (a.x + a.width / 2, b.x + b.width / 2),
        "centerY": (a.y + a.height / 2, b.y + b.height / 2),
    }
    return tuple(name for name, (p, q) in lines.items() if abs(p - q) <= tolerance)


def element_spacing(a: Rect, b: Rect, tolerance: float = 0.5) -> ElementSpacing:
    """Measure the space between two element rectangles.

    Both rectangles must be in the same coordinate system. The result is
    symmetric in ``a`` and ``b``.
    """
    if tolerance < 0:
        raise ValueError(f"tolerance must be >= 0, got {tolerance}")
    dx = (b.x + b.width / 2) - (a.x + a.width / 2)
    dy = (b.y + b.height / 2) - (a.y + a.height / 2)
    return ElementSpacing(
        horizontal_gap=_gap(a.x, a.right, b.x, b.right),
        vertical_gap=_gap(a.y, a.bottom, b.y, b.bottom),
        center_distance=math.hypot(dx, dy),
        overlapping=a.intersects(b),
        alignment=alignment(a, b, tolerance),
    )


def quad_to_rect(quad: Sequence[float]) -> Rect:
    """Bounding rectangle of a protocol quad ``[x1, y1, ..., x4, y4]``."""
    if len(quad) != 8:
        raise ValueError(f"quad must have 8 numbers, got {len(quad)}")
    xs = quad[0::2]
    ys = quad[1::2]
    return Rect.from_edges(min(xs), min(ys), max(xs), max(ys))


def edges_between(outer: Rect, inner: Rect) -> BoxEdges:
    """Widths of the ring between two nested rectangles."""
    return BoxEdges(
        top=round(inner.y - outer.y, 4),
        right=round(outer.right - inner.right, 4),
        bottom=round(outer.bottom - inner.bottom, 4),
        left=round(inner.x - outer.x, 4),
    )
