"""Element ruler probe: box-model overlays and layout measurements.

``measureElement`` outlines the content box with its size, shades the
margin and padding rings with their widths and labels the page position.
``compareElements`` returns the page rectangles of two elements; spacing
and alignment are computed host-side by ``visual_ai.geometry.element_spacing``.
"""

import json
from enum import Enum

from .base import BaseProbe


class ElementRulerMethod(str, Enum):
    MEASURE_ELEMENT = "measureElement"
    COMPARE_ELEMENTS = "compareElements"
    GET_LAYOUT_INFO = "getLayoutInfo"
    CLEAR_MEASUREMENTS = "clearMeasurements"


RULER_COLORS = {
    "content": "#60A5FA",
    "margin": "#F6B26B",
    "padding": "#93C47D",
}

MEASURE_ELEMENT_JS = """
(params) => {
    const el = findElement(params.selector);
    if (!el) return notFound(params.selector);

    const colors = RULER_COLORS;
    const style = window.getComputedStyle(el);
    const px = (value) => parseFloat(value) || 0;
    const edges = (prefix, suffix) => ({
        top: px(style[`${prefix}Top${suffix}`]),
        right: px(style[`${prefix}Right${suffix}`]),
        bottom: px(style[`${prefix}Bottom${suffix}`]),
        left: px(style[`${prefix}Left${suffix}`])
    });

    const rect = pageRect(el);
    const margin = edges('margin', '');
    const padding = edges('padding', '');
    const border = edges('border', 'Width');

    if (!params.persistent) {
        removeOverlays();
    }

    // One band per non-zero edge; inner bands sit inside rect, outer ones around it
    const ring = (widths, color, outer) => {
        const fill = `${color}4D`;
        const bands = {
            top: outer
                ? { x: rect.x, y: rect.y - widths.top, width: rect.width, height: widths.top }
                : { x: rect.x, y: rect.y, width: rect.width, height: widths.top },
            right: outer
                ? { x: rect.x + rect.width, y: rect.y, width: widths.right, height: rect.height }
                : { x: rect.x + rect.width - widths.right, y: rect.y, width: widths.right, height: rect.height },
            bottom: outer
                ? { x: rect.x, y: rect.y + rect.height, width: rect.width, height: widths.bottom }
                : { x: rect.x, y: rect.y + rect.height - widths.bottom, width: rect.width, height: widths.bottom },
            left: outer
                ? { x: rect.x - widths.left, y: rect.y, width: widths.left, height: rect.height }
                : { x: rect.x, y: rect.y, width: widths.left, height: rect.height }
        };
        let drawn = 0;
        for (const side of Object.keys(bands)) {
            if (widths[side] > 0) {
                createOverlay(bands[side], {
                    color: color,
                    fill: fill,
                    borderWidth: 1,
                    label: params.showLabels === false ? null : `${Math.round(widths[side])}px`
                });
                drawn++;
            }
        }
        return drawn;
    };

    const label = [];
    if (params.showDimensions !== false) {
        label.push(`${Math.round(rect.width)}\\u00d7${Math.round(rect.height)}`);
    }
    if (params.showPosition !== false) {
        label.push(`x: ${Math.round(rect.x)}, y: ${Math.round(rect.y)}`);
    }

    let overlays = 0;
    createOverlay(rect, {
        color: colors.content,
        fill: `${colors.content}1A`,
        label: label.length ? label.join('  ') : null
    });
    overlays++;
    if (params.showMargin !== false) overlays += ring(margin, colors.margin, true);
    if (params.showPadding !== false) overlays += ring(padding, colors.padding, false);

    return {
        selector: params.selector,
        rect: rect,
        boxModel: { margin: margin, padding: padding, border: border },
        overlays: overlays
    };
}
""".replace("RULER_COLORS", json.dumps(RULER_COLORS))

COMPARE_ELEMENTS_JS = """
(params) => {
    const first = findElement(params.first);
    if (!first) return notFound(params.first);
    const second = findElement(params.second);
    if (!second) return notFound(params.second);
    return { first: pageRect(first), second: pageRect(second) };
}
"""

GET_LAYOUT_INFO_JS = """
(params) => {
    const el = findElement(params.selector);
    if (!el) return notFound(params.selector);

    const style = window.getComputedStyle(el);
    const rect = pageRect(el);
    return {
        display: style.display,
        position: style.position,
        float: style.cssFloat,
        flexDirection: style.flexDirection,
        gridTemplateColumns: style.gridTemplateColumns,
        zIndex: style.zIndex,
        boxSizing: style.boxSizing,
        width: rect.width,
        height: rect.height
    };
}
"""

CLEAR_MEASUREMENTS_JS = """
() => ({ removed: removeOverlays() })
"""


class ElementRulerProbe(BaseProbe):
    """Draws box-model rulers and reports layout measurements."""

    id = "element-ruler"
    name = "Element Ruler"
    description = "Element dimensions, margin and padding overlays, spacing between elements"
    Methods = ElementRulerMethod
    cleanup_method = ElementRulerMethod.CLEAR_MEASUREMENTS.value
    functions = {
        ElementRulerMethod.MEASURE_ELEMENT.value: MEASURE_ELEMENT_JS,
        ElementRulerMethod.COMPARE_ELEMENTS.value: COMPARE_ELEMENTS_JS,
        ElementRulerMethod.GET_LAYOUT_INFO.value: GET_LAYOUT_INFO_JS,
        ElementRulerMethod.CLEAR_MEASUREMENTS.value: CLEAR_MEASUREMENTS_JS,
    }
