"""Element probe: measurement, raw accessibility inputs and highlights.

Runs in the page. ``measure`` returns the ElementSnapshot wire shape,
``accessibility`` returns the raw inputs graded by AccessibilityAnalyzer.
"""

import json
from enum import Enum

from .base import BaseProbe


class ElementProbeMethod(str, Enum):
    MEASURE = "measure"
    ACCESSIBILITY = "accessibility"
    HIGHLIGHT = "highlight"
    CLEAR_HIGHLIGHTS = "clearHighlights"
    INJECTION_COUNT = "injectionCount"


KEY_STYLES = [
    "position",
    "display",
    "color",
    "backgroundColor",
    "fontSize",
    "fontFamily",
    "fontWeight",
    "lineHeight",
    "textAlign",
    "zIndex",
    "opacity",
    "visibility",
    "overflow",
    "cursor",
]

MEASURE_JS = """
(params) => {
    const el = findElement(params.selector);
    if (!el) return notFound(params.selector);

    const style = window.getComputedStyle(el);
    const px = (value) => parseFloat(value) || 0;
    const edges = (prefix, suffix) => ({
        top: px(style[`${prefix}Top${suffix}`]),
        right: px(style[`${prefix}Right${suffix}`]),
        bottom: px(style[`${prefix}Bottom${suffix}`]),
        left: px(style[`${prefix}Left${suffix}`])
    });

    const summary = (node, withRect) => {
        const result = {
            tagName: node.tagName.toLowerCase(),
            id: node.id || null,
            className: typeof node.className === 'string' ? node.className || null : null
        };
        if (withRect) {
            result.textContent = (node.textContent || '').trim().substring(0, 50);
            result.rect = pageRect(node);
        }
        return result;
    };

    const styles = {};
    for (const key of KEY_STYLES) {
        styles[key] = style[key];
    }
    styles.fontFamily = (style.fontFamily || '').split(',')[0].replace(/["']/g, '').trim();

    const rect = viewportRect(el);
    const result = {
        tagName: el.tagName.toLowerCase(),
        id: el.id || null,
        className: typeof el.className === 'string' ? el.className || null : null,
        textContent: (el.textContent || '').trim().substring(0, 500),
        rect: pageRect(el),
        viewportPosition: rect,
        boxModel: {
            margin: edges('margin', ''),
            padding: edges('padding', ''),
            border: edges('border', 'Width')
        },
        styles: styles,
        visibility: {
            isVisible: isVisible(el),
            inViewport: rect.y + rect.height > 0 && rect.x + rect.width > 0 &&
                rect.y < window.innerHeight && rect.x < window.innerWidth,
            displayed: style.display !== 'none'
        }
    };

    if (params.includeComputed) {
        const computed = {};
        for (let i = 0; i < style.length; i++) {
            const name = style[i];
            computed[name] = style.getPropertyValue(name);
        }
        result.computedStyles = computed;
    }
    if (params.includeAttributes !== false) {
        const attrs = {};
        for (const attr of el.attributes || []) {
            attrs[attr.name] = attr.value;
        }
        result.attributes = attrs;
    }
    if (el.parentElement) {
        result.parent = summary(el.parentElement, false);
    }
    if (params.includeChildren !== false) {
        result.children = Array.from(el.children)
            .filter(child => !isOverlay(child))
            .slice(0, 20)
            .map(child => summary(child, true));
    }
    return result;
}
""".replace("KEY_STYLES", json.dumps(KEY_STYLES))

ACCESSIBILITY_JS = """
(params) => {
    const el = findElement(params.selector);
    if (!el) return notFound(params.selector);

    const style = window.getComputedStyle(el);
    const attrs = {};
    for (const attr of el.attributes || []) {
        attrs[attr.name] = attr.value;
    }

    let labelledByText = null;
    const labelledBy = el.getAttribute('aria-labelledby');
    if (labelledBy) {
        labelledByText = labelledBy.split(/\\s+/)
            .map(id => document.getElementById(id))
            .filter(Boolean)
            .map(node => (node.textContent || '').trim())
            .join(' ') || null;
    }

    const backgroundChain = [];
    let current = el;
    let depth = 0;
    while (current && current.nodeType === Node.ELEMENT_NODE && depth < 1024) {
        backgroundChain.push(window.getComputedStyle(current).backgroundColor);
        current = current.parentElement;
        depth++;
    }

    return {
        tagName: el.tagName.toLowerCase(),
        attributes: attrs,
        textContent: (el.innerText || el.textContent || '').trim().substring(0, 500),
        labelledByText: labelledByText,
        color: style.color,
        backgroundChain: backgroundChain,
        fontSize: style.fontSize,
        fontWeight: style.fontWeight
    };
}
"""

HIGHLIGHT_JS = """
(params) => {
    const el = findElement(params.selector);
    if (!el) return notFound(params.selector);

    const rect = pageRect(el);
    let label = params.label || null;
    if (!label && params.showInfo !== false) {
        label = `${el.tagName.toLowerCase()} ${Math.round(rect.width)}\\u00d7${Math.round(rect.height)}`;
    }
    createOverlay(rect, {
        color: params.color || '#6FA8DC',
        fill: params.fill || 'rgba(111, 168, 220, 0.3)',
        label: label
    });
    return { success: true, rect: rect, label: label };
}
"""

CLEAR_HIGHLIGHTS_JS = """
() => ({ removed: removeOverlays() })
"""

INJECTION_COUNT_JS = """
() => (window.__pageprobe_injections__ || {})[EXTENSION_ID] || 0
"""


class ElementProbe(BaseProbe):
    """Measures one element and draws highlight boxes around it."""

    id = "element-probe"
    name = "Element Probe"
    description = "Element geometry, styles, accessibility inputs and highlights"
    Methods = ElementProbeMethod
    cleanup_method = ElementProbeMethod.CLEAR_HIGHLIGHTS.value
    functions = {
        ElementProbeMethod.MEASURE.value: MEASURE_JS,
        ElementProbeMethod.ACCESSIBILITY.value: ACCESSIBILITY_JS,
        ElementProbeMethod.HIGHLIGHT.value: HIGHLIGHT_JS,
        ElementProbeMethod.CLEAR_HIGHLIGHTS.value: CLEAR_HIGHLIGHTS_JS,
        ElementProbeMethod.INJECTION_COUNT.value: INJECTION_COUNT_JS,
    }
