"""Component detector probe.

Classifies the interactive and structural elements of a page (buttons,
links, forms, inputs, images, modals, navigation, headings, tables, lists,
videos, iframes) and optionally outlines them.
"""

import json
from enum import Enum

from .base import BaseProbe


class ComponentDetectorMethod(str, Enum):
    DETECT_COMPONENTS = "detectComponents"
    HIGHLIGHT_COMPONENTS = "highlightComponents"
    CLEAR_HIGHLIGHTS = "clearHighlights"


COMPONENT_SELECTORS = {
    "buttons": 'button, [role="button"], input[type="button"], input[type="submit"], input[type="reset"]',
    "links": "a[href]",
    "forms": 'form, [role="form"]',
    "inputs": (
        'input:not([type="button"]):not([type="submit"]):not([type="reset"]):not([type="hidden"]), '
        "textarea, select"
    ),
    "images": 'img, svg[role="img"], picture, [role="img"]',
    "modals": 'dialog, [role="dialog"], [role="alertdialog"], [aria-modal="true"]',
    "navigation": 'nav, [role="navigation"]',
    "headings": 'h1, h2, h3, h4, h5, h6, [role="heading"]',
    "tables": 'table, [role="table"], [role="grid"]',
    "lists": 'ul, ol, [role="list"]',
    "videos": "video",
    "iframes": "iframe",
}

CATEGORY_COLORS = {
    "buttons": "#E91E63",
    "links": "#2196F3",
    "forms": "#9C27B0",
    "inputs": "#4CAF50",
    "images": "#FF9800",
    "modals": "#F44336",
    "navigation": "#00BCD4",
    "headings": "#3F51B5",
    "tables": "#795548",
    "lists": "#607D8B",
    "videos": "#FF5722",
    "iframes": "#9E9E9E",
}

DETECT_COMPONENTS_JS = """
(params) => {
    const selectors = COMPONENT_SELECTORS;
    const components = {};
    const totals = {};
    let total = 0;
    let visible = 0;

    for (const [category, selector] of Object.entries(selectors)) {
        const items = findAll(selector)
            .filter(el => !isOverlay(el))
            .map(el => {
                const item = {
                    selector: cssSelector(el),
                    tagName: el.tagName.toLowerCase(),
                    text: (el.innerText || el.getAttribute('aria-label') || el.getAttribute('alt') || '')
                        .trim().substring(0, 80),
                    visible: isVisible(el)
                };
                if (params.includePositions) {
                    item.rect = pageRect(el);
                }
                return item;
            });
        components[category] = items;
        totals[category] = items.length;
        total += items.length;
        visible += items.filter(item => item.visible).length;
    }

    const present = Object.keys(totals).filter(category => totals[category] > 0);
    return {
        components: components,
        totals: totals,
        summary: {
            total: total,
            visible: visible,
            categories: present,
            interactive: totals.buttons + totals.links + totals.inputs
        }
    };
}
""".replace("COMPONENT_SELECTORS", json.dumps(COMPONENT_SELECTORS))

HIGHLIGHT_COMPONENTS_JS = """
(params) => {
    const colors = CATEGORY_COLORS;
    const selectors = COMPONENT_SELECTORS;
    const wanted = params.categories && params.categories.length
        ? params.categories
        : Object.keys(selectors);
    const counts = {};

    for (const category of wanted) {
        const selector = selectors[category];
        if (!selector) continue;
        const elements = findAll(selector).filter(el => !isOverlay(el) && isVisible(el));
        elements.forEach(el => createOverlay(pageRect(el), {
            color: colors[category],
            label: params.showLabels === false ? null : category
        }));
        counts[category] = elements.length;
    }
    return { highlighted: counts };
}
""".replace("CATEGORY_COLORS", json.dumps(CATEGORY_COLORS)).replace(
    "COMPONENT_SELECTORS", json.dumps(COMPONENT_SELECTORS)
)

CLEAR_HIGHLIGHTS_JS = """
() => ({ removed: removeOverlays() })
"""


class ComponentDetectorProbe(BaseProbe):
    """Finds UI components by category."""

    id = "component-detector"
    name = "Component Detector"
    description = "Detects and outlines UI components by category"
    Methods = ComponentDetectorMethod
    cleanup_method = ComponentDetectorMethod.CLEAR_HIGHLIGHTS.value
    functions = {
        ComponentDetectorMethod.DETECT_COMPONENTS.value: DETECT_COMPONENTS_JS,
        ComponentDetectorMethod.HIGHLIGHT_COMPONENTS.value: HIGHLIGHT_COMPONENTS_JS,
        ComponentDetectorMethod.CLEAR_HIGHLIGHTS.value: CLEAR_HIGHLIGHTS_JS,
    }
