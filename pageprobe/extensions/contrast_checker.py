"""Contrast checker probe.

Collects every visible text element with its foreground color, ancestor
background chain and font metrics. Ratios are computed host-side by
AccessibilityAnalyzer.check_samples; ``markIssues`` then outlines the
failures in the page.
"""

import json
from enum import Enum

from .base import BaseProbe


class ContrastCheckerMethod(str, Enum):
    COLLECT_TEXT_SAMPLES = "collectTextSamples"
    MARK_ISSUES = "markIssues"
    CLEAR_MARKERS = "clearMarkers"


SEVERITY_COLORS = {
    "critical": "#D32F2F",
    "serious": "#F57C00",
    "moderate": "#FBC02D",
    "minor": "#7CB342",
}

COLLECT_TEXT_SAMPLES_JS = """
(params) => {
    const limit = params.limit || 2000;
    const viewportOnly = Boolean(params.viewportOnly);
    const samples = [];
    let scanned = 0;

    const hasOwnText = (el) => Array.from(el.childNodes).some(
        node => node.nodeType === Node.TEXT_NODE && node.textContent.trim().length > 0
    );

    const inViewport = (el) => {
        const r = el.getBoundingClientRect();
        return r.bottom > 0 && r.right > 0 && r.top < window.innerHeight && r.left < window.innerWidth;
    };

    const root = params.selector ? findElement(params.selector) : document.body;
    if (!root) return notFound(params.selector);

    const walker = document.createTreeWalker(root, NodeFilter.SHOW_ELEMENT);
    let el = walker.currentNode;
    while (el && samples.length < limit) {
        scanned++;
        if (!isOverlay(el) && hasOwnText(el) && isVisible(el) && (!viewportOnly || inViewport(el))) {
            const style = window.getComputedStyle(el);
            const chain = [];
            let current = el;
            let depth = 0;
            while (current && current.nodeType === Node.ELEMENT_NODE && depth < 1024) {
                chain.push(window.getComputedStyle(current).backgroundColor);
                current = current.parentElement;
                depth++;
            }
            samples.push({
                selector: cssSelector(el),
                tagName: el.tagName.toLowerCase(),
                text: el.textContent.trim().substring(0, 80),
                color: style.color,
                backgroundChain: chain,
                fontSize: style.fontSize,
                fontWeight: style.fontWeight,
                rect: pageRect(el)
            });
        }
        el = walker.nextNode();
    }
    return { samples: samples, scanned: scanned, truncated: samples.length >= limit };
}
"""

MARK_ISSUES_JS = """
(params) => {
    const colors = SEVERITY_COLORS;
    const missing = [];
    let marked = 0;
    for (const issue of params.issues || []) {
        const el = findElement(issue.selector);
        if (!el) {
            missing.push(issue.selector);
            continue;
        }
        const color = colors[issue.severity] || colors.moderate;
        createOverlay(pageRect(el), {
            color: color,
            label: issue.ratio !== undefined && issue.ratio !== null
                ? `${Number(issue.ratio).toFixed(2)}:1`
                : null
        });
        marked++;
    }
    return { marked: marked, missing: missing };
}
""".replace("SEVERITY_COLORS", json.dumps(SEVERITY_COLORS))

CLEAR_MARKERS_JS = """
() => ({ removed: removeOverlays() })
"""


class ContrastCheckerProbe(BaseProbe):
    """Samples text colors for page-wide WCAG contrast checks."""

    id = "contrast-checker"
    name = "Contrast Checker"
    description = "Collects text color samples and marks contrast failures"
    Methods = ContrastCheckerMethod
    cleanup_method = ContrastCheckerMethod.CLEAR_MARKERS.value
    functions = {
        ContrastCheckerMethod.COLLECT_TEXT_SAMPLES.value: COLLECT_TEXT_SAMPLES_JS,
        ContrastCheckerMethod.MARK_ISSUES.value: MARK_ISSUES_JS,
        ContrastCheckerMethod.CLEAR_MARKERS.value: CLEAR_MARKERS_JS,
    }
