"""Accessibility violation overlay probe.

Draws markers for violations reported by an external accessibility rule
engine. Violations use the engine's shape:
``{id, impact, help, nodes: [{target: [selector, ...]}]}``.
"""

import json
from enum import Enum

from .base import BaseProbe
from .contrast_checker import SEVERITY_COLORS


class A11yOverlayMethod(str, Enum):
    SHOW_VIOLATIONS = "showViolations"
    CLEAR_VIOLATIONS = "clearViolations"


SHOW_VIOLATIONS_JS = """
(params) => {
    const colors = SEVERITY_COLORS;
    const missing = [];
    const byImpact = {};
    let marked = 0;

    for (const violation of params.violations || []) {
        const impact = violation.impact || 'minor';
        for (const node of violation.nodes || []) {
            const targets = node.target || [];
            // Nested frames/shadow roots give several selectors; the last one is the element
            const selector = targets[targets.length - 1];
            const el = selector ? findElement(selector) : null;
            if (!el) {
                missing.push(selector || null);
                continue;
            }
            createOverlay(pageRect(el), {
                color: colors[impact] || colors.minor,
                borderWidth: 3,
                label: params.showLabels === false ? null : (violation.id || impact)
            });
            byImpact[impact] = (byImpact[impact] || 0) + 1;
            marked++;
        }
    }
    return { marked: marked, byImpact: byImpact, missing: missing };
}
""".replace("SEVERITY_COLORS", json.dumps(SEVERITY_COLORS))

CLEAR_VIOLATIONS_JS = """
() => ({ removed: removeOverlays() })
"""


class A11yOverlayProbe(BaseProbe):
    """Shows accessibility rule violations on the page."""

    id = "a11y-overlay"
    name = "Accessibility Overlay"
    description = "Marks accessibility rule violations by impact"
    Methods = A11yOverlayMethod
    cleanup_method = A11yOverlayMethod.CLEAR_VIOLATIONS.value
    functions = {
        A11yOverlayMethod.SHOW_VIOLATIONS.value: SHOW_VIOLATIONS_JS,
        A11yOverlayMethod.CLEAR_VIOLATIONS.value: CLEAR_VIOLATIONS_JS,
    }
