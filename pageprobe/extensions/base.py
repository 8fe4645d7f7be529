"""Base types for browser-side probes.

A probe is a small table of JavaScript functions that is evaluated once in
the page and then called by name from the host. Each probe is described by an
ExtensionDescriptor holding its serialized code and the closed set of method
names it answers to.

Page-side layout:
    window["__pageprobe_<id>__"]      function table of the probe
    window.__pageprobe_injections__   {id: number of times the code ran}

Every overlay node a probe draws carries ``data-pageprobe-overlay`` and
``data-pageprobe-owner="<id>"`` so captures can hide them and ``clear`` can
find them.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from ..exceptions import ExtensionError

OVERLAY_ATTRIBUTE = "data-pageprobe-overlay"
OWNER_ATTRIBUTE = "data-pageprobe-owner"
INJECTION_COUNTER = "__pageprobe_injections__"


def marker_for(extension_id: str) -> str:
    """Name of the window property holding a probe's function table."""
    return f"__pageprobe_{extension_id}__"


# Helpers shared by every probe; evaluated inside the probe's closure
COMMON_JS = """
    const findElement = (selector) => {
        try {
            return document.querySelector(selector);
        } catch (e) {
            return null;
        }
    };

    const findAll = (selector) => {
        try {
            return Array.from(document.querySelectorAll(selector));
        } catch (e) {
            return [];
        }
    };

    const notFound = (selector) => ({
        success: false,
        notFound: true,
        selector: selector,
        error: `Element not found: ${selector}`
    });

    const scrollOffset = () => ({
        x: window.pageXOffset || document.documentElement.scrollLeft || 0,
        y: window.pageYOffset || document.documentElement.scrollTop || 0
    });

    const viewportRect = (el) => {
        const r = el.getBoundingClientRect();
        return { x: r.left, y: r.top, width: r.width, height: r.height };
    };

    const pageRect = (el) => {
        const r = el.getBoundingClientRect();
        const offset = scrollOffset();
        return { x: r.left + offset.x, y: r.top + offset.y, width: r.width, height: r.height };
    };

    const isOverlay = (el) => Boolean(el.closest && el.closest('[data-pageprobe-overlay]'));

    const isVisible = (el) => {
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0') {
            return false;
        }
        const rect = el.getBoundingClientRect();
        return rect.width > 0 && rect.height > 0;
    };

    const cssSelector = (el) => {
        if (el.id) {
            return `#${CSS.escape(el.id)}`;
        }
        const parts = [];
        let current = el;
        while (current && current.tagName) {
            let selector = current.tagName.toLowerCase();
            if (current.id) {
                parts.unshift(`#${CSS.escape(current.id)}`);
                break;
            }
            const classes = Array.from(current.classList || [])
                .filter(c => c && !c.match(/^(ng-|v-|react-|css-)/))
                .slice(0, 2);
            if (classes.length > 0) {
                selector += '.' + classes.map(c => CSS.escape(c)).join('.');
            }
            const parent = current.parentElement;
            if (parent) {
                const siblings = Array.from(parent.children).filter(
                    child => child.tagName === current.tagName
                );
                if (siblings.length > 1) {
                    selector += `:nth-of-type(${siblings.indexOf(current) + 1})`;
                }
            }
            parts.unshift(selector);
            current = parent;
            if (parts.length >= 5) break;
        }
        return parts.join(' > ');
    };

    const createOverlay = (rect, options) => {
        const opts = options || {};
        const box = document.createElement('div');
        box.setAttribute('data-pageprobe-overlay', '');
        box.setAttribute('data-pageprobe-owner', EXTENSION_ID);
        Object.assign(box.style, {
            position: 'absolute',
            left: `${rect.x}px`,
            top: `${rect.y}px`,
            width: `${rect.width}px`,
            height: `${rect.height}px`,
            border: `${opts.borderWidth || 2}px solid ${opts.color || '#2196F3'}`,
            background: opts.fill || 'transparent',
            boxSizing: 'border-box',
            pointerEvents: 'none',
            zIndex: '2147483646'
        });
        document.body.appendChild(box);
        if (opts.label) {
            const label = document.createElement('div');
            label.setAttribute('data-pageprobe-overlay', '');
            label.setAttribute('data-pageprobe-owner', EXTENSION_ID);
            label.textContent = opts.label;
            Object.assign(label.style, {
                position: 'absolute',
                left: `${rect.x}px`,
                top: `${Math.max(0, rect.y - 20)}px`,
                padding: '2px 6px',
                background: opts.color || '#2196F3',
                color: '#FFFFFF',
                font: '11px/16px monospace',
                whiteSpace: 'nowrap',
                pointerEvents: 'none',
                zIndex: '2147483647'
            });
            document.body.appendChild(label);
        }
        return box;
    };

    const removeOverlays = () => {
        const nodes = document.querySelectorAll(
            `[data-pageprobe-overlay][data-pageprobe-owner="${EXTENSION_ID}"]`
        );
        nodes.forEach(node => node.remove());
        return nodes.length;
    };
"""

# Dispatches one call into a probe's function table; never throws
INVOKE_JS = """
async ({ marker, method, params }) => {
    const api = window[marker];
    if (!api) {
        return { ok: false, missing: true, error: 'Extension is not injected in this page' };
    }
    const fn = api[method];
    if (typeof fn !== 'function') {
        return { ok: false, error: `Unknown method: ${method}` };
    }
    try {
        const data = await fn(params || {});
        return { ok: true, data: data === undefined ? null : data };
    } catch (e) {
        return { ok: false, error: String((e && e.message) || e), stack: e && e.stack };
    }
}
"""

IS_INJECTED_JS = "(marker) => Boolean(window[marker])"

INJECTION_COUNT_JS = """
(id) => {
    const counters = window.__pageprobe_injections__ || {};
    return counters[id] || 0;
}
"""

REMOVE_JS = """
({ marker, id }) => {
    delete window[marker];
    document.querySelectorAll(`[data-pageprobe-style="${id}"]`).forEach(node => node.remove());
    return true;
}
"""


def create_browser_api(
    extension_id: str,
    functions: dict[str, str],
    styles: str | None = None,
) -> str:
    """Serialize a probe's function table into one evaluable expression.

    Args:
        extension_id: Probe id, used for the page-side marker and counter
        functions: Method name to JavaScript function source
        styles: Optional CSS installed once alongside the probe

    Returns:
        Self-invoking JavaScript expression that installs the probe
    """
    entries = ",\n".join(
        f"        {json.dumps(name)}: {source.strip()}" for name, source in functions.items()
    )
    style_block = ""
    if styles:
        style_block = f"""
    if (!document.querySelector('[data-pageprobe-style="' + EXTENSION_ID + '"]')) {{
        const style = document.createElement('style');
        style.setAttribute('data-pageprobe-style', EXTENSION_ID);
        style.textContent = {json.dumps(styles)};
        (document.head || document.documentElement).appendChild(style);
    }}
"""

    return f"""(() => {{
    const EXTENSION_ID = {json.dumps(extension_id)};
    const MARKER = {json.dumps(marker_for(extension_id))};
    window.{INJECTION_COUNTER} = window.{INJECTION_COUNTER} || {{}};
    window.{INJECTION_COUNTER}[EXTENSION_ID] = (window.{INJECTION_COUNTER}[EXTENSION_ID] || 0) + 1;
{COMMON_JS}{style_block}
    window[MARKER] = {{
{entries}
    }};
    return true;
}})()"""


@dataclass(frozen=True)
class ExtensionDescriptor:
    """A registered probe.

    Attributes:
        id: Unique probe id
        name: Human readable name
        description: What the probe does
        code: Serialized probe code (see create_browser_api)
        methods: Closed Enum of method names the probe answers to
        styles: CSS installed with the probe, if any
        cleanup_method: Method that removes the probe's overlays
    """

    id: str
    name: str
    description: str
    code: str
    methods: type[Enum]
    styles: str | None = None
    cleanup_method: str | None = None

    @property
    def marker(self) -> str:
        return marker_for(self.id)

    @property
    def method_names(self) -> list[str]:
        return [member.value for member in self.methods]

    def resolve_method(self, method: "str | Enum") -> str:
        """Map an Enum member or wire string to a declared method name.

        Raises:
            ExtensionError: if the probe does not declare the method
        """
        if isinstance(method, Enum):
            if not isinstance(method, self.methods):
                raise ExtensionError(
                    f"Method {method!r} does not belong to extension '{self.id}'",
                    extension_id=self.id,
                    method=str(method.value),
                )
            return method.value
        try:
            return self.methods(method).value
        except ValueError:
            raise ExtensionError(
                f"Unknown method '{method}' for extension '{self.id}'",
                extension_id=self.id,
                method=method,
                available=self.method_names,
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "methods": self.method_names,
            "hasStyles": self.styles is not None,
            "cleanupMethod": self.cleanup_method,
        }


class BaseProbe:
    """Base class for probe definitions.

    Subclasses declare ``id``, ``name``, ``description``, a ``Methods`` Enum
    and a ``functions`` table mapping every method to its JavaScript source.
    """

    id: ClassVar[str]
    name: ClassVar[str]
    description: ClassVar[str] = ""
    Methods: ClassVar[type[Enum]]
    functions: ClassVar[dict[str, str]]
    styles: ClassVar[str | None] = None
    cleanup_method: ClassVar[str | None] = None

    @classmethod
    def browser_code(cls) -> str:
        return create_browser_api(cls.id, cls.functions, cls.styles)

    @classmethod
    def descriptor(cls) -> ExtensionDescriptor:
        declared = {member.value for member in cls.Methods}
        if declared != set(cls.functions):
            missing = sorted(declared - set(cls.functions))
            extra = sorted(set(cls.functions) - declared)
            raise ExtensionError(
                f"Probe '{cls.id}' functions do not match its methods",
                extension_id=cls.id,
                missing=missing or None,
                extra=extra or None,
            )
        return ExtensionDescriptor(
            id=cls.id,
            name=cls.name,
            description=cls.description,
            code=cls.browser_code(),
            methods=cls.Methods,
            styles=cls.styles,
            cleanup_method=cls.cleanup_method,
        )


@dataclass
class ExtensionResult:
    """Uniform result envelope of a probe call."""

    success: bool
    extension_id: str
    method: str
    data: Any = None
    error: Exception | None = None
    duration_ms: int = 0

    @property
    def not_found(self) -> bool:
        return isinstance(self.data, dict) and bool(self.data.get("notFound"))

    def unwrap(self) -> Any:
        """Return ``data`` or raise the carried error."""
        if not self.success:
            if self.error is not None:
                raise self.error
            raise ExtensionError(
                "Extension call failed",
                extension_id=self.extension_id,
                method=self.method,
            )
        return self.data

    def to_dict(self) -> dict[str, Any]:
        error = None
        if self.error is not None:
            error = self.error.to_dict() if hasattr(self.error, "to_dict") else {"message": str(self.error)}
        return {
            "success": self.success,
            "extensionId": self.extension_id,
            "method": self.method,
            "data": self.data,
            "error": error,
            "duration": self.duration_ms,
        }


@dataclass
class ExtensionCall:
    """One entry of a batch dispatch."""

    page: Any
    extension_id: str
    method: "str | Enum"
    params: dict[str, Any] = field(default_factory=dict)
