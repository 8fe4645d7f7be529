"""Accessibility analyzer for WCAG contrast, names, roles and focusability.

This module turns raw style and attribute data gathered from a page into
accessibility metrics:
- WCAG 2.1 color contrast ratio checking (AA and AAA levels)
- Accessible name (aria-label, aria-labelledby, text content)
- ARIA role (explicit or implicit by tag)
- Keyboard focusability
- Page-wide contrast reports with per-element issues

Color failures are local: a malformed color makes the contrast of that one
element "unknown" and never aborts the rest of the analysis.
"""

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from ..config import Settings, get_settings
from ..exceptions import ParseError
from ..extensions.contrast_checker import ContrastCheckerMethod, ContrastCheckerProbe
from .color import RGBA, color_contrast, composite, parse_color, resolve_effective_background
from .models import AccessibilitySnapshot, Rect

if TYPE_CHECKING:
    from ..extensions.registry import ExtensionRegistry

logger = structlog.get_logger(__name__)


@dataclass
class ContrastIssue:
    """Represents a WCAG color contrast failure on one text element.

    Attributes:
        selector: Short selector identifying the element
        foreground_color: Hex color of the text
        background_color: Hex color of the effective background
        contrast_ratio: Calculated contrast ratio
        required_ratio: Minimum ratio for AA at this text size
        is_large_text: Whether WCAG large-text thresholds apply
        background_fallback: Whether the background fell back to the default
    """

    selector: str
    foreground_color: str
    background_color: str
    contrast_ratio: float
    required_ratio: float
    is_large_text: bool
    passes_aaa: bool = False
    background_fallback: bool = False
    font_size: float | None = None
    rect: Rect | None = None

    @property
    def severity(self) -> str:
        """Severity by absolute ratio: critical below 3:1, serious below 4:1."""
        if self.contrast_ratio < 3:
            return "critical"
        elif self.contrast_ratio < 4:
            return "serious"
        return "moderate"

    @property
    def recommendation(self) -> str:
        deficit = self.required_ratio - self.contrast_ratio
        return (
            f"Increase contrast ratio from {self.contrast_ratio:.2f}:1 to at least "
            f"{self.required_ratio}:1 (deficit: {deficit:.2f})."
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "ratio": round(self.contrast_ratio, 2),
            "required": self.required_ratio,
            "foreground": self.foreground_color,
            "background": self.background_color,
            "backgroundFallback": self.background_fallback,
            "fontSize": self.font_size,
            "isLargeText": self.is_large_text,
            "severity": self.severity,
            "passesAA": False,
            "passesAAA": self.passes_aaa,
            "rect": self.rect.to_dict() if self.rect else None,
        }


@dataclass
class ContrastReport:
    """Page-wide contrast analysis.

    Attributes:
        issues: Elements failing AA, worst first
        total_elements: Text elements with a usable foreground
        passed: Elements passing AA
        failed_aa: Elements failing AA
        failed_aaa: Elements failing AAA
        unknown: Elements whose colors could not be parsed
    """

    issues: list[ContrastIssue] = field(default_factory=list)
    total_elements: int = 0
    passed: int = 0
    failed_aa: int = 0
    failed_aaa: int = 0
    unknown: int = 0
    fallback_backgrounds: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def critical(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "critical")

    @property
    def wcag_aa_compliant(self) -> bool:
        return self.failed_aa == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "stats": {
                "totalElements": self.total_elements,
                "passed": self.passed,
                "failedAA": self.failed_aa,
                "failedAAA": self.failed_aaa,
                "critical": self.critical,
                "unknown": self.unknown,
                "fallbackBackgrounds": self.fallback_backgrounds,
            },
            "issues": [issue.to_dict() for issue in self.issues],
            "errors": list(self.errors),
            "wcagAACompliant": self.wcag_aa_compliant,
        }


@dataclass(frozen=True)
class ContrastGrade:
    """Contrast of one foreground on one background chain.

    ``foreground`` is the text color as drawn, composited over ``background``,
    so the reported pair is the pair the ratio was computed from.
    """

    ratio: float
    foreground: RGBA
    background: RGBA
    background_fallback: bool
    is_large_text: bool
    required_aa: float
    required_aaa: float

    @property
    def passes_aa(self) -> bool:
        return self.ratio >= self.required_aa

    @property
    def passes_aaa(self) -> bool:
        return self.ratio >= self.required_aaa


class AccessibilityAnalyzer:
    """Derives accessibility metrics from raw element data.

    Example:
        analyzer = AccessibilityAnalyzer()
        snapshot = analyzer.analyze(raw)  # raw from the element probe
        print(f"Contrast {snapshot.contrast_ratio:.2f}, AA: {snapshot.passes_aa}")
    """

    FOCUSABLE_TAGS = {"button", "input", "textarea", "select", "summary", "iframe"}

    IMPLICIT_ROLES = {
        "button": "button",
        "a": "link",
        "textarea": "textbox",
        "select": "combobox",
        "h1": "heading",
        "h2": "heading",
        "h3": "heading",
        "h4": "heading",
        "h5": "heading",
        "h6": "heading",
        "nav": "navigation",
        "main": "main",
        "aside": "complementary",
        "header": "banner",
        "footer": "contentinfo",
        "form": "form",
        "img": "img",
        "ul": "list",
        "ol": "list",
        "li": "listitem",
        "table": "table",
        "dialog": "dialog",
        "article": "article",
        "progress": "progressbar",
    }

    INPUT_ROLES = {
        "button": "button",
        "submit": "button",
        "reset": "button",
        "image": "button",
        "checkbox": "checkbox",
        "radio": "radio",
        "range": "slider",
        "number": "spinbutton",
        "search": "searchbox",
    }

    MAX_NAME_LENGTH = 100

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.aa_ratio = settings.wcag_aa_ratio
        self.aaa_ratio = settings.wcag_aaa_ratio
        self.large_aa_ratio = settings.large_text_aa_ratio
        self.large_aaa_ratio = settings.large_text_aaa_ratio
        self.default_background = parse_color(settings.fallback_background)
        self.log = logger.bind(component="accessibility_analyzer")

    def analyze(self, raw: dict[str, Any]) -> AccessibilitySnapshot:
        """Build an AccessibilitySnapshot from element-probe data.

        Args:
            raw: Payload of the element probe ``accessibility`` method with
                keys tagName, attributes, textContent, labelledByText, color,
                backgroundChain, fontSize, fontWeight

        Returns:
            AccessibilitySnapshot; contrast fields are None when colors are
            malformed
        """
        tag = (raw.get("tagName") or "").lower()
        attributes = raw.get("attributes") or {}

        name = self.accessible_name(
            attributes,
            raw.get("textContent"),
            raw.get("labelledByText"),
        )
        role = self.role_for(tag, attributes)
        focusable = self.is_keyboard_focusable(tag, attributes)

        try:
            grade = self.grade_contrast(
                raw.get("color", ""),
                raw.get("backgroundChain") or [],
                raw.get("fontSize"),
                raw.get("fontWeight"),
            )
        except ParseError as e:
            self.log.debug("Contrast unknown", tag=tag, error=str(e))
            return AccessibilitySnapshot(
                contrast_ratio=None,
                passes_aa=None,
                passes_aaa=None,
                accessible_name=name,
                role=role,
                keyboard_focusable=focusable,
                foreground=raw.get("color"),
                contrast_error=f"could not compute contrast: {e}",
            )

        return AccessibilitySnapshot(
            contrast_ratio=grade.ratio,
            passes_aa=grade.passes_aa,
            passes_aaa=grade.passes_aaa,
            accessible_name=name,
            role=role,
            keyboard_focusable=focusable,
            foreground=grade.foreground.to_hex(),
            background=grade.background.to_hex(),
            background_fallback=grade.background_fallback,
            is_large_text=grade.is_large_text,
        )

    def grade_contrast(
        self,
        foreground: str,
        background_chain: list[str],
        font_size: str | float | None = None,
        font_weight: str | int | None = None,
    ) -> ContrastGrade:
        """Grade text contrast against its effective background.

        Raises:
            ParseError: if the foreground or a background is malformed
        """
        fg = parse_color(foreground)
        resolution = resolve_effective_background(background_chain, default=self.default_background)
        ratio = color_contrast(fg, resolution.color)
        drawn = composite(fg, resolution.color)

        size_px = self.parse_font_size(font_size)
        weight = self.parse_font_weight(font_weight)
        large = self.is_large_text(size_px, weight)

        return ContrastGrade(
            ratio=ratio,
            foreground=drawn,
            background=resolution.color,
            background_fallback=resolution.fallback,
            is_large_text=large,
            required_aa=self.large_aa_ratio if large else self.aa_ratio,
            required_aaa=self.large_aaa_ratio if large else self.aaa_ratio,
        )

    async def check_page_contrast(
        self,
        page: Any,
        registry: "ExtensionRegistry",
        viewport_only: bool = False,
        mark_issues: bool = False,
    ) -> ContrastReport:
        """Check the contrast of every visible text element on a page.

        Args:
            page: Playwright page
            registry: Registry holding the contrast-checker probe
            viewport_only: Only sample elements inside the viewport
            mark_issues: Outline failing elements in the page afterwards

        Raises:
            ExtensionError: if the samples could not be collected
        """
        result = await registry.invoke(
            page,
            ContrastCheckerProbe.id,
            ContrastCheckerMethod.COLLECT_TEXT_SAMPLES,
            {"viewportOnly": viewport_only},
        )
        data = result.unwrap() or {}
        report = self.check_samples(data.get("samples", []))

        if mark_issues and report.issues:
            await registry.invoke(
                page,
                ContrastCheckerProbe.id,
                ContrastCheckerMethod.MARK_ISSUES,
                {
                    "issues": [
                        {"selector": i.selector, "severity": i.severity, "ratio": round(i.contrast_ratio, 2)}
                        for i in report.issues
                    ]
                },
            )
        return report

    def check_samples(self, samples: list[dict[str, Any]]) -> ContrastReport:
        """Grade page-wide text samples from the contrast-checker probe.

        Every sample is graded on its own; one malformed color is counted
        as unknown and the rest still get graded.
        """
        report = ContrastReport()

        for sample in samples:
            selector = sample.get("selector", "")
            try:
                fg = parse_color(sample.get("color", ""))
            except ParseError as e:
                report.unknown += 1
                report.errors.append({"selector": selector, **e.to_dict()})
                continue
            if fg.is_transparent:
                continue

            try:
                grade = self.grade_contrast(
                    sample.get("color", ""),
                    sample.get("backgroundChain") or [],
                    sample.get("fontSize"),
                    sample.get("fontWeight"),
                )
            except ParseError as e:
                report.unknown += 1
                report.errors.append({"selector": selector, **e.to_dict()})
                continue

            report.total_elements += 1
            if grade.background_fallback:
                report.fallback_backgrounds += 1
            if not grade.passes_aaa:
                report.failed_aaa += 1
            if grade.passes_aa:
                report.passed += 1
                continue

            report.failed_aa += 1
            rect = sample.get("rect")
            report.issues.append(
                ContrastIssue(
                    selector=selector,
                    foreground_color=grade.foreground.to_hex(),
                    background_color=grade.background.to_hex(),
                    contrast_ratio=grade.ratio,
                    required_ratio=grade.required_aa,
                    is_large_text=grade.is_large_text,
                    passes_aaa=grade.passes_aaa,
                    background_fallback=grade.background_fallback,
                    font_size=self.parse_font_size(sample.get("fontSize")),
                    rect=Rect.from_dict(rect) if rect else None,
                )
            )

        report.issues.sort(key=lambda issue: issue.contrast_ratio)
        self.log.info(
            "Contrast check complete",
            total=report.total_elements,
            failed_aa=report.failed_aa,
            unknown=report.unknown,
        )
        return report

    def accessible_name(
        self,
        attributes: dict[str, str],
        text_content: str | None = None,
        labelled_by_text: str | None = None,
    ) -> str | None:
        """Accessible name: aria-label, then aria-labelledby, then text."""
        label = (attributes.get("aria-label") or "").strip()
        if label:
            return self._collapse(label)

        if attributes.get("aria-labelledby"):
            if labelled_by_text and labelled_by_text.strip():
                return self._collapse(labelled_by_text)
            return None

        for fallback in (attributes.get("alt"), text_content, attributes.get("title")):
            if fallback and fallback.strip():
                return self._collapse(fallback)
        return None

    def role_for(self, tag: str, attributes: dict[str, str]) -> str | None:
        """Explicit role, or the implicit role of the tag."""
        explicit = (attributes.get("role") or "").strip()
        if explicit:
            return explicit.split()[0]

        if tag == "input":
            input_type = (attributes.get("type") or "text").lower()
            return self.INPUT_ROLES.get(input_type, "textbox")
        if tag == "a" and "href" not in attributes:
            return None
        return self.IMPLICIT_ROLES.get(tag)

    def is_keyboard_focusable(self, tag: str, attributes: dict[str, str]) -> bool:
        """Check if the element is reachable with the Tab key."""
        if "disabled" in attributes and tag in self.FOCUSABLE_TAGS:
            return False

        tab_index = attributes.get("tabindex")
        if tab_index is not None:
            try:
                return int(tab_index.strip()) >= 0
            except ValueError:
                pass

        if tag in self.FOCUSABLE_TAGS:
            return not (tag == "input" and (attributes.get("type") or "").lower() == "hidden")
        if tag in ("a", "area"):
            return "href" in attributes
        if "contenteditable" in attributes:
            return attributes["contenteditable"].lower() in ("", "true", "plaintext-only")
        return False

    def is_large_text(self, font_size: float, font_weight: int) -> bool:
        """WCAG large text: 18pt (24px), or 14pt (18.66px) when bold."""
        if font_size >= 24:
            return True
        return font_size >= 18.66 and font_weight >= 700

    @staticmethod
    def parse_font_size(font_size: str | float | None) -> float:
        """Parse a CSS font-size value to pixels (16px when unknown)."""
        if font_size is None or font_size == "":
            return 16.0
        if isinstance(font_size, (int, float)):
            return float(font_size)

        value = font_size.strip().lower()
        units = (("px", 1.0), ("pt", 1.333), ("rem", 16.0), ("em", 16.0), ("%", 0.16))
        for suffix, factor in units:
            if value.endswith(suffix):
                try:
                    return float(value[: -len(suffix)]) * factor
                except ValueError:
                    return 16.0
        try:
            return float(value)
        except ValueError:
            return 16.0

    @staticmethod
    def parse_font_weight(font_weight: str | int | None) -> int:
        """Parse a CSS font-weight value (400 when unknown)."""
        if font_weight is None or font_weight == "":
            return 400
        if isinstance(font_weight, (int, float)):
            return int(font_weight)

        weight_map = {
            "thin": 100,
            "light": 300,
            "normal": 400,
            "medium": 500,
            "bold": 700,
            "bolder": 700,
            "black": 900,
        }
        value = font_weight.strip().lower()
        if value in weight_map:
            return weight_map[value]
        try:
            return int(float(value))
        except ValueError:
            return 400

    def _collapse(self, text: str) -> str:
        return re.sub(r"\s+", " ", text).strip()[: self.MAX_NAME_LENGTH]
