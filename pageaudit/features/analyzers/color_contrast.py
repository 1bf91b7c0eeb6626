"""
Text contrast checks against WCAG 2.x ratios.

Only colours declared in inline styles (or legacy color/bgcolor attributes)
are considered; colours coming from stylesheets need a rendered page and
are left to the rule checker.
"""
import re
from typing import Dict, List, Optional, Tuple

from bs4 import NavigableString, Tag

from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.analyzers.base import Analyzer, Snapshot, register

RGB = Tuple[int, int, int]

NORMAL_TEXT_RATIO = 4.5
LARGE_TEXT_RATIO = 3.0

NAMED_COLORS: Dict[str, RGB] = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "yellow": (255, 255, 0),
    "orange": (255, 165, 0),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
    "silver": (192, 192, 192),
    "lightgray": (211, 211, 211),
    "lightgrey": (211, 211, 211),
    "darkgray": (169, 169, 169),
    "darkgrey": (169, 169, 169),
    "navy": (0, 0, 128),
    "maroon": (128, 0, 0),
    "purple": (128, 0, 128),
    "teal": (0, 128, 128),
    "olive": (128, 128, 0),
    "lime": (0, 255, 0),
    "aqua": (0, 255, 255),
    "cyan": (0, 255, 255),
    "fuchsia": (255, 0, 255),
    "magenta": (255, 0, 255),
}

RGB_FUNC_RE = re.compile(r"rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([\d.]+)\s*)?\)")
FONT_SIZE_RE = re.compile(r"^([\d.]+)\s*(px|pt|em|rem)?$")


def parse_color(value: Optional[str]) -> Optional[RGB]:
    """Parse a CSS colour. Returns None for unknown or transparent values."""
    if not value:
        return None
    value = value.strip().lower()
    if value in NAMED_COLORS:
        return NAMED_COLORS[value]
    if value.startswith("#"):
        digits = value[1:]
        if len(digits) in (3, 4):
            digits = "".join(c * 2 for c in digits[:3])
        elif len(digits) == 8:
            digits = digits[:6]
        if len(digits) != 6:
            return None
        try:
            return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))
        except ValueError:
            return None
    match = RGB_FUNC_RE.match(value)
    if match:
        if match.group(4) is not None and float(match.group(4)) == 0:
            return None
        return tuple(min(255, int(match.group(i))) for i in (1, 2, 3))
    return None


def relative_luminance(rgb: RGB) -> float:
    def channel(c: int) -> float:
        c = c / 255
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    r, g, b = (channel(c) for c in rgb)
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(foreground: RGB, background: RGB) -> float:
    l1 = relative_luminance(foreground)
    l2 = relative_luminance(background)
    lighter, darker = max(l1, l2), min(l1, l2)
    return (lighter + 0.05) / (darker + 0.05)


def parse_style(style: Optional[str]) -> Dict[str, str]:
    declarations = {}
    for part in (style or "").split(";"):
        if ":" in part:
            prop, _, value = part.partition(":")
            declarations[prop.strip().lower()] = value.replace("!important", "").strip()
    return declarations


def _own_color(el: Tag, prop: str) -> Optional[RGB]:
    styles = parse_style(el.get("style"))
    if prop == "color":
        return parse_color(styles.get("color") or (el.get("color") if el.name == "font" else None))
    background = styles.get("background-color") or styles.get("background", "").split(" ")[0]
    return parse_color(background or el.get("bgcolor"))


def _inherited(el: Tag, prop: str) -> Optional[RGB]:
    node = el
    while isinstance(node, Tag):
        color = _own_color(node, prop)
        if color is not None:
            return color
        node = node.parent
    return None


def _font_size_px(el: Tag) -> float:
    node = el
    while isinstance(node, Tag):
        size = parse_style(node.get("style")).get("font-size")
        if size:
            match = FONT_SIZE_RE.match(size.lower())
            if match:
                number, unit = float(match.group(1)), match.group(2) or "px"
                if unit == "pt":
                    return number * 4 / 3
                if unit in ("em", "rem"):
                    return number * 16
                return number
        node = node.parent
    return 16.0


def _is_bold(el: Tag) -> bool:
    node = el
    while isinstance(node, Tag):
        if node.name in ("b", "strong", "th") or re.match(r"^h[1-6]$", node.name or ""):
            return True
        weight = parse_style(node.get("style")).get("font-weight")
        if weight:
            return weight == "bold" or weight == "bolder" or (weight.isdigit() and int(weight) >= 700)
        node = node.parent
    return False


def is_large_text(el: Tag) -> bool:
    size = _font_size_px(el)
    return size >= 24 or (size >= 18.66 and _is_bold(el))


def _has_own_text(el: Tag) -> bool:
    return any(isinstance(c, NavigableString) and c.strip() for c in el.children)


@register
class ColorContrastAnalyzer(Analyzer):
    name = "color-contrast"
    category = "color-contrast"

    def analyze(self, snapshot: Snapshot) -> List[Finding]:
        soup = snapshot.document()
        body = soup.body or soup

        low_contrast = []
        worst: Optional[float] = None
        for el in body.find_all(True):
            if el.name in ("script", "style", "noscript") or not _has_own_text(el):
                continue
            has_inline = _own_color(el, "color") is not None or _own_color(el, "background") is not None
            if not has_inline:
                continue
            foreground = _inherited(el, "color") or NAMED_COLORS["black"]
            background = _inherited(el, "background") or NAMED_COLORS["white"]
            ratio = contrast_ratio(foreground, background)
            required = LARGE_TEXT_RATIO if is_large_text(el) else NORMAL_TEXT_RATIO
            if ratio < required:
                low_contrast.append(el)
                worst = ratio if worst is None else min(worst, ratio)

        finding = self.finding(
            "ACC_CLR_01_TEXT_CONTRAST_RATIO",
            Severity.serious,
            low_contrast,
            f"Text has insufficient contrast (lowest ratio {worst:.2f}:1)" if worst else "",
            "Darken the text or lighten the background to reach 4.5:1 (3:1 for large text)",
        )
        return [finding] if finding else []
