"""
Adapter for third-party rule-based accessibility checkers.

A checker is any callable taking a Snapshot and returning violations shaped
like {"ruleId": ..., "impact": ..., "nodes": [{"target": [...], "html": ...}]}.
Violations are normalized into findings here; nothing else in the engine
knows about the checker's format.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Tuple

from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.analyzers.base import Analyzer, Snapshot

logger = logging.getLogger(__name__)

Violation = Dict[str, Any]
Checker = Callable[[Snapshot], Iterable[Violation]]

# checker rule id -> (rule id, category)
RULE_MAP: Dict[str, Tuple[str, str]] = {
    "image-alt": ("ACC_IMG_01_ALT_TEXT_MISSING", "images"),
    "input-image-alt": ("ACC_IMG_01_ALT_TEXT_MISSING", "images"),
    "svg-img-alt": ("ACC_IMG_01_ALT_TEXT_MISSING", "images"),
    "label": ("ACC_FRM_01_LABEL_MISSING", "forms"),
    "button-name": ("ACC_FRM_10_BUTTON_NAME_MISSING", "forms"),
    "page-has-heading-one": ("ACC_STR_02_NO_H1", "structure"),
    "html-has-lang": ("ACC_STR_04_PAGE_LANG_MISSING", "structure"),
    "bypass": ("ACC_STR_08_SKIP_LINK_MISSING", "structure"),
    "landmark-one-main": ("ACC_STR_10_LANDMARK_MISSING", "structure"),
    "heading-order": ("ACC_STR_01_HEADING_ORDER", "structure"),
    "color-contrast": ("ACC_CLR_01_TEXT_CONTRAST_RATIO", "color-contrast"),
    "tabindex": ("ACC_KBD_05_FOCUS_ORDER_LOGICAL", "keyboard"),
    "scrollable-region-focusable": ("ACC_KBD_04_INTERACTIVE_NOT_FOCUSABLE", "keyboard"),
    "accesskeys": ("ACC_KBD_08_ACCESS_KEY_DUPLICATE", "keyboard"),
    "document-title": ("SEO_CON_01_TITLE_TAG_MISSING", "on-page-seo"),
    "meta-viewport": ("SEO_TEC_07_VIEWPORT_MISSING", "technical-seo"),
    "aria-roles": ("ACC_ARIA_01_ROLE_INVALID", "aria"),
    "aria-required-attr": ("ACC_ARIA_02_REQUIRED_ATTR_MISSING", "aria"),
    "aria-valid-attr-value": ("ACC_ARIA_03_INVALID_ATTR_VALUE", "aria"),
    "aria-hidden-focus": ("ACC_ARIA_05_HIDDEN_FOCUSABLE", "aria"),
    "td-has-header": ("ACC_TBL_01_HEADER_MISSING", "tables"),
    "th-has-data-cells": ("ACC_TBL_04_COMPLEX_TABLE_HEADERS", "tables"),
}

FALLBACK_CATEGORY = "other"


def _location(node: Dict[str, Any]) -> str:
    target = node.get("target")
    if isinstance(target, (list, tuple)):
        return " ".join(str(t) for t in target)
    return str(target or "")


def normalize_violation(violation: Violation) -> Finding:
    raw_rule = str(violation.get("ruleId") or violation.get("id") or "unknown")
    rule_id, category = RULE_MAP.get(raw_rule, (raw_rule, FALLBACK_CATEGORY))

    impact = violation.get("impact")
    severity = Severity.parse(impact)
    if severity is None:
        logger.warning(f"Unknown impact '{impact}' for rule {raw_rule}, using moderate")
        severity = Severity.moderate

    nodes = violation.get("nodes") or []
    return Finding(
        rule_id=rule_id,
        severity=severity,
        category=category,
        location_path=_location(nodes[0]) if nodes else "",
        message=str(violation.get("help") or violation.get("description") or raw_rule),
        fix_suggestion=str(violation.get("helpUrl") or ""),
        affected_element_count=max(1, len(nodes)),
    )


def normalize_violations(violations: Iterable[Violation]) -> List[Finding]:
    return [normalize_violation(v) for v in violations]


class RuleCheckerAnalyzer(Analyzer):
    """Runs an injected rule checker as one more analysis module."""

    name = "rule-checker"
    category = FALLBACK_CATEGORY

    def __init__(self, checker: Checker):
        self.checker = checker

    def analyze(self, snapshot: Snapshot) -> List[Finding]:
        return normalize_violations(self.checker(snapshot))
