"""Keyboard operability checks based on markup."""
from collections import defaultdict
from typing import List

from bs4 import Tag

from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.analyzers.base import Analyzer, Snapshot, register

NATIVELY_FOCUSABLE = {"button", "input", "select", "textarea", "summary", "iframe"}
INTERACTIVE_ROLES = {"button", "link", "checkbox", "menuitem", "tab", "switch", "radio", "option"}
CLICK_HANDLERS = ("onclick", "onmousedown", "onmouseup")


def _tabindex(el: Tag):
    try:
        return int(str(el.get("tabindex")).strip())
    except (TypeError, ValueError):
        return None


def is_focusable(el: Tag) -> bool:
    if el.name in NATIVELY_FOCUSABLE:
        return not el.has_attr("disabled")
    if el.name in ("a", "area") and el.has_attr("href"):
        return True
    if el.has_attr("contenteditable"):
        return True
    tabindex = _tabindex(el)
    return tabindex is not None and tabindex >= 0


@register
class KeyboardAnalyzer(Analyzer):
    name = "keyboard"
    category = "keyboard"

    def analyze(self, snapshot: Snapshot) -> List[Finding]:
        soup = snapshot.document()
        findings: List[Finding] = []

        positive_tabindex = [
            el for el in soup.find_all(attrs={"tabindex": True})
            if (_tabindex(el) or 0) > 0
        ]
        order = self.finding(
            "ACC_KBD_05_FOCUS_ORDER_LOGICAL",
            Severity.serious,
            positive_tabindex,
            "Positive tabindex values override the natural focus order",
            'Use tabindex="0" or reorder the markup instead',
        )
        if order:
            findings.append(order)

        not_focusable = []
        for el in soup.find_all(True):
            role = (el.get("role") or "").strip().lower()
            acts_interactive = role in INTERACTIVE_ROLES or any(el.has_attr(h) for h in CLICK_HANDLERS)
            if acts_interactive and not is_focusable(el):
                not_focusable.append(el)
        focusable = self.finding(
            "ACC_KBD_04_INTERACTIVE_NOT_FOCUSABLE",
            Severity.serious,
            not_focusable,
            "Interactive elements cannot be reached with the keyboard",
            'Use a native <button> or <a href>, or add tabindex="0" and key handlers',
        )
        if focusable:
            findings.append(focusable)

        by_key = defaultdict(list)
        for el in soup.find_all(attrs={"accesskey": True}):
            key = str(el.get("accesskey")).strip().lower()
            if key:
                by_key[key].append(el)
        duplicates = [el for els in by_key.values() if len(els) > 1 for el in els[1:]]
        accesskeys = self.finding(
            "ACC_KBD_08_ACCESS_KEY_DUPLICATE",
            Severity.moderate,
            duplicates,
            "Several elements share the same accesskey",
            "Give each accesskey a unique value",
        )
        if accesskeys:
            findings.append(accesskeys)

        return findings
