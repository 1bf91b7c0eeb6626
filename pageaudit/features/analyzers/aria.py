"""ARIA usage checks: roles, required states, state values and references."""
from typing import Dict, List, Tuple

from bs4 import Tag

from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.analyzers.base import Analyzer, Snapshot, register
from pageaudit.features.analyzers.keyboard import is_focusable

VALID_ROLES = {
    "alert", "alertdialog", "application", "article", "banner", "button",
    "cell", "checkbox", "columnheader", "combobox", "complementary",
    "contentinfo", "definition", "dialog", "directory", "document", "feed",
    "figure", "form", "grid", "gridcell", "group", "heading", "img", "link",
    "list", "listbox", "listitem", "log", "main", "marquee", "math", "menu",
    "menubar", "menuitem", "menuitemcheckbox", "menuitemradio", "meter",
    "navigation", "none", "note", "option", "presentation", "progressbar",
    "radio", "radiogroup", "region", "row", "rowgroup", "rowheader",
    "scrollbar", "search", "searchbox", "separator", "slider", "spinbutton",
    "status", "switch", "tab", "table", "tablist", "tabpanel", "term",
    "textbox", "timer", "toolbar", "tooltip", "tree", "treegrid", "treeitem",
}

# role -> (attributes the role requires, elements whose native semantics supply them)
REQUIRED_ATTRIBUTES: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "checkbox": (("aria-checked",), ("input",)),
    "radio": (("aria-checked",), ("input",)),
    "switch": (("aria-checked",), ("input",)),
    "menuitemcheckbox": (("aria-checked",), ()),
    "menuitemradio": (("aria-checked",), ()),
    "combobox": (("aria-expanded",), ("select",)),
    "heading": (("aria-level",), ("h1", "h2", "h3", "h4", "h5", "h6")),
    "slider": (("aria-valuenow",), ("input",)),
    "scrollbar": (("aria-controls", "aria-valuenow"), ()),
}

BOOLEAN_VALUES = {"true", "false"}
STATE_VALUES: Dict[str, set] = {
    "aria-busy": BOOLEAN_VALUES,
    "aria-disabled": BOOLEAN_VALUES,
    "aria-expanded": BOOLEAN_VALUES | {"undefined"},
    "aria-hidden": BOOLEAN_VALUES | {"undefined"},
    "aria-modal": BOOLEAN_VALUES,
    "aria-multiline": BOOLEAN_VALUES,
    "aria-multiselectable": BOOLEAN_VALUES,
    "aria-readonly": BOOLEAN_VALUES,
    "aria-required": BOOLEAN_VALUES,
    "aria-selected": BOOLEAN_VALUES | {"undefined"},
    "aria-checked": BOOLEAN_VALUES | {"mixed", "undefined"},
    "aria-pressed": BOOLEAN_VALUES | {"mixed", "undefined"},
    "aria-invalid": BOOLEAN_VALUES | {"grammar", "spelling"},
    "aria-live": {"off", "polite", "assertive"},
}


def _roles(el: Tag) -> List[str]:
    return str(el.get("role") or "").strip().lower().split()


def _missing_references(el: Tag, attribute: str, ids: set) -> bool:
    refs = str(el.get(attribute) or "").split()
    return not refs or any(ref not in ids for ref in refs)


@register
class AriaAnalyzer(Analyzer):
    name = "aria"
    category = "aria"

    def analyze(self, snapshot: Snapshot) -> List[Finding]:
        soup = snapshot.document()
        findings: List[Finding] = []

        with_role = [el for el in soup.find_all(attrs={"role": True}) if _roles(el)]

        # Roles are a fallback list; the first valid token applies.
        invalid_roles = [el for el in with_role if not any(role in VALID_ROLES for role in _roles(el))]
        invalid = self.finding(
            "ACC_ARIA_01_ROLE_INVALID",
            Severity.serious,
            invalid_roles,
            "Elements use ARIA roles that do not exist",
            "Use a role from the WAI-ARIA specification or remove the role attribute",
        )
        if invalid:
            findings.append(invalid)

        missing_required = []
        for el in with_role:
            role = next((r for r in _roles(el) if r in VALID_ROLES), None)
            if role not in REQUIRED_ATTRIBUTES:
                continue
            attributes, native = REQUIRED_ATTRIBUTES[role]
            if el.name in native:
                continue
            if any(not el.has_attr(attribute) for attribute in attributes):
                missing_required.append(el)
        required = self.finding(
            "ACC_ARIA_02_REQUIRED_ATTR_MISSING",
            Severity.serious,
            missing_required,
            "Elements with an ARIA role lack the states that role requires",
            "Add the required attributes, for example aria-checked on a checkbox role",
        )
        if required:
            findings.append(required)

        bad_values = []
        for attribute, allowed in sorted(STATE_VALUES.items()):
            for el in soup.find_all(attrs={attribute: True}):
                if str(el.get(attribute)).strip().lower() not in allowed:
                    bad_values.append(el)
        values = self.finding(
            "ACC_ARIA_03_INVALID_ATTR_VALUE",
            Severity.serious,
            bad_values,
            "ARIA states have values outside their allowed set",
            'Use the documented values, such as "true" or "false"',
        )
        if values:
            findings.append(values)

        hidden_focusable = []
        for el in soup.find_all(attrs={"aria-hidden": True}):
            if str(el.get("aria-hidden")).strip().lower() != "true":
                continue
            if is_focusable(el) or any(is_focusable(child) for child in el.find_all(True)):
                hidden_focusable.append(el)
        hidden = self.finding(
            "ACC_ARIA_05_HIDDEN_FOCUSABLE",
            Severity.serious,
            hidden_focusable,
            "Content hidden from assistive technology can still receive keyboard focus",
            'Remove aria-hidden, or take the content out of the tab order with tabindex="-1"',
        )
        if hidden:
            findings.append(hidden)

        ids = {str(el["id"]) for el in soup.find_all(attrs={"id": True})}
        labelledby = self.finding(
            "ACC_ARIA_07_LABELLEDBY_MISSING",
            Severity.serious,
            [el for el in soup.find_all(attrs={"aria-labelledby": True})
             if _missing_references(el, "aria-labelledby", ids)],
            "aria-labelledby points at ids that are not on the page",
            "Reference the id of an existing element that holds the label",
        )
        if labelledby:
            findings.append(labelledby)

        describedby = self.finding(
            "ACC_ARIA_08_DESCRIBEDBY_MISSING",
            Severity.moderate,
            [el for el in soup.find_all(attrs={"aria-describedby": True})
             if _missing_references(el, "aria-describedby", ids)],
            "aria-describedby points at ids that are not on the page",
            "Reference the id of an existing element that holds the description",
        )
        if describedby:
            findings.append(describedby)

        return findings
