"""Form control labelling checks."""
from typing import List

from bs4 import BeautifulSoup, Tag

from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.analyzers.base import Analyzer, Snapshot, register

UNLABELLED_INPUT_TYPES = {"hidden", "submit", "reset", "button", "image"}
AUTOCOMPLETE_INPUT_TYPES = {"email", "tel"}


def _has_text(value) -> bool:
    return bool(value and str(value).strip())


def _has_accessible_name(soup: BeautifulSoup, control: Tag) -> bool:
    if _has_text(control.get("aria-label")) or _has_text(control.get("title")):
        return True
    labelledby = control.get("aria-labelledby")
    if labelledby and any(soup.find(id=ref) for ref in str(labelledby).split()):
        return True
    control_id = control.get("id")
    if control_id:
        label = soup.find("label", attrs={"for": control_id})
        if label is not None and _has_text(label.get_text()):
            return True
    wrapping = control.find_parent("label")
    return wrapping is not None and _has_text(wrapping.get_text())


def _button_has_name(soup: BeautifulSoup, button: Tag) -> bool:
    if _has_accessible_name(soup, button) or _has_text(button.get_text()):
        return True
    return any(_has_text(img.get("alt")) for img in button.find_all("img"))


@register
class FormsAnalyzer(Analyzer):
    name = "forms"
    category = "forms"

    def analyze(self, snapshot: Snapshot) -> List[Finding]:
        soup = snapshot.document()
        findings: List[Finding] = []

        controls = [
            el for el in soup.find_all(["input", "select", "textarea"])
            if not (el.name == "input" and (el.get("type") or "text").lower() in UNLABELLED_INPUT_TYPES)
        ]
        unlabelled = [c for c in controls if not _has_accessible_name(soup, c)]
        placeholder_only = [c for c in unlabelled if _has_text(c.get("placeholder"))]
        missing = [c for c in unlabelled if not _has_text(c.get("placeholder"))]

        for finding in (
            self.finding(
                "ACC_FRM_01_LABEL_MISSING",
                Severity.critical,
                missing,
                "Form fields have no label",
                "Associate a <label for=...> with each field or add aria-label",
            ),
            self.finding(
                "ACC_FRM_09_PLACEHOLDER_LABEL",
                Severity.serious,
                placeholder_only,
                "Form fields rely on placeholder text as their only label",
                "Add a visible <label>; placeholders disappear while typing",
            ),
        ):
            if finding:
                findings.append(finding)

        nameless_buttons = [b for b in soup.find_all("button") if not _button_has_name(soup, b)]
        for el in soup.find_all("input"):
            input_type = (el.get("type") or "").lower()
            if input_type == "button" and not _has_text(el.get("value")) and not _has_accessible_name(soup, el):
                nameless_buttons.append(el)
            elif input_type == "image" and not _has_text(el.get("alt")) and not _has_accessible_name(soup, el):
                nameless_buttons.append(el)
        buttons = self.finding(
            "ACC_FRM_10_BUTTON_NAME_MISSING",
            Severity.critical,
            nameless_buttons,
            "Buttons have no accessible name",
            "Give each button visible text, an aria-label or an alt on its image",
        )
        if buttons:
            findings.append(buttons)

        no_autocomplete = [
            el for el in soup.find_all("input")
            if (el.get("type") or "").lower() in AUTOCOMPLETE_INPUT_TYPES and not el.has_attr("autocomplete")
        ]
        autocomplete = self.finding(
            "ACC_FRM_13_AUTOCOMPLETE_MISSING",
            Severity.minor,
            no_autocomplete,
            "Personal data fields do not declare their purpose",
            'Add autocomplete attributes such as autocomplete="email"',
        )
        if autocomplete:
            findings.append(autocomplete)

        return findings
