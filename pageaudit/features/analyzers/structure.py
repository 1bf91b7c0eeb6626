"""Document structure checks: language, headings, landmarks, skip links."""
import re
from typing import List

from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.analyzers.base import Analyzer, Snapshot, register

HEADING_RE = re.compile(r"^h[1-6]$")
LANG_RE = re.compile(r"^[a-zA-Z]{2,3}(-[a-zA-Z0-9]{2,8})*$")

# Pages with fewer links than this have no navigation worth skipping.
SKIP_LINK_MIN_LINKS = 5


@register
class StructureAnalyzer(Analyzer):
    name = "structure"
    category = "structure"

    def analyze(self, snapshot: Snapshot) -> List[Finding]:
        soup = snapshot.document()
        findings: List[Finding] = []

        html = soup.find("html")
        lang = (html.get("lang") or "").strip() if html else ""
        if not lang:
            findings.append(self.page_finding(
                "ACC_STR_04_PAGE_LANG_MISSING",
                Severity.serious,
                "The page does not declare its language",
                'Add a lang attribute to <html>, e.g. <html lang="en">',
            ))
        elif not LANG_RE.match(lang):
            findings.append(self.page_finding(
                "ACC_STR_05_PAGE_LANG_INVALID",
                Severity.moderate,
                f"The page language '{lang}' is not a valid language tag",
                "Use a BCP 47 language tag such as en, de or pt-BR",
            ))

        headings = soup.find_all(HEADING_RE)
        h1s = [h for h in headings if h.name == "h1"]
        if not h1s:
            findings.append(self.page_finding(
                "ACC_STR_02_NO_H1",
                Severity.serious,
                "The page has no level-one heading",
                "Add a single <h1> describing the main content",
                location_path="body",
            ))
        elif len(h1s) > 1:
            findings.append(self.finding(
                "ACC_STR_03_MULTIPLE_H1",
                Severity.moderate,
                h1s[1:],
                f"The page has {len(h1s)} level-one headings",
                "Keep one <h1> and demote the others",
            ))

        skipped = []
        previous = 0
        for heading in headings:
            level = int(heading.name[1])
            if previous and level > previous + 1:
                skipped.append(heading)
            previous = level
        order = self.finding(
            "ACC_STR_01_HEADING_ORDER",
            Severity.moderate,
            skipped,
            "Heading levels are skipped",
            "Increase heading levels one step at a time (h2 after h1, h3 after h2)",
        )
        if order:
            findings.append(order)

        if soup.find("main") is None and soup.find(attrs={"role": "main"}) is None:
            findings.append(self.page_finding(
                "ACC_STR_10_LANDMARK_MISSING",
                Severity.moderate,
                "The page has no main landmark",
                "Wrap the primary content in a <main> element",
                location_path="body",
            ))

        links = soup.find_all("a", href=True)
        if len(links) >= SKIP_LINK_MIN_LINKS:
            leading = links[:3]
            has_skip_link = any(
                a["href"].startswith("#") and len(a["href"]) > 1 for a in leading
            )
            if not has_skip_link:
                findings.append(self.page_finding(
                    "ACC_STR_08_SKIP_LINK_MISSING",
                    Severity.moderate,
                    "There is no link to skip repeated navigation",
                    'Add a "Skip to main content" link as the first focusable element',
                    location_path="body",
                ))
            else:
                broken = [
                    a for a in leading
                    if a["href"].startswith("#") and len(a["href"]) > 1
                    and soup.find(id=a["href"][1:]) is None
                ]
                skip = self.finding(
                    "ACC_STR_09_SKIP_LINK_BROKEN",
                    Severity.moderate,
                    broken,
                    "The skip link points to an element that does not exist",
                    "Point the skip link at the id of the main content",
                )
                if skip:
                    findings.append(skip)

        return findings
