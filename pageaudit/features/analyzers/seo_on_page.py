"""On-page SEO checks: title, meta description, headings, links, social tags."""
from typing import List

from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.analyzers.base import Analyzer, Snapshot, register

TITLE_MIN, TITLE_MAX = 30, 60
DESCRIPTION_MIN, DESCRIPTION_MAX = 120, 160
OPEN_GRAPH_TAGS = ("og:title", "og:description", "og:image")


@register
class OnPageSeoAnalyzer(Analyzer):
    name = "on-page-seo"
    category = "on-page-seo"

    def analyze(self, snapshot: Snapshot) -> List[Finding]:
        soup = snapshot.document()
        findings: List[Finding] = []

        title_tag = soup.find("title")
        title = title_tag.get_text(strip=True) if title_tag else ""
        if not title:
            findings.append(self.page_finding(
                "SEO_CON_01_TITLE_TAG_MISSING",
                Severity.critical,
                "The page has no title",
                "Add a descriptive <title> of 30 to 60 characters",
                location_path="head",
            ))
        elif not TITLE_MIN <= len(title) <= TITLE_MAX:
            findings.append(self.page_finding(
                "SEO_CON_02_TITLE_TAG_LENGTH",
                Severity.serious,
                f"Title is {len(title)} characters long",
                f"Keep the title between {TITLE_MIN} and {TITLE_MAX} characters",
                location_path="head > title",
            ))

        desc_tag = soup.find("meta", attrs={"name": "description"})
        description = (desc_tag.get("content") or "").strip() if desc_tag else ""
        if not description:
            findings.append(self.page_finding(
                "SEO_CON_04_META_DESC_MISSING",
                Severity.serious,
                "The page has no meta description",
                "Add a meta description of 120 to 160 characters summarizing the page",
                location_path="head",
            ))
        elif not DESCRIPTION_MIN <= len(description) <= DESCRIPTION_MAX:
            findings.append(self.page_finding(
                "SEO_CON_05_META_DESC_LENGTH",
                Severity.moderate,
                f"Meta description is {len(description)} characters long",
                f"Keep the description between {DESCRIPTION_MIN} and {DESCRIPTION_MAX} characters",
                location_path='head > meta[name="description"]',
            ))

        h1s = soup.find_all("h1")
        if not h1s:
            findings.append(self.page_finding(
                "SEO_CON_07_H1_MISSING",
                Severity.serious,
                "The page has no H1 heading",
                "Add one H1 containing the page's main topic",
                location_path="body",
            ))
        elif len(h1s) > 1:
            findings.append(self.finding(
                "SEO_CON_08_H1_DUPLICATE",
                Severity.moderate,
                h1s[1:],
                f"Found {len(h1s)} H1 tags; each page should have only one",
                "Keep a single H1 and use H2 for the other sections",
            ))

        textless_links = [
            a for a in soup.find_all("a", href=True)
            if not a.get_text(strip=True)
            and not (a.get("aria-label") or "").strip()
            and not any((img.get("alt") or "").strip() for img in a.find_all("img"))
        ]
        links = self.finding(
            "SEO_CON_10_LINK_TEXT_MISSING",
            Severity.moderate,
            textless_links,
            "Links have no descriptive text",
            "Give every link text that describes its destination",
        )
        if links:
            findings.append(links)

        missing_og = [
            prop for prop in OPEN_GRAPH_TAGS
            if soup.find("meta", attrs={"property": prop}) is None
        ]
        if missing_og:
            findings.append(self.page_finding(
                "SEO_SOC_01_OPEN_GRAPH_MISSING",
                Severity.minor,
                f"Missing Open Graph tags: {', '.join(missing_og)}",
                "Add og:title, og:description and og:image for link previews",
                location_path="head",
            ))

        return findings
