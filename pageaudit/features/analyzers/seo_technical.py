"""Technical SEO checks: status, transport, canonical, robots, hreflang, viewport."""
from typing import List
from urllib.parse import urljoin, urlparse

from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.analyzers.base import Analyzer, Snapshot, register
from pageaudit.platform.utils.url_validator import normalize_target_url


@register
class TechnicalSeoAnalyzer(Analyzer):
    name = "technical-seo"
    category = "technical-seo"

    def analyze(self, snapshot: Snapshot) -> List[Finding]:
        soup = snapshot.document()
        findings: List[Finding] = []
        page_url = snapshot.final_url or snapshot.url

        if snapshot.status_code >= 400:
            findings.append(self.page_finding(
                "SEO_TEC_01_HTTP_STATUS_ERROR",
                Severity.critical,
                f"The page responded with HTTP {snapshot.status_code}",
                "Serve the page with a 200 status or redirect it permanently",
            ))

        if urlparse(page_url).scheme != "https":
            findings.append(self.page_finding(
                "SEO_TEC_03_HTTPS_MISSING",
                Severity.serious,
                "The page is not served over HTTPS",
                "Serve the site over HTTPS and redirect HTTP requests",
            ))

        canonical = next(
            (link for link in soup.find_all("link") if "canonical" in [r.lower() for r in link.get("rel") or []]),
            None,
        )
        href = (canonical.get("href") or "").strip() if canonical else ""
        if not href:
            findings.append(self.page_finding(
                "SEO_TEC_05_CANONICAL_MISSING",
                Severity.critical,
                "The page has no canonical URL",
                '<link rel="canonical" href="..."> should point at the preferred URL',
                location_path="head",
            ))
        elif normalize_target_url(urljoin(page_url, href)) != normalize_target_url(page_url):
            findings.append(self.page_finding(
                "SEO_TEC_06_CANONICAL_SELF_REFERENCE",
                Severity.moderate,
                f"The canonical URL points elsewhere ({href})",
                "Make the canonical URL reference the page itself unless it is a duplicate",
                location_path='head > link[rel="canonical"]',
            ))

        robots_meta = soup.find("meta", attrs={"name": lambda n: n and n.lower() == "robots"})
        directives = (robots_meta.get("content") or "").lower() if robots_meta else ""
        header_directives = (snapshot.header("X-Robots-Tag") or "").lower()
        if "noindex" in directives or "noindex" in header_directives:
            findings.append(self.page_finding(
                "SEO_TEC_02_ROBOTS_TXT_ERRORS",
                Severity.serious,
                "The page asks search engines not to index it",
                "Remove noindex from the robots meta tag or X-Robots-Tag header",
                location_path='head > meta[name="robots"]' if "noindex" in directives else "headers",
            ))

        bad_hreflang = []
        for link in soup.find_all("link", attrs={"hreflang": True}):
            code = (link.get("hreflang") or "").strip().lower()
            primary = code.split("-")[0]
            if not (link.get("href") or "").strip() or not (code == "x-default" or (len(primary) == 2 and primary.isalpha())):
                bad_hreflang.append(link)
        hreflang = self.finding(
            "SEO_TEC_10_HREFLANG_ERRORS",
            Severity.moderate,
            bad_hreflang,
            "hreflang annotations are invalid",
            "Use ISO 639-1 language codes (optionally with region) and absolute URLs",
        )
        if hreflang:
            findings.append(hreflang)

        if soup.find("meta", attrs={"name": "viewport"}) is None:
            findings.append(self.page_finding(
                "SEO_TEC_07_VIEWPORT_MISSING",
                Severity.serious,
                "The page has no viewport meta tag",
                '<meta name="viewport" content="width=device-width, initial-scale=1">',
                location_path="head",
            ))

        if not soup.find_all("script", attrs={"type": "application/ld+json"}):
            findings.append(self.page_finding(
                "SEO_TEC_08_STRUCTURED_DATA_MISSING",
                Severity.minor,
                "No structured data found",
                "Describe the page with JSON-LD schema.org markup",
                location_path="head",
            ))

        return findings
