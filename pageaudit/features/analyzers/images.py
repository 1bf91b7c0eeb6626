"""Image text alternative checks."""
import re
from typing import List

from bs4 import Tag

from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.analyzers.base import Analyzer, Snapshot, register

PLACEHOLDER_ALT = {"image", "img", "picture", "photo", "graphic", "logo", "icon", "spacer", "untitled"}
FILENAME_ALT_RE = re.compile(r"\.(png|jpe?g|gif|svg|webp|avif|bmp)$", re.IGNORECASE)


def _is_hidden(el: Tag) -> bool:
    role = (el.get("role") or "").strip().lower()
    return role in ("presentation", "none") or str(el.get("aria-hidden", "")).lower() == "true"


def _has_aria_name(el: Tag) -> bool:
    return bool((el.get("aria-label") or "").strip() or (el.get("aria-labelledby") or "").strip())


@register
class ImagesAnalyzer(Analyzer):
    name = "images"
    category = "images"

    def analyze(self, snapshot: Snapshot) -> List[Finding]:
        soup = snapshot.document()
        findings: List[Finding] = []

        missing_alt = []
        poor_alt = []
        for img in soup.find_all(["img", "area"]):
            if _is_hidden(img) or _has_aria_name(img):
                continue
            if img.name == "area" and not img.has_attr("href"):
                continue
            if not img.has_attr("alt"):
                missing_alt.append(img)
                continue
            alt = img["alt"].strip().lower()
            if alt and (alt in PLACEHOLDER_ALT or FILENAME_ALT_RE.search(alt)):
                poor_alt.append(img)

        for svg in soup.find_all("svg", attrs={"role": "img"}):
            if not _has_aria_name(svg) and svg.find("title") is None:
                missing_alt.append(svg)

        for finding in (
            self.finding(
                "ACC_IMG_01_ALT_TEXT_MISSING",
                Severity.critical,
                missing_alt,
                "Images have no text alternative",
                'Add an alt attribute describing the image, or alt="" if it is decorative',
            ),
            self.finding(
                "ACC_IMG_03_ALT_TEXT_INFORMATIVE",
                Severity.minor,
                poor_alt,
                "Image alt text does not describe the image",
                "Replace file names and generic words with a short description",
            ),
        ):
            if finding:
                findings.append(finding)

        return findings
