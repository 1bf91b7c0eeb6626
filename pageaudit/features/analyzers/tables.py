"""Data table checks: header cells, captions and header scope."""
from typing import List

from bs4 import Tag

from pageaudit.features.analysis.schemas.finding import Finding, Severity
from pageaudit.features.analyzers.base import Analyzer, Snapshot, register

LAYOUT_ROLES = {"presentation", "none"}
# Beyond this size a header row or column alone is ambiguous without scope.
COMPLEX_ROWS = 3
COMPLEX_COLUMNS = 3


def _own(table: Tag, name) -> List[Tag]:
    """Descendants of this table that are not inside a nested table."""
    return [el for el in table.find_all(name) if el.find_parent("table") is table]


def _is_layout(table: Tag) -> bool:
    return str(table.get("role") or "").strip().lower() in LAYOUT_ROLES


def _dimensions(table: Tag):
    rows = _own(table, "tr")
    columns = max((len(row.find_all(["td", "th"], recursive=False)) for row in rows), default=0)
    return len(rows), columns


def _is_data_table(table: Tag) -> bool:
    if _is_layout(table):
        return False
    if _own(table, "th") or _own(table, "caption") or table.find("thead"):
        return True
    rows, columns = _dimensions(table)
    return rows >= 2 and columns >= 2


def _has_name(table: Tag) -> bool:
    caption = next(iter(_own(table, "caption")), None)
    if caption is not None and caption.get_text(strip=True):
        return True
    return bool(str(table.get("aria-label") or "").strip() or table.get("aria-labelledby"))


@register
class TablesAnalyzer(Analyzer):
    name = "tables"
    category = "tables"

    def analyze(self, snapshot: Snapshot) -> List[Finding]:
        soup = snapshot.document()
        findings: List[Finding] = []

        tables = soup.find_all("table")
        data_tables = [table for table in tables if _is_data_table(table)]

        no_headers = [
            table for table in data_tables
            if not _own(table, "th")
            and not table.find(attrs={"role": ["columnheader", "rowheader"]})
        ]
        headers = self.finding(
            "ACC_TBL_01_HEADER_MISSING",
            Severity.serious,
            no_headers,
            "Data tables have no header cells",
            "Mark header cells up with <th> so each data cell can be related to its header",
        )
        if headers:
            findings.append(headers)

        no_caption = [table for table in data_tables if not _has_name(table)]
        caption = self.finding(
            "ACC_TBL_02_CAPTION_MISSING",
            Severity.moderate,
            no_caption,
            "Data tables have no caption",
            "Add a <caption> describing the table, or label it with aria-label",
        )
        if caption:
            findings.append(caption)

        no_scope = []
        for table in data_tables:
            header_cells = _own(table, "th")
            rows, columns = _dimensions(table)
            if not header_cells or rows <= COMPLEX_ROWS or columns <= COMPLEX_COLUMNS:
                continue
            if any(cell.has_attr("headers") for cell in _own(table, "td")):
                continue
            if not any(cell.get("scope") for cell in header_cells):
                no_scope.append(table)
        scope = self.finding(
            "ACC_TBL_03_SCOPE_MISSING",
            Severity.serious,
            no_scope,
            "Header cells of larger tables do not state what they label",
            'Add scope="col" or scope="row" to the <th> cells',
        )
        if scope:
            findings.append(scope)

        layout_with_headers = [
            table for table in tables
            if _is_layout(table) and (_own(table, "th") or _own(table, "caption"))
        ]
        layout = self.finding(
            "ACC_TBL_05_LAYOUT_TABLE_HEADERS",
            Severity.moderate,
            layout_with_headers,
            "Layout tables use data table markup",
            "Drop <th> and <caption> from layout tables, or remove the presentation role",
        )
        if layout:
            findings.append(layout)

        return findings
