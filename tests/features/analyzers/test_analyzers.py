import pytest

from conftest import BROKEN_PAGE, CLEAN_PAGE
from pageaudit.features.analysis.schemas.finding import Severity
from pageaudit.features.analyzers.aria import AriaAnalyzer
from pageaudit.features.analyzers.base import Snapshot, element_path, registry
from pageaudit.features.analyzers.color_contrast import (
    ColorContrastAnalyzer,
    contrast_ratio,
    parse_color,
)
from pageaudit.features.analyzers.engine import AnalyzerEngine
from pageaudit.features.analyzers.forms import FormsAnalyzer
from pageaudit.features.analyzers.images import ImagesAnalyzer
from pageaudit.features.analyzers.keyboard import KeyboardAnalyzer
from pageaudit.features.analyzers.seo_on_page import OnPageSeoAnalyzer
from pageaudit.features.analyzers.seo_technical import TechnicalSeoAnalyzer
from pageaudit.features.analyzers.structure import StructureAnalyzer
from pageaudit.features.analyzers.tables import TablesAnalyzer


def run(analyzer_cls, html, url="https://example.com", **kwargs):
    snapshot = Snapshot(url=url, final_url=url, html=html, **kwargs)
    return {f.rule_id: f for f in analyzer_cls().analyze(snapshot)}


def page(body, head="", lang=' lang="en"'):
    return f"<html{lang}><head>{head}</head><body>{body}</body></html>"


def test_builtin_modules_are_registered():
    assert {
        "structure",
        "aria",
        "forms",
        "tables",
        "keyboard",
        "color-contrast",
        "images",
        "on-page-seo",
        "technical-seo",
    } <= set(registry.names())
    assert "rule-checker" not in registry


def test_clean_page_has_no_findings():
    result = AnalyzerEngine().run_sync(Snapshot(url="https://example.com", html=CLEAN_PAGE))

    assert result.failed == []
    assert result.findings == []


def test_broken_page_findings():
    result = AnalyzerEngine().run_sync(Snapshot(url="https://example.com", html=BROKEN_PAGE))
    rules = {f.rule_id: f for f in result.findings}

    assert rules["ACC_IMG_01_ALT_TEXT_MISSING"].affected_element_count == 2
    assert rules["ACC_STR_04_PAGE_LANG_MISSING"].severity == Severity.serious
    assert "ACC_FRM_01_LABEL_MISSING" in rules
    assert "ACC_FRM_10_BUTTON_NAME_MISSING" in rules
    assert "ACC_KBD_04_INTERACTIVE_NOT_FOCUSABLE" in rules
    assert "ACC_CLR_01_TEXT_CONTRAST_RATIO" in rules
    assert "SEO_CON_02_TITLE_TAG_LENGTH" in rules
    assert "SEO_TEC_05_CANONICAL_MISSING" in rules
    assert all(f.category in registry for f in result.findings)


class TestStructure:
    def test_missing_and_invalid_lang(self):
        assert "ACC_STR_04_PAGE_LANG_MISSING" in run(StructureAnalyzer, page("<main><h1>x</h1></main>", lang=""))
        invalid = run(StructureAnalyzer, page("<main><h1>x</h1></main>", lang=' lang="english!"'))
        assert "ACC_STR_05_PAGE_LANG_INVALID" in invalid

    def test_headings(self):
        findings = run(StructureAnalyzer, page("<main><h1>A</h1><h3>B</h3><h1>C</h1></main>"))

        assert findings["ACC_STR_03_MULTIPLE_H1"].affected_element_count == 1
        assert findings["ACC_STR_01_HEADING_ORDER"].location_path == "html > body > main > h3"
        assert "ACC_STR_02_NO_H1" not in findings

    def test_no_h1_and_no_main(self):
        findings = run(StructureAnalyzer, page("<div><h2>Only</h2></div>"))

        assert findings["ACC_STR_02_NO_H1"].location_path == "body"
        assert "ACC_STR_10_LANDMARK_MISSING" in findings

    def test_skip_links(self):
        nav = "".join(f'<a href="/p{i}">Page {i}</a>' for i in range(5))
        missing = run(StructureAnalyzer, page(f"<nav>{nav}</nav><main><h1>x</h1></main>"))
        assert "ACC_STR_08_SKIP_LINK_MISSING" in missing

        broken = run(StructureAnalyzer, page(f'<a href="#content">Skip</a><nav>{nav}</nav><main><h1>x</h1></main>'))
        assert "ACC_STR_09_SKIP_LINK_BROKEN" in broken

        few_links = run(StructureAnalyzer, page('<a href="/a">A</a><main><h1>x</h1></main>'))
        assert "ACC_STR_08_SKIP_LINK_MISSING" not in few_links


class TestForms:
    def test_labels(self):
        findings = run(
            FormsAnalyzer,
            page(
                '<form><input name="a"><input name="b" placeholder="Search">'
                '<label>Name <input name="c"></label><input type="hidden" name="d">'
                '<input aria-label="Zip" name="e"></form>'
            ),
        )

        assert findings["ACC_FRM_01_LABEL_MISSING"].affected_element_count == 1
        assert findings["ACC_FRM_09_PLACEHOLDER_LABEL"].affected_element_count == 1

    def test_buttons(self):
        findings = run(
            FormsAnalyzer,
            page(
                '<button></button><button><img src="x.png" alt="Search"></button>'
                '<button aria-label="Close"></button><input type="button">'
                '<input type="image" src="go.png">'
            ),
        )

        assert findings["ACC_FRM_10_BUTTON_NAME_MISSING"].affected_element_count == 3

    def test_autocomplete(self):
        findings = run(
            FormsAnalyzer,
            page('<label>Email <input type="email"></label><label>Phone <input type="tel" autocomplete="tel"></label>'),
        )

        assert findings["ACC_FRM_13_AUTOCOMPLETE_MISSING"].severity == Severity.minor
        assert findings["ACC_FRM_13_AUTOCOMPLETE_MISSING"].affected_element_count == 1


class TestKeyboard:
    def test_positive_tabindex(self):
        findings = run(KeyboardAnalyzer, page('<a href="/" tabindex="3">A</a><a href="/b" tabindex="0">B</a>'))

        assert findings["ACC_KBD_05_FOCUS_ORDER_LOGICAL"].affected_element_count == 1

    def test_click_handlers_need_focus(self):
        findings = run(
            KeyboardAnalyzer,
            page(
                '<div onclick="a()">A</div><span role="button">B</span>'
                '<span role="button" tabindex="0">C</span><button onclick="d()">D</button>'
            ),
        )

        assert findings["ACC_KBD_04_INTERACTIVE_NOT_FOCUSABLE"].affected_element_count == 2

    def test_duplicate_access_keys(self):
        findings = run(KeyboardAnalyzer, page('<a href="/" accesskey="s">A</a><a href="/b" accesskey="S">B</a>'))

        assert "ACC_KBD_08_ACCESS_KEY_DUPLICATE" in findings


class TestColorContrast:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("#fff", (255, 255, 255)),
            ("#000000", (0, 0, 0)),
            ("rgb(255, 0, 0)", (255, 0, 0)),
            ("rgba(0, 0, 255, 0.5)", (0, 0, 255)),
            ("rgba(0, 0, 255, 0)", None),
            ("Navy", (0, 0, 128)),
            ("transparent", None),
            ("#zzzzzz", None),
        ],
    )
    def test_parse_color(self, value, expected):
        assert parse_color(value) == expected

    def test_contrast_ratio(self):
        assert contrast_ratio((0, 0, 0), (255, 255, 255)) == pytest.approx(21.0)
        assert contrast_ratio((255, 255, 255), (255, 255, 255)) == pytest.approx(1.0)

    def test_low_contrast_text(self):
        findings = run(
            ColorContrastAnalyzer,
            page(
                '<div style="background-color: #ffffff">'
                '<p style="color: #aaaaaa">Faint</p>'
                '<p style="color: #333333">Fine</p>'
                "</div>"
            ),
        )

        finding = findings["ACC_CLR_01_TEXT_CONTRAST_RATIO"]
        assert finding.affected_element_count == 1
        assert "2.32:1" in finding.message

    def test_large_text_uses_lower_threshold(self):
        # #888 on white is about 3.5:1
        large = run(ColorContrastAnalyzer, page('<p style="color: #888888; font-size: 32px">Big</p>'))
        small = run(ColorContrastAnalyzer, page('<p style="color: #888888">Small</p>'))

        assert large == {}
        assert "ACC_CLR_01_TEXT_CONTRAST_RATIO" in small

    def test_elements_without_inline_colours_are_skipped(self):
        assert run(ColorContrastAnalyzer, page("<p>Plain</p>")) == {}


class TestImages:
    def test_missing_alt(self):
        findings = run(
            ImagesAnalyzer,
            page(
                '<img src="a.png"><img src="b.png" alt=""><img src="c.png" role="presentation">'
                '<img src="d.png" aria-label="Chart"><svg role="img"></svg>'
                '<svg role="img" aria-label="Logo"></svg>'
            ),
        )

        assert findings["ACC_IMG_01_ALT_TEXT_MISSING"].affected_element_count == 2
        assert "ACC_IMG_03_ALT_TEXT_INFORMATIVE" not in findings

    def test_uninformative_alt(self):
        findings = run(ImagesAnalyzer, page('<img src="a.png" alt="image"><img src="b.png" alt="IMG_1234.JPG">'))

        assert findings["ACC_IMG_03_ALT_TEXT_INFORMATIVE"].affected_element_count == 2
        assert findings["ACC_IMG_03_ALT_TEXT_INFORMATIVE"].severity == Severity.minor


class TestOnPageSeo:
    def test_missing_everything(self):
        findings = run(OnPageSeoAnalyzer, page('<a href="/x"></a>'))

        assert findings["SEO_CON_01_TITLE_TAG_MISSING"].severity == Severity.critical
        assert "SEO_CON_04_META_DESC_MISSING" in findings
        assert "SEO_CON_07_H1_MISSING" in findings
        assert "SEO_CON_10_LINK_TEXT_MISSING" in findings
        assert "og:title" in findings["SEO_SOC_01_OPEN_GRAPH_MISSING"].message

    def test_lengths_and_duplicates(self):
        head = '<title>Short</title><meta name="description" content="Too short">'
        findings = run(OnPageSeoAnalyzer, page("<h1>A</h1><h1>B</h1>", head=head))

        assert findings["SEO_CON_02_TITLE_TAG_LENGTH"].message == "Title is 5 characters long"
        assert "SEO_CON_05_META_DESC_LENGTH" in findings
        assert findings["SEO_CON_08_H1_DUPLICATE"].affected_element_count == 1

    def test_image_links_with_alt_have_text(self):
        findings = run(OnPageSeoAnalyzer, page('<a href="/"><img src="l.png" alt="Home"></a>'))

        assert "SEO_CON_10_LINK_TEXT_MISSING" not in findings


class TestTechnicalSeo:
    def test_http_error_and_plain_http(self):
        findings = run(TechnicalSeoAnalyzer, page(""), url="http://example.com", status_code=404)

        assert "SEO_TEC_01_HTTP_STATUS_ERROR" in findings
        assert "SEO_TEC_03_HTTPS_MISSING" in findings
        assert "SEO_TEC_05_CANONICAL_MISSING" in findings
        assert "SEO_TEC_07_VIEWPORT_MISSING" in findings
        assert "SEO_TEC_08_STRUCTURED_DATA_MISSING" in findings

    def test_canonical_elsewhere(self):
        head = '<link rel="canonical" href="https://example.com/other">'
        findings = run(TechnicalSeoAnalyzer, page("", head=head), url="https://example.com/page")

        assert "SEO_TEC_06_CANONICAL_SELF_REFERENCE" in findings

    def test_relative_canonical_to_self(self):
        head = '<link rel="canonical" href="/page/">'
        findings = run(TechnicalSeoAnalyzer, page("", head=head), url="https://example.com/page")

        assert "SEO_TEC_05_CANONICAL_MISSING" not in findings
        assert "SEO_TEC_06_CANONICAL_SELF_REFERENCE" not in findings

    def test_noindex(self):
        meta = run(TechnicalSeoAnalyzer, page("", head='<meta name="robots" content="noindex, follow">'))
        header = run(TechnicalSeoAnalyzer, page(""), headers={"x-robots-tag": "noindex"})

        assert meta["SEO_TEC_02_ROBOTS_TXT_ERRORS"].location_path == 'head > meta[name="robots"]'
        assert header["SEO_TEC_02_ROBOTS_TXT_ERRORS"].location_path == "headers"

    def test_hreflang(self):
        head = (
            '<link rel="alternate" hreflang="en-GB" href="https://example.com/uk">'
            '<link rel="alternate" hreflang="x-default" href="https://example.com/">'
            '<link rel="alternate" hreflang="english" href="https://example.com/en">'
            '<link rel="alternate" hreflang="de">'
        )
        findings = run(TechnicalSeoAnalyzer, page("", head=head))

        assert findings["SEO_TEC_10_HREFLANG_ERRORS"].affected_element_count == 2


def test_element_path_stops_at_id():
    soup = Snapshot(url="https://example.com", html=page('<div id="app"><ul><li>a</li><li>b</li></ul></div>')).document()
    second = soup.find_all("li")[1]

    assert element_path(second) == "div#app > ul > li:nth-of-type(2)"


def test_snapshot_round_trip():
    snapshot = Snapshot(
        url="https://example.com",
        final_url="https://example.com/",
        html="<p>x</p>",
        status_code=201,
        headers={"X-A": "1"},
    )

    assert Snapshot.from_dict(snapshot.to_dict()) == snapshot
    assert snapshot.header("x-a") == "1"


class TestAria:
    def test_invalid_roles(self):
        findings = run(
            AriaAnalyzer,
            page('<div role="buton">A</div><div role="fancy button">B</div><nav role="navigation">C</nav>'),
        )

        invalid = findings["ACC_ARIA_01_ROLE_INVALID"]
        assert invalid.affected_element_count == 1
        assert invalid.location_path == "html > body > div:nth-of-type(1)"
        assert invalid.category == "aria"

    def test_required_attributes(self):
        findings = run(
            AriaAnalyzer,
            page(
                '<div role="checkbox" tabindex="0">A</div>'
                '<div role="checkbox" aria-checked="false" tabindex="0">B</div>'
                '<input type="checkbox" role="switch">'
                '<div role="heading">C</div><h2 role="heading">D</h2>'
            ),
        )

        assert findings["ACC_ARIA_02_REQUIRED_ATTR_MISSING"].affected_element_count == 2
        assert "ACC_ARIA_03_INVALID_ATTR_VALUE" not in findings

    def test_state_values(self):
        findings = run(
            AriaAnalyzer,
            page(
                '<button aria-expanded="yes">Menu</button><button aria-pressed="mixed">Bold</button>'
                '<div aria-live="rude">Status</div>'
            ),
        )

        assert findings["ACC_ARIA_03_INVALID_ATTR_VALUE"].affected_element_count == 2

    def test_hidden_content_must_not_take_focus(self):
        findings = run(
            AriaAnalyzer,
            page(
                '<div aria-hidden="true"><a href="/x">Link</a></div>'
                '<div aria-hidden="true"><span>Decoration</span></div>'
                '<button aria-hidden="false">Visible</button>'
            ),
        )

        assert findings["ACC_ARIA_05_HIDDEN_FOCUSABLE"].affected_element_count == 1

    def test_broken_references(self):
        findings = run(
            AriaAnalyzer,
            page(
                '<span id="lbl">Name</span><input aria-labelledby="lbl missing">'
                '<input aria-labelledby="lbl"><p aria-describedby="nope">Text</p>'
            ),
        )

        assert findings["ACC_ARIA_07_LABELLEDBY_MISSING"].affected_element_count == 1
        assert findings["ACC_ARIA_08_DESCRIBEDBY_MISSING"].severity == Severity.moderate

    def test_valid_usage(self):
        html = page(
            '<button aria-expanded="false" aria-controls="m">Menu</button>'
            '<ul id="m" role="menu"><li role="menuitem">A</li></ul>'
        )

        assert run(AriaAnalyzer, html) == {}


def _grid(rows, columns, header="<th>H</th>", caption="<caption>Prices</caption>"):
    head = "<tr>" + header * columns + "</tr>"
    body = ("<tr>" + "<td>1</td>" * columns + "</tr>") * (rows - 1)
    return f"<table>{caption}{head}{body}</table>"


class TestTables:
    def test_data_table_without_headers_or_caption(self):
        findings = run(
            TablesAnalyzer,
            page("<table><tr><td>a</td><td>b</td></tr><tr><td>1</td><td>2</td></tr></table>"),
        )

        assert findings["ACC_TBL_01_HEADER_MISSING"].affected_element_count == 1
        assert findings["ACC_TBL_02_CAPTION_MISSING"].category == "tables"

    def test_small_table_with_headers_and_caption(self):
        assert run(TablesAnalyzer, page(_grid(2, 2))) == {}

    def test_aria_label_names_a_table(self):
        html = page('<table aria-label="Prices"><tr><th>Item</th><th>Price</th></tr><tr><td>Mug</td><td>12</td></tr></table>')

        assert run(TablesAnalyzer, html) == {}

    def test_single_cell_layout_is_ignored(self):
        assert run(TablesAnalyzer, page("<table><tr><td>Logo</td></tr></table>")) == {}

    def test_large_tables_need_scope(self):
        missing = run(TablesAnalyzer, page(_grid(4, 4)))
        assert missing["ACC_TBL_03_SCOPE_MISSING"].affected_element_count == 1

        scoped = run(TablesAnalyzer, page(_grid(4, 4, header='<th scope="col">H</th>')))
        assert "ACC_TBL_03_SCOPE_MISSING" not in scoped

    def test_layout_table_with_header_markup(self):
        findings = run(
            TablesAnalyzer,
            page('<table role="presentation"><tr><th>Nav</th><td>Content</td></tr></table>'),
        )

        assert "ACC_TBL_05_LAYOUT_TABLE_HEADERS" in findings
        assert "ACC_TBL_01_HEADER_MISSING" not in findings
