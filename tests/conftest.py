"""Global pytest fixtures for the school pipeline test suite.

Centralizes:
 - Reusable HTML snippets of the school directory (listing page, statistic tabs)
 - Dummy browser objects (page handle + driver) so no test starts Chromium
 - An in-memory SQLite DatabaseManager
"""

from datetime import datetime, timezone

import pytest

from school_pipeline.common.playwright_utils import (
    CallFailure,
    CallResult,
    PageTimeoutError,
)
from school_pipeline.core.config import Settings
from school_pipeline.data_collection.scrapers.school_details_scraper import (
    ELEMENT_COUNT_JS,
    STATISTICS_NAV_SELECTOR,
    TEXT_BY_ID_JS,
    tab_selector,
)
from school_pipeline.data_collection.scrapers.table_extractor import (
    TABLE_FACTS_JS,
    candidates_from_html,
)
from school_pipeline.database.manager import DatabaseManager
from school_pipeline.domain.models import SchoolDetailRecord, StatisticTable

SCRAPED_AT = datetime(2024, 9, 1, 8, 0, tzinfo=timezone.utc)


# -------------------- HTML Fixtures -------------------- #

CITIZENSHIP_HTML = """
<table id="GridViewStaatsangehoerigkeit">
  <tr><th>Staatsangehörigkeit</th><th>weiblich</th><th>männlich</th><th>Insgesamt</th></tr>
  <tr><td>Deutschland</td><td>300</td><td>320</td><td>620</td></tr>
  <tr><td>Türkei</td><td>10</td><td>12</td><td>22</td></tr>
  <tr><td>Insgesamt</td><td>310</td><td>332</td><td>642</td></tr>
</table>
"""

LANGUAGE_HTML = """
<table id="GridViewNdH">
  <thead>
    <tr><th>Schüler insgesamt</th><th>ndH weiblich</th><th>ndH männlich</th><th>ndH insgesamt</th><th>ndH in %</th></tr>
  </thead>
  <tbody>
    <tr><td>610</td><td>40</td><td>45</td><td>85</td><td>13,9 %</td></tr>
    <tr><td>642</td><td>52</td><td>58</td><td>110</td><td>17,1 %</td></tr>
  </tbody>
</table>
"""

RESIDENCE_HTML = """
<table id="GridViewWohnorte">
  <tr><th>Bezirk</th><th>Anzahl</th></tr>
  <tr><td>Mitte</td><td>120</td></tr>
  <tr><td>Pankow</td><td>30</td></tr>
  <tr><td>Insgesamt</td><td>150</td></tr>
</table>
"""

ABSENCE_HTML = """
<table id="GridViewFehlzeiten">
  <tr><th></th><th>Fehlzeiten gesamt</th><th>davon unentschuldigt</th></tr>
  <tr><td>Schule</td><td>5,2 %</td><td>0,8 %</td></tr>
  <tr><td>Schulart</td><td>6,1 %</td><td>1,2 %</td></tr>
  <tr><td>Region</td><td>7,0 %</td><td>1,5 %</td></tr>
  <tr><td>Berlin</td><td>7,4 %</td><td>1,9 %</td></tr>
</table>
"""

# A hidden decoy table precedes the one the tab actually shows
HIDDEN_DECOY_HTML = """
<div style="display: none">
  <table id="GridViewAlt"><tr><td>alt</td><td>1</td></tr></table>
</div>
"""

STAT_TAB_HTML = {
    "Staatsangehörigkeit": HIDDEN_DECOY_HTML + CITIZENSHIP_HTML,
    "Nichtdeutsche Herkunftssprache": LANGUAGE_HTML,
    "Wohnorte": RESIDENCE_HTML,
    "Fehlzeiten": ABSENCE_HTML,
}

SCHOOL_TEXTS = {
    "ContentPlaceHolderMenuListe_lblSchulname": "Georg-Friedrich-Händel-Gymnasium - 02Y04",
    "ContentPlaceHolderMenuListe_lblSprachen": "Englisch, Französisch, Latein",
    "ContentPlaceHolderMenuListe_lblLeistungskurse": "Musik, Mathematik",
    "ContentPlaceHolderMenuListe_lblAngebote": "ab Jahrgangsstufe 5 beginnende Klassen",
    "ContentPlaceHolderMenuListe_lblMittag": "Mensa",
}

SCHOOL_LIST_HTML = """
<html><body>
<table id="DataListSchulen">
  <tbody>
    <tr><td><a href="Schulportrait.aspx?IDSchulzweig=101">Schule A</a></td></tr>
    <tr><td><a href="Schulportrait.aspx?IDSchulzweig=102">Schule B</a></td></tr>
    <tr><td><a href="Schulportrait.aspx?IDSchulzweig=101">Schule A (Duplikat)</a></td></tr>
    <tr><td><a href="https://www.bildung.berlin.de/Schulverzeichnis/Schulportrait.aspx?IDSchulzweig=103">Schule C</a></td></tr>
    <tr><td>keine Schule</td></tr>
  </tbody>
</table>
<a href="Impressum.aspx">Impressum</a>
</body></html>
"""


STATISTICS_HTML = """
<html><body>
<h1>Schulen in Berlin</h1>
<table id="myDatagrid" cellspacing="0" border="1">
  <tr bgcolor="#F39300">
    <td>BSN</td><td>Name</td><td>Bezirk</td><td>Schulart</td><td>Schuljahr</td>
    <td>Schüler (m/w/d)</td><td>Schüler (w)</td><td>Schüler (m)</td>
    <td>Lehrkräfte (m,w,d)</td><td>Lehrkräfte (w)</td><td>Lehrkräfte (m)</td>
    <td>Klassen</td><td>Trägerschaft</td>
  </tr>
  <tr>
    <td>01Y01</td><td>Schule am Park</td><td>Mitte</td><td>Gymnasium</td><td>2024/25</td>
    <td>812</td><td>420</td><td>392</td><td>64</td><td>40</td><td>24</td><td>30</td><td>öffentlich</td>
  </tr>
  <tr>
    <td>02G07</td><td>Grundschule
      am See</td><td>Pankow</td><td>Grundschule</td><td>2024/25</td>
    <td>1.204</td><td>590</td><td>614</td><td>80</td><td>68</td><td>12</td><td>48</td><td>öffentlich</td>
  </tr>
  <tr>
    <td></td><td>Summe</td><td></td><td></td><td>2024/25</td>
    <td>2.016</td><td>1010</td><td>1006</td><td>144</td><td>108</td><td>36</td><td>78</td><td></td>
  </tr>
</table>
</body></html>
"""


@pytest.fixture
def stat_tab_html():
    return dict(STAT_TAB_HTML)


@pytest.fixture
def school_texts():
    return dict(SCHOOL_TEXTS)


@pytest.fixture
def school_list_html():
    return SCHOOL_LIST_HTML


def table_from_html(html: str) -> StatisticTable:
    from school_pipeline.data_collection.scrapers.table_extractor import parse_table_html

    table = parse_table_html(html)
    assert table is not None
    return table


# -------------------- Dummy browser -------------------- #


def candidate_facts(html: str) -> list[dict]:
    """Shape static candidates like the in-page facts script would return them."""
    return [
        {
            "index": c.index,
            "id": c.element_id,
            "className": c.css_class,
            "offsetVisible": c.offset_visible,
            "display": c.display,
            "visibility": c.visibility,
            "rowCount": c.row_count,
            "html": c.html,
        }
        for c in candidates_from_html(html)
    ]


class DummyPageHandle:
    """Stands in for PageHandle: answers the scraper's scripts from fixture data."""

    def __init__(
        self,
        url="https://example.test/Schulportrait.aspx?IDSchulzweig=101",
        *,
        texts=None,
        tabs=None,
        has_nav=True,
        fail_facts=False,
        timeout_on_tab=None,
        failing_fields=(),
    ):
        self.url = url
        self.texts = texts or {}
        self.tabs = tabs or {}
        self.has_nav = has_nav
        self.fail_facts = fail_facts
        self.timeout_on_tab = timeout_on_tab
        self.failing_fields = set(failing_fields)
        self.active_tab = None
        self.clicks = []
        self.pauses = []

    def evaluate(self, script, arg=None):
        if script == TEXT_BY_ID_JS:
            if arg in self.failing_fields:
                return CallResult.failed(CallFailure.SCRIPT_ERROR, "element lookup failed")
            return CallResult.success(self.texts.get(arg, ""))
        if script == ELEMENT_COUNT_JS:
            if arg == STATISTICS_NAV_SELECTOR:
                return CallResult.success(1 if self.has_nav else 0)
            found = any(arg == tab_selector(title) for title in self.tabs)
            return CallResult.success(1 if found else 0)
        if script == TABLE_FACTS_JS:
            if self.fail_facts:
                return CallResult.failed(CallFailure.SCRIPT_ERROR, "facts script failed")
            return CallResult.success(candidate_facts(self.tabs.get(self.active_tab, "")))
        return CallResult.failed(CallFailure.SCRIPT_ERROR, "unknown script")

    def click(self, selector):
        self.clicks.append(selector)
        for title in self.tabs:
            if selector == tab_selector(title):
                if title == self.timeout_on_tab:
                    raise PageTimeoutError(self.url, "Page budget exceeded")
                self.active_tab = title
        return CallResult.success(True)

    def pause(self, seconds):
        self.pauses.append(seconds)
        return CallResult.success(True)

    def content(self):
        return CallResult.success(f"<html><body>{self.tabs.get(self.active_tab, '')}</body></html>")


class DummyDriver:
    """Stands in for BrowserDriver: hands a DummyPageHandle to the callback.

    ``errors`` maps URL -> exception raised instead of rendering the page.
    """

    def __init__(self, pages=None, errors=None, default_page=None):
        self.pages = pages or {}
        self.errors = errors or {}
        self.default_page = default_page
        self.visited = []
        self.entered = False
        self.exited = False

    def __enter__(self):
        self.entered = True
        return self

    def __exit__(self, exc_type, exc, tb):  # noqa: ARG002
        self.exited = True
        return False

    def with_page(self, url, fn, *, deadline=None, timeout_s=None):  # noqa: ARG002
        self.visited.append(url)
        if url in self.errors:
            raise self.errors[url]
        page = self.pages.get(url)
        if page is None:
            page = self.default_page(url) if self.default_page else DummyPageHandle(url)
        return fn(page)


class DummyResponse:
    def __init__(self, text="", status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        import requests

        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class DummySession:
    """requests.Session stand-in returning queued responses (or raising queued errors)."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}
        self.closed = False

    def get(self, url, timeout=None, headers=None):  # noqa: ARG002
        self.calls.append(url)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def full_page(school_texts, stat_tab_html):
    return DummyPageHandle(texts=school_texts, tabs=stat_tab_html)


@pytest.fixture
def fake_clock():
    return FakeClock()


# -------------------- Database -------------------- #


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        database_url="sqlite:///:memory:",
        cache_dir=str(tmp_path / "cache"),
        scraping_pacing_seconds=0.0,
        http_retries=1,
    )


@pytest.fixture
def db_manager(test_settings):
    db = DatabaseManager(test_settings)
    db.initialize()
    db.create_tables()
    yield db
    db.close()


@pytest.fixture
def make_record():
    def _make(school_number="02Y04", **overrides):
        data = {
            "school_number": school_number,
            "school_name": f"Schule {school_number}",
            "school_url": f"https://example.test/{school_number}",
            "scraped_at": SCRAPED_AT,
        }
        data.update(overrides)
        return SchoolDetailRecord(**data)

    return _make
