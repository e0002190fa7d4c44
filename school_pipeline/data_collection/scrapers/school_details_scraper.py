"""
School Details Scraper
Scrapt die Schulportraits des Berliner Schulverzeichnisses (bildung.berlin.de).

Ablauf pro Schule:
1. Skalare Felder über ihre Element-IDs lesen (jedes Feld unabhängig optional)
2. "Name - Schulnummer" aufteilen, Flag "ab Klasse 5" ableiten
3. Statistik-Reiter (Schülerschaft) öffnen und die vier Tabellen best-effort einsammeln

Die Schulliste selbst ist statisches HTML und wird ohne Browser geladen.
"""

from __future__ import annotations

from typing import Optional, Protocol
from urllib.parse import urljoin

from ...common.deadline import Deadline
from ...common.http import HttpFetchError
from ...common.parsing import split_name_and_number
from ...common.playwright_utils import PageHandle, PageTimeoutError
from ...domain.models import SchoolDetailRecord, StatisticCategory, StatisticTable, utcnow
from ..cache import ContentCache
from .base import BaseScraper, ScrapingConfig
from .table_extractor import (
    TABLE_FACTS_JS,
    TableCandidate,
    candidates_from_html,
    parse_table_html,
    select_visible_table,
)

SCHOOL_LIST_URL = "https://www.bildung.berlin.de/Schulverzeichnis/SchulListe.aspx"
SCHOOL_LINK_SELECTOR = "#DataListSchulen tr a[href]"

FIELD_ID_PREFIX = "ContentPlaceHolderMenuListe_lbl"
NAME_FIELD = "Schulname"
SCALAR_FIELDS: tuple[tuple[str, str], ...] = (
    ("languages", "Sprachen"),
    ("courses", "Leistungskurse"),
    ("offerings", "Angebote"),
    ("additional_info", "BemerkungenSchulzweig"),
    ("equipment", "Ausstattung"),
    ("working_groups", "AGs"),
    ("partners", "Partner"),
    ("differentiation", "Diff"),
    ("lunch_info", "Mittag"),
    ("dual_learning", "DualesLernen"),
)

# Weiterführende Schulen mit grundständigem Zug nehmen schon nach Klasse 4 auf
AFTER_4TH_GRADE_MARKER = "ab Jahrgangsstufe 5 beginnende"

STATISTICS_NAV_SELECTOR = "#NaviSchuelerschaft"
STATISTIC_TABS: tuple[tuple[StatisticCategory, str], ...] = (
    (StatisticCategory.CITIZENSHIP, "Staatsangehörigkeit"),
    (StatisticCategory.LANGUAGE, "Nichtdeutsche Herkunftssprache"),
    (StatisticCategory.RESIDENCE, "Wohnorte"),
    (StatisticCategory.ABSENCE, "Fehlzeiten"),
)

TEXT_BY_ID_JS = """
(id) => {
    const el = document.getElementById(id);
    return el ? el.textContent.trim() : '';
}
"""

ELEMENT_COUNT_JS = "(selector) => document.querySelectorAll(selector).length"


class ListingFetchError(RuntimeError):
    """Die Schulliste konnte nicht geladen werden (fatal für den Lauf)"""

    def __init__(self, url: str, cause: Exception | None = None):
        super().__init__(f"Failed to fetch school list {url}: {cause}")
        self.url = url
        self.cause = cause


class PageDriver(Protocol):
    def with_page(self, url, fn, *, deadline=None, timeout_s=None): ...


def tab_selector(title: str) -> str:
    return f'[title="{title}"]'


class SchoolDetailsScraper(BaseScraper):
    """Scraper für die Detailseiten einzelner Schulen"""

    def __init__(
        self,
        config: ScrapingConfig,
        driver: PageDriver,
        cache: Optional[ContentCache] = None,
        *,
        link_selector: str = SCHOOL_LINK_SELECTOR,
        **kwargs,
    ):
        super().__init__(config, "school_details", **kwargs)
        self.driver = driver
        self.cache = cache
        self.link_selector = link_selector

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def discover_links(self, deadline: Optional[Deadline] = None) -> list[str]:
        """Alle Detailseiten-URLs der Schulliste, absolut, ohne Duplikate, in Dokumentreihenfolge"""
        url = self.config.base_url
        self.logger.info(f"Fetching school list: {url}")
        try:
            html = self.fetch_page(url, deadline=deadline)
        except HttpFetchError as e:
            raise ListingFetchError(url, e) from e

        links: list[str] = []
        seen: set[str] = set()
        for a in self.parse_html(html).select(self.link_selector):
            href = (a.get("href") or "").strip()
            if not href or href.startswith(("#", "javascript:")):
                continue
            absolute = urljoin(url, href)
            if absolute in seen:
                continue
            seen.add(absolute)
            links.append(absolute)

        self.logger.info(f"Found {len(links)} schools", extra={"count": len(links)})
        return links

    # ------------------------------------------------------------------
    # Detail pages
    # ------------------------------------------------------------------

    def harvest(
        self,
        url: str,
        deadline: Optional[Deadline] = None,
        *,
        write_cache: bool = True,
    ) -> SchoolDetailRecord:
        """Scrapt eine Schule live.

        NavigationError / PageTimeoutError vor dem Lesen der Felder und
        DeadlineExceeded werden an den Aufrufer weitergereicht.
        """
        scraped_at = utcnow()
        record = self.driver.with_page(
            url,
            lambda page: self.extract(page, url, scraped_at),
            deadline=deadline,
            timeout_s=self.config.page_timeout,
        )
        if write_cache and self.cache is not None:
            self.cache.put(url, record)
        return record

    def harvest_one(self, url: str, deadline: Optional[Deadline] = None) -> SchoolDetailRecord:
        """Debug-Helfer: eine Schule scrapen, ohne den Cache zu berühren"""
        return self.harvest(url, deadline, write_cache=False)

    def extract(self, page: PageHandle, url: str, scraped_at=None) -> SchoolDetailRecord:
        record = SchoolDetailRecord(school_url=url)
        if scraped_at is not None:
            record.scraped_at = scraped_at

        full_name = self._text(page, NAME_FIELD)
        record.school_name, record.school_number = split_name_and_number(full_name)
        for attr, suffix in SCALAR_FIELDS:
            setattr(record, attr, self._text(page, suffix))

        record.available_after_4th_grade = (
            AFTER_4TH_GRADE_MARKER in record.offerings
            or AFTER_4TH_GRADE_MARKER in record.additional_info
        )

        try:
            self._scrape_statistics(page, record)
        except PageTimeoutError as e:
            self.logger.warning(
                f"Page budget spent during statistics for {url}, keeping partial record: {e}"
            )
        return record

    def _text(self, page: PageHandle, suffix: str) -> str:
        result = page.evaluate(TEXT_BY_ID_JS, FIELD_ID_PREFIX + suffix)
        if not result.ok:
            self.logger.debug(f"Field {suffix} unavailable on {page.url}: {result.failure} {result.error}")
            return ""
        return str(result.value_or("")).strip()

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _scrape_statistics(self, page: PageHandle, record: SchoolDetailRecord) -> None:
        label = record.school_name or page.url
        nav = page.evaluate(ELEMENT_COUNT_JS, STATISTICS_NAV_SELECTOR)
        if not nav.ok:
            self.logger.warning(f"Error checking for statistics section ({label}): {nav.error}")
            return

        if nav.value_or(0) > 0:
            clicked = page.click(STATISTICS_NAV_SELECTOR)
            if clicked.ok:
                # ASP.NET postback
                page.pause(self.config.stats_settle_seconds)
            else:
                self.logger.warning(f"Failed to open statistics section ({label}): {clicked.error}")

        for category, title in STATISTIC_TABS:
            record.set_table(category, self._scrape_tab(page, title))

        self.logger.info(
            f"Statistics for {label}: {record.tables_found}/{len(STATISTIC_TABS)} tables",
            extra={"tables_found": record.tables_found},
        )

    def _scrape_tab(self, page: PageHandle, title: str) -> Optional[StatisticTable]:
        selector = tab_selector(title)
        found = page.evaluate(ELEMENT_COUNT_JS, selector)
        if not found.ok:
            self.logger.warning(f"Error finding tab '{title}': {found.error}")
            return None
        if found.value_or(0) == 0:
            self.logger.info(f"Tab '{title}' not found")
            return None

        clicked = page.click(selector)
        if not clicked.ok:
            self.logger.warning(f"Failed to click tab '{title}': {clicked.error}")
            return None
        page.pause(self.config.tab_settle_seconds)

        candidates = self._table_candidates(page)
        selection = select_visible_table(candidates)
        if selection is None:
            self.logger.warning(f"No table found for '{title}' ({len(candidates)} tables on page)")
            return None

        self.logger.debug(
            f"Selected table for '{title}' via {selection.strategy.value}: "
            f"{selection.candidate.describe()}"
        )
        return parse_table_html(selection.candidate.html)

    def _table_candidates(self, page: PageHandle) -> list[TableCandidate]:
        facts = page.evaluate(TABLE_FACTS_JS)
        if facts.ok and isinstance(facts.value, list):
            return [TableCandidate.from_facts(f) for f in facts.value]

        # fall back to the static markup, inline styles only
        self.logger.debug(f"Table facts script failed on {page.url}: {facts.error}")
        content = page.content()
        if content.ok and content.value:
            return candidates_from_html(content.value)
        return []


__all__ = [
    "AFTER_4TH_GRADE_MARKER",
    "ListingFetchError",
    "SCHOOL_LIST_URL",
    "SchoolDetailsScraper",
    "STATISTIC_TABS",
]
