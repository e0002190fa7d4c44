import pytest
import requests

from conftest import DummyDriver, DummyPageHandle, DummyResponse, DummySession

from school_pipeline.common.playwright_utils import DeadlineExceeded, NavigationError
from school_pipeline.data_collection.cache import ContentCache
from school_pipeline.data_collection.scrapers.base import ScrapingConfig
from school_pipeline.data_collection.scrapers.school_details_scraper import (
    SCHOOL_LIST_URL,
    ListingFetchError,
    SchoolDetailsScraper,
)
from school_pipeline.domain.models import StatisticCategory

URL = "https://example.test/Schulportrait.aspx?IDSchulzweig=101"


@pytest.fixture
def config():
    return ScrapingConfig(
        base_url=SCHOOL_LIST_URL, max_retries=1, stats_settle_seconds=2.0, tab_settle_seconds=1.0
    )


def _scraper(config, driver=None, cache=None, session=None):
    return SchoolDetailsScraper(config, driver or DummyDriver(), cache, session=session, sleep=lambda s: None)


class TestExtract:
    def test_scalar_fields_and_flag(self, config, full_page):
        record = _scraper(config).extract(full_page, URL)
        assert record.school_name == "Georg-Friedrich-Händel-Gymnasium"
        assert record.school_number == "02Y04"
        assert record.school_url == URL
        assert record.languages == "Englisch, Französisch, Latein"
        assert record.courses == "Musik, Mathematik"
        assert record.lunch_info == "Mensa"
        assert record.partners == ""
        assert record.available_after_4th_grade is True

    def test_flag_from_additional_info(self, config):
        page = DummyPageHandle(
            texts={"ContentPlaceHolderMenuListe_lblBemerkungenSchulzweig": "Klassen ab Jahrgangsstufe 5 beginnende"}
        )
        assert _scraper(config).extract(page, URL).available_after_4th_grade is True
        assert _scraper(config).extract(DummyPageHandle(), URL).available_after_4th_grade is False

    def test_all_statistic_tables(self, config, full_page):
        record = _scraper(config).extract(full_page, URL)
        assert record.tables_found == 4
        citizenship = record.table_for(StatisticCategory.CITIZENSHIP)
        # the hidden decoy table is skipped
        assert citizenship.headers[0] == "Staatsangehörigkeit"
        assert len(citizenship.rows) == 3
        assert record.absence_table.rows[0] == ["Schule", "5,2 %", "0,8 %"]

    def test_clicks_and_pauses(self, config, full_page):
        _scraper(config).extract(full_page, URL)
        assert full_page.clicks == [
            "#NaviSchuelerschaft",
            '[title="Staatsangehörigkeit"]',
            '[title="Nichtdeutsche Herkunftssprache"]',
            '[title="Wohnorte"]',
            '[title="Fehlzeiten"]',
        ]
        assert full_page.pauses == [2.0, 1.0, 1.0, 1.0, 1.0]

    def test_missing_tabs_and_nav(self, config, school_texts, stat_tab_html):
        tabs = {k: v for k, v in stat_tab_html.items() if k != "Wohnorte"}
        page = DummyPageHandle(texts=school_texts, tabs=tabs, has_nav=False)
        record = _scraper(config).extract(page, URL)
        assert record.residence_table is None
        assert record.tables_found == 3
        assert "#NaviSchuelerschaft" not in page.clicks

    def test_failing_field_does_not_block_others(self, config, school_texts):
        page = DummyPageHandle(
            texts=school_texts, failing_fields={"ContentPlaceHolderMenuListe_lblSprachen"}
        )
        record = _scraper(config).extract(page, URL)
        assert record.languages == ""
        assert record.courses == "Musik, Mathematik"

    def test_facts_script_failure_falls_back_to_markup(self, config, school_texts, stat_tab_html):
        page = DummyPageHandle(texts=school_texts, tabs=stat_tab_html, fail_facts=True)
        record = _scraper(config).extract(page, URL)
        assert record.tables_found == 4
        assert record.citizenship_table.rows[0][0] == "Deutschland"

    def test_page_timeout_during_statistics_keeps_partial_record(self, config, school_texts, stat_tab_html):
        page = DummyPageHandle(texts=school_texts, tabs=stat_tab_html, timeout_on_tab="Wohnorte")
        record = _scraper(config).extract(page, URL)
        assert record.school_number == "02Y04"
        assert record.citizenship_table is not None
        assert record.language_table is not None
        assert record.residence_table is None
        assert record.absence_table is None


class TestHarvest:
    def test_harvest_writes_cache(self, config, tmp_path, full_page):
        cache = ContentCache(tmp_path)
        scraper = _scraper(config, DummyDriver(pages={URL: full_page}), cache)
        record = scraper.harvest(URL)
        assert cache.get(URL) == record

    def test_harvest_one_skips_cache(self, config, tmp_path, full_page):
        cache = ContentCache(tmp_path)
        scraper = _scraper(config, DummyDriver(pages={URL: full_page}), cache)
        record = scraper.harvest_one(URL)
        assert record.school_number == "02Y04"
        assert cache.get(URL) is None

    def test_navigation_errors_propagate(self, config):
        driver = DummyDriver(errors={URL: NavigationError(URL, "Navigation failed")})
        with pytest.raises(NavigationError):
            _scraper(config, driver).harvest(URL)

    def test_deadline_propagates(self, config):
        driver = DummyDriver(errors={URL: DeadlineExceeded(URL, "Run deadline exceeded")})
        with pytest.raises(DeadlineExceeded):
            _scraper(config, driver).harvest(URL)


class TestDiscoverLinks:
    def test_links_absolute_unique_in_order(self, config, school_list_html):
        session = DummySession([DummyResponse(school_list_html)])
        links = _scraper(config, session=session).discover_links()
        assert links == [
            "https://www.bildung.berlin.de/Schulverzeichnis/Schulportrait.aspx?IDSchulzweig=101",
            "https://www.bildung.berlin.de/Schulverzeichnis/Schulportrait.aspx?IDSchulzweig=102",
            "https://www.bildung.berlin.de/Schulverzeichnis/Schulportrait.aspx?IDSchulzweig=103",
        ]
        assert session.calls == [SCHOOL_LIST_URL]

    def test_listing_failure_is_fatal(self, config):
        session = DummySession([requests.ConnectionError("down")])
        with pytest.raises(ListingFetchError):
            _scraper(config, session=session).discover_links()


class TestIdempotence:
    def test_same_page_twice_gives_same_records(self, config, school_texts, stat_tab_html):
        from school_pipeline.database.services.school_details import normalize_record

        pages = {URL: DummyPageHandle(URL, texts=school_texts, tabs=stat_tab_html)}
        scraper = _scraper(config, DummyDriver(pages))
        first = scraper.harvest(URL, write_cache=False)
        second = scraper.harvest(URL, write_cache=False)

        assert first.model_dump(exclude={"scraped_at"}) == second.model_dump(exclude={"scraped_at"})

        def normalized(record):
            return {
                category: [r.model_dump(exclude={"scraped_at"}) for r in rows]
                for category, rows in normalize_record(record).items()
            }

        assert normalized(first) == normalized(second)
        assert len(normalized(first)) == 4
