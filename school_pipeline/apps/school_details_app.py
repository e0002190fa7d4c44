"""
School Details App - Hauptanwendungsklasse für das Schulverzeichnis

Verdrahtet Cache, Browser, Scraper, Orchestrator und Datenbank und bietet
die Einstiegspunkte für CLI und Scheduler:
``scrape_and_store_details``, ``clear_cache`` und ``get_summary`` sowie
``scrape_and_store_statistics`` für die Schulstatistik-Liste.
"""

import logging
import time
from typing import Any, Callable, Optional

import requests

from ..common.deadline import Deadline
from ..common.playwright_utils import BrowserDriver
from ..core.config import Settings
from ..data_collection.cache import ContentCache
from ..data_collection.orchestrator import HarvestOrchestrator, RunSummary
from ..data_collection.scrapers.base import ScrapingConfig
from ..data_collection.scrapers.school_details_scraper import SchoolDetailsScraper
from ..data_collection.scrapers.statistics_scraper import (
    STATISTICS_REFERER,
    StatisticsRun,
    StatisticsScraper,
)
from ..database.manager import DatabaseManager
from ..database.services.school_details import SchoolDetailStore
from ..database.services.statistics import SchoolStatisticStore
from ..domain.models import SchoolDetailRecord, utcnow


class SchoolDetailsApp:
    """Hauptanwendung für das Scrapen der Schulportraits"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        db_manager: Optional[DatabaseManager] = None,
        cache: Optional[ContentCache] = None,
        driver_factory: Optional[Callable[..., Any]] = None,
        http_session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.settings = settings or Settings()
        self.db_manager = db_manager or DatabaseManager(self.settings)
        self.cache = cache or ContentCache(self.settings.cache_dir)
        self.store = SchoolDetailStore(self.db_manager)
        self.statistic_store = SchoolStatisticStore(self.db_manager)
        self._driver_factory = driver_factory or self._default_driver
        self._http_session = http_session
        self._sleep = sleep
        self._db_ready = False

        # Logger (configured globally in the CLI)
        self.logger = logging.getLogger("school_details_app")

    def initialize(self):
        """Initialisiert die Datenbank (Verbindungsfehler sind fatal)"""
        if self._db_ready:
            return
        self.logger.info("Initializing School Details App...")
        if self.db_manager.engine is None:
            self.db_manager.initialize()
        self.db_manager.create_tables()
        self._db_ready = True

    def close(self):
        self.db_manager.close()
        self._db_ready = False

    def scraping_config(self) -> ScrapingConfig:
        s = self.settings
        headers = {"User-Agent": s.scraping_user_agent} if s.scraping_user_agent else {}
        return ScrapingConfig(
            base_url=s.school_list_url,
            selectors={"school_links": s.school_list_link_selector},
            headers=headers,
            max_retries=s.http_retries,
            timeout=s.http_timeout_seconds,
            backoff=s.http_backoff,
            pacing_seconds=s.scraping_pacing_seconds,
            page_timeout=s.scraping_page_timeout_seconds,
            stats_settle_seconds=s.scraping_stats_settle_seconds,
            tab_settle_seconds=s.scraping_tab_settle_seconds,
        )

    def _default_driver(self, headless: Optional[bool] = None) -> BrowserDriver:
        s = self.settings
        return BrowserDriver(
            headless=s.scraping_headless if headless is None else headless,
            user_agent=s.scraping_user_agent,
            locale=s.scraping_locale,
            page_timeout_s=s.scraping_page_timeout_seconds,
            call_timeout_s=s.scraping_call_timeout_seconds,
            settle_s=s.scraping_settle_seconds,
        )

    def _build_scraper(self, driver) -> SchoolDetailsScraper:
        config = self.scraping_config()
        return SchoolDetailsScraper(
            config,
            driver,
            self.cache,
            link_selector=config.selectors["school_links"],
            session=self._http_session,
            sleep=self._sleep,
        )

    def scrape_and_store_details(
        self,
        force_refresh: bool = False,
        deadline: Optional[Deadline] = None,
        *,
        use_cache: Optional[bool] = None,
    ) -> RunSummary:
        """Scrapt alle Schulen und speichert sie.

        ListingFetchError und DatabaseError (Verbindung) sind fatal; Fehler
        einzelner Schulen landen nur in der RunSummary.
        """
        self.initialize()
        deadline = deadline or Deadline(self.settings.run_deadline_seconds)
        use_cache = self.settings.cache_enabled if use_cache is None else use_cache
        self.logger.info(
            f"Starting school details scrape (force_refresh={force_refresh}, use_cache={use_cache}, {deadline})"
        )

        with self._driver_factory() as driver:
            scraper = self._build_scraper(driver)
            try:
                orchestrator = HarvestOrchestrator(
                    scraper,
                    self.cache,
                    self.store.save_record,
                    pacing_s=scraper.config.pacing_seconds,
                    use_cache=use_cache,
                    force_refresh=force_refresh,
                    sleep=self._sleep or time.sleep,
                )
                summary = orchestrator.run(deadline)
            finally:
                scraper.cleanup()

        if summary.errors:
            self.logger.warning(f"Scrape completed with {summary.errors} errors")
        if summary.deadline_exceeded:
            self.logger.warning(f"Scrape stopped at run deadline (abandoned: {summary.abandoned_url})")
        return summary

    def clear_cache(self) -> bool:
        return self.cache.clear()

    def get_summary(self) -> dict[str, int]:
        self.initialize()
        return self.store.get_summary()

    def debug_school(self, url: str, *, headless: Optional[bool] = None) -> SchoolDetailRecord:
        """Scrapt eine einzelne Schule ohne Cache (für Fehlersuche)"""
        with self._driver_factory(headless=headless) as driver:
            scraper = self._build_scraper(driver)
            try:
                return scraper.harvest_one(url, Deadline(self.settings.scraping_page_timeout_seconds))
            finally:
                scraper.cleanup()

    # ------------------------------------------------------------------
    # Schulstatistik-Liste
    # ------------------------------------------------------------------

    def _build_statistics_scraper(self) -> StatisticsScraper:
        config = self.scraping_config()
        config.base_url = self.settings.statistics_url
        config.headers = {**config.headers, "Referer": STATISTICS_REFERER}
        return StatisticsScraper(config, session=self._http_session, sleep=self._sleep)

    def scrape_and_store_statistics(self, deadline: Optional[Deadline] = None) -> StatisticsRun:
        """Lädt die Statistik-Liste und speichert alle Zeilen in einem Batch.

        StatisticsScrapeError (Seite nicht ladbar oder leer) und DatabaseError sind fatal.
        """
        self.initialize()
        deadline = deadline or Deadline(self.settings.statistics_deadline_seconds)
        scraper = self._build_statistics_scraper()
        try:
            run = scraper.harvest(deadline=deadline)
        finally:
            scraper.cleanup()

        run.persisted = self.statistic_store.replace_all(run.statistics)
        run.finished_at = utcnow()
        self.logger.info(f"Statistics saved: {run.persisted}/{run.total}")
        return run

    def get_statistics_summary(self) -> dict[str, Any]:
        self.initialize()
        return self.statistic_store.get_summary()
