"""
Base classes and utilities for web scraping.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional

import requests
from bs4 import BeautifulSoup

from ...common.deadline import Deadline
from ...common.http import DEFAULT_UAS, build_headers, fetch_html
from ...common.parsing import soup_from_html

# =============================================================================
# 1. SCRAPING CONFIGURATION
# =============================================================================


@dataclass
class ScrapingConfig:
    """Konfiguration für Web Scraping"""

    base_url: str
    selectors: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    max_retries: int = 3
    timeout: float = 30.0
    backoff: float = 1.5
    pacing_seconds: float = 2.0
    page_timeout: float = 120.0
    stats_settle_seconds: float = 2.0
    tab_settle_seconds: float = 1.0


def session_headers(user_agent: Optional[str] = None) -> dict[str, str]:
    """Realistische Browser-Header für die requests Session"""
    headers = build_headers(user_agent or DEFAULT_UAS[0], header_randomize=True)
    headers.update(
        {
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Cache-Control": "max-age=0",
        }
    )
    return headers


# =============================================================================
# 2. BASE SCRAPER CLASS
# =============================================================================


class BaseScraper(ABC):
    """Abstrakte Basisklasse für alle Scraper"""

    def __init__(
        self,
        config: ScrapingConfig,
        name: str,
        *,
        session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.config = config
        self.name = name
        self.logger = logging.getLogger(f"scraper.{name}")
        self.session = session
        self._sleep = sleep

    def initialize(self):
        """Initialisiert die HTTP Session"""
        if self.session is None:
            self.session = requests.Session()
            self.session.headers.update(session_headers(self.config.headers.get("User-Agent")))
            self.session.headers.update(self.config.headers)

    def cleanup(self):
        """Räumt Ressourcen auf"""
        if self.session is not None:
            self.session.close()
            self.session = None

    @abstractmethod
    def harvest(self, url: str, deadline: Optional[Deadline] = None):
        """Scrapt eine einzelne Zielseite"""

    def fetch_page(self, url: str, deadline: Optional[Deadline] = None) -> str:
        """Lädt eine Webseite herunter (mit Retries, begrenzt durch die Deadline)"""
        if self.session is None:
            self.initialize()
        timeout = (deadline or Deadline.none()).cap(self.config.timeout)
        kwargs = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return fetch_html(
            url,
            timeout=max(timeout, 1.0),
            retries=self.config.max_retries,
            backoff=self.config.backoff,
            session=self.session,
            **kwargs,
        )

    def parse_html(self, html: str) -> BeautifulSoup:
        """Parst HTML mit BeautifulSoup"""
        return soup_from_html(html)
