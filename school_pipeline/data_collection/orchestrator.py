"""
Harvest Orchestrator für die School Data Pipeline

Arbeitet die Detailseiten strikt sequenziell ab: Cache prüfen, sonst live
scrapen, Ergebnis direkt persistieren. Fehler einzelner Seiten brechen den
Lauf nicht ab; eine abgelaufene Deadline beendet ihn sauber.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from ..common.deadline import Deadline
from ..common.playwright_utils import BrowserError, DeadlineExceeded
from ..database.manager import DatabaseError
from ..domain.models import SchoolDetailRecord, utcnow
from .cache import ContentCache
from .scrapers.school_details_scraper import SchoolDetailsScraper

RecordSink = Callable[[SchoolDetailRecord], Any]


@dataclass
class RunSummary:
    """Ergebnis eines Harvest-Laufs, wird durch die Schleife gereicht"""

    total: int = 0
    from_cache: int = 0
    newly_scraped: int = 0
    persisted: int = 0
    errors: int = 0
    failed_urls: list[str] = field(default_factory=list)
    deadline_exceeded: bool = False
    abandoned_url: Optional[str] = None
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def harvested(self) -> int:
        return self.from_cache + self.newly_scraped

    def as_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "from_cache": self.from_cache,
            "newly_scraped": self.newly_scraped,
            "persisted": self.persisted,
            "errors": self.errors,
            "failed_urls": list(self.failed_urls),
            "deadline_exceeded": self.deadline_exceeded,
            "abandoned_url": self.abandoned_url,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class HarvestOrchestrator:
    """Orchestriert einen Harvest-Lauf über eine feste Liste von Detailseiten"""

    def __init__(
        self,
        scraper: SchoolDetailsScraper,
        cache: Optional[ContentCache],
        sink: Optional[RecordSink] = None,
        *,
        pacing_s: float = 2.0,
        use_cache: bool = True,
        force_refresh: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.scraper = scraper
        self.cache = cache
        self.sink = sink
        self.pacing_s = pacing_s
        self.use_cache = use_cache and cache is not None
        self.force_refresh = force_refresh
        self._sleep = sleep
        self.logger = logging.getLogger("harvest_orchestrator")

    def _from_cache(self, url: str) -> Optional[SchoolDetailRecord]:
        if not self.use_cache or self.force_refresh:
            return None
        return self.cache.get(url)

    def _pace(self, deadline: Deadline) -> None:
        delay = deadline.cap(self.pacing_s)
        if delay > 0:
            self._sleep(delay)

    def _persist(self, url: str, record: SchoolDetailRecord, summary: RunSummary) -> None:
        if self.sink is None:
            return
        try:
            self.sink(record)
            summary.persisted += 1
        except DatabaseError as e:
            summary.errors += 1
            summary.failed_urls.append(url)
            self.logger.error(f"Failed to persist {url}: {e}")
        except Exception as e:
            summary.errors += 1
            summary.failed_urls.append(url)
            self.logger.exception(f"Unexpected error while persisting {url}: {e}")

    def run(
        self, deadline: Optional[Deadline] = None, links: Optional[list[str]] = None
    ) -> RunSummary:
        """Ermittelt die Links (falls nicht übergeben) und verarbeitet sie in Reihenfolge.

        ListingFetchError aus der Link-Ermittlung ist fatal und wird weitergereicht.
        """
        deadline = deadline or Deadline.none()
        if links is None:
            links = self.scraper.discover_links(deadline)
        summary = RunSummary()
        live_scrapes = 0

        for i, url in enumerate(links, start=1):
            if deadline.expired:
                summary.deadline_exceeded = True
                self.logger.warning(f"Run deadline reached before {url}; stopping after {i - 1} links")
                break

            summary.total += 1
            self.logger.info(f"Processing school {i}/{len(links)}: {url}")

            record = self._from_cache(url)
            if record is not None:
                self.logger.info(f"Loaded from cache: {url}")
                summary.from_cache += 1
                self._persist(url, record, summary)
                continue

            if live_scrapes:
                # be respectful to the server, only between live scrapes
                self._pace(deadline)
            live_scrapes += 1

            try:
                record = self.scraper.harvest(url, deadline, write_cache=self.use_cache)
            except DeadlineExceeded as e:
                summary.deadline_exceeded = True
                summary.abandoned_url = url
                summary.failed_urls.append(url)
                self.logger.warning(f"Run deadline exceeded, abandoning {url}: {e}")
                break
            except BrowserError as e:
                summary.errors += 1
                summary.failed_urls.append(url)
                self.logger.error(f"Failed to scrape school {url}: {e}")
                continue
            except Exception as e:
                summary.errors += 1
                summary.failed_urls.append(url)
                self.logger.exception(f"Unexpected error while scraping school {url}: {e}")
                continue

            summary.newly_scraped += 1
            self._persist(url, record, summary)

        summary.finished_at = utcnow()
        self.logger.info(
            f"Scraping complete: total={summary.total}, from_cache={summary.from_cache}, "
            f"newly_scraped={summary.newly_scraped}, persisted={summary.persisted}, "
            f"errors={summary.errors}",
            extra={"total": summary.total, "errors": summary.errors},
        )
        return summary
