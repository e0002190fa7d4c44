"""
Statistics Scraper
Lädt die Schulstatistik-Liste der Bildungsstatistik Berlin (SVZ_Fakt5.aspx).

Die Seite ist statisches HTML mit einem einzigen Datagrid (``#myDatagrid``):
eine orange hinterlegte Kopfzeile, danach eine Zeile pro Schule und Schuljahr.
Alle Zeilen eines Laufs werden in einem ``StatisticsRun`` gesammelt und erst am
Ende gemeinsam gespeichert.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from bs4 import BeautifulSoup, Tag

from ...common.deadline import Deadline
from ...common.http import HttpFetchError
from ...common.parsing import clean_text
from ...domain.models import StatisticData, utcnow
from .base import BaseScraper, ScrapingConfig
from .table_extractor import cell_text, iter_rows

STATISTICS_URL = "https://www.bildungsstatistik.berlin.de/statistik/ListGen/SVZ_Fakt5.aspx"
STATISTICS_REFERER = "https://www.bildungsstatistik.berlin.de/"
GRID_SELECTOR = "#myDatagrid"
HEADER_BGCOLOR = "#F39300"


def _is(*names: str) -> Callable[[str], bool]:
    return lambda header: header in names


def _contains(*parts: str) -> Callable[[str], bool]:
    return lambda header: any(p in header for p in parts)


# (matcher on the lower-cased header, StatisticData field); first match wins
HEADER_FIELDS: tuple[tuple[Callable[[str], bool], str], ...] = (
    (_is("bsn"), "school_number"),
    (_is("name"), "school_name"),
    (_is("schuljahr"), "school_year"),
    (_contains("schüler (m/w/d)", "schueler (m/w/d)"), "students"),
    (_contains("schüler (w)", "schueler (w)"), "students_female"),
    (_contains("schüler (m)", "schueler (m)"), "students_male"),
    (_contains("lehrkräfte (m,w,d)", "lehrkraefte (m,w,d)"), "teachers"),
    (_contains("lehrkräfte (w)", "lehrkraefte (w)"), "teachers_female"),
    (_contains("lehrkräfte (m)", "lehrkraefte (m)"), "teachers_male"),
    (_is("bezirk", "district"), "district"),
    (_is("schulart", "school type"), "school_type"),
    (_is("klassen", "classes"), "classes"),
)


class StatisticsScrapeError(RuntimeError):
    """Die Statistikseite war nicht ladbar oder enthielt keine Daten"""

    def __init__(self, url: str, message: str, cause: Exception | None = None):
        super().__init__(f"{message}: {url}" + (f" ({cause})" if cause else ""))
        self.url = url
        self.cause = cause


@dataclass
class StatisticsRun:
    """Ergebnis eines Statistik-Laufs; sammelt die Zeilen bis zum Bulk-Speichern"""

    url: str
    headers: list[str] = field(default_factory=list)
    statistics: list[StatisticData] = field(default_factory=list)
    skipped_rows: int = 0
    persisted: int = 0
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    def add(self, stat: StatisticData) -> None:
        self.statistics.append(stat)

    @property
    def total(self) -> int:
        return len(self.statistics)

    def as_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "columns": len(self.headers),
            "total": self.total,
            "skipped_rows": self.skipped_rows,
            "persisted": self.persisted,
            "school_years": sorted({s.school_year for s in self.statistics}, reverse=True),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


def field_for_header(header: str) -> Optional[str]:
    lowered = header.strip().lower()
    for matches, name in HEADER_FIELDS:
        if matches(lowered):
            return name
    return None


def _row_cells(tr: Tag) -> list[str]:
    return [clean_text(cell_text(td)) for td in tr.find_all(["td", "th"], recursive=False)]


def _is_highlighted(tr: Tag) -> bool:
    return (tr.get("bgcolor") or "").upper() == HEADER_BGCOLOR


def parse_grid(grid: Tag, run: StatisticsRun, scraped_at: Optional[datetime] = None) -> StatisticsRun:
    """Liest alle Datenzeilen des Grids in ``run``.

    Die Spaltenköpfe stehen in der orange hinterlegten Zeile, ohne eine solche
    in der ersten Zeile. Beide werden nie als Daten gelesen, wiederholte
    Kopfzeilen ebenso wenig. Zeilen ohne Schulnummer zählen als übersprungen.
    """
    scraped_at = scraped_at or utcnow()
    rows = [tr for tr, _section in iter_rows(grid)]
    if not rows:
        return run
    header_row = next((tr for tr in rows if _is_highlighted(tr)), rows[0])
    run.headers = _row_cells(header_row)

    for i, tr in enumerate(rows):
        if i == 0 or tr is header_row or _is_highlighted(tr):
            continue
        cells = _row_cells(tr)
        if not cells:
            continue

        values: dict[str, str] = {}
        metadata: dict[str, str] = {}
        for header, value in zip(run.headers, cells):
            if header:
                metadata[header] = value
            name = field_for_header(header)
            if name is not None:
                values[name] = value

        if not values.get("school_number"):
            run.skipped_rows += 1
            continue
        run.add(StatisticData(**values, metadata=metadata, scraped_at=scraped_at))
    return run


class StatisticsScraper(BaseScraper):
    """Scraper für die Schulstatistik-Liste (ein Request, keine Browser-Session)"""

    def __init__(self, config: ScrapingConfig, *, grid_selector: str = GRID_SELECTOR, **kwargs):
        super().__init__(config, "school_statistics", **kwargs)
        self.grid_selector = grid_selector

    def harvest(self, url: Optional[str] = None, deadline: Optional[Deadline] = None) -> StatisticsRun:
        url = url or self.config.base_url
        self.logger.info(f"Fetching school statistics: {url}")
        try:
            html = self.fetch_page(url, deadline=deadline)
        except HttpFetchError as e:
            raise StatisticsScrapeError(url, "Failed to fetch statistics page", e) from e

        run = self.extract(self.parse_html(html), url)
        if not run.statistics:
            raise StatisticsScrapeError(url, "No statistics found")
        self.logger.info(
            f"Parsed {run.total} statistic rows ({run.skipped_rows} skipped)",
            extra={"count": run.total},
        )
        return run

    def extract(self, soup: BeautifulSoup, url: str) -> StatisticsRun:
        run = StatisticsRun(url=url)
        grid = soup.select_one(self.grid_selector)
        if grid is None:
            self.logger.warning(f"No {self.grid_selector} table on {url}")
        else:
            parse_grid(grid, run)
            if not run.headers:
                self.logger.warning(f"No headers found in {self.grid_selector}")
        run.finished_at = utcnow()
        return run


__all__ = [
    "GRID_SELECTOR",
    "HEADER_BGCOLOR",
    "STATISTICS_REFERER",
    "STATISTICS_URL",
    "StatisticsRun",
    "StatisticsScrapeError",
    "StatisticsScraper",
    "field_for_header",
    "parse_grid",
]
