"""
Database services for the school statistics listing.

A statistics run is saved as one batch: the rows of every school year contained
in the batch replace what is stored for those years, in a single transaction.
Years not present in the batch are left alone.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence

from sqlalchemy import delete, func, insert, select

from ...domain.models import StatisticData, utcnow
from ..manager import DatabaseManager
from ..schema import SchoolStatistic

STATISTIC_FIELDS = (
    "school_number",
    "school_name",
    "district",
    "school_type",
    "school_year",
    "students",
    "students_female",
    "students_male",
    "teachers",
    "teachers_female",
    "teachers_male",
    "classes",
)


def _row_values(stat: StatisticData) -> dict[str, Any]:
    values = {name: getattr(stat, name) for name in STATISTIC_FIELDS}
    values["metadata_json"] = json.dumps(stat.metadata, ensure_ascii=False)
    values["scraped_at"] = stat.scraped_at
    return values


def _metadata(raw: Optional[str]) -> dict[str, str]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class SchoolStatisticStore:
    """Persistenz für die Schulstatistik-Liste"""

    def __init__(self, db: DatabaseManager):
        self.db = db
        self.logger = logging.getLogger(__name__)

    def replace_all(self, statistics: Sequence[StatisticData]) -> int:
        """Ersetzt alle gespeicherten Zeilen der enthaltenen Schuljahre; gibt die Anzahl zurück.

        Doppelte (Schulnummer, Schuljahr)-Paare im Batch: die letzte Zeile gewinnt.
        """
        unique: dict[tuple[str, str], StatisticData] = {}
        for stat in statistics:
            unique[(stat.school_number, stat.school_year)] = stat
        if len(unique) < len(statistics):
            self.logger.warning(f"Dropped {len(statistics) - len(unique)} duplicate statistic rows")

        years = sorted({year for _, year in unique})
        with self.db.transaction("replace school statistics") as session:
            if years:
                session.execute(delete(SchoolStatistic).where(SchoolStatistic.school_year.in_(years)))
            if unique:
                session.execute(insert(SchoolStatistic), [_row_values(s) for s in unique.values()])

        self.logger.info(
            f"Stored {len(unique)} statistic rows for school years {', '.join(years) or '-'}",
            extra={"count": len(unique)},
        )
        return len(unique)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _to_data(row: SchoolStatistic) -> StatisticData:
        values = {name: getattr(row, name) or "" for name in STATISTIC_FIELDS}
        return StatisticData(
            **values,
            metadata=_metadata(row.metadata_json),
            scraped_at=row.scraped_at or utcnow(),
        )

    def get_all(self) -> list[StatisticData]:
        with self.db.transaction("get all statistics") as session:
            rows = session.scalars(
                select(SchoolStatistic).order_by(
                    SchoolStatistic.school_year.desc(), SchoolStatistic.school_name
                )
            ).all()
            return [self._to_data(r) for r in rows]

    def get_by_school_number(self, school_number: str) -> list[StatisticData]:
        with self.db.transaction("get statistics by school number") as session:
            rows = session.scalars(
                select(SchoolStatistic)
                .where(SchoolStatistic.school_number == school_number)
                .order_by(SchoolStatistic.school_year.desc())
            ).all()
            return [self._to_data(r) for r in rows]

    def get_by_school_year(self, school_year: str) -> list[StatisticData]:
        with self.db.transaction("get statistics by school year") as session:
            rows = session.scalars(
                select(SchoolStatistic)
                .where(SchoolStatistic.school_year == school_year)
                .order_by(SchoolStatistic.school_name)
            ).all()
            return [self._to_data(r) for r in rows]

    def count(self) -> int:
        with self.db.transaction("count statistics") as session:
            return session.scalar(select(func.count()).select_from(SchoolStatistic)) or 0

    def get_summary(self) -> dict[str, Any]:
        with self.db.transaction("statistics summary") as session:
            total = session.scalar(select(func.count()).select_from(SchoolStatistic)) or 0
            by_year = session.execute(
                select(SchoolStatistic.school_year, func.count())
                .group_by(SchoolStatistic.school_year)
                .order_by(SchoolStatistic.school_year.desc())
            ).all()
            latest = session.scalar(select(func.max(SchoolStatistic.scraped_at)))
        return {
            "total_count": total,
            "by_year": {year: count for year, count in by_year},
            "latest_scrape": latest.isoformat() if latest else None,
        }
