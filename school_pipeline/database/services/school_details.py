"""
Database services for school detail persistence.

``SchoolDetailStore`` is the sink of a harvest run: every record is upserted by
its school number and the four statistic tables are replaced wholesale for
that school (delete + insert, never merged row by row).
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

from pydantic import BaseModel, ValidationError
from sqlalchemy import delete, func, insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ...data_collection.scrapers.table_normalizer import (
    normalize_absence,
    normalize_citizenship,
    normalize_language,
    normalize_residence,
)
from ...domain.models import (
    AbsenceStat,
    CitizenshipStat,
    DataQualityWarning,
    LanguageStat,
    ResidenceStat,
    SchoolDetailRecord,
    StatisticCategory,
    StatisticTable,
    utcnow,
)
from ..manager import DatabaseError, DatabaseManager
from ..schema import STAT_TABLES, SchoolDetail

STAT_MODELS: dict[StatisticCategory, type[BaseModel]] = {
    StatisticCategory.CITIZENSHIP: CitizenshipStat,
    StatisticCategory.LANGUAGE: LanguageStat,
    StatisticCategory.RESIDENCE: ResidenceStat,
    StatisticCategory.ABSENCE: AbsenceStat,
}

NORMALIZERS: dict[StatisticCategory, Callable[..., Any]] = {
    StatisticCategory.CITIZENSHIP: normalize_citizenship,
    StatisticCategory.LANGUAGE: normalize_language,
    StatisticCategory.RESIDENCE: normalize_residence,
    StatisticCategory.ABSENCE: normalize_absence,
}

DETAIL_FIELDS = (
    "school_name",
    "school_url",
    "languages",
    "courses",
    "offerings",
    "available_after_4th_grade",
    "additional_info",
    "equipment",
    "working_groups",
    "partners",
    "differentiation",
    "lunch_info",
    "dual_learning",
)

UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def _table_json(table: Optional[StatisticTable]) -> Optional[str]:
    return table.model_dump_json() if table is not None else None


def _table_from_json(raw: Optional[str]) -> Optional[StatisticTable]:
    if not raw:
        return None
    try:
        return StatisticTable.model_validate_json(raw)
    except ValidationError:
        return None


def normalize_record(
    record: SchoolDetailRecord, warnings: Optional[list[DataQualityWarning]] = None
) -> dict[StatisticCategory, list[BaseModel]]:
    """Normalisierte Statistiken je Kategorie, nur für tatsächlich gefundene Tabellen"""
    result: dict[StatisticCategory, list[BaseModel]] = {}
    for category, normalize in NORMALIZERS.items():
        table = record.table_for(category)
        if table is None:
            continue
        out = normalize(record.school_number, table, record.scraped_at, warnings)
        if out is None:
            result[category] = []
        elif isinstance(out, list):
            result[category] = out
        else:
            result[category] = [out]
    return result


class SchoolDetailStore:
    """Persistenz für Schulportraits und die zugehörigen Statistiken"""

    def __init__(self, db: DatabaseManager):
        self.db = db
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _detail_values(self, record: SchoolDetailRecord) -> dict[str, Any]:
        values = {name: getattr(record, name) for name in DETAIL_FIELDS}
        values.update(
            school_number=record.school_number,
            citizenship_data=_table_json(record.citizenship_table),
            language_data=_table_json(record.language_table),
            residence_data=_table_json(record.residence_table),
            absence_data=_table_json(record.absence_table),
            scraped_at=record.scraped_at,
        )
        return values

    def _upsert(self, session: Session, record: SchoolDetailRecord) -> None:
        dialect = session.get_bind().dialect.name
        insert_fn = UPSERT_INSERTS.get(dialect)
        if insert_fn is None:
            raise DatabaseError("upsert school detail", ValueError(f"unsupported dialect {dialect}"))

        values = self._detail_values(record)
        stmt = insert_fn(SchoolDetail).values(**values)
        update_cols = {c: stmt.excluded[c] for c in values if c != "school_number"}
        update_cols["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(index_elements=["school_number"], set_=update_cols)
        session.execute(stmt)

    def _replace(
        self,
        session: Session,
        category: StatisticCategory,
        school_number: str,
        records: Sequence[BaseModel],
    ) -> None:
        table = STAT_TABLES[category]
        session.execute(delete(table).where(table.school_number == school_number))
        if records:
            rows = [{**r.model_dump(), "school_number": school_number} for r in records]
            session.execute(insert(table), rows)

    def upsert_detail(self, record: SchoolDetailRecord) -> None:
        """Insert oder vollständiges Überschreiben anhand der Schulnummer"""
        with self.db.transaction("upsert school detail") as session:
            self._upsert(session, record)

    def replace_stats(
        self, category: StatisticCategory, school_number: str, records: Sequence[BaseModel]
    ) -> None:
        """Alle Zeilen der Schule in dieser Kategorie ersetzen (eine Transaktion)"""
        with self.db.transaction(f"replace {category.value} stats") as session:
            self._replace(session, category, school_number, records)

    def save_record(self, record: SchoolDetailRecord) -> None:
        """Upsert des Portraits plus Ersetzen der Statistiken für jede gefundene Tabelle.

        Fehlende Tabellen lassen die gespeicherten Zeilen unverändert.
        """
        if not record.school_number:
            raise DatabaseError(
                "save school record", ValueError(f"no school number for {record.school_url}")
            )

        warnings: list[DataQualityWarning] = []
        stats = normalize_record(record, warnings)
        if warnings:
            self.logger.warning(
                f"{len(warnings)} data quality warnings for {record.school_number}",
                extra={"school_number": record.school_number},
            )
            for w in warnings:
                self.logger.debug(f"[{w.category.value}] row {w.row_index}: {w.message}")

        with self.db.transaction("save school record") as session:
            self._upsert(session, record)
            for category, rows in stats.items():
                self._replace(session, category, record.school_number, rows)

    def delete_all(self) -> int:
        """Löscht alle Portraits und Statistiken; gibt die Anzahl gelöschter Portraits zurück"""
        with self.db.transaction("delete all school details") as session:
            for table in STAT_TABLES.values():
                session.execute(delete(table))
            result = session.execute(delete(SchoolDetail))
            return result.rowcount or 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _to_record(row: SchoolDetail) -> SchoolDetailRecord:
        values = {name: getattr(row, name) for name in DETAIL_FIELDS}
        values = {k: ("" if v is None else v) for k, v in values.items()}
        values["available_after_4th_grade"] = bool(row.available_after_4th_grade)
        return SchoolDetailRecord(
            school_number=row.school_number,
            **values,
            citizenship_table=_table_from_json(row.citizenship_data),
            language_table=_table_from_json(row.language_data),
            residence_table=_table_from_json(row.residence_data),
            absence_table=_table_from_json(row.absence_data),
            scraped_at=row.scraped_at or utcnow(),
        )

    def get_all(self) -> list[SchoolDetailRecord]:
        with self.db.transaction("get all school details") as session:
            rows = session.scalars(select(SchoolDetail).order_by(SchoolDetail.school_name)).all()
            return [self._to_record(r) for r in rows]

    def get_by_school_number(self, school_number: str) -> Optional[SchoolDetailRecord]:
        with self.db.transaction("get school detail") as session:
            row = session.scalars(
                select(SchoolDetail).where(SchoolDetail.school_number == school_number)
            ).first()
            return self._to_record(row) if row is not None else None

    def get_available_after_4th_grade(self) -> list[SchoolDetailRecord]:
        with self.db.transaction("get schools after 4th grade") as session:
            rows = session.scalars(
                select(SchoolDetail)
                .where(SchoolDetail.available_after_4th_grade.is_(True))
                .order_by(SchoolDetail.school_name)
            ).all()
            return [self._to_record(r) for r in rows]

    def count(self) -> int:
        with self.db.transaction("count school details") as session:
            return session.scalar(select(func.count()).select_from(SchoolDetail)) or 0

    def get_stats(self, category: StatisticCategory, school_number: str) -> list[BaseModel]:
        table = STAT_TABLES[category]
        model = STAT_MODELS[category]
        with self.db.transaction(f"get {category.value} stats") as session:
            rows = session.scalars(
                select(table).where(table.school_number == school_number).order_by(table.id)
            ).all()
            return [model.model_validate(r, from_attributes=True) for r in rows]

    def get_summary(self) -> dict[str, int]:
        with self.db.transaction("school details summary") as session:
            total = session.scalar(select(func.count()).select_from(SchoolDetail)) or 0
            after_4th = session.scalar(
                select(func.count())
                .select_from(SchoolDetail)
                .where(SchoolDetail.available_after_4th_grade.is_(True))
            ) or 0
        return {
            "total_schools": total,
            "available_after_4th_grade": after_4th,
            "not_available_after_4th": total - after_4th,
        }
