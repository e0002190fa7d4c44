"""
Table Normalizer
Wandelt die rohen Statistik-Tabellen eines Schulportraits in typisierte Datensätze um.

Alle Funktionen sind rein und werfen nie: nicht lesbare Zahlen werden zu 0.
Wer wissen will, wo das passiert ist, übergibt eine ``warnings``-Liste.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...common.parsing import is_parseable_decimal, is_parseable_number, parse_float, parse_int
from ...domain.models import (
    AbsenceStat,
    CitizenshipStat,
    DataQualityWarning,
    LanguageStat,
    ResidenceStat,
    StatisticCategory,
    StatisticTable,
)

TOTAL_LABEL = "Insgesamt"

# (marker, field prefix); first match wins. "schule" only counts when the
# label is not about the school type, so it can be checked first.
ABSENCE_MARKERS: tuple[tuple[str, str], ...] = (
    ("schule", "school"),
    ("schulart", "school_type"),
    ("region", "region"),
    ("berlin", "berlin"),
)
SCHOOL_TYPE_MARKER = "schulart"

MIN_CITIZENSHIP_CELLS = 4
MIN_LANGUAGE_CELLS = 5
MIN_LANGUAGE_ROWS = 2
MIN_RESIDENCE_CELLS = 2
MIN_ABSENCE_CELLS = 3
MIN_ABSENCE_ROWS = 4


def _warn(
    warnings: Optional[list[DataQualityWarning]],
    category: StatisticCategory,
    school_number: str,
    row_index: int,
    row: list[str],
    message: str,
) -> None:
    if warnings is None:
        return
    warnings.append(
        DataQualityWarning(
            category=category,
            school_number=school_number,
            row_index=row_index,
            message=message,
            row=list(row),
        )
    )


def _unparseable(cells: list[str], *, decimal: bool = False) -> list[str]:
    check = is_parseable_decimal if decimal else is_parseable_number
    return [c for c in cells if c.strip() and not check(c)]


def normalize_citizenship(
    school_number: str,
    table: Optional[StatisticTable],
    scraped_at: datetime,
    warnings: Optional[list[DataQualityWarning]] = None,
) -> list[CitizenshipStat]:
    """Eine Zeile pro Staatsangehörigkeit (Spalten: Kategorie, weiblich, männlich, gesamt)"""
    if table is None:
        return []

    stats: list[CitizenshipStat] = []
    for i, row in enumerate(table.rows):
        if len(row) < MIN_CITIZENSHIP_CELLS:
            continue
        citizenship = row[0].strip()
        if not citizenship:
            continue

        bad = _unparseable(row[1:4])
        if bad:
            _warn(warnings, StatisticCategory.CITIZENSHIP, school_number, i, row,
                  f"unparseable counts zero-filled: {bad}")

        stat = CitizenshipStat(
            school_number=school_number,
            citizenship=citizenship,
            female_students=parse_int(row[1]),
            male_students=parse_int(row[2]),
            total=parse_int(row[3]),
            scraped_at=scraped_at,
        )
        if stat.total != stat.female_students + stat.male_students:
            _warn(warnings, StatisticCategory.CITIZENSHIP, school_number, i, row,
                  f"total {stat.total} != female {stat.female_students} + male {stat.male_students}")
        stats.append(stat)
    return stats


def normalize_language(
    school_number: str,
    table: Optional[StatisticTable],
    scraped_at: datetime,
    warnings: Optional[list[DataQualityWarning]] = None,
) -> Optional[LanguageStat]:
    """Ein Datensatz aus der letzten Zeile (die Tabelle endet mit der Summenzeile)"""
    if table is None or len(table.rows) < MIN_LANGUAGE_ROWS:
        return None

    index = len(table.rows) - 1
    row = table.rows[index]
    if len(row) < MIN_LANGUAGE_CELLS:
        return None

    bad = _unparseable(row[0:4]) + _unparseable(row[4:5], decimal=True)
    if bad:
        _warn(warnings, StatisticCategory.LANGUAGE, school_number, index, row,
              f"unparseable values zero-filled: {bad}")

    return LanguageStat(
        school_number=school_number,
        total_students=parse_int(row[0]),
        ndh_female_students=parse_int(row[1]),
        ndh_male_students=parse_int(row[2]),
        ndh_total=parse_int(row[3]),
        ndh_percentage=parse_float(row[4]),
        scraped_at=scraped_at,
    )


def normalize_residence(
    school_number: str,
    table: Optional[StatisticTable],
    scraped_at: datetime,
    warnings: Optional[list[DataQualityWarning]] = None,
) -> list[ResidenceStat]:
    """Eine Zeile pro Bezirk, ohne die Summenzeile"""
    if table is None:
        return []

    stats: list[ResidenceStat] = []
    for i, row in enumerate(table.rows):
        if len(row) < MIN_RESIDENCE_CELLS:
            continue
        district = row[0].strip()
        if not district or district == TOTAL_LABEL:
            continue
        bad = _unparseable(row[1:2])
        if bad:
            _warn(warnings, StatisticCategory.RESIDENCE, school_number, i, row,
                  f"unparseable student count zero-filled: {bad}")
        stats.append(
            ResidenceStat(
                school_number=school_number,
                district=district,
                student_count=parse_int(row[1]),
                scraped_at=scraped_at,
            )
        )
    return stats


def _absence_prefix(label: str) -> Optional[str]:
    label = label.strip().lower()
    for marker, prefix in ABSENCE_MARKERS:
        if marker == "schule" and SCHOOL_TYPE_MARKER in label:
            continue
        if marker in label:
            return prefix
    return None


def normalize_absence(
    school_number: str,
    table: Optional[StatisticTable],
    scraped_at: datetime,
    warnings: Optional[list[DataQualityWarning]] = None,
) -> Optional[AbsenceStat]:
    """Fehlzeiten: Schule, Schulart, Region und Berlin, jeweils gesamt und unentschuldigt"""
    if table is None or len(table.rows) < MIN_ABSENCE_ROWS:
        return None

    rates: dict[str, float] = {}
    for i, row in enumerate(table.rows):
        if len(row) < MIN_ABSENCE_CELLS:
            continue
        prefix = _absence_prefix(row[0])
        if prefix is None:
            continue
        bad = _unparseable(row[1:3], decimal=True)
        if bad:
            _warn(warnings, StatisticCategory.ABSENCE, school_number, i, row,
                  f"unparseable rates zero-filled: {bad}")
        rates[f"{prefix}_absence_rate"] = parse_float(row[1])
        rates[f"{prefix}_unexcused_rate"] = parse_float(row[2])

    return AbsenceStat(school_number=school_number, scraped_at=scraped_at, **rates)


__all__ = [
    "ABSENCE_MARKERS",
    "TOTAL_LABEL",
    "normalize_absence",
    "normalize_citizenship",
    "normalize_language",
    "normalize_residence",
]
