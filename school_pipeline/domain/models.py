"""
Domain models for harvested school directory data using Pydantic.

``SchoolDetailRecord`` is also the on-disk cache format: its JSON form embeds
the raw statistic tables so a cached page can be replayed without re-scraping.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatisticCategory(str, Enum):
    CITIZENSHIP = "citizenship"
    LANGUAGE = "language"
    RESIDENCE = "residence"
    ABSENCE = "absence"


# --- Raw extraction ---

class StatisticTable(BaseModel):
    """Generic header/row matrix of one HTML table."""

    headers: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)
    data: Optional[dict[str, str]] = None


class SchoolDetailRecord(BaseModel):
    """Everything harvested from one school portrait page."""

    school_number: str = ""
    school_name: str = ""
    school_url: str = ""
    languages: str = ""
    courses: str = ""
    offerings: str = ""
    available_after_4th_grade: bool = False
    additional_info: str = ""
    equipment: str = ""
    working_groups: str = ""
    partners: str = ""
    differentiation: str = ""
    lunch_info: str = ""
    dual_learning: str = ""
    citizenship_table: Optional[StatisticTable] = None
    language_table: Optional[StatisticTable] = None
    residence_table: Optional[StatisticTable] = None
    absence_table: Optional[StatisticTable] = None
    scraped_at: datetime = Field(default_factory=utcnow)

    def table_for(self, category: StatisticCategory) -> Optional[StatisticTable]:
        return getattr(self, f"{category.value}_table")

    def set_table(self, category: StatisticCategory, table: Optional[StatisticTable]) -> None:
        setattr(self, f"{category.value}_table", table)

    @property
    def tables_found(self) -> int:
        return sum(1 for c in StatisticCategory if self.table_for(c) is not None)


# --- Normalized statistics ---

class CitizenshipStat(BaseModel):
    school_number: str
    citizenship: str
    female_students: int = 0
    male_students: int = 0
    total: int = 0
    scraped_at: datetime


class LanguageStat(BaseModel):
    """Non-German heritage language (nichtdeutsche Herkunftssprache) figures."""

    school_number: str
    total_students: int = 0
    ndh_female_students: int = 0
    ndh_male_students: int = 0
    ndh_total: int = 0
    ndh_percentage: float = 0.0
    scraped_at: datetime


class ResidenceStat(BaseModel):
    school_number: str
    district: str
    student_count: int = 0
    scraped_at: datetime


class AbsenceStat(BaseModel):
    school_number: str
    school_absence_rate: float = 0.0
    school_unexcused_rate: float = 0.0
    school_type_absence_rate: float = 0.0
    school_type_unexcused_rate: float = 0.0
    region_absence_rate: float = 0.0
    region_unexcused_rate: float = 0.0
    berlin_absence_rate: float = 0.0
    berlin_unexcused_rate: float = 0.0
    scraped_at: datetime


class DataQualityWarning(BaseModel):
    category: StatisticCategory
    school_number: str
    row_index: int
    message: str
    row: list[str] = Field(default_factory=list)


# --- School statistics listing ---

class StatisticData(BaseModel):
    """One row of the school statistics grid (Schülerinnen, Lehrkräfte, Klassen je Schuljahr).

    Counts stay strings as published; every column is also kept in ``metadata``
    under its original header.
    """

    school_number: str
    school_name: str = ""
    district: str = ""
    school_type: str = ""
    school_year: str = ""
    students: str = ""
    students_female: str = ""
    students_male: str = ""
    teachers: str = ""
    teachers_female: str = ""
    teachers_male: str = ""
    classes: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)
    scraped_at: datetime = Field(default_factory=utcnow)


__all__ = [
    "AbsenceStat",
    "CitizenshipStat",
    "DataQualityWarning",
    "LanguageStat",
    "ResidenceStat",
    "SchoolDetailRecord",
    "StatisticCategory",
    "StatisticData",
    "StatisticTable",
    "utcnow",
]
