"""
Domain Module
Validierte Datensätze (Pydantic) für Schuldetails und Statistiken
"""

from .models import (
    AbsenceStat,
    CitizenshipStat,
    DataQualityWarning,
    LanguageStat,
    ResidenceStat,
    SchoolDetailRecord,
    StatisticCategory,
    StatisticData,
    StatisticTable,
)

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
]
