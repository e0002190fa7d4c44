"""
Database Schema
SQLAlchemy Models für Schulportraits und Schülerstatistiken
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from ..domain.models import StatisticCategory

Base = declarative_base()


class SchoolDetail(Base):
    __tablename__ = "school_details"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_number = Column(String(20), nullable=False, unique=True, index=True)
    school_name = Column(String(300), nullable=False, default="")
    school_url = Column(Text, default="")
    languages = Column(Text, default="")
    courses = Column(Text, default="")
    offerings = Column(Text, default="")
    available_after_4th_grade = Column(Boolean, nullable=False, default=False)
    additional_info = Column(Text, default="")
    equipment = Column(Text, default="")
    working_groups = Column(Text, default="")
    partners = Column(Text, default="")
    differentiation = Column(Text, default="")
    lunch_info = Column(Text, default="")
    dual_learning = Column(Text, default="")

    # Rohtabellen als JSON-Text
    citizenship_data = Column(Text)
    language_data = Column(Text)
    residence_data = Column(Text)
    absence_data = Column(Text)

    scraped_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=func.now())
    updated_at = Column(DateTime(timezone=True), default=func.now(), onupdate=func.now())


class SchoolCitizenshipStat(Base):
    __tablename__ = "school_citizenship_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_number = Column(String(20), nullable=False, index=True)
    citizenship = Column(String(200), nullable=False)
    female_students = Column(Integer, default=0)
    male_students = Column(Integer, default=0)
    total = Column(Integer, default=0)
    scraped_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=func.now())


class SchoolLanguageStat(Base):
    __tablename__ = "school_language_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_number = Column(String(20), nullable=False, index=True)
    total_students = Column(Integer, default=0)
    ndh_female_students = Column(Integer, default=0)
    ndh_male_students = Column(Integer, default=0)
    ndh_total = Column(Integer, default=0)
    ndh_percentage = Column(Float, default=0.0)
    scraped_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=func.now())


class SchoolResidenceStat(Base):
    __tablename__ = "school_residence_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_number = Column(String(20), nullable=False, index=True)
    district = Column(String(200), nullable=False)
    student_count = Column(Integer, default=0)
    scraped_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=func.now())


class SchoolAbsenceStat(Base):
    __tablename__ = "school_absence_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_number = Column(String(20), nullable=False, index=True)
    school_absence_rate = Column(Float, default=0.0)
    school_unexcused_rate = Column(Float, default=0.0)
    school_type_absence_rate = Column(Float, default=0.0)
    school_type_unexcused_rate = Column(Float, default=0.0)
    region_absence_rate = Column(Float, default=0.0)
    region_unexcused_rate = Column(Float, default=0.0)
    berlin_absence_rate = Column(Float, default=0.0)
    berlin_unexcused_rate = Column(Float, default=0.0)
    scraped_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=func.now())


class SchoolStatistic(Base):
    """Eine Zeile der Schulstatistik-Liste (Schule + Schuljahr)"""

    __tablename__ = "school_statistics"
    __table_args__ = (UniqueConstraint("school_number", "school_year", name="uq_school_statistics_school_year"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_number = Column(String(20), nullable=False, index=True)
    school_name = Column(String(300), default="")
    district = Column(String(100), default="")
    school_type = Column(String(100), default="")
    school_year = Column(String(20), nullable=False, default="", index=True)
    students = Column(String(20), default="")
    students_female = Column(String(20), default="")
    students_male = Column(String(20), default="")
    teachers = Column(String(20), default="")
    teachers_female = Column(String(20), default="")
    teachers_male = Column(String(20), default="")
    classes = Column(String(20), default="")
    # "metadata" is reserved on declarative classes
    metadata_json = Column("metadata", Text)
    scraped_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=func.now())


STAT_TABLES = {
    StatisticCategory.CITIZENSHIP: SchoolCitizenshipStat,
    StatisticCategory.LANGUAGE: SchoolLanguageStat,
    StatisticCategory.RESIDENCE: SchoolResidenceStat,
    StatisticCategory.ABSENCE: SchoolAbsenceStat,
}
