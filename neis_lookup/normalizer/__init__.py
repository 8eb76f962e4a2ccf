"""
Normalizer Module

Input schemas and normalization of upstream rows into the minimal shapes
handed to downstream consumers.

Components:
    - schemas: Pydantic models (DateWindow, SchoolRef, ScheduleRow, MealRow, SchoolInfo)
    - transformer: Row extraction from NEIS response envelopes
"""

from .schemas import DateWindow, MealRow, ScheduleRow, SchoolInfo, SchoolRef
from .transformer import extract_rows, to_meal_rows, to_schedule_rows, to_school_infos

__all__ = [
    "DateWindow",
    "SchoolRef",
    "ScheduleRow",
    "MealRow",
    "SchoolInfo",
    "extract_rows",
    "to_schedule_rows",
    "to_meal_rows",
    "to_school_infos",
]
