"""
Data schemas for lookup inputs and normalized rows.

Pydantic models providing type safety, validation, and serialization
for the shapes handed to downstream consumers. Missing upstream fields
become empty strings so consumers never need null checks.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _blank_if_missing(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class DateWindow(BaseModel):
    """Inclusive YYYYMMDD date range."""

    model_config = ConfigDict(frozen=True)

    from_ymd: str = Field(..., description="First day (YYYYMMDD)", pattern=r"^\d{8}$")
    to_ymd: str = Field(..., description="Last day (YYYYMMDD)", pattern=r"^\d{8}$")

    @field_validator("from_ymd", "to_ymd")
    @classmethod
    def check_calendar_date(cls, v: str) -> str:
        """Reject well-formed strings that are not real dates (e.g. 20240230)."""
        try:
            datetime.strptime(v, "%Y%m%d")
        except ValueError:
            raise ValueError(f"{v} is not a valid calendar date")
        return v

    @model_validator(mode="after")
    def check_order(self) -> "DateWindow":
        """Reject windows that end before they start."""
        if self.from_ymd > self.to_ymd:
            raise ValueError(
                f"from_ymd ({self.from_ymd}) must not be after to_ymd ({self.to_ymd})"
            )
        return self

    @property
    def is_single_day(self) -> bool:
        return self.from_ymd == self.to_ymd


class SchoolRef(BaseModel):
    """
    Identifiers of a school (and optionally one class) at the upstream API.

    Attributes:
        school_id: Standard school code (SD_SCHUL_CODE)
        office_id: Education office code (ATPT_OFCDC_SC_CODE)
        grade: Grade number, scopes timetables to one class with class_no
        class_no: Class name/number within the grade
    """

    model_config = ConfigDict(frozen=True)

    school_id: str = ""
    office_id: str = ""
    grade: Optional[str] = None
    class_no: Optional[str] = None

    @field_validator("school_id", "office_id", mode="before")
    @classmethod
    def strip_identifier(cls, v: Any) -> str:
        return _blank_if_missing(v)

    @field_validator("grade", "class_no", mode="before")
    @classmethod
    def stringify_optional(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class _NormalizedRow(BaseModel):
    """Base for rows whose string fields default to empty."""

    @field_validator("*", mode="before")
    @classmethod
    def blank_missing(cls, v: Any) -> str:
        return _blank_if_missing(v)


class ScheduleRow(_NormalizedRow):
    """One timetable period."""

    date: str = Field("", description="Class date (YYYYMMDD)")
    period: str = Field("", description="Period number")
    subject: str = Field("", description="Subject or activity name")
    teacher: str = Field("", description="Teacher name (rarely published upstream)")


class MealRow(_NormalizedRow):
    """One cafeteria menu entry."""

    date: str = Field("", description="Meal date (YYYYMMDD)")
    menu: str = Field("", description="Dish list as published (<br/> separated)")


class SchoolInfo(_NormalizedRow):
    """School search result."""

    school_id: str = Field("", description="Standard school code")
    office_id: str = Field("", description="Education office code")
    name: str = Field("", description="School name")
    kind: str = Field("", description="School kind, usable as a category hint")
    address: str = Field("", description="Road name address")

    def to_ref(self, grade: Optional[str] = None, class_no: Optional[str] = None) -> SchoolRef:
        """Build lookup identifiers for this school."""
        return SchoolRef(
            school_id=self.school_id,
            office_id=self.office_id,
            grade=grade,
            class_no=class_no,
        )
