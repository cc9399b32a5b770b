"""Recurrence pattern schemas."""
from datetime import date
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

RECURRENCE_TYPES = ("daily", "weekly", "monthly", "yearly")


class RecurrencePattern(BaseModel):
    """How often a recurring task repeats.

    ``type`` is kept as a plain string so that patterns stored before a type was
    retired still load; the engine treats unknown types as an exhausted series.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(..., description="daily, weekly, monthly or yearly")
    interval: int = Field(default=1, description="Units between occurrences")
    end_date: Optional[date] = Field(
        default=None,
        validation_alias=AliasChoices("end_date", "endDate"),
    )
    days_of_week: Optional[List[int]] = Field(
        default=None,
        validation_alias=AliasChoices("days_of_week", "daysOfWeek"),
    )  # 0=Sunday..6=Saturday, weekly only
    day_of_month: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("day_of_month", "dayOfMonth"),
    )  # 1-31, monthly only


class DescribePatternResponse(BaseModel):
    """Human-readable summary of a pattern."""
    description: str
