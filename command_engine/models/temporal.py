"""Temporal Expression: result of parsing one span of free text."""

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, model_validator


class TemporalExpression(BaseModel):
    """
    A parsed date/time cue.

    `target_date` is only set when both a date and a time were found and
    combined. Otherwise `target_label` carries whatever could be rendered.
    """

    has_date: bool = False
    has_time: bool = False
    target_date: Optional[datetime] = None
    target_label: Optional[str] = None
    base_date: Optional[date] = None
    time_of_day: Optional[time] = None

    @model_validator(mode="after")
    def _check_target_date(self) -> "TemporalExpression":
        if self.target_date is not None and not (self.has_date and self.has_time):
            raise ValueError("target_date requires both a date and a time component")
        return self
