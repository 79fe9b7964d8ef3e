"""Exceptions and reported conditions for the scheduling engine.

Hard failures (bad input) are raised as ``ValidationError`` before any
computation happens. Conditions a batch caller should see but survive
(misconfigured series) are returned as dataclasses instead.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional


class FieldSchedError(Exception):
    """Base class for all package errors."""


class ValidationError(FieldSchedError):
    """Input rejected before any computation was applied.

    Attributes:
        field: Name of the offending field, if known.
        value: The rejected value, if known.
    """

    def __init__(self, message: str, field: Optional[str] = None, value=None):
        super().__init__(message)
        self.field = field
        self.value = value


@dataclass(frozen=True)
class ConfigurationWarning:
    """A series that cannot produce instances as configured.

    Attributes:
        series_id: ID of the misconfigured series.
        message: Human-readable description.
        start_date: The series start date.
        end_date: The series end date.
    """

    series_id: str
    message: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def __str__(self) -> str:
        return f"[series {self.series_id}] {self.message}"
