"""Validation module for verifying schedule and expansion correctness."""

from fieldsched.validation.validator import (
    ScheduleIssue,
    ScheduleValidator,
    ValidationErrorType,
    ValidationResult,
)

__all__ = [
    "ScheduleIssue",
    "ScheduleValidator",
    "ValidationErrorType",
    "ValidationResult",
]
