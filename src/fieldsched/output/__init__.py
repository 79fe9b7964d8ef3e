"""Output generation for schedules and calendar windows."""

from fieldsched.output.report import ReportGenerator

__all__ = [
    "ReportGenerator",
]
