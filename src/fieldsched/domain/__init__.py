"""Domain models and business rules for scheduling."""

from fieldsched.domain.errors import (
    ConfigurationWarning,
    FieldSchedError,
    ValidationError,
)
from fieldsched.domain.frequency import (
    next_occurrence,
    nth_occurrence,
    occurrence_on_or_after,
    occurrences_between,
)
from fieldsched.domain.models import (
    CalendarEvent,
    CalendarWindow,
    FeasibilityViolation,
    Frequency,
    JobInstance,
    JobStatus,
    Location,
    OptimizedSchedule,
    Priority,
    RecurringSeries,
    ScheduleConstraints,
    ScheduledSlot,
    ScheduleJob,
    ScheduleMetrics,
    ViewType,
    ViolationType,
)
from fieldsched.domain.policies import DefaultTravelPolicy, TravelPolicy

__all__ = [
    # Errors
    "ConfigurationWarning",
    "FieldSchedError",
    "ValidationError",
    # Frequency
    "next_occurrence",
    "nth_occurrence",
    "occurrence_on_or_after",
    "occurrences_between",
    # Models
    "CalendarEvent",
    "CalendarWindow",
    "FeasibilityViolation",
    "Frequency",
    "JobInstance",
    "JobStatus",
    "Location",
    "OptimizedSchedule",
    "Priority",
    "RecurringSeries",
    "ScheduleConstraints",
    "ScheduledSlot",
    "ScheduleJob",
    "ScheduleMetrics",
    "ViewType",
    "ViolationType",
    # Policies
    "DefaultTravelPolicy",
    "TravelPolicy",
]
