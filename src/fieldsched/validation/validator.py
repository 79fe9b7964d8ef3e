"""Validation module for verifying schedule and expansion correctness.

The optimizer and the expander guarantee these properties on their own;
the validator re-checks them from the outside so callers (and the CLI)
can confirm a result before using it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from fieldsched.domain.models import (
    CalendarEvent,
    JobInstance,
    OptimizedSchedule,
    RecurringSeries,
    ScheduleConstraints,
    ScheduleJob,
    ViolationType,
    minutes_to_time,
    time_to_minutes,
)


class ValidationErrorType(Enum):
    """Types of validation errors."""

    MISSING_JOB = "missing_job"
    UNKNOWN_JOB = "unknown_job"
    DUPLICATE_JOB = "duplicate_job"
    BAD_POSITION = "bad_position"
    WRONG_DURATION = "wrong_duration"
    STARTS_BEFORE_WORKDAY = "starts_before_workday"
    STARTS_BEFORE_EARLIEST = "starts_before_earliest"
    SLOTS_OVERLAP = "slots_overlap"
    BUFFER_NOT_RESPECTED = "buffer_not_respected"
    OVERLAPS_BREAK = "overlaps_break"
    UNREPORTED_VIOLATION = "unreported_violation"
    SCORE_OUT_OF_RANGE = "score_out_of_range"
    DUPLICATE_OCCURRENCE = "duplicate_occurrence"
    OCCURRENCE_OUTSIDE_SERIES = "occurrence_outside_series"
    WRONG_SERIES = "wrong_series"
    EVENTS_NOT_SORTED = "events_not_sorted"


@dataclass
class ScheduleIssue:
    """A single validation error."""

    error_type: ValidationErrorType
    message: str
    job_id: Optional[str] = None
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.error_type.value}]"]
        if self.job_id:
            parts.append(f"Job {self.job_id}:")
        parts.append(self.message)
        return " ".join(parts)


@dataclass
class ValidationResult:
    """Result of a validation pass."""

    is_valid: bool = True
    errors: list[ScheduleIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, error: ScheduleIssue) -> None:
        """Add an error and mark as invalid."""
        self.errors.append(error)
        self.is_valid = False

    def add_warning(self, warning: str) -> None:
        """Add a warning (doesn't affect validity)."""
        self.warnings.append(warning)

    def error_types(self) -> set[ValidationErrorType]:
        return {e.error_type for e in self.errors}


class ScheduleValidator:
    """Checks optimizer and expander output against their invariants.

    Example:
        >>> validator = ScheduleValidator()
        >>> result = validator.validate_schedule(schedule, jobs, constraints)
        >>> if not result.is_valid:
        ...     for error in result.errors:
        ...         print(error)
    """

    def validate_schedule(
        self,
        schedule: OptimizedSchedule,
        jobs: list[ScheduleJob],
        constraints: Optional[ScheduleConstraints] = None,
    ) -> ValidationResult:
        """Validate an optimized schedule.

        Args:
            schedule: The schedule to validate.
            jobs: The jobs that were given to the optimizer.
            constraints: Workday bounds and travel buffer used.

        Returns:
            ValidationResult with is_valid flag and any errors. Reported
            feasibility violations are warnings, not errors.
        """
        constraints = constraints or ScheduleConstraints()
        result = ValidationResult()
        jobs_by_id = {job.id: job for job in jobs}

        self._validate_membership(schedule, jobs_by_id, result)

        buffer = constraints.travel_buffer_minutes
        previous = None
        for index, slot in enumerate(schedule.ordered_slots):
            if slot.position != index:
                result.add_error(
                    ScheduleIssue(
                        error_type=ValidationErrorType.BAD_POSITION,
                        message=f"Slot at index {index} has position {slot.position}",
                        job_id=slot.job_id,
                    )
                )

            job = jobs_by_id.get(slot.job_id)
            if job is not None:
                self._validate_slot(slot, job, constraints, schedule, result)

            if previous is not None:
                if slot.start_minutes < previous.end_minutes:
                    result.add_error(
                        ScheduleIssue(
                            error_type=ValidationErrorType.SLOTS_OVERLAP,
                            message=f"Overlaps with job {previous.job_id}",
                            job_id=slot.job_id,
                        )
                    )
                elif slot.start_minutes < previous.end_minutes + buffer:
                    result.add_error(
                        ScheduleIssue(
                            error_type=ValidationErrorType.BUFFER_NOT_RESPECTED,
                            message=(
                                f"Starts {slot.start_minutes - previous.end_minutes} min "
                                f"after job {previous.job_id}, buffer is {buffer} min"
                            ),
                            job_id=slot.job_id,
                        )
                    )
            previous = slot

        break_start = schedule.metrics.break_start_minutes
        if break_start is not None:
            break_end = break_start + constraints.break_minutes
            for slot in schedule.ordered_slots:
                if slot.start_minutes < break_end and slot.end_minutes > break_start:
                    result.add_error(
                        ScheduleIssue(
                            error_type=ValidationErrorType.OVERLAPS_BREAK,
                            message=(
                                f"Runs into the break at {minutes_to_time(break_start):%H:%M}"
                            ),
                            job_id=slot.job_id,
                        )
                    )

        if not 0.0 <= schedule.efficiency_score <= 100.0:
            result.add_error(
                ScheduleIssue(
                    error_type=ValidationErrorType.SCORE_OUT_OF_RANGE,
                    message=f"Efficiency score {schedule.efficiency_score} outside 0-100",
                )
            )

        for violation in schedule.violations:
            result.add_warning(str(violation))

        return result

    def _validate_membership(
        self,
        schedule: OptimizedSchedule,
        jobs_by_id: dict[str, ScheduleJob],
        result: ValidationResult,
    ) -> None:
        """Every input job appears exactly once and nothing else does."""
        seen = set()
        for slot in schedule.ordered_slots:
            if slot.job_id in seen:
                result.add_error(
                    ScheduleIssue(
                        error_type=ValidationErrorType.DUPLICATE_JOB,
                        message="Scheduled more than once",
                        job_id=slot.job_id,
                    )
                )
            seen.add(slot.job_id)
            if slot.job_id not in jobs_by_id:
                result.add_error(
                    ScheduleIssue(
                        error_type=ValidationErrorType.UNKNOWN_JOB,
                        message="Scheduled but not among the input jobs",
                        job_id=slot.job_id,
                    )
                )

        for job_id in sorted(set(jobs_by_id) - seen):
            result.add_error(
                ScheduleIssue(
                    error_type=ValidationErrorType.MISSING_JOB,
                    message="Input job missing from the schedule",
                    job_id=job_id,
                )
            )

    def _validate_slot(self, slot, job, constraints, schedule, result) -> None:
        if slot.duration_minutes != job.duration_minutes:
            result.add_error(
                ScheduleIssue(
                    error_type=ValidationErrorType.WRONG_DURATION,
                    message=(
                        f"Slot lasts {slot.duration_minutes} min, job needs "
                        f"{job.duration_minutes} min"
                    ),
                    job_id=job.id,
                )
            )

        if slot.start_minutes < constraints.work_start_minutes:
            result.add_error(
                ScheduleIssue(
                    error_type=ValidationErrorType.STARTS_BEFORE_WORKDAY,
                    message="Starts before the workday",
                    job_id=job.id,
                )
            )
        if job.earliest_time is not None and slot.start_minutes < time_to_minutes(
            job.earliest_time
        ):
            result.add_error(
                ScheduleIssue(
                    error_type=ValidationErrorType.STARTS_BEFORE_EARLIEST,
                    message="Starts before its earliest time",
                    job_id=job.id,
                )
            )

        # Lateness and overtime must be reported, never hidden
        reported = {v.violation_type for v in schedule.violations_for(job.id)}
        if (
            job.latest_time is not None
            and slot.start_minutes > time_to_minutes(job.latest_time)
            and ViolationType.STARTS_AFTER_LATEST not in reported
        ):
            result.add_error(
                ScheduleIssue(
                    error_type=ValidationErrorType.UNREPORTED_VIOLATION,
                    message="Starts after its latest time without a reported violation",
                    job_id=job.id,
                )
            )
        if (
            slot.end_minutes > constraints.work_end_minutes
            and ViolationType.ENDS_AFTER_WORKDAY not in reported
        ):
            result.add_error(
                ScheduleIssue(
                    error_type=ValidationErrorType.UNREPORTED_VIOLATION,
                    message="Ends after the workday without a reported violation",
                    job_id=job.id,
                )
            )

    def validate_generated(
        self,
        series: RecurringSeries,
        instances: list[JobInstance],
    ) -> ValidationResult:
        """Validate instances generated for one series.

        Args:
            series: The series the instances belong to.
            instances: Stored or freshly generated instances of the series.

        Returns:
            ValidationResult; duplicates and out-of-range dates are errors.
        """
        result = ValidationResult()
        seen = set()

        for instance in instances:
            if instance.series_id != series.id:
                result.add_error(
                    ScheduleIssue(
                        error_type=ValidationErrorType.WRONG_SERIES,
                        message=f"Belongs to series {instance.series_id!r}, not {series.id!r}",
                        job_id=instance.id,
                    )
                )
                continue

            occurrence = instance.occurrence_date or instance.scheduled_date
            if occurrence in seen:
                result.add_error(
                    ScheduleIssue(
                        error_type=ValidationErrorType.DUPLICATE_OCCURRENCE,
                        message=f"Second instance for occurrence {occurrence.isoformat()}",
                        job_id=instance.id,
                        details={"occurrence_date": occurrence.isoformat()},
                    )
                )
            seen.add(occurrence)

            if occurrence < series.start_date or (
                series.end_date is not None and occurrence > series.end_date
            ):
                result.add_error(
                    ScheduleIssue(
                        error_type=ValidationErrorType.OCCURRENCE_OUTSIDE_SERIES,
                        message=f"Occurrence {occurrence.isoformat()} outside the series range",
                        job_id=instance.id,
                    )
                )

        if series.is_misconfigured:
            result.add_warning(f"Series {series.id} ends before it starts")
        return result

    def validate_event_order(self, events: list[CalendarEvent]) -> ValidationResult:
        """Check events are sorted by (date, time, id) without repeated IDs."""
        result = ValidationResult()
        seen = set()
        for before, after in zip(events, events[1:]):
            if after.sort_key < before.sort_key:
                result.add_error(
                    ScheduleIssue(
                        error_type=ValidationErrorType.EVENTS_NOT_SORTED,
                        message=f"Listed after {before.id} but sorts before it",
                        job_id=after.id,
                    )
                )
        for event in events:
            if event.id in seen:
                result.add_error(
                    ScheduleIssue(
                        error_type=ValidationErrorType.DUPLICATE_JOB,
                        message="Event listed more than once",
                        job_id=event.id,
                    )
                )
            seen.add(event.id)
        return result
