"""Domain models for the scheduling engine.

This module contains the core data structures shared by the expansion
engine, the calendar aggregator and the schedule optimizer: recurring
series, job instances, calendar windows and events, and the optimizer's
request and result types.
"""

from dataclasses import dataclass, field
from datetime import date, time, timedelta
from enum import Enum
from typing import Optional

from fieldsched.domain.errors import ValidationError

MINUTES_PER_DAY = 24 * 60


def time_to_minutes(t: time) -> int:
    """Minutes from midnight for a time of day."""
    return t.hour * 60 + t.minute


def minutes_to_time(minutes: int) -> time:
    """Time of day for minutes from midnight (wraps past midnight)."""
    hours, mins = divmod(minutes % MINUTES_PER_DAY, 60)
    return time(hour=hours, minute=mins)


class _ParseableEnum(Enum):
    """Enum that converts raw strings and rejects unknown values."""

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationError(
                f"Unrecognized {cls.__name__} value {value!r} (expected one of: {allowed})",
                field=cls.__name__,
                value=value,
            ) from None


class Frequency(_ParseableEnum):
    """How often a recurring series repeats."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi_weekly"
    MONTHLY = "monthly"


class JobStatus(_ParseableEnum):
    """Lifecycle status of a job."""

    ENQUIRY = "enquiry"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Priority(_ParseableEnum):
    """Job priority for route ordering."""

    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank, 0 is the most important."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.URGENT: 0,
    Priority.HIGH: 1,
    Priority.NORMAL: 2,
    Priority.LOW: 3,
}


class ViewType(_ParseableEnum):
    """Calendar view granularity."""

    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


@dataclass(frozen=True)
class Location:
    """Where a job takes place.

    Attributes:
        address: Free-form address, also used as travel-matrix key.
        latitude: Latitude in decimal degrees, if geocoded.
        longitude: Longitude in decimal degrees, if geocoded.
    """

    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass
class RecurringSeries:
    """Template from which dated job instances are generated.

    Attributes:
        id: Unique identifier for the series.
        client_id: Client the jobs are for.
        title: Title copied into each instance.
        frequency: Repeat frequency.
        start_date: First occurrence; anchors the series grid.
        scheduled_time: Time of day copied into each instance.
        description: Description copied into each instance.
        end_date: Last date an occurrence may fall on (inclusive), if any.
        is_active: Inactive series produce no new instances.
        last_generated_date: Cursor; latest date already materialized.
        duration_minutes: Expected job duration copied into each instance.
        location: Job location copied into each instance.
    """

    id: str
    client_id: str
    title: str
    frequency: Frequency
    start_date: date
    scheduled_time: time
    description: str = ""
    end_date: Optional[date] = None
    is_active: bool = True
    last_generated_date: Optional[date] = None
    duration_minutes: int = 60
    location: Optional[Location] = None

    @property
    def is_misconfigured(self) -> bool:
        """True when the series ends before it starts."""
        return self.end_date is not None and self.end_date < self.start_date

    def intersects(self, start: date, end: date) -> bool:
        """Check if the series' date range overlaps ``[start, end]``."""
        if self.start_date > end:
            return False
        if self.end_date is not None and self.end_date < start:
            return False
        return True


@dataclass
class JobInstance:
    """A concrete, dated job, either standalone or produced by a series.

    Attributes:
        id: Unique identifier.
        title: Job title.
        scheduled_date: Date the job is scheduled on.
        scheduled_time: Time of day the job starts.
        status: Current job status.
        client_id: Client the job is for.
        description: Job description.
        series_id: Originating series, None for standalone jobs.
        occurrence_date: Date the series produced this instance for. Stays
            fixed when the instance is rescheduled.
        duration_minutes: Expected duration.
        location: Job location.
    """

    id: str
    title: str
    scheduled_date: date
    scheduled_time: time
    status: JobStatus = JobStatus.SCHEDULED
    client_id: Optional[str] = None
    description: str = ""
    series_id: Optional[str] = None
    occurrence_date: Optional[date] = None
    duration_minutes: int = 60
    location: Optional[Location] = None

    @property
    def is_recurring(self) -> bool:
        return self.series_id is not None

    @property
    def sort_key(self) -> tuple[date, time, str]:
        return (self.scheduled_date, self.scheduled_time, self.id)


@dataclass(frozen=True)
class CalendarWindow:
    """Inclusive date range shown by a calendar view.

    Attributes:
        start: First date in the window.
        end: Last date in the window (inclusive).
    """

    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ValidationError(
                f"Window end {self.end} is before start {self.start}",
                field="end",
                value=self.end,
            )

    @property
    def num_days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end

    def dates(self) -> list[date]:
        """All dates in the window."""
        return [self.start + timedelta(days=i) for i in range(self.num_days)]


@dataclass(frozen=True)
class CalendarEvent:
    """A job as shown on the calendar.

    Attributes:
        id: Job instance ID.
        title: Job title.
        date: Scheduled date.
        time: Scheduled time of day.
        status: Job status.
        client_id: Client the job is for.
        is_recurring: True if the job came from a series.
        recurring_series_id: Originating series, if any.
        highlighted: Set by the highlight helper; never by fetching.
    """

    id: str
    title: str
    date: date
    time: time
    status: JobStatus
    client_id: Optional[str] = None
    is_recurring: bool = False
    recurring_series_id: Optional[str] = None
    highlighted: bool = False

    @classmethod
    def from_instance(cls, instance: JobInstance) -> "CalendarEvent":
        return cls(
            id=instance.id,
            title=instance.title,
            date=instance.scheduled_date,
            time=instance.scheduled_time,
            status=instance.status,
            client_id=instance.client_id,
            is_recurring=instance.is_recurring,
            recurring_series_id=instance.series_id,
        )

    @property
    def sort_key(self) -> tuple[date, time, str]:
        return (self.date, self.time, self.id)


@dataclass(frozen=True)
class ScheduleJob:
    """One job to place in a day's route.

    Attributes:
        id: Job identifier.
        duration_minutes: Time on site.
        priority: Job priority.
        location: Where the job is, for travel estimates.
        earliest_time: Earliest allowed start (None = work start).
        latest_time: Latest allowed start (None = no limit).
        title: Display title.
    """

    id: str
    duration_minutes: int
    priority: Priority = Priority.NORMAL
    location: Optional[Location] = None
    earliest_time: Optional[time] = None
    latest_time: Optional[time] = None
    title: str = ""

    def __post_init__(self):
        if self.duration_minutes < 0:
            raise ValidationError(
                f"Job {self.id} has negative duration {self.duration_minutes}",
                field="duration_minutes",
                value=self.duration_minutes,
            )
        if not isinstance(self.priority, Priority):
            object.__setattr__(self, "priority", Priority.parse(self.priority))
        if (
            self.earliest_time is not None
            and self.latest_time is not None
            and self.latest_time < self.earliest_time
        ):
            raise ValidationError(
                f"Job {self.id} latest time {self.latest_time} is before "
                f"earliest time {self.earliest_time}",
                field="latest_time",
                value=self.latest_time,
            )


@dataclass(frozen=True)
class ScheduleConstraints:
    """Workday bounds and travel allowance for a day's route.

    Attributes:
        work_start: Start of the working day.
        work_end: End of the working day.
        travel_buffer_minutes: Minimum gap between consecutive jobs.
        break_minutes: Length of the midday break (0 for none).
        break_after: The break is taken before the first job that would
            start at or after this time.
    """

    work_start: time = time(8, 0)
    work_end: time = time(18, 0)
    travel_buffer_minutes: int = 15
    break_minutes: int = 0
    break_after: time = time(12, 0)

    def __post_init__(self):
        if self.work_end <= self.work_start:
            raise ValidationError(
                f"Work end {self.work_end} must be after work start {self.work_start}",
                field="work_end",
                value=self.work_end,
            )
        if self.travel_buffer_minutes < 0:
            raise ValidationError(
                "Travel buffer cannot be negative",
                field="travel_buffer_minutes",
                value=self.travel_buffer_minutes,
            )
        if self.break_minutes < 0:
            raise ValidationError(
                "Break length cannot be negative",
                field="break_minutes",
                value=self.break_minutes,
            )

    @property
    def work_start_minutes(self) -> int:
        return time_to_minutes(self.work_start)

    @property
    def work_end_minutes(self) -> int:
        return time_to_minutes(self.work_end)

    @property
    def working_minutes(self) -> int:
        """Length of the working day in minutes."""
        return self.work_end_minutes - self.work_start_minutes

    @property
    def break_after_minutes(self) -> int:
        return time_to_minutes(self.break_after)


@dataclass(frozen=True)
class ScheduledSlot:
    """A job's packed position in the day.

    Attributes:
        job_id: ID of the scheduled job.
        position: Zero-based position in the route.
        start_minutes: Minutes from midnight when the job starts.
        end_minutes: Minutes from midnight when the job ends.
        travel_minutes: Estimated travel from the previous stop (0 for first).
    """

    job_id: str
    position: int
    start_minutes: int
    end_minutes: int
    travel_minutes: int = 0

    @property
    def start_time(self) -> time:
        return minutes_to_time(self.start_minutes)

    @property
    def end_time(self) -> time:
        return minutes_to_time(self.end_minutes)

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def __repr__(self) -> str:
        return (
            f"ScheduledSlot({self.job_id} "
            f"{self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')})"
        )


class ViolationType(Enum):
    """Ways a packed job can fall outside its allowed bounds."""

    STARTS_AFTER_LATEST = "starts_after_latest"
    ENDS_AFTER_WORKDAY = "ends_after_workday"


@dataclass(frozen=True)
class FeasibilityViolation:
    """A job scheduled outside its window or the workday. Informational."""

    job_id: str
    violation_type: ViolationType
    message: str
    scheduled_minutes: int
    limit_minutes: int

    def __str__(self) -> str:
        return f"[{self.violation_type.value}] Job {self.job_id}: {self.message}"


@dataclass(frozen=True)
class ScheduleMetrics:
    """Aggregate figures for an optimized day.

    Attributes:
        job_count: Number of jobs placed.
        total_work_minutes: Sum of job durations.
        total_travel_minutes: Sum of travel between consecutive stops.
        working_minutes: Length of the working day.
        first_start_minutes: Start of the first job (None if empty).
        last_end_minutes: End of the last job (None if empty).
        largest_gap_minutes: Largest idle gap between consecutive jobs.
        largest_gap_before: Job ID that follows the largest gap.
        break_start_minutes: When the midday break began (None if not taken).
        total_distance_km: Straight-line distance over legs with known
            coordinates.
    """

    job_count: int = 0
    total_work_minutes: int = 0
    total_travel_minutes: int = 0
    working_minutes: int = 0
    first_start_minutes: Optional[int] = None
    last_end_minutes: Optional[int] = None
    largest_gap_minutes: int = 0
    largest_gap_before: Optional[str] = None
    break_start_minutes: Optional[int] = None
    total_distance_km: float = 0.0

    @property
    def travel_share(self) -> float:
        """Travel time as a fraction of the working day."""
        if self.working_minutes <= 0:
            return 0.0
        return self.total_travel_minutes / self.working_minutes


@dataclass
class OptimizedSchedule:
    """Result of optimizing one day's route.

    Attributes:
        ordered_slots: Jobs in route order with packed times.
        efficiency_score: Work share of work plus travel, 0-100.
        violations: Jobs placed outside their bounds.
        recommendations: Human-readable suggestions.
        metrics: Figures the score and recommendations were computed from.
        sequencing_method: How the route order was found.
    """

    ordered_slots: list[ScheduledSlot] = field(default_factory=list)
    efficiency_score: float = 0.0
    violations: list[FeasibilityViolation] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    metrics: ScheduleMetrics = field(default_factory=ScheduleMetrics)
    sequencing_method: str = "greedy"

    @property
    def is_feasible(self) -> bool:
        return not self.violations

    @property
    def job_order(self) -> list[str]:
        return [slot.job_id for slot in self.ordered_slots]

    def get_slot(self, job_id: str) -> Optional[ScheduledSlot]:
        for slot in self.ordered_slots:
            if slot.job_id == job_id:
                return slot
        return None

    def violations_for(self, job_id: str) -> list[FeasibilityViolation]:
        return [v for v in self.violations if v.job_id == job_id]
