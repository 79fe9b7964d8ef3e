"""Time-slot packing for an ordered route.

Each job starts as early as the previous job, the travel buffer, the
workday and its own earliest time allow. Jobs that end up outside their
window or the workday are still scheduled and reported as violations.

An optional midday break is taken between the last job before
``break_after`` and the first job at or after it. The break is not
counted as idle time.
"""

from dataclasses import dataclass, field
from typing import Optional

from fieldsched.domain.models import (
    FeasibilityViolation,
    ScheduleConstraints,
    ScheduledSlot,
    ScheduleJob,
    ScheduleMetrics,
    ViolationType,
    minutes_to_time,
    time_to_minutes,
)
from fieldsched.domain.policies import DefaultTravelPolicy, TravelPolicy
from fieldsched.scheduling.route import earliest_start_minutes, leg_minutes


@dataclass
class PackingResult:
    """Packed slots for a route plus what went wrong."""

    slots: list[ScheduledSlot] = field(default_factory=list)
    violations: list[FeasibilityViolation] = field(default_factory=list)
    metrics: ScheduleMetrics = field(default_factory=ScheduleMetrics)

    @property
    def efficiency_score(self) -> float:
        return efficiency_score(
            self.metrics.total_work_minutes, self.metrics.total_travel_minutes
        )


def efficiency_score(work_minutes: int, travel_minutes: int) -> float:
    """Work share of work plus travel, as a 0-100 score with one decimal."""
    total = work_minutes + travel_minutes
    if total <= 0:
        return 0.0
    score = 100.0 * work_minutes / total
    return round(min(100.0, max(0.0, score)), 1)


class SlotPacker:
    """Assigns start and end times to jobs in route order."""

    def __init__(self, travel_policy: Optional[TravelPolicy] = None):
        self.travel_policy = travel_policy or DefaultTravelPolicy()

    def pack(
        self,
        route: list[ScheduleJob],
        constraints: ScheduleConstraints,
    ) -> PackingResult:
        """Pack a route into the working day.

        Args:
            route: Jobs in visiting order.
            constraints: Workday bounds and travel buffer.

        Returns:
            PackingResult with one slot per job, in route order.
        """
        result = PackingResult()
        buffer = constraints.travel_buffer_minutes
        work_end = constraints.work_end_minutes

        total_travel = 0
        total_km = 0.0
        largest_gap = 0
        largest_gap_before = None
        break_start: Optional[int] = None
        previous: Optional[ScheduleJob] = None
        previous_end: Optional[int] = None

        for position, job in enumerate(route):
            start = earliest_start_minutes(job, constraints)
            travel = 0
            if previous is not None:
                start = max(start, previous_end + buffer)
                travel = leg_minutes(self.travel_policy, previous, job, constraints)
                total_travel += travel
                km = self.travel_policy.estimate_km(previous.location, job.location)
                if km is not None:
                    total_km += km
                resting = 0
                if (
                    constraints.break_minutes > 0
                    and break_start is None
                    and start >= constraints.break_after_minutes
                ):
                    break_start = max(previous_end, constraints.break_after_minutes)
                    resting = constraints.break_minutes
                    start = max(start, break_start + resting)
                gap = max(0, start - previous_end - buffer - resting)
                if gap > largest_gap:
                    largest_gap = gap
                    largest_gap_before = job.id
            end = start + job.duration_minutes

            result.slots.append(
                ScheduledSlot(
                    job_id=job.id,
                    position=position,
                    start_minutes=start,
                    end_minutes=end,
                    travel_minutes=travel,
                )
            )
            result.violations.extend(self._check(job, start, end, work_end))

            previous = job
            previous_end = end

        result.metrics = ScheduleMetrics(
            job_count=len(route),
            total_work_minutes=sum(j.duration_minutes for j in route),
            total_travel_minutes=total_travel,
            working_minutes=constraints.working_minutes,
            first_start_minutes=result.slots[0].start_minutes if result.slots else None,
            last_end_minutes=result.slots[-1].end_minutes if result.slots else None,
            largest_gap_minutes=largest_gap,
            largest_gap_before=largest_gap_before,
            break_start_minutes=break_start,
            total_distance_km=round(total_km, 1),
        )
        return result

    def _check(
        self,
        job: ScheduleJob,
        start: int,
        end: int,
        work_end: int,
    ) -> list[FeasibilityViolation]:
        violations = []
        if job.latest_time is not None:
            latest = time_to_minutes(job.latest_time)
            if start > latest:
                violations.append(
                    FeasibilityViolation(
                        job_id=job.id,
                        violation_type=ViolationType.STARTS_AFTER_LATEST,
                        message=(
                            f"starts at {_fmt(start)}, after its latest start "
                            f"{_fmt(latest)}"
                        ),
                        scheduled_minutes=start,
                        limit_minutes=latest,
                    )
                )
        if end > work_end:
            violations.append(
                FeasibilityViolation(
                    job_id=job.id,
                    violation_type=ViolationType.ENDS_AFTER_WORKDAY,
                    message=f"ends at {_fmt(end)}, after the workday ends at {_fmt(work_end)}",
                    scheduled_minutes=end,
                    limit_minutes=work_end,
                )
            )
        return violations


def _fmt(minutes: int) -> str:
    return minutes_to_time(minutes).strftime("%H:%M")
