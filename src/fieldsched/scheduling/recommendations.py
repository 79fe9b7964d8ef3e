"""Rule-based schedule recommendations.

Every rule looks at the computed schedule and either returns one fixed,
templated sentence or nothing. The same schedule always yields the same
recommendations in the same order.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import time
from typing import Optional

from fieldsched.domain.models import (
    FeasibilityViolation,
    Priority,
    ScheduledSlot,
    ScheduleJob,
    ScheduleMetrics,
    minutes_to_time,
    time_to_minutes,
)

NO_CHANGES_RECOMMENDATION = "Schedule looks good; no changes recommended."


@dataclass
class RecommendationContext:
    """Everything a rule may look at."""

    metrics: ScheduleMetrics
    slots: list[ScheduledSlot] = field(default_factory=list)
    violations: list[FeasibilityViolation] = field(default_factory=list)
    jobs: dict[str, ScheduleJob] = field(default_factory=dict)


class RecommendationRule(ABC):
    """Abstract base class for a single recommendation rule."""

    @abstractmethod
    def evaluate(self, context: RecommendationContext) -> Optional[str]:
        """Return a recommendation, or None if the rule does not fire."""
        pass


class TravelShareRule(RecommendationRule):
    """Fires when travel eats too much of the working day."""

    def __init__(self, threshold: float = 0.25):
        self.threshold = threshold

    def evaluate(self, context: RecommendationContext) -> Optional[str]:
        if context.metrics.travel_share <= self.threshold:
            return None
        return (
            f"Total travel time of {context.metrics.total_travel_minutes} minutes exceeds "
            f"{self.threshold:.0%} of working time; consider grouping nearby jobs "
            f"on the same day."
        )


class ViolationRule(RecommendationRule):
    """Fires when any job falls outside its window or the workday."""

    def evaluate(self, context: RecommendationContext) -> Optional[str]:
        job_ids = sorted({v.job_id for v in context.violations})
        if not job_ids:
            return None
        return (
            f"{len(job_ids)} job(s) cannot be completed within their time windows "
            f"({', '.join(job_ids)}); consider moving them to another day or "
            f"extending working hours."
        )


class IdleGapRule(RecommendationRule):
    """Fires on a long wait between two consecutive jobs."""

    def __init__(self, threshold_minutes: int = 60):
        self.threshold_minutes = threshold_minutes

    def evaluate(self, context: RecommendationContext) -> Optional[str]:
        gap = context.metrics.largest_gap_minutes
        if gap < self.threshold_minutes or context.metrics.largest_gap_before is None:
            return None
        return (
            f"There is an idle gap of {gap} minutes before job "
            f"{context.metrics.largest_gap_before}; consider filling it with a "
            f"short job."
        )


class JobCountRule(RecommendationRule):
    """Fires when the day holds more jobs than recommended."""

    def __init__(self, max_jobs: int = 8):
        self.max_jobs = max_jobs

    def evaluate(self, context: RecommendationContext) -> Optional[str]:
        if context.metrics.job_count <= self.max_jobs:
            return None
        return (
            f"The day has {context.metrics.job_count} jobs, above the recommended "
            f"maximum of {self.max_jobs}; consider spreading them over more days."
        )


class LateUrgentRule(RecommendationRule):
    """Fires when an urgent job starts after a cutoff."""

    def __init__(self, latest_start: time = time(12, 0)):
        self.latest_start = latest_start

    def evaluate(self, context: RecommendationContext) -> Optional[str]:
        cutoff = time_to_minutes(self.latest_start)
        late = [
            slot
            for slot in context.slots
            if slot.start_minutes > cutoff
            and slot.job_id in context.jobs
            and context.jobs[slot.job_id].priority is Priority.URGENT
        ]
        if not late:
            return None
        first = late[0]
        return (
            f"Urgent job {first.job_id} starts at {first.start_time.strftime('%H:%M')}, "
            f"after {minutes_to_time(cutoff).strftime('%H:%M')}; consider scheduling "
            f"urgent work earlier in the day."
        )


def default_rules(
    travel_share_threshold: float = 0.25,
    idle_gap_threshold_minutes: int = 60,
    max_jobs_per_day: int = 8,
    urgent_latest_start: time = time(12, 0),
) -> list[RecommendationRule]:
    """The standard rule set, in output order."""
    return [
        ViolationRule(),
        TravelShareRule(travel_share_threshold),
        LateUrgentRule(urgent_latest_start),
        IdleGapRule(idle_gap_threshold_minutes),
        JobCountRule(max_jobs_per_day),
    ]


class RecommendationEngine:
    """Evaluates rules in order and collects the ones that fire."""

    def __init__(self, rules: Optional[list[RecommendationRule]] = None):
        self.rules = rules if rules is not None else default_rules()

    def evaluate(self, context: RecommendationContext) -> list[str]:
        recommendations = []
        for rule in self.rules:
            text = rule.evaluate(context)
            if text:
                recommendations.append(text)
        if not recommendations and context.metrics.job_count > 0:
            recommendations.append(NO_CHANGES_RECOMMENDATION)
        return recommendations
