"""Greedy route ordering.

Nearest-neighbour ordering for one worker's day. Not globally optimal,
but deterministic and fast for the tens of jobs a day holds.
"""

from typing import Optional

from fieldsched.domain.models import ScheduleConstraints, ScheduleJob, time_to_minutes
from fieldsched.domain.policies import DefaultTravelPolicy, TravelPolicy


def earliest_start_minutes(job: ScheduleJob, constraints: ScheduleConstraints) -> int:
    """Earliest minute a job may start, never before the workday."""
    if job.earliest_time is None:
        return constraints.work_start_minutes
    return max(constraints.work_start_minutes, time_to_minutes(job.earliest_time))


def requested_start_minutes(job: ScheduleJob, constraints: ScheduleConstraints) -> int:
    """Earliest time the job asks for, unclamped; the workday start if it asks for none."""
    if job.earliest_time is None:
        return constraints.work_start_minutes
    return time_to_minutes(job.earliest_time)


def leg_minutes(
    policy: TravelPolicy,
    origin: ScheduleJob,
    destination: ScheduleJob,
    constraints: ScheduleConstraints,
) -> int:
    """Travel estimate between two jobs; the travel buffer stands in when unknown."""
    estimate = policy.estimate_minutes(origin.location, destination.location)
    if estimate is None:
        return constraints.travel_buffer_minutes
    return estimate


class RouteOrderer:
    """Orders a day's jobs by nearest neighbour.

    The route starts with the job that asks for the earliest start (ties:
    higher priority, then lowest ID). Requested times before the workday
    still rank ahead of later ones. Each following stop is the unplaced job
    closest to the last one (ties: higher priority, then earlier start
    preference, then lowest ID).
    """

    def __init__(self, travel_policy: Optional[TravelPolicy] = None):
        self.travel_policy = travel_policy or DefaultTravelPolicy()

    def order(
        self,
        jobs: list[ScheduleJob],
        constraints: ScheduleConstraints,
    ) -> list[ScheduleJob]:
        """Return ``jobs`` in route order."""
        if not jobs:
            return []

        remaining = list(jobs)
        first = min(
            remaining,
            key=lambda j: (requested_start_minutes(j, constraints), j.priority.rank, j.id),
        )
        route = [first]
        remaining.remove(first)

        while remaining:
            last = route[-1]
            nearest = min(
                remaining,
                key=lambda j: (
                    leg_minutes(self.travel_policy, last, j, constraints),
                    j.priority.rank,
                    requested_start_minutes(j, constraints),
                    j.id,
                ),
            )
            route.append(nearest)
            remaining.remove(nearest)

        return route
