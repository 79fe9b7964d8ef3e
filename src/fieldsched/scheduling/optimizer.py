"""Main schedule optimizer interface.

This module provides the high-level ScheduleOptimizer that orchestrates
route ordering, time-slot packing and recommendation rules for one
worker's day.
"""

import copy
import hashlib
import json
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import time
from enum import Enum
from typing import Optional

from fieldsched.domain.errors import ValidationError
from fieldsched.domain.models import OptimizedSchedule, ScheduleConstraints, ScheduleJob
from fieldsched.domain.policies import DefaultTravelPolicy, TravelPolicy
from fieldsched.scheduling.cpsat_sequencer import CPSATSequencer, SolverConfig
from fieldsched.scheduling.packer import PackingResult, SlotPacker
from fieldsched.scheduling.recommendations import (
    RecommendationContext,
    RecommendationEngine,
    RecommendationRule,
    default_rules,
)
from fieldsched.scheduling.route import RouteOrderer
from fieldsched.serialization import constraints_to_dict, schedule_job_to_dict

logger = logging.getLogger(__name__)


class SequencingMode(Enum):
    """How the route order is found."""

    GREEDY = "greedy"  # Nearest neighbour
    CPSAT = "cpsat"  # CP-SAT, greedy if the solver finds nothing
    HYBRID = "hybrid"  # Both; keep whichever packs better


@dataclass
class OptimizerConfig:
    """Configuration for the schedule optimizer.

    Attributes:
        sequencing_mode: How the route order is found.
        solver_config: CP-SAT settings, used by CPSAT and HYBRID modes.
        max_jobs_per_day: Job count above which a recommendation fires.
        travel_share_threshold: Share of the working day travel may take
            before a recommendation fires.
        idle_gap_threshold_minutes: Idle gap that triggers a recommendation.
        urgent_latest_start: Urgent jobs starting later trigger a recommendation.
        cache_size: Results memoized by input fingerprint (0 disables).
    """

    sequencing_mode: SequencingMode = SequencingMode.GREEDY
    solver_config: SolverConfig = field(default_factory=SolverConfig)
    max_jobs_per_day: int = 8
    travel_share_threshold: float = 0.25
    idle_gap_threshold_minutes: int = 60
    urgent_latest_start: time = time(12, 0)
    cache_size: int = 128


class ScheduleOptimizer:
    """Orders and packs one day's jobs.

    The optimizer is a pure function of its inputs: the same jobs and
    constraints always produce the same schedule, so results can be
    memoized and computed concurrently.

    Example:
        >>> optimizer = ScheduleOptimizer()
        >>> schedule = optimizer.optimize(jobs, ScheduleConstraints())
        >>> schedule.job_order
        ['J1', 'J2', 'J3']
    """

    def __init__(
        self,
        travel_policy: Optional[TravelPolicy] = None,
        config: Optional[OptimizerConfig] = None,
        rules: Optional[list[RecommendationRule]] = None,
    ):
        self.travel_policy = travel_policy or DefaultTravelPolicy()
        self.config = config or OptimizerConfig()

        self.orderer = RouteOrderer(self.travel_policy)
        self.packer = SlotPacker(self.travel_policy)
        self.sequencer = CPSATSequencer(self.travel_policy, self.config.solver_config)
        self.recommender = RecommendationEngine(
            rules
            if rules is not None
            else default_rules(
                travel_share_threshold=self.config.travel_share_threshold,
                idle_gap_threshold_minutes=self.config.idle_gap_threshold_minutes,
                max_jobs_per_day=self.config.max_jobs_per_day,
                urgent_latest_start=self.config.urgent_latest_start,
            )
        )

        self._cache: OrderedDict[str, OptimizedSchedule] = OrderedDict()
        self._cache_lock = threading.Lock()

    def optimize(
        self,
        jobs: list[ScheduleJob],
        constraints: Optional[ScheduleConstraints] = None,
    ) -> OptimizedSchedule:
        """Compute route order, time slots, score and recommendations.

        Args:
            jobs: The day's jobs for one worker.
            constraints: Workday bounds and travel buffer.

        Returns:
            OptimizedSchedule containing every job. Infeasible placements
            are listed in ``violations``, never dropped.

        Raises:
            ValidationError: If job IDs are duplicated.
        """
        constraints = constraints or ScheduleConstraints()
        _validate_jobs(jobs)

        key = None
        if self.config.cache_size > 0:
            key = schedule_fingerprint(jobs, constraints, self.config.sequencing_mode)
            with self._cache_lock:
                cached = self._cache.get(key)
                if cached is not None:
                    self._cache.move_to_end(key)
                    return copy.deepcopy(cached)

        schedule = self._optimize(jobs, constraints)

        if key is not None:
            with self._cache_lock:
                self._cache[key] = copy.deepcopy(schedule)
                while len(self._cache) > self.config.cache_size:
                    self._cache.popitem(last=False)
        return schedule

    def _optimize(
        self,
        jobs: list[ScheduleJob],
        constraints: ScheduleConstraints,
    ) -> OptimizedSchedule:
        mode = self.config.sequencing_mode
        method = SequencingMode.GREEDY.value
        packed = None

        if mode in (SequencingMode.CPSAT, SequencingMode.HYBRID):
            solved = self.sequencer.sequence(jobs, constraints)
            if solved.order is not None:
                packed = self.packer.pack(solved.order, constraints)
                method = SequencingMode.CPSAT.value
            elif solved.status != "SKIPPED":
                logger.warning(
                    "CP-SAT sequencing failed (%s); using greedy order", solved.status
                )

        if packed is None or mode is SequencingMode.HYBRID:
            greedy = self.packer.pack(self.orderer.order(jobs, constraints), constraints)
            if packed is None or _packs_better(greedy, packed):
                packed = greedy
                method = SequencingMode.GREEDY.value

        jobs_by_id = {job.id: job for job in jobs}
        recommendations = self.recommender.evaluate(
            RecommendationContext(
                metrics=packed.metrics,
                slots=packed.slots,
                violations=packed.violations,
                jobs=jobs_by_id,
            )
        )

        schedule = OptimizedSchedule(
            ordered_slots=packed.slots,
            efficiency_score=packed.efficiency_score,
            violations=packed.violations,
            recommendations=recommendations,
            metrics=packed.metrics,
            sequencing_method=method,
        )
        logger.info(
            "Optimized %d job(s) via %s: efficiency %.1f, %d violation(s)",
            len(jobs),
            method,
            schedule.efficiency_score,
            len(schedule.violations),
        )
        return schedule

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()


def _packs_better(candidate: PackingResult, incumbent: PackingResult) -> bool:
    """Fewer violations first, then higher efficiency, then earlier finish."""
    def rank(p: PackingResult):
        return (
            len(p.violations),
            -p.efficiency_score,
            p.metrics.last_end_minutes or 0,
        )

    return rank(candidate) <= rank(incumbent)


def _validate_jobs(jobs: list[ScheduleJob]) -> None:
    seen = set()
    for job in jobs:
        if not isinstance(job, ScheduleJob):
            raise ValidationError(f"Expected ScheduleJob, got {type(job).__name__}")
        if job.id in seen:
            raise ValidationError(f"Duplicate job id {job.id!r}", field="id", value=job.id)
        seen.add(job.id)


def schedule_fingerprint(
    jobs: list[ScheduleJob],
    constraints: ScheduleConstraints,
    mode: SequencingMode = SequencingMode.GREEDY,
) -> str:
    """SHA-256 of the canonical optimizer input."""
    payload = {
        "jobs": [schedule_job_to_dict(job) for job in jobs],
        "constraints": constraints_to_dict(constraints),
        "mode": mode.value,
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def optimize_schedule(
    jobs: list[ScheduleJob],
    constraints: Optional[ScheduleConstraints] = None,
    travel_policy: Optional[TravelPolicy] = None,
    config: Optional[OptimizerConfig] = None,
) -> OptimizedSchedule:
    """Optimize one day's jobs with a one-off optimizer."""
    return ScheduleOptimizer(travel_policy=travel_policy, config=config).optimize(
        jobs, constraints
    )
