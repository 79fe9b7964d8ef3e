"""OR-Tools CP-SAT route sequencing.

This module finds a visiting order for one worker's day by constraint
programming. The route is modelled as a circuit through a depot node;
each job gets a start variable tied to its predecessor through the
travel buffer. The objective penalizes window and workday violations
first, travel second, and late starts of important jobs last.

The solver only chooses the order. Times are packed afterwards by the
same packer the greedy path uses, so both paths report identical
feasibility semantics.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ortools.sat.python import cp_model

from fieldsched.domain.models import (
    MINUTES_PER_DAY,
    ScheduleConstraints,
    ScheduleJob,
    time_to_minutes,
)
from fieldsched.domain.policies import DefaultTravelPolicy, TravelPolicy
from fieldsched.scheduling.route import earliest_start_minutes, leg_minutes

logger = logging.getLogger(__name__)


@dataclass
class SolverConfig:
    """Configuration for the CP-SAT sequencer.

    Attributes:
        time_limit_seconds: Maximum solver runtime.
        num_workers: Parallel search workers. 1 keeps results reproducible.
        random_seed: Solver seed.
        violation_weight: Cost per minute of lateness or overtime.
        travel_weight: Cost per minute of travel.
        priority_weight: Cost per minute a job starts after the workday
            begins, scaled by priority (urgent counts most).
        max_jobs: Larger job lists are left to the greedy orderer.
    """

    time_limit_seconds: float = 5.0
    num_workers: int = 1
    random_seed: int = 0
    violation_weight: int = 1000
    travel_weight: int = 10
    priority_weight: int = 1
    max_jobs: int = 12


@dataclass
class SequencingResult:
    """Result from the CP-SAT sequencer.

    Attributes:
        order: Jobs in route order, or None if no solution was found.
        status: Solver status (OPTIMAL, FEASIBLE, SKIPPED, etc.).
        objective_value: Final objective value.
        solve_time_seconds: Time taken to solve.
    """

    order: Optional[list[ScheduleJob]]
    status: str
    objective_value: int = 0
    solve_time_seconds: float = 0.0

    @property
    def is_optimal(self) -> bool:
        return self.status == "OPTIMAL"

    @property
    def is_feasible(self) -> bool:
        return self.status in ("OPTIMAL", "FEASIBLE")


_STATUS_NAMES = {
    cp_model.OPTIMAL: "OPTIMAL",
    cp_model.FEASIBLE: "FEASIBLE",
    cp_model.INFEASIBLE: "INFEASIBLE",
    cp_model.MODEL_INVALID: "MODEL_INVALID",
    cp_model.UNKNOWN: "UNKNOWN",
}

# Importance multipliers by priority rank (urgent first)
_PRIORITY_FACTOR = {0: 4, 1: 3, 2: 2, 3: 1}


class CPSATSequencer:
    """Exact route ordering for small job lists using OR-Tools CP-SAT."""

    def __init__(
        self,
        travel_policy: Optional[TravelPolicy] = None,
        config: Optional[SolverConfig] = None,
    ):
        self.travel_policy = travel_policy or DefaultTravelPolicy()
        self.config = config or SolverConfig()

    def sequence(
        self,
        jobs: list[ScheduleJob],
        constraints: ScheduleConstraints,
    ) -> SequencingResult:
        """Find a visiting order for ``jobs``.

        Args:
            jobs: The day's jobs.
            constraints: Workday bounds and travel buffer.

        Returns:
            SequencingResult with the order, or ``order=None`` when the
            list is too large or the solver found nothing.
        """
        if not jobs:
            return SequencingResult(order=[], status="OPTIMAL")
        if len(jobs) > self.config.max_jobs:
            logger.info(
                "Skipping CP-SAT for %d jobs (limit %d)", len(jobs), self.config.max_jobs
            )
            return SequencingResult(order=None, status="SKIPPED")

        model = cp_model.CpModel()
        n = len(jobs)
        horizon = 2 * MINUTES_PER_DAY
        buffer = constraints.travel_buffer_minutes
        work_start = constraints.work_start_minutes
        work_end = constraints.work_end_minutes

        # Node 0 is the depot; job k is node k + 1
        starts = []
        for k, job in enumerate(jobs):
            starts.append(
                model.NewIntVar(earliest_start_minutes(job, constraints), horizon, f"start_{k}")
            )

        arcs = []
        arc_vars: dict[tuple[int, int], cp_model.IntVar] = {}
        travel_terms = []
        for i in range(n + 1):
            for j in range(n + 1):
                if i == j:
                    continue
                lit = model.NewBoolVar(f"arc_{i}_{j}")
                arcs.append((i, j, lit))
                arc_vars[(i, j)] = lit
                if i > 0 and j > 0:
                    prev_job, next_job = jobs[i - 1], jobs[j - 1]
                    model.Add(
                        starts[j - 1] >= starts[i - 1] + prev_job.duration_minutes + buffer
                    ).OnlyEnforceIf(lit)
                    travel = leg_minutes(self.travel_policy, prev_job, next_job, constraints)
                    if travel:
                        travel_terms.append(lit * travel)
        model.AddCircuit(arcs)

        # Lateness past each job's latest start and overtime past the workday
        violation_terms = []
        priority_terms = []
        for k, job in enumerate(jobs):
            if job.latest_time is not None:
                late = model.NewIntVar(0, horizon, f"late_{k}")
                model.Add(late >= starts[k] - time_to_minutes(job.latest_time))
                violation_terms.append(late)
            over = model.NewIntVar(0, horizon, f"over_{k}")
            model.Add(over >= starts[k] + job.duration_minutes - work_end)
            violation_terms.append(over)
            priority_terms.append(
                (starts[k] - work_start) * _PRIORITY_FACTOR[job.priority.rank]
            )

        model.Minimize(
            self.config.violation_weight * sum(violation_terms)
            + self.config.travel_weight * sum(travel_terms)
            + self.config.priority_weight * sum(priority_terms)
        )

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = self.config.time_limit_seconds
        solver.parameters.num_workers = max(1, self.config.num_workers)
        solver.parameters.random_seed = self.config.random_seed

        status = solver.Solve(model)
        status_name = _STATUS_NAMES.get(status, "UNKNOWN")

        if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            logger.warning("CP-SAT sequencing returned status %s", status_name)
            return SequencingResult(
                order=None,
                status=status_name,
                solve_time_seconds=solver.WallTime(),
            )

        successor = {}
        for (i, j), lit in arc_vars.items():
            if solver.BooleanValue(lit):
                successor[i] = j
        order = []
        node = successor[0]
        while node != 0:
            order.append(jobs[node - 1])
            node = successor[node]

        logger.debug(
            "CP-SAT sequencing %s in %.2fs, objective %s",
            status_name,
            solver.WallTime(),
            solver.ObjectiveValue(),
        )
        return SequencingResult(
            order=order,
            status=status_name,
            objective_value=int(solver.ObjectiveValue()),
            solve_time_seconds=solver.WallTime(),
        )
