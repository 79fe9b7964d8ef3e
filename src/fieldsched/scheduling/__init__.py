"""Daily schedule optimization: route ordering, slot packing and recommendations."""

from fieldsched.scheduling.cpsat_sequencer import (
    CPSATSequencer,
    SequencingResult,
    SolverConfig,
)
from fieldsched.scheduling.optimizer import (
    OptimizerConfig,
    ScheduleOptimizer,
    SequencingMode,
    optimize_schedule,
    schedule_fingerprint,
)
from fieldsched.scheduling.packer import PackingResult, SlotPacker, efficiency_score
from fieldsched.scheduling.recommendations import (
    NO_CHANGES_RECOMMENDATION,
    IdleGapRule,
    JobCountRule,
    LateUrgentRule,
    RecommendationContext,
    RecommendationEngine,
    RecommendationRule,
    TravelShareRule,
    ViolationRule,
    default_rules,
)
from fieldsched.scheduling.route import (
    RouteOrderer,
    earliest_start_minutes,
    leg_minutes,
    requested_start_minutes,
)

__all__ = [
    "CPSATSequencer",
    "SequencingResult",
    "SolverConfig",
    "OptimizerConfig",
    "ScheduleOptimizer",
    "SequencingMode",
    "optimize_schedule",
    "schedule_fingerprint",
    "PackingResult",
    "SlotPacker",
    "efficiency_score",
    "NO_CHANGES_RECOMMENDATION",
    "IdleGapRule",
    "JobCountRule",
    "LateUrgentRule",
    "RecommendationContext",
    "RecommendationEngine",
    "RecommendationRule",
    "TravelShareRule",
    "ViolationRule",
    "default_rules",
    "RouteOrderer",
    "earliest_start_minutes",
    "requested_start_minutes",
    "leg_minutes",
]
