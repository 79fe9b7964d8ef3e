"""Recurring series expansion into dated job instances."""

from fieldsched.recurring.expander import (
    DeleteScope,
    ExpansionConfig,
    GenerationResult,
    RecurrenceExpander,
    generate_instances,
    instance_id_for,
)

__all__ = [
    "DeleteScope",
    "ExpansionConfig",
    "GenerationResult",
    "RecurrenceExpander",
    "generate_instances",
    "instance_id_for",
]
