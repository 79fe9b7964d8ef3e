"""Storage interfaces and in-memory implementations."""

from fieldsched.stores.base import CursorUpdate, JobStore, SeriesStore
from fieldsched.stores.memory import InMemoryJobStore, InMemorySeriesStore

__all__ = [
    "CursorUpdate",
    "JobStore",
    "SeriesStore",
    "InMemoryJobStore",
    "InMemorySeriesStore",
]
