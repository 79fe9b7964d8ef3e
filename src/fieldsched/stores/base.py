"""Storage interfaces consumed by the engine.

The engine never talks to a database directly. Whatever persists jobs and
series implements these two interfaces and owns its own timeouts and
retries.
"""

from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from typing import Iterable, Optional

from fieldsched.domain.models import JobInstance, RecurringSeries


class CursorUpdate(Enum):
    """Outcome of a compare-and-swap cursor advance."""

    SUCCESS = "success"
    CONFLICT = "conflict"  # stored cursor is already past the requested date


class JobStore(ABC):
    """Abstract base class for job instance storage."""

    @abstractmethod
    def range_query(self, start: date, end: date) -> list[JobInstance]:
        """Get all jobs scheduled in ``[start, end]``, standalone and series-linked."""
        pass

    @abstractmethod
    def find_series_instance(
        self,
        series_id: str,
        occurrence_date: date,
    ) -> Optional[JobInstance]:
        """Get the instance a series produced for a date, if it exists."""
        pass

    @abstractmethod
    def list_for_series(self, series_id: str) -> list[JobInstance]:
        """Get every instance linked to a series."""
        pass

    @abstractmethod
    def add(self, instance: JobInstance) -> None:
        """Store a new instance."""
        pass

    @abstractmethod
    def update(self, instance: JobInstance) -> None:
        """Replace a stored instance with the same ID."""
        pass

    @abstractmethod
    def delete(self, instance_ids: Iterable[str]) -> int:
        """Delete instances by ID.

        Returns:
            Number of instances deleted.
        """
        pass


class SeriesStore(ABC):
    """Abstract base class for recurring series storage."""

    @abstractmethod
    def get(self, series_id: str) -> Optional[RecurringSeries]:
        """Get a series by ID."""
        pass

    @abstractmethod
    def list_active(self, start: date, end: date) -> list[RecurringSeries]:
        """Get active series whose date range intersects ``[start, end]``."""
        pass

    @abstractmethod
    def save(self, series: RecurringSeries) -> None:
        """Insert or replace a series template."""
        pass

    @abstractmethod
    def advance_cursor(self, series_id: str, new_date: date) -> CursorUpdate:
        """Move a series' ``last_generated_date`` forward to ``new_date``.

        Returns:
            ``CONFLICT`` without changing anything if the stored cursor is
            already later than ``new_date``; ``SUCCESS`` otherwise.
        """
        pass
