"""Thread-safe in-memory stores.

Used by the CLI and tests, and as a reference for real implementations.
Objects are copied on the way in and out so callers cannot change stored
state without going through ``update``/``save``.
"""

import threading
from dataclasses import replace
from datetime import date
from typing import Iterable, Optional

from fieldsched.domain.models import JobInstance, RecurringSeries
from fieldsched.stores.base import CursorUpdate, JobStore, SeriesStore


class InMemoryJobStore(JobStore):
    """Job store backed by a dict keyed by instance ID."""

    def __init__(self, instances: Optional[Iterable[JobInstance]] = None):
        self._lock = threading.Lock()
        self._instances: dict[str, JobInstance] = {}
        for instance in instances or []:
            self.add(instance)

    def __len__(self) -> int:
        with self._lock:
            return len(self._instances)

    def get(self, instance_id: str) -> Optional[JobInstance]:
        with self._lock:
            instance = self._instances.get(instance_id)
            return replace(instance) if instance else None

    def all(self) -> list[JobInstance]:
        with self._lock:
            instances = [replace(i) for i in self._instances.values()]
        return sorted(instances, key=lambda i: i.sort_key)

    def range_query(self, start: date, end: date) -> list[JobInstance]:
        with self._lock:
            found = [
                replace(i)
                for i in self._instances.values()
                if start <= i.scheduled_date <= end
            ]
        return sorted(found, key=lambda i: i.sort_key)

    def find_series_instance(
        self,
        series_id: str,
        occurrence_date: date,
    ) -> Optional[JobInstance]:
        with self._lock:
            for instance in self._instances.values():
                if (
                    instance.series_id == series_id
                    and instance.occurrence_date == occurrence_date
                ):
                    return replace(instance)
        return None

    def list_for_series(self, series_id: str) -> list[JobInstance]:
        with self._lock:
            found = [
                replace(i) for i in self._instances.values() if i.series_id == series_id
            ]
        return sorted(found, key=lambda i: i.sort_key)

    def add(self, instance: JobInstance) -> None:
        with self._lock:
            if instance.id in self._instances:
                raise KeyError(f"Instance {instance.id} already exists")
            self._instances[instance.id] = replace(instance)

    def update(self, instance: JobInstance) -> None:
        with self._lock:
            if instance.id not in self._instances:
                raise KeyError(f"Unknown instance {instance.id}")
            self._instances[instance.id] = replace(instance)

    def delete(self, instance_ids: Iterable[str]) -> int:
        deleted = 0
        with self._lock:
            for instance_id in instance_ids:
                if self._instances.pop(instance_id, None) is not None:
                    deleted += 1
        return deleted


class InMemorySeriesStore(SeriesStore):
    """Series store backed by a dict keyed by series ID."""

    def __init__(self, series: Optional[Iterable[RecurringSeries]] = None):
        self._lock = threading.Lock()
        self._series: dict[str, RecurringSeries] = {}
        for s in series or []:
            self.save(s)

    def get(self, series_id: str) -> Optional[RecurringSeries]:
        with self._lock:
            series = self._series.get(series_id)
            return replace(series) if series else None

    def list_active(self, start: date, end: date) -> list[RecurringSeries]:
        with self._lock:
            found = [
                replace(s)
                for s in self._series.values()
                if s.is_active and s.intersects(start, end)
            ]
        return sorted(found, key=lambda s: s.id)

    def save(self, series: RecurringSeries) -> None:
        with self._lock:
            self._series[series.id] = replace(series)

    def advance_cursor(self, series_id: str, new_date: date) -> CursorUpdate:
        with self._lock:
            series = self._series.get(series_id)
            if series is None:
                raise KeyError(f"Unknown series {series_id}")
            current = series.last_generated_date
            if current is not None and current > new_date:
                return CursorUpdate.CONFLICT
            self._series[series_id] = replace(series, last_generated_date=new_date)
            return CursorUpdate.SUCCESS
