"""Recurring series expansion.

This module turns recurring series templates into concrete job instances:
1. Validate the request window and the series frequency
2. Walk the series' date grid from the cursor or window start
3. Create instances for dates that have none yet
4. Advance the series cursor with a compare-and-swap update

Generation for one series is serialized by a per-series lock. Locks are
held weakly and dropped once no call is using them. Instance
creation is dedup-checked against the job store independently of the
cursor, so a lost cursor update never duplicates instances.
"""

import logging
import threading
import weakref
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from enum import Enum
from typing import Optional

from fieldsched.domain.errors import ConfigurationWarning, ValidationError
from fieldsched.domain.frequency import nth_occurrence, occurrence_index_on_or_after
from fieldsched.domain.models import (
    Frequency,
    JobInstance,
    JobStatus,
    RecurringSeries,
)
from fieldsched.stores.base import CursorUpdate, JobStore, SeriesStore

logger = logging.getLogger(__name__)


class DeleteScope(Enum):
    """Which occurrences of a series a delete applies to."""

    SINGLE = "single"  # Only the chosen instance
    FUTURE = "future"  # The chosen instance and everything after it
    ALL = "all"  # Every instance, past and future


@dataclass
class ExpansionConfig:
    """Configuration for the expansion engine.

    Attributes:
        max_candidates_per_call: Upper bound on dates walked in one call.
            A call that hits it stops early; the cursor records how far it
            got and the next call resumes from there.
    """

    max_candidates_per_call: int = 5000


@dataclass
class GenerationResult:
    """Outcome of expanding one series over a window.

    Attributes:
        series_id: ID of the expanded series.
        instances: Instances created by this call.
        new_cursor: Series cursor after the call.
        warning: Set when the series is misconfigured.
        skipped_dates: Candidate dates that already had an instance.
        truncated: True if the call stopped at the candidate limit.
    """

    series_id: str
    instances: list[JobInstance] = field(default_factory=list)
    new_cursor: Optional[date] = None
    warning: Optional[ConfigurationWarning] = None
    skipped_dates: list[date] = field(default_factory=list)
    truncated: bool = False

    @property
    def created_count(self) -> int:
        return len(self.instances)


def instance_id_for(series_id: str, occurrence_date: date) -> str:
    """Deterministic instance ID for a series occurrence."""
    return f"{series_id}:{occurrence_date.isoformat()}"


def validate_window(window_start: date, window_end: date) -> None:
    """Reject malformed generation windows."""
    if not isinstance(window_start, date) or not isinstance(window_end, date):
        raise ValidationError(
            "Window bounds must be dates",
            field="window",
            value=(window_start, window_end),
        )
    if window_start > window_end:
        raise ValidationError(
            f"Window start {window_start} is after window end {window_end}",
            field="window",
            value=(window_start, window_end),
        )


class RecurrenceExpander:
    """Materializes job instances from recurring series.

    Example:
        >>> expander = RecurrenceExpander(job_store, series_store)
        >>> result = expander.generate_instances(
        ...     series, date(2024, 1, 1), date(2024, 1, 31)
        ... )
        >>> [i.scheduled_date.day for i in result.instances]
        [1, 8, 15, 22, 29]
    """

    def __init__(
        self,
        job_store: JobStore,
        series_store: SeriesStore,
        config: Optional[ExpansionConfig] = None,
    ):
        self.job_store = job_store
        self.series_store = series_store
        self.config = config or ExpansionConfig()
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()

    def _series_lock(self, series_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(series_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[series_id] = lock
            return lock

    def generate_instances(
        self,
        series: RecurringSeries,
        window_start: date,
        window_end: date,
    ) -> GenerationResult:
        """Create missing instances of a series inside a window.

        Args:
            series: The series to expand. Its cursor is updated in place.
            window_start: First date of the requested window.
            window_end: Last date of the requested window (inclusive).

        Returns:
            GenerationResult with the instances created by this call.

        Raises:
            ValidationError: If the window is malformed or the frequency
                is not recognized.
        """
        validate_window(window_start, window_end)
        frequency = Frequency.parse(series.frequency)

        if series.is_misconfigured:
            warning = ConfigurationWarning(
                series_id=series.id,
                message=(
                    f"End date {series.end_date} is before start date "
                    f"{series.start_date}; no instances generated"
                ),
                start_date=series.start_date,
                end_date=series.end_date,
            )
            logger.warning("Skipping misconfigured series: %s", warning)
            return GenerationResult(
                series_id=series.id,
                new_cursor=series.last_generated_date,
                warning=warning,
            )

        with self._series_lock(series.id):
            stored = self.series_store.get(series.id)
            if stored is None:
                logger.debug("Registering series %s with the series store", series.id)
                self.series_store.save(series)
                stored = series
            cursor = _later(stored.last_generated_date, series.last_generated_date)

            result = GenerationResult(series_id=series.id, new_cursor=cursor)
            if not series.is_active:
                logger.debug("Series %s is inactive; nothing to generate", series.id)
                return result

            effective_start = max(series.start_date, window_start)
            if cursor is not None:
                effective_start = max(effective_start, cursor + timedelta(days=1))
            limit = window_end
            if series.end_date is not None:
                limit = min(limit, series.end_date)

            latest = self._expand(series, frequency, effective_start, limit, result)

            if latest is not None and (cursor is None or latest > cursor):
                result.new_cursor = self._advance_cursor(series.id, latest)
            series.last_generated_date = result.new_cursor

        logger.info(
            "Series %s: created %d instance(s), skipped %d, cursor %s",
            series.id,
            result.created_count,
            len(result.skipped_dates),
            result.new_cursor,
        )
        return result

    def _expand(
        self,
        series: RecurringSeries,
        frequency: Frequency,
        effective_start: date,
        limit: date,
        result: GenerationResult,
    ) -> Optional[date]:
        """Walk the series grid and create missing instances.

        Returns:
            The latest candidate date processed, or None if there was none.
        """
        if effective_start > limit:
            return None

        index = occurrence_index_on_or_after(frequency, series.start_date, effective_start)
        candidate = nth_occurrence(frequency, series.start_date, index)
        latest = None
        processed = 0

        while candidate <= limit:
            if processed >= self.config.max_candidates_per_call:
                result.truncated = True
                logger.warning(
                    "Series %s: stopped after %d candidates at %s; "
                    "the next call resumes from the cursor",
                    series.id,
                    processed,
                    latest,
                )
                break

            if self.job_store.find_series_instance(series.id, candidate) is not None:
                logger.debug("Series %s: %s already has an instance", series.id, candidate)
                result.skipped_dates.append(candidate)
            else:
                instance = self._build_instance(series, candidate)
                try:
                    self.job_store.add(instance)
                except KeyError:
                    # created concurrently outside this process
                    result.skipped_dates.append(candidate)
                else:
                    result.instances.append(instance)

            latest = candidate
            processed += 1
            index += 1
            candidate = nth_occurrence(frequency, series.start_date, index)

        return latest

    def _build_instance(self, series: RecurringSeries, occurrence_date: date) -> JobInstance:
        return JobInstance(
            id=instance_id_for(series.id, occurrence_date),
            title=series.title,
            scheduled_date=occurrence_date,
            scheduled_time=series.scheduled_time,
            status=JobStatus.SCHEDULED,
            client_id=series.client_id,
            description=series.description,
            series_id=series.id,
            occurrence_date=occurrence_date,
            duration_minutes=series.duration_minutes,
            location=series.location,
        )

    def _advance_cursor(self, series_id: str, new_date: date) -> date:
        """Advance the stored cursor, accepting a newer concurrent value."""
        outcome = self.series_store.advance_cursor(series_id, new_date)
        if outcome is CursorUpdate.SUCCESS:
            return new_date

        current = self.series_store.get(series_id)
        stored_cursor = current.last_generated_date if current else None
        logger.info(
            "Series %s: cursor conflict advancing to %s; keeping newer %s",
            series_id,
            new_date,
            stored_cursor,
        )
        return _later(stored_cursor, new_date)

    def apply_series_edit(self, series: RecurringSeries, today: date) -> list[JobInstance]:
        """Save an edited template and copy its details onto upcoming instances.

        Instances dated on or after ``today`` that are not completed get
        the new title, description, time and duration. Past and completed
        instances are left alone.

        Args:
            series: The edited series.
            today: Reference date separating past from upcoming instances.

        Returns:
            The updated instances.
        """
        Frequency.parse(series.frequency)
        updated = []
        with self._series_lock(series.id):
            stored = self.series_store.get(series.id)
            if stored is not None:
                series.last_generated_date = _later(
                    stored.last_generated_date, series.last_generated_date
                )
            self.series_store.save(series)

            for instance in self.job_store.list_for_series(series.id):
                if instance.scheduled_date < today:
                    continue
                if instance.status is JobStatus.COMPLETED:
                    continue
                changed = replace(
                    instance,
                    title=series.title,
                    description=series.description,
                    scheduled_time=series.scheduled_time,
                    duration_minutes=series.duration_minutes,
                )
                self.job_store.update(changed)
                updated.append(changed)

        logger.info("Series %s: edit applied to %d upcoming instance(s)", series.id, len(updated))
        return updated

    def delete_occurrences(self, instance: JobInstance, scope: DeleteScope) -> int:
        """Delete one instance, it and later ones, or the whole series' instances.

        ``FUTURE`` also ends the series the day before the chosen
        occurrence, and ``ALL`` also deactivates it, so neither scope is
        refilled by a later expansion.

        Returns:
            Number of instances deleted.
        """
        scope = DeleteScope(scope)
        if instance.series_id is None or scope is DeleteScope.SINGLE:
            return self.job_store.delete([instance.id])

        series_id = instance.series_id
        pivot = instance.occurrence_date or instance.scheduled_date
        with self._series_lock(series_id):
            linked = self.job_store.list_for_series(series_id)
            if scope is DeleteScope.FUTURE:
                ids = [
                    i.id for i in linked if (i.occurrence_date or i.scheduled_date) >= pivot
                ]
            else:
                ids = [i.id for i in linked]
            deleted = self.job_store.delete(ids)

            series = self.series_store.get(series_id)
            if series is not None:
                if scope is DeleteScope.ALL or pivot <= series.start_date:
                    series.is_active = False
                else:
                    new_end = pivot - timedelta(days=1)
                    if series.end_date is None or series.end_date > new_end:
                        series.end_date = new_end
                self.series_store.save(series)

        logger.info(
            "Series %s: deleted %d instance(s) with scope %s", series_id, deleted, scope.value
        )
        return deleted

    def deactivate_series(self, series_id: str) -> Optional[RecurringSeries]:
        """Stop a series from producing new instances. Existing ones are kept."""
        with self._series_lock(series_id):
            series = self.series_store.get(series_id)
            if series is None:
                return None
            series.is_active = False
            self.series_store.save(series)
        logger.info("Series %s deactivated", series_id)
        return series


def _later(a: Optional[date], b: Optional[date]) -> Optional[date]:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def generate_instances(
    series: RecurringSeries,
    window_start: date,
    window_end: date,
    job_store: JobStore,
    series_store: SeriesStore,
) -> GenerationResult:
    """Expand a series over a window with a one-off expander.

    Per-series locking only covers calls made through the same expander;
    long-lived callers should keep one ``RecurrenceExpander`` around.
    """
    return RecurrenceExpander(job_store, series_store).generate_instances(
        series, window_start, window_end
    )
