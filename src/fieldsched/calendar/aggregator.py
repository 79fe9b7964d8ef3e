"""Calendar window aggregation.

Merges standalone jobs and recurring instances into one sorted list of
calendar events for a view. Expansion runs first so that any newly
materialized instances are part of the result.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional

from fieldsched.calendar.window import compute_window
from fieldsched.domain.errors import ConfigurationWarning
from fieldsched.domain.models import (
    CalendarEvent,
    CalendarWindow,
    JobInstance,
    JobStatus,
    ViewType,
)
from fieldsched.recurring.expander import RecurrenceExpander
from fieldsched.stores.base import JobStore, SeriesStore

logger = logging.getLogger(__name__)


@dataclass
class WindowFetchResult:
    """Events for a view plus anything worth flagging.

    Attributes:
        window: The date range that was fetched.
        events: Events sorted by (date, time).
        warnings: Misconfigured series found while expanding.
        generated_count: Instances materialized during this fetch.
    """

    window: CalendarWindow
    events: list[CalendarEvent] = field(default_factory=list)
    warnings: list[ConfigurationWarning] = field(default_factory=list)
    generated_count: int = 0


class CalendarAggregator:
    """Builds calendar views from stored jobs and recurring series.

    Example:
        >>> aggregator = CalendarAggregator(series_store, job_store)
        >>> events = aggregator.fetch_window(ViewType.MONTH, date(2024, 3, 15))
    """

    def __init__(
        self,
        series_store: SeriesStore,
        job_store: JobStore,
        expander: Optional[RecurrenceExpander] = None,
    ):
        self.series_store = series_store
        self.job_store = job_store
        self.expander = expander or RecurrenceExpander(job_store, series_store)

    def fetch_window(
        self,
        view_type: ViewType,
        anchor_date: date,
        highlight: Optional[str] = None,
    ) -> list[CalendarEvent]:
        """Get the sorted events for a view."""
        return self.fetch_window_with_warnings(view_type, anchor_date, highlight).events

    def fetch_window_with_warnings(
        self,
        view_type: ViewType,
        anchor_date: date,
        highlight: Optional[str] = None,
    ) -> WindowFetchResult:
        """Get the sorted events for a view and any series warnings.

        Args:
            view_type: View granularity.
            anchor_date: Date the view is built around.
            highlight: Recurring series whose events are marked highlighted.

        Returns:
            WindowFetchResult for the computed window.
        """
        window = compute_window(view_type, anchor_date)
        result = WindowFetchResult(window=window)

        generated: list[JobInstance] = []
        for series in self.series_store.list_active(window.start, window.end):
            expansion = self.expander.generate_instances(series, window.start, window.end)
            if expansion.warning is not None:
                result.warnings.append(expansion.warning)
            generated.extend(expansion.instances)
        result.generated_count = len(generated)

        stored = self.job_store.range_query(window.start, window.end)
        result.events = merge_events(stored, generated)
        if highlight is not None:
            result.events = mark_highlighted(result.events, highlight)

        logger.debug(
            "Window %s..%s: %d event(s), %d generated, %d warning(s)",
            window.start,
            window.end,
            len(result.events),
            result.generated_count,
            len(result.warnings),
        )
        return result


def merge_events(
    stored: list[JobInstance],
    generated: list[JobInstance],
) -> list[CalendarEvent]:
    """Merge job lists into sorted events, one event per instance ID."""
    by_id: dict[str, JobInstance] = {}
    for instance in generated:
        by_id[instance.id] = instance
    # stored copies win: they carry any manual edits
    for instance in stored:
        by_id[instance.id] = instance
    events = [CalendarEvent.from_instance(i) for i in by_id.values()]
    events.sort(key=lambda e: e.sort_key)
    return events


def fetch_window(
    view_type: ViewType,
    anchor_date: date,
    series_store: SeriesStore,
    job_store: JobStore,
) -> list[CalendarEvent]:
    """Get the sorted events for a view with a one-off aggregator."""
    return CalendarAggregator(series_store, job_store).fetch_window(view_type, anchor_date)


def filter_by_series(
    events: list[CalendarEvent],
    series_id: Optional[str],
) -> list[CalendarEvent]:
    """Events produced by one series. Order is preserved."""
    if series_id is None:
        return []
    return [e for e in events if e.recurring_series_id == series_id]


def mark_highlighted(
    events: list[CalendarEvent],
    series_id: Optional[str],
) -> list[CalendarEvent]:
    """Copy of ``events`` with ``highlighted`` set on one series' events."""
    return [
        replace(e, highlighted=series_id is not None and e.recurring_series_id == series_id)
        for e in events
    ]


def upcoming_events(
    events: list[CalendarEvent],
    today: date,
    limit: int = 5,
    include_cancelled: bool = False,
) -> list[CalendarEvent]:
    """The next ``limit`` events on or after ``today``."""
    upcoming = [
        e
        for e in events
        if e.date >= today and (include_cancelled or e.status is not JobStatus.CANCELLED)
    ]
    upcoming.sort(key=lambda e: e.sort_key)
    return upcoming[:limit]


def group_by_date(events: list[CalendarEvent]) -> dict[date, list[CalendarEvent]]:
    """Events keyed by date, each day's list sorted by time."""
    grouped: dict[date, list[CalendarEvent]] = defaultdict(list)
    for event in sorted(events, key=lambda e: e.sort_key):
        grouped[event.date].append(event)
    return dict(grouped)
