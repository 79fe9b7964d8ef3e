"""Calendar views over jobs and recurring series."""

from fieldsched.calendar.aggregator import (
    CalendarAggregator,
    WindowFetchResult,
    fetch_window,
    filter_by_series,
    group_by_date,
    mark_highlighted,
    merge_events,
    upcoming_events,
)
from fieldsched.calendar.navigation import CalendarState
from fieldsched.calendar.window import compute_window, month_grid, shift_anchor

__all__ = [
    "CalendarAggregator",
    "CalendarState",
    "WindowFetchResult",
    "compute_window",
    "fetch_window",
    "filter_by_series",
    "group_by_date",
    "mark_highlighted",
    "merge_events",
    "month_grid",
    "shift_anchor",
    "upcoming_events",
]
