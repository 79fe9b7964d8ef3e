"""Tests for calendar windows, navigation and aggregation."""

from dataclasses import replace
from datetime import date, time

import pytest

from fieldsched.calendar.aggregator import (
    CalendarAggregator,
    fetch_window,
    filter_by_series,
    group_by_date,
    mark_highlighted,
    merge_events,
    upcoming_events,
)
from fieldsched.calendar.navigation import CalendarState
from fieldsched.calendar.window import compute_window, month_grid, shift_anchor
from fieldsched.domain.errors import ValidationError
from fieldsched.domain.models import (
    CalendarEvent,
    CalendarWindow,
    Frequency,
    JobInstance,
    JobStatus,
    RecurringSeries,
    ViewType,
)
from fieldsched.stores.memory import InMemoryJobStore, InMemorySeriesStore


class TestComputeWindow:
    """Tests for view date ranges."""

    @pytest.mark.parametrize(
        "anchor",
        [date(2024, 3, 10), date(2024, 3, 13), date(2024, 3, 16)],
    )
    def test_week_runs_sunday_to_saturday(self, anchor):
        window = compute_window(ViewType.WEEK, anchor)
        assert window == CalendarWindow(date(2024, 3, 10), date(2024, 3, 16))
        assert window.num_days == 7

    def test_month_is_padded_by_a_month_each_side(self):
        window = compute_window(ViewType.MONTH, date(2024, 3, 15))
        assert window.start == date(2024, 2, 1)
        assert window.end == date(2024, 4, 30)

    def test_month_padding_crosses_years(self):
        window = compute_window("month", date(2024, 1, 15))
        assert window.start == date(2023, 12, 1)
        assert window.end == date(2024, 2, 29)

    def test_year(self):
        window = compute_window(ViewType.YEAR, date(2024, 7, 4))
        assert window == CalendarWindow(date(2024, 1, 1), date(2024, 12, 31))
        assert len(window.dates()) == 366

    def test_unknown_view_rejected(self):
        with pytest.raises(ValidationError):
            compute_window("day", date(2024, 3, 13))

    def test_window_rejects_inverted_range(self):
        with pytest.raises(ValidationError):
            CalendarWindow(date(2024, 3, 2), date(2024, 3, 1))

    def test_month_grid_has_six_sunday_first_weeks(self):
        grid = month_grid(date(2024, 3, 20))
        assert len(grid) == 42
        assert grid[0] == date(2024, 2, 25)
        assert grid[0].weekday() == 6
        assert grid[-1] == date(2024, 4, 6)
        assert date(2024, 3, 1) in grid and date(2024, 3, 31) in grid


class TestNavigation:
    """Tests for CalendarState transitions."""

    def test_next_month_clamps_day(self):
        state = CalendarState("month", date(2024, 1, 31))
        assert state.view_type is ViewType.MONTH
        assert state.next().anchor_date == date(2024, 2, 29)

    def test_prev_month_clamps_day(self):
        assert CalendarState(ViewType.MONTH, date(2024, 3, 31)).prev().anchor_date == date(
            2024, 2, 29
        )

    def test_week_and_year_steps(self):
        assert CalendarState(ViewType.WEEK, date(2024, 3, 13)).next().anchor_date == date(
            2024, 3, 20
        )
        assert shift_anchor(ViewType.YEAR, date(2024, 2, 29), 1) == date(2025, 2, 28)

    def test_transitions_return_new_states(self):
        state = CalendarState(ViewType.WEEK, date(2024, 3, 13))
        switched = state.switch_view("year")

        assert state.view_type is ViewType.WEEK
        assert switched.view_type is ViewType.YEAR
        assert switched.anchor_date == date(2024, 3, 13)
        assert switched.window.start == date(2024, 1, 1)

    def test_drill_down_and_today(self):
        state = CalendarState(ViewType.YEAR, date(2024, 1, 1))
        drilled = state.drill_down(ViewType.WEEK, date(2024, 3, 13))
        assert drilled == CalendarState(ViewType.WEEK, date(2024, 3, 13))
        assert drilled.today(date(2024, 6, 1)).anchor_date == date(2024, 6, 1)

    def test_invalid_view_rejected(self):
        with pytest.raises(ValidationError):
            CalendarState("fortnight", date(2024, 3, 13))


def weekly_series(**overrides) -> RecurringSeries:
    values = dict(
        id="S1",
        client_id="C1",
        title="Window cleaning",
        frequency=Frequency.WEEKLY,
        start_date=date(2024, 1, 1),
        scheduled_time=time(9, 0),
    )
    values.update(overrides)
    return RecurringSeries(**values)


class TestCalendarAggregator:
    """Tests for fetching merged, sorted events."""

    @pytest.fixture
    def job_store(self):
        return InMemoryJobStore(
            [
                JobInstance("J1", "Quote", date(2024, 1, 8), time(8, 0), client_id="C2"),
                JobInstance("J0", "Repair", date(2024, 1, 8), time(9, 0), client_id="C3"),
                JobInstance("J9", "Next year", date(2025, 1, 8), time(9, 0)),
            ]
        )

    @pytest.fixture
    def series_store(self):
        return InMemorySeriesStore([weekly_series()])

    @pytest.fixture
    def aggregator(self, series_store, job_store):
        return CalendarAggregator(series_store, job_store)

    def test_fetch_expands_and_merges(self, aggregator):
        result = aggregator.fetch_window_with_warnings(ViewType.MONTH, date(2024, 1, 15))

        recurring = [e for e in result.events if e.is_recurring]
        assert result.generated_count == 9
        assert len(recurring) == 9
        assert len(result.events) == 11
        assert result.warnings == []

    def test_events_sorted_by_date_time_id(self, aggregator):
        events = aggregator.fetch_window(ViewType.WEEK, date(2024, 1, 10))

        assert [e.id for e in events] == ["J1", "J0", "S1:2024-01-08"]
        keys = [e.sort_key for e in events]
        assert keys == sorted(keys)

    def test_second_fetch_reads_stored_instances(self, aggregator):
        aggregator.fetch_window(ViewType.MONTH, date(2024, 1, 15))
        again = aggregator.fetch_window_with_warnings(ViewType.MONTH, date(2024, 1, 15))

        assert again.generated_count == 0
        assert len([e for e in again.events if e.is_recurring]) == 9

    def test_moved_instance_shown_at_new_date(self, aggregator, job_store):
        aggregator.fetch_window(ViewType.MONTH, date(2024, 1, 15))
        moved = replace(job_store.get("S1:2024-01-15"), scheduled_date=date(2024, 1, 16))
        job_store.update(moved)

        events = aggregator.fetch_window(ViewType.WEEK, date(2024, 1, 16))
        assert [(e.id, e.date) for e in events] == [("S1:2024-01-15", date(2024, 1, 16))]

    def test_highlight_marks_selected_series(self, aggregator):
        events = aggregator.fetch_window(ViewType.WEEK, date(2024, 1, 10), highlight="S1")
        assert [e.id for e in events if e.highlighted] == ["S1:2024-01-08"]

    def test_misconfigured_series_reported(self, job_store):
        series_store = InMemorySeriesStore(
            [weekly_series(id="BAD", start_date=date(2024, 1, 10), end_date=date(2024, 1, 5))]
        )
        result = CalendarAggregator(series_store, job_store).fetch_window_with_warnings(
            ViewType.MONTH, date(2024, 1, 15)
        )

        assert [w.series_id for w in result.warnings] == ["BAD"]
        assert all(not e.is_recurring for e in result.events)

    def test_module_level_fetch(self, series_store, job_store):
        events = fetch_window(ViewType.YEAR, date(2025, 3, 1), series_store, job_store)
        assert "J9" in [e.id for e in events]


def make_event(event_id, day, hour=9, series_id=None, status=JobStatus.SCHEDULED):
    return CalendarEvent(
        id=event_id,
        title=event_id,
        date=date(2024, 1, day),
        time=time(hour, 0),
        status=status,
        is_recurring=series_id is not None,
        recurring_series_id=series_id,
    )


class TestEventHelpers:
    """Tests for highlighting, filtering and grouping."""

    @pytest.fixture
    def events(self):
        return [
            make_event("A", 1, series_id="S1"),
            make_event("B", 1, hour=11),
            make_event("C", 2, series_id="S2"),
            make_event("D", 3, series_id="S1", status=JobStatus.CANCELLED),
            make_event("E", 4),
        ]

    def test_mark_highlighted(self, events):
        marked = mark_highlighted(events, "S1")
        assert [e.id for e in marked if e.highlighted] == ["A", "D"]
        assert not any(e.highlighted for e in events)

    def test_no_selection_highlights_nothing(self, events):
        assert not any(e.highlighted for e in mark_highlighted(events, None))
        assert filter_by_series(events, None) == []

    def test_filter_by_series(self, events):
        assert [e.id for e in filter_by_series(events, "S2")] == ["C"]

    def test_upcoming_skips_past_and_cancelled(self, events):
        upcoming = upcoming_events(events, today=date(2024, 1, 2), limit=5)
        assert [e.id for e in upcoming] == ["C", "E"]

        with_cancelled = upcoming_events(
            events, today=date(2024, 1, 2), limit=2, include_cancelled=True
        )
        assert [e.id for e in with_cancelled] == ["C", "D"]

    def test_group_by_date(self, events):
        grouped = group_by_date(list(reversed(events)))
        assert list(grouped) == [date(2024, 1, d) for d in (1, 2, 3, 4)]
        assert [e.id for e in grouped[date(2024, 1, 1)]] == ["A", "B"]

    def test_merge_prefers_stored_copy(self):
        generated = JobInstance("S1:2024-01-01", "Original", date(2024, 1, 1), time(9, 0))
        stored = replace(generated, title="Edited")

        events = merge_events([stored], [generated])
        assert [(e.id, e.title) for e in events] == [("S1:2024-01-01", "Edited")]
