"""Tests for recurring series expansion."""

import gc
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date, time

import pytest

from fieldsched.domain.errors import ValidationError
from fieldsched.domain.models import (
    Frequency,
    JobInstance,
    JobStatus,
    Location,
    RecurringSeries,
)
from fieldsched.recurring.expander import (
    DeleteScope,
    ExpansionConfig,
    RecurrenceExpander,
    generate_instances,
    instance_id_for,
)
from fieldsched.stores.base import CursorUpdate
from fieldsched.stores.memory import InMemoryJobStore, InMemorySeriesStore

JAN_1 = date(2024, 1, 1)
JAN_31 = date(2024, 1, 31)


def make_series(**overrides) -> RecurringSeries:
    values = dict(
        id="S1",
        client_id="C1",
        title="Pool cleaning",
        description="Skim, brush, test chlorine",
        frequency=Frequency.WEEKLY,
        start_date=JAN_1,
        scheduled_time=time(9, 0),
        duration_minutes=45,
        location=Location("1 Main St", 51.5, -0.12),
    )
    values.update(overrides)
    return RecurringSeries(**values)


class TestGenerateInstances:
    """Tests for RecurrenceExpander.generate_instances."""

    @pytest.fixture
    def series(self):
        return make_series()

    @pytest.fixture
    def job_store(self):
        return InMemoryJobStore()

    @pytest.fixture
    def series_store(self, series):
        return InMemorySeriesStore([series])

    @pytest.fixture
    def expander(self, job_store, series_store):
        return RecurrenceExpander(job_store, series_store)

    def test_weekly_january(self, expander, series, job_store, series_store):
        """Weekly series from Jan 1 yields Jan 1, 8, 15, 22 and 29."""
        result = expander.generate_instances(series, JAN_1, JAN_31)

        assert result.created_count == 5
        assert [i.scheduled_date.day for i in result.instances] == [1, 8, 15, 22, 29]
        assert result.new_cursor == date(2024, 1, 29)
        assert series.last_generated_date == date(2024, 1, 29)
        assert series_store.get("S1").last_generated_date == date(2024, 1, 29)
        assert len(job_store) == 5

    def test_instances_inherit_series_details(self, expander, series):
        result = expander.generate_instances(series, JAN_1, JAN_31)
        first = result.instances[0]

        assert first.id == instance_id_for("S1", JAN_1) == "S1:2024-01-01"
        assert first.title == "Pool cleaning"
        assert first.description == "Skim, brush, test chlorine"
        assert first.client_id == "C1"
        assert first.scheduled_time == time(9, 0)
        assert first.duration_minutes == 45
        assert first.location == series.location
        assert first.status is JobStatus.SCHEDULED
        assert first.series_id == "S1"
        assert first.occurrence_date == JAN_1
        assert first.is_recurring

    def test_second_run_creates_nothing(self, expander, series):
        """Re-running the same window is a no-op and keeps the cursor."""
        expander.generate_instances(series, JAN_1, JAN_31)
        again = expander.generate_instances(series, JAN_1, JAN_31)

        assert again.created_count == 0
        assert again.new_cursor == date(2024, 1, 29)

    def test_stale_series_object_uses_stored_cursor(self, expander, series):
        expander.generate_instances(series, JAN_1, JAN_31)
        stale = make_series()  # cursor None
        again = expander.generate_instances(stale, JAN_1, JAN_31)

        assert again.created_count == 0
        assert stale.last_generated_date == date(2024, 1, 29)

    def test_existing_instances_skipped_without_cursor(self, series, job_store):
        """Dedup against the job store holds even when the cursor is lost."""
        RecurrenceExpander(job_store, InMemorySeriesStore([series])).generate_instances(
            series, JAN_1, JAN_31
        )

        fresh_store = InMemorySeriesStore([make_series()])
        result = RecurrenceExpander(job_store, fresh_store).generate_instances(
            make_series(), JAN_1, JAN_31
        )

        assert result.created_count == 0
        assert len(result.skipped_dates) == 5
        assert len(job_store) == 5
        assert result.new_cursor == date(2024, 1, 29)

    def test_next_window_continues_from_cursor(self, expander, series):
        expander.generate_instances(series, JAN_1, JAN_31)
        feb = expander.generate_instances(series, date(2024, 2, 1), date(2024, 2, 29))

        assert [i.scheduled_date.day for i in feb.instances] == [5, 12, 19, 26]
        assert feb.new_cursor == date(2024, 2, 26)

    def test_cursor_never_moves_backwards(self, expander, series, series_store):
        expander.generate_instances(series, JAN_1, JAN_31)
        earlier = expander.generate_instances(series, JAN_1, date(2024, 1, 10))

        assert earlier.created_count == 0
        assert earlier.new_cursor == date(2024, 1, 29)
        assert series_store.get("S1").last_generated_date == date(2024, 1, 29)

    def test_window_starting_mid_series_keeps_grid_phase(self, expander, series):
        result = expander.generate_instances(series, date(2024, 1, 10), JAN_31)
        assert [i.scheduled_date.day for i in result.instances] == [15, 22, 29]

    def test_end_date_bounds_generation(self, expander):
        series = make_series(end_date=date(2024, 1, 20))
        result = expander.generate_instances(series, JAN_1, JAN_31)
        assert [i.scheduled_date.day for i in result.instances] == [1, 8, 15]
        assert result.new_cursor == date(2024, 1, 15)

    def test_monthly_on_31st_covers_april_30(self, job_store):
        series = make_series(id="M1", frequency=Frequency.MONTHLY, start_date=JAN_31)
        expander = RecurrenceExpander(job_store, InMemorySeriesStore([series]))

        result = expander.generate_instances(series, date(2024, 4, 1), date(2024, 4, 30))

        assert [i.scheduled_date for i in result.instances] == [date(2024, 4, 30)]

    def test_monthly_full_year_has_no_drift(self, job_store):
        series = make_series(id="M1", frequency=Frequency.MONTHLY, start_date=JAN_31)
        expander = RecurrenceExpander(job_store, InMemorySeriesStore([series]))

        result = expander.generate_instances(series, JAN_1, date(2024, 12, 31))

        assert [i.scheduled_date.day for i in result.instances] == [
            31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31
        ]

    def test_end_before_start_reports_warning(self, expander, job_store):
        series = make_series(start_date=date(2024, 1, 10), end_date=date(2024, 1, 5))
        result = expander.generate_instances(series, JAN_1, JAN_31)

        assert result.instances == []
        assert result.warning is not None
        assert result.warning.series_id == "S1"
        assert len(job_store) == 0

    def test_window_end_before_start_raises(self, expander, series, job_store):
        with pytest.raises(ValidationError):
            expander.generate_instances(series, JAN_31, JAN_1)
        assert len(job_store) == 0
        assert series.last_generated_date is None

    def test_unknown_frequency_raises(self, expander, job_store):
        series = make_series(frequency="fortnightly")
        with pytest.raises(ValidationError):
            expander.generate_instances(series, JAN_1, JAN_31)
        assert len(job_store) == 0

    def test_inactive_series_generates_nothing(self, expander, job_store):
        series = make_series(is_active=False)
        result = expander.generate_instances(series, JAN_1, JAN_31)

        assert result.instances == []
        assert result.warning is None
        assert result.new_cursor is None
        assert len(job_store) == 0

    def test_unknown_series_is_registered(self, job_store):
        series_store = InMemorySeriesStore()
        series = make_series()
        RecurrenceExpander(job_store, series_store).generate_instances(series, JAN_1, JAN_31)

        assert series_store.get("S1").last_generated_date == date(2024, 1, 29)

    def test_module_level_helper(self, series, job_store, series_store):
        result = generate_instances(series, JAN_1, JAN_31, job_store, series_store)
        assert result.created_count == 5


class TestManualEdits:
    """Instances edited by users survive later expansions."""

    @pytest.fixture
    def job_store(self):
        return InMemoryJobStore()

    def test_moved_instance_is_not_regenerated(self, job_store):
        series = make_series()
        RecurrenceExpander(job_store, InMemorySeriesStore([series])).generate_instances(
            series, JAN_1, JAN_31
        )

        moved = job_store.get("S1:2024-01-08")
        job_store.update(
            replace(moved, scheduled_date=date(2024, 1, 10), scheduled_time=time(14, 0))
        )

        # Fresh series store: the cursor is gone, dedup must still hold
        result = RecurrenceExpander(
            job_store, InMemorySeriesStore([make_series()])
        ).generate_instances(make_series(), JAN_1, JAN_31)

        assert result.created_count == 0
        assert job_store.get("S1:2024-01-08").scheduled_date == date(2024, 1, 10)
        assert job_store.get("S1:2024-01-08").scheduled_time == time(14, 0)

    def test_cancelled_instance_stays_cancelled(self, job_store):
        series = make_series()
        expander = RecurrenceExpander(job_store, InMemorySeriesStore([series]))
        expander.generate_instances(series, JAN_1, JAN_31)

        cancelled = replace(job_store.get("S1:2024-01-15"), status=JobStatus.CANCELLED)
        job_store.update(cancelled)
        expander.generate_instances(series, JAN_1, date(2024, 2, 29))

        assert job_store.get("S1:2024-01-15").status is JobStatus.CANCELLED
        assert len(job_store.list_for_series("S1")) == 9


class TestBoundedExpansion:
    """Tests for the per-call candidate limit."""

    def test_truncated_call_resumes(self):
        series = make_series(frequency=Frequency.DAILY)
        job_store = InMemoryJobStore()
        expander = RecurrenceExpander(
            job_store,
            InMemorySeriesStore([series]),
            ExpansionConfig(max_candidates_per_call=3),
        )
        end = date(2024, 1, 7)

        first = expander.generate_instances(series, JAN_1, end)
        assert first.truncated
        assert first.created_count == 3
        assert first.new_cursor == date(2024, 1, 3)

        second = expander.generate_instances(series, JAN_1, end)
        assert [i.scheduled_date.day for i in second.instances] == [4, 5, 6]

        third = expander.generate_instances(series, JAN_1, end)
        assert not third.truncated
        assert [i.scheduled_date.day for i in third.instances] == [7]
        assert len(job_store) == 7


class RacingSeriesStore(InMemorySeriesStore):
    """Series store where another writer always gets in first."""

    def __init__(self, series, competing_cursor):
        super().__init__(series)
        self.competing_cursor = competing_cursor

    def advance_cursor(self, series_id, new_date):
        super().advance_cursor(series_id, self.competing_cursor)
        return super().advance_cursor(series_id, new_date)


class TestCursorConcurrency:
    """Tests for cursor conflicts and concurrent expansion."""

    def test_conflict_keeps_newer_cursor(self):
        series = make_series()
        store = RacingSeriesStore([series], competing_cursor=date(2024, 2, 29))
        job_store = InMemoryJobStore()

        result = RecurrenceExpander(job_store, store).generate_instances(series, JAN_1, JAN_31)

        assert result.created_count == 5
        assert result.new_cursor == date(2024, 2, 29)
        assert store.get("S1").last_generated_date == date(2024, 2, 29)

    def test_store_rejects_backwards_cursor(self):
        store = InMemorySeriesStore([make_series(last_generated_date=JAN_31)])
        assert store.advance_cursor("S1", JAN_1) is CursorUpdate.CONFLICT
        assert store.advance_cursor("S1", date(2024, 2, 1)) is CursorUpdate.SUCCESS

    def test_parallel_calls_do_not_duplicate(self):
        series = make_series(frequency=Frequency.DAILY)
        job_store = InMemoryJobStore()
        expander = RecurrenceExpander(job_store, InMemorySeriesStore([series]))

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(
                pool.map(
                    lambda _: expander.generate_instances(make_series(frequency="daily"), JAN_1, JAN_31),
                    range(8),
                )
            )

        assert sum(r.created_count for r in results) == 31
        assert len(job_store) == 31

    def test_series_locks_released_after_use(self):
        series = make_series()
        expander = RecurrenceExpander(InMemoryJobStore(), InMemorySeriesStore([series]))

        lock = expander._series_lock("S1")
        assert expander._series_lock("S1") is lock

        del lock
        gc.collect()
        expander.generate_instances(series, JAN_1, JAN_31)
        gc.collect()
        assert len(expander._locks) == 0


class TestSeriesMaintenance:
    """Tests for edits, deletes and deactivation."""

    @pytest.fixture
    def series(self):
        return make_series()

    @pytest.fixture
    def job_store(self):
        return InMemoryJobStore()

    @pytest.fixture
    def series_store(self, series):
        return InMemorySeriesStore([series])

    @pytest.fixture
    def expander(self, job_store, series_store, series):
        expander = RecurrenceExpander(job_store, series_store)
        expander.generate_instances(series, JAN_1, JAN_31)
        return expander

    def test_edit_updates_upcoming_instances(self, expander, series, job_store):
        completed = replace(job_store.get("S1:2024-01-08"), status=JobStatus.COMPLETED)
        job_store.update(completed)

        edited = replace(series, title="Pool service", scheduled_time=time(10, 30))
        updated = expander.apply_series_edit(edited, today=date(2024, 1, 8))

        assert [i.scheduled_date.day for i in updated] == [15, 22, 29]
        assert job_store.get("S1:2024-01-15").title == "Pool service"
        assert job_store.get("S1:2024-01-15").scheduled_time == time(10, 30)
        assert job_store.get("S1:2024-01-01").title == "Pool cleaning"
        assert job_store.get("S1:2024-01-08").title == "Pool cleaning"

    def test_edit_keeps_stored_cursor(self, expander, series, series_store):
        edited = replace(series, title="Pool service", last_generated_date=None)
        expander.apply_series_edit(edited, today=JAN_1)
        assert series_store.get("S1").last_generated_date == date(2024, 1, 29)
        assert series_store.get("S1").title == "Pool service"

    def test_delete_single(self, expander, job_store):
        deleted = expander.delete_occurrences(
            job_store.get("S1:2024-01-15"), DeleteScope.SINGLE
        )
        assert deleted == 1
        assert job_store.get("S1:2024-01-15") is None
        assert len(job_store) == 4

    def test_delete_future_ends_series(self, expander, series, job_store, series_store):
        deleted = expander.delete_occurrences(
            job_store.get("S1:2024-01-15"), DeleteScope.FUTURE
        )

        assert deleted == 3
        assert [i.scheduled_date.day for i in job_store.list_for_series("S1")] == [1, 8]
        assert series_store.get("S1").end_date == date(2024, 1, 14)

        later = expander.generate_instances(
            series_store.get("S1"), JAN_1, date(2024, 3, 31)
        )
        assert later.created_count == 0

    def test_delete_future_from_first_deactivates(self, expander, job_store, series_store):
        expander.delete_occurrences(job_store.get("S1:2024-01-01"), "future")
        assert len(job_store) == 0
        assert series_store.get("S1").is_active is False

    def test_delete_all(self, expander, job_store, series_store):
        deleted = expander.delete_occurrences(job_store.get("S1:2024-01-22"), DeleteScope.ALL)
        assert deleted == 5
        assert series_store.get("S1").is_active is False
        assert series_store.list_active(JAN_1, JAN_31) == []

    def test_delete_standalone_job(self, expander, job_store):
        standalone = JobInstance(
            id="J100", title="One-off", scheduled_date=JAN_1, scheduled_time=time(12, 0)
        )
        job_store.add(standalone)
        assert expander.delete_occurrences(standalone, DeleteScope.ALL) == 1
        assert len(job_store) == 5

    def test_deactivate_series(self, expander, series_store, job_store):
        deactivated = expander.deactivate_series("S1")
        assert deactivated.is_active is False
        assert series_store.get("S1").is_active is False
        assert len(job_store) == 5
        assert expander.deactivate_series("missing") is None
