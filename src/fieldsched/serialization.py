"""Plain-dict interchange for the engine's types.

Dates are ISO-8601 calendar dates, times are ISO-8601 times of day
(``HH:MM``) and enum fields use their string values. Parsing rejects
malformed values with ``ValidationError`` so bad input never reaches the
engine.
"""

from datetime import date, time
from typing import Any, Optional

from fieldsched.domain.errors import ValidationError
from fieldsched.domain.models import (
    CalendarEvent,
    FeasibilityViolation,
    Frequency,
    JobInstance,
    JobStatus,
    Location,
    OptimizedSchedule,
    Priority,
    RecurringSeries,
    ScheduleConstraints,
    ScheduledSlot,
    ScheduleJob,
    minutes_to_time,
)


def parse_date(value: Any, field: str = "date") -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid ISO date for {field}: {value!r}", field, value) from None


def parse_time(value: Any, field: str = "time") -> time:
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid ISO time for {field}: {value!r}", field, value) from None


def parse_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"Invalid whole number for {field}: {value!r}", field, value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid whole number for {field}: {value!r}", field, value
        ) from None


def _optional_float(value: Any, field: str) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid number for {field}: {value!r}", field, value) from None


def _optional_date(value: Any, field: str) -> Optional[date]:
    return None if value in (None, "") else parse_date(value, field)


def _optional_time(value: Any, field: str) -> Optional[time]:
    return None if value in (None, "") else parse_time(value, field)


def format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def format_time(value: Optional[time]) -> Optional[str]:
    return value.isoformat(timespec="minutes") if value is not None else None


def _require(data: dict, key: str):
    if key not in data:
        raise ValidationError(f"Missing required field {key!r}", field=key)
    return data[key]


def location_from_dict(data: Optional[dict]) -> Optional[Location]:
    if not data:
        return None
    if isinstance(data, str):
        return Location(address=data)
    return Location(
        address=data.get("address", ""),
        latitude=_optional_float(data.get("latitude"), "latitude"),
        longitude=_optional_float(data.get("longitude"), "longitude"),
    )


def location_to_dict(location: Optional[Location]) -> Optional[dict]:
    if location is None:
        return None
    return {
        "address": location.address,
        "latitude": location.latitude,
        "longitude": location.longitude,
    }


def series_from_dict(data: dict) -> RecurringSeries:
    return RecurringSeries(
        id=str(_require(data, "id")),
        client_id=str(data.get("client_id", "")),
        title=_require(data, "title"),
        frequency=Frequency.parse(_require(data, "frequency")),
        start_date=parse_date(_require(data, "start_date"), "start_date"),
        scheduled_time=parse_time(data.get("scheduled_time", "09:00"), "scheduled_time"),
        description=data.get("description", ""),
        end_date=_optional_date(data.get("end_date"), "end_date"),
        is_active=bool(data.get("is_active", True)),
        last_generated_date=_optional_date(
            data.get("last_generated_date"), "last_generated_date"
        ),
        duration_minutes=parse_int(data.get("duration_minutes", 60), "duration_minutes"),
        location=location_from_dict(data.get("location")),
    )


def series_to_dict(series: RecurringSeries) -> dict:
    return {
        "id": series.id,
        "client_id": series.client_id,
        "title": series.title,
        "description": series.description,
        "frequency": series.frequency.value,
        "start_date": format_date(series.start_date),
        "end_date": format_date(series.end_date),
        "scheduled_time": format_time(series.scheduled_time),
        "is_active": series.is_active,
        "last_generated_date": format_date(series.last_generated_date),
        "duration_minutes": series.duration_minutes,
        "location": location_to_dict(series.location),
    }


def instance_from_dict(data: dict) -> JobInstance:
    return JobInstance(
        id=str(_require(data, "id")),
        title=_require(data, "title"),
        scheduled_date=parse_date(_require(data, "scheduled_date"), "scheduled_date"),
        scheduled_time=parse_time(_require(data, "scheduled_time"), "scheduled_time"),
        status=JobStatus.parse(data.get("status", JobStatus.SCHEDULED.value)),
        client_id=data.get("client_id"),
        description=data.get("description", ""),
        series_id=data.get("series_id"),
        occurrence_date=_optional_date(data.get("occurrence_date"), "occurrence_date"),
        duration_minutes=parse_int(data.get("duration_minutes", 60), "duration_minutes"),
        location=location_from_dict(data.get("location")),
    )


def instance_to_dict(instance: JobInstance) -> dict:
    return {
        "id": instance.id,
        "title": instance.title,
        "description": instance.description,
        "client_id": instance.client_id,
        "scheduled_date": format_date(instance.scheduled_date),
        "scheduled_time": format_time(instance.scheduled_time),
        "status": instance.status.value,
        "series_id": instance.series_id,
        "occurrence_date": format_date(instance.occurrence_date),
        "duration_minutes": instance.duration_minutes,
        "location": location_to_dict(instance.location),
    }


def event_to_dict(event: CalendarEvent) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "date": format_date(event.date),
        "time": format_time(event.time),
        "status": event.status.value,
        "client_id": event.client_id,
        "is_recurring": event.is_recurring,
        "recurring_series_id": event.recurring_series_id,
        "highlighted": event.highlighted,
    }


def schedule_job_from_dict(data: dict) -> ScheduleJob:
    return ScheduleJob(
        id=str(_require(data, "id")),
        duration_minutes=parse_int(_require(data, "duration_minutes"), "duration_minutes"),
        priority=Priority.parse(data.get("priority", Priority.NORMAL.value)),
        location=location_from_dict(data.get("location")),
        earliest_time=_optional_time(data.get("earliest_time"), "earliest_time"),
        latest_time=_optional_time(data.get("latest_time"), "latest_time"),
        title=data.get("title", ""),
    )


def schedule_job_to_dict(job: ScheduleJob) -> dict:
    return {
        "id": job.id,
        "title": job.title,
        "duration_minutes": job.duration_minutes,
        "priority": job.priority.value,
        "location": location_to_dict(job.location),
        "earliest_time": format_time(job.earliest_time),
        "latest_time": format_time(job.latest_time),
    }


def constraints_from_dict(data: Optional[dict]) -> ScheduleConstraints:
    data = data or {}
    defaults = ScheduleConstraints()
    return ScheduleConstraints(
        work_start=parse_time(data.get("work_start", defaults.work_start), "work_start"),
        work_end=parse_time(data.get("work_end", defaults.work_end), "work_end"),
        travel_buffer_minutes=parse_int(
            data.get("travel_buffer_minutes", defaults.travel_buffer_minutes),
            "travel_buffer_minutes",
        ),
        break_minutes=parse_int(data.get("break_minutes", defaults.break_minutes), "break_minutes"),
        break_after=parse_time(data.get("break_after", defaults.break_after), "break_after"),
    )


def constraints_to_dict(constraints: ScheduleConstraints) -> dict:
    return {
        "work_start": format_time(constraints.work_start),
        "work_end": format_time(constraints.work_end),
        "travel_buffer_minutes": constraints.travel_buffer_minutes,
        "break_minutes": constraints.break_minutes,
        "break_after": format_time(constraints.break_after),
    }


def slot_to_dict(slot: ScheduledSlot) -> dict:
    return {
        "job_id": slot.job_id,
        "position": slot.position,
        "start_time": format_time(slot.start_time),
        "end_time": format_time(slot.end_time),
        "travel_minutes": slot.travel_minutes,
    }


def violation_to_dict(violation: FeasibilityViolation) -> dict:
    return {
        "job_id": violation.job_id,
        "type": violation.violation_type.value,
        "message": violation.message,
    }


def optimized_schedule_to_dict(schedule: OptimizedSchedule) -> dict:
    return {
        "ordered_slots": [slot_to_dict(s) for s in schedule.ordered_slots],
        "efficiency_score": schedule.efficiency_score,
        "violations": [violation_to_dict(v) for v in schedule.violations],
        "recommendations": list(schedule.recommendations),
        "sequencing_method": schedule.sequencing_method,
        "metrics": {
            "job_count": schedule.metrics.job_count,
            "total_work_minutes": schedule.metrics.total_work_minutes,
            "total_travel_minutes": schedule.metrics.total_travel_minutes,
            "working_minutes": schedule.metrics.working_minutes,
            "break_start": (
                format_time(minutes_to_time(schedule.metrics.break_start_minutes))
                if schedule.metrics.break_start_minutes is not None
                else None
            ),
            "total_distance_km": schedule.metrics.total_distance_km,
        },
    }
