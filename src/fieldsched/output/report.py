"""Plain-text reports for optimized days and calendar windows.

This module renders human-readable text showing:
- The day's route with start/end times and travel per leg
- Feasibility violations and recommendations
- A calendar agenda grouped by day
"""

from pathlib import Path
from typing import Optional, Union

from fieldsched.calendar.aggregator import group_by_date
from fieldsched.domain.errors import ConfigurationWarning
from fieldsched.domain.models import (
    CalendarEvent,
    CalendarWindow,
    OptimizedSchedule,
    ScheduleConstraints,
    ScheduleJob,
    minutes_to_time,
)

WIDTH = 72


def _hhmm(minutes: int) -> str:
    return minutes_to_time(minutes).strftime("%H:%M")


class ReportGenerator:
    """Generates text reports for schedules and calendar windows."""

    def generate(
        self,
        schedule: OptimizedSchedule,
        jobs: list[ScheduleJob],
        output_path: Union[str, Path],
        constraints: Optional[ScheduleConstraints] = None,
    ) -> str:
        """Generate a schedule report and save it to file.

        Args:
            schedule: The optimized day.
            jobs: Jobs the schedule was built from (for titles and priorities).
            output_path: Path to save the text file.
            constraints: Workday bounds shown in the header.

        Returns:
            The generated text content.
        """
        content = self.generate_to_string(schedule, jobs, constraints)
        Path(output_path).write_text(content)
        return content

    def generate_to_string(
        self,
        schedule: OptimizedSchedule,
        jobs: list[ScheduleJob],
        constraints: Optional[ScheduleConstraints] = None,
    ) -> str:
        constraints = constraints or ScheduleConstraints()
        jobs_by_id = {job.id: job for job in jobs}
        metrics = schedule.metrics
        lines = []

        lines.append("=" * WIDTH)
        lines.append("OPTIMIZED DAY SCHEDULE")
        lines.append("=" * WIDTH)
        lines.append(
            f"Workday: {_hhmm(constraints.work_start_minutes)} - "
            f"{_hhmm(constraints.work_end_minutes)}"
            f"   Travel buffer: {constraints.travel_buffer_minutes} min"
        )
        lines.append(f"Sequencing: {schedule.sequencing_method}")
        lines.append("")

        lines.append("-" * WIDTH)
        lines.append(f"{'#':>3} {'Job':<12} {'Title':<24} {'Time':^13} {'Pri':<7} {'Travel':>7}")
        lines.append("-" * WIDTH)
        for slot in schedule.ordered_slots:
            job = jobs_by_id.get(slot.job_id)
            title = (job.title if job and job.title else "")[:24]
            priority = job.priority.value if job else ""
            window = f"{_hhmm(slot.start_minutes)}-{_hhmm(slot.end_minutes)}"
            flag = " !" if schedule.violations_for(slot.job_id) else ""
            lines.append(
                f"{slot.position + 1:>3} {slot.job_id[:12]:<12} {title:<24} {window:^13} "
                f"{priority:<7} {slot.travel_minutes:>4} min{flag}"
            )
        if not schedule.ordered_slots:
            lines.append("    (no jobs)")
        lines.append("")

        lines.append(f"Work time:   {metrics.total_work_minutes} min")
        lines.append(
            f"Travel time: {metrics.total_travel_minutes} min "
            f"({metrics.travel_share:.0%} of the working day)"
        )
        if metrics.total_distance_km:
            lines.append(f"Distance:    {metrics.total_distance_km:.1f} km")
        if metrics.break_start_minutes is not None:
            lines.append(
                f"Break:       {_hhmm(metrics.break_start_minutes)} "
                f"({constraints.break_minutes} min)"
            )
        lines.append(f"Efficiency:  {schedule.efficiency_score:.1f}")
        lines.append("")

        if schedule.violations:
            lines.append("-" * WIDTH)
            lines.append("VIOLATIONS")
            lines.append("-" * WIDTH)
            for violation in schedule.violations:
                lines.append(f"  {violation}")
            lines.append("")

        lines.append("-" * WIDTH)
        lines.append("RECOMMENDATIONS")
        lines.append("-" * WIDTH)
        for recommendation in schedule.recommendations:
            lines.append(f"  * {recommendation}")
        if not schedule.recommendations:
            lines.append("  (none)")

        return "\n".join(lines) + "\n"

    def generate_agenda(
        self,
        events: list[CalendarEvent],
        window: CalendarWindow,
        output_path: Union[str, Path],
        warnings: Optional[list[ConfigurationWarning]] = None,
    ) -> str:
        """Generate an agenda for a calendar window and save it to file."""
        content = self.agenda_to_string(events, window, warnings)
        Path(output_path).write_text(content)
        return content

    def agenda_to_string(
        self,
        events: list[CalendarEvent],
        window: CalendarWindow,
        warnings: Optional[list[ConfigurationWarning]] = None,
    ) -> str:
        lines = []
        lines.append("=" * WIDTH)
        lines.append(f"AGENDA {window.start.isoformat()} - {window.end.isoformat()}")
        lines.append("=" * WIDTH)
        lines.append(f"{len(events)} event(s)")

        for day, day_events in group_by_date(events).items():
            lines.append("")
            lines.append(day.strftime("%a %Y-%m-%d"))
            for event in day_events:
                marker = "*" if event.highlighted else " "
                recurring = " (recurring)" if event.is_recurring else ""
                lines.append(
                    f" {marker} {event.time.strftime('%H:%M')}  {event.title}"
                    f"  [{event.status.value}]{recurring}"
                )

        if warnings:
            lines.append("")
            lines.append("-" * WIDTH)
            lines.append("WARNINGS")
            lines.append("-" * WIDTH)
            for warning in warnings:
                lines.append(f"  {warning}")

        return "\n".join(lines) + "\n"
