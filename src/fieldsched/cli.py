"""Command-line interface for the fieldsched scheduling engine."""

import argparse
import json
import logging
import sys
from datetime import date, time
from pathlib import Path
from typing import Optional

from fieldsched.calendar.aggregator import CalendarAggregator
from fieldsched.calendar.window import compute_window
from fieldsched.domain.errors import ValidationError
from fieldsched.domain.models import (
    Frequency,
    Location,
    Priority,
    RecurringSeries,
    ScheduleConstraints,
    ScheduleJob,
    ViewType,
)
from fieldsched.output.report import ReportGenerator
from fieldsched.recurring.expander import RecurrenceExpander
from fieldsched.scheduling.cpsat_sequencer import SolverConfig
from fieldsched.scheduling.optimizer import (
    OptimizerConfig,
    ScheduleOptimizer,
    SequencingMode,
)
from fieldsched.serialization import (
    constraints_from_dict,
    format_date,
    instance_from_dict,
    instance_to_dict,
    optimized_schedule_to_dict,
    parse_date,
    schedule_job_from_dict,
    series_from_dict,
)
from fieldsched.stores.memory import InMemoryJobStore, InMemorySeriesStore
from fieldsched.validation.validator import ScheduleValidator

logger = logging.getLogger(__name__)


def load_json(path: str):
    """Read a JSON document, reporting unreadable or malformed files as validation errors."""
    logger.debug("Loading %s", path)
    try:
        return json.loads(Path(path).read_text())
    except OSError as e:
        raise ValidationError(f"Cannot read {path}: {e.strerror or e}", field="file", value=path) from e
    except json.JSONDecodeError as e:
        raise ValidationError(f"{path} is not valid JSON: {e}", field="file", value=path) from e


def _series_and_instances(data) -> tuple[list[RecurringSeries], list]:
    """Accept a single series, a list of series or {"series": [...], "instances": [...]}."""
    if isinstance(data, list):
        return [series_from_dict(s) for s in data], []
    if "series" in data or "instances" in data:
        series = [series_from_dict(s) for s in data.get("series", [])]
        instances = [instance_from_dict(i) for i in data.get("instances", [])]
        return series, instances
    return [series_from_dict(data)], []


def create_sample_series(anchor: date) -> list[RecurringSeries]:
    """Create sample recurring series starting in the anchor's month."""
    first = anchor.replace(day=1)
    return [
        RecurringSeries(
            id="pool-weekly",
            client_id="C001",
            title="Pool cleaning",
            frequency=Frequency.WEEKLY,
            start_date=first,
            scheduled_time=time(9, 0),
            duration_minutes=60,
        ),
        RecurringSeries(
            id="lawn-biweekly",
            client_id="C002",
            title="Lawn mowing",
            frequency=Frequency.BI_WEEKLY,
            start_date=first,
            scheduled_time=time(13, 30),
            duration_minutes=90,
        ),
        RecurringSeries(
            id="filter-monthly",
            client_id="C003",
            title="HVAC filter change",
            frequency=Frequency.MONTHLY,
            start_date=first.replace(day=min(anchor.day, 28)),
            scheduled_time=time(11, 0),
            duration_minutes=45,
        ),
    ]


def create_sample_jobs() -> list[ScheduleJob]:
    """Create a sample day of jobs around a city centre."""
    return [
        ScheduleJob(
            id="J1",
            title="Boiler service",
            duration_minutes=60,
            priority=Priority.HIGH,
            location=Location("12 Harbour St", 51.5072, -0.1276),
        ),
        ScheduleJob(
            id="J2",
            title="Leak repair",
            duration_minutes=90,
            priority=Priority.URGENT,
            location=Location("4 Mill Lane", 51.5155, -0.1419),
        ),
        ScheduleJob(
            id="J3",
            title="Annual inspection",
            duration_minutes=120,
            location=Location("88 Park Road", 51.4975, -0.1357),
            earliest_time=time(13, 0),
        ),
        ScheduleJob(
            id="J4",
            title="Quote visit",
            duration_minutes=30,
            priority=Priority.LOW,
            location=Location("7 Station Ave", 51.5308, -0.1238),
            latest_time=time(16, 0),
        ),
    ]


def run_demo(anchor: date, output_path: Optional[str] = None) -> None:
    """Run a demo: a month view of sample series and an optimized day."""
    print(f"Building sample calendar around {anchor.isoformat()}...")

    series_store = InMemorySeriesStore(create_sample_series(anchor))
    job_store = InMemoryJobStore()
    aggregator = CalendarAggregator(series_store, job_store)
    fetched = aggregator.fetch_window_with_warnings(ViewType.MONTH, anchor)

    # The month view spans the neighbouring months; the demo lists the current week
    week = compute_window(ViewType.WEEK, anchor)
    events = [e for e in fetched.events if week.contains(e.date)]
    print(f"  Window: {format_date(fetched.window.start)} - {format_date(fetched.window.end)}")
    print(f"  Generated: {fetched.generated_count} instance(s)")
    print()
    reporter = ReportGenerator()
    print(reporter.agenda_to_string(events, week, fetched.warnings))

    jobs = create_sample_jobs()
    constraints = ScheduleConstraints()
    optimizer = ScheduleOptimizer()
    schedule = optimizer.optimize(jobs, constraints)
    print(reporter.generate_to_string(schedule, jobs, constraints))

    _print_validation(ScheduleValidator().validate_schedule(schedule, jobs, constraints))

    if output_path:
        reporter.generate(schedule, jobs, output_path, constraints)
        print(f"\nReport written to {output_path}")


def run_expand(series_path: str, start: date, end: date) -> None:
    """Expand series from a JSON file and print the created instances as JSON."""
    series_list, instances = _series_and_instances(load_json(series_path))
    series_store = InMemorySeriesStore(series_list)
    job_store = InMemoryJobStore(instances)
    expander = RecurrenceExpander(job_store, series_store)

    output = []
    for series in series_list:
        result = expander.generate_instances(series, start, end)
        output.append(
            {
                "series_id": series.id,
                "created": [instance_to_dict(i) for i in result.instances],
                "skipped_dates": [format_date(d) for d in result.skipped_dates],
                "new_cursor": format_date(result.new_cursor),
                "warning": str(result.warning) if result.warning else None,
                "truncated": result.truncated,
            }
        )
    print(json.dumps({"results": output}, indent=2))


def run_calendar(
    data_path: str,
    view_type: ViewType,
    anchor: date,
    highlight: Optional[str] = None,
) -> None:
    """Print the agenda for one calendar view."""
    series_list, instances = _series_and_instances(load_json(data_path))
    aggregator = CalendarAggregator(
        InMemorySeriesStore(series_list), InMemoryJobStore(instances)
    )
    fetched = aggregator.fetch_window_with_warnings(view_type, anchor, highlight)
    print(ReportGenerator().agenda_to_string(fetched.events, fetched.window, fetched.warnings), end="")


def run_optimize(
    jobs_path: str,
    mode: SequencingMode,
    time_limit: float,
    output_path: Optional[str] = None,
    as_json: bool = False,
) -> None:
    """Optimize one day's jobs from a JSON file."""
    data = load_json(jobs_path)
    if isinstance(data, list):
        job_dicts, constraints_dict = data, None
    else:
        job_dicts, constraints_dict = data.get("jobs", []), data.get("constraints")
    jobs = [schedule_job_from_dict(j) for j in job_dicts]
    constraints = constraints_from_dict(constraints_dict)

    config = OptimizerConfig(
        sequencing_mode=mode,
        solver_config=SolverConfig(time_limit_seconds=time_limit),
    )
    schedule = ScheduleOptimizer(config=config).optimize(jobs, constraints)
    reporter = ReportGenerator()

    if as_json:
        print(json.dumps(optimized_schedule_to_dict(schedule), indent=2))
    else:
        print(reporter.generate_to_string(schedule, jobs, constraints), end="")
        _print_validation(ScheduleValidator().validate_schedule(schedule, jobs, constraints))

    if output_path:
        reporter.generate(schedule, jobs, output_path, constraints)
        print(f"Report written to {output_path}", file=sys.stderr)


def _print_validation(result) -> None:
    if result.is_valid:
        print("Validation: PASSED")
        return
    print(f"Validation: FAILED ({len(result.errors)} errors)")
    for error in result.errors[:5]:
        print(f"  - {error}")
    if len(result.errors) > 5:
        print(f"  ... and {len(result.errors) - 5} more errors")


def _iso_date(value: str) -> date:
    try:
        return parse_date(value)
    except ValidationError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fieldsched",
        description="fieldsched - Recurring jobs, calendar views and route optimization",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s demo                                   Sample month view and optimized day
  %(prog)s expand series.json --start 2024-01-01 --end 2024-01-31
  %(prog)s calendar data.json --view week --anchor 2024-03-13
  %(prog)s calendar data.json --view month --anchor 2024-03-13 --highlight S1
  %(prog)s optimize jobs.json --mode hybrid --output day.txt
        """,
    )
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Increase log output (-v info, -vv debug)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    demo_parser = subparsers.add_parser("demo", help="Run the sample calendar and optimizer")
    demo_parser.add_argument(
        "--anchor", "-a",
        type=_iso_date,
        default=None,
        help="Anchor date for the sample calendar (default: today)",
    )
    demo_parser.add_argument(
        "--output", "-o",
        type=str,
        help="Write the optimized day report to this file",
    )

    expand_parser = subparsers.add_parser(
        "expand",
        help="Generate instances of recurring series over a date window",
    )
    expand_parser.add_argument("series", help="JSON file with one or more series")
    expand_parser.add_argument("--start", "-s", type=_iso_date, required=True)
    expand_parser.add_argument("--end", "-e", type=_iso_date, required=True)

    calendar_parser = subparsers.add_parser("calendar", help="Print the agenda for a view")
    calendar_parser.add_argument("data", help="JSON file with series and instances")
    calendar_parser.add_argument(
        "--view",
        type=str,
        default="month",
        choices=[v.value for v in ViewType],
        help="Calendar view (default: month)",
    )
    calendar_parser.add_argument(
        "--anchor", "-a",
        type=_iso_date,
        default=None,
        help="Date the view is built around (default: today)",
    )
    calendar_parser.add_argument(
        "--highlight",
        type=str,
        default=None,
        help="Recurring series ID whose events are marked",
    )

    optimize_parser = subparsers.add_parser("optimize", help="Optimize one day's route")
    optimize_parser.add_argument("jobs", help="JSON file with jobs and optional constraints")
    optimize_parser.add_argument(
        "--mode", "-m",
        type=str,
        default="greedy",
        choices=[m.value for m in SequencingMode],
        help="Sequencing: greedy (fast), cpsat (exact), hybrid (best of both)",
    )
    optimize_parser.add_argument(
        "--time-limit", "-t",
        type=float,
        default=5.0,
        help="CP-SAT solver time limit in seconds (default: 5)",
    )
    optimize_parser.add_argument(
        "--output", "-o",
        type=str,
        help="Write the text report to this file",
    )
    optimize_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the schedule as JSON instead of a report",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "demo":
            run_demo(args.anchor or date.today(), args.output)
        elif args.command == "expand":
            run_expand(args.series, args.start, args.end)
        elif args.command == "calendar":
            run_calendar(
                args.data,
                ViewType.parse(args.view),
                args.anchor or date.today(),
                args.highlight,
            )
        elif args.command == "optimize":
            run_optimize(
                args.jobs,
                SequencingMode(args.mode),
                args.time_limit,
                args.output,
                args.json,
            )
        else:
            parser.print_help()
            return 1
    except ValidationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
