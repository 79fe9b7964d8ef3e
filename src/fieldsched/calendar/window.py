"""Date ranges for calendar views."""

from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from fieldsched.domain.models import CalendarWindow, ViewType

MONTH_GRID_CELLS = 42  # 6 rows x 7 days


def days_since_sunday(d: date) -> int:
    """Offset of a date from the Sunday that starts its week."""
    return (d.weekday() + 1) % 7


def compute_window(view_type: ViewType, anchor_date: date) -> CalendarWindow:
    """Compute the date range a view shows around an anchor date.

    - week: Sunday through Saturday of the anchor's week.
    - month: the anchor's month padded by one month on each side, so the
      neighbouring months are on hand while navigating.
    - year: Jan 1 through Dec 31 of the anchor's year.

    Raises:
        ValidationError: If the view type is not recognized.
    """
    view_type = ViewType.parse(view_type)

    if view_type is ViewType.WEEK:
        start = anchor_date - timedelta(days=days_since_sunday(anchor_date))
        return CalendarWindow(start=start, end=start + timedelta(days=6))

    if view_type is ViewType.MONTH:
        first = anchor_date.replace(day=1)
        start = first - relativedelta(months=1)
        end = first + relativedelta(months=2) - timedelta(days=1)
        return CalendarWindow(start=start, end=end)

    return CalendarWindow(
        start=date(anchor_date.year, 1, 1),
        end=date(anchor_date.year, 12, 31),
    )


def shift_anchor(view_type: ViewType, anchor_date: date, steps: int) -> date:
    """Move an anchor by whole view units (weeks, months or years)."""
    view_type = ViewType.parse(view_type)
    if view_type is ViewType.WEEK:
        return anchor_date + timedelta(weeks=steps)
    if view_type is ViewType.MONTH:
        return anchor_date + relativedelta(months=steps)
    return anchor_date + relativedelta(years=steps)


def month_grid(anchor_date: date) -> list[date]:
    """Dates shown in a month view: six Sunday-first weeks covering the month."""
    first = anchor_date.replace(day=1)
    grid_start = first - timedelta(days=days_since_sunday(first))
    return [grid_start + timedelta(days=i) for i in range(MONTH_GRID_CELLS)]
