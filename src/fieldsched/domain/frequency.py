"""Date arithmetic for recurring series.

Monthly steps keep the series' day of month and clamp it to the last day
of shorter months, so a series anchored on the 31st lands on Feb 28/29
and April 30, then back on the 31st where the month allows.
"""

from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

from fieldsched.domain.models import Frequency

_DAY_STEPS = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
    Frequency.BI_WEEKLY: 14,
}


def next_occurrence(
    frequency: Frequency,
    from_date: date,
    anchor_day: Optional[int] = None,
) -> date:
    """Get the occurrence following ``from_date``.

    Args:
        frequency: Series frequency (raw strings are parsed).
        from_date: The current occurrence.
        anchor_day: Day of month a monthly series is anchored on. Defaults
            to ``from_date.day``; pass the series' start day to recover
            from an earlier clamp.

    Returns:
        The next occurrence date.

    Raises:
        ValidationError: If the frequency is not recognized.
    """
    frequency = Frequency.parse(frequency)
    if frequency is Frequency.MONTHLY:
        # relativedelta clamps an absolute day to the month's length
        return from_date + relativedelta(months=1, day=anchor_day or from_date.day)
    return from_date + timedelta(days=_DAY_STEPS[frequency])


def nth_occurrence(frequency: Frequency, anchor: date, n: int) -> date:
    """Get occurrence ``n`` (0-based) of a series starting on ``anchor``."""
    frequency = Frequency.parse(frequency)
    if frequency is Frequency.MONTHLY:
        return anchor + relativedelta(months=n, day=anchor.day)
    return anchor + timedelta(days=_DAY_STEPS[frequency] * n)


def occurrence_index_on_or_after(frequency: Frequency, anchor: date, target: date) -> int:
    """Index of the first occurrence on or after ``target``."""
    frequency = Frequency.parse(frequency)
    if target <= anchor:
        return 0
    if frequency is Frequency.MONTHLY:
        n = (target.year - anchor.year) * 12 + (target.month - anchor.month)
        # the clamped date in target's month can still fall before target
        if nth_occurrence(frequency, anchor, n) < target:
            n += 1
        return n
    step = _DAY_STEPS[frequency]
    return -(-(target - anchor).days // step)


def occurrence_on_or_after(frequency: Frequency, anchor: date, target: date) -> date:
    """First date of the series grid anchored on ``anchor`` that is ``>= target``."""
    return nth_occurrence(
        frequency, anchor, occurrence_index_on_or_after(frequency, anchor, target)
    )


def occurrences_between(
    frequency: Frequency,
    anchor: date,
    start: date,
    end: date,
) -> list[date]:
    """All series dates in ``[start, end]``, for previews and validation."""
    result = []
    n = occurrence_index_on_or_after(frequency, anchor, start)
    current = nth_occurrence(frequency, anchor, n)
    while current <= end:
        result.append(current)
        n += 1
        current = nth_occurrence(frequency, anchor, n)
    return result
