"""Calendar navigation state.

The state is the pair (view type, anchor date). Every transition returns
a new state; nothing is mutated, so a state can be shared freely between
requests.
"""

from dataclasses import dataclass, replace
from datetime import date

from fieldsched.calendar.window import compute_window, shift_anchor
from fieldsched.domain.models import CalendarWindow, ViewType


@dataclass(frozen=True)
class CalendarState:
    """Where the calendar is looking.

    Attributes:
        view_type: Current view granularity.
        anchor_date: Date the view is built around.
    """

    view_type: ViewType
    anchor_date: date

    def __post_init__(self):
        object.__setattr__(self, "view_type", ViewType.parse(self.view_type))

    @property
    def window(self) -> CalendarWindow:
        return compute_window(self.view_type, self.anchor_date)

    def next(self) -> "CalendarState":
        """Move forward one unit of the current view."""
        return replace(self, anchor_date=shift_anchor(self.view_type, self.anchor_date, 1))

    def prev(self) -> "CalendarState":
        """Move back one unit of the current view."""
        return replace(self, anchor_date=shift_anchor(self.view_type, self.anchor_date, -1))

    def switch_view(self, view_type: ViewType) -> "CalendarState":
        """Change granularity around the same anchor."""
        return replace(self, view_type=ViewType.parse(view_type))

    def drill_down(self, view_type: ViewType, anchor_date: date) -> "CalendarState":
        """Select a cell: new anchor and new view in one transition."""
        return CalendarState(view_type=ViewType.parse(view_type), anchor_date=anchor_date)

    def today(self, today: date) -> "CalendarState":
        """Jump back to the view containing ``today``."""
        return replace(self, anchor_date=today)
