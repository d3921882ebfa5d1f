from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

from event_calendar.models import Event
from event_calendar.services.exceptions import FieldError, ValidationError

GRID_DAYS = 42


@dataclass
class GridDay:
    day: date
    in_month: bool
    events: list[Event] = field(default_factory=list)


@dataclass
class MonthGrid:
    year: int
    month: int
    days: list[GridDay]

    @property
    def weeks(self) -> list[list[GridDay]]:
        return [self.days[i : i + 7] for i in range(0, len(self.days), 7)]


def grid_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day shown for a month: six Monday-first weeks."""
    if not 1 <= month <= 12:
        raise ValidationError([FieldError("month", "Month must be between 1 and 12")])
    if not 1 <= year <= 9998:
        raise ValidationError([FieldError("year", "Year is out of range")])

    first = date(year, month, 1)
    grid_start = first - timedelta(days=first.weekday())
    return grid_start, grid_start + timedelta(days=GRID_DAYS - 1)


def grid_window(year: int, month: int) -> tuple[datetime, datetime]:
    first_day, last_day = grid_bounds(year, month)
    start = datetime.combine(first_day, time.min, tzinfo=timezone.utc)
    end = datetime.combine(last_day, time.max, tzinfo=timezone.utc)
    return start, end


def build_month_grid(year: int, month: int, events: Iterable[Event]) -> MonthGrid:
    grid_start, _ = grid_bounds(year, month)

    by_day: dict[date, list[Event]] = defaultdict(list)
    for event in events:
        by_day[event.start.astimezone(timezone.utc).date()].append(event)

    days: list[GridDay] = []
    for offset in range(GRID_DAYS):
        day = grid_start + timedelta(days=offset)
        bucket = sorted(by_day.get(day, []), key=lambda e: e.start)
        days.append(GridDay(day=day, in_month=day.month == month, events=bucket))
    return MonthGrid(year=year, month=month, days=days)
