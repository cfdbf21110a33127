"""Reporting window resolution.

Turns a dashboard date selection into the current reporting window and the
equal-length window immediately preceding it, which is used for period deltas.
All windows are inclusive on both ends and never extend past ``today``.
"""
import calendar
from dataclasses import dataclass
from datetime import date, timedelta


class InvalidRange(ValueError):
    """Raised when a date selection cannot be turned into a reporting window."""


@dataclass(frozen=True)
class DateSelection:
    """One of: preset ``days``, explicit ``start_date``/``end_date``,
    calendar ``month`` + ``year``, calendar ``year``, or ``lifetime``.

    An empty selection means the default preset.
    """

    days: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    month: int | None = None
    year: int | None = None
    lifetime: bool = False

    @property
    def mode(self) -> str:
        explicit = self.start_date is not None or self.end_date is not None
        modes = [
            name
            for name, active in (
                ("explicit", explicit),
                ("month", self.month is not None),
                ("year", self.year is not None and self.month is None),
                ("lifetime", self.lifetime),
                ("days", self.days is not None),
            )
            if active
        ]
        if len(modes) > 1:
            raise InvalidRange(f"Conflicting date selections: {', '.join(modes)}")
        return modes[0] if modes else "days"


@dataclass(frozen=True)
class DateWindows:
    start_date: date
    end_date: date
    previous_start: date
    previous_end: date

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1


def _preceding(start: date, end: date) -> DateWindows:
    length = (end - start).days + 1
    try:
        previous_end = start - timedelta(days=1)
        previous_start = previous_end - timedelta(days=length - 1)
    except OverflowError as exc:
        raise InvalidRange(f"No previous period exists before {start.isoformat()}") from exc
    return DateWindows(start, end, previous_start, previous_end)


def _calendar_date(year: int, month: int, day: int) -> date:
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise InvalidRange(str(exc)) from exc


def resolve_windows(
    selection: DateSelection,
    *,
    today: date,
    reporting_delay_days: int = 0,
    service_start: date = date(2005, 2, 14),
    default_days: int = 28,
) -> DateWindows:
    """Resolve ``selection`` into current and previous windows.

    ``reporting_delay_days`` widens preset windows so that ``days`` worth of
    finalized upstream data is still covered when the most recent days are
    not yet reported.
    """
    mode = selection.mode

    if mode == "explicit":
        start, end = selection.start_date, selection.end_date
        if start is None or end is None:
            raise InvalidRange("Both start_date and end_date are required")
        if end < start:
            raise InvalidRange(
                f"end_date {end.isoformat()} precedes start_date {start.isoformat()}"
            )
        if start > today:
            raise InvalidRange(f"start_date {start.isoformat()} is in the future")
        return _preceding(start, min(end, today))

    if mode == "month":
        if selection.year is None:
            raise InvalidRange("A month selection requires a year")
        if not 1 <= selection.month <= 12:
            raise InvalidRange(f"Invalid month: {selection.month}")
        first = _calendar_date(selection.year, selection.month, 1)
        last_day = calendar.monthrange(selection.year, selection.month)[1]
        last = first.replace(day=last_day)
        if first > today:
            raise InvalidRange(f"{first.strftime('%B %Y')} has not started yet")
        return _preceding(first, min(last, today))

    if mode == "year":
        first = _calendar_date(selection.year, 1, 1)
        if first > today:
            raise InvalidRange(f"Year {selection.year} has not started yet")
        return _preceding(first, min(date(selection.year, 12, 31), today))

    if mode == "lifetime":
        return _preceding(min(service_start, today), today)

    days = default_days if selection.days is None else selection.days
    if days < 1:
        raise InvalidRange(f"days must be positive, got {days}")
    if reporting_delay_days < 0:
        raise InvalidRange(f"Reporting delay must not be negative, got {reporting_delay_days}")
    try:
        start = today - timedelta(days=days + reporting_delay_days - 1)
    except OverflowError as exc:
        raise InvalidRange(f"days out of range: {days}") from exc
    return _preceding(start, today)
