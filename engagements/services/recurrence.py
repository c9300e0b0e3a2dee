"""
Recurrence calendar: pure date arithmetic for engagement periods.

Every granularity is expressed as a window ``[start, end]`` containing a
reference date. Month-based windows (monthly, quarterly, half-yearly, yearly)
start on a configurable day of month and are aligned to the fiscal-year start
month; a window always ends the day before the next one starts, so stepping
forward never leaves a gap or an overlap.
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, Optional

DAILY = "DAILY"
WEEKLY = "WEEKLY"
MONTHLY = "MONTHLY"
QUARTERLY = "QUARTERLY"
HALF_YEARLY = "HALF_YEARLY"
YEARLY = "YEARLY"

GRANULARITIES = (DAILY, WEEKLY, MONTHLY, QUARTERLY, HALF_YEARLY, YEARLY)
MONTH_STEPS = {MONTHLY: 1, QUARTERLY: 3, HALF_YEARLY: 6, YEARLY: 12}
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class CalendarConfig:
    fiscal_year_start_month: int = 4
    weekly_start_day: str = "monday"
    monthly_start_day: int = 1
    quarterly_start_day: int = 1
    half_yearly_start_day: int = 1
    yearly_start_day: int = 1

    def start_day_for(self, granularity: str) -> int:
        return {
            MONTHLY: self.monthly_start_day,
            QUARTERLY: self.quarterly_start_day,
            HALF_YEARLY: self.half_yearly_start_day,
            YEARLY: self.yearly_start_day,
        }.get(granularity, 1) or 1


@dataclass(frozen=True)
class PeriodWindow:
    start: date
    end: date
    name: str

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end

    def clip(self, start: date, end: date) -> Optional["PeriodWindow"]:
        lo = max(self.start, start)
        hi = min(self.end, end)
        if lo > hi:
            return None
        return PeriodWindow(lo, hi, self.name)


DEFAULT_CONFIG = CalendarConfig()


def granularity_rank(granularity: str) -> int:
    try:
        return GRANULARITIES.index(granularity)
    except ValueError:
        raise ValueError(f"Unknown granularity: {granularity!r}") from None


def weekday_index(name) -> Optional[int]:
    if not name:
        return None
    try:
        return WEEKDAYS.index(str(name).strip().lower())
    except ValueError:
        return None


def clamp_day(year: int, month: int, day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(day, 1), last_day))


def add_months(d: date, months: int) -> date:
    month_index = (d.month - 1) + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    return clamp_day(year, month, d.day)


def _from_index(month_index: int, day: int) -> date:
    return clamp_day(month_index // 12, month_index % 12 + 1, day)


def _fiscal_position(month_index: int, config: CalendarConfig) -> tuple[int, int]:
    """Return (months into the fiscal year, calendar year the fiscal year starts in)."""
    offset = (month_index - (config.fiscal_year_start_month - 1)) % 12
    return offset, (month_index - offset) // 12


def fiscal_year_label(fiscal_year: int, config: CalendarConfig) -> str:
    if config.fiscal_year_start_month == 1:
        return f"FY {fiscal_year}"
    return f"FY {fiscal_year}-{(fiscal_year + 1) % 100:02d}"


def _month_based_window(ref: date, granularity: str, config: CalendarConfig) -> PeriodWindow:
    step = MONTH_STEPS[granularity]
    day = config.start_day_for(granularity)
    anchor = config.fiscal_year_start_month - 1 if step > 1 else 0

    index = ref.year * 12 + ref.month - 1
    index -= (index - anchor) % step
    start = _from_index(index, day)
    if start > ref:
        index -= step
        start = _from_index(index, day)
    end = _from_index(index + step, day) - timedelta(days=1)

    if granularity == MONTHLY:
        name = f"{start:%b %Y}"
    else:
        offset, fiscal_year = _fiscal_position(index, config)
        if granularity == QUARTERLY:
            name = f"Q{offset // 3 + 1} FY{fiscal_year}"
        elif granularity == HALF_YEARLY:
            name = f"H{offset // 6 + 1} FY{fiscal_year}"
        else:
            name = fiscal_year_label(fiscal_year, config)
    return PeriodWindow(start, end, name)


def period_containing(ref: date, granularity: str, config: Optional[CalendarConfig] = None) -> PeriodWindow:
    config = config or DEFAULT_CONFIG
    if granularity == DAILY:
        return PeriodWindow(ref, ref, ref.isoformat())
    if granularity == WEEKLY:
        week_start = weekday_index(config.weekly_start_day)
        if week_start is None:
            week_start = 0
        start = ref - timedelta(days=(ref.weekday() - week_start) % 7)
        return PeriodWindow(start, start + timedelta(days=6), f"Week of {start:%b %d, %Y}")
    if granularity in MONTH_STEPS:
        return _month_based_window(ref, granularity, config)
    raise ValueError(f"Unknown granularity: {granularity!r}")


def next_period(window: PeriodWindow, granularity: str, config: Optional[CalendarConfig] = None) -> PeriodWindow:
    return period_containing(window.end + timedelta(days=1), granularity, config)


def previous_period(window: PeriodWindow, granularity: str, config: Optional[CalendarConfig] = None) -> PeriodWindow:
    return period_containing(window.start - timedelta(days=1), granularity, config)


def iter_periods(
    origin: date,
    until: date,
    granularity: str,
    config: Optional[CalendarConfig] = None,
) -> Iterator[PeriodWindow]:
    """Yield consecutive windows from the one containing ``origin`` while they start on or before ``until``."""
    window = period_containing(origin, granularity, config)
    while window.start <= until:
        yield window
        window = next_period(window, granularity, config)


def split_window(
    window: PeriodWindow,
    granularity: str,
    config: Optional[CalendarConfig] = None,
) -> list[PeriodWindow]:
    """
    Cut ``window`` into pieces of a finer granularity.
    Pieces are clipped to the window and keep the name of the finer period they belong to.
    """
    pieces = []
    for sub in iter_periods(window.start, window.end, granularity, config):
        clipped = sub.clip(window.start, window.end)
        if clipped is not None:
            pieces.append(clipped)
    return pieces
