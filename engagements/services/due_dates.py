from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from .recurrence import (
    PeriodWindow,
    CalendarConfig,
    add_months,
    clamp_day,
    granularity_rank,
    period_containing,
    split_window,
    weekday_index,
)
from .task_config import TaskRule

EXACT = "exact"
MONTH_DAY = "month_day"
WEEKDAY = "weekday"
DAY_OF_MONTH = "day_of_month"
OFFSET = "offset"


@dataclass(frozen=True)
class ResolvedDueDate:
    due_date: date
    # Date the rule pinned against the window; decides which period the task belongs to.
    anchor: date
    rule: str


@dataclass(frozen=True)
class Occurrence:
    due_date: date
    sub_start: date
    sub_end: date
    label: Optional[str]
    index: int = 0


def _parse_due_day(raw) -> tuple[Optional[int], Optional[int]]:
    """Return (day_of_month, weekday) from a due-day value such as "20" or "friday"."""
    text = str(raw or "").strip()
    if not text:
        return None, None
    if text.isdigit():
        day = int(text)
        return (day if 1 <= day <= 31 else None), None
    return None, weekday_index(text)


def apply_offset(base: date, offset_type: str, value: Optional[int]) -> date:
    if not value:
        return base
    kind = (offset_type or "").upper()
    if kind == "WEEKS":
        return base + timedelta(weeks=value)
    if kind == "MONTHS":
        return add_months(base, value)
    return base + timedelta(days=value)


def resolve_due_date(rule: TaskRule, start: date, end: date) -> Optional[ResolvedDueDate]:
    """
    Resolve a task rule against ``[start, end]``. First matching rule wins:

    1. exact date, only when it falls inside the window
    2. month + day, for start's year, retried with end's year
    3. weekday name, first occurrence on/after start
    4. bare day of month, in the month containing end
    5. offset from end (end itself when no offset is configured)

    Returns None when the rule does not apply to the window.
    """
    if rule.exact_due_date:
        if start <= rule.exact_due_date <= end:
            return ResolvedDueDate(rule.exact_due_date, rule.exact_due_date, EXACT)
        return None

    day, weekday = _parse_due_day(rule.due_day)

    if rule.due_month and day:
        candidate = clamp_day(start.year, rule.due_month, day)
        if not (start <= candidate <= end) and end.year != start.year:
            candidate = clamp_day(end.year, rule.due_month, day)
        return ResolvedDueDate(candidate, candidate, MONTH_DAY)

    if weekday is not None:
        candidate = start + timedelta(days=(weekday - start.weekday()) % 7)
        return ResolvedDueDate(candidate, candidate, WEEKDAY)

    if day:
        candidate = clamp_day(end.year, end.month, day)
        return ResolvedDueDate(candidate, candidate, DAY_OF_MONTH)

    due = apply_offset(end, rule.offset_type, rule.offset_value)
    return ResolvedDueDate(due, end, OFFSET)


def resolve_occurrences(
    rule: TaskRule,
    window: PeriodWindow,
    period_granularity: str,
    config: Optional[CalendarConfig] = None,
    *,
    as_of: Optional[date] = None,
) -> list[Occurrence]:
    """
    Every dated occurrence of ``rule`` that belongs to ``window``.

    Finer tasks run once per sub-interval of the window; coarser tasks are
    resolved against the enclosing coarse interval and kept only when their
    anchor lands in this window.
    """
    task_rank = granularity_rank(rule.granularity)
    period_rank = granularity_rank(period_granularity)

    if task_rank == period_rank:
        resolved = resolve_due_date(rule, window.start, window.end)
        if resolved is None or not window.contains(resolved.anchor):
            return []
        return [Occurrence(resolved.due_date, window.start, window.end, None)]

    if task_rank > period_rank:
        # A window can straddle two coarse intervals; each may anchor a task here.
        coarse_windows = [period_containing(window.start, rule.granularity, config)]
        if not coarse_windows[0].contains(window.end):
            coarse_windows.append(period_containing(window.end, rule.granularity, config))
        occurrences = []
        for index, coarse in enumerate(coarse_windows):
            resolved = resolve_due_date(rule, coarse.start, coarse.end)
            if resolved is None or not coarse.contains(resolved.anchor) or not window.contains(resolved.anchor):
                continue
            occurrences.append(Occurrence(resolved.due_date, coarse.start, coarse.end, coarse.name, index))
        return occurrences

    occurrences = []
    for index, piece in enumerate(split_window(window, rule.granularity, config)):
        if as_of is not None and piece.start > as_of:
            break
        resolved = resolve_due_date(rule, piece.start, piece.end)
        if resolved is None or not piece.contains(resolved.anchor):
            continue
        occurrences.append(Occurrence(resolved.due_date, piece.start, piece.end, piece.name, index))
    return occurrences
