import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ..models import Engagement, EngagementTask, Period, PeriodTask
from .due_dates import apply_offset, resolve_occurrences
from .invoicing import refresh_period_progress
from .recurrence import PeriodWindow, iter_periods, next_period, period_containing, previous_period
from .task_config import TaskRule, effective_task_rules

logger = logging.getLogger(__name__)

LOOKAHEAD_NONE = "none"
LOOKAHEAD_ONE_AHEAD = "one_ahead"
LOOKAHEAD_CHOICES = (LOOKAHEAD_NONE, LOOKAHEAD_ONE_AHEAD)


@dataclass
class GenerationResult:
    engagement_id: int
    as_of: date
    periods_created: int = 0
    tasks_created: int = 0
    periods: list = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "engagement_id": self.engagement_id,
            "as_of": self.as_of.isoformat(),
            "periods_created": self.periods_created,
            "tasks_created": self.tasks_created,
            "periods": [p.pk for p in self.periods],
        }


def _lookahead_policy(lookahead: Optional[str]) -> str:
    value = (lookahead or getattr(settings, "PERIOD_LOOKAHEAD", LOOKAHEAD_NONE) or LOOKAHEAD_NONE).lower()
    if value not in LOOKAHEAD_CHOICES:
        raise ValueError(f"Unknown lookahead policy: {value!r}")
    return value


def candidate_windows(engagement, as_of: date, lookahead: str = LOOKAHEAD_NONE) -> list[PeriodWindow]:
    """Windows to evaluate: from the engagement start up to the one containing ``as_of``."""
    granularity = engagement.recurrence
    config = engagement.calendar_config()

    if engagement.start_date:
        origin = engagement.start_date
    else:
        window = period_containing(as_of, granularity, config)
        for _ in range(max(getattr(settings, "ENGAGEMENT_LOOKBACK_PERIODS", 1), 0)):
            window = previous_period(window, granularity, config)
        origin = window.start

    until = as_of
    if lookahead == LOOKAHEAD_ONE_AHEAD:
        until = next_period(period_containing(as_of, granularity, config), granularity, config).start
    if engagement.end_date and engagement.end_date < until:
        until = engagement.end_date

    return list(iter_periods(origin, until, granularity, config))


def occurrences_for_window(engagement, rules: list[TaskRule], window: PeriodWindow, as_of: date):
    """Pairs of (rule, occurrence) that qualify the window for a Period."""
    config = engagement.calendar_config()
    # Sub-intervals after as-of are only cut for windows that have already started.
    cutoff = as_of if window.start <= as_of else None
    qualifying = []
    for rule in rules:
        if rule.start_date and rule.start_date > window.end:
            continue
        for occurrence in resolve_occurrences(rule, window, engagement.recurrence, config, as_of=cutoff):
            if engagement.start_date and occurrence.due_date < engagement.start_date:
                continue
            qualifying.append((rule, occurrence))
    return qualifying


def _get_or_create_period(engagement, window: PeriodWindow):
    existing = (
        Period.objects.filter(engagement=engagement, period_start=window.start).first()
        or Period.objects.filter(engagement=engagement, period_end=window.end).first()
    )
    if existing is not None:
        return existing, False
    return Period.objects.get_or_create(
        engagement=engagement,
        period_start=window.start,
        defaults={"period_end": window.end, "name": window.name},
    )


def _task_title(rule: TaskRule, label: Optional[str]) -> str:
    return f"{rule.title} ({label})" if label else rule.title


def generate_periods(engagement, *, as_of: Optional[date] = None, lookahead: Optional[str] = None) -> GenerationResult:
    """
    Materialise every elapsed (and currently open) period of a recurring engagement
    together with its checklist tasks. Safe to call repeatedly.
    """
    as_of = as_of or timezone.localdate()
    policy = _lookahead_policy(lookahead)
    result = GenerationResult(engagement_id=engagement.pk, as_of=as_of)

    if not engagement.is_recurring:
        return result

    with transaction.atomic():
        # Serialise concurrent generation for the same engagement.
        locked = Engagement.objects.select_for_update().select_related("service").get(pk=engagement.pk)
        rules = effective_task_rules(locked)
        if not rules:
            logger.info("Engagement %s has no active task templates; nothing to generate", locked.pk)
            return result

        for window in candidate_windows(locked, as_of, policy):
            qualifying = occurrences_for_window(locked, rules, window, as_of)
            if not qualifying:
                continue

            period, created = _get_or_create_period(locked, window)
            if created:
                result.periods_created += 1

            new_tasks = 0
            for rule, occurrence in qualifying:
                _, task_created = PeriodTask.objects.get_or_create(
                    period=period,
                    template_id=rule.template_id,
                    sub_period_start=occurrence.sub_start,
                    defaults={
                        "sub_period_end": occurrence.sub_end,
                        "title": _task_title(rule, occurrence.label),
                        "description": rule.description,
                        "due_date": occurrence.due_date,
                        "priority": rule.priority,
                        "estimated_hours": rule.estimated_hours,
                        "assigned_to_id": rule.assignee_id or locked.assigned_to_id,
                        "sort_order": rule.sort_order * 1000 + occurrence.index,
                    },
                )
                if task_created:
                    new_tasks += 1

            result.tasks_created += new_tasks
            result.periods.append(period)
            if created or new_tasks:
                refresh_period_progress(period)

    logger.info(
        "Generated %s periods and %s tasks for engagement %s as of %s",
        result.periods_created,
        result.tasks_created,
        engagement.pk,
        as_of,
    )
    return result


def regenerate_periods(engagement, *, as_of: Optional[date] = None, lookahead: Optional[str] = None) -> GenerationResult:
    """Drop unbilled periods and build them again from the current templates."""
    with transaction.atomic():
        engagement.periods.filter(invoice__isnull=True, invoice_generated=False).delete()
        return generate_periods(engagement, as_of=as_of, lookahead=lookahead)


@transaction.atomic
def copy_templates_to_engagement(engagement) -> int:
    """Create the flat checklist of a one-off engagement. Returns the number of tasks added."""
    if engagement.is_recurring:
        return 0

    created_count = 0
    for rule in effective_task_rules(engagement):
        due_date = rule.exact_due_date
        if due_date is None and engagement.start_date:
            due_date = apply_offset(engagement.start_date, rule.offset_type, rule.offset_value)
        _, created = EngagementTask.objects.get_or_create(
            engagement=engagement,
            template_id=rule.template_id,
            defaults={
                "title": rule.title,
                "description": rule.description,
                "due_date": due_date,
                "priority": rule.priority,
                "estimated_hours": rule.estimated_hours,
                "assigned_to_id": rule.assignee_id or engagement.assigned_to_id,
                "sort_order": rule.sort_order,
            },
        )
        if created:
            created_count += 1
    return created_count


def generate_for_engagement(engagement, *, as_of: Optional[date] = None, lookahead: Optional[str] = None) -> GenerationResult:
    """Entry point for signals and commands: periods for recurring work, a checklist for one-off work."""
    if engagement.is_recurring:
        return generate_periods(engagement, as_of=as_of, lookahead=lookahead)
    result = GenerationResult(engagement_id=engagement.pk, as_of=as_of or timezone.localdate())
    result.tasks_created = copy_templates_to_engagement(engagement)
    return result
