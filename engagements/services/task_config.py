from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from ..models import Recurrence


@dataclass(frozen=True)
class TaskRule:
    """A template merged with its per-engagement override."""

    template_id: int
    title: str
    description: str
    granularity: str
    due_day: str = ""
    due_month: Optional[int] = None
    exact_due_date: Optional[date] = None
    offset_type: str = ""
    offset_value: Optional[int] = None
    start_date: Optional[date] = None
    priority: str = "MEDIUM"
    estimated_hours: Optional[Decimal] = None
    assignee_id: Optional[int] = None
    sort_order: int = 0
    is_active: bool = True


def _pick(override, fallback):
    if override is None or override == "":
        return fallback
    return override


def build_task_rule(template, engagement, override=None) -> TaskRule:
    granularity = _pick(getattr(override, "recurrence", None), template.recurrence)
    if not granularity or granularity == Recurrence.NONE:
        granularity = engagement.recurrence

    return TaskRule(
        template_id=template.pk,
        title=_pick(getattr(override, "title", None), template.title),
        description=template.description,
        granularity=granularity,
        due_day=_pick(getattr(override, "due_day", None), template.due_day) or "",
        due_month=_pick(getattr(override, "due_month", None), template.due_month),
        exact_due_date=_pick(getattr(override, "exact_due_date", None), template.exact_due_date),
        offset_type=_pick(getattr(override, "due_offset_type", None), template.due_offset_type) or "",
        offset_value=_pick(getattr(override, "due_offset_value", None), template.due_offset_value),
        start_date=_pick(getattr(override, "start_date", None), template.start_date),
        priority=_pick(getattr(override, "priority", None), template.priority),
        estimated_hours=_pick(getattr(override, "estimated_hours", None), template.estimated_hours),
        assignee_id=_pick(getattr(override, "assignee_id", None), template.default_assignee_id),
        sort_order=template.sort_order,
        is_active=bool(_pick(getattr(override, "is_active", None), template.is_active)),
    )


def effective_task_rules(engagement) -> list[TaskRule]:
    """Active task rules for an engagement, in template order."""
    overrides = {config.template_id: config for config in engagement.task_configs.all()}
    rules = []
    for template in engagement.service.task_templates.order_by("sort_order", "id"):
        rule = build_task_rule(template, engagement, overrides.get(template.pk))
        if rule.is_active:
            rules.append(rule)
    return rules
