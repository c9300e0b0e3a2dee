from datetime import date

from django.test import SimpleTestCase

from engagements.services.due_dates import (
    DAY_OF_MONTH,
    EXACT,
    MONTH_DAY,
    OFFSET,
    WEEKDAY,
    apply_offset,
    resolve_due_date,
    resolve_occurrences,
)
from engagements.services.recurrence import MONTHLY, QUARTERLY, WEEKLY, YEARLY, CalendarConfig, period_containing
from engagements.services.task_config import TaskRule


def rule(granularity=MONTHLY, **kwargs):
    return TaskRule(template_id=1, title="File return", description="", granularity=granularity, **kwargs)


class ResolveDueDateTests(SimpleTestCase):
    def test_exact_date_only_inside_window(self):
        exact = rule(exact_due_date=date(2025, 3, 12), due_day="20")

        resolved = resolve_due_date(exact, date(2025, 3, 1), date(2025, 3, 31))
        self.assertEqual((resolved.due_date, resolved.rule), (date(2025, 3, 12), EXACT))

        self.assertIsNone(resolve_due_date(exact, date(2025, 4, 1), date(2025, 4, 30)))

    def test_month_and_day_within_fiscal_year(self):
        annual = rule(YEARLY, due_day="31", due_month=7)
        resolved = resolve_due_date(annual, date(2025, 4, 1), date(2026, 3, 31))
        self.assertEqual((resolved.due_date, resolved.rule), (date(2025, 7, 31), MONTH_DAY))

    def test_month_and_day_retries_with_end_year(self):
        annual = rule(YEARLY, due_day="15", due_month=2)
        resolved = resolve_due_date(annual, date(2025, 4, 1), date(2026, 3, 31))
        self.assertEqual(resolved.due_date, date(2026, 2, 15))

    def test_month_and_day_clamps_to_month_length(self):
        annual = rule(YEARLY, due_day="31", due_month=2)
        resolved = resolve_due_date(annual, date(2025, 1, 1), date(2025, 12, 31))
        self.assertEqual(resolved.due_date, date(2025, 2, 28))

    def test_weekday_is_first_on_or_after_start(self):
        weekly = rule(WEEKLY, due_day="Friday")
        resolved = resolve_due_date(weekly, date(2025, 1, 6), date(2025, 1, 12))
        self.assertEqual((resolved.due_date, resolved.rule), (date(2025, 1, 10), WEEKDAY))

        resolved = resolve_due_date(rule(WEEKLY, due_day="monday"), date(2025, 1, 6), date(2025, 1, 12))
        self.assertEqual(resolved.due_date, date(2025, 1, 6))

    def test_day_of_month_uses_month_of_window_end(self):
        monthly = rule(due_day="20")
        resolved = resolve_due_date(monthly, date(2025, 1, 1), date(2025, 1, 31))
        self.assertEqual((resolved.due_date, resolved.rule), (date(2025, 1, 20), DAY_OF_MONTH))

        resolved = resolve_due_date(rule(due_day="31"), date(2025, 2, 1), date(2025, 2, 28))
        self.assertEqual(resolved.due_date, date(2025, 2, 28))

    def test_offset_from_period_end_is_anchored_to_end(self):
        quarterly = rule(QUARTERLY, offset_type="DAYS", offset_value=10)
        resolved = resolve_due_date(quarterly, date(2025, 7, 1), date(2025, 9, 30))
        self.assertEqual(resolved.due_date, date(2025, 10, 10))
        self.assertEqual(resolved.anchor, date(2025, 9, 30))
        self.assertEqual(resolved.rule, OFFSET)

    def test_no_rule_falls_back_to_period_end(self):
        resolved = resolve_due_date(rule(), date(2025, 1, 1), date(2025, 1, 31))
        self.assertEqual(resolved.due_date, date(2025, 1, 31))

    def test_invalid_due_day_falls_through_to_offset(self):
        resolved = resolve_due_date(rule(due_day="someday", offset_type="WEEKS", offset_value=1), date(2025, 1, 1), date(2025, 1, 31))
        self.assertEqual(resolved.due_date, date(2025, 2, 7))

    def test_apply_offset_units(self):
        base = date(2025, 1, 31)
        self.assertEqual(apply_offset(base, "DAYS", 1), date(2025, 2, 1))
        self.assertEqual(apply_offset(base, "WEEKS", 2), date(2025, 2, 14))
        self.assertEqual(apply_offset(base, "MONTHS", 1), date(2025, 2, 28))
        self.assertEqual(apply_offset(base, "", None), base)


class ResolveOccurrencesTests(SimpleTestCase):
    def setUp(self):
        self.config = CalendarConfig(fiscal_year_start_month=4)
        self.january = period_containing(date(2025, 1, 15), MONTHLY, self.config)

    def test_same_granularity_single_occurrence(self):
        occurrences = resolve_occurrences(rule(due_day="10"), self.january, MONTHLY, self.config)
        self.assertEqual(len(occurrences), 1)
        self.assertEqual(occurrences[0].due_date, date(2025, 1, 10))
        self.assertEqual((occurrences[0].sub_start, occurrences[0].sub_end), (self.january.start, self.january.end))
        self.assertIsNone(occurrences[0].label)

    def test_weekly_task_in_monthly_period(self):
        occurrences = resolve_occurrences(rule(WEEKLY, due_day="friday"), self.january, MONTHLY, self.config)
        self.assertEqual(
            [o.due_date.day for o in occurrences],
            [3, 10, 17, 24, 31],
        )
        self.assertEqual([o.index for o in occurrences], [0, 1, 2, 3, 4])

    def test_weekly_task_stops_after_as_of(self):
        occurrences = resolve_occurrences(
            rule(WEEKLY, due_day="friday"), self.january, MONTHLY, self.config, as_of=date(2025, 1, 15)
        )
        self.assertEqual([o.due_date.day for o in occurrences], [3, 10, 17])

    def test_weekday_outside_clipped_piece_is_skipped(self):
        february = period_containing(date(2025, 2, 1), MONTHLY, self.config)
        occurrences = resolve_occurrences(rule(WEEKLY, due_day="friday"), february, MONTHLY, self.config)
        self.assertEqual(occurrences[0].due_date, date(2025, 2, 7))
        self.assertEqual(len(occurrences), 4)

    def test_quarterly_task_lands_in_month_holding_its_anchor(self):
        quarterly = rule(QUARTERLY, offset_type="DAYS", offset_value=30)
        april = period_containing(date(2025, 4, 1), MONTHLY, self.config)
        june = period_containing(date(2025, 6, 1), MONTHLY, self.config)

        self.assertEqual(resolve_occurrences(quarterly, april, MONTHLY, self.config), [])
        occurrences = resolve_occurrences(quarterly, june, MONTHLY, self.config)
        self.assertEqual(len(occurrences), 1)
        self.assertEqual(occurrences[0].due_date, date(2025, 7, 30))
        self.assertEqual(occurrences[0].label, "Q1 FY2025")
        self.assertEqual(
            (occurrences[0].sub_start, occurrences[0].sub_end),
            (date(2025, 4, 1), date(2025, 6, 30)),
        )

    def test_monthly_task_in_week_spanning_two_months(self):
        week = period_containing(date(2025, 7, 1), WEEKLY, self.config)
        self.assertEqual((week.start, week.end), (date(2025, 6, 30), date(2025, 7, 6)))

        occurrences = resolve_occurrences(rule(MONTHLY, due_day="3"), week, WEEKLY, self.config)

        self.assertEqual([o.due_date for o in occurrences], [date(2025, 7, 3)])
        self.assertEqual((occurrences[0].sub_start, occurrences[0].label), (date(2025, 7, 1), "Jul 2025"))

        occurrences = resolve_occurrences(rule(MONTHLY, due_day="30"), week, WEEKLY, self.config)
        self.assertEqual([o.due_date for o in occurrences], [date(2025, 6, 30)])
        self.assertEqual(occurrences[0].sub_start, date(2025, 6, 1))

    def test_exact_date_outside_window_yields_nothing(self):
        exact = rule(exact_due_date=date(2025, 2, 10))
        self.assertEqual(resolve_occurrences(exact, self.january, MONTHLY, self.config), [])
