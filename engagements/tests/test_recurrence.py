from datetime import date, timedelta

from django.test import SimpleTestCase

from engagements.services.recurrence import (
    DAILY,
    HALF_YEARLY,
    MONTHLY,
    QUARTERLY,
    WEEKLY,
    YEARLY,
    CalendarConfig,
    add_months,
    fiscal_year_label,
    iter_periods,
    next_period,
    period_containing,
    previous_period,
    split_window,
)


class PeriodContainingTests(SimpleTestCase):
    def test_monthly_window_and_name(self):
        window = period_containing(date(2025, 2, 14), MONTHLY)
        self.assertEqual((window.start, window.end), (date(2025, 2, 1), date(2025, 2, 28)))
        self.assertEqual(window.name, "Feb 2025")

    def test_daily_and_weekly_windows(self):
        day = period_containing(date(2025, 1, 8), DAILY)
        self.assertEqual((day.start, day.end, day.name), (date(2025, 1, 8), date(2025, 1, 8), "2025-01-08"))

        week = period_containing(date(2025, 1, 8), WEEKLY)
        self.assertEqual((week.start, week.end), (date(2025, 1, 6), date(2025, 1, 12)))
        self.assertEqual(week.name, "Week of Jan 06, 2025")

        sunday_weeks = CalendarConfig(weekly_start_day="sunday")
        week = period_containing(date(2025, 1, 8), WEEKLY, sunday_weeks)
        self.assertEqual((week.start, week.end), (date(2025, 1, 5), date(2025, 1, 11)))

    def test_fiscal_quarter_half_and_year(self):
        config = CalendarConfig(fiscal_year_start_month=4)
        ref = date(2025, 8, 15)

        quarter = period_containing(ref, QUARTERLY, config)
        self.assertEqual((quarter.start, quarter.end), (date(2025, 7, 1), date(2025, 9, 30)))
        self.assertEqual(quarter.name, "Q2 FY2025")

        half = period_containing(ref, HALF_YEARLY, config)
        self.assertEqual((half.start, half.end), (date(2025, 4, 1), date(2025, 9, 30)))
        self.assertEqual(half.name, "H1 FY2025")

        year = period_containing(ref, YEARLY, config)
        self.assertEqual((year.start, year.end), (date(2025, 4, 1), date(2026, 3, 31)))
        self.assertEqual(year.name, "FY 2025-26")

    def test_january_quarter_belongs_to_previous_fiscal_year(self):
        quarter = period_containing(date(2026, 2, 10), QUARTERLY, CalendarConfig(fiscal_year_start_month=4))
        self.assertEqual((quarter.start, quarter.end), (date(2026, 1, 1), date(2026, 3, 31)))
        self.assertEqual(quarter.name, "Q4 FY2025")

    def test_calendar_fiscal_year_label(self):
        config = CalendarConfig(fiscal_year_start_month=1)
        self.assertEqual(fiscal_year_label(2025, config), "FY 2025")
        self.assertEqual(period_containing(date(2025, 6, 1), YEARLY, config).name, "FY 2025")

    def test_start_day_is_clamped_to_short_months(self):
        config = CalendarConfig(monthly_start_day=31)

        january = period_containing(date(2025, 2, 15), MONTHLY, config)
        self.assertEqual((january.start, january.end), (date(2025, 1, 31), date(2025, 2, 27)))
        self.assertEqual(january.name, "Jan 2025")

        february = next_period(january, MONTHLY, config)
        self.assertEqual((february.start, february.end), (date(2025, 2, 28), date(2025, 3, 30)))

    def test_unknown_granularity(self):
        with self.assertRaises(ValueError):
            period_containing(date(2025, 1, 1), "FORTNIGHTLY")


class PeriodSteppingTests(SimpleTestCase):
    def test_next_and_previous_are_inverse(self):
        config = CalendarConfig(fiscal_year_start_month=4, quarterly_start_day=15)
        window = period_containing(date(2025, 5, 20), QUARTERLY, config)
        self.assertEqual(previous_period(next_period(window, QUARTERLY, config), QUARTERLY, config), window)

    def test_iteration_has_no_gaps_or_overlaps(self):
        for granularity in (DAILY, WEEKLY, MONTHLY, QUARTERLY, HALF_YEARLY, YEARLY):
            config = CalendarConfig(monthly_start_day=29, quarterly_start_day=5, weekly_start_day="wednesday")
            windows = list(iter_periods(date(2024, 1, 17), date(2025, 12, 31), granularity, config))
            self.assertTrue(windows, granularity)
            self.assertTrue(windows[0].contains(date(2024, 1, 17)), granularity)
            for current, following in zip(windows, windows[1:]):
                self.assertEqual(following.start, current.end + timedelta(days=1), granularity)
                self.assertLessEqual(current.start, current.end, granularity)
            self.assertLessEqual(windows[-1].start, date(2025, 12, 31), granularity)

    def test_iteration_includes_window_open_on_until(self):
        windows = list(iter_periods(date(2025, 1, 10), date(2025, 3, 15), MONTHLY))
        self.assertEqual([w.name for w in windows], ["Jan 2025", "Feb 2025", "Mar 2025"])

    def test_split_window_clips_weeks_to_month(self):
        january = period_containing(date(2025, 1, 1), MONTHLY)
        pieces = split_window(january, WEEKLY)

        self.assertEqual(pieces[0].start, date(2025, 1, 1))
        self.assertEqual(pieces[0].end, date(2025, 1, 5))
        self.assertEqual(pieces[0].name, "Week of Dec 30, 2024")
        self.assertEqual(pieces[-1].start, date(2025, 1, 27))
        self.assertEqual(pieces[-1].end, date(2025, 1, 31))
        self.assertEqual(len(pieces), 5)

    def test_add_months_clamps(self):
        self.assertEqual(add_months(date(2025, 1, 31), 1), date(2025, 2, 28))
        self.assertEqual(add_months(date(2024, 11, 30), 3), date(2025, 2, 28))
        self.assertEqual(add_months(date(2025, 3, 15), -3), date(2024, 12, 15))
