from datetime import datetime
from zoneinfo import ZoneInfo

from django.test import SimpleTestCase

from apps.billing import schedule
from apps.billing.exceptions import ScheduleError
from apps.billing.schedule import DAY, MONTH, WEEK, YEAR
from .factories import utc

NEW_YORK = ZoneInfo('America/New_York')


class MonthClampingTest(SimpleTestCase):
    def test_end_of_month_anchor_clamps_to_february(self):
        anchor = utc(2023, 1, 31)
        self.assertEqual(schedule.advance_after(anchor, MONTH, 1, anchor), utc(2023, 2, 28))

    def test_clamped_month_returns_to_anchor_day(self):
        anchor = utc(2023, 1, 31)
        self.assertEqual(schedule.occurrence_at(anchor, MONTH, 1, 2), utc(2023, 3, 31))
        self.assertEqual(schedule.advance_after(anchor, MONTH, 1, utc(2023, 2, 28)), utc(2023, 3, 31))

    def test_leap_year_february(self):
        self.assertEqual(schedule.occurrence_at(utc(2024, 1, 31), MONTH, 1, 1), utc(2024, 2, 29))

    def test_yearly_leap_day_anchor(self):
        anchor = utc(2024, 2, 29)
        self.assertEqual(schedule.occurrence_at(anchor, YEAR, 1, 1), utc(2025, 2, 28))
        self.assertEqual(schedule.occurrence_at(anchor, YEAR, 1, 4), utc(2028, 2, 29))

    def test_quarterly(self):
        self.assertEqual(schedule.occurrence_at(utc(2024, 1, 15), MONTH, 3, 3), utc(2024, 10, 15))


class OccurrenceTest(SimpleTestCase):
    def test_biweekly(self):
        anchor = utc(2024, 1, 1, 9, 30)
        self.assertEqual(schedule.next_occurrence_after(anchor, WEEK, 2, anchor), utc(2024, 1, 15, 9, 30))

    def test_is_occurrence(self):
        anchor = utc(2023, 1, 31)
        self.assertTrue(schedule.is_occurrence(anchor, MONTH, 1, utc(2023, 2, 28)))
        self.assertFalse(schedule.is_occurrence(anchor, MONTH, 1, utc(2023, 2, 27)))
        self.assertFalse(schedule.is_occurrence(anchor, MONTH, 1, utc(2022, 12, 31)))

    def test_latest_occurrence_before_anchor_is_none(self):
        anchor = utc(2024, 1, 1)
        self.assertIsNone(schedule.latest_occurrence_at_or_before(anchor, MONTH, 1, utc(2023, 12, 31)))
        self.assertEqual(schedule.latest_occurrence_at_or_before(anchor, MONTH, 1, anchor), anchor)

    def test_far_future_lookup(self):
        anchor = utc(2000, 1, 1)
        self.assertEqual(schedule.next_occurrence_after(anchor, DAY, 1, utc(2030, 6, 15, 12)), utc(2030, 6, 16))


class TimeZoneTest(SimpleTestCase):
    def test_monthly_keeps_local_wall_clock_across_dst(self):
        # 09:00 EST is 14:00 UTC; 09:00 EDT is 13:00 UTC
        anchor = utc(2024, 3, 1, 14)
        self.assertEqual(schedule.occurrence_at(anchor, MONTH, 1, 1, NEW_YORK), utc(2024, 4, 1, 13))

    def test_daily_steps_are_calendar_days(self):
        anchor = utc(2024, 3, 9, 14)
        self.assertEqual(schedule.next_occurrence_after(anchor, DAY, 1, anchor, NEW_YORK), utc(2024, 3, 10, 13))

    def test_end_of_month_uses_local_calendar(self):
        # Jan 31 19:00 in New York is Feb 1 00:00 UTC
        anchor = utc(2024, 2, 1)
        self.assertEqual(schedule.occurrence_at(anchor, MONTH, 1, 1, NEW_YORK), utc(2024, 3, 1))
        self.assertEqual(schedule.occurrence_at(anchor, MONTH, 1, 2, NEW_YORK), utc(2024, 3, 31, 23))

    def test_unknown_zone(self):
        with self.assertRaises(ScheduleError):
            schedule.resolve_zone('Mars/Olympus_Mons')

    def test_empty_zone_is_utc(self):
        self.assertEqual(schedule.resolve_zone(''), ZoneInfo('UTC'))


class CatchUpTest(SimpleTestCase):
    anchor = utc(2024, 1, 1)

    def test_on_time_tick_bills_next_due(self):
        cycle = schedule.current_cycle_start(self.anchor, MONTH, 1, utc(2024, 2, 1), utc(2024, 1, 29))
        self.assertEqual(cycle, utc(2024, 2, 1))

    def test_missed_ticks_bill_current_cycle_only(self):
        cycle = schedule.current_cycle_start(self.anchor, MONTH, 1, utc(2024, 1, 1), utc(2024, 5, 15))
        self.assertEqual(cycle, utc(2024, 5, 1))
        self.assertEqual(schedule.advance_after(self.anchor, MONTH, 1, cycle), utc(2024, 6, 1))

    def test_next_due_off_the_series(self):
        with self.assertRaises(ScheduleError):
            schedule.current_cycle_start(self.anchor, MONTH, 1, utc(2024, 1, 15), utc(2024, 1, 20))


class InvalidCalendarDataTest(SimpleTestCase):
    def test_naive_anchor(self):
        with self.assertRaises(ScheduleError):
            schedule.occurrence_at(datetime(2024, 1, 1), MONTH, 1, 1)

    def test_unknown_unit(self):
        with self.assertRaises(ScheduleError):
            schedule.advance_after(utc(2024, 1, 1), 'fortnight', 1, utc(2024, 1, 1))

    def test_non_positive_count(self):
        for count in (0, -1, True):
            with self.assertRaises(ScheduleError):
                schedule.advance_after(utc(2024, 1, 1), MONTH, count, utc(2024, 1, 1))

    def test_negative_index(self):
        with self.assertRaises(ScheduleError):
            schedule.occurrence_at(utc(2024, 1, 1), MONTH, 1, -1)
