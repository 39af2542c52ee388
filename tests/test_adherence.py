import unittest
import sys
import os
from datetime import date, datetime, time, timedelta
# make project modules importable when tests are run directly
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from core.adherence import compute_stats, scheduled_dose_count
from core.models import DoseRecord, Medication

TODAY = date(2026, 10, 19)
NOW = datetime(2026, 10, 19, 12, 0)


def make_med(med_id="1", schedules=2, start=TODAY, end=None, active=True, taken=()):
    med = Medication(
        id=med_id,
        name=f"Med {med_id}",
        dosage="1 tablet",
        start_date=start,
        end_date=end or TODAY + timedelta(days=30),
        schedules=[time(8 + 4 * i, 0) for i in range(schedules)],
        active=active,
    )
    for moment in taken:
        med.history.append(DoseRecord(date=moment, scheduled=moment))
    return med


class TestScheduledDoseCount(unittest.TestCase):
    def test_not_started(self):
        self.assertEqual(scheduled_dose_count(make_med(start=TODAY + timedelta(days=1)), NOW), 0)

    def test_counts_through_today(self):
        med = make_med(schedules=2, start=TODAY - timedelta(days=4))
        self.assertEqual(scheduled_dose_count(med, NOW), 10)

    def test_stops_at_end_date(self):
        med = make_med(schedules=1, start=TODAY - timedelta(days=9), end=TODAY - timedelta(days=5))
        self.assertEqual(scheduled_dose_count(med, NOW), 5)


class TestComputeStats(unittest.TestCase):
    def test_empty(self):
        stats = compute_stats([], NOW)
        self.assertEqual((stats.active_count, stats.taken_today, stats.total_today, stats.adherence_rate),
                         (0, 0, 0, 0))

    def test_today_counts(self):
        yesterday = NOW - timedelta(days=1)
        med = make_med(start=TODAY - timedelta(days=1), taken=[yesterday, NOW.replace(hour=8)])
        inactive = make_med("2", active=False)
        later = make_med("3", start=TODAY + timedelta(days=2))
        stats = compute_stats([med, inactive, later], NOW)
        self.assertEqual(stats.active_count, 2)
        self.assertEqual(stats.taken_today, 1)
        self.assertEqual(stats.total_today, 2)
        self.assertEqual(stats.to_dict()["takenTodayDisplay"], "1/2")

    def test_rate(self):
        start = TODAY - timedelta(days=4)
        doses = [datetime.combine(start, time(8, 0)) + timedelta(days=i) for i in range(7)]
        stats = compute_stats([make_med(start=start, taken=doses)], NOW)
        self.assertEqual(stats.adherence_rate, 70)

    def test_rate_rounds_half_up(self):
        start = TODAY - timedelta(days=3)
        stats = compute_stats([make_med(start=start, taken=[NOW])], NOW)
        self.assertEqual(stats.adherence_rate, 13)

    def test_rate_is_clamped(self):
        stats = compute_stats([make_med(schedules=1, taken=[NOW, NOW, NOW])], NOW)
        self.assertEqual(stats.adherence_rate, 100)

    def test_no_scheduled_doses(self):
        stats = compute_stats([make_med(start=TODAY + timedelta(days=1))], NOW)
        self.assertEqual(stats.adherence_rate, 0)

    def test_inactive_history_still_counts_toward_rate(self):
        med = make_med(schedules=1, active=False, taken=[NOW])
        self.assertEqual(compute_stats([med], NOW).adherence_rate, 100)


if __name__ == '__main__':
    unittest.main()
