import unittest
import sys
import os
from datetime import date, datetime, time, timedelta
# make project modules importable when tests are run directly
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from core.models import Medication
from core.schedule import resolve_next, next_occurrence, format_countdown

TODAY = date(2026, 10, 19)


def make_med(med_id="1", name="Aspirin", schedules=("09:00",), start=TODAY, end=None, active=True):
    return Medication(
        id=med_id,
        name=name,
        dosage="100mg",
        start_date=start,
        end_date=end or start + timedelta(days=30),
        schedules=[time(int(s[:2]), int(s[3:])) for s in schedules],
        active=active,
    )


def at(hour, minute, second=0, day=TODAY):
    return datetime.combine(day, time(hour, minute, second))


class TestNextOccurrence(unittest.TestCase):
    def test_later_today(self):
        self.assertEqual(next_occurrence(at(8, 0), 9, 0), at(9, 0))

    def test_equal_time_is_due_now(self):
        self.assertEqual(next_occurrence(at(9, 0), 9, 0), at(9, 0))

    def test_passed_time_rolls_to_tomorrow(self):
        self.assertEqual(next_occurrence(at(9, 0, 1), 9, 0), at(9, 0, day=TODAY + timedelta(days=1)))


class TestResolveNext(unittest.TestCase):
    def test_picks_earliest_across_medications(self):
        meds = [make_med("1", schedules=("09:00", "21:00")), make_med("2", "Vitamin D", schedules=("08:30",))]
        nxt = resolve_next(meds, at(8, 0))
        self.assertEqual(nxt.medication.id, "2")
        self.assertEqual(nxt.dose_time, at(8, 30))

    def test_tomorrow_when_all_doses_passed(self):
        nxt = resolve_next([make_med(schedules=("09:00",))], at(10, 0))
        self.assertEqual(nxt.dose_time, at(9, 0, day=TODAY + timedelta(days=1)))

    def test_tomorrow_dose_can_lose_to_later_today(self):
        meds = [make_med("1", schedules=("07:00",)), make_med("2", schedules=("23:00",))]
        nxt = resolve_next(meds, at(10, 0))
        self.assertEqual(nxt.medication.id, "2")

    def test_dose_at_now_is_selected(self):
        nxt = resolve_next([make_med(schedules=("09:00",))], at(9, 0))
        self.assertEqual(nxt.dose_time, at(9, 0))

    def test_inactive_medication_is_ignored(self):
        self.assertIsNone(resolve_next([make_med(active=False)], at(8, 0)))

    def test_outside_date_range_is_ignored(self):
        future = make_med(start=TODAY + timedelta(days=1))
        finished = make_med(start=TODAY - timedelta(days=10), end=TODAY - timedelta(days=1))
        self.assertIsNone(resolve_next([future, finished], at(8, 0)))

    def test_end_date_is_inclusive(self):
        med = make_med(schedules=("23:45",), start=TODAY - timedelta(days=3), end=TODAY)
        self.assertEqual(resolve_next([med], at(23, 30)).dose_time, at(23, 45))

    def test_inverted_range_has_no_next_dose(self):
        med = make_med(start=TODAY, end=TODAY - timedelta(days=2))
        self.assertIsNone(resolve_next([med], at(8, 0)))

    def test_tie_keeps_first_found(self):
        meds = [make_med("a", "First"), make_med("b", "Second")]
        self.assertEqual(resolve_next(meds, at(8, 0)).medication.id, "a")

    def test_duplicate_schedules_are_harmless(self):
        nxt = resolve_next([make_med(schedules=("09:00", "09:00"))], at(8, 0))
        self.assertEqual(nxt.dose_time, at(9, 0))

    def test_no_medications(self):
        self.assertIsNone(resolve_next([], at(8, 0)))


class TestCountdown(unittest.TestCase):
    def test_due(self):
        self.assertEqual(format_countdown(at(9, 0), at(9, 0)), "Now!")

    def test_remaining(self):
        self.assertEqual(format_countdown(at(10, 2, 3), at(9, 0)), "in 1h 2m 3s")


if __name__ == '__main__':
    unittest.main()
