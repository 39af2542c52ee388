import unittest
import sys
import os
from datetime import datetime, timedelta
# make project modules importable when tests are run directly
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from core.dwell_gate import TAKE, Alert, DwellGate, effective_min_dismiss, wait_message

OPENED = datetime(2026, 10, 19, 9, 0)


def make_alert():
    return Alert(kind=TAKE, medication_id="1", name="Aspirin", dosage="100mg", dose_time=OPENED)


class TestMinimum(unittest.TestCase):
    def test_floor_applies(self):
        self.assertEqual(effective_min_dismiss(120), 180)

    def test_longer_setting_wins(self):
        self.assertEqual(effective_min_dismiss(600), 600)
        self.assertEqual(effective_min_dismiss(86400), 86400)

    def test_wait_message_rounds_up(self):
        self.assertEqual(wait_message(61), "Please wait 2 more minute(s) before closing")
        self.assertEqual(wait_message(60), "Please wait 1 more minute(s) before closing")


class TestDwellGate(unittest.TestCase):
    def setUp(self):
        self.gate = DwellGate(180)

    def test_closed_gate(self):
        self.assertFalse(self.gate.is_open)
        self.assertIsNone(self.gate.alert)
        self.assertFalse(self.gate.advance(OPENED))
        self.assertTrue(self.gate.request_dismiss(OPENED).accepted)

    def test_dismiss_rejected_before_minimum(self):
        self.gate.open(make_alert(), OPENED)
        result = self.gate.request_dismiss(OPENED)
        self.assertFalse(result.accepted)
        self.assertEqual(result.remaining_seconds, 180)
        self.assertEqual(result.message, "Please wait 3 more minute(s) before closing")
        self.assertTrue(self.gate.is_open)

        result = self.gate.request_dismiss(OPENED + timedelta(seconds=179))
        self.assertFalse(result.accepted)
        self.assertEqual(result.remaining_seconds, 1)

    def test_dismiss_accepted_at_minimum(self):
        self.gate.open(make_alert(), OPENED)
        self.assertTrue(self.gate.request_dismiss(OPENED + timedelta(seconds=180)).accepted)

    def test_countdown_text(self):
        state = self.gate.open(make_alert(), OPENED)
        self.gate.advance(OPENED + timedelta(seconds=5))
        self.assertEqual(state.countdown_text(), "2:55")
        self.assertEqual(state.elapsed_seconds, 5)

    def test_expiry(self):
        self.gate.open(make_alert(), OPENED)
        self.assertFalse(self.gate.advance(OPENED + timedelta(seconds=179)))
        self.assertTrue(self.gate.advance(OPENED + timedelta(seconds=180)))

    def test_short_countdown_waits_for_minimum(self):
        state = self.gate.open(make_alert(), OPENED, duration=30)
        self.assertFalse(self.gate.advance(OPENED + timedelta(seconds=30)))
        self.assertEqual(state.countdown_text(), "0:00")
        self.assertTrue(self.gate.advance(OPENED + timedelta(seconds=180)))

    def test_skipped_ticks_do_not_change_elapsed(self):
        state = self.gate.open(make_alert(), OPENED)
        self.gate.advance(OPENED + timedelta(seconds=100))
        self.assertEqual(state.elapsed_seconds, 100)
        self.assertEqual(state.remaining_wait, 80)

    def test_close_returns_state(self):
        self.gate.open(make_alert(), OPENED)
        state = self.gate.close()
        self.assertEqual(state.alert.name, "Aspirin")
        self.assertFalse(self.gate.is_open)


if __name__ == '__main__':
    unittest.main()
