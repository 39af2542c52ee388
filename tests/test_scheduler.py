import unittest
import time
import sys
import os
from datetime import datetime, timedelta
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from core.scheduler import Scheduler, wall_clock


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class TestScheduler(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock(datetime(2026, 10, 19, 9, 0))
        self.sched = Scheduler(clock=self.clock)
        self.calls = []

    def test_call_later_runs_when_due(self):
        self.sched.call_later(300, self.calls.append, name="snooze")
        self.assertEqual(self.sched.run_pending(self.clock.now + timedelta(seconds=299)), 0)
        self.assertEqual(self.sched.run_pending(self.clock.now + timedelta(seconds=300)), 1)
        self.assertEqual(self.calls, [self.clock.now + timedelta(seconds=300)])
        self.assertEqual(self.sched.pending(), [])

    def test_call_later_from_given_time(self):
        handle = self.sched.call_later(60, self.calls.append, now=datetime(2026, 10, 19, 12, 0))
        self.assertEqual(handle.due, datetime(2026, 10, 19, 12, 1))

    def test_cancelled_timer_never_runs(self):
        handle = self.sched.call_later(5, self.calls.append)
        self.sched.cancel(handle)
        self.assertEqual(self.sched.pending(), [])
        self.sched.run_pending(self.clock.now + timedelta(seconds=10))
        self.assertEqual(self.calls, [])

    def test_call_every_repeats(self):
        self.sched.call_every(1.0, self.calls.append, name="tick")
        for i in range(1, 4):
            self.sched.run_pending(self.clock.now + timedelta(seconds=i))
        self.assertEqual(len(self.calls), 3)
        self.assertEqual(len(self.sched.pending()), 1)

    def test_late_run_does_not_burst(self):
        self.sched.call_every(1.0, self.calls.append)
        self.sched.run_pending(self.clock.now + timedelta(seconds=10))
        self.assertEqual(len(self.calls), 1)
        self.assertEqual(self.sched.pending()[0].due, self.clock.now + timedelta(seconds=11))

    def test_due_order(self):
        order = []
        self.sched.call_later(20, lambda now: order.append("second"))
        self.sched.call_later(10, lambda now: order.append("first"))
        self.sched.run_pending(self.clock.now + timedelta(seconds=30))
        self.assertEqual(order, ["first", "second"])

    def test_failing_callback_does_not_stop_others(self):
        def boom(now):
            raise RuntimeError("boom")

        self.sched.call_later(1, boom)
        self.sched.call_later(2, self.calls.append)
        with self.assertLogs("medtracker.scheduler", level="ERROR"):
            ran = self.sched.run_pending(self.clock.now + timedelta(seconds=5))
        self.assertEqual(ran, 2)
        self.assertEqual(len(self.calls), 1)


class TestSchedulerThread(unittest.TestCase):
    def test_scheduler_triggers_callback(self):
        called = {"count": 0}

        def cb(now):
            called["count"] += 1

        sched = Scheduler(clock=wall_clock)
        sched.call_later(0, cb)
        sched.start()
        # wait up to 3 seconds for callback
        for _ in range(30):
            if called["count"] > 0:
                break
            time.sleep(0.1)
        sched.stop()

        self.assertGreater(called["count"], 0)


if __name__ == '__main__':
    unittest.main()
