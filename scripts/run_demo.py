"""Demo runner: replays one Aspirin dose through the reminder loop on a simulated clock."""
import sys
import os
import tempfile
from datetime import datetime, timedelta

# ensure project modules importable
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from core.events import MEDICATION_TAKEN
from core.scheduler import Scheduler
from core.session import TrackerSession
from modules.memory_manager import MemoryManager


class SimulatedClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds=1):
        self.now += timedelta(seconds=seconds)


def demo_flow():
    today = datetime.now().replace(hour=8, minute=56, second=0, microsecond=0)
    clock = SimulatedClock(today)
    store = MemoryManager(data_dir=tempfile.mkdtemp(prefix="medtracker-demo-"))
    scheduler = Scheduler(clock=clock)
    session = TrackerSession(store, scheduler=scheduler, clock=clock)
    session.start()

    session.add_medication({
        "name": "Aspirin",
        "dosage": "100mg",
        "startDate": today.date().isoformat(),
        "endDate": (today + timedelta(days=30)).date().isoformat(),
        "schedules": ["09:00"],
        "reminderMinutes": 3,
    })

    print("Demo: running the clock from 08:56 to 09:01...")
    last_alert = None
    while clock.now < today.replace(hour=9, minute=1):
        clock.advance()
        scheduler.run_pending(clock.now)
        alert = session.alert_view()
        kind = alert.get("title") if alert["open"] else None
        if kind != last_alert:
            print(f"  {clock.now:%H:%M:%S}  {kind or 'no alert'}  {alert.get('countdown', '')}")
            last_alert = kind

    print("Demo: simulating the IR sensor...")
    result = session.handle_relay_message({"type": MEDICATION_TAKEN, "medication": "aspirin", "deviceId": "esp-01"})
    print(f"  {result.message}")

    stats = session.stats()
    print(f"Demo complete. Taken today: {stats.taken_today}/{stats.total_today}, adherence {stats.adherence_rate}%")
    session.stop()


if __name__ == '__main__':
    demo_flow()
