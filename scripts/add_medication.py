"""Interactive medication setup wizard.

Adds one medication to `data/medications.json` via prompts.
"""
import sys
import os
from datetime import date, timedelta

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from core.session import TrackerSession
from modules.memory_manager import MemoryManager


def prompt(prompt_text, default=""):
    v = input(f"{prompt_text} ")
    return v.strip() or default


def main():
    session = TrackerSession(MemoryManager())
    print("Medication setup: enter values or press Enter to accept defaults.")

    today = date.today()
    name = prompt("Medication name:")
    if not name:
        print("A name is required.")
        return
    dosage = prompt("Dosage:", "1 pill")
    start = prompt(f"Start date (YYYY-MM-DD) [{today.isoformat()}]:", today.isoformat())
    end = prompt("End date (YYYY-MM-DD) [+30 days]:", (today + timedelta(days=30)).isoformat())
    times = prompt("Dose times, comma separated (HH:MM) [09:00]:", "09:00")
    reminder = prompt("Reminder lead time in minutes [3]:", "3")
    color = prompt("Color [blue]:", "blue")

    try:
        med = session.add_medication({
            "name": name,
            "dosage": dosage,
            "startDate": start,
            "endDate": end,
            "schedules": [t.strip() for t in times.split(",") if t.strip()],
            "reminderMinutes": int(reminder),
            "color": color,
        })
    except (KeyError, TypeError, ValueError) as e:
        print(f"Could not save medication: {e}")
        return

    print(f"Saved {med.name} (id {med.id}) to {session.store.medications_path}")


if __name__ == '__main__':
    main()
