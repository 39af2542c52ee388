"""Adherence statistics derived from medication history."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from math import floor
from typing import Dict, Iterable


@dataclass
class AdherenceStats:
    active_count: int
    taken_today: int
    total_today: int
    adherence_rate: int

    def to_dict(self) -> Dict:
        return {
            "activeCount": self.active_count,
            "takenToday": self.taken_today,
            "totalToday": self.total_today,
            "takenTodayDisplay": f"{self.taken_today}/{self.total_today}",
            "adherenceRate": self.adherence_rate,
        }


def scheduled_dose_count(med, now: datetime) -> int:
    """Doses that should have been taken from ``startDate`` through min(today, ``endDate``)."""
    if now.date() < med.start_date:
        return 0
    last_day = min(now.date(), med.end_date)
    days = max((last_day - med.start_date).days + 1, 0)
    return days * len(med.schedules)


def compute_stats(medications: Iterable, now: datetime) -> AdherenceStats:
    medications = list(medications)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = today + timedelta(days=1)

    active = [m for m in medications if m.active]
    taken_today = 0
    total_today = 0
    for med in active:
        if not med.in_range(today):
            continue
        total_today += len(med.schedules)
        taken_today += sum(1 for r in med.history if today <= r.date < tomorrow)

    total_taken = sum(len(m.history) for m in medications)
    total_scheduled = sum(scheduled_dose_count(m, now) for m in medications)
    if total_scheduled == 0:
        rate = 0
    else:
        rate = floor(100 * total_taken / total_scheduled + 0.5)
    return AdherenceStats(
        active_count=len(active),
        taken_today=taken_today,
        total_today=total_today,
        adherence_rate=min(max(rate, 0), 100),
    )
