"""Schedule resolver: which dose is due next across all medications."""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from core.models import Medication, NextDose


def next_occurrence(moment: datetime, hour: int, minute: int) -> datetime:
    """Today's ``hour:minute`` unless it is already behind ``moment``, else tomorrow's.

    A dose time equal to ``moment`` is due now and does not roll over.
    """
    dose_time = moment.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if dose_time < moment:
        dose_time += timedelta(days=1)
    return dose_time


def resolve_next(medications: Iterable[Medication], now: datetime) -> Optional[NextDose]:
    """Earliest upcoming dose among active, in-range medications.

    Ties keep the first one found in input order.
    """
    best: Optional[NextDose] = None
    for med in medications:
        if not med.active or not med.in_range(now):
            continue
        for slot in med.schedules:
            dose_time = next_occurrence(now, slot.hour, slot.minute)
            if best is None or dose_time < best.dose_time:
                best = NextDose(medication=med, dose_time=dose_time)
    return best


def format_countdown(target: datetime, now: datetime) -> str:
    difference = (target - now).total_seconds()
    if difference <= 0:
        return "Now!"
    total = int(difference)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"in {hours}h {minutes}m {seconds}s"
