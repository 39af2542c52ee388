"""Dwell-time gate for the reminder alert.

An alert must stay on screen for a minimum number of seconds before it
can be dismissed without taking the dose. Elapsed time is derived from
the wall clock at one-second resolution, so a late or skipped tick
never shortens or stretches the wait.
"""

from dataclasses import dataclass
from datetime import datetime
from math import ceil
from typing import Dict, Optional

REMIND = "remind"
TAKE = "take"


def effective_min_dismiss(configured_seconds: int, floor_seconds: int = 180) -> int:
    return max(int(configured_seconds), int(floor_seconds))


def wait_message(remaining_seconds: int) -> str:
    return f"Please wait {ceil(remaining_seconds / 60)} more minute(s) before closing"


@dataclass
class Alert:
    kind: str
    medication_id: str
    name: str
    dosage: str
    dose_time: datetime

    def to_dict(self) -> Dict:
        return {
            "kind": self.kind,
            "medicationId": self.medication_id,
            "name": self.name,
            "dosage": self.dosage,
            "doseTime": self.dose_time.isoformat(),
        }


@dataclass
class DwellState:
    alert: Alert
    opened_at: datetime
    min_duration: int
    duration: int
    elapsed_seconds: int = 0

    @property
    def remaining_countdown(self) -> int:
        return max(self.duration - self.elapsed_seconds, 0)

    @property
    def remaining_wait(self) -> int:
        return max(self.min_duration - self.elapsed_seconds, 0)

    @property
    def can_dismiss(self) -> bool:
        return self.elapsed_seconds >= self.min_duration

    @property
    def expired(self) -> bool:
        return self.elapsed_seconds >= self.duration and self.can_dismiss

    def countdown_text(self) -> str:
        minutes, seconds = divmod(self.remaining_countdown, 60)
        return f"{minutes}:{seconds:02d}"


@dataclass
class DismissResult:
    accepted: bool
    remaining_seconds: int = 0
    message: str = ""


class DwellGate:
    def __init__(self, min_dismiss_seconds: int):
        self.min_dismiss_seconds = min_dismiss_seconds
        self.state: Optional[DwellState] = None

    @property
    def is_open(self) -> bool:
        return self.state is not None

    @property
    def alert(self) -> Optional[Alert]:
        return self.state.alert if self.state else None

    def open(self, alert: Alert, now: datetime, duration: Optional[int] = None) -> DwellState:
        """Start the countdown; ``duration`` defaults to the dismiss minimum."""
        countdown = duration if duration and duration > 0 else self.min_dismiss_seconds
        self.state = DwellState(
            alert=alert,
            opened_at=now,
            min_duration=self.min_dismiss_seconds,
            duration=countdown,
        )
        return self.state

    def _sync(self, now: datetime) -> None:
        elapsed = int((now - self.state.opened_at).total_seconds())
        self.state.elapsed_seconds = max(elapsed, 0)

    def advance(self, now: datetime) -> bool:
        """Update elapsed time; True when the countdown has run out and may auto-close."""
        if self.state is None:
            return False
        self._sync(now)
        return self.state.expired

    def request_dismiss(self, now: datetime) -> DismissResult:
        if self.state is None:
            return DismissResult(accepted=True)
        self._sync(now)
        if not self.state.can_dismiss:
            remaining = self.state.remaining_wait
            return DismissResult(accepted=False, remaining_seconds=remaining, message=wait_message(remaining))
        return DismissResult(accepted=True)

    def close(self) -> Optional[DwellState]:
        state, self.state = self.state, None
        return state
