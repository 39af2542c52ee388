"""Medication data model.

Field names on disk and over the API are the camelCase keys the browser
client has always stored (``startDate``, ``reminderMinutes`` ...); the
Python attributes are snake_case.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Dict, List, Optional


class DoseSource(Enum):
    MANUAL = "manual"
    IR_SENSOR = "ir_sensor"
    SIMULATION = "simulation"


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` (24h)."""
    hours, minutes = str(value).strip().split(":")[:2]
    return time(int(hours), int(minutes))


def format_time_of_day(value: time) -> str:
    return value.strftime("%H:%M")


def _parse_date(value) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        return value
    text = str(value).replace("Z", "+00:00")
    parsed = datetime.fromisoformat(text)
    # History written by the browser client is UTC; compare in local wall-clock time.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


@dataclass
class DoseRecord:
    date: datetime
    scheduled: datetime
    taken: bool = True
    source: DoseSource = DoseSource.MANUAL

    def to_dict(self) -> Dict:
        return {
            "date": self.date.isoformat(),
            "scheduled": self.scheduled.isoformat(),
            "taken": self.taken,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "DoseRecord":
        return cls(
            date=_parse_timestamp(data["date"]),
            scheduled=_parse_timestamp(data.get("scheduled") or data["date"]),
            taken=bool(data.get("taken", True)),
            source=DoseSource(data.get("source", DoseSource.MANUAL.value)),
        )


@dataclass
class Medication:
    id: str
    name: str
    dosage: str
    start_date: date
    end_date: date
    schedules: List[time] = field(default_factory=list)
    color: str = "blue"
    reminder_minutes: int = 3
    history: List[DoseRecord] = field(default_factory=list)
    active: bool = True

    def range_bounds(self):
        """Inclusive ``[startDate 00:00:00, endDate 23:59:59.999999]``."""
        return datetime.combine(self.start_date, time.min), datetime.combine(self.end_date, time.max)

    def in_range(self, moment: datetime) -> bool:
        start, end = self.range_bounds()
        return start <= moment <= end

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "dosage": self.dosage,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "schedules": [format_time_of_day(t) for t in self.schedules],
            "color": self.color,
            "reminderMinutes": self.reminder_minutes,
            "history": [r.to_dict() for r in self.history],
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: Dict, default_reminder_minutes: int = 3) -> "Medication":
        reminder = data.get("reminderMinutes")
        reminder_minutes = default_reminder_minutes if reminder is None else int(reminder)
        if reminder_minutes < 0:
            raise ValueError("reminderMinutes must be non-negative")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            dosage=str(data.get("dosage", "")),
            start_date=_parse_date(data["startDate"]),
            end_date=_parse_date(data["endDate"]),
            schedules=[parse_time_of_day(t) for t in data.get("schedules", [])],
            color=str(data.get("color", "blue")),
            reminder_minutes=reminder_minutes,
            history=[DoseRecord.from_dict(r) for r in data.get("history") or []],
            active=bool(data.get("active", True)),
        )


@dataclass
class NextDose:
    """The single next-due dose instance across all active medications."""
    medication: Medication
    dose_time: datetime

    def to_dict(self) -> Dict:
        return {
            "medicationId": self.medication.id,
            "name": self.medication.name,
            "dosage": self.medication.dosage,
            "nextDose": self.dose_time.isoformat(),
        }


@dataclass
class Settings:
    min_reminder_duration_seconds: int = 120

    def to_dict(self) -> Dict:
        return {"minReminderDurationSeconds": self.min_reminder_duration_seconds}

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "Settings":
        if not isinstance(data, dict):
            return cls()
        value = data.get("minReminderDurationSeconds", data.get("minReminderDuration"))
        try:
            seconds = int(value)
        except (TypeError, ValueError):
            return cls()
        return cls(min_reminder_duration_seconds=seconds) if seconds > 0 else cls()
