"""Tracker session: the reminder engine's single context object.

Owns the medication list, one ReminderTracker per medication, the
dwell-time gate for the (single) visible alert and the pending snooze
timer. The once-a-second tick drives:

  resolve_next → ReminderTracker → DwellGate (open alert) → Notifier

Taking a dose (manual, sensor, simulation) goes through ``_record``, the
only place that appends to a medication's history.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from threading import RLock
from typing import Dict, List, Optional

from config import ALERT_TITLES, SOURCE_LABELS, ReminderConfig, get_logger
from core.adherence import AdherenceStats, compute_stats
from core.dwell_gate import REMIND, TAKE, Alert, DismissResult, DwellGate, effective_min_dismiss
from core.events import (
    ConnectionStatusEvent, DeviceUpdateEvent, MedicationTakenEvent,
    RelayMessageError, parse_relay_message,
)
from core.models import DoseRecord, DoseSource, Medication, NextDose, Settings
from core.schedule import format_countdown, resolve_next
from core.scheduler import Scheduler, TimerHandle
from core.state_machine import ReminderTracker

logger = get_logger("session")

NEXT = "next"


class AckStatus(Enum):
    RECORDED = "recorded"
    NO_TARGET = "no_target"
    NEEDS_CONFIRMATION = "needs_confirmation"
    DECLINED = "declined"


@dataclass
class AckResult:
    status: AckStatus
    medication: Optional[Medication] = None
    record: Optional[DoseRecord] = None
    message: str = ""

    @property
    def recorded(self) -> bool:
        return self.status == AckStatus.RECORDED

    def to_dict(self) -> Dict:
        return {
            "status": self.status.value,
            "medicationId": self.medication.id if self.medication else None,
            "record": self.record.to_dict() if self.record else None,
            "message": self.message,
        }


@dataclass
class PendingConfirmation:
    """A sensor event outside the tolerance window, waiting for the user."""
    medication_id: str
    name: str
    dose_time: datetime
    source: DoseSource
    requested_at: datetime

    def to_dict(self) -> Dict:
        return {
            "medicationId": self.medication_id,
            "name": self.name,
            "doseTime": self.dose_time.isoformat(),
            "source": self.source.value,
            "requestedAt": self.requested_at.isoformat(),
            "message": f"The IR sensor detected medication taken. Mark {self.name} as taken?",
        }


class TrackerSession:
    def __init__(self, store, notifier=None, scheduler: Scheduler = None,
                 config: ReminderConfig = None, clock=None):
        self.store = store
        self.notifier = notifier
        self.config = config or ReminderConfig()
        self.scheduler = scheduler or Scheduler()
        self.clock = clock or self.scheduler.clock

        self.medications: List[Medication] = store.load_medications()
        self.settings: Settings = store.load_settings()
        self.gate = DwellGate(self._min_dismiss())
        self.pending_confirmation: Optional[PendingConfirmation] = None
        self.relay_status: Dict = {"status": "disconnected", "devices": []}

        self._trackers: Dict[str, ReminderTracker] = {}
        self._snooze_timer: Optional[TimerHandle] = None
        self._snoozed: Optional[tuple] = None  # (medication_id, dose_time)
        self._tick_timer: Optional[TimerHandle] = None
        self._lock = RLock()

    # ==================================================================
    # Lifecycle
    # ==================================================================

    def start(self) -> None:
        """Register the once-a-second tick with the scheduler."""
        if self._tick_timer is None:
            self._tick_timer = self.scheduler.call_every(self.config.tick_interval, self.tick, name="tick")

    def stop(self) -> None:
        self.scheduler.cancel(self._tick_timer)
        self._tick_timer = None
        self._cancel_snooze()

    # ==================================================================
    # Helpers
    # ==================================================================

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock()

    def _min_dismiss(self) -> int:
        return effective_min_dismiss(self.settings.min_reminder_duration_seconds, self.config.min_alert_seconds)

    def _tracker(self, medication_id: str) -> ReminderTracker:
        tracker = self._trackers.get(medication_id)
        if tracker is None:
            tracker = ReminderTracker(medication_id)
            self._trackers[medication_id] = tracker
        return tracker

    def tracker_for(self, medication_id: str) -> Optional[ReminderTracker]:
        return self._trackers.get(medication_id)

    def find_medication(self, medication_id: str) -> Optional[Medication]:
        return next((m for m in self.medications if m.id == medication_id), None)

    def _save(self) -> None:
        self.store.save_medications(self.medications)

    def _cancel_snooze(self) -> None:
        self.scheduler.cancel(self._snooze_timer)
        self._snooze_timer = None
        self._snoozed = None

    def _is_snoozed(self, medication_id: str) -> bool:
        return self._snooze_timer is not None and self._snoozed is not None and self._snoozed[0] == medication_id

    # ==================================================================
    # Reminder loop
    # ==================================================================

    def tick(self, now: Optional[datetime] = None) -> None:
        with self._lock:
            now = self._now(now)
            if self.gate.advance(now):
                state = self.gate.close()
                tracker = self._trackers.get(state.alert.medication_id)
                if tracker and tracker.dose_time == state.alert.dose_time:
                    tracker.clear()
                logger.info(f"Reminder for {state.alert.name} timed out after {state.elapsed_seconds}s")
            self._evaluate(now)

    def _evaluate(self, now: datetime) -> None:
        nxt = resolve_next(self.medications, now)
        if nxt is None:
            return
        med = nxt.medication
        if self._is_snoozed(med.id):
            return
        tracker = self._tracker(med.id)
        tracker.begin_cycle(nxt.dose_time)

        if now >= nxt.dose_time:
            if tracker.take_now_raised:
                return
            if self.gate.is_open and not self._is_escalation(nxt):
                return
            if tracker.raise_take_now():
                self._show(nxt, TAKE, now)
            return

        window_start = nxt.dose_time - timedelta(minutes=med.reminder_minutes)
        if window_start <= now < nxt.dose_time and not tracker.pre_reminder_raised and not self.gate.is_open:
            if tracker.raise_pre_reminder():
                self._show(nxt, REMIND, now)

    def _is_escalation(self, nxt: NextDose) -> bool:
        alert = self.gate.alert
        return (
            alert is not None
            and alert.kind == REMIND
            and alert.medication_id == nxt.medication.id
            and alert.dose_time == nxt.dose_time
        )

    def _show(self, nxt: NextDose, kind: str, now: datetime) -> None:
        med = nxt.medication
        alert = Alert(kind=kind, medication_id=med.id, name=med.name, dosage=med.dosage, dose_time=nxt.dose_time)
        duration = None
        if kind == REMIND:
            until_dose = int((nxt.dose_time - now).total_seconds())
            duration = until_dose if until_dose > 0 else None
        if self.gate.is_open:
            logger.info(f"Escalating reminder for {med.name} to take-now")
            self.gate.close()
        self.gate.open(alert, now, duration)
        logger.info(f"{ALERT_TITLES[kind]} {med.name} ({med.dosage}) due {nxt.dose_time:%H:%M}")
        if self.notifier is not None:
            try:
                self.notifier.notify(alert)
            except Exception as e:
                logger.debug(f"Notification failed: {e}")

    # ==================================================================
    # Acknowledgement
    # ==================================================================

    def _open_instance(self) -> Optional[tuple]:
        """(medication_id, dose_time) of the visible alert, else of the snoozed one."""
        alert = self.gate.alert
        if alert is not None:
            return alert.medication_id, alert.dose_time
        return self._snoozed

    def _resolve_target(self, target: Optional[str], now: datetime):
        instance = self._open_instance()
        if target in (None, NEXT):
            if instance is not None:
                med = self.find_medication(instance[0])
                if med is not None:
                    return med, instance[1]
            nxt = resolve_next(self.medications, now)
            if nxt is None:
                return None, None
            return nxt.medication, nxt.dose_time

        med = self.find_medication(target)
        if med is None:
            return None, None
        if instance is not None and instance[0] == med.id:
            return med, instance[1]
        own = resolve_next([med], now)
        return med, own.dose_time if own else now

    def record_taken(self, target: Optional[str] = NEXT, source: DoseSource = DoseSource.MANUAL,
                     now: Optional[datetime] = None) -> AckResult:
        """Record a dose for ``target`` (a medication id, or "next")."""
        with self._lock:
            now = self._now(now)
            med, scheduled = self._resolve_target(target, now)
            if med is None:
                logger.warning(f"No medication to mark as taken (target={target})")
                return AckResult(AckStatus.NO_TARGET, message="No scheduled medication was found")
            return self._record(med, scheduled, source, now)

    def _record(self, med: Medication, scheduled: datetime, source: DoseSource, now: datetime) -> AckResult:
        record = DoseRecord(date=now, scheduled=scheduled, taken=True, source=source)
        med.history.append(record)
        self._save()

        tracker = self._tracker(med.id)
        if scheduled.date() > now.date():
            # a later day's dose keeps its own reminders
            tracker.clear()
        elif tracker.dose_time is None or scheduled >= tracker.dose_time:
            tracker.begin_cycle(scheduled)
            tracker.acknowledge()

        if self.gate.alert is not None and self.gate.alert.medication_id == med.id:
            self.gate.close()
        if self._snoozed is not None and self._snoozed[0] == med.id:
            self._cancel_snooze()
        if self.pending_confirmation and self.pending_confirmation.medication_id == med.id:
            self.pending_confirmation = None

        label = SOURCE_LABELS.get(source.value, "")
        logger.info(f"{med.name} marked as taken{label} (scheduled {scheduled:%Y-%m-%d %H:%M})")
        return AckResult(AckStatus.RECORDED, med, record, message=f"{med.name} marked as taken{label}!")

    # ==================================================================
    # Sensor events
    # ==================================================================

    def handle_relay_message(self, payload, now: Optional[datetime] = None) -> Optional[AckResult]:
        try:
            event = parse_relay_message(payload)
        except RelayMessageError as e:
            logger.warning(f"Ignoring relay message: {e}")
            return None

        if isinstance(event, MedicationTakenEvent):
            return self.handle_sensor_event(event, now)
        with self._lock:
            if isinstance(event, ConnectionStatusEvent):
                self.relay_status = {"status": event.status, "devices": event.devices}
            elif isinstance(event, DeviceUpdateEvent):
                self.relay_status = dict(self.relay_status, devices=event.devices)
        return None

    def handle_sensor_event(self, event: MedicationTakenEvent, now: Optional[datetime] = None) -> AckResult:
        with self._lock:
            now = self._now(now)
            source = DoseSource.SIMULATION if event.is_simulation else DoseSource.IR_SENSOR

            name = event.medication_name.lower()
            if name:
                med = next((m for m in self.medications if m.name.lower() == name), None)
                if med is not None:
                    _, scheduled = self._resolve_target(med.id, now)
                    return self._record(med, scheduled, source, now)

            alert = self.gate.alert
            if alert is not None and alert.kind == TAKE:
                return self.record_taken(NEXT, source, now)

            nxt = resolve_next(self.medications, now)
            if nxt is None:
                logger.warning("Sensor detected medication, but no scheduled medication was found")
                return AckResult(
                    AckStatus.NO_TARGET,
                    message="IR sensor detected medication, but no scheduled medication was found.",
                )

            tolerance = timedelta(minutes=self.config.sensor_tolerance_minutes)
            if abs(nxt.dose_time - now) <= tolerance:
                return self._record(nxt.medication, nxt.dose_time, source, now)

            self.pending_confirmation = PendingConfirmation(
                medication_id=nxt.medication.id,
                name=nxt.medication.name,
                dose_time=nxt.dose_time,
                source=source,
                requested_at=now,
            )
            logger.info(f"Sensor event for {nxt.medication.name} is outside tolerance; asking for confirmation")
            return AckResult(
                AckStatus.NEEDS_CONFIRMATION,
                medication=nxt.medication,
                message=self.pending_confirmation.to_dict()["message"],
            )

    def confirm_pending(self, accept: bool, now: Optional[datetime] = None) -> AckResult:
        with self._lock:
            now = self._now(now)
            pending, self.pending_confirmation = self.pending_confirmation, None
            if pending is None:
                return AckResult(AckStatus.NO_TARGET, message="Nothing is waiting for confirmation")
            med = self.find_medication(pending.medication_id)
            if med is None:
                return AckResult(AckStatus.NO_TARGET, message="Medication no longer exists")
            if not accept:
                logger.info(f"Sensor event for {med.name} declined")
                return AckResult(AckStatus.DECLINED, medication=med, message="Sensor event ignored")
            return self._record(med, pending.dose_time, pending.source, now)

    # ==================================================================
    # Snooze / dismiss
    # ==================================================================

    def snooze(self, now: Optional[datetime] = None) -> Dict:
        with self._lock:
            now = self._now(now)
            alert = self.gate.alert
            if alert is not None:
                target = (alert.medication_id, alert.dose_time)
            else:
                nxt = resolve_next(self.medications, now)
                target = (nxt.medication.id, nxt.dose_time) if nxt else None
            self.gate.close()

            if target is not None:
                tracker = self._trackers.get(target[0])
                if tracker is not None:
                    tracker.clear()

            self._cancel_snooze()
            self._snooze_timer = self.scheduler.call_later(
                self.config.snooze_seconds, self._snooze_fired, name="snooze", now=now
            )
            self._snoozed = target
            minutes = self.config.snooze_seconds // 60
            logger.info(f"Reminder snoozed until {self._snooze_timer.due:%H:%M:%S}")
            return {
                "message": f"Reminder snoozed for {minutes} minutes",
                "until": self._snooze_timer.due.isoformat(),
            }

    def _instance_taken(self, med: Medication, dose_time: datetime) -> bool:
        return any(r.scheduled == dose_time for r in med.history)

    def _snooze_fired(self, now: datetime) -> None:
        with self._lock:
            target, self._snoozed, self._snooze_timer = self._snoozed, None, None
            if self.gate.is_open:
                return

            nxt = None
            if target is not None:
                med = self.find_medication(target[0])
                if med is not None and med.active:
                    nxt = NextDose(medication=med, dose_time=target[1])
            if nxt is None:
                nxt = resolve_next(self.medications, now)
            if nxt is None or self._instance_taken(nxt.medication, nxt.dose_time):
                return

            kind = TAKE if now >= nxt.dose_time else REMIND
            tracker = self._tracker(nxt.medication.id)
            if tracker.dose_time is None or tracker.dose_time <= nxt.dose_time:
                tracker.begin_cycle(nxt.dose_time)
                raised = tracker.raise_take_now() if kind == TAKE else tracker.raise_pre_reminder()
                if not raised:
                    return
            logger.info(f"Snooze elapsed for {nxt.medication.name}")
            self._show(nxt, kind, now)

    def request_dismiss(self, now: Optional[datetime] = None) -> DismissResult:
        with self._lock:
            now = self._now(now)
            if not self.gate.is_open:
                return DismissResult(accepted=True, message="No reminder is open")
            result = self.gate.request_dismiss(now)
            if result.accepted:
                state = self.gate.close()
                logger.info(f"Reminder for {state.alert.name} dismissed after {state.elapsed_seconds}s")
            else:
                logger.info(f"Dismiss rejected: {result.remaining_seconds}s left")
            return result

    # ==================================================================
    # Medications and settings
    # ==================================================================

    def list_medications(self) -> List[Medication]:
        with self._lock:
            return list(self.medications)

    def add_medication(self, data: Dict, now: Optional[datetime] = None) -> Medication:
        with self._lock:
            now = self._now(now)
            new_id = int(now.timestamp() * 1000)
            while self.find_medication(str(new_id)) is not None:
                new_id += 1
            fields = dict(data, id=str(new_id), history=[])
            fields.setdefault("active", True)
            med = Medication.from_dict(fields, self.config.default_reminder_minutes)
            self.medications.append(med)
            self._save()
            logger.info(f"Added medication {med.name} ({med.id})")
            return med

    def update_medication(self, medication_id: str, data: Dict) -> Optional[Medication]:
        with self._lock:
            existing = self.find_medication(medication_id)
            if existing is None:
                return None
            fields = dict(existing.to_dict(), **data)
            fields["id"] = existing.id
            fields["history"] = []
            updated = Medication.from_dict(fields, self.config.default_reminder_minutes)
            updated.history = existing.history
            self.medications[self.medications.index(existing)] = updated
            self._save()
            logger.info(f"Updated medication {updated.name} ({updated.id})")
            return updated

    def delete_medication(self, medication_id: str) -> bool:
        with self._lock:
            med = self.find_medication(medication_id)
            if med is None:
                return False
            self.medications.remove(med)
            self._save()
            self._trackers.pop(medication_id, None)
            if self.gate.alert is not None and self.gate.alert.medication_id == medication_id:
                self.gate.close()
            if self._snoozed is not None and self._snoozed[0] == medication_id:
                self._cancel_snooze()
            if self.pending_confirmation and self.pending_confirmation.medication_id == medication_id:
                self.pending_confirmation = None
            logger.info(f"Deleted medication {med.name} ({med.id})")
            return True

    def update_settings(self, settings: Settings) -> Settings:
        with self._lock:
            self.settings = settings
            self.store.save_settings(settings)
            self.gate.min_dismiss_seconds = self._min_dismiss()
            return settings

    # ==================================================================
    # Views
    # ==================================================================

    def next_dose(self, now: Optional[datetime] = None) -> Optional[NextDose]:
        with self._lock:
            return resolve_next(self.medications, self._now(now))

    def next_view(self, now: Optional[datetime] = None) -> Dict:
        with self._lock:
            now = self._now(now)
            nxt = resolve_next(self.medications, now)
            if nxt is None:
                return {"next": None, "message": "No upcoming medications"}
            return {"next": nxt.to_dict(), "countdown": format_countdown(nxt.dose_time, now)}

    def stats(self, now: Optional[datetime] = None) -> AdherenceStats:
        with self._lock:
            return compute_stats(self.medications, self._now(now))

    def alert_view(self, now: Optional[datetime] = None) -> Dict:
        with self._lock:
            now = self._now(now)
            view = {
                "open": self.gate.is_open,
                "pendingConfirmation": self.pending_confirmation.to_dict() if self.pending_confirmation else None,
                "snoozedUntil": self._snooze_timer.due.isoformat() if self._snooze_timer else None,
            }
            if self.gate.is_open:
                self.gate.advance(now)
                state = self.gate.state
                view.update({
                    "alert": state.alert.to_dict(),
                    "title": ALERT_TITLES[state.alert.kind],
                    "countdown": state.countdown_text(),
                    "elapsedSeconds": state.elapsed_seconds,
                    "canDismiss": state.can_dismiss,
                    "remainingWaitSeconds": state.remaining_wait,
                })
            return view
