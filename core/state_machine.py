from enum import Enum
from typing import Optional
from dataclasses import dataclass
from datetime import datetime
import time


class ReminderState(Enum):
    IDLE = "idle"
    PRE_REMINDER_SHOWN = "pre_reminder_shown"
    TAKE_NOW_SHOWN = "take_now_shown"
    ACKNOWLEDGED = "acknowledged"


@dataclass
class StateTransition:
    from_state: ReminderState
    to_state: ReminderState
    condition: str


class StateMachine:
    def __init__(self, initial_state: ReminderState):
        self._state = initial_state
        self._transitions = []
        self._state_enter_time = time.time()

    @property
    def current_state(self) -> ReminderState:
        return self._state

    def register_transition(self, from_state: ReminderState, to_state: ReminderState, condition: str) -> None:
        self._transitions.append(StateTransition(from_state, to_state, condition))

    def trigger(self, condition: str) -> bool:
        for t in self._transitions:
            if t.from_state == self._state and t.condition == condition:
                self._state = t.to_state
                self._state_enter_time = time.time()
                return True
        return False

    def reset(self, state: ReminderState) -> None:
        self._state = state
        self._state_enter_time = time.time()

    def get_time_in_state(self) -> float:
        return time.time() - self._state_enter_time


# Conditions
PRE_REMINDER_DUE = "pre_reminder_due"
DOSE_DUE = "dose_due"
ACKNOWLEDGED = "acknowledged"
CLEARED = "cleared"


def build_reminder_machine() -> StateMachine:
    sm = StateMachine(initial_state=ReminderState.IDLE)
    sm.register_transition(ReminderState.IDLE, ReminderState.PRE_REMINDER_SHOWN, PRE_REMINDER_DUE)
    sm.register_transition(ReminderState.IDLE, ReminderState.TAKE_NOW_SHOWN, DOSE_DUE)
    sm.register_transition(ReminderState.PRE_REMINDER_SHOWN, ReminderState.TAKE_NOW_SHOWN, DOSE_DUE)
    for state in (ReminderState.IDLE, ReminderState.PRE_REMINDER_SHOWN, ReminderState.TAKE_NOW_SHOWN):
        sm.register_transition(state, ReminderState.ACKNOWLEDGED, ACKNOWLEDGED)
    for state in (ReminderState.PRE_REMINDER_SHOWN, ReminderState.TAKE_NOW_SHOWN):
        sm.register_transition(state, ReminderState.IDLE, CLEARED)
    return sm


class ReminderTracker:
    """Reminder flags for one medication's current dose instance.

    A new dose instance restarts the tracker at IDLE; ACKNOWLEDGED only
    ends when the next instance begins.
    """

    def __init__(self, medication_id: str):
        self.medication_id = medication_id
        self.dose_time: Optional[datetime] = None
        self._machine = build_reminder_machine()

    @property
    def state(self) -> ReminderState:
        return self._machine.current_state

    @property
    def pre_reminder_raised(self) -> bool:
        return self.state in (ReminderState.PRE_REMINDER_SHOWN, ReminderState.TAKE_NOW_SHOWN)

    @property
    def take_now_raised(self) -> bool:
        return self.state == ReminderState.TAKE_NOW_SHOWN

    def begin_cycle(self, dose_time: datetime) -> bool:
        """Track ``dose_time``; returns True when it is a new instance."""
        if dose_time == self.dose_time:
            return False
        self.dose_time = dose_time
        self._machine.reset(ReminderState.IDLE)
        return True

    def raise_pre_reminder(self) -> bool:
        return self._machine.trigger(PRE_REMINDER_DUE)

    def raise_take_now(self) -> bool:
        return self._machine.trigger(DOSE_DUE)

    def acknowledge(self) -> bool:
        return self._machine.trigger(ACKNOWLEDGED)

    def clear(self) -> bool:
        """Drop both flags (snooze, countdown expiry)."""
        return self._machine.trigger(CLEARED)

    def time_in_state(self) -> float:
        return self._machine.get_time_in_state()
