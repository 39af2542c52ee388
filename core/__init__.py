from .state_machine import StateMachine, StateTransition, ReminderState, ReminderTracker
from .scheduler import Scheduler, TimerHandle

__all__ = ["StateMachine", "StateTransition", "ReminderState", "ReminderTracker", "Scheduler", "TimerHandle"]
