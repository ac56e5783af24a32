# Domain Package
from .constants import DEFAULT_SCOPE
from .errors import CadenceError, PersistenceError, UnknownItemError
from .models import (
    Grade,
    GradeOutcome,
    ItemScheduleState,
    Phase,
    ScopeCounters,
    ScopeLimits,
    UndoEntry,
    round_half_up,
)
from .ports import FallbackCounterStore, ScheduleRepository

__all__ = [
    "DEFAULT_SCOPE",
    "CadenceError",
    "PersistenceError",
    "UnknownItemError",
    "Grade",
    "GradeOutcome",
    "ItemScheduleState",
    "Phase",
    "ScopeCounters",
    "ScopeLimits",
    "UndoEntry",
    "round_half_up",
    "FallbackCounterStore",
    "ScheduleRepository",
]
