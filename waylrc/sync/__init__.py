"""Position estimation and active-line scheduling."""

from waylrc.sync.position import deadline_for, estimate, is_clamped_at_end
from waylrc.sync.scheduler import (
    IDLE_DECISION,
    ActiveLineDecision,
    DecisionState,
    SyncScheduler,
)

__all__ = [
    "estimate",
    "deadline_for",
    "is_clamped_at_end",
    "ActiveLineDecision",
    "DecisionState",
    "IDLE_DECISION",
    "SyncScheduler",
]
