from .goal import Goal, GoalStatus, GoalType
from .step import SkipReason, Step, StepStatus, StepType
from .check_in import CheckIn
from .points_ledger import LedgerEntryType, PointsLedgerEntry

__all__ = [
    "Goal",
    "GoalStatus",
    "GoalType",
    "Step",
    "StepStatus",
    "StepType",
    "SkipReason",
    "CheckIn",
    "PointsLedgerEntry",
    "LedgerEntryType",
]
