"""
Return-to-Play Protocol Contracts
=================================

The Protocol aggregate and its value types.

INVARIANTS:
- Every type is a frozen dataclass; sequences are tuples
- A new snapshot is built for every mutation, the input is never touched
- stage_history and alerts only grow; alerts[i].acknowledged is the one
  field that may flip after append
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .base import Timestamp


# =============================================================================
# ENUMS (Closed World)
# =============================================================================

class Stage(Enum):
    """
    Protocol stages in order. CLEARED is the terminal pseudo-stage,
    it has no catalog definition.
    """
    STAGE_1 = "stage_1"
    STAGE_2 = "stage_2"
    STAGE_3 = "stage_3"
    STAGE_4 = "stage_4"
    STAGE_5 = "stage_5"
    STAGE_6 = "stage_6"
    CLEARED = "cleared"


class StageOutcome(Enum):
    """How a stage ended."""
    COMPLETED = "completed"
    RESET = "reset"


class AlertType(Enum):
    PROTOCOL_VIOLATION = "protocol_violation"
    PROLONGED_RECOVERY = "prolonged_recovery"
    SYMPTOM_RETURN = "symptom_return"
    HIGH_RISK = "high_risk"


class AlertSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# =============================================================================
# VALUE TYPES
# =============================================================================

@dataclass(frozen=True)
class Incident:
    """
    External head-injury incident. Read-only to the engine; only used
    to count days since the injury.
    """
    incident_id: str
    occurred_at: Timestamp


@dataclass(frozen=True)
class StageHistoryEntry:
    """A finished stage, appended when the stage is completed or abandoned."""
    stage: Stage
    started_at: Timestamp
    ended_at: Timestamp
    duration_hours: float
    outcome: StageOutcome
    supervisor_id: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        if self.stage is Stage.CLEARED:
            raise ValueError("history entries cannot record the cleared stage")
        if self.duration_hours < 0:
            raise ValueError("duration_hours must be non-negative")


@dataclass(frozen=True)
class SymptomCheck:
    """Latest externally supplied symptom-free flag."""
    checked_at: Timestamp
    symptom_free: bool


@dataclass(frozen=True)
class Alert:
    """Protocol alert surfaced to medical staff."""
    type: AlertType
    message: str
    severity: AlertSeverity
    raised_at: Timestamp
    acknowledged: bool = False


@dataclass(frozen=True)
class FinalClearance:
    """Sign-off recorded when the protocol reaches CLEARED."""
    cleared_by: str
    clearance_date: Timestamp
    return_to_play_date: Timestamp
    clearance_notes: Optional[str] = None


# =============================================================================
# AGGREGATE
# =============================================================================

@dataclass(frozen=True)
class Protocol:
    """
    Graduated return-to-play protocol for one incident.

    FROZEN:
    The engine never writes to a snapshot; every mutation returns a new
    instance built with dataclasses.replace.
    """
    protocol_id: str
    incident_id: str
    player_id: str
    current_stage: Stage
    stage_started_at: Timestamp
    symptom_free_required: bool
    version: int
    created_at: Timestamp
    updated_at: Timestamp
    stage_history: Tuple[StageHistoryEntry, ...] = field(default_factory=tuple)
    last_symptom_check: Optional[SymptomCheck] = None
    alerts: Tuple[Alert, ...] = field(default_factory=tuple)

    # Carried for the dashboard, no engine behavior depends on it
    auto_progression_enabled: bool = True
    final_clearance: Optional[FinalClearance] = None

    def __post_init__(self):
        if not self.protocol_id:
            raise ValueError("protocol_id must be a non-empty string")
        if self.version < 1:
            raise ValueError("version must be >= 1")

    @property
    def is_cleared(self) -> bool:
        return self.current_stage is Stage.CLEARED

    @property
    def open_alerts(self) -> Tuple[Alert, ...]:
        return tuple(a for a in self.alerts if not a.acknowledged)
