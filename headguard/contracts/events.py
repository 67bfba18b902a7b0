"""
Event Contracts

Immutable records emitted alongside every successful protocol mutation,
plus the audit entries collected by the observability layer.

Events are plain data. Delivery (UI toast, webhook, log) belongs to the
notification sink, never to the engine.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .base import Timestamp
from .protocol import Alert, Stage


# =============================================================================
# PROTOCOL EVENTS
# =============================================================================

@dataclass(frozen=True)
class ProtocolEvent:
    """Base for all protocol events."""
    protocol_id: str
    occurred_at: Timestamp

    @property
    def event_type(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class ProtocolCreated(ProtocolEvent):
    player_id: str = ""
    incident_id: str = ""


@dataclass(frozen=True)
class StageAdvanced(ProtocolEvent):
    from_stage: Stage = Stage.STAGE_1
    to_stage: Stage = Stage.STAGE_2


@dataclass(frozen=True)
class ProtocolCompleted(ProtocolEvent):
    """Protocol reached CLEARED."""
    cleared_by: str = ""


@dataclass(frozen=True)
class ProtocolReset(ProtocolEvent):
    reason: str = ""
    from_stage: Stage = Stage.STAGE_1


@dataclass(frozen=True)
class SymptomCheckRecorded(ProtocolEvent):
    symptom_free: bool = True


@dataclass(frozen=True)
class AlertRaised(ProtocolEvent):
    alert_index: int = 0
    alert: Optional[Alert] = None


@dataclass(frozen=True)
class AlertAcknowledged(ProtocolEvent):
    alert_index: int = 0


# =============================================================================
# AUDIT
# =============================================================================

class AuditEventType(Enum):
    """Explicit audit event types."""
    STATE_CHANGE = "state_change"
    REJECTED = "rejected"
    WRITE_CONFLICT = "write_conflict"


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable audit log entry."""
    entry_id: str
    event_type: AuditEventType
    timestamp: Timestamp
    layer: str  # Which layer generated this
    action: str
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
