"""
Contracts Module

This module defines the explicit data types shared by every layer of the
return-to-play engine. No layer may import implementation details from
another layer; they exchange these types only.

DESIGN PRINCIPLES:
==================
1. All contract types are immutable (frozen dataclasses)
2. All failures are explicit Error values inside a Result
3. All timestamps use UTC and are never mutated
"""

from .base import (
    Error,
    ErrorCode,
    Result,
    Timestamp,
    fail,
    generate_protocol_id,
    hours_between,
)
from .protocol import (
    Alert,
    AlertSeverity,
    AlertType,
    FinalClearance,
    Incident,
    Protocol,
    Stage,
    StageHistoryEntry,
    StageOutcome,
    SymptomCheck,
)
from .events import (
    AlertAcknowledged,
    AlertRaised,
    AuditEventType,
    AuditLogEntry,
    ProtocolCompleted,
    ProtocolCreated,
    ProtocolEvent,
    ProtocolReset,
    StageAdvanced,
    SymptomCheckRecorded,
)

__all__ = [
    'Error',
    'ErrorCode',
    'Result',
    'Timestamp',
    'fail',
    'generate_protocol_id',
    'hours_between',
    'Alert',
    'AlertSeverity',
    'AlertType',
    'FinalClearance',
    'Incident',
    'Protocol',
    'Stage',
    'StageHistoryEntry',
    'StageOutcome',
    'SymptomCheck',
    'AlertAcknowledged',
    'AlertRaised',
    'AuditEventType',
    'AuditLogEntry',
    'ProtocolCompleted',
    'ProtocolCreated',
    'ProtocolEvent',
    'ProtocolReset',
    'StageAdvanced',
    'SymptomCheckRecorded',
]
