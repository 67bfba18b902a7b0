"""
Observability & Notification Layer

RESPONSIBILITY: Deliver protocol events to downstream consumers and keep
an append-only audit trail of every operation attempt
ALLOWED INPUTS: ProtocolEvent records, operation outcomes
OUTPUTS: Notifications, AuditLogEntry records, log lines

WHAT THIS LAYER MUST NOT DO:
============================
- Modify protocol state
- Filter or reinterpret events (only deliver and record them)
- Make decisions based on logged data
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional
import itertools
import logging

from ..contracts.base import Error, Timestamp
from ..contracts.events import AuditEventType, AuditLogEntry, ProtocolEvent
from ..domain.serialization import event_to_dict


# =============================================================================
# NOTIFICATION SINKS
# =============================================================================

class NotificationSink:
    """
    Receives events emitted by successful protocol mutations.

    How they reach people (UI toast, webhook, pager) is the sink's concern.
    """

    def publish(self, event: ProtocolEvent) -> None:
        raise NotImplementedError

    def publish_all(self, events: Iterable[ProtocolEvent]) -> None:
        for event in events:
            self.publish(event)


class InMemoryNotificationSink(NotificationSink):
    """Collects events in order."""

    def __init__(self):
        self._events: List[ProtocolEvent] = []

    def publish(self, event: ProtocolEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> List[ProtocolEvent]:
        return list(self._events)

    def of_type(self, event_type: type) -> List[ProtocolEvent]:
        return [e for e in self._events if isinstance(e, event_type)]

    def clear(self) -> None:
        self._events.clear()


class LoggingNotificationSink(NotificationSink):
    """Writes each event as a structured log line."""

    def __init__(self, logger_name: str = "headguard.events", level: int = logging.INFO):
        self._logger = logging.getLogger(logger_name)
        self._level = level

    def publish(self, event: ProtocolEvent) -> None:
        self._logger.log(
            self._level,
            "%s protocol=%s",
            event.event_type,
            event.protocol_id,
            extra={'event': event_to_dict(event)},
        )


class FanOutNotificationSink(NotificationSink):
    """Delivers every event to each wrapped sink, in order."""

    def __init__(self, *sinks: NotificationSink):
        self._sinks = list(sinks)

    def publish(self, event: ProtocolEvent) -> None:
        for sink in self._sinks:
            sink.publish(event)


# =============================================================================
# AUDIT COLLECTOR
# =============================================================================

class AuditLogCollector:
    """
    Append-only audit log.

    Records every mutation attempt, successful or not. Entries are never
    modified after collection.
    """

    def __init__(self, layer_name: str = "service"):
        self._layer_name = layer_name
        self._entries: List[AuditLogEntry] = []
        self._ids = itertools.count(1)

    def collect(self, entry: AuditLogEntry) -> None:
        self._entries.append(entry)

    def record(
        self,
        event_type: AuditEventType,
        action: str,
        at: Timestamp,
        protocol_id: Optional[str] = None,
        **metadata: object,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            entry_id=f"audit_{next(self._ids):08d}",
            event_type=event_type,
            timestamp=at,
            layer=self._layer_name,
            action=action,
            entity_id=protocol_id,
            entity_type="rtp_protocol" if protocol_id else None,
            metadata=tuple((k, str(v)) for k, v in sorted(metadata.items())),
        )
        self.collect(entry)
        return entry

    def record_error(self, action: str, error: Error, protocol_id: Optional[str] = None) -> AuditLogEntry:
        return self.record(
            AuditEventType.REJECTED,
            action,
            Timestamp(error.timestamp),
            protocol_id=protocol_id,
            code=error.code.name,
            message=error.message,
        )

    def get_entries(
        self,
        event_type: Optional[AuditEventType] = None,
        protocol_id: Optional[str] = None,
    ) -> List[AuditLogEntry]:
        entries = self._entries
        if event_type:
            entries = [e for e in entries if e.event_type == event_type]
        if protocol_id:
            entries = [e for e in entries if e.entity_id == protocol_id]
        return list(entries)

    @property
    def entry_count(self) -> int:
        return len(self._entries)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class ObservabilityConfig:
    """Configuration for event delivery and audit."""
    log_events: bool = True
    logger_name: str = "headguard.events"


__all__ = [
    'NotificationSink',
    'InMemoryNotificationSink',
    'LoggingNotificationSink',
    'FanOutNotificationSink',
    'AuditLogCollector',
    'ObservabilityConfig',
]
