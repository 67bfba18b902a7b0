"""
Service Orchestration Module

Wires the pure core engine to a store, a clock and a notification sink.

FLOW (every mutation):
======================
1. Read the current snapshot from the store
2. Run the core operation with clock.now()
3. put_if_version against the version that was read
4. On CONCURRENT_MODIFICATION: re-read and re-run (bounded)
5. On success: publish events, record audit entry

The core decides; this module only moves data. Gating is re-evaluated on
every retry, so a lost race never skips a stage.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional
import logging

from .contracts.base import ErrorCode, Result, Timestamp, fail
from .contracts.events import AuditEventType
from .contracts.protocol import AlertSeverity, AlertType, Incident, Protocol
from .core import (
    Transition, acknowledge_alert, advance_stage, create_protocol,
    evaluate_eligibility, raise_alert, record_symptom_check, reset_protocol,
    summarize
)
from .observability import (
    AuditLogCollector, FanOutNotificationSink, LoggingNotificationSink,
    NotificationSink, ObservabilityConfig
)
from .storage import ProtocolStorageConfig, ProtocolStore, create_store
from .temporal.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

Operation = Callable[[Protocol, Timestamp], Result]


@dataclass
class ServiceConfig:
    """Retry policy for optimistic-concurrency conflicts."""
    max_write_attempts: int = 3

    def __post_init__(self):
        if self.max_write_attempts < 1:
            raise ValueError("max_write_attempts must be >= 1")


@dataclass
class HeadGuardConfig:
    """Unified configuration for the return-to-play service."""
    storage: ProtocolStorageConfig = None
    observability: ObservabilityConfig = None
    service: ServiceConfig = None

    def __post_init__(self):
        self.storage = self.storage or ProtocolStorageConfig()
        self.observability = self.observability or ObservabilityConfig()
        self.service = self.service or ServiceConfig()


class ReturnToPlayService:
    """
    Store-authoritative front door to the RTP engine.

    Callers (UI actions, scheduled jobs) never hold the truth; they call
    here and re-fetch the returned snapshot.
    """

    def __init__(
        self,
        config: Optional[HeadGuardConfig] = None,
        store: Optional[ProtocolStore] = None,
        clock: Optional[Clock] = None,
        sink: Optional[NotificationSink] = None,
    ):
        self._config = config or HeadGuardConfig()
        self._store = store or create_store(self._config.storage)
        self._clock = clock or SystemClock()
        self._audit = AuditLogCollector(layer_name="service")

        sinks = [sink] if sink is not None else []
        if self._config.observability.log_events:
            sinks.append(LoggingNotificationSink(self._config.observability.logger_name))
        self._sink = FanOutNotificationSink(*sinks)

    # =========================================================================
    # READS
    # =========================================================================

    def get_protocol(self, protocol_id: str) -> Result:
        found = self._store.read(protocol_id)
        if found.is_failure:
            return found
        if found.value is None:
            return self._not_found(protocol_id)
        return found

    def check_eligibility(self, protocol_id: str) -> Result:
        found = self.get_protocol(protocol_id)
        if found.is_failure:
            return found
        return Result.success(evaluate_eligibility(found.value, self._clock.now()))

    def get_summary(self, protocol_id: str, incident: Optional[Incident] = None) -> Result:
        found = self.get_protocol(protocol_id)
        if found.is_failure:
            return found
        return Result.success(summarize(found.value, self._clock.now(), incident))

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def open_protocol(
        self,
        incident_id: str,
        player_id: str,
        symptom_free_required: bool = True,
        protocol_id: Optional[str] = None,
    ) -> Result:
        now = self._clock.now()
        created = create_protocol(
            incident_id, player_id, symptom_free_required, now, protocol_id=protocol_id
        )
        if created.is_failure:
            self._audit.record_error("open_protocol", created.error)
            return created

        transition: Transition = created.value
        written = self._store.create(transition.protocol)
        if not written.success:
            self._audit.record_error("open_protocol", written.error, transition.protocol.protocol_id)
            return Result.failure(written.error)

        self._commit("open_protocol", transition, now)
        return Result.success(transition.protocol)

    def advance_stage(self, protocol_id: str, supervisor_id: str, notes: Optional[str] = None) -> Result:
        return self._mutate(
            "advance_stage", protocol_id,
            lambda p, now: advance_stage(p, supervisor_id, notes, now),
        )

    def record_symptom_check(self, protocol_id: str, symptom_free: bool) -> Result:
        return self._mutate(
            "record_symptom_check", protocol_id,
            lambda p, now: record_symptom_check(p, symptom_free, now),
        )

    def reset_protocol(self, protocol_id: str, reason: str, supervisor_id: Optional[str] = None) -> Result:
        return self._mutate(
            "reset_protocol", protocol_id,
            lambda p, now: reset_protocol(p, reason, supervisor_id, now),
        )

    def raise_alert(
        self,
        protocol_id: str,
        alert_type: AlertType | str,
        message: str,
        severity: AlertSeverity | str,
    ) -> Result:
        return self._mutate(
            "raise_alert", protocol_id,
            lambda p, now: raise_alert(p, alert_type, message, severity, now),
        )

    def acknowledge_alert(self, protocol_id: str, alert_index: int) -> Result:
        return self._mutate(
            "acknowledge_alert", protocol_id,
            lambda p, now: acknowledge_alert(p, alert_index, now),
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _mutate(self, action: str, protocol_id: str, operation: Operation) -> Result:
        """Read-modify-write with bounded retry on version conflicts."""
        attempts = self._config.service.max_write_attempts
        last_error = None

        for attempt in range(1, attempts + 1):
            found = self.get_protocol(protocol_id)
            if found.is_failure:
                self._audit.record_error(action, found.error, protocol_id)
                return found
            snapshot: Protocol = found.value

            now = self._clock.now()
            outcome = operation(snapshot, now)
            if outcome.is_failure:
                logger.info(
                    "%s rejected for %s: %s (%s)",
                    action, protocol_id, outcome.error.code.name, outcome.error.message,
                )
                self._audit.record_error(action, outcome.error, protocol_id)
                return outcome

            transition: Transition = outcome.value
            written = self._store.put_if_version(transition.protocol, expected_version=snapshot.version)
            if written.success:
                self._commit(action, transition, now)
                return Result.success(transition.protocol)

            last_error = written.error
            if written.error.code is not ErrorCode.CONCURRENT_MODIFICATION:
                self._audit.record_error(action, written.error, protocol_id)
                return Result.failure(written.error)

            logger.warning(
                "%s lost a write race on %s (attempt %d/%d), re-reading",
                action, protocol_id, attempt, attempts,
            )
            self._audit.record(
                AuditEventType.WRITE_CONFLICT, action, now,
                protocol_id=protocol_id, attempt=attempt,
                expected_version=snapshot.version,
            )

        self._audit.record_error(action, last_error, protocol_id)
        return Result.failure(last_error)

    def _commit(self, action: str, transition: Transition, now: Timestamp) -> None:
        protocol = transition.protocol
        self._audit.record(
            AuditEventType.STATE_CHANGE, action, now,
            protocol_id=protocol.protocol_id,
            stage=protocol.current_stage.value,
            version=protocol.version,
            events=",".join(e.event_type for e in transition.events),
        )
        self._sink.publish_all(transition.events)

    def _not_found(self, protocol_id: str) -> Result:
        return fail(
            ErrorCode.PROTOCOL_NOT_FOUND,
            f"Protocol {protocol_id} not found",
            self._clock.now().value,
            protocol_id=protocol_id,
        )

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    @property
    def store(self) -> ProtocolStore:
        return self._store

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def audit_log(self) -> AuditLogCollector:
        return self._audit
