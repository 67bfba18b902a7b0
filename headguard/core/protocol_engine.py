"""
Return-to-Play Protocol Engine
==============================

Pure transition functions over the Protocol aggregate.

Every operation has the shape
    (protocol, inputs..., now) -> Result[Transition]
and performs no I/O. A successful Result carries the NEW snapshot plus the
events it produced; a failed Result carries a typed Error and the caller's
snapshot is untouched (it is frozen, nothing here can write to it).

STATE MACHINE:
==============
    stage_1 -> stage_2 -> ... -> stage_6 -> cleared     (advance_stage, gated)
    any non-cleared stage -> stage_1                    (reset, explicit/implicit)
    cleared is terminal; only alert acknowledgement still succeeds
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from ..contracts.base import (
    ErrorCode, Result, Timestamp, fail, generate_protocol_id, hours_between
)
from ..contracts.protocol import (
    Alert, AlertSeverity, AlertType, FinalClearance, Protocol, Stage,
    StageHistoryEntry, StageOutcome, SymptomCheck
)
from ..contracts.events import (
    AlertAcknowledged, AlertRaised, ProtocolCompleted, ProtocolCreated,
    ProtocolEvent, ProtocolReset, StageAdvanced, SymptomCheckRecorded
)
from .catalog import definition_of, next_stage
from .eligibility import evaluate_eligibility


SYMPTOM_RETURN_REASON = "symptom_return"


@dataclass(frozen=True)
class Transition:
    """Outcome of a successful operation."""
    protocol: Protocol
    events: Tuple[ProtocolEvent, ...] = field(default_factory=tuple)


# =============================================================================
# GUARDS
# =============================================================================

def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _guard_mutable(protocol: Protocol, now: Timestamp, action: str) -> Optional[Result]:
    """Shared preconditions for stage-changing operations."""
    if protocol.is_cleared:
        return fail(
            ErrorCode.PROTOCOL_ALREADY_CLEARED,
            f"Cannot {action}: protocol {protocol.protocol_id} is already cleared",
            now.value,
            protocol_id=protocol.protocol_id,
        )
    if now < protocol.stage_started_at:
        return fail(
            ErrorCode.VALIDATION_ERROR,
            f"Cannot {action}: time {now.to_iso()} precedes stage start "
            f"{protocol.stage_started_at.to_iso()}",
            now.value,
            protocol_id=protocol.protocol_id,
        )
    return None


def _close_stage(
    protocol: Protocol,
    now: Timestamp,
    outcome: StageOutcome,
    supervisor_id: Optional[str],
    notes: Optional[str],
) -> Tuple[StageHistoryEntry, ...]:
    entry = StageHistoryEntry(
        stage=protocol.current_stage,
        started_at=protocol.stage_started_at,
        ended_at=now,
        duration_hours=hours_between(protocol.stage_started_at, now),
        outcome=outcome,
        supervisor_id=supervisor_id,
        notes=notes,
    )
    return protocol.stage_history + (entry,)


def _restart(
    protocol: Protocol,
    now: Timestamp,
    supervisor_id: Optional[str],
    notes: Optional[str],
) -> Protocol:
    """Abandon the current stage and go back to stage_1."""
    return replace(
        protocol,
        stage_history=_close_stage(protocol, now, StageOutcome.RESET, supervisor_id, notes),
        current_stage=Stage.STAGE_1,
        stage_started_at=now,
        last_symptom_check=None,
        version=protocol.version + 1,
        updated_at=now,
    )


# =============================================================================
# OPERATIONS
# =============================================================================

def create_protocol(
    incident_id: str,
    player_id: str,
    symptom_free_required: bool,
    now: Timestamp,
    protocol_id: Optional[str] = None,
    auto_progression_enabled: bool = True,
) -> Result:
    """Open a new protocol at stage_1."""
    if _blank(incident_id):
        return fail(ErrorCode.VALIDATION_ERROR, "incident_id is required", now.value)
    if _blank(player_id):
        return fail(ErrorCode.VALIDATION_ERROR, "player_id is required", now.value)

    protocol = Protocol(
        protocol_id=protocol_id or generate_protocol_id(),
        incident_id=incident_id,
        player_id=player_id,
        current_stage=Stage.STAGE_1,
        stage_started_at=now,
        symptom_free_required=bool(symptom_free_required),
        version=1,
        created_at=now,
        updated_at=now,
        auto_progression_enabled=auto_progression_enabled,
    )
    event = ProtocolCreated(
        protocol_id=protocol.protocol_id,
        occurred_at=now,
        player_id=player_id,
        incident_id=incident_id,
    )
    return Result.success(Transition(protocol=protocol, events=(event,)))


def advance_stage(
    protocol: Protocol,
    supervisor_id: str,
    notes: Optional[str],
    now: Timestamp,
) -> Result:
    """Complete the current stage and move to the next one."""
    blocked = _guard_mutable(protocol, now, "advance stage")
    if blocked:
        return blocked
    if _blank(supervisor_id):
        return fail(ErrorCode.VALIDATION_ERROR, "supervisor_id is required to advance", now.value)

    eligibility = evaluate_eligibility(protocol, now)
    if not eligibility.eligible:
        return fail(
            ErrorCode.STAGE_NOT_ELIGIBLE,
            f"{protocol.current_stage.value} is not ready to advance",
            now.value,
            reason=eligibility.reason.value,
            hours_remaining=eligibility.hours_remaining,
        )

    from_stage = protocol.current_stage
    to_stage = next_stage(from_stage)

    advanced = replace(
        protocol,
        stage_history=_close_stage(protocol, now, StageOutcome.COMPLETED, supervisor_id, notes),
        current_stage=to_stage,
        stage_started_at=now,
        version=protocol.version + 1,
        updated_at=now,
    )
    events: Tuple[ProtocolEvent, ...] = (
        StageAdvanced(
            protocol_id=protocol.protocol_id,
            occurred_at=now,
            from_stage=from_stage,
            to_stage=to_stage,
        ),
    )

    if to_stage is Stage.CLEARED:
        advanced = replace(
            advanced,
            final_clearance=FinalClearance(
                cleared_by=supervisor_id,
                clearance_date=now,
                return_to_play_date=now,
                clearance_notes=notes,
            ),
        )
        events += (
            ProtocolCompleted(
                protocol_id=protocol.protocol_id,
                occurred_at=now,
                cleared_by=supervisor_id,
            ),
        )

    return Result.success(Transition(protocol=advanced, events=events))


def record_symptom_check(protocol: Protocol, symptom_free: bool, now: Timestamp) -> Result:
    """
    Store the latest symptom-free flag.

    A symptom return past stage_1 resets the protocol and raises a
    high-severity alert in the same mutation.
    """
    blocked = _guard_mutable(protocol, now, "record symptom check")
    if blocked:
        return blocked

    check = SymptomCheck(checked_at=now, symptom_free=bool(symptom_free))
    events: Tuple[ProtocolEvent, ...] = (
        SymptomCheckRecorded(
            protocol_id=protocol.protocol_id,
            occurred_at=now,
            symptom_free=check.symptom_free,
        ),
    )

    if check.symptom_free or protocol.current_stage is Stage.STAGE_1:
        updated = replace(
            protocol,
            last_symptom_check=check,
            version=protocol.version + 1,
            updated_at=now,
        )
        return Result.success(Transition(protocol=updated, events=events))

    from_stage = protocol.current_stage
    label = definition_of(from_stage).label
    alert = Alert(
        type=AlertType.SYMPTOM_RETURN,
        message=f"Symptoms returned during {from_stage.value} ({label}); protocol reset to stage_1",
        severity=AlertSeverity.HIGH,
        raised_at=now,
    )
    restarted = _restart(protocol, now, supervisor_id=None, notes="Symptom return")
    # The failing check post-dates the restart, so it is kept and still blocks advancing
    updated = replace(
        restarted,
        last_symptom_check=check,
        alerts=protocol.alerts + (alert,),
    )
    events += (
        ProtocolReset(
            protocol_id=protocol.protocol_id,
            occurred_at=now,
            reason=SYMPTOM_RETURN_REASON,
            from_stage=from_stage,
        ),
        AlertRaised(
            protocol_id=protocol.protocol_id,
            occurred_at=now,
            alert_index=len(updated.alerts) - 1,
            alert=alert,
        ),
    )
    return Result.success(Transition(protocol=updated, events=events))


def reset_protocol(
    protocol: Protocol,
    reason: str,
    supervisor_id: Optional[str],
    now: Timestamp,
) -> Result:
    """Explicit staff reset back to stage_1. Earlier history is kept."""
    blocked = _guard_mutable(protocol, now, "reset protocol")
    if blocked:
        return blocked
    if _blank(reason):
        return fail(ErrorCode.VALIDATION_ERROR, "a reset reason is required", now.value)

    from_stage = protocol.current_stage
    updated = _restart(protocol, now, supervisor_id=supervisor_id, notes=reason)
    event = ProtocolReset(
        protocol_id=protocol.protocol_id,
        occurred_at=now,
        reason=reason,
        from_stage=from_stage,
    )
    return Result.success(Transition(protocol=updated, events=(event,)))


def raise_alert(
    protocol: Protocol,
    alert_type: AlertType | str,
    message: str,
    severity: AlertSeverity | str,
    now: Timestamp,
) -> Result:
    """Append an alert. Existing alerts are never touched."""
    if protocol.is_cleared:
        return fail(
            ErrorCode.PROTOCOL_ALREADY_CLEARED,
            f"Cannot raise alert: protocol {protocol.protocol_id} is already cleared",
            now.value,
            protocol_id=protocol.protocol_id,
        )
    try:
        alert_type = AlertType(alert_type)
        severity = AlertSeverity(severity)
    except ValueError as exc:
        return fail(ErrorCode.VALIDATION_ERROR, str(exc), now.value)
    if _blank(message):
        return fail(ErrorCode.VALIDATION_ERROR, "alert message is required", now.value)

    alert = Alert(type=alert_type, message=message, severity=severity, raised_at=now)
    updated = replace(
        protocol,
        alerts=protocol.alerts + (alert,),
        version=protocol.version + 1,
        updated_at=now,
    )
    event = AlertRaised(
        protocol_id=protocol.protocol_id,
        occurred_at=now,
        alert_index=len(updated.alerts) - 1,
        alert=alert,
    )
    return Result.success(Transition(protocol=updated, events=(event,)))


def acknowledge_alert(protocol: Protocol, alert_index: int, now: Timestamp) -> Result:
    """Flip acknowledged on one alert. Permitted on cleared protocols."""
    if not 0 <= alert_index < len(protocol.alerts):
        return fail(
            ErrorCode.VALIDATION_ERROR,
            f"alert index {alert_index} out of range (0..{len(protocol.alerts) - 1})",
            now.value,
            alert_index=alert_index,
        )
    target = protocol.alerts[alert_index]
    if target.acknowledged:
        return fail(
            ErrorCode.VALIDATION_ERROR,
            f"alert {alert_index} is already acknowledged",
            now.value,
            alert_index=alert_index,
        )

    alerts = list(protocol.alerts)
    alerts[alert_index] = replace(target, acknowledged=True)
    updated = replace(
        protocol,
        alerts=tuple(alerts),
        version=protocol.version + 1,
        updated_at=now,
    )
    event = AlertAcknowledged(
        protocol_id=protocol.protocol_id,
        occurred_at=now,
        alert_index=alert_index,
    )
    return Result.success(Transition(protocol=updated, events=(event,)))
