"""
Protocol Serialization
======================

Flat, JSON-compatible records for persisted protocols and emitted events.

RULES:
1. Timestamps are ISO 8601 strings (UTC).
2. Enums use their .value.
3. durationHours is a non-negative float.
4. Every protocol record carries schemaVersion; a missing value means 1.
5. Keys are camelCase in protocol and event records alike.
"""

import json
from dataclasses import asdict, fields
from datetime import datetime, date
from enum import Enum
from typing import Any, Dict, Optional

from ..contracts.base import ErrorCode, Result, Timestamp, fail
from ..contracts.events import AlertRaised, ProtocolEvent
from ..contracts.protocol import (
    Alert, AlertSeverity, AlertType, FinalClearance, Protocol, Stage,
    StageHistoryEntry, StageOutcome, SymptomCheck
)
from ..core.catalog import UnknownStage

SCHEMA_VERSION = 1


class ProtocolJSONEncoder(json.JSONEncoder):
    """
    JSON Encoder for protocol records and events.

    Timestamps and datetimes become ISO strings, enums their value,
    tuples lists.
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Timestamp):
            return obj.to_iso()
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return sorted(list(obj))
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        if hasattr(obj, "__dataclass_fields__"):
            return asdict(obj)

        return super().default(obj)


# =============================================================================
# ENCODE
# =============================================================================

def _iso(ts: Optional[Timestamp]) -> Optional[str]:
    return ts.to_iso() if ts is not None else None


def _history_to_dict(entry: StageHistoryEntry) -> Dict[str, Any]:
    return {
        'stage': entry.stage.value,
        'startedAt': _iso(entry.started_at),
        'endedAt': _iso(entry.ended_at),
        'durationHours': float(entry.duration_hours),
        'outcome': entry.outcome.value,
        'supervisorId': entry.supervisor_id,
        'notes': entry.notes,
    }


def _alert_to_dict(alert: Alert) -> Dict[str, Any]:
    return {
        'type': alert.type.value,
        'message': alert.message,
        'severity': alert.severity.value,
        'raisedAt': _iso(alert.raised_at),
        'acknowledged': alert.acknowledged,
    }


def protocol_to_dict(protocol: Protocol) -> Dict[str, Any]:
    check = protocol.last_symptom_check
    clearance = protocol.final_clearance
    return {
        'schemaVersion': SCHEMA_VERSION,
        'protocolId': protocol.protocol_id,
        'incidentId': protocol.incident_id,
        'playerId': protocol.player_id,
        'currentStage': protocol.current_stage.value,
        'stageStartedAt': _iso(protocol.stage_started_at),
        'stageHistory': [_history_to_dict(e) for e in protocol.stage_history],
        'symptomFreeRequired': protocol.symptom_free_required,
        'lastSymptomCheck': None if check is None else {
            'checkedAt': _iso(check.checked_at),
            'symptomFree': check.symptom_free,
        },
        'alerts': [_alert_to_dict(a) for a in protocol.alerts],
        'autoProgressionEnabled': protocol.auto_progression_enabled,
        'finalClearance': None if clearance is None else {
            'clearedBy': clearance.cleared_by,
            'clearanceDate': _iso(clearance.clearance_date),
            'returnToPlayDate': _iso(clearance.return_to_play_date),
            'clearanceNotes': clearance.clearance_notes,
        },
        'version': protocol.version,
        'createdAt': _iso(protocol.created_at),
        'updatedAt': _iso(protocol.updated_at),
    }


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


def event_to_dict(event: ProtocolEvent) -> Dict[str, Any]:
    """Flat camelCase record, keyed like stored protocols."""
    data: Dict[str, Any] = {'eventType': event.event_type}
    for f in fields(event):
        data[_camel(f.name)] = getattr(event, f.name)
    if isinstance(event, AlertRaised) and event.alert is not None:
        data['alert'] = _alert_to_dict(event.alert)
    return json.loads(json.dumps(data, cls=ProtocolJSONEncoder))


def dumps(protocol: Protocol) -> str:
    return json.dumps(protocol_to_dict(protocol), sort_keys=True)


# =============================================================================
# DECODE
# =============================================================================

def _stage(value: str) -> Stage:
    try:
        return Stage(value)
    except ValueError:
        raise UnknownStage(value) from None


def _ts(value: str) -> Timestamp:
    if not isinstance(value, str):
        raise ValueError(f"expected ISO-8601 string, got {value!r}")
    return Timestamp.from_iso(value)


def _history_from_dict(data: Dict[str, Any]) -> StageHistoryEntry:
    return StageHistoryEntry(
        stage=_stage(data['stage']),
        started_at=_ts(data['startedAt']),
        ended_at=_ts(data['endedAt']),
        duration_hours=float(data['durationHours']),
        outcome=StageOutcome(data['outcome']),
        supervisor_id=data.get('supervisorId'),
        notes=data.get('notes'),
    )


def _alert_from_dict(data: Dict[str, Any]) -> Alert:
    return Alert(
        type=AlertType(data['type']),
        message=data['message'],
        severity=AlertSeverity(data['severity']),
        raised_at=_ts(data['raisedAt']),
        acknowledged=bool(data.get('acknowledged', False)),
    )


def protocol_from_dict(data: Dict[str, Any]) -> Result:
    """
    Decode a stored record.

    Returns Result.success(Protocol), or a failure with UNKNOWN_STAGE for a
    stage key outside the catalog and VALIDATION_ERROR for anything else
    malformed.
    """
    now = Timestamp.now().value
    schema_version = data.get('schemaVersion', SCHEMA_VERSION)
    if schema_version != SCHEMA_VERSION:
        return fail(
            ErrorCode.VALIDATION_ERROR,
            f"Unsupported schemaVersion {schema_version!r}",
            now,
            schema_version=schema_version,
        )

    try:
        check = data.get('lastSymptomCheck')
        clearance = data.get('finalClearance')
        protocol = Protocol(
            protocol_id=data['protocolId'],
            incident_id=data['incidentId'],
            player_id=data['playerId'],
            current_stage=_stage(data['currentStage']),
            stage_started_at=_ts(data['stageStartedAt']),
            symptom_free_required=bool(data['symptomFreeRequired']),
            version=int(data['version']),
            created_at=_ts(data['createdAt']),
            updated_at=_ts(data['updatedAt']),
            stage_history=tuple(_history_from_dict(e) for e in data.get('stageHistory', [])),
            last_symptom_check=None if check is None else SymptomCheck(
                checked_at=_ts(check['checkedAt']),
                symptom_free=bool(check['symptomFree']),
            ),
            alerts=tuple(_alert_from_dict(a) for a in data.get('alerts', [])),
            auto_progression_enabled=bool(data.get('autoProgressionEnabled', True)),
            final_clearance=None if clearance is None else FinalClearance(
                cleared_by=clearance['clearedBy'],
                clearance_date=_ts(clearance['clearanceDate']),
                return_to_play_date=_ts(clearance['returnToPlayDate']),
                clearance_notes=clearance.get('clearanceNotes'),
            ),
        )
    except UnknownStage as exc:
        return fail(ErrorCode.UNKNOWN_STAGE, str(exc), now, stage=exc.key)
    except (KeyError, TypeError, ValueError) as exc:
        return fail(ErrorCode.VALIDATION_ERROR, f"Malformed protocol record: {exc!r}", now)

    return Result.success(protocol)


def loads(payload: str) -> Result:
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        return fail(ErrorCode.VALIDATION_ERROR, f"Invalid JSON: {exc}", Timestamp.now().value)
    if not isinstance(data, dict):
        return fail(ErrorCode.VALIDATION_ERROR, "Protocol record must be an object", Timestamp.now().value)
    return protocol_from_dict(data)
