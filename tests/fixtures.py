"""
Protocol Fixtures

Helpers for building protocols at known points in time.

RULES:
======
1. All times are offsets in hours from T0, never wall-clock
2. Helpers assert success; a failing setup step is a test bug
"""

from __future__ import annotations
from datetime import datetime, timedelta, timezone
import json
from typing import Tuple

from headguard.contracts.base import Result, Timestamp
from headguard.contracts.protocol import Protocol, Stage
from headguard.core import advance_stage, create_protocol, record_symptom_check


T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
SUPERVISOR = "dr_reyes"


def ts(hours: float = 0.0) -> Timestamp:
    """T0 + hours as a Timestamp."""
    return Timestamp(T0 + timedelta(hours=hours))


def applied(result: Result) -> Protocol:
    """Unwrap a successful Transition result to its new protocol."""
    assert result.is_success, result.error
    return result.value.protocol


def new_protocol(
    symptom_free_required: bool = True,
    at: float = 0.0,
    protocol_id: str = "rtp_test_0001",
) -> Protocol:
    return applied(create_protocol(
        incident_id="inc_0001",
        player_id="player_0001",
        symptom_free_required=symptom_free_required,
        now=ts(at),
        protocol_id=protocol_id,
    ))


def walk_to(stage: Stage, symptom_free_required: bool = True) -> Tuple[Protocol, float]:
    """
    Advance a fresh protocol until it sits in `stage`.

    Each stage lasts exactly 25 hours and ends with a symptom-free check.
    Returns the protocol and the hour offset at which it entered `stage`.
    """
    protocol = new_protocol(symptom_free_required=symptom_free_required)
    hour = 0.0
    while protocol.current_stage is not stage:
        hour += 25.0
        if symptom_free_required:
            protocol = applied(record_symptom_check(protocol, True, ts(hour)))
        protocol = applied(advance_stage(protocol, SUPERVISOR, None, ts(hour)))
    return protocol, hour


def clear(symptom_free_required: bool = False) -> Tuple[Protocol, float]:
    """Walk a protocol all the way to CLEARED."""
    protocol, hour = walk_to(Stage.STAGE_6, symptom_free_required)
    if symptom_free_required:
        protocol = applied(record_symptom_check(protocol, True, ts(hour)))
    protocol = applied(advance_stage(protocol, SUPERVISOR, "Final sign-off", ts(hour)))
    return protocol, hour


def rewrite_stored_stage(log_path: str, protocol_id: str, stage_key: str) -> None:
    """Overwrite currentStage on every stored line for protocol_id."""
    with open(log_path, encoding='utf-8') as f:
        records = [json.loads(line) for line in f if line.strip()]
    for record in records:
        if record['protocolId'] == protocol_id:
            record['currentStage'] = stage_key
    with open(log_path, 'w', encoding='utf-8') as f:
        for record in records:
            f.write(json.dumps(record, sort_keys=True) + '\n')
