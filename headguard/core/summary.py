"""
Protocol Summary Projection
===========================

Read-only view of a protocol for dashboards: progress, time in stage,
estimated completion and the player's availability status.

Nothing here is stored. Recompute on every fetch.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import math
from typing import Optional

from ..contracts.base import Timestamp, hours_between
from ..contracts.protocol import AlertSeverity, Incident, Protocol, Stage
from .catalog import STAGE_SEQUENCE, definition_of, stage_order
from .eligibility import EligibilityResult, evaluate_eligibility


class PlayerStatus(Enum):
    AVAILABLE = "available"
    RTP_PROTOCOL = "rtp_protocol"
    MEDICAL_HOLD = "medical_hold"
    CLEARED_PENDING = "cleared_pending"


@dataclass(frozen=True)
class ProtocolSummary:
    protocol_id: str
    player_id: str
    current_stage: Stage
    stage_number: int
    stage_label: str
    progress_percent: float
    hours_in_stage: float
    minimum_hours: int
    eligibility: EligibilityResult
    estimated_days_remaining: int
    open_alert_count: int
    player_status: PlayerStatus
    days_since_incident: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'protocolId': self.protocol_id,
            'playerId': self.player_id,
            'currentStage': self.current_stage.value,
            'stageNumber': self.stage_number,
            'stageLabel': self.stage_label,
            'progressPercent': self.progress_percent,
            'hoursInStage': self.hours_in_stage,
            'minimumHours': self.minimum_hours,
            'eligibility': self.eligibility.to_dict(),
            'estimatedDaysRemaining': self.estimated_days_remaining,
            'openAlertCount': self.open_alert_count,
            'playerStatus': self.player_status.value,
            'daysSinceIncident': self.days_since_incident,
        }


def _remaining_minimum_hours(protocol: Protocol, eligibility: EligibilityResult) -> float:
    order = stage_order(protocol.current_stage)
    later = sum(
        definition_of(stage).minimum_duration_hours
        for stage in STAGE_SEQUENCE[order:]
    )
    return eligibility.hours_remaining + later


def _player_status(protocol: Protocol, eligibility: EligibilityResult) -> PlayerStatus:
    if protocol.is_cleared:
        return PlayerStatus.AVAILABLE
    if any(a.severity is AlertSeverity.HIGH for a in protocol.open_alerts):
        return PlayerStatus.MEDICAL_HOLD
    if protocol.current_stage is Stage.STAGE_6 and eligibility.eligible:
        return PlayerStatus.CLEARED_PENDING
    return PlayerStatus.RTP_PROTOCOL


def summarize(
    protocol: Protocol,
    now: Timestamp,
    incident: Optional[Incident] = None,
) -> ProtocolSummary:
    eligibility = evaluate_eligibility(protocol, now)
    last = len(STAGE_SEQUENCE)

    if protocol.is_cleared:
        stage_number = last + 1
        label = "Cleared"
        minimum_hours = 0
        days_remaining = 0
    else:
        stage_number = stage_order(protocol.current_stage)
        definition = definition_of(protocol.current_stage)
        label = definition.label
        minimum_hours = definition.minimum_duration_hours
        days_remaining = math.ceil(_remaining_minimum_hours(protocol, eligibility) / 24.0)

    progress = min(100.0, (stage_number - 1) / (last - 1) * 100.0)

    days_since_incident = None
    if incident is not None:
        days_since_incident = int(hours_between(incident.occurred_at, now) // 24)

    return ProtocolSummary(
        protocol_id=protocol.protocol_id,
        player_id=protocol.player_id,
        current_stage=protocol.current_stage,
        stage_number=stage_number,
        stage_label=label,
        progress_percent=round(progress, 1),
        hours_in_stage=max(0.0, hours_between(protocol.stage_started_at, now)),
        minimum_hours=minimum_hours,
        eligibility=eligibility,
        estimated_days_remaining=days_remaining,
        open_alert_count=len(protocol.open_alerts),
        player_status=_player_status(protocol, eligibility),
        days_since_incident=days_since_incident,
    )
