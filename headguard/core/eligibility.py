"""
Stage Eligibility
=================

Decides whether a protocol may advance out of its current stage.

INVARIANT: evaluate_eligibility(protocol, now) is a PURE FUNCTION.
It never mutates the protocol and may be called any number of times.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..contracts.base import Timestamp, hours_between
from ..contracts.protocol import Protocol
from .catalog import definition_of


class IneligibilityReason(Enum):
    ALREADY_CLEARED = "AlreadyCleared"
    MINIMUM_DURATION = "MinimumDuration"
    SYMPTOM_CHECK_REQUIRED = "SymptomCheckRequired"


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    hours_remaining: float
    reason: Optional[IneligibilityReason] = None

    def to_dict(self) -> dict:
        return {
            'eligible': self.eligible,
            'hoursRemaining': self.hours_remaining,
            'reason': self.reason.value if self.reason else None,
        }


def has_fresh_symptom_free_check(protocol: Protocol) -> bool:
    """
    True when the latest check is symptom-free AND was taken during the
    current stage. A check from an earlier stage never counts.
    """
    check = protocol.last_symptom_check
    if check is None:
        return False
    if check.checked_at < protocol.stage_started_at:
        return False
    return check.symptom_free


def evaluate_eligibility(protocol: Protocol, now: Timestamp) -> EligibilityResult:
    if protocol.is_cleared:
        return EligibilityResult(
            eligible=False,
            hours_remaining=0.0,
            reason=IneligibilityReason.ALREADY_CLEARED,
        )

    elapsed = hours_between(protocol.stage_started_at, now)
    required = definition_of(protocol.current_stage).minimum_duration_hours

    if elapsed < required:
        return EligibilityResult(
            eligible=False,
            hours_remaining=required - elapsed,
            reason=IneligibilityReason.MINIMUM_DURATION,
        )

    if protocol.symptom_free_required and not has_fresh_symptom_free_check(protocol):
        return EligibilityResult(
            eligible=False,
            hours_remaining=0.0,
            reason=IneligibilityReason.SYMPTOM_CHECK_REQUIRED,
        )

    return EligibilityResult(eligible=True, hours_remaining=0.0)
