"""
Stage Catalog
=============

Static table of the six graduated return-to-play stages.

Pure data, loaded once at import. No side effects; the only failure is
UnknownStage for a key outside stage_1..stage_6, which is a programming
error rather than a user-facing one.
"""

from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Tuple, Union

from ..contracts.protocol import Stage


class UnknownStage(ValueError):
    """Raised for a stage key that has no catalog definition."""

    def __init__(self, key: object):
        super().__init__(f"Unknown RTP stage: {key!r}")
        self.key = key


@dataclass(frozen=True)
class StageDefinition:
    """Immutable definition of one protocol stage."""
    key: Stage
    label: str
    description: str
    activities: str
    minimum_duration_hours: int
    progression_criteria: str

    def __post_init__(self):
        if self.minimum_duration_hours < 0:
            raise ValueError("minimum_duration_hours must be >= 0")


# =============================================================================
# CATALOG DATA
# =============================================================================

_DEFINITIONS: Tuple[StageDefinition, ...] = (
    StageDefinition(
        key=Stage.STAGE_1,
        label="Rest",
        description="Complete physical and cognitive rest",
        activities="No physical activity, limit screen time, adequate sleep",
        minimum_duration_hours=24,
        progression_criteria="Symptom-free for 24+ hours",
    ),
    StageDefinition(
        key=Stage.STAGE_2,
        label="Light Aerobic",
        description="Walking, stationary cycling <70% max HR",
        activities="15-20 min light aerobic exercise, no resistance training",
        minimum_duration_hours=24,
        progression_criteria="Tolerate exercise without symptom return",
    ),
    StageDefinition(
        key=Stage.STAGE_3,
        label="Sport-Specific",
        description="Running drills, no head impact activities",
        activities="Running, cutting, position-specific drills, moderate intensity",
        minimum_duration_hours=24,
        progression_criteria="Complete training without symptoms",
    ),
    StageDefinition(
        key=Stage.STAGE_4,
        label="Non-Contact",
        description="Passing, weight training, complex drills",
        activities="Full training except contact/collision activities",
        minimum_duration_hours=24,
        progression_criteria="Normal training capacity restored",
    ),
    StageDefinition(
        key=Stage.STAGE_5,
        label="Full Contact",
        description="Normal training, medical clearance required",
        activities="Unrestricted training, full contact practice",
        minimum_duration_hours=24,
        progression_criteria="Medical clearance + normal function assessment",
    ),
    StageDefinition(
        key=Stage.STAGE_6,
        label="Return to Play",
        description="Full medical clearance to play in games",
        activities="Available for match selection",
        minimum_duration_hours=0,
        progression_criteria="Final medical sign-off completed",
    ),
)

STAGE_CATALOG: Mapping[Stage, StageDefinition] = MappingProxyType(
    {d.key: d for d in _DEFINITIONS}
)

STAGE_SEQUENCE: Tuple[Stage, ...] = tuple(d.key for d in _DEFINITIONS)


# =============================================================================
# LOOKUPS
# =============================================================================

def _coerce(key: Union[Stage, str]) -> Stage:
    if isinstance(key, Stage):
        stage = key
    else:
        try:
            stage = Stage(key)
        except ValueError:
            raise UnknownStage(key) from None
    if stage not in STAGE_CATALOG:
        raise UnknownStage(key)
    return stage


def stage_order(key: Union[Stage, str]) -> int:
    """1-based position of a stage in the protocol."""
    return STAGE_SEQUENCE.index(_coerce(key)) + 1


def definition_of(key: Union[Stage, str]) -> StageDefinition:
    return STAGE_CATALOG[_coerce(key)]


def next_stage(key: Union[Stage, str]) -> Stage:
    """The stage that follows key; stage_6 is followed by CLEARED."""
    order = stage_order(key)
    if order == len(STAGE_SEQUENCE):
        return Stage.CLEARED
    return STAGE_SEQUENCE[order]


def all_stages() -> Tuple[StageDefinition, ...]:
    return _DEFINITIONS
