"""
Core Return-to-Play Engine

RESPONSIBILITY: Stage catalog, eligibility gating, protocol transitions
ALLOWED INPUTS: Protocol snapshots, a timestamp, operation inputs
OUTPUTS: Result[Transition] (new snapshot + events) or a typed Error

WHAT THIS LAYER MUST NOT DO:
============================
- Read the clock (callers pass `now`)
- Persist, publish, or log anything
- Mutate the snapshot it was given
"""

from .catalog import (
    STAGE_CATALOG,
    STAGE_SEQUENCE,
    StageDefinition,
    UnknownStage,
    all_stages,
    definition_of,
    next_stage,
    stage_order,
)
from .eligibility import EligibilityResult, IneligibilityReason, evaluate_eligibility
from .protocol_engine import (
    Transition,
    acknowledge_alert,
    advance_stage,
    create_protocol,
    raise_alert,
    record_symptom_check,
    reset_protocol,
)
from .summary import PlayerStatus, ProtocolSummary, summarize

__all__ = [
    'STAGE_CATALOG',
    'STAGE_SEQUENCE',
    'StageDefinition',
    'UnknownStage',
    'all_stages',
    'definition_of',
    'next_stage',
    'stage_order',
    'EligibilityResult',
    'IneligibilityReason',
    'evaluate_eligibility',
    'Transition',
    'acknowledge_alert',
    'advance_stage',
    'create_protocol',
    'raise_alert',
    'record_symptom_check',
    'reset_protocol',
    'PlayerStatus',
    'ProtocolSummary',
    'summarize',
]
