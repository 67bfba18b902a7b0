"""
HeadGuard Return-to-Play Engine

This package implements the graduated return-to-play (RTP) protocol that a
player follows after a head-injury assessment. Layers communicate only
through the frozen contract types, never through shared mutable state.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Responsibility: Immutable Protocol aggregate, events, Error/Result
   - MUST NOT: Contain behavior beyond construction-time validation

2. TEMPORAL (temporal/)
   - Responsibility: Injectable clocks (live, replay, manual)
   - MUST NOT: Be bypassed; the core never reads system time itself

3. CORE ENGINE (core/)
   - Responsibility: Stage catalog, eligibility gating, transitions, summaries
   - Allowed inputs: Protocol snapshot + explicit `now`
   - Outputs: Result[Transition] (new snapshot + events)
   - MUST NOT: Persist, publish, or mutate its input

4. DOMAIN SERIALIZATION (domain/)
   - Responsibility: Flat camelCase JSON records with schemaVersion

5. STORAGE (storage/)
   - Responsibility: Keyed protocol records with put_if_version
   - MUST NOT: Run transitions or overwrite a newer record

6. OBSERVABILITY (observability/)
   - Responsibility: Notification sinks, audit trail
   - MUST NOT: Modify protocol state

7. SERVICE + API (engine.py, api/)
   - Responsibility: Read-modify-write with bounded retry, HTTP surface

CONSTRAINTS ENFORCED:
=====================
- Forward-only: a stage is only left by completing it or by a reset
- Store-authoritative: callers re-fetch instead of caching the stage
- Explicit errors: every failure is a typed Error, the snapshot is unchanged
- Cleared is terminal
"""

__version__ = "0.1.0"
