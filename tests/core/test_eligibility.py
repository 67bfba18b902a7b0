"""
Eligibility Gating Tests

INVARIANTS TESTED:
1. Minimum duration is checked before the symptom check
2. Only a symptom-free check taken during the current stage counts
3. Evaluation never changes the protocol
"""

import pytest

from headguard.contracts.protocol import Stage
from headguard.core import advance_stage, evaluate_eligibility, record_symptom_check
from headguard.core.eligibility import IneligibilityReason

from ..fixtures import SUPERVISOR, applied, clear, new_protocol, ts, walk_to


class TestMinimumDuration:

    def test_fresh_protocol_needs_full_stage(self):
        result = evaluate_eligibility(new_protocol(), ts(0))
        assert not result.eligible
        assert result.reason is IneligibilityReason.MINIMUM_DURATION
        assert result.hours_remaining == pytest.approx(24.0)

    def test_hours_remaining_counts_down(self):
        result = evaluate_eligibility(new_protocol(), ts(23))
        assert result.reason is IneligibilityReason.MINIMUM_DURATION
        assert result.hours_remaining == pytest.approx(1.0)

    def test_duration_wins_over_missing_check(self):
        protocol = new_protocol(symptom_free_required=True)
        result = evaluate_eligibility(protocol, ts(1))
        assert result.reason is IneligibilityReason.MINIMUM_DURATION

    def test_stage_six_has_no_minimum(self):
        protocol, entered = walk_to(Stage.STAGE_6, symptom_free_required=False)
        result = evaluate_eligibility(protocol, ts(entered))
        assert result.eligible
        assert result.hours_remaining == 0.0


class TestSymptomCheck:

    def test_missing_check_blocks(self):
        result = evaluate_eligibility(new_protocol(), ts(25))
        assert not result.eligible
        assert result.reason is IneligibilityReason.SYMPTOM_CHECK_REQUIRED
        assert result.hours_remaining == 0.0

    def test_symptom_free_check_unblocks(self):
        protocol = applied(record_symptom_check(new_protocol(), True, ts(25)))
        assert evaluate_eligibility(protocol, ts(25)).eligible

    def test_check_with_symptoms_blocks(self):
        # In stage_1 a symptomatic check is stored without a reset
        protocol = applied(record_symptom_check(new_protocol(), False, ts(25)))
        result = evaluate_eligibility(protocol, ts(26))
        assert result.reason is IneligibilityReason.SYMPTOM_CHECK_REQUIRED

    def test_check_from_previous_stage_does_not_count(self):
        protocol = applied(record_symptom_check(new_protocol(), True, ts(24)))
        protocol = applied(advance_stage(protocol, SUPERVISOR, None, ts(25)))
        assert protocol.last_symptom_check is not None

        result = evaluate_eligibility(protocol, ts(50))
        assert result.reason is IneligibilityReason.SYMPTOM_CHECK_REQUIRED

    def test_check_not_required_when_disabled(self):
        result = evaluate_eligibility(new_protocol(symptom_free_required=False), ts(24))
        assert result.eligible


class TestTerminalAndPurity:

    def test_cleared_is_never_eligible(self):
        protocol, hour = clear()
        result = evaluate_eligibility(protocol, ts(hour + 1000))
        assert not result.eligible
        assert result.reason is IneligibilityReason.ALREADY_CLEARED

    def test_evaluation_is_repeatable(self):
        protocol = new_protocol()
        first = evaluate_eligibility(protocol, ts(10))
        second = evaluate_eligibility(protocol, ts(10))
        assert first == second
        assert protocol == new_protocol()

    def test_to_dict(self):
        result = evaluate_eligibility(new_protocol(), ts(25))
        assert result.to_dict() == {
            'eligible': False,
            'hoursRemaining': 0.0,
            'reason': "SymptomCheckRequired",
        }
