"""
Service Orchestration Tests

The service owns the read-modify-write loop: it reads from the store,
runs the core operation with clock.now(), writes with put_if_version and
re-runs the operation after a lost race.
"""

import logging

import pytest

from headguard.contracts.base import ErrorCode
from headguard.contracts.events import (
    AlertRaised, AuditEventType, ProtocolCreated, ProtocolReset, StageAdvanced
)
from headguard.contracts.protocol import Stage
from headguard.core import advance_stage, raise_alert
from headguard.engine import HeadGuardConfig, ReturnToPlayService, ServiceConfig
from headguard.observability import InMemoryNotificationSink, ObservabilityConfig
from headguard.storage import FileProtocolStore, InMemoryProtocolStore, ProtocolStorageConfig
from headguard.temporal.clock import ManualClock, SystemClock

from .fixtures import SUPERVISOR, T0, rewrite_stored_stage


class RacingStore(InMemoryProtocolStore):
    """Lets a competing writer land just before each of our writes."""

    def __init__(self, clock, races: int, rival):
        super().__init__()
        self._clock = clock
        self._races = races
        self._rival = rival

    def put_if_version(self, protocol, expected_version):
        if self._races > 0:
            self._races -= 1
            rival = self._rival(self.get(protocol.protocol_id), self._clock.now())
            assert rival.is_success
            super().put_if_version(rival.value.protocol, expected_version)
        return super().put_if_version(protocol, expected_version)


def rival_advance(protocol, now):
    return advance_stage(protocol, "dr_rival", None, now)


def rival_alert(protocol, now):
    return raise_alert(protocol, "protocol_violation", "rival write", "low", now)


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def sink():
    return InMemoryNotificationSink()


@pytest.fixture
def service(clock, sink):
    return ReturnToPlayService(clock=clock, sink=sink)


def open_protocol(service, required=False):
    result = service.open_protocol("inc_0001", "player_0001", symptom_free_required=required)
    assert result.is_success
    return result.value.protocol_id


class TestConfiguration:

    def test_defaults(self):
        config = HeadGuardConfig()
        assert config.storage.backend_type == "memory"
        assert config.observability.log_events is True
        assert config.service.max_write_attempts == 3

    def test_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            ServiceConfig(max_write_attempts=0)

    def test_file_backend_from_config(self, tmp_path):
        config = HeadGuardConfig(storage=ProtocolStorageConfig("file", str(tmp_path)))
        assert isinstance(ReturnToPlayService(config).store, FileProtocolStore)

    def test_default_clock_is_stateless(self):
        service = ReturnToPlayService()
        assert isinstance(service.clock, SystemClock)

        protocol_id = open_protocol(service)
        for _ in range(500):
            assert service.check_eligibility(protocol_id).is_success
        assert vars(service.clock) == {}


class TestMutations:

    def test_open_and_fetch(self, service, sink):
        protocol_id = open_protocol(service)
        fetched = service.get_protocol(protocol_id)
        assert fetched.value.current_stage is Stage.STAGE_1
        assert fetched.value.created_at.value == T0
        assert [type(e) for e in sink.events] == [ProtocolCreated]

    def test_clock_drives_gating(self, service, clock):
        protocol_id = open_protocol(service)

        early = service.advance_stage(protocol_id, SUPERVISOR)
        assert early.error.code is ErrorCode.STAGE_NOT_ELIGIBLE

        clock.advance(hours=24)
        advanced = service.advance_stage(protocol_id, SUPERVISOR)
        assert advanced.value.current_stage is Stage.STAGE_2
        assert service.get_protocol(protocol_id).value.version == 2

    def test_symptom_return_publishes_reset_and_alert(self, service, clock, sink):
        protocol_id = open_protocol(service)
        clock.advance(hours=24)
        service.advance_stage(protocol_id, SUPERVISOR)
        clock.advance(hours=3)

        result = service.record_symptom_check(protocol_id, False)
        assert result.value.current_stage is Stage.STAGE_1
        assert sink.of_type(ProtocolReset)
        assert sink.of_type(AlertRaised)[0].alert.type.value == "symptom_return"

    def test_reset_and_alert_flow(self, service):
        protocol_id = open_protocol(service)
        assert service.reset_protocol(protocol_id, "Re-injury", SUPERVISOR).is_success
        assert service.raise_alert(protocol_id, "high_risk", "Watch", "high").is_success
        acked = service.acknowledge_alert(protocol_id, 0)
        assert acked.value.alerts[0].acknowledged
        assert acked.value.version == 4

    def test_unknown_protocol(self, service):
        for result in (
            service.get_protocol("rtp_nope"),
            service.check_eligibility("rtp_nope"),
            service.get_summary("rtp_nope"),
            service.advance_stage("rtp_nope", SUPERVISOR),
        ):
            assert result.error.code is ErrorCode.PROTOCOL_NOT_FOUND

    def test_duplicate_protocol_id(self, service):
        service.open_protocol("inc_1", "p1", protocol_id="rtp_fixed")
        result = service.open_protocol("inc_1", "p1", protocol_id="rtp_fixed")
        assert result.error.code is ErrorCode.VALIDATION_ERROR

    def test_unreadable_record_is_reported(self, clock, tmp_path):
        config = HeadGuardConfig(storage=ProtocolStorageConfig("file", str(tmp_path)))
        protocol_id = open_protocol(ReturnToPlayService(config, clock=clock))
        rewrite_stored_stage(str(tmp_path / "protocols.jsonl"), protocol_id, "stage_9")

        reopened = ReturnToPlayService(config, clock=clock)
        clock.advance(hours=24)
        for result in (
            reopened.get_protocol(protocol_id),
            reopened.check_eligibility(protocol_id),
            reopened.advance_stage(protocol_id, SUPERVISOR),
        ):
            assert result.error.code is ErrorCode.UNKNOWN_STAGE
            assert result.error.get("protocol_id") == protocol_id

        rejected = reopened.audit_log.get_entries(AuditEventType.REJECTED, protocol_id)
        assert dict(rejected[0].metadata)['code'] == "UNKNOWN_STAGE"


class TestReads:

    def test_eligibility_and_summary(self, service, clock):
        protocol_id = open_protocol(service)
        clock.advance(hours=10)
        eligibility = service.check_eligibility(protocol_id).value
        assert eligibility.hours_remaining == pytest.approx(14.0)

        summary = service.get_summary(protocol_id).value
        assert summary.hours_in_stage == pytest.approx(10.0)
        assert summary.stage_number == 1


class TestConcurrency:

    def test_lost_race_is_re_evaluated(self, clock, sink):
        store = RacingStore(clock, races=1, rival=rival_advance)
        service = ReturnToPlayService(store=store, clock=clock, sink=sink)
        protocol_id = open_protocol(service)
        clock.advance(hours=24)

        # The rival moves the protocol to stage_2 first; our retry sees a
        # fresh stage_2 that is not yet eligible.
        result = service.advance_stage(protocol_id, SUPERVISOR)
        assert result.error.code is ErrorCode.STAGE_NOT_ELIGIBLE

        stored = service.get_protocol(protocol_id).value
        assert stored.current_stage is Stage.STAGE_2
        assert stored.stage_history[-1].supervisor_id == "dr_rival"
        assert not sink.of_type(StageAdvanced)

        conflicts = service.audit_log.get_entries(AuditEventType.WRITE_CONFLICT, protocol_id)
        assert len(conflicts) == 1

    def test_retries_are_bounded(self, clock):
        store = RacingStore(clock, races=10, rival=rival_alert)
        config = HeadGuardConfig(service=ServiceConfig(max_write_attempts=2))
        service = ReturnToPlayService(config, store=store, clock=clock)
        protocol_id = open_protocol(service)

        clock.advance(hours=24 * 4)
        result = service.raise_alert(protocol_id, "high_risk", "Flag", "medium")
        assert result.error.code is ErrorCode.CONCURRENT_MODIFICATION
        assert len(service.audit_log.get_entries(AuditEventType.WRITE_CONFLICT)) == 2


class TestObservability:

    def test_audit_trail(self, service, clock):
        protocol_id = open_protocol(service)
        service.advance_stage(protocol_id, SUPERVISOR)
        clock.advance(hours=24)
        service.advance_stage(protocol_id, SUPERVISOR)

        changes = service.audit_log.get_entries(AuditEventType.STATE_CHANGE, protocol_id)
        rejected = service.audit_log.get_entries(AuditEventType.REJECTED, protocol_id)
        assert [e.action for e in changes] == ["open_protocol", "advance_stage"]
        assert dict(rejected[0].metadata)['code'] == "STAGE_NOT_ELIGIBLE"

    def test_events_are_logged(self, clock, caplog):
        service = ReturnToPlayService(
            HeadGuardConfig(observability=ObservabilityConfig(logger_name="rtp.test")),
            clock=clock,
        )
        with caplog.at_level(logging.INFO, logger="rtp.test"):
            open_protocol(service)
        assert any("ProtocolCreated" in r.getMessage() for r in caplog.records)

    def test_logging_can_be_disabled(self, clock, caplog):
        service = ReturnToPlayService(
            HeadGuardConfig(observability=ObservabilityConfig(log_events=False)),
            clock=clock,
        )
        with caplog.at_level(logging.INFO, logger="headguard.events"):
            open_protocol(service)
        assert not [r for r in caplog.records if r.name == "headguard.events"]

    def test_audit_types_are_all_recorded_by_the_service(self, service):
        protocol_id = open_protocol(service)
        service.advance_stage(protocol_id, SUPERVISOR)
        recorded = {entry.event_type for entry in service.audit_log.get_entries()}
        assert set(AuditEventType) == {
            AuditEventType.STATE_CHANGE, AuditEventType.REJECTED, AuditEventType.WRITE_CONFLICT
        }
        assert recorded == {AuditEventType.STATE_CHANGE, AuditEventType.REJECTED}
