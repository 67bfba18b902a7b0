"""
HeadGuard Return-to-Play API Server
===================================

Thin HTTP surface over ReturnToPlayService. Every mutation returns the
fresh stored snapshot; clients re-render from it instead of keeping their
own copy of the current stage.

Endpoints:
- GET  /health
- GET  /api/v1/stages
- POST /api/v1/protocols
- GET  /api/v1/protocols/{protocol_id}
- GET  /api/v1/protocols/{protocol_id}/eligibility
- GET  /api/v1/protocols/{protocol_id}/summary
- POST /api/v1/protocols/{protocol_id}/advance
- POST /api/v1/protocols/{protocol_id}/symptom-checks
- POST /api/v1/protocols/{protocol_id}/reset
- POST /api/v1/protocols/{protocol_id}/alerts
- POST /api/v1/protocols/{protocol_id}/alerts/{alert_index}/acknowledge

Usage:
    uvicorn headguard.api.server:app --reload
"""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from ..contracts.base import Timestamp
from ..contracts.protocol import AlertSeverity, AlertType, Incident
from ..core.catalog import all_stages
from ..engine import HeadGuardConfig, ReturnToPlayService
from ..storage import ProtocolStorageConfig
from .mapper import map_protocol, map_stage, unwrap

logger = logging.getLogger(__name__)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateProtocolRequest(_CamelModel):
    incident_id: str = Field(alias="incidentId", min_length=1)
    player_id: str = Field(alias="playerId", min_length=1)
    symptom_free_required: bool = Field(default=True, alias="symptomFreeRequired")
    protocol_id: Optional[str] = Field(default=None, alias="protocolId")


class AdvanceStageRequest(_CamelModel):
    supervisor_id: str = Field(alias="supervisorId")
    notes: Optional[str] = None


class SymptomCheckRequest(_CamelModel):
    symptom_free: bool = Field(alias="symptomFree")


class ResetRequest(_CamelModel):
    reason: str
    supervisor_id: Optional[str] = Field(default=None, alias="supervisorId")


class RaiseAlertRequest(_CamelModel):
    type: AlertType
    message: str
    severity: AlertSeverity


# =============================================================================
# INFRASTRUCTURE SETUP
# =============================================================================

def service_from_env() -> ReturnToPlayService:
    """File storage when HEADGUARD_STORAGE_DIR is set, memory otherwise."""
    storage_dir = os.environ.get("HEADGUARD_STORAGE_DIR")
    storage = ProtocolStorageConfig(
        backend_type="file" if storage_dir else "memory",
        storage_dir=storage_dir,
    )
    logger.info("Initializing RTP service (storage=%s)", storage.backend_type)
    return ReturnToPlayService(HeadGuardConfig(storage=storage))


def get_service(request: Request) -> ReturnToPlayService:
    return request.app.state.service


def create_app(service: Optional[ReturnToPlayService] = None) -> FastAPI:
    """Build the API. Without an explicit service one is built from env at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.service is None:
            app.state.service = service_from_env()
        yield
        logger.info("Shutting down RTP service")

    app = FastAPI(
        title="HeadGuard Return-to-Play API",
        version="0.1.0",
        description="Graduated return-to-play protocol engine",
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    @app.get("/health")
    def health_check(svc: ReturnToPlayService = Depends(get_service)):
        return {"status": "online", "protocols": len(svc.store.list_ids())}

    @app.get("/api/v1/stages")
    def list_stages():
        return {"stages": [map_stage(d) for d in all_stages()]}

    @app.post("/api/v1/protocols", status_code=201)
    def open_protocol(body: CreateProtocolRequest, svc: ReturnToPlayService = Depends(get_service)):
        return map_protocol(svc.open_protocol(
            incident_id=body.incident_id,
            player_id=body.player_id,
            symptom_free_required=body.symptom_free_required,
            protocol_id=body.protocol_id,
        ))

    @app.get("/api/v1/protocols/{protocol_id}")
    def get_protocol(protocol_id: str, svc: ReturnToPlayService = Depends(get_service)):
        return map_protocol(svc.get_protocol(protocol_id))

    @app.get("/api/v1/protocols/{protocol_id}/eligibility")
    def get_eligibility(protocol_id: str, svc: ReturnToPlayService = Depends(get_service)):
        return unwrap(svc.check_eligibility(protocol_id)).to_dict()

    @app.get("/api/v1/protocols/{protocol_id}/summary")
    def get_summary(
        protocol_id: str,
        incident_occurred_at: Optional[datetime] = None,
        svc: ReturnToPlayService = Depends(get_service),
    ):
        incident = None
        if incident_occurred_at is not None:
            protocol = unwrap(svc.get_protocol(protocol_id))
            incident = Incident(protocol.incident_id, Timestamp(incident_occurred_at))
        return unwrap(svc.get_summary(protocol_id, incident)).to_dict()

    @app.post("/api/v1/protocols/{protocol_id}/advance")
    def advance(protocol_id: str, body: AdvanceStageRequest, svc: ReturnToPlayService = Depends(get_service)):
        return map_protocol(svc.advance_stage(protocol_id, body.supervisor_id, body.notes))

    @app.post("/api/v1/protocols/{protocol_id}/symptom-checks")
    def symptom_check(protocol_id: str, body: SymptomCheckRequest, svc: ReturnToPlayService = Depends(get_service)):
        return map_protocol(svc.record_symptom_check(protocol_id, body.symptom_free))

    @app.post("/api/v1/protocols/{protocol_id}/reset")
    def reset(protocol_id: str, body: ResetRequest, svc: ReturnToPlayService = Depends(get_service)):
        return map_protocol(svc.reset_protocol(protocol_id, body.reason, body.supervisor_id))

    @app.post("/api/v1/protocols/{protocol_id}/alerts", status_code=201)
    def add_alert(protocol_id: str, body: RaiseAlertRequest, svc: ReturnToPlayService = Depends(get_service)):
        return map_protocol(svc.raise_alert(protocol_id, body.type, body.message, body.severity))

    @app.post("/api/v1/protocols/{protocol_id}/alerts/{alert_index}/acknowledge")
    def acknowledge(protocol_id: str, alert_index: int, svc: ReturnToPlayService = Depends(get_service)):
        return map_protocol(svc.acknowledge_alert(protocol_id, alert_index))

    return app


app = create_app()
