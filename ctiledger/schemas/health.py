"""Pydantic models for health endpoints."""

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Response model for service health checks.

    ledger_store 는 원장 상태 저장소(DB) 연결 결과: "ok" 또는 "unavailable".
    """

    status: str = "healthy"
    system_operational: bool = True
    ledger_store: str = "ok"
    environment: str = "development"
