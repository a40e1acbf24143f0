"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Dict, Any

from fastapi import APIRouter, Response
from pydantic import BaseModel

from trafficflow.config import get_settings
from trafficflow.serving.credentials import get_credential_store

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


async def _credential_store_check() -> Dict[str, Any]:
    try:
        store = get_credential_store()
        healthy = await store.ping()
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}
    return {"status": "healthy" if healthy else "unhealthy", "backend": type(store).__name__}


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Application status
    - Credential store reachability
    """
    settings = get_settings()
    checks = {"credential_store": await _credential_store_check()}
    overall_status = "healthy" if checks["credential_store"]["status"] == "healthy" else "unhealthy"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """
    Kubernetes readiness endpoint.

    Returns 200 once the credential store can accept keys.
    """
    check = await _credential_store_check()
    if check["status"] != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": check.get("error", "credential_store_unavailable")}
    return {"status": "ready"}
