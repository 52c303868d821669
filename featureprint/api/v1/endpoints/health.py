"""
Health check endpoints.

GET /health     — root-level health (no auth required, used by container probes)
GET /v1/health  — versioned alias
"""

from __future__ import annotations

import time

from fastapi import APIRouter

from featureprint.core.config import get_settings
from featureprint.models.registry import get_registry
from featureprint.schemas.health import HealthResponse, ModelStatus

router = APIRouter(tags=["Health"])

# Recorded at import time — a rough approximation of process start.
_START_TIME = time.time()


def _build_health_response() -> HealthResponse:
    settings = get_settings()
    registry = get_registry()

    model_statuses = [
        ModelStatus(
            name=m.name,
            loaded=m.loaded,
            load_time_ms=m.load_time_ms,
            error=m.error,
        )
        for m in registry.all_models()
    ]

    return HealthResponse(
        status=registry.overall_status(),
        version=settings.app_version,
        environment=settings.environment,
        default_revision=settings.default_revision,
        uptime_seconds=round(time.time() - _START_TIME, 1),
        models=model_statuses,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description=(
        "Returns the overall service status and the load status of each "
        "feature print model. Does not require authentication."
    ),
)
async def health_root() -> HealthResponse:
    return _build_health_response()


@router.get(
    "/v1/health",
    response_model=HealthResponse,
    summary="Service health check (versioned alias)",
)
async def health_v1() -> HealthResponse:
    return _build_health_response()
