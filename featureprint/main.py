"""
featureprint-api application.

`create_app()` wires CORS, the optional slowapi limiter, the health and /v1
routers and the error envelope handlers.  The lifespan loads the CLIP
checkpoint of every revision in a worker thread, reports which revisions can
serve comparisons and drops the cached providers on shutdown.

Serve with:  uvicorn featureprint.main:app
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from featureprint.api.v1.endpoints.health import router as health_router
from featureprint.api.v1.router import v1_router
from featureprint.core.config import Settings, get_settings
from featureprint.core.errors import register_exception_handlers
from featureprint.core.logging import configure_logging
from featureprint.models.registry import REVISIONS, ModelRegistry, load_all_models

logger = logging.getLogger(__name__)

_DESCRIPTION = (
    "Image similarity by feature print distance.\n\n"
    "Submit two images and receive the distance between their feature prints "
    "(lower = more similar), extraction and distance timings, and an optional "
    "manual Euclidean cross-check. `POST /v1/distance` exposes the distance "
    "engine for raw vectors.\n\n"
    "**Authentication**: `X-Api-Key` header, enforced when `API_KEY` is set."
)


def ready_revisions(registry: ModelRegistry) -> list[str]:
    """Revisions whose model and processor are both loaded."""
    return [
        revision for revision in REVISIONS
        if all(m.loaded for m in registry.for_revision(revision))
    ]


def _report_revisions(registry: ModelRegistry, settings: Settings) -> None:
    ready = ready_revisions(registry)
    for revision in REVISIONS:
        if revision in ready:
            logger.info(
                "Revision %s ready (%s)", revision, settings.checkpoint_for(revision)
            )
        else:
            model, _ = registry.for_revision(revision)
            logger.warning("Revision %s unavailable: %s", revision, model.error)
    if settings.default_revision not in ready:
        logger.warning(
            "Default revision %s is not loaded; requests without a revision "
            "will receive 503.",
            settings.default_revision,
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    logger.info(
        "Starting %s v%s [%s] | auth %s | rate limit %s",
        settings.app_name,
        settings.app_version,
        settings.environment,
        "on" if settings.auth_enabled else "off",
        f"{settings.rate_limit_per_minute}/min" if settings.rate_limit_enabled else "off",
    )

    registry: ModelRegistry | None = None
    if settings.preload_models:
        # Checkpoint loading blocks for tens of seconds on CPU.
        registry = await asyncio.to_thread(load_all_models, settings)
        _report_revisions(registry, settings)
    else:
        logger.info("PRELOAD_MODELS=false; expecting an externally initialised registry.")

    yield

    if registry is not None:
        registry.providers.clear()
    logger.info("Shutting down %s.", settings.app_name)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=_DESCRIPTION,
        version=settings.app_version,
        license_info={"name": "MIT", "url": "https://opensource.org/licenses/MIT"},
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    if settings.rate_limit_enabled:
        _attach_rate_limiter(app, settings)

    app.include_router(health_router)   # /health, /v1/health (no auth)
    app.include_router(v1_router)       # /v1/compare, /v1/distance
    register_exception_handlers(app)
    return app


def _attach_rate_limiter(app: FastAPI, settings: Settings) -> None:
    try:
        from slowapi import Limiter, _rate_limit_exceeded_handler  # type: ignore
        from slowapi.errors import RateLimitExceeded
        from slowapi.middleware import SlowAPIMiddleware
        from slowapi.util import get_remote_address
    except ImportError:
        logger.warning(
            "slowapi is not installed. Rate limiting is disabled. "
            "Install the `ratelimit` extra to enable it."
        )
        return

    # Default limits only apply through the middleware, not per-route decorators.
    app.state.limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    )
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)


app = create_app()
