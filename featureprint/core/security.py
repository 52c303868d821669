"""
API key authentication for the comparison endpoints.

    POST /v1/compare, POST /v1/distance  → guarded by `AuthDep`
    GET  /health, GET /v1/health          → always open (container probes)

The key travels in the `X-Api-Key` header and is compared in constant time.
With `API_KEY` unset the dependency lets every request through, which is the
development default.
"""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from featureprint.core.config import get_settings

API_KEY_HEADER = "X-Api-Key"

_KEY_HEADER = APIKeyHeader(
    name=API_KEY_HEADER,
    auto_error=False,      # the 401 below carries the service's error envelope
    description="Key for the comparison endpoints. "
                "Enforced only when the server sets `API_KEY`.",
)


def _matches(candidate: str, expected: str) -> bool:
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


async def verify_api_key(
    key: Annotated[str | None, Security(_KEY_HEADER)],
) -> None:
    """Reject the request with 401 unless the header matches `API_KEY`."""
    settings = get_settings()
    if not settings.auth_enabled:
        return

    if not key or not _matches(key, settings.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "unauthorized",
                "message": f"Missing or invalid {API_KEY_HEADER} header.",
            },
            headers={"WWW-Authenticate": "ApiKey"},
        )


AuthDep = Annotated[None, Depends(verify_api_key)]
