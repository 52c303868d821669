"""
Domain errors and global exception handlers.

Every error returned by the API follows this envelope:

    {
        "error": "snake_case_code",
        "message": "Human-readable description.",
        "detail": { ... }   // optional
    }

Comparison failures (missing selection, extraction, computation) never
reach these handlers from /v1/compare: the orchestrator converts them into
result outcomes. LengthMismatchError still surfaces here from /v1/distance,
and ModelNotReadyError from any endpoint that needs an unloaded revision.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Canonical error envelope
# --------------------------------------------------------------------------- #

def error_response(
    code: str,
    message: str,
    status_code: int,
    detail: Any = None,
) -> JSONResponse:
    body: dict[str, Any] = {"error": code, "message": message}
    if detail is not None:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body)


# --------------------------------------------------------------------------- #
# Custom exception classes
# --------------------------------------------------------------------------- #

class FeaturePrintError(Exception):
    """Base exception for all domain errors raised inside services."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class MissingSelectionError(FeaturePrintError):
    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            "missing_selection",
            self.describe(missing),
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    @staticmethod
    def describe(missing: list[str]) -> str:
        return f"Two images are required; missing: {', '.join(missing)}."


class ImageFetchError(FeaturePrintError):
    def __init__(self, message: str) -> None:
        super().__init__("image_fetch_error", message, status.HTTP_422_UNPROCESSABLE_ENTITY)


class ImageDecodeError(FeaturePrintError):
    def __init__(self, message: str) -> None:
        super().__init__("image_decode_error", message, status.HTTP_422_UNPROCESSABLE_ENTITY)


class ImageTooLargeError(FeaturePrintError):
    def __init__(self, size_bytes: int, max_bytes: int) -> None:
        super().__init__(
            "image_too_large",
            f"Image is {size_bytes:,} bytes; maximum allowed is {max_bytes:,} bytes.",
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )


class ExtractionError(FeaturePrintError):
    def __init__(self, message: str) -> None:
        super().__init__("extraction_failed", message, status.HTTP_422_UNPROCESSABLE_ENTITY)


class ComputationError(FeaturePrintError):
    def __init__(
        self,
        message: str,
        code: str = "computation_failed",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    ) -> None:
        super().__init__(code, message, status_code)


class LengthMismatchError(ComputationError):
    def __init__(self, len_a: int, len_b: int) -> None:
        self.len_a = len_a
        self.len_b = len_b
        super().__init__(
            f"Feature vectors differ in length: {len_a} != {len_b}.",
            code="length_mismatch",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )


class ModelNotReadyError(FeaturePrintError):
    def __init__(self, model_name: str) -> None:
        super().__init__(
            "model_not_ready",
            f"Model '{model_name}' is not loaded. Check /health for model status.",
            status.HTTP_503_SERVICE_UNAVAILABLE,
        )


class UnknownRevisionError(FeaturePrintError):
    def __init__(self, revision: str) -> None:
        super().__init__(
            "unknown_revision",
            f"Unknown feature print revision '{revision}'.",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
        )


# --------------------------------------------------------------------------- #
# FastAPI exception handlers — register via register_exception_handlers()
# --------------------------------------------------------------------------- #

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(FeaturePrintError)
    async def feature_print_error_handler(
        request: Request, exc: FeaturePrintError
    ) -> JSONResponse:
        logger.warning("FeaturePrintError [%s]: %s", exc.code, exc.message)
        return error_response(exc.code, exc.message, exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        # Dependencies such as verify_api_key raise with an envelope as detail.
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.detail,
                headers=exc.headers,
            )
        return error_response(
            code="http_error",
            message=str(exc.detail),
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.debug("RequestValidationError: %s", exc.errors())
        return error_response(
            code="validation_error",
            message="Request body or query parameters failed validation.",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=jsonable_errors(exc.errors()),
        )

    @app.exception_handler(ValidationError)
    async def pydantic_validation_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        return error_response(
            code="validation_error",
            message="Internal data validation error.",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=jsonable_errors(exc.errors()),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception("Unhandled exception: %s", exc)
        return error_response(
            code="internal_error",
            message="An unexpected error occurred. Please try again later.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


def _finite_or_str(value: float) -> float | str:
    return value if math.isfinite(value) else str(value)


def jsonable_errors(errors: Any) -> Any:
    # Validator errors carry the raised exception in `ctx`, and rejected NaN or
    # Infinity inputs in `input`; neither is valid JSON.
    return jsonable_encoder(
        errors, custom_encoder={Exception: str, float: _finite_or_str}
    )
