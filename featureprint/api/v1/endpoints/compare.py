"""
Image comparison endpoints.

POST /v1/compare   — compare two images by feature print distance
POST /v1/distance  — Euclidean distance and norms of two raw vectors
"""

from __future__ import annotations

from fastapi import APIRouter

from featureprint.core.config import get_settings
from featureprint.core.security import AuthDep
from featureprint.models.registry import get_registry
from featureprint.schemas.comparison import (
    CompareRequest,
    CompareResponse,
    VectorDistanceRequest,
    VectorDistanceResponse,
)
from featureprint.services.comparison_orchestrator import CompareOptions, compare_images
from featureprint.services.distance_service import euclidean_distance, norm
from featureprint.services.presentation import render_result

router = APIRouter(tags=["Comparison"])


@router.post(
    "/compare",
    response_model=CompareResponse,
    summary="Compare two images",
    description=(
        "Extract a feature print for each image and return the distance between "
        "them (lower = more similar) together with timings and, optionally, a "
        "manual Euclidean cross-check. Comparison failures are reported in "
        "`result.status` with HTTP 200; prints from one request are never reused."
    ),
    responses={
        401: {"description": "Missing or invalid X-Api-Key header."},
        422: {"description": "Malformed request body."},
        503: {"description": "The requested revision's model is not loaded."},
    },
)
async def compare(body: CompareRequest, _auth: AuthDep) -> CompareResponse:
    options = CompareOptions.from_request(body, get_settings())
    result = await compare_images(body.image_a, body.image_b, options, get_registry())
    return CompareResponse(result=result, display=render_result(result))


@router.post(
    "/distance",
    response_model=VectorDistanceResponse,
    summary="Euclidean distance between two vectors",
    description=(
        "Distance engine without extraction: both vectors must have the same "
        "length. Accumulation is done in double precision."
    ),
    responses={
        401: {"description": "Missing or invalid X-Api-Key header."},
        422: {"description": "Validation error or vectors of different length."},
    },
)
async def vector_distance(
    body: VectorDistanceRequest, _auth: AuthDep
) -> VectorDistanceResponse:
    distance = euclidean_distance(body.vector_a, body.vector_b)
    return VectorDistanceResponse(
        euclidean_distance=distance,
        norm_a=norm(body.vector_a),
        norm_b=norm(body.vector_b),
        dimensions=len(body.vector_a),
    )
