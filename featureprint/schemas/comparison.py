"""
Request / response schemas for image comparison and raw vector distance.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field

from featureprint.core.config import Revision
from featureprint.schemas.common import ImageInput

ComparisonStatus = Literal["ok", "unavailable", "error", "missing_selection"]
FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]


# --------------------------------------------------------------------------- #
# Comparison result
# --------------------------------------------------------------------------- #

class ComparisonTimings(BaseModel):
    extraction_ms: float | None = Field(
        default=None,
        description="Wall-clock time to load both images and extract both "
                    "feature prints. Null when no extraction was attempted.",
        examples=[182.4],
    )
    distance_ms: float | None = Field(
        default=None,
        description="Wall-clock time of the distance computation. "
                    "Null when extraction failed.",
        examples=[0.215],
    )


class DiagnosticReport(BaseModel):
    """Manual recomputation used to validate the provider distance."""

    norm_a: float = Field(ge=0, description="L2 norm of feature print A.")
    norm_b: float = Field(ge=0, description="L2 norm of feature print B.")
    euclidean_distance: float = Field(
        ge=0,
        description="Euclidean distance recomputed in float64 over the raw vectors.",
    )
    provider_distance: float = Field(ge=0, description="Distance reported by the provider.")
    absolute_difference: float = Field(ge=0)
    relative_difference: float = Field(
        ge=0,
        description="absolute_difference / max(|provider|, |manual|); 0 when both are 0.",
    )
    rel_tolerance: float = Field(description="Tolerance used for `agrees`.")
    agrees: bool = Field(
        description="True when relative_difference <= rel_tolerance.",
    )


class ComparisonResult(BaseModel):
    status: ComparisonStatus = Field(
        description=(
            "ok                — distance computed.\n"
            "unavailable       — feature print extraction failed for an image.\n"
            "error             — the distance computation itself failed.\n"
            "missing_selection — one or both images were not supplied."
        ),
    )
    distance: float | None = Field(
        default=None,
        ge=0,
        allow_inf_nan=False,
        description="Provider distance between the two feature prints. "
                    "Lower means more similar. Only set when status is `ok`.",
        examples=[12.57],
    )
    revision: Revision = Field(description="Feature print algorithm revision used.")
    cpu_only: bool = Field(description="Whether extraction was restricted to CPU.")
    vector_length: int | None = Field(
        default=None,
        description="Length of the feature prints compared.",
        examples=[512],
    )
    timings: ComparisonTimings = Field(default_factory=ComparisonTimings)
    diagnostics: DiagnosticReport | None = Field(
        default=None,
        description="Manual cross-check. Null when disabled, when the "
                    "computation failed, or when the cross-check itself failed.",
    )
    error: str | None = Field(
        default=None,
        description="Failure description for non-`ok` outcomes.",
        examples=["extraction_failed: image_b: Could not decode image bytes"],
    )


class ComparisonDisplay(BaseModel):
    result_text: str = Field(
        description="Distance rounded up to two decimals, or a placeholder: "
                    "'Please select two images', 'Error', 'N/A'.",
        examples=["12.58"],
    )
    details_text: str = Field(
        description="Human-readable timings and diagnostics.",
        examples=["Extraction: 182.4 ms\nDistance: 0.215 ms"],
    )


# --------------------------------------------------------------------------- #
# POST /v1/compare
# --------------------------------------------------------------------------- #

class CompareRequest(BaseModel):
    """Request body for POST /v1/compare"""

    image_a: ImageInput | None = Field(default=None, description="First image.")
    image_b: ImageInput | None = Field(default=None, description="Second image.")
    revision: Revision | None = Field(
        default=None,
        description="Feature print algorithm revision. Defaults to DEFAULT_REVISION.",
    )
    cpu_only: bool | None = Field(
        default=None,
        description="Restrict extraction to CPU. Defaults to CPU_ONLY_DEFAULT.",
    )
    run_diagnostics: bool | None = Field(
        default=None,
        description="Attach the manual Euclidean cross-check. "
                    "Defaults to DIAGNOSTICS_ENABLED.",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "image_a": {"url": "https://cdn.example.com/cat1.jpg"},
                    "image_b": {"url": "https://cdn.example.com/cat2.jpg"},
                    "revision": "2",
                    "cpu_only": False,
                    "run_diagnostics": True,
                }
            ]
        }
    }


class CompareResponse(BaseModel):
    """Response body for POST /v1/compare"""

    api_version: str = Field(default="1.0", description="API version string.")
    result: ComparisonResult
    display: ComparisonDisplay


# --------------------------------------------------------------------------- #
# POST /v1/distance
# --------------------------------------------------------------------------- #

class VectorDistanceRequest(BaseModel):
    """Request body for POST /v1/distance"""

    vector_a: Annotated[list[FiniteFloat], Field(min_length=1)]
    vector_b: Annotated[list[FiniteFloat], Field(min_length=1)]


class VectorDistanceResponse(BaseModel):
    """Response body for POST /v1/distance"""

    api_version: str = Field(default="1.0")
    euclidean_distance: float = Field(ge=0)
    norm_a: float = Field(ge=0)
    norm_b: float = Field(ge=0)
    dimensions: int
