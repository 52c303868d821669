"""
Comparison orchestrator — sequences one image-vs-image comparison.

Each request gets its own ComparisonRun, which moves through

    IDLE -> EXTRACTING -> AWAITING_BOTH -> COMPUTING -> DONE
                               |                          ^
                               +---- extraction failed ---+

Responsibilities:
  1. Load both images and extract both feature prints concurrently
     (worker threads; their order does not matter).
  2. Join on both extractions before any distance work starts.
  3. Compute the provider distance and, optionally, the manual cross-check.
  4. Convert every comparison failure into a result outcome.

One exception is deliberate: `compare_images` lets ModelNotReadyError (and
UnknownRevisionError) escape before any run starts.  An unloaded revision is
a condition of the service, not of the two images, so the HTTP layer answers
503 (422 for an unknown revision) instead of reporting the pair as
`unavailable`.

No retries happen here.  The result is returned on the event loop that
awaited the run, so all outcomes are delivered from one context.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum

from featureprint.core.config import Settings
from featureprint.core.errors import (
    ExtractionError,
    FeaturePrintError,
    MissingSelectionError,
)
from featureprint.models.registry import ModelRegistry
from featureprint.schemas.common import ImageInput
from featureprint.schemas.comparison import (
    CompareRequest,
    ComparisonResult,
    ComparisonTimings,
    DiagnosticReport,
)
from featureprint.services.distance_service import cross_check, provider_distance
from featureprint.services.embedding_service import (
    EmbeddingProvider,
    FeatureVector,
    get_provider,
)
from featureprint.utils.image_loader import load_image

logger = logging.getLogger(__name__)


class ComparisonState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    AWAITING_BOTH = "awaiting_both"
    COMPUTING = "computing"
    DONE = "done"


@dataclass(frozen=True)
class CompareOptions:
    revision: str
    cpu_only: bool = False
    run_diagnostics: bool = True
    rel_tolerance: float = 1e-3
    extraction_timeout_seconds: float | None = None

    @classmethod
    def from_request(cls, request: CompareRequest, settings: Settings) -> "CompareOptions":
        """Fill options the request leaves out from configuration."""
        return cls(
            revision=request.revision or settings.default_revision,
            cpu_only=(
                settings.cpu_only_default if request.cpu_only is None else request.cpu_only
            ),
            run_diagnostics=(
                settings.diagnostics_enabled
                if request.run_diagnostics is None
                else request.run_diagnostics
            ),
            rel_tolerance=settings.diagnostic_rel_tolerance,
            extraction_timeout_seconds=settings.extraction_timeout_seconds,
        )


def _missing_labels(
    image_a: ImageInput | None, image_b: ImageInput | None
) -> list[str]:
    return [
        label for label, image in (("image_a", image_a), ("image_b", image_b))
        if image is None
    ]


def _describe(label: str, exc: BaseException) -> str:
    if isinstance(exc, FeaturePrintError):
        return f"{exc.code}: {label}: {exc.message}"
    return f"{type(exc).__name__}: {label}: {exc}"


class ComparisonRun:
    """One comparison between two images.  Executes exactly once."""

    def __init__(self, provider: EmbeddingProvider, options: CompareOptions) -> None:
        self.provider = provider
        self.options = options
        self.state = ComparisonState.IDLE
        self.history: list[ComparisonState] = [ComparisonState.IDLE]

    def _transition(self, state: ComparisonState) -> None:
        logger.debug("Comparison state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    async def _extract(self, image_input: ImageInput) -> FeatureVector:
        image = await load_image(image_input)
        return await asyncio.to_thread(
            self.provider.extract, image, self.options.cpu_only
        )

    async def _extract_bounded(self, image_input: ImageInput) -> FeatureVector:
        timeout = self.options.extraction_timeout_seconds
        if timeout is None:
            return await self._extract(image_input)
        try:
            return await asyncio.wait_for(self._extract(image_input), timeout)
        except asyncio.TimeoutError:
            raise ExtractionError(f"Extraction timed out after {timeout}s.")

    def _finish(self, result: ComparisonResult) -> ComparisonResult:
        self._transition(ComparisonState.DONE)
        logger.info(
            "Comparison finished: %s",
            result.status,
            extra={
                "status": result.status,
                "distance": result.distance,
                "revision": result.revision,
                "extraction_ms": result.timings.extraction_ms,
                "distance_ms": result.timings.distance_ms,
            },
        )
        return result

    async def execute(self, image_a: ImageInput, image_b: ImageInput) -> ComparisonResult:
        if self.state is not ComparisonState.IDLE:
            raise RuntimeError("A ComparisonRun can only be executed once.")
        missing = _missing_labels(image_a, image_b)
        if missing:
            raise MissingSelectionError(missing)

        opts = self.options
        timings = ComparisonTimings()

        # ------------------------------------------------------------------ #
        # Extraction — both images at once, joined before anything else.
        # ------------------------------------------------------------------ #
        self._transition(ComparisonState.EXTRACTING)
        t0 = time.perf_counter()
        outcomes = await asyncio.gather(
            self._extract_bounded(image_a),
            self._extract_bounded(image_b),
            return_exceptions=True,
        )
        timings.extraction_ms = round((time.perf_counter() - t0) * 1000, 3)
        self._transition(ComparisonState.AWAITING_BOTH)

        errors: list[str] = []
        for label, image_input, outcome in zip(
            ("image_a", "image_b"), (image_a, image_b), outcomes
        ):
            if not isinstance(outcome, BaseException):
                continue
            if not isinstance(outcome, Exception):
                raise outcome       # cancellation and interpreter exits
            if isinstance(outcome, FeaturePrintError):
                logger.warning(
                    "Extraction failed for %s (%s): %s",
                    label, image_input.label, outcome.message,
                )
            else:
                logger.error(
                    "Unexpected extraction error for %s (%s)",
                    label, image_input.label, exc_info=outcome,
                )
            errors.append(_describe(label, outcome))

        if errors:
            # Any successful print is discarded with the failed one.
            return self._finish(ComparisonResult(
                status="unavailable",
                revision=opts.revision,
                cpu_only=opts.cpu_only,
                timings=timings,
                error="; ".join(errors),
            ))

        vec_a: FeatureVector = outcomes[0]  # type: ignore[assignment]
        vec_b: FeatureVector = outcomes[1]  # type: ignore[assignment]

        # ------------------------------------------------------------------ #
        # Distance — provider value is the result, manual value is advisory.
        # ------------------------------------------------------------------ #
        self._transition(ComparisonState.COMPUTING)
        t1 = time.perf_counter()
        try:
            distance = provider_distance(self.provider, vec_a, vec_b)
        except Exception as exc:
            timings.distance_ms = round((time.perf_counter() - t1) * 1000, 3)
            if isinstance(exc, FeaturePrintError):
                logger.warning("Distance computation failed: %s", exc.message)
            else:
                logger.exception("Unexpected distance computation error")
            return self._finish(ComparisonResult(
                status="error",
                revision=opts.revision,
                cpu_only=opts.cpu_only,
                timings=timings,
                error=_describe("distance", exc),
            ))
        timings.distance_ms = round((time.perf_counter() - t1) * 1000, 3)

        diagnostics: DiagnosticReport | None = None
        if opts.run_diagnostics:
            try:
                diagnostics = cross_check(vec_a, vec_b, distance, opts.rel_tolerance)
            except Exception as exc:
                logger.warning("Diagnostic cross-check omitted: %s", exc)

        return self._finish(ComparisonResult(
            status="ok",
            distance=distance,
            revision=opts.revision,
            cpu_only=opts.cpu_only,
            vector_length=len(vec_a),
            timings=timings,
            diagnostics=diagnostics,
        ))


async def compare_images(
    image_a: ImageInput | None,
    image_b: ImageInput | None,
    options: CompareOptions,
    registry: ModelRegistry,
) -> ComparisonResult:
    """
    Compare two images with a fresh ComparisonRun.

    Missing inputs yield `missing_selection` without touching any model.
    Raises ModelNotReadyError when the requested revision is not loaded.
    """
    missing = _missing_labels(image_a, image_b)
    if missing:
        message = MissingSelectionError.describe(missing)
        logger.info("Comparison skipped: %s", message)
        return ComparisonResult(
            status="missing_selection",
            revision=options.revision,
            cpu_only=options.cpu_only,
            error=message,
        )

    provider = get_provider(options.revision, registry)
    run = ComparisonRun(provider, options)
    return await run.execute(image_a, image_b)  # type: ignore[arg-type]
