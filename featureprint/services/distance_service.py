"""
Distance engine over feature prints.

Two interchangeable measurements exist:

- `provider_distance` asks the embedding provider for its own distance.
  This is the authoritative result of a comparison.
- `euclidean_distance` recomputes  sqrt(sum((a[i] - b[i])^2))  over the raw
  vectors.  It uses the same definition as the provider so both values can
  be checked for near-equality (`cross_check`).

All accumulation happens in float64 whatever the storage precision of the
inputs; feature prints run to a few thousand float32 elements.  Sums of
squares are taken over the vector scaled by its largest magnitude, so finite
inputs near the float64 limits neither overflow nor underflow.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence, Union

import numpy as np

from featureprint.core.errors import ComputationError, FeaturePrintError, LengthMismatchError
from featureprint.schemas.comparison import DiagnosticReport
from featureprint.services.embedding_service import EmbeddingProvider, FeatureVector

logger = logging.getLogger(__name__)

VectorLike = Union[FeatureVector, np.ndarray, Sequence[float]]


def _as_float64(v: VectorLike) -> np.ndarray:
    if isinstance(v, FeatureVector):
        return v.as_float64()
    arr = np.asarray(v, dtype=np.float64)
    if arr.ndim != 1:
        raise ComputationError(f"Expected a 1-D vector, got shape {arr.shape}.")
    return arr


def _l2(x: np.ndarray) -> float:
    if x.size == 0:
        return 0.0
    scale = float(np.max(np.abs(x)))
    if scale == 0.0 or not math.isfinite(scale):
        return scale
    y = x / scale
    return scale * math.sqrt(float(np.dot(y, y)))


def norm(v: VectorLike) -> float:
    """L2 norm of `v`, accumulated in float64."""
    return _l2(_as_float64(v))


def euclidean_distance(a: VectorLike, b: VectorLike) -> float:
    """
    Euclidean distance between two vectors of equal length.
    Raises LengthMismatchError when the lengths differ.
    """
    x = _as_float64(a)
    y = _as_float64(b)
    if x.shape[0] != y.shape[0]:
        raise LengthMismatchError(x.shape[0], y.shape[0])
    return _l2(x - y)


def provider_distance(
    provider: EmbeddingProvider, a: FeatureVector, b: FeatureVector
) -> float:
    """
    Delegate to the provider's distance routine.
    Any failure, or a value that is not a finite non-negative number,
    becomes a ComputationError.
    """
    if len(a) != len(b):
        raise LengthMismatchError(len(a), len(b))
    try:
        value = float(provider.distance(a, b))
    except FeaturePrintError:
        raise
    except Exception as exc:
        raise ComputationError(
            f"Provider distance failed: {type(exc).__name__}: {exc}"
        ) from exc

    if not math.isfinite(value) or value < 0:
        raise ComputationError(f"Provider returned an invalid distance: {value!r}.")
    return value


def cross_check(
    a: VectorLike,
    b: VectorLike,
    provider_value: float,
    rel_tolerance: float = 1e-3,
) -> DiagnosticReport:
    """Recompute the distance manually and compare it with `provider_value`."""
    manual = euclidean_distance(a, b)
    abs_diff = abs(manual - provider_value)
    scale = max(abs(manual), abs(provider_value))
    rel_diff = abs_diff / scale if scale > 0 else 0.0

    report = DiagnosticReport(
        norm_a=norm(a),
        norm_b=norm(b),
        euclidean_distance=manual,
        provider_distance=provider_value,
        absolute_difference=abs_diff,
        relative_difference=rel_diff,
        rel_tolerance=rel_tolerance,
        agrees=rel_diff <= rel_tolerance,
    )
    if not report.agrees:
        logger.warning(
            "Provider distance %.6f disagrees with manual recomputation %.6f "
            "(relative difference %.3g > %.3g)",
            provider_value, manual, rel_diff, rel_tolerance,
        )
    return report
