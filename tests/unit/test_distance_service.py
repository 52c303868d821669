"""Unit tests for the distance engine."""

from __future__ import annotations

import math

import numpy as np
import pytest

from featureprint.core.errors import ComputationError, LengthMismatchError
from featureprint.services.distance_service import (
    cross_check,
    euclidean_distance,
    norm,
    provider_distance,
)
from featureprint.services.embedding_service import FeatureVector

EPS = 1e-9


def _random_vectors(n: int, dim: int = 2048, seed: int = 7) -> list[np.ndarray]:
    rng = np.random.default_rng(seed)
    return [rng.standard_normal(dim).astype(np.float32) for _ in range(n)]


class StubProvider:
    """Provider stand-in returning a fixed value or raising."""

    revision = "2"

    def __init__(self, value: float | None = None, exc: Exception | None = None) -> None:
        self.value = value
        self.exc = exc

    def distance(self, a: FeatureVector, b: FeatureVector) -> float:
        if self.exc is not None:
            raise self.exc
        return self.value  # type: ignore[return-value]


# ------------------------------------------------------------------ #
# Known values
# ------------------------------------------------------------------ #

def test_unit_axes_are_sqrt2_apart() -> None:
    assert euclidean_distance([1, 0, 0], [0, 1, 0]) == pytest.approx(math.sqrt(2))
    assert euclidean_distance([1, 0, 0], [0, 1, 0]) == pytest.approx(1.41421356, abs=1e-8)


def test_three_four_five() -> None:
    assert euclidean_distance([3, 4], [0, 0]) == 5.0
    assert norm([3, 4]) == 5.0


def test_norm_of_zero_vector_is_zero() -> None:
    assert norm(np.zeros(512, dtype=np.float32)) == 0.0


# ------------------------------------------------------------------ #
# Metric properties
# ------------------------------------------------------------------ #

def test_distance_to_self_is_zero() -> None:
    for v in _random_vectors(5):
        assert euclidean_distance(v, v) == pytest.approx(0.0, abs=EPS)


def test_distance_is_symmetric() -> None:
    a, b = _random_vectors(2)
    assert euclidean_distance(a, b) == euclidean_distance(b, a)


def test_triangle_inequality() -> None:
    vectors = _random_vectors(6, dim=256, seed=11)
    for a in vectors:
        for b in vectors:
            for c in vectors:
                assert euclidean_distance(a, c) <= (
                    euclidean_distance(a, b) + euclidean_distance(b, c) + EPS
                )


def test_norm_is_non_negative() -> None:
    for v in _random_vectors(5):
        assert norm(v) >= 0
        assert norm(-v) == pytest.approx(norm(v))


def test_accumulates_in_double_precision() -> None:
    """float32 inputs must give the same answer as their float64 copies."""
    a, b = _random_vectors(2, dim=4096)
    expected = float(np.sqrt(np.sum((a.astype(np.float64) - b.astype(np.float64)) ** 2)))
    assert euclidean_distance(a, b) == pytest.approx(expected, rel=1e-12)


def test_accepts_feature_vectors() -> None:
    a = FeatureVector.from_sequence([3.0, 4.0], revision="1")
    b = FeatureVector.from_sequence([0.0, 0.0], revision="1")
    assert euclidean_distance(a, b) == 5.0
    assert norm(a) == 5.0


def test_large_magnitudes_do_not_overflow() -> None:
    assert euclidean_distance([3e200, 4e200], [0, 0]) == pytest.approx(5e200, rel=1e-12)
    assert norm([3e200, 4e200]) == pytest.approx(5e200, rel=1e-12)
    assert norm([0, 0]) == 0.0


def test_tiny_magnitudes_do_not_underflow() -> None:
    assert euclidean_distance([3e-200, 4e-200], [0, 0]) == pytest.approx(5e-200, rel=1e-12)


# ------------------------------------------------------------------ #
# Length contract
# ------------------------------------------------------------------ #

def test_unequal_lengths_raise_length_mismatch() -> None:
    with pytest.raises(LengthMismatchError) as info:
        euclidean_distance([1.0, 2.0, 3.0], [1.0, 2.0])
    assert info.value.len_a == 3
    assert info.value.len_b == 2
    assert info.value.code == "length_mismatch"


def test_single_element_vector_does_not_broadcast() -> None:
    with pytest.raises(LengthMismatchError):
        euclidean_distance([1.0], [1.0, 2.0, 3.0])


def test_two_dimensional_input_rejected() -> None:
    with pytest.raises(ComputationError):
        norm([[1.0, 2.0], [3.0, 4.0]])


# ------------------------------------------------------------------ #
# Provider delegation
# ------------------------------------------------------------------ #

def _pair(n_a: int = 3, n_b: int = 3) -> tuple[FeatureVector, FeatureVector]:
    return (
        FeatureVector.from_sequence([1.0] * n_a, revision="2"),
        FeatureVector.from_sequence([0.0] * n_b, revision="2"),
    )


def test_provider_distance_returns_provider_value() -> None:
    a, b = _pair()
    assert provider_distance(StubProvider(value=0.75), a, b) == 0.75  # type: ignore[arg-type]


def test_provider_distance_rejects_length_mismatch_before_calling() -> None:
    a, b = _pair(3, 4)
    provider = StubProvider(exc=AssertionError("must not be called"))
    with pytest.raises(LengthMismatchError):
        provider_distance(provider, a, b)  # type: ignore[arg-type]


def test_provider_failure_becomes_computation_error() -> None:
    a, b = _pair()
    with pytest.raises(ComputationError, match="RuntimeError"):
        provider_distance(StubProvider(exc=RuntimeError("boom")), a, b)  # type: ignore[arg-type]


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), -0.5])
def test_invalid_provider_values_rejected(bad: float) -> None:
    a, b = _pair()
    with pytest.raises(ComputationError):
        provider_distance(StubProvider(value=bad), a, b)  # type: ignore[arg-type]


# ------------------------------------------------------------------ #
# Cross-check
# ------------------------------------------------------------------ #

def test_cross_check_agreement() -> None:
    report = cross_check([3.0, 4.0], [0.0, 0.0], provider_value=5.0001)
    assert report.agrees is True
    assert report.norm_a == 5.0
    assert report.norm_b == 0.0
    assert report.euclidean_distance == 5.0
    assert report.absolute_difference == pytest.approx(0.0001)


def test_cross_check_disagreement_is_reported_not_raised() -> None:
    report = cross_check([3.0, 4.0], [0.0, 0.0], provider_value=4.0)
    assert report.agrees is False
    assert report.relative_difference == pytest.approx(0.2)


def test_cross_check_identical_vectors() -> None:
    report = cross_check([1.0, 2.0], [1.0, 2.0], provider_value=0.0)
    assert report.relative_difference == 0.0
    assert report.agrees is True
