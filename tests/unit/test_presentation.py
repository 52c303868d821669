"""Unit tests for result rendering."""

from __future__ import annotations

import pytest

from featureprint.schemas.comparison import (
    ComparisonResult,
    ComparisonTimings,
    DiagnosticReport,
)
from featureprint.services.presentation import (
    ERROR_TEXT,
    MISSING_SELECTION_TEXT,
    UNAVAILABLE_TEXT,
    format_distance,
    format_duration,
    render_result,
)


@pytest.mark.parametrize(
    ("distance", "expected"),
    [
        (1.41421356, "1.42"),
        (5.0, "5.00"),
        (0.1, "0.10"),
        (0.0, "0.00"),
        (12.001, "12.01"),
    ],
)
def test_distance_is_rounded_up_to_two_decimals(distance: float, expected: str) -> None:
    assert format_distance(distance) == expected


def test_duration_format() -> None:
    assert format_duration(0.2151) == "0.216 ms"


def test_missing_selection_placeholder() -> None:
    display = render_result(
        ComparisonResult(status="missing_selection", revision="2", cpu_only=False)
    )
    assert display.result_text == MISSING_SELECTION_TEXT
    assert display.details_text == ""


def test_error_placeholder() -> None:
    result = ComparisonResult(
        status="error",
        revision="2",
        cpu_only=False,
        timings=ComparisonTimings(extraction_ms=10.0, distance_ms=0.01),
        error="length_mismatch: distance: ...",
    )
    assert render_result(result).result_text == ERROR_TEXT


def test_unavailable_placeholder() -> None:
    result = ComparisonResult(
        status="unavailable",
        revision="1",
        cpu_only=True,
        timings=ComparisonTimings(extraction_ms=12.5),
    )
    display = render_result(result)
    assert display.result_text == UNAVAILABLE_TEXT
    assert "Revision 1 (CPU only)" in display.details_text
    assert "Extraction: 12.500 ms" in display.details_text
    assert "Distance:" not in display.details_text


def test_ok_result_with_diagnostics() -> None:
    result = ComparisonResult(
        status="ok",
        distance=1.41421356,
        revision="2",
        cpu_only=False,
        timings=ComparisonTimings(extraction_ms=100.0, distance_ms=0.5),
        diagnostics=DiagnosticReport(
            norm_a=1.0,
            norm_b=1.0,
            euclidean_distance=1.41421356,
            provider_distance=1.41421356,
            absolute_difference=0.0,
            relative_difference=0.0,
            rel_tolerance=1e-3,
            agrees=True,
        ),
    )
    display = render_result(result)
    assert display.result_text == "1.42"
    assert "Distance: 0.500 ms" in display.details_text
    assert "Norm A: 1.0000 | Norm B: 1.0000" in display.details_text
    assert "agrees" in display.details_text


def test_negative_distance_is_rejected_by_schema() -> None:
    with pytest.raises(ValueError):
        ComparisonResult(status="ok", distance=-1.0, revision="2", cpu_only=False)
