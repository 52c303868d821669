"""
Human-readable rendering of comparison results.

The numeric result stays in ComparisonResult; this module only produces the
strings a client shows next to it.
"""

from __future__ import annotations

import math

from featureprint.schemas.comparison import ComparisonDisplay, ComparisonResult

MISSING_SELECTION_TEXT = "Please select two images"
ERROR_TEXT = "Error"
UNAVAILABLE_TEXT = "N/A"


def _ceil_to(value: float, decimals: int) -> float:
    factor = 10 ** decimals
    # round first so 0.1 * 100 == 10.000000000000002 does not ceil to 11
    return math.ceil(round(value * factor, 9)) / factor


def format_distance(distance: float) -> str:
    """Distance rounded up to two decimals, e.g. 1.41421 -> '1.42'."""
    return f"{_ceil_to(distance, 2):.2f}"


def format_duration(ms: float) -> str:
    return f"{_ceil_to(ms, 3):.3f} ms"


def render_result(result: ComparisonResult) -> ComparisonDisplay:
    if result.status == "missing_selection":
        return ComparisonDisplay(result_text=MISSING_SELECTION_TEXT, details_text="")
    if result.status == "error":
        result_text = ERROR_TEXT
    elif result.status == "unavailable" or result.distance is None:
        result_text = UNAVAILABLE_TEXT
    else:
        result_text = format_distance(result.distance)

    lines = [f"Revision {result.revision}" + (" (CPU only)" if result.cpu_only else "")]
    if result.timings.extraction_ms is not None:
        lines.append(f"Extraction: {format_duration(result.timings.extraction_ms)}")
    if result.timings.distance_ms is not None:
        lines.append(f"Distance: {format_duration(result.timings.distance_ms)}")

    diag = result.diagnostics
    if diag is not None:
        lines.append(f"Norm A: {diag.norm_a:.4f} | Norm B: {diag.norm_b:.4f}")
        lines.append(
            f"Manual distance: {diag.euclidean_distance:.4f} "
            f"({'agrees' if diag.agrees else 'MISMATCH'}, "
            f"rel. diff {diag.relative_difference:.2e})"
        )

    return ComparisonDisplay(result_text=result_text, details_text="\n".join(lines))
