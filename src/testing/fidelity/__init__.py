"""
Fidelity utilities for round-trip comparison of workbooks.

Philosophy:
- Compare MEANING, not bytes (model dicts, not generated text)
- Every scalar leaf of the reference counts toward accuracy
- Report differences by kind so regressions are easy to locate
"""

from .compare import (
    ComparisonResult,
    Difference,
    assert_fidelity,
    compare,
    count_leaves,
    format_diff_report,
)
from .runner import FidelityReport, RoundTripRunner

__all__ = [
    # Comparison
    "compare",
    "count_leaves",
    "format_diff_report",
    "assert_fidelity",
    "ComparisonResult",
    "Difference",
    # Runner
    "RoundTripRunner",
    "FidelityReport",
]
