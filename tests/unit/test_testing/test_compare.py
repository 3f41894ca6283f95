"""
Tests for fidelity comparison.

Philosophy:
- accuracy = matching reference leaves / total reference leaves
- differences are reported in document order of the reference
"""

import pytest

from src.testing.fidelity import assert_fidelity, compare, count_leaves, format_diff_report
from src.testing.fidelity.compare import (
    EXTRA_KEY,
    LENGTH_MISMATCH,
    MISSING_KEY,
    TYPE_MISMATCH,
    VALUE_MISMATCH,
    Difference,
)


def kinds(result) -> list[tuple[str, str]]:
    return [(d.kind, d.path) for d in result.differences]


# =============================================================================
# count_leaves
# =============================================================================


class TestCountLeaves:
    def test_scalars_and_nulls(self):
        assert count_leaves({"a": [1, 2, {"b": None}], "c": "x"}) == 4

    def test_empty_containers(self):
        assert count_leaves({"a": [], "b": {}}) == 0

    def test_deep_nesting(self):
        value: list = [1]
        for _ in range(5000):
            value = [value]

        assert count_leaves(value) == 1


# =============================================================================
# compare
# =============================================================================


class TestCompare:
    def test_identical(self, sample_workbook_data):
        result = compare(sample_workbook_data, sample_workbook_data)

        assert result.match
        assert result.accuracy == 100.0
        assert result.total_leaves == count_leaves(sample_workbook_data)

    def test_empty_reference(self):
        result = compare({}, {})

        assert result.accuracy == 100.0
        assert result.total_leaves == 0

    def test_missing_key_counts_subtree(self):
        result = compare({"a": 1, "b": {"c": 2, "d": 3}}, {"a": 1})

        assert kinds(result) == [(MISSING_KEY, "b")]
        assert (result.matching_leaves, result.total_leaves) == (1, 3)
        assert result.accuracy == pytest.approx(100 / 3)

    def test_extra_key_does_not_change_accuracy(self):
        result = compare({"a": 1}, {"a": 1, "z": 2})

        assert kinds(result) == [(EXTRA_KEY, "z")]
        assert result.accuracy == 100.0
        assert not result.match

    def test_type_mismatch(self):
        result = compare({"a": 1}, {"a": "1"})

        assert kinds(result) == [(TYPE_MISMATCH, "a")]
        assert (result.differences[0].expected, result.differences[0].actual) == ("number", "string")

    def test_bool_is_not_number(self):
        assert kinds(compare({"runs": 1}, {"runs": True})) == [(TYPE_MISMATCH, "runs")]

    def test_length_mismatch(self):
        result = compare([1, 2, 3], [1])

        assert kinds(result) == [(LENGTH_MISMATCH, "")]
        assert (result.matching_leaves, result.total_leaves) == (1, 3)

    def test_document_order(self):
        result = compare(
            {"a": 1, "b": [1, {"c": 2}]},
            {"a": 0, "b": [0, {"c": 0}]},
        )

        assert kinds(result) == [
            (VALUE_MISMATCH, "a"),
            (VALUE_MISMATCH, "b[0]"),
            (VALUE_MISMATCH, "b[1].c"),
        ]
        assert result.accuracy == 0.0

    def test_deep_trees(self):
        reference: dict = {"leaf": 1}
        candidate: dict = {"leaf": 2}
        for _ in range(5000):
            reference = {"children": [reference]}
            candidate = {"children": [candidate]}

        result = compare(reference, candidate)

        assert result.differences[0].path.endswith("children[0].leaf")
        assert result.total_leaves == 1

    def test_to_dict(self):
        data = compare({"a": 1}, {"a": 2}).to_dict()

        assert data["differences"] == [
            {"kind": VALUE_MISMATCH, "path": "a", "expected": 1, "actual": 2}
        ]


# =============================================================================
# Reports
# =============================================================================


class TestReports:
    def test_no_differences(self):
        report = format_diff_report(compare({"a": 1}, {"a": 1}))

        assert report == "Accuracy: 100.00% (1/1 leaves)\nNo differences found."

    def test_truncated(self):
        report = format_diff_report(compare({"a": 1, "b": 2}, {"a": 0, "b": 0}), max_diffs=1)

        assert "Found 2 difference(s):" in report
        assert "1. valueMismatch at 'a'" in report
        assert "... and 1 more differences" in report

    def test_difference_str_root(self):
        assert str(Difference(TYPE_MISMATCH, "", "object", "array")).startswith(
            "typeMismatch at '<root>'"
        )

    def test_assert_fidelity(self):
        assert_fidelity({"a": [1]}, {"a": [1]})

        with pytest.raises(AssertionError, match="valueMismatch"):
            assert_fidelity({"a": [1]}, {"a": [2]})
