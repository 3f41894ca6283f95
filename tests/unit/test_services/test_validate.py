"""
test_validate.py - 워크북 구조 검증 테스트

DoD:
- 유효한 워크북 → 빈 목록
- 모든 위반을 문서 순서로 수집 (첫 위반에서 멈추지 않음)
- 예외 없음 (raise_for_violations만 StructuralError)
"""

import copy

import pytest

from src.domain.errors import ErrorCodes, StructuralError
from src.services.validate import WorkbookValidator, raise_for_violations, validate_workbook
from tests.helpers import make_group, make_request, make_workbook, nested_groups


def rules(violations) -> list[tuple[str, str]]:
    return [(v.path, v.rule) for v in violations]


class TestValidWorkbook:
    """유효한 입력."""

    def test_sample_is_valid(self, sample_workbook_data):
        assert validate_workbook(sample_workbook_data) == []

    def test_accepts_workbook_instance(self, sample_workbook):
        assert WorkbookValidator().validate(sample_workbook) == []

    def test_does_not_modify_input(self, sample_workbook_data):
        before = copy.deepcopy(sample_workbook_data)

        validate_workbook(sample_workbook_data)

        assert sample_workbook_data == before


class TestTopLevel:
    """최상위 키/버전."""

    def test_not_an_object(self):
        assert rules(validate_workbook([])) == [("", "type")]

    def test_missing_keys(self):
        violations = validate_workbook({"version": 1, "requests": []})

        assert [v.path for v in violations] == [
            "scenarios", "authorizations", "certificates", "proxies", "data", "defaults",
        ]
        assert {v.rule for v in violations} == {"required"}

    def test_unsupported_version(self):
        assert rules(validate_workbook(make_workbook([], version=2))) == [("version", "version")]

    def test_version_type(self):
        assert rules(validate_workbook(make_workbook([], version="1"))) == [("version", "type")]

    def test_requests_not_array(self):
        assert rules(validate_workbook(make_workbook({}))) == [("requests", "type")]

    def test_defaults_not_object(self):
        assert rules(validate_workbook(make_workbook([], defaults=[]))) == [("defaults", "type")]


class TestNodes:
    """노드 필드 규칙."""

    def test_collects_all_in_document_order(self):
        data = make_workbook([
            make_group("g1", "G", [
                make_request("r1", "A", method="FETCH"),
                {"id": "r2", "url": "u", "method": "GET"},
            ]),
            make_request("bad id", "B", timeout=-1),
        ])

        assert rules(validate_workbook(data)) == [
            ("requests[0].children[0].method", "enum"),
            ("requests[0].children[1].name", "required"),
            ("requests[1].id", "id-format"),
            ("requests[1].timeout", "integer"),
        ]

    def test_duplicate_ids_across_tree_and_sections(self):
        data = make_workbook(
            [make_group("x", "G", [make_request("x", "R")])],
            scenarios=[{"id": "x", "name": "S"}],
        )

        violations = validate_workbook(data)

        assert rules(violations) == [
            ("requests[0].children[0].id", "duplicate-id"),
            ("scenarios[0].id", "duplicate-id"),
        ]
        assert "requests[0]" in violations[0].message

    @pytest.mark.parametrize("body,ok", [
        ({"type": "None"}, True),
        ({"type": "Text", "data": "hi"}, True),
        ({"type": "XML", "data": "<a/>"}, True),
        ({"type": "JSON", "data": {"a": 1}}, True),
        ({"type": "JSON", "data": [1]}, True),
        ({"type": "Form", "data": [{"name": "a", "value": "b"}]}, True),
        ({"type": "Raw", "data": [0, 255]}, True),
        ({"type": "Raw", "data": "aGVsbG8="}, True),
        ({"type": "None", "data": "x"}, False),
        ({"type": "Text", "data": {"a": 1}}, False),
        ({"type": "JSON", "data": "{}"}, False),
        ({"type": "Form", "data": "a=b"}, False),
        ({"type": "Raw", "data": [256]}, False),
        ({"type": "Raw", "data": "not base64!"}, False),
    ])
    def test_body_shape(self, body, ok):
        violations = validate_workbook(make_workbook([make_request("r", "R", body=body)]))

        if ok:
            assert violations == []
        else:
            assert rules(violations) == [("requests[0].body.data", "body-shape")]

    def test_unknown_body_type(self):
        data = make_workbook([make_request("r", "R", body={"type": "YAML", "data": "x"})])

        assert rules(validate_workbook(data)) == [("requests[0].body.type", "enum")]

    def test_name_values(self):
        data = make_workbook([make_request(
            "r", "R",
            headers=[{"name": "A", "value": 1}, {"value": "x"}, {"name": "B", "disabled": "yes"}],
        )])

        assert rules(validate_workbook(data)) == [
            ("requests[0].headers[0].value", "name-value"),
            ("requests[0].headers[1]", "name-value"),
            ("requests[0].headers[2].disabled", "name-value"),
        ]

    def test_booleans_are_not_integers(self):
        data = make_workbook([make_request("r", "R", timeout=True, runs=1.5)])

        assert rules(validate_workbook(data)) == [
            ("requests[0].timeout", "integer"),
            ("requests[0].runs", "integer"),
        ]

    def test_group_fields(self):
        data = make_workbook([make_group(
            "g", "G", [], execution="PARALLEL", selectedScenario={"name": "no id"},
        )])

        assert rules(validate_workbook(data)) == [
            ("requests[0].execution", "enum"),
            ("requests[0].selectedScenario", "type"),
        ]

    def test_children_not_array(self):
        data = make_workbook([{"id": "g", "name": "G", "children": {}}])

        assert rules(validate_workbook(data)) == [("requests[0].children", "children")]

    def test_max_depth(self):
        data = make_workbook([nested_groups(5)])

        violations = WorkbookValidator(max_depth=4).validate(data)

        assert rules(violations) == [("requests[0]" + ".children[0]" * 4, "max-depth")]

    def test_deep_tree_no_recursion_error(self):
        data = make_workbook([nested_groups(5000)])

        assert WorkbookValidator(max_depth=10000).validate(data) == []


class TestSections:
    """scenarios 등 섹션 규칙."""

    def test_scenario_variables(self):
        data = make_workbook([], scenarios=[{
            "id": "s", "name": "S",
            "variables": [{"name": "a", "value": 1}, {"value": "x"}, {"name": "b", "type": "BLOB"}],
        }])

        assert rules(validate_workbook(data)) == [
            ("scenarios[0].variables[0].value", "type"),
            ("scenarios[0].variables[1]", "name-value"),
            ("scenarios[0].variables[2].type", "enum"),
        ]

    def test_section_entry_type(self):
        data = make_workbook([], proxies=["p"])

        assert rules(validate_workbook(data)) == [("proxies[0]", "type")]


class TestRaiseForViolations:
    """raise_for_violations 테스트."""

    def test_no_violations(self):
        raise_for_violations([])

    def test_raises_with_all_violations(self):
        violations = validate_workbook({"version": 1})

        with pytest.raises(StructuralError) as exc_info:
            raise_for_violations(violations)

        assert exc_info.value.code == ErrorCodes.STRUCTURE_INVALID
        assert exc_info.value.context["count"] == len(violations)
        assert exc_info.value.context["violations"][0] == violations[0].to_dict()

    def test_validate_sections_only_checks_present_keys(self):
        validator = WorkbookValidator()

        assert validator.validate_sections({}) == []
        assert rules(validator.validate_sections({"version": "1", "proxies": [{"id": "p"}]})) == [
            ("version", "type"),
            ("proxies[0].name", "required"),
        ]
