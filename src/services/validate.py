"""
Validation Service: 워크북 구조 검증.

규칙:
- 예외를 던지지 않음 → (path, rule, message) 위반 목록 반환, 빈 목록 = 유효
- 첫 위반에서 멈추지 않고 전부 수집 (문서 순서)
- 원시 dict(JSON) 기준 검사. Workbook 인스턴스는 to_dict() 후 검사
- 트리 순회는 명시적 스택 + max_depth 제한

규칙 이름:
    type, required, version, id-format, duplicate-id, enum,
    body-shape, name-value, integer, max-depth, children
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Any

from src.core.ids import is_valid_node_id
from src.domain.constants import (
    BODY_TYPES,
    DEFAULT_MAX_DEPTH,
    EXECUTION_MODES,
    HTTP_METHODS,
    SUPPORTED_WORKBOOK_VERSIONS,
    VARIABLE_TYPES,
    WORKBOOK_REQUIRED_KEYS,
    WORKBOOK_SECTION_KEYS,
)
from src.domain.errors import ErrorCodes, StructuralError
from src.domain.workbook import Workbook, is_group_dict

# =============================================================================
# Types
# =============================================================================


@dataclass(frozen=True)
class Violation:
    """구조 위반 하나."""
    path: str
    rule: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "rule": self.rule, "message": self.message}

    def __str__(self) -> str:
        return f"{self.path or '<root>'}: [{self.rule}] {self.message}"


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _is_raw_bytes(data: Any) -> bool:
    """Raw body: 0..255 정수 배열 또는 base64 문자열."""
    if isinstance(data, list):
        return all(_is_int(b) and 0 <= b <= 255 for b in data)
    if isinstance(data, str):
        try:
            base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            return False
        return True
    return False


# =============================================================================
# Validator
# =============================================================================


class WorkbookValidator:
    """
    워크북 구조 검증기.

    Usage:
        violations = WorkbookValidator(max_depth=32).validate(data)
        if violations:
            for v in violations:
                print(v)
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.max_depth = max_depth

    def validate(self, data: Any) -> list[Violation]:
        """
        워크북 전체 검증.

        Args:
            data: 파싱된 JSON (dict) 또는 Workbook

        Returns:
            위반 목록 (문서 순서)
        """
        if isinstance(data, Workbook):
            data = data.to_dict()

        violations: list[Violation] = []
        if not isinstance(data, dict):
            violations.append(
                Violation("", "type", f"workbook must be an object, got {_type_name(data)}")
            )
            return violations

        for key in WORKBOOK_REQUIRED_KEYS:
            if key not in data:
                violations.append(Violation(key, "required", f"missing top-level key '{key}'"))

        seen_ids: dict[str, str] = {}
        if "requests" in data:
            violations.extend(self._validate_requests(data["requests"], seen_ids))
        violations.extend(self.validate_sections(data, seen_ids))
        return violations

    def validate_sections(
        self,
        data: dict[str, Any],
        seen_ids: dict[str, str] | None = None,
    ) -> list[Violation]:
        """
        requests 외 섹션 검증 (version, scenarios, ..., defaults).

        manifest의 workbook 섹션 검증에도 사용. 없는 키는 검사하지 않음.
        """
        seen_ids = {} if seen_ids is None else seen_ids
        violations: list[Violation] = []

        if "version" in data:
            version = data["version"]
            if isinstance(version, bool) or not isinstance(version, (int, float)):
                violations.append(
                    Violation("version", "type", f"version must be a number, got {_type_name(version)}")
                )
            elif version not in SUPPORTED_WORKBOOK_VERSIONS:
                violations.append(Violation("version", "version", f"unsupported version: {version}"))

        for key in WORKBOOK_SECTION_KEYS:
            if key in data:
                violations.extend(self._validate_section(key, data[key], seen_ids))

        if "defaults" in data and not isinstance(data["defaults"], dict):
            violations.append(
                Violation(
                    "defaults",
                    "type",
                    f"defaults must be an object, got {_type_name(data['defaults'])}",
                )
            )

        return violations

    # =========================================================================
    # Requests
    # =========================================================================

    def _validate_requests(self, requests: Any, seen_ids: dict[str, str]) -> list[Violation]:
        if not isinstance(requests, list):
            return [Violation("requests", "type", f"requests must be an array, got {_type_name(requests)}")]

        violations: list[Violation] = []
        stack: list[tuple[str, int, Any]] = [
            (f"requests[{i}]", 1, item) for i, item in enumerate(requests)
        ]
        stack.reverse()

        while stack:
            path, depth, item = stack.pop()
            if depth > self.max_depth:
                violations.append(
                    Violation(path, "max-depth", f"nesting depth {depth} exceeds {self.max_depth}")
                )
                continue

            violations.extend(self.validate_node(item, path))
            if isinstance(item, dict):
                self._check_duplicate(item.get("id"), path, seen_ids, violations)

            if is_group_dict(item):
                children = [
                    (f"{path}.children[{i}]", depth + 1, child)
                    for i, child in enumerate(item["children"])
                ]
                stack.extend(reversed(children))

        return violations

    def validate_node(self, data: Any, path: str = "") -> list[Violation]:
        """
        노드 하나의 필드 검증 (자식은 검사하지 않음).

        Importer가 메타데이터 레코드 검증에 재사용.
        """
        if not isinstance(data, dict):
            return [Violation(path, "type", f"node must be an object, got {_type_name(data)}")]

        violations: list[Violation] = []
        self._check_id(data, path, violations)
        self._check_string(data, "name", path, violations, required=True)

        if "children" in data and not isinstance(data["children"], list):
            violations.append(
                Violation(
                    _join(path, "children"),
                    "children",
                    f"children must be an array, got {_type_name(data['children'])}",
                )
            )
            return violations

        if is_group_dict(data):
            self._check_enum(data, "execution", EXECUTION_MODES, path, violations)
            self._check_group_selections(data, path, violations)
        else:
            self._check_request(data, path, violations)

        self._check_integer(data, "runs", path, violations)
        self._check_enum(data, "multiRunExecution", EXECUTION_MODES, path, violations)
        return violations

    def _check_request(self, data: dict[str, Any], path: str, violations: list[Violation]) -> None:
        self._check_string(data, "url", path, violations, required=True)
        if "method" not in data:
            violations.append(Violation(_join(path, "method"), "required", "request requires 'method'"))
        else:
            self._check_enum(data, "method", HTTP_METHODS, path, violations)

        for key in ("headers", "queryStringParams"):
            if data.get(key) is not None:
                self._check_name_values(data[key], _join(path, key), violations)

        if data.get("body") is not None:
            self._check_body(data["body"], _join(path, "body"), violations)

        self._check_integer(data, "timeout", path, violations)
        self._check_integer(data, "numberOfRedirects", path, violations)

        for key in ("test", "testScript"):
            if data.get(key) is not None and not isinstance(data[key], str):
                violations.append(
                    Violation(_join(path, key), "type", f"{key} must be a string, got {_type_name(data[key])}")
                )

        if data.get("selectedAuthorization") is not None:
            self._check_selection(data["selectedAuthorization"], _join(path, "selectedAuthorization"), violations)

    def _check_group_selections(self, data: dict[str, Any], path: str, violations: list[Violation]) -> None:
        for key in ("selectedScenario", "selectedData"):
            if data.get(key) is not None:
                self._check_selection(data[key], _join(path, key), violations)

    def _check_body(self, body: Any, path: str, violations: list[Violation]) -> None:
        if not isinstance(body, dict):
            violations.append(Violation(path, "type", f"body must be an object, got {_type_name(body)}"))
            return
        body_type = body.get("type")
        if body_type not in BODY_TYPES:
            violations.append(
                Violation(_join(path, "type"), "enum", f"body type must be one of {', '.join(BODY_TYPES)}")
            )
            return

        data = body.get("data")
        if body_type == "None":
            valid = data is None
            expected = "no data"
        elif body_type in ("Text", "XML"):
            valid = isinstance(data, str)
            expected = "a string"
        elif body_type == "JSON":
            valid = isinstance(data, (dict, list))
            expected = "an object or array"
        elif body_type == "Form":
            valid = isinstance(data, list)
            expected = "an array of name/value pairs"
        else:
            valid = _is_raw_bytes(data)
            expected = "a byte array or base64 string"

        if not valid:
            violations.append(
                Violation(
                    _join(path, "data"),
                    "body-shape",
                    f"{body_type} body requires {expected}, got {_type_name(data)}",
                )
            )
        elif body_type == "Form":
            self._check_name_values(data, _join(path, "data"), violations)

    def _check_name_values(self, items: Any, path: str, violations: list[Violation]) -> None:
        if not isinstance(items, list):
            violations.append(Violation(path, "name-value", f"expected an array, got {_type_name(items)}"))
            return
        for i, item in enumerate(items):
            item_path = f"{path}[{i}]"
            if not isinstance(item, dict) or not isinstance(item.get("name"), str):
                violations.append(Violation(item_path, "name-value", "entry requires a string 'name'"))
                continue
            if "value" in item and not isinstance(item["value"], str):
                violations.append(
                    Violation(_join(item_path, "value"), "name-value", "value must be a string")
                )
            if "disabled" in item and not isinstance(item["disabled"], bool):
                violations.append(
                    Violation(_join(item_path, "disabled"), "name-value", "disabled must be a boolean")
                )

    def _check_selection(self, value: Any, path: str, violations: list[Violation]) -> None:
        if not isinstance(value, dict) or not isinstance(value.get("id"), str):
            violations.append(Violation(path, "type", "selection must be an object with a string 'id'"))

    # =========================================================================
    # Sections
    # =========================================================================

    def _validate_section(self, key: str, items: Any, seen_ids: dict[str, str]) -> list[Violation]:
        if not isinstance(items, list):
            return [Violation(key, "type", f"{key} must be an array, got {_type_name(items)}")]

        violations: list[Violation] = []
        for i, item in enumerate(items):
            path = f"{key}[{i}]"
            if not isinstance(item, dict):
                violations.append(Violation(path, "type", f"entry must be an object, got {_type_name(item)}"))
                continue
            self._check_id(item, path, violations)
            self._check_string(item, "name", path, violations, required=True)
            self._check_duplicate(item.get("id"), path, seen_ids, violations)
            if key == "scenarios":
                self._check_variables(item.get("variables"), _join(path, "variables"), violations)
        return violations

    def _check_variables(self, variables: Any, path: str, violations: list[Violation]) -> None:
        if variables is None:
            return
        if not isinstance(variables, list):
            violations.append(Violation(path, "type", f"variables must be an array, got {_type_name(variables)}"))
            return
        for i, variable in enumerate(variables):
            item_path = f"{path}[{i}]"
            if not isinstance(variable, dict) or not isinstance(variable.get("name"), str):
                violations.append(Violation(item_path, "name-value", "variable requires a string 'name'"))
                continue
            if "value" in variable and not isinstance(variable["value"], str):
                violations.append(Violation(_join(item_path, "value"), "type", "value must be a string"))
            self._check_enum(variable, "type", VARIABLE_TYPES, item_path, violations)

    # =========================================================================
    # Field Checks
    # =========================================================================

    @staticmethod
    def _check_id(data: dict[str, Any], path: str, violations: list[Violation]) -> None:
        if "id" not in data:
            violations.append(Violation(_join(path, "id"), "required", "missing 'id'"))
        elif not is_valid_node_id(data["id"]):
            violations.append(Violation(_join(path, "id"), "id-format", f"invalid id: {data['id']!r}"))

    @staticmethod
    def _check_duplicate(
        node_id: Any,
        path: str,
        seen_ids: dict[str, str],
        violations: list[Violation],
    ) -> None:
        if not isinstance(node_id, str):
            return
        if node_id in seen_ids:
            violations.append(
                Violation(
                    _join(path, "id"),
                    "duplicate-id",
                    f"id {node_id!r} already used at {seen_ids[node_id]}",
                )
            )
        else:
            seen_ids[node_id] = path

    @staticmethod
    def _check_string(
        data: dict[str, Any],
        key: str,
        path: str,
        violations: list[Violation],
        required: bool = False,
    ) -> None:
        if key not in data:
            if required:
                violations.append(Violation(_join(path, key), "required", f"missing '{key}'"))
            return
        if not isinstance(data[key], str):
            violations.append(
                Violation(_join(path, key), "type", f"{key} must be a string, got {_type_name(data[key])}")
            )

    @staticmethod
    def _check_enum(
        data: dict[str, Any],
        key: str,
        allowed: tuple[str, ...],
        path: str,
        violations: list[Violation],
    ) -> None:
        if data.get(key) is None:
            return
        if data[key] not in allowed:
            violations.append(
                Violation(_join(path, key), "enum", f"{key} must be one of {', '.join(allowed)}, got {data[key]!r}")
            )

    @staticmethod
    def _check_integer(data: dict[str, Any], key: str, path: str, violations: list[Violation]) -> None:
        if data.get(key) is None:
            return
        value = data[key]
        if not _is_int(value) or value < 0:
            violations.append(
                Violation(_join(path, key), "integer", f"{key} must be a non-negative integer, got {value!r}")
            )


# =============================================================================
# Convenience
# =============================================================================


def validate_workbook(data: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> list[Violation]:
    """WorkbookValidator(max_depth).validate(data)."""
    return WorkbookValidator(max_depth).validate(data)


def raise_for_violations(violations: list[Violation]) -> None:
    """
    위반이 있으면 StructuralError.

    Raises:
        StructuralError: context["violations"]에 전체 목록
    """
    if violations:
        raise StructuralError(
            ErrorCodes.STRUCTURE_INVALID,
            count=len(violations),
            violations=[v.to_dict() for v in violations],
        )
