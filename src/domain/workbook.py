"""
Workbook model: .apicize JSON ↔ dataclass.

규칙:
- Node = Request | RequestGroup (children 리스트 존재 여부로 구분)
- 알 수 없는 키는 extra에 그대로 보존 → to_dict 시 재출력
- from_dict는 검증된 데이터를 가정 (구조 검증은 services.validate)
- 트리 순회는 명시적 스택 사용 (깊은 중첩에서도 재귀 한계 없음)
"""

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

from src.domain.constants import DEFAULT_WORKBOOK_VERSION, EMPTY_BODY

# =============================================================================
# Enums
# =============================================================================


class BodyType(str, Enum):
    """요청 body 타입."""
    NONE = "None"
    TEXT = "Text"
    JSON = "JSON"
    XML = "XML"
    FORM = "Form"
    RAW = "Raw"


class ExecutionMode(str, Enum):
    """그룹/다중 실행 순서 정책."""
    SEQUENTIAL = "SEQUENTIAL"
    CONCURRENT = "CONCURRENT"


# =============================================================================
# Helpers
# =============================================================================

NAME_VALUE_KEYS = frozenset({"name", "value", "disabled"})
SELECTED_ITEM_KEYS = frozenset({"id", "name"})
BODY_KEYS = frozenset({"type", "data"})
REQUEST_KEYS = frozenset({
    "id", "name", "url", "method", "test", "testScript", "headers", "body",
    "queryStringParams", "timeout", "numberOfRedirects", "runs",
    "multiRunExecution", "selectedAuthorization",
})
GROUP_KEYS = frozenset({
    "id", "name", "children", "execution", "runs", "multiRunExecution",
    "selectedScenario", "selectedData",
})
VARIABLE_KEYS = frozenset({"name", "value", "type", "disabled"})
SCENARIO_KEYS = frozenset({"id", "name", "variables"})
WORKBOOK_KEYS = frozenset({
    "version", "requests", "scenarios", "authorizations", "certificates",
    "proxies", "data", "defaults",
})


def _extra(data: dict[str, Any], known: frozenset[str]) -> dict[str, Any]:
    """모델에 없는 키 보존 (입력 순서 유지)."""
    return {k: copy.deepcopy(v) for k, v in data.items() if k not in known}


def _put(result: dict[str, Any], key: str, value: Any) -> None:
    """None이 아닌 값만 기록."""
    if value is not None:
        result[key] = value


def normalize_script(text: str | None) -> str | None:
    """
    테스트 스크립트 정규화.

    생성된 함수 body로 구분할 수 없는 차이를 제거:
    - 줄바꿈 → "\\n"
    - 끝쪽 빈 줄(공백만 있는 줄 포함) 제거
    - 비어 있거나 "pass"뿐이면 None
    """
    if text is None:
        return None
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    while lines and not lines[-1].strip():
        lines.pop()
    normalized = "\n".join(lines)
    if not normalized.strip() or normalized.strip() == EMPTY_BODY:
        return None
    return normalized


# =============================================================================
# Value Objects
# =============================================================================


@dataclass
class NameValue:
    """헤더/쿼리/폼 필드의 name-value 쌍."""
    name: str
    value: str = ""
    disabled: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NameValue":
        return cls(
            name=data["name"],
            value=data.get("value", ""),
            disabled=data.get("disabled"),
            extra=_extra(data, NAME_VALUE_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "value": self.value}
        _put(result, "disabled", self.disabled)
        result.update(copy.deepcopy(self.extra))
        return result


@dataclass
class SelectedItem:
    """시나리오/데이터/인증 참조."""
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SelectedItem | None":
        if not data:
            return None
        return cls(id=data["id"], name=data.get("name", ""))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass
class RequestBody:
    """요청 body. type과 data 형태가 일치해야 함."""
    type: BodyType
    data: Any = None
    extra: dict[str, Any] = field(default_factory=dict)  # formatted 등

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "RequestBody | None":
        if data is None:
            return None
        return cls(
            type=BodyType(data["type"]),
            data=copy.deepcopy(data.get("data")),
            extra=_extra(data, BODY_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type.value}
        _put(result, "data", copy.deepcopy(self.data))
        result.update(copy.deepcopy(self.extra))
        return result


def _name_values(items: list[dict[str, Any]] | None) -> list[NameValue] | None:
    if items is None:
        return None
    return [NameValue.from_dict(item) for item in items]


def _name_values_out(items: list[NameValue] | None) -> list[dict[str, Any]] | None:
    if items is None:
        return None
    return [item.to_dict() for item in items]


def _execution(value: str | None) -> ExecutionMode | None:
    return ExecutionMode(value) if value is not None else None


# =============================================================================
# Nodes
# =============================================================================


@dataclass
class Request:
    """
    HTTP 요청 한 건 + 검증 스크립트.

    test_script는 불투명 텍스트 (트랜스코더는 해석하지 않고 위치만 옮김).
    """
    id: str
    name: str
    url: str = ""
    method: str = "GET"
    test_script: str | None = None
    headers: list[NameValue] | None = None
    body: RequestBody | None = None
    query_string_params: list[NameValue] | None = None
    timeout: int | None = None
    number_of_redirects: int | None = None
    runs: int | None = None
    multi_run_execution: ExecutionMode | None = None
    selected_authorization: SelectedItem | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    is_group: ClassVar[bool] = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Request":
        script = data.get("test", data.get("testScript"))
        return cls(
            id=data["id"],
            name=data["name"],
            url=data.get("url", ""),
            method=data.get("method", "GET"),
            test_script=normalize_script(script),
            headers=_name_values(data.get("headers")),
            body=RequestBody.from_dict(data.get("body")),
            query_string_params=_name_values(data.get("queryStringParams")),
            timeout=data.get("timeout"),
            number_of_redirects=data.get("numberOfRedirects"),
            runs=data.get("runs"),
            multi_run_execution=_execution(data.get("multiRunExecution")),
            selected_authorization=SelectedItem.from_dict(data.get("selectedAuthorization")),
            extra=_extra(data, REQUEST_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "method": self.method,
        }
        _put(result, "test", self.test_script)
        _put(result, "headers", _name_values_out(self.headers))
        _put(result, "body", self.body.to_dict() if self.body else None)
        _put(result, "queryStringParams", _name_values_out(self.query_string_params))
        _put(result, "timeout", self.timeout)
        _put(result, "numberOfRedirects", self.number_of_redirects)
        _put(result, "runs", self.runs)
        _put(
            result,
            "multiRunExecution",
            self.multi_run_execution.value if self.multi_run_execution else None,
        )
        _put(
            result,
            "selectedAuthorization",
            self.selected_authorization.to_dict() if self.selected_authorization else None,
        )
        result.update(copy.deepcopy(self.extra))
        return result

    def metadata_record(self) -> dict[str, Any]:
        """메타데이터 블록에 담을 레코드 (test 제외)."""
        record = self.to_dict()
        record.pop("test", None)
        return record


@dataclass
class RequestGroup:
    """순서가 있는 자식 노드 컨테이너."""
    id: str
    name: str
    children: list["Node"] = field(default_factory=list)
    execution: ExecutionMode | None = None
    runs: int | None = None
    multi_run_execution: ExecutionMode | None = None
    selected_scenario: SelectedItem | None = None
    selected_data: SelectedItem | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    is_group: ClassVar[bool] = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RequestGroup":
        """그룹 하위 트리 전체 생성."""
        node = node_from_dict(data)
        if not isinstance(node, RequestGroup):
            raise ValueError(f"Not a group: {data.get('id')!r}")
        return node

    @classmethod
    def _shallow(cls, data: dict[str, Any]) -> "RequestGroup":
        return cls(
            id=data["id"],
            name=data["name"],
            execution=_execution(data.get("execution")),
            runs=data.get("runs"),
            multi_run_execution=_execution(data.get("multiRunExecution")),
            selected_scenario=SelectedItem.from_dict(data.get("selectedScenario")),
            selected_data=SelectedItem.from_dict(data.get("selectedData")),
            extra=_extra(data, GROUP_KEYS),
        )

    def _own_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"id": self.id, "name": self.name, "children": []}
        _put(result, "execution", self.execution.value if self.execution else None)
        _put(result, "runs", self.runs)
        _put(
            result,
            "multiRunExecution",
            self.multi_run_execution.value if self.multi_run_execution else None,
        )
        _put(
            result,
            "selectedScenario",
            self.selected_scenario.to_dict() if self.selected_scenario else None,
        )
        _put(
            result,
            "selectedData",
            self.selected_data.to_dict() if self.selected_data else None,
        )
        result.update(copy.deepcopy(self.extra))
        return result

    def to_dict(self) -> dict[str, Any]:
        root = self._own_dict()
        stack: list[tuple[RequestGroup, dict[str, Any]]] = [(self, root)]
        while stack:
            group, out = stack.pop()
            for child in group.children:
                if isinstance(child, RequestGroup):
                    child_out = child._own_dict()
                    stack.append((child, child_out))
                else:
                    child_out = child.to_dict()
                out["children"].append(child_out)
        return root

    def metadata_record(self) -> dict[str, Any]:
        """메타데이터 블록에 담을 레코드 (children 제외)."""
        record = self._own_dict()
        record.pop("children")
        return record


Node = Union[Request, RequestGroup]


def is_group_dict(data: Any) -> bool:
    """children 리스트가 있으면 그룹."""
    return isinstance(data, dict) and isinstance(data.get("children"), list)


def node_from_dict(data: dict[str, Any]) -> Node:
    """
    dict → Node (하위 트리 포함).

    Raises:
        KeyError/TypeError/ValueError: 검증되지 않은 형태
    """
    if not is_group_dict(data):
        return Request.from_dict(data)

    root = RequestGroup._shallow(data)
    stack: list[tuple[RequestGroup, dict[str, Any]]] = [(root, data)]
    while stack:
        group, raw = stack.pop()
        for child_raw in raw["children"]:
            if is_group_dict(child_raw):
                child: Node = RequestGroup._shallow(child_raw)
                stack.append((child, child_raw))
            else:
                child = Request.from_dict(child_raw)
            group.children.append(child)
    return root


# =============================================================================
# Scenarios
# =============================================================================


@dataclass
class Variable:
    """시나리오 변수."""
    name: str
    value: str = ""
    type: str = "TEXT"
    disabled: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Variable":
        return cls(
            name=data["name"],
            value=data.get("value", ""),
            type=data.get("type", "TEXT"),
            disabled=data.get("disabled"),
            extra=_extra(data, VARIABLE_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "value": self.value, "type": self.type}
        _put(result, "disabled", self.disabled)
        result.update(copy.deepcopy(self.extra))
        return result


@dataclass
class Scenario:
    """이름 있는 변수 집합."""
    id: str
    name: str
    variables: list[Variable] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Scenario":
        return cls(
            id=data["id"],
            name=data["name"],
            variables=[Variable.from_dict(v) for v in data.get("variables", [])],
            extra=_extra(data, SCENARIO_KEYS),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "variables": [v.to_dict() for v in self.variables],
        }
        result.update(copy.deepcopy(self.extra))
        return result


# =============================================================================
# Workbook
# =============================================================================


@dataclass
class Workbook:
    """
    워크북 전체.

    authorizations/certificates/proxies/data는 불투명 JSON 객체로 보존.
    """
    version: int = DEFAULT_WORKBOOK_VERSION
    requests: list[Node] = field(default_factory=list)
    scenarios: list[Scenario] = field(default_factory=list)
    authorizations: list[dict[str, Any]] = field(default_factory=list)
    certificates: list[dict[str, Any]] = field(default_factory=list)
    proxies: list[dict[str, Any]] = field(default_factory=list)
    data: list[dict[str, Any]] = field(default_factory=list)
    defaults: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Workbook":
        return cls.from_sections(
            data,
            [node_from_dict(item) for item in data.get("requests", [])],
        )

    @classmethod
    def from_sections(cls, sections: dict[str, Any], requests: list[Node]) -> "Workbook":
        """requests 외 섹션(dict) + 이미 만들어진 노드 목록으로 생성."""
        return cls(
            version=sections.get("version", DEFAULT_WORKBOOK_VERSION),
            requests=requests,
            scenarios=[Scenario.from_dict(s) for s in sections.get("scenarios", [])],
            authorizations=copy.deepcopy(sections.get("authorizations", [])),
            certificates=copy.deepcopy(sections.get("certificates", [])),
            proxies=copy.deepcopy(sections.get("proxies", [])),
            data=copy.deepcopy(sections.get("data", [])),
            defaults=copy.deepcopy(sections.get("defaults", {})),
            extra=_extra(sections, WORKBOOK_KEYS),
        )

    def sections(self) -> dict[str, Any]:
        """requests를 제외한 워크북 섹션 (manifest 보존용)."""
        result = self.to_dict(include_requests=False)
        return result

    def to_dict(self, include_requests: bool = True) -> dict[str, Any]:
        result: dict[str, Any] = {"version": self.version}
        if include_requests:
            result["requests"] = [node.to_dict() for node in self.requests]
        result["scenarios"] = [s.to_dict() for s in self.scenarios]
        result["authorizations"] = copy.deepcopy(self.authorizations)
        result["certificates"] = copy.deepcopy(self.certificates)
        result["proxies"] = copy.deepcopy(self.proxies)
        result["data"] = copy.deepcopy(self.data)
        result["defaults"] = copy.deepcopy(self.defaults)
        result.update(copy.deepcopy(self.extra))
        return result

    def iter_nodes(self) -> Iterator[tuple[str, int, Node]]:
        """
        전위 순회 (문서 순서).

        Yields:
            (path, depth, node): path 예: "requests[0].children[1]", depth는 1부터
        """
        stack: list[tuple[str, int, Node]] = [
            (f"requests[{i}]", 1, node) for i, node in enumerate(self.requests)
        ]
        stack.reverse()
        while stack:
            path, depth, node = stack.pop()
            yield path, depth, node
            if isinstance(node, RequestGroup):
                children = [
                    (f"{path}.children[{i}]", depth + 1, child)
                    for i, child in enumerate(node.children)
                ]
                stack.extend(reversed(children))

    def find(self, node_id: str) -> Node | None:
        """id로 노드 검색."""
        for _, _, node in self.iter_nodes():
            if node.id == node_id:
                return node
        return None
