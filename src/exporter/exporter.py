"""
Exporter: Workbook → 소스 유닛 + manifest.

규칙:
- 최상위 노드 1개 = 유닛 1개 (test_{pos:02d}_{ident}.py)
- 그룹: @describe(name) + def ident():
- 요청: @it(name, method=, url=[, timeout=]) + def ident(context, response):
- 모든 body는 메타데이터 블록으로 시작
- 파이썬 body로 옮길 수 없는 스크립트(JavaScript 등)는 메타데이터 test에 보관, body는 pass
- 레코드의 sharedCode/moduleCode는 코드로 다시 출력 (메타데이터에는 넣지 않음)
- 결정론: 타임스탬프 없음, 키 순서 고정, 들여쓰기 고정 → 두 번 export해도 바이트 동일
- 워크북은 읽기만 함 (수정 금지)
"""

import ast
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from src.core.config import TranscoderConfig
from src.core.ids import to_identifier
from src.core.metadata import MetadataCodec
from src.domain.constants import (
    CASE_CONFIG_KEYS,
    CASE_DECORATOR,
    CASE_PARAMETERS,
    EMPTY_BODY,
    MODULE_CODE_KEY,
    NODE_KIND_GROUP,
    NODE_KIND_REQUEST,
    SHARED_CODE_KEY,
    SHARED_KIND_DOCSTRING,
    SHARED_KIND_IMPORT,
    SUITE_DECORATOR,
    UNIT_FILENAME_PREFIX,
    UNIT_FILENAME_SUFFIX,
    UNIT_TEMPLATE_NAME,
)
from src.domain.errors import ErrorCodes, StructuralError
from src.domain.workbook import Node, Request, RequestGroup, Workbook
from src.project.manifest import Manifest, ManifestEntry

logger = logging.getLogger(__name__)

BUILTIN_TEMPLATE_DIR = Path(__file__).parent / "templates"

# 런타임 import보다 앞에 둘 수 있는 모듈 코드
MODULE_PRELUDE_KINDS = (SHARED_KIND_IMPORT, SHARED_KIND_DOCSTRING)


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class SourceUnit:
    """생성된 소스 파일 하나."""
    filename: str
    node_id: str
    name: str
    kind: str  # group, request
    text: str


@dataclass
class ExportResult:
    """export 결과: 유닛 목록 + manifest."""
    units: list[SourceUnit] = field(default_factory=list)
    manifest: Manifest = field(default_factory=Manifest)
    suites_dir: str = "suites"
    manifest_filename: str = "manifest.yaml"

    def files(self) -> dict[str, str]:
        """프로젝트 상대 경로 → 파일 내용 (manifest 먼저, 유닛은 순서대로)."""
        result = {self.manifest_filename: self.manifest.to_yaml()}
        for unit in self.units:
            result[f"{self.suites_dir}/{unit.filename}"] = unit.text
        return result

    def sources(self) -> dict[str, str]:
        """파일명 → 유닛 텍스트 (import 입력 형태)."""
        return {unit.filename: unit.text for unit in self.units}


# =============================================================================
# Identifiers
# =============================================================================


def sibling_identifiers(nodes: list[Node]) -> list[str]:
    """
    형제 노드 식별자 목록.

    이름이 같은 식별자로 정리되는 형제들은 모두 _{position} 접미.
    예: ["Test", "Test"] → ["test_0", "test_1"]
    """
    bases = [to_identifier(node.name) for node in nodes]
    counts: dict[str, int] = {}
    for base in bases:
        counts[base] = counts.get(base, 0) + 1

    result: list[str] = []
    used: set[str] = set()
    for position, base in enumerate(bases):
        ident = base
        if counts[base] > 1:
            ident = f"{base.rstrip('_')}_{position}"
        while ident in used or (ident != base and ident in counts):
            ident += "_"
        used.add(ident)
        result.append(ident)
    return result


def unit_filename(position: int, node: Node) -> str:
    """최상위 노드 → 유닛 파일명."""
    stem = to_identifier(node.name).rstrip("_")
    return f"{UNIT_FILENAME_PREFIX}{position:02d}_{stem}{UNIT_FILENAME_SUFFIX}"


# =============================================================================
# Exporter
# =============================================================================


class Exporter:
    """
    Workbook → SourceUnit 목록.

    Usage:
        exporter = Exporter(load_config())
        result = exporter.export(workbook, source="demo.apicize")
        for path, text in result.files().items():
            ...
    """

    def __init__(self, config: TranscoderConfig | None = None) -> None:
        self.config = config or TranscoderConfig()
        self.codec = MetadataCodec(self.config.start_marker, self.config.end_marker)
        template_dir = self.config.template_dir or BUILTIN_TEMPLATE_DIR
        self._env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            keep_trailing_newline=True,
            undefined=StrictUndefined,
            autoescape=False,
        )

    def export(self, workbook: Workbook, source: str | None = None) -> ExportResult:
        """
        워크북 전체 export.

        Args:
            workbook: 검증된 워크북 (읽기 전용)
            source: manifest에 기록할 원본 파일명

        Raises:
            StructuralError: 중첩이 max_depth 초과
        """
        template = self._env.get_template(UNIT_TEMPLATE_NAME)
        manifest = Manifest(source=source, workbook=workbook.sections())
        result = ExportResult(
            manifest=manifest,
            suites_dir=self.config.suites_dir,
            manifest_filename=self.config.manifest_filename,
        )

        identifiers = sibling_identifiers(workbook.requests)
        for position, node in enumerate(workbook.requests):
            kind = NODE_KIND_GROUP if isinstance(node, RequestGroup) else NODE_KIND_REQUEST
            prelude, leading, trailing = split_module_code(node)
            body = "\n".join(self.render_node(node, identifiers[position]))
            if leading:
                body = join_code(leading) + "\n\n\n" + body
            if trailing:
                body += "\n\n\n" + join_code(trailing)
            text = template.render(
                kind=kind,
                name_literal=repr(node.name),
                start_marker=self.config.start_marker,
                prelude=join_code(prelude),
                runtime_module=self.config.runtime_module,
                suite_decorator=SUITE_DECORATOR,
                case_decorator=CASE_DECORATOR,
                body=body,
            )
            filename = unit_filename(position, node)
            result.units.append(
                SourceUnit(filename=filename, node_id=node.id, name=node.name, kind=kind, text=text)
            )
            manifest.units.append(
                ManifestEntry(file=filename, id=node.id, name=node.name, kind=kind)
            )

        logger.info(f"Exported {len(result.units)} unit(s) from {source or 'workbook'}")
        return result

    # =========================================================================
    # Node Rendering
    # =========================================================================

    def render_node(self, root: Node, identifier: str) -> list[str]:
        """
        노드 하위 트리 → 소스 줄 목록 (명시적 스택, 재귀 없음).

        Args:
            root: 최상위 노드
            identifier: 최상위 함수 이름
        """
        lines: list[str] = []
        # (node, identifier, depth), shared code 줄 목록, 또는 None (빈 줄)
        stack: list[tuple[Node, str, int] | list[str] | None] = [(root, identifier, 1)]

        while stack:
            item = stack.pop()
            if item is None:
                lines.append("")
                continue
            if isinstance(item, list):
                lines.extend(item)
                continue

            node, ident, depth = item
            if depth > self.config.max_depth:
                raise StructuralError(
                    ErrorCodes.DEPTH_LIMIT_EXCEEDED,
                    node_id=node.id,
                    depth=depth,
                    max_depth=self.config.max_depth,
                )

            prefix = " " * (self.config.indent * (depth - 1))
            body_prefix = prefix + " " * self.config.indent

            record = node.metadata_record()
            shared = pop_shared_code(record, SHARED_CODE_KEY) if isinstance(node, RequestGroup) else []
            if depth == 1:
                pop_shared_code(record, MODULE_CODE_KEY)

            script = node.test_script if isinstance(node, Request) else None
            if script is not None and not fits_function_body(script):
                record["test"] = script
                script = None

            lines.extend(self._header_lines(node, ident, prefix))
            lines.append(self.codec.encode(record, indent=body_prefix))

            if isinstance(node, RequestGroup):
                if not node.children and not shared:
                    lines.append(body_prefix + EMPTY_BODY)
                    continue
                child_idents = sibling_identifiers(node.children)
                pending: list[tuple[Node, str, int] | list[str] | None] = []
                for position, (child, child_ident) in enumerate(
                    zip(node.children, child_idents, strict=True)
                ):
                    pending.extend(_code_items(shared, body_prefix, position, position))
                    pending.append(None)
                    pending.append((child, child_ident, depth + 1))
                pending.extend(_code_items(shared, body_prefix, len(node.children), None))
                stack.extend(reversed(pending))
            else:
                lines.extend(self._script_lines(script, body_prefix))

        return lines

    def _header_lines(self, node: Node, ident: str, prefix: str) -> list[str]:
        if isinstance(node, RequestGroup):
            return [
                f"{prefix}@{SUITE_DECORATOR}({node.name!r})",
                f"{prefix}def {ident}():",
            ]
        args = [repr(node.name), *self._case_config(node)]
        params = ", ".join(CASE_PARAMETERS)
        return [
            f"{prefix}@{CASE_DECORATOR}({', '.join(args)})",
            f"{prefix}def {ident}({params}):",
        ]

    @staticmethod
    def _case_config(request: Request) -> list[str]:
        config: dict[str, Any] = {key: getattr(request, key) for key in CASE_CONFIG_KEYS}
        return [f"{key}={value!r}" for key, value in config.items() if value is not None]

    @staticmethod
    def _script_lines(script: str | None, body_prefix: str) -> list[str]:
        if script is None:
            return [body_prefix + EMPTY_BODY]
        lines = [body_prefix + line if line else "" for line in script.split("\n")]
        # 주석만 있는 스크립트는 함수 body가 될 수 없음
        if not ast.parse(script).body:
            lines.append(body_prefix + EMPTY_BODY)
        return lines


# =============================================================================
# Scripts / Shared Code
# =============================================================================


def fits_function_body(script: str) -> bool:
    """
    스크립트를 함수 body로 옮겨도 import 시 같은 텍스트로 돌아오는지.

    False인 경우:
    - 파이썬 구문이 아님 (JavaScript 등) 또는 첫 줄이 들여쓰기됨
    - 들여쓰기에 탭/폼피드 (생성 들여쓰기와 섞이면 일관성 깨짐)
    - 문장이 pass 하나뿐 (import 시 빈 body로 취급)
    """
    lines = script.split("\n")
    if any(ch in line[: len(line) - len(line.lstrip())] for line in lines for ch in "\t\f"):
        return False
    try:
        tree = ast.parse(script)
    except (SyntaxError, ValueError):
        return False
    return not (len(tree.body) == 1 and isinstance(tree.body[0], ast.Pass))


def shared_code_entries(value: Any) -> list[dict[str, Any]] | None:
    """
    sharedCode/moduleCode 값 검증.

    형식이 맞지 않거나 코드가 파이썬이 아니면 None (레코드에 그대로 둠).
    """
    if not isinstance(value, list):
        return None
    for entry in value:
        if not isinstance(entry, dict):
            return None
        code, kind, position = entry.get("code"), entry.get("kind"), entry.get("position")
        if not isinstance(code, str) or not isinstance(kind, str):
            return None
        if not isinstance(position, int) or isinstance(position, bool) or position < 0:
            return None
        if not fits_function_body(code):
            return None
    return value


def pop_shared_code(record: dict[str, Any], key: str) -> list[dict[str, Any]]:
    """유효한 shared code면 레코드에서 꺼내 반환."""
    entries = shared_code_entries(record.get(key))
    if entries is None:
        return []
    del record[key]
    return entries


def split_module_code(node: Node) -> tuple[list[dict[str, Any]], ...]:
    """
    moduleCode → (런타임 import 앞, 선언 앞, 선언 뒤).

    선언 앞 코드 중 맨 앞의 import/docstring 묶음만 런타임 import보다 먼저 출력.
    """
    entries = shared_code_entries(node.extra.get(MODULE_CODE_KEY)) or []
    before = [e for e in entries if e["position"] == 0]
    trailing = [e for e in entries if e["position"] > 0]
    split = 0
    while split < len(before) and before[split]["kind"] in MODULE_PRELUDE_KINDS:
        split += 1
    return before[:split], before[split:], trailing


def join_code(entries: list[dict[str, Any]]) -> str:
    """모듈 수준 코드 연결 (import끼리는 붙여 쓰고 나머지는 빈 줄 두 개)."""
    text = ""
    previous: str | None = None
    for entry in entries:
        if previous is not None:
            both_imports = previous == entry["kind"] == SHARED_KIND_IMPORT
            text += "\n" if both_imports else "\n\n\n"
        text += entry["code"]
        previous = entry["kind"]
    return text


def _code_items(
    entries: list[dict[str, Any]],
    body_prefix: str,
    low: int,
    high: int | None,
) -> list[list[str] | None]:
    """position이 [low, high] 범위인 항목 → (빈 줄, 들여쓴 코드 줄) 쌍."""
    items: list[list[str] | None] = []
    for entry in entries:
        position = entry["position"]
        if position < low or (high is not None and position > high):
            continue
        items.append(None)
        items.append([body_prefix + line if line else "" for line in entry["code"].split("\n")])
    return items
