"""
Source Parser: 소스 유닛 → ParsedUnit (노드 arena).

인식하는 선언:
- 데코레이터 호출: @describe("name") / @it("name", method=..., url=...)
  (어휘: describe|suite|context|group, it|test|case|specify, 속성 형태 허용)
- with 블록: with describe("name"):

규칙:
- 구문 트리는 ast.parse, 헤더 끝 ':' 위치는 tokenize로 탐색
- 이름/config는 ast.literal_eval로만 평가 (코드 실행 금지)
- 노드는 arena(list)에 저장, parent/children은 인덱스. 부모 index < 자식 index
- 순회는 명시적 스택 (재귀 없음), max_depth 초과 시 DepthLimitError
- 구문 오류는 해당 유닛의 ParseError로 반환 (예외 전파 금지)
"""

import ast
import io
import logging
import tokenize
from bisect import bisect_left
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.core.config import TranscoderConfig
from src.core.fileio import read_text
from src.core.metadata import DecodeResult, MetadataCodec, split_lines
from src.domain.constants import (
    CASE_DECORATOR,
    EMPTY_BODY,
    HOOK_VOCABULARY,
    NODE_KIND_GROUP,
    NODE_KIND_REQUEST,
    SHARED_KIND_DOCSTRING,
    SHARED_KIND_HELPER,
    SHARED_KIND_IMPORT,
    SUITE_DECORATOR,
)
from src.domain.errors import DepthLimitError, ErrorCodes, ParseError, encoding_error
from src.domain.schemas import WarningLog
from src.parser.expansion import THIS_PLACEHOLDER_PATTERN

logger = logging.getLogger(__name__)

_OPENING = ("(", "[", "{")
_CLOSING = (")", "]", "}")

# =============================================================================
# Result Types
# =============================================================================


@dataclass
class Extraneous:
    """
    선언이 아닌 코드 조각 (shared code로 보존).

    text는 문장 들여쓰기를 제거한 원문. position은 앞선 형제 선언 수.
    """
    line: int
    end_line: int
    text: str
    kind: str = SHARED_KIND_HELPER  # helper, import, docstring, before_each, ...
    position: int = 0

    @property
    def warns(self) -> bool:
        """import/docstring 외에는 경고 대상."""
        return self.kind not in (SHARED_KIND_IMPORT, SHARED_KIND_DOCSTRING)

    def to_record(self) -> dict[str, Any]:
        return {"kind": self.kind, "position": self.position, "code": self.text}


@dataclass
class ParsedNode:
    """
    인식된 선언 하나.

    line/end_line은 데코레이터부터 body 끝(뒤따르는 주석 포함)까지, 1-based.
    body는 case만 채움 (메타데이터 블록 제거 + dedent 후 텍스트, 없으면 None).
    """
    index: int
    kind: str  # group, request
    name: str
    raw_name: str
    unresolvable: bool
    config: dict[str, Any]
    unresolved_config: dict[str, str]
    parent: int | None
    depth: int
    line: int
    end_line: int
    children: list[int] = field(default_factory=list)
    metadata: DecodeResult | None = None
    body: str | None = None
    extraneous: list[Extraneous] = field(default_factory=list)
    function: str | None = None  # def/class 이름 (with 형태는 None)

    @property
    def is_group(self) -> bool:
        return self.kind == NODE_KIND_GROUP


@dataclass
class ParsedUnit:
    """유닛 하나의 파싱 결과."""
    filename: str
    nodes: list[ParsedNode] = field(default_factory=list)
    roots: list[int] = field(default_factory=list)
    extraneous: list[Extraneous] = field(default_factory=list)
    warnings: list[WarningLog] = field(default_factory=list)


@dataclass
class ParseResult:
    filename: str
    unit: ParsedUnit | None = None
    error: ParseError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# =============================================================================
# Helpers
# =============================================================================


def _leading_ws(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def _dedent(line: str, indent: str) -> str:
    """indent만큼 제거 (부족하면 가능한 만큼)."""
    if line.startswith(indent):
        return line[len(indent):]
    lead = len(_leading_ws(line))
    return line[min(lead, len(indent)):]


def _char_col(line: str, byte_col: int) -> int:
    """ast col_offset(UTF-8 바이트) → 문자 위치."""
    return len(line.encode("utf-8")[:byte_col].decode("utf-8", errors="replace"))


def _callee_name(expr: ast.expr) -> str | None:
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return expr.attr
    return None


def _first_line(stmt: ast.stmt) -> int:
    """데코레이터 포함 시작 줄."""
    decorators = getattr(stmt, "decorator_list", [])
    return min([stmt.lineno, *(d.lineno for d in decorators)])


def _is_docstring(stmt: ast.stmt) -> bool:
    return (
        isinstance(stmt, ast.Expr)
        and isinstance(stmt.value, ast.Constant)
        and isinstance(stmt.value.value, str)
    )


def _shared_kind(stmt: ast.stmt, first: bool) -> str:
    """
    선언이 아닌 문장의 shared code 종류.

    규칙:
    - import/from import → import
    - body 첫 문장의 문자열 → docstring
    - 훅 이름(before_each 등)의 함수/데코레이터/호출 → 정규 훅 이름
    - 나머지 → helper
    """
    if isinstance(stmt, (ast.Import, ast.ImportFrom)):
        return SHARED_KIND_IMPORT
    if first and _is_docstring(stmt):
        return SHARED_KIND_DOCSTRING

    names: list[str | None] = []
    if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
        for decorator in stmt.decorator_list:
            target = decorator.func if isinstance(decorator, ast.Call) else decorator
            names.append(_callee_name(target))
        names.append(stmt.name)
    elif isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Call):
        names.append(_callee_name(stmt.value.func))

    for name in names:
        if name in HOOK_VOCABULARY:
            return HOOK_VOCABULARY[name]
    return SHARED_KIND_HELPER


# =============================================================================
# Parser
# =============================================================================


class SourceParser:
    """
    유닛 텍스트 → ParseResult.

    Usage:
        parser = SourceParser(load_config())
        result = parser.parse(text, "test_00_crud_operations.py")
        if result.ok:
            for node in result.unit.nodes:
                ...
    """

    def __init__(self, config: TranscoderConfig | None = None) -> None:
        self.config = config or TranscoderConfig()
        self.codec = MetadataCodec(self.config.start_marker, self.config.end_marker)
        self.suite_names = frozenset(self.config.suite_vocabulary)
        self.case_names = frozenset(self.config.case_vocabulary)

    def parse_file(self, path: Path) -> ParseResult:
        """파일 읽기 + 파싱 (OSError는 전파, UTF-8 아니면 INVALID_ENCODING 결과)."""
        try:
            text = read_text(path)
        except UnicodeDecodeError as e:
            return ParseResult(filename=path.name, error=encoding_error(e, path.name))
        return self.parse(text, path.name)

    def parse(self, source: str, filename: str = "<unit>") -> ParseResult:
        """
        유닛 파싱.

        Returns:
            ParseResult (unit 또는 error 중 하나)
        """
        text = "\n".join(split_lines(source))
        try:
            tree = ast.parse(text, filename=filename)
            tokens = list(tokenize.generate_tokens(io.StringIO(text).readline))
        except SyntaxError as e:
            context: dict[str, Any] = {"unit": filename, "message": e.msg}
            if e.lineno is not None:
                context["line"] = e.lineno
            if e.offset is not None:
                context["column"] = e.offset
            logger.debug(f"Syntax error in {filename}: {e}")
            return ParseResult(filename=filename, error=ParseError(ErrorCodes.SYNTAX_ERROR, **context))
        except (ValueError, RecursionError, MemoryError, tokenize.TokenError) as e:
            # 널 바이트, 컴파일러 중첩 한계 등
            error = ParseError(
                ErrorCodes.SYNTAX_ERROR,
                unit=filename,
                message=str(e) or type(e).__name__,
            )
            return ParseResult(filename=filename, error=error)

        builder = _UnitBuilder(self, filename, text, tokens)
        try:
            unit = builder.build(tree)
        except ParseError as e:
            return ParseResult(filename=filename, error=e)
        return ParseResult(filename=filename, unit=unit)

    def declaration(self, stmt: ast.stmt) -> tuple[str, ast.Call] | None:
        """선언이면 (kind, 어휘 호출), 아니면 None."""
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            for decorator in stmt.decorator_list:
                kind = self._vocabulary_kind(decorator)
                if kind is not None:
                    return kind, decorator  # type: ignore[return-value]
        elif isinstance(stmt, (ast.With, ast.AsyncWith)) and len(stmt.items) == 1:
            expr = stmt.items[0].context_expr
            kind = self._vocabulary_kind(expr)
            if kind is not None:
                return kind, expr  # type: ignore[return-value]
        return None

    def _vocabulary_kind(self, expr: ast.expr) -> str | None:
        if not isinstance(expr, ast.Call):
            return None
        name = _callee_name(expr.func)
        if name in self.suite_names:
            return NODE_KIND_GROUP
        if name in self.case_names:
            return NODE_KIND_REQUEST
        return None


class _UnitBuilder:
    """유닛 하나의 arena 구성 (파싱 1회용)."""

    def __init__(
        self,
        parser: SourceParser,
        filename: str,
        text: str,
        tokens: list[tokenize.TokenInfo],
    ) -> None:
        self.parser = parser
        self.filename = filename
        self.text = text
        self.lines = split_lines(text)
        self.tokens = tokens
        self.positions = [tok.start for tok in tokens]
        self.statements: list[ast.stmt] = []  # nodes와 같은 인덱스
        self.covered: set[int] = set()  # shared code로 가져간 줄

    def build(self, tree: ast.Module) -> ParsedUnit:
        unit = ParsedUnit(filename=self.filename)
        self._scan_placeholders(unit)

        # (stmt, parent index, depth, 부모 body의 첫 문장 여부)
        stack: list[tuple[ast.stmt, int | None, int, bool]] = [
            (stmt, None, 1, i == 0) for i, stmt in reversed(list(enumerate(tree.body)))
        ]
        while stack:
            stmt, parent, depth, first = stack.pop()
            declaration = self.parser.declaration(stmt)

            if declaration is None:
                if self._is_dropped(stmt, parent):
                    continue
                siblings = unit.roots if parent is None else unit.nodes[parent].children
                extraneous = self._extraneous(stmt, _shared_kind(stmt, first), len(siblings))
                if extraneous is None:
                    continue
                if parent is None:
                    unit.extraneous.append(extraneous)
                else:
                    unit.nodes[parent].extraneous.append(extraneous)
                continue

            if depth > self.parser.config.max_depth:
                raise DepthLimitError(
                    ErrorCodes.DEPTH_LIMIT_EXCEEDED,
                    unit=self.filename,
                    line=_first_line(stmt),
                    depth=depth,
                    max_depth=self.parser.config.max_depth,
                )

            kind, call = declaration
            node = self._make_node(stmt, kind, call, parent, depth, len(unit.nodes))
            unit.nodes.append(node)
            self.statements.append(stmt)
            if parent is None:
                unit.roots.append(node.index)
            else:
                unit.nodes[parent].children.append(node.index)

            if kind == NODE_KIND_GROUP:
                body = stmt.body  # type: ignore[attr-defined]
                stack.extend(
                    (child, node.index, depth + 1, i == 0)
                    for i, child in reversed(list(enumerate(body)))
                )

        # 자식 범위가 먼저 확정되어야 부모의 own lines 계산 가능
        for node in reversed(unit.nodes):
            self._resolve_spans_and_body(unit, node)

        return unit

    # =========================================================================
    # Declarations
    # =========================================================================

    def _make_node(
        self,
        stmt: ast.stmt,
        kind: str,
        call: ast.Call,
        parent: int | None,
        depth: int,
        index: int,
    ) -> ParsedNode:
        name_expr: ast.expr | None = call.args[0] if call.args else None
        config: dict[str, Any] = {}
        unresolved: dict[str, str] = {}

        for kw in call.keywords:
            if kw.arg == "name" and name_expr is None:
                name_expr = kw.value
                continue
            if kw.arg is None:
                unresolved["**"] = self._segment(kw.value)
                continue
            ok, value = self._literal(kw.value)
            if ok:
                config[kw.arg] = value
            else:
                unresolved[kw.arg] = self._segment(kw.value)

        for position, arg in enumerate(call.args[1:], start=1):
            ok, value = self._literal(arg)
            if ok and isinstance(value, dict) and all(isinstance(k, str) for k in value):
                for key, item in value.items():
                    config.setdefault(key, item)
            else:
                unresolved[f"${position}"] = self._segment(arg)

        name = ""
        raw_name = ""
        unresolvable = True
        if name_expr is not None:
            raw_name = self._segment(name_expr)
            ok, value = self._literal(name_expr)
            if ok and isinstance(value, str):
                name = value
                unresolvable = False

        function = getattr(stmt, "name", None)
        return ParsedNode(
            index=index,
            kind=kind,
            name=name,
            raw_name=raw_name,
            unresolvable=unresolvable,
            config=config,
            unresolved_config=unresolved,
            parent=parent,
            depth=depth,
            line=_first_line(stmt),
            end_line=stmt.end_lineno or stmt.lineno,
            function=function,
        )

    def _is_dropped(self, stmt: ast.stmt, parent: int | None) -> bool:
        """export 시 다시 생성되는 문장 (pass, 런타임 import)."""
        if isinstance(stmt, ast.Pass):
            return True
        return (
            parent is None
            and isinstance(stmt, ast.ImportFrom)
            and stmt.level == 0
            and stmt.module == self.parser.config.runtime_module
            and all(
                alias.asname is None and alias.name in (SUITE_DECORATOR, CASE_DECORATOR)
                for alias in stmt.names
            )
        )

    def _extraneous(self, stmt: ast.stmt, kind: str, position: int) -> Extraneous | None:
        """
        문장 원문 추출.

        앞 문장과 같은 줄(a = 1; b = 2)이면 이미 포함됐으므로 None.
        헤더와 같은 줄(def g(): x = 1)이면 문장 부분만.
        """
        start = _first_line(stmt)
        end = stmt.end_lineno or stmt.lineno
        if start in self.covered:
            return None

        first = self.lines[start - 1]
        if start == stmt.lineno:
            col = _char_col(first, stmt.col_offset)
        else:
            col = len(_leading_ws(first))
        if first[:col].strip():
            text = ast.get_source_segment(self.text, stmt) or ""
        else:
            indent = _leading_ws(first)
            text = "\n".join(_dedent(line, indent) for line in self.lines[start - 1 : end])
            self.covered.update(range(start, end + 1))
        return Extraneous(line=start, end_line=end, text=text, kind=kind, position=position)

    @staticmethod
    def _literal(expr: ast.expr) -> tuple[bool, Any]:
        try:
            return True, ast.literal_eval(expr)
        except (ValueError, TypeError, SyntaxError, RecursionError, MemoryError):
            return False, None

    def _segment(self, expr: ast.expr) -> str:
        return ast.get_source_segment(self.text, expr) or ""

    # =========================================================================
    # Spans / Body
    # =========================================================================

    def _header_colon(self, stmt: ast.stmt) -> tuple[int, int]:
        """선언 헤더를 끝내는 ':' 위치 (row, col)."""
        row = stmt.lineno
        start = (row, _char_col(self.lines[row - 1], stmt.col_offset))
        depth = 0
        for tok in self.tokens[bisect_left(self.positions, start):]:
            if tok.type != tokenize.OP:
                continue
            if tok.string in _OPENING:
                depth += 1
            elif tok.string in _CLOSING:
                depth -= 1
            elif tok.string == ":" and depth == 0:
                return tok.start
        raise ParseError(ErrorCodes.SYNTAX_ERROR, unit=self.filename, line=row, message="header ':' not found")

    def _extend_end(self, end_line: int, body_width: int) -> int:
        """body 뒤에 이어지는 주석 줄(들여쓰기 >= body) 포함."""
        extended = end_line
        number = end_line + 1
        while number <= len(self.lines):
            line = self.lines[number - 1]
            stripped = line.strip()
            if not stripped:
                number += 1
                continue
            if stripped.startswith("#") and len(_leading_ws(line)) >= body_width:
                extended = number
                number += 1
                continue
            break
        return extended

    def _resolve_spans_and_body(self, unit: ParsedUnit, node: ParsedNode) -> None:
        stmt = self.statements[node.index]
        body: list[ast.stmt] = stmt.body  # type: ignore[attr-defined]
        colon_row, colon_col = self._header_colon(stmt)
        inline = body[0].lineno == colon_row

        if inline:
            body_width = len(_leading_ws(self.lines[node.line - 1])) + 1
        else:
            body_width = len(_leading_ws(self.lines[body[0].lineno - 1]))
        node.end_line = self._extend_end(node.end_line, body_width)

        child_spans = [(unit.nodes[c].line, unit.nodes[c].end_line) for c in node.children]
        own_lines = [
            number
            for number in range(colon_row + 1, node.end_line + 1)
            if not any(start <= number <= end for start, end in child_spans)
        ]
        node.metadata = self.parser.codec.locate(self.lines, own_lines)

        if node.kind == NODE_KIND_REQUEST:
            node.body = self._case_body(node, body, own_lines, colon_row, colon_col, inline)

    def _case_body(
        self,
        node: ParsedNode,
        body: list[ast.stmt],
        own_lines: list[int],
        colon_row: int,
        colon_col: int,
        inline: bool,
    ) -> str | None:
        block = node.metadata.block if node.metadata else None
        excluded = set(block.line_numbers) if block else set()

        if block is not None:
            indent = block.indent
        elif not inline:
            indent = _leading_ws(self.lines[body[0].lineno - 1])
        else:
            indent = ""

        result: list[str] = []
        if inline:
            result.append(self.lines[colon_row - 1][colon_col + 1 :].strip())
        result.extend(
            _dedent(self.lines[number - 1], indent)
            for number in own_lines
            if number not in excluded
        )

        while result and not result[-1].strip():
            result.pop()

        # 주석만 있는 스크립트에 붙은 pass 제거
        if len(body) == 1 and isinstance(body[0], ast.Pass) and result:
            if result[-1].strip() == EMPTY_BODY:
                result.pop()
                while result and not result[-1].strip():
                    result.pop()

        text = "\n".join(result)
        return text if text.strip() else None

    def _scan_placeholders(self, unit: ParsedUnit) -> None:
        for number, line in enumerate(self.lines, start=1):
            keys = THIS_PLACEHOLDER_PATTERN.findall(line)
            if keys:
                unit.warnings.append(
                    WarningLog(
                        code=ErrorCodes.UNEXPANDED_PLACEHOLDER,
                        unit=self.filename,
                        message=f"Unexpanded placeholder(s): {', '.join(keys)}",
                        line=number,
                    )
                )
