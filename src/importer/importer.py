"""
Importer: 파싱된 유닛 + manifest → 새 Workbook.

규칙:
- 매 실행마다 새 Workbook 생성 (기존 트리와 diff/수정 금지)
- 메타데이터 FOUND → 레코드가 구조 필드의 원천
- 선언 이름/config(method, url, timeout, ...)가 레코드보다 우선 (다르면 경고)
- 메타데이터 ABSENT → 기본값 합성 + id 새 발급 + 경고
- 메타데이터 MALFORMED 또는 레코드 필드 위반 → 해당 노드 MetadataError, 하위 트리 제외
- 유닛 순서는 manifest 순서. manifest에 없는 유닛은 파일명 순으로 뒤에 추가 (경고)
- 선언이 아닌 코드(헬퍼, 훅, import)는 레코드의 sharedCode/moduleCode로 보존
- 함수 body가 비어 있으면 메타데이터의 test(파이썬이 아닌 스크립트) 사용
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, ClassVar

from src.core.batch import ItemOutcome, run_batch
from src.core.config import TranscoderConfig
from src.core.ids import generate_node_id, is_valid_node_id
from src.core.logging import complete_run_log, create_run_log, emit_error, emit_warning
from src.core.metadata import BlockStatus
from src.domain.constants import (
    CONFIG_KEY_ALIASES,
    EXECUTION_MODES,
    MODULE_CODE_KEY,
    NODE_KIND_GROUP,
    SHARED_CODE_KEY,
)
from src.domain.errors import (
    ErrorCodes,
    MetadataError,
    ParseError,
    StructuralError,
    TranscoderError,
)
from src.domain.schemas import RunLog, WarningLog
from src.domain.workbook import Node, RequestGroup, Workbook, node_from_dict
from src.parser.source_parser import Extraneous, ParsedNode, ParsedUnit, SourceParser
from src.project.manifest import Manifest
from src.services.validate import WorkbookValidator

logger = logging.getLogger(__name__)

# group에도 적용되는 config 키 (나머지는 request 전용)
GROUP_CONFIG_TARGETS = frozenset({"runs"})


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class UnitOutcome:
    """유닛 하나의 import 결과."""
    filename: str
    status: str = "imported"  # imported, failed, cancelled
    error: TranscoderError | None = None
    node_errors: list[MetadataError] = field(default_factory=list)
    warnings: list[WarningLog] = field(default_factory=list)
    nodes: list[Node] = field(default_factory=list)
    metadata_blocks: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "status": self.status,
            "error": self.error.to_dict() if self.error else None,
            "node_errors": [e.to_dict() for e in self.node_errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "nodes": len(self.nodes),
            "metadata_blocks": self.metadata_blocks,
        }


@dataclass
class ImportStatistics:
    """
    import 집계.

    files_scanned: 파싱까지 간 유닛 수 (읽기 실패/누락/취소 제외)
    files_with_metadata: 메타데이터 블록이 하나 이상 있는 유닛 수
    """
    UNREAD_CODES: ClassVar[tuple[str, ...]] = (
        ErrorCodes.MANIFEST_UNIT_MISSING,
        ErrorCodes.INVALID_ENCODING,
    )

    files_scanned: int = 0
    files_with_metadata: int = 0
    requests_reconstructed: int = 0
    groups_reconstructed: int = 0

    @classmethod
    def collect(cls, units: list[UnitOutcome], workbook: Workbook) -> "ImportStatistics":
        stats = cls()
        for unit in units:
            if unit.status == "cancelled":
                continue
            if unit.error is not None and unit.error.code in cls.UNREAD_CODES:
                continue
            stats.files_scanned += 1
            if unit.metadata_blocks:
                stats.files_with_metadata += 1
        for _, _, node in workbook.iter_nodes():
            if isinstance(node, RequestGroup):
                stats.groups_reconstructed += 1
            else:
                stats.requests_reconstructed += 1
        return stats

    def to_dict(self) -> dict[str, int]:
        return {
            "files_scanned": self.files_scanned,
            "files_with_metadata": self.files_with_metadata,
            "requests_reconstructed": self.requests_reconstructed,
            "groups_reconstructed": self.groups_reconstructed,
        }


@dataclass
class ImportResult:
    """import 전체 결과."""
    workbook: Workbook
    units: list[UnitOutcome]
    errors: list[TranscoderError]
    run_log: RunLog
    success: bool
    statistics: ImportStatistics = field(default_factory=ImportStatistics)

    @property
    def warnings(self) -> list[WarningLog]:
        return self.run_log.warnings


# =============================================================================
# Importer
# =============================================================================


class Importer:
    """
    소스 유닛 → Workbook.

    Usage:
        importer = Importer(load_config())
        result = importer.import_units(manifest, {"test_00_crud.py": text})
        if result.success:
            save(result.workbook)
    """

    def __init__(self, config: TranscoderConfig | None = None) -> None:
        self.config = config or TranscoderConfig()
        self.parser = SourceParser(self.config)
        self.validator = WorkbookValidator(self.config.max_depth)

    def import_units(
        self,
        manifest: Manifest | None,
        sources: dict[str, str],
        cancel: threading.Event | None = None,
        unreadable: dict[str, TranscoderError] | None = None,
    ) -> ImportResult:
        """
        유닛 텍스트 묶음 import.

        Args:
            manifest: 유닛 순서 + 워크북 섹션 (None이면 파일명 순 + 기본 섹션)
            sources: 파일명 → 유닛 텍스트
            cancel: 설정 시 남은 유닛 디스패치 중단
            unreadable: 읽기 단계에서 실패한 유닛 → 에러 (해당 유닛만 실패 처리)
        """
        run_log = create_run_log("import")
        outcomes: list[UnitOutcome] = []
        errors: list[TranscoderError] = []
        unreadable = unreadable or {}

        listed = manifest.files() if manifest is not None else []
        known = set(sources) | set(unreadable)
        unlisted = sorted(name for name in known if name not in set(listed))

        if manifest is None or not manifest.workbook:
            emit_warning(
                run_log,
                ErrorCodes.WORKBOOK_SECTIONS_MISSING,
                "manifest has no workbook sections; using empty defaults",
            )
        if manifest is not None:
            for name in unlisted:
                emit_warning(
                    run_log,
                    ErrorCodes.UNIT_NOT_IN_MANIFEST,
                    "unit not listed in manifest; appended after listed units",
                    unit=name,
                )

        order = [name for name in listed] + unlisted
        batch = run_batch(
            order,
            lambda name: self._import_unit(name, sources.get(name), unreadable.get(name)),
            max_workers=self.config.max_workers,
            cancel=cancel,
        )

        requests: list[Node] = []
        for item in batch.outcomes:
            outcome = self._to_unit_outcome(item)
            outcomes.append(outcome)

            for warning in outcome.warnings:
                emit_warning(
                    run_log,
                    warning.code,
                    warning.message,
                    unit=warning.unit,
                    node_path=warning.node_path,
                    line=warning.line,
                )
            if outcome.error is not None:
                errors.append(outcome.error)
                emit_error(run_log, outcome.error, unit=outcome.filename)
            for node_error in outcome.node_errors:
                errors.append(node_error)
                emit_error(run_log, node_error)
                # 배치 리포트에도 남김 (형제 노드는 계속 import)
                emit_warning(
                    run_log,
                    node_error.code,
                    "node dropped: metadata error",
                    unit=outcome.filename,
                    node_path=str(node_error.context.get("node_path", "")),
                    line=node_error.context.get("line"),
                )
            requests.extend(outcome.nodes)

        sections = manifest.workbook if manifest is not None else {}
        workbook = Workbook.from_sections(sections, requests)
        self._warn_duplicate_ids(workbook, run_log)

        success = not errors and not batch.cancelled
        complete_run_log(run_log, success)
        statistics = ImportStatistics.collect(outcomes, workbook)
        logger.info(
            f"Imported {len(requests)} top-level node(s) from {len(order)} unit(s): "
            f"{len(errors)} error(s), {len(run_log.warnings)} warning(s)"
        )
        return ImportResult(
            workbook=workbook,
            units=outcomes,
            errors=errors,
            run_log=run_log,
            success=success,
            statistics=statistics,
        )

    @staticmethod
    def _to_unit_outcome(item: ItemOutcome[UnitOutcome]) -> UnitOutcome:
        if item.cancelled:
            return UnitOutcome(filename=item.key, status="cancelled")
        if item.error is not None:
            return UnitOutcome(filename=item.key, status="failed", error=item.error)
        if item.value is None:
            raise RuntimeError(f"unit {item.key!r} finished without an outcome")
        return item.value

    @staticmethod
    def _warn_duplicate_ids(workbook: Workbook, run_log: RunLog) -> None:
        seen: dict[str, str] = {}
        for path, _, node in workbook.iter_nodes():
            if node.id in seen:
                emit_warning(
                    run_log,
                    ErrorCodes.DUPLICATE_ID,
                    f"id {node.id!r} already used at {seen[node.id]}",
                    node_path=path,
                )
            else:
                seen[node.id] = path

    # =========================================================================
    # Unit
    # =========================================================================

    def _import_unit(
        self,
        filename: str,
        text: str | None,
        read_error: TranscoderError | None = None,
    ) -> UnitOutcome:
        """
        유닛 하나 파싱 + 노드 구성 (워커 스레드에서 실행).

        Raises:
            ParseError: 구문 오류 / 깊이 초과 / 디코딩 실패
            StructuralError: manifest에 있으나 소스 없음
        """
        if read_error is not None:
            raise read_error
        if text is None:
            raise StructuralError(ErrorCodes.MANIFEST_UNIT_MISSING, unit=filename)

        result = self.parser.parse(text, filename)
        if result.unit is None:
            raise result.error or ParseError(ErrorCodes.SYNTAX_ERROR, unit=filename)
        return self.build_unit(result.unit)

    def build_unit(self, unit: ParsedUnit) -> UnitOutcome:
        """ParsedUnit → 최상위 노드 목록 (부모 index < 자식 index 전제)."""
        outcome = UnitOutcome(filename=unit.filename)
        outcome.warnings.extend(unit.warnings)
        outcome.metadata_blocks = sum(
            1 for node in unit.nodes if node.metadata is not None and node.metadata.found
        )
        for extraneous in unit.extraneous:
            if extraneous.warns:
                outcome.warnings.append(self._extraneous_warning(unit.filename, "", extraneous))

        paths: dict[int, str] = {}
        records: dict[int, dict[str, Any]] = {}
        dropped: set[int] = set()

        # 위→아래: 레코드 확정, 에러 노드는 하위 트리째 제외
        for node in unit.nodes:
            if node.parent is not None and node.parent in dropped:
                dropped.add(node.index)
                continue

            display = node.name or node.raw_name or node.function or "?"
            parent_path = paths.get(node.parent, "") if node.parent is not None else ""
            path = f"{parent_path}/{display}" if parent_path else display
            paths[node.index] = path

            for extraneous in node.extraneous:
                if extraneous.warns:
                    outcome.warnings.append(self._extraneous_warning(unit.filename, path, extraneous))

            try:
                records[node.index] = self._resolve_record(unit.filename, node, path, outcome)
            except MetadataError as e:
                outcome.node_errors.append(e)
                dropped.add(node.index)
                continue
            _attach_shared_code(records[node.index], SHARED_CODE_KEY, node.extraneous)

        # 모듈 최상위 코드는 첫 최상위 노드가 보관 (0: 선언 앞, 1: 선언 뒤)
        if unit.extraneous and unit.roots and unit.roots[0] in records:
            module_code = [
                Extraneous(e.line, e.end_line, e.text, e.kind, min(e.position, 1))
                for e in unit.extraneous
            ]
            _attach_shared_code(records[unit.roots[0]], MODULE_CODE_KEY, module_code)

        # 아래→위: 노드 생성, 자식 연결
        built: dict[int, Node] = {}
        for node in reversed(unit.nodes):
            if node.index in dropped:
                continue
            model = node_from_dict(records[node.index])
            if isinstance(model, RequestGroup):
                model.children = [built[c] for c in node.children if c in built]
            built[node.index] = model

        outcome.nodes = [built[r] for r in unit.roots if r in built]
        return outcome

    # =========================================================================
    # Node Record
    # =========================================================================

    def _resolve_record(
        self,
        filename: str,
        node: ParsedNode,
        path: str,
        outcome: UnitOutcome,
    ) -> dict[str, Any]:
        """
        노드 하나의 최종 레코드.

        Raises:
            MetadataError: 블록 손상 또는 필드 위반
        """
        metadata = node.metadata
        if metadata is not None and metadata.status == BlockStatus.MALFORMED:
            context = dict(metadata.error.context) if metadata.error else {}
            raise MetadataError(
                ErrorCodes.METADATA_MALFORMED,
                unit=filename,
                node_path=path,
                **context,
            )

        found = metadata is not None and metadata.status == BlockStatus.FOUND
        if found:
            record = dict(metadata.record or {})
        else:
            record = self._default_record(node)
            outcome.warnings.append(
                WarningLog(
                    code=ErrorCodes.METADATA_MISSING,
                    unit=filename,
                    node_path=path,
                    message=f"no metadata block; generated id {record['id']}",
                    line=node.line,
                )
            )

        # 메타데이터의 test는 함수 body로 옮길 수 없던 스크립트
        stored_script = record.pop("test", None)
        for key in ("children", "testScript", SHARED_CODE_KEY, MODULE_CODE_KEY):
            record.pop(key, None)

        # 이름: 선언 리터럴 우선
        if not node.unresolvable:
            record["name"] = node.name
        else:
            outcome.warnings.append(
                WarningLog(
                    code=ErrorCodes.UNRESOLVABLE_NAME,
                    unit=filename,
                    node_path=path,
                    message=f"name is not a string literal: {node.raw_name or '<missing>'}",
                    line=node.line,
                )
            )
            if not isinstance(record.get("name"), str) or not record["name"]:
                record["name"] = node.raw_name or node.function or ""

        self._apply_config(filename, node, path, record, found, outcome)

        if node.kind == NODE_KIND_GROUP:
            record["children"] = []
        elif node.body is not None:
            if isinstance(stored_script, str) and stored_script != node.body:
                outcome.warnings.append(
                    WarningLog(
                        code=ErrorCodes.CONFIG_OVERRIDES_METADATA,
                        unit=filename,
                        node_path=path,
                        message="test: stored script replaced by function body",
                        line=node.line,
                    )
                )
            record["test"] = node.body
        elif isinstance(stored_script, str):
            record["test"] = stored_script

        violations = self.validator.validate_node(record, path)
        if violations:
            raise MetadataError(
                ErrorCodes.METADATA_INVALID_FIELDS,
                unit=filename,
                node_path=path,
                line=node.line,
                violations=[v.to_dict() for v in violations],
            )
        return record

    @staticmethod
    def _default_record(node: ParsedNode) -> dict[str, Any]:
        declared_id = node.config.get("id")
        node_id = declared_id if is_valid_node_id(declared_id) else generate_node_id()
        if node.kind == NODE_KIND_GROUP:
            return {"id": node_id, "name": node.name, "execution": EXECUTION_MODES[0]}
        return {"id": node_id, "name": node.name, "url": "", "method": "GET"}

    @staticmethod
    def _apply_config(
        filename: str,
        node: ParsedNode,
        path: str,
        record: dict[str, Any],
        found: bool,
        outcome: UnitOutcome,
    ) -> None:
        for key, value in node.config.items():
            target = CONFIG_KEY_ALIASES.get(key)
            if target is None or target == "id":
                continue
            if node.kind == NODE_KIND_GROUP and target not in GROUP_CONFIG_TARGETS:
                continue
            if found and target in record and record[target] != value:
                outcome.warnings.append(
                    WarningLog(
                        code=ErrorCodes.CONFIG_OVERRIDES_METADATA,
                        unit=filename,
                        node_path=path,
                        message=f"{target}: {record[target]!r} → {value!r}",
                        line=node.line,
                    )
                )
            record[target] = value

        for key, raw in node.unresolved_config.items():
            outcome.warnings.append(
                WarningLog(
                    code=ErrorCodes.UNRESOLVED_CONFIG,
                    unit=filename,
                    node_path=path,
                    message=f"{key}={raw} is not a literal; metadata value kept",
                    line=node.line,
                )
            )

    @staticmethod
    def _extraneous_warning(filename: str, path: str, extraneous: Extraneous) -> WarningLog:
        return WarningLog(
            code=ErrorCodes.EXTRANEOUS_CONTENT,
            unit=filename,
            node_path=path,
            message=f"{extraneous.kind} code preserved as shared code",
            line=extraneous.line,
        )


def _attach_shared_code(record: dict[str, Any], key: str, code: list[Extraneous]) -> None:
    if code:
        record[key] = [e.to_record() for e in code]
