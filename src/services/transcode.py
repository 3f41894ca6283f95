"""
Transcode Service: 파일 단위 파이프라인.

파이프라인 (호출자가 정적으로 조합):
- load:   JSON 파싱 → 구조 검증 → 모델 생성
- export: load → Exporter → 프로젝트 디렉터리 쓰기
- import: 프로젝트 읽기 → [템플릿 치환] → 파싱 → Importer → 워크북 JSON 쓰기

규칙:
- 예상 가능한 실패는 결과 객체로 반환 (LoadResult, ExportOutcome, ImportResult)
- 여러 파일은 run_batch로 처리, 입력 순서대로 결과
- OSError는 그대로 전파
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.core.batch import BatchResult, run_batch
from src.core.config import TranscoderConfig
from src.core.fileio import atomic_write_json, read_text
from src.core.logging import complete_run_log, create_run_log, emit_error
from src.domain.errors import (
    ErrorCodes,
    ParseError,
    StructuralError,
    TranscoderError,
    encoding_error,
)
from src.domain.schemas import RunLog
from src.domain.workbook import Workbook
from src.exporter.exporter import Exporter, ExportResult
from src.importer.importer import Importer, ImportResult
from src.parser.expansion import expand_placeholders
from src.project.layout import read_project, write_project
from src.services.validate import Violation, WorkbookValidator, raise_for_violations

logger = logging.getLogger(__name__)


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class LoadResult:
    """워크북 로드 결과."""
    source: str
    workbook: Workbook | None = None
    violations: list[Violation] = field(default_factory=list)
    error: TranscoderError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ExportOutcome:
    """워크북 하나의 export 결과."""
    source: str
    output_dir: Path
    result: ExportResult | None = None
    files: list[Path] = field(default_factory=list)
    error: TranscoderError | None = None
    run_log: RunLog | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# =============================================================================
# Service
# =============================================================================


class TranscodeService:
    """
    export/import/validate 파이프라인.

    Usage:
        service = TranscodeService(load_config())
        outcome = service.export_file(Path("demo.apicize"), Path("out/demo"))
        result = service.import_project(Path("out/demo"))
    """

    def __init__(self, config: TranscoderConfig | None = None) -> None:
        self.config = config or TranscoderConfig()
        self.validator = WorkbookValidator(self.config.max_depth)
        self.exporter = Exporter(self.config)
        self.importer = Importer(self.config)

    # =========================================================================
    # Load / Validate
    # =========================================================================

    def parse_workbook_text(self, text: str, source: str = "<workbook>") -> LoadResult:
        """
        JSON 텍스트 → LoadResult (예외 없음).

        잘못된 JSON → ParseError(INVALID_JSON), 구조 위반 → StructuralError.
        """
        try:
            data: Any = json.loads(text)
        except json.JSONDecodeError as e:
            error = ParseError(
                ErrorCodes.INVALID_JSON,
                unit=source,
                line=e.lineno,
                column=e.colno,
                message=e.msg,
            )
            return LoadResult(source=source, error=error)
        except RecursionError:
            error = ParseError(ErrorCodes.INVALID_JSON, unit=source, message="nesting too deep")
            return LoadResult(source=source, error=error)

        violations = self.validator.validate(data)
        try:
            raise_for_violations(violations)
        except StructuralError as e:
            return LoadResult(source=source, violations=violations, error=e)

        return LoadResult(source=source, workbook=Workbook.from_dict(data))

    def load_workbook(self, path: Path) -> LoadResult:
        """
        파일 읽기 + parse_workbook_text (OSError는 전파).

        UTF-8이 아니면 ParseError(INVALID_ENCODING) 결과 (배치의 다른 파일은 계속).
        """
        try:
            text = read_text(path)
        except UnicodeDecodeError as e:
            return LoadResult(source=path.name, error=encoding_error(e, path.name))
        return self.parse_workbook_text(text, source=path.name)

    def validate_files(
        self,
        paths: list[Path],
        cancel: threading.Event | None = None,
    ) -> BatchResult[LoadResult]:
        """여러 워크북 검증 (입력 순서대로 결과)."""
        return run_batch(
            paths,
            self.load_workbook,
            max_workers=self.config.max_workers,
            cancel=cancel,
            key=lambda p: str(p),
        )

    # =========================================================================
    # Export
    # =========================================================================

    def export_workbook(self, workbook: Workbook, output_dir: Path, source: str | None = None) -> ExportOutcome:
        """모델 → 프로젝트 디렉터리."""
        run_log = create_run_log("export")
        outcome = ExportOutcome(source=source or "<workbook>", output_dir=output_dir, run_log=run_log)
        try:
            outcome.result = self.exporter.export(workbook, source=source)
        except StructuralError as e:
            outcome.error = e
            emit_error(run_log, e, source=outcome.source)
            complete_run_log(run_log, success=False)
            return outcome

        outcome.files = write_project(outcome.result, output_dir)
        complete_run_log(run_log, success=True)
        return outcome

    def export_file(self, path: Path, output_dir: Path) -> ExportOutcome:
        """워크북 파일 → 프로젝트 디렉터리."""
        loaded = self.load_workbook(path)
        if loaded.error is not None or loaded.workbook is None:
            run_log = create_run_log("export")
            if loaded.error is not None:
                emit_error(run_log, loaded.error, source=path.name)
            complete_run_log(run_log, success=False)
            return ExportOutcome(source=path.name, output_dir=output_dir, error=loaded.error, run_log=run_log)
        return self.export_workbook(loaded.workbook, output_dir, source=path.name)

    def export_files(
        self,
        paths: list[Path],
        output_root: Path,
        cancel: threading.Event | None = None,
    ) -> BatchResult[ExportOutcome]:
        """
        여러 워크북 export. 각 워크북은 output_root/<stem>/ 에 기록.

        개별 실패는 ExportOutcome.error로 남고 나머지는 계속 진행.
        """
        return run_batch(
            paths,
            lambda p: self.export_file(p, output_root / p.stem),
            max_workers=self.config.max_workers,
            cancel=cancel,
            key=lambda p: str(p),
        )

    # =========================================================================
    # Import
    # =========================================================================

    def import_sources(
        self,
        manifest: Any,
        sources: dict[str, str],
        expand: dict[str, Any] | None = None,
        cancel: threading.Event | None = None,
        unreadable: dict[str, TranscoderError] | None = None,
    ) -> ImportResult:
        """
        유닛 텍스트 → ImportResult.

        Args:
            manifest: Manifest 또는 None
            sources: 파일명 → 텍스트
            expand: 주면 파싱 전에 {{this.key}} 치환
            unreadable: 읽지 못한 유닛 → 에러 (해당 유닛만 실패)
        """
        if expand is not None:
            expanded: dict[str, str] = {}
            for name, text in sources.items():
                result = expand_placeholders(text, expand)
                if result.missing:
                    logger.warning(f"{name}: no value for placeholder(s) {result.missing}")
                expanded[name] = result.text
            sources = expanded
        return self.importer.import_units(manifest, sources, cancel=cancel, unreadable=unreadable)

    def import_project(
        self,
        project_dir: Path,
        expand: dict[str, Any] | None = None,
        cancel: threading.Event | None = None,
    ) -> ImportResult:
        """프로젝트 디렉터리 → ImportResult (manifest 파싱 실패는 StructuralError로 전파)."""
        project = read_project(project_dir, self.config)
        return self.import_sources(
            project.manifest,
            project.sources,
            expand=expand,
            cancel=cancel,
            unreadable=project.unreadable,
        )

    @staticmethod
    def save_workbook(workbook: Workbook, path: Path) -> None:
        """워크북 JSON 저장 (원자적)."""
        atomic_write_json(path, workbook.to_dict())
        logger.info(f"Saved workbook: {path}")
