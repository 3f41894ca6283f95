"""
test_logging.py - RunLog 관리 테스트

DoD:
- run log 스키마대로 저장
- 경고/에러 이벤트 기록 (필수 컨텍스트 포함)
"""

import logging
from datetime import UTC, datetime
from pathlib import Path

from src.core.logging import (
    complete_run_log,
    create_run_log,
    emit_error,
    emit_warning,
    load_run_log,
    save_run_log,
)
from src.domain.errors import ErrorCodes, ParseError

# =============================================================================
# create_run_log 테스트
# =============================================================================


class TestCreateRunLog:
    """create_run_log 함수 테스트."""

    def test_creates_with_operation(self):
        run_log = create_run_log("export")

        assert run_log.operation == "export"
        assert run_log.run_id.startswith("RUN-")
        assert run_log.result == "pending"

    def test_has_started_at(self):
        before = datetime.now(UTC)
        run_log = create_run_log("import")
        after = datetime.now(UTC)

        started = datetime.fromisoformat(run_log.started_at)
        assert before <= started <= after

    def test_empty_warnings_and_errors(self):
        run_log = create_run_log("import")

        assert run_log.warnings == []
        assert run_log.errors == []


# =============================================================================
# 이벤트 기록
# =============================================================================


class TestEmitWarning:
    """emit_warning 함수 테스트."""

    def test_records_required_context(self):
        run_log = create_run_log("import")

        warning = emit_warning(
            run_log,
            ErrorCodes.METADATA_MISSING,
            "no metadata block",
            unit="test_00_crud.py",
            node_path="CRUD/Create",
            line=12,
        )

        assert run_log.warnings == [warning]
        assert warning.to_dict() == {
            "level": "warning",
            "code": "METADATA_MISSING",
            "unit": "test_00_crud.py",
            "node_path": "CRUD/Create",
            "message": "no metadata block",
            "line": 12,
        }

    def test_also_logged(self, caplog):
        run_log = create_run_log("import")

        with caplog.at_level(logging.WARNING, logger="src.core.logging"):
            emit_warning(run_log, ErrorCodes.EXTRANEOUS_CONTENT, "stray code", unit="u.py")

        assert "EXTRANEOUS_CONTENT" in caplog.text


class TestEmitError:
    """emit_error 함수 테스트."""

    def test_records_error_dict_with_context(self):
        run_log = create_run_log("import")
        error = ParseError(ErrorCodes.SYNTAX_ERROR, line=3)

        emit_error(run_log, error, unit="test_01.py")

        assert run_log.errors == [
            {"kind": "parse", "code": "SYNTAX_ERROR", "line": 3, "unit": "test_01.py"}
        ]


# =============================================================================
# 완료/저장
# =============================================================================


class TestCompleteAndSave:
    """complete_run_log / save_run_log / load_run_log 테스트."""

    def test_complete_success(self):
        run_log = create_run_log("export")

        complete_run_log(run_log, success=True)

        assert run_log.result == "success"
        assert run_log.finished_at is not None

    def test_complete_failure(self):
        run_log = create_run_log("export")

        complete_run_log(run_log, success=False)

        assert run_log.result == "failed"

    def test_save_and_load(self, tmp_path: Path):
        run_log = create_run_log("import")
        emit_warning(run_log, ErrorCodes.DUPLICATE_ID, "dup", node_path="requests[1]")
        complete_run_log(run_log, success=True)

        path = save_run_log(run_log, tmp_path / "logs")
        loaded = load_run_log(path)

        assert path.name == f"run_{run_log.run_id}.json"
        assert loaded == run_log.to_dict()
        assert loaded["warnings"][0]["code"] == "DUPLICATE_ID"
