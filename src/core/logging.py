"""
Run logging: run log 생성, 경고/에러 이벤트, 저장

규칙:
- 경고 필수 컨텍스트: level, code, unit, node_path, message
- 에러는 TranscoderError.to_dict() 형태로 기록
- 저장은 원자적 JSON 쓰기
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.core.fileio import atomic_write_json
from src.core.ids import generate_run_id
from src.domain.errors import TranscoderError
from src.domain.schemas import RunLog, WarningLog

logger = logging.getLogger(__name__)

# =============================================================================
# Run Log Management
# =============================================================================


def create_run_log(operation: str) -> RunLog:
    """
    새 RunLog 생성.

    Args:
        operation: export, import, validate, roundtrip

    Returns:
        초기화된 RunLog
    """
    now = datetime.now(UTC).isoformat()
    return RunLog(
        run_id=generate_run_id(),
        operation=operation,
        started_at=now,
        result="pending",
    )


def emit_warning(
    run_log: RunLog,
    code: str,
    message: str,
    unit: str = "",
    node_path: str = "",
    line: int | None = None,
) -> WarningLog:
    """
    경고 이벤트 기록 (stdlib logger에도 남김).

    Args:
        run_log: RunLog 인스턴스
        code: 경고 코드 (ErrorCodes)
        message: 경고 메시지
        unit: 소스 유닛 파일명
        node_path: 노드 경로 (예: "CRUD Operations/Create")
        line: 1-based 줄 번호
    """
    warning = WarningLog(
        level="warning",
        code=code,
        unit=unit,
        node_path=node_path,
        message=message,
        line=line,
    )
    run_log.warnings.append(warning)

    location = f"{unit}:{line}" if line is not None else unit
    logger.warning(f"[{code}] {location} {node_path}: {message}")
    return warning


def emit_error(run_log: RunLog, error: TranscoderError, **context: Any) -> None:
    """
    에러 이벤트 기록.

    Args:
        run_log: RunLog 인스턴스
        error: 발생한 에러
        **context: 추가 컨텍스트 (unit, node_path 등)
    """
    entry = error.to_dict()
    entry.update(context)
    run_log.errors.append(entry)
    logger.error(f"{error} {context}" if context else str(error))


def complete_run_log(run_log: RunLog, success: bool) -> None:
    """RunLog 완료 처리."""
    run_log.finished_at = datetime.now(UTC).isoformat()
    run_log.result = "success" if success else "failed"


def save_run_log(run_log: RunLog, logs_dir: Path) -> Path:
    """
    RunLog를 파일로 저장.

    Args:
        run_log: RunLog 인스턴스
        logs_dir: 로그 디렉터리 경로

    Returns:
        저장된 파일 경로
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"run_{run_log.run_id}.json"
    atomic_write_json(log_path, run_log.to_dict())
    return log_path


def load_run_log(log_path: Path) -> dict[str, Any]:
    """RunLog 파일 로드."""
    data: dict[str, Any] = json.loads(log_path.read_text(encoding="utf-8"))
    return data
