"""
Report schemas for the transcoder.

export/import/validate 실행 결과를 남기는 로그 스키마.
워크북 자체의 모델은 workbook.py 참조.
"""

from dataclasses import dataclass, field
from typing import Any

# =============================================================================
# Logging Schemas
# =============================================================================


@dataclass
class WarningLog:
    """
    경고 로그.

    경고 필수 컨텍스트: level, code, unit, node_path, message
    """
    level: str = "warning"
    code: str = ""
    unit: str = ""  # 소스 유닛 파일명 (없으면 "")
    node_path: str = ""  # 예: "CRUD Operations/Create"
    message: str = ""
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "unit": self.unit,
            "node_path": self.node_path,
            "message": self.message,
            "line": self.line,
        }


@dataclass
class RunLog:
    """
    실행 로그.

    export/import/validate 단위 실행 결과.
    """
    run_id: str
    operation: str  # export, import, validate, roundtrip
    started_at: str  # ISO 8601
    finished_at: str | None = None
    result: str = "pending"  # pending, success, failed

    warnings: list[WarningLog] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "operation": self.operation,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "result": self.result,
            "warnings": [w.to_dict() for w in self.warnings],
            "errors": list(self.errors),
        }
