"""
Services layer: 파이프라인 조합.

- validate: 워크북 구조 검증 (위반 목록)
- transcode: load/export/import 파이프라인 (from src.services.transcode import ...)
"""

from .validate import Violation, WorkbookValidator, raise_for_violations, validate_workbook

__all__ = [
    "Violation",
    "WorkbookValidator",
    "validate_workbook",
    "raise_for_violations",
]
