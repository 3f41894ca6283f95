"""Importer: 파싱된 소스 유닛 → 새 Workbook."""

from .importer import ImportResult, Importer, UnitOutcome

__all__ = ["Importer", "ImportResult", "UnitOutcome"]
