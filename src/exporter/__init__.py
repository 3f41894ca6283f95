"""
Exporter: Workbook → 생성 테스트 프로젝트.

- exporter: 노드 트리 → 데코레이터 선언 + 메타데이터 블록
- templates/unit.py.j2: 유닛 파일 프레임 (Jinja2)
"""

from .exporter import ExportResult, Exporter, SourceUnit, sibling_identifiers, unit_filename

__all__ = [
    "Exporter",
    "ExportResult",
    "SourceUnit",
    "sibling_identifiers",
    "unit_filename",
]
