"""
Parser: 소스 유닛 → 노드 arena.

- source_parser: ast + tokenize 기반 선언 인식
- expansion: {{this.*}} 치환 (선택 단계, 파싱 전)
"""

from .expansion import ExpansionResult, detect_placeholders, expand_placeholders
from .source_parser import (
    Extraneous,
    ParsedNode,
    ParsedUnit,
    ParseResult,
    SourceParser,
)

__all__ = [
    "SourceParser",
    "ParseResult",
    "ParsedUnit",
    "ParsedNode",
    "Extraneous",
    "ExpansionResult",
    "expand_placeholders",
    "detect_placeholders",
]
