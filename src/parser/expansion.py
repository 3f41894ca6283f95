"""
Template expansion: {{this.key}} 치환 (파싱 전 선택 단계).

규칙:
- {{this.key}} / {{ this.a.b }} 형태만 치환
- 워크북 변수 ({{baseUrl}} 등)는 그대로 둠 (런타임 치환 대상)
- 값이 str이면 그대로, 그 외는 Python 리터럴(repr)로
- 모르는 키는 그대로 두고 missing에 기록
"""

import re
from dataclasses import dataclass, field
from typing import Any

THIS_PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*this\.([\w.]+)\s*\}\}")

_MISSING = object()


@dataclass
class ExpansionResult:
    """치환 결과."""
    text: str
    replaced: int = 0
    missing: list[str] = field(default_factory=list)


def detect_placeholders(text: str) -> list[str]:
    """
    텍스트에서 {{this.*}} 키 목록 추출 (등장 순서).

    Examples:
        >>> detect_placeholders("timeout={{this.timeout}}")
        ['timeout']
    """
    return THIS_PLACEHOLDER_PATTERN.findall(text)


def has_placeholders(text: str) -> bool:
    return bool(THIS_PLACEHOLDER_PATTERN.search(text))


def _lookup(values: dict[str, Any], dotted: str) -> Any:
    current: Any = values
    for part in dotted.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return _MISSING
    return current


def expand_placeholders(text: str, values: dict[str, Any]) -> ExpansionResult:
    """
    {{this.key}} → values[key].

    Args:
        text: 유닛 소스
        values: 치환 값 (보통 노드 레코드)

    Returns:
        ExpansionResult
    """
    result = ExpansionResult(text=text)

    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        value = _lookup(values, key)
        if value is _MISSING:
            if key not in result.missing:
                result.missing.append(key)
            return match.group(0)
        result.replaced += 1
        return value if isinstance(value, str) else repr(value)

    result.text = THIS_PLACEHOLDER_PATTERN.sub(replace, text)
    return result
