"""
ID 생성: node id, run id, 생성 코드 식별자

규칙:
- 워크북 node id는 메타데이터에서만 복원 (export 시 변경 금지)
- 메타데이터 없는 노드만 새 id 발급
- run_id는 실행마다 새로 발급
"""

import keyword
import re
import uuid
from datetime import UTC, datetime

from src.domain.constants import (
    CASE_PARAMETERS,
    CASE_VOCABULARY,
    ID_PATTERN,
    RUN_ID_PREFIX,
    SUITE_VOCABULARY,
)

_ID_RE = re.compile(ID_PATTERN)

# 생성 코드에서 함수 이름으로 쓰면 런타임 어휘를 가리는 이름들
RESERVED_IDENTIFIERS = frozenset(SUITE_VOCABULARY + CASE_VOCABULARY + CASE_PARAMETERS)

IDENTIFIER_MAX_LENGTH = 40
FALLBACK_IDENTIFIER = "unnamed"


def generate_node_id() -> str:
    """
    메타데이터 없는 노드용 새 id.

    포맷: UUID v4 (하이픈 포함)
    """
    return str(uuid.uuid4())


def generate_run_id() -> str:
    """
    Run ID 생성.

    고유성 보장: UUID v4
    포맷: RUN-{timestamp}-{uuid[:8]}

    Returns:
        run_id 문자열
    """
    now = datetime.now(UTC)
    timestamp = now.strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]

    return f"{RUN_ID_PREFIX}{timestamp}-{unique}"


def is_valid_node_id(value: object) -> bool:
    """워크북 id 형식 검사 (uuid 또는 사람이 붙인 id)."""
    return isinstance(value, str) and bool(_ID_RE.match(value))


def to_identifier(name: str) -> str:
    """
    표시 이름 → Python 식별자.

    - 영숫자 외 문자 → 밑줄 (비ASCII 제거)
    - 소문자, 연속 밑줄 정리
    - 숫자로 시작하면 "n_" 접두
    - 키워드/런타임 어휘와 겹치면 "_" 접미
    - 최대 40자

    Examples:
        "CRUD Operations" → "crud_operations"
        "Test" → "test_"
        "" → "unnamed"
    """
    sanitized = _sanitize_for_id(name).lower()
    if not sanitized:
        return FALLBACK_IDENTIFIER

    if sanitized[0].isdigit():
        sanitized = f"n_{sanitized}"

    sanitized = sanitized[:IDENTIFIER_MAX_LENGTH].rstrip("_")

    if keyword.iskeyword(sanitized) or keyword.issoftkeyword(sanitized):
        sanitized += "_"
    elif sanitized in RESERVED_IDENTIFIERS:
        sanitized += "_"
    return sanitized


def _sanitize_for_id(value: str) -> str:
    """
    식별자/파일명에 사용할 수 있도록 문자열 정리.

    - 공백/구두점 → 밑줄
    - 비ASCII 제거
    - 앞뒤 밑줄 제거
    """
    # 허용 문자: ASCII 알파벳, 숫자만 (파일명 안전)
    sanitized = ""
    for c in value:
        if c.isascii() and c.isalnum():
            sanitized += c
        elif c.isascii():
            sanitized += "_"
        # 그 외 문자는 무시 (한글 등 비ASCII 포함)

    # 연속 밑줄 정리
    while "__" in sanitized:
        sanitized = sanitized.replace("__", "_")

    return sanitized.strip("_")
