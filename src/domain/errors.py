"""
Error definitions for the transcoder.

규칙:
- 조용한 실패 금지 → 에러 코드가 있는 TranscoderError로 명시
- 예상 가능한 실패(구조/구문/메타데이터)는 결과 객체에 담아 반환
- I/O 에러(OSError)는 감싸지 않고 그대로 전파
"""

from typing import Any


class TranscoderError(Exception):
    """
    트랜스코더 에러 기본 클래스.

    Usage:
        raise ParseError(ErrorCodes.SYNTAX_ERROR, unit="test_00.py", line=3)
    """

    kind = "internal"

    def __init__(self, code: str, **context: Any) -> None:
        self.code = code
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "kind": self.kind,
            "code": self.code,
            **self.context,
        }


class StructuralError(TranscoderError):
    """워크북이 구조 규칙을 위반. context["violations"]에 전체 목록."""

    kind = "structural"


class ParseError(TranscoderError):
    """소스 유닛(또는 JSON) 구문 오류. 해당 유닛에만 적용."""

    kind = "parse"

    @property
    def line(self) -> int | None:
        return self.context.get("line")

    @property
    def column(self) -> int | None:
        return self.context.get("column")


class DepthLimitError(ParseError):
    """선언 중첩이 설정된 max_depth를 초과."""

    kind = "depth"


class MetadataError(TranscoderError):
    """메타데이터 블록이 있으나 손상됨 (없는 경우는 경고)."""

    kind = "metadata"


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러/경고 코드 상수."""

    # === Workbook ===
    INVALID_JSON = "INVALID_JSON"
    INVALID_ENCODING = "INVALID_ENCODING"  # UTF-8 디코딩 실패 (워크북/유닛 공통)
    STRUCTURE_INVALID = "STRUCTURE_INVALID"
    DEPTH_LIMIT_EXCEEDED = "DEPTH_LIMIT_EXCEEDED"

    # === Source Unit ===
    SYNTAX_ERROR = "SYNTAX_ERROR"
    UNEXPANDED_PLACEHOLDER = "UNEXPANDED_PLACEHOLDER"  # warning
    EXTRANEOUS_CONTENT = "EXTRANEOUS_CONTENT"  # warning
    UNRESOLVABLE_NAME = "UNRESOLVABLE_NAME"  # warning
    UNRESOLVED_CONFIG = "UNRESOLVED_CONFIG"  # warning

    # === Metadata ===
    METADATA_MALFORMED = "METADATA_MALFORMED"
    METADATA_INVALID_FIELDS = "METADATA_INVALID_FIELDS"
    METADATA_MISSING = "METADATA_MISSING"  # warning, not error
    CONFIG_OVERRIDES_METADATA = "CONFIG_OVERRIDES_METADATA"  # warning
    DUPLICATE_ID = "DUPLICATE_ID"  # warning on import

    # === Manifest / Project ===
    MANIFEST_INVALID = "MANIFEST_INVALID"
    MANIFEST_UNIT_MISSING = "MANIFEST_UNIT_MISSING"
    UNIT_NOT_IN_MANIFEST = "UNIT_NOT_IN_MANIFEST"  # warning
    WORKBOOK_SECTIONS_MISSING = "WORKBOOK_SECTIONS_MISSING"  # warning

    # === Batch ===
    CANCELLED = "CANCELLED"


def encoding_error(error: UnicodeDecodeError, unit: str) -> ParseError:
    """UTF-8 디코딩 실패 → ParseError(INVALID_ENCODING). position은 바이트 오프셋."""
    return ParseError(
        ErrorCodes.INVALID_ENCODING,
        unit=unit,
        position=error.start,
        message=f"not valid UTF-8: {error.reason}",
    )
