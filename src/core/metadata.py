"""
Metadata Codec: 생성 코드 안의 주석 블록 ↔ 노드 레코드.

블록 형식 (모든 줄이 Python 주석):
    # @apicize-metadata
    # {
    #   "id": "...",
    #   ...
    # }
    # @apicize-metadata-end

규칙:
- 마커는 줄 단위로 비교 (앞 공백, '#' 허용) → 재들여쓰기/포맷팅에 안전
- 시작 마커 없음 = ABSENT (소프트, 경고 대상)
- 끝 마커 없음 / JSON 오류 / 객체 아님 = MALFORMED (노드 에러)
- 줄 분리는 항상 "\\n" 기준 (str.splitlines는 U+2028 등도 자르므로 사용 금지)
"""

import json
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.domain.constants import (
    METADATA_COMMENT_PREFIX,
    METADATA_END_MARKER,
    METADATA_JSON_INDENT,
    METADATA_START_MARKER,
)
from src.domain.errors import ErrorCodes, MetadataError


class BlockStatus(str, Enum):
    FOUND = "found"
    ABSENT = "absent"
    MALFORMED = "malformed"


@dataclass
class MetadataBlock:
    """찾은 블록의 위치 (1-based, 양끝 마커 포함)."""
    start_line: int
    end_line: int
    indent: str = ""

    @property
    def line_numbers(self) -> range:
        return range(self.start_line, self.end_line + 1)


@dataclass
class DecodeResult:
    """decode/locate 결과."""
    status: BlockStatus
    record: dict[str, Any] | None = None
    block: MetadataBlock | None = None
    error: MetadataError | None = None

    @property
    def found(self) -> bool:
        return self.status == BlockStatus.FOUND


def split_lines(text: str) -> list[str]:
    """줄바꿈 정규화 후 "\\n" 기준 분리."""
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def _comment_content(line: str) -> str | None:
    """주석 줄이면 '#' 뒤 내용, 아니면 None."""
    stripped = line.lstrip()
    if not stripped.startswith("#"):
        return None
    return stripped[1:]


class MetadataCodec:
    """
    메타데이터 블록 인코더/디코더.

    Usage:
        codec = MetadataCodec()
        text = codec.encode({"id": "r1", "method": "GET"}, indent="    ")
        result = codec.decode(text)
        assert result.record["id"] == "r1"
    """

    def __init__(
        self,
        start_marker: str = METADATA_START_MARKER,
        end_marker: str = METADATA_END_MARKER,
    ) -> None:
        if start_marker == end_marker:
            raise ValueError("start_marker and end_marker must differ")
        self.start_marker = start_marker
        self.end_marker = end_marker

    # =========================================================================
    # Encode
    # =========================================================================

    def encode(self, record: dict[str, Any], indent: str = "") -> str:
        """
        레코드 → 주석 블록 텍스트 (끝 줄바꿈 없음).

        Args:
            record: JSON 직렬화 가능한 dict (키 순서 유지)
            indent: 각 줄 앞에 붙일 들여쓰기
        """
        payload = json.dumps(record, indent=METADATA_JSON_INDENT, ensure_ascii=False)
        lines = [self.start_marker, *payload.split("\n"), self.end_marker]
        return "\n".join(f"{indent}{METADATA_COMMENT_PREFIX}{line}" for line in lines)

    # =========================================================================
    # Decode
    # =========================================================================

    def decode(self, text: str) -> DecodeResult:
        """텍스트 전체에서 첫 블록을 찾아 디코드."""
        lines = split_lines(text)
        return self.locate(lines, range(1, len(lines) + 1))

    def locate(self, lines: list[str], line_numbers: Iterable[int]) -> DecodeResult:
        """
        지정된 줄들(노드 자신의 줄)에서 첫 블록 탐색.

        Args:
            lines: 유닛 전체 줄 목록 (0-based 리스트)
            line_numbers: 탐색할 1-based 줄 번호 (오름차순)

        Returns:
            DecodeResult (블록 위치 포함)
        """
        numbers = iter(line_numbers)

        start_line = None
        indent = ""
        for number in numbers:
            line = lines[number - 1]
            content = _comment_content(line)
            if content is not None and content.strip() == self.start_marker:
                start_line = number
                indent = line[: len(line) - len(line.lstrip())]
                break

        if start_line is None:
            return DecodeResult(status=BlockStatus.ABSENT)

        payload: list[str] = []
        for number in numbers:
            line = lines[number - 1]
            content = _comment_content(line)

            if content is None:
                if not line.strip():
                    continue
                return self._malformed(
                    start_line,
                    number,
                    reason="non-comment line inside metadata block",
                )

            if content.strip() == self.end_marker:
                block = MetadataBlock(start_line=start_line, end_line=number, indent=indent)
                return self._decode_payload(payload, block)

            if content.startswith(" "):
                content = content[1:]
            payload.append(content)

        return self._malformed(start_line, start_line, reason="unterminated metadata block")

    def _decode_payload(self, payload: list[str], block: MetadataBlock) -> DecodeResult:
        try:
            record = json.loads("\n".join(payload))
        except json.JSONDecodeError as e:
            result = self._malformed(
                block.start_line,
                block.start_line + e.lineno,
                reason=f"invalid JSON: {e.msg}",
                column=e.colno,
            )
            result.block = block
            return result

        if not isinstance(record, dict):
            result = self._malformed(
                block.start_line,
                block.start_line + 1,
                reason=f"metadata payload must be an object, got {type(record).__name__}",
            )
            result.block = block
            return result

        return DecodeResult(status=BlockStatus.FOUND, record=record, block=block)

    @staticmethod
    def _malformed(
        start_line: int,
        line: int,
        reason: str,
        column: int | None = None,
    ) -> DecodeResult:
        context: dict[str, Any] = {"line": line, "block_start": start_line, "reason": reason}
        if column is not None:
            context["column"] = column
        return DecodeResult(
            status=BlockStatus.MALFORMED,
            error=MetadataError(ErrorCodes.METADATA_MALFORMED, **context),
        )
