"""
test_fileio.py - 원자적 파일 쓰기 테스트

DoD:
- 줄바꿈/인코딩 변환 없음
- 중간 디렉터리 생성, temp 파일 잔여 없음
- 쓰기 실패 시 기존 파일 유지
"""

import json
from pathlib import Path

import pytest

from src.core.fileio import atomic_write_json, atomic_write_text, read_text


class TestAtomicWriteText:
    """atomic_write_text 함수 테스트."""

    def test_writes_exact_text(self, tmp_path: Path):
        path = tmp_path / "a" / "b" / "unit.py"
        text = "line1\nline2\r\n한글\n"

        atomic_write_text(path, text)

        assert read_text(path) == text

    def test_no_temp_left(self, tmp_path: Path):
        atomic_write_text(tmp_path / "x.txt", "x")

        assert [p.name for p in tmp_path.iterdir()] == ["x.txt"]

    def test_overwrites(self, tmp_path: Path):
        path = tmp_path / "x.txt"
        atomic_write_text(path, "old")

        atomic_write_text(path, "new")

        assert read_text(path) == "new"

    def test_failure_keeps_original(self, tmp_path: Path):
        """인코딩 불가 텍스트 → 예외, 기존 파일과 디렉터리 그대로."""
        path = tmp_path / "x.txt"
        atomic_write_text(path, "old")

        with pytest.raises(UnicodeEncodeError):
            atomic_write_text(path, "bad \udc80 surrogate")

        assert read_text(path) == "old"
        assert [p.name for p in tmp_path.iterdir()] == ["x.txt"]


class TestAtomicWriteJson:
    """atomic_write_json 함수 테스트."""

    def test_pretty_printed_unicode(self, tmp_path: Path):
        path = tmp_path / "wb.apicize"

        atomic_write_json(path, {"name": "이름", "n": [1]})

        text = read_text(path)
        assert "이름" in text
        assert text.endswith("\n")
        assert json.loads(text) == {"name": "이름", "n": [1]}
