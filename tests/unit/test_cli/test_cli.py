"""
test_cli.py - CLI 테스트

DoD:
- 종료 코드: 성공 0, 하나라도 실패 1
- 요약은 stdout, import 실패 시 워크북 파일 쓰지 않음
"""

import json
from pathlib import Path

import pytest

from src.cli import build_parser, main


@pytest.fixture
def exported_dir(tmp_path: Path, workbook_file: Path) -> Path:
    out = tmp_path / "out"
    assert main(["export", str(workbook_file), "-o", str(out)]) == 0
    return out


class TestParser:
    """인자 파싱."""

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_export_requires_output(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["export", "a.apicize"])

    def test_roundtrip_defaults(self):
        args = build_parser().parse_args(["roundtrip", "a.apicize"])

        assert args.max_diffs == 10
        assert args.workbooks == ["a.apicize"]


class TestExportImport:
    """export / import 명령."""

    def test_export(self, capsys, exported_dir: Path):
        out = capsys.readouterr().out

        assert "demo.apicize: exported 3 unit(s)" in out
        assert (exported_dir / "manifest.yaml").exists()

    def test_export_many(self, tmp_path: Path, workbook_file: Path, capsys):
        other = tmp_path / "other.apicize"
        other.write_text(json.dumps({"version": 1}), encoding="utf-8")

        code = main(["export", str(workbook_file), str(other), "-o", str(tmp_path / "projects")])

        out = capsys.readouterr().out
        assert code == 1
        assert (tmp_path / "projects" / "demo" / "manifest.yaml").exists()
        assert "other.apicize: FAILED" in out
        assert "scenarios: [required]" in out

    def test_import(self, exported_dir: Path, tmp_path: Path, sample_workbook_data, capsys):
        target = tmp_path / "back.apicize"

        code = main(["import", str(exported_dir), "-o", str(target)])

        out = capsys.readouterr().out
        assert code == 0
        assert "test_00_crud_operations.py: imported" in out
        assert "files scanned: 3 (3 with metadata)" in out
        assert "requests imported: 6" in out
        assert "groups imported: 2" in out
        assert "warnings: 0" in out
        assert json.loads(target.read_text(encoding="utf-8")) == sample_workbook_data

    def test_import_failure_writes_nothing(self, exported_dir: Path, tmp_path: Path, capsys):
        unit = exported_dir / "suites" / "test_01_upload_form.py"
        unit.write_text(unit.read_text(encoding="utf-8") + "\ndef broken(:\n", encoding="utf-8")
        target = tmp_path / "back.apicize"

        code = main(["import", str(exported_dir), "-o", str(target)])

        assert code == 1
        assert "import FAILED; workbook not written" in capsys.readouterr().out
        assert not target.exists()

    def test_import_with_expand(self, tmp_path: Path, capsys):
        project = tmp_path / "proj"
        (project / "suites").mkdir(parents=True)
        (project / "suites" / "test_00_r.py").write_text(
            '@it("R", url="{{this.url}}")\ndef r(context, response):\n    pass\n', encoding="utf-8"
        )
        values = tmp_path / "values.yaml"
        values.write_text("url: https://x/y\n", encoding="utf-8")
        target = tmp_path / "r.apicize"

        code = main(["import", str(project), "-o", str(target), "--expand", str(values)])

        assert code == 0
        assert json.loads(target.read_text(encoding="utf-8"))["requests"][0]["url"] == "https://x/y"

    def test_import_missing_project(self, tmp_path: Path):
        assert main(["import", str(tmp_path / "nope"), "-o", str(tmp_path / "x.apicize")]) == 1

    def test_run_logs_saved(self, tmp_path: Path, workbook_file: Path):
        logs = tmp_path / "logs"

        main(["--log-dir", str(logs), "export", str(workbook_file), "-o", str(tmp_path / "out")])

        assert len(list(logs.glob("*.json"))) == 1


class TestValidateRoundtrip:
    """validate / roundtrip 명령."""

    def test_validate(self, tmp_path: Path, workbook_file: Path, capsys):
        bad = tmp_path / "bad.apicize"
        bad.write_text("{", encoding="utf-8")

        code = main(["validate", str(workbook_file), str(bad)])

        out = capsys.readouterr().out
        assert code == 1
        assert f"{workbook_file}: OK" in out
        assert f"{bad}: INVALID" in out
        assert "INVALID_JSON" in out

    def test_validate_not_utf8(self, tmp_path: Path, workbook_file: Path, capsys):
        bad = tmp_path / "latin.apicize"
        bad.write_bytes(b"\xff")

        code = main(["validate", str(bad), str(workbook_file)])

        out = capsys.readouterr().out
        assert code == 1
        assert f"{bad}: INVALID" in out
        assert "INVALID_ENCODING" in out
        assert f"{workbook_file}: OK" in out

    def test_roundtrip(self, workbook_file: Path, capsys):
        code = main(["roundtrip", str(workbook_file)])

        out = capsys.readouterr().out
        assert code == 0
        assert "demo.apicize: OK accuracy=100.00%" in out
        assert "No differences found." in out

    def test_invalid_config(self, tmp_path: Path, workbook_file: Path):
        config = tmp_path / "bad.yaml"
        config.write_text("transcoder:\n  max_depth: 0\n", encoding="utf-8")

        assert main(["--config", str(config), "validate", str(workbook_file)]) == 1
