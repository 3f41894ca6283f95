"""
test_round_trip.py - export → (편집) → import 왕복 통합 테스트

검증 범위:
- 결정성: 같은 워크북 → 같은 유닛 텍스트
- 주석/빈 줄/따옴표 같은 서식 편집 후에도 100% 충실도
- 자식 순서, 같은 이름 형제, 특수 문자 이름 보존
- 손상된 입력은 에러로 보고 (나머지는 계속)
"""

import json
import re
from pathlib import Path

import pytest

from src.core.config import TranscoderConfig
from src.domain.errors import ErrorCodes, MetadataError, StructuralError
from src.domain.workbook import Workbook
from src.exporter.exporter import Exporter
from src.services.transcode import TranscodeService
from src.testing.fidelity import RoundTripRunner, assert_fidelity
from tests.helpers import make_group, make_request, make_workbook, nested_groups

DECORATOR_LINE = re.compile(r"^([ \t]*)(@(?:describe|it)\()", re.MULTILINE)


def add_review_comments(filename: str, text: str) -> str:
    """각 선언 위에 빈 줄 + 주석, 파일 끝에 주석 추가."""
    text = DECORATOR_LINE.sub(r"\n\1# reviewed\n\1\2", text)
    return text + "\n# end of unit\n"


def double_quote_declarations(filename: str, text: str) -> str:
    """선언 줄의 작은따옴표 → 큰따옴표 (포매터 흉내)."""
    return "\n".join(
        line.replace("'", '"') if line.lstrip().startswith("@") else line
        for line in text.split("\n")
    )


@pytest.fixture
def runner(config) -> RoundTripRunner:
    return RoundTripRunner(config)


# =============================================================================
# Fidelity
# =============================================================================


class TestFidelity:
    """왕복 충실도."""

    def test_sample_exact(self, runner, sample_workbook):
        report = runner.run(sample_workbook, source="demo.apicize")

        assert report.passed, report.report()
        assert report.accuracy == 100.0

    @pytest.mark.parametrize("transform", [add_review_comments, double_quote_declarations])
    def test_formatting_edits_preserve_meaning(self, runner, sample_workbook, transform):
        report = runner.run(sample_workbook, transform=transform)

        assert report.passed, report.report()

    def test_deterministic(self, config, sample_workbook):
        first = Exporter(config).export(sample_workbook)
        second = Exporter(config).export(Workbook.from_dict(sample_workbook.to_dict()))

        assert first.files() == second.files()

    def test_child_order(self, runner):
        workbook = Workbook.from_dict(make_workbook([
            make_group("g", "G", [make_request(f"r-{n}", n) for n in ["zeta", "alpha", "mid"]]),
        ]))

        report = runner.run(workbook)

        children = report.import_result.workbook.requests[0].children
        assert [c.name for c in children] == ["zeta", "alpha", "mid"]
        assert report.passed

    def test_same_name_siblings(self, runner, sample_workbook):
        report = runner.run(sample_workbook)

        nested = report.import_result.workbook.requests[0].children[2]
        assert [(c.id, c.name) for c in nested.children] == [("dup-1", "Test"), ("dup-2", "Test")]

    def test_awkward_names_and_scripts(self, runner):
        workbook = Workbook.from_dict(make_workbook([
            make_group("g", "It's \"quoted\"", [
                make_request("r1", "class", test="assert True\n# trailing note"),
                make_request("r2", "한글 요청", test="# only a comment"),
                make_request("r3", "", test="if response:\n\n    pass"),
                make_group("empty", "Empty Group", []),
            ]),
            make_request("r4", "123 starts with digit"),
        ]))

        report = runner.run(workbook)

        assert report.passed, report.report()

    def test_javascript_scripts(self, runner):
        """Apicize 기본 스크립트(JavaScript)는 메타데이터로 왕복."""
        script = (
            "describe('Get Resource', () => {\n"
            "  it('should return the resource', () => {\n"
            "    const data = (response.body.type == BodyType.JSON) ? response.body.data : {};\n"
            "    expect(response.status).to.equal(200)\n"
            "  })\n"
            "})"
        )
        workbook = Workbook.from_dict(make_workbook([
            make_group("g", "Resources", [
                make_request("r1", "Get Resource", test=script),
                make_request("r2", "No Script"),
                make_request("r3", "Comment And Pass", test="# placeholder\npass"),
            ]),
        ]))

        report = runner.run(workbook)

        assert report.passed, report.report()
        assert report.accuracy == 100.0
        children = report.import_result.workbook.requests[0].children
        assert children[0].test_script == script
        assert children[1].test_script is None

    def test_deep_nesting_within_limit(self):
        runner = RoundTripRunner(TranscoderConfig(max_depth=40, max_workers=1))
        workbook = Workbook.from_dict(make_workbook([nested_groups(40)]))

        report = runner.run(workbook)

        assert report.passed, report.report()


# =============================================================================
# Shared code
# =============================================================================


class TestSharedCodeRoundTrip:
    """헬퍼/훅/import가 import → export → import를 거쳐도 유지."""

    def test_helper_and_hooks_survive(self, config, simple_workbook):
        exported = Exporter(config).export(simple_workbook)
        sources = exported.sources()
        sources["test_00_g.py"] = sources["test_00_g.py"].replace(
            "from src.runtime import describe, it\n",
            "import json\n\nfrom src.runtime import after_each, describe, it\n",
        ).replace(
            "    @it('R'",
            "    HELPER = 42\n\n"
            "    @after_each\n    def cleanup(context):\n        context.output('done', True)\n\n"
            "    @it('R'",
        )
        importer = TranscodeService(config).importer

        first = importer.import_units(exported.manifest, sources)
        again = Exporter(config).export(first.workbook)
        second = importer.import_units(again.manifest, again.sources())

        group = first.workbook.requests[0]
        assert [e["kind"] for e in group.extra["sharedCode"]] == ["helper", "after_each"]
        assert [e["code"] for e in group.extra["moduleCode"]] == [
            "import json",
            "from src.runtime import after_each, describe, it",
        ]
        assert "    HELPER = 42" in again.units[0].text.split("\n")
        assert_fidelity(first.workbook.to_dict(), second.workbook.to_dict())

    def test_shared_code_record_round_trip(self, runner):
        workbook = Workbook.from_dict(make_workbook([
            make_group("g", "G", [make_request("r1", "A")], sharedCode=[
                {"kind": "before_each", "position": 0, "code": "@before_each\ndef setup(context):\n    pass"},
                {"kind": "helper", "position": 1, "code": "LIMIT = 3"},
            ]),
        ]))

        report = runner.run(workbook)

        assert report.passed, report.report()


# =============================================================================
# Scenario: one group, one request
# =============================================================================


class TestGroupRequestScenario:
    """G/R 워크북 → 단일 유닛 → 동일 워크북."""

    def test_generated_unit(self, config, simple_workbook):
        exported = Exporter(config).export(simple_workbook)

        assert list(exported.files()) == ["manifest.yaml", "suites/test_00_g.py"]
        text = exported.units[0].text
        assert "@describe('G')" in text
        assert "@it('R', method='GET', url='https://x/y', timeout=5000)" in text
        assert text.count("# @apicize-metadata-end") == 2

    def test_files_on_disk(self, config, simple_workbook, tmp_path: Path):
        service = TranscodeService(config)
        service.export_workbook(simple_workbook, tmp_path / "g")

        result = service.import_project(tmp_path / "g")

        assert_fidelity(simple_workbook.to_dict(), result.workbook.to_dict())


# =============================================================================
# Failures
# =============================================================================


class TestFailures:
    """손상된 입력."""

    def test_malformed_json(self, runner, tmp_path: Path):
        path = tmp_path / "broken.apicize"
        path.write_text('{"version": 1,', encoding="utf-8")

        report = runner.run_file(path)

        assert not report.passed
        assert report.errors[0]["code"] == ErrorCodes.INVALID_JSON
        assert report.summary() == "broken.apicize: FAILED (1 error(s))"

    def test_depth_limit(self, sample_workbook):
        runner = RoundTripRunner(TranscoderConfig(max_depth=2, max_workers=1))

        with pytest.raises(StructuralError) as exc_info:
            runner.run(sample_workbook)

        assert exc_info.value.code == ErrorCodes.DEPTH_LIMIT_EXCEEDED

    def test_truncated_metadata_block(self, runner, sample_workbook):
        def truncate(filename: str, text: str) -> str:
            if filename != "test_01_upload_form.py":
                return text
            return text.replace("# @apicize-metadata-end", "")

        report = runner.run(sample_workbook, transform=truncate)

        imported = report.import_result
        assert not report.passed
        assert any(isinstance(e, MetadataError) for e in imported.errors)
        assert [n.name for n in imported.workbook.requests] == ["CRUD Operations", "Raw Bytes"]
        assert ErrorCodes.METADATA_MALFORMED in [w.code for w in imported.warnings]
        assert report.comparison.accuracy < 100.0

    def test_run_file(self, runner, workbook_file: Path, sample_workbook_data):
        report = runner.run_file(workbook_file)

        assert report.passed
        assert report.export_result.manifest.source == "demo.apicize"
        assert json.loads(json.dumps(report.import_result.workbook.to_dict())) == sample_workbook_data
