#!/usr/bin/env python3
"""
apicize-transcoder: 워크북 ⇄ Python 테스트 프로젝트 변환 CLI.

사용법:
    apicize-transcoder export demo.apicize --output out/demo
    apicize-transcoder import out/demo --output demo.apicize
    apicize-transcoder validate a.apicize b.apicize
    apicize-transcoder roundtrip demo.apicize

종료 코드:
    0 = 성공, 1 = 하나라도 실패
진단 로그는 stderr, 요약은 stdout.
"""

import argparse
import logging
import sys
from pathlib import Path

import yaml

from src.core.config import load_config
from src.core.logging import save_run_log
from src.domain.errors import TranscoderError
from src.services.transcode import TranscodeService
from src.testing.fidelity.runner import RoundTripRunner

logger = logging.getLogger(__name__)


def _cmd_export(service: TranscodeService, args: argparse.Namespace) -> int:
    paths = [Path(p) for p in args.workbooks]
    output = Path(args.output)

    if len(paths) == 1:
        outcomes = [service.export_file(paths[0], output)]
    else:
        batch = service.export_files(paths, output)
        outcomes = [o.value for o in batch.outcomes if o.value is not None]
        for item in batch.outcomes:
            if item.cancelled:
                print(f"{item.key}: CANCELLED")

    failed = 0
    for outcome in outcomes:
        if outcome.ok and outcome.result is not None:
            print(f"{outcome.source}: exported {len(outcome.result.units)} unit(s) → {outcome.output_dir}")
        else:
            failed += 1
            print(f"{outcome.source}: FAILED {outcome.error}")
            _print_violations(outcome.error)
        if args.log_dir and outcome.run_log is not None:
            save_run_log(outcome.run_log, Path(args.log_dir))

    return 0 if failed == 0 and len(outcomes) == len(paths) else 1


def _cmd_import(service: TranscodeService, args: argparse.Namespace) -> int:
    expand = None
    if args.expand:
        with open(args.expand, encoding="utf-8") as f:
            expand = yaml.safe_load(f) or {}

    result = service.import_project(Path(args.project), expand=expand)
    if args.log_dir:
        save_run_log(result.run_log, Path(args.log_dir))

    for unit in result.units:
        detail = f" ({unit.error})" if unit.error else ""
        print(f"{unit.filename}: {unit.status}{detail}")
    for error in result.errors:
        if error.kind == "metadata":
            print(f"  node error: {error}")
    stats = result.statistics
    print(f"files scanned: {stats.files_scanned} ({stats.files_with_metadata} with metadata)")
    print(f"requests imported: {stats.requests_reconstructed}")
    print(f"groups imported: {stats.groups_reconstructed}")
    print(f"warnings: {len(result.warnings)}")

    if not result.success:
        print("import FAILED; workbook not written")
        return 1

    service.save_workbook(result.workbook, Path(args.output))
    print(f"wrote {args.output}")
    return 0


def _cmd_validate(service: TranscodeService, args: argparse.Namespace) -> int:
    batch = service.validate_files([Path(p) for p in args.workbooks])
    failed = 0
    for item in batch.outcomes:
        loaded = item.value
        if loaded is None:
            failed += 1
            print(f"{item.key}: {'CANCELLED' if item.cancelled else item.error}")
            continue
        if loaded.ok:
            print(f"{item.key}: OK")
            continue
        failed += 1
        print(f"{item.key}: INVALID")
        if loaded.violations:
            for violation in loaded.violations:
                print(f"  {violation}")
        else:
            print(f"  {loaded.error}")
    return 0 if failed == 0 else 1


def _cmd_roundtrip(service: TranscodeService, args: argparse.Namespace) -> int:
    runner = RoundTripRunner(service.config)
    failed = 0
    for path in args.workbooks:
        report = runner.run_file(Path(path))
        print(report.report(max_diffs=args.max_diffs))
        if not report.passed:
            failed += 1
    return 0 if failed == 0 else 1


def _print_violations(error: TranscoderError | None) -> None:
    if error is None:
        return
    for violation in error.context.get("violations", []):
        print(f"  {violation.get('path') or '<root>'}: [{violation['rule']}] {violation['message']}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apicize-transcoder",
        description="Apicize 워크북 ⇄ Python 테스트 프로젝트 변환",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="설정 YAML 경로 (기본: 프로젝트 루트 default.yaml)",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="run log JSON 저장 디렉터리",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG 로그 출력")

    sub = parser.add_subparsers(dest="command", required=True)

    export = sub.add_parser("export", help="워크북 → 테스트 프로젝트")
    export.add_argument("workbooks", nargs="+", help=".apicize 파일")
    export.add_argument("--output", "-o", required=True, help="출력 디렉터리")
    export.set_defaults(handler=_cmd_export)

    imp = sub.add_parser("import", help="테스트 프로젝트 → 워크북")
    imp.add_argument("project", help="프로젝트 디렉터리 (manifest.yaml 포함)")
    imp.add_argument("--output", "-o", required=True, help="출력 .apicize 파일")
    imp.add_argument("--expand", default=None, help="{{this.*}} 치환 값 YAML/JSON 파일")
    imp.set_defaults(handler=_cmd_import)

    validate = sub.add_parser("validate", help="워크북 구조 검증")
    validate.add_argument("workbooks", nargs="+", help=".apicize 파일")
    validate.set_defaults(handler=_cmd_validate)

    roundtrip = sub.add_parser("roundtrip", help="export → import 후 비교")
    roundtrip.add_argument("workbooks", nargs="+", help=".apicize 파일")
    roundtrip.add_argument("--max-diffs", type=int, default=10, help="출력할 최대 차이 수")
    roundtrip.set_defaults(handler=_cmd_roundtrip)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    try:
        config = load_config(Path(args.config) if args.config else None)
    except (ValueError, yaml.YAMLError) as e:
        logger.error(f"Invalid config: {e}")
        return 1

    service = TranscodeService(config)
    try:
        return int(args.handler(service, args))
    except (OSError, TranscoderError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
