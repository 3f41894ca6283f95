"""
Project layout: 생성 프로젝트 디렉터리 읽기/쓰기.

<output>/
├── manifest.yaml
└── suites/
    ├── test_00_crud_operations.py
    └── test_01_image_rotation.py

규칙:
- 쓰기는 파일 단위 원자적 (temp → rename)
- 이전 export가 남긴 유닛 파일은 정리 (manifest에 없는 test_NN_*.py)
- OSError는 그대로 전파
- UTF-8이 아닌 유닛은 unreadable에 ParseError(INVALID_ENCODING)로 기록 (나머지 유닛은 계속)
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from src.core.config import TranscoderConfig
from src.core.fileio import atomic_write_text, read_text
from src.domain.constants import UNIT_FILENAME_PREFIX, UNIT_FILENAME_SUFFIX
from src.domain.errors import ParseError, encoding_error
from src.exporter.exporter import ExportResult
from src.project.manifest import Manifest

logger = logging.getLogger(__name__)

GENERATED_UNIT_PATTERN = re.compile(
    rf"^{re.escape(UNIT_FILENAME_PREFIX)}\d{{2,}}_\w*{re.escape(UNIT_FILENAME_SUFFIX)}$"
)


@dataclass
class ProjectSources:
    """디스크에서 읽은 프로젝트."""
    manifest: Manifest | None
    sources: dict[str, str] = field(default_factory=dict)  # 파일명 → 텍스트
    unreadable: dict[str, ParseError] = field(default_factory=dict)  # 파일명 → 디코딩 에러


def write_project(result: ExportResult, output_dir: Path, clean: bool = True) -> list[Path]:
    """
    export 결과를 디렉터리에 기록.

    Args:
        result: Exporter 결과
        output_dir: 프로젝트 루트
        clean: 이전 export의 남은 유닛 파일 삭제

    Returns:
        기록된 파일 경로 목록 (manifest 먼저)
    """
    written: list[Path] = []
    for relative, text in result.files().items():
        path = output_dir / relative
        atomic_write_text(path, text)
        written.append(path)

    if clean:
        suites_dir = output_dir / result.suites_dir
        current = {unit.filename for unit in result.units}
        for path in sorted(suites_dir.glob(f"*{UNIT_FILENAME_SUFFIX}")):
            if path.name not in current and GENERATED_UNIT_PATTERN.match(path.name):
                logger.info(f"Removing stale unit: {path}")
                path.unlink()

    logger.info(f"Wrote {len(written)} file(s) to {output_dir}")
    return written


def read_project(project_dir: Path, config: TranscoderConfig | None = None) -> ProjectSources:
    """
    프로젝트 디렉터리 읽기.

    manifest가 없으면 manifest=None (import 시 경고 후 기본 섹션 사용).

    Raises:
        FileNotFoundError: project_dir 또는 suites 디렉터리 없음
        StructuralError: manifest 파싱 실패
        ParseError: manifest가 UTF-8이 아님
    """
    config = config or TranscoderConfig()
    if not project_dir.is_dir():
        raise FileNotFoundError(f"Project directory not found: {project_dir}")

    manifest_path = project_dir / config.manifest_filename
    manifest = None
    if manifest_path.exists():
        try:
            manifest_text = read_text(manifest_path)
        except UnicodeDecodeError as e:
            raise encoding_error(e, manifest_path.name) from e
        manifest = Manifest.from_yaml(manifest_text)
    else:
        logger.warning(f"Manifest not found: {manifest_path}")

    suites_dir = project_dir / config.suites_dir
    if not suites_dir.is_dir():
        raise FileNotFoundError(f"Suites directory not found: {suites_dir}")

    project = ProjectSources(manifest=manifest)
    for path in sorted(suites_dir.glob(f"*{UNIT_FILENAME_SUFFIX}")):
        if path.name.startswith("_"):
            continue
        try:
            project.sources[path.name] = read_text(path)
        except UnicodeDecodeError as e:
            logger.warning(f"Unit is not valid UTF-8: {path}")
            project.unreadable[path.name] = encoding_error(e, path.name)

    return project
