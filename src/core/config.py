"""
Configuration: default.yaml → TranscoderConfig.

default.yaml의 transcoder: 섹션만 읽음.
파일이 없으면 내장 기본값 사용.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from src.domain.constants import (
    CASE_VOCABULARY,
    DEFAULT_INDENT,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_WORKERS,
    MANIFEST_FILENAME,
    METADATA_END_MARKER,
    METADATA_START_MARKER,
    RUNTIME_MODULE,
    SUITE_VOCABULARY,
    SUITES_DIR,
)

logger = logging.getLogger(__name__)

CONFIG_SECTION = "transcoder"


@dataclass
class TranscoderConfig:
    """export/import 파이프라인 공통 설정."""
    max_depth: int = DEFAULT_MAX_DEPTH
    indent: int = DEFAULT_INDENT
    max_workers: int = DEFAULT_MAX_WORKERS
    start_marker: str = METADATA_START_MARKER
    end_marker: str = METADATA_END_MARKER
    suite_vocabulary: tuple[str, ...] = SUITE_VOCABULARY
    case_vocabulary: tuple[str, ...] = CASE_VOCABULARY
    runtime_module: str = RUNTIME_MODULE
    template_dir: Path | None = None
    suites_dir: str = SUITES_DIR
    manifest_filename: str = MANIFEST_FILENAME
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TranscoderConfig":
        """transcoder: 섹션 dict → 설정. 모르는 키는 extra로."""
        data = dict(data or {})
        known = {f.name for f in fields(cls)} - {"extra"}
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = {}

        for key, value in data.items():
            if key not in known:
                extra[key] = value
                continue
            if key in ("suite_vocabulary", "case_vocabulary"):
                value = tuple(value)
            elif key == "template_dir" and value is not None:
                value = Path(value)
            elif key in ("max_depth", "indent", "max_workers"):
                value = int(value)
            kwargs[key] = value

        if extra:
            logger.warning(f"Unknown transcoder config keys ignored: {sorted(extra)}")

        config = cls(**kwargs, extra=extra)
        if config.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {config.max_depth}")
        if config.indent < 1:
            raise ValueError(f"indent must be >= 1, got {config.indent}")
        if config.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {config.max_workers}")
        return config


def default_config_path() -> Path:
    """프로젝트 루트의 default.yaml."""
    return Path(__file__).parent.parent.parent / "default.yaml"


def load_config(config_path: Path | None = None) -> TranscoderConfig:
    """
    설정 파일 로드.

    Args:
        config_path: YAML 경로 (None이면 프로젝트 루트 default.yaml)

    Returns:
        TranscoderConfig (파일 없으면 기본값)
    """
    if config_path is None:
        config_path = default_config_path()

    if not config_path.exists():
        logger.debug(f"Config not found, using defaults: {config_path}")
        return TranscoderConfig()

    with open(config_path, encoding="utf-8") as f:
        data: dict[Any, Any] = yaml.safe_load(f) or {}

    return TranscoderConfig.from_dict(data.get(CONFIG_SECTION))
