"""
Core layer: export/import 양쪽이 공유하는 기반 모듈.

역할:
- 설정 (default.yaml), ID/식별자, 메타데이터 블록 코덱
- 원자적 파일 쓰기, run log, 병렬 배치 실행
"""

from .batch import BatchResult, ItemOutcome, run_batch
from .config import TranscoderConfig, load_config
from .fileio import atomic_write_json, atomic_write_text, read_text
from .ids import generate_node_id, generate_run_id, is_valid_node_id, to_identifier
from .logging import (
    complete_run_log,
    create_run_log,
    emit_error,
    emit_warning,
    load_run_log,
    save_run_log,
)
from .metadata import BlockStatus, DecodeResult, MetadataBlock, MetadataCodec

__all__ = [
    # config
    "TranscoderConfig",
    "load_config",
    # ids
    "generate_node_id",
    "generate_run_id",
    "is_valid_node_id",
    "to_identifier",
    # metadata
    "MetadataCodec",
    "MetadataBlock",
    "DecodeResult",
    "BlockStatus",
    # fileio
    "atomic_write_text",
    "atomic_write_json",
    "read_text",
    # logging
    "create_run_log",
    "emit_warning",
    "emit_error",
    "complete_run_log",
    "save_run_log",
    "load_run_log",
    # batch
    "run_batch",
    "BatchResult",
    "ItemOutcome",
]
