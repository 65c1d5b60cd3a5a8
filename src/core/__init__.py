"""
Core layer: 저장소 안전 핵심 모듈.

이 모듈만 건드리면 인덱스/디스크 불일치 → 가장 보수적으로 관리

역할:
- SSOT (metadata.json), 락, 원자적 쓰기, ID/파일명 정책
"""

from .ids import build_stored_filename, generate_file_id, sanitize_filename
from .logging import configure_logging
from .metadata_store import JsonMetadataStore, MetadataStore
from .ssot_index import (
    atomic_write_json,
    index_lock,
    load_index_json,
    write_bytes_exclusive,
)

__all__ = [
    # ssot_index
    "index_lock",
    "atomic_write_json",
    "write_bytes_exclusive",
    "load_index_json",
    # metadata_store
    "MetadataStore",
    "JsonMetadataStore",
    # ids
    "generate_file_id",
    "sanitize_filename",
    "build_stored_filename",
    # logging
    "configure_logging",
]
