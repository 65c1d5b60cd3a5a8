#!/usr/bin/env python3
"""
reconcile_uploads.py - 업로드 디렉토리 ↔ metadata.json 정합성 점검

인덱스가 유일한 진실 원천이므로 불일치는 두 종류:
1. orphan: 디스크에 있지만 인덱스에 없는 파일 (쓰기 후 인덱스 등록 전 크래시 등)
2. dangling: 인덱스에 있지만 디스크 파일이 없는 레코드 (디렉토리 밖 path 포함)

동작:
- 기본: dry-run (보고만)
- --execute: min-age보다 오래된 orphan 삭제
- --prune-dangling: dangling 레코드를 인덱스에서 제거 (--execute 필요)

사용법:
    # 기본 실행 (dry-run)
    python scripts/reconcile_uploads.py

    # orphan 삭제 + dangling 정리
    python scripts/reconcile_uploads.py --execute --prune-dangling

    # cron 예시 (매일 새벽 3시)
    0 3 * * * cd /path/to/project && python scripts/reconcile_uploads.py --execute >> /var/log/reconcile_uploads.log 2>&1
"""

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path

import yaml

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.metadata_store import JsonMetadataStore  # noqa: E402
from src.domain.constants import (  # noqa: E402
    LOCK_DIR_NAME,
    METADATA_FILENAME,
    TEMP_FILE_SUFFIX,
)
from src.domain.errors import PolicyRejectError  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """점검 결과."""
    indexed: int = 0
    scanned_files: int = 0

    orphans: list[str] = field(default_factory=list)
    dangling: list[str] = field(default_factory=list)  # file ids

    removed_orphans: int = 0
    pruned_records: int = 0
    skipped_recent: int = 0
    index_unreadable: bool = False
    errors: list[str] = field(default_factory=list)


def _is_internal(path: Path, index_name: str, lock_name: str) -> bool:
    """인덱스, 락, 임시 파일 등 저장소 내부 파일 여부."""
    name = path.name
    return (
        name == index_name
        or name == lock_name
        or name.endswith(TEMP_FILE_SUFFIX)
    )


def reconcile(
    store: JsonMetadataStore,
    execute: bool = False,
    prune_dangling: bool = False,
    min_age_minutes: float = 60.0,
) -> ReconcileResult:
    """
    저장소 정합성 점검 (+ 선택적 정리).

    Args:
        store: 점검할 JsonMetadataStore
        execute: True면 실제 삭제/정리
        prune_dangling: dangling 레코드 인덱스에서 제거
        min_age_minutes: 이보다 최근 orphan은 업로드 진행 중일 수 있어 삭제 안 함

    Returns:
        ReconcileResult
    """
    result = ReconcileResult()

    snapshot = store.snapshot()
    if not snapshot.is_readable:
        # 손상된 인덱스 기준으로 orphan을 판정하면 전부 삭제됨 → 중단
        result.index_unreadable = True
        result.errors.append(f"index unreadable: {snapshot.error}")
        return result

    records = snapshot.records
    result.indexed = len(records)
    indexed_paths = {r.path for r in records}

    lock_name = store.config.get("storage", {}).get("lock_dir", LOCK_DIR_NAME)
    now = time.time()

    for path in sorted(store.storage_dir.iterdir()):
        if not path.is_file() or _is_internal(path, store.index_path.name, lock_name):
            continue
        result.scanned_files += 1

        if path.name in indexed_paths:
            continue

        result.orphans.append(path.name)
        if not execute:
            continue

        age_minutes = (now - path.stat().st_mtime) / 60
        if age_minutes < min_age_minutes:
            result.skipped_recent += 1
            continue

        try:
            path.unlink()
            result.removed_orphans += 1
        except OSError as e:
            result.errors.append(f"{path.name}: {e}")

    for record in records:
        try:
            exists = store.resolve_path(record).is_file()
        except PolicyRejectError:
            # 디렉토리 밖 path는 도달 불가 → dangling
            logger.warning(f"Record {record.id} has invalid path {record.path!r}")
            exists = False
        if not exists:
            result.dangling.append(record.id)

    if execute and prune_dangling and result.dangling:
        try:
            result.pruned_records = store.remove_records(set(result.dangling))
        except PolicyRejectError as e:
            result.errors.append(f"prune failed: {e}")

    return result


def load_storage_config(config_path: Path) -> dict:
    """default.yaml 로드 (없으면 빈 설정)."""
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def main() -> int:
    parser = argparse.ArgumentParser(
        description="업로드 디렉토리와 metadata.json 정합성 점검",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="실제 삭제/정리 실행 (기본: dry-run)",
    )
    parser.add_argument(
        "--prune-dangling",
        action="store_true",
        help="디스크 파일이 없는 레코드를 인덱스에서 제거",
    )
    parser.add_argument(
        "--min-age-minutes",
        type=float,
        default=60.0,
        help="이보다 최근 orphan은 삭제하지 않음 (기본: 60)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="default.yaml",
        help="설정 파일 경로 (기본: default.yaml)",
    )
    parser.add_argument(
        "--upload-dir",
        type=str,
        help="업로드 디렉토리 (기본: 설정의 storage.upload_dir)",
    )

    args = parser.parse_args()

    project_root = Path(__file__).parent.parent
    config = load_storage_config(project_root / args.config)

    upload_dir = Path(
        args.upload_dir
        or config.get("storage", {}).get("upload_dir", "uploads")
    )
    if not upload_dir.is_absolute():
        upload_dir = project_root / upload_dir

    if not (upload_dir / config.get("storage", {}).get("metadata_filename", METADATA_FILENAME)).exists():
        logger.error(f"metadata index 없음: {upload_dir}")
        return 1

    if not args.execute:
        logger.info("=" * 50)
        logger.info("DRY-RUN 모드 (실제 삭제 없음)")
        logger.info("실제 실행: --execute 옵션 추가")
        logger.info("=" * 50)

    store = JsonMetadataStore(upload_dir, config)
    result = reconcile(
        store,
        execute=args.execute,
        prune_dangling=args.prune_dangling,
        min_age_minutes=args.min_age_minutes,
    )

    logger.info("=" * 50)
    logger.info("Reconcile 결과:")
    logger.info(f"  인덱스: {result.indexed} records, 디스크: {result.scanned_files} files")
    logger.info(f"  orphan: {len(result.orphans)} (삭제 {result.removed_orphans}, 최근 파일 보류 {result.skipped_recent})")
    logger.info(f"  dangling: {len(result.dangling)} (정리 {result.pruned_records})")
    for name in result.orphans[:10]:
        logger.info(f"    orphan - {name}")
    for file_id in result.dangling[:10]:
        logger.info(f"    dangling - {file_id}")
    if result.errors:
        logger.warning(f"  에러: {len(result.errors)}개")
        for err in result.errors[:5]:
            logger.warning(f"    - {err}")

    return 0 if not result.errors else 1


if __name__ == "__main__":
    sys.exit(main())
