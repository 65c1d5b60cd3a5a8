"""
SSOT (Single Source of Truth) 관리: metadata.json

규칙:
- metadata.json = "어떤 파일이 존재하는가"의 유일한 진실 원천
- 모든 read-modify-write는 index_lock 안에서 수행
- 원자적 쓰기: temp → rename + fsync
- 업로드 바이트는 exclusive create (같은 이름 덮어쓰기 금지)

파일시스템 안정성 (best-effort):
- 락 해제 실패 시 warning 로그 남김 (이 프로세스가 남긴 락은 다음 획득 시 정리)
- fsync로 가능한 환경에서 내구성 강화 (파일 + 디렉토리)
- fsync 실패 시 경고 남기고 계속 진행
- stale lock 감지: PID/hostname 메타 + TTL 기반 정리
"""

import json
import logging
import os
import socket
import tempfile
import threading
import time
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.domain.constants import LOCK_DIR_NAME, TEMP_FILE_SUFFIX
from src.domain.errors import ErrorCodes, PolicyRejectError

logger = logging.getLogger(__name__)

# Stale lock threshold (seconds) - 10 minutes
STALE_LOCK_THRESHOLD_SECONDS = 600

# Lock metadata filename
LOCK_META_FILENAME = "lock.meta"

# 이 프로세스에서 현재 보유 중인 락 (lock_dir 절대경로 → 보유 수)
_held_locks: dict[str, int] = {}
_held_locks_guard = threading.Lock()

# =============================================================================
# Lock Management
# =============================================================================


def _get_current_hostname() -> str:
    """현재 호스트명 반환 (실패 시 'unknown')."""
    try:
        return socket.gethostname()
    except OSError:
        return "unknown"


def _write_lock_meta(lock_dir: Path) -> None:
    """락 메타정보(PID, hostname, created_at) 기록."""
    meta_path = lock_dir / LOCK_META_FILENAME
    meta = {
        "pid": os.getpid(),
        "hostname": _get_current_hostname(),
        "created_at": datetime.now(UTC).isoformat(),
    }
    try:
        meta_path.write_text(json.dumps(meta), encoding="utf-8")
    except OSError as e:
        logger.warning(f"Failed to write lock meta {meta_path}: {e}")


def _read_lock_meta(lock_dir: Path) -> dict | None:
    meta_path = lock_dir / LOCK_META_FILENAME
    try:
        return json.loads(meta_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None


def _is_process_alive(pid: int) -> bool:
    """PID 생존 확인 (동일 호스트에서만 유효)."""
    try:
        os.kill(pid, 0)
        return True
    except OSError:
        return False


def _is_stale_lock(
    lock_dir: Path, threshold_seconds: float = STALE_LOCK_THRESHOLD_SECONDS
) -> bool:
    """
    락 디렉토리가 stale 상태인지 확인.

    판단 기준:
    1. 메타가 있고 동일 호스트: PID 생존 여부
       (PID가 이 프로세스면 보유 중인 스레드가 없을 때 stale)
    2. 메타가 있고 다른 호스트: created_at 기준 TTL
    3. 메타 없음/파싱 실패: 디렉토리 mtime 기준 TTL
    """
    meta = _read_lock_meta(lock_dir)

    if meta:
        lock_pid = meta.get("pid")
        if meta.get("hostname") == _get_current_hostname() and lock_pid:
            if lock_pid == os.getpid():
                return not _is_held(lock_dir)
            return not _is_process_alive(lock_pid)

        try:
            created_at = datetime.fromisoformat(meta.get("created_at", ""))
            age_seconds = (datetime.now(UTC) - created_at).total_seconds()
            return age_seconds > threshold_seconds
        except (ValueError, TypeError):
            pass

    try:
        age_seconds = time.time() - lock_dir.stat().st_mtime
        return age_seconds > threshold_seconds
    except OSError:
        return False


def _lock_key(lock_dir: Path) -> str:
    return os.path.abspath(lock_dir)


def _is_held(lock_dir: Path) -> bool:
    with _held_locks_guard:
        return _held_locks.get(_lock_key(lock_dir), 0) > 0


def _mark_held(lock_dir: Path, delta: int) -> None:
    key = _lock_key(lock_dir)
    with _held_locks_guard:
        count = _held_locks.get(key, 0) + delta
        if count > 0:
            _held_locks[key] = count
        else:
            _held_locks.pop(key, None)


def _cleanup_lock_dir(lock_dir: Path) -> None:
    """메타 파일 삭제 후 락 디렉토리 삭제."""
    meta_path = lock_dir / LOCK_META_FILENAME
    try:
        meta_path.unlink(missing_ok=True)
    except OSError:
        pass  # rmdir에서 실패로 드러남
    os.rmdir(lock_dir)


def _try_cleanup_stale_lock(lock_dir: Path) -> bool:
    """Stale lock 정리 시도. 정리했으면 True."""
    if not _is_stale_lock(lock_dir):
        return False

    meta = _read_lock_meta(lock_dir)
    owner = f" (owner: pid={meta.get('pid')}, host={meta.get('hostname')})" if meta else ""

    try:
        _cleanup_lock_dir(lock_dir)
    except OSError:
        return False

    logger.warning(f"Cleaned up stale lock: {lock_dir}{owner}")
    return True


@contextmanager
def index_lock(storage_dir: Path, config: dict) -> Generator[Path, None, None]:
    """
    metadata.json read-modify-write를 위한 디렉터리 락.

    사용법:
        with index_lock(storage_dir, config):
            # metadata.json 읽기/쓰기

    동작:
    - 락 획득: os.mkdir() 원자적 생성 + 메타 파일 기록
    - 락 해제: 정상/예외 모두 메타 삭제 + rmdir()
    - timeout: config 기반 재시도
    - stale lock: 첫 시도 실패 시 정리 시도

    Args:
        storage_dir: 업로드 디렉토리
        config: 설정 (storage.lock_dir, lock_retry_interval, lock_max_retries)

    Raises:
        PolicyRejectError: METADATA_LOCK_TIMEOUT
    """
    storage_cfg = config.get("storage", {})
    lock_dir = storage_dir / storage_cfg.get("lock_dir", LOCK_DIR_NAME)
    interval = storage_cfg.get("lock_retry_interval", 0.05)
    max_retries = storage_cfg.get("lock_max_retries", 100)

    acquired = False
    for attempt in range(max_retries):
        try:
            os.mkdir(lock_dir)
            acquired = True
            _mark_held(lock_dir, 1)
            _write_lock_meta(lock_dir)
            break
        except FileExistsError:
            if attempt == 0 and _try_cleanup_stale_lock(lock_dir):
                continue  # 즉시 재시도
            time.sleep(interval)

    if not acquired:
        raise PolicyRejectError(
            ErrorCodes.METADATA_LOCK_TIMEOUT,
            storage_dir=str(storage_dir),
            attempts=max_retries,
            total_wait=max_retries * interval,
        )

    try:
        yield lock_dir
    finally:
        try:
            _cleanup_lock_dir(lock_dir)
        except OSError as e:
            logger.warning(
                f"Lock release failed for {storage_dir}: {e}. "
                f"It will be reclaimed by this process on next acquire; "
                f"otherwise remove manually: rm -rf {lock_dir}"
            )
        finally:
            _mark_held(lock_dir, -1)


# =============================================================================
# Atomic Write
# =============================================================================


def _fsync_dir(dir_path: Path) -> None:
    """디렉토리 fsync (rename 엔트리 내구성). 실패 시 경고만."""
    try:
        dir_fd = os.open(str(dir_path), os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except (OSError, AttributeError) as e:
        logger.warning(
            f"Directory fsync failed for {dir_path}: {e}. "
            f"Rename durability may not be guaranteed."
        )


def atomic_write_json(path: Path, data: Any) -> None:
    """
    원자적 JSON 쓰기.

    동작:
    - 중간 상태 없음: temp → rename
    - 파일 fsync + 디렉토리 fsync (실패 시 경고)
    - 실패 시 temp 파일 삭제, 기존 파일 보존

    Args:
        path: 저장할 파일 경로
        data: JSON 직렬화할 데이터 (list 또는 dict)
    """
    dir_path = path.parent
    dir_path.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=dir_path,
            prefix=f".{path.name}.",
            suffix=TEMP_FILE_SUFFIX,
            delete=False,
            encoding="utf-8",
        ) as f:
            temp_path = Path(f.name)
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(
                    f"File fsync failed for {path}: {e}. "
                    f"Data may not be durable on power loss."
                )

        os.replace(temp_path, path)
        _fsync_dir(dir_path)

    except Exception:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
        raise


def write_bytes_exclusive(path: Path, content: bytes) -> bool:
    """
    바이트를 새 파일로 기록 (O_EXCL).

    - 파일이 없으면: 생성 후 기록, True 반환
    - 파일이 있으면: 건드리지 않고 False 반환
    - 기록 중 실패: 부분 파일 삭제 후 예외 전파

    Args:
        path: 저장 경로
        content: 파일 내용

    Returns:
        True if created, False if already exists
    """
    try:
        fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
    except FileExistsError:
        return False

    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(f"File fsync failed for {path}: {e}")
    except Exception:
        try:
            path.unlink()
        except OSError:
            pass
        raise

    return True


# =============================================================================
# Index Read
# =============================================================================


def load_index_json(index_path: Path) -> list[dict[str, Any]]:
    """
    metadata.json 로드.

    Returns:
        레코드 dict 목록

    Raises:
        json.JSONDecodeError: JSON 파싱 실패
        ValueError: 최상위가 배열이 아니거나 항목이 객체가 아님
        RecursionError: 중첩이 너무 깊은 JSON
        OSError: 읽기 실패
    """
    data = json.loads(index_path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"index root must be an array, got {type(data).__name__}")
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValueError(f"index entry {i} must be an object")
    return data
