"""
Metadata Store: 파일 ID → StoredFile 매핑.

규칙:
- 인덱스 = metadata.json 하나 (StoredFile 배열, 삽입 순서 유지)
- 모든 변경은 전체 read-modify-write + index_lock
- list()는 손상된 인덱스를 빈 목록으로 강등 (경고 로그)
- put()/delete()는 손상된 인덱스 위에 덮어쓰지 않음 → METADATA_CORRUPT
- delete()는 디스크 파일 부재를 "이미 삭제됨"으로 취급
- delete()는 디렉토리 밖 path를 unlink하지 않음 (레코드만 제거)

MetadataStore 인터페이스 뒤에 JSON 구현을 숨겨
추후 임베디드 KV 저장소로 교체할 수 있도록 함.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from src.core.ssot_index import atomic_write_json, index_lock, load_index_json
from src.domain.constants import (
    INDEX_STATUS_OK,
    INDEX_STATUS_UNREADABLE,
    METADATA_FILENAME,
)
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import IndexSnapshot, StoredFile

logger = logging.getLogger(__name__)


class MetadataStore(ABC):
    """StoredFile 레코드 저장소 인터페이스."""

    @property
    @abstractmethod
    def storage_dir(self) -> Path:
        """업로드 파일이 저장되는 디렉토리."""
        ...

    @abstractmethod
    def ensure_ready(self) -> None:
        ...

    @abstractmethod
    def snapshot(self) -> IndexSnapshot:
        ...

    @abstractmethod
    def list(self) -> list[StoredFile]:
        ...

    @abstractmethod
    def put(self, record: StoredFile) -> None:
        ...

    @abstractmethod
    def get(self, file_id: str) -> StoredFile | None:
        ...

    @abstractmethod
    def delete(self, file_id: str) -> bool:
        ...

    def resolve_path(self, record: StoredFile) -> Path:
        """
        record.path → 저장 디렉토리 내부 절대 경로.

        Raises:
            PolicyRejectError: INVALID_PATH (디렉토리 밖을 가리키는 경로)
        """
        base = self.storage_dir.resolve()
        candidate = (base / record.path).resolve()
        if candidate.parent != base or not record.path:
            raise PolicyRejectError(
                ErrorCodes.INVALID_PATH,
                file_id=record.id,
                path=record.path,
            )
        return candidate


class JsonMetadataStore(MetadataStore):
    """
    metadata.json 기반 MetadataStore.

    Usage:
        store = JsonMetadataStore(Path("uploads"), config)
        store.put(record)
        store.list()
    """

    def __init__(self, storage_dir: Path, config: dict | None = None):
        """
        Args:
            storage_dir: 업로드 디렉토리 (metadata.json 포함)
            config: 설정 (storage.metadata_filename, 락 설정)
        """
        self.config = config or {}
        self._storage_dir = storage_dir
        filename = self.config.get("storage", {}).get(
            "metadata_filename", METADATA_FILENAME
        )
        self.index_path = storage_dir / filename

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def ensure_ready(self) -> None:
        """
        저장 디렉토리 + 빈 인덱스 준비 (멱등).

        Raises:
            PolicyRejectError: STORAGE_UNAVAILABLE
        """
        try:
            self._storage_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PolicyRejectError(
                ErrorCodes.STORAGE_UNAVAILABLE,
                path=str(self._storage_dir),
                error=str(e),
            ) from e

        if self.index_path.exists():
            return

        with index_lock(self._storage_dir, self.config):
            if not self.index_path.exists():
                self._write([])
                logger.info(f"Initialized empty index at {self.index_path}")

    # =========================================================================
    # Read
    # =========================================================================

    def _read(self) -> IndexSnapshot:
        try:
            raw = load_index_json(self.index_path)
            records = [StoredFile.from_dict(item) for item in raw]
        except FileNotFoundError:
            return IndexSnapshot(records=[], status=INDEX_STATUS_OK)
        except (ValueError, KeyError, TypeError, OverflowError, RecursionError) as e:
            # json.JSONDecodeError 포함, RecursionError는 과도한 중첩
            return IndexSnapshot(
                records=[], status=INDEX_STATUS_UNREADABLE, error=str(e)
            )
        except OSError as e:
            raise PolicyRejectError(
                ErrorCodes.STORAGE_UNAVAILABLE,
                path=str(self.index_path),
                error=str(e),
            ) from e
        return IndexSnapshot(records=records, status=INDEX_STATUS_OK)

    def _read_for_update(self) -> list[StoredFile]:
        """락 안에서 호출. 손상된 인덱스면 쓰기 거부."""
        snapshot = self._read()
        if not snapshot.is_readable:
            raise PolicyRejectError(
                ErrorCodes.METADATA_CORRUPT,
                path=str(self.index_path),
                error=snapshot.error,
            )
        return snapshot.records

    def _write(self, records: list[StoredFile]) -> None:
        try:
            atomic_write_json(self.index_path, [r.to_dict() for r in records])
        except (OSError, TypeError) as e:
            raise PolicyRejectError(
                ErrorCodes.STORAGE_UNAVAILABLE,
                path=str(self.index_path),
                error=str(e),
            ) from e

    def snapshot(self) -> IndexSnapshot:
        """인덱스 전체 + 읽기 상태."""
        self.ensure_ready()
        snapshot = self._read()
        if not snapshot.is_readable:
            logger.warning(
                f"Metadata index unreadable, treating as empty: "
                f"{self.index_path} ({snapshot.error})"
            )
        return snapshot

    def list(self) -> list[StoredFile]:
        """
        전체 레코드 (삽입 순서).

        손상된 인덱스는 빈 목록으로 반환 (snapshot()으로 구분 가능).
        """
        return self.snapshot().records

    def get(self, file_id: str) -> StoredFile | None:
        """ID로 레코드 조회. 없으면 None."""
        for record in self.list():
            if record.id == file_id:
                return record
        return None

    # =========================================================================
    # Write
    # =========================================================================

    def put(self, record: StoredFile) -> None:
        """
        레코드 추가 후 인덱스 전체 재기록.

        Raises:
            PolicyRejectError: DUPLICATE_RECORD_ID, METADATA_CORRUPT,
                               METADATA_LOCK_TIMEOUT, STORAGE_UNAVAILABLE
        """
        self.ensure_ready()
        with index_lock(self._storage_dir, self.config):
            records = self._read_for_update()
            if any(r.id == record.id for r in records):
                raise PolicyRejectError(
                    ErrorCodes.DUPLICATE_RECORD_ID,
                    file_id=record.id,
                )
            records.append(record)
            self._write(records)

    def delete(self, file_id: str) -> bool:
        """
        레코드 + 디스크 파일 삭제.

        - 없는 ID: False (부수효과 없음)
        - 디스크 파일 부재: 이미 삭제된 것으로 간주
        - 디렉토리 밖을 가리키는 path: 파일은 두고 레코드만 제거
        - 인덱스 재기록 성공 후에만 True

        Raises:
            PolicyRejectError: FILE_DELETE_FAILED, METADATA_CORRUPT,
                               METADATA_LOCK_TIMEOUT, STORAGE_UNAVAILABLE
        """
        self.ensure_ready()
        with index_lock(self._storage_dir, self.config):
            records = self._read_for_update()
            target = next((r for r in records if r.id == file_id), None)
            if target is None:
                return False

            try:
                file_path = self.resolve_path(target)
            except PolicyRejectError:
                # 디렉토리 밖 파일은 건드리지 않고 레코드만 제거
                logger.warning(f"Record {file_id} has invalid path {target.path!r}, removing index entry only")
                file_path = None

            if file_path is not None:
                try:
                    file_path.unlink(missing_ok=True)
                except OSError as e:
                    raise PolicyRejectError(
                        ErrorCodes.FILE_DELETE_FAILED,
                        file_id=file_id,
                        path=str(file_path),
                        error=str(e),
                    ) from e

            self._write([r for r in records if r.id != file_id])

        logger.info(f"Deleted file {file_id} ({target.path})")
        return True

    def remove_records(self, file_ids: set[str]) -> int:
        """
        디스크는 건드리지 않고 인덱스에서만 레코드 제거.

        dangling 레코드(디스크 파일 없음) 정리용.

        Returns:
            제거된 레코드 수
        """
        self.ensure_ready()
        with index_lock(self._storage_dir, self.config):
            records = self._read_for_update()
            kept = [r for r in records if r.id not in file_ids]
            removed = len(records) - len(kept)
            if removed:
                self._write(kept)
        return removed

