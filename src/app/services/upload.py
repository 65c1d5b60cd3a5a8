"""
Upload Service: 업로드 바이트 → 디스크 + metadata.json 레코드.

규칙:
- 저장 파일명: <epoch-millis>_<sanitized-name>
- 같은 ms + 같은 정리 파일명 → STORED_NAME_COLLISION (기존 파일 보존)
- 디스크 기록 후 인덱스 등록 실패 시 파일은 고아로 남음 (인덱스가 진실 원천)
- 여러 파일 업로드(create_batch)는 전부 성공 또는 전부 롤백
"""

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from src.core.ids import (
    build_stored_filename,
    current_millis,
    generate_file_id,
    sanitize_filename,
)
from src.core.metadata_store import MetadataStore
from src.core.ssot_index import write_bytes_exclusive
from src.domain.constants import DEFAULT_ALLOWED_TYPES, DEFAULT_MAX_UPLOAD_SIZE_MB
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import StoredFile

logger = logging.getLogger(__name__)


class UploadService:
    """
    업로드 처리 서비스.

    Usage:
        service = UploadService(store)
        record = service.create(b"...", "report.pdf", 100, "application/pdf")
    """

    def __init__(
        self,
        store: MetadataStore,
        clock: Callable[[], int] = current_millis,
    ):
        """
        Args:
            store: MetadataStore 구현
            clock: epoch milliseconds 공급 함수 (테스트에서 고정값 주입)
        """
        self.store = store
        self.clock = clock

    def create(
        self,
        file_bytes: bytes,
        name: str,
        size: int | None = None,
        content_type: str = "",
    ) -> StoredFile:
        """
        업로드 파일 저장 + 레코드 등록.

        Args:
            file_bytes: 파일 원본 바이트
            name: 클라이언트 파일명
            size: 클라이언트 선언 크기 (None이면 len(file_bytes))
            content_type: 클라이언트 선언 MIME

        Returns:
            등록된 StoredFile

        Raises:
            PolicyRejectError: STORED_NAME_COLLISION, FILE_WRITE_FAILED,
                               STORAGE_UNAVAILABLE, METADATA_CORRUPT, ...
        """
        self.store.ensure_ready()

        timestamp_ms = self.clock()
        stored_name = build_stored_filename(name, timestamp_ms)
        file_path = self.store.storage_dir / stored_name

        try:
            created = write_bytes_exclusive(file_path, file_bytes)
        except OSError as e:
            raise PolicyRejectError(
                ErrorCodes.FILE_WRITE_FAILED,
                path=stored_name,
                error=str(e),
            ) from e

        if not created:
            raise PolicyRejectError(
                ErrorCodes.STORED_NAME_COLLISION,
                path=stored_name,
                name=name,
            )

        record = StoredFile(
            id=generate_file_id(),
            name=name,
            size=len(file_bytes) if size is None else size,
            upload_date=datetime.now(UTC).isoformat(),
            type=content_type or "",
            path=stored_name,
        )

        # 실패 시 파일은 고아로 남음 (reconcile_uploads.py로 정리)
        self.store.put(record)

        logger.info(f"Stored upload {record.id}: {record.name!r} -> {stored_name} ({record.size} bytes)")
        return record

    def create_batch(
        self,
        files: Sequence[tuple[bytes, str, int | None, str]],
    ) -> list[StoredFile]:
        """
        여러 파일을 전부 저장하거나 하나도 저장하지 않음.

        - 같은 요청 안에서 정리 파일명이 겹치면 아무것도 쓰기 전에 거절
        - 중간 실패 시 이미 저장한 레코드/파일을 삭제하고 원래 에러 전파

        Args:
            files: [(file_bytes, name, size, content_type), ...]

        Returns:
            등록된 StoredFile 목록 (입력 순서)

        Raises:
            PolicyRejectError: STORED_NAME_COLLISION 및 create()의 에러
        """
        seen: dict[str, str] = {}
        for _, name, _, _ in files:
            sanitized = sanitize_filename(name)
            if sanitized in seen:
                raise PolicyRejectError(
                    ErrorCodes.STORED_NAME_COLLISION,
                    name=name,
                    conflicts_with=seen[sanitized],
                    stored=0,
                )
            seen[sanitized] = name

        stored: list[StoredFile] = []
        try:
            for file_bytes, name, size, content_type in files:
                stored.append(self.create(file_bytes, name, size, content_type))
        except PolicyRejectError:
            self._rollback(stored)
            raise
        return stored

    def _rollback(self, records: list[StoredFile]) -> None:
        for record in records:
            try:
                self.store.delete(record.id)
            except PolicyRejectError as e:
                logger.error(f"Rollback failed for upload {record.id} ({record.path}): {e}")
            else:
                logger.info(f"Rolled back upload {record.id} ({record.path})")


def check_upload_policy(
    name: str,
    content_type: str,
    size: int,
    config: dict,
) -> None:
    """
    업로드 정책 검사 (관리자 화면 경로).

    Args:
        name: 파일명 (에러 컨텍스트용)
        content_type: 클라이언트 선언 MIME
        size: 바이트 수
        config: 설정 (uploads.allowed_types, uploads.max_size_mb)

    Raises:
        PolicyRejectError: UNSUPPORTED_FILE_TYPE, FILE_TOO_LARGE
    """
    uploads_cfg = config.get("uploads", {})
    allowed = uploads_cfg.get("allowed_types", list(DEFAULT_ALLOWED_TYPES))
    max_size_mb = uploads_cfg.get("max_size_mb", DEFAULT_MAX_UPLOAD_SIZE_MB)

    if allowed and content_type not in allowed:
        raise PolicyRejectError(
            ErrorCodes.UNSUPPORTED_FILE_TYPE,
            name=name,
            type=content_type,
            allowed=", ".join(allowed),
        )

    if max_size_mb and size > max_size_mb * 1024 * 1024:
        raise PolicyRejectError(
            ErrorCodes.FILE_TOO_LARGE,
            name=name,
            size=size,
            max_size_mb=max_size_mb,
        )
