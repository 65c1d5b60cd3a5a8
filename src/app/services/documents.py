"""
Document Service: 조회/삭제 경계.

not-found는 예외가 아니라 None / False 로 전달.
HTTP 계층이 404로 변환.
"""

import logging
from pathlib import Path

from src.core.metadata_store import MetadataStore
from src.domain.schemas import IndexSnapshot, StoredFile

logger = logging.getLogger(__name__)


class DocumentService:
    """MetadataStore 조회/삭제를 외부 경계에 노출."""

    def __init__(self, store: MetadataStore):
        self.store = store

    def list_documents(self) -> list[StoredFile]:
        return self.store.list()

    def list_snapshot(self) -> IndexSnapshot:
        """목록 + 인덱스 상태 (ok / unreadable)."""
        return self.store.snapshot()

    def get_document(self, file_id: str) -> StoredFile | None:
        return self.store.get(file_id)

    def delete_document(self, file_id: str) -> bool:
        """삭제 성공 시 True, 없는 ID면 False."""
        deleted = self.store.delete(file_id)
        if not deleted:
            logger.info(f"Delete requested for unknown file id {file_id}")
        return deleted

    def document_path(self, file_id: str) -> tuple[StoredFile, Path] | None:
        """
        다운로드용 (레코드, 디스크 경로).

        Returns:
            레코드가 없거나 디스크 파일이 없으면 None

        Raises:
            PolicyRejectError: INVALID_PATH
        """
        record = self.store.get(file_id)
        if record is None:
            return None

        path = self.store.resolve_path(record)
        if not path.is_file():
            logger.warning(f"Indexed file missing on disk: {file_id} ({record.path})")
            return None
        return record, path
