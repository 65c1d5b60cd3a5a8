"""
test_upload_service.py - UploadService / check_upload_policy 테스트

검증 포인트:
1. 저장 파일명 = <millis>_<정리된 이름>
2. 같은 ms + 같은 이름 → STORED_NAME_COLLISION, 기존 파일 보존
3. 인덱스 등록 실패 시 파일은 고아로 남음
"""

from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from src.app.services.upload import UploadService, check_upload_policy
from src.core.metadata_store import JsonMetadataStore
from src.domain.errors import ErrorCodes, PolicyRejectError

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def service(store: JsonMetadataStore, fixed_clock: int) -> UploadService:
    return UploadService(store, clock=lambda: fixed_clock)


# =============================================================================
# create
# =============================================================================


class TestUploadCreate:
    """UploadService.create 테스트."""

    def test_report_pdf(self, service: UploadService, store: JsonMetadataStore):
        """100바이트 report.pdf → 디스크 + 인덱스."""
        content = b"%PDF" + b"0" * 96

        record = service.create(content, "report.pdf", 100, "application/pdf")

        assert record.path == "1700000000123_report.pdf"
        assert record.name == "report.pdf"
        assert record.size == 100
        assert record.type == "application/pdf"
        assert (store.storage_dir / record.path).read_bytes() == content
        assert store.get(record.id) == record

    def test_upload_date_is_iso8601(self, service: UploadService):
        record = service.create(b"x", "a.pdf", content_type="application/pdf")

        parsed = datetime.fromisoformat(record.upload_date)
        assert parsed.tzinfo is not None

    def test_display_name_kept_stored_name_sanitized(self, service: UploadService):
        record = service.create(b"x", "my report (final).pdf", 1, "application/pdf")

        assert record.name == "my report (final).pdf"
        assert record.path == "1700000000123_my_report__final_.pdf"

    def test_size_defaults_to_content_length(self, service: UploadService):
        record = service.create(b"12345", "a.pdf")
        assert record.size == 5

    def test_declared_size_recorded_verbatim(self, service: UploadService):
        record = service.create(b"12345", "a.pdf", size=999)
        assert record.size == 999

    def test_missing_content_type_is_empty_string(self, service: UploadService):
        record = service.create(b"x", "a.pdf")
        assert record.type == ""

    def test_creates_storage_directory(self, upload_dir: Path, test_config: dict, fixed_clock: int):
        store = JsonMetadataStore(upload_dir, test_config)
        service = UploadService(store, clock=lambda: fixed_clock)

        service.create(b"x", "a.pdf")

        assert upload_dir.is_dir()
        assert (upload_dir / "metadata.json").exists()

    def test_distinct_ids_for_same_timestamp(self, service: UploadService):
        first = service.create(b"a", "a.pdf")
        second = service.create(b"b", "b.pdf")

        assert first.id != second.id
        assert first.path != second.path

    def test_upload_order_is_list_order(self, service: UploadService, store: JsonMetadataStore):
        names = ["c.pdf", "a.pdf", "b.pdf"]
        for name in names:
            service.create(b"x", name)

        assert [r.name for r in store.list()] == names


class TestUploadCollision:
    """같은 ms + 같은 정리 파일명 충돌."""

    def test_collision_rejected_and_first_file_intact(
        self, service: UploadService, store: JsonMetadataStore
    ):
        first = service.create(b"first", "report.pdf")

        with pytest.raises(PolicyRejectError) as exc_info:
            service.create(b"second", "report.pdf")

        assert exc_info.value.code == ErrorCodes.STORED_NAME_COLLISION
        assert exc_info.value.context["path"] == "1700000000123_report.pdf"
        assert (store.storage_dir / first.path).read_bytes() == b"first"
        assert [r.id for r in store.list()] == [first.id]

    def test_names_that_sanitize_alike_collide(self, service: UploadService):
        service.create(b"a", "a b.pdf")

        with pytest.raises(PolicyRejectError) as exc_info:
            service.create(b"b", "a_b.pdf")

        assert exc_info.value.code == ErrorCodes.STORED_NAME_COLLISION


class TestUploadFailures:
    def test_write_failure(self, service: UploadService, store: JsonMetadataStore):
        with patch(
            "src.app.services.upload.write_bytes_exclusive",
            side_effect=OSError("disk full"),
        ):
            with pytest.raises(PolicyRejectError) as exc_info:
                service.create(b"x", "a.pdf")

        assert exc_info.value.code == ErrorCodes.FILE_WRITE_FAILED
        assert store.list() == []

    def test_index_failure_leaves_orphan(self, service: UploadService, store: JsonMetadataStore):
        store.index_path.write_text("{broken", encoding="utf-8")

        with pytest.raises(PolicyRejectError) as exc_info:
            service.create(b"x", "a.pdf")

        assert exc_info.value.code == ErrorCodes.METADATA_CORRUPT
        assert (store.storage_dir / "1700000000123_a.pdf").exists()


# =============================================================================
# check_upload_policy
# =============================================================================


class TestCheckUploadPolicy:
    def test_pdf_within_limit_passes(self, test_config: dict):
        check_upload_policy("a.pdf", "application/pdf", 1024, test_config)

    def test_non_pdf_rejected(self, test_config: dict):
        with pytest.raises(PolicyRejectError) as exc_info:
            check_upload_policy("a.txt", "text/plain", 10, test_config)

        assert exc_info.value.code == ErrorCodes.UNSUPPORTED_FILE_TYPE
        assert exc_info.value.context["type"] == "text/plain"

    def test_too_large_rejected(self, test_config: dict):
        with pytest.raises(PolicyRejectError) as exc_info:
            check_upload_policy("a.pdf", "application/pdf", 2 * 1024 * 1024, test_config)

        assert exc_info.value.code == ErrorCodes.FILE_TOO_LARGE

    def test_defaults_without_config(self):
        check_upload_policy("a.pdf", "application/pdf", 10, {})

        with pytest.raises(PolicyRejectError):
            check_upload_policy("a.png", "image/png", 10, {})

    def test_empty_allowed_list_accepts_any_type(self):
        check_upload_policy("a.png", "image/png", 10, {"uploads": {"allowed_types": []}})


# =============================================================================
# create_batch
# =============================================================================


class TestUploadBatch:
    """여러 파일 업로드: 전부 저장 또는 전부 롤백."""

    def test_all_stored_in_order(self, service: UploadService, store: JsonMetadataStore):
        records = service.create_batch([
            (b"a", "a.pdf", 1, "application/pdf"),
            (b"b", "b.pdf", 1, "application/pdf"),
        ])

        assert [r.name for r in records] == ["a.pdf", "b.pdf"]
        assert [r.id for r in store.list()] == [r.id for r in records]

    def test_same_name_in_batch_rejected_before_writing(
        self, service: UploadService, store: JsonMetadataStore
    ):
        with pytest.raises(PolicyRejectError) as exc_info:
            service.create_batch([
                (b"first", "scan.pdf", 5, "application/pdf"),
                (b"second", "scan.pdf", 6, "application/pdf"),
            ])

        assert exc_info.value.code == ErrorCodes.STORED_NAME_COLLISION
        assert exc_info.value.context["stored"] == 0
        assert store.list() == []
        assert [p.name for p in store.storage_dir.iterdir()] == ["metadata.json"]

    def test_names_that_sanitize_alike_rejected(self, service: UploadService, store: JsonMetadataStore):
        with pytest.raises(PolicyRejectError) as exc_info:
            service.create_batch([(b"a", "a b.pdf", 1, ""), (b"b", "a_b.pdf", 1, "")])

        assert exc_info.value.context["conflicts_with"] == "a b.pdf"
        assert store.list() == []

    def test_later_failure_rolls_back_earlier_files(
        self, service: UploadService, store: JsonMetadataStore
    ):
        """다른 요청이 같은 ms에 쓴 파일과 충돌 → 앞서 저장한 파일도 되돌림."""
        existing = store.storage_dir / "1700000000123_b.pdf"
        existing.write_bytes(b"other request")

        with pytest.raises(PolicyRejectError) as exc_info:
            service.create_batch([
                (b"a", "a.pdf", 1, "application/pdf"),
                (b"b", "b.pdf", 1, "application/pdf"),
            ])

        assert exc_info.value.code == ErrorCodes.STORED_NAME_COLLISION
        assert store.list() == []
        assert not (store.storage_dir / "1700000000123_a.pdf").exists()
        assert existing.read_bytes() == b"other request"
