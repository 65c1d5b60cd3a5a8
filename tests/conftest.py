"""
Pytest fixtures for the portal tests.

테스트 구성:
- 저장소는 tmp_path 아래에 생성 (실제 uploads/ 사용 금지)
- 락 재시도는 짧게 설정
"""

from collections.abc import Generator
from pathlib import Path

import pytest

from src.core.metadata_store import JsonMetadataStore
from src.domain.schemas import StoredFile

# =============================================================================
# Path Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    """업로드 디렉토리 (아직 생성되지 않은 상태)."""
    return tmp_path / "uploads"


# =============================================================================
# Config Fixtures
# =============================================================================

@pytest.fixture
def test_config() -> dict:
    """테스트용 설정."""
    return {
        "storage": {
            "metadata_filename": "metadata.json",
            "lock_dir": ".lock",
            "lock_retry_interval": 0.01,
            "lock_max_retries": 50,
        },
        "uploads": {
            "allowed_types": ["application/pdf"],
            "max_size_mb": 1,
        },
        "webhook": {
            "upload_url": "http://webhook.test/upload",
            "chat_url": "http://webhook.test/chat",
            "timeout": 5.0,
        },
    }


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def store(upload_dir: Path, test_config: dict) -> Generator[JsonMetadataStore, None, None]:
    """준비된 JsonMetadataStore."""
    store = JsonMetadataStore(upload_dir, test_config)
    store.ensure_ready()
    yield store


@pytest.fixture
def fixed_clock() -> int:
    """고정 epoch millis."""
    return 1_700_000_000_123


def make_record(file_id: str, path: str | None = None, **overrides) -> StoredFile:
    """테스트용 StoredFile 생성."""
    data = {
        "id": file_id,
        "name": f"{file_id}.pdf",
        "size": 10,
        "upload_date": "2024-01-15T09:30:00+00:00",
        "type": "application/pdf",
        "path": path or f"1700000000000_{file_id}.pdf",
    }
    data.update(overrides)
    return StoredFile(**data)


@pytest.fixture
def record_factory():
    """make_record 팩토리."""
    return make_record
