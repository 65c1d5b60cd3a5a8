"""
Data schemas for the portal.

규칙:
- StoredFile JSON 필드명은 metadata.json과 동일하게 유지 (uploadDate 포함)
- name/type은 클라이언트 입력 → 표시용으로만 사용
- path는 업로드 디렉토리 내부 파일명만 허용
"""

from dataclasses import dataclass, field
from typing import Any

from src.domain.constants import INDEX_STATUS_OK, INDEX_STATUS_UNREADABLE

# =============================================================================
# Stored File (metadata.json 레코드)
# =============================================================================

STORED_FILE_FIELDS = ("id", "name", "size", "uploadDate", "type", "path")


@dataclass
class StoredFile:
    """
    업로드 파일 1건의 메타데이터.

    필드명은 metadata.json 키와 1:1 대응:
    - id, name, size, uploadDate, type, path
    """
    id: str
    name: str  # 원본 파일명 (표시용, 신뢰 불가)
    size: int
    upload_date: str  # ISO 8601
    type: str  # 클라이언트 선언 MIME (신뢰 불가)
    path: str  # <millis>_<sanitized-name>

    def to_dict(self) -> dict[str, Any]:
        """JSON 직렬화용."""
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "uploadDate": self.upload_date,
            "type": self.type,
            "path": self.path,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredFile":
        """
        metadata.json 항목 → StoredFile.

        Raises:
            KeyError: 필수 필드 누락
            TypeError: size가 정수가 아님 (bool, 실수, 문자열 포함)
        """
        size = data["size"]
        if isinstance(size, bool) or not isinstance(size, int):
            raise TypeError(f"size must be an integer, got {size!r}")

        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            size=size,
            upload_date=str(data["uploadDate"]),
            type=str(data["type"]),
            path=str(data["path"]),
        )


@dataclass
class IndexSnapshot:
    """
    인덱스 읽기 결과.

    "비어 있음"과 "읽을 수 없음"을 구분하기 위해 status를 함께 반환.
    """
    records: list[StoredFile] = field(default_factory=list)
    status: str = INDEX_STATUS_OK
    error: str | None = None

    @property
    def is_readable(self) -> bool:
        return self.status != INDEX_STATUS_UNREADABLE


# =============================================================================
# Webhook
# =============================================================================

@dataclass
class WebhookReply:
    """
    웹훅 응답.

    응답 형태는 외부 소유 계약 → output은 best-effort로만 추출.
    """
    ok: bool
    status_code: int
    output: str | None = None
    raw: Any = None


# =============================================================================
# Chat (메모리 전용, 재시작 시 소실)
# =============================================================================

@dataclass
class ChatMessage:
    """채팅 메시지."""
    id: str
    role: str  # user, assistant
    content: str
    timestamp: str  # ISO 8601

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }


@dataclass
class ChatSession:
    """채팅 세션."""
    id: str
    title: str
    created_at: str  # ISO 8601
    updated_at: str  # ISO 8601
    messages: list[ChatMessage] = field(default_factory=list)

    def to_dict(self, include_messages: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if include_messages:
            data["messages"] = [m.to_dict() for m in self.messages]
        return data
