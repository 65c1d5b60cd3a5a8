"""
Error definitions for the portal.

규칙:
- 조용한 실패 금지 → PolicyRejectError로 명시적 실패
- not-found는 에러가 아님 (None / False 로 표현)
- 손상된 인덱스 위에 덮어쓰기 금지 → METADATA_CORRUPT
"""

from typing import Any


class PolicyRejectError(Exception):
    """
    저장소/웹훅 정책 위반 시 발생하는 에러.

    즉시 중단이 필요한 경우에만 사용:
    - 저장 디렉토리 생성 불가
    - 인덱스 손상 상태에서 쓰기 시도
    - 락 timeout
    - 디스크 쓰기 실패, 파일명 충돌
    - 웹훅 호출 실패

    Usage:
        raise PolicyRejectError("FILE_WRITE_FAILED", path=str(path), cause=e)
    """

    def __init__(self, code: str, **context: Any) -> None:
        self.code = code
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {ctx_str}" if ctx_str else f"[{self.code}]"

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            **{k: str(v) for k, v in self.context.items()},
        }


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수. 새 코드 추가 시 routes의 HTTP 상태 매핑도 함께 추가."""

    # === Storage ===
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    METADATA_CORRUPT = "METADATA_CORRUPT"
    METADATA_LOCK_TIMEOUT = "METADATA_LOCK_TIMEOUT"
    DUPLICATE_RECORD_ID = "DUPLICATE_RECORD_ID"
    INVALID_PATH = "INVALID_PATH"

    # === Upload ===
    FILE_WRITE_FAILED = "FILE_WRITE_FAILED"
    FILE_DELETE_FAILED = "FILE_DELETE_FAILED"
    STORED_NAME_COLLISION = "STORED_NAME_COLLISION"
    UNSUPPORTED_FILE_TYPE = "UNSUPPORTED_FILE_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"

    # === Webhook ===
    WEBHOOK_NOT_CONFIGURED = "WEBHOOK_NOT_CONFIGURED"
    WEBHOOK_UNREACHABLE = "WEBHOOK_UNREACHABLE"
    WEBHOOK_REJECTED = "WEBHOOK_REJECTED"

    # === Chat ===
    EMPTY_MESSAGE = "EMPTY_MESSAGE"
