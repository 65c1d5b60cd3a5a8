"""
ID 생성: file_id, session_id, message_id, 저장 파일명

규칙:
- file_id는 wall-clock과 무관한 랜덤 토큰 (같은 ms 업로드에서도 충돌 없음)
- 저장 파일명만 <epoch-millis>_ 접두사 사용
"""

import re
import time
import uuid

from src.domain.constants import (
    SAFE_FILENAME_PATTERN,
    SAFE_FILENAME_REPLACEMENT,
    SESSION_ID_PREFIX,
    UNNAMED_FILENAME,
)

_UNSAFE_CHARS = re.compile(SAFE_FILENAME_PATTERN)


def generate_file_id() -> str:
    """
    StoredFile ID 생성.

    포맷: uuid4 hex (32자)
    """
    return uuid.uuid4().hex


def generate_session_id() -> str:
    """채팅 세션 ID 생성. 포맷: session_{uuid[:12]}"""
    return f"{SESSION_ID_PREFIX}{uuid.uuid4().hex[:12]}"


def generate_message_id() -> str:
    return uuid.uuid4().hex


def current_millis() -> int:
    """현재 epoch milliseconds."""
    return time.time_ns() // 1_000_000


def sanitize_filename(name: str) -> str:
    """
    디스크 저장용 파일명 정리.

    - [A-Za-z0-9.-] 이외 문자 → "_" (1:1 치환, 길이 유지)
    - 빈 문자열 → "unnamed"

    예: "my report (final).pdf" → "my_report__final_.pdf"
    """
    if not name:
        return UNNAMED_FILENAME
    return _UNSAFE_CHARS.sub(SAFE_FILENAME_REPLACEMENT, name)


def build_stored_filename(name: str, timestamp_ms: int) -> str:
    """
    저장 파일명 생성.

    포맷: <epoch-millis>_<sanitized-name>

    Args:
        name: 클라이언트 원본 파일명
        timestamp_ms: epoch milliseconds

    Returns:
        디스크 파일명 (디렉토리 구분자 포함 불가)
    """
    return f"{timestamp_ms}_{sanitize_filename(name)}"
