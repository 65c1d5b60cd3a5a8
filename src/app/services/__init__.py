"""
Services layer: 업로드, 조회/삭제, 채팅.

역할:
- upload: 바이트 저장 + 레코드 등록
- documents: 조회/삭제 경계
- chat: 메모리 세션 + 웹훅 중계
"""

from .chat import ChatService
from .documents import DocumentService
from .upload import UploadService, check_upload_policy

__all__ = [
    "ChatService",
    "DocumentService",
    "UploadService",
    "check_upload_policy",
]
