"""
Domain Constants: 포털 전역 상수.

저장소 레이아웃, 파일명 정책, 채팅 기본값 등 시스템 전반에서 사용되는 값들.
"""

# =============================================================================
# Storage Layout (업로드 저장소 구조)
# =============================================================================
# uploads/
# ├── metadata.json                     # 인덱스 (StoredFile 배열)
# ├── .lock/                            # read-modify-write 락
# └── <epoch-millis>_<sanitized-name>   # 업로드 원본

DEFAULT_UPLOAD_DIR = "uploads"
METADATA_FILENAME = "metadata.json"
LOCK_DIR_NAME = ".lock"
TEMP_FILE_SUFFIX = ".tmp"

# =============================================================================
# Filename Policy (저장 파일명 정책)
# =============================================================================
# [A-Za-z0-9.-] 이외 문자는 "_"로 치환 후 "<millis>_" 접두사

SAFE_FILENAME_PATTERN = r"[^a-zA-Z0-9.-]"
SAFE_FILENAME_REPLACEMENT = "_"
UNNAMED_FILENAME = "unnamed"

# =============================================================================
# Index Status
# =============================================================================

INDEX_STATUS_OK = "ok"
INDEX_STATUS_UNREADABLE = "unreadable"

# =============================================================================
# Upload Policy (기존 관리자 화면: PDF만 허용)
# =============================================================================

DEFAULT_ALLOWED_TYPES = ("application/pdf",)
DEFAULT_MAX_UPLOAD_SIZE_MB = 50

# =============================================================================
# Webhook Payload
# =============================================================================

WEBHOOK_UPLOAD_FIELD = "url"
WEBHOOK_UPLOAD_SOURCE = "fileupload"
WEBHOOK_CHAT_SOURCE = "chat"
DEFAULT_WEBHOOK_TIMEOUT = 30.0

# =============================================================================
# Chat
# =============================================================================

SESSION_ID_PREFIX = "session_"
CHAT_TITLE_MAX_LENGTH = 30

GREETING_KEYWORDS = (
    "hi",
    "hello",
    "hey",
    "welcome",
    "good morning",
    "good afternoon",
    "good evening",
)
GREETING_REPLY = "Hi! How can I help you today?"
FALLBACK_REPLY = (
    "I am sorry I don't have the relevant data you requested. "
    "Please contact the HR team to resolve your queries."
)
