"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uvicorn src.app.main:app --reload
- 프로덕션: uvicorn src.app.main:app
"""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from fastapi import FastAPI

from src.app.providers.webhook import WebhookClient
from src.app.routes import chat, documents
from src.app.routes.errors import handle_policy_error
from src.app.services.chat import ChatService
from src.core.logging import configure_logging
from src.core.metadata_store import JsonMetadataStore
from src.domain.constants import CHAT_TITLE_MAX_LENGTH, DEFAULT_UPLOAD_DIR
from src.domain.errors import PolicyRejectError

PROJECT_ROOT = Path(__file__).parent.parent.parent

# 환경변수 → 설정 경로 (section, key, 변환)
ENV_OVERRIDES: dict[str, tuple[str, str, Any]] = {
    "UPLOAD_DIR": ("storage", "upload_dir", str),
    "WEBHOOK_UPLOAD_URL": ("webhook", "upload_url", str),
    "WEBHOOK_CHAT_URL": ("webhook", "chat_url", str),
    "WEBHOOK_TIMEOUT": ("webhook", "timeout", float),
    "LOG_LEVEL": ("logging", "level", str),
}

# =============================================================================
# Configuration
# =============================================================================


def load_config(config_path: Path | None = None) -> dict:
    """
    설정 파일 로드 + 환경변수 오버라이드.

    .env가 있으면 먼저 로드 (이미 설정된 환경변수는 유지).
    """
    if config_path is None:
        config_path = PROJECT_ROOT / "default.yaml"

    config: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

    load_dotenv(PROJECT_ROOT / ".env")
    apply_env_overrides(config, os.environ)
    return config


def apply_env_overrides(config: dict, environ: Any) -> dict:
    """환경변수 값으로 설정 덮어쓰기 (빈 값은 무시)."""
    for env_name, (section, key, cast) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            config.setdefault(section, {})[key] = cast(value)
    return config


def resolve_upload_dir(config: dict) -> Path:
    """storage.upload_dir (상대 경로는 프로젝트 루트 기준)."""
    upload_dir = Path(config.get("storage", {}).get("upload_dir", DEFAULT_UPLOAD_DIR))
    if not upload_dir.is_absolute():
        upload_dir = PROJECT_ROOT / upload_dir
    return upload_dir


def init_state(app: FastAPI, config: dict) -> None:
    """
    app.state 구성.

    - config, store (저장소 준비 포함), webhook, chat_service
    """
    store = JsonMetadataStore(resolve_upload_dir(config), config)
    store.ensure_ready()

    webhook = WebhookClient.from_config(config)

    app.state.config = config
    app.state.store = store
    app.state.webhook = webhook
    app.state.chat_service = ChatService(
        webhook,
        title_max_length=config.get("chat", {}).get("title_max_length", CHAT_TITLE_MAX_LENGTH),
    )


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    애플리케이션 생명주기 관리.

    시작 시: 설정 로드, 로깅 설정, 저장소 준비
    """
    config = load_config()
    configure_logging(config)
    init_state(app, config)

    yield


# =============================================================================
# App Instance
# =============================================================================

app = FastAPI(
    title="HR Document Portal",
    description="HR 문서 관리 + 채팅 (자동화 웹훅 연동)",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_exception_handler(PolicyRejectError, handle_policy_error)

# 페이지 라우트 (HTML)
app.include_router(chat.router, tags=["Chat"])
app.include_router(documents.router, tags=["Documents"])

# API 라우트
app.include_router(chat.api_router, prefix="/api/chat", tags=["Chat API"])
app.include_router(documents.api_router, prefix="/api/upload", tags=["Documents API"])
app.include_router(documents.admin_api_router, prefix="/api/admin", tags=["Admin API"])


@app.get("/health")
async def health() -> dict[str, str]:
    """헬스 체크."""
    return {"status": "ok"}


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
