"""
Chat Routes: HR 채팅.

- GET / → 채팅 화면
- POST /api/chat/message → 메시지 전송 (웹훅 응답 또는 기본 응답)
- GET /api/chat/sessions?q= → 세션 목록/검색
- POST /api/chat/sessions → 새 세션
- GET /api/chat/sessions/<id> → 세션 상세 (메시지 포함)
- DELETE /api/chat/sessions/<id> → 세션 삭제

세션은 서버 메모리에만 존재 (재시작 시 소실).
"""

from pathlib import Path
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, Field

from src.app.services.chat import ChatService

_templates_dir = Path(__file__).parent.parent / "templates"
jinja_templates = Jinja2Templates(directory=_templates_dir)

# Routers
router = APIRouter()  # HTML pages
api_router = APIRouter()  # API endpoints


class MessageRequest(BaseModel):
    """채팅 메시지 요청 본문."""
    message: str
    session_id: str | None = Field(default=None, alias="sessionId")

    model_config = {"populate_by_name": True}


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def _session_not_found(session_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "SESSION_NOT_FOUND", "message": f"Session '{session_id}' not found"},
    )


# =============================================================================
# Page Routes (HTML)
# =============================================================================

@router.get("/", response_class=HTMLResponse)
async def chat_page(request: Request) -> HTMLResponse:
    """채팅 화면."""
    config = getattr(request.app.state, "config", {}) or {}
    return jinja_templates.TemplateResponse(
        request,
        "chat.html",
        {"title": config.get("app", {}).get("title", "HR Document Portal")},
    )


# =============================================================================
# API Routes
# =============================================================================

@api_router.post("/message")
async def send_message(request: Request, body: MessageRequest) -> dict[str, Any]:
    """
    메시지 전송.

    Returns:
        {"sessionId", "title", "reply": ChatMessage}
    """
    session, reply = await get_chat_service(request).send_message(
        body.message, body.session_id
    )
    return {
        "sessionId": session.id,
        "title": session.title,
        "reply": reply.to_dict(),
    }


@api_router.get("/sessions")
async def list_sessions(request: Request, q: str | None = None) -> dict[str, Any]:
    """세션 목록 (최근순). q로 제목/본문 검색."""
    sessions = get_chat_service(request).list_sessions(q)
    return {"sessions": [s.to_dict(include_messages=False) for s in sessions]}


@api_router.post("/sessions")
async def create_session(request: Request) -> dict[str, Any]:
    """새 채팅."""
    return get_chat_service(request).new_session().to_dict()


@api_router.get("/sessions/{session_id}")
async def get_session(request: Request, session_id: str) -> dict[str, Any]:
    session = get_chat_service(request).get_session(session_id)
    if session is None:
        raise _session_not_found(session_id)
    return session.to_dict()


@api_router.delete("/sessions/{session_id}")
async def delete_session(request: Request, session_id: str) -> dict[str, Any]:
    if not get_chat_service(request).delete_session(session_id):
        raise _session_not_found(session_id)
    return {"success": True}
