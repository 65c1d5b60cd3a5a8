"""
Chat Service: 메모리 세션 + 웹훅 중계.

규칙:
- 세션은 프로세스 메모리에만 보관 (재시작 시 소실)
- 웹훅 실패/비정상 응답 → 기본 응답(fallback)으로 대체, 대화는 계속
- 세션 제목: 첫 사용자 메시지 30자 + "..."
"""

import logging
import threading
from datetime import UTC, datetime

from src.app.providers.webhook import WebhookClient
from src.core.ids import generate_message_id, generate_session_id
from src.domain.constants import (
    CHAT_TITLE_MAX_LENGTH,
    FALLBACK_REPLY,
    GREETING_KEYWORDS,
    GREETING_REPLY,
)
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import ChatMessage, ChatSession

logger = logging.getLogger(__name__)

NEW_CHAT_TITLE = "New chat"


def build_chat_title(first_message: str, max_length: int = CHAT_TITLE_MAX_LENGTH) -> str:
    """첫 메시지로 세션 제목 생성."""
    if len(first_message) > max_length:
        return first_message[:max_length] + "..."
    return first_message


def fallback_reply(message: str) -> str:
    """
    웹훅 응답이 없을 때의 기본 응답.

    인사말 키워드(부분 문자열 매칭)면 인사, 그 외엔 HR 문의 안내.
    """
    normalized = message.lower().strip()
    if any(keyword in normalized for keyword in GREETING_KEYWORDS):
        return GREETING_REPLY
    return FALLBACK_REPLY


def _now() -> str:
    return datetime.now(UTC).isoformat()


class ChatService:
    """
    채팅 세션 관리 서비스.

    Usage:
        service = ChatService(webhook_client)
        session, reply = await service.send_message("hello")
    """

    def __init__(self, webhook: WebhookClient, title_max_length: int = CHAT_TITLE_MAX_LENGTH):
        self.webhook = webhook
        self.title_max_length = title_max_length
        self._sessions: dict[str, ChatSession] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # Sessions
    # =========================================================================

    def new_session(self) -> ChatSession:
        now = _now()
        session = ChatSession(
            id=generate_session_id(),
            title=NEW_CHAT_TITLE,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get_session(self, session_id: str) -> ChatSession | None:
        return self._sessions.get(session_id)

    def list_sessions(self, query: str | None = None) -> list[ChatSession]:
        """
        세션 목록 (최근 수정순).

        Args:
            query: 제목/메시지 본문 부분 일치 검색 (대소문자 무시)
        """
        with self._lock:
            sessions = list(self._sessions.values())

        if query and query.strip():
            needle = query.strip().lower()
            sessions = [
                s for s in sessions
                if needle in s.title.lower()
                or any(needle in m.content.lower() for m in s.messages)
            ]

        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    # =========================================================================
    # Messages
    # =========================================================================

    def _append(self, session: ChatSession, role: str, content: str) -> ChatMessage:
        message = ChatMessage(
            id=generate_message_id(),
            role=role,
            content=content,
            timestamp=_now(),
        )
        with self._lock:
            if role == "user" and not any(m.role == "user" for m in session.messages):
                session.title = build_chat_title(content, self.title_max_length)
            session.messages.append(message)
            session.updated_at = message.timestamp
        return message

    async def _ask_webhook(self, text: str, session_id: str) -> str | None:
        """웹훅 응답 텍스트. 실패/비정상 응답이면 None."""
        try:
            reply = await self.webhook.send_chat_message(text, session_id)
        except PolicyRejectError as e:
            logger.warning(f"Chat webhook unavailable, using fallback reply: {e}")
            return None

        if not reply.ok:
            return None
        if reply.output is None:
            logger.warning(
                f"Chat webhook reply had no output field (status {reply.status_code})"
            )
        return reply.output

    async def send_message(
        self,
        text: str,
        session_id: str | None = None,
    ) -> tuple[ChatSession, ChatMessage]:
        """
        사용자 메시지 전송 → 어시스턴트 응답.

        Args:
            text: 사용자 입력
            session_id: 기존 세션 ID (없거나 모르는 ID면 새 세션)

        Returns:
            (세션, 어시스턴트 메시지)

        Raises:
            PolicyRejectError: EMPTY_MESSAGE
        """
        content = text.strip() if text else ""
        if not content:
            raise PolicyRejectError(ErrorCodes.EMPTY_MESSAGE)

        session = self.get_session(session_id) if session_id else None
        if session is None:
            session = self.new_session()

        self._append(session, "user", content)

        output = await self._ask_webhook(content, session.id)
        answer = output if output else fallback_reply(content)

        assistant = self._append(session, "assistant", answer)
        return session, assistant
