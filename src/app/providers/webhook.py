"""
Automation Webhook Provider.

외부 자동화 웹훅(불투명 HTTP 싱크)으로 문서/채팅 메시지 전달.

응답 계약은 외부 소유:
- 배열 형태: [{"output": "..."}]
- 객체 형태: {"output": "..."}
- 그 외: output=None (ok 여부만 신뢰)
"""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import httpx

from src.domain.constants import (
    DEFAULT_WEBHOOK_TIMEOUT,
    WEBHOOK_CHAT_SOURCE,
    WEBHOOK_UPLOAD_FIELD,
    WEBHOOK_UPLOAD_SOURCE,
)
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import WebhookReply

logger = logging.getLogger(__name__)


def extract_output(payload: Any) -> str | None:
    """
    웹훅 응답에서 output 텍스트 추출.

    Args:
        payload: JSON 디코딩된 응답 본문

    Returns:
        output 문자열 또는 None (형태 불일치)
    """
    if isinstance(payload, list):
        payload = payload[0] if payload else None

    if isinstance(payload, dict):
        output = payload.get("output")
        if isinstance(output, str):
            return output
    return None


class WebhookClient:
    """
    웹훅 클라이언트.

    Usage:
        client = WebhookClient(
            upload_url="http://localhost:5678/webhook/...",
            chat_url="http://localhost:5678/webhook/...",
        )
        reply = await client.send_chat_message("hello", "session_abc")
    """

    def __init__(
        self,
        upload_url: str | None = None,
        chat_url: str | None = None,
        timeout: float = DEFAULT_WEBHOOK_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            upload_url: 문서 업로드 웹훅 URL
            chat_url: 채팅 웹훅 URL
            timeout: 요청 타임아웃(초)
            transport: httpx transport (테스트에서 MockTransport 주입)
        """
        self.upload_url = upload_url
        self.chat_url = chat_url
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, config: dict) -> "WebhookClient":
        webhook_cfg = config.get("webhook", {})
        return cls(
            upload_url=webhook_cfg.get("upload_url") or None,
            chat_url=webhook_cfg.get("chat_url") or None,
            timeout=float(webhook_cfg.get("timeout", DEFAULT_WEBHOOK_TIMEOUT)),
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _post(self, url: str | None, purpose: str, **kwargs: Any) -> WebhookReply:
        if not url:
            raise PolicyRejectError(ErrorCodes.WEBHOOK_NOT_CONFIGURED, purpose=purpose)

        try:
            async with self._client() as client:
                response = await client.post(url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"Webhook {purpose} request failed: {e!r}")
            raise PolicyRejectError(
                ErrorCodes.WEBHOOK_UNREACHABLE,
                purpose=purpose,
                error=str(e) or type(e).__name__,
            ) from e

        raw: Any = None
        try:
            raw = response.json()
        except ValueError:
            raw = response.text or None

        reply = WebhookReply(
            ok=response.is_success,
            status_code=response.status_code,
            output=extract_output(raw),
            raw=raw,
        )
        if not reply.ok:
            logger.warning(f"Webhook {purpose} returned status {response.status_code}")
        return reply

    async def forward_documents(
        self,
        files: Sequence[tuple[str, bytes, str]],
    ) -> WebhookReply:
        """
        문서를 업로드 웹훅으로 전달 (multipart).

        필드: 파일마다 url=<file>, source=fileupload

        Args:
            files: [(filename, bytes, content_type), ...]
        """
        multipart = [
            (WEBHOOK_UPLOAD_FIELD, (name, content, content_type or "application/octet-stream"))
            for name, content, content_type in files
        ]
        data = {"source": WEBHOOK_UPLOAD_SOURCE}
        return await self._post(self.upload_url, "upload", files=multipart, data=data)

    async def send_chat_message(self, message: str, session_id: str) -> WebhookReply:
        """
        채팅 메시지를 채팅 웹훅으로 전달 (JSON).

        본문: {message, timestamp, sessionId, source: "chat"}
        """
        payload = {
            "message": message,
            "timestamp": datetime.now(UTC).isoformat(),
            "sessionId": session_id,
            "source": WEBHOOK_CHAT_SOURCE,
        }
        return await self._post(self.chat_url, "chat", json=payload)
