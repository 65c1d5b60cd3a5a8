"""
External providers.

- webhook: 외부 자동화 웹훅 (문서 전달, 채팅 응답)
"""

from .webhook import WebhookClient, extract_output

__all__ = [
    "WebhookClient",
    "extract_output",
]
