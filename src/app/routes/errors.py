"""
PolicyRejectError → HTTP 응답 변환.

응답 본문: {"error": <code>, "detail": <message>, "context": {...}}
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from src.domain.errors import ErrorCodes, PolicyRejectError

logger = logging.getLogger(__name__)

# 매핑 없는 코드는 500
ERROR_STATUS = {
    ErrorCodes.EMPTY_MESSAGE: 400,
    ErrorCodes.INVALID_PATH: 400,
    ErrorCodes.STORED_NAME_COLLISION: 409,
    ErrorCodes.DUPLICATE_RECORD_ID: 409,
    ErrorCodes.FILE_TOO_LARGE: 413,
    ErrorCodes.UNSUPPORTED_FILE_TYPE: 415,
    ErrorCodes.WEBHOOK_NOT_CONFIGURED: 502,
    ErrorCodes.WEBHOOK_UNREACHABLE: 502,
    ErrorCodes.WEBHOOK_REJECTED: 502,
    ErrorCodes.METADATA_LOCK_TIMEOUT: 503,
}

# 사용자에게 보여줄 메시지 (기존 관리자 화면 문구 유지)
ERROR_MESSAGES = {
    ErrorCodes.UNSUPPORTED_FILE_TYPE: "Please upload only PDF files.",
    ErrorCodes.WEBHOOK_UNREACHABLE: "Upload failed. Please try again.",
    ErrorCodes.WEBHOOK_REJECTED: "Upload failed. Please try again.",
}


def status_for(error: PolicyRejectError) -> int:
    return ERROR_STATUS.get(error.code, 500)


async def handle_policy_error(request: Request, exc: PolicyRejectError) -> JSONResponse:
    """FastAPI exception handler (app.add_exception_handler(PolicyRejectError, ...))."""
    status_code = status_for(exc)

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")

    body = exc.to_dict()
    code = body.pop("code")
    return JSONResponse(
        status_code=status_code,
        content={
            "error": code,
            "detail": ERROR_MESSAGES.get(code, str(exc)),
            "context": body,
        },
    )
