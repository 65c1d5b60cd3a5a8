"""
Document Routes: HR 문서 관리 (관리자 화면).

- GET /admin → 관리자 화면
- GET /api/upload → 문서 목록 {"files": [...], "indexStatus": ...}
- POST /api/upload → 로컬 저장 (multipart "files")
- DELETE /api/upload?id=<id> → 삭제
- GET /api/upload/<id> → 레코드
- GET /api/upload/<id>/download → 원본 다운로드
- POST /api/admin/documents → 웹훅 전달 후 로컬 저장 (관리자 업로드 흐름)
"""

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import FileResponse, HTMLResponse
from fastapi.templating import Jinja2Templates

from src.app.providers.webhook import WebhookClient
from src.app.services.documents import DocumentService
from src.app.services.upload import UploadService, check_upload_policy
from src.core.metadata_store import MetadataStore
from src.domain.errors import ErrorCodes, PolicyRejectError

logger = logging.getLogger(__name__)

_templates_dir = Path(__file__).parent.parent / "templates"
jinja_templates = Jinja2Templates(directory=_templates_dir)

# Routers
router = APIRouter()  # HTML pages
api_router = APIRouter()  # /api/upload
admin_api_router = APIRouter()  # /api/admin


def get_store(request: Request) -> MetadataStore:
    """Request에서 MetadataStore 가져오기."""
    return request.app.state.store


def get_config(request: Request) -> dict:
    return getattr(request.app.state, "config", {}) or {}


def get_webhook(request: Request) -> WebhookClient:
    return request.app.state.webhook


def _not_found(file_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "FILE_NOT_FOUND", "message": f"File '{file_id}' not found"},
    )


# =============================================================================
# Page Routes (HTML)
# =============================================================================

@router.get("/admin", response_class=HTMLResponse)
async def admin_page(request: Request) -> HTMLResponse:
    """HR 문서 관리 화면."""
    config = get_config(request)
    return jinja_templates.TemplateResponse(
        request,
        "admin.html",
        {
            "title": config.get("app", {}).get("title", "HR Document Portal"),
            "allowed_types": config.get("uploads", {}).get("allowed_types", []),
        },
    )


# =============================================================================
# Local Storage API (/api/upload)
# =============================================================================

@api_router.get("")
async def list_files(request: Request) -> dict[str, Any]:
    """
    문서 목록.

    인덱스가 손상된 경우 빈 목록 + indexStatus="unreadable".
    """
    snapshot = DocumentService(get_store(request)).list_snapshot()
    return {
        "files": [r.to_dict() for r in snapshot.records],
        "indexStatus": snapshot.status,
    }


@api_router.post("")
async def upload_files(
    request: Request,
    files: list[UploadFile] = File(...),
) -> dict[str, Any]:
    """
    로컬 저장소에 파일 저장 (정책 검사 없음, 원본 그대로).

    전부 저장되거나 하나도 저장되지 않음 (에러 응답 = 저장된 파일 없음).
    """
    batch = []
    for upload in files:
        content = await upload.read()
        batch.append((content, upload.filename or "", len(content), upload.content_type or ""))

    records = UploadService(get_store(request)).create_batch(batch)
    return {"files": [r.to_dict() for r in records]}


@api_router.delete("")
async def delete_file(
    request: Request,
    file_id: str = Query(..., alias="id", min_length=1),
) -> dict[str, Any]:
    """문서 삭제."""
    if not DocumentService(get_store(request)).delete_document(file_id):
        raise _not_found(file_id)
    return {"success": True}


@api_router.get("/{file_id}")
async def get_file(request: Request, file_id: str) -> dict[str, Any]:
    """문서 레코드 조회."""
    record = DocumentService(get_store(request)).get_document(file_id)
    if record is None:
        raise _not_found(file_id)
    return record.to_dict()


@api_router.get("/{file_id}/download")
async def download_file(request: Request, file_id: str) -> FileResponse:
    """원본 다운로드 (파일명은 업로드 당시 이름)."""
    found = DocumentService(get_store(request)).document_path(file_id)
    if found is None:
        raise _not_found(file_id)

    record, path = found
    return FileResponse(
        path=path,
        filename=record.name,
        media_type=record.type or "application/octet-stream",
    )


# =============================================================================
# Admin Upload Flow (/api/admin)
# =============================================================================

@admin_api_router.post("/documents")
async def upload_documents(
    request: Request,
    files: list[UploadFile] = File(...),
) -> dict[str, Any]:
    """
    관리자 업로드.

    순서:
    1. 업로드 정책 검사 (허용 MIME, 최대 크기) → 하나라도 위반 시 전체 거절
    2. 웹훅 전달 → 실패 시 502 (로컬 저장 안 함)
    3. 로컬 저장 (실패해도 웹훅 성공은 유지, localStorage로 보고)
    """
    config = get_config(request)

    payloads: list[tuple[str, bytes, str]] = []
    for upload in files:
        content = await upload.read()
        name = upload.filename or ""
        content_type = upload.content_type or ""
        check_upload_policy(name, content_type, len(content), config)
        payloads.append((name, content, content_type))

    reply = await get_webhook(request).forward_documents(payloads)
    if not reply.ok:
        raise PolicyRejectError(
            ErrorCodes.WEBHOOK_REJECTED,
            status=reply.status_code,
        )

    service = UploadService(get_store(request))
    stored: list[dict[str, Any]] = []
    local_status = "stored"
    for name, content, content_type in payloads:
        try:
            record = service.create(content, name, len(content), content_type)
            stored.append(record.to_dict())
        except PolicyRejectError as e:
            logger.warning(f"Local storage failed for {name!r} after webhook upload: {e}")
            local_status = "failed"

    count = len(payloads)
    if local_status == "stored":
        message = f"{count} document(s) uploaded successfully to webhook and local storage!"
    else:
        message = f"{count} document(s) uploaded to webhook successfully! (Local storage failed)"

    return {
        "message": message,
        "webhookStatus": reply.status_code,
        "localStorage": local_status,
        "files": stored,
    }
