from typing import List
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
import structlog

from creditassist.api.deps import get_current_admin, get_state
from creditassist.core.app_state import AppState
from creditassist.core.exceptions import ValidationFailed
from creditassist.schemas.document import DocumentResponse, DocumentReviewUpdate

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=List[DocumentResponse])
async def list_all_documents(
    state: AppState = Depends(get_state),
    admin_email: str = Depends(get_current_admin),
):
    return await state.repository.list_documents()


async def _raw_file(document_id: str, state: AppState, disposition: str) -> FileResponse:
    document, path = await state.pipeline.upload_path(document_id)
    return FileResponse(
        path,
        media_type=document.file_type,
        filename=document.file_name,
        content_disposition_type=disposition,
    )


@router.get("/{document_id}/view")
async def view_document(
    document_id: str,
    state: AppState = Depends(get_state),
    admin_email: str = Depends(get_current_admin),
):
    return await _raw_file(document_id, state, "inline")


@router.get("/{document_id}/download")
async def download_document(
    document_id: str,
    state: AppState = Depends(get_state),
    admin_email: str = Depends(get_current_admin),
):
    return await _raw_file(document_id, state, "attachment")


@router.patch("/{document_id}", response_model=DocumentResponse)
async def review_document(
    document_id: str,
    request: DocumentReviewUpdate,
    state: AppState = Depends(get_state),
    admin_email: str = Depends(get_current_admin),
):
    fields = request.model_dump(exclude_unset=True)
    if fields.get("status") is None:
        fields.pop("status", None)
    if not fields:
        raise ValidationFailed("Nothing to update")
    document = await state.repository.update_document(document_id, **fields)
    logger.info("document_reviewed", document_id=document_id, admin=admin_email, fields=sorted(fields))
    return document


@router.delete("/{document_id}")
async def delete_document(
    document_id: str,
    state: AppState = Depends(get_state),
    admin_email: str = Depends(get_current_admin),
):
    await state.pipeline.delete(document_id)
    return {"status": "deleted", "id": document_id}
