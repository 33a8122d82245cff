"""
Public Documents API - upload and report download.

The upload request runs the whole analysis pipeline and returns the finished
Document. A chat message pointing at the report is then added to the
visitor's thread.
"""

from typing import List
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from pydantic import EmailStr

from creditassist.api.deps import get_state
from creditassist.core.app_state import AppState
from creditassist.schemas.document import DocumentResponse, DocumentUpload

router = APIRouter()


def pdf_response(pdf_bytes: bytes, filename: str) -> Response:
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(request: DocumentUpload, state: AppState = Depends(get_state)):
    document = await state.pipeline.process(request)
    await state.chat.announce_report(document)
    return document


@router.get("", response_model=List[DocumentResponse])
async def list_documents(
    email: EmailStr = Query(..., description="Visitor email"),
    state: AppState = Depends(get_state),
):
    return await state.repository.list_documents(email)


@router.get("/{document_id}/report")
async def download_report(document_id: str, state: AppState = Depends(get_state)):
    """Freshly rendered from the stored analysis text."""
    pdf_bytes, filename = await state.pipeline.regenerate_report(document_id)
    return pdf_response(pdf_bytes, filename)


@router.get("/{document_id}/report/saved")
async def download_saved_report(document_id: str, state: AppState = Depends(get_state)):
    """The copy written when the document was processed."""
    pdf_bytes, filename = await state.pipeline.saved_report(document_id)
    return pdf_response(pdf_bytes, filename)
