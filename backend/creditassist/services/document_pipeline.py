"""
Document Pipeline - upload -> model analysis -> normalized text -> PDF report.

Steps run sequentially inside one upload request:
1. Validate (type, payload). Nothing is written before this passes.
2. Store raw bytes under a fresh blob id, create the Document row (pending).
3. Ask the vision model for an analysis (PDFs: first page rasterized).
4. Normalize; substitute the fallback text if nothing usable came back.
5. Persist analysis text.
6. Render the PDF report, store it, persist its blob id.

Model and rasterization failures degrade to the fallback text so the visitor
flow always completes. Persistence failures propagate. Steps are not atomic:
a crash between 5 and 6 leaves analysis without a report path.
"""

import base64
import binascii
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog
from fastapi.concurrency import run_in_threadpool

from creditassist.core.exceptions import NotFoundError, UnsupportedFileTypeError, ValidationFailed
from creditassist.core.time_utils import visitor_date_label
from creditassist.db.repository import Repository
from creditassist.models.document import Document
from creditassist.schemas.document import DocumentUpload
from creditassist.services.ai_service import GroqService
from creditassist.services.rasterizer import RasterizationError, prepare_image, rasterize_pdf_page
from creditassist.services.report_formatter import render_report, report_filename
from creditassist.services.storage_service import StorageService
from creditassist.services.text_normalizer import normalize_analysis

logger = structlog.get_logger()

PDF_TYPE = "application/pdf"
SUPPORTED_TYPES = {
    PDF_TYPE: ".pdf",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
}

FALLBACK_ANALYSIS = (
    "Your document has been received. Our specialists will review it manually "
    "and follow up with personalized recommendations."
)

DATE_LABEL_PATTERN = re.compile(r"\d{2}-\d{2}-\d{4}")


@dataclass
class UploadRequest:
    visitor_email: str
    visitor_name: str
    file_name: str
    file_type: str
    file_bytes: bytes
    visitor_time_zone: Optional[str]
    visitor_local_date_label: str

    @property
    def is_pdf(self) -> bool:
        return self.file_type == PDF_TYPE


def decode_file_content(file_content: str) -> bytes:
    """Accept raw base64 or a data: URL ("data:image/png;base64,....")."""
    if file_content.startswith("data:") and "," in file_content:
        file_content = file_content.split(",", 1)[1]
    try:
        return base64.b64decode(file_content, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationFailed("File content is not valid base64") from e


class DocumentPipeline:

    def __init__(
        self,
        repository: Repository,
        uploads: StorageService,
        reports: StorageService,
        ai: GroqService,
        max_upload_bytes: int = 10 * 1024 * 1024,
        rasterize=rasterize_pdf_page,
        prepare=prepare_image,
    ):
        self.repository = repository
        self.uploads = uploads
        self.reports = reports
        self.ai = ai
        self.max_upload_bytes = max_upload_bytes
        self.rasterize = rasterize
        self.prepare = prepare

    def validate(self, payload: DocumentUpload) -> UploadRequest:
        """
        Check the submission. Raises a ValidationFailed subclass; called
        before any storage or model side effect.
        """
        file_type = payload.file_type.strip().lower()
        if file_type not in SUPPORTED_TYPES:
            raise UnsupportedFileTypeError(
                f"Unsupported file type '{payload.file_type}'. Please upload a PDF or an image (PNG/JPG)."
            )

        for field_name in ("visitor_email", "visitor_name", "file_name"):
            if not getattr(payload, field_name).strip():
                raise ValidationFailed(f"Missing required field: {field_name}")

        file_bytes = decode_file_content(payload.file_content)
        if not file_bytes:
            raise ValidationFailed("Uploaded file is empty")
        if len(file_bytes) > self.max_upload_bytes:
            raise ValidationFailed(
                f"File exceeds the {self.max_upload_bytes // (1024 * 1024)}MB upload limit"
            )

        date_label = payload.visitor_local_date_label
        if date_label and not DATE_LABEL_PATTERN.fullmatch(date_label):
            raise ValidationFailed("visitor_local_date_label must be formatted MM-DD-YYYY")

        return UploadRequest(
            visitor_email=payload.visitor_email.strip(),
            visitor_name=payload.visitor_name.strip(),
            file_name=payload.file_name.strip(),
            file_type=file_type,
            file_bytes=file_bytes,
            visitor_time_zone=payload.visitor_time_zone,
            visitor_local_date_label=date_label or visitor_date_label(payload.visitor_time_zone),
        )

    async def process(self, payload: DocumentUpload) -> Document:
        request = self.validate(payload)

        # 1. Raw upload + pending row
        blob_id = await self.uploads.save(request.file_bytes, suffix=SUPPORTED_TYPES[request.file_type])
        document = await self.repository.create_document(
            visitor_email=request.visitor_email,
            visitor_name=request.visitor_name,
            file_name=request.file_name,
            file_type=request.file_type,
            stored_file_path=blob_id,
            visitor_time_zone=request.visitor_time_zone,
            visitor_local_date_label=request.visitor_local_date_label,
        )
        logger.info("document_uploaded", document_id=document.id, file_type=request.file_type,
                    size_bytes=len(request.file_bytes))

        # 2-3. Model analysis, normalized, with fallback
        raw_analysis = await self._analyze(request, document.id)
        analysis_text = normalize_analysis(raw_analysis or "")
        if not analysis_text:
            logger.warning("document_analysis_fallback", document_id=document.id,
                           had_model_output=bool(raw_analysis))
            analysis_text = FALLBACK_ANALYSIS

        # 4. Persist analysis
        document = await self.repository.update_document(document.id, analysis_text=analysis_text)
        logger.info("document_analysis_saved", document_id=document.id, length=len(analysis_text))

        # 5. Render + persist report
        pdf_bytes = await run_in_threadpool(
            render_report, document.visitor_name, request.visitor_local_date_label, analysis_text
        )
        report_id = await self.reports.save(pdf_bytes, suffix=".pdf")
        document = await self.repository.update_document(document.id, report_pdf_path=report_id)
        logger.info("document_report_saved", document_id=document.id, report_id=report_id,
                    size_bytes=len(pdf_bytes))

        return document

    async def _analyze(self, request: UploadRequest, document_id: str) -> Optional[str]:
        try:
            if request.is_pdf:
                image = await run_in_threadpool(self.rasterize, request.file_bytes, 0)
                mime_type = "image/png"
            else:
                image = await run_in_threadpool(self.prepare, request.file_bytes)
                mime_type = "image/jpeg"
        except RasterizationError as e:
            logger.error("document_rasterization_failed", document_id=document_id, error=str(e))
            return None

        try:
            return await self.ai.analyze_document(image, mime_type)
        except Exception as e:
            logger.error("document_analysis_failed", document_id=document_id, error=str(e))
            return None

    async def get(self, document_id: str) -> Document:
        document = await self.repository.get_document(document_id)
        if not document:
            raise NotFoundError("Document not found")
        return document

    async def regenerate_report(self, document_id: str) -> Tuple[bytes, str]:
        """
        Fresh render from the stored analysis text. A document still waiting
        for analysis yields a header/footer only report.
        """
        document = await self.get(document_id)
        date_label = document.visitor_local_date_label or visitor_date_label(document.visitor_time_zone)
        pdf_bytes = await run_in_threadpool(
            render_report, document.visitor_name, date_label, document.analysis_text
        )
        return pdf_bytes, report_filename(date_label)

    async def saved_report(self, document_id: str) -> Tuple[bytes, str]:
        document = await self.get(document_id)
        if not self.reports.exists(document.report_pdf_path):
            raise NotFoundError("Report has not been generated yet")
        pdf_bytes = await self.reports.read(document.report_pdf_path)
        return pdf_bytes, report_filename(document.visitor_local_date_label)

    async def upload_path(self, document_id: str) -> Tuple[Document, str]:
        document = await self.get(document_id)
        if not self.uploads.exists(document.stored_file_path):
            raise NotFoundError("File not found on server")
        return document, self.uploads.local_path(document.stored_file_path)

    async def delete(self, document_id: str) -> Document:
        document = await self.repository.delete_document(document_id)
        if not document:
            raise NotFoundError("Document not found")
        await self.purge_files([document])
        logger.info("document_deleted", document_id=document_id)
        return document

    async def purge_files(self, documents: List[Document]):
        for document in documents:
            await self.uploads.delete(document.stored_file_path)
            await self.reports.delete(document.report_pdf_path)
