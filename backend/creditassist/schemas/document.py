from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from creditassist.models.document import DocumentStatus


class DocumentUpload(BaseModel):
    """Upload payload. file_content is base64, optionally as a data: URL."""
    visitor_email: str = Field(..., min_length=3, max_length=255)
    visitor_name: str = Field(..., min_length=1, max_length=255)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_type: str = Field(..., max_length=100)
    file_content: str
    visitor_time_zone: Optional[str] = Field(None, max_length=64)
    visitor_local_date_label: Optional[str] = Field(None, max_length=32)


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    visitor_email: str
    visitor_name: str
    file_name: str
    file_type: str
    stored_file_path: str
    analysis_text: Optional[str] = None
    report_pdf_path: Optional[str] = None
    admin_review: Optional[str] = None
    status: DocumentStatus
    visitor_time_zone: Optional[str] = None
    visitor_local_date_label: Optional[str] = None
    created_at: datetime


class DocumentReviewUpdate(BaseModel):
    status: Optional[DocumentStatus] = None
    admin_review: Optional[str] = None
