"""
Document Model - one uploaded file and its derived artifacts.

analysis_text and report_pdf_path are filled in by the pipeline after the row
is created. Either may be missing if the pipeline stopped halfway, so readers
treat them as independently optional.
"""

import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, Enum

from creditassist.db.base import Base


class DocumentStatus(str, enum.Enum):
    PENDING = 'pending'
    REVIEWED = 'reviewed'
    ARCHIVED = 'archived'


class Document(Base):
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    visitor_email = Column(String(255), nullable=False, index=True)
    visitor_name = Column(String(255), nullable=False)

    file_name = Column(String(255), nullable=False)
    file_type = Column(String(100), nullable=False)
    stored_file_path = Column(String(512), nullable=False)   # raw upload blob id

    analysis_text = Column(Text, nullable=True)
    report_pdf_path = Column(String(512), nullable=True)     # generated report blob id
    admin_review = Column(Text, nullable=True)
    status = Column(Enum(DocumentStatus), default=DocumentStatus.PENDING, nullable=False)

    visitor_time_zone = Column(String(64), nullable=True)
    visitor_local_date_label = Column(String(32), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<Document {self.id} {self.file_type} {self.status}>"
