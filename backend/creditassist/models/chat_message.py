"""
Chat Message Model - one turn of a visitor conversation.

Rows are never updated. A conversation is read back by visitor email and
ordered by created_at, which the repository assigns monotonically.
"""

import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, Boolean, Enum

from creditassist.db.base import Base


class SenderRole(str, enum.Enum):
    VISITOR = 'visitor'
    AI = 'ai'
    ADMIN = 'admin'


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    sender_name = Column(String(255), nullable=False)
    sender_email = Column(String(255), nullable=False, index=True)
    body = Column(Text, nullable=False)
    sender_role = Column(Enum(SenderRole), default=SenderRole.VISITOR, nullable=False)

    # Visitor this ai/admin reply belongs to. Unset on legacy support rows.
    thread_email = Column(String(255), nullable=True, index=True)

    # Only meaningful on ai-authored messages
    escalation_flag = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<ChatMessage {self.id} {self.sender_role} {self.sender_email}>"
