from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime
from creditassist.models.chat_message import SenderRole


class ChatSessionStart(BaseModel):
    visitor_email: EmailStr
    visitor_name: Optional[str] = Field(None, max_length=255)


class ChatMessageCreate(BaseModel):
    sender_name: str = Field(..., min_length=1, max_length=255)
    sender_email: EmailStr
    body: str = Field(..., min_length=1, max_length=5000)


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    sender_name: str
    sender_email: str
    body: str
    sender_role: SenderRole
    thread_email: Optional[str] = None
    escalation_flag: bool = False
    created_at: datetime


class EscalationConfirm(BaseModel):
    visitor_email: EmailStr


class AdminReplyCreate(BaseModel):
    visitor_email: EmailStr
    body: str = Field(..., min_length=1, max_length=5000)


class ConversationCleared(BaseModel):
    visitor_email: str
    messages_deleted: int
    documents_deleted: int


class WidgetConfig(BaseModel):
    escalation_reveal_delay_seconds: float
