"""
Public Chat API - the visitor widget.

A visitor message is stored and returned at once; the assistant reply is
appended by a background task and shows up on the next poll.
"""

from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from pydantic import EmailStr

from creditassist.api.deps import get_state
from creditassist.core.app_state import AppState
from creditassist.schemas.chat import (
    ChatMessageCreate,
    ChatMessageResponse,
    ChatSessionStart,
    ConversationCleared,
    EscalationConfirm,
    WidgetConfig,
)

router = APIRouter()


@router.get("/config", response_model=WidgetConfig)
async def widget_config(state: AppState = Depends(get_state)):
    """Client-side settings for the chat widget."""
    return WidgetConfig(escalation_reveal_delay_seconds=state.escalation_delay)


@router.post("/session", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def start_session(request: ChatSessionStart, state: AppState = Depends(get_state)):
    """Open a new session. Earlier messages stay stored but leave the model context."""
    return await state.chat.start_session(request.visitor_email)


@router.post("", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    request: ChatMessageCreate,
    background_tasks: BackgroundTasks,
    state: AppState = Depends(get_state),
):
    message = await state.chat.submit_visitor_message(
        request.sender_name, request.sender_email, request.body
    )
    background_tasks.add_task(state.chat.generate_ai_reply, message)
    return message


@router.get("", response_model=List[ChatMessageResponse])
async def get_session_messages(
    email: EmailStr = Query(..., description="Visitor email"),
    state: AppState = Depends(get_state),
):
    """Current-session messages for one visitor, oldest first."""
    return await state.chat.session_messages(email)


@router.post("/escalate", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def confirm_escalation(request: EscalationConfirm, state: AppState = Depends(get_state)):
    return await state.chat.confirm_escalation(request.visitor_email)


@router.delete("", response_model=ConversationCleared)
async def clear_conversation(
    email: EmailStr = Query(..., description="Visitor email"),
    state: AppState = Depends(get_state),
):
    """Delete the visitor's messages, documents and stored files."""
    messages_deleted, documents_deleted = await state.chat.clear_conversation(email)
    return ConversationCleared(
        visitor_email=email,
        messages_deleted=messages_deleted,
        documents_deleted=documents_deleted,
    )
