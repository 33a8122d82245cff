from typing import List
from fastapi import APIRouter, Depends, status

from creditassist.api.deps import get_current_admin, get_state
from creditassist.core.app_state import AppState
from creditassist.schemas.chat import AdminReplyCreate, ChatMessageResponse

router = APIRouter()


@router.get("", response_model=List[ChatMessageResponse])
async def list_all_messages(
    state: AppState = Depends(get_state),
    admin_email: str = Depends(get_current_admin),
):
    """Every stored message, unfiltered, oldest first."""
    return await state.chat.all_messages()


@router.post("", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def reply_to_visitor(
    request: AdminReplyCreate,
    state: AppState = Depends(get_state),
    admin_email: str = Depends(get_current_admin),
):
    return await state.chat.admin_reply(request.visitor_email, request.body)
