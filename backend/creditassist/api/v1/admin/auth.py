from datetime import timedelta
from typing import Any
from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
import structlog

from creditassist.api.deps import get_state
from creditassist.core import security
from creditassist.core.app_state import AppState
from creditassist.core.config import settings
from creditassist.schemas.admin import Token

router = APIRouter()
logger = structlog.get_logger()


@router.post("/login", response_model=Token)
async def login_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    state: AppState = Depends(get_state)
) -> Any:
    """
    OAuth2 compatible token login, get an access token for future requests.
    """
    if (
        not state.admin_password_hash
        or form_data.username != state.admin_email
        or not security.verify_password(form_data.password, state.admin_password_hash)
    ):
        logger.warning("admin_login_failed", email=form_data.username)
        raise HTTPException(status_code=400, detail="Incorrect email or password")

    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = security.create_access_token(
        state.admin_email, expires_delta=access_token_expires
    )
    logger.info("admin_login", email=state.admin_email)

    return {
        "access_token": access_token,
        "token_type": "bearer",
    }
