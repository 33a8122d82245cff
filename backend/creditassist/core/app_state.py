"""
Process-wide collaborators, built once in the FastAPI lifespan and stored on
app.state. Nothing here is created lazily on first request.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from creditassist.core import security
from creditassist.db.repository import Repository, build_repository, dispose_repository
from creditassist.services.ai_service import GroqService
from creditassist.services.chat_service import ChatService
from creditassist.services.document_pipeline import DocumentPipeline
from creditassist.services.storage_service import StorageService

logger = structlog.get_logger()


@dataclass
class AppState:
    repository: Repository
    uploads: StorageService
    reports: StorageService
    ai: GroqService
    pipeline: DocumentPipeline
    chat: ChatService
    admin_email: str
    admin_password_hash: Optional[str]
    escalation_delay: float


async def build_app_state(settings, ai: Optional[GroqService] = None) -> AppState:
    repository = await build_repository(settings)
    uploads = StorageService(settings.UPLOAD_DIR)
    reports = StorageService(settings.REPORTS_DIR)
    ai = ai or GroqService.from_settings(settings)
    if not ai.configured:
        logger.warning("groq_not_configured", message="Document analysis will use the fallback text.")

    pipeline = DocumentPipeline(repository, uploads, reports, ai, max_upload_bytes=settings.MAX_UPLOAD_BYTES)
    chat = ChatService(repository, ai, pipeline, settings.SUPPORT_NAME, settings.SUPPORT_EMAIL)

    admin_password_hash = None
    if settings.ADMIN_PASSWORD:
        admin_password_hash = security.get_password_hash(settings.ADMIN_PASSWORD)
        logger.info("admin_account_ready", email=settings.ADMIN_EMAIL)
    else:
        logger.warning("admin_account_disabled", message="ADMIN_PASSWORD is not set.")

    return AppState(
        repository=repository,
        uploads=uploads,
        reports=reports,
        ai=ai,
        pipeline=pipeline,
        chat=chat,
        admin_email=settings.ADMIN_EMAIL,
        admin_password_hash=admin_password_hash,
        escalation_delay=settings.ESCALATION_REVEAL_DELAY_SECONDS,
    )


async def shutdown_app_state(state: AppState):
    await dispose_repository(state.repository)
