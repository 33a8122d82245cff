"""
Chat Service - visitor/support conversation on top of the repository.

Visitor messages are stored and returned immediately. The assistant reply is
produced afterwards by `generate_ai_reply`, scheduled as a background task
by the API layer: one attempt per visitor message, failures are logged only.
"""

from typing import List, Optional, Tuple

import structlog

from creditassist.core.exceptions import ValidationFailed
from creditassist.db.repository import Repository
from creditassist.models.chat_message import ChatMessage, SenderRole
from creditassist.models.document import Document
from creditassist.services.ai_service import GroqService
from creditassist.services.chat_context import (
    GREETING_MESSAGE,
    build_context,
    current_session,
    parse_escalation_marker,
)
from creditassist.services.document_pipeline import DocumentPipeline

logger = structlog.get_logger()

ESCALATION_CONFIRMATION_MESSAGE = (
    "Thank you! A credit specialist from TN Credit Solutions has been notified and "
    "will reach out to you shortly by email. Your report download and summary remain "
    "available here in the meantime."
)


class ChatService:

    def __init__(
        self,
        repository: Repository,
        ai: GroqService,
        pipeline: DocumentPipeline,
        support_name: str,
        support_email: str,
    ):
        self.repository = repository
        self.ai = ai
        self.pipeline = pipeline
        self.support_name = support_name
        self.support_email = support_email

    async def _support_message(self, visitor_email: str, body: str,
                               role: SenderRole = SenderRole.AI,
                               escalation_flag: bool = False,
                               sender_name: Optional[str] = None) -> ChatMessage:
        message = await self.repository.create_message(
            sender_name=sender_name or self.support_name,
            sender_email=self.support_email,
            body=body,
            sender_role=role,
            escalation_flag=escalation_flag,
            thread_email=visitor_email,
        )
        logger.info("support_message_saved", message_id=message.id, role=role.value,
                    visitor_email=visitor_email, escalation=escalation_flag)
        return message

    async def start_session(self, visitor_email: str) -> ChatMessage:
        """Store the greeting that opens a new session for this visitor."""
        return await self._support_message(visitor_email, GREETING_MESSAGE)

    async def submit_visitor_message(self, sender_name: str, sender_email: str, body: str) -> ChatMessage:
        if not body or not body.strip():
            raise ValidationFailed("Message body cannot be empty")
        if sender_email == self.support_email:
            raise ValidationFailed("The support identity cannot post as a visitor")

        message = await self.repository.create_message(
            sender_name=sender_name.strip(),
            sender_email=sender_email,
            body=body.strip(),
            sender_role=SenderRole.VISITOR,
        )
        logger.info("visitor_message_saved", message_id=message.id, visitor_email=sender_email)
        return message

    async def generate_ai_reply(self, incoming: ChatMessage) -> Optional[ChatMessage]:
        """
        Background job. Never raises: the visitor already has their stored
        message, so a failed reply is logged and dropped.
        """
        try:
            history = await self.repository.list_conversation(incoming.sender_email)
            context = build_context(history, incoming)
            logger.info(
                "ai_reply_requested",
                message_id=incoming.id,
                visitor_turns=context.visitor_turns,
                topics=context.topics,
                urgent=context.force_escalation,
            )

            raw_reply = await self.ai.chat_reply(context.system_prompt, context.messages)
            if raw_reply is None:
                logger.error("ai_reply_failed", message_id=incoming.id, reason="no_model_output")
                return None

            body, marker = parse_escalation_marker(raw_reply)
            if not body:
                logger.error("ai_reply_failed", message_id=incoming.id, reason="empty_after_marker")
                return None

            escalate = context.force_escalation or marker is True
            return await self._support_message(incoming.sender_email, body, escalation_flag=escalate)

        except Exception as e:
            logger.error("ai_reply_failed", message_id=incoming.id, error=str(e))
            return None

    async def admin_reply(self, visitor_email: str, body: str, admin_name: Optional[str] = None) -> ChatMessage:
        if not body or not body.strip():
            raise ValidationFailed("Message body cannot be empty")
        return await self._support_message(
            visitor_email, body.strip(), role=SenderRole.ADMIN, sender_name=admin_name
        )

    async def confirm_escalation(self, visitor_email: str) -> ChatMessage:
        return await self._support_message(
            visitor_email, ESCALATION_CONFIRMATION_MESSAGE, escalation_flag=True
        )

    async def announce_report(self, document: Document) -> ChatMessage:
        """Point the visitor at the report produced for an upload."""
        body = (
            f"I've reviewed your {document.file_name}. Your credit analysis is ready and "
            "a PDF report is available to download. Ask me about any section!"
        )
        return await self._support_message(document.visitor_email, body)

    async def session_messages(self, visitor_email: str) -> List[ChatMessage]:
        return current_session(await self.repository.list_conversation(visitor_email))

    async def all_messages(self) -> List[ChatMessage]:
        return await self.repository.list_messages()

    async def clear_conversation(self, visitor_email: str) -> Tuple[int, int]:
        message_count, documents = await self.repository.clear_visitor(visitor_email)
        await self.pipeline.purge_files(documents)
        logger.info("conversation_cleared", visitor_email=visitor_email,
                    messages_deleted=message_count, documents_deleted=len(documents))
        return message_count, len(documents)
