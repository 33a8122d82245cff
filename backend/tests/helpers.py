from datetime import timedelta

from creditassist.core.time_utils import get_utc_now
from creditassist.models.chat_message import ChatMessage, SenderRole

SUPPORT_EMAIL = "support@tncreditsolutions.com"
VISITOR_EMAIL = "jordan@example.com"


def make_messages(*rows):
    """
    Build an ordered conversation from (id, role, body[, escalation_flag])
    tuples. created_at increases with position.
    """
    start = get_utc_now()
    messages = []
    for index, row in enumerate(rows):
        message_id, role, body = row[:3]
        flag = row[3] if len(row) > 3 else False
        from_visitor = role == SenderRole.VISITOR
        messages.append(ChatMessage(
            id=message_id,
            sender_name="Jordan" if from_visitor else "Riley",
            sender_email=VISITOR_EMAIL if from_visitor else SUPPORT_EMAIL,
            body=body,
            sender_role=role,
            thread_email=None if from_visitor else VISITOR_EMAIL,
            escalation_flag=flag,
            created_at=start + timedelta(seconds=index),
        ))
    return messages
