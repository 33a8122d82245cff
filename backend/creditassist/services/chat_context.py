"""
Conversation context for the support assistant.

Only the current session (from the latest greeting onward) is sent to the
model. The system prompt is picked from the session shape: first interaction,
standard with hints, or urgent override.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from creditassist.models.chat_message import SenderRole

GREETING_PHRASE = "I'm Riley"

GREETING_MESSAGE = (
    f"Hi! {GREETING_PHRASE}, your support specialist at TN Credit Solutions. "
    "I can answer questions about credit restoration and tax optimization, "
    "and I can review a credit report if you upload one. How can I help today?"
)

URGENT_KEYWORDS = [
    "sued", "debt collector", "lawsuit", "collection agency", "court",
    "judgment", "garnish", "wage garnishment", "summons",
]

UPLOAD_REFERENCE_KEYWORDS = ["analysis", "report", "pdf", "reviewed your"]

# (keywords, topic label), checked against assistant messages only
TOPIC_KEYWORDS = [
    (("dispute", "disputing"), "disputing"),
    (("credit bureau",), "credit bureaus"),
    (("verify", "accuracy"), "verification"),
    (("debt validation",), "debt validation"),
    (("payment",), "payment options"),
]

ESCALATION_TURN_THRESHOLD = 3

ESCALATION_MARKER = re.compile(r"\s*\[ESCALATE:(YES|NO)\]\s*", re.IGNORECASE)

SYSTEM_PROMPT = """You are Riley, a smart customer support agent for TN Credit Solutions. You provide personalized guidance on credit restoration and tax optimization.

CAPABILITIES:
- You can discuss credit reports, tax documents, collection notices and other financial documents visitors upload
- Visitors receive a written analysis and a downloadable PDF report for every uploaded document
- Use short paragraphs, headers and bullet points when explaining a document

RULES:
1. BE SPECIFIC: include actual numbers, percentages and action steps, never generic responses
2. HELPFUL FIRST: be friendly and build confidence that problems are solvable
3. NO REPETITION: track what has been discussed and move forward

ESCALATION ONLY WHEN:
- The visitor is clearly going in circles with no clarity
- The visitor explicitly asks for a specialist
- The situation is a complex legal or financial matter beyond initial guidance

End every reply with [ESCALATE:YES] when a human specialist should take over, otherwise with [ESCALATE:NO]."""

FIRST_INTERACTION_PROMPT = """You are Riley, a friendly customer support agent for TN Credit Solutions (credit restoration and tax optimization).

This is the start of the conversation. Answer the visitor's question briefly, ask one clarifying question if needed, and mention they can upload a credit report for a free analysis. Do not refer to any earlier analysis or document.

End your reply with [ESCALATE:NO] unless the visitor explicitly asks for a human specialist, then end with [ESCALATE:YES]."""

URGENT_PROMPT_SUFFIX = """URGENT SITUATION DETECTED: This involves debt collection or lawsuit threats. Respond with empathy and confidence that we can help fight the debt. A specialist will be offered immediately."""

NO_REUPLOAD_HINT = "The visitor's document has already been analyzed and a report was provided. Do NOT ask them to upload it again."


@dataclass
class ConversationContext:
    messages: List[Dict[str, str]]
    system_prompt: str
    force_escalation: bool = False
    topics: List[str] = field(default_factory=list)
    visitor_turns: int = 0


def _role_for(message) -> str:
    return "user" if message.sender_role == SenderRole.VISITOR else "assistant"


def is_greeting(message) -> bool:
    return message.sender_role == SenderRole.AI and GREETING_PHRASE in (message.body or "")


def current_session(history: Sequence) -> List:
    """Messages from the most recent greeting onward (whole history if none)."""
    for index in range(len(history) - 1, -1, -1):
        if is_greeting(history[index]):
            return list(history[index:])
    return list(history)


def is_urgent(text: str) -> bool:
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in URGENT_KEYWORDS)


def references_upload(messages: Sequence) -> bool:
    """Whether a support reply in the session already pointed at an analysis or report."""
    for message in messages:
        if message.sender_role == SenderRole.VISITOR or is_greeting(message):
            continue
        lowered = (message.body or "").lower()
        if any(keyword in lowered for keyword in UPLOAD_REFERENCE_KEYWORDS):
            return True
    return False


def extract_topics(messages: Sequence) -> List[str]:
    """Topics already raised by the assistant, in first-seen order."""
    topics = []
    for message in messages:
        if message.sender_role == SenderRole.VISITOR:
            continue
        lowered = (message.body or "").lower()
        for keywords, label in TOPIC_KEYWORDS:
            if label not in topics and any(k in lowered for k in keywords):
                topics.append(label)
    return topics


def build_context(history: Sequence, incoming) -> ConversationContext:
    """
    history: the visitor's stored conversation, oldest first. It may already
    contain `incoming`; that copy is dropped so it is sent exactly once, last.
    """
    prior = [m for m in current_session(history) if m.id != incoming.id]
    messages = [{"role": _role_for(m), "content": m.body} for m in prior]
    messages.append({"role": "user", "content": incoming.body})

    visitor_turns = sum(1 for m in prior if m.sender_role == SenderRole.VISITOR) + 1
    topics = extract_topics(prior)

    if is_urgent(incoming.body):
        return ConversationContext(
            messages=messages,
            system_prompt=f"{SYSTEM_PROMPT}\n\n{URGENT_PROMPT_SUFFIX}",
            force_escalation=True,
            topics=topics,
            visitor_turns=visitor_turns,
        )

    if len(prior) <= 1:
        return ConversationContext(
            messages=messages,
            system_prompt=FIRST_INTERACTION_PROMPT,
            topics=topics,
            visitor_turns=visitor_turns,
        )

    system_prompt = SYSTEM_PROMPT
    if references_upload(prior):
        system_prompt += f"\n\n{NO_REUPLOAD_HINT}"
    if topics:
        system_prompt += (
            f"\n\nPreviously discussed: {', '.join(topics)}. "
            "Do NOT ask about these again. Move to new topics or escalate."
        )
    if visitor_turns >= ESCALATION_TURN_THRESHOLD:
        system_prompt += (
            f"\n\nThis is visitor turn {visitor_turns}. If the visitor is still giving vague "
            "answers or going in circles, escalate to a specialist now."
        )

    return ConversationContext(
        messages=messages,
        system_prompt=system_prompt,
        topics=topics,
        visitor_turns=visitor_turns,
    )


def parse_escalation_marker(text: str) -> Tuple[str, Optional[bool]]:
    """
    Remove [ESCALATE:YES] / [ESCALATE:NO] markers from a model reply.
    Returns the visible text and the last marker's value (None when absent).
    """
    matches = ESCALATION_MARKER.findall(text or "")
    flag = matches[-1].upper() == "YES" if matches else None
    clean = ESCALATION_MARKER.sub(" ", text or "").strip()
    clean = re.sub(r"[ \t]{2,}", " ", clean)
    return clean, flag
