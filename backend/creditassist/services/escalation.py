"""
Specialist call-to-action state for one chat widget.

State is re-derived from the full message list on every change by the pure
`evaluate`. `EscalationWatcher` adds the single reveal timer on top.
"""

import asyncio
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

import structlog

from creditassist.models.chat_message import SenderRole

logger = structlog.get_logger()

DEFAULT_REVEAL_DELAY = 5.0


class EscalationState(str, Enum):
    IDLE = "idle"
    AWAITING_REVEAL = "awaiting_reveal"
    REVEALED = "revealed"
    DISMISSED = "dismissed"


@dataclass(frozen=True)
class EscalationWatchState:
    active_escalation_id: Optional[str] = None
    dismissed_escalation_id: Optional[str] = None
    reveal_deadline: Optional[float] = None


def _last_index(messages: Sequence, predicate) -> Optional[int]:
    for index in range(len(messages) - 1, -1, -1):
        if predicate(messages[index]):
            return index
    return None


def evaluate(
    messages: Sequence,
    watch: EscalationWatchState,
    now: float,
    delay: float = DEFAULT_REVEAL_DELAY,
) -> Tuple[EscalationState, EscalationWatchState]:
    """
    messages are in conversation order (created_at ascending). Returns the
    current state and the watch state to carry into the next evaluation.
    """
    escalation_index = _last_index(
        messages, lambda m: m.sender_role == SenderRole.AI and m.escalation_flag
    )
    if escalation_index is None:
        return EscalationState.IDLE, replace(watch, active_escalation_id=None, reveal_deadline=None)

    escalation_id = messages[escalation_index].id

    # A newer, distinct escalation releases the old dismissal
    dismissed_id = watch.dismissed_escalation_id
    if dismissed_id is not None and dismissed_id != escalation_id:
        dismissed_id = None

    visitor_index = _last_index(messages, lambda m: m.sender_role == SenderRole.VISITOR)
    if visitor_index is None or visitor_index <= escalation_index:
        return EscalationState.IDLE, EscalationWatchState(dismissed_escalation_id=dismissed_id)

    if dismissed_id == escalation_id:
        return EscalationState.DISMISSED, EscalationWatchState(dismissed_escalation_id=dismissed_id)

    if watch.active_escalation_id == escalation_id and watch.reveal_deadline is not None:
        state = EscalationState.REVEALED if now >= watch.reveal_deadline else EscalationState.AWAITING_REVEAL
        return state, replace(watch, dismissed_escalation_id=dismissed_id)

    return EscalationState.AWAITING_REVEAL, EscalationWatchState(
        active_escalation_id=escalation_id,
        dismissed_escalation_id=dismissed_id,
        reveal_deadline=now + delay,
    )


class EscalationWatcher:
    """
    Keeps at most one reveal timer alive. Any message list or email change
    cancels the pending timer before re-evaluating. Must be driven from a
    running event loop.
    """

    def __init__(
        self,
        delay: float = DEFAULT_REVEAL_DELAY,
        clock: Callable[[], float] = time.monotonic,
        on_change: Optional[Callable[[EscalationState], None]] = None,
    ):
        self.delay = delay
        self.clock = clock
        self.on_change = on_change
        self.watch = EscalationWatchState()
        self.state = EscalationState.IDLE
        self.escalated = False
        self._messages: Sequence = []
        self._email: Optional[str] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def can_send_text(self) -> bool:
        return not self.escalated

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    def update(self, messages: Sequence, email: Optional[str] = None):
        if email != self._email:
            self._email = email
            self.watch = EscalationWatchState()
            self.escalated = False
        self._messages = list(messages)
        self._recompute()

    def dismiss(self):
        if self.state not in (EscalationState.AWAITING_REVEAL, EscalationState.REVEALED):
            return
        self.watch = EscalationWatchState(dismissed_escalation_id=self.watch.active_escalation_id)
        logger.info("escalation_dismissed", escalation_id=self.watch.dismissed_escalation_id)
        self._recompute()

    def confirm(self):
        """Visitor accepted a specialist. Text input stays disabled from here."""
        self.escalated = True
        self._cancel_timer()
        logger.info("escalation_confirmed", escalation_id=self.watch.active_escalation_id)

    def close(self):
        self._cancel_timer()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _recompute(self):
        self._cancel_timer()
        state, self.watch = evaluate(self._messages, self.watch, self.clock(), self.delay)

        if state == EscalationState.AWAITING_REVEAL:
            remaining = max(0.0, self.watch.reveal_deadline - self.clock())
            self._timer = asyncio.get_running_loop().call_later(remaining, self._on_timer)

        if state != self.state:
            self.state = state
            if self.on_change:
                self.on_change(state)

    def _on_timer(self):
        self._timer = None
        self._recompute()
