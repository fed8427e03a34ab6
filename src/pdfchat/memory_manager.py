"""
Conversational memory for the PDF chat session.

Keeps two views over the same exchange stream:
- the message log (append-only, unbounded, used for display)
- the conversation window (only the last completed request/response pair,
  fed into the next query)
"""
from __future__ import annotations

import threading

from .config import CONVERSATION_WINDOW_EXCHANGES
from .models import ConversationWindowView, Message
from .observability import get_logger

logger = get_logger(__name__)

INITIAL_GREETING = "Hey! Load a PDF and then ask a question :)"
LOADED_GREETING = "Ask a question about the PDF :)"

_WINDOW_MESSAGES = 2 * CONVERSATION_WINDOW_EXCHANGES


class ConversationMemory:
    """Message log plus a bounded trailing window of the previous exchange."""

    def __init__(self, greeting: str = INITIAL_GREETING):
        self._lock = threading.RLock()
        self._messages: list[Message] = [Message(text=greeting, type="response")]
        self._window: ConversationWindowView | None = None

    def _recompute_window(self):
        if len(self._messages) > _WINDOW_MESSAGES:
            previous, last = self._messages[-2], self._messages[-1]
            self._window = ConversationWindowView(
                previous_request_text=previous.text,
                previous_response_text=last.text,
            )

    def append(self, message: Message):
        with self._lock:
            self._messages.append(message)
            self._recompute_window()

    def record_exchange(self, question: str, answer: str):
        """Appends a completed question/answer pair and moves the window onto it."""
        with self._lock:
            self._messages.append(Message(text=question, type="request"))
            self._messages.append(Message(text=answer, type="response"))
            self._recompute_window()
            logger.info("exchange_recorded", log_length=len(self._messages))

    def window(self) -> ConversationWindowView | None:
        with self._lock:
            return self._window

    def messages(self) -> tuple[Message, ...]:
        with self._lock:
            return tuple(self._messages)

    def reset(self, greeting: str = LOADED_GREETING):
        """Drops the window and restarts the log with a single greeting response."""
        with self._lock:
            self._messages = [Message(text=greeting, type="response")]
            self._window = None
        logger.info("conversation_reset")
