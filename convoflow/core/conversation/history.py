"""Append-side message history with a per-session cap."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..models import ContextPatch, Message, MessageMetadata, MessageType
from ..session_store import SessionStore

LOGGER = logging.getLogger(__name__)


class ConversationHistory:
    """Creates messages and appends them, dropping the oldest past the session cap.

    Unlike ContextManager.record_message this never changes the current intent.
    """

    def __init__(self, store: SessionStore) -> None:
        self._store = store

    def add_message(
        self,
        session_id: str,
        content: str,
        type: MessageType,
        metadata: Optional[MessageMetadata] = None,
    ) -> Optional[Message]:
        session = self._store.get(session_id)
        if session is None:
            return None

        message = Message(
            session_id=session_id,
            content=content,
            type=type,
            timestamp=self._store.now(),
            metadata=metadata,
        )
        messages = [*session.context.messages, message]
        cap = session.config.max_messages
        if len(messages) > cap:
            messages = messages[-cap:]

        if not self._store.update_context(session_id, ContextPatch(messages=messages)):
            return None
        LOGGER.debug("Appended %s message to session %s", type.value, session_id)
        return message

    def add_system_message(
        self,
        session_id: str,
        content: str,
        intent: str,
        confidence: float = 1.0,
    ) -> Optional[Message]:
        return self.add_message(
            session_id,
            content,
            MessageType.SYSTEM,
            MessageMetadata(intent=intent, confidence=confidence),
        )

    def get_history(self, session_id: str) -> List[Message]:
        session = self._store.get(session_id)
        return list(session.context.messages) if session else []

    def get_recent(self, session_id: str, count: int = 10) -> List[Message]:
        return self.get_history(session_id)[-count:] if count > 0 else []

    def clear(self, session_id: str) -> bool:
        return self._store.update_context(session_id, ContextPatch(messages=[], current_intent=None))

    def update_intent(self, session_id: str, intent: str) -> bool:
        return self._store.update_context(session_id, ContextPatch(current_intent=intent))

    def stats(self, session_id: str) -> Dict[str, float]:
        messages = self.get_history(session_id)
        return {
            "total_messages": len(messages),
            "user_messages": sum(1 for m in messages if m.type is MessageType.USER),
            "assistant_messages": sum(1 for m in messages if m.type is MessageType.ASSISTANT),
            "average_response_time_ms": self._average_response_time_ms(messages),
        }

    @staticmethod
    def _average_response_time_ms(messages: List[Message]) -> float:
        response_times = [
            (reply.timestamp - prompt.timestamp).total_seconds() * 1000
            for prompt, reply in zip(messages, messages[1:])
            if prompt.type is MessageType.USER and reply.type is MessageType.ASSISTANT
        ]
        if not response_times:
            return 0.0
        return sum(response_times) / len(response_times)
