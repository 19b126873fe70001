"""Per-session context bookkeeping: recording, compaction and expiry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import List, Optional, Set
from uuid import uuid4

from ..config import ContextConfig
from ..models import (
    ContextPatch,
    ConversationContext,
    Message,
    MessageMetadata,
    MessageType,
    OnboardingFlowState,
    PreferencesPatch,
    TroubleshootingFlowState,
    TroubleshootingPatch,
    UserPreferences,
    merge_preferences,
    merge_troubleshooting,
)
from ..session_store import SessionStore
from .summarizer import SUMMARY_PREFIX, ConversationSummarizer

LOGGER = logging.getLogger(__name__)

SUMMARY_INTENT = "summary"


@dataclass(frozen=True)
class ContextSummary:
    summary: str
    message_count: int
    timespan: str
    key_topics: List[str]


@dataclass(frozen=True)
class MemoryStats:
    session_count: int
    total_messages: int
    avg_messages_per_session: float
    rough_size_estimate: str


class ContextManager:
    """Owns the compaction policy over each session's message list."""

    def __init__(self, store: SessionStore, config: Optional[ContextConfig] = None) -> None:
        self._store = store
        self._config = config or ContextConfig()
        # Sessions whose context was cleared; they read as absent until a new message arrives.
        self._cleared: Set[str] = set()
        LOGGER.info("Context manager initialized with %s", self._config)

    @property
    def config(self) -> ContextConfig:
        return self._config

    def record_message(self, session_id: str, message: Message) -> Optional[ConversationContext]:
        """
        Append ``message`` to the session context and compact if needed.

        The message's metadata intent, when present, becomes the current
        intent. Compaction is attempted once the message count passes
        ``compression_threshold``.

        Returns:
            The stored context, or None when the session does not exist. A
            cleared context is recreated by the new message.
        """
        session = self._store.get(session_id)
        if session is None:
            LOGGER.debug("Cannot record message for unknown session %s", session_id)
            return None

        if session_id in self._cleared:
            self._cleared.discard(session_id)
            LOGGER.debug("Recreating cleared context for session %s", session_id)
        context = replace(session.context, messages=[*session.context.messages, message])
        if message.intent:
            context.current_intent = message.intent

        if len(context.messages) > self._config.compression_threshold:
            try:
                context = self.compact(context)
            except Exception:
                LOGGER.exception("Compaction failed for session %s; keeping full history", session_id)

        self._store.update_context(
            session_id,
            ContextPatch(messages=context.messages, current_intent=context.current_intent),
        )
        LOGGER.debug(
            "Context updated for session %s: %d message(s), intent=%s",
            session_id,
            len(context.messages),
            context.current_intent,
        )
        return self._store.get(session_id).context

    def compact(self, context: ConversationContext) -> ConversationContext:
        """
        Keep the newest ``max_messages`` messages and fold the rest into one summary.

        A context already at or below ``max_messages`` is returned unchanged.
        """
        messages = context.messages
        limit = self._config.max_messages
        if len(messages) <= limit:
            return context

        older = messages[:-limit]
        recent = messages[-limit:]
        LOGGER.debug("Compacting context: %d message(s) -> %d + summary", len(messages), limit)

        summary_message = Message(
            id=f"summary-{uuid4().hex}",
            session_id=older[0].session_id,
            content=SUMMARY_PREFIX + ConversationSummarizer.summarize_messages(older),
            type=MessageType.SYSTEM,
            timestamp=older[-1].timestamp,
            metadata=MessageMetadata(intent=SUMMARY_INTENT),
        )
        return replace(context, messages=[summary_message, *recent])

    def get(self, session_id: str) -> Optional[ConversationContext]:
        """Return the session context, or None if missing, cleared or expired.

        An expired context is cleared as a side effect and stays absent until
        the next recorded message.
        """
        session = self._store.get(session_id)
        if session is None or session_id in self._cleared:
            LOGGER.debug("No context found for session %s", session_id)
            return None

        last = session.context.last_message
        if last is not None and self._is_expired(last, self._retention):
            LOGGER.info("Context for session %s expired; clearing", session_id)
            self.clear(session_id)
            return None
        return session.context

    def clear(self, session_id: str) -> None:
        self._store.update_context(
            session_id,
            ContextPatch(messages=[], current_intent=None, user_preferences=UserPreferences()),
        )
        self._cleared.add(session_id)
        LOGGER.debug("Context cleared for session %s", session_id)

    def summary(self, session_id: str) -> Optional[ContextSummary]:
        context = self.get(session_id)
        if not context or not context.messages:
            return None
        messages = context.messages
        return ContextSummary(
            summary=ConversationSummarizer.summarize_messages(messages),
            message_count=len(messages),
            timespan=ConversationSummarizer.describe_timespan(
                messages[0].timestamp, messages[-1].timestamp
            ),
            key_topics=ConversationSummarizer.extract_key_topics(messages),
        )

    def update_preferences(self, session_id: str, patch: PreferencesPatch) -> bool:
        context = self.get(session_id)
        if context is None:
            return False
        preferences = merge_preferences(context.user_preferences, patch)
        self._store.update_context(session_id, ContextPatch(user_preferences=preferences))
        LOGGER.debug("User preferences updated for session %s: %s", session_id, preferences)
        return True

    def update_onboarding_step(self, session_id: str, step: int, flow_type: str = "general") -> bool:
        context = self.get(session_id)
        if context is None:
            return False
        self._store.update_context(
            session_id,
            ContextPatch(current_intent="onboarding", flow=OnboardingFlowState(step, flow_type)),
        )
        LOGGER.debug("Onboarding step updated for session %s: %d", session_id, step)
        return True

    def update_troubleshooting_state(self, session_id: str, patch: TroubleshootingPatch) -> bool:
        context = self.get(session_id)
        if context is None:
            return False
        state = merge_troubleshooting(context.troubleshooting_state, patch)
        self._store.update_context(
            session_id,
            ContextPatch(current_intent="troubleshooting", flow=TroubleshootingFlowState(state)),
        )
        LOGGER.debug("Troubleshooting state updated for session %s: %s", session_id, state)
        return True

    def memory_stats(self) -> MemoryStats:
        contexts = [s.context for s in self._store.list_sessions() if s.id not in self._cleared]
        session_count = len(contexts)
        total_messages = sum(len(c.messages) for c in contexts)
        average = total_messages / session_count if session_count else 0.0
        # Roughly 1KB per message
        return MemoryStats(
            session_count=session_count,
            total_messages=total_messages,
            avg_messages_per_session=round(average, 2),
            rough_size_estimate=f"{round(total_messages / 1024)} MB",
        )

    def sweep(self, max_idle: timedelta) -> int:
        """Clear every empty context and every context idle longer than ``max_idle``."""
        cleared = 0
        for session in self._store.list_sessions():
            if session.id in self._cleared:
                continue
            last = session.context.last_message
            if last is None or self._is_expired(last, max_idle):
                self.clear(session.id)
                cleared += 1
        if cleared:
            LOGGER.info("Cleaned up %d expired context(s)", cleared)
        return cleared

    @property
    def _retention(self) -> timedelta:
        return timedelta(hours=self._config.retention_hours)

    def _is_expired(self, message: Message, window: timedelta) -> bool:
        return self._store.now() > message.timestamp + window
