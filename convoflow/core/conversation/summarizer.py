"""Generate digests of conversation messages."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Sequence

from ..models import Message, MessageType
from .vocabulary import MAX_TOPICS, TOPIC_KEYWORDS

LOGGER = logging.getLogger(__name__)

SUMMARY_PREFIX = "Previous conversation summary: "


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


class ConversationSummarizer:
    """Builds short digests of message lists for compaction and reporting."""

    @staticmethod
    def summarize_messages(messages: Sequence[Message]) -> str:
        """
        Summarize messages into a single sentence plus topics.

        The digest counts user and assistant messages and lists up to five
        topics (intent labels first, then vocabulary keywords seen in user
        text).

        Args:
            messages: Messages to summarize, oldest first

        Returns:
            Digest text
        """
        if not messages:
            return "No previous conversation"

        user_count = sum(1 for m in messages if m.type is MessageType.USER)
        assistant_count = sum(1 for m in messages if m.type is MessageType.ASSISTANT)
        topics = ConversationSummarizer.extract_key_topics(messages)
        topics_text = f" Topics discussed: {', '.join(topics)}." if topics else ""

        return (
            f"User asked {_plural(user_count, 'question')} "
            f"and received {_plural(assistant_count, 'response')}.{topics_text}"
        )

    @staticmethod
    def extract_key_topics(messages: Sequence[Message], limit: int = MAX_TOPICS) -> List[str]:
        topics: List[str] = []
        for message in messages:
            intent = message.intent
            if intent and intent not in topics:
                topics.append(intent)

        user_text = " ".join(m.content.lower() for m in messages if m.type is MessageType.USER)
        for keyword in TOPIC_KEYWORDS:
            if keyword in user_text and keyword not in topics:
                topics.append(keyword)

        return topics[:limit]

    @staticmethod
    def describe_timespan(start: datetime, end: datetime) -> str:
        minutes = int((end - start).total_seconds() // 60)
        if minutes < 60:
            return f"{minutes} minutes"
        if minutes < 1440:
            return _plural(minutes // 60, "hour")
        return _plural(minutes // 1440, "day")
