"""Tests for ConversationSummarizer."""

from datetime import datetime, timedelta, timezone

from convoflow.core.conversation import ConversationSummarizer
from convoflow.core.models import Message, MessageMetadata, MessageType


def _message(content, type=MessageType.USER, intent=None):
    return Message(
        session_id="s",
        content=content,
        type=type,
        metadata=MessageMetadata(intent=intent) if intent else None,
    )


class TestConversationSummarizer:
    """Test cases for ConversationSummarizer."""

    def test_summarize_empty(self):
        """Summarizing nothing gives a fixed placeholder."""
        assert ConversationSummarizer.summarize_messages([]) == "No previous conversation"

    def test_summarize_counts_and_topics(self):
        messages = [
            _message("How do I install this?", intent="onboarding"),
            _message("Run the installer.", type=MessageType.ASSISTANT),
            _message("Now I get an error", intent="troubleshooting"),
        ]

        summary = ConversationSummarizer.summarize_messages(messages)

        assert summary == (
            "User asked 2 questions and received 1 response. "
            "Topics discussed: onboarding, troubleshooting, error, install."
        )

    def test_summary_without_topics(self):
        summary = ConversationSummarizer.summarize_messages([_message("hi")])

        assert summary == "User asked 1 question and received 0 responses."

    def test_key_topics_are_limited(self):
        messages = [_message(f"m{i}", intent=f"intent-{i}") for i in range(7)]

        topics = ConversationSummarizer.extract_key_topics(messages)

        assert topics == [f"intent-{i}" for i in range(5)]

    def test_assistant_text_is_not_a_topic_source(self):
        messages = [_message("setup and error details", type=MessageType.ASSISTANT)]

        assert ConversationSummarizer.extract_key_topics(messages) == []

    def test_describe_timespan(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert ConversationSummarizer.describe_timespan(start, start + timedelta(minutes=42)) == "42 minutes"
        assert ConversationSummarizer.describe_timespan(start, start + timedelta(hours=1)) == "1 hour"
        assert ConversationSummarizer.describe_timespan(start, start + timedelta(hours=5)) == "5 hours"
        assert ConversationSummarizer.describe_timespan(start, start + timedelta(days=3)) == "3 days"
