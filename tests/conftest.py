"""Shared fixtures for convoflow tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from convoflow.core.config import ContextConfig, FlowConfig
from convoflow.core.conversation import ContextManager, ConversationHistory, QueryClassifier
from convoflow.core.flows.orchestrator import FlowOrchestrator
from convoflow.core.flows.triggers import FlowTriggerDetector
from convoflow.core.models import Message, MessageMetadata, MessageType
from convoflow.core.router import ConversationRouter
from convoflow.core.session_store import SessionStore


class FakeClock:
    """Controllable clock; every call returns the current fake time."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(clock=clock)


@pytest.fixture
def session(store):
    return store.create(user_id="user-1")


@pytest.fixture
def history(store):
    return ConversationHistory(store)


@pytest.fixture
def context_manager(store):
    return ContextManager(store, ContextConfig())


@pytest.fixture
def orchestrator(store, history):
    return FlowOrchestrator(store, history, FlowConfig())


@pytest.fixture
def detector(store, orchestrator):
    return FlowTriggerDetector(store, orchestrator)


@pytest.fixture
def router(store, context_manager, orchestrator, detector):
    return ConversationRouter(store, context_manager, QueryClassifier(), orchestrator, detector)


@pytest.fixture
def make_message(clock):
    """Build messages stamped with the fake clock, advancing it one second each."""

    def _make(
        session_id: str,
        content: str = "hello",
        type: MessageType = MessageType.USER,
        intent: str | None = None,
    ) -> Message:
        clock.advance(seconds=1)
        return Message(
            session_id=session_id,
            content=content,
            type=type,
            timestamp=clock(),
            metadata=MessageMetadata(intent=intent) if intent else None,
        )

    return _make
