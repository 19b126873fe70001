"""Routes inbound user messages through triggers, classification and history."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .conversation import ContextManager, QueryAnalysis, QueryClassifier
from .conversation.context_manager import SUMMARY_INTENT
from .flows.orchestrator import FlowOrchestrator, FlowStatus
from .flows.triggers import FlowTriggerDetector, TriggerAction
from .knowledge import KnowledgeEntry
from .models import IdleFlow, Message, MessageMetadata, MessageType, Session
from .session_store import SessionStore

LOGGER = logging.getLogger(__name__)


@dataclass
class RoutedMessage:
    """Outcome of handling one user message."""

    session: Session
    message: Message
    analysis: QueryAnalysis
    trigger: Optional[TriggerAction] = None
    flow_status: Optional[FlowStatus] = None
    replies: List[Message] = field(default_factory=list)


class ConversationRouter:
    """Central entry point translating user text into flow and context updates."""

    def __init__(
        self,
        store: SessionStore,
        context_manager: ContextManager,
        classifier: QueryClassifier,
        orchestrator: FlowOrchestrator,
        triggers: FlowTriggerDetector,
        knowledge_entries: Sequence[KnowledgeEntry] = (),
    ) -> None:
        self._store = store
        self._context_manager = context_manager
        self._classifier = classifier
        self._orchestrator = orchestrator
        self._triggers = triggers
        self._knowledge_entries = list(knowledge_entries)

    @property
    def knowledge_entries(self) -> List[KnowledgeEntry]:
        return list(self._knowledge_entries)

    def handle_message(self, session_id: str, text: str) -> Optional[RoutedMessage]:
        """
        Handle one user message end to end.

        Flow triggers run first so that a message starting or advancing a flow
        is classified against the updated context. The classified intent is
        stored on the message only while no flow is running and no trigger
        fired, so classification never overrides an orchestrated intent.

        Returns:
            RoutedMessage, or None for an unknown session or a failed routing
            (in which case error recovery has been attempted)
        """
        session = self._store.get(session_id)
        if session is None:
            LOGGER.warning("Dropping message for unknown session %s", session_id)
            return None

        seen_ids = {m.id for m in session.context.messages}
        try:
            trigger = self._triggers.process(session_id, text)
            if trigger is TriggerAction.START_TROUBLESHOOTING:
                self._orchestrator.initialize_troubleshooting(session_id, text)

            context = self._context_manager.get(session_id)
            analysis = self._classifier.classify(text, context, self._knowledge_entries)
            classification = analysis.classification

            idle = context is None or isinstance(context.flow, IdleFlow)
            intent = classification.intent.value if idle and trigger is None else None
            message = Message(
                session_id=session_id,
                content=text,
                type=MessageType.USER,
                timestamp=self._store.now(),
                metadata=MessageMetadata(
                    intent=intent,
                    confidence=classification.confidence,
                    processing_time_ms=analysis.processing_time_ms,
                ),
            )
            self._context_manager.record_message(session_id, message)
            self._orchestrator.preserve_history(session_id)

            session = self._store.require(session_id)
        except Exception as exc:
            LOGGER.exception("Failed to route message for session %s", session_id)
            self._orchestrator.recover_from_error(session_id, exc)
            return None

        replies = [
            m
            for m in session.context.messages
            if m.id not in seen_ids and m.type is MessageType.SYSTEM and m.intent != SUMMARY_INTENT
        ]
        LOGGER.debug(
            "Routed message for session %s: intent=%s trigger=%s replies=%d",
            session_id,
            classification.intent.value,
            trigger.value if trigger else None,
            len(replies),
        )
        return RoutedMessage(
            session=session,
            message=message,
            analysis=analysis,
            trigger=trigger,
            flow_status=self._orchestrator.flow_status(session_id),
            replies=replies,
        )

    def flow_status(self, session_id: str) -> Optional[FlowStatus]:
        return self._orchestrator.flow_status(session_id)
