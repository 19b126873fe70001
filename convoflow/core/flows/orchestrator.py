"""Drive the onboarding and troubleshooting flows over session state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..config import FlowConfig
from ..conversation.history import ConversationHistory
from ..errors import UnknownFlowType
from ..models import (
    CLEAR_FLOWS,
    ContextPatch,
    Message,
    MessageType,
    OnboardingFlowState,
    Session,
    TroubleshootingFlowState,
    TroubleshootingState,
)
from ..session_store import SessionStore
from .catalog import DEFAULT_FLOW_TYPE, FlowStep, TroubleshootingSolution

LOGGER = logging.getLogger(__name__)

ONBOARDING = "onboarding"
TROUBLESHOOTING = "troubleshooting"
IDLE = "idle"

PRESERVED_INTENTS = frozenset({ONBOARDING, TROUBLESHOOTING})


@dataclass
class OnboardingFlow:
    current_step: int
    total_steps: int
    steps: List[FlowStep]
    progress: int


@dataclass
class TroubleshootingFlow:
    issue: str
    current_solution: int
    solutions: List[TroubleshootingSolution]
    escalation_level: int
    max_escalation_level: int


@dataclass
class FlowStatus:
    mode: str
    current_intent: Optional[str] = None
    onboarding: Optional[OnboardingFlow] = None
    troubleshooting: Optional[TroubleshootingState] = None
    message_count: int = 0


def _build_onboarding_flow(step: int, steps: List[FlowStep]) -> OnboardingFlow:
    total = len(steps)
    return OnboardingFlow(
        current_step=step,
        total_steps=total,
        steps=steps,
        progress=round(step / total * 100) if total else 0,
    )


class FlowOrchestrator:
    """State machine over ``current_intent`` with onboarding and troubleshooting sub-flows.

    Every public method returns None/False instead of raising; unexpected
    failures are logged.
    """

    def __init__(
        self,
        store: SessionStore,
        history: ConversationHistory,
        config: Optional[FlowConfig] = None,
    ) -> None:
        self._store = store
        self._history = history
        self._config = config or FlowConfig()
        self._catalog = self._config.catalog

    # Onboarding

    def initialize_onboarding(
        self, session_id: str, flow_type: str = DEFAULT_FLOW_TYPE
    ) -> Optional[OnboardingFlow]:
        try:
            steps = self._catalog.onboarding_steps(flow_type)
            updated = self._store.update_context(
                session_id,
                ContextPatch(
                    current_intent=ONBOARDING,
                    flow=OnboardingFlowState(step=0, flow_type=flow_type),
                ),
            )
            if not updated:
                return None
            self._history.add_system_message(
                session_id,
                f"Welcome! I'll guide you through the {flow_type} onboarding process. "
                f"We have {len(steps)} steps to complete.",
                intent=ONBOARDING,
            )
        except UnknownFlowType:
            LOGGER.warning("Unknown onboarding flow type %r for session %s", flow_type, session_id)
            return None
        except Exception:
            LOGGER.exception("Error initializing onboarding flow for session %s", session_id)
            return None

        LOGGER.info("Onboarding flow %s initialized for session %s", flow_type, session_id)
        return _build_onboarding_flow(0, steps)

    def advance_onboarding(self, session_id: str) -> Optional[FlowStep]:
        """
        Move to the next onboarding step.

        The last catalog entry is the completion step: advancing into it
        finishes onboarding, clears the flow and returns None. None is also
        returned when the session is not onboarding.
        """
        try:
            session = self._store.get(session_id)
            if session is None or session.context.current_intent != ONBOARDING:
                return None
            flow = session.context.flow
            if not isinstance(flow, OnboardingFlowState):
                return None

            steps = self._catalog.onboarding_steps(flow.flow_type)
            next_index = flow.step + 1
            if next_index >= len(steps) - 1:
                self._complete_onboarding(session_id)
                return None

            next_step = steps[next_index]
            self._store.update_context(
                session_id,
                ContextPatch(flow=OnboardingFlowState(step=next_index, flow_type=flow.flow_type)),
            )
            self._history.add_system_message(
                session_id,
                f"Great! Let's move to step {next_index + 1}: {next_step.title}. {next_step.description}",
                intent=ONBOARDING,
            )
        except Exception:
            LOGGER.exception("Error progressing onboarding for session %s", session_id)
            return None

        LOGGER.info("Onboarding progressed to step %d for session %s", next_index, session_id)
        return next_step

    def onboarding_flow(self, session_id: str) -> Optional[OnboardingFlow]:
        """Rebuild the onboarding read-model from the persisted step."""
        session = self._store.get(session_id)
        if session is None:
            return None
        flow = session.context.flow
        if not isinstance(flow, OnboardingFlowState):
            return None
        try:
            steps = self._catalog.onboarding_steps(flow.flow_type)
        except UnknownFlowType:
            return None
        return _build_onboarding_flow(flow.step, steps)

    def _complete_onboarding(self, session_id: str) -> None:
        self._store.update_context(session_id, CLEAR_FLOWS)
        self._history.add_system_message(
            session_id,
            "Congratulations! You've completed the onboarding process. "
            "I'm here to help with any questions you might have.",
            intent="onboarding_complete",
        )
        LOGGER.info("Onboarding completed for session %s", session_id)

    # Troubleshooting

    def initialize_troubleshooting(self, session_id: str, issue: str) -> Optional[TroubleshootingFlow]:
        if not issue or not issue.strip():
            LOGGER.debug("Rejected empty troubleshooting issue for session %s", session_id)
            return None
        issue = issue.strip()
        try:
            solutions = self._catalog.solutions_for(issue)
            if not solutions:
                LOGGER.warning("No troubleshooting solutions available for %r", issue)
                return None

            state = TroubleshootingState(current_issue=issue)
            updated = self._store.update_context(
                session_id,
                ContextPatch(current_intent=TROUBLESHOOTING, flow=TroubleshootingFlowState(state)),
            )
            if not updated:
                return None
            first = solutions[0]
            self._history.add_system_message(
                session_id,
                f'I understand you\'re experiencing: "{issue}". Let\'s try to resolve this step by step. '
                f"Here's the first solution I recommend: {first.title}. {first.description}",
                intent=TROUBLESHOOTING,
                confidence=0.8,
            )
        except Exception:
            LOGGER.exception("Error initializing troubleshooting flow for session %s", session_id)
            return None

        LOGGER.info("Troubleshooting flow initialized for session %s with issue: %s", session_id, issue)
        return TroubleshootingFlow(
            issue=issue,
            current_solution=0,
            solutions=solutions,
            escalation_level=0,
            max_escalation_level=self._config.max_escalation_level,
        )

    def report_outcome(self, session_id: str, worked: bool) -> Optional[TroubleshootingSolution]:
        """
        Record whether the last offered solution worked.

        Returns the next solution to try, or None when the flow ended
        (resolved or handed to human support), escalated, or is not running.
        """
        try:
            session = self._store.get(session_id)
            if session is None:
                return None
            state = session.context.troubleshooting_state
            if state is None:
                return None

            if worked:
                self._complete_troubleshooting(session_id, resolved=True)
                return None

            solutions = self._catalog.solutions_for(state.current_issue or "")
            attempted = list(state.attempted_solutions)
            if len(attempted) < len(solutions):
                attempted.append(solutions[len(attempted)].id)

            if len(attempted) >= len(solutions):
                self._escalate(session_id, state, attempted)
                return None

            next_solution = solutions[len(attempted)]
            self._store.update_context(
                session_id,
                ContextPatch(
                    flow=TroubleshootingFlowState(
                        TroubleshootingState(
                            current_issue=state.current_issue,
                            attempted_solutions=tuple(attempted),
                            escalation_level=state.escalation_level,
                        )
                    )
                ),
            )
            self._history.add_system_message(
                session_id,
                f"Let's try another approach: {next_solution.title}. {next_solution.description}",
                intent=TROUBLESHOOTING,
                confidence=0.7,
            )
        except Exception:
            LOGGER.exception("Error progressing troubleshooting for session %s", session_id)
            return None

        LOGGER.info("Troubleshooting progressed to solution %d for session %s", len(attempted), session_id)
        return next_solution

    def _escalate(self, session_id: str, state: TroubleshootingState, attempted: List[str]) -> None:
        level = state.escalation_level + 1
        if level >= self._config.max_escalation_level:
            self._complete_troubleshooting(session_id, resolved=False)
            return

        self._store.update_context(
            session_id,
            ContextPatch(
                flow=TroubleshootingFlowState(
                    TroubleshootingState(
                        current_issue=state.current_issue,
                        attempted_solutions=tuple(attempted),
                        escalation_level=level,
                    )
                )
            ),
        )
        self._history.add_system_message(
            session_id,
            "I understand the previous solutions didn't work. Let me try a different approach "
            "or connect you with additional resources.",
            intent="troubleshooting_escalation",
            confidence=0.6,
        )
        LOGGER.info("Troubleshooting escalated to level %d for session %s", level, session_id)

    def _complete_troubleshooting(self, session_id: str, resolved: bool) -> None:
        self._store.update_context(session_id, CLEAR_FLOWS)
        if resolved:
            text = "Great! I'm glad we could resolve your issue. Is there anything else I can help you with?"
        else:
            text = (
                "I apologize that we couldn't resolve your issue through our troubleshooting steps. "
                "I recommend contacting our support team for personalized assistance. "
                "They'll have access to more advanced diagnostic tools."
            )
        self._history.add_system_message(
            session_id,
            text,
            intent="troubleshooting_resolved" if resolved else "troubleshooting_escalated",
        )
        LOGGER.info("Troubleshooting completed for session %s, resolved: %s", session_id, resolved)

    # Generic transitions

    def transition(self, session_id: str, from_state: str, to_state: str) -> bool:
        try:
            if self._store.get(session_id) is None:
                return False
            LOGGER.info("State transition for session %s: %s -> %s", session_id, from_state, to_state)

            if to_state == ONBOARDING:
                self.initialize_onboarding(session_id)
            elif to_state == IDLE:
                self._store.update_context(session_id, CLEAR_FLOWS)
            elif to_state == TROUBLESHOOTING:
                # Started separately once the issue text is known.
                pass
            else:
                LOGGER.debug("No transition handler for state %r", to_state)
            return True
        except Exception:
            LOGGER.exception("Error handling state transition for session %s", session_id)
            return False

    def recover_from_error(self, session_id: str, error: BaseException) -> bool:
        LOGGER.error("Conversation error for session %s: %s", session_id, error)
        try:
            self._history.add_system_message(
                session_id,
                "I apologize, but I encountered an issue processing your request. "
                "Let me try to help you in a different way.",
                intent="error_recovery",
                confidence=0.5,
            )
            self._store.update_context(session_id, CLEAR_FLOWS)
        except Exception:
            LOGGER.exception("Error during conversation recovery for session %s", session_id)
            return False
        return True

    # History

    def preserve_history(self, session_id: str) -> bool:
        """
        Trim a long history to recent plus flow-relevant messages.

        Keeps the newest ``preserved_recent_messages`` messages together with
        every system message and every message labelled onboarding or
        troubleshooting, in timestamp order.
        """
        try:
            session = self._store.get(session_id)
            if session is None:
                return False
            messages = session.context.messages
            if len(messages) <= self._config.preservation_threshold:
                return True

            preserved = self._select_preserved(messages)
            updated = self._store.update_context(session_id, ContextPatch(messages=preserved))
            if updated:
                LOGGER.info(
                    "Memory optimized for session %s: %d -> %d messages",
                    session_id,
                    len(messages),
                    len(preserved),
                )
            return updated
        except Exception:
            LOGGER.exception("Error preserving conversation history for session %s", session_id)
            return False

    def _select_preserved(self, messages: Sequence[Message]) -> List[Message]:
        recent = messages[-self._config.preserved_recent_messages :]
        important = [
            m for m in messages if m.type is MessageType.SYSTEM or m.intent in PRESERVED_INTENTS
        ]
        unique = {}
        for message in [*important, *recent]:
            unique.setdefault(message.id, message)
        return sorted(unique.values(), key=lambda m: m.timestamp)

    # Status

    def flow_status(self, session_id: str) -> Optional[FlowStatus]:
        session: Optional[Session] = self._store.get(session_id)
        if session is None:
            return None
        context = session.context
        if isinstance(context.flow, OnboardingFlowState):
            mode = ONBOARDING
        elif isinstance(context.flow, TroubleshootingFlowState):
            mode = TROUBLESHOOTING
        else:
            mode = context.current_intent or IDLE
        return FlowStatus(
            mode=mode,
            current_intent=context.current_intent,
            onboarding=self.onboarding_flow(session_id),
            troubleshooting=context.troubleshooting_state,
            message_count=len(context.messages),
        )
