"""Coarse phrase detection that drives the flow orchestrator directly."""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Optional, Pattern

from ..models import Session
from ..session_store import SessionStore
from .orchestrator import IDLE, ONBOARDING, TROUBLESHOOTING, FlowOrchestrator

LOGGER = logging.getLogger(__name__)


def _phrases(*phrases: str) -> Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(re.escape(p) for p in phrases) + r")\b")


ONBOARDING_TRIGGERS = _phrases("help me get started", "onboarding", "setup", "how do i begin")
TROUBLESHOOTING_TRIGGERS = _phrases(
    "problem", "issue", "not working", "error", "broken", "help", "fix"
)
ONBOARDING_PROGRESS = _phrases("done", "complete", "finished", "next", "continue")
SOLUTION_WORKED = _phrases("worked", "fixed", "solved", "yes", "success")
SOLUTION_FAILED = _phrases(
    "didn't work", "did not work", "still broken", "no", "failed", "try something else"
)


class TriggerAction(str, Enum):
    START_ONBOARDING = "start_onboarding"
    START_TROUBLESHOOTING = "start_troubleshooting"
    ADVANCE_ONBOARDING = "advance_onboarding"
    SOLUTION_WORKED = "solution_worked"
    SOLUTION_FAILED = "solution_failed"


def _matches(pattern: Pattern[str], text: str) -> bool:
    return pattern.search(text) is not None


class FlowTriggerDetector:
    """Inspects raw text for flow phrases and calls the orchestrator.

    Feedback for a running flow is checked before new-flow triggers, so
    "it's still broken" during troubleshooting counts as a failed attempt
    rather than a fresh troubleshooting request. Starting troubleshooting only
    performs the generic transition; the caller supplies the issue text.
    """

    def __init__(self, store: SessionStore, orchestrator: FlowOrchestrator) -> None:
        self._store = store
        self._orchestrator = orchestrator

    def process(self, session_id: str, text: str) -> Optional[TriggerAction]:
        try:
            session = self._store.get(session_id)
            if session is None or not text:
                return None
            action = self._detect(session, text.lower().strip())
            if action is not None:
                LOGGER.info("Flow trigger %s for session %s", action.value, session_id)
                self._apply(session, action)
            return action
        except Exception:
            LOGGER.exception("Error in flow trigger detection for session %s", session_id)
            return None

    @staticmethod
    def _detect(session: Session, text: str) -> Optional[TriggerAction]:
        context = session.context
        current = context.current_intent

        if current == ONBOARDING and _matches(ONBOARDING_PROGRESS, text):
            return TriggerAction.ADVANCE_ONBOARDING
        if current == TROUBLESHOOTING and context.troubleshooting_state is not None:
            if _matches(SOLUTION_FAILED, text):
                return TriggerAction.SOLUTION_FAILED
            if _matches(SOLUTION_WORKED, text):
                return TriggerAction.SOLUTION_WORKED
        if _matches(ONBOARDING_TRIGGERS, text):
            return TriggerAction.START_ONBOARDING if current != ONBOARDING else None
        if _matches(TROUBLESHOOTING_TRIGGERS, text):
            if context.troubleshooting_state is None:
                return TriggerAction.START_TROUBLESHOOTING
        return None

    def _apply(self, session: Session, action: TriggerAction) -> None:
        previous = session.context.current_intent or IDLE
        if action is TriggerAction.START_ONBOARDING:
            self._orchestrator.transition(session.id, previous, ONBOARDING)
        elif action is TriggerAction.START_TROUBLESHOOTING:
            self._orchestrator.transition(session.id, previous, TROUBLESHOOTING)
        elif action is TriggerAction.ADVANCE_ONBOARDING:
            self._orchestrator.advance_onboarding(session.id)
        elif action is TriggerAction.SOLUTION_WORKED:
            self._orchestrator.report_outcome(session.id, worked=True)
        elif action is TriggerAction.SOLUTION_FAILED:
            self._orchestrator.report_outcome(session.id, worked=False)

