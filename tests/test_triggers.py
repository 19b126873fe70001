"""Tests for FlowTriggerDetector."""

from unittest.mock import MagicMock

import pytest

from convoflow.core.flows.triggers import FlowTriggerDetector, TriggerAction


class TestTriggerDetection:
    """Phrase detection and the orchestrator calls it makes."""

    @pytest.mark.parametrize(
        "text",
        ["Help me get started", "I need some onboarding", "how do I begin?", "setup please"],
    )
    def test_onboarding_triggers(self, detector, store, session, text):
        assert detector.process(session.id, text) is TriggerAction.START_ONBOARDING
        assert store.get(session.id).context.onboarding_step == 0

    def test_troubleshooting_trigger_only_transitions(self, detector, store, session):
        """The issue text is supplied separately, so no state is created yet."""
        assert detector.process(session.id, "My app is broken") is TriggerAction.START_TROUBLESHOOTING
        assert store.get(session.id).context.troubleshooting_state is None

    def test_progress_phrases_advance_onboarding(self, detector, orchestrator, store, session):
        orchestrator.initialize_onboarding(session.id)

        assert detector.process(session.id, "Done, what's next?") is TriggerAction.ADVANCE_ONBOARDING
        assert store.get(session.id).context.onboarding_step == 1

    def test_onboarding_trigger_ignored_while_onboarding(self, detector, orchestrator, store, session):
        orchestrator.initialize_onboarding(session.id)

        assert detector.process(session.id, "onboarding") is None
        assert store.get(session.id).context.onboarding_step == 0

    def test_failure_feedback_beats_new_troubleshooting(self, detector, orchestrator, store, session):
        """'still broken' during troubleshooting is a failed attempt, not a new issue."""
        orchestrator.initialize_troubleshooting(session.id, "crash")

        assert detector.process(session.id, "It's still broken") is TriggerAction.SOLUTION_FAILED
        state = store.get(session.id).context.troubleshooting_state
        assert state.attempted_solutions == ("basic_restart",)

    def test_success_feedback_resolves(self, detector, orchestrator, store, session):
        orchestrator.initialize_troubleshooting(session.id, "crash")

        assert detector.process(session.id, "Yes, that worked!") is TriggerAction.SOLUTION_WORKED
        assert store.get(session.id).context.current_intent is None

    def test_phrases_match_whole_words(self, detector, orchestrator, session):
        """'no' inside 'not' or 'know' is not negative feedback."""
        orchestrator.initialize_troubleshooting(session.id, "crash")

        assert detector.process(session.id, "I know, give me a moment") is None

    @pytest.mark.parametrize("text", ["", "thanks"])
    def test_no_trigger(self, detector, session, text):
        assert detector.process(session.id, text) is None

    def test_unknown_session(self, detector):
        assert detector.process("missing", "help me get started") is None

    def test_orchestrator_errors_are_swallowed(self, store, session):
        orchestrator = MagicMock()
        orchestrator.transition.side_effect = RuntimeError("boom")
        detector = FlowTriggerDetector(store, orchestrator)

        assert detector.process(session.id, "help me get started") is None
