"""Tests for FlowOrchestrator."""

from unittest.mock import patch

import pytest

from convoflow.core.config import FlowConfig
from convoflow.core.conversation import ConversationHistory
from convoflow.core.flows import (
    Difficulty,
    FlowCatalog,
    FlowStep,
    TroubleshootingSolution,
    rank_solutions,
)
from convoflow.core.flows.orchestrator import FlowOrchestrator
from convoflow.core.models import ContextPatch, MessageType


def _intents(store, session_id):
    return [m.intent for m in store.get(session_id).context.messages]


def _solution(id, success_rate, difficulty=Difficulty.MEDIUM):
    return TroubleshootingSolution(
        id=id,
        title=id.replace("-", " ").title(),
        description="",
        steps=(),
        difficulty=difficulty,
        estimated_minutes=5,
        success_rate=success_rate,
    )


class TestOnboarding:
    """Onboarding flow progression."""

    def test_initialize_sets_step_zero(self, orchestrator, store, session):
        flow = orchestrator.initialize_onboarding(session.id)

        assert flow.current_step == 0
        assert flow.total_steps == 5
        assert flow.progress == 0
        context = store.get(session.id).context
        assert context.current_intent == "onboarding"
        assert context.onboarding_step == 0
        welcome = context.messages[-1]
        assert welcome.type is MessageType.SYSTEM
        assert "general onboarding process" in welcome.content
        assert "5 steps" in welcome.content

    def test_four_advances_complete_a_five_step_catalog(self, orchestrator, store, session):
        """Steps go 0 -> 1 -> 2 -> 3 and the fourth advance clears the flow."""
        orchestrator.initialize_onboarding(session.id)

        seen = []
        for _ in range(3):
            step = orchestrator.advance_onboarding(session.id)
            seen.append((step.id, store.get(session.id).context.onboarding_step))

        assert seen == [("account_setup", 1), ("feature_overview", 2), ("first_task", 3)]

        assert orchestrator.advance_onboarding(session.id) is None
        context = store.get(session.id).context
        assert context.current_intent is None
        assert context.onboarding_step is None
        assert context.messages[-1].intent == "onboarding_complete"
        assert "Congratulations" in context.messages[-1].content

    def test_advance_step_message(self, orchestrator, store, session):
        orchestrator.initialize_onboarding(session.id)
        orchestrator.advance_onboarding(session.id)

        assert store.get(session.id).context.messages[-1].content == (
            "Great! Let's move to step 2: Account Setup. "
            "Let's make sure your account is properly configured."
        )

    def test_advance_without_onboarding(self, orchestrator, session):
        assert orchestrator.advance_onboarding(session.id) is None
        assert orchestrator.advance_onboarding("missing") is None

    def test_unknown_flow_type(self, orchestrator, store, session):
        assert orchestrator.initialize_onboarding(session.id, flow_type="enterprise") is None
        assert store.get(session.id).context.current_intent is None

    def test_unknown_session(self, orchestrator):
        assert orchestrator.initialize_onboarding("missing") is None

    def test_custom_catalog(self, store, history, session):
        catalog = FlowCatalog(
            onboarding={
                "mini": (
                    FlowStep(id="hello", title="Hello", description="Hi."),
                    FlowStep(id="done", title="Done", description="Bye."),
                )
            }
        )
        orchestrator = FlowOrchestrator(store, history, FlowConfig(catalog=catalog))

        flow = orchestrator.initialize_onboarding(session.id, flow_type="mini")
        assert flow.total_steps == 2
        assert orchestrator.advance_onboarding(session.id) is None
        assert store.get(session.id).context.current_intent is None

    def test_onboarding_flow_read_model(self, orchestrator, session):
        orchestrator.initialize_onboarding(session.id)
        orchestrator.advance_onboarding(session.id)

        flow = orchestrator.onboarding_flow(session.id)

        assert flow.current_step == 1
        assert flow.progress == 20
        assert [s.id for s in flow.steps][0] == "welcome"


class TestTroubleshooting:
    """Troubleshooting flow outcomes and escalation."""

    def test_initialize(self, orchestrator, store, session):
        flow = orchestrator.initialize_troubleshooting(session.id, "  App keeps crashing  ")

        assert flow.issue == "App keeps crashing"
        assert [s.id for s in flow.solutions] == ["basic_restart", "clear_cache", "check_permissions"]
        assert flow.max_escalation_level == 3
        context = store.get(session.id).context
        assert context.current_intent == "troubleshooting"
        assert context.troubleshooting_state.current_issue == "App keeps crashing"
        assert "Basic Restart" in context.messages[-1].content

    @pytest.mark.parametrize("issue", ["", "   "])
    def test_blank_issue_rejected(self, orchestrator, store, session, issue):
        assert orchestrator.initialize_troubleshooting(session.id, issue) is None
        assert store.get(session.id).context.current_intent is None

    def test_worked_resolves(self, orchestrator, store, session):
        orchestrator.initialize_troubleshooting(session.id, "crash")
        orchestrator.report_outcome(session.id, worked=False)

        assert orchestrator.report_outcome(session.id, worked=True) is None
        context = store.get(session.id).context
        assert context.current_intent is None
        assert context.troubleshooting_state is None
        assert context.messages[-1].intent == "troubleshooting_resolved"

    def test_failed_offers_next_solution(self, orchestrator, store, session):
        orchestrator.initialize_troubleshooting(session.id, "crash")

        solution = orchestrator.report_outcome(session.id, worked=False)

        assert solution.id == "clear_cache"
        state = store.get(session.id).context.troubleshooting_state
        assert state.attempted_solutions == ("basic_restart",)

    def test_repeated_failure_ends_at_max_escalation(self, orchestrator, store, session):
        """Failing every attempt eventually hands off to support and clears state."""
        orchestrator.initialize_troubleshooting(session.id, "crash")

        calls = 0
        while store.get(session.id).context.current_intent is not None:
            orchestrator.report_outcome(session.id, worked=False)
            calls += 1
            assert calls < 20

        intents = _intents(store, session.id)
        assert intents.count("troubleshooting_escalation") == 2
        assert intents[-1] == "troubleshooting_escalated"
        assert "support team" in store.get(session.id).context.messages[-1].content
        assert store.get(session.id).context.troubleshooting_state is None

    def test_escalation_level_recorded(self, orchestrator, store, session):
        orchestrator.initialize_troubleshooting(session.id, "crash")
        for _ in range(3):
            orchestrator.report_outcome(session.id, worked=False)

        state = store.get(session.id).context.troubleshooting_state
        assert state.escalation_level == 1
        assert len(state.attempted_solutions) == 3

    @pytest.mark.parametrize("solution_count", [1, 2, 5])
    def test_escalation_ends_for_any_catalog_size(self, store, history, session, solution_count):
        """Escalation stops at the maximum level however many solutions exist."""
        catalog = FlowCatalog(
            solutions=tuple(_solution(f"fix-{i}", 0.5) for i in range(solution_count))
        )
        orchestrator = FlowOrchestrator(store, history, FlowConfig(catalog=catalog))
        orchestrator.initialize_troubleshooting(session.id, "crash")

        calls = 0
        while store.get(session.id).context.troubleshooting_state is not None:
            orchestrator.report_outcome(session.id, worked=False)
            calls += 1
            assert calls < 20

        # Every remaining solution is offered once, then three escalation levels.
        assert calls == (solution_count - 1) + 3
        assert _intents(store, session.id)[-1] == "troubleshooting_escalated"
        assert store.get(session.id).context.current_intent is None

    def test_solution_ranking_ties_prefer_easier(self):
        """Equal success rates are ordered easy, medium, hard."""
        ranked = rank_solutions(
            [
                _solution("hard-fix", 0.5, Difficulty.HARD),
                _solution("likely-fix", 0.8, Difficulty.HARD),
                _solution("easy-fix", 0.5, Difficulty.EASY),
                _solution("medium-fix", 0.5, Difficulty.MEDIUM),
            ]
        )

        assert [s.id for s in ranked] == ["likely-fix", "easy-fix", "medium-fix", "hard-fix"]

    def test_orchestrator_offers_easier_of_tied_solutions_first(self, store, history, session):
        catalog = FlowCatalog(
            solutions=(
                _solution("reinstall", 0.5, Difficulty.HARD),
                _solution("restart", 0.5, Difficulty.EASY),
            )
        )
        orchestrator = FlowOrchestrator(store, history, FlowConfig(catalog=catalog))

        flow = orchestrator.initialize_troubleshooting(session.id, "crash")

        assert [s.id for s in flow.solutions] == ["restart", "reinstall"]
        assert orchestrator.report_outcome(session.id, worked=False).id == "reinstall"

    def test_outcome_without_troubleshooting(self, orchestrator, session):
        assert orchestrator.report_outcome(session.id, worked=True) is None
        assert orchestrator.report_outcome("missing", worked=False) is None


class TestTransitionsAndRecovery:
    """Generic transitions, error recovery and status."""

    def test_transition_to_idle_clears_everything(self, orchestrator, store, session):
        orchestrator.initialize_onboarding(session.id)

        assert orchestrator.transition(session.id, "onboarding", "idle") is True

        context = store.get(session.id).context
        assert context.current_intent is None
        assert context.onboarding_step is None
        assert context.troubleshooting_state is None

    def test_transition_to_onboarding(self, orchestrator, store, session):
        assert orchestrator.transition(session.id, "idle", "onboarding") is True
        assert store.get(session.id).context.onboarding_step == 0

    def test_transition_to_troubleshooting_is_deferred(self, orchestrator, store, session):
        """Troubleshooting needs the issue text, so the transition alone does nothing."""
        assert orchestrator.transition(session.id, "idle", "troubleshooting") is True
        assert store.get(session.id).context.current_intent is None

    def test_transition_unknown_session(self, orchestrator):
        assert orchestrator.transition("missing", "idle", "onboarding") is False

    def test_recover_from_error(self, orchestrator, store, session):
        orchestrator.initialize_troubleshooting(session.id, "crash")

        assert orchestrator.recover_from_error(session.id, RuntimeError("boom")) is True

        context = store.get(session.id).context
        assert context.current_intent is None
        assert context.troubleshooting_state is None
        assert context.messages[-1].intent == "error_recovery"

    def test_recover_reports_failure(self, orchestrator, session):
        with patch.object(ConversationHistory, "add_system_message", side_effect=RuntimeError("down")):
            assert orchestrator.recover_from_error(session.id, ValueError("x")) is False

    def test_flow_status(self, orchestrator, session):
        assert orchestrator.flow_status(session.id).mode == "idle"

        orchestrator.initialize_onboarding(session.id)
        status = orchestrator.flow_status(session.id)
        assert status.mode == "onboarding"
        assert status.onboarding.total_steps == 5
        assert status.message_count == 1

        orchestrator.initialize_troubleshooting(session.id, "crash")
        status = orchestrator.flow_status(session.id)
        assert status.mode == "troubleshooting"
        assert status.onboarding is None
        assert status.troubleshooting.current_issue == "crash"

        assert orchestrator.flow_status("missing") is None


class TestPreserveHistory:
    """Trimming long histories to recent plus flow-relevant messages."""

    @pytest.fixture
    def small_orchestrator(self, store, history):
        return FlowOrchestrator(
            store, history, FlowConfig(preservation_threshold=10, preserved_recent_messages=3)
        )

    def test_keeps_recent_and_important(self, small_orchestrator, store, session, make_message):
        messages = []
        for i in range(12):
            if i == 2:
                messages.append(make_message(session.id, "m2", intent="onboarding"))
            elif i == 4:
                messages.append(make_message(session.id, "m4", type=MessageType.SYSTEM))
            else:
                messages.append(make_message(session.id, f"m{i}"))
        store.update_context(session.id, ContextPatch(messages=messages))

        assert small_orchestrator.preserve_history(session.id) is True

        kept = [m.content for m in store.get(session.id).context.messages]
        assert kept == ["m2", "m4", "m9", "m10", "m11"]

    def test_short_history_untouched(self, small_orchestrator, store, session, make_message):
        messages = [make_message(session.id) for _ in range(5)]
        store.update_context(session.id, ContextPatch(messages=messages))

        assert small_orchestrator.preserve_history(session.id) is True
        assert store.get(session.id).context.messages == messages

    def test_unknown_session(self, small_orchestrator):
        assert small_orchestrator.preserve_history("missing") is False
