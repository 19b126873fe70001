"""Static step and solution catalogs for the guided flows."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..errors import UnknownFlowType

DEFAULT_FLOW_TYPE = "general"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @property
    def rank(self) -> int:
        return _DIFFICULTY_RANK[self]


_DIFFICULTY_RANK = {Difficulty.EASY: 0, Difficulty.MEDIUM: 1, Difficulty.HARD: 2}


@dataclass(frozen=True)
class FlowStep:
    id: str
    title: str
    description: str
    action: Optional[str] = None
    next_steps: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TroubleshootingSolution:
    id: str
    title: str
    description: str
    steps: Tuple[str, ...]
    difficulty: Difficulty
    estimated_minutes: int
    success_rate: float


GENERAL_ONBOARDING_STEPS: Tuple[FlowStep, ...] = (
    FlowStep(
        id="welcome",
        title="Welcome",
        description="Let me introduce myself and explain how I can help you.",
        next_steps=("account_setup",),
    ),
    FlowStep(
        id="account_setup",
        title="Account Setup",
        description="Let's make sure your account is properly configured.",
        next_steps=("feature_overview",),
    ),
    FlowStep(
        id="feature_overview",
        title="Feature Overview",
        description="I'll show you the key features available to you.",
        next_steps=("first_task",),
    ),
    FlowStep(
        id="first_task",
        title="Complete Your First Task",
        description="Let's walk through completing your first task together.",
        next_steps=("completion",),
    ),
    FlowStep(
        id="completion",
        title="Onboarding Complete",
        description="You're all set! I'm here whenever you need assistance.",
    ),
)

DEFAULT_SOLUTIONS: Tuple[TroubleshootingSolution, ...] = (
    TroubleshootingSolution(
        id="basic_restart",
        title="Basic Restart",
        description="Try restarting the application or refreshing the page.",
        steps=("Close the application", "Wait 10 seconds", "Reopen the application"),
        difficulty=Difficulty.EASY,
        estimated_minutes=2,
        success_rate=0.7,
    ),
    TroubleshootingSolution(
        id="clear_cache",
        title="Clear Cache and Data",
        description="Clear your browser cache and stored data.",
        steps=(
            "Open browser settings",
            "Navigate to privacy/security",
            "Clear browsing data",
            "Restart browser",
        ),
        difficulty=Difficulty.MEDIUM,
        estimated_minutes=5,
        success_rate=0.6,
    ),
    TroubleshootingSolution(
        id="check_permissions",
        title="Check Permissions",
        description="Verify that necessary permissions are granted.",
        steps=("Check browser permissions", "Enable required features", "Refresh the page"),
        difficulty=Difficulty.MEDIUM,
        estimated_minutes=3,
        success_rate=0.5,
    ),
)


def rank_solutions(solutions: Iterable[TroubleshootingSolution]) -> List[TroubleshootingSolution]:
    """Order by descending success rate, then easiest first."""
    return sorted(solutions, key=lambda s: (-s.success_rate, s.difficulty.rank))


@dataclass
class FlowCatalog:
    """Onboarding step lists keyed by flow type, plus troubleshooting solutions."""

    onboarding: Dict[str, Tuple[FlowStep, ...]] = field(
        default_factory=lambda: {DEFAULT_FLOW_TYPE: GENERAL_ONBOARDING_STEPS}
    )
    solutions: Tuple[TroubleshootingSolution, ...] = DEFAULT_SOLUTIONS

    def onboarding_steps(self, flow_type: str = DEFAULT_FLOW_TYPE) -> List[FlowStep]:
        try:
            return list(self.onboarding[flow_type])
        except KeyError as exc:
            raise UnknownFlowType(flow_type) from exc

    def solutions_for(self, issue: str) -> List[TroubleshootingSolution]:
        # Every issue shares the same solution list for now.
        return rank_solutions(self.solutions)

    @property
    def flow_types(self) -> Sequence[str]:
        return tuple(self.onboarding)


def parse_steps(raw: Sequence[Mapping]) -> Tuple[FlowStep, ...]:
    """Build FlowStep records from plain mappings (YAML config)."""
    return tuple(
        FlowStep(
            id=str(item["id"]),
            title=str(item["title"]),
            description=str(item.get("description", "")),
            action=item.get("action"),
            next_steps=tuple(item.get("next_steps") or ()),
        )
        for item in raw
    )


def parse_solutions(raw: Sequence[Mapping]) -> Tuple[TroubleshootingSolution, ...]:
    """Build TroubleshootingSolution records from plain mappings (YAML config)."""
    return tuple(
        TroubleshootingSolution(
            id=str(item["id"]),
            title=str(item["title"]),
            description=str(item.get("description", "")),
            steps=tuple(item.get("steps") or ()),
            difficulty=Difficulty(str(item.get("difficulty", "medium")).lower()),
            estimated_minutes=int(item.get("estimated_minutes", 0)),
            success_rate=float(item.get("success_rate", 0.0)),
        )
        for item in raw
    )
