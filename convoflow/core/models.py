"""Domain models for convoflow."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, List, Optional, Sequence, Tuple, Union
from uuid import uuid4


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class MessageType(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class MessageMetadata:
    intent: Optional[str] = None
    confidence: Optional[float] = None
    processing_time_ms: Optional[float] = None


@dataclass(frozen=True)
class Message:
    session_id: str
    content: str
    type: MessageType
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utc_now)
    metadata: Optional[MessageMetadata] = None

    @property
    def intent(self) -> Optional[str]:
        return self.metadata.intent if self.metadata else None


@dataclass
class UserPreferences:
    preferred_response_length: str = "medium"
    voice_enabled: bool = False
    theme: str = "auto"


@dataclass(frozen=True)
class TroubleshootingState:
    current_issue: Optional[str] = None
    attempted_solutions: Tuple[str, ...] = ()
    escalation_level: int = 0


@dataclass(frozen=True)
class IdleFlow:
    """No guided flow is running."""

    intent: ClassVar[Optional[str]] = None


@dataclass(frozen=True)
class OnboardingFlowState:
    intent: ClassVar[Optional[str]] = "onboarding"

    step: int
    flow_type: str = "general"

    def __post_init__(self) -> None:
        if self.step < 0:
            raise ValueError(f"Onboarding step must be non-negative, got {self.step}")


@dataclass(frozen=True)
class TroubleshootingFlowState:
    intent: ClassVar[Optional[str]] = "troubleshooting"

    state: TroubleshootingState


FlowState = Union[IdleFlow, OnboardingFlowState, TroubleshootingFlowState]
IDLE = IdleFlow()


@dataclass
class ConversationContext:
    messages: List[Message] = field(default_factory=list)
    current_intent: Optional[str] = None
    flow: FlowState = IDLE
    user_preferences: Optional[UserPreferences] = field(default_factory=UserPreferences)

    @property
    def onboarding_step(self) -> Optional[int]:
        if isinstance(self.flow, OnboardingFlowState):
            return self.flow.step
        return None

    @property
    def troubleshooting_state(self) -> Optional[TroubleshootingState]:
        if isinstance(self.flow, TroubleshootingFlowState):
            return self.flow.state
        return None

    @property
    def last_message(self) -> Optional[Message]:
        return self.messages[-1] if self.messages else None


@dataclass
class SessionConfig:
    max_messages: int = 50
    response_timeout_ms: int = 5000
    language: str = "en"
    voice_enabled: bool = False


@dataclass
class Session:
    user_id: Optional[str] = None
    context: ConversationContext = field(default_factory=ConversationContext)
    config: SessionConfig = field(default_factory=SessionConfig)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)
    last_activity: datetime = field(default_factory=utc_now)


class _Unset:
    _instance: Optional["_Unset"] = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class ContextPatch:
    """Named optional fields to merge into a ConversationContext.

    Fields left as UNSET are untouched. Setting ``current_intent`` to None,
    or to an intent other than the running flow's, also returns the flow to
    idle.
    """

    messages: Union[Sequence[Message], _Unset] = UNSET
    current_intent: Union[Optional[str], _Unset] = UNSET
    flow: Union[FlowState, _Unset] = UNSET
    user_preferences: Union[Optional[UserPreferences], _Unset] = UNSET


@dataclass(frozen=True)
class PreferencesPatch:
    preferred_response_length: Union[str, _Unset] = UNSET
    voice_enabled: Union[bool, _Unset] = UNSET
    theme: Union[str, _Unset] = UNSET


@dataclass(frozen=True)
class TroubleshootingPatch:
    current_issue: Union[Optional[str], _Unset] = UNSET
    attempted_solutions: Union[Sequence[str], _Unset] = UNSET
    escalation_level: Union[int, _Unset] = UNSET


CLEAR_FLOWS = ContextPatch(current_intent=None, flow=IDLE)


def apply_patch(context: ConversationContext, patch: ContextPatch) -> ConversationContext:
    """Return a new context with ``patch`` merged into ``context``."""
    messages = context.messages if patch.messages is UNSET else list(patch.messages)
    intent = context.current_intent if patch.current_intent is UNSET else patch.current_intent
    flow = context.flow if patch.flow is UNSET else patch.flow
    preferences = (
        context.user_preferences if patch.user_preferences is UNSET else patch.user_preferences
    )
    if intent is None:
        flow = IDLE
    elif patch.flow is UNSET and flow.intent not in (None, intent):
        # A new intent ends a flow that no longer matches it.
        flow = IDLE
    return ConversationContext(
        messages=list(messages),
        current_intent=intent,
        flow=flow,
        user_preferences=preferences,
    )


def merge_preferences(
    existing: Optional[UserPreferences], patch: PreferencesPatch
) -> UserPreferences:
    merged = replace(existing) if existing else UserPreferences()
    for name in ("preferred_response_length", "voice_enabled", "theme"):
        value = getattr(patch, name)
        if value is not UNSET:
            setattr(merged, name, value)
    return merged


def merge_troubleshooting(
    existing: Optional[TroubleshootingState], patch: TroubleshootingPatch
) -> TroubleshootingState:
    base = existing or TroubleshootingState()
    return TroubleshootingState(
        current_issue=base.current_issue if patch.current_issue is UNSET else patch.current_issue,
        attempted_solutions=(
            base.attempted_solutions
            if patch.attempted_solutions is UNSET
            else tuple(patch.attempted_solutions)
        ),
        escalation_level=(
            base.escalation_level if patch.escalation_level is UNSET else patch.escalation_level
        ),
    )
