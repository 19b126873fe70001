"""Core domain logic for convoflow."""

from .config import Config, ContextConfig, FlowConfig, load_config
from .conversation import ContextManager, ConversationHistory, QueryClassifier
from .errors import (
    ConfigError,
    ConvoflowError,
    FlowError,
    SessionNotFound,
    UnknownFlowType,
)
from .flows.orchestrator import FlowOrchestrator, FlowStatus
from .flows.triggers import FlowTriggerDetector, TriggerAction
from .knowledge import KnowledgeEntry, load_knowledge_entries
from .models import (
    ContextPatch,
    ConversationContext,
    Message,
    MessageMetadata,
    MessageType,
    PreferencesPatch,
    Session,
    SessionConfig,
    TroubleshootingPatch,
    TroubleshootingState,
    UserPreferences,
)
from .router import ConversationRouter, RoutedMessage
from .session_store import SessionStore

__all__ = [
    "Config",
    "ContextConfig",
    "FlowConfig",
    "load_config",
    "ContextManager",
    "ConversationHistory",
    "QueryClassifier",
    "ConvoflowError",
    "SessionNotFound",
    "ConfigError",
    "FlowError",
    "UnknownFlowType",
    "FlowOrchestrator",
    "FlowStatus",
    "FlowTriggerDetector",
    "TriggerAction",
    "KnowledgeEntry",
    "load_knowledge_entries",
    "ContextPatch",
    "ConversationContext",
    "Message",
    "MessageMetadata",
    "MessageType",
    "PreferencesPatch",
    "Session",
    "SessionConfig",
    "TroubleshootingPatch",
    "TroubleshootingState",
    "UserPreferences",
    "ConversationRouter",
    "RoutedMessage",
    "SessionStore",
]
