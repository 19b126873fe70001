"""Conversation management - context, classification, and summarization."""

from .classifier import (
    ClassificationResult,
    ContextualInfo,
    ExtractedEntity,
    QueryAnalysis,
    QueryClassifier,
)
from .context_manager import ContextManager, ContextSummary, MemoryStats
from .history import ConversationHistory
from .summarizer import ConversationSummarizer
from .vocabulary import EntityType, Intent

__all__ = [
    "ClassificationResult",
    "ContextualInfo",
    "ExtractedEntity",
    "QueryAnalysis",
    "QueryClassifier",
    "ContextManager",
    "ContextSummary",
    "MemoryStats",
    "ConversationHistory",
    "ConversationSummarizer",
    "EntityType",
    "Intent",
]
