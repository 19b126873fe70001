"""Scoring tables used by the query classifier and the summarizer.

Everything here is static data. The enumeration order of ``Intent`` is also
the tie-break order when two intents end with the same score.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Pattern, Tuple


class Intent(str, Enum):
    FAQ = "faq"
    TROUBLESHOOTING = "troubleshooting"
    ONBOARDING = "onboarding"
    PRODUCT = "product"
    GENERAL = "general"


class EntityType(str, Enum):
    PRODUCT = "product"
    FEATURE = "feature"
    ERROR = "error"
    STEP = "step"
    GENERAL = "general"


@dataclass(frozen=True)
class KeywordGroup:
    intent: Intent
    name: str
    keywords: Tuple[str, ...]


@dataclass(frozen=True)
class EntityPattern:
    entity_type: EntityType
    pattern: Pattern[str]
    confidence: float


@dataclass(frozen=True)
class EntityBoost:
    entity_type: EntityType
    intent: Intent
    weight: float


GENERAL_BASE_SCORE = 0.1
CURRENT_INTENT_BOOST = 0.2
ONBOARDING_STEP_BOOST = 0.3
TROUBLESHOOTING_ISSUE_BOOST = 0.3

KEYWORD_WEIGHTS: Dict[Intent, float] = {
    Intent.FAQ: 0.2,
    Intent.TROUBLESHOOTING: 0.3,
    Intent.ONBOARDING: 0.25,
    Intent.PRODUCT: 0.2,
}

KEYWORD_GROUPS: Tuple[KeywordGroup, ...] = (
    KeywordGroup(Intent.FAQ, "general", ("what", "how", "why", "when", "where", "faq", "question", "help")),
    KeywordGroup(Intent.FAQ, "pricing", ("cost", "price", "pricing", "fee", "charge", "payment", "billing")),
    KeywordGroup(Intent.FAQ, "features", ("feature", "capability", "function", "can", "does", "support")),
    KeywordGroup(Intent.FAQ, "account", ("account", "login", "password", "profile", "user", "register")),
    KeywordGroup(Intent.TROUBLESHOOTING, "error", ("error", "bug", "issue", "problem", "broken", "fail", "crash")),
    KeywordGroup(Intent.TROUBLESHOOTING, "not_working", ("not working", "doesn't work", "can't", "unable", "won't")),
    KeywordGroup(Intent.TROUBLESHOOTING, "fix", ("fix", "solve", "resolve", "repair", "troubleshoot", "debug")),
    KeywordGroup(Intent.TROUBLESHOOTING, "performance", ("slow", "lag", "performance", "speed", "timeout", "loading")),
    KeywordGroup(Intent.ONBOARDING, "setup", ("setup", "install", "configure", "initialize", "start", "begin")),
    KeywordGroup(Intent.ONBOARDING, "guide", ("guide", "tutorial", "walkthrough", "step", "instruction")),
    KeywordGroup(Intent.ONBOARDING, "getting_started", ("getting started", "first time", "new user", "onboard")),
    KeywordGroup(Intent.ONBOARDING, "deployment", ("deploy", "deployment", "production", "launch", "go live")),
    KeywordGroup(Intent.PRODUCT, "information", ("about", "information", "details", "spec", "specification")),
    KeywordGroup(Intent.PRODUCT, "comparison", ("compare", "vs", "versus", "difference", "better", "alternative")),
    KeywordGroup(Intent.PRODUCT, "availability", ("available", "availability", "when", "release", "launch")),
    KeywordGroup(Intent.PRODUCT, "integration", ("integrate", "integration", "api", "embed", "connect")),
)

ENTITY_PATTERNS: Tuple[EntityPattern, ...] = (
    EntityPattern(EntityType.PRODUCT, re.compile(r"\b(api|dashboard|widget|chatbot|integration|service)\b"), 0.8),
    EntityPattern(EntityType.PRODUCT, re.compile(r"\b(account|subscription|billing|payment)\b"), 0.8),
    EntityPattern(EntityType.FEATURE, re.compile(r"\b(voice|speech|text|chat|conversation)\b"), 0.7),
    EntityPattern(EntityType.FEATURE, re.compile(r"\b(setup|configuration|settings|preferences)\b"), 0.7),
    EntityPattern(EntityType.ERROR, re.compile(r"\b(error|bug|issue|problem|fail|broken)\b"), 0.9),
    EntityPattern(EntityType.ERROR, re.compile(r"\b(not working|doesn't work|can't|unable)\b"), 0.9),
    EntityPattern(EntityType.STEP, re.compile(r"\b(step|next|first|second|third|final)\b"), 0.6),
    EntityPattern(EntityType.STEP, re.compile(r"\b(install|configure|setup|deploy)\b"), 0.6),
)

ENTITY_BOOSTS: Tuple[EntityBoost, ...] = (
    EntityBoost(EntityType.ERROR, Intent.TROUBLESHOOTING, 0.4),
    EntityBoost(EntityType.STEP, Intent.ONBOARDING, 0.3),
    EntityBoost(EntityType.PRODUCT, Intent.PRODUCT, 0.3),
    EntityBoost(EntityType.FEATURE, Intent.FAQ, 0.2),
    EntityBoost(EntityType.FEATURE, Intent.PRODUCT, 0.2),
)

# Knowledge ranking
CATEGORY_MATCH_SCORE = 0.5
KEYWORD_MATCH_SCORE = 0.3
ENTITY_MATCH_WEIGHT = 0.2
QUESTION_OVERLAP_WEIGHT = 0.4
RELEVANCE_THRESHOLD = 0.3
MAX_SUGGESTIONS = 5

# Conversation stage
RECENT_WINDOW = 5
ONGOING_MESSAGE_LIMIT = 6
CLOSING_PHRASES: Tuple[str, ...] = ("help", "anything else")

# Summary topics
TOPIC_KEYWORDS: Tuple[str, ...] = (
    "setup",
    "error",
    "help",
    "problem",
    "configure",
    "install",
    "troubleshoot",
)
MAX_TOPICS = 5


def keywords_for(intent: Intent) -> Tuple[str, ...]:
    """All keywords for ``intent`` in table order."""
    return tuple(kw for group in KEYWORD_GROUPS if group.intent is intent for kw in group.keywords)
