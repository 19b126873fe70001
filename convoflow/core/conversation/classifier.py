"""Classify user messages into intents and rank knowledge entries."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..knowledge import KnowledgeEntry
from ..models import ConversationContext, MessageType
from .vocabulary import (
    CATEGORY_MATCH_SCORE,
    CLOSING_PHRASES,
    CURRENT_INTENT_BOOST,
    ENTITY_BOOSTS,
    ENTITY_MATCH_WEIGHT,
    ENTITY_PATTERNS,
    GENERAL_BASE_SCORE,
    KEYWORD_GROUPS,
    KEYWORD_MATCH_SCORE,
    KEYWORD_WEIGHTS,
    MAX_SUGGESTIONS,
    ONBOARDING_STEP_BOOST,
    ONGOING_MESSAGE_LIMIT,
    QUESTION_OVERLAP_WEIGHT,
    RECENT_WINDOW,
    RELEVANCE_THRESHOLD,
    TROUBLESHOOTING_ISSUE_BOOST,
    EntityType,
    Intent,
    keywords_for,
)

LOGGER = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

STAGE_INITIAL = "initial"
STAGE_ONGOING = "ongoing"
STAGE_RESOLUTION = "resolution"


@dataclass(frozen=True)
class ExtractedEntity:
    type: EntityType
    value: str
    confidence: float


@dataclass
class ClassificationResult:
    intent: Intent
    confidence: float
    entities: List[ExtractedEntity] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)


@dataclass
class ContextualInfo:
    is_follow_up: bool = False
    previous_intent: Optional[str] = None
    conversation_stage: str = STAGE_INITIAL


@dataclass
class QueryAnalysis:
    classification: ClassificationResult
    contextual_info: ContextualInfo
    suggested_entries: List[KnowledgeEntry] = field(default_factory=list)
    processing_time_ms: float = 0.0


def fallback_analysis() -> QueryAnalysis:
    return QueryAnalysis(
        classification=ClassificationResult(intent=Intent.GENERAL, confidence=GENERAL_BASE_SCORE),
        contextual_info=ContextualInfo(),
    )


class QueryClassifier:
    """Deterministic keyword and pattern scoring over a single utterance.

    Holds no state; the same inputs always give the same analysis.
    """

    def classify(
        self,
        text: str,
        context: Optional[ConversationContext],
        knowledge_entries: Sequence[KnowledgeEntry] = (),
    ) -> QueryAnalysis:
        """
        Classify ``text`` and rank knowledge entries against it.

        Never raises: any failure is logged and the general/low-confidence
        fallback is returned instead.

        Args:
            text: Raw user utterance
            context: The session's current conversation context (may be None)
            knowledge_entries: Candidates for the suggestion list

        Returns:
            QueryAnalysis with classification, contextual info and suggestions
        """
        started = time.perf_counter()
        try:
            context = context or ConversationContext()
            normalized = self.normalize(text)
            entities = self.extract_entities(normalized)
            classification = self._classify_intent(normalized, context, entities)
            contextual_info = self.analyze_context(context)
            suggestions = self.rank_knowledge_entries(
                normalized, classification.intent, entities, knowledge_entries
            )
        except Exception:
            LOGGER.exception("Query analysis failed for message %r", text)
            return fallback_analysis()

        elapsed_ms = (time.perf_counter() - started) * 1000
        LOGGER.info(
            "Query analysis completed: intent=%s confidence=%.2f entities=%d suggestions=%d (%.1fms)",
            classification.intent.value,
            classification.confidence,
            len(entities),
            len(suggestions),
            elapsed_ms,
        )
        return QueryAnalysis(
            classification=classification,
            contextual_info=contextual_info,
            suggested_entries=suggestions,
            processing_time_ms=elapsed_ms,
        )

    @staticmethod
    def normalize(text: str) -> str:
        lowered = (text or "").lower().strip()
        return _WHITESPACE.sub(" ", _PUNCTUATION.sub(" ", lowered)).strip()

    @staticmethod
    def extract_entities(normalized: str) -> List[ExtractedEntity]:
        seen = set()
        entities: List[ExtractedEntity] = []
        for entity_pattern in ENTITY_PATTERNS:
            for match in entity_pattern.pattern.finditer(normalized):
                key = (entity_pattern.entity_type, match.group(0))
                if key in seen:
                    continue
                seen.add(key)
                entities.append(
                    ExtractedEntity(
                        type=entity_pattern.entity_type,
                        value=match.group(0),
                        confidence=entity_pattern.confidence,
                    )
                )
        # sorted() is stable, so equal confidences keep pattern order
        return sorted(entities, key=lambda e: e.confidence, reverse=True)

    def score_intents(
        self,
        normalized: str,
        context: ConversationContext,
        entities: Sequence[ExtractedEntity],
    ) -> Dict[Intent, float]:
        scores = {intent: 0.0 for intent in Intent}
        scores[Intent.GENERAL] = GENERAL_BASE_SCORE

        for group in KEYWORD_GROUPS:
            weight = KEYWORD_WEIGHTS[group.intent]
            for keyword in group.keywords:
                if keyword in normalized:
                    scores[group.intent] += weight

        for entity in entities:
            for boost in ENTITY_BOOSTS:
                if boost.entity_type is entity.type:
                    scores[boost.intent] += boost.weight * entity.confidence

        if context.current_intent:
            for intent in Intent:
                if intent.value == context.current_intent:
                    scores[intent] += CURRENT_INTENT_BOOST
        if context.onboarding_step is not None:
            scores[Intent.ONBOARDING] += ONBOARDING_STEP_BOOST
        state = context.troubleshooting_state
        if state is not None and state.current_issue:
            scores[Intent.TROUBLESHOOTING] += TROUBLESHOOTING_ISSUE_BOOST

        return scores

    def _classify_intent(
        self,
        normalized: str,
        context: ConversationContext,
        entities: List[ExtractedEntity],
    ) -> ClassificationResult:
        scores = self.score_intents(normalized, context, entities)

        # Strict comparison: the first intent in enumeration order wins ties.
        winner = Intent.FAQ
        for intent in Intent:
            if scores[intent] > scores[winner]:
                winner = intent

        LOGGER.debug("Intent scores: %s", {i.value: round(s, 3) for i, s in scores.items()})
        return ClassificationResult(
            intent=winner,
            confidence=min(scores[winner], 1.0),
            entities=entities,
            keywords=self.relevant_keywords(normalized, winner),
        )

    @staticmethod
    def relevant_keywords(normalized: str, intent: Intent) -> List[str]:
        if intent is Intent.GENERAL:
            return []
        matched: List[str] = []
        for keyword in keywords_for(intent):
            if keyword in normalized and keyword not in matched:
                matched.append(keyword)
        return matched

    @staticmethod
    def analyze_context(context: ConversationContext) -> ContextualInfo:
        messages = context.messages
        recent = messages[-RECENT_WINDOW:]

        if not messages:
            stage = STAGE_INITIAL
        elif len(messages) < ONGOING_MESSAGE_LIMIT:
            stage = STAGE_ONGOING
        else:
            last_assistant = next(
                (m for m in reversed(recent) if m.type is MessageType.ASSISTANT), None
            )
            content = last_assistant.content.lower() if last_assistant else ""
            if any(phrase in content for phrase in CLOSING_PHRASES):
                stage = STAGE_RESOLUTION
            else:
                stage = STAGE_ONGOING

        return ContextualInfo(
            is_follow_up=len(recent) > 1,
            previous_intent=context.current_intent,
            conversation_stage=stage,
        )

    @staticmethod
    def rank_knowledge_entries(
        normalized: str,
        intent: Intent,
        entities: Sequence[ExtractedEntity],
        knowledge_entries: Sequence[KnowledgeEntry],
    ) -> List[KnowledgeEntry]:
        message_words = normalized.split()
        scored = []

        for entry in knowledge_entries:
            score = 0.0
            if entry.category == intent.value:
                score += CATEGORY_MATCH_SCORE

            for keyword in entry.keywords:
                kw = keyword.lower()
                if any(kw in word or word in kw for word in message_words):
                    score += KEYWORD_MATCH_SCORE

            question = entry.question.lower()
            answer = entry.answer.lower()
            for entity in entities:
                value = entity.value.lower()
                if value in question or value in answer:
                    score += ENTITY_MATCH_WEIGHT * entity.confidence

            question_words = question.split()
            denominator = max(len(message_words), len(question_words))
            if denominator:
                overlap = sum(1 for word in message_words if word in question_words)
                score += (overlap / denominator) * QUESTION_OVERLAP_WEIGHT

            if score > RELEVANCE_THRESHOLD:
                scored.append((score, entry))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [entry for _, entry in scored[:MAX_SUGGESTIONS]]
