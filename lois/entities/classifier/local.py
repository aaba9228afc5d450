"""
Keyword classifier - deterministic intent scoring without a network call.

Classification is a fold over ``RULES``:
1. Normalise the query (trim, lower-case)
2. Add each matching rule's weight to its intent
3. Pick the winner (lookup priority, then tie order)
4. Confidence = winner's score / sum of all scores
"""

import logging

from lois.entities.classifier.rules import LOOKUP_MIN_SCORE, RULES, Rule
from lois.entities.models import (
    SUGGESTED_ACTIONS,
    ClassificationResult,
    QueryContext,
    QueryType,
)

logger = logging.getLogger(__name__)

# First entry wins a tie
TIE_ORDER = (QueryType.SQL, QueryType.DOCUMENT_SEARCH, QueryType.GENERAL, QueryType.SEARCH)

NO_INDICATORS = "No specific indicators found, defaulting to a general answer"

_REASONS = {
    QueryType.SEARCH: "Query looks like a bare name or case number to look up directly",
    QueryType.SQL: "Query asks for structured data (counts, filters or aggregations)",
    QueryType.DOCUMENT_SEARCH: "Query asks to search through document content",
    QueryType.GENERAL: "Query is conversational or asks for an explanation",
}


def score_query(
    query: str,
    context: QueryContext | None = None,
    rules: tuple[Rule, ...] = RULES,
) -> dict[QueryType, float]:
    """Accumulate rule weights per intent."""
    original = (query or "").strip()
    normalized = original.lower()
    has_context = bool(context and context.previous_rows)

    scores = {kind: 0.0 for kind in QueryType}
    for rule in rules:
        if rule.matches(normalized, original, has_context):
            scores[rule.kind] += rule.weight
    return scores


def select_winner(scores: dict[QueryType, float]) -> QueryType | None:
    """Pick the winning intent, or None when nothing scored."""
    best = max(scores.values(), default=0.0)
    if best <= 0:
        return None
    lookup = scores.get(QueryType.SEARCH, 0.0)
    if lookup >= LOOKUP_MIN_SCORE and lookup >= best:
        return QueryType.SEARCH
    for kind in TIE_ORDER:
        if scores.get(kind, 0.0) == best:
            return kind
    return None


class KeywordClassifier:
    """
    Local classifier over a declarative rule table.

    Never raises; the worst case is the low-confidence general default.
    """

    def __init__(self, rules: tuple[Rule, ...] = RULES):
        self.rules = rules

    async def classify(self, query: str, context: QueryContext | None = None) -> ClassificationResult:
        return self.classify_sync(query, context)

    def classify_sync(self, query: str, context: QueryContext | None = None) -> ClassificationResult:
        scores = score_query(query, context, self.rules)
        winner = select_winner(scores)

        if winner is None:
            result = ClassificationResult(
                type=QueryType.GENERAL,
                confidence=0.5,
                reasoning=NO_INDICATORS,
                suggested_action=SUGGESTED_ACTIONS[QueryType.GENERAL],
                scores=scores,
            )
        else:
            total = sum(scores.values()) or 1.0
            result = ClassificationResult(
                type=winner,
                confidence=min(1.0, scores[winner] / total),
                reasoning=_REASONS[winner],
                suggested_action=SUGGESTED_ACTIONS[winner],
                scores=scores,
            )

        logger.debug("Classified %r as %s (%.2f)", (query or "")[:100], result.type.value, result.confidence)
        return result


def classify_query(query: str, context: QueryContext | None = None) -> ClassificationResult:
    """Classify with the default rule table."""
    return KeywordClassifier().classify_sync(query, context)


def get_query_examples() -> dict[QueryType, list[str]]:
    """Representative queries for each intent."""
    return {
        QueryType.SEARCH: [
            "Harold McLaughlin",
            "CV-2025-00001",
            "Maria Garcia",
        ],
        QueryType.SQL: [
            "How many open Personal Injury cases are there?",
            "Which cases have time entries exceeding 100 hours?",
            "Show me all cases filed in the last 30 days",
            "What is the total of unpaid invoices?",
            "List cases with medical expenses over $100,000",
        ],
        QueryType.DOCUMENT_SEARCH: [
            "Search documents for settlement agreement",
            "Find documents mentioning damages",
            "What pleadings reference the accident date?",
        ],
        QueryType.GENERAL: [
            "Tell me about the Thompson matter",
            "Explain the discovery process",
            "Summarize what happened last week",
        ],
    }
