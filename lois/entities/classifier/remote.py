"""
LLM classifier - delegates intent classification to a hosted model.

Used when conversational context should influence the verdict. Output is
non-deterministic; only the parsing and validation contract is tested.
"""

import json
import logging
from pathlib import Path

from lois.entities.errors import ClassificationError
from lois.entities.llm import LLMClient, parse_json_reply
from lois.entities.models import (
    SUGGESTED_ACTIONS,
    ClassificationResult,
    QueryContext,
    QueryType,
)

logger = logging.getLogger(__name__)

CLASSIFY_MAX_TOKENS = 500


def _load_prompt() -> str:
    """Load the classifier instructions from prompt.md in this folder."""
    return (Path(__file__).parent / "prompt.md").read_text(encoding="utf-8")


def build_classification_prompt(instructions: str, query: str, context: QueryContext | None = None) -> str:
    parts = [instructions.strip()]

    if context and context.previous_query:
        rows = context.previous_rows
        block = f'## Conversation Context\n\n**Previous query**: "{context.previous_query}"\n'
        if rows:
            sample = json.dumps(rows[:2], indent=2, default=str)
            block += (
                f"**Previous result**: {len(rows)} rows\n\n"
                f"Sample of previous results:\n```json\n{sample}\n```\n\n"
                "References like \"these cases\" or \"those projects\" point at these rows."
            )
        parts.append(block)

    parts.append(f'User\'s query: "{query}"')
    return "\n\n".join(parts)


class LLMClassifier:
    """Classifier that asks the LLM for a JSON verdict."""

    def __init__(self, llm: LLMClient, instructions: str | None = None):
        self.llm = llm
        self.instructions = instructions if instructions is not None else _load_prompt()

    async def classify(self, query: str, context: QueryContext | None = None) -> ClassificationResult:
        """
        Classify a query.

        Raises:
            ClassificationError: if the call fails, the reply is not JSON,
                or the type is not a known intent.
        """
        logger.info("Classifying query with LLM: %s", query[:100])
        if context and context.previous_query:
            logger.info("Has context from previous query: %s", context.previous_query[:100])

        prompt = build_classification_prompt(self.instructions, query, context)
        try:
            reply = await self.llm.complete(prompt, max_tokens=CLASSIFY_MAX_TOKENS)
        except Exception as e:
            raise ClassificationError(f"Classifier call failed: {e}") from e

        try:
            verdict = parse_json_reply(reply)
        except ValueError as e:
            raise ClassificationError(str(e)) from e

        try:
            kind = QueryType(verdict.get("type"))
        except ValueError as e:
            raise ClassificationError(f"Invalid classification type: {verdict.get('type')!r}") from e

        confidence = verdict.get("confidence")
        try:
            confidence = 1.0 if confidence is None else float(confidence)
        except (TypeError, ValueError):
            confidence = 1.0
        confidence = max(0.0, min(1.0, confidence))

        logger.info("Classified as: %s (confidence: %.2f)", kind.value, confidence)
        return ClassificationResult(
            type=kind,
            confidence=confidence,
            reasoning=str(verdict.get("reasoning") or ""),
            suggested_action=SUGGESTED_ACTIONS[kind],
        )
