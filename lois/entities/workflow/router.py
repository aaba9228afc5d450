"""
Query router - classify once, dispatch to exactly one handler.

Flow:
1. Classify the query (keyword rules or LLM, per configuration)
2. Dispatch on the intent to its handler
3. Return the handler's QueryResult unchanged

A classification failure never aborts the request: the general handler
answers instead, with the same context.
"""

import logging
from typing import Protocol

from typing_extensions import assert_never

from lois.entities.models import ClassificationResult, QueryContext, QueryResult, QueryType

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    async def classify(self, query: str, context: QueryContext | None = None) -> ClassificationResult:
        ...


class Handler(Protocol):
    async def handle(self, query: str, context: QueryContext | None = None) -> QueryResult:
        ...


class QueryRouter:
    """Single seam where every intent is bound to its handler."""

    def __init__(
        self,
        classifier: Classifier,
        sql_handler: Handler,
        document_handler: Handler,
        general_handler: Handler,
        lookup_handler: Handler,
    ):
        self.classifier = classifier
        self.sql_handler = sql_handler
        self.document_handler = document_handler
        self.general_handler = general_handler
        self.lookup_handler = lookup_handler

    async def classify(self, query: str, context: QueryContext | None = None) -> ClassificationResult:
        return await self.classifier.classify(query, context)

    def handler_for(self, kind: QueryType) -> Handler:
        if kind is QueryType.SEARCH:
            return self.lookup_handler
        elif kind is QueryType.SQL:
            return self.sql_handler
        elif kind is QueryType.DOCUMENT_SEARCH:
            return self.document_handler
        elif kind is QueryType.GENERAL:
            return self.general_handler
        else:
            assert_never(kind)

    async def route(self, query: str, context: QueryContext | None = None) -> QueryResult:
        logger.info("Routing query: %s", query[:100])
        if context and context.previous_query:
            logger.info("Previous query: %s (%d rows)", context.previous_query[:100], len(context.previous_rows))

        try:
            classification = await self.classifier.classify(query, context)
        except Exception as e:
            logger.warning("Classification failed, falling back to general handler: %s", e)
            return await self.general_handler.handle(query, context)

        logger.info(
            "Classified as %s (confidence %.2f): %s",
            classification.type.value,
            classification.confidence,
            classification.reasoning,
        )
        return await self.handler_for(classification.type).handle(query, context)
