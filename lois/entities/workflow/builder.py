"""
Wires the production query router.
"""

import logging

from lois.entities.classifier import KeywordClassifier, LLMClassifier
from lois.entities.data_agent import (
    DocumentSearchHandler,
    GeneralHandler,
    LookupHandler,
    SqlGenerator,
    SQLHandler,
)
from lois.entities.data_agent.tools import CaseStore, SqlExecutor
from lois.entities.llm import LLMClient
from lois.entities.schema_context import SchemaContext
from lois.entities.workflow.router import QueryRouter

logger = logging.getLogger(__name__)

CLASSIFIERS = ("local", "llm")


def build_query_router(
    llm: LLMClient,
    store: CaseStore,
    executor: SqlExecutor,
    schema: SchemaContext,
    classifier: str = "llm",
) -> tuple[QueryRouter, SqlGenerator]:
    """
    Build the query router.

    Creates a router where:
    1. The configured classifier picks an intent
    2. SQLHandler generates and executes read-only SQL
    3. DocumentSearchHandler, GeneralHandler and LookupHandler read from the store

    Args:
        llm: Chat-completion client
        store: Case database store
        executor: Read-only SQL executor
        schema: Schema context handed to SQL generation
        classifier: "local" or "llm"

    Returns:
        Tuple of (router, generator) for use in the API
    """
    if classifier not in CLASSIFIERS:
        raise ValueError(f"LOIS_CLASSIFIER must be one of {CLASSIFIERS}, got {classifier!r}")

    generator = SqlGenerator(llm, schema)
    router = QueryRouter(
        classifier=KeywordClassifier() if classifier == "local" else LLMClassifier(llm),
        sql_handler=SQLHandler(generator, executor),
        document_handler=DocumentSearchHandler(store),
        general_handler=GeneralHandler(store),
        lookup_handler=LookupHandler(store),
    )

    logger.info("Query router built (classifier=%s, schema=%s)", classifier, schema.version)
    return router, generator
