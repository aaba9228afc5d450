"""
Query classifiers.

Both classifiers expose ``async classify(query, context) -> ClassificationResult``.
"""

from .local import KeywordClassifier, classify_query, get_query_examples
from .remote import LLMClassifier
from .rules import RULES, RULESET_VERSION

__all__ = [
    "KeywordClassifier",
    "LLMClassifier",
    "RULES",
    "RULESET_VERSION",
    "classify_query",
    "get_query_examples",
]
