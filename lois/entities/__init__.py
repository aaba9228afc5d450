"""
Entities package.

Each subdirectory is one part of the query pipeline:
- classifier/: keyword and LLM intent classifiers
- data_agent/: SQL generation plus the intent handlers and their tools
- chat_agent/: narration and display formatting
- workflow/: the router that binds intents to handlers
- warehouse/: Snowflake access and natural-language queries

Shared models are available at the package level.
"""

from .models import ClassificationResult, QueryContext, QueryResult, QueryType

__all__ = ["ClassificationResult", "QueryContext", "QueryResult", "QueryType"]
