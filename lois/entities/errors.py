"""
Exception types raised by the LOIS query pipeline.

Handlers catch these and surface them as ``QueryResult.error``; the API layer
turns them into JSON error bodies. They never reach the end user as a trace.
"""


class LoisError(Exception):
    """Base class for all pipeline errors."""


class ClassificationError(LoisError):
    """The LLM classifier returned nothing usable."""


class GenerationError(LoisError):
    """SQL generation failed or produced an unusable statement."""


class UnsafeSQLError(GenerationError):
    """A statement failed the read-only checks."""

    def __init__(self, message: str, keyword: str | None = None):
        super().__init__(message)
        self.keyword = keyword


class ExecutionError(LoisError):
    """A validated statement failed at execution time."""


class DataAccessError(LoisError):
    """A document or lookup query against the case database failed."""


class WarehouseError(LoisError):
    """A Snowflake warehouse operation failed."""
