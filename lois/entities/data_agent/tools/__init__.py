"""
Tools for the data handlers.

Provides:
- Read-only SQL validation and execution
- Document search, case statistics and entity lookup
"""

from .search import CaseStore, PostgresCaseStore
from .sql import DENYLIST, SqlExecutor, strip_code_fences, validate_readonly_sql

__all__ = [
    "CaseStore",
    "DENYLIST",
    "PostgresCaseStore",
    "SqlExecutor",
    "strip_code_fences",
    "validate_readonly_sql",
]
