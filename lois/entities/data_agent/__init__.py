"""
Data handlers - answer classified queries from the LOIS database.

The handlers:
1. SQLHandler generates SQL, validates it and executes it read-only
2. DocumentSearchHandler runs scoped or full-text document search
3. GeneralHandler answers from documents or dataset statistics
4. LookupHandler finds cases and contacts by name or case number
"""

from .generator import SqlGenerator, load_prompt
from .handlers import (
    DocumentSearchHandler,
    GeneralHandler,
    LookupHandler,
    SQLHandler,
    derive_search_terms,
    extract_case_numbers,
)

__all__ = [
    "DocumentSearchHandler",
    "GeneralHandler",
    "LookupHandler",
    "SQLHandler",
    "SqlGenerator",
    "derive_search_terms",
    "extract_case_numbers",
    "load_prompt",
]
