"""
Declarative rule table for the keyword classifier.

Each rule contributes ``weight`` to one intent when it matches. Keyword rules
match by substring containment on the lower-cased query; regex rules use
``re.search``. Rules marked ``case_sensitive`` run against the trimmed
original text because they depend on capitalisation (bare names).

Bump RULESET_VERSION whenever the table changes.
"""

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

from lois.entities.models import QueryType

RULESET_VERSION = "2025.12-4kind"

# Minimum lookup score for a bare name / case number to win outright
LOOKUP_MIN_SCORE = 2.0


class MatchMode(str, Enum):
    KEYWORD = "keyword"
    REGEX = "regex"


@dataclass(frozen=True)
class Rule:
    """
    One scoring heuristic.

    needs_context: None applies always, True only when the caller has a previous
    result, False only when it does not.
    """

    kind: QueryType
    pattern: str
    weight: float = 1.0
    mode: MatchMode = MatchMode.KEYWORD
    needs_context: bool | None = None
    case_sensitive: bool = False

    def matches(self, normalized: str, original: str, has_context: bool) -> bool:
        if self.needs_context is not None and self.needs_context != has_context:
            return False
        text = original if self.case_sensitive else normalized
        if self.mode is MatchMode.KEYWORD:
            return self.pattern in text
        return _compile(self.pattern, self.case_sensitive).search(text) is not None


@lru_cache(maxsize=None)
def _compile(pattern: str, case_sensitive: bool) -> re.Pattern:
    return re.compile(pattern) if case_sensitive else re.compile(pattern, re.IGNORECASE)


def _keywords(kind: QueryType, words: list[str], weight: float = 1.0) -> list[Rule]:
    return [Rule(kind, w, weight) for w in words]


def _patterns(kind: QueryType, patterns: list[str], weight: float = 2.0, **kwargs) -> list[Rule]:
    return [Rule(kind, p, weight, MatchMode.REGEX, **kwargs) for p in patterns]


_ENTITIES = r"(cases|projects|matters|clients|contacts|invoices|expenses|time entries|hours|tasks|documents)"
_AGGREGATES = r"(how many|total|average|sum|count|number of)"
_ANAPHORA = r"\b(these|those)\s+(cases|projects|matters|results|clients|contacts)\b"
_RELATION = r"(involv\w*|mention\w*|relat\w*|referenc\w*|associated|linked)"

SQL_RULES = (
    _keywords(QueryType.SQL, [
        "count", "sum", "average", "total", "how many", "show me all",
        "list all", "find cases where", "filter", "group by", "aggregate",
        "greater than", "less than", "between", "in the last", "during",
        "statistics", "breakdown", "distribution", "compare", "which cases",
    ])
    + _patterns(QueryType.SQL, [
        rf"how many .*{_ENTITIES}",
        r"show me .* (cases|projects) (where|with|that)",
        r"list .* (with|having|where)",
        r"find .* (greater than|less than|between|exceeding)",
        r"what is the (total|average|sum|count)",
        r"(medical expenses|settlement|damages|fees) (over|under|above|below|exceeding)",
        r"cases in (discovery|trial|settlement|closed|open)",
        r"(last|past) \d+ (days|weeks|months|years)",
        r"\bwhich (cases|projects|clients|contacts|matters)\b",
    ])
    # known tables / entities
    + _keywords(QueryType.SQL, [
        "time entries", "time entry", "expenses", "invoices", "billable",
        "hours", "cases", "projects", "contacts", "clients", "deadlines",
    ])
    # numeric thresholds
    + _patterns(QueryType.SQL, [
        r"\b\d[\d,]*(\.\d+)?\s*(hours|hrs|days|weeks|months|years)\b",
        r"\$\s?\d[\d,]*(\.\d+)?\s*[km]?\b",
    ])
    + _patterns(QueryType.SQL, [
        rf"\b{_AGGREGATES}\b.*\b{_ENTITIES}\b",
        rf"\b{_ENTITIES}\b.*\b{_AGGREGATES}\b",
    ], weight=4.0)
    # follow-ups over a previous result set: re-query rather than re-search
    + _patterns(QueryType.SQL, [_ANAPHORA], weight=3.0, needs_context=True)
    + _patterns(QueryType.SQL, [_ANAPHORA], weight=1.0, needs_context=False)
    + _patterns(QueryType.SQL, [
        rf"\b{_RELATION}\b.*\b(these|those)\b",
        rf"\b(these|those)\b.*\b{_RELATION}\b",
    ], weight=2.0)
)

DOCUMENT_RULES = (
    _keywords(QueryType.DOCUMENT_SEARCH, [
        "search", "find documents", "search documents", "look for",
        "find in documents", "document containing", "pleading", "motion",
        "contract", "correspondence", "evidence", "filed", "document",
    ])
    + _patterns(QueryType.DOCUMENT_SEARCH, [
        r"search (for|documents|files)",
        r"find documents? (about|containing|with|mentioning)",
        r"what documents? (mention|contain|reference)",
        r"show me documents? (where|that|containing)",
        r"(pleading|motion|brief|contract|correspondence) (about|regarding|for)",
    ])
)

GENERAL_RULES = (
    _keywords(QueryType.GENERAL, [
        "what is", "who is", "when did", "why", "how does", "explain",
        "tell me about", "describe", "summarize", "overview", "status of",
        "update on", "what happened", "can you",
    ])
    + _patterns(QueryType.GENERAL, [
        r"^(what|who|when|where|why|how) (is|are|was|were|did|does)",
        r"tell me (about|more)",
        r"(explain|describe|summarize)",
        r"what('s| is) the (status|update|latest) (on|for)",
        r"can you (help|show|explain|tell)",
    ])
    + _patterns(QueryType.GENERAL, [r"^can you"], weight=0.5)
)

# Capitalised words that make a title-cased phrase a request, not a person
_NOT_NAME_WORDS = (
    r"(?i:cases?|projects?|matters?|clients?|contacts?|invoices?|expenses?|entries|entry|hours|tasks?"
    r"|documents?|deadlines?|show|me|list|all|find|search|open|pending|closed|active|settlement"
    r"|agreement|total|count|help|hello|thanks?)"
)

SEARCH_RULES = (
    # bare "First Last" or "First Middle Last"
    _patterns(QueryType.SEARCH, [
        rf"^(?!.*\b{_NOT_NAME_WORDS}\b)[A-Z][a-zA-Z'\-]+(\s+[A-Z][a-zA-Z'\-\.]+){{1,2}}[?.!]?$",
    ], weight=3.0, case_sensitive=True)
    # bare case number, TYPE-YYYY-NNNNN
    + _patterns(QueryType.SEARCH, [r"^[a-z]{2,4}-\d{4}-\d{3,5}[?.!]?$"], weight=3.0)
    + _patterns(QueryType.SEARCH, [r"\b[a-z]{2,4}-\d{4}-\d{3,5}\b"], weight=1.0)
    + _keywords(QueryType.SEARCH, ["look up", "lookup", "pull up"])
)

RULES: tuple[Rule, ...] = tuple(SQL_RULES + DOCUMENT_RULES + GENERAL_RULES + SEARCH_RULES)
