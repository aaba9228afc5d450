"""
Versioned schema descriptions handed to the LLM as prompt context.

Schema text lives in ``schemas/<version>.md`` next to this module so a new
version can be added and tested without touching generation code.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

SCHEMA_DIR = Path(__file__).parent / "schemas"

POSTGRES_SCHEMA_VERSION = "lois_postgres_v2"
SNOWFLAKE_SCHEMA_VERSION = "snowflake_databridge_v1"


@dataclass(frozen=True)
class SchemaContext:
    """A named, versioned block of schema documentation."""

    version: str
    dialect: str
    text: str

    def render(self) -> str:
        return self.text.strip()


def _dialect_for(version: str) -> str:
    return "snowflake" if version.startswith("snowflake") else "postgresql"


@lru_cache
def load_schema_context(version: str = POSTGRES_SCHEMA_VERSION) -> SchemaContext:
    """
    Load a schema description by version name.

    Raises FileNotFoundError for an unknown version.
    """
    path = SCHEMA_DIR / f"{version}.md"
    if not path.exists():
        raise FileNotFoundError(f"Schema context not found: {path}")
    return SchemaContext(version=version, dialect=_dialect_for(version), text=path.read_text(encoding="utf-8"))


def available_versions() -> list[str]:
    return sorted(p.stem for p in SCHEMA_DIR.glob("*.md"))
