"""
Runtime configuration loaded from environment variables (and ``.env``).

Each concern gets its own settings class so tests can build one in isolation.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class LLMSettings(BaseSettings):
    """Chat-completion endpoint used for classification, SQL generation and narration."""

    # Anthropic exposes an OpenAI-compatible endpoint; any compatible gateway works.
    LLM_API_KEY: str = ""
    LLM_BASE_URL: str = "https://api.anthropic.com/v1/"
    LLM_MODEL: str = "claude-sonnet-4-5"
    LLM_TIMEOUT_SECONDS: float = 60.0

    class Config:
        env_file = ".env"
        extra = "ignore"


class DatabaseSettings(BaseSettings):
    """Supabase Postgres connection."""

    SUPABASE_DB_URL: str = ""
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 5
    # Applied per read-only statement, in milliseconds
    DB_STATEMENT_TIMEOUT_MS: int = 30000

    class Config:
        env_file = ".env"
        extra = "ignore"


class SnowflakeSettings(BaseSettings):
    """Snowflake warehouse connection (password or key-pair JWT)."""

    SNOWFLAKE_ACCOUNT: str = ""
    SNOWFLAKE_USER: str = ""
    SNOWFLAKE_PASSWORD: str = ""
    SNOWFLAKE_PRIVATE_KEY_PATH: str = ""
    SNOWFLAKE_PRIVATE_KEY_PASSPHRASE: str = ""
    SNOWFLAKE_DATABASE: str = "TEAM_THC2"
    SNOWFLAKE_SCHEMA: str = "DATABRIDGE"
    SNOWFLAKE_WAREHOUSE: str = ""
    SNOWFLAKE_ROLE: str = ""

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def configured(self) -> bool:
        return bool(self.SNOWFLAKE_ACCOUNT and self.SNOWFLAKE_USER
                    and (self.SNOWFLAKE_PASSWORD or self.SNOWFLAKE_PRIVATE_KEY_PATH))


class RouterSettings(BaseSettings):
    """Query routing behaviour."""

    # "local" (keyword heuristics) or "llm" (remote classifier)
    LOIS_CLASSIFIER: str = "llm"
    LOIS_SCHEMA_VERSION: str = "lois_postgres_v2"

    class Config:
        env_file = ".env"
        extra = "ignore"


class AuthSettings(BaseSettings):
    """Supabase JWT validation. Leave the secret empty to run anonymously."""

    SUPABASE_JWT_SECRET: str = ""
    SUPABASE_JWT_AUDIENCE: str = "authenticated"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_llm_settings() -> LLMSettings:
    return LLMSettings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    return DatabaseSettings()


@lru_cache
def get_snowflake_settings() -> SnowflakeSettings:
    return SnowflakeSettings()


@lru_cache
def get_router_settings() -> RouterSettings:
    return RouterSettings()


@lru_cache
def get_auth_settings() -> AuthSettings:
    return AuthSettings()
