"""
FastAPI server for the LOIS legal query assistant.

This module handles application setup, lifespan management, and middleware configuration.
Route handlers are organized in the routers/ package.

A chat query runs through the query router:
- The classifier picks one of four intents (search, sql, document_search, general)
- The matching handler reads from the case database
- The narrator renders the result for the user
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lois.api.auth import SupabaseAuthMiddleware
from lois.api.routers import chat_router, query_router, sessions_router, snowflake_router
from lois.api.util import ChatSessionRepository
from lois.entities.chat_agent import Narrator
from lois.entities.data_agent.tools import PostgresCaseStore, SqlExecutor
from lois.entities.database import Database
from lois.entities.llm import ChatCompletionClient
from lois.entities.schema_context import SNOWFLAKE_SCHEMA_VERSION, load_schema_context
from lois.entities.warehouse import SnowflakeWarehouse, WarehouseQueryService
from lois.entities.workflow import build_query_router
from lois.settings import (
    get_auth_settings,
    get_database_settings,
    get_llm_settings,
    get_router_settings,
    get_snowflake_settings,
)


load_dotenv()

# Configure logging - use force=True to prevent duplicate handlers
logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, force=True)

# Reduce noise from HTTP clients and database drivers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)
logging.getLogger("psycopg").setLevel(logging.WARNING)
logging.getLogger("snowflake.connector").setLevel(logging.WARNING)

auth_settings = get_auth_settings()

# Check if Supabase authentication is configured
AUTH_ENABLED = bool(auth_settings.SUPABASE_JWT_SECRET)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """
    Application lifespan handler.

    Builds the LLM client, the database pool, the query router and the
    warehouse service on startup and closes them on shutdown. Services whose
    configuration is missing are left unset; their routes answer 503.
    """
    llm_settings = get_llm_settings()
    db_settings = get_database_settings()
    router_settings = get_router_settings()
    snowflake_settings = get_snowflake_settings()

    llm = None
    if llm_settings.LLM_API_KEY:
        llm = ChatCompletionClient(
            api_key=llm_settings.LLM_API_KEY,
            base_url=llm_settings.LLM_BASE_URL,
            model=llm_settings.LLM_MODEL,
            timeout=llm_settings.LLM_TIMEOUT_SECONDS,
        )
        application.state.narrator = Narrator(llm)
    else:
        logger.warning("LLM_API_KEY is not set; classification, generation and narration are disabled")

    database = None
    if db_settings.SUPABASE_DB_URL:
        database = Database(
            db_settings.SUPABASE_DB_URL,
            min_size=db_settings.DB_POOL_MIN_SIZE,
            max_size=db_settings.DB_POOL_MAX_SIZE,
        )
        await database.open()
        application.state.database = database
        application.state.sessions = ChatSessionRepository(database)
        application.state.sql_executor = SqlExecutor(database, db_settings.DB_STATEMENT_TIMEOUT_MS)
    else:
        logger.warning("SUPABASE_DB_URL is not set; case database routes are disabled")

    if llm is not None and database is not None:
        router, generator = build_query_router(
            llm,
            PostgresCaseStore(database),
            application.state.sql_executor,
            load_schema_context(router_settings.LOIS_SCHEMA_VERSION),
            classifier=router_settings.LOIS_CLASSIFIER,
        )
        application.state.query_router = router
        application.state.sql_generator = generator
        logger.info("LOIS query router initialized (classifier=%s)", router_settings.LOIS_CLASSIFIER)

    if snowflake_settings.configured:
        warehouse = SnowflakeWarehouse(snowflake_settings)
        application.state.warehouse = warehouse
        if llm is not None:
            application.state.warehouse_service = WarehouseQueryService(
                warehouse,
                llm,
                load_schema_context(SNOWFLAKE_SCHEMA_VERSION),
                qualifier=f"{warehouse.database}.{warehouse.schema}",
            )
        logger.info("Snowflake warehouse configured for %s.%s", warehouse.database, warehouse.schema)
    else:
        logger.info("Snowflake is not configured; /api/snowflake routes are disabled")

    # Log authentication status
    if AUTH_ENABLED:
        logger.info("Supabase authentication is ENABLED")
    else:
        logger.warning("=" * 60)
        logger.warning("WARNING: Supabase authentication is NOT configured!")
        logger.warning("The API will respond to ANONYMOUS connections.")
        logger.warning("Set SUPABASE_JWT_SECRET to enable auth.")
        logger.warning("=" * 60)

    yield

    # Shutdown: Cleanup
    if database is not None:
        await database.close()
    if llm is not None:
        await llm.close()
    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(title="LOIS Query Service", lifespan=lifespan)

# Add Supabase authentication middleware
if AUTH_ENABLED:
    app.add_middleware(SupabaseAuthMiddleware, settings=auth_settings)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(chat_router)
app.include_router(query_router)
app.include_router(sessions_router)
app.include_router(snowflake_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    router_ready = getattr(app.state, "query_router", None) is not None
    warehouse_ready = getattr(app.state, "warehouse", None) is not None
    return {"status": "healthy", "router_ready": router_ready, "warehouse_ready": warehouse_ready}


if __name__ == "__main__":
    uvicorn.run("lois.api.main:app", host="0.0.0.0", port=8000, reload=True)
