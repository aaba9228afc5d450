import json
import uuid

import pytest
from fastapi.testclient import TestClient

from conftest import FakeExecutor, FakeFetcher, FakeLLM, FakeStore, FakeWarehouse, FixedClassifier
from lois.api.dependencies import (
    get_executor,
    get_generator,
    get_narrator,
    get_router,
    get_sessions,
    get_warehouse,
    get_warehouse_service,
)
from lois.api.main import app
from lois.api.util import ChatSessionRepository
from lois.entities.chat_agent import Narrator
from lois.entities.data_agent import SqlGenerator
from lois.entities.errors import ClassificationError
from lois.entities.models import ExecutionResult
from lois.entities.schema_context import SNOWFLAKE_SCHEMA_VERSION, load_schema_context
from lois.entities.warehouse import WarehouseQueryService
from lois.entities.workflow import QueryRouter, build_query_router

HITS = [{"type": "contact", "id": 7, "data": {"first_name": "Harold", "last_name": "McLaughlin"}}]


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def store():
    return FakeStore(hits=HITS, documents=[{"title": "Complaint", "document_type": "Pleading"}])


@pytest.fixture
def wired(store, schema):
    """Local-classifier router and a narrator that always answers the same text."""
    router, _ = build_query_router(FakeLLM(), store, FakeExecutor(), schema, classifier="local")
    narrator = Narrator(FakeLLM(*["Narrated answer."] * 5), system_prompt="sys")
    app.dependency_overrides[get_router] = lambda: router
    app.dependency_overrides[get_narrator] = lambda: narrator
    return router, narrator


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_missing_service_is_503(client):
    response = client.post("/api/classify-query", json={"query": "How many cases?"})

    assert response.status_code == 503


def test_chat_routes_and_narrates(client, wired, store):
    response = client.post("/api/chat", json={"query": "Harold McLaughlin"})

    assert response.status_code == 200
    body = response.json()
    assert body["result"]["type"] == "search"
    assert body["result"]["data"] == HITS
    assert "sqlQuery" in body["result"]
    assert body["display"]["hasTable"] is True
    assert body["display"]["tableData"] == HITS
    assert body["response"] == "Narrated answer."
    assert store.called("lookup") == [("Harold McLaughlin", 10)]


def test_chat_accepts_camel_case_context(client, wired, store):
    response = client.post("/api/chat", json={
        "query": "find documents",
        "context": {"previousQuery": "open cases", "previousResult": [{"case_number": "CV-2025-00001"}]},
        "narrate": False,
    })

    assert response.status_code == 200
    body = response.json()
    assert body["result"]["type"] == "document_search"
    assert body["response"] is None
    assert store.called("documents_for_cases") == [(["CV-2025-00001"], 50)]


def test_chat_rejects_empty_query(client, wired):
    assert client.post("/api/chat", json={"query": ""}).status_code == 422


def test_chat_stream(client, wired, store):
    _, narrator = wired
    narrator.llm.replies = ["x" * 120]

    with client.stream("GET", "/api/chat/stream", params={"query": "Harold McLaughlin"}) as response:
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = [json.loads(line[len("data: "):]) for line in response.iter_lines() if line.startswith("data: ")]

    assert events[0]["type"] == "search"
    chunks = [e["content"] for e in events if "content" in e]
    assert [len(c) for c in chunks] == [50, 50, 20]
    assert events[-1] == {"done": True}


def test_chat_stream_carries_context(client, wired, store):
    payload = {
        "query": "find documents",
        "context": {"previousQuery": "open cases", "previousResult": [{"case_number": "CV-2025-00001"}]},
    }

    with client.stream("POST", "/api/chat/stream", json=payload) as response:
        assert response.status_code == 200
        events = [json.loads(line[len("data: "):]) for line in response.iter_lines() if line.startswith("data: ")]

    assert events[0]["type"] == "document_search"
    assert events[-1] == {"done": True}
    assert store.called("documents_for_cases") == [(["CV-2025-00001"], 50)]


def test_classify_query(client, wired):
    response = client.post("/api/classify-query", json={"query": "How many open Personal Injury cases are there?"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["type"] == "sql"
    assert 0 <= body["confidence"] <= 1
    assert body["suggestedAction"] == "Querying case database..."


def test_classify_query_failure(client):
    router = QueryRouter(FixedClassifier(fail=ClassificationError("bad reply")), *[None] * 4)
    app.dependency_overrides[get_router] = lambda: router

    response = client.post("/api/classify-query", json={"query": "anything"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "bad reply"}


def test_generate_query(client, schema):
    reply = json.dumps({"sql": "SELECT COUNT(*) FROM projects", "explanation": "Counting cases", "estimated_rows": "1"})
    app.dependency_overrides[get_generator] = lambda: SqlGenerator(FakeLLM(reply), schema, instructions="Generate.")

    response = client.post("/api/generate-query", json={"query": "How many cases?"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "sql": "SELECT COUNT(*) FROM projects",
        "explanation": "Counting cases",
        "estimatedRows": "1",
        "displayColumns": [],
    }


def test_generate_query_rejects_mutation(client, schema):
    reply = json.dumps({"sql": "DROP TABLE projects; SELECT 1"})
    app.dependency_overrides[get_generator] = lambda: SqlGenerator(FakeLLM(reply), schema, instructions="Generate.")

    response = client.post("/api/generate-query", json={"query": "drop it"})

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert "DROP" in response.json()["error"]


def test_execute_query(client):
    executor = FakeExecutor(ExecutionResult(success=True, data=[{"n": 1}, {"n": 2}], row_count=2))
    app.dependency_overrides[get_executor] = lambda: executor

    response = client.post("/api/execute-query", json={"sql": "```sql\nSELECT n FROM t\n```"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": [{"n": 1}, {"n": 2}], "rowCount": 2}
    assert executor.executed == ["SELECT n FROM t"]


@pytest.mark.parametrize("sql", ["DELETE FROM projects", "VACUUM projects", "SELECT * FROM t WHERE note = 'insert'"])
def test_execute_query_validation_is_400(client, sql):
    executor = FakeExecutor()
    app.dependency_overrides[get_executor] = lambda: executor

    response = client.post("/api/execute-query", json={"sql": sql})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert executor.executed == []


def test_execute_query_failure_is_500(client):
    executor = FakeExecutor(ExecutionResult(success=False, error="syntax error at or near \"FORM\""))
    app.dependency_overrides[get_executor] = lambda: executor

    response = client.post("/api/execute-query", json={"sql": "SELECT * FORM projects"})

    assert response.status_code == 500
    assert "syntax error" in response.json()["error"]


def test_generate_response(client):
    llm = FakeLLM("Two cases are open.")
    app.dependency_overrides[get_narrator] = lambda: Narrator(llm, system_prompt="sys")

    response = client.post("/api/generate-response", json={"query": "Which cases are open?", "data": [{"case_number": "A"}]})

    assert response.status_code == 200
    assert response.json() == {"success": True, "response": "Two cases are open."}
    assert "Which cases are open?" in llm.calls[0]["prompt"]


def test_generate_response_failure(client):
    app.dependency_overrides[get_narrator] = lambda: Narrator(FakeLLM(RuntimeError("overloaded")), system_prompt="sys")

    response = client.post("/api/generate-response", json={"query": "anything"})

    assert response.status_code == 500


def test_conversational_chat(client):
    llm = FakeLLM("I can help you query cases.")
    app.dependency_overrides[get_narrator] = lambda: Narrator(llm, system_prompt="sys")

    response = client.post("/api/conversational-chat", json={
        "query": "What can you do?",
        "conversationHistory": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
    })

    assert response.status_code == 200
    assert response.json()["response"] == "I can help you query cases."
    assert llm.calls[0]["history"] == [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]
    assert llm.calls[0]["system"] == "sys"


SESSION_ID = "6f1c2d3e-0000-4000-8000-000000000001"


def _sessions(responses=None):
    fetcher = FakeFetcher(responses)
    app.dependency_overrides[get_sessions] = lambda: ChatSessionRepository(fetcher)
    return fetcher


def test_list_sessions(client):
    fetcher = _sessions({"FROM chat_sessions": [{"id": SESSION_ID, "title": "Intake", "message_count": 4}]})

    response = client.get("/api/chat-sessions", params={"limit": 10, "offset": 5, "includeArchived": "true"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "sessions": [{"id": SESSION_ID, "title": "Intake", "message_count": 4}]}
    sql, params = fetcher.statements[0]
    assert "is_archived = false" not in sql
    assert params == (10, 5)


def test_create_session(client):
    fetcher = _sessions({"INSERT INTO chat_sessions": [{"id": SESSION_ID, "title": "Intake"}]})

    response = client.post("/api/chat-sessions", json={"title": "Intake", "messages": [{"role": "user", "content": "hi"}]})

    assert response.status_code == 200
    assert response.json()["session"]["id"] == SESSION_ID
    assert fetcher.statements[0][1][0] == "Intake"


def test_missing_session_is_404(client):
    _sessions()

    assert client.get(f"/api/chat-sessions/{SESSION_ID}").status_code == 404
    assert client.put(f"/api/chat-sessions/{SESSION_ID}", json={"title": "x"}).status_code == 404
    assert client.delete(f"/api/chat-sessions/{SESSION_ID}").status_code == 404


def test_invalid_session_id_is_422(client):
    _sessions()

    assert client.get("/api/chat-sessions/not-a-uuid").status_code == 422


def test_update_session_requires_fields(client):
    _sessions()

    assert client.put(f"/api/chat-sessions/{SESSION_ID}", json={}).status_code == 400


def test_update_session_messages_bumps_activity(client):
    fetcher = _sessions({"UPDATE chat_sessions": [{"id": SESSION_ID, "title": "Intake"}]})

    response = client.put(f"/api/chat-sessions/{SESSION_ID}", json={"messages": [], "isArchived": True})

    assert response.status_code == 200
    sql, params = fetcher.statements[0]
    assert "last_message_at = NOW()" in sql
    assert "is_archived = %s" in sql
    assert "title" not in sql
    assert params[-1] == str(uuid.UUID(SESSION_ID))


def test_delete_session(client):
    _sessions({"DELETE FROM chat_sessions": [{"id": SESSION_ID}]})

    response = client.delete(f"/api/chat-sessions/{SESSION_ID}")

    assert response.json() == {"success": True}


class FakeSnowflake(FakeWarehouse):
    def __init__(self, connected=True, **kwargs):
        super().__init__(**kwargs)
        self.connected = connected

    async def test_connection(self):
        return self.connected

    async def list_tables(self):
        return [{"name": "VW_DATABRIDGE_PROJECT_LIST_DATA_V1", "type": "VIEW"}]

    async def describe(self, table):
        if table != "VW_DATABRIDGE_CONTACTS_V1":
            raise ValueError(f"Invalid table name: {table!r}")
        return [{"name": "ORG_ID", "type": "NUMBER(38,0)", "nullable": False}]


def test_snowflake_test_connection(client):
    app.dependency_overrides[get_warehouse] = lambda: FakeSnowflake()

    body = client.get("/api/snowflake/test").json()

    assert body["connected"] is True
    assert body["tables"][0]["type"] == "VIEW"


def test_snowflake_test_connection_failure(client):
    app.dependency_overrides[get_warehouse] = lambda: FakeSnowflake(connected=False)

    response = client.get("/api/snowflake/test")

    assert response.status_code == 500
    assert response.json()["success"] is False


def test_snowflake_query(client):
    warehouse = FakeSnowflake(rows=[{"ORG_ID": 1}])
    app.dependency_overrides[get_warehouse] = lambda: warehouse

    response = client.post("/api/snowflake/query", json={"query": "SELECT ORG_ID FROM t WHERE ORG_ID = ?", "binds": [1]})

    assert response.json() == {"success": True, "data": [{"ORG_ID": 1}], "rowCount": 1}
    assert warehouse.executed == [("SELECT ORG_ID FROM t WHERE ORG_ID = ?", (1,))]


def test_snowflake_query_rejects_mutation(client):
    warehouse = FakeSnowflake()
    app.dependency_overrides[get_warehouse] = lambda: warehouse

    response = client.post("/api/snowflake/query", json={"query": "TRUNCATE TABLE t"})

    assert response.status_code == 400
    assert warehouse.executed == []


def test_snowflake_nl_query(client):
    warehouse = FakeSnowflake(rows=[{"CNT": 3}])
    llm = FakeLLM("SELECT COUNT(*) AS CNT FROM TEAM_THC2.DATABRIDGE.VW_DATABRIDGE_PROJECT_LIST_DATA_V1", "Three projects.")
    service = WarehouseQueryService(warehouse, llm, load_schema_context(SNOWFLAKE_SCHEMA_VERSION))
    app.dependency_overrides[get_warehouse_service] = lambda: service

    response = client.post("/api/snowflake/nl-query", json={"question": "How many projects?", "orgId": 5})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["rowCount"] == 1
    assert body["summary"] == "Three projects."
    assert body["sql"].endswith("WHERE ORG_ID = 5")


def test_snowflake_nl_query_refusal_is_500(client):
    service = WarehouseQueryService(FakeSnowflake(), FakeLLM("ERROR: Cannot generate query"), load_schema_context(SNOWFLAKE_SCHEMA_VERSION))
    app.dependency_overrides[get_warehouse_service] = lambda: service

    response = client.post("/api/snowflake/nl-query", json={"question": "What is love?"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Cannot generate query"}


def test_snowflake_organizations(client):
    warehouse = FakeSnowflake(rows=[{"ORG_ID": 1, "ORG_NAME": "Acme Law"}])
    service = WarehouseQueryService(warehouse, FakeLLM(), load_schema_context(SNOWFLAKE_SCHEMA_VERSION))
    app.dependency_overrides[get_warehouse_service] = lambda: service

    assert client.get("/api/snowflake/organizations").json() == {
        "success": True,
        "organizations": [{"ORG_ID": 1, "ORG_NAME": "Acme Law"}],
    }


def test_snowflake_explore_tables(client):
    app.dependency_overrides[get_warehouse] = lambda: FakeSnowflake()

    response = client.get("/api/snowflake/explore", params={"type": "tables"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": [{"name": "VW_DATABRIDGE_PROJECT_LIST_DATA_V1", "type": "VIEW"}]}


def test_snowflake_explore_columns(client):
    app.dependency_overrides[get_warehouse] = lambda: FakeSnowflake()

    response = client.get("/api/snowflake/explore", params={"type": "columns", "table": "VW_DATABRIDGE_CONTACTS_V1"})

    assert response.status_code == 200
    assert response.json()["data"] == [{"name": "ORG_ID", "type": "NUMBER(38,0)", "nullable": False}]


@pytest.mark.parametrize("params, error", [
    ({}, "Type parameter is required"),
    ({"type": "databases"}, "Invalid type parameter"),
    ({"type": "columns"}, "Table parameter is required"),
    ({"type": "columns", "table": "X; DROP TABLE Y"}, "Invalid table name: 'X; DROP TABLE Y'"),
])
def test_snowflake_explore_bad_parameters_are_400(client, params, error):
    app.dependency_overrides[get_warehouse] = lambda: FakeSnowflake()

    response = client.get("/api/snowflake/explore", params=params)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": error}


def test_search(client, wired, store):
    response = client.post("/api/search", json={"query": "Harold McLaughlin"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "query": "Harold McLaughlin", "results": HITS, "totalResults": 1}
    assert store.called("lookup") == [("Harold McLaughlin", 10)]


def test_search_without_terms_is_400(client, wired, store):
    response = client.post("/api/search", json={"query": "?"})

    assert response.status_code == 400
    assert store.called("lookup") == []


def test_search_store_failure_is_500(client, schema):
    router, _ = build_query_router(FakeLLM(), FakeStore(fail=RuntimeError("pool exhausted")), FakeExecutor(), schema, classifier="local")
    app.dependency_overrides[get_router] = lambda: router

    response = client.post("/api/search", json={"query": "CV-2025-00001"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "pool exhausted"}
