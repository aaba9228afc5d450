import pytest

from conftest import FakeExecutor, FakeFetcher, FakeGenerator, FakeStore
from lois.entities.data_agent import (
    DocumentSearchHandler,
    GeneralHandler,
    LookupHandler,
    SQLHandler,
    derive_search_terms,
    extract_case_numbers,
)
from lois.entities.data_agent.tools import PostgresCaseStore
from lois.entities.errors import DataAccessError, GenerationError
from lois.entities.models import ExecutionResult, GeneratedQuery, QueryContext, QueryType

DOCUMENTS = [
    {
        "title": "Complaint",
        "document_type": "Pleading",
        "date_filed": "2025-02-01",
        "content": "Plaintiff alleges negligence at the intersection.",
        "projects": {"case_number": "CV-2025-00001", "title": "Smith v. Jones"},
    },
]


async def test_scoped_document_search_uses_previous_cases():
    store = FakeStore(documents=DOCUMENTS)
    context = QueryContext(previous_result=[{"case_number": "CV-2025-00001"}])

    result = await DocumentSearchHandler(store).handle("find documents", context)

    assert result.type is QueryType.DOCUMENT_SEARCH
    assert result.error is None
    assert store.called("documents_for_cases") == [(["CV-2025-00001"], 50)]
    assert store.called("search_documents") == []
    assert "CV-2025-00001" in result.sql_query
    assert "Complaint" in result.prompt


async def test_free_text_document_search():
    store = FakeStore(documents=DOCUMENTS)

    result = await DocumentSearchHandler(store).handle("Find documents about negligence")

    assert store.called("search_documents") == [("negligence", 20)]
    assert result.action == 'Searching documents for "negligence"'
    assert result.data == DOCUMENTS


async def test_free_text_without_hits_asks_for_alternatives():
    result = await DocumentSearchHandler(FakeStore()).handle("search for asbestos")

    assert result.data == []
    assert "alternative search terms" in result.prompt


async def test_free_text_without_terms_is_an_error():
    store = FakeStore()

    result = await DocumentSearchHandler(store).handle("find documents")

    assert result.data is None
    assert result.error
    assert store.calls == []


def test_extract_case_numbers():
    rows = [
        {"case_number": "CV-2025-00001"},
        {"projects": {"case_number": "CV-2025-00002"}},
        {"case_number": "CV-2025-00001"},
        {"title": "no case"},
    ]

    assert extract_case_numbers(rows) == ["CV-2025-00001", "CV-2025-00002"]
    assert extract_case_numbers({"case_number": "PI-2024-00042"}) == ["PI-2024-00042"]
    assert extract_case_numbers(None) == []


def test_extract_case_numbers_dedupes_non_string_ids():
    rows = [{"case_number": 1}, {"case_number": 1}, {"projects": {"case_number": "1"}}, {"case_number": 2}]

    assert extract_case_numbers(rows) == ["1", "2"]


@pytest.mark.parametrize("query, terms", [
    ("Find documents about settlement", "settlement"),
    ("search for medical records", "medical records"),
    ("documents mentioning the accident in these cases", "the accident in"),
    ("Search", ""),
])
def test_derive_search_terms(query, terms):
    assert derive_search_terms(query) == terms


async def test_sql_handler_success():
    generator = FakeGenerator(GeneratedQuery(sql="SELECT case_number FROM projects", explanation="Listing cases"))
    executor = FakeExecutor(ExecutionResult(success=True, data=[{"case_number": "CV-2025-00001"}], row_count=1))

    result = await SQLHandler(generator, executor).handle("list cases")

    assert result.type is QueryType.SQL
    assert result.action == "Listing cases"
    assert result.data == [{"case_number": "CV-2025-00001"}]
    assert result.sql_query == "SELECT case_number FROM projects"
    assert "Total rows returned: 1" in result.prompt


async def test_sql_handler_execution_failure():
    executor = FakeExecutor(ExecutionResult(success=False, error="relation \"cases\" does not exist"))

    result = await SQLHandler(FakeGenerator(), executor).handle("list cases")

    assert result.data is None
    assert "does not exist" in result.error


async def test_general_handler_statistics():
    store = FakeStore()

    result = await GeneralHandler(store).handle("What kinds of cases do we have?")

    assert result.type is QueryType.GENERAL
    assert result.data["total_cases"] == 3
    assert "Personal Injury: 2" in result.prompt


async def test_general_handler_reads_documents_for_previous_cases(case_context):
    store = FakeStore(documents=DOCUMENTS)

    result = await GeneralHandler(store).handle("Summarize the documents", case_context)

    assert store.called("documents_with_content") == [(["CV-2025-00001", "CV-2025-00002"], 20)]
    assert store.called("case_statistics") == []
    assert "negligence" in result.prompt


async def test_general_handler_falls_back_to_statistics_without_documents(case_context):
    store = FakeStore(documents=[])

    result = await GeneralHandler(store).handle("Summarize the documents", case_context)

    assert store.called("case_statistics") == [()]
    assert result.data["total_cases"] == 3


async def test_lookup_handler():
    hits = [{"type": "contact", "id": 7, "data": {"first_name": "Harold", "last_name": "McLaughlin"}}]
    store = FakeStore(hits=hits)

    result = await LookupHandler(store).handle("Harold McLaughlin?")

    assert result.type is QueryType.SEARCH
    assert store.called("lookup") == [("Harold McLaughlin", 10)]
    assert result.data == hits
    assert "Rank the matches" in result.prompt


@pytest.mark.parametrize("make_handler", [
    lambda store: DocumentSearchHandler(store),
    lambda store: GeneralHandler(store),
    lambda store: LookupHandler(store),
    lambda store: SQLHandler(FakeGenerator(fail=GenerationError("model unavailable")), FakeExecutor()),
])
@pytest.mark.parametrize("context", [None, QueryContext(previous_result=[{"case_number": "CV-2025-00001"}])])
async def test_handlers_contain_downstream_errors(make_handler, context):
    handler = make_handler(FakeStore(fail=ConnectionError("connection refused")))

    result = await handler.handle("find documents about the contract", context)

    assert result.data is None
    assert isinstance(result.error, str) and result.error


async def test_case_store_statistics():
    fetcher = FakeFetcher({
        "GROUP BY case_type": [{"case_type": "Personal Injury", "count": 2}, {"case_type": None, "count": 1}],
        "GROUP BY status": [{"status": "Open", "count": 3}],
    })

    stats = await PostgresCaseStore(fetcher).case_statistics()

    assert stats == {
        "total_cases": 3,
        "by_type": {"Personal Injury": 2, "Unknown": 1},
        "by_status": {"Open": 3},
    }


async def test_case_store_lookup_merges_cases_and_contacts():
    fetcher = FakeFetcher({
        "FROM projects": [{"id": 1, "case_number": "CV-2025-00001"}],
        "FROM contacts": [{"id": 9, "first_name": "Harold"}],
    })

    hits = await PostgresCaseStore(fetcher).lookup("Harold")

    assert [(h["type"], h["id"]) for h in hits] == [("case", 1), ("contact", 9)]
    assert fetcher.statements[0][1]["pattern"] == "%Harold%"


async def test_case_store_wraps_driver_errors():
    store = PostgresCaseStore(FakeFetcher(fail=OSError("server closed the connection")))

    with pytest.raises(DataAccessError):
        await store.search_documents("negligence")
