from conftest import FakeLLM
from lois.entities.chat_agent import Narrator, build_narration_prompt, format_result_for_display, render_table_fallback
from lois.entities.chat_agent.narrator import CONVERSE_MAX_TOKENS, NARRATE_MAX_TOKENS
from lois.entities.models import QueryResult, QueryType

ROWS = [{"case_number": f"CV-2025-{i:05d}", "status": "Open"} for i in range(1, 13)]


def _result(**kwargs):
    values = {"type": QueryType.SQL, "action": "Listing open cases", "data": ROWS, "prompt": "Narrate these rows"}
    values.update(kwargs)
    return QueryResult(**values)


def test_error_display_has_no_table():
    display = format_result_for_display(QueryResult.failure(QueryType.SQL, "Database query encountered an error", "boom"))

    assert display.message == "I encountered an error: boom"
    assert not display.has_table
    assert display.table_data is None
    assert display.error == "boom"


def test_display_without_data_uses_prompt():
    display = format_result_for_display(_result(data=None))

    assert display.message == "Narrate these rows"
    assert not display.has_table


def test_single_record_is_wrapped():
    display = format_result_for_display(_result(data={"total_cases": 3}))

    assert display.has_table
    assert display.table_data == [{"total_cases": 3}]


async def test_narrate_sends_prompt_alone():
    llm = FakeLLM("There are 12 open cases.")

    text = await Narrator(llm, system_prompt="sys").narrate(_result())

    assert text == "There are 12 open cases."
    assert llm.calls == [{"prompt": "Narrate these rows", "system": None, "history": None, "max_tokens": NARRATE_MAX_TOKENS}]


async def test_narrate_error_skips_llm():
    llm = FakeLLM()

    text = await Narrator(llm, system_prompt="sys").narrate(QueryResult.failure(QueryType.GENERAL, "x", "db down"))

    assert text == "I encountered an error: db down"
    assert llm.calls == []


async def test_narrate_falls_back_to_table():
    text = await Narrator(FakeLLM(RuntimeError("rate limited")), system_prompt="sys").narrate(
        _result(sql_query="SELECT case_number, status FROM projects")
    )

    assert "| case_number | status |" in text
    assert "CV-2025-00010" in text
    assert "CV-2025-00011" not in text
    assert "SELECT case_number, status FROM projects" in text


async def test_narrate_empty_reply_falls_back_to_table():
    text = await Narrator(FakeLLM(""), system_prompt="sys").narrate(_result())

    assert text == render_table_fallback(_result())


def test_narration_prompt_samples_ten_rows():
    prompt = build_narration_prompt("Which cases are open?", ROWS)

    assert "12 total rows" in prompt
    assert "first 10 rows" in prompt
    assert "case_number, status" in prompt
    assert "CV-2025-00011" not in prompt


def test_narration_prompt_without_data():
    assert "No structured data available." in build_narration_prompt("hi", [])


async def test_converse_uses_system_prompt_and_history():
    llm = FakeLLM("Hello! I can help with cases.")
    history = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]

    text = await Narrator(llm).converse("What can you do?", history)

    assert text == "Hello! I can help with cases."
    assert "LOIS" in llm.calls[0]["system"]
    assert llm.calls[0]["history"] == history
    assert llm.calls[0]["max_tokens"] == CONVERSE_MAX_TOKENS
