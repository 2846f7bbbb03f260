"""Tests for the context-aware completion loop."""

from unittest.mock import AsyncMock

import pytest

from llmpr.completion import (
    ContextAwareCompletion,
    ContextRequest,
    ConversationState,
    ResolvedContext,
    build_follow_up_prompt,
    find_context_requests,
    generate_with_context,
    resolve_context_requests,
)
from llmpr.exceptions import TransportError


def test_find_context_requests_keeps_duplicates_in_order():
    answer = "Use this:\n[NEED_CONTEXT:a.txt]\n[NEED_CONTEXT: b/c.py ]\n[NEED_CONTEXT:a.txt]"
    assert find_context_requests(answer) == [
        ContextRequest("a.txt"),
        ContextRequest("b/c.py"),
        ContextRequest("a.txt"),
    ]


def test_find_context_requests_ignores_empty_and_unterminated_markers():
    assert find_context_requests("[NEED_CONTEXT:] and [NEED_CONTEXT:a.txt") == []


@pytest.mark.asyncio
async def test_resolve_reads_relative_and_absolute_paths(tmp_path):
    (tmp_path / "a.txt").write_text("hello", encoding="utf-8")
    other = tmp_path / "other.txt"
    other.write_text("absolute", encoding="utf-8")
    resolved = await resolve_context_requests(
        [ContextRequest("a.txt"), ContextRequest(str(other))], tmp_path
    )
    assert [r.content for r in resolved] == ["hello", "absolute"]
    assert all(r.error is None for r in resolved)


@pytest.mark.asyncio
async def test_resolve_reports_missing_file(tmp_path):
    (resolved,) = await resolve_context_requests([ContextRequest("nope/missing.py")], tmp_path)
    assert resolved.content is None
    assert resolved.render() == "Error reading nope/missing.py: File not found: nope/missing.py"


@pytest.mark.asyncio
async def test_resolve_reports_unreadable_path(tmp_path):
    (tmp_path / "adir").mkdir()
    (resolved,) = await resolve_context_requests([ContextRequest("adir")], tmp_path)
    assert resolved.error
    assert resolved.render().startswith("Error reading adir: ")


def test_follow_up_prompt_contains_blocks_and_final_warning():
    prompt = build_follow_up_prompt(
        [ResolvedContext("a.txt", content="hello"), ResolvedContext("b.txt", error="File not found: b.txt")],
        task_name="code review",
    )
    assert "File content for a.txt:\n```\nhello\n```" in prompt
    assert "Error reading b.txt: File not found: b.txt" in prompt
    assert "Do NOT request more context with [NEED_CONTEXT:filepath]" in prompt
    assert "final opportunity to generate the code review" in prompt


def test_conversation_state_refuses_rounds_past_budget():
    state = ConversationState(max_rounds=1)
    state.start_round([{"role": "system", "content": "x"}])
    assert state.exhausted
    with pytest.raises(RuntimeError):
        state.start_round([])


@pytest.mark.asyncio
async def test_single_round_when_no_markers(scripted_client, tmp_path):
    client = scripted_client(["```\nSummary: added line\n```"])
    result = await ContextAwareCompletion(client, cwd=tmp_path).run("PROMPT")
    assert result == "Summary: added line"
    assert client.calls == [[{"role": "system", "content": "PROMPT"}]]


@pytest.mark.asyncio
async def test_duplicate_markers_are_each_resolved(scripted_client, tmp_path):
    (tmp_path / "a.txt").write_text("hello", encoding="utf-8")
    first = "Use this:\n[NEED_CONTEXT:a.txt]\n[NEED_CONTEXT:a.txt]"
    client = scripted_client([first, "Final answer"])
    result = await ContextAwareCompletion(client, cwd=tmp_path).run("PROMPT")

    assert result == "Final answer"
    assert len(client.calls) == 2
    system, assistant, user = client.calls[1]
    assert system == {"role": "system", "content": "PROMPT"}
    assert assistant == {"role": "assistant", "content": first}
    assert user["role"] == "user"
    assert user["content"].count("File content for a.txt:\n```\nhello\n```") == 2


@pytest.mark.asyncio
async def test_missing_file_does_not_abort_loop(scripted_client, tmp_path):
    client = scripted_client(["[NEED_CONTEXT:ghost.py]", "Done"])
    result = await ContextAwareCompletion(client, cwd=tmp_path).run("PROMPT")
    assert result == "Done"
    follow_up = client.calls[1][2]["content"]
    assert "Error reading ghost.py: File not found: ghost.py" in follow_up


@pytest.mark.asyncio
async def test_each_round_only_carries_latest_exchange(scripted_client, tmp_path):
    (tmp_path / "a.txt").write_text("A", encoding="utf-8")
    (tmp_path / "b.txt").write_text("B", encoding="utf-8")
    client = scripted_client(["[NEED_CONTEXT:a.txt]", "[NEED_CONTEXT:b.txt]", "Done"])
    result = await ContextAwareCompletion(client, cwd=tmp_path).run("PROMPT")

    assert result == "Done"
    third = client.calls[2]
    assert [m["role"] for m in third] == ["system", "assistant", "user"]
    assert third[1]["content"] == "[NEED_CONTEXT:b.txt]"
    assert "File content for b.txt" in third[2]["content"]
    assert "File content for a.txt" not in third[2]["content"]


@pytest.mark.asyncio
async def test_round_budget_caps_requests_and_strips_leftover_markers(scripted_client, tmp_path):
    (tmp_path / "a.txt").write_text("A", encoding="utf-8")
    stubborn = "Still need [NEED_CONTEXT:a.txt] [NEED_CONTEXT:b.txt] [NEED_CONTEXT:c.txt]"
    client = scripted_client([stubborn] * 5)
    loop = ContextAwareCompletion(client, cwd=tmp_path, max_rounds=3)
    result = await loop.run("PROMPT")

    assert len(client.calls) == 3
    assert loop.state.round == 3
    assert "NEED_CONTEXT" not in result
    assert result == "Still need   "


@pytest.mark.asyncio
async def test_single_round_budget_never_follows_up(scripted_client, tmp_path):
    client = scripted_client(["[NEED_CONTEXT:a.txt] text"])
    result = await generate_with_context(client, "PROMPT", cwd=tmp_path, max_rounds=1)
    assert len(client.calls) == 1
    assert result == " text"


@pytest.mark.asyncio
async def test_answers_are_trimmed(scripted_client, tmp_path):
    client = scripted_client(["\n\n  Summary  \n"])
    assert await ContextAwareCompletion(client, cwd=tmp_path).run("PROMPT") == "Summary"


@pytest.mark.asyncio
async def test_transport_error_in_later_round_propagates(tmp_path):
    client = AsyncMock()
    client.complete.side_effect = ["[NEED_CONTEXT:a.txt]", TransportError("OpenAI API Error: boom")]
    with pytest.raises(TransportError, match="OpenAI API Error"):
        await ContextAwareCompletion(client, cwd=tmp_path).run("PROMPT")
    assert client.complete.await_count == 2


def test_max_rounds_must_be_positive(scripted_client):
    with pytest.raises(ValueError):
        ContextAwareCompletion(scripted_client([]), max_rounds=0)


@pytest.mark.asyncio
async def test_resolve_reports_overlong_file_name(tmp_path):
    name = "x" * 300 + ".py"
    (resolved,) = await resolve_context_requests([ContextRequest(name)], tmp_path)
    assert resolved.content is None
    assert resolved.error
    assert resolved.render().startswith(f"Error reading {name}: ")


@pytest.mark.asyncio
async def test_resolve_reports_nul_byte_in_path(tmp_path):
    (resolved,) = await resolve_context_requests([ContextRequest("a\x00b.py")], tmp_path)
    assert resolved.content is None
    assert resolved.error


@pytest.mark.asyncio
async def test_overlong_requested_path_does_not_abort_loop(scripted_client, tmp_path):
    name = "y" * 300
    client = scripted_client([f"[NEED_CONTEXT:{name}]", "Done"])
    result = await ContextAwareCompletion(client, cwd=tmp_path).run("PROMPT")
    assert result == "Done"
    assert f"Error reading {name}: " in client.calls[1][2]["content"]


@pytest.mark.asyncio
async def test_each_run_gets_a_fresh_round_budget(scripted_client, tmp_path):
    client = scripted_client(["[NEED_CONTEXT:a.txt]", "First", "Second"])
    loop = ContextAwareCompletion(client, cwd=tmp_path, max_rounds=2)
    assert await loop.run("PROMPT") == "First"
    assert loop.state.round == 2
    assert await loop.run("PROMPT") == "Second"
    assert loop.state.round == 1
