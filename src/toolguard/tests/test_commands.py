"""Tests for record commands and the command queue."""

from __future__ import annotations

import pytest

from toolguard.foundation.core import ToolContext
from toolguard.foundation.errors import CommandStateError, NotFoundError
from toolguard.runtime.commands import (
    Command,
    CommandFactory,
    CommandQueue,
    CreateRecordCommand,
    DeleteRecordCommand,
    GetRecordCommand,
    InMemoryRecordStore,
    UpdateRecordCommand,
)


@pytest.fixture
def ctx(store: InMemoryRecordStore) -> ToolContext:
    return ToolContext(tool_name="test", services={"store": store})


def _create(content: str, ctx: ToolContext) -> CreateRecordCommand:
    cmd = CommandFactory.create("create_record", {"content": content}, ctx)
    assert isinstance(cmd, CreateRecordCommand)
    return cmd


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_then_undo(store: InMemoryRecordStore, ctx: ToolContext) -> None:
    cmd = _create("buy milk", ctx)
    result = await cmd.execute()

    assert result["status"] == "created"
    assert (await store.get(result["record_id"])).content == "buy milk"
    assert cmd.can_undo

    await cmd.undo()
    assert await store.get(result["record_id"]) is None
    assert cmd.undone and not cmd.can_undo


@pytest.mark.asyncio
async def test_execute_runs_at_most_once(ctx: ToolContext) -> None:
    cmd = _create("once", ctx)
    await cmd.execute()
    with pytest.raises(CommandStateError):
        await cmd.execute()


@pytest.mark.asyncio
async def test_failed_execute_still_counts(ctx: ToolContext) -> None:
    cmd = CommandFactory.create("get_record", {"record_id": "rec_missing"}, ctx)
    with pytest.raises(NotFoundError):
        await cmd.execute()
    assert not cmd.executed
    with pytest.raises(CommandStateError):
        await cmd.execute()


@pytest.mark.asyncio
async def test_undo_rules(ctx: ToolContext) -> None:
    cmd = _create("x", ctx)
    with pytest.raises(CommandStateError, match="has not been executed"):
        await cmd.undo()

    await cmd.execute()
    await cmd.undo()
    with pytest.raises(CommandStateError, match="already been undone"):
        await cmd.undo()


@pytest.mark.asyncio
async def test_read_commands_cannot_be_undone(store: InMemoryRecordStore, ctx: ToolContext) -> None:
    record = await store.create({"content": "read me"})
    cmd = GetRecordCommand({"record_id": record.id}, store)

    assert (await cmd.execute())["record"]["content"] == "read me"
    assert not cmd.can_undo
    with pytest.raises(CommandStateError, match="cannot be undone"):
        await cmd.undo()


@pytest.mark.asyncio
async def test_update_undo_restores_previous_fields(store: InMemoryRecordStore) -> None:
    record = await store.create({"content": "draft", "tags": ["a"], "type": "note"})
    cmd = UpdateRecordCommand({"record_id": record.id, "content": "final", "tags": None}, store)

    result = await cmd.execute()
    assert result["updated_fields"] == ["content"]
    assert (await store.get(record.id)).content == "final"

    await cmd.undo()
    restored = await store.get(record.id)
    assert (restored.content, restored.tags) == ("draft", ["a"])


@pytest.mark.asyncio
async def test_update_missing_record(store: InMemoryRecordStore) -> None:
    with pytest.raises(NotFoundError):
        await UpdateRecordCommand({"record_id": "rec_nope", "content": "x"}, store).execute()


@pytest.mark.asyncio
async def test_delete_undo_recreates_with_same_id(store: InMemoryRecordStore) -> None:
    record = await store.create({"content": "keep me", "metadata": {"source": "test"}})
    cmd = DeleteRecordCommand({"record_id": record.id}, store)

    await cmd.execute()
    assert await store.get(record.id) is None

    await cmd.undo()
    restored = await store.get(record.id)
    assert restored is not None
    assert restored.content == "keep me"
    assert restored.metadata == {"source": "test"}


def test_factory_binds_store_and_request(store: InMemoryRecordStore, ctx: ToolContext) -> None:
    cmd = CommandFactory.create("search_records", {"query": "x"}, ctx)
    assert cmd.store is store
    assert cmd.request_id == ctx.request_id
    assert cmd.metadata()["name"] == "search_records"
    assert set(CommandFactory.names()) >= {"create_record", "delete_record", "get_stats"}

    with pytest.raises(ValueError, match="Unknown command"):
        CommandFactory.create("drop_table", {}, ctx)


@pytest.mark.asyncio
async def test_registered_command_is_built_by_name(ctx: ToolContext, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(CommandFactory, "_commands", dict(CommandFactory._commands))

    @CommandFactory.register
    class CountRecordsCommand(Command):
        name = "count_records"

        async def _execute(self) -> int:
            return len(await self.store.search(limit=100))

    await _create("one", ctx).execute()
    cmd = CommandFactory.create("count_records", {}, ctx)

    assert isinstance(cmd, CountRecordsCommand)
    assert "count_records" in CommandFactory.names()
    assert await cmd.execute() == 1
    assert not cmd.can_undo


# ─────────────────────────────────────────────────────────────────────────────
# Queue
# ─────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_queue_runs_in_submission_order(queue: CommandQueue, ctx: ToolContext) -> None:
    for content in ("a", "b", "c"):
        queue.enqueue(_create(content, ctx))
    await queue.join()

    assert [r.command.params["content"] for r in queue.history()] == ["a", "b", "c"]
    assert all(r.succeeded for r in queue.history())
    assert not queue.processing


@pytest.mark.asyncio
async def test_queue_continues_after_failure(queue: CommandQueue, store: InMemoryRecordStore, ctx: ToolContext) -> None:
    queue.enqueue(CommandFactory.create("delete_record", {"record_id": "rec_missing"}, ctx))
    queue.enqueue(_create("after", ctx))
    await queue.join()

    failed, ok = queue.history()
    assert failed.status == "failed" and isinstance(failed.error, NotFoundError)
    assert ok.succeeded
    assert len(store) == 1
    assert queue.status() == {
        "pending": 0, "processing": False, "history_size": 2, "max_history": 100, "failed": 1,
    }
    assert failed.to_dict()["error"] == "Record not found: rec_missing"


@pytest.mark.asyncio
async def test_history_is_bounded(ctx: ToolContext) -> None:
    queue = CommandQueue(max_history=2)
    for content in ("a", "b", "c"):
        queue.enqueue(_create(content, ctx))
    await queue.join()

    assert [r.command.params["content"] for r in queue.history()] == ["b", "c"]


def test_history_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        CommandQueue(max_history=0)


@pytest.mark.asyncio
async def test_submit_returns_result_or_raises(queue: CommandQueue, ctx: ToolContext) -> None:
    result = await queue.submit(_create("via submit", ctx))
    assert result["status"] == "created"

    with pytest.raises(NotFoundError):
        await queue.submit(CommandFactory.create("get_record", {"record_id": "rec_missing"}, ctx))


@pytest.mark.asyncio
async def test_undo_last_walks_back_through_history(
    queue: CommandQueue, store: InMemoryRecordStore, ctx: ToolContext,
) -> None:
    first, second = _create("first", ctx), _create("second", ctx)
    queue.enqueue(first)
    queue.enqueue(second)
    queue.enqueue(CommandFactory.create("get_stats", {}, ctx))
    await queue.join()

    assert await queue.undo_last() is second
    assert await queue.undo_last() is first
    assert len(store) == 0
    with pytest.raises(CommandStateError, match="No undoable commands found"):
        await queue.undo_last()


@pytest.mark.asyncio
async def test_undo_last_skips_failed_commands(queue: CommandQueue, ctx: ToolContext) -> None:
    created = _create("kept", ctx)
    queue.enqueue(created)
    queue.enqueue(CommandFactory.create("delete_record", {"record_id": "rec_missing"}, ctx))
    await queue.join()

    assert await queue.undo_last() is created


@pytest.mark.asyncio
async def test_clear(queue: CommandQueue, ctx: ToolContext) -> None:
    queue.enqueue(_create("a", ctx))
    await queue.join()
    queue.clear()

    assert queue.history() == []
    assert queue.status()["history_size"] == 0
