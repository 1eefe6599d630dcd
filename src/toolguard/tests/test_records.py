"""End-to-end tests for the record tools through the full pipeline."""

from __future__ import annotations

import pytest

from toolguard.foundation.errors import ConfigurationError, NotFoundError, ValidationError
from toolguard.foundation.testing import FakeClock
from toolguard.runtime.commands import CommandQueue, InMemoryRecordStore
from toolguard.runtime.pipeline import PipelineConfig, ToolFactory
from toolguard.tools import REQUIRED_TOOLS, register_record_tools


@pytest.fixture
def tools(factory: ToolFactory) -> ToolFactory:
    register_record_tools(factory)
    return factory


def test_all_record_tools_registered(tools: ToolFactory) -> None:
    assert sorted(tools.names()) == sorted(REQUIRED_TOOLS)
    assert {e["name"]: e["mutating"] for e in tools.catalog()} == {
        "create_record": True, "get_record": False, "update_record": True,
        "delete_record": True, "search_records": False, "get_stats": False,
    }


def test_missing_record_tools_fail_startup(tools: ToolFactory) -> None:
    tools.unregister("get_stats")
    with pytest.raises(ConfigurationError, match="get_stats"):
        tools.require(REQUIRED_TOOLS)


@pytest.mark.asyncio
async def test_create_get_update_delete(tools: ToolFactory, store: InMemoryRecordStore) -> None:
    created = await tools.call("create_record", {"content": "  water plants ", "tags": ["home"]})
    rid = created["record_id"]
    assert created["record"]["content"] == "water plants"

    got = await tools.call("get_record", {"record_id": rid})
    assert got["record"]["tags"] == ["home"]

    updated = await tools.call("update_record", {"record_id": rid, "content": "water the plants"})
    assert updated["updated_fields"] == ["content"]
    assert (await store.get(rid)).content == "water the plants"

    assert (await tools.call("delete_record", {"record_id": rid}))["status"] == "deleted"
    with pytest.raises(NotFoundError):
        await tools.call("get_record", {"record_id": rid})


@pytest.mark.asyncio
async def test_mutations_go_through_the_queue(tools: ToolFactory, queue: CommandQueue) -> None:
    await tools.call("create_record", {"content": "a"})
    await tools.call("search_records", {"query": "a"})

    assert [r.command.name for r in queue.history()] == ["create_record"]


@pytest.mark.asyncio
async def test_undo_last_reverts_delete(tools: ToolFactory, queue: CommandQueue, store: InMemoryRecordStore) -> None:
    rid = (await tools.call("create_record", {"content": "precious"}))["record_id"]
    await tools.call("delete_record", {"record_id": rid})

    undone = await queue.undo_last()

    assert undone.name == "delete_record"
    assert (await tools.call("get_record", {"record_id": rid}))["record"]["content"] == "precious"


@pytest.mark.asyncio
async def test_missing_record_not_retried(tools: ToolFactory, clock: FakeClock, queue: CommandQueue) -> None:
    with pytest.raises(NotFoundError):
        await tools.call("delete_record", {"record_id": "rec_missing"})
    assert clock.sleeps == []
    assert len(queue.failures()) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("tool", "params"),
    [
        ("create_record", {"content": "   "}),
        ("create_record", {"content": "x", "colour": "red"}),
        ("get_record", {}),
        ("search_records", {"limit": 0}),
        ("update_record", {"record_id": "r1", "content": ""}),
    ],
)
async def test_invalid_params_rejected_before_store(
    tools: ToolFactory, store: InMemoryRecordStore, queue: CommandQueue, tool: str, params: dict,
) -> None:
    with pytest.raises(ValidationError) as info:
        await tools.call(tool, params)
    assert info.value.error.message.startswith(f"Invalid parameters for {tool}")
    assert len(store) == 0
    assert queue.history() == []


@pytest.mark.asyncio
async def test_search_and_stats(tools: ToolFactory) -> None:
    await tools.call("create_record", {"content": "Buy milk", "tags": ["shopping"]})
    await tools.call("create_record", {"content": "Buy bread", "tags": ["shopping"], "type": "task"})
    await tools.call("create_record", {"content": "Call mom"})

    found = await tools.call("search_records", {"query": "buy"})
    assert found["total"] == 2
    tasks = await tools.call("search_records", {"query": "buy", "type": "task"})
    assert [r["content"] for r in tasks["records"]] == ["Buy bread"]
    limited = await tools.call("search_records", {"limit": 1})
    assert limited["total"] == 1

    stats = await tools.call("get_stats", {})
    assert stats == {"total_records": 3, "by_type": {"note": 2, "task": 1}, "tags": {"shopping": 2}}


@pytest.mark.asyncio
async def test_record_tools_without_queue(clock: FakeClock) -> None:
    store = InMemoryRecordStore()
    factory = ToolFactory(services={"store": store}, config=PipelineConfig(), sleep=clock.sleep, clock=clock)
    register_record_tools(factory)

    await factory.call("create_record", {"content": "direct"})
    assert len(store) == 1
