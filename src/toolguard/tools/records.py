"""Record tools: create, read, update, delete, search and stats over a RecordStore.

Each handler turns its validated parameters into a command. Mutating commands
go through the shared CommandQueue when one is provided as the
`"command_queue"` service, which serializes them and makes them undoable with
`queue.undo_last()`. Without a queue commands execute directly.

    >>> factory = ToolFactory(services={"store": InMemoryRecordStore(), "command_queue": CommandQueue()})
    >>> register_record_tools(factory)
    >>> await factory.call("create_record", {"content": "remember this"})
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from toolguard.foundation.core import ToolContext, ToolDefinition
from toolguard.runtime.commands import CommandFactory, CommandQueue

if TYPE_CHECKING:
    from toolguard.runtime.pipeline import ToolFactory


class _Params(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class CreateRecordParams(_Params):
    content: Annotated[str, Field(min_length=1, max_length=10_000)]
    type: str = "note"
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class RecordIdParams(_Params):
    record_id: Annotated[str, Field(min_length=1)]


class UpdateRecordParams(RecordIdParams):
    content: Annotated[str, Field(min_length=1, max_length=10_000)] | None = None
    type: str | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


class SearchRecordsParams(_Params):
    query: str | None = None
    type: str | None = None
    tags: list[str] = Field(default_factory=list)
    limit: Annotated[int, Field(ge=1, le=100)] = 10


class StatsParams(_Params):
    pass


async def run_command(tool_name: str, params: BaseModel, ctx: ToolContext) -> Any:
    """Build the named command and run it, through the command queue when mutating."""
    command = CommandFactory.create(tool_name, params.model_dump(exclude_none=True), ctx)
    queue = ctx.services.get("command_queue")
    if command.reversible and isinstance(queue, CommandQueue):
        return await queue.submit(command)
    return await command.execute()


def _handler(tool_name: str) -> Callable[[BaseModel, ToolContext], Awaitable[Any]]:
    async def handle(params: BaseModel, ctx: ToolContext) -> Any:
        return await run_command(tool_name, params, ctx)

    handle.__name__ = tool_name
    return handle


def record_tools() -> list[ToolDefinition]:
    """Definitions of every record tool."""
    specs: list[tuple[str, str, type[BaseModel], bool, tuple[str, ...]]] = [
        ("create_record", "Create a record with content, type, tags and metadata", CreateRecordParams, True, ("write",)),
        ("get_record", "Fetch one record by id", RecordIdParams, False, ("read",)),
        ("update_record", "Update content, type, tags or metadata of a record", UpdateRecordParams, True, ("write",)),
        ("delete_record", "Delete a record by id", RecordIdParams, True, ("write",)),
        ("search_records", "Search records by text, type and tags", SearchRecordsParams, False, ("read",)),
        ("get_stats", "Record counts by type and tag", StatsParams, False, ("read",)),
    ]
    return [
        ToolDefinition(name, description, _handler(name), params_schema=schema, mutating=mutating, tags=tags)
        for name, description, schema, mutating, tags in specs
    ]


REQUIRED_TOOLS: tuple[str, ...] = tuple(d.name for d in record_tools())


def register_record_tools(factory: ToolFactory) -> None:
    """Register every record tool and verify none is missing."""
    factory.register_all(record_tools())
    factory.require(REQUIRED_TOOLS)
