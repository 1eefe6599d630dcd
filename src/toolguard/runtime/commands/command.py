"""Command objects for record operations.

A command captures one operation, its input and enough prior state to reverse
it. It executes at most once; undo is allowed only after a successful
execution of a reversible command, and only once.

    >>> cmd = CommandFactory.create("create_record", {"content": "hi"}, ctx)
    >>> await cmd.execute()
    >>> await cmd.undo()    # deletes the created record
"""

from __future__ import annotations

import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar

from toolguard.foundation.core import ToolContext
from toolguard.foundation.errors import CommandStateError, JsonDict, NotFoundError

from .store import MUTABLE_FIELDS, Record, RecordStore

logger = logging.getLogger("toolguard.commands")


class Command(ABC):
    """Base command.

    Subclasses set `name` and `reversible` and implement `_execute` (and
    `_undo` when reversible).
    """

    name: ClassVar[str]
    reversible: ClassVar[bool] = False

    __slots__ = ("id", "params", "store", "request_id", "timestamp", "result", "_attempted", "_executed", "_undone")

    def __init__(self, params: Mapping[str, Any], store: RecordStore, *, request_id: str | None = None) -> None:
        self.id = f"cmd_{uuid.uuid4().hex[:12]}"
        self.params: dict[str, Any] = dict(params)
        self.store = store
        self.request_id = request_id
        self.timestamp = time.time()
        self.result: Any = None
        self._attempted = self._executed = self._undone = False

    @property
    def executed(self) -> bool:
        return self._executed

    @property
    def undone(self) -> bool:
        return self._undone

    @property
    def can_undo(self) -> bool:
        return self.reversible and self._executed and not self._undone

    async def execute(self) -> Any:
        """Run the operation. A second call fails, whatever the first outcome."""
        if self._attempted:
            raise CommandStateError.create(self.name, f"Command {self.name} ({self.id}) has already been executed")
        self._attempted = True
        start = time.perf_counter()
        try:
            self.result = await self._execute()
        except Exception:
            logger.warning("Command %s (%s) failed after %.1fms", self.name, self.id,
                           (time.perf_counter() - start) * 1000)
            raise
        self._executed = True
        logger.info("Command %s (%s) executed in %.1fms", self.name, self.id, (time.perf_counter() - start) * 1000)
        return self.result

    async def undo(self) -> None:
        """Reverse a successful execution."""
        if not self.reversible:
            raise CommandStateError.create(self.name, f"Command {self.name} cannot be undone")
        if not self._executed:
            raise CommandStateError.create(self.name, f"Command {self.name} ({self.id}) has not been executed")
        if self._undone:
            raise CommandStateError.create(self.name, f"Command {self.name} ({self.id}) has already been undone")
        await self._undo()
        self._undone = True
        logger.info("Command %s (%s) undone", self.name, self.id)

    @abstractmethod
    async def _execute(self) -> Any: ...

    async def _undo(self) -> None:
        raise NotImplementedError

    def metadata(self) -> JsonDict:
        return {
            "id": self.id,
            "name": self.name,
            "params": self.params,
            "timestamp": self.timestamp,
            "reversible": self.reversible,
            "executed": self._executed,
            "undone": self._undone,
            "request_id": self.request_id,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, executed={self._executed}, undone={self._undone})"

    async def _require(self, record_id: str) -> Record:
        if (record := await self.store.get(record_id)) is None:
            raise NotFoundError.create(self.name, f"Record not found: {record_id}", record_id=record_id)
        return record


class CreateRecordCommand(Command):
    name = "create_record"
    reversible = True
    __slots__ = ("created_id",)

    def __init__(self, params: Mapping[str, Any], store: RecordStore, *, request_id: str | None = None) -> None:
        super().__init__(params, store, request_id=request_id)
        self.created_id: str | None = None

    async def _execute(self) -> JsonDict:
        record = await self.store.create(self.params)
        self.created_id = record.id
        return {"record_id": record.id, "status": "created", "record": record.model_dump(mode="json")}

    async def _undo(self) -> None:
        assert self.created_id is not None
        await self.store.delete(self.created_id)


class UpdateRecordCommand(Command):
    """Update selected fields; undo re-applies their previous values."""

    name = "update_record"
    reversible = True
    __slots__ = ("previous",)

    def __init__(self, params: Mapping[str, Any], store: RecordStore, *, request_id: str | None = None) -> None:
        super().__init__(params, store, request_id=request_id)
        self.previous: JsonDict = {}

    @property
    def record_id(self) -> str:
        return self.params["record_id"]

    async def _execute(self) -> JsonDict:
        existing = await self._require(self.record_id)
        fields = {k: v for k, v in self.params.items() if k in MUTABLE_FIELDS and v is not None}
        self.previous = {k: getattr(existing, k) for k in fields}
        updated = await self.store.update(self.record_id, fields)
        return {"record_id": updated.id, "status": "updated", "updated_fields": sorted(fields)}

    async def _undo(self) -> None:
        await self.store.update(self.record_id, self.previous)


class DeleteRecordCommand(Command):
    """Delete a record; undo re-creates it with the same id."""

    name = "delete_record"
    reversible = True
    __slots__ = ("snapshot",)

    def __init__(self, params: Mapping[str, Any], store: RecordStore, *, request_id: str | None = None) -> None:
        super().__init__(params, store, request_id=request_id)
        self.snapshot: Record | None = None

    async def _execute(self) -> JsonDict:
        record_id = self.params["record_id"]
        self.snapshot = await self._require(record_id)
        await self.store.delete(record_id)
        return {"record_id": record_id, "status": "deleted"}

    async def _undo(self) -> None:
        assert self.snapshot is not None
        await self.store.create(self.snapshot.model_dump(), record_id=self.snapshot.id)


class GetRecordCommand(Command):
    name = "get_record"

    async def _execute(self) -> JsonDict:
        record = await self._require(self.params["record_id"])
        return {"record": record.model_dump(mode="json"), "status": "found"}


class SearchRecordsCommand(Command):
    name = "search_records"

    async def _execute(self) -> JsonDict:
        p = self.params
        records = await self.store.search(
            p.get("query"), type=p.get("type"), tags=p.get("tags") or (), limit=p.get("limit", 10),
        )
        return {"records": [r.model_dump(mode="json") for r in records], "total": len(records)}


class GetStatsCommand(Command):
    name = "get_stats"

    async def _execute(self) -> JsonDict:
        return await self.store.stats()


class CommandFactory:
    """Builds commands by tool name.

    The store comes from the call context's services (`"store"`).
    """

    _commands: ClassVar[dict[str, type[Command]]] = {
        cls.name: cls for cls in (
            CreateRecordCommand, UpdateRecordCommand, DeleteRecordCommand,
            GetRecordCommand, SearchRecordsCommand, GetStatsCommand,
        )
    }

    @classmethod
    def register(cls, command: type[Command]) -> type[Command]:
        """Add a command class. Usable as a class decorator."""
        cls._commands[command.name] = command
        return command

    @classmethod
    def names(cls) -> list[str]:
        return list(cls._commands)

    @classmethod
    def create(cls, tool_name: str, params: Mapping[str, Any], context: ToolContext) -> Command:
        try:
            command_cls = cls._commands[tool_name]
        except KeyError:
            raise ValueError(f"Unknown command: {tool_name}") from None
        return command_cls(params, context.service("store"), request_id=context.request_id)
