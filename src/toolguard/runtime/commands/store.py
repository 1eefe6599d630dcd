"""Record store: the collaborator record commands operate on.

`RecordStore` is the interface; `InMemoryRecordStore` is the in-process
implementation used by the bundled record tools and tests. Operations never
await while touching the dict, so each one is atomic on the event loop.
"""

from __future__ import annotations

import time
import uuid
from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from toolguard.foundation.errors import JsonDict


def _record_id() -> str:
    return f"rec_{uuid.uuid4().hex[:12]}"


class Record(BaseModel):
    """A stored record."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=_record_id)
    content: str
    type: str = "note"
    tags: list[str] = Field(default_factory=list)
    metadata: JsonDict = Field(default_factory=dict)
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)


# Fields an update may change
MUTABLE_FIELDS: frozenset[str] = frozenset({"content", "type", "tags", "metadata"})


@runtime_checkable
class RecordStore(Protocol):
    """Async storage interface for records."""

    async def create(self, data: Mapping[str, Any], *, record_id: str | None = None) -> Record: ...
    async def get(self, record_id: str) -> Record | None: ...
    async def update(self, record_id: str, fields: Mapping[str, Any]) -> Record: ...
    async def delete(self, record_id: str) -> bool: ...
    async def search(
        self, query: str | None = None, *, type: str | None = None, tags: Sequence[str] = (), limit: int = 10,
    ) -> list[Record]: ...
    async def stats(self) -> JsonDict: ...


class InMemoryRecordStore:
    """Dict-backed RecordStore. Returns copies so callers cannot mutate stored state.

    Example:
        >>> store = InMemoryRecordStore()
        >>> rec = await store.create({"content": "hello", "tags": ["greeting"]})
        >>> (await store.get(rec.id)).content
        'hello'
    """

    __slots__ = ("_records",)

    def __init__(self) -> None:
        self._records: dict[str, Record] = {}

    async def create(self, data: Mapping[str, Any], *, record_id: str | None = None) -> Record:
        payload = {k: v for k, v in data.items() if k != "id"}
        if record_id is not None:
            payload["id"] = record_id
        record = Record.model_validate(payload)
        if record.id in self._records:
            raise ValueError(f"Record already exists: {record.id}")
        self._records[record.id] = record
        return record.model_copy(deep=True)

    async def get(self, record_id: str) -> Record | None:
        record = self._records.get(record_id)
        return None if record is None else record.model_copy(deep=True)

    async def update(self, record_id: str, fields: Mapping[str, Any]) -> Record:
        """Apply `fields` to a record. Raises KeyError when it does not exist."""
        record = self._records[record_id]
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        updated = Record.model_validate({**record.model_dump(), **fields, "updated_at": time.time()})
        self._records[record_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    async def search(
        self, query: str | None = None, *, type: str | None = None, tags: Sequence[str] = (), limit: int = 10,
    ) -> list[Record]:
        """Case-insensitive substring match on content, filtered by type and tags, newest first."""
        needle = query.lower() if query else None
        wanted = set(tags)
        matches = [
            r for r in self._records.values()
            if (needle is None or needle in r.content.lower())
            and (type is None or r.type == type)
            and wanted <= set(r.tags)
        ]
        matches.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in matches[:limit]]

    async def stats(self) -> JsonDict:
        records = list(self._records.values())
        return {
            "total_records": len(records),
            "by_type": dict(Counter(r.type for r in records)),
            "tags": dict(Counter(t for r in records for t in r.tags)),
        }

    def __len__(self) -> int:
        return len(self._records)
