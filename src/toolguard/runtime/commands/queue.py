"""FIFO command queue with bounded history and undo.

One worker task drains the queue in submission order. A failing command is
logged and recorded, and the worker moves on to the next one. History keeps
the most recent `max_history` outcomes; older entries drop off.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Literal

from toolguard.foundation.errors import CommandStateError, JsonDict

from .command import Command

logger = logging.getLogger("toolguard.commands")

DEFAULT_MAX_HISTORY = 100


@dataclass(slots=True)
class CommandRecord:
    """Outcome of one processed command."""
    command: Command
    status: Literal["succeeded", "failed"]
    duration_ms: float
    result: Any = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    def to_dict(self) -> JsonDict:
        return {
            **self.command.metadata(),
            "status": self.status,
            "duration_ms": round(self.duration_ms, 3),
            "error": None if self.error is None else str(self.error),
        }


class CommandQueue:
    """Process commands strictly in submission order.

    Example:
        >>> queue = CommandQueue(max_history=50)
        >>> queue.enqueue(CommandFactory.create("create_record", {"content": "a"}, ctx))
        >>> await queue.join()
        >>> await queue.undo_last()
    """

    __slots__ = ("max_history", "_pending", "_history", "_lock", "_worker", "_waiters")

    def __init__(self, max_history: int = DEFAULT_MAX_HISTORY) -> None:
        if max_history < 1:
            raise ValueError(f"max_history must be positive, got {max_history}")
        self.max_history = max_history
        self._pending: deque[Command] = deque()
        self._history: deque[CommandRecord] = deque(maxlen=max_history)
        self._lock = asyncio.Lock()
        self._worker: asyncio.Task[None] | None = None
        self._waiters: dict[str, asyncio.Future[Any]] = {}

    @property
    def processing(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def enqueue(self, command: Command) -> None:
        """Append a command and make sure the worker is running. Must be called from a running loop."""
        self._pending.append(command)
        logger.debug("Queued command %s (%s), %d pending", command.name, command.id, len(self._pending))
        if not self.processing:
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def submit(self, command: Command) -> Any:
        """Enqueue a command and wait for its own outcome (result or raised error)."""
        waiter: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._waiters[command.id] = waiter
        self.enqueue(command)
        return await waiter

    async def _drain(self) -> None:
        while self._pending:
            command = self._pending.popleft()
            waiter = self._waiters.pop(command.id, None)
            async with self._lock:
                start = time.perf_counter()
                try:
                    result = await command.execute()
                except Exception as e:
                    logger.error("Queued command %s (%s) failed: %s", command.name, command.id, e)
                    record = CommandRecord(command, "failed", (time.perf_counter() - start) * 1000, error=e)
                    if waiter is not None and not waiter.done():
                        waiter.set_exception(e)
                else:
                    record = CommandRecord(command, "succeeded", (time.perf_counter() - start) * 1000, result=result)
                    if waiter is not None and not waiter.done():
                        waiter.set_result(result)
                self._history.append(record)

    async def join(self) -> None:
        """Wait until every queued command has been processed."""
        while self._worker is not None and not self._worker.done():
            await self._worker

    async def undo_last(self) -> Command:
        """Undo the most recent successfully executed, not yet undone, reversible command."""
        async with self._lock:
            for record in reversed(self._history):
                if record.succeeded and record.command.can_undo:
                    await record.command.undo()
                    return record.command
        raise CommandStateError.create("command_queue", "No undoable commands found")

    def history(self) -> list[CommandRecord]:
        """Processed commands, oldest first."""
        return list(self._history)

    def failures(self) -> list[CommandRecord]:
        return [r for r in self._history if not r.succeeded]

    def status(self) -> JsonDict:
        return {
            "pending": len(self._pending),
            "processing": self.processing,
            "history_size": len(self._history),
            "max_history": self.max_history,
            "failed": len(self.failures()),
        }

    def clear(self) -> None:
        """Drop pending commands and history."""
        for waiter in self._waiters.values():
            waiter.cancel()
        self._waiters.clear()
        self._pending.clear()
        self._history.clear()
        logger.info("Command queue cleared")
