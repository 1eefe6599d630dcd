"""Reversible record commands and the FIFO command queue.

Example:
    >>> from toolguard.runtime.commands import CommandFactory, CommandQueue
    >>> queue = CommandQueue()
    >>> queue.enqueue(CommandFactory.create("delete_record", {"record_id": rid}, ctx))
    >>> await queue.join()
    >>> await queue.undo_last()  # record is back, same id
"""

from .command import (
    Command,
    CommandFactory,
    CreateRecordCommand,
    DeleteRecordCommand,
    GetRecordCommand,
    GetStatsCommand,
    SearchRecordsCommand,
    UpdateRecordCommand,
)
from .queue import DEFAULT_MAX_HISTORY, CommandQueue, CommandRecord
from .store import MUTABLE_FIELDS, InMemoryRecordStore, Record, RecordStore

__all__ = [
    # Commands
    "Command", "CommandFactory",
    "CreateRecordCommand", "UpdateRecordCommand", "DeleteRecordCommand",
    "GetRecordCommand", "SearchRecordsCommand", "GetStatsCommand",
    # Queue
    "CommandQueue", "CommandRecord", "DEFAULT_MAX_HISTORY",
    # Store
    "Record", "RecordStore", "InMemoryRecordStore", "MUTABLE_FIELDS",
]
