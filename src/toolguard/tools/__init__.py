"""Bundled tool definitions."""

from .records import (
    REQUIRED_TOOLS,
    CreateRecordParams,
    RecordIdParams,
    SearchRecordsParams,
    UpdateRecordParams,
    record_tools,
    register_record_tools,
    run_command,
)

__all__ = [
    "REQUIRED_TOOLS",
    "record_tools",
    "register_record_tools",
    "run_command",
    "CreateRecordParams",
    "RecordIdParams",
    "UpdateRecordParams",
    "SearchRecordsParams",
]
