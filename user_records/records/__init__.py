"""Batched user record operations."""

from user_records.records.record_manager import (
    ActionOptions,
    LookupDescriptor,
    Record,
    RecordAction,
    RecordManager,
)
from user_records.records.user_manager import UserManager

__all__ = [
    "ActionOptions",
    "LookupDescriptor",
    "Record",
    "RecordAction",
    "RecordManager",
    "UserManager",
]
