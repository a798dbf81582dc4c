"""Configurable user-record manager with batched CRUD operations."""

from user_records.common.exceptions import (
    DatabaseConnectionError,
    DatabaseNotConnectedError,
    DuplicateRecordError,
    ManagerNotInitializedError,
    RecordStorageError,
    RecordValidationError,
    SchemaLockedError,
    UnsupportedActionError,
    UserRecordsError,
)
from user_records.config.logger import setup_logging
from user_records.records import ActionOptions, LookupDescriptor, RecordAction, UserManager
from user_records.schema import DEFAULT_USER_FIELDS, FieldDefinition, FieldType

__version__ = "0.1.0"

__all__ = [
    "UserManager",
    "RecordAction",
    "ActionOptions",
    "LookupDescriptor",
    "DEFAULT_USER_FIELDS",
    "FieldDefinition",
    "FieldType",
    "UserRecordsError",
    "UnsupportedActionError",
    "RecordValidationError",
    "SchemaLockedError",
    "ManagerNotInitializedError",
    "DatabaseConnectionError",
    "DatabaseNotConnectedError",
    "RecordStorageError",
    "DuplicateRecordError",
    "setup_logging",
]
