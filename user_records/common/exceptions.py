"""Exception hierarchy for user-records."""


class UserRecordsError(Exception):
    """Base exception for all user-records errors."""

    pass


class UnsupportedActionError(UserRecordsError):
    """Raised when a batch names an action outside the fixed set."""

    def __init__(self, action: object):
        self.action = action
        super().__init__(f"Action not supported: {action!r}")


class RecordValidationError(UserRecordsError):
    """Raised when a payload or lookup is rejected before reaching storage."""

    pass


class SchemaLockedError(UserRecordsError):
    """Raised when the schema is changed after the manager was initialized."""

    def __init__(self, collection_name: str):
        self.collection_name = collection_name
        super().__init__(
            f"Schema for collection '{collection_name}' is fixed once initialized; "
            "existing records are never migrated"
        )


class ManagerNotInitializedError(UserRecordsError):
    """Raised when a batch operation runs before initialize()."""

    def __init__(self, collection_name: str):
        self.collection_name = collection_name
        super().__init__(
            f"UserManager for '{collection_name}' is not initialized. Call initialize() first."
        )


class DatabaseConnectionError(UserRecordsError):
    """Raised when the database connection cannot be established."""

    pass


class DatabaseNotConnectedError(UserRecordsError):
    """Raised when a session is requested before connect()."""

    pass


class RecordStorageError(UserRecordsError):
    """Raised when the storage layer fails while processing a batch.

    The batch transaction has been rolled back when this is raised.
    """

    def __init__(self, message: str, action: str | None = None, index: int | None = None):
        self.action = action
        self.index = index
        super().__init__(message)


class DuplicateRecordError(RecordStorageError):
    """Raised when an insert or update violates a unique field."""

    pass
