"""User record manager bound to one collection.

Usage:
    manager = UserManager(settings.database, "users")
    manager.extend_schema({"nickname": FieldType.STRING})  # optional
    await manager.initialize()

    created = await manager.create([{"username": "a", "email": "a@x.com", "password": "p"}])
    found = await manager.get([{"field": "username", "value": "a"}])

    await manager.close_connection()
"""

from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger
from sqlalchemy import MetaData

from user_records.common.exceptions import ManagerNotInitializedError, SchemaLockedError
from user_records.config.settings import DatabaseSettings, settings
from user_records.db import db_config
from user_records.records.record_manager import (
    ActionOptions,
    LookupDescriptor,
    Record,
    RecordAction,
    RecordManager,
)
from user_records.schema import DEFAULT_USER_FIELDS, RecordSchema, extend_fields, replace_fields
from user_records.schema.fields import FieldSpec

Batch = Sequence[Mapping[str, Any] | LookupDescriptor]


class UserManager:
    """Manages user records in a named collection.

    The schema defaults to DEFAULT_USER_FIELDS and can be replaced or
    extended until initialize() is called; after that it is fixed.
    """

    def __init__(
        self,
        connection_config: DatabaseSettings | Mapping[str, Any] | None = None,
        table_name: str | None = None,
    ):
        """Initialize UserManager.

        Args:
            connection_config: DatabaseSettings, a mapping of its fields
                (e.g. {"uri": ..., "options": {...}}), or None for
                the global settings.
            table_name: Collection (table) name; defaults to
                settings.default_collection.
        """
        if connection_config is None:
            connection_config = settings.database
        elif not isinstance(connection_config, DatabaseSettings):
            connection_config = DatabaseSettings(**connection_config)

        self.db_settings: DatabaseSettings = connection_config
        self.table_name: str = table_name or settings.default_collection
        self._schema = RecordSchema(self.table_name, DEFAULT_USER_FIELDS)
        self._metadata = MetaData()
        self._manager: RecordManager | None = None

    @property
    def schema(self) -> RecordSchema:
        return self._schema

    @property
    def is_initialized(self) -> bool:
        return self._manager is not None

    # ------------------------------------------------------------------
    # Schema selection (before initialize)
    # ------------------------------------------------------------------

    def _set_schema(self, fields: Mapping[str, Any]) -> None:
        if self.is_initialized:
            raise SchemaLockedError(self.table_name)
        self._schema = RecordSchema(self.table_name, fields)

    def replace_schema(self, new_schema_fields: Mapping[str, FieldSpec] | None = None) -> None:
        """Use only the given fields, discarding the defaults."""
        self._set_schema(replace_fields(new_schema_fields))

    def extend_schema(self, additional_schema_fields: Mapping[str, FieldSpec] | None = None) -> None:
        """Keep the default fields and overlay the given ones (given fields win)."""
        self._set_schema(extend_fields(additional_schema_fields))

    def initialize_schema(self) -> None:
        """Reset to the default user fields."""
        self._set_schema(DEFAULT_USER_FIELDS)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Connect, fix the schema and create the collection table if missing.

        Idempotent.

        Returns:
            True once the manager is ready.

        Raises:
            DatabaseConnectionError: If the database cannot be reached
        """
        if self.is_initialized and db_config.is_connected():
            return True

        await db_config.connect(self.db_settings)

        table = self._metadata.tables.get(self.table_name)
        if table is None:
            table = self._schema.build_table(self._metadata)

        async with db_config.get_engine().begin() as conn:
            await conn.run_sync(self._metadata.create_all, tables=[table])

        self._manager = RecordManager(self._schema, table)
        logger.bind(collection=self.table_name).info(
            f"UserManager ready ({len(self._schema.field_names)} fields)"
        )
        return True

    async def close_connection(self) -> None:
        """Close the process-wide database connection. Never raises."""
        await db_config.close_connection()

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    async def execute(
        self,
        action: RecordAction | str,
        records: Batch,
        options: ActionOptions | Mapping[str, Any] | None = None,
    ) -> list[Record | None]:
        """Run any action by name. See RecordManager.execute()."""
        if self._manager is None:
            raise ManagerNotInitializedError(self.table_name)
        return await self._manager.execute(action, records, options)

    async def create(self, users: Sequence[Mapping[str, Any]]) -> list[Record | None]:
        """Insert one record per payload."""
        return await self.execute(RecordAction.CREATE, users)

    async def get(self, users: Batch) -> list[Record | None]:
        """Fetch the first record matching each lookup."""
        return await self.execute(RecordAction.GET, users)

    async def update(self, users: Batch, data: Mapping[str, Any]) -> list[Record | None]:
        """Merge data into the first record matching each lookup."""
        return await self.execute(RecordAction.UPDATE, users, ActionOptions(data=dict(data)))

    async def delete(self, users: Batch, strict_mode: bool = False) -> list[Record | None]:
        """Soft delete (tombstone + lock), or physically remove with strict_mode."""
        return await self.execute(RecordAction.DELETE, users, ActionOptions(strict_mode=strict_mode))

    async def deactivate(self, users: Batch) -> list[Record | None]:
        return await self.execute(RecordAction.DEACTIVATE, users)

    async def reactivate(self, users: Batch) -> list[Record | None]:
        return await self.execute(RecordAction.REACTIVATE, users)
