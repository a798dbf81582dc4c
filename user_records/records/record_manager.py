"""Batched record operations over one collection table.

Every action maps to one storage primitive, issued once per batch element,
strictly in input order. A batch runs inside a single transaction: if any
element fails at the storage layer, the whole batch is rolled back and the
error is raised (all-or-nothing).
"""

from collections.abc import Awaitable, Callable, Mapping, Sequence
from enum import Enum
from typing import Any

from loguru import logger
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from user_records.common.datetime_utils import utcnow
from user_records.common.exceptions import (
    DuplicateRecordError,
    RecordStorageError,
    RecordValidationError,
    UnsupportedActionError,
)
from user_records.db import db_config
from user_records.schema import ID_FIELD, RecordSchema

Record = dict[str, Any]

# Always set to the insertion time on create
INSERT_TIMESTAMP_FIELDS = frozenset({"created_at", "updated_at"})


class RecordAction(str, Enum):
    """The closed set of batch operations."""

    CREATE = "create"
    GET = "get"
    UPDATE = "update"
    DELETE = "delete"
    DEACTIVATE = "deactivate"
    REACTIVATE = "reactivate"

    @classmethod
    def parse(cls, action: "RecordAction | str") -> "RecordAction":
        """Resolve an action name.

        Raises:
            UnsupportedActionError: If the name is not a known action
        """
        if isinstance(action, cls):
            return action
        try:
            return cls(action)
        except ValueError as e:
            raise UnsupportedActionError(action) from e


class LookupDescriptor(BaseModel):
    """Identifies the record an operation targets: `field == value`."""

    field: str
    value: Any = None

    model_config = ConfigDict(frozen=True)


class ActionOptions(BaseModel):
    """Action-specific extras.

    Attributes:
        data: Payload merged into the matched record by `update`
        strict_mode: `delete` physically removes the record when True
            (also accepted as `strictMode`)

    Unknown keys are rejected rather than ignored.
    """

    data: dict[str, Any] | None = None
    strict_mode: bool = Field(
        default=False, validation_alias=AliasChoices("strict_mode", "strictMode")
    )

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


# (prepared batch element, options) -> handler
Handler = Callable[[AsyncSession, Any, ActionOptions], Awaitable[Record | None]]


class RecordManager:
    """Executes batched actions against one collection table.

    Results are returned in input order, one per element; a lookup that
    matches nothing yields None at its position.
    """

    def __init__(self, schema: RecordSchema, table: Table):
        self.schema = schema
        self.table = table
        self._handlers: dict[RecordAction, Handler] = {
            RecordAction.CREATE: self._create,
            RecordAction.GET: self._get,
            RecordAction.UPDATE: self._update,
            RecordAction.DELETE: self._delete,
            RecordAction.DEACTIVATE: self._deactivate,
            RecordAction.REACTIVATE: self._reactivate,
        }
        missing = set(RecordAction) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for actions: {sorted(a.value for a in missing)}")

    async def execute(
        self,
        action: RecordAction | str,
        records: Sequence[Mapping[str, Any] | LookupDescriptor],
        options: ActionOptions | Mapping[str, Any] | None = None,
    ) -> list[Record | None]:
        """Run one action over a batch.

        Args:
            action: RecordAction or its string value
            records: Create payloads for `create`, lookup descriptors otherwise
            options: ActionOptions or a mapping of its fields

        Returns:
            One result per input element, in input order

        Raises:
            UnsupportedActionError: Unknown action; nothing is touched
            RecordValidationError: Invalid element or options; nothing is touched
            DuplicateRecordError: Unique field violated; batch rolled back
            RecordStorageError: Any other storage failure; batch rolled back
        """
        action = RecordAction.parse(action)
        options = self._parse_options(options)
        if action is RecordAction.UPDATE:
            # Validated once up front; the timestamp is added per element
            options = options.model_copy(update={"data": self.schema.prepare_update(options.data)})
        prepared = self._prepare(action, records)

        if not prepared:
            return []

        log = logger.bind(collection=self.table.name, action=action.value)
        log.debug(f"Executing on {len(prepared)} record(s)")

        handler = self._handlers[action]
        results: list[Record | None] = []
        index = 0
        try:
            async with db_config.get_session() as session:
                for index, element in enumerate(prepared):
                    results.append(await handler(session, element, options))
        except IntegrityError as e:
            log.error(f"Batch rolled back: unique constraint violated at element {index}")
            raise DuplicateRecordError(
                f"Duplicate value for a unique field in '{self.table.name}': {e.orig}",
                action=action.value,
                index=index,
            ) from e
        except SQLAlchemyError as e:
            log.error(f"Batch rolled back at element {index}: {e}")
            raise RecordStorageError(
                f"Storage failure in '{self.table.name}': {e}",
                action=action.value,
                index=index,
            ) from e

        return results

    # ------------------------------------------------------------------
    # Validation (runs before any storage call)
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_options(options: ActionOptions | Mapping[str, Any] | None) -> ActionOptions:
        if options is None:
            return ActionOptions()
        if isinstance(options, ActionOptions):
            return options
        try:
            return ActionOptions.model_validate(dict(options))
        except ValidationError as e:
            raise RecordValidationError(f"Invalid action options: {e}") from e

    def _prepare(
        self,
        action: RecordAction,
        records: Sequence[Mapping[str, Any] | LookupDescriptor],
    ) -> list[Any]:
        if action is RecordAction.CREATE:
            return [self.schema.apply_defaults(self._as_mapping(record)) for record in records]

        return [self._as_lookup(record) for record in records]

    @staticmethod
    def _as_mapping(record: Mapping[str, Any] | LookupDescriptor) -> Mapping[str, Any]:
        if isinstance(record, Mapping):
            return record
        raise RecordValidationError(f"Create payloads must be mappings, got {type(record).__name__}")

    def _as_lookup(self, record: Mapping[str, Any] | LookupDescriptor) -> LookupDescriptor:
        if isinstance(record, LookupDescriptor):
            lookup = record
        else:
            try:
                lookup = LookupDescriptor.model_validate(record)
            except ValidationError as e:
                raise RecordValidationError(f"Invalid lookup descriptor {record!r}: {e}") from e
        self.schema.validate_lookup_field(lookup.field)
        return lookup

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    async def _fetch_by_id(self, session: AsyncSession, record_id: int) -> Record | None:
        result = await session.execute(select(self.table).where(self.table.c[ID_FIELD] == record_id))
        row = result.mappings().first()
        return dict(row) if row is not None else None

    async def _find_one(self, session: AsyncSession, lookup: LookupDescriptor) -> Record | None:
        """Exact-match fetch of the first record in insertion order."""
        stmt = (
            select(self.table)
            .where(self.table.c[lookup.field] == lookup.value)
            .order_by(self.table.c[ID_FIELD])
            .limit(1)
        )
        result = await session.execute(stmt)
        row = result.mappings().first()
        return dict(row) if row is not None else None

    async def _find_one_and_update(
        self,
        session: AsyncSession,
        lookup: LookupDescriptor,
        changes: Mapping[str, Any],
    ) -> Record | None:
        """Apply changes to the first match and return the updated record."""
        current = await self._find_one(session, lookup)
        if current is None or not changes:
            return current

        record_id = current[ID_FIELD]
        await session.execute(
            update(self.table).where(self.table.c[ID_FIELD] == record_id).values(**changes)
        )
        return await self._fetch_by_id(session, record_id)

    async def _find_one_and_delete(
        self, session: AsyncSession, lookup: LookupDescriptor
    ) -> Record | None:
        """Physically remove the first match and return it."""
        current = await self._find_one(session, lookup)
        if current is None:
            return None

        await session.execute(delete(self.table).where(self.table.c[ID_FIELD] == current[ID_FIELD]))
        return current

    # ------------------------------------------------------------------
    # Handlers (one per RecordAction)
    # ------------------------------------------------------------------

    async def _create(
        self, session: AsyncSession, document: dict[str, Any], options: ActionOptions
    ) -> Record | None:
        now = utcnow()
        for name in INSERT_TIMESTAMP_FIELDS.intersection(self.schema.fields):
            document[name] = now

        result = await session.execute(insert(self.table).values(**document))
        return await self._fetch_by_id(session, result.inserted_primary_key[0])

    async def _get(
        self, session: AsyncSession, lookup: LookupDescriptor, options: ActionOptions
    ) -> Record | None:
        return await self._find_one(session, lookup)

    async def _update(
        self, session: AsyncSession, lookup: LookupDescriptor, options: ActionOptions
    ) -> Record | None:
        changes = dict(options.data or {})
        if "updated_at" in self.schema.fields:
            changes["updated_at"] = utcnow()
        return await self._find_one_and_update(session, lookup, changes)

    async def _delete(
        self, session: AsyncSession, lookup: LookupDescriptor, options: ActionOptions
    ) -> Record | None:
        if options.strict_mode:
            return await self._find_one_and_delete(session, lookup)
        return await self._find_one_and_update(
            session, lookup, self._lifecycle_changes(deleted_at=utcnow(), locked=True)
        )

    async def _deactivate(
        self, session: AsyncSession, lookup: LookupDescriptor, options: ActionOptions
    ) -> Record | None:
        return await self._find_one_and_update(
            session, lookup, self._lifecycle_changes(deactivated_at=utcnow(), locked=True)
        )

    async def _reactivate(
        self, session: AsyncSession, lookup: LookupDescriptor, options: ActionOptions
    ) -> Record | None:
        return await self._find_one_and_update(
            session, lookup, self._lifecycle_changes(reactivated_at=utcnow(), locked=False)
        )

    def _lifecycle_changes(self, **changes: Any) -> dict[str, Any]:
        """Keep only lifecycle columns the schema actually has.

        A replaced schema may lack them, in which case the matched record is
        returned unchanged.
        """
        return {name: value for name, value in changes.items() if name in self.schema.fields}
