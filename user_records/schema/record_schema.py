"""Record schema bound to a collection, and the table generated from it.

Each collection becomes one table: an integer `id` primary key plus one
column per field. MIXED fields are JSON columns so a record can carry
free-form maps (e.g. privacy_settings) like a document would.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from loguru import logger
from sqlalchemy import JSON, Boolean, Column, Float, Integer, MetaData, String, Table

from user_records.common.datetime_utils import UTCDateTime
from user_records.common.exceptions import RecordValidationError
from user_records.schema.fields import ID_FIELD, FieldDefinition, FieldType

_COLUMN_TYPES = {
    FieldType.STRING: String,
    FieldType.INTEGER: Integer,
    FieldType.FLOAT: Float,
    FieldType.BOOLEAN: Boolean,
    FieldType.DATETIME: UTCDateTime,
    FieldType.MIXED: JSON,
}

# Fields an update payload may never overwrite
IMMUTABLE_FIELDS = frozenset({ID_FIELD, "created_at"})


def build_table(
    collection_name: str,
    fields: Mapping[str, FieldDefinition],
    metadata: MetaData,
) -> Table:
    """Build the SQLAlchemy table for a collection.

    Args:
        collection_name: Table name
        fields: Ordered field definitions
        metadata: MetaData the table is registered on

    Returns:
        Table with `id` first, then the fields in order
    """
    columns = [Column(ID_FIELD, Integer, primary_key=True, autoincrement=True)]
    for name, definition in fields.items():
        columns.append(
            Column(
                name,
                _COLUMN_TYPES[definition.type](),
                nullable=not definition.required,
                unique=definition.unique,
                index=definition.index and not definition.unique,
            )
        )
    return Table(collection_name, metadata, *columns)


@dataclass(frozen=True)
class RecordSchema:
    """The fixed schema of one collection."""

    collection_name: str
    fields: Mapping[str, FieldDefinition] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze a private copy so later changes to the caller's dict never leak in
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(self.fields)

    def has_field(self, name: str) -> bool:
        return name == ID_FIELD or name in self.fields

    def validate_lookup_field(self, name: str) -> None:
        """Ensure a lookup descriptor targets a known field."""
        if not self.has_field(name):
            raise RecordValidationError(
                f"Unknown lookup field '{name}' for collection '{self.collection_name}'"
            )

    def filter_known(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Drop keys that are not schema fields."""
        known = {key: value for key, value in payload.items() if key in self.fields}
        unknown = sorted(set(payload) - set(known))
        if unknown:
            logger.debug(f"Ignoring fields not in '{self.collection_name}' schema: {unknown}")
        return known

    def check_choices(self, payload: Mapping[str, Any]) -> None:
        """Reject values outside a field's allowed choices (None is allowed)."""
        for name, value in payload.items():
            definition = self.fields.get(name)
            if definition is None or definition.choices is None or value is None:
                continue
            if value not in definition.choices:
                raise RecordValidationError(
                    f"Invalid value {value!r} for '{name}'; expected one of {list(definition.choices)}"
                )

    def apply_defaults(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Build a complete document for insertion.

        Unknown keys are dropped, omitted fields get their defaults, and
        required fields and choices are checked.

        Raises:
            RecordValidationError: On a missing required field or bad choice
        """
        known = self.filter_known(payload)
        document: dict[str, Any] = {}
        for name, definition in self.fields.items():
            value = known[name] if name in known else definition.resolve_default()
            if definition.required and value is None:
                raise RecordValidationError(
                    f"Field '{name}' is required in collection '{self.collection_name}'"
                )
            document[name] = value

        self.check_choices(document)
        return document

    def prepare_update(self, data: Mapping[str, Any] | None) -> dict[str, Any]:
        """Filter and validate an update payload.

        `id` and `created_at` are never updated.
        """
        changes = self.filter_known(data or {})
        for name in IMMUTABLE_FIELDS.intersection(changes):
            logger.debug(f"Ignoring immutable field '{name}' in update")
            del changes[name]

        for name, value in changes.items():
            if value is None and self.fields[name].required:
                raise RecordValidationError(f"Field '{name}' is required and cannot be cleared")

        self.check_choices(changes)
        return changes

    def build_table(self, metadata: MetaData) -> Table:
        return build_table(self.collection_name, self.fields, metadata)
