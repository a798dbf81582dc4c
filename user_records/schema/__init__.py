"""Record schema definition.

Default user fields, replace/extend composition, and the table builder.
"""

from user_records.schema.fields import (
    DEFAULT_USER_FIELDS,
    ID_FIELD,
    FieldDefinition,
    FieldType,
    Gender,
    UserRole,
    extend_fields,
    normalize_fields,
    replace_fields,
)
from user_records.schema.record_schema import RecordSchema, build_table

__all__ = [
    # Fields
    "DEFAULT_USER_FIELDS",
    "ID_FIELD",
    "FieldDefinition",
    "FieldType",
    "Gender",
    "UserRole",
    # Composition
    "normalize_fields",
    "replace_fields",
    "extend_fields",
    # Tables
    "RecordSchema",
    "build_table",
]
