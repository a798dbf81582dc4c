"""Field definitions for user record schemas.

A schema is an ordered mapping of field name -> FieldDefinition. The default
user schema is DEFAULT_USER_FIELDS; callers either replace it entirely or
extend it with their own fields.

Override precedence (extend_fields):
- Base fields keep their position.
- A caller field with the same name as a base field replaces it in place.
- New caller fields are appended in the caller's order.
"""

import copy
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from user_records.common.datetime_utils import utcnow
from user_records.common.exceptions import RecordValidationError

# Column reserved for the storage-generated record identifier
ID_FIELD = "id"


class FieldType(str, Enum):
    """Storage type of a record field."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    MIXED = "mixed"  # free-form JSON value


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"
    MODERATOR = "moderator"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class FieldDefinition(BaseModel):
    """Definition of a single record field.

    Attributes:
        type: Storage type
        required: Reject creates that omit the field (or set it to None)
        unique: Enforced by a unique constraint in the storage layer
        index: Create a non-unique index on the column
        default: Value used when a create omits the field
        default_factory: Callable producing the default (wins over default)
        choices: Allowed values; None means unrestricted
    """

    type: FieldType = FieldType.STRING
    required: bool = False
    unique: bool = False
    index: bool = False
    default: Any = None
    default_factory: Callable[[], Any] | None = None
    choices: tuple[Any, ...] | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def validate_default(self) -> "FieldDefinition":
        """Reject a default that could never be stored."""
        if self.default is not None and self.default_factory is not None:
            raise ValueError("default and default_factory are mutually exclusive")
        if self.choices is not None and self.default is not None and self.default not in self.choices:
            raise ValueError(f"default {self.default!r} is not one of {list(self.choices)}")
        return self

    def resolve_default(self) -> Any:
        """Produce a fresh default value for a new record."""
        if self.default_factory is not None:
            return self.default_factory()
        return copy.deepcopy(self.default)


def _enum_values(enum_cls: type[Enum]) -> tuple[str, ...]:
    return tuple(member.value for member in enum_cls)


DEFAULT_USER_FIELDS: dict[str, FieldDefinition] = {
    "username": FieldDefinition(required=True, unique=True),
    "email": FieldDefinition(required=True, unique=True),
    "password": FieldDefinition(required=True),
    "first_name": FieldDefinition(),
    "last_name": FieldDefinition(),
    "phone_number": FieldDefinition(),
    "profile_picture": FieldDefinition(),
    "bio": FieldDefinition(),
    "role": FieldDefinition(default=UserRole.USER.value, choices=_enum_values(UserRole)),
    "address": FieldDefinition(),
    "dob": FieldDefinition(type=FieldType.DATETIME),
    "gender": FieldDefinition(choices=_enum_values(Gender)),
    "created_at": FieldDefinition(type=FieldType.DATETIME, default_factory=utcnow),
    "updated_at": FieldDefinition(type=FieldType.DATETIME, default_factory=utcnow),
    "last_login": FieldDefinition(type=FieldType.DATETIME),
    "login_attempts": FieldDefinition(type=FieldType.INTEGER, default=0),
    "two_factor_enabled": FieldDefinition(type=FieldType.BOOLEAN, default=False),
    "language_preference": FieldDefinition(default="en"),
    "timezone": FieldDefinition(),
    "referral_code": FieldDefinition(),
    "newsletter_subscribed": FieldDefinition(type=FieldType.BOOLEAN, default=False),
    "privacy_settings": FieldDefinition(type=FieldType.MIXED),
    "locked": FieldDefinition(type=FieldType.BOOLEAN, default=False),
    "deleted_at": FieldDefinition(type=FieldType.DATETIME),
    "activated_at": FieldDefinition(type=FieldType.DATETIME),
    "reactivated_at": FieldDefinition(type=FieldType.DATETIME),
    "deactivated_at": FieldDefinition(type=FieldType.DATETIME),
}

FieldSpec = FieldDefinition | FieldType | str | Mapping[str, Any]


def normalize_field(spec: FieldSpec) -> FieldDefinition:
    """Turn a caller-supplied field spec into a FieldDefinition.

    Accepts a FieldDefinition, a FieldType (or its string value) as shorthand
    for an optional field of that type, or a mapping of FieldDefinition
    attributes.

    Raises:
        pydantic.ValidationError: If a mapping is malformed
        ValueError: If a type shorthand names an unknown type
    """
    if isinstance(spec, FieldDefinition):
        return spec
    if isinstance(spec, (FieldType, str)):
        return FieldDefinition(type=FieldType(spec))
    return FieldDefinition.model_validate(dict(spec))


def normalize_fields(overrides: Mapping[str, FieldSpec] | None) -> dict[str, FieldDefinition]:
    """Normalize an override mapping, keeping the caller's order.

    Raises:
        RecordValidationError: If a field name is empty or reserved
    """
    normalized: dict[str, FieldDefinition] = {}
    for name, spec in (overrides or {}).items():
        if not isinstance(name, str) or not name:
            raise RecordValidationError(f"Field names must be non-empty strings, got {name!r}")
        if name == ID_FIELD:
            raise RecordValidationError(f"'{ID_FIELD}' is reserved for the record identifier")
        normalized[name] = normalize_field(spec)
    return normalized


def replace_fields(overrides: Mapping[str, FieldSpec] | None) -> dict[str, FieldDefinition]:
    """Discard the defaults and use only the caller's fields."""
    return normalize_fields(overrides)


def extend_fields(
    overrides: Mapping[str, FieldSpec] | None,
    base: Mapping[str, FieldDefinition] = DEFAULT_USER_FIELDS,
) -> dict[str, FieldDefinition]:
    """Overlay the caller's fields on a base field list.

    Caller fields win on name conflicts. See the module docstring for the
    resulting order.
    """
    merged = dict(base)
    merged.update(normalize_fields(overrides))
    return merged
