"""Tests for schema definition: defaults, replace/extend, table building."""

import pytest
from pydantic import ValidationError
from sqlalchemy import JSON, Boolean, Integer, MetaData, String

from user_records.common.datetime_utils import UTCDateTime
from user_records.common.exceptions import RecordValidationError
from user_records.schema import (
    DEFAULT_USER_FIELDS,
    FieldDefinition,
    FieldType,
    RecordSchema,
    extend_fields,
    normalize_fields,
    replace_fields,
)

pytestmark = pytest.mark.unit


class TestDefaultUserFields:
    """The default user document shape."""

    def test_identity_fields_are_required_and_unique(self):
        assert DEFAULT_USER_FIELDS["username"].required
        assert DEFAULT_USER_FIELDS["username"].unique
        assert DEFAULT_USER_FIELDS["email"].required
        assert DEFAULT_USER_FIELDS["email"].unique
        assert DEFAULT_USER_FIELDS["password"].required
        assert not DEFAULT_USER_FIELDS["password"].unique

    def test_role_and_gender_choices(self):
        assert DEFAULT_USER_FIELDS["role"].choices == ("admin", "user", "moderator")
        assert DEFAULT_USER_FIELDS["role"].default == "user"
        assert DEFAULT_USER_FIELDS["gender"].choices == ("male", "female", "other")
        assert DEFAULT_USER_FIELDS["gender"].default is None

    def test_lifecycle_timestamps_default_to_none(self):
        for name in ("deleted_at", "activated_at", "reactivated_at", "deactivated_at", "last_login"):
            assert DEFAULT_USER_FIELDS[name].type == FieldType.DATETIME
            assert DEFAULT_USER_FIELDS[name].resolve_default() is None

    def test_created_and_updated_at_use_current_time(self):
        created = DEFAULT_USER_FIELDS["created_at"].resolve_default()
        assert created.tzinfo is not None

    def test_preference_defaults(self):
        assert DEFAULT_USER_FIELDS["language_preference"].default == "en"
        assert DEFAULT_USER_FIELDS["login_attempts"].default == 0
        assert DEFAULT_USER_FIELDS["locked"].default is False
        assert DEFAULT_USER_FIELDS["privacy_settings"].type == FieldType.MIXED


class TestSchemaComposition:
    """replace_fields / extend_fields precedence."""

    def test_replace_discards_defaults(self):
        fields = replace_fields({"handle": FieldDefinition(required=True, unique=True)})
        assert list(fields) == ["handle"]

    def test_extend_keeps_defaults_and_appends_new_fields(self):
        fields = extend_fields({"nickname": FieldType.STRING, "karma": "integer"})
        assert list(fields)[: len(DEFAULT_USER_FIELDS)] == list(DEFAULT_USER_FIELDS)
        assert list(fields)[-2:] == ["nickname", "karma"]
        assert fields["karma"].type == FieldType.INTEGER

    def test_extend_caller_field_wins_and_keeps_position(self):
        fields = extend_fields({"bio": {"type": "string", "required": True}})
        assert fields["bio"].required
        assert list(fields).index("bio") == list(DEFAULT_USER_FIELDS).index("bio")

    def test_extend_does_not_mutate_defaults(self):
        extend_fields({"bio": {"required": True}})
        assert not DEFAULT_USER_FIELDS["bio"].required

    def test_extend_with_none_returns_defaults(self):
        assert extend_fields(None) == DEFAULT_USER_FIELDS

    def test_malformed_override_raises_validation_error(self):
        with pytest.raises(ValidationError):
            normalize_fields({"nickname": {"type": "string", "colour": "blue"}})

    def test_unknown_type_shorthand_raises(self):
        with pytest.raises(ValueError):
            normalize_fields({"nickname": "varchar"})

    def test_id_is_reserved(self):
        with pytest.raises(RecordValidationError, match="reserved"):
            replace_fields({"id": FieldType.STRING})

    def test_default_outside_choices_rejected(self):
        with pytest.raises(ValidationError):
            FieldDefinition(choices=("a", "b"), default="c")


class TestRecordSchema:
    """Payload preparation before storage."""

    def setup_method(self):
        self.schema = RecordSchema("users", DEFAULT_USER_FIELDS)

    def test_apply_defaults_fills_missing_fields(self):
        document = self.schema.apply_defaults(
            {"username": "a", "email": "a@x.com", "password": "p"}
        )
        assert document["role"] == "user"
        assert document["locked"] is False
        assert document["deleted_at"] is None
        assert document["created_at"] is not None
        assert list(document) == list(DEFAULT_USER_FIELDS)

    def test_apply_defaults_drops_unknown_keys(self):
        document = self.schema.apply_defaults(
            {"username": "a", "email": "a@x.com", "password": "p", "shoe_size": 44}
        )
        assert "shoe_size" not in document

    def test_missing_required_field(self):
        with pytest.raises(RecordValidationError, match="password"):
            self.schema.apply_defaults({"username": "a", "email": "a@x.com"})

    def test_invalid_choice(self):
        with pytest.raises(RecordValidationError, match="role"):
            self.schema.apply_defaults(
                {"username": "a", "email": "a@x.com", "password": "p", "role": "root"}
            )

    def test_prepare_update_never_touches_created_at_or_id(self):
        changes = self.schema.prepare_update({"bio": "hi", "created_at": None, "id": 7})
        assert changes == {"bio": "hi"}

    def test_prepare_update_rejects_clearing_required_field(self):
        with pytest.raises(RecordValidationError, match="email"):
            self.schema.prepare_update({"email": None})

    def test_lookup_field_must_exist(self):
        self.schema.validate_lookup_field("id")
        self.schema.validate_lookup_field("email")
        with pytest.raises(RecordValidationError, match="Unknown lookup field"):
            self.schema.validate_lookup_field("shoe_size")

    def test_fields_are_frozen_copy(self):
        fields = dict(DEFAULT_USER_FIELDS)
        schema = RecordSchema("users", fields)
        fields["extra"] = FieldDefinition()
        assert "extra" not in schema.fields


class TestBuildTable:
    """Generated table shape."""

    def test_columns_follow_field_order_after_id(self):
        table = RecordSchema("members", DEFAULT_USER_FIELDS).build_table(MetaData())
        assert table.name == "members"
        assert [c.name for c in table.columns] == ["id", *DEFAULT_USER_FIELDS]
        assert table.c.id.primary_key

    def test_column_types(self):
        table = RecordSchema("members", DEFAULT_USER_FIELDS).build_table(MetaData())
        assert isinstance(table.c.username.type, String)
        assert isinstance(table.c.login_attempts.type, Integer)
        assert isinstance(table.c.locked.type, Boolean)
        assert isinstance(table.c.created_at.type, UTCDateTime)
        assert isinstance(table.c.privacy_settings.type, JSON)

    def test_unique_and_nullable(self):
        table = RecordSchema("members", DEFAULT_USER_FIELDS).build_table(MetaData())
        assert table.c.username.unique
        assert table.c.email.unique
        assert not table.c.username.nullable
        assert table.c.bio.nullable
