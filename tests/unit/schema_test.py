"""Unit tests for schema definitions and value coercion."""

from datetime import date, datetime, timezone

import pytest

from jsonapi_mapper import AttributeSpec, RelationshipSpec, Schema
from jsonapi_mapper.schema import coerce_value


class TestSchemaDefinition:
    """Tests for building and extending schemas."""

    def test_accepts_specs_dicts_and_none(self) -> None:
        """Test that every accepted definition form becomes a spec object."""
        schema = Schema(
            attributes={
                "title": None,
                "slug": {"wire_name": "url-slug"},
                "body": AttributeSpec(default=""),
            },
            relationships={"author": {"related_type": "people"}},
        )
        assert all(isinstance(spec, AttributeSpec) for spec in schema.attributes.values())
        assert isinstance(schema.relationships["author"], RelationshipSpec)
        assert schema.fields() == ["title", "slug", "body", "author"]

    def test_add_overrides_same_named_fields(self) -> None:
        """Test that later definitions win over earlier ones."""
        schema = Schema(attributes={"title": {"wire_name": "headline"}})
        schema.add(attributes={"title": {"wire_name": "name"}, "body": None})
        assert schema.wire_name("title") == "name"
        assert "body" in schema

    def test_field_names_stay_unique_across_sections(self) -> None:
        """Test that redeclaring an attribute as a relationship moves it."""
        schema = Schema(attributes={"author": None})
        schema.add(relationships={"author": {"related_type": "people"}})
        assert not schema.is_attribute("author")
        assert schema.is_relationship("author")

    def test_add_returns_schema_for_chaining(self) -> None:
        schema = Schema()
        assert schema.add(attributes={"title": None}) is schema

    def test_rejects_unknown_definition_types(self) -> None:
        with pytest.raises(TypeError):
            Schema(attributes={"title": 42})  # type: ignore[dict-item]


class TestWireNames:
    """Tests for wire-name mapping in both directions."""

    @pytest.fixture
    def schema(self) -> Schema:
        return Schema(
            attributes={"first_name": {"wire_name": "first-name"}, "twitter": None},
            relationships={"home_town": {"wire_name": "home-town"}},
        )

    def test_wire_name_defaults_to_field_name(self, schema: Schema) -> None:
        assert schema.wire_name("twitter") == "twitter"

    def test_wire_name_of_mapped_field(self, schema: Schema) -> None:
        assert schema.wire_name("first_name") == "first-name"
        assert schema.wire_name("home_town") == "home-town"

    def test_wire_name_of_undeclared_field(self, schema: Schema) -> None:
        assert schema.wire_name("nickname") == "nickname"

    def test_reverse_lookup(self, schema: Schema) -> None:
        assert schema.attribute_for_wire_name("first-name") == "first_name"
        assert schema.relationship_for_wire_name("home-town") == "home_town"

    def test_reverse_lookup_falls_back_to_raw_key(self, schema: Schema) -> None:
        assert schema.attribute_for_wire_name("age") == "age"


class TestDefaults:
    def test_callable_default_is_evaluated_each_time(self) -> None:
        spec = AttributeSpec(default=list)
        first = spec.default_value()
        second = spec.default_value()
        assert first == [] and second == []
        assert first is not second

    def test_plain_default(self) -> None:
        assert AttributeSpec(default="draft").default_value() == "draft"


class TestCoerceValue:
    """Tests for best-effort type coercion."""

    def test_parses_iso_datetime_with_z_suffix(self) -> None:
        value = coerce_value("2024-05-01T10:00:00Z", datetime)
        assert value == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

    def test_parses_iso_date(self) -> None:
        assert coerce_value("2024-05-01", date) == date(2024, 5, 1)

    def test_invalid_datetime_is_left_unchanged(self) -> None:
        assert coerce_value("not a date", datetime) == "not a date"

    def test_none_passes_through(self) -> None:
        assert coerce_value(None, datetime) is None

    def test_values_of_target_type_pass_through(self) -> None:
        now = datetime.now()
        assert coerce_value(now, datetime) is now

    def test_numeric_coercion(self) -> None:
        assert coerce_value("3", int) == 3
        assert coerce_value("x", int) == "x"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("False", False), ("1", True), ("maybe", "maybe"), (0, False)],
    )
    def test_bool_coercion(self, raw: object, expected: object) -> None:
        assert coerce_value(raw, bool) == expected

    def test_without_coerce_type_value_is_unchanged(self) -> None:
        assert coerce_value("3", None) == "3"
