"""Declarative field definitions for one JSON:API resource type.

A ``Schema`` partitions a resource's fields into attributes and
relationships. Each field may declare the name it carries on the wire,
a default, getter/setter transforms applied on read/write, a
serialization ``transform``, and (for attributes) a coercion type.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

_TRUE_STRINGS = frozenset({"true", "1", "yes"})
_FALSE_STRINGS = frozenset({"false", "0", "no"})


class _FieldSpec(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    wire_name: str | None = None
    default: Any = None
    get: Callable[[Any], Any] | None = None
    set: Callable[[Any], Any] | None = None
    transform: Callable[[Any], Any] | None = None

    def default_value(self) -> Any:
        """Evaluate the default; callables are invoked once per entity."""
        if callable(self.default):
            return self.default()
        return self.default


class AttributeSpec(_FieldSpec):
    """Definition of an attribute field.

    ``coerce_type`` is applied best-effort whenever a value is set or
    decoded, e.g. ``datetime`` turns ISO-8601 strings into datetimes.
    """

    coerce_type: type[Any] | None = None


class RelationshipSpec(_FieldSpec):
    """Definition of a relationship field.

    ``related_type`` names the resource type of the target, used to
    resolve nested include paths through the type registry.
    """

    related_type: str | None = None


def coerce_value(value: Any, coerce_type: type[Any] | None) -> Any:
    """Coerce ``value`` to ``coerce_type`` without ever raising.

    ``None`` and values already of the target type pass through. Values
    that cannot be converted are returned unchanged.
    """
    if coerce_type is None or value is None or isinstance(value, coerce_type):
        return value
    try:
        if coerce_type is datetime:
            if isinstance(value, str):
                return datetime.fromisoformat(_normalize_iso(value))
            if isinstance(value, (int, float)):
                return datetime.fromtimestamp(value)
            return value
        if coerce_type is date:
            return date.fromisoformat(value) if isinstance(value, str) else value
        if coerce_type is bool:
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in _TRUE_STRINGS:
                    return True
                if lowered in _FALSE_STRINGS:
                    return False
                return value
            return bool(value)
        return coerce_type(value)
    except (TypeError, ValueError, OverflowError, OSError):
        return value


def _normalize_iso(value: str) -> str:
    # UTC designator, either case
    if value.endswith(("Z", "z")):
        return value[:-1] + "+00:00"
    return value


def _as_spec(spec_cls: type[_FieldSpec], value: Any) -> Any:
    if isinstance(value, spec_cls):
        return value
    if value is None:
        return spec_cls()
    if isinstance(value, Mapping):
        return spec_cls(**value)
    raise TypeError(f"Expected {spec_cls.__name__} or mapping, got {type(value).__name__}")


class Schema:
    """Attribute and relationship definitions of one resource type.

    Every field is declared in exactly one of the two sections. Adding a
    field to one section drops any same-named field from the other, so
    field names stay unique across the schema.

    Args:
        attributes: Mapping of field name to ``AttributeSpec`` (or a dict
            of its keyword arguments, or None for a plain attribute).
        relationships: Mapping of field name to ``RelationshipSpec`` (same
            accepted forms).
    """

    def __init__(
        self,
        attributes: Mapping[str, AttributeSpec | Mapping[str, Any] | None] | None = None,
        relationships: Mapping[str, RelationshipSpec | Mapping[str, Any] | None] | None = None,
    ) -> None:
        self.attributes: dict[str, AttributeSpec] = {}
        self.relationships: dict[str, RelationshipSpec] = {}
        self.add(attributes=attributes, relationships=relationships)

    def add(
        self,
        attributes: Mapping[str, AttributeSpec | Mapping[str, Any] | None] | None = None,
        relationships: Mapping[str, RelationshipSpec | Mapping[str, Any] | None] | None = None,
    ) -> Schema:
        """Shallow-merge more field definitions; later definitions win."""
        for name, spec in (attributes or {}).items():
            self.relationships.pop(name, None)
            self.attributes[name] = _as_spec(AttributeSpec, spec)
        for name, spec in (relationships or {}).items():
            self.attributes.pop(name, None)
            self.relationships[name] = _as_spec(RelationshipSpec, spec)
        return self

    def field(self, name: str) -> AttributeSpec | RelationshipSpec | None:
        if name in self.attributes:
            return self.attributes[name]
        return self.relationships.get(name)

    def fields(self) -> list[str]:
        return [*self.attributes, *self.relationships]

    def is_attribute(self, name: str) -> bool:
        return name in self.attributes

    def is_relationship(self, name: str) -> bool:
        return name in self.relationships

    def wire_name(self, name: str) -> str:
        """Return the wire name of a field, or ``name`` itself if undeclared."""
        spec = self.field(name)
        if spec is None or spec.wire_name is None:
            return name
        return spec.wire_name

    def attribute_for_wire_name(self, wire_name: str) -> str:
        """Return the attribute whose wire name is ``wire_name`` (raw key if unmapped)."""
        return _field_for_wire_name(self.attributes, wire_name)

    def relationship_for_wire_name(self, wire_name: str) -> str:
        """Return the relationship whose wire name is ``wire_name`` (raw key if unmapped)."""
        return _field_for_wire_name(self.relationships, wire_name)

    def __contains__(self, name: object) -> bool:
        return name in self.attributes or name in self.relationships

    def __repr__(self) -> str:
        return (
            f"Schema(attributes={list(self.attributes)}, "
            f"relationships={list(self.relationships)})"
        )


def _field_for_wire_name(section: Mapping[str, _FieldSpec], wire_name: str) -> str:
    for name, spec in section.items():
        if (spec.wire_name or name) == wire_name:
            return name
    return wire_name
