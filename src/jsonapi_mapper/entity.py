"""Entity base class and resource factory.

An Entity is one addressable JSON:API resource: a ``(type, id)``
identity, a backing store of field values keyed by schema field name,
an ordered set of field names modified since construction or since the
last save, and an ``is_new`` flag.

Resource classes are produced by ``define_resource()`` or declared with
class keywords::

    class Article(Entity, type="articles", schema=ArticleSchema):
        pass

Fields are readable and writable as attributes (``article.title``);
attribute access dispatches through the schema field map to ``get()``
and ``set()``.
"""

from __future__ import annotations

import logging
import types
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, ClassVar, Self

from jsonapi_mapper.client import JSONAPIClient, get_client
from jsonapi_mapper.registry import TypeRegistry, get_registry
from jsonapi_mapper.schema import Schema, coerce_value

if TYPE_CHECKING:
    from jsonapi_mapper.query import QueryBuilder

logger = logging.getLogger(__name__)


class Entity:
    """Base class of every resource class.

    Args:
        obj: Initial values keyed by field name. ``type`` and ``id`` keys
            set the identity instead of a field. Nothing is marked modified.
        is_new: False for entities that already exist on the server.
    """

    type: ClassVar[str] = ""
    schema: ClassVar[Schema] = Schema()
    registry: ClassVar[TypeRegistry | None] = None
    client: ClassVar[JSONAPIClient | None] = None

    id: str | None
    is_new: bool

    def __init_subclass__(
        cls,
        type: str | None = None,
        schema: Schema | None = None,
        registry: TypeRegistry | None = None,
        client: JSONAPIClient | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init_subclass__(**kwargs)
        if schema is not None:
            cls.schema = schema
        if registry is not None:
            cls.registry = registry
        if client is not None:
            cls.client = client
        if type is not None:
            cls.type = type
        if cls.type:
            cls.get_registry().register(cls.type, cls)

    def __init__(self, obj: Mapping[str, Any] | None = None, *, is_new: bool = True) -> None:
        object.__setattr__(self, "_fields", {})
        object.__setattr__(self, "_modified", [])
        self.id = None
        self.is_new = is_new

        schema = self.schema
        for name, spec in [*schema.attributes.items(), *schema.relationships.items()]:
            if spec.default is not None:
                self.set(name, spec.default_value(), skip_mark_modified=True)

        for key, value in (obj or {}).items():
            if key == "type":
                if value != self.type:
                    object.__setattr__(self, "type", value)
            elif key == "id":
                self.id = value
            else:
                self.set(key, value, skip_mark_modified=True)

    # ------------------------------------------------------------------
    # Class-level helpers
    # ------------------------------------------------------------------

    @classmethod
    def get_registry(cls) -> TypeRegistry:
        return cls.registry if cls.registry is not None else get_registry()

    @classmethod
    def get_client(cls) -> JSONAPIClient:
        return cls.client if cls.client is not None else get_client()

    @classmethod
    def query(cls) -> QueryBuilder:
        """Start an empty query against this resource type."""
        from jsonapi_mapper.query import QueryBuilder

        return QueryBuilder(cls)

    @classmethod
    def find(cls, filter: Mapping[str, Any] | None = None) -> QueryBuilder:
        """Query the collection ``GET /{type}``."""
        return cls.query().find(filter)

    @classmethod
    def find_by_id(cls, id: str, filter: Mapping[str, Any] | None = None) -> QueryBuilder:
        """Query a single resource ``GET /{type}/{id}``."""
        return cls.query().find_by_id(id, filter)

    @classmethod
    def from_jsonapi(cls, document: Mapping[str, Any]) -> Self | list[Self] | None:
        """Decode a JSON:API document into instances of this class."""
        from jsonapi_mapper.codec import decode

        return decode(document, cls, registry=cls.get_registry())

    # ------------------------------------------------------------------
    # Attribute-style field access
    # ------------------------------------------------------------------

    def __getattr__(self, name: str) -> Any:
        # Only reached when regular lookup fails
        if not name.startswith("_") and name in self.schema:
            return self.get(name)
        raise AttributeError(f"{self.__class__.__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self.schema:
            self.set(name, value)
        else:
            object.__setattr__(self, name, value)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.type}/{self.id}>"

    # ------------------------------------------------------------------
    # Field store
    # ------------------------------------------------------------------

    def get(self, field: str, *, getter: bool = True) -> Any:
        """Return the stored value of ``field``, passed through its getter.

        Unset fields read as None.
        """
        value = self._fields.get(field)
        if getter:
            spec = self.schema.field(field)
            if spec is not None and spec.get is not None:
                value = spec.get(value)
        return value

    def set(
        self,
        field: str,
        value: Any,
        *,
        setter: bool = True,
        skip_mark_modified: bool = False,
    ) -> Self:
        """Store ``value`` under ``field``.

        With ``setter`` enabled, attribute values are coerced to their
        ``coerce_type`` and relationship values given as plain dicts of a
        registered type are promoted to entities, before the field's
        ``set`` transform runs.
        """
        schema = self.schema
        if setter:
            if field in schema.attributes:
                spec = schema.attributes[field]
                value = coerce_value(value, spec.coerce_type)
                if spec.set is not None:
                    value = spec.set(value)
            elif field in schema.relationships:
                rel_spec = schema.relationships[field]
                value = self._hydrate(value)
                if rel_spec.set is not None:
                    value = rel_spec.set(value)

        self._fields[field] = value
        if not skip_mark_modified:
            self.mark_modified(field)
        return self

    def assign(self, obj: Mapping[str, Any]) -> Self:
        """Set every value of ``obj`` that differs from the current one."""
        for key, value in obj.items():
            if key == "type":
                if self.type != value:
                    object.__setattr__(self, "type", value)
            elif key == "id":
                if self.id != value:
                    self.id = value
            elif self.get(key) != value:
                self.set(key, value)
        return self

    def _hydrate(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return self._promote(value)
        if isinstance(value, list):
            return [self._promote(item) if isinstance(item, Mapping) else item for item in value]
        return value

    def _promote(self, value: Mapping[str, Any]) -> Any:
        entity_cls = self.get_registry().lookup(value.get("type"))
        if entity_cls is None:
            return value
        if "attributes" in value or "relationships" in value:
            value = _flatten_resource(entity_cls.schema, value)
        return entity_cls(value, is_new=value.get("id") is None)

    # ------------------------------------------------------------------
    # Dirty tracking
    # ------------------------------------------------------------------

    def mark_modified(self, field: str) -> None:
        if field not in self._modified:
            self._modified.append(field)

    def unmark_modified(self, field: str) -> None:
        if field in self._modified:
            self._modified.remove(field)

    def is_modified(self, field: str | None = None) -> bool:
        """Whether ``field`` (or, without argument, any field) is modified."""
        if field is not None:
            return field in self._modified
        return bool(self._modified)

    def modified_paths(self) -> list[str]:
        return list(self._modified)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def copy(self, obj: Mapping[str, Any] | None = None) -> Self:
        """Return a new entity sharing identity, field values and modified set.

        The field store and modified set are shallow copies; related
        entities are shared, not duplicated.
        """
        clone = self.__class__(is_new=self.is_new)
        object.__setattr__(clone, "_fields", dict(self._fields))
        object.__setattr__(clone, "_modified", list(self._modified))
        if "type" in self.__dict__:
            object.__setattr__(clone, "type", self.type)
        clone.id = self.id
        if obj:
            clone.assign(obj)
        return clone

    def identifier(self) -> dict[str, Any]:
        """Return the ``{type, id}`` resource identifier."""
        return {"type": self.type, "id": self.id}

    def to_object(self, *, transform: bool = False) -> dict[str, Any]:
        """Return a plain dict of identity and every declared field.

        Related entities are expanded recursively. With ``transform``,
        values go through each field's ``transform`` (dates become
        ISO-8601 strings by default). An entity already being expanded
        higher up the graph is emitted as its identifier.
        """
        return self._to_object(transform, frozenset())

    def _to_object(self, transform: bool, ancestors: frozenset[int]) -> dict[str, Any]:
        from jsonapi_mapper.codec import serialize_value

        ancestors = ancestors | {id(self)}
        obj: dict[str, Any] = {"type": self.type, "id": self.id}

        for name, spec in self.schema.attributes.items():
            value = self.get(name)
            if transform:
                value = serialize_value(value, spec)
            obj[name] = _shallow_copy(value)

        for name, rel_spec in self.schema.relationships.items():
            value = self.get(name)
            if transform and rel_spec.transform is not None:
                value = rel_spec.transform(value)
            obj[name] = _expand(value, transform, ancestors)

        return obj

    def to_json(self) -> dict[str, Any]:
        """JSON-ready representation: ``to_object(transform=True)``."""
        return self.to_object(transform=True)

    def to_jsonapi(self) -> dict[str, Any]:
        """Encode as a JSON:API request document."""
        from jsonapi_mapper.codec import encode

        return encode(self)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save(self) -> Self:
        """Create (POST) or partially update (PATCH) this resource.

        New entities send every declared field; persisted entities send
        only modified fields. Fields returned by the server are copied
        onto this instance, then ``is_new`` and the modified set are
        cleared. Relationship linkage the response does not resolve keeps
        its local value.

        Raises:
            TransportError: If the request fails. Local state is unchanged.
        """
        from jsonapi_mapper.codec import apply_saved, encode

        client = self.get_client()
        body = encode(self)
        if self.is_new:
            response = await client.post(f"/{self.type}", json=body)
        else:
            response = await client.patch(f"/{self.type}/{self.id}", json=body)

        if response is not None:
            apply_saved(self, response)

        self.is_new = False
        self._modified.clear()
        logger.debug("Saved %s/%s", self.type, self.id)
        return self

    async def delete(self) -> None:
        """Delete this resource on the server with ``DELETE /{type}/{id}``."""
        if self.id is None:
            raise ValueError(f"Cannot delete unsaved {self.type} resource without an id")
        await self.get_client().delete(f"/{self.type}/{self.id}")
        logger.debug("Deleted %s/%s", self.type, self.id)


def _shallow_copy(value: Any) -> Any:
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, list):
        return list(value)
    return value


def _expand(value: Any, transform: bool, ancestors: frozenset[int]) -> Any:
    if isinstance(value, Entity):
        if id(value) in ancestors:
            return value.identifier()
        return value._to_object(transform, ancestors)
    if isinstance(value, list):
        return [_expand(item, transform, ancestors) for item in value]
    return _shallow_copy(value)


def _flatten_resource(schema: Schema, resource: Mapping[str, Any]) -> dict[str, Any]:
    obj: dict[str, Any] = {"type": resource["type"]}
    if resource.get("id") is not None:
        obj["id"] = resource["id"]
    for wire_name, value in (resource.get("attributes") or {}).items():
        obj[schema.attribute_for_wire_name(wire_name)] = value
    for wire_name, rel in (resource.get("relationships") or {}).items():
        if isinstance(rel, Mapping) and "data" in rel:
            obj[schema.relationship_for_wire_name(wire_name)] = rel["data"]
    return obj


def define_resource(
    type_name: str,
    schema: Schema,
    *,
    registry: TypeRegistry | None = None,
    client: JSONAPIClient | None = None,
    name: str | None = None,
) -> type[Entity]:
    """Create and register an Entity subclass for ``type_name``.

    Args:
        type_name: JSON:API resource type, e.g. ``"articles"``.
        schema: Field definitions of the resource.
        registry: Registry to register in; the process-wide one by default.
        client: Client used by queries and saves; the default client otherwise.
        name: Class name; derived from ``type_name`` when omitted.
    """
    class_name = name or "".join(part.capitalize() for part in type_name.replace("-", "_").split("_"))
    return types.new_class(
        class_name or "Resource",
        (Entity,),
        {"type": type_name, "schema": schema, "registry": registry, "client": client},
    )
