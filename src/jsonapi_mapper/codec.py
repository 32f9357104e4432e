"""Conversion between JSON:API documents and entity graphs.

Decoding rebuilds an entity graph from a (possibly compound) document:
every relationship identifier is looked up among the primary and
``included`` resources by ``(type, id)`` and decoded through the type
registry. Each resource is decoded once per call, so shared and cyclic
references resolve to the same entity instance.

An identifier with no matching resource is a ``MissingIncludedResourceError``
when the document has no ``included`` member at all. When ``included`` is
present but incomplete, the unresolved identifier decodes to None (or is
left out of a to-many list).

Encoding produces a request document for create/update. Persisted
entities only carry their modified fields, which makes every PATCH a
partial update.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any, Literal

from jsonapi_mapper.config import get_settings
from jsonapi_mapper.entity import Entity
from jsonapi_mapper.exceptions import MissingIncludedResourceError
from jsonapi_mapper.registry import TypeRegistry, get_registry
from jsonapi_mapper.schema import AttributeSpec, RelationshipSpec, Schema, coerce_value
from jsonapi_mapper.schemas.jsonapi import JSONAPIDocument, JSONAPIIdentifier, JSONAPIResource

logger = logging.getLogger(__name__)

# raise: unresolved linkage fails the decode
# null: unresolved linkage decodes to None, dropped from lists
# keep: unresolved relationships are left untouched and recorded
MissingPolicy = Literal["raise", "null", "keep"]


def serialize_value(value: Any, spec: AttributeSpec | RelationshipSpec | None) -> Any:
    """Return the wire form of a field value.

    The field's ``transform`` wins; otherwise dates and datetimes become
    ISO-8601 strings and every other value passes through.
    """
    if spec is not None and spec.transform is not None:
        return spec.transform(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def _linkage(value: Any) -> dict[str, Any] | list[dict[str, Any]] | None:
    if isinstance(value, list):
        return [_identifier(item) for item in value if item is not None]
    if not value:
        return None
    return _identifier(value)


def _identifier(value: Any) -> dict[str, Any]:
    if isinstance(value, Entity):
        return value.identifier()
    if isinstance(value, Mapping):
        return {"type": value.get("type"), "id": value.get("id")}
    raise TypeError(f"Cannot build a resource identifier from {type(value).__name__}")


def encode(entity: Entity) -> dict[str, Any]:
    """Encode ``entity`` as a JSON:API request document.

    A new entity carries every declared field; a persisted one only the
    fields in its modified set. Relationships are reduced to resource
    identifiers (``{"data": None}`` when empty).
    """
    schema = entity.schema
    send_all = entity.is_new

    attributes: dict[str, Any] = {}
    for name, spec in schema.attributes.items():
        if not send_all and not entity.is_modified(name):
            continue
        attributes[spec.wire_name or name] = serialize_value(entity.get(name), spec)

    relationships: dict[str, Any] = {}
    for name, rel_spec in schema.relationships.items():
        if not send_all and not entity.is_modified(name):
            continue
        relationships[rel_spec.wire_name or name] = {"data": _linkage(entity.get(name))}

    data: dict[str, Any] = {"type": entity.type}
    if entity.id is not None:
        data["id"] = entity.id
    data["attributes"] = attributes
    data["relationships"] = relationships

    return {
        "jsonapi": {"version": get_settings().jsonapi_version},
        "data": data,
    }


class _GraphDecoder:
    """Decodes resources of one document against a shared resource pool."""

    def __init__(
        self,
        document: JSONAPIDocument,
        registry: TypeRegistry,
        missing: MissingPolicy | None = None,
    ) -> None:
        self.registry = registry
        self.missing: MissingPolicy = missing or ("raise" if document.included is None else "null")
        self.pool: dict[tuple[str, str], JSONAPIResource] = {}
        self.decoded: dict[tuple[str, str], Entity] = {}
        self.kept: list[tuple[Entity, str]] = []

        primary = document.data if isinstance(document.data, list) else [document.data]
        for resource in [*primary, *(document.included or [])]:
            if resource is not None and resource.id is not None:
                self.pool.setdefault((resource.type, resource.id), resource)

    def decode_resource(
        self,
        resource: JSONAPIResource,
        entity_cls: type[Entity] | None = None,
    ) -> Entity:
        key = (resource.type, resource.id) if resource.id is not None else None
        if key is not None and key in self.decoded:
            return self.decoded[key]

        cls = entity_cls or self.registry.get(resource.type)
        entity = cls(is_new=False)
        if resource.id is not None:
            entity.id = resource.id
        if key is not None:
            self.decoded[key] = entity

        schema = cls.schema
        for wire_name, value in (resource.attributes or {}).items():
            name = schema.attribute_for_wire_name(wire_name)
            spec = schema.attributes.get(name)
            if spec is not None:
                value = coerce_value(value, spec.coerce_type)
            entity.set(name, value, skip_mark_modified=True)

        for wire_name, relationship in (resource.relationships or {}).items():
            if "data" not in relationship.model_fields_set:
                continue
            name = schema.relationship_for_wire_name(wire_name)
            linkage = relationship.data
            unresolved = False
            if isinstance(linkage, list):
                resolved = [self.resolve(identifier, name) for identifier in linkage]
                value = [item for item in resolved if item is not None]
                unresolved = len(value) < len(resolved)
            elif linkage is None:
                value = None
            else:
                value = self.resolve(linkage, name)
                unresolved = value is None

            if unresolved and self.missing == "keep":
                self.kept.append((entity, name))
                continue
            entity.set(name, value, skip_mark_modified=True)

        return entity

    def resolve(self, identifier: JSONAPIIdentifier, relationship: str) -> Entity | None:
        key = (identifier.type, identifier.id)
        if key in self.decoded:
            return self.decoded[key]
        resource = self.pool.get(key)
        if resource is None:
            if self.missing == "raise":
                raise MissingIncludedResourceError(identifier.type, identifier.id, relationship)
            logger.debug(
                "Relationship '%s' links %s/%s which is not included",
                relationship,
                identifier.type,
                identifier.id,
            )
            return None
        return self.decode_resource(resource)


def _as_document(document: Mapping[str, Any] | JSONAPIDocument) -> JSONAPIDocument:
    if isinstance(document, JSONAPIDocument):
        return document
    return JSONAPIDocument.model_validate(document)


def decode(
    document: Mapping[str, Any] | JSONAPIDocument,
    entity_cls: type[Entity] | None = None,
    *,
    registry: TypeRegistry | None = None,
) -> Any:
    """Decode a JSON:API document into entities.

    Args:
        document: The response body, as a dict or ``JSONAPIDocument``.
        entity_cls: Class for the primary resource(s); resolved from each
            resource's ``type`` through the registry when omitted.
        registry: Registry resolving related and included resource types.

    Returns:
        A list of entities for collection documents, one entity for
        single-resource documents, None when ``data`` is null or absent.
        Decoded entities are persisted (``is_new`` False) and unmodified.

    Raises:
        UnregisteredTypeError: A resource type has no registered class.
        MissingIncludedResourceError: A relationship identifier has no
            matching primary resource and the document has no ``included``.
    """
    if registry is None:
        registry = entity_cls.get_registry() if entity_cls is not None else get_registry()
    doc = _as_document(document)
    decoder = _GraphDecoder(doc, registry)

    if isinstance(doc.data, list):
        return [decoder.decode_resource(resource, entity_cls) for resource in doc.data]
    if doc.data is None:
        return None
    return decoder.decode_resource(doc.data, entity_cls)


def present_fields(document: Mapping[str, Any] | JSONAPIDocument, schema: Schema) -> list[str]:
    """Field names carried by a single-resource document's primary data."""
    doc = _as_document(document)
    if not isinstance(doc.data, JSONAPIResource):
        return []
    names = [schema.attribute_for_wire_name(wire) for wire in doc.data.attributes or {}]
    names.extend(
        schema.relationship_for_wire_name(wire)
        for wire, relationship in (doc.data.relationships or {}).items()
        if "data" in relationship.model_fields_set
    )
    return names


def apply_saved(entity: Entity, document: Mapping[str, Any] | JSONAPIDocument) -> None:
    """Copy the fields carried by a create/update response onto ``entity``.

    Servers commonly answer with relationship linkage and no ``included``
    member; relationships whose linkage cannot be resolved keep their
    local value instead of failing the save.
    """
    doc = _as_document(document)
    if not isinstance(doc.data, JSONAPIResource):
        return
    decoder = _GraphDecoder(doc, entity.get_registry(), missing="keep")
    saved = decoder.decode_resource(doc.data, entity.__class__)
    kept = {name for owner, name in decoder.kept if owner is saved}

    if saved.id is not None:
        entity.id = saved.id
    for name in present_fields(doc, entity.schema):
        if name not in kept:
            entity._fields[name] = saved._fields.get(name)
