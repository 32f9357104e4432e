"""Typed client-side data mapper for JSON:API services."""

from jsonapi_mapper.client import JSONAPIClient, connect, disconnect, flatten_params, get_client
from jsonapi_mapper.codec import decode, encode
from jsonapi_mapper.config import Settings, get_settings
from jsonapi_mapper.entity import Entity, define_resource
from jsonapi_mapper.exceptions import (
    JSONAPIMapperError,
    MissingIncludedResourceError,
    TransportError,
    UnregisteredTypeError,
)
from jsonapi_mapper.query import QueryBuilder, QueryOptions, RawResult, deep_merge
from jsonapi_mapper.registry import TypeRegistry, get_registry
from jsonapi_mapper.schema import AttributeSpec, RelationshipSpec, Schema

__all__ = [
    "AttributeSpec",
    "Entity",
    "JSONAPIClient",
    "JSONAPIMapperError",
    "MissingIncludedResourceError",
    "QueryBuilder",
    "QueryOptions",
    "RawResult",
    "RelationshipSpec",
    "Schema",
    "Settings",
    "TransportError",
    "TypeRegistry",
    "UnregisteredTypeError",
    "connect",
    "decode",
    "deep_merge",
    "disconnect",
    "define_resource",
    "encode",
    "flatten_params",
    "get_client",
    "get_registry",
    "get_settings",
]
