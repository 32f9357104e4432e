"""Lazy, chainable JSON:API query builder.

A QueryBuilder accumulates query intent (operation, filter, include,
sparse fieldsets, sort, pagination) and only talks to the server when
awaited or when ``exec()`` is called::

    articles = await Article.find({"title": "JSON:API"}).include({"author": True}).limit(10)

The builder is a plain value, not a memoised future: every ``await`` or
``exec()`` issues a new request.
"""

from __future__ import annotations

import logging
from collections.abc import Generator, Mapping
from typing import TYPE_CHECKING, Any, Literal, NamedTuple, Self, TypedDict

from jsonapi_mapper.codec import decode
from jsonapi_mapper.client import JSONAPIClient
from jsonapi_mapper.registry import TypeRegistry
from jsonapi_mapper.schema import RelationshipSpec, Schema

if TYPE_CHECKING:
    from jsonapi_mapper.entity import Entity

logger = logging.getLogger(__name__)

SortOrder = Literal[-1, 1, "asc", "ascending", "desc", "descending"]
Operation = Literal["find", "find_by_id", "find_relationship"]

_DESCENDING = frozenset({-1, "desc", "descending"})


class QueryOptions(TypedDict, total=False):
    op: Operation
    id: str
    related: str
    filter: dict[str, Any]
    include: dict[str, Any]
    fields: dict[str, list[str]]
    sort: dict[str, SortOrder]
    limit: int
    offset: int
    raw: bool
    query_params: dict[str, Any]


class RawResult(NamedTuple):
    """Decoded result together with the untouched response document."""

    result: Any
    body: dict[str, Any] | None


def deep_merge(target: dict[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``source`` into ``target`` and return ``target``.

    Nested mappings merge key by key; any other value from ``source``
    (lists and None included) replaces the one in ``target``. Mappings
    are copied on the way in, so ``target`` never aliases ``source``.
    """
    for key, value in source.items():
        if isinstance(value, Mapping):
            current = target.get(key)
            if isinstance(current, dict):
                deep_merge(current, value)
            else:
                target[key] = deep_merge({}, value)
        else:
            target[key] = value
    return target


class QueryBuilder:
    """Accumulates query options for one resource type and runs them on demand.

    Args:
        entity_cls: Resource class the query targets.
        registry: Registry resolving related schemas; the entity class's by default.
        client: Client issuing the request; the entity class's by default.
    """

    def __init__(
        self,
        entity_cls: type[Entity],
        *,
        registry: TypeRegistry | None = None,
        client: JSONAPIClient | None = None,
    ) -> None:
        self.entity_cls = entity_cls
        self.registry = registry if registry is not None else entity_cls.get_registry()
        self.client = client
        self.options: QueryOptions = {}

    def __repr__(self) -> str:
        return f"<QueryBuilder {self.entity_cls.type} {dict(self.options)!r}>"

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    def get_options(self) -> QueryOptions:
        return self.options

    def set_options(self, options: Mapping[str, Any], overwrite: bool = False) -> Self:
        """Deep-merge ``options`` into the current ones, or replace them."""
        if overwrite:
            self.options = deep_merge({}, options)  # type: ignore[assignment]
        else:
            deep_merge(self.options, options)  # type: ignore[arg-type]
        return self

    def find(self, filter: Mapping[str, Any] | None = None) -> Self:
        return self._with_op({"op": "find"}, filter)

    def find_by_id(self, id: str, filter: Mapping[str, Any] | None = None) -> Self:
        return self._with_op({"op": "find_by_id", "id": id}, filter)

    def get(self, relationship: str, filter: Mapping[str, Any] | None = None) -> Self:
        """Target the related resource(s) ``GET /{type}/{id}/{relationship}``."""
        return self._with_op({"op": "find_relationship", "related": relationship}, filter)

    def _with_op(self, options: dict[str, Any], filter: Mapping[str, Any] | None) -> Self:
        if filter is not None:
            options["filter"] = filter
        return self.set_options(options)

    def filter(self, filter: Mapping[str, Any]) -> Self:
        return self.set_options({"filter": filter})

    def include(self, include: Mapping[str, Any]) -> Self:
        return self.set_options({"include": include})

    def fields(self, fields: Mapping[str, list[str]]) -> Self:
        return self.set_options({"fields": fields})

    def sort(self, sort: Mapping[str, SortOrder]) -> Self:
        return self.set_options({"sort": sort})

    def limit(self, limit: int) -> Self:
        return self.set_options({"limit": limit})

    def offset(self, offset: int) -> Self:
        return self.set_options({"offset": offset})

    def query_params(self, params: Mapping[str, Any]) -> Self:
        """Extra raw query parameters, applied last over the computed ones."""
        return self.set_options({"query_params": params})

    def raw(self) -> Self:
        """Resolve to a ``RawResult`` instead of the decoded entities only."""
        return self.set_options({"raw": True})

    # ------------------------------------------------------------------
    # Parameter building
    # ------------------------------------------------------------------

    def _related_schema(self, spec: RelationshipSpec | None) -> Schema | None:
        if spec is None or spec.related_type is None:
            return None
        return self.registry.get(spec.related_type).schema

    def _target_schema(self) -> Schema | None:
        related = self.options.get("related")
        if self.options.get("op") == "find_relationship" and related:
            return self._related_schema(self.entity_cls.schema.relationships.get(related))
        return self.entity_cls.schema

    def _flatten_include(
        self,
        include: Mapping[str, Any],
        schema: Schema | None,
        prefix: str = "",
    ) -> list[str]:
        paths: list[str] = []
        for key, value in include.items():
            spec = schema.relationships.get(key) if schema is not None else None
            name = (spec.wire_name or key) if spec is not None else key
            path = f"{prefix}.{name}" if prefix else name

            if isinstance(value, bool):
                if value:
                    paths.append(path)
                continue

            sub_paths = self._flatten_include(value or {}, self._related_schema(spec), path)
            paths.extend(sub_paths or [path])
        return paths

    def build_params(self) -> dict[str, Any]:
        """Translate the accumulated options into JSON:API query parameters.

        Field names are replaced with wire names using the target schema
        (the related schema for relationship queries). Nested values are
        left nested; the client flattens them into ``filter[name]`` form.
        """
        options = self.options
        schema = self._target_schema()

        def wire(name: str, on: Schema | None = schema) -> str:
            return on.wire_name(name) if on is not None else name

        params: dict[str, Any] = {}

        if options.get("filter"):
            params["filter"] = {wire(key): value for key, value in options["filter"].items()}

        if options.get("include"):
            include = ",".join(self._flatten_include(options["include"], schema))
            if include:
                params["include"] = include

        if options.get("fields"):
            fields: dict[str, str] = {}
            for type_name, names in options["fields"].items():
                entity_cls = self.registry.lookup(type_name)
                type_schema = entity_cls.schema if entity_cls is not None else None
                if isinstance(names, str):
                    names = names.split(",")
                fields[type_name] = ",".join(wire(name, type_schema) for name in names)
            params["fields"] = fields

        if options.get("sort"):
            params["sort"] = ",".join(
                f"-{wire(key)}" if order in _DESCENDING else wire(key)
                for key, order in options["sort"].items()
            )

        page = {
            key: options[key]  # type: ignore[literal-required]
            for key in ("limit", "offset")
            if options.get(key) is not None
        }
        if page:
            params["page"] = page

        params.update(options.get("query_params") or {})
        return params

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _request_target(self) -> tuple[str, type[Entity] | None]:
        options = self.options
        op = options.get("op")
        resource_type = self.entity_cls.type

        if op == "find":
            return f"/{resource_type}", self.entity_cls
        if op == "find_by_id":
            return f"/{resource_type}/{options['id']}", self.entity_cls
        if op == "find_relationship":
            if options.get("id") is None:
                raise ValueError("Relationship queries need a resource id; call find_by_id() first")
            relationship = self.entity_cls.schema.wire_name(options["related"])
            # The related type may differ from the root type: decode through the registry
            return f"/{resource_type}/{options['id']}/{relationship}", None
        raise ValueError("Query has no operation; call find(), find_by_id() or get() first")

    async def exec(self) -> Any:
        """Issue the request and decode the response.

        Each call issues a new request.

        Returns:
            Entity, list of entities or None; a ``RawResult`` when
            ``raw()`` was requested.

        Raises:
            TransportError: If the request fails.
            ValueError: If no operation was chosen.
        """
        path, entity_cls = self._request_target()
        params = self.build_params()
        client = self.client if self.client is not None else self.entity_cls.get_client()

        body = await client.get(path, params=params)
        logger.debug("Query %s %s returned %s", path, params, "a body" if body else "no body")

        result = decode(body, entity_cls, registry=self.registry) if body is not None else None
        if self.options.get("raw"):
            return RawResult(result=result, body=body)
        return result

    execute = exec

    def __await__(self) -> Generator[Any, None, Any]:
        return self.exec().__await__()
