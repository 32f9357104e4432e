"""JSON:API wire document models using Pydantic v2.

Describes the subset of the JSON:API document structure this client
consumes and produces: resources, resource identifiers, relationship
objects, compound documents with ``included`` members, and error
documents returned by the server.

Unknown members are preserved (``extra="allow"``) so documents from
servers using extensions still validate.

Reference: https://jsonapi.org/format/
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class JSONAPIIdentifier(_WireModel):
    """A resource identifier object: the minimal ``{type, id}`` reference."""

    type: str
    id: str


class JSONAPIRelationship(_WireModel):
    """A relationship object.

    ``data`` is optional: a relationship may carry only ``links`` or
    ``meta``. An explicit ``None`` means an empty to-one relationship.
    """

    data: JSONAPIIdentifier | list[JSONAPIIdentifier] | None = None
    links: dict[str, Any] | None = None
    meta: dict[str, Any] | None = None


class JSONAPIResource(_WireModel):
    """A single JSON:API resource object.

    ``id`` is absent for resources created client-side that have not
    been persisted yet.
    """

    type: str
    id: str | None = None
    attributes: dict[str, Any] | None = None
    relationships: dict[str, JSONAPIRelationship] | None = None
    links: dict[str, Any] | None = None
    meta: dict[str, Any] | None = None


class JSONAPIDocument(_WireModel):
    """A top-level JSON:API document, single or collection, optionally compound."""

    jsonapi: dict[str, Any] | None = None
    data: JSONAPIResource | list[JSONAPIResource] | None = None
    included: list[JSONAPIResource] | None = None
    meta: dict[str, Any] | None = None
    links: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class JSONAPIError(_WireModel):
    """A single JSON:API error object."""

    status: str | None = None
    code: str | None = None
    title: str | None = None
    detail: str | None = None
    source: dict[str, Any] | None = None


class JSONAPIErrorResponse(_WireModel):
    """JSON:API response envelope containing a list of errors."""

    errors: list[JSONAPIError]
