"""Error taxonomy for the JSON:API mapper.

Decode failures (unknown resource types, dangling relationship
identifiers) and transport failures are raised to the caller unchanged;
nothing in the mapper retries or suppresses them.
"""

from __future__ import annotations

from jsonapi_mapper.schemas.jsonapi import JSONAPIError


class JSONAPIMapperError(Exception):
    """Base class for every error raised by this package."""


class UnregisteredTypeError(JSONAPIMapperError, KeyError):
    """A resource type has no entity class in the type registry."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"Resource type '{type_name}' is not registered")

    def __str__(self) -> str:
        return self.args[0]


class MissingIncludedResourceError(JSONAPIMapperError, LookupError):
    """A relationship identifier has no matching resource in ``included``."""

    def __init__(self, type_name: str, id: str, relationship: str | None = None) -> None:
        self.type_name = type_name
        self.id = id
        self.relationship = relationship
        where = f" (relationship '{relationship}')" if relationship else ""
        super().__init__(
            f"Resource {type_name}/{id}{where} is not present in the included collection"
        )


class TransportError(JSONAPIMapperError):
    """An HTTP or network failure while talking to the JSON:API server.

    Args:
        message: Human readable description.
        status_code: HTTP status code, or None for network-level failures.
        errors: JSON:API error objects parsed from the response body.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list[JSONAPIError] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []
