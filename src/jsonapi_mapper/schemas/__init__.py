"""Pydantic models for JSON:API wire documents."""

from jsonapi_mapper.schemas.jsonapi import (
    JSONAPIDocument,
    JSONAPIError,
    JSONAPIErrorResponse,
    JSONAPIIdentifier,
    JSONAPIRelationship,
    JSONAPIResource,
)

__all__ = [
    "JSONAPIDocument",
    "JSONAPIError",
    "JSONAPIErrorResponse",
    "JSONAPIIdentifier",
    "JSONAPIRelationship",
    "JSONAPIResource",
]
