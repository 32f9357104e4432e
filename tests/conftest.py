"""Shared fixtures: an isolated type registry, resource classes and a fake JSON:API server."""

from __future__ import annotations

import json
from datetime import datetime
from types import SimpleNamespace
from typing import Any

import httpx
import pytest

from jsonapi_mapper import JSONAPIClient, Schema, TypeRegistry, define_resource


class FakeServer:
    """Records requests and answers them from a ``(method, path)`` routing table."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, body: Any = None, status: int = 200) -> None:
        self.routes[(method, path)] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get((request.method, request.url.path), (404, None))
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def registry() -> TypeRegistry:
    return TypeRegistry()


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def client(server: FakeServer) -> JSONAPIClient:
    return JSONAPIClient("https://example.com", transport=httpx.MockTransport(server.handler))


@pytest.fixture
def resources(registry: TypeRegistry, client: JSONAPIClient) -> SimpleNamespace:
    """People, Comment and Article resource classes bound to the fake server."""
    people_schema = Schema(
        attributes={
            "first_name": {"wire_name": "first-name"},
            "last_name": {"wire_name": "last-name"},
            "twitter": None,
        },
        relationships={
            "articles": {"related_type": "articles"},
        },
    )
    comment_schema = Schema(
        attributes={"body": None},
        relationships={
            "author": {"related_type": "people"},
            "replies": {"related_type": "comments", "default": list},
        },
    )
    article_schema = Schema(
        attributes={
            "title": None,
            "created_at": {"wire_name": "created-at", "coerce_type": datetime},
            "tags": {"default": list},
        },
        relationships={
            "author": {"related_type": "people"},
            "comments": {"related_type": "comments"},
        },
    )
    return SimpleNamespace(
        People=define_resource("people", people_schema, registry=registry, client=client),
        Comment=define_resource("comments", comment_schema, registry=registry, client=client),
        Article=define_resource("articles", article_schema, registry=registry, client=client),
    )


@pytest.fixture
def compound_document() -> dict[str, Any]:
    """An article with its author and two comments, all in ``included``."""
    return {
        "jsonapi": {"version": "1.0"},
        "data": {
            "type": "articles",
            "id": "1",
            "attributes": {
                "title": "JSON:API paints my bikeshed!",
                "created-at": "2024-05-01T10:00:00Z",
            },
            "relationships": {
                "author": {"data": {"type": "people", "id": "9"}},
                "comments": {
                    "data": [
                        {"type": "comments", "id": "5"},
                        {"type": "comments", "id": "12"},
                    ]
                },
            },
        },
        "included": [
            {
                "type": "people",
                "id": "9",
                "attributes": {"first-name": "Dan", "last-name": "Gebhardt", "twitter": "dgeb"},
            },
            {
                "type": "comments",
                "id": "5",
                "attributes": {"body": "First!"},
                "relationships": {"author": {"data": {"type": "people", "id": "2"}}},
            },
            {
                "type": "comments",
                "id": "12",
                "attributes": {"body": "I like XML better"},
                "relationships": {"author": {"data": {"type": "people", "id": "9"}}},
            },
            {
                "type": "people",
                "id": "2",
                "attributes": {"first-name": "John", "last-name": "Doe", "twitter": None},
            },
        ],
    }
