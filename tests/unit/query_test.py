"""Unit tests for the lazy query builder."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from jsonapi_mapper import QueryBuilder, RawResult, deep_merge

from conftest import FakeServer


class TestDeepMerge:
    """Tests for the option merge policy."""

    def test_nested_mappings_merge(self) -> None:
        target = {"filter": {"title": "a"}}
        deep_merge(target, {"filter": {"author": "b"}})
        assert target == {"filter": {"title": "a", "author": "b"}}

    def test_later_scalars_win(self) -> None:
        assert deep_merge({"limit": 1, "filter": {"a": 1}}, {"limit": 2, "filter": {"a": 3}}) == {
            "limit": 2,
            "filter": {"a": 3},
        }

    def test_lists_and_none_replace(self) -> None:
        merged = deep_merge({"fields": {"people": ["a", "b"]}, "sort": {"x": 1}}, {"fields": {"people": ["c"]}, "sort": None})
        assert merged == {"fields": {"people": ["c"]}, "sort": None}

    def test_source_mappings_are_copied(self) -> None:
        source = {"filter": {"title": "a"}}
        target = deep_merge({}, source)
        target["filter"]["title"] = "changed"
        assert source == {"filter": {"title": "a"}}


class TestOptions:
    def test_configuration_calls_accumulate(self, resources: SimpleNamespace) -> None:
        query = resources.Article.find({"title": "a"}).filter({"tags": "news"}).limit(5)
        assert query.get_options() == {
            "op": "find",
            "filter": {"title": "a", "tags": "news"},
            "limit": 5,
        }

    def test_find_without_filter_keeps_accumulated_filter(self, resources: SimpleNamespace) -> None:
        query = resources.Article.query().filter({"title": "a"}).find()
        assert query.get_options()["filter"] == {"title": "a"}

    def test_overwrite_replaces_options(self, resources: SimpleNamespace) -> None:
        query = resources.Article.find({"title": "a"}).set_options({"op": "find", "limit": 1}, overwrite=True)
        assert query.get_options() == {"op": "find", "limit": 1}

    def test_chaining_returns_the_same_builder(self, resources: SimpleNamespace) -> None:
        query = resources.Article.query()
        assert query.include({"author": True}).sort({"title": 1}).raw() is query


class TestBuildParams:
    """Tests for translating options into wire query parameters."""

    def test_filter_uses_wire_names(self, resources: SimpleNamespace) -> None:
        params = resources.Article.find({"created_at": {"gt": "2024-01-01"}, "title": "a"}).build_params()
        assert params == {"filter": {"created-at": {"gt": "2024-01-01"}, "title": "a"}}

    def test_include_flattens_nested_paths(self, resources: SimpleNamespace) -> None:
        params = resources.Article.find().include({"author": True, "comments": {"replies": True}}).build_params()
        assert params["include"] == "author,comments.replies"

    def test_include_false_leaf_is_excluded(self, resources: SimpleNamespace) -> None:
        params = resources.Article.find().include({"author": False, "comments": {"author": True}}).build_params()
        assert params["include"] == "comments.author"

    def test_include_nested_without_paths_keeps_parent(self, resources: SimpleNamespace) -> None:
        params = resources.Article.find().include({"comments": {"author": False}}).build_params()
        assert params["include"] == "comments"

    def test_include_uses_nested_wire_names(self, resources: SimpleNamespace) -> None:
        resources.Comment.schema.add(relationships={"author": {"related_type": "people", "wire_name": "writer"}})
        params = resources.Article.find().include({"comments": {"author": True}}).build_params()
        assert params["include"] == "comments.writer"

    def test_only_excluded_includes_produce_no_param(self, resources: SimpleNamespace) -> None:
        params = resources.Article.find().include({"author": False}).build_params()
        assert "include" not in params

    def test_fields_use_each_types_wire_names(self, resources: SimpleNamespace) -> None:
        params = (
            resources.Article.find()
            .fields({"articles": ["title", "created_at"], "people": ["first_name"], "robots": ["model_no"]})
            .build_params()
        )
        assert params["fields"] == {
            "articles": "title,created-at",
            "people": "first-name",
            "robots": "model_no",
        }

    def test_sort_preserves_order_and_direction(self, resources: SimpleNamespace) -> None:
        params = resources.Article.find().sort({"createdAt": -1, "title": 1}).build_params()
        assert params["sort"] == "-createdAt,title"

    @pytest.mark.parametrize(
        ("order", "expected"),
        [(-1, "-created-at"), ("desc", "-created-at"), ("descending", "-created-at"),
         (1, "created-at"), ("asc", "created-at"), ("ascending", "created-at")],
    )
    def test_sort_orders(self, resources: SimpleNamespace, order: Any, expected: str) -> None:
        assert resources.Article.find().sort({"created_at": order}).build_params()["sort"] == expected

    def test_page_is_passed_through(self, resources: SimpleNamespace) -> None:
        assert resources.Article.find().limit(10).offset(20).build_params() == {
            "page": {"limit": 10, "offset": 20}
        }

    def test_empty_query_has_no_params(self, resources: SimpleNamespace) -> None:
        assert resources.Article.find().build_params() == {}

    def test_query_params_override_computed_values(self, resources: SimpleNamespace) -> None:
        params = resources.Article.find().sort({"title": 1}).query_params({"sort": "-id", "stats[total]": "count"}).build_params()
        assert params == {"sort": "-id", "stats[total]": "count"}

    def test_relationship_query_uses_related_schema(self, resources: SimpleNamespace) -> None:
        params = resources.Article.find_by_id("1").get("author", {"first_name": "Dan"}).sort({"last_name": -1}).build_params()
        assert params == {"filter": {"first-name": "Dan"}, "sort": "-last-name"}


class TestExecution:
    """Tests for lazy, repeatable execution against the fake server."""

    @pytest.fixture
    def articles_body(self) -> dict[str, Any]:
        return {
            "data": [
                {"type": "articles", "id": "1", "attributes": {"title": "One"}},
                {"type": "articles", "id": "2", "attributes": {"title": "Two"}},
            ]
        }

    @pytest.mark.asyncio
    async def test_builder_is_lazy(self, resources: SimpleNamespace, server: FakeServer) -> None:
        resources.Article.find().limit(5)
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_each_await_issues_a_request(
        self, resources: SimpleNamespace, server: FakeServer, articles_body: dict[str, Any]
    ) -> None:
        server.add("GET", "/articles", articles_body)
        query = resources.Article.find()

        first = await query
        second = await query

        assert len(server.requests) == 2
        assert [article.title for article in first] == ["One", "Two"]
        assert first[0] is not second[0]

    @pytest.mark.asyncio
    async def test_params_are_sent_in_bracketed_form(
        self, resources: SimpleNamespace, server: FakeServer, articles_body: dict[str, Any]
    ) -> None:
        server.add("GET", "/articles", articles_body)

        await resources.Article.find({"title": "One"}).fields({"articles": ["title"]}).limit(2).exec()

        params = server.requests[0].url.params
        assert params["filter[title]"] == "One"
        assert params["fields[articles]"] == "title"
        assert params["page[limit]"] == "2"

    @pytest.mark.asyncio
    async def test_find_by_id(self, resources: SimpleNamespace, server: FakeServer) -> None:
        server.add("GET", "/articles/1", {"data": {"type": "articles", "id": "1", "attributes": {"title": "One"}}})

        article = await resources.Article.find_by_id("1")

        assert isinstance(article, resources.Article)
        assert article.title == "One"

    @pytest.mark.asyncio
    async def test_relationship_query_decodes_related_type(
        self, resources: SimpleNamespace, server: FakeServer
    ) -> None:
        server.add("GET", "/articles/1/author", {"data": {"type": "people", "id": "9", "attributes": {"first-name": "Dan"}}})

        author = await resources.Article.find_by_id("1").get("author")

        assert server.requests[0].url.path == "/articles/1/author"
        assert isinstance(author, resources.People)
        assert author.first_name == "Dan"

    @pytest.mark.asyncio
    async def test_raw_exposes_body(
        self, resources: SimpleNamespace, server: FakeServer, articles_body: dict[str, Any]
    ) -> None:
        articles_body["meta"] = {"count": 2}
        server.add("GET", "/articles", articles_body)

        raw = await resources.Article.find().raw()

        assert isinstance(raw, RawResult)
        assert len(raw.result) == 2
        assert raw.body["meta"] == {"count": 2}

    @pytest.mark.asyncio
    async def test_query_without_operation_raises(self, resources: SimpleNamespace) -> None:
        with pytest.raises(ValueError, match="no operation"):
            await QueryBuilder(resources.Article).filter({"title": "a"})

    @pytest.mark.asyncio
    async def test_relationship_query_without_id_raises(self, resources: SimpleNamespace) -> None:
        with pytest.raises(ValueError):
            await resources.Article.query().get("author").execute()
