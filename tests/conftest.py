"""Shared fixtures for folio tests.

Provides an in-memory fake of the CMS REST API (a small FastAPI app driven
through ``httpx.ASGITransport``) plus entity factories, so list-view tests
exercise the real client, cache and pipeline end to end without a network.
"""

from __future__ import annotations

import itertools
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from fastapi import Body, FastAPI
from fastapi.responses import JSONResponse, Response

from folio.config import FolioConfig

BASE_URL = "http://cms.test/api"


@dataclass
class FakeResource:
    """One collection served by the fake API.

    ``envelope`` wraps list responses (``{"posts": [...]}``); ``None``
    serves a bare array.  With ``echo_entity=False`` mutations answer
    ``{"success": true}`` instead of the entity; ``echo`` reshapes the
    echoed record instead.  ``id_field`` is the record key item routes match
    on, and ``moderated`` serves ``PATCH /<endpoint>`` with
    ``{commentId, action}``.
    """

    records: list[dict[str, Any]] = field(default_factory=list)
    envelope: str | None = None
    echo_entity: bool = True
    echo: Callable[[dict[str, Any]], Any] | None = None
    id_field: str = "id"
    moderated: bool = False
    fail_with: tuple[int, str] | None = None

    def find(self, item_id: str) -> int | None:
        for index, record in enumerate(self.records):
            if record.get(self.id_field) == item_id:
                return index
        return None

    def respond(self, record: dict[str, Any]) -> Any:
        if not self.echo_entity:
            return {"success": True}
        if self.echo is not None:
            return self.echo(record)
        return record


class FakeCMS:
    """In-memory stand-in for the portfolio CMS API."""

    def __init__(self) -> None:
        self.resources: dict[str, FakeResource] = {}
        self.requests: list[tuple[str, str]] = []
        self._ids = itertools.count(1000)
        self.app = self._build_app()

    def add(
        self,
        endpoint: str,
        records: list[dict[str, Any]],
        *,
        envelope: str | None = None,
        echo_entity: bool = True,
        echo: Callable[[dict[str, Any]], Any] | None = None,
        id_field: str = "id",
        moderated: bool = False,
    ) -> FakeResource:
        resource = FakeResource(
            records=[dict(r) for r in records],
            envelope=envelope,
            echo_entity=echo_entity,
            echo=echo,
            id_field=id_field,
            moderated=moderated,
        )
        self.resources[endpoint] = resource
        return resource

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        def _lookup(endpoint: str) -> FakeResource | None:
            return self.resources.get(endpoint.strip("/"))

        def _failure(resource: FakeResource) -> JSONResponse | None:
            if resource.fail_with is None:
                return None
            status, message = resource.fail_with
            return JSONResponse({"error": message}, status_code=status)

        def _not_found() -> JSONResponse:
            return JSONResponse({"error": "Not found"}, status_code=404)

        @app.get("/api/{endpoint:path}")
        async def list_records(endpoint: str):
            self.requests.append(("GET", endpoint))
            resource = _lookup(endpoint)
            if resource is None:
                return _not_found()
            if (failure := _failure(resource)) is not None:
                return failure
            if resource.envelope is None:
                return resource.records
            return {resource.envelope: resource.records, "total": len(resource.records)}

        @app.post("/api/{endpoint:path}")
        async def create_record(endpoint: str, body: dict | None = Body(None)):
            self.requests.append(("POST", endpoint))
            if endpoint.endswith("/duplicate"):
                collection, _, item_id = endpoint.removesuffix("/duplicate").rpartition("/")
                return _duplicate(collection, item_id)
            resource = _lookup(endpoint)
            if resource is None:
                return _not_found()
            if (failure := _failure(resource)) is not None:
                return failure
            record = {"id": f"new-{next(self._ids)}", **(body or {})}
            resource.records.append(record)
            return JSONResponse(resource.respond(record), status_code=201)

        def _duplicate(endpoint: str, item_id: str):
            resource = _lookup(endpoint)
            if resource is None:
                return _not_found()
            if (failure := _failure(resource)) is not None:
                return failure
            index = resource.find(item_id)
            if index is None:
                return JSONResponse({"error": "Post not found"}, status_code=404)
            source = resource.records[index]
            slugs = {record.get("slug") for record in resource.records}
            slug = base = f"{source.get('slug')}-copy"
            counter = itertools.count(1)
            while slug in slugs:
                slug = f"{base}-{next(counter)}"
            copy = {
                **source,
                "id": f"new-{next(self._ids)}",
                "title": f"{source.get('title')} (Copy)",
                "slug": slug,
                "status": "DRAFT",
                "featured": False,
                "publishedAt": None,
            }
            resource.records.append(copy)
            # Relation names, as the real route includes them.
            echoed = {k: v for k, v in copy.items() if k not in ("category", "series")}
            return {**echoed, "blog_categories": copy.get("category")}

        async def _update(endpoint: str, item_id: str, body: dict, method: str):
            self.requests.append((method, f"{endpoint}/{item_id}"))
            resource = _lookup(endpoint)
            if resource is None:
                return _not_found()
            if (failure := _failure(resource)) is not None:
                return failure
            index = resource.find(item_id)
            if index is None:
                return _not_found()
            updated = {**resource.records[index], **body}
            resource.records[index] = updated
            return resource.respond(updated)

        def _moderate(resource: FakeResource, body: dict):
            if (failure := _failure(resource)) is not None:
                return failure
            comment_id, action = body.get("commentId"), body.get("action")
            if not comment_id or not action:
                return JSONResponse(
                    {"error": "Comment ID and action are required"}, status_code=400
                )
            index = resource.find(comment_id)
            if index is None:
                return _not_found()
            if action == "delete":
                del resource.records[index]
                return {"success": True, "action": "deleted"}
            if action not in ("approve", "reject"):
                return JSONResponse({"error": "Invalid action"}, status_code=400)
            updated = {**resource.records[index], "isApproved": action == "approve"}
            resource.records[index] = updated
            return {"success": True, "action": action, "comment": updated}

        @app.put("/api/{endpoint:path}/{item_id}")
        async def put_record(endpoint: str, item_id: str, body: dict = Body(...)):
            return await _update(endpoint, item_id, body, "PUT")

        @app.patch("/api/{endpoint:path}/{item_id}")
        async def patch_record(endpoint: str, item_id: str, body: dict = Body(...)):
            collection = _lookup(f"{endpoint}/{item_id}")
            if collection is not None and collection.moderated:
                self.requests.append(("PATCH", f"{endpoint}/{item_id}"))
                return _moderate(collection, body)
            return await _update(endpoint, item_id, body, "PATCH")

        @app.delete("/api/{endpoint:path}/{item_id}")
        async def delete_record(endpoint: str, item_id: str):
            self.requests.append(("DELETE", f"{endpoint}/{item_id}"))
            resource = _lookup(endpoint)
            if resource is None:
                return _not_found()
            if (failure := _failure(resource)) is not None:
                return failure
            index = resource.find(item_id)
            if index is None:
                return _not_found()
            del resource.records[index]
            return Response(status_code=204)

        return app


# ---------------------------------------------------------------------------
# Entity factories
# ---------------------------------------------------------------------------


def make_post(
    index: int,
    *,
    title: str | None = None,
    excerpt: str | None = "An article",
    status: str = "PUBLISHED",
    category_id: str = "cat-web",
    featured: bool = False,
    series_id: str | None = None,
) -> dict[str, Any]:
    """Build a post record in the API's camelCase wire format."""
    return {
        "id": f"post-{index}",
        "title": title or f"Post {index}",
        "slug": f"post-{index}",
        "excerpt": excerpt,
        "status": status,
        "featured": featured,
        "category": {"id": category_id, "name": category_id.removeprefix("cat-").title()},
        "series": {"id": series_id, "title": "A series"} if series_id else None,
        "tags": [],
        "views": index * 10,
        "likes": index,
        "publishedAt": "2024-03-05T10:00:00Z" if status == "PUBLISHED" else None,
        "commentCount": 0,
    }


def make_posts(count: int, **kwargs: Any) -> list[dict[str, Any]]:
    return [make_post(i, **kwargs) for i in range(1, count + 1)]


def relation_shaped(record: dict[str, Any]) -> dict[str, Any]:
    """Echo a post the way the single-post routes do: relations under their
    table names and no computed list fields."""
    shaped = {
        k: v for k, v in record.items() if k not in ("category", "series", "commentCount")
    }
    return {
        **shaped,
        "blog_categories": record.get("category"),
        "blog_series": record.get("series"),
    }


def make_comment(
    index: int,
    *,
    approved: bool = False,
    content: str | None = None,
    author: str = "Reader",
) -> dict[str, Any]:
    """Build a comment record as the moderation listing returns it."""
    return {
        "id": f"comment-{index}",
        "content": content or f"Comment {index}",
        "authorName": author,
        "authorEmail": f"reader{index}@example.com",
        "isApproved": approved,
        "postId": "post-1",
        "blog_posts": {"id": "post-1", "title": "Post 1", "slug": "post-1"},
        "createdAt": "2024-03-05T10:00:00Z",
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_cms() -> FakeCMS:
    """A fresh, empty fake CMS API."""
    return FakeCMS()


@pytest.fixture
async def http_client(fake_cms: FakeCMS) -> AsyncIterator[httpx.AsyncClient]:
    """An httpx client whose requests are served by ``fake_cms``."""
    transport = httpx.ASGITransport(app=fake_cms.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://cms.test") as client:
        yield client


@pytest.fixture
def folio_config() -> FolioConfig:
    return FolioConfig.default(base_url=BASE_URL)
