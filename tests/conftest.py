"""
Shared test fixtures.

Provides: an in-memory fake of notion_client.AsyncClient that records every
call and paginates query results, environment setup, and API Gateway event
builders.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from notion_client import APIErrorCode, APIResponseError
from notion_client.errors import HTTPResponseError

from notion_proxy import app as proxy_app
from notion_proxy import inbox as inbox_app

DATABASES = {
    "NOTION_DATABASE_ID": "db-projects",
    "NOTION_MILESTONES_DATABASE_ID": "db-milestones",
    "NOTION_PARTS_DATABASE_ID": "db-parts",
    "NOTION_WORKFLOWS_DATABASE_ID": "db-workflows",
    "NOTION_INBOX_DATABASE_ID": "db-inbox",
}


class _Databases:
    def __init__(self, notion: "FakeNotion"):
        self._notion = notion

    async def query(self, **kwargs):
        self._notion.calls.append(("databases.query", kwargs))
        database_id = kwargs["database_id"]
        self._notion.raise_if_failing(database_id, kwargs.get("start_cursor"))
        pages = self._notion.stored.get(database_id, [])
        size = self._notion.page_size or kwargs.get("page_size") or 100
        start = int(kwargs.get("start_cursor") or 0)
        end = start + size
        has_more = end < len(pages)
        return {
            "object": "list",
            "results": pages[start:end],
            "has_more": has_more,
            "next_cursor": str(end) if has_more else None,
        }

    async def retrieve(self, **kwargs):
        self._notion.calls.append(("databases.retrieve", kwargs))
        database_id = kwargs["database_id"]
        self._notion.raise_if_failing(database_id)
        return {
            "object": "database",
            "id": database_id,
            "title": [{"plain_text": database_id}],
            "properties": {"Name": {"type": "title"}, "Status": {"type": "status"}},
        }


class _Pages:
    def __init__(self, notion: "FakeNotion"):
        self._notion = notion
        self._created = 0

    async def create(self, **kwargs):
        self._notion.calls.append(("pages.create", kwargs))
        self._notion.raise_if_failing(kwargs["parent"]["database_id"])
        self._created += 1
        return {
            "object": "page",
            "id": f"new-{self._created}",
            "created_time": "2025-10-15T13:00:00.000Z",
            "properties": kwargs.get("properties", {}),
        }

    async def update(self, **kwargs):
        self._notion.calls.append(("pages.update", kwargs))
        self._notion.raise_if_failing(kwargs["page_id"])
        return {
            "object": "page",
            "id": kwargs["page_id"],
            "archived": kwargs.get("archived", False),
            "properties": kwargs.get("properties", {}),
        }


class FakeNotion:
    """Stands in for AsyncClient.

    `stored` maps database id -> pages served by queries; `failures` maps a
    database or page id -> exception raised by any call touching it;
    `cursor_failures` maps (database id, start_cursor) -> exception raised
    only when that page of a query is requested.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.stored: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[str, Exception] = {}
        self.cursor_failures: Dict[Tuple[str, str], Exception] = {}
        self.page_size: Optional[int] = None
        self.databases = _Databases(self)
        self.pages = _Pages(self)

    def raise_if_failing(self, key: str, cursor: Optional[str] = None):
        if key in self.failures:
            raise self.failures[key]
        if cursor is not None and (key, cursor) in self.cursor_failures:
            raise self.cursor_failures[(key, cursor)]

    def calls_to(self, name: str) -> List[Dict[str, Any]]:
        return [kwargs for call, kwargs in self.calls if call == name]

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def api_error(message: str = "Could not find database", status: int = 404,
              code: APIErrorCode = APIErrorCode.ObjectNotFound) -> APIResponseError:
    response = httpx.Response(status, json={"object": "error", "code": code.value, "message": message})
    return APIResponseError(response, message, code)


def gateway_error(status: int = 502, message: str = "Bad Gateway") -> HTTPResponseError:
    """Non-JSON error page from in front of the Notion API."""
    response = httpx.Response(status, text=f"<html>{message}</html>")
    return HTTPResponseError(response, message)


def page(page_id: str, **properties) -> Dict[str, Any]:
    return {"object": "page", "id": page_id, "created_time": "2025-10-01T09:30:00.000Z", "properties": properties}


def title_prop(text: str) -> Dict[str, Any]:
    return {"type": "title", "title": [{"plain_text": text}]}


def text_prop(text: str) -> Dict[str, Any]:
    return {"type": "rich_text", "rich_text": [{"plain_text": text}]}


def relation_prop(page_id: str) -> Dict[str, Any]:
    return {"type": "relation", "relation": [{"id": page_id}]}


def event(method: str, action: Optional[str] = None, body: Any = None, **params) -> Dict[str, Any]:
    query = dict(params)
    if action is not None:
        query["action"] = action
    return {
        "httpMethod": method,
        "path": "/",
        "queryStringParameters": query or None,
        "body": json.dumps(body) if body is not None else None,
    }


def body_of(response: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(response["body"])


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("NOTION_TOKEN", "secret_test")
    monkeypatch.delenv("NOTION_TOKEN_SECRET_ARN", raising=False)
    monkeypatch.delenv("DEFAULT_PROJECT_STATUS", raising=False)
    monkeypatch.setenv("SHOP_TIMEZONE", "UTC")
    for var, value in DATABASES.items():
        monkeypatch.setenv(var, value)
    return monkeypatch


@pytest.fixture
def notion(env, monkeypatch):
    fake = FakeNotion()
    monkeypatch.setattr(proxy_app, "open_client", lambda settings: fake)
    monkeypatch.setattr(inbox_app, "open_client", lambda settings: fake)
    return fake


@pytest.fixture
def call(notion):
    """Invoke the proxy handler and return (status, decoded body)."""
    def _call(method: str, action: Optional[str] = None, body: Any = None, **params):
        response = proxy_app.handler(event(method, action, body, **params), None)
        return response["statusCode"], body_of(response)
    return _call
