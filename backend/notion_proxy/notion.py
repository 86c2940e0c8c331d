"""
Thin async wrappers over notion_client for the calls the operations make.

Every function takes the client explicitly so handlers stay stateless and
tests can pass a fake.
"""

import logging
from typing import Any, Dict, List, Optional

from notion_client import AsyncClient
from notion_client.helpers import async_collect_paginated_api

from .config import Settings

logger = logging.getLogger(__name__)

NOTION_VERSION = "2022-06-28"
PAGE_SIZE = 100


def open_client(settings: Settings) -> AsyncClient:
    """Client for one invocation; use as `async with open_client(settings) as notion`."""
    return AsyncClient(auth=settings.token, notion_version=NOTION_VERSION)


async def query_all(
    notion,
    database_id: str,
    filter: Optional[Dict[str, Any]] = None,
    sorts: Optional[List[Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """Every page matching the query, following next_cursor until has_more is false.

    Any failure mid-pagination propagates; no partial list is returned.
    """
    kwargs: Dict[str, Any] = {"database_id": database_id, "page_size": PAGE_SIZE}
    if filter:
        kwargs["filter"] = filter
    if sorts:
        kwargs["sorts"] = sorts
    pages = await async_collect_paginated_api(notion.databases.query, **kwargs)
    logger.debug("%s:query_all - %s pages from %s", __name__, len(pages), database_id)
    return pages


async def retrieve_database(notion, database_id: str) -> Dict[str, Any]:
    return await notion.databases.retrieve(database_id=database_id)


async def create_page(notion, database_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
    return await notion.pages.create(parent={"database_id": database_id}, properties=properties)


async def update_page(notion, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
    return await notion.pages.update(page_id=page_id, properties=properties)


async def archive_page(notion, page_id: str) -> Dict[str, Any]:
    return await notion.pages.update(page_id=page_id, archived=True)


def status_filter(statuses: List[str]) -> Optional[Dict[str, Any]]:
    clauses = [{"property": "Status", "status": {"equals": s}} for s in statuses]
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"or": clauses}


def relation_filter(prop: str, page_id: str) -> Dict[str, Any]:
    return {"property": prop, "relation": {"contains": page_id}}
