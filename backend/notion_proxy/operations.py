"""
Operation functions behind the proxy's action table.

Each operation takes (notion, settings, params, body), makes its Notion
calls and returns an API Gateway response via helpers.resp/ok. Independent
calls within one operation are gathered concurrently.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from . import mappers as m
from . import props as p
from .config import Settings
from .helpers import UPSTREAM_ERRORS, BadRequest, ensure, ok, require_list, require_text, resp
from .notion import (
    archive_page,
    create_page,
    query_all,
    relation_filter,
    retrieve_database,
    status_filter,
    update_page,
)

logger = logging.getLogger(__name__)

Params = Dict[str, str]
Body = Dict[str, Any]

# ---- Shared helpers ----------------------------------------------------------

def requested_statuses(raw: Optional[str], default: str) -> List[str]:
    """Status filter values from the query string; "all" means no filter."""
    if raw is None or not raw.strip():
        return [default] if default else []
    if raw.strip().lower() == "all":
        return []
    return [s.strip() for s in raw.split(",") if s.strip()]


def today(tz_name: str) -> str:
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("%s:today - Unknown timezone %r, using UTC", __name__, tz_name)
        tz = ZoneInfo("UTC")
    return datetime.now(tz).date().isoformat()


def stamp_paid_date(properties: Dict[str, Any], data: Body, settings: Settings) -> None:
    """Moving a project to Paid records today's date unless paidDate was given."""
    if properties.get("Status") == p.status(m.PAID_STATUS) and "paidDate" not in data:
        properties["Paid Date"] = p.date(today(settings.timezone))


def require_id(data: Body, key: str = "id") -> str:
    return require_text(data, key)


def _same_id(a: str, b: str) -> bool:
    return a.replace("-", "") == b.replace("-", "")


async def _optional(label: str, coro) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    """Degrade a failing optional collection to [] plus a warning."""
    try:
        return await coro, None
    except UPSTREAM_ERRORS as e:
        logger.warning("%s:_optional - %s unavailable: %s", __name__, label, e)
        return [], f"{label} could not be loaded: {e}"


async def _nothing() -> List[Dict[str, Any]]:
    return []

# ---- GET ---------------------------------------------------------------------

async def list_projects(notion, settings: Settings, params: Params, body: Body):
    statuses = requested_statuses(params.get("status"), settings.default_status)
    milestones_db = settings.database("milestones")
    parts_db = settings.database("parts")

    projects, milestones, (parts, parts_warning) = await asyncio.gather(
        query_all(notion, settings.database("projects"), filter=status_filter(statuses)),
        query_all(notion, milestones_db) if milestones_db else _nothing(),
        _optional("parts", query_all(notion, parts_db)) if parts_db else _optional("parts", _nothing()),
    )
    warnings = [parts_warning] if parts_warning else []
    logger.info(
        "%s:list_projects - %s projects, %s milestones, %s parts",
        __name__, len(projects), len(milestones), len(parts),
    )
    return resp(200, {
        "success": True,
        "projects": m.map_all(m.project_from_page, projects),
        "milestones": m.map_all(m.milestone_from_page, milestones),
        "parts": m.map_all(m.part_from_page, parts),
        "warnings": warnings,
    })


async def list_workflows(notion, settings: Settings, params: Params, body: Body):
    pages = await query_all(
        notion, settings.database("workflows"),
        sorts=[{"property": "Name", "direction": "ascending"}],
    )
    return ok("Workflows loaded", m.map_all(m.workflow_from_page, pages))


async def list_todos(notion, settings: Settings, params: Params, body: Body):
    clauses = []
    if params.get("list"):
        clauses.append({"property": "List", "select": {"equals": params["list"]}})
    if (params.get("includeDone") or "").lower() == "false":
        clauses.append({"property": "Done", "checkbox": {"equals": False}})
    filter_ = None
    if len(clauses) == 1:
        filter_ = clauses[0]
    elif clauses:
        filter_ = {"and": clauses}
    pages = await query_all(
        notion, settings.database("inbox"),
        filter=filter_,
        sorts=[{"timestamp": "created_time", "direction": "descending"}],
    )
    return ok("Todos loaded", m.map_all(m.todo_from_page, pages))


async def describe_schema(notion, settings: Settings, params: Params, body: Body):
    keys = [k for k in settings.databases if settings.database(k)]
    databases = await asyncio.gather(*(retrieve_database(notion, settings.database(k)) for k in keys))
    schema = {}
    for key, db in zip(keys, databases):
        schema[key] = {
            "id": db.get("id"),
            "title": "".join(t.get("plain_text", "") for t in db.get("title") or []),
            "properties": {name: prop.get("type") for name, prop in (db.get("properties") or {}).items()},
        }
    return ok("Schema loaded", schema)

# ---- Projects ----------------------------------------------------------------

async def create_project(notion, settings: Settings, params: Params, body: Body):
    require_text(body, "name")
    properties = p.build_create(body, m.PROJECT_FIELDS)
    stamp_paid_date(properties, body, settings)
    page = await create_page(notion, settings.database("projects"), properties)
    logger.info("%s:create_project - Created %s", __name__, page.get("id"))
    return ok("Project created", m.project_from_page(page), status=201)


async def update_project(notion, settings: Settings, params: Params, body: Body):
    project_id = require_id(body)
    properties = p.build_update(body, m.PROJECT_FIELDS)
    ensure(properties, "No fields to update")
    stamp_paid_date(properties, body, settings)
    page = await update_page(notion, project_id, properties)
    return ok("Project updated", m.project_from_page(page))

# ---- Milestones --------------------------------------------------------------

MILESTONE_UPDATE_FIELDS = m.MILESTONE_FIELDS + [p.Field("order", m.ORDER, "number")]


def _named_items(body: Body, key: str) -> List[Dict[str, Any]]:
    items = require_list(body, key)
    for item in items:
        require_text(item, "name", f"{key} name")
    return items


async def create_milestones(notion, settings: Settings, params: Params, body: Body):
    project_id = require_id(body, "projectId")
    items = _named_items(body, "milestones")
    ensure(items, "milestones must not be empty")
    payloads = [
        {**p.build_create(item, m.MILESTONE_FIELDS), **m.child_properties(project_id, position)}
        for position, item in enumerate(items, start=1)
    ]
    db = settings.database("milestones")
    pages = await asyncio.gather(*(create_page(notion, db, props) for props in payloads))
    return ok(f"Created {len(pages)} milestones", m.map_all(m.milestone_from_page, pages), status=201)


async def update_milestone(notion, settings: Settings, params: Params, body: Body):
    milestone_id = require_id(body)
    properties = p.build_update(body, MILESTONE_UPDATE_FIELDS)
    ensure(properties, "No fields to update")
    page = await update_page(notion, milestone_id, properties)
    return ok("Milestone updated", m.milestone_from_page(page))


async def save_progress(notion, settings: Settings, params: Params, body: Body):
    items = require_list(body, "milestones")
    updates = []
    for item in items:
        milestone_id = require_id(item)
        properties = p.build_update(item, MILESTONE_UPDATE_FIELDS)
        if properties:
            updates.append((milestone_id, properties))

    project_update = None
    if "projectStatus" in body:
        ensure(body.get("projectId"), "projectId is required with projectStatus")
        patch = {"status": body["projectStatus"]}
        if "paidDate" in body:
            patch["paidDate"] = body["paidDate"]
        project_props = p.build_update(patch, m.PROJECT_FIELDS)
        stamp_paid_date(project_props, patch, settings)
        project_update = (body["projectId"], project_props)
    ensure(updates or project_update, "No fields to update")

    calls = [update_page(notion, mid, props) for mid, props in updates]
    if project_update:
        calls.append(update_page(notion, *project_update))
    results = await asyncio.gather(*calls)

    data: Dict[str, Any] = {"updated": [mid for mid, _ in updates], "project": None}
    if project_update:
        data["project"] = m.project_from_page(results[-1])
    return ok("Progress saved", data)

# ---- Reconciliation ----------------------------------------------------------

async def reconcile_children(
    notion,
    database_id: str,
    project_id: str,
    items: List[Dict[str, Any]],
    fields: List[p.Field],
    mapper,
) -> Dict[str, Any]:
    """Make the project's children in `database_id` match `items`.

    Items whose id matches a stored child are updated in place, the rest are
    created, and stored children missing from `items` are archived. Every
    item's Order becomes its 1-based position in `items`.
    """
    # Payloads are built up front so bad input fails before any Notion call.
    planned = []
    for position, item in enumerate(items, start=1):
        update_fields = {k: v for k, v in item.items() if k not in ("id", "projectId", "order")}
        planned.append((
            item.get("id") or "",
            {**p.build_update(update_fields, fields), m.ORDER: p.number(position)},
            {**p.build_create(item, fields), **m.child_properties(project_id, position)},
        ))

    existing = await query_all(notion, database_id, filter=relation_filter(m.PROJECT_RELATION, project_id))
    existing_ids = [page["id"] for page in existing]

    creates, updates, kept = [], [], []
    for item_id, update_props, create_props in planned:
        match = next((eid for eid in existing_ids if item_id and _same_id(eid, item_id)), None)
        if match:
            kept.append(match)
            updates.append((match, update_props))
        else:
            creates.append(create_props)
    archived = [eid for eid in existing_ids if eid not in kept]

    logger.info(
        "%s:reconcile_children - project %s: %s create, %s update, %s archive",
        __name__, project_id, len(creates), len(updates), len(archived),
    )
    results = await asyncio.gather(
        *(create_page(notion, database_id, props) for props in creates),
        *(update_page(notion, eid, props) for eid, props in updates),
        *(archive_page(notion, eid) for eid in archived),
    )
    return {
        "created": m.map_all(mapper, list(results[:len(creates)])),
        "updated": [eid for eid, _ in updates],
        "archived": archived,
    }


async def save_milestones(notion, settings: Settings, params: Params, body: Body):
    project_id = require_id(body, "projectId")
    items = _named_items(body, "milestones")
    data = await reconcile_children(
        notion, settings.database("milestones"), project_id, items,
        m.MILESTONE_FIELDS, m.milestone_from_page,
    )
    return ok("Milestones saved", data)


async def save_parts(notion, settings: Settings, params: Params, body: Body):
    project_id = require_id(body, "projectId")
    items = _named_items(body, "parts")
    data = await reconcile_children(
        notion, settings.database("parts"), project_id, items,
        m.PART_FIELDS, m.part_from_page,
    )
    return ok("Parts saved", data)

# ---- Workflows ---------------------------------------------------------------

def workflow_data_text(body: Body) -> Optional[str]:
    """JSON text for the Data property, or None when data was not supplied."""
    if "data" not in body:
        return None
    value = body["data"]
    if value is None:
        return "[]"
    if isinstance(value, str):
        if not value.strip():
            return "[]"
        try:
            json.loads(value)
        except ValueError:
            raise BadRequest("data must be valid JSON")
        return value
    return json.dumps(value)


async def create_workflow(notion, settings: Settings, params: Params, body: Body):
    name = require_text(body, "name")
    data_text = workflow_data_text(body)
    properties = m.workflow_properties(name, "[]" if data_text is None else data_text)
    page = await create_page(notion, settings.database("workflows"), properties)
    return ok("Workflow created", m.workflow_from_page(page), status=201)


async def update_workflow(notion, settings: Settings, params: Params, body: Body):
    workflow_id = require_id(body)
    name = require_text(body, "name") if "name" in body else None
    properties = m.workflow_properties(name, workflow_data_text(body))
    ensure(properties, "No fields to update")
    page = await update_page(notion, workflow_id, properties)
    return ok("Workflow updated", m.workflow_from_page(page))


async def delete_workflow(notion, settings: Settings, params: Params, body: Body):
    workflow_id = (params.get("id") or "").strip() or require_id(body)
    await archive_page(notion, workflow_id)
    return ok("Workflow deleted", {"id": workflow_id})

# ---- Todos -------------------------------------------------------------------

async def create_todo(notion, settings: Settings, params: Params, body: Body):
    text = body.get("text") if body.get("text") is not None else body.get("note")
    ensure(isinstance(text, str) and text.strip(), "text is required")
    properties = p.build_create({**body, "text": text.strip()}, m.TODO_FIELDS)
    page = await create_page(notion, settings.database("inbox"), properties)
    return ok("Todo created", m.todo_from_page(page), status=201)


async def update_todo(notion, settings: Settings, params: Params, body: Body):
    todo_id = require_id(body)
    properties = p.build_update(body, m.TODO_FIELDS)
    ensure(properties, "No fields to update")
    page = await update_page(notion, todo_id, properties)
    return ok("Todo updated", m.todo_from_page(page))
