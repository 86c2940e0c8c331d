"""
Lambda entry point for the Notion proxy API.

API Gateway proxy integration: `event` carries httpMethod, path,
queryStringParameters and body. The `action` query parameter picks the
operation within a method.
"""

import asyncio
import logging
import os
from typing import Any, Dict

from . import operations as ops
from .config import load_settings
from .helpers import BadRequest, error_to_response, parse_json, query_params, request_body, resp
from .notion import open_client

logger = logging.getLogger(__name__)
logging.getLogger("notion_proxy").setLevel(os.getenv("LOG_LEVEL", "INFO"))

# (method, action) -> (operation, databases it needs besides projects)
ROUTES = {
    ("GET", None): (ops.list_projects, ()),
    ("GET", "workflows"): (ops.list_workflows, ("workflows",)),
    ("GET", "todos"): (ops.list_todos, ("inbox",)),
    ("GET", "schema"): (ops.describe_schema, ()),
    ("POST", "createProject"): (ops.create_project, ()),
    ("POST", "createMilestones"): (ops.create_milestones, ("milestones",)),
    ("POST", "saveProgress"): (ops.save_progress, ("milestones",)),
    ("POST", "saveMilestones"): (ops.save_milestones, ("milestones",)),
    ("POST", "saveParts"): (ops.save_parts, ("parts",)),
    ("POST", "createWorkflow"): (ops.create_workflow, ("workflows",)),
    ("POST", "createTodo"): (ops.create_todo, ("inbox",)),
    ("PUT", "updateMilestone"): (ops.update_milestone, ("milestones",)),
    ("PUT", "updateProject"): (ops.update_project, ()),
    ("PUT", "updateWorkflow"): (ops.update_workflow, ("workflows",)),
    ("PUT", "updateTodo"): (ops.update_todo, ("inbox",)),
    ("DELETE", "deleteWorkflow"): (ops.delete_workflow, ("workflows",)),
}

METHODS = {method for method, _ in ROUTES}


async def _run(operation, settings, params, body):
    async with open_client(settings) as notion:
        return await operation(notion, settings, params, body)


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    try:
        method = (event.get("httpMethod") or "").upper()
        params = query_params(event)
        action = params.get("action") or None
        logger.info("%s:handler - %s action=%s", __name__, method, action)

        # CORS preflight
        if method == "OPTIONS":
            return resp(200, {"ok": True})

        if method not in METHODS:
            return resp(405, {"success": False, "error": "Method not allowed", "method": method})

        route = ROUTES.get((method, action))
        if route is None:
            raise BadRequest(f"Unknown action for {method}: {action}")
        operation, needs = route

        settings = load_settings()
        settings.require("projects", *needs)
        body = parse_json(request_body(event))

        return asyncio.run(_run(operation, settings, params, body))
    except Exception as e:
        return error_to_response(e)
