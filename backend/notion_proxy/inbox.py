"""Quick-add endpoint: POST {"note": "..."} drops a note into the inbox database."""

import asyncio
import logging
from typing import Any, Dict

from . import mappers as m
from . import props as p
from .config import load_settings
from .helpers import UPSTREAM_ERRORS, BadRequest, ConfigError, parse_json, request_body, resp
from .notion import create_page, open_client

logger = logging.getLogger(__name__)


async def add_note(settings, note: str) -> Dict[str, Any]:
    async with open_client(settings) as notion:
        page = await create_page(notion, settings.database("inbox"), p.build_create({"text": note}, m.TODO_FIELDS))
    logger.info("%s:add_note - Created inbox note %s", __name__, page.get("id"))
    return page


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    method = (event.get("httpMethod") or "").upper()
    if method == "OPTIONS":
        return resp(200, {"ok": True})
    if method != "POST":
        return resp(405, {"error": "Method not allowed"})

    try:
        body = parse_json(request_body(event))
        note = body.get("note")
        if not isinstance(note, str) or not note.strip():
            return resp(400, {"error": "Missing or empty note"})
        settings = load_settings()
        settings.require("inbox")
        asyncio.run(add_note(settings, note.strip()))
    except BadRequest as e:
        return resp(400, {"error": str(e)})
    except ConfigError as e:
        logger.error("%s:handler - %s", __name__, e)
        return resp(500, {"error": "Missing environment variables", "missing": e.missing})
    except UPSTREAM_ERRORS as e:
        logger.error("%s:handler - Notion rejected note: %s", __name__, e)
        return resp(500, {"error": "Failed to create Notion page", "detail": str(e)})
    except Exception as e:
        logger.exception("%s:handler - Unexpected %s", __name__, type(e).__name__)
        return resp(500, {"error": "Server error", "detail": str(e)})

    return resp(200, {"success": True})
