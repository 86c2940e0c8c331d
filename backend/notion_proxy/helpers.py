import base64
import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from notion_client.errors import HTTPResponseError, RequestTimeoutError

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Request-Id",
    "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
}

# ---- Helpers -----------------------------------------------------------------

def resp(status: int, body: Any, headers: Optional[Dict[str, str]] = None):
    base = {"Content-Type": "application/json", **CORS_HEADERS}
    if headers:
        base.update(headers)
    return {
        "statusCode": status,
        "headers": base,
        "body": json.dumps(body),
    }


def ok(message: str, data: Any = None, status: int = 200):
    body: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return resp(status, body)


def parse_json(body: Optional[str]) -> Dict[str, Any]:
    if not body:
        return {}
    try:
        data = json.loads(body)
    except ValueError:
        raise BadRequest("Invalid JSON body")
    if not isinstance(data, dict):
        raise BadRequest("JSON body must be an object")
    return data


def query_params(event: Dict[str, Any]) -> Dict[str, str]:
    return event.get("queryStringParameters") or {}


def request_body(event: Dict[str, Any]) -> Optional[str]:
    body = event.get("body")
    if body and event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body).decode("utf-8")
        except ValueError:
            raise BadRequest("Invalid base64 body")
    return body


def ensure(cond: Any, msg: str):
    if not cond:
        raise BadRequest(msg)


def require_text(data: Dict[str, Any], key: str, label: Optional[str] = None) -> str:
    value = data.get(key)
    text = value.strip() if isinstance(value, str) else ""
    ensure(len(text) > 0, f"{label or key} is required")
    return text


def require_list(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    items = data.get(key)
    ensure(isinstance(items, list), f"{key} must be a list")
    ensure(all(isinstance(it, dict) for it in items), f"{key} items must be objects")
    return items

# ---- Errors ------------------------------------------------------------------

UPSTREAM_ERRORS = (HTTPResponseError, RequestTimeoutError, httpx.HTTPError)


class BadRequest(Exception):
    pass


class ConfigError(Exception):
    def __init__(self, missing: List[str]):
        super().__init__(f"Missing environment variables: {', '.join(missing)}")
        self.missing = missing


def error_to_response(e: Exception):
    if isinstance(e, BadRequest):
        logger.info("%s:error_to_response - BadRequest: %s", __name__, e)
        return resp(400, {"success": False, "error": "BadRequest", "message": str(e)})
    if isinstance(e, ConfigError):
        logger.error("%s:error_to_response - %s", __name__, e)
        return resp(500, {"success": False, "error": "Missing environment variables", "missing": e.missing})
    if isinstance(e, HTTPResponseError):
        logger.error("%s:error_to_response - Notion API error %s (%s): %s", __name__, e.status, e.code, e)
        return resp(500, {"success": False, "error": str(e), "code": getattr(e.code, "value", e.code), "status": e.status})
    if isinstance(e, UPSTREAM_ERRORS):
        logger.error("%s:error_to_response - Notion request failed: %s", __name__, e)
        return resp(500, {"success": False, "error": str(e) or type(e).__name__, "code": type(e).__name__})
    logger.exception("%s:error_to_response - Unexpected %s", __name__, type(e).__name__)
    return resp(500, {"success": False, "error": "InternalError", "message": "Unexpected error"})
