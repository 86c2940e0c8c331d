import pytest
from conftest import body_of, event, gateway_error

from notion_proxy import app as proxy_app
from notion_proxy.helpers import error_to_response

ALL_ACTIONS = sorted({action or "" for _, action in proxy_app.ROUTES})


@pytest.mark.parametrize("method", ["PATCH", "HEAD", ""])
@pytest.mark.parametrize("action", ALL_ACTIONS)
def test_unsupported_method_is_405_without_calls(call, notion, method, action):
    status, body = call(method, action or None, {"name": "x"})
    assert status == 405
    assert body["error"] == "Method not allowed"
    assert notion.calls == []


def test_options_preflight_needs_no_config(monkeypatch):
    monkeypatch.delenv("NOTION_TOKEN", raising=False)
    response = proxy_app.handler(event("OPTIONS", "createProject"), None)
    assert response["statusCode"] == 200
    assert response["headers"]["Access-Control-Allow-Origin"] == "*"


@pytest.mark.parametrize("method, action", [
    ("GET", "nope"),
    ("POST", None),
    ("PUT", "createProject"),
    ("DELETE", "updateTodo"),
])
def test_unknown_action_is_400(call, notion, method, action):
    status, body = call(method, action, {})
    assert status == 400
    assert body["success"] is False
    assert notion.calls == []


def test_missing_token_is_500_before_any_call(call, notion, env):
    env.delenv("NOTION_TOKEN")
    status, body = call("GET")
    assert status == 500
    assert body["missing"] == ["NOTION_TOKEN"]
    assert notion.calls == []


def test_missing_projects_database_is_500(call, notion, env):
    env.delenv("NOTION_DATABASE_ID")
    status, body = call("POST", "createTodo", {"text": "call customer"})
    assert status == 500
    assert body["missing"] == ["NOTION_DATABASE_ID"]
    assert notion.calls == []


@pytest.mark.parametrize("method, action, var", [
    ("POST", "saveParts", "NOTION_PARTS_DATABASE_ID"),
    ("GET", "workflows", "NOTION_WORKFLOWS_DATABASE_ID"),
    ("PUT", "updateTodo", "NOTION_INBOX_DATABASE_ID"),
    ("POST", "saveMilestones", "NOTION_MILESTONES_DATABASE_ID"),
])
def test_action_specific_database_is_required(call, notion, env, method, action, var):
    env.delenv(var)
    status, body = call(method, action, {"id": "x"})
    assert status == 500
    assert body["missing"] == [var]
    assert notion.calls == []


def test_malformed_body_is_400(notion):
    bad = event("POST", "createProject")
    bad["body"] = "{not json"
    response = proxy_app.handler(bad, None)
    assert response["statusCode"] == 400
    assert body_of(response)["message"] == "Invalid JSON body"
    assert notion.calls == []


def test_base64_body_is_decoded(call, notion):
    encoded = event("POST", "createTodo")
    encoded["body"] = "eyJ0ZXh0IjogInJlc3RyaW5nIn0="  # {"text": "restring"}
    encoded["isBase64Encoded"] = True
    response = proxy_app.handler(encoded, None)
    assert response["statusCode"] == 201
    assert body_of(response)["data"]["text"] == "restring"


@pytest.mark.parametrize("action, payload", [
    ("createProject", {"customer": "Sam"}),
    ("createWorkflow", {"data": []}),
    ("createTodo", {"list": "Shop"}),
    ("createMilestones", {"projectId": "p1", "milestones": [{"estimatedHours": 2}]}),
])
def test_create_without_name_is_400_without_calls(call, notion, action, payload):
    status, body = call("POST", action, payload)
    assert status == 400
    assert body["error"] == "BadRequest"
    assert notion.calls == []


def test_error_response_carries_http_status_and_code():
    err = gateway_error(503, "Service Unavailable")
    response = error_to_response(err)
    assert response["statusCode"] == 500
    assert body_of(response) == {
        "success": False,
        "error": "Service Unavailable",
        "code": err.code,
        "status": 503,
    }
