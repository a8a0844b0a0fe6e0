import base64
import json

import httpx
import pytest
import pytest_asyncio
from fastapi.responses import JSONResponse
from starlette.requests import Request

from openai_mcp.adapters.http import gateway
from openai_mcp.config.settings import Settings
from openai_mcp.core.errors import SecretAccessError
from openai_mcp.core.runtime import build_runtime


class FakeSecretsClient:
    def __init__(self, secrets: dict[str, dict]) -> None:
        self.secrets = secrets

    def get_secret_value(self, SecretId: str) -> dict:
        return {"SecretString": json.dumps(self.secrets[SecretId])}


class FakeUpstream:
    async def create_response(self, payload):
        return {"output_text": f"echo:{payload['input']}"}

    async def create_chat_completion(self, payload):
        return {"choices": [{"message": {"content": "chat reply"}}]}


def _basic(username: str, password: str) -> str:
    return "Basic " + base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")


GOOD_AUTH = _basic("admin", "s3cret")


@pytest.fixture
def runtime(monkeypatch):
    cfg = Settings(
        openai_api_key_secret_name="openai-key",
        auth_secret_name="auth-token",
        env="test",
    )
    secrets = FakeSecretsClient({"openai-key": {"apiKey": "sk-test"}, "auth-token": {"password": "s3cret"}})
    rt = build_runtime(cfg, secrets_client=secrets, client_factory=lambda api_key, **_: FakeUpstream())
    monkeypatch.setattr(gateway.app.state, "runtime", rt)
    return rt


@pytest_asyncio.fixture
async def client(runtime):
    transport = httpx.ASGITransport(app=gateway.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


def _build_request(path: str, *, method: str = "GET", headers: dict[str, str] | None = None) -> Request:
    raw_headers = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()]
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": b"",
        "headers": raw_headers,
        "client": ("127.0.0.1", 50000),
        "server": ("127.0.0.1", 3000),
        "app": gateway.app,
    }

    async def receive() -> dict:
        return {"type": "http.request", "body": b"", "more_body": False}

    return Request(scope, receive)


async def _allow_next(_request: Request):
    return JSONResponse(status_code=200, content={"ok": True})


@pytest.mark.asyncio
async def test_boundary_rejects_missing_authorization(runtime):
    response = await gateway.auth_boundary_middleware(_build_request("/mcp/info"), _allow_next)
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == 'Basic realm="OpenAI MCP Server"'
    body = json.loads(response.body.decode("utf-8"))
    assert body == {"error": "Unauthorized - Valid Basic auth required (username: admin)"}


@pytest.mark.asyncio
async def test_boundary_passes_valid_credentials(runtime):
    request = _build_request("/mcp/info", headers={"Authorization": GOOD_AUTH})
    response = await gateway.auth_boundary_middleware(request, _allow_next)
    assert response.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize("path", sorted(gateway.DISCOVERY_BYPASS_PATHS))
async def test_boundary_answers_oauth_discovery_without_auth(runtime, path):
    response = await gateway.auth_boundary_middleware(_build_request(path), _allow_next)
    assert response.status_code == 404
    body = json.loads(response.body.decode("utf-8"))
    assert "Basic" in body["error"]


@pytest.mark.asyncio
async def test_health_is_open_by_default(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["server"] == "openai-mcp-server"
    assert body["environment"] == "test"


@pytest.mark.asyncio
async def test_health_can_require_auth(client, runtime, monkeypatch):
    monkeypatch.setattr(runtime.settings, "health_requires_auth", True)
    assert (await client.get("/health")).status_code == 401
    assert (await client.get("/health", headers={"Authorization": GOOD_AUTH})).status_code == 200


@pytest.mark.asyncio
async def test_wrong_password_is_rejected(client):
    response = await client.post(
        "/",
        headers={"Authorization": _basic("admin", "wrong")},
        json={"jsonrpc": "2.0", "id": 1, "method": "ping"},
    )
    assert response.status_code == 401
    assert response.headers["www-authenticate"].startswith("Basic")


@pytest.mark.asyncio
async def test_discovery_documents(client):
    root = await client.get("/", headers={"Authorization": GOOD_AUTH})
    assert root.status_code == 200
    assert root.json()["protocolVersion"] == "2024-11-05"
    assert root.json()["serverInfo"]["name"] == "OpenAI MCP Server"

    info = await client.get("/mcp/info", headers={"Authorization": GOOD_AUTH})
    assert info.json()["capabilities"] == {"tools": {}}


@pytest.mark.asyncio
async def test_post_dispatches_tools_call(client):
    response = await client.post(
        "/",
        headers={"Authorization": GOOD_AUTH},
        json={
            "jsonrpc": "2.0",
            "id": "abc",
            "method": "tools/call",
            "params": {"name": "query_openai", "arguments": {"prompt": "hi"}},
        },
    )
    assert response.status_code == 200
    assert response.json() == {
        "jsonrpc": "2.0",
        "id": "abc",
        "result": {"content": [{"type": "text", "text": "echo:hi"}]},
    }


@pytest.mark.asyncio
async def test_post_unknown_method_is_http_200_with_error(client):
    response = await client.post(
        "/", headers={"Authorization": GOOD_AUTH}, json={"jsonrpc": "2.0", "id": 2, "method": "foo/bar"}
    )
    assert response.status_code == 200
    assert response.json()["error"]["code"] == -32601


@pytest.mark.asyncio
async def test_post_empty_body_is_bad_request(client):
    response = await client.post("/", headers={"Authorization": GOOD_AUTH}, content=b"")
    assert response.status_code == 400
    assert response.json() == {"error": "Request body is required"}


@pytest.mark.asyncio
async def test_post_invalid_json_is_parse_error(client):
    response = await client.post(
        "/", headers={"Authorization": GOOD_AUTH, "Content-Type": "application/json"}, content=b"{oops"
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32700
    assert response.json()["id"] is None


@pytest.mark.asyncio
async def test_post_initialization_failure_is_500(client, runtime):
    async def _fail(kind):
        if kind.value == "openai_api_key":
            raise SecretAccessError("secret store unreachable")
        return "s3cret"

    runtime.resolver.resolve_secret = _fail
    response = await client.post(
        "/", headers={"Authorization": GOOD_AUTH}, json={"jsonrpc": "2.0", "id": 1, "method": "ping"}
    )
    assert response.status_code == 500
    assert "Failed to initialize app" in response.json()["error"]


@pytest.mark.asyncio
async def test_post_notification_returns_empty_object(client):
    response = await client.post(
        "/", headers={"Authorization": GOOD_AUTH}, json={"jsonrpc": "2.0", "method": "notifications/cancelled"}
    )
    assert response.status_code == 200
    assert response.json() == {}
