"""
AWS Lambda 入口：兼容 API Gateway 与 Function URL 两种事件格式。
冷启动时构建 runtime，初始化在首个请求时完成，失败后下次调用重试。
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import os
from typing import Any

from openai_mcp.config.settings import settings
from openai_mcp.core.auth import auth_challenge
from openai_mcp.core.errors import PARSE_ERROR, AuthenticationError, MalformedRequestError
from openai_mcp.core.runtime import McpRuntime, build_runtime
from openai_mcp.core.tools import mcp_info, root_discovery
from openai_mcp.observability.logging import log_event
from openai_mcp.util.logger import logger

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
    "Content-Type": "application/json",
}
_DISCOVERY_BYPASS_PATHS = frozenset(
    {"/.well-known/oauth-authorization-server", "/.well-known/openid_configuration"}
)

_runtime: McpRuntime | None = None
_loop: asyncio.AbstractEventLoop | None = None


def _get_runtime() -> McpRuntime:
    global _runtime
    if _runtime is None:
        _runtime = build_runtime(settings)
    return _runtime


def _get_loop() -> asyncio.AbstractEventLoop:
    # httpx client 绑定 event loop，跨调用复用同一个 loop
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop


def _event_properties(event: dict[str, Any]) -> tuple[str, str, dict[str, str], str | None]:
    if event.get("httpMethod"):
        method = str(event["httpMethod"])
        path = str(event.get("path") or "/")
    else:
        http = ((event.get("requestContext") or {}).get("http")) or {}
        if not http.get("method"):
            raise MalformedRequestError("Unsupported event format")
        method = str(http["method"])
        path = str(http.get("path") or "/")

    headers = {str(k).lower(): str(v) for k, v in (event.get("headers") or {}).items() if v is not None}
    body = event.get("body")
    if body is not None and event.get("isBase64Encoded"):
        try:
            body = base64.b64decode(body).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise MalformedRequestError("Request body is not valid base64") from exc
    return method.upper(), path, headers, body


def _reply(status_code: int, body: Any, headers: dict[str, str] | None = None) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {**CORS_HEADERS, **(headers or {})},
        "body": body if isinstance(body, str) else json.dumps(body, ensure_ascii=False),
    }


async def handle_event(event: dict[str, Any], runtime: McpRuntime) -> dict[str, Any]:
    try:
        await runtime.session.initialize()
        method, path, headers, body = _event_properties(event)
        logger.info("lambda event method=%s path=%s body_size=%d", method, path, len(body or ""))

        if path in _DISCOVERY_BYPASS_PATHS:
            return _reply(404, {"error": "OAuth discovery not supported. Use Basic token authentication."})

        health_open = path == "/health" and not runtime.settings.health_requires_auth
        if not health_open:
            try:
                await runtime.auth_gate.require(headers.get("authorization"))
            except AuthenticationError:
                log_event("auth_rejected", method=method, path=path, client="lambda")
                challenge = auth_challenge(runtime.settings)
                return _reply(challenge.status_code, challenge.body, challenge.headers)

        if method == "OPTIONS":
            return _reply(200, "")
        if method == "GET" and path == "/health":
            return _reply(
                200,
                {"status": "healthy", "server": f"{runtime.settings.server_id}-lambda", "environment": "aws-lambda"},
            )
        if method == "GET" and path == "/":
            return _reply(200, root_discovery(runtime.settings))
        if method == "GET" and path == "/mcp/info":
            return _reply(200, mcp_info(runtime.settings))
        if method != "POST":
            return _reply(405, {"error": "Method not allowed"})
        if not body:
            return _reply(400, {"error": "Request body is required"})

        response = await runtime.dispatcher.handle_body(body)
        status_code = 400 if response.error is not None and response.error.code == PARSE_ERROR else 200
        return _reply(status_code, response.to_wire())
    except Exception as exc:
        logger.exception("lambda handler error")
        payload: dict[str, Any] = {"error": str(exc) or "Internal server error"}
        if runtime.settings.env != "production":
            payload["details"] = exc.__class__.__name__
        return _reply(500, payload)


def handler(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    return _get_loop().run_until_complete(handle_event(event, _get_runtime()))


if os.environ.get("AWS_LAMBDA_FUNCTION_NAME"):
    _get_runtime()
