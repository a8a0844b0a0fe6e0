"""MCP request dispatcher and error normalization."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from openai_mcp.adapters.openai_upstream.strategy import ModelCallStrategy
from openai_mcp.core.errors import (
    InvalidParamsError,
    MalformedRequestError,
    McpServerError,
    ParseError,
    UnknownMethodError,
    UpstreamError,
    to_jsonrpc_error,
)
from openai_mcp.core.models import McpRequest, McpResponse, QueryOpenAIArguments, ToolResult
from openai_mcp.core.session import Session
from openai_mcp.core.tools import TOOL_NAME, initialize_result, query_openai_tool
from openai_mcp.util.logger import logger


def parse_request(body: bytes | str) -> McpRequest:
    """Decode wire bytes into a request; ParseError for non-JSON, MalformedRequestError for bad envelopes."""
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ParseError("Parse error: body is not valid JSON") from exc
    return request_from_payload(payload)


def request_from_payload(payload: Any) -> McpRequest:
    if not isinstance(payload, dict):
        raise MalformedRequestError("Invalid Request: expected a JSON object")
    try:
        return McpRequest.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(x) for x in err.get("loc", ())) or "body" for err in exc.errors())
        raise MalformedRequestError(f"Invalid Request: {fields}") from exc


def _payload_id(body: bytes | str) -> str | int | None:
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    value = payload.get("id")
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return value
    return None


def error_response(
    exc: BaseException,
    request: McpRequest | None = None,
    *,
    request_id: str | int | None = None,
) -> McpResponse:
    """Normalize any exception into a JSON-RPC error response."""
    if isinstance(exc, (UpstreamError, UnknownMethodError, MalformedRequestError)):
        logger.warning("mcp request failed method=%s error=%s", request.method if request else "-", exc)
    elif isinstance(exc, McpServerError):
        logger.error("mcp request failed method=%s error=%s", request.method if request else "-", exc)
    else:
        logger.exception("mcp request failed unexpectedly method=%s", request.method if request else "-")
    error = to_jsonrpc_error(exc)
    if request is None:
        return McpResponse.failure(error, request_id=request_id)
    return McpResponse.failure(error, request_id=request.id, include_id=request.has_id)


class McpDispatcher:
    def __init__(
        self,
        session: Session,
        *,
        strategy_factory: Callable[[Any], ModelCallStrategy] = ModelCallStrategy,
    ) -> None:
        self._session = session
        self._strategy_factory = strategy_factory

    async def handle_body(self, body: bytes | str) -> McpResponse:
        """Parse wire bytes and dispatch; envelope failures become error responses."""
        try:
            request = parse_request(body)
        except MalformedRequestError as exc:
            return error_response(exc, request_id=_payload_id(body))
        return await self.dispatch(request)

    async def dispatch(self, request: McpRequest) -> McpResponse:
        client = self._session.client
        method = request.method
        logger.debug("mcp dispatch method=%s has_id=%s", method, request.has_id)

        if method == "initialize":
            return McpResponse.success(request, initialize_result(self._session.settings))

        if method == "notifications/initialized":
            if not request.has_id:
                return McpResponse.empty()
            return McpResponse.success(request, {})

        if method == "ping":
            return McpResponse.success(request, {"status": "ok"})

        if method == "tools/list":
            return McpResponse.success(request, {"tools": [query_openai_tool(self._session.settings)]})

        params = request.params or {}
        if method == "tools/call" and params.get("name") == TOOL_NAME:
            try:
                args = self._tool_arguments(params)
                reply = await self._strategy_factory(client).invoke(args)
            except Exception as exc:
                return error_response(exc, request)
            return McpResponse.success(request, ToolResult.from_text(reply.text).model_dump())

        if not request.has_id:
            # JSON-RPC 通知不回包
            logger.info("mcp notification ignored method=%s", method)
            return McpResponse.empty()
        return error_response(UnknownMethodError(method), request)

    def _tool_arguments(self, params: dict[str, Any]) -> QueryOpenAIArguments:
        arguments = params.get("arguments")
        if not isinstance(arguments, dict):
            raise InvalidParamsError("Invalid params: arguments are required")
        try:
            return QueryOpenAIArguments.model_validate(
                arguments, context={"default_model": self._session.settings.default_model}
            )
        except ValidationError as exc:
            fields = ", ".join(".".join(str(x) for x in err.get("loc", ())) for err in exc.errors())
            raise InvalidParamsError(f"Invalid params: {fields}") from exc
