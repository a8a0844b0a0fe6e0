"""Project error hierarchy and JSON-RPC error mapping."""

from __future__ import annotations

from typing import Any

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class McpServerError(Exception):
    """Base error."""

    code: int = INTERNAL_ERROR


class ConfigurationError(McpServerError):
    """Static configuration is missing or invalid."""


class SecretAccessError(McpServerError):
    """Secret store unreachable, or returned an empty/malformed payload."""


class InitializationError(McpServerError):
    """Session could not be brought to the ready state."""


class NotInitializedError(McpServerError):
    """Dispatch attempted before the session was initialized."""


class AuthenticationError(McpServerError):
    """Inbound credential rejected. Rendered as HTTP 401, never as a JSON-RPC error."""


class UpstreamError(McpServerError):
    """The model provider failed or rejected the call."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnknownMethodError(McpServerError):
    code = METHOD_NOT_FOUND

    def __init__(self, method: str) -> None:
        super().__init__(f"Unknown method: {method}")
        self.method = method


class MalformedRequestError(McpServerError):
    code = INVALID_REQUEST


class ParseError(MalformedRequestError):
    code = PARSE_ERROR


class InvalidParamsError(MalformedRequestError):
    code = INVALID_PARAMS


def to_jsonrpc_error(exc: BaseException) -> dict[str, Any]:
    """Map any exception to a `{code, message}` object safe to send to the caller."""

    if isinstance(exc, UpstreamError):
        return {"code": INTERNAL_ERROR, "message": f"Error querying OpenAI: {exc}"}
    if isinstance(exc, McpServerError):
        return {"code": exc.code, "message": str(exc) or exc.__class__.__name__}
    return {"code": INTERNAL_ERROR, "message": "Internal error"}
