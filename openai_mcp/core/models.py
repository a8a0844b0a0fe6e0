"""JSON-RPC envelope and tool argument models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from openai_mcp.config.settings import settings


class McpRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    jsonrpc: str | None = None
    id: str | int | None = None
    method: str
    params: dict[str, Any] | None = None

    @property
    def has_id(self) -> bool:
        """True when the caller sent an `id` member (notifications have none)."""
        return "id" in self.model_fields_set


class JsonRpcError(BaseModel):
    code: int
    message: str


class McpResponse(BaseModel):
    jsonrpc: str | None = None
    id: str | int | None = None
    result: dict[str, Any] | None = None
    error: JsonRpcError | None = None

    @classmethod
    def success(cls, request: McpRequest, result: dict[str, Any]) -> "McpResponse":
        fields: dict[str, Any] = {"jsonrpc": "2.0", "result": result}
        if request.has_id:
            fields["id"] = request.id
        return cls(**fields)

    @classmethod
    def failure(cls, error: dict[str, Any], *, request_id: Any = None, include_id: bool = True) -> "McpResponse":
        fields: dict[str, Any] = {"jsonrpc": "2.0", "error": JsonRpcError(**error)}
        if include_id:
            fields["id"] = request_id
        return cls(**fields)

    @classmethod
    def empty(cls) -> "McpResponse":
        return cls()

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class QueryOpenAIArguments(BaseModel):
    """Arguments of the `query_openai` tool, defaults applied."""

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    prompt: str
    model: str = Field(default=None, validate_default=True)
    max_tokens: int | float = 1000
    max_completion_tokens: int | float | None = None
    reasoning_effort: str = "medium"
    verbosity: str = "medium"
    use_responses_api: bool = True

    @field_validator("model", mode="before")
    @classmethod
    def _default_model(cls, value: Any, info: ValidationInfo) -> Any:
        # 未指定时取 runtime 的 default_model
        if value is None:
            return (info.context or {}).get("default_model") or settings.default_model
        return value


class TextContent(BaseModel):
    type: str = "text"
    text: str


class ToolResult(BaseModel):
    content: list[TextContent]

    @classmethod
    def from_text(cls, text: str) -> "ToolResult":
        return cls(content=[TextContent(text=text)])
