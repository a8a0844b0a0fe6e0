"""Model call strategy: pick the upstream call shape per model family and normalize the reply text."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Union

from openai_mcp.core.models import QueryOpenAIArguments
from openai_mcp.observability.logging import log_event

NO_RESPONSE_TEXT = "No response received"
REASONING_MODEL_PREFIX = "gpt-5"


class UpstreamClient(Protocol):
    async def create_response(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    async def create_chat_completion(self, payload: dict[str, Any]) -> dict[str, Any]: ...


@dataclass(frozen=True)
class ResponsesCall:
    payload: dict[str, Any]
    kind: str = "responses"


@dataclass(frozen=True)
class ChatCompletionsCall:
    payload: dict[str, Any]
    kind: str = "chat_completions"


UpstreamCall = Union[ResponsesCall, ChatCompletionsCall]


@dataclass(frozen=True)
class ModelReply:
    text: str


def _token_ceiling(args: QueryOpenAIArguments) -> dict[str, Any]:
    # max_completion_tokens 优先；两者只下发一个
    if args.max_completion_tokens is not None:
        return {"max_completion_tokens": args.max_completion_tokens}
    return {"max_tokens": args.max_tokens}


def select_call(args: QueryOpenAIArguments) -> UpstreamCall:
    messages = [{"role": "user", "content": args.prompt}]
    if args.model.startswith(REASONING_MODEL_PREFIX):
        if args.use_responses_api:
            return ResponsesCall(
                payload={
                    "model": args.model,
                    "input": args.prompt,
                    "reasoning": {"effort": args.reasoning_effort},
                    "text": {"verbosity": args.verbosity},
                }
            )
        return ChatCompletionsCall(
            payload={
                "model": args.model,
                "messages": messages,
                "reasoning_effort": args.reasoning_effort,
                "verbosity": args.verbosity,
                **_token_ceiling(args),
            }
        )
    return ChatCompletionsCall(payload={"model": args.model, "messages": messages, **_token_ceiling(args)})


def _flatten_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "".join(_flatten_text(item) for item in value)
    if isinstance(value, dict):
        if isinstance(value.get("text"), str):
            return value["text"]
        if "content" in value:
            return _flatten_text(value["content"])
    return ""


def extract_responses_text(body: dict[str, Any]) -> str:
    output_text = body.get("output_text")
    if isinstance(output_text, str) and output_text:
        return output_text
    # raw API bodies carry text under output[].content[] with type=output_text
    parts: list[str] = []
    output = body.get("output")
    if isinstance(output, list):
        for item in output:
            if not isinstance(item, dict) or item.get("type", "message") != "message":
                continue
            for part in item.get("content") or []:
                if isinstance(part, dict) and part.get("type") == "output_text" and isinstance(part.get("text"), str):
                    parts.append(part["text"])
    return "".join(parts)


def extract_chat_text(body: dict[str, Any]) -> str:
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    message = first.get("message")
    if not isinstance(message, dict):
        return ""
    return _flatten_text(message.get("content"))


class ModelCallStrategy:
    def __init__(self, client: UpstreamClient) -> None:
        self._client = client

    async def invoke(self, args: QueryOpenAIArguments) -> ModelReply:
        call = select_call(args)
        if isinstance(call, ResponsesCall):
            body = await self._client.create_response(call.payload)
            text = extract_responses_text(body)
        else:
            body = await self._client.create_chat_completion(call.payload)
            text = extract_chat_text(body)
        log_event("upstream_call_done", model=args.model, call=call.kind, text_chars=len(text))
        return ModelReply(text=text or NO_RESPONSE_TEXT)
