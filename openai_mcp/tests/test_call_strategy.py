import pytest

from openai_mcp.adapters.openai_upstream.strategy import (
    NO_RESPONSE_TEXT,
    ChatCompletionsCall,
    ModelCallStrategy,
    ResponsesCall,
    extract_chat_text,
    extract_responses_text,
    select_call,
)
from openai_mcp.core.errors import UpstreamError
from openai_mcp.core.models import QueryOpenAIArguments


class FakeUpstream:
    def __init__(self, responses_body=None, chat_body=None, error: Exception | None = None) -> None:
        self.responses_body = responses_body or {}
        self.chat_body = chat_body or {}
        self.error = error
        self.responses_payloads: list[dict] = []
        self.chat_payloads: list[dict] = []

    async def create_response(self, payload):
        self.responses_payloads.append(payload)
        if self.error:
            raise self.error
        return self.responses_body

    async def create_chat_completion(self, payload):
        self.chat_payloads.append(payload)
        if self.error:
            raise self.error
        return self.chat_body


def _args(**kwargs) -> QueryOpenAIArguments:
    return QueryOpenAIArguments(prompt="Hi", **kwargs)


def test_defaults_applied_to_arguments():
    args = QueryOpenAIArguments(prompt="Hi")
    assert args.model == "gpt-5.1"
    assert args.max_tokens == 1000
    assert args.max_completion_tokens is None
    assert args.reasoning_effort == "medium"
    assert args.verbosity == "medium"
    assert args.use_responses_api is True


def test_gpt5_defaults_to_responses_call():
    call = select_call(_args(model="gpt-5.1", reasoning_effort="high", verbosity="low"))
    assert isinstance(call, ResponsesCall)
    assert call.payload == {
        "model": "gpt-5.1",
        "input": "Hi",
        "reasoning": {"effort": "high"},
        "text": {"verbosity": "low"},
    }


def test_gpt5_chat_completions_sends_reasoning_fields_and_legacy_ceiling():
    call = select_call(_args(model="gpt-5", use_responses_api=False))
    assert isinstance(call, ChatCompletionsCall)
    assert call.payload == {
        "model": "gpt-5",
        "messages": [{"role": "user", "content": "Hi"}],
        "reasoning_effort": "medium",
        "verbosity": "medium",
        "max_tokens": 1000,
    }


@pytest.mark.parametrize("model", ["gpt-4", "gpt-4o-mini", "o3", "GPT-5"])
def test_other_models_never_send_reasoning_fields(model):
    call = select_call(_args(model=model, reasoning_effort="high", verbosity="high"))
    assert isinstance(call, ChatCompletionsCall)
    assert "reasoning_effort" not in call.payload
    assert "verbosity" not in call.payload
    assert "reasoning" not in call.payload
    assert call.payload["messages"] == [{"role": "user", "content": "Hi"}]


@pytest.mark.parametrize(
    "model,use_responses_api",
    [("gpt-4", True), ("gpt-5-mini", False)],
)
def test_modern_token_ceiling_wins_when_both_supplied(model, use_responses_api):
    call = select_call(
        _args(model=model, use_responses_api=use_responses_api, max_tokens=50, max_completion_tokens=200)
    )
    assert call.payload["max_completion_tokens"] == 200
    assert "max_tokens" not in call.payload


def test_token_ceilings_are_passed_through_uninterpreted():
    call = select_call(_args(model="gpt-4", max_tokens=-5))
    assert call.payload["max_tokens"] == -5


def test_reasoning_enums_are_not_validated_locally():
    call = select_call(_args(model="gpt-5", reasoning_effort="extreme", verbosity="chatty"))
    assert call.payload["reasoning"] == {"effort": "extreme"}
    assert call.payload["text"] == {"verbosity": "chatty"}


def test_extract_responses_text_prefers_output_text():
    assert extract_responses_text({"output_text": "Quantum!"}) == "Quantum!"


def test_extract_responses_text_reads_raw_output_items():
    body = {
        "output": [
            {"type": "reasoning", "summary": []},
            {
                "type": "message",
                "role": "assistant",
                "content": [{"type": "output_text", "text": "Hello "}, {"type": "output_text", "text": "world"}],
            },
        ]
    }
    assert extract_responses_text(body) == "Hello world"


def test_extract_chat_text_reads_first_choice():
    body = {"choices": [{"message": {"content": "first"}}, {"message": {"content": "second"}}]}
    assert extract_chat_text(body) == "first"
    assert extract_chat_text({"choices": []}) == ""
    assert extract_chat_text({"choices": [{"message": {"content": None}}]}) == ""


@pytest.mark.asyncio
async def test_invoke_chat_completions_returns_text():
    upstream = FakeUpstream(chat_body={"choices": [{"message": {"role": "assistant", "content": "Hello"}}]})
    reply = await ModelCallStrategy(upstream).invoke(_args(model="gpt-4"))
    assert reply.text == "Hello"
    assert upstream.responses_payloads == []
    assert upstream.chat_payloads[0]["model"] == "gpt-4"


@pytest.mark.asyncio
async def test_invoke_responses_returns_text():
    upstream = FakeUpstream(responses_body={"output_text": "Quantum!"})
    reply = await ModelCallStrategy(upstream).invoke(_args(model="gpt-5.1"))
    assert reply.text == "Quantum!"
    assert upstream.chat_payloads == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs,responses_body,chat_body",
    [
        ({"model": "gpt-5.1"}, {"output_text": ""}, None),
        ({"model": "gpt-5.1", "use_responses_api": False}, None, {"choices": []}),
        ({"model": "gpt-4"}, None, {"choices": [{"message": {"content": ""}}]}),
    ],
)
async def test_invoke_substitutes_placeholder_for_empty_output(kwargs, responses_body, chat_body):
    upstream = FakeUpstream(responses_body=responses_body, chat_body=chat_body)
    reply = await ModelCallStrategy(upstream).invoke(_args(**kwargs))
    assert reply.text == NO_RESPONSE_TEXT


@pytest.mark.asyncio
async def test_invoke_propagates_upstream_errors():
    upstream = FakeUpstream(error=UpstreamError("429 rate limited"))
    with pytest.raises(UpstreamError):
        await ModelCallStrategy(upstream).invoke(_args(model="gpt-4"))
