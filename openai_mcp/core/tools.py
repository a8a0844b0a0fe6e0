"""Static protocol documents: tool descriptor, server info, discovery payloads."""

from __future__ import annotations

from typing import Any

from openai_mcp.config.settings import Settings, settings as default_settings

PROTOCOL_VERSION = "2024-11-05"
TOOL_NAME = "query_openai"


def server_info(settings: Settings | None = None) -> dict[str, str]:
    cfg = settings or default_settings
    return {"name": cfg.app_name, "version": cfg.version}


def initialize_result(settings: Settings | None = None) -> dict[str, Any]:
    return {
        "protocolVersion": PROTOCOL_VERSION,
        "capabilities": {"tools": {}, "logging": {}, "prompts": {}, "resources": {}},
        "serverInfo": server_info(settings),
    }


def query_openai_tool(settings: Settings | None = None) -> dict[str, Any]:
    cfg = settings or default_settings
    return {
        "name": TOOL_NAME,
        "description": "Query OpenAI API with a prompt and get a response",
        "inputSchema": {
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": "The prompt to send to OpenAI",
                },
                "model": {
                    "type": "string",
                    "description": "The OpenAI model to use",
                    "default": cfg.default_model,
                },
                "max_tokens": {
                    "type": "number",
                    "description": "Maximum tokens in the response (use max_completion_tokens for GPT-5)",
                    "default": 1000,
                },
                "max_completion_tokens": {
                    "type": "number",
                    "description": "Maximum completion tokens (for GPT-5 and newer models)",
                },
                "reasoning_effort": {
                    "type": "string",
                    "description": "Reasoning effort level for GPT-5 models",
                    "enum": ["minimal", "low", "medium", "high"],
                    "default": "medium",
                },
                "verbosity": {
                    "type": "string",
                    "description": "Response verbosity level for GPT-5 models",
                    "enum": ["low", "medium", "high"],
                    "default": "medium",
                },
                "use_responses_api": {
                    "type": "boolean",
                    "description": "Use Responses API for GPT-5 (recommended for best performance)",
                    "default": True,
                },
            },
            "required": ["prompt"],
        },
    }


def root_discovery(settings: Settings | None = None) -> dict[str, Any]:
    cfg = settings or default_settings
    return {
        "service": cfg.app_name,
        "description": "MCP server for OpenAI API queries with GPT-5 support",
        "version": cfg.version,
        **initialize_result(cfg),
    }


def mcp_info(settings: Settings | None = None) -> dict[str, Any]:
    return {
        "protocolVersion": PROTOCOL_VERSION,
        "capabilities": {"tools": {}},
        "serverInfo": server_info(settings),
    }
