"""Runtime context: one resolver, auth gate, session, and dispatcher per process (or per test)."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from openai_mcp.adapters.openai_upstream.client import OpenAIUpstreamClient
from openai_mcp.config.settings import Settings, settings as default_settings
from openai_mcp.core.auth import BasicAuthGate
from openai_mcp.core.credentials import CredentialResolver
from openai_mcp.core.dispatcher import McpDispatcher
from openai_mcp.core.models import McpResponse
from openai_mcp.core.session import Session


@dataclass
class McpRuntime:
    settings: Settings
    resolver: CredentialResolver
    auth_gate: BasicAuthGate
    session: Session
    dispatcher: McpDispatcher

    async def handle_body(self, body: bytes | str) -> McpResponse:
        await self.session.initialize()
        return await self.dispatcher.handle_body(body)

    async def aclose(self) -> None:
        await self.session.aclose()


def build_runtime(
    settings: Settings | None = None,
    *,
    secrets_client: Any = None,
    client_factory: Callable[..., Any] = OpenAIUpstreamClient,
) -> McpRuntime:
    cfg = settings or default_settings
    resolver = CredentialResolver(cfg, secrets_client=secrets_client)
    session = Session(resolver, client_factory=client_factory, settings=cfg)
    return McpRuntime(
        settings=cfg,
        resolver=resolver,
        auth_gate=BasicAuthGate(resolver, cfg),
        session=session,
        dispatcher=McpDispatcher(session),
    )
