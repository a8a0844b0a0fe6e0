"""Process session: lazily initialized upstream client handle."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Any

from openai_mcp.adapters.openai_upstream.client import OpenAIUpstreamClient
from openai_mcp.config.settings import Settings
from openai_mcp.core.credentials import CredentialResolver, SecretKind
from openai_mcp.core.errors import InitializationError, NotInitializedError
from openai_mcp.observability.logging import log_event
from openai_mcp.util.logger import logger


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class Session:
    """Uninitialized -> Initializing -> Ready. A failed initialize falls back to Uninitialized."""

    def __init__(
        self,
        resolver: CredentialResolver,
        *,
        client_factory: Callable[..., Any] = OpenAIUpstreamClient,
        settings: Settings | None = None,
    ) -> None:
        self._resolver = resolver
        self._client_factory = client_factory
        self.settings = settings or resolver.settings
        self._state = SessionState.UNINITIALIZED
        self._client: Any = None
        self._lock: asyncio.Lock | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is SessionState.READY

    @property
    def client(self) -> Any:
        if not self.ready:
            raise NotInitializedError("App not initialized. Call initialize() first.")
        return self._client

    async def initialize(self) -> None:
        if self.ready:
            return
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self.ready:
                return
            self._state = SessionState.INITIALIZING
            source = "secret_store" if self._resolver.uses_secret_store(SecretKind.OPENAI_API_KEY) else "config_file"
            try:
                api_key = await self._resolver.resolve_secret(SecretKind.OPENAI_API_KEY)
                client = self._client_factory(
                    api_key,
                    base_url=self.settings.openai_base_url,
                    timeout_seconds=self.settings.upstream_timeout_seconds,
                    max_retries=self.settings.upstream_max_retries,
                )
            except Exception as exc:
                self._state = SessionState.UNINITIALIZED
                logger.error("session initialize failed source=%s error=%s", source, exc)
                raise InitializationError(f"Failed to initialize app: {exc}") from exc
            self._client = client
            self._state = SessionState.READY
        log_event(
            "session_initialized",
            source=source,
            timeout_seconds=self.settings.upstream_timeout_seconds,
            max_retries=self.settings.upstream_max_retries,
        )

    async def aclose(self) -> None:
        client = self._client
        if client is not None and hasattr(client, "aclose"):
            await client.aclose()
