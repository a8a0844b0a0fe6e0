"""Credential resolution: local config file or AWS Secrets Manager, with a TTL cache for store values."""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable
from enum import Enum
from threading import Lock
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from openai_mcp.config.app_config import load_app_config
from openai_mcp.config.settings import Settings, settings as default_settings
from openai_mcp.core.errors import ConfigurationError, SecretAccessError
from openai_mcp.observability.logging import log_event
from openai_mcp.util.logger import get_logger

logger = get_logger("credentials")


class SecretKind(str, Enum):
    OPENAI_API_KEY = "openai_api_key"
    AUTH_PASSWORD = "auth_password"


# 兼容旧版 secret JSON：auth 优先 password，回退 token
_SECRET_FIELDS: dict[SecretKind, tuple[str, ...]] = {
    SecretKind.OPENAI_API_KEY: ("apiKey",),
    SecretKind.AUTH_PASSWORD: ("password", "token"),
}


class SecretCache:
    """In-memory secret cache keyed by secret name, entries expire after `ttl_seconds`."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = max(0.0, float(ttl_seconds))
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = Lock()

    def get(self, name: str) -> str | None:
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                self._entries.pop(name, None)
                return None
            return value

    def put(self, name: str, value: str) -> None:
        with self._lock:
            self._entries[name] = (value, self._clock() + self.ttl_seconds)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class CredentialResolver:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        secrets_client: Any = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or default_settings
        self._secrets_client = secrets_client
        self._client_lock = Lock()
        self.cache = SecretCache(self.settings.secret_cache_ttl_seconds, clock=clock)

    def uses_secret_store(self, kind: SecretKind) -> bool:
        if kind is SecretKind.OPENAI_API_KEY:
            return bool(self.settings.openai_api_key_secret_name.strip())
        return True

    def secret_name(self, kind: SecretKind) -> str:
        if kind is SecretKind.OPENAI_API_KEY:
            return self.settings.openai_api_key_secret_name.strip()
        return self.settings.auth_secret_name.strip()

    async def resolve_secret(self, kind: SecretKind) -> str:
        if not self.uses_secret_store(kind):
            return self._from_config_file()
        name = self.secret_name(kind)
        if not name:
            raise ConfigurationError(f"no secret name configured for {kind.value}")
        return await self._from_secret_store(name, _SECRET_FIELDS[kind])

    def _from_config_file(self) -> str:
        try:
            config = load_app_config(self.settings.config_path)
        except ConfigurationError as exc:
            logger.error("credential resolve failed source=config_file error=%s", exc)
            raise
        return config.openai_api_key.strip()

    def _client(self) -> Any:
        if self._secrets_client is not None:
            return self._secrets_client
        with self._client_lock:
            if self._secrets_client is None:
                self._secrets_client = boto3.client("secretsmanager", region_name=self.settings.aws_region)
        return self._secrets_client

    async def _from_secret_store(self, name: str, fields: tuple[str, ...]) -> str:
        cached = self.cache.get(name)
        if cached is not None:
            return cached

        try:
            client = self._client()
            response = await asyncio.to_thread(client.get_secret_value, SecretId=name)
        except (BotoCoreError, ClientError) as exc:
            logger.warning("credential resolve failed source=secret_store secret=%s error=%s", name, exc.__class__.__name__)
            raise SecretAccessError(f"secret store request failed for {name}") from exc

        raw = (response or {}).get("SecretString")
        if not raw:
            logger.warning("credential resolve failed source=secret_store secret=%s reason=empty", name)
            raise SecretAccessError("Secret value is empty")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("credential resolve failed source=secret_store secret=%s reason=not_json", name)
            raise SecretAccessError("Secret value is not valid JSON") from exc
        if not isinstance(data, dict):
            raise SecretAccessError("Secret value must be a JSON object")

        value = ""
        for field in fields:
            candidate = data.get(field)
            if isinstance(candidate, str) and candidate.strip():
                value = candidate.strip()
                break
        if not value:
            logger.warning("credential resolve failed source=secret_store secret=%s reason=field_missing", name)
            raise SecretAccessError(f"{' or '.join(fields)} not found in secret")

        self.cache.put(name, value)
        log_event("secret_resolved", source="secret_store", secret=name)
        return value
