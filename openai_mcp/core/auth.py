"""Inbound Basic-auth gate and the fixed 401 challenge."""

from __future__ import annotations

import base64
import binascii
import hmac
import re
from dataclasses import dataclass, field

from openai_mcp.config.settings import Settings, settings as default_settings
from openai_mcp.core.credentials import CredentialResolver, SecretKind
from openai_mcp.core.errors import AuthenticationError, McpServerError
from openai_mcp.util.logger import logger

_BASIC_RE = re.compile(r"^Basic\s+(.+)$", re.IGNORECASE)


@dataclass(frozen=True)
class AuthChallenge:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, str] = field(default_factory=dict)


def auth_challenge(settings: Settings | None = None) -> AuthChallenge:
    cfg = settings or default_settings
    return AuthChallenge(
        status_code=401,
        headers={
            "Content-Type": "application/json",
            "WWW-Authenticate": f'Basic realm="{cfg.auth_realm}"',
        },
        body={"error": f"Unauthorized - Valid Basic auth required (username: {cfg.auth_username})"},
    )


def _decode_basic(header_value: str) -> tuple[str, str] | None:
    matched = _BASIC_RE.match(header_value.strip())
    if not matched:
        return None
    try:
        token = matched.group(1).strip()
        # 部分客户端省略 base64 尾部 padding
        token += "=" * (-len(token) % 4)
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


class BasicAuthGate:
    def __init__(self, resolver: CredentialResolver, settings: Settings | None = None) -> None:
        self._resolver = resolver
        self.settings = settings or resolver.settings or default_settings

    async def validate(self, header_value: str | None) -> bool:
        """Return True only for `Basic base64(<username>:<password>)` matching the stored secret. Never raises."""
        if not header_value:
            return False
        credentials = _decode_basic(header_value)
        if credentials is None:
            logger.debug("auth reject reason=malformed_header")
            return False
        username, password = credentials
        if username != self.settings.auth_username:
            logger.debug("auth reject reason=username_mismatch")
            return False
        try:
            expected = await self._resolver.resolve_secret(SecretKind.AUTH_PASSWORD)
        except McpServerError as exc:
            logger.error("auth validation failed: %s", exc)
            return False
        except Exception:  # pragma: no cover - fail closed
            logger.exception("auth validation failed unexpectedly")
            return False
        return hmac.compare_digest(password.encode("utf-8"), expected.encode("utf-8"))

    async def require(self, header_value: str | None) -> None:
        """Raise AuthenticationError unless `validate` accepts the header."""
        if not await self.validate(header_value):
            raise AuthenticationError("Valid Basic auth required")
