"""Lifecycle event lines: `event=<name> key=value ...`."""

from __future__ import annotations

from openai_mcp.util.logger import get_logger

_event_logger = get_logger("events")
_SENSITIVE_KEYS = frozenset({"api_key", "apikey", "password", "token", "authorization", "secret_value"})


def _render(payload: dict[str, object]) -> str:
    parts = []
    for key in sorted(payload):
        value = payload[key]
        if value is None:
            continue
        if key.lower() in _SENSITIVE_KEYS:
            value = "***"
        parts.append(f"{key}={value}")
    return " ".join(parts)


def log_event(event: str, **payload: object) -> None:
    _event_logger.info("event=%s %s", event, _render(payload))
