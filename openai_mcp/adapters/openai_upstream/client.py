"""
OpenAI HTTP client handle：单实例、带超时与重试上限，供 Model Call Strategy 调用。
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from openai_mcp.config.settings import settings
from openai_mcp.core.errors import UpstreamError
from openai_mcp.util.logger import get_logger

logger = get_logger("upstream")

_RETRYABLE_STATUS = frozenset({408, 409, 429, 500, 502, 503, 504})


def _upstream_http_timeout(timeout_seconds: float) -> httpx.Timeout:
    timeout = float(timeout_seconds)
    return httpx.Timeout(connect=min(timeout, 30.0), read=timeout, write=timeout, pool=timeout)


def _decode_json_or_text(body: bytes) -> dict[str, Any] | str:
    text = body.decode("utf-8", errors="replace")
    if not text:
        return ""
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
        return text
    except json.JSONDecodeError:
        return text


def _safe_error_detail(payload: dict[str, Any] | str) -> str:
    if isinstance(payload, str):
        return payload[:600]
    error = payload.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"][:600]
    if isinstance(error, str):
        return error[:600]
    return json.dumps(payload, ensure_ascii=False)[:600]


class OpenAIUpstreamClient:
    """Thin async wrapper over the `/responses` and `/chat/completions` endpoints."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
        retry_delay_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.timeout_seconds = float(timeout_seconds if timeout_seconds is not None else settings.upstream_timeout_seconds)
        self.max_retries = max(0, int(max_retries if max_retries is not None else settings.upstream_max_retries))
        self.retry_delay_seconds = max(
            0.0, float(retry_delay_seconds if retry_delay_seconds is not None else settings.upstream_retry_delay_seconds)
        )
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=_upstream_http_timeout(self.timeout_seconds),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def create_response(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._post_json("/responses", payload)

    async def create_chat_completion(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._post_json("/chat/completions", payload)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            logger.debug("upstream post start path=%s attempt=%d payload_bytes=%d", path, attempt, len(body))
            try:
                response = await self._http.post(path, content=body)
            except httpx.HTTPError as exc:
                detail = (str(exc) or "").strip() or "connection_failed_or_timeout"
                if attempt < attempts:
                    logger.warning("upstream post retry path=%s attempt=%d error=%s", path, attempt, detail)
                    await asyncio.sleep(self.retry_delay_seconds)
                    continue
                logger.warning("upstream post http_error path=%s error=%s", path, detail)
                raise UpstreamError(f"upstream_unreachable: {detail}") from exc

            if response.status_code in _RETRYABLE_STATUS and attempt < attempts:
                logger.warning("upstream post retry path=%s attempt=%d status=%s", path, attempt, response.status_code)
                await asyncio.sleep(self.retry_delay_seconds)
                continue

            decoded = _decode_json_or_text(response.content)
            logger.debug("upstream post done path=%s status=%s", path, response.status_code)
            if response.status_code >= 400:
                detail = _safe_error_detail(decoded)
                raise UpstreamError(f"{response.status_code} {detail}", status_code=response.status_code)
            if not isinstance(decoded, dict):
                raise UpstreamError("upstream returned a non-JSON body", status_code=response.status_code)
            return decoded
        raise UpstreamError("upstream retries exhausted")  # pragma: no cover
