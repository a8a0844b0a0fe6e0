"""FastAPI app entry."""

from __future__ import annotations

import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from openai_mcp.config.settings import settings
from openai_mcp.core.auth import auth_challenge
from openai_mcp.core.errors import PARSE_ERROR, AuthenticationError, InitializationError
from openai_mcp.core.runtime import McpRuntime, build_runtime
from openai_mcp.core.tools import mcp_info, root_discovery
from openai_mcp.observability.logging import log_event
from openai_mcp.util.logger import logger

# OAuth 探测路径：不走鉴权，直接 404 提示使用 Basic
DISCOVERY_BYPASS_PATHS = frozenset(
    {"/.well-known/oauth-authorization-server", "/.well-known/openid_configuration"}
)
_DISCOVERY_NOT_SUPPORTED = "OAuth discovery not supported. Use Basic token authentication."

app = FastAPI(title=settings.app_name)
app.state.runtime = build_runtime(settings)


def _runtime(request: Request) -> McpRuntime:
    return request.app.state.runtime


def _unauthorized_response(runtime: McpRuntime) -> JSONResponse:
    challenge = auth_challenge(runtime.settings)
    return JSONResponse(status_code=challenge.status_code, content=challenge.body, headers=challenge.headers)


@app.middleware("http")
async def auth_boundary_middleware(request: Request, call_next):
    runtime = _runtime(request)
    path = request.url.path
    logger.debug("boundary enter method=%s path=%s", request.method, path)

    if path in DISCOVERY_BYPASS_PATHS:
        return JSONResponse(status_code=404, content={"error": _DISCOVERY_NOT_SUPPORTED})

    if path == "/health" and not runtime.settings.health_requires_auth:
        return await call_next(request)

    try:
        await runtime.auth_gate.require(request.headers.get("authorization"))
    except AuthenticationError:
        await request.body()
        client_host = request.client.host if request.client else ""
        log_event("auth_rejected", method=request.method, path=path, client=client_host)
        return _unauthorized_response(runtime)

    try:
        return await call_next(request)
    except Exception:  # pragma: no cover - fail-safe
        logger.exception("gateway unhandled exception path=%s", path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
def health(request: Request) -> dict:
    logger.info("health check")
    return {
        "status": "healthy",
        "server": _runtime(request).settings.server_id,
        "environment": _runtime(request).settings.env,
        "pid": os.getpid(),
    }


@app.get("/")
def discovery(request: Request) -> dict:
    return root_discovery(_runtime(request).settings)


@app.get("/mcp/info")
def info(request: Request) -> dict:
    return mcp_info(_runtime(request).settings)


@app.post("/")
async def mcp_endpoint(request: Request) -> JSONResponse:
    runtime = _runtime(request)
    body = await request.body()
    if not body.strip():
        return JSONResponse(status_code=400, content={"error": "Request body is required"})
    logger.debug("mcp request body_size=%d", len(body))
    try:
        response = await runtime.handle_body(body)
    except InitializationError as exc:
        return JSONResponse(status_code=500, content={"error": str(exc)})
    status_code = 400 if response.error is not None and response.error.code == PARSE_ERROR else 200
    return JSONResponse(status_code=status_code, content=response.to_wire())


@app.on_event("startup")
async def startup_initialize() -> None:
    try:
        await app.state.runtime.session.initialize()
    except InitializationError as exc:
        logger.error("session initialize on startup failed: %s", exc)
        raise


@app.on_event("shutdown")
async def shutdown_cleanup() -> None:
    await app.state.runtime.aclose()


# CORS 必须最外层：预检请求不带 Authorization
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
