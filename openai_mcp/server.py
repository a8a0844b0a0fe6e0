"""
进程入口：HTTP（uvicorn）或 stdio 两种模式。
USE_PROCESS_CONTROLLER=1 时 stdin 作为控制通道：收到 shutdown 或父进程断开即优雅退出。
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
import threading

import uvicorn

from openai_mcp.config.settings import settings
from openai_mcp.core.errors import InitializationError
from openai_mcp.util.logger import logger

SHUTDOWN_MESSAGE = b"shutdown"
_PARENT_POLL_SECONDS = 1.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="openai-mcp-server", description="MCP server for OpenAI API queries")
    parser.add_argument("--transport", choices=("http", "stdio"), default="http")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--config", default=None, help="Path to config.json (local mode)")
    return parser


def request_shutdown(server: uvicorn.Server, reason: str) -> None:
    if server.should_exit:
        return
    logger.info("shutdown requested reason=%s", reason)
    server.should_exit = True


async def watch_control_channel(server: uvicorn.Server, reader: asyncio.StreamReader) -> None:
    """Parent controller sends `shutdown` on stdin; EOF means the parent went away."""
    while not server.should_exit:
        line = await reader.readline()
        if not line:
            request_shutdown(server, "controller_disconnected")
            return
        if line.strip() == SHUTDOWN_MESSAGE:
            request_shutdown(server, "controller_message")
            return
        logger.debug("controller message ignored size=%d", len(line))


async def watch_parent(server: uvicorn.Server, parent_pid: int, interval: float = _PARENT_POLL_SECONDS) -> None:
    while not server.should_exit:
        await asyncio.sleep(interval)
        if os.getppid() != parent_pid:
            request_shutdown(server, "parent_exited")
            return


async def _shutdown_watchdog(server: uvicorn.Server, window_seconds: float) -> None:
    # 超过优雅退出窗口仍未结束则强制退出
    while not server.should_exit:
        await asyncio.sleep(0.2)
    timer = threading.Timer(window_seconds + 1.0, _force_exit)
    timer.daemon = True
    timer.start()


def _force_exit() -> None:
    logger.error("force closing server after graceful shutdown timeout")
    os._exit(1)


async def _controller_tasks(server: uvicorn.Server) -> list[asyncio.Task]:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    logger.info("process controller mode enabled - listening for shutdown messages")
    return [
        asyncio.create_task(watch_control_channel(server, reader), name="openai-mcp-controller-channel"),
        asyncio.create_task(watch_parent(server, os.getppid()), name="openai-mcp-parent-watch"),
    ]


async def serve_http(host: str, port: int) -> int:
    from openai_mcp.adapters.http.gateway import app

    try:
        await app.state.runtime.session.initialize()
    except InitializationError as exc:
        logger.error("Failed to initialize app: %s", exc)
        return 1

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=settings.graceful_shutdown_seconds,
    )
    server = uvicorn.Server(config)
    tasks = [asyncio.create_task(_shutdown_watchdog(server, settings.graceful_shutdown_seconds))]
    if settings.use_process_controller:
        tasks.extend(await _controller_tasks(server))

    logger.info("%s running on HTTP port %s pid=%s", settings.app_name, port, os.getpid())
    logger.info("health check: http://%s:%s/health", host, port)
    try:
        await server.serve()
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
    logger.info("server closed successfully")
    return 0


async def serve_stdio_transport() -> int:
    from openai_mcp.adapters.stdio import serve_stdio
    from openai_mcp.core.runtime import build_runtime

    runtime = build_runtime(settings)
    try:
        await serve_stdio(runtime)
    except InitializationError as exc:
        logger.error("Failed to initialize app: %s", exc)
        logger.error("Make sure to create config.json from config.json.example")
        return 1
    finally:
        await runtime.aclose()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.config:
        settings.config_path = args.config
    logger.info(
        "starting server entry point transport=%s controller=%s lambda=%s",
        args.transport,
        settings.use_process_controller,
        bool(os.environ.get("AWS_LAMBDA_FUNCTION_NAME")),
    )
    if args.transport == "stdio":
        return asyncio.run(serve_stdio_transport())
    return asyncio.run(serve_http(args.host, args.port))


if __name__ == "__main__":
    raise SystemExit(main())
