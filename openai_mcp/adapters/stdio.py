"""Local transport: newline-delimited JSON-RPC over stdin/stdout."""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import AsyncIterator, Awaitable, Callable

from openai_mcp.core.runtime import McpRuntime
from openai_mcp.util.logger import logger


async def run_line_transport(
    runtime: McpRuntime,
    lines: AsyncIterator[bytes],
    write: Callable[[bytes], Awaitable[None]],
) -> None:
    """Serve one request per line; each request runs as its own task so slow model calls do not block pings."""
    await runtime.session.initialize()
    write_lock = asyncio.Lock()
    pending: set[asyncio.Task] = set()

    async def _serve(line: bytes) -> None:
        response = await runtime.dispatcher.handle_body(line)
        wire = response.to_wire()
        if not wire:
            return
        data = (json.dumps(wire, ensure_ascii=False) + "\n").encode("utf-8")
        async with write_lock:
            await write(data)

    async for raw in lines:
        line = raw.strip()
        if not line:
            continue
        task = asyncio.create_task(_serve(line))
        pending.add(task)
        task.add_done_callback(pending.discard)

    if pending:
        await asyncio.gather(*pending)
    logger.info("stdio transport closed")


async def _stdin_lines(reader: asyncio.StreamReader) -> AsyncIterator[bytes]:
    while True:
        line = await reader.readline()
        if not line:
            return
        yield line


async def serve_stdio(runtime: McpRuntime) -> None:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    transport, protocol = await loop.connect_write_pipe(asyncio.streams.FlowControlMixin, sys.stdout)
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)

    async def _write(data: bytes) -> None:
        writer.write(data)
        await writer.drain()

    logger.info("%s running on stdio", runtime.settings.app_name)
    await run_line_transport(runtime, _stdin_lines(reader), _write)
