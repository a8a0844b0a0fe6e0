"""
本地开发控制器：以子进程启动 server，并把终止信号转成 stdin 上的 shutdown 消息，
超时后强制 kill（解决部分终端下信号转发不可靠的问题）。
"""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import threading

from openai_mcp.config.settings import settings
from openai_mcp.util.logger import logger


class DevController:
    def __init__(self, argv: list[str], *, kill_timeout_seconds: float | None = None) -> None:
        self.argv = list(argv)
        self.kill_timeout_seconds = float(
            kill_timeout_seconds if kill_timeout_seconds is not None else settings.controller_kill_timeout_seconds
        )
        self.child: subprocess.Popen | None = None
        self._kill_timer: threading.Timer | None = None

    def command(self) -> list[str]:
        return [sys.executable, "-m", "openai_mcp.server", *self.argv]

    def start(self) -> subprocess.Popen:
        env = {**os.environ, "USE_PROCESS_CONTROLLER": "1"}
        self.child = subprocess.Popen(self.command(), stdin=subprocess.PIPE, env=env)
        logger.info("controller pid=%s server pid=%s", os.getpid(), self.child.pid)
        return self.child

    def shutdown(self, reason: str = "signal") -> None:
        child = self.child
        if child is None or child.poll() is not None:
            return
        logger.info("shutting down server reason=%s", reason)
        if child.stdin is None:
            logger.warning("controller has no stdin pipe to server pid=%s", child.pid)
        else:
            try:
                child.stdin.write(b"shutdown\n")
                child.stdin.flush()
            except (BrokenPipeError, OSError) as exc:
                logger.warning("controller could not send shutdown message: %s", exc)
        if self._kill_timer is None:
            self._kill_timer = threading.Timer(self.kill_timeout_seconds, self._force_kill)
            self._kill_timer.daemon = True
            self._kill_timer.start()

    def _force_kill(self) -> None:
        child = self.child
        if child is None or child.poll() is not None:
            return
        logger.warning("graceful shutdown timeout, force killing pid=%s", child.pid)
        if sys.platform == "win32":
            subprocess.Popen(["taskkill", "/PID", str(child.pid), "/T", "/F"], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        else:
            child.kill()

    def wait(self) -> int:
        if self.child is None:
            raise RuntimeError("server process not started")
        code = self.child.wait()
        if self._kill_timer is not None:
            self._kill_timer.cancel()
        logger.info("server process exited with code %s", code)
        return code if code is not None and code >= 0 else 1


def _install_signal_handlers(controller: DevController) -> None:
    def _handle(signum, _frame) -> None:
        controller.shutdown(reason=signal.Signals(signum).name)

    names = ["SIGINT", "SIGTERM", "SIGQUIT", "SIGBREAK"]
    for name in names:
        sig = getattr(signal, name, None)
        if sig is not None:
            signal.signal(sig, _handle)


def main(argv: list[str] | None = None) -> int:
    controller = DevController(sys.argv[1:] if argv is None else argv)
    logger.info("starting OpenAI MCP Server with process controller")
    controller.start()
    _install_signal_handlers(controller)
    try:
        return controller.wait()
    except KeyboardInterrupt:
        controller.shutdown(reason="KeyboardInterrupt")
        return controller.wait()


if __name__ == "__main__":
    raise SystemExit(main())
