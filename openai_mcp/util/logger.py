"""Project logger: stderr always, rotating file when the working directory allows it."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from openai_mcp.config.settings import settings


LOG_DIR = Path("logs")
LOG_FILE = LOG_DIR / "openai_mcp.log"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 10
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _resolve_level(raw: str | None) -> int:
    level = logging.getLevelName(str(raw or "info").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _file_logging_enabled() -> bool:
    # Lambda 只读文件系统，日志走 CloudWatch(stderr)
    return not os.environ.get("AWS_LAMBDA_FUNCTION_NAME")


def _build_logger() -> logging.Logger:
    project_logger = logging.getLogger("openai_mcp")
    if project_logger.handlers:
        return project_logger

    level = _resolve_level(settings.log_level)
    project_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    # stdout 在 stdio 模式下是协议通道
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    project_logger.addHandler(stderr_handler)

    if _file_logging_enabled():
        try:
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(LOG_FILE, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
        except OSError as exc:
            project_logger.warning("file logging disabled path=%s error=%s", LOG_FILE, exc)
        else:
            file_handler.setFormatter(formatter)
            project_logger.addHandler(file_handler)

    project_logger.propagate = False
    return project_logger


logger = _build_logger()


def get_logger(name: str) -> logging.Logger:
    """Child logger under the `openai_mcp` namespace."""

    return logger.getChild(name)
