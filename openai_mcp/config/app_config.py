"""
本地模式配置文件：config.json（参考 config.json.example）。
仅在未配置 Secrets Manager 时读取 openaiApiKey。
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from openai_mcp.config.settings import settings
from openai_mcp.core.errors import ConfigurationError


class AppConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    openai_api_key: str = Field(alias="openaiApiKey", min_length=1)
    custom_domain: str | None = Field(default=None, alias="customDomain")

    def __repr__(self) -> str:
        return f"AppConfig(custom_domain={self.custom_domain!r})"

    __str__ = __repr__


def _path(raw: str | os.PathLike[str] | None) -> Path:
    p = Path(raw if raw is not None else settings.config_path)
    return p if p.is_absolute() else Path.cwd() / p


def load_app_config(path: str | os.PathLike[str] | None = None) -> AppConfig:
    config_path = _path(path)
    if not config_path.is_file():
        raise ConfigurationError(f"{config_path.name} not found. Please create it based on {config_path.name}.example")

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"{config_path.name} could not be read: {exc.__class__.__name__}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path.name} must contain a JSON object")

    api_key = data.get("openaiApiKey")
    if not isinstance(api_key, str) or not api_key.strip():
        raise ConfigurationError(f"openaiApiKey is required in {config_path.name}")

    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(x) for x in err.get("loc", ())) for err in exc.errors())
        raise ConfigurationError(f"{config_path.name} is invalid: {fields}") from exc
