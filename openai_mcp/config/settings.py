"""Runtime settings."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="OPENAI_MCP_", extra="ignore", populate_by_name=True)

    app_name: str = "OpenAI MCP Server"
    server_id: str = "openai-mcp-server"
    version: str = "1.0.0"
    env: str = "dev"
    log_level: str = "info"
    host: str = "127.0.0.1"
    port: int = Field(default=3000, validation_alias=AliasChoices("PORT", "OPENAI_MCP_PORT"))

    # 本地模式读取的 JSON 配置文件（openaiApiKey / customDomain）
    config_path: str = "config.json"
    # 设置后 API key 改从 Secrets Manager 读取
    openai_api_key_secret_name: str = Field(
        default="",
        validation_alias=AliasChoices("OPENAI_API_KEY_SECRET_NAME", "OPENAI_MCP_OPENAI_API_KEY_SECRET_NAME"),
    )
    auth_secret_name: str = Field(
        default="openai-mcp-auth-token",
        validation_alias=AliasChoices("AUTH_SECRET_NAME", "OPENAI_MCP_AUTH_SECRET_NAME"),
    )
    aws_region: str = Field(default="us-east-2", validation_alias=AliasChoices("AWS_REGION", "OPENAI_MCP_AWS_REGION"))
    secret_cache_ttl_seconds: int = 300

    openai_base_url: str = "https://api.openai.com/v1"
    upstream_timeout_seconds: float = 14 * 60
    upstream_max_retries: int = 1
    upstream_retry_delay_seconds: float = 0.5
    default_model: str = "gpt-5.1"

    auth_username: str = "admin"
    auth_realm: str = "OpenAI MCP Server"
    health_requires_auth: bool = False

    graceful_shutdown_seconds: int = 5
    use_process_controller: bool = Field(
        default=False,
        validation_alias=AliasChoices("USE_PROCESS_CONTROLLER", "OPENAI_MCP_USE_PROCESS_CONTROLLER"),
    )
    controller_kill_timeout_seconds: int = 6


settings = Settings()
