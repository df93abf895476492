# imgsource/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal

from imgsource.infra.logging_config import get_logger

logger = get_logger(__name__)

APP_NAME = "imgsource"
APP_VERSION = "1.0.0"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    log_json: bool = False  # JSON log lines (forced on in prod)
    host: str = "0.0.0.0"
    port: int = 8088

    # Remote image source
    # Comma-separated origins, e.g. "https://cdn.example.com,img.example.org:8080"
    # Empty = any origin may be fetched.
    allowed_origins: str = ""
    max_allowed_size: int = 0  # Bytes; 0 or negative disables the HEAD size check
    authorization: str = ""  # Static credential sent upstream (takes precedence over forwarding)
    auth_forwarding: bool = False  # Forward X-Forward-Authorization / Authorization from the inbound request

    # Upstream HTTP client
    fetch_timeout_seconds: float = 60.0
    fetch_connect_timeout_seconds: float = 15.0
    fetch_pool_limit: int = 10

    # Feature Flags
    enable_request_logging: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def use_json_logs(self) -> bool:
        return self.log_json or self.is_production

    @property
    def user_agent(self) -> str:
        return f"{APP_NAME}/{APP_VERSION}"


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if not s.allowed_origins.strip():
        if s.is_production:
            warnings.append("prod: allowed_origins is empty (any remote host can be fetched).")
        if s.auth_forwarding or s.authorization:
            warnings.append(
                "credentials are sent upstream but allowed_origins is empty: "
                "they will be forwarded to any host named in the url parameter."
            )

    if s.max_allowed_size <= 0:
        warnings.append("max_allowed_size is not set (remote payload size is not limited).")

    return warnings


def validate_or_warn(s: "Settings") -> list[str]:
    """
    Log configuration warnings.

    Returns the warnings so callers (and tests) can inspect them.
    """
    warnings = warn_on_risky_config(s)
    for msg in warnings:
        logger.warning("[config] %s", msg)
    return warnings


settings = Settings()
