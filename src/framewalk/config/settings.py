from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None:
        return default
    try:
        return int(val, 10)
    except ValueError:
        return default


@dataclass
class Settings:
    headless: bool = _env_bool("HEADLESS", True)
    use_chromium: bool = _env_bool("FRAMEWALK_USE_CHROMIUM", False)  # else Chrome channel
    viewport_maximized: bool = _env_bool("FRAMEWALK_VIEWPORT_MAXIMIZED", True)
    viewport_width: int = _env_int("FRAMEWALK_VIEWPORT_WIDTH", 1280)
    viewport_height: int = _env_int("FRAMEWALK_VIEWPORT_HEIGHT", 800)

    frame_timeout_ms: int = _env_int("FRAMEWALK_FRAME_TIMEOUT_MS", 10000)
    evaluate_timeout_ms: int = _env_int("FRAMEWALK_EVALUATE_TIMEOUT_MS", 5000)
    protocol_timeout_ms: int = _env_int("FRAMEWALK_PROTOCOL_TIMEOUT_MS", 10000)
    action_timeout_ms: int = _env_int("FRAMEWALK_ACTION_TIMEOUT_MS", 10000)
    navigation_timeout_ms: int = _env_int("FRAMEWALK_NAVIGATION_TIMEOUT_MS", 60000)

    name_max_length: int = _env_int("FRAMEWALK_NAME_MAX_LENGTH", 200)
    min_entries: int = _env_int("FRAMEWALK_MIN_ENTRIES", 1)  # tier escalation threshold

    mcp_host: str = os.getenv("MCP_HOST", "0.0.0.0")  # nosec B104
    mcp_port: int = _env_int("MCP_PORT", 8085)
    mcp_transport: str = os.getenv("MCP_TRANSPORT", "stdio")  # stdio|streamable-http
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
