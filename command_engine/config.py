"""Settings for the command engine service."""

import os
from typing import Optional

from pydantic import BaseModel

from command_engine.models.config import EngineConfig
from command_engine.models.intent import BusinessMode


class Settings(BaseModel):
    mode: str = os.getenv("COMMAND_ENGINE_MODE", "general")

    backend_base_url: str = os.getenv("BACKEND_BASE_URL", "http://localhost:4000")
    backend_token: Optional[str] = os.getenv("BACKEND_TOKEN")
    backend_timeout: float = float(os.getenv("BACKEND_TIMEOUT", "10"))

    # Retail agent is disabled when no URL is configured
    agent_base_url: Optional[str] = os.getenv("AGENT_BASE_URL")
    agent_timeout: float = float(os.getenv("AGENT_TIMEOUT", "20"))

    order_cache_ttl_seconds: int = int(os.getenv("ORDER_CACHE_TTL_SECONDS", "120"))
    calendar_window_days: int = int(os.getenv("CALENDAR_WINDOW_DAYS", "14"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            mode=BusinessMode(self.mode.lower()),
            order_cache_ttl_seconds=self.order_cache_ttl_seconds,
            calendar_window_days=self.calendar_window_days,
        )
