"""Engine configuration."""

from typing import List

from pydantic import BaseModel, Field

from command_engine.models.intent import BusinessMode


class EngineConfig(BaseModel):
    """Tunables read by the session and the Execution Engine."""

    mode: BusinessMode = BusinessMode.GENERAL
    order_cache_ttl_seconds: int = Field(ge=0, default=120)
    calendar_window_days: int = Field(ge=1, default=14)
    hidden_appointment_statuses: List[str] = [
        "cancelled",
        "canceled",
        "cancelado",
        "hidden",
        "deleted",
    ]
    nothing_executed_message: str = "No se ejecutó ninguna acción."
