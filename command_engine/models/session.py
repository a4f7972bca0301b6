"""Transcript and session-level records."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from command_engine.models.action import PendingActionBatch
from command_engine.models.intent import Effect
from command_engine.models.temporal import TemporalExpression


class Role(str, Enum):
    ASSISTANT = "assistant"
    USER = "user"


class TranscriptMessage(BaseModel):
    role: Role
    text: str
    timestamp: datetime = Field(default_factory=datetime.now)


class RescheduleAutofill(BaseModel):
    """Target time parsed from a reschedule command, applied once slots load."""

    appointment_id: int
    expression: TemporalExpression


class CommandOutcome(BaseModel):
    """What a single submission (command, confirm, cancel) produced."""

    accepted: bool = True
    messages: List[TranscriptMessage] = []
    effects: List[Effect] = []
    pending: Optional[PendingActionBatch] = None
