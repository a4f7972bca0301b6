"""
Command Engine API: FastAPI endpoints.

Exposes the command session over REST for:
- Command submission
- Pending batch inspection, confirmation and cancellation
- Transcript reads
- Action normalization diagnostics
- Reschedule slot auto-fill
"""

from datetime import datetime
from typing import Any, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from command_engine.actions.normalizer import normalize_actions
from command_engine.agent.client import HttpAgentClient
from command_engine.backend.http import HttpBackend
from command_engine.config import Settings
from command_engine.log import set_level
from command_engine.models.action import Action, PendingActionBatch
from command_engine.models.session import CommandOutcome, TranscriptMessage
from command_engine.session.command import CommandSession
from command_engine.session.guard import SessionBusyError


# --- Request/Response Models ---

class CommandRequest(BaseModel):
    text: str = Field(min_length=1, pattern=r"\S")


class NormalizeRequest(BaseModel):
    actions: List[Any] = []


class NormalizeResponse(BaseModel):
    actions: List[Action]
    dropped: int


class AutofillRequest(BaseModel):
    slots: List[datetime] = []


class AutofillResponse(BaseModel):
    slot: Optional[datetime] = None


# --- Application Factory ---

def build_session(settings: Settings) -> CommandSession:
    """Wire a session against the configured HTTP backend and agent."""
    backend = HttpBackend(
        settings.backend_base_url,
        token=settings.backend_token,
        timeout=settings.backend_timeout,
    )
    agent = None
    if settings.agent_base_url:
        agent = HttpAgentClient(
            settings.agent_base_url,
            token=settings.backend_token,
            timeout=settings.agent_timeout,
        )
    return CommandSession(backend, config=settings.engine_config(), agent=agent)


def create_app(
    session: Optional[CommandSession] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Command Engine API",
        description="Conversational automation engine for the business dashboard",
        version="0.1.0",
    )

    settings = settings or Settings()
    set_level(settings.log_level)
    app.state.session = session or build_session(settings)

    # === COMMANDS ===

    @app.post("/commands", response_model=CommandOutcome)
    async def submit_command(req: CommandRequest):
        """Interpret one typed command."""
        try:
            return await app.state.session.submit(req.text)
        except SessionBusyError as e:
            raise HTTPException(409, str(e))

    # === CONFIRMATION GATE ===

    @app.get("/pending", response_model=Optional[PendingActionBatch])
    def get_pending():
        return app.state.session.pending

    @app.post("/pending/confirm", response_model=CommandOutcome)
    async def confirm_pending():
        """Execute the staged batch."""
        try:
            return await app.state.session.confirm()
        except SessionBusyError as e:
            raise HTTPException(409, str(e))

    @app.post("/pending/cancel", response_model=CommandOutcome)
    def cancel_pending():
        return app.state.session.cancel()

    # === TRANSCRIPT ===

    @app.get("/transcript", response_model=List[TranscriptMessage])
    def get_transcript():
        return app.state.session.transcript

    # === DIAGNOSTICS ===

    @app.post("/actions/normalize", response_model=NormalizeResponse)
    def normalize(req: NormalizeRequest):
        """Run proposed actions through the normalizer without staging them."""
        actions = normalize_actions(req.actions)
        return NormalizeResponse(actions=actions, dropped=len(req.actions) - len(actions))

    # === RESCHEDULE ===

    @app.post("/reschedule/{appointment_id}/autofill", response_model=AutofillResponse)
    def autofill(appointment_id: int, req: AutofillRequest):
        """Pick the slot matching the time parsed from the reschedule command."""
        slot = app.state.session.consume_reschedule_autofill(appointment_id, req.slots)
        return AutofillResponse(slot=slot)

    return app
