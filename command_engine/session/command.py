"""
Command Session: the command-submission boundary.

Owns the transcript, the in-flight guard and the Confirmation Gate, and
wires the interpreter, the agent path and the Execution Engine together.

Flow:
  text -> Intent Interpreter -> reply + effects          (direct commands)
  text -> Agent -> Action Normalizer -> Confirmation Gate (retail agent path)
  confirm() -> Execution Engine -> one summary message
"""

from datetime import datetime, time, timedelta
from typing import Callable, List, Optional, Sequence

from command_engine.actions.normalizer import normalize_actions
from command_engine.agent.client import AgentClient, AgentServiceError
from command_engine.backend.base import BackendClient, BackendError
from command_engine.execution.engine import ExecutionEngine
from command_engine.gate.confirmation import ConfirmationGate
from command_engine.interpreter.rules import IntentInterpreter
from command_engine.log import setup_logger
from command_engine.models.action import PendingActionBatch
from command_engine.models.business import BusinessSnapshot
from command_engine.models.config import EngineConfig
from command_engine.models.intent import BusinessMode, Effect, Intent
from command_engine.models.session import CommandOutcome, Role, TranscriptMessage
from command_engine.session.effects import EffectRunner
from command_engine.session.guard import InFlightGuard, SessionBusyError

logger = setup_logger("command_engine.session")

GREETING = {
    BusinessMode.GENERAL: (
        "Hola, soy tu asistente. Puedo enviar recordatorios, reprogramar turnos, "
        "abrir historias clínicas o mostrarte cómo viene el día."
    ),
    BusinessMode.RETAIL: (
        "Hola, soy tu asistente. Puedo mostrarte pedidos y deudas, ajustar stock "
        "o actualizar precios. Antes de cambiar algo te pido confirmación."
    ),
}
CONFIRM_PROMPT = "¿Confirmás? Respondé confirmar o cancelar."
AGENT_APOLOGY = "Perdón, no pude procesar el pedido en este momento. Probá de nuevo en unos segundos."
NOTHING_TO_EXECUTE = "No encontré acciones para ejecutar."


class CommandSession:
    def __init__(
        self,
        backend: BackendClient,
        config: Optional[EngineConfig] = None,
        agent: Optional[AgentClient] = None,
        view: Optional[Callable[[Effect], None]] = None,
        now_fn: Callable[[], datetime] = datetime.now,
    ):
        self.backend = backend
        self.config = config or EngineConfig()
        self.agent = agent
        self._view = view
        self._now = now_fn
        self._emitted: List[Effect] = []

        self.interpreter = IntentInterpreter(
            self.config.mode, self.config.hidden_appointment_statuses
        )
        self.gate = ConfirmationGate()
        self.engine = ExecutionEngine(backend, self._emit, self.config)
        self.effects = EffectRunner(backend, self._emit)
        self.guard = InFlightGuard()
        self.transcript: List[TranscriptMessage] = [
            TranscriptMessage(role=Role.ASSISTANT, text=GREETING[self.config.mode], timestamp=now_fn())
        ]

    @property
    def busy(self) -> bool:
        return self.guard.busy

    @property
    def pending(self) -> Optional[PendingActionBatch]:
        return self.gate.pending

    # --- Transcript ---

    def _say(self, text: str, role: Role = Role.ASSISTANT) -> None:
        self.transcript.append(TranscriptMessage(role=role, text=text, timestamp=self._now()))

    def _emit(self, effect: Effect) -> None:
        self._emitted.append(effect)
        if self._view is not None:
            self._view(effect)

    def _outcome(self, mark: int) -> CommandOutcome:
        outcome = CommandOutcome(
            messages=self.transcript[mark:],
            effects=list(self._emitted),
            pending=self.gate.pending,
        )
        self._emitted = []
        return outcome

    # --- Submission ---

    async def submit(self, text: str) -> CommandOutcome:
        """
        Process one typed command.

        Raises SessionBusyError when a previous submission or a confirmed
        batch is still running.
        """
        if not text or not text.strip():
            return CommandOutcome(accepted=False, pending=self.gate.pending)
        if self.guard.busy:
            logger.info("Rejected submission while busy: %r", text)
            raise SessionBusyError("Todavía estoy procesando el pedido anterior.")

        async with self.guard.hold():
            mark = len(self.transcript)
            self._emitted = []
            self._say(text.strip(), role=Role.USER)
            now = self._now()

            if self.config.mode == BusinessMode.RETAIL:
                interpretation = self.interpreter.interpret(text, now=now)
                if interpretation.intent == Intent.FALLBACK_HELP and self.agent is not None:
                    await self._ask_agent(text)
                    return self._outcome(mark)
            else:
                snapshot = await self._load_snapshot(now)
                interpretation = self.interpreter.interpret(text, snapshot, now)

            logger.info("Interpreted %r as %s", text, interpretation.intent.value)
            self._say(interpretation.reply)
            for line in await self.effects.run(interpretation.effects):
                self._say(line)
            return self._outcome(mark)

    async def _load_snapshot(self, now: datetime) -> BusinessSnapshot:
        start = datetime.combine(now.date(), time.min)
        end = start + timedelta(days=self.config.calendar_window_days)
        try:
            return BusinessSnapshot(
                patients=await self.backend.list_patients(),
                today_appointments=await self.backend.list_today_appointments(),
                calendar_appointments=await self.backend.list_appointments(start, end),
                counters=await self.backend.get_counters(),
            )
        except BackendError as e:
            logger.warning("Snapshot load failed: %s", e)
            self._say(f"No pude actualizar los datos del panel: {e}")
            return BusinessSnapshot()

    async def _ask_agent(self, text: str) -> None:
        try:
            proposal = await self.agent.propose(text)
        except AgentServiceError as e:
            logger.error("Agent call failed: %s", e)
            self._say(AGENT_APOLOGY)
            return

        actions = normalize_actions(proposal.actions)
        if not actions:
            if proposal.reply:
                self._say(proposal.reply)
            self._say(NOTHING_TO_EXECUTE)
            return

        reply = proposal.reply or f"Preparé {len(actions)} acciones."
        self.gate.stage(reply, actions)
        self._say(f"{reply}\n{CONFIRM_PROMPT}")

    # --- Confirmation ---

    async def confirm(self) -> CommandOutcome:
        """Run the staged batch and append its summary as one message."""
        async with self.guard.hold():
            mark = len(self.transcript)
            self._emitted = []
            actions = self.gate.confirm()
            if not actions:
                self._say("No hay acciones pendientes para confirmar.")
                return self._outcome(mark)
            lines = await self.engine.execute(actions)
            self._say("\n".join(lines))
            return self._outcome(mark)

    def cancel(self) -> CommandOutcome:
        mark = len(self.transcript)
        if self.gate.cancel():
            self._say("Listo, cancelé las acciones propuestas.")
        else:
            self._say("No había acciones pendientes.")
        return self._outcome(mark)

    # --- Reschedule auto-fill ---

    def consume_reschedule_autofill(
        self, appointment_id: int, slots: Sequence[datetime]
    ) -> Optional[datetime]:
        return self.effects.consume_autofill(appointment_id, slots)
