"""
Effect runner: performs the deferred effects an Interpretation returns.

UI effects are forwarded to the view sink as-is. Effects that also need the
backend (tags, appointment reminders, history summaries) make that call here
and report one transcript line per outcome. Reschedule effects carrying a
parsed target are remembered until the slot picker consumes them.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from command_engine.backend.base import BackendClient, BackendError
from command_engine.log import setup_logger
from command_engine.models.intent import Effect, EffectKind
from command_engine.models.session import RescheduleAutofill
from command_engine.models.temporal import TemporalExpression

logger = setup_logger("command_engine.effects")


def pick_slot(expression: TemporalExpression, slots: Sequence[datetime]) -> Optional[datetime]:
    """Exact timestamp first, then the first slot on that date, then at that time."""
    if expression.target_date is not None:
        for slot in slots:
            if slot == expression.target_date:
                return slot
    if expression.base_date is not None:
        for slot in slots:
            if slot.date() == expression.base_date:
                return slot
    if expression.time_of_day is not None:
        for slot in slots:
            if (slot.hour, slot.minute) == (expression.time_of_day.hour, expression.time_of_day.minute):
                return slot
    return None


class EffectRunner:
    def __init__(self, backend: BackendClient, view: Callable[[Effect], None]):
        self.backend = backend
        self.view = view
        self._autofills: Dict[int, RescheduleAutofill] = {}

    async def run(self, effects: List[Effect]) -> List[str]:
        lines: List[str] = []
        for effect in effects:
            line = await self._run_one(effect)
            if line:
                lines.append(line)
        return lines

    async def _run_one(self, effect: Effect) -> Optional[str]:
        params = effect.params
        name = params.get("patient_name") or "el paciente"

        if effect.kind == EffectKind.CREATE_PATIENT_TAG:
            try:
                await self.backend.create_patient_tag(
                    params["patient_id"], params["label"], params["severity"]
                )
            except BackendError as e:
                logger.warning("Tag for patient %s failed: %s", params["patient_id"], e)
                return f"No se pudo agregar el dato a {name}: {e}"
            return f"Dato agregado a {name}."

        if effect.kind == EffectKind.SEND_APPOINTMENT_REMINDER:
            try:
                await self.backend.send_appointment_reminder(params["appointment_id"])
            except BackendError as e:
                logger.warning("Reminder for appointment %s failed: %s", params["appointment_id"], e)
                return f"No se pudo enviar el recordatorio a {name}: {e}"
            return f"Recordatorio enviado a {name}."

        self.view(effect)

        if effect.kind == EffectKind.OPEN_RESCHEDULE and params.get("expression"):
            autofill = RescheduleAutofill(
                appointment_id=params["appointment_id"],
                expression=TemporalExpression.model_validate(params["expression"]),
            )
            self._autofills[autofill.appointment_id] = autofill

        if effect.kind == EffectKind.OPEN_CLINICAL_HISTORY and params.get("generate"):
            try:
                await self.backend.generate_patient_summary(params["patient_id"])
            except BackendError as e:
                logger.warning("Summary for patient %s failed: %s", params["patient_id"], e)
                return f"No se pudo generar el resumen de {name}: {e}"
            return f"Resumen de la historia clínica de {name} generado."
        return None

    def consume_autofill(self, appointment_id: int, slots: Sequence[datetime]) -> Optional[datetime]:
        """Pop the stored target for `appointment_id` and pick the matching slot."""
        autofill = self._autofills.pop(appointment_id, None)
        if autofill is None:
            return None
        return pick_slot(autofill.expression, slots)
