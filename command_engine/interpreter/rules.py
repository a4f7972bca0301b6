"""
Intent Interpreter: ordered keyword rules over normalized command text.

Each business mode has its own chain of `Rule`s. A chain is evaluated in a
single pass and the first rule whose predicate holds produces the
`Interpretation` (reply + deferred effects). Rules never perform side
effects themselves; everything outward-facing is returned as `Effect` data.

Behavioral Contract:
- Total: any input yields an Interpretation (the last rule always matches)
- Pure: reads only the text, the BusinessSnapshot and `now`
- Effects are descriptions; the session runs them after the reply is shown
"""

import re
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from command_engine.matching.fuzzy import find_appointment, find_patient
from command_engine.models.business import Appointment, BusinessSnapshot, Patient
from command_engine.models.intent import (
    BusinessMode,
    Effect,
    EffectKind,
    Intent,
    Interpretation,
    SectionKey,
    TagSeverity,
)
from command_engine.temporal.parser import parse_temporal
from command_engine.text.normalize import normalize

DEFAULT_HIDDEN_STATUSES = ("cancelled", "canceled", "cancelado", "hidden", "deleted")


# Patterns run over normalize() output: lowercase, no accents, no punctuation
MESSAGE_WORD = re.compile(r"\bmensajes?\b")
BROADCAST_CUES = re.compile(r"\b(recordatorio|recordar|broadcast|masiv|campana|envi|mand)\w*")
AUDIENCE_TIERS = {
    "critico": TagSeverity.CRITICAL,
    "criticos": TagSeverity.CRITICAL,
    "alto": TagSeverity.HIGH,
    "altos": TagSeverity.HIGH,
    "medio": TagSeverity.MEDIUM,
    "medios": TagSeverity.MEDIUM,
    "informativo": TagSeverity.INFO,
    "informativos": TagSeverity.INFO,
}
AUDIENCE_TIER_RE = re.compile(r"\b(" + "|".join(AUDIENCE_TIERS) + r")\b")

TAG_NOUNS = re.compile(r"\b(dato importante|etiqueta|tag)\b")
TAG_VERBS = re.compile(r"\b(pon|agreg|sum|carg|marc)\w*")
SEVERITY_RULES = [
    (re.compile(r"\b(critic|urgent)\w*"), TagSeverity.CRITICAL),
    (re.compile(r"\b(alta|alto|importante|prioridad|prioritari\w*|sensible)\b"), TagSeverity.HIGH),
    (re.compile(r"\b(control\w*|seguimiento|medio|media|programa\w*)\b"), TagSeverity.MEDIUM),
]

REMINDER_WORD = re.compile(r"\brecordatorios?\b")
APPOINTMENT_WORDS = re.compile(r"\b(turnos?|consultas?|citas?)\b")
MASS_CUES = re.compile(r"\b(masiv\w*|todos|todas|pacientes|segmento|grupo|campana)\b")

RESCHEDULE_VERBS = re.compile(r"\b(reprogram|reagend|cambi|mov|pospon|atras)\w*")

HISTORY_WORDS = re.compile(r"\bhistori(a|al)\b")
CLINICAL_WORD = re.compile(r"\bclinic\w*")

AGENDA_WORDS = re.compile(r"\b(agenda|turnos|calendario)\b")
RISK_WORDS = re.compile(r"\b(radar|riesgo\w*)\b")
INBOX_WORDS = re.compile(r"\b(inbox|bandeja|pendientes)\b")
METRICS_WORDS = re.compile(r"\b(metricas?|resumen|estadisticas?|numeros)\b|\bcomo vamos\b")
INCOMPLETE_WORDS = re.compile(r"\bdatos? (incomplet|faltant)\w*|\bfaltan datos\b|\bincomplet\w*")
PATIENT_COUNT_WORDS = re.compile(r"\b(cuantos|cantidad de|total de|numero de)( mis)? pacientes\b")
CHAT_WORDS = re.compile(r"\b(mensajes?|whatsapp|chats?)\b")

RETAIL_ACTION_VERBS = re.compile(
    r"\b(sum|rest|sub|baj|pon|mand|envi|record|carg|aument|elimin|sac|borr|ajust|cambi|actualiz)\w*"
)
DEBTS_WORDS = re.compile(r"\b(deudas?|deudores?|deben|debe|saldos?|fiados?)\b")
ORDERS_WORDS = re.compile(r"\b(pedidos?|ordenes)\b")
STOCK_WORDS = re.compile(r"\b(stock|inventario)\b")
PROMOTIONS_WORDS = re.compile(r"\b(promos?|promociones?)\b")

# Extraction runs over the raw text so the user's casing and accents survive
QUOTED = re.compile(r"[\"“«']([^\"”»']{2,})[\"”»']")
MESSAGE_BODY_PATTERNS = [
    QUOTED,
    re.compile(r"\bdiciendo(?:les|le)?\s*(?:que\s+)?:?\s*(.+)$", re.IGNORECASE),
    re.compile(r"\bdec[ií]les?\s*(?:que\s+)?:?\s*(.+)$", re.IGNORECASE),
    re.compile(r"\bque\s+((?:los|las)\s+.+)$", re.IGNORECASE),
]
TAG_LABEL_PATTERNS = [
    QUOTED,
    re.compile(r"\b(?:que diga|diciendo)\s*:?\s*(.+)$", re.IGNORECASE),
    re.compile(r"\b(?:dato importante|etiqueta|tag)\s*:\s*(.+)$", re.IGNORECASE),
    re.compile(
        r"\b(?:dato importante|etiqueta|tag)\s+(?:de\s+)?(.+?)\s+(?:a|al|para|en)\s+\S",
        re.IGNORECASE,
    ),
]

MISSING_FIELD_LABELS = {
    "dni": "DNI",
    "insurance": "obra social",
    "email": "email",
    "phone": "teléfono",
    "birth_date": "fecha de nacimiento",
    "address": "dirección",
}

SEVERITY_LABELS = {
    TagSeverity.CRITICAL: "crítico",
    TagSeverity.HIGH: "alto",
    TagSeverity.MEDIUM: "medio",
    TagSeverity.INFO: "informativo",
}

HELP_REPLY = (
    "No entendí el pedido. Probá con: \"mandá un recordatorio del turno a Ana López\", "
    "\"reprogramá el turno de Juan para el jueves a las 10\", "
    "\"abrí la historia clínica de DNI 30123456\" o \"mostrame las métricas de hoy\"."
)
RETAIL_HELP_REPLY = (
    "Puedo mostrarte pedidos, deudas, stock o promociones. "
    "También podés pedirme cosas como \"sumá 10 cocas al stock\" o \"subí 5% los precios\"."
)


class RuleContext:
    """Everything a rule may look at while interpreting one command."""

    def __init__(
        self,
        raw_text: str,
        snapshot: BusinessSnapshot,
        now: datetime,
        hidden_statuses: Sequence[str] = DEFAULT_HIDDEN_STATUSES,
    ):
        self.raw_text = raw_text or ""
        self.text = normalize(self.raw_text)
        self.snapshot = snapshot
        self.now = now
        self.hidden_statuses = {s.lower() for s in hidden_statuses}

    def has(self, pattern: re.Pattern) -> bool:
        return pattern.search(self.text) is not None

    def appointment_pool(self) -> List[Appointment]:
        """Today's agenda plus visible calendar entries, deduplicated by id."""
        pool: Dict[int, Appointment] = {}
        for appt in self.snapshot.today_appointments:
            pool.setdefault(appt.id, appt)
        for appt in self.snapshot.calendar_appointments:
            if (appt.status or "").lower() in self.hidden_statuses:
                continue
            pool.setdefault(appt.id, appt)
        return list(pool.values())


class Rule:
    """A (predicate, handler) pair tagged with the intent it resolves."""

    def __init__(
        self,
        intent: Intent,
        predicate: Callable[[RuleContext], bool],
        handler: Callable[[RuleContext], Interpretation],
    ):
        self.intent = intent
        self.predicate = predicate
        self.handler = handler

    def matches(self, ctx: RuleContext) -> bool:
        return self.predicate(ctx)


# --- Extraction helpers ---

def _first_capture(patterns: Sequence[re.Pattern], text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            value = match.group(1).strip().strip(".,;:!¡¿?\"'“”«» ").strip()
            if value:
                return value
    return None


def extract_message_body(raw_text: str) -> Optional[str]:
    body = _first_capture(MESSAGE_BODY_PATTERNS, raw_text)
    if body:
        return body[0].upper() + body[1:]
    return None


def extract_tag_label(raw_text: str) -> Optional[str]:
    label = _first_capture(TAG_LABEL_PATTERNS, raw_text)
    if label and len(label) >= 2:
        return label
    return None


def classify_severity(label: str) -> TagSeverity:
    text = normalize(label)
    for pattern, severity in SEVERITY_RULES:
        if pattern.search(text):
            return severity
    return TagSeverity.INFO


def _appointment_label(appt: Appointment) -> str:
    return appt.date_time.strftime("%d/%m a las %H:%M")


def _open(section: SectionKey) -> Effect:
    return Effect(kind=EffectKind.OPEN_SECTION, section=section)


def _patient_not_found(action: str) -> str:
    return (
        f"No encontré al paciente para {action}. "
        "Escribí el nombre o el DNI tal como figura en la ficha."
    )


# --- General mode handlers ---

def _is_broadcast(ctx: RuleContext) -> bool:
    return ctx.has(MESSAGE_WORD) and ctx.has(BROADCAST_CUES)


def _handle_broadcast(ctx: RuleContext) -> Interpretation:
    tier_match = AUDIENCE_TIER_RE.search(ctx.text)
    tier = AUDIENCE_TIERS[tier_match.group(1)] if tier_match else None
    body = extract_message_body(ctx.raw_text)

    parts = ["Abro el envío masivo"]
    if tier:
        parts.append(f"filtrado a pacientes con prioridad {SEVERITY_LABELS[tier]}")
    reply = " ".join(parts) + "."
    if body:
        reply += f" Dejé cargado el mensaje: «{body}». Revisalo antes de enviar."
    else:
        reply += " Escribí el mensaje y elegí a quién enviarlo."

    return Interpretation(
        intent=Intent.BROADCAST_MESSAGE,
        reply=reply,
        effects=[
            Effect(
                kind=EffectKind.OPEN_BROADCAST,
                params={"message": body or "", "severity": tier.value if tier else None},
            )
        ],
    )


def _is_tag_request(ctx: RuleContext) -> bool:
    return ctx.has(TAG_NOUNS) and ctx.has(TAG_VERBS)


def _handle_tag(ctx: RuleContext) -> Interpretation:
    patient = find_patient(ctx.raw_text, ctx.snapshot.patients)
    if patient is None:
        return Interpretation(intent=Intent.TAG_PATIENT, reply=_patient_not_found("etiquetar"))

    label = extract_tag_label(ctx.raw_text)
    if not label:
        return Interpretation(
            intent=Intent.TAG_PATIENT,
            reply=f"¿Qué dato querés que agregue a {patient.full_name}? Escribilo entre comillas.",
        )

    severity = classify_severity(label)
    return Interpretation(
        intent=Intent.TAG_PATIENT,
        reply=(
            f"Agrego el dato «{label}» a {patient.full_name} "
            f"(prioridad {SEVERITY_LABELS[severity]})."
        ),
        effects=[
            Effect(
                kind=EffectKind.CREATE_PATIENT_TAG,
                params={
                    "patient_id": patient.id,
                    "patient_name": patient.full_name,
                    "label": label,
                    "severity": severity.value,
                },
            )
        ],
    )


def _is_single_reminder(ctx: RuleContext) -> bool:
    return ctx.has(REMINDER_WORD) and ctx.has(APPOINTMENT_WORDS) and not ctx.has(MASS_CUES)


def _handle_single_reminder(ctx: RuleContext) -> Interpretation:
    appt = find_appointment(ctx.raw_text, ctx.appointment_pool())
    if appt is None:
        return Interpretation(
            intent=Intent.SEND_SINGLE_REMINDER,
            reply="No encontré ese turno. Te abro la agenda para que elijas al paciente.",
            effects=[_open(SectionKey.AGENDA)],
        )
    return Interpretation(
        intent=Intent.SEND_SINGLE_REMINDER,
        reply=f"Envío el recordatorio a {appt.patient_name} por su turno del {_appointment_label(appt)}.",
        effects=[
            Effect(
                kind=EffectKind.SEND_APPOINTMENT_REMINDER,
                params={"appointment_id": appt.id, "patient_name": appt.patient_name},
            )
        ],
    )


def _is_reschedule(ctx: RuleContext) -> bool:
    return ctx.has(RESCHEDULE_VERBS) and ctx.has(APPOINTMENT_WORDS)


def _handle_reschedule(ctx: RuleContext) -> Interpretation:
    expression = parse_temporal(ctx.raw_text, now=ctx.now)
    appt = find_appointment(ctx.raw_text, ctx.appointment_pool())
    if appt is None:
        return Interpretation(
            intent=Intent.RESCHEDULE_APPOINTMENT,
            reply=(
                "No encontré el turno a reprogramar. "
                "Decime el nombre del paciente tal como figura en la agenda."
            ),
        )

    reply = f"Abro la reprogramación del turno de {appt.patient_name} ({_appointment_label(appt)})."
    if expression and expression.target_label:
        reply += f" Busco horarios para {expression.target_label}."
    return Interpretation(
        intent=Intent.RESCHEDULE_APPOINTMENT,
        reply=reply,
        effects=[
            Effect(
                kind=EffectKind.OPEN_RESCHEDULE,
                params={
                    "appointment_id": appt.id,
                    "patient_name": appt.patient_name,
                    "expression": expression.model_dump(mode="json") if expression else None,
                },
            )
        ],
    )


def _is_clinical_history(ctx: RuleContext) -> bool:
    return ctx.has(HISTORY_WORDS) and ctx.has(CLINICAL_WORD)


def _resolve_history_patient(ctx: RuleContext) -> Optional[Patient]:
    patient = find_patient(ctx.raw_text, ctx.snapshot.patients)
    if patient is not None:
        return patient
    appt = find_appointment(ctx.raw_text, ctx.appointment_pool())
    if appt is None or appt.patient_id is None:
        return None
    for candidate in ctx.snapshot.patients:
        if candidate.id == appt.patient_id:
            return candidate
    return Patient(id=appt.patient_id, full_name=appt.patient_name)


def _handle_clinical_history(ctx: RuleContext) -> Interpretation:
    patient = _resolve_history_patient(ctx)
    if patient is None:
        return Interpretation(
            intent=Intent.OPEN_CLINICAL_HISTORY,
            reply=_patient_not_found("abrir la historia clínica"),
        )
    return Interpretation(
        intent=Intent.OPEN_CLINICAL_HISTORY,
        reply=f"Abro la ficha de {patient.full_name} y genero el resumen de su historia clínica.",
        effects=[
            Effect(
                kind=EffectKind.OPEN_CLINICAL_HISTORY,
                params={"patient_id": patient.id, "patient_name": patient.full_name, "generate": True},
            )
        ],
    )


def _handle_agenda(ctx: RuleContext) -> Interpretation:
    return Interpretation(
        intent=Intent.NAVIGATE_TO_AGENDA,
        reply="Te abro la agenda.",
        effects=[_open(SectionKey.AGENDA)],
    )


def _handle_risk(ctx: RuleContext) -> Interpretation:
    return Interpretation(
        intent=Intent.NAVIGATE_TO_RISK_RADAR,
        reply="Te abro el radar de riesgo.",
        effects=[_open(SectionKey.RISK)],
    )


def _handle_inbox(ctx: RuleContext) -> Interpretation:
    c = ctx.snapshot.counters
    return Interpretation(
        intent=Intent.INBOX_SUMMARY,
        reply=(
            f"Pendientes: {c.unread_conversations} conversaciones sin leer, "
            f"{c.pending_confirmations} turnos por confirmar y "
            f"{c.pending_documents} documentos para revisar."
        ),
    )


def _handle_metrics(ctx: RuleContext) -> Interpretation:
    c = ctx.snapshot.counters
    return Interpretation(
        intent=Intent.METRICS_SUMMARY,
        reply=(
            f"Hoy: {c.appointments_today} turnos ({c.confirmed_today} confirmados), "
            f"{c.waiting_patients} pacientes en espera y {c.messages_today} mensajes."
        ),
    )


def _handle_incomplete_data(ctx: RuleContext) -> Interpretation:
    incomplete = [p for p in ctx.snapshot.patients if p.missing_fields]
    if not incomplete:
        return Interpretation(
            intent=Intent.INCOMPLETE_DATA_QUERY,
            reply="Todos los pacientes tienen sus datos completos.",
        )
    per_field: Dict[str, int] = {}
    for patient in incomplete:
        for field in patient.missing_fields:
            per_field[field] = per_field.get(field, 0) + 1
    details = ", ".join(
        f"{count} sin {MISSING_FIELD_LABELS.get(field, field)}"
        for field, count in sorted(per_field.items(), key=lambda kv: (-kv[1], kv[0]))
    )
    return Interpretation(
        intent=Intent.INCOMPLETE_DATA_QUERY,
        reply=f"Hay {len(incomplete)} pacientes con datos incompletos: {details}.",
    )


def _handle_patient_count(ctx: RuleContext) -> Interpretation:
    return Interpretation(
        intent=Intent.PATIENT_COUNT_QUERY,
        reply=f"Tenés {ctx.snapshot.total_patients} pacientes registrados.",
    )


def _handle_chat_redirect(ctx: RuleContext) -> Interpretation:
    return Interpretation(
        intent=Intent.GENERIC_CHAT_REDIRECT,
        reply="Los mensajes de WhatsApp se responden desde el panel de chat. Te llevo al inicio.",
        effects=[_open(SectionKey.DASHBOARD)],
    )


def _handle_fallback(ctx: RuleContext) -> Interpretation:
    return Interpretation(intent=Intent.FALLBACK_HELP, reply=HELP_REPLY)


def _always(ctx: RuleContext) -> bool:
    return True


GENERAL_RULES: List[Rule] = [
    Rule(Intent.BROADCAST_MESSAGE, _is_broadcast, _handle_broadcast),
    Rule(Intent.TAG_PATIENT, _is_tag_request, _handle_tag),
    Rule(Intent.SEND_SINGLE_REMINDER, _is_single_reminder, _handle_single_reminder),
    Rule(Intent.RESCHEDULE_APPOINTMENT, _is_reschedule, _handle_reschedule),
    Rule(Intent.OPEN_CLINICAL_HISTORY, _is_clinical_history, _handle_clinical_history),
    Rule(Intent.NAVIGATE_TO_AGENDA, lambda ctx: ctx.has(AGENDA_WORDS), _handle_agenda),
    Rule(Intent.NAVIGATE_TO_RISK_RADAR, lambda ctx: ctx.has(RISK_WORDS), _handle_risk),
    Rule(Intent.INBOX_SUMMARY, lambda ctx: ctx.has(INBOX_WORDS), _handle_inbox),
    Rule(Intent.METRICS_SUMMARY, lambda ctx: ctx.has(METRICS_WORDS), _handle_metrics),
    Rule(Intent.INCOMPLETE_DATA_QUERY, lambda ctx: ctx.has(INCOMPLETE_WORDS), _handle_incomplete_data),
    Rule(Intent.PATIENT_COUNT_QUERY, lambda ctx: ctx.has(PATIENT_COUNT_WORDS), _handle_patient_count),
    Rule(Intent.GENERIC_CHAT_REDIRECT, lambda ctx: ctx.has(CHAT_WORDS), _handle_chat_redirect),
    Rule(Intent.FALLBACK_HELP, _always, _handle_fallback),
]


# --- Retail mode ---

def _retail_lookup(words: re.Pattern) -> Callable[[RuleContext], bool]:
    def predicate(ctx: RuleContext) -> bool:
        return ctx.has(words) and not ctx.has(RETAIL_ACTION_VERBS)
    return predicate


def _retail_open(intent: Intent, section: SectionKey, reply: str) -> Callable[[RuleContext], Interpretation]:
    def handler(ctx: RuleContext) -> Interpretation:
        return Interpretation(intent=intent, reply=reply, effects=[_open(section)])
    return handler


def _handle_retail_fallback(ctx: RuleContext) -> Interpretation:
    return Interpretation(intent=Intent.FALLBACK_HELP, reply=RETAIL_HELP_REPLY)


# Debts before orders: "pedidos que me deben" is a debts lookup
RETAIL_RULES: List[Rule] = [
    Rule(
        Intent.DEBTS_LOOKUP,
        _retail_lookup(DEBTS_WORDS),
        _retail_open(Intent.DEBTS_LOOKUP, SectionKey.DEBTS, "Te muestro los pedidos con deuda."),
    ),
    Rule(
        Intent.ORDERS_LOOKUP,
        _retail_lookup(ORDERS_WORDS),
        _retail_open(Intent.ORDERS_LOOKUP, SectionKey.ORDERS, "Te muestro los pedidos."),
    ),
    Rule(
        Intent.STOCK_LOOKUP,
        _retail_lookup(STOCK_WORDS),
        _retail_open(Intent.STOCK_LOOKUP, SectionKey.STOCK, "Te muestro el stock."),
    ),
    Rule(
        Intent.PROMOTIONS_LOOKUP,
        _retail_lookup(PROMOTIONS_WORDS),
        _retail_open(Intent.PROMOTIONS_LOOKUP, SectionKey.PROMOTIONS, "Te muestro las promociones."),
    ),
    Rule(Intent.FALLBACK_HELP, _always, _handle_retail_fallback),
]


class IntentInterpreter:
    """Runs the rule chain for one business mode."""

    def __init__(
        self,
        mode: BusinessMode = BusinessMode.GENERAL,
        hidden_statuses: Sequence[str] = DEFAULT_HIDDEN_STATUSES,
        rules: Optional[List[Rule]] = None,
    ):
        self.mode = mode
        self.hidden_statuses = hidden_statuses
        if rules is not None:
            self.rules = rules
        else:
            self.rules = RETAIL_RULES if mode == BusinessMode.RETAIL else GENERAL_RULES

    def interpret(
        self,
        raw_text: str,
        snapshot: Optional[BusinessSnapshot] = None,
        now: Optional[datetime] = None,
    ) -> Interpretation:
        ctx = RuleContext(
            raw_text,
            snapshot or BusinessSnapshot(),
            now or datetime.now(),
            self.hidden_statuses,
        )
        for rule in self.rules:
            if rule.matches(ctx):
                return rule.handler(ctx)
        return _handle_fallback(ctx)
