"""Intents and deferred effects produced by the Intent Interpreter."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class BusinessMode(str, Enum):
    GENERAL = "general"     # Health clinics
    RETAIL = "retail"       # Shops


class Intent(str, Enum):
    BROADCAST_MESSAGE = "broadcast-message"
    TAG_PATIENT = "tag-patient"
    SEND_SINGLE_REMINDER = "send-single-reminder"
    RESCHEDULE_APPOINTMENT = "reschedule-appointment"
    OPEN_CLINICAL_HISTORY = "open-clinical-history"
    NAVIGATE_TO_AGENDA = "navigate-to-agenda"
    NAVIGATE_TO_RISK_RADAR = "navigate-to-risk-radar"
    INBOX_SUMMARY = "inbox-summary"
    METRICS_SUMMARY = "metrics-summary"
    INCOMPLETE_DATA_QUERY = "incomplete-data-query"
    PATIENT_COUNT_QUERY = "patient-count-query"
    GENERIC_CHAT_REDIRECT = "generic-chat-redirect"
    FALLBACK_HELP = "fallback-help"
    # Retail chain
    ORDERS_LOOKUP = "orders-lookup"
    DEBTS_LOOKUP = "debts-lookup"
    STOCK_LOOKUP = "stock-lookup"
    PROMOTIONS_LOOKUP = "promotions-lookup"


class SectionKey(str, Enum):
    """Dashboard sections the view layer can switch to."""
    DASHBOARD = "dashboard"
    AGENDA = "agenda"
    PATIENTS = "patients"
    RISK = "risk"
    INBOX = "inbox"
    ORDERS = "orders"
    DEBTS = "debts"
    STOCK = "stock"
    PROMOTIONS = "promotions"
    CLIENTS = "clients"


class EffectKind(str, Enum):
    OPEN_SECTION = "open_section"
    OPEN_BROADCAST = "open_broadcast"
    CREATE_PATIENT_TAG = "create_patient_tag"
    SEND_APPOINTMENT_REMINDER = "send_appointment_reminder"
    OPEN_RESCHEDULE = "open_reschedule"
    OPEN_CLINICAL_HISTORY = "open_clinical_history"


class TagSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    INFO = "info"


class Effect(BaseModel):
    """
    A deferred side effect, returned as data.

    Effects are run by the session only after the reply that produced them
    has been appended to the transcript.
    """

    kind: EffectKind
    section: Optional[SectionKey] = None
    params: dict = {}


class Interpretation(BaseModel):
    """Outcome of interpreting one command."""

    intent: Intent
    reply: str
    effects: List[Effect] = []
