"""Command engine data models."""

from command_engine.models.action import (
    Action,
    AdjustStock,
    BroadcastPrompt,
    IncreasePricesPercent,
    Navigate,
    NavigateTarget,
    Noop,
    PendingActionBatch,
    SendPaymentReminders,
)
from command_engine.models.business import (
    Appointment,
    BusinessSnapshot,
    DashboardCounters,
    Order,
    Patient,
    Product,
)
from command_engine.models.config import EngineConfig
from command_engine.models.intent import (
    BusinessMode,
    Effect,
    EffectKind,
    Intent,
    Interpretation,
    SectionKey,
    TagSeverity,
)
from command_engine.models.session import (
    CommandOutcome,
    RescheduleAutofill,
    Role,
    TranscriptMessage,
)
from command_engine.models.temporal import TemporalExpression

__all__ = [
    "Action",
    "AdjustStock",
    "Appointment",
    "BroadcastPrompt",
    "BusinessMode",
    "BusinessSnapshot",
    "CommandOutcome",
    "DashboardCounters",
    "Effect",
    "EffectKind",
    "EngineConfig",
    "IncreasePricesPercent",
    "Intent",
    "Interpretation",
    "Navigate",
    "NavigateTarget",
    "Noop",
    "Order",
    "Patient",
    "PendingActionBatch",
    "Product",
    "RescheduleAutofill",
    "Role",
    "SectionKey",
    "SendPaymentReminders",
    "TagSeverity",
    "TemporalExpression",
    "TranscriptMessage",
]
