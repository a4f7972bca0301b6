"""
Action Normalizer: untrusted agent proposals into validated `Action`s.

Two stages per entry:
  1. Loose decode: accept the canonical {"type": ..., ...} shape or a legacy
     wrapper shape ({"navigate": {...}}), fold alternate field names and
     type spellings into one flat dict.
  2. Total mapping: a per-type builder either returns a fully validated
     Action or None. Nothing invalid is ever partially constructed.

Entries that fail either stage are dropped silently (logged at debug);
the batch is best-effort and keeps input order among retained entries.
"""

import math
import re
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from command_engine.log import setup_logger
from command_engine.models.action import (
    Action,
    AdjustStock,
    BroadcastPrompt,
    IncreasePricesPercent,
    Navigate,
    NavigateTarget,
    Noop,
    SendPaymentReminders,
)
from command_engine.text.normalize import normalize

logger = setup_logger("command_engine.actions")

KNOWN_TYPES = (
    "navigate",
    "send_payment_reminders",
    "adjust_stock",
    "increase_prices_percent",
    "broadcast_prompt",
    "noop",
)
TYPE_KEYS = ("type", "action", "kind")

FIELD_ALIASES: Dict[str, tuple] = {
    "target": ("target", "view", "section", "to"),
    "order_ids": ("orderIds", "order_ids", "orders", "ids"),
    "product_id": ("productId", "product_id"),
    "product_name": ("productName", "product_name", "product", "name"),
    "delta": ("delta", "amount", "change"),
    "set_quantity": ("setQuantity", "set_quantity", "quantity", "qty"),
    "percent": ("percent", "percentage", "pct"),
    "product_ids": ("productIds", "product_ids", "products"),
    "message": ("message", "text", "prompt"),
    "note": ("note", "reason", "detail"),
}

NAVIGATE_SYNONYMS: Dict[str, NavigateTarget] = {
    "orders": NavigateTarget.ORDERS,
    "order": NavigateTarget.ORDERS,
    "pedidos": NavigateTarget.ORDERS,
    "pedido": NavigateTarget.ORDERS,
    "ordenes": NavigateTarget.ORDERS,
    "debts": NavigateTarget.DEBTS,
    "deudas": NavigateTarget.DEBTS,
    "deuda": NavigateTarget.DEBTS,
    "deudores": NavigateTarget.DEBTS,
    "cobranzas": NavigateTarget.DEBTS,
    "stock": NavigateTarget.STOCK,
    "inventario": NavigateTarget.STOCK,
    "inventory": NavigateTarget.STOCK,
    "productos": NavigateTarget.STOCK,
    "promotions": NavigateTarget.PROMOTIONS,
    "promociones": NavigateTarget.PROMOTIONS,
    "promocion": NavigateTarget.PROMOTIONS,
    "promos": NavigateTarget.PROMOTIONS,
    "promo": NavigateTarget.PROMOTIONS,
    "clients": NavigateTarget.CLIENTS,
    "clientes": NavigateTarget.CLIENTS,
    "cliente": NavigateTarget.CLIENTS,
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


# --- Stage 1: loose decode ---

def canonical_type(value: Any) -> Optional[str]:
    """Fold camelCase, dashed and spaced spellings onto a known snake_case type."""
    if not isinstance(value, str) or not value.strip():
        return None
    snake = _CAMEL_BOUNDARY.sub("_", value.strip())
    snake = re.sub(r"[\s\-]+", "_", snake).lower()
    return snake if snake in KNOWN_TYPES else None


def expand_legacy(raw: Any) -> Optional[Dict[str, Any]]:
    """Return a flat dict with a canonical "type", or None."""
    if not isinstance(raw, dict):
        return None

    for key in TYPE_KEYS:
        action_type = canonical_type(raw.get(key))
        if action_type:
            flat = {k: v for k, v in raw.items() if k not in TYPE_KEYS}
            flat["type"] = action_type
            return flat

    # Legacy wrapper: {"navigate": {"target": "orders"}}
    for key, inner in raw.items():
        action_type = canonical_type(key)
        if action_type is None:
            continue
        flat = dict(inner) if isinstance(inner, dict) else {}
        if action_type == "navigate" and isinstance(inner, str):
            flat["target"] = inner
        flat["type"] = action_type
        return flat
    return None


def _pick(entry: Dict[str, Any], field: str) -> Any:
    for alias in FIELD_ALIASES[field]:
        if alias in entry and entry[alias] is not None:
            return entry[alias]
    return None


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.strip().replace("%", "").replace("#", "").replace(",", ".")
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _to_int(value: Any) -> Optional[int]:
    number = _to_number(value)
    if number is None:
        return None
    return int(round(number))


def _to_int_list(value: Any) -> Optional[List[int]]:
    """None when the value is not list-like or holds a non-integer entry."""
    if value is None:
        return []
    if not isinstance(value, (list, tuple, set)):
        value = [value]
    result = []
    for item in value:
        number = _to_number(item)
        if number is None or not float(number).is_integer():
            return None
        result.append(int(number))
    return result


# --- Stage 2: per-type builders ---

def map_navigate_target(value: Any) -> Optional[NavigateTarget]:
    if not isinstance(value, str):
        return None
    key = normalize(value)
    if key in NAVIGATE_SYNONYMS:
        return NAVIGATE_SYNONYMS[key]
    for word in key.split(" "):
        if word in NAVIGATE_SYNONYMS:
            return NAVIGATE_SYNONYMS[word]
    return None


def _build_navigate(entry: Dict[str, Any]) -> Optional[Action]:
    target = map_navigate_target(_pick(entry, "target"))
    if target is None:
        return None
    return Navigate(target=target)


def _build_payment_reminders(entry: Dict[str, Any]) -> Optional[Action]:
    order_ids = _to_int_list(_pick(entry, "order_ids"))
    if order_ids is None:
        return None
    return SendPaymentReminders(order_ids=order_ids)


def _build_adjust_stock(entry: Dict[str, Any]) -> Optional[Action]:
    name = _pick(entry, "product_name")
    return AdjustStock(
        product_id=_to_int(_pick(entry, "product_id")),
        product_name=name.strip() if isinstance(name, str) and name.strip() else None,
        delta=_to_int(_pick(entry, "delta")),
        set_quantity=_to_int(_pick(entry, "set_quantity")),
    )


def _build_increase_prices(entry: Dict[str, Any]) -> Optional[Action]:
    percent = _to_number(_pick(entry, "percent"))
    product_ids = _to_int_list(_pick(entry, "product_ids"))
    if percent is None or product_ids is None:
        return None
    return IncreasePricesPercent(percent=percent, product_ids=product_ids)


def _build_broadcast(entry: Dict[str, Any]) -> Optional[Action]:
    message = _pick(entry, "message")
    if not isinstance(message, str):
        return None
    return BroadcastPrompt(message=message)


def _build_noop(entry: Dict[str, Any]) -> Optional[Action]:
    note = _pick(entry, "note")
    return Noop(note=note.strip() if isinstance(note, str) and note.strip() else None)


BUILDERS: Dict[str, Callable[[Dict[str, Any]], Optional[Action]]] = {
    "navigate": _build_navigate,
    "send_payment_reminders": _build_payment_reminders,
    "adjust_stock": _build_adjust_stock,
    "increase_prices_percent": _build_increase_prices,
    "broadcast_prompt": _build_broadcast,
    "noop": _build_noop,
}


def normalize_action(raw: Any) -> Optional[Action]:
    """Map one untrusted entry to an Action, or None when it must be dropped."""
    entry = expand_legacy(raw)
    if entry is None:
        logger.debug("Dropping proposed action with unknown shape: %r", raw)
        return None
    try:
        action = BUILDERS[entry["type"]](entry)
    except ValidationError as e:
        logger.debug("Dropping invalid %s action: %s", entry["type"], e.errors())
        return None
    if action is None:
        logger.debug("Dropping %s action with unusable fields: %r", entry["type"], raw)
    return action


def normalize_actions(raw_actions: Any) -> List[Action]:
    """Normalize a whole batch, keeping input order among retained entries."""
    if not isinstance(raw_actions, (list, tuple)):
        return []
    actions = []
    for raw in raw_actions:
        action = normalize_action(raw)
        if action is not None:
            actions.append(action)
    return actions
