"""
Actions: the closed set of validated operations the Execution Engine runs.

Every variant validates its own invariants, so an `Action` instance that
exists in memory is always executable. Untrusted input reaches these models
only through `command_engine.actions.normalizer`.
"""

import math
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class NavigateTarget(str, Enum):
    ORDERS = "orders"
    DEBTS = "debts"
    STOCK = "stock"
    PROMOTIONS = "promotions"
    CLIENTS = "clients"


class _ActionBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class Navigate(_ActionBase):
    type: Literal["navigate"] = "navigate"
    target: NavigateTarget


class SendPaymentReminders(_ActionBase):
    """An empty `order_ids` list means every order with outstanding debt."""

    type: Literal["send_payment_reminders"] = "send_payment_reminders"
    order_ids: List[int] = []

    @field_validator("order_ids")
    @classmethod
    def _dedupe(cls, value: List[int]) -> List[int]:
        return list(dict.fromkeys(value))


class AdjustStock(_ActionBase):
    type: Literal["adjust_stock"] = "adjust_stock"
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    delta: Optional[int] = None
    set_quantity: Optional[int] = None

    @model_validator(mode="after")
    def _require_target_and_change(self) -> "AdjustStock":
        if self.product_id is None and not (self.product_name or "").strip():
            raise ValueError("adjust_stock needs product_id or product_name")
        if self.delta is None and self.set_quantity is None:
            raise ValueError("adjust_stock needs delta or set_quantity")
        return self


class IncreasePricesPercent(_ActionBase):
    """An empty `product_ids` list means every product."""

    type: Literal["increase_prices_percent"] = "increase_prices_percent"
    percent: float
    product_ids: List[int] = []

    @field_validator("percent")
    @classmethod
    def _check_percent(cls, value: float) -> float:
        if not math.isfinite(value) or value == 0:
            raise ValueError("percent must be a finite, non-zero number")
        return value

    @field_validator("product_ids")
    @classmethod
    def _dedupe(cls, value: List[int]) -> List[int]:
        return list(dict.fromkeys(value))


class BroadcastPrompt(_ActionBase):
    type: Literal["broadcast_prompt"] = "broadcast_prompt"
    message: str = Field(min_length=1)

    @field_validator("message")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("message must not be blank")
        return value


class Noop(_ActionBase):
    type: Literal["noop"] = "noop"
    note: Optional[str] = None


Action = Annotated[
    Union[
        Navigate,
        SendPaymentReminders,
        AdjustStock,
        IncreasePricesPercent,
        BroadcastPrompt,
        Noop,
    ],
    Field(discriminator="type"),
]


class PendingActionBatch(BaseModel):
    """A staged agent proposal awaiting explicit confirmation. Never mutated."""

    model_config = ConfigDict(frozen=True)

    reply: str
    actions: List[Action]
