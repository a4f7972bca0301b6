"""
Execution Engine: runs a confirmed action batch against the backend.

Behavioral Contract:
- Only receives actions released by the Confirmation Gate
- Runs actions sequentially, in order, so later actions observe earlier writes
- A failing action (or a failing item inside one) becomes a summary line;
  sibling actions and items keep running
- Returns one human-readable line per outcome, never an empty list
- Reloads the order cache at most once per batch
"""

import math
import time
from typing import Callable, Dict, List, Optional, Tuple

from command_engine.backend.base import BackendClient, BackendError
from command_engine.log import setup_logger
from command_engine.matching.fuzzy import find_product
from command_engine.models.action import (
    AdjustStock,
    BroadcastPrompt,
    IncreasePricesPercent,
    Navigate,
    NavigateTarget,
    Noop,
    SendPaymentReminders,
)
from command_engine.models.business import Order, Product
from command_engine.models.config import EngineConfig
from command_engine.models.intent import Effect, EffectKind, SectionKey

logger = setup_logger("command_engine.execution")

ViewSink = Callable[[Effect], None]

TARGET_LABELS = {
    NavigateTarget.ORDERS: "pedidos",
    NavigateTarget.DEBTS: "deudas",
    NavigateTarget.STOCK: "stock",
    NavigateTarget.PROMOTIONS: "promociones",
    NavigateTarget.CLIENTS: "clientes",
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def next_quantity(current: int, delta: Optional[int], set_quantity: Optional[int]) -> int:
    if set_quantity is not None:
        return max(0, set_quantity)
    return max(0, current + (delta or 0))


def increased_price(price: float, percent: float) -> int:
    return max(0, round_half_up(price * (1 + percent / 100)))


class OrderCache:
    """Local copy of the order list, considered stale after `ttl_seconds`."""

    def __init__(self, ttl_seconds: int = 120, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._orders: List[Order] = []
        self._loaded_at: Optional[float] = None

    def is_stale(self) -> bool:
        if self._loaded_at is None:
            return True
        return self._clock() - self._loaded_at > self.ttl_seconds

    def replace(self, orders: List[Order]) -> None:
        self._orders = list(orders)
        self._loaded_at = self._clock()

    def resolve(self, identifiers: List[int]) -> Tuple[List[Order], List[int]]:
        """Match ids first, then customer-facing sequence numbers."""
        by_id = {o.id: o for o in self._orders}
        by_sequence = {o.sequence_number: o for o in self._orders if o.sequence_number is not None}
        resolved: Dict[int, Order] = {}
        missing: List[int] = []
        for ident in identifiers:
            order = by_id.get(ident) or by_sequence.get(ident)
            if order is None:
                missing.append(ident)
            else:
                resolved.setdefault(order.id, order)
        return list(resolved.values()), missing

    def outstanding_ids(self) -> List[int]:
        return [o.id for o in self._orders if o.has_debt]


class ExecutionError(Exception):
    """The engine was handed something other than a released action batch."""
    pass


class _BatchState:
    def __init__(self):
        self.orders_reloaded = False


class ExecutionEngine:
    """Dispatches validated actions to their executors."""

    def __init__(
        self,
        backend: BackendClient,
        view: Optional[ViewSink] = None,
        config: Optional[EngineConfig] = None,
        order_cache: Optional[OrderCache] = None,
    ):
        self.backend = backend
        self.view = view or (lambda effect: None)
        self.config = config or EngineConfig()
        self.order_cache = order_cache or OrderCache(self.config.order_cache_ttl_seconds)
        self._executors: Dict[type, Callable] = {
            Navigate: self._navigate,
            SendPaymentReminders: self._send_payment_reminders,
            AdjustStock: self._adjust_stock,
            IncreasePricesPercent: self._increase_prices,
            BroadcastPrompt: self._broadcast,
            Noop: self._noop,
        }

    async def execute(self, actions: List[object]) -> List[str]:
        """Run `actions` in order and return the ordered summary lines."""
        if not isinstance(actions, (list, tuple)):
            raise ExecutionError(
                f"Expected a confirmed action list, got {type(actions).__name__}"
            )
        state = _BatchState()
        lines: List[str] = []
        for action in actions:
            lines.extend(await self._dispatch(action, state))
        if not lines:
            lines.append(self.config.nothing_executed_message)
        return lines

    async def _dispatch(self, action: object, state: _BatchState) -> List[str]:
        executor = self._executors.get(type(action))
        if executor is None:
            logger.warning("Ignoring unexecutable action: %r", action)
            return [f"Acción ignorada ({type(action).__name__})."]
        try:
            return await executor(action, state)
        except BackendError as e:
            logger.warning("%s failed: %s", type(action).__name__, e)
            return [f"No se pudo completar la acción: {e}"]

    # --- Executors ---

    async def _navigate(self, action: Navigate, state: _BatchState) -> List[str]:
        self.view(Effect(kind=EffectKind.OPEN_SECTION, section=SectionKey(action.target.value)))
        return [f"Abrí {TARGET_LABELS[action.target]}."]

    async def _reload_orders(self, state: _BatchState) -> None:
        if state.orders_reloaded:
            return
        state.orders_reloaded = True
        try:
            self.order_cache.replace(await self.backend.list_orders())
        except BackendError as e:
            logger.warning("Order reload failed: %s", e)

    async def _send_payment_reminders(
        self, action: SendPaymentReminders, state: _BatchState
    ) -> List[str]:
        requested = list(action.order_ids)
        if not requested:
            if self.order_cache.is_stale():
                await self._reload_orders(state)
            requested = self.order_cache.outstanding_ids()
            if not requested:
                return ["No hay pedidos con deuda para recordar."]

        resolved, missing = self.order_cache.resolve(requested)
        if (missing or self.order_cache.is_stale()) and not state.orders_reloaded:
            await self._reload_orders(state)
            resolved, missing = self.order_cache.resolve(requested)

        lines = []
        for order in resolved:
            client = order.client_name or "el cliente"
            try:
                await self.backend.send_order_reminder(order.id)
                lines.append(f"Recordatorio enviado a {client} (pedido #{order.display_number}).")
            except BackendError as e:
                logger.warning("Reminder for order %s failed: %s", order.id, e)
                lines.append(f"No se pudo enviar el recordatorio del pedido #{order.display_number}: {e}")

        # Last resort: let the backend resolve identifiers we could not
        for ident in missing:
            try:
                await self.backend.send_order_reminder(ident)
                lines.append(f"Recordatorio enviado (pedido {ident}).")
            except BackendError as e:
                logger.warning("Reminder for raw order id %s failed: %s", ident, e)
                lines.append(f"No se pudo enviar el recordatorio del pedido {ident}: {e}")
        return lines

    async def _find_product(self, action: AdjustStock) -> Optional[Product]:
        product = None
        if action.product_id is not None:
            product = await self.backend.get_product(action.product_id)
        if product is None and action.product_name:
            product = find_product(action.product_name, await self.backend.list_products())
        return product

    async def _adjust_stock(self, action: AdjustStock, state: _BatchState) -> List[str]:
        reference = action.product_name or f"#{action.product_id}"
        try:
            product = await self._find_product(action)
        except BackendError as e:
            return [f"No se pudo buscar el producto «{reference}»: {e}"]
        if product is None:
            return [f"No encontré el producto «{reference}»."]

        quantity = next_quantity(product.quantity, action.delta, action.set_quantity)
        try:
            await self.backend.update_product(product.id, quantity=quantity)
        except BackendError as e:
            logger.warning("Stock update for product %s failed: %s", product.id, e)
            return [f"No se pudo actualizar el stock de {product.name}: {e}"]
        return [f"Stock de {product.name}: {product.quantity} → {quantity}."]

    async def _increase_prices(
        self, action: IncreasePricesPercent, state: _BatchState
    ) -> List[str]:
        try:
            products = await self.backend.list_products()
        except BackendError as e:
            return [f"No se pudieron cargar los productos: {e}"]
        if action.product_ids:
            wanted = set(action.product_ids)
            products = [p for p in products if p.id in wanted]
        if not products:
            return ["No hay productos para actualizar."]

        updated = 0
        for product in products:
            try:
                await self.backend.update_product(
                    product.id, price=increased_price(product.price, action.percent)
                )
                updated += 1
            except BackendError as e:
                logger.warning("Price update for product %s failed: %s", product.id, e)
        sign = "+" if action.percent > 0 else ""
        return [f"Precios actualizados ({sign}{action.percent:g}%): {updated} de {len(products)} productos."]

    async def _broadcast(self, action: BroadcastPrompt, state: _BatchState) -> List[str]:
        self.view(
            Effect(
                kind=EffectKind.OPEN_BROADCAST,
                params={"message": action.message, "severity": None},
            )
        )
        return ["Abrí el envío masivo con el mensaje listo para revisar."]

    async def _noop(self, action: Noop, state: _BatchState) -> List[str]:
        return [action.note] if action.note else []
