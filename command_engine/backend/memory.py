"""
In-memory backend for local runs and tests.

Holds the same records the REST backend serves. Failures can be injected
per operation and record id to exercise the engine's isolation paths.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from command_engine.backend.base import BackendClient, BackendError
from command_engine.models.business import (
    Appointment,
    DashboardCounters,
    Order,
    Patient,
    Product,
)


class InMemoryBackend(BackendClient):

    def __init__(
        self,
        patients: Iterable[Patient] = (),
        appointments: Iterable[Appointment] = (),
        products: Iterable[Product] = (),
        orders: Iterable[Order] = (),
        counters: Optional[DashboardCounters] = None,
        today: Optional[datetime] = None,
    ):
        self._patients: Dict[int, Patient] = {p.id: p for p in patients}
        self._appointments: Dict[int, Appointment] = {a.id: a for a in appointments}
        self._products: Dict[int, Product] = {p.id: p for p in products}
        self._orders: Dict[int, Order] = {o.id: o for o in orders}
        self._counters = counters or DashboardCounters()
        self._today = today
        self._failures: Set[Tuple[str, Optional[int]]] = set()
        self.calls: List[Tuple[str, tuple]] = []
        self.tags: List[dict] = []

    def fail(self, operation: str, record_id: Optional[int] = None) -> None:
        """Make `operation` raise for `record_id` (or for every id when None)."""
        self._failures.add((operation, record_id))

    def _record(self, operation: str, *args) -> None:
        self.calls.append((operation, args))
        record_id = args[0] if args and isinstance(args[0], int) else None
        if (operation, None) in self._failures or (operation, record_id) in self._failures:
            raise BackendError(f"Falla simulada en {operation}")

    # --- Orders ---

    async def list_orders(self) -> List[Order]:
        self._record("list_orders")
        return list(self._orders.values())

    async def send_order_reminder(self, order_id: int) -> None:
        self._record("send_order_reminder", order_id)
        if order_id not in self._orders:
            raise BackendError("Pedido no encontrado")

    def add_order(self, order: Order) -> None:
        self._orders[order.id] = order

    # --- Products ---

    async def list_products(self) -> List[Product]:
        self._record("list_products")
        return list(self._products.values())

    async def get_product(self, product_id: int) -> Optional[Product]:
        self._record("get_product", product_id)
        return self._products.get(product_id)

    async def update_product(
        self,
        product_id: int,
        price: Optional[float] = None,
        quantity: Optional[int] = None,
    ) -> Product:
        self._record("update_product", product_id)
        product = self._products.get(product_id)
        if product is None:
            raise BackendError("Producto no encontrado")
        updates = {}
        if price is not None:
            updates["price"] = price
        if quantity is not None:
            updates["quantity"] = quantity
        updated = product.model_copy(update=updates)
        self._products[product_id] = updated
        return updated

    def product(self, product_id: int) -> Product:
        return self._products[product_id]

    # --- Appointments ---

    async def list_today_appointments(self) -> List[Appointment]:
        self._record("list_today_appointments")
        today = (self._today or datetime.now()).date()
        return [a for a in self._appointments.values() if a.date_time.date() == today]

    async def list_appointments(self, start: datetime, end: datetime) -> List[Appointment]:
        self._record("list_appointments")
        return [a for a in self._appointments.values() if start <= a.date_time <= end]

    async def send_appointment_reminder(self, appointment_id: int) -> None:
        self._record("send_appointment_reminder", appointment_id)
        if appointment_id not in self._appointments:
            raise BackendError("Turno no encontrado")

    # --- Patients ---

    async def list_patients(self) -> List[Patient]:
        self._record("list_patients")
        return list(self._patients.values())

    async def create_patient_tag(self, patient_id: int, label: str, severity: str) -> None:
        self._record("create_patient_tag", patient_id)
        if patient_id not in self._patients:
            raise BackendError("Paciente no encontrado")
        self.tags.append({"patient_id": patient_id, "label": label, "severity": severity})

    async def generate_patient_summary(self, patient_id: int) -> None:
        self._record("generate_patient_summary", patient_id)

    # --- Dashboard ---

    async def get_counters(self) -> DashboardCounters:
        self._record("get_counters")
        return self._counters
