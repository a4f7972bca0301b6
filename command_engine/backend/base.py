"""
Backend data service contract.

The engine never talks to storage directly: every read and write goes
through a `BackendClient`. Implementations raise `BackendError` with a
human-readable message, which callers relay verbatim into summary lines.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from command_engine.models.business import (
    Appointment,
    DashboardCounters,
    Order,
    Patient,
    Product,
)


class BackendError(Exception):
    """A backend call failed. `str(error)` is safe to show to the user."""
    pass


class BackendClient(ABC):

    # --- Orders ---

    @abstractmethod
    async def list_orders(self) -> List[Order]:
        ...

    @abstractmethod
    async def send_order_reminder(self, order_id: int) -> None:
        ...

    # --- Products ---

    @abstractmethod
    async def list_products(self) -> List[Product]:
        ...

    @abstractmethod
    async def get_product(self, product_id: int) -> Optional[Product]:
        ...

    @abstractmethod
    async def update_product(
        self,
        product_id: int,
        price: Optional[float] = None,
        quantity: Optional[int] = None,
    ) -> Product:
        ...

    # --- Appointments ---

    @abstractmethod
    async def list_today_appointments(self) -> List[Appointment]:
        ...

    @abstractmethod
    async def list_appointments(self, start: datetime, end: datetime) -> List[Appointment]:
        ...

    @abstractmethod
    async def send_appointment_reminder(self, appointment_id: int) -> None:
        ...

    # --- Patients ---

    @abstractmethod
    async def list_patients(self) -> List[Patient]:
        ...

    @abstractmethod
    async def create_patient_tag(self, patient_id: int, label: str, severity: str) -> None:
        ...

    @abstractmethod
    async def generate_patient_summary(self, patient_id: int) -> None:
        ...

    # --- Dashboard ---

    @abstractmethod
    async def get_counters(self) -> DashboardCounters:
        ...
