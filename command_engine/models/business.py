"""Business records: the live entities commands are resolved against."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class Patient(BaseModel):
    """A clinic patient (or retail client) as listed by the backend."""

    id: int
    full_name: str
    dni: Optional[str] = None                   # Identity number as stored, any punctuation
    phone: Optional[str] = None
    missing_fields: List[str] = []              # e.g. ["dni", "insurance"]


class Appointment(BaseModel):
    """An agenda entry owned by a patient."""

    id: int
    patient_id: Optional[int] = None
    patient_name: str = ""
    date_time: datetime
    status: str = "scheduled"


class Product(BaseModel):
    id: int
    name: str
    price: float = Field(ge=0, default=0)
    quantity: int = 0
    categories: List[str] = []


class Order(BaseModel):
    """A retail order. `sequence_number` is the customer-facing #number."""

    id: int
    sequence_number: Optional[int] = None
    client_name: Optional[str] = None
    total_amount: float = 0
    paid_amount: float = 0
    payment_status: Optional[str] = None

    @property
    def outstanding_amount(self) -> float:
        return max(0.0, self.total_amount - (self.paid_amount or 0))

    @property
    def has_debt(self) -> bool:
        return self.outstanding_amount > 0

    @property
    def display_number(self) -> int:
        return self.sequence_number if self.sequence_number is not None else self.id


class DashboardCounters(BaseModel):
    """Today's live counters and pending-item counts."""

    appointments_today: int = 0
    confirmed_today: int = 0
    waiting_patients: int = 0
    messages_today: int = 0
    unread_conversations: int = 0
    pending_confirmations: int = 0
    pending_documents: int = 0


class BusinessSnapshot(BaseModel):
    """Read model the interpreter works on. Fetched once per command."""

    patients: List[Patient] = []
    today_appointments: List[Appointment] = []
    calendar_appointments: List[Appointment] = []
    counters: DashboardCounters = DashboardCounters()
    patient_count: Optional[int] = None         # Falls back to len(patients)

    @property
    def total_patients(self) -> int:
        if self.patient_count is not None:
            return self.patient_count
        return len(self.patients)
