"""REST implementation of the backend contract (httpx)."""

from datetime import datetime
from typing import Any, Callable, List, Optional, TypeVar

import httpx

from command_engine.backend.base import BackendClient, BackendError
from command_engine.log import setup_logger
from command_engine.models.business import (
    Appointment,
    DashboardCounters,
    Order,
    Patient,
    Product,
)

logger = setup_logger("command_engine.backend")

T = TypeVar("T")

INVALID_RESPONSE = "Respuesta inválida del servidor."


class NotFoundError(BackendError):
    """The backend answered 404."""
    pass


def _items(data: Any, key: str) -> List[dict]:
    """Accept both bare lists and {"<key>": [...]} envelopes."""
    if isinstance(data, list):
        return [d for d in data if isinstance(d, dict)]
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return [d for d in data[key] if isinstance(d, dict)]
    return []


def _mapped(mapper: Callable[[dict], T], items: List[dict]) -> List[T]:
    """Map every item or fail the whole call with a `BackendError`."""
    try:
        return [mapper(item) for item in items]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Malformed backend item: {e!r}")
        raise BackendError(INVALID_RESPONSE) from e


def order_from_json(raw: dict) -> Order:
    client = raw.get("client") or {}
    return Order(
        id=raw["id"],
        sequence_number=raw.get("sequenceNumber"),
        client_name=raw.get("clientName") or raw.get("customerName") or client.get("fullName"),
        total_amount=raw.get("totalAmount") or 0,
        paid_amount=raw.get("paidAmount") or 0,
        payment_status=raw.get("paymentStatus"),
    )


def product_from_json(raw: dict) -> Product:
    return Product(
        id=raw["id"],
        name=raw.get("name") or "",
        price=raw.get("price") or 0,
        quantity=raw.get("quantity") or 0,
        categories=raw.get("categories") or [],
    )


def appointment_from_json(raw: dict) -> Appointment:
    patient = raw.get("patient") or {}
    return Appointment(
        id=raw["id"],
        patient_id=raw.get("patientId") or patient.get("id"),
        patient_name=raw.get("patientName") or patient.get("fullName") or "",
        date_time=raw["dateTime"],
        status=raw.get("status") or "scheduled",
    )


def patient_from_json(raw: dict) -> Patient:
    return Patient(
        id=raw["id"],
        full_name=raw.get("fullName") or "",
        dni=raw.get("dni"),
        phone=raw.get("phone"),
        missing_fields=raw.get("missingFields") or [],
    )


def counters_from_json(raw: dict) -> DashboardCounters:
    return DashboardCounters(
        appointments_today=raw.get("consultasHoy") or 0,
        confirmed_today=raw.get("confirmadosHoy") or 0,
        waiting_patients=raw.get("pacientesEnEspera") or 0,
        messages_today=raw.get("mensajesHoy") or 0,
        unread_conversations=raw.get("conversacionesSinLeer") or 0,
        pending_confirmations=raw.get("turnosPorConfirmar") or 0,
        pending_documents=raw.get("documentosPendientes") or 0,
    )


class HttpBackend(BackendClient):
    """Talks to the dashboard REST API with a bearer token."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise BackendError(f"No se pudo conectar con el servidor ({e.__class__.__name__}).") from e

        if resp.status_code >= 400:
            message = None
            try:
                body = resp.json()
                if isinstance(body, dict):
                    message = body.get("error") or body.get("message")
            except ValueError:
                pass
            error = NotFoundError if resp.status_code == 404 else BackendError
            raise error(message or f"El servidor respondió {resp.status_code}.")

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    # --- Orders ---

    async def list_orders(self) -> List[Order]:
        data = await self._request("GET", "/api/commerce/orders")
        return _mapped(order_from_json, _items(data, "orders"))

    async def send_order_reminder(self, order_id: int) -> None:
        await self._request("POST", f"/api/commerce/orders/{order_id}/payment-reminder")

    # --- Products ---

    async def list_products(self) -> List[Product]:
        data = await self._request("GET", "/api/products")
        return _mapped(product_from_json, _items(data, "products"))

    async def get_product(self, product_id: int) -> Optional[Product]:
        try:
            data = await self._request("GET", f"/api/products/{product_id}")
        except NotFoundError:
            return None
        if isinstance(data, dict) and isinstance(data.get("product"), dict):
            data = data["product"]
        if not isinstance(data, dict):
            return None
        return _mapped(product_from_json, [data])[0]

    async def update_product(
        self,
        product_id: int,
        price: Optional[float] = None,
        quantity: Optional[int] = None,
    ) -> Product:
        payload = {}
        if price is not None:
            payload["price"] = price
        if quantity is not None:
            payload["quantity"] = quantity
        data = await self._request("PATCH", f"/api/products/{product_id}", json=payload)
        if isinstance(data, dict) and isinstance(data.get("product"), dict):
            data = data["product"]
        if not isinstance(data, dict):
            raise BackendError("Respuesta inválida al actualizar el producto.")
        return _mapped(product_from_json, [data])[0]

    # --- Appointments ---

    async def list_today_appointments(self) -> List[Appointment]:
        data = await self._request("GET", "/api/appointments/today")
        return _mapped(appointment_from_json, _items(data, "appointments"))

    async def list_appointments(self, start: datetime, end: datetime) -> List[Appointment]:
        data = await self._request(
            "GET",
            "/api/appointments",
            params={"from": start.isoformat(), "to": end.isoformat()},
        )
        return _mapped(appointment_from_json, _items(data, "appointments"))

    async def send_appointment_reminder(self, appointment_id: int) -> None:
        await self._request("POST", f"/api/appointments/{appointment_id}/send-reminder")

    # --- Patients ---

    async def list_patients(self) -> List[Patient]:
        data = await self._request("GET", "/api/patients")
        return _mapped(patient_from_json, _items(data, "patients"))

    async def create_patient_tag(self, patient_id: int, label: str, severity: str) -> None:
        await self._request(
            "POST",
            f"/api/patients/{patient_id}/tags",
            json={"label": label, "severity": severity},
        )

    async def generate_patient_summary(self, patient_id: int) -> None:
        await self._request("POST", f"/api/patients/{patient_id}/summary")

    # --- Dashboard ---

    async def get_counters(self) -> DashboardCounters:
        data = await self._request("GET", "/api/dashboard-summary/me")
        return _mapped(counters_from_json, [data if isinstance(data, dict) else {}])[0]
