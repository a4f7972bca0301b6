"""Tests for the FastAPI API endpoints."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from command_engine.agent.client import AgentClient, AgentProposal
from command_engine.api.app import create_app
from command_engine.backend.memory import InMemoryBackend
from command_engine.models.business import Appointment, Patient, Product
from command_engine.models.config import EngineConfig
from command_engine.models.intent import BusinessMode
from command_engine.session.command import CommandSession
from command_engine.session.guard import SessionBusyError

NOW = datetime(2026, 10, 14, 9, 30)


class FixedAgent(AgentClient):
    async def propose(self, text):
        return AgentProposal(
            reply="Sumo 5 al stock de Coca.",
            actions=[{"type": "adjust_stock", "productId": 1, "delta": 5}],
        )


@pytest.fixture
def retail_client():
    """Retail session over an in-memory backend and a fixed agent."""
    backend = InMemoryBackend(
        products=[Product(id=1, name="Coca-Cola 1.5L", price=1500, quantity=10, categories=["Bebidas"])],
    )
    session = CommandSession(
        backend,
        config=EngineConfig(mode=BusinessMode.RETAIL),
        agent=FixedAgent(),
        now_fn=lambda: NOW,
    )
    return TestClient(create_app(session=session))


@pytest.fixture
def clinic_client():
    backend = InMemoryBackend(
        patients=[Patient(id=2, full_name="Juan Pérez")],
        appointments=[
            Appointment(id=11, patient_id=2, patient_name="Juan Pérez", date_time=datetime(2026, 10, 15, 16)),
        ],
        today=NOW,
    )
    session = CommandSession(backend, now_fn=lambda: NOW)
    return TestClient(create_app(session=session))


class TestCommandEndpoints:
    def test_stage_then_confirm(self, retail_client):
        resp = retail_client.post("/commands", json={"text": "sumá 5 cocas"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["pending"]["actions"] == [
            {"type": "adjust_stock", "product_id": 1, "product_name": None, "delta": 5, "set_quantity": None}
        ]

        pending = retail_client.get("/pending").json()
        assert pending["reply"] == "Sumo 5 al stock de Coca."

        resp = retail_client.post("/pending/confirm")
        assert resp.status_code == 200
        assert resp.json()["messages"][-1]["text"] == "Stock de Coca-Cola 1.5L: 10 → 15."
        assert retail_client.get("/pending").json() is None

    def test_cancel(self, retail_client):
        retail_client.post("/commands", json={"text": "sumá 5 cocas"})
        resp = retail_client.post("/pending/cancel")
        assert resp.json()["messages"][-1]["text"] == "Listo, cancelé las acciones propuestas."
        assert retail_client.get("/pending").json() is None

    def test_empty_text_is_rejected(self, retail_client):
        assert retail_client.post("/commands", json={"text": ""}).status_code == 422
        assert retail_client.post("/commands", json={"text": "   "}).status_code == 422

    def test_transcript(self, retail_client):
        retail_client.post("/commands", json={"text": "ver pedidos"})
        transcript = retail_client.get("/transcript").json()
        assert [m["role"] for m in transcript] == ["assistant", "user", "assistant"]
        assert transcript[1]["text"] == "ver pedidos"

    def test_busy_session_returns_409(self, retail_client):
        session = retail_client.app.state.session

        async def busy_submit(text):
            raise SessionBusyError("ocupado")

        session.submit = busy_submit
        resp = retail_client.post("/commands", json={"text": "ver pedidos"})
        assert resp.status_code == 409
        assert resp.json()["detail"] == "ocupado"


class TestDiagnostics:
    def test_normalize_actions(self, retail_client):
        resp = retail_client.post("/actions/normalize", json={"actions": [
            {"type": "navigate", "target": "deudas"},
            {"type": "increase_prices_percent", "percent": 0},
        ]})
        body = resp.json()
        assert body["actions"] == [{"type": "navigate", "target": "debts"}]
        assert body["dropped"] == 1


class TestRescheduleAutofill:
    def test_autofill_after_reschedule(self, clinic_client):
        clinic_client.post("/commands", json={"text": "Reprogramá el turno de Juan Pérez para el viernes a las 10"})
        resp = clinic_client.post(
            "/reschedule/11/autofill",
            json={"slots": ["2026-10-16T09:00:00", "2026-10-16T10:00:00"]},
        )
        assert resp.json() == {"slot": "2026-10-16T10:00:00"}

        again = clinic_client.post("/reschedule/11/autofill", json={"slots": ["2026-10-16T10:00:00"]})
        assert again.json() == {"slot": None}
