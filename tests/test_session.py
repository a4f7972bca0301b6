"""Tests for the command session: transcript, effects, agent path and guard."""

import asyncio
from datetime import datetime

import pytest

from command_engine.agent.client import AgentClient, AgentProposal, AgentServiceError
from command_engine.backend.memory import InMemoryBackend
from command_engine.models.business import Appointment, Order, Patient, Product
from command_engine.models.config import EngineConfig
from command_engine.models.intent import BusinessMode, EffectKind, SectionKey
from command_engine.models.session import Role
from command_engine.session.command import CommandSession
from command_engine.session.effects import pick_slot
from command_engine.session.guard import InFlightGuard, SessionBusyError
from command_engine.temporal.parser import parse_temporal

NOW = datetime(2026, 10, 14, 9, 30)


class StubAgent(AgentClient):
    def __init__(self, proposal=None, error=None):
        self.proposal = proposal
        self.error = error
        self.calls = []

    async def propose(self, text):
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.proposal


def _make_clinic_backend() -> InMemoryBackend:
    return InMemoryBackend(
        patients=[
            Patient(id=1, full_name="Ana López", dni="30123456"),
            Patient(id=2, full_name="Juan Pérez"),
        ],
        appointments=[
            Appointment(id=10, patient_id=1, patient_name="Ana López", date_time=datetime(2026, 10, 14, 11)),
            Appointment(id=11, patient_id=2, patient_name="Juan Pérez", date_time=datetime(2026, 10, 15, 16)),
        ],
        today=NOW,
    )


def _make_retail_backend() -> InMemoryBackend:
    return InMemoryBackend(
        products=[Product(id=1, name="Coca-Cola 1.5L", price=1500, quantity=10, categories=["Bebidas"])],
        orders=[Order(id=101, sequence_number=7, client_name="Marta", total_amount=5000)],
    )


def _make_session(backend, mode=BusinessMode.GENERAL, agent=None, view=None):
    return CommandSession(
        backend,
        config=EngineConfig(mode=mode),
        agent=agent,
        view=view,
        now_fn=lambda: NOW,
    )


class TestGeneralSession:
    def test_transcript_starts_with_greeting(self):
        session = _make_session(_make_clinic_backend())
        assert len(session.transcript) == 1
        assert session.transcript[0].role == Role.ASSISTANT

    @pytest.mark.asyncio
    async def test_reply_then_effect_outcome(self):
        backend = _make_clinic_backend()
        session = _make_session(backend)
        outcome = await session.submit("Mandá el recordatorio del turno a Juan Pérez")
        assert [m.role for m in outcome.messages] == [Role.USER, Role.ASSISTANT, Role.ASSISTANT]
        assert outcome.messages[2].text == "Recordatorio enviado a Juan Pérez."
        assert ("send_appointment_reminder", (11,)) in backend.calls
        assert len(session.transcript) == 4

    @pytest.mark.asyncio
    async def test_failed_backend_effect_is_reported(self):
        backend = _make_clinic_backend()
        backend.fail("create_patient_tag")
        session = _make_session(backend)
        outcome = await session.submit('Agregá a Ana López el dato importante "control mensual"')
        assert outcome.messages[-1].text.startswith("No se pudo agregar el dato a Ana López")
        assert backend.tags == []

    @pytest.mark.asyncio
    async def test_view_effects_reach_the_sink(self):
        seen = []
        session = _make_session(_make_clinic_backend(), view=seen.append)
        outcome = await session.submit("mostrame la agenda")
        assert seen[0].kind == EffectKind.OPEN_SECTION
        assert seen[0].section == SectionKey.AGENDA
        assert outcome.effects == seen

    @pytest.mark.asyncio
    async def test_clinical_history_generates_summary(self):
        backend = _make_clinic_backend()
        session = _make_session(backend)
        outcome = await session.submit("abrí la historia clínica de Ana López")
        assert outcome.effects[0].kind == EffectKind.OPEN_CLINICAL_HISTORY
        assert ("generate_patient_summary", (1,)) in backend.calls
        assert "Resumen" in outcome.messages[-1].text

    @pytest.mark.asyncio
    async def test_snapshot_failure_still_answers(self):
        backend = _make_clinic_backend()
        backend.fail("list_patients")
        session = _make_session(backend)
        outcome = await session.submit("¿cuántos pacientes tengo?")
        assert outcome.messages[1].text.startswith("No pude actualizar los datos del panel")
        assert "0 pacientes" in outcome.messages[2].text

    @pytest.mark.asyncio
    async def test_empty_command_is_not_accepted(self):
        session = _make_session(_make_clinic_backend())
        outcome = await session.submit("   ")
        assert outcome.accepted is False
        assert len(session.transcript) == 1

    @pytest.mark.asyncio
    async def test_reschedule_autofill_is_consumed_once(self):
        session = _make_session(_make_clinic_backend())
        await session.submit("Reprogramá el turno de Juan Pérez para el viernes a las 10")
        slots = [datetime(2026, 10, 16, 9), datetime(2026, 10, 16, 10), datetime(2026, 10, 17, 10)]
        assert session.consume_reschedule_autofill(11, slots) == datetime(2026, 10, 16, 10)
        assert session.consume_reschedule_autofill(11, slots) is None


class TestPickSlot:
    def test_falls_back_to_date_then_time(self):
        slots = [datetime(2026, 10, 16, 9), datetime(2026, 10, 17, 15)]
        both = parse_temporal("el viernes a las 10", now=NOW)
        assert pick_slot(both, slots) == datetime(2026, 10, 16, 9)
        time_only = parse_temporal("a las 15", now=NOW)
        assert pick_slot(time_only, slots) == datetime(2026, 10, 17, 15)
        assert pick_slot(parse_temporal("el lunes", now=NOW), slots) is None


class TestRetailSession:
    @pytest.mark.asyncio
    async def test_lookup_is_answered_locally(self):
        agent = StubAgent(AgentProposal())
        session = _make_session(_make_retail_backend(), BusinessMode.RETAIL, agent)
        outcome = await session.submit("ver pedidos")
        assert agent.calls == []
        assert outcome.effects[0].section == SectionKey.ORDERS

    @pytest.mark.asyncio
    async def test_agent_proposal_is_staged_then_confirmed(self):
        backend = _make_retail_backend()
        agent = StubAgent(AgentProposal(
            reply="Sumo 5 cocas al stock.",
            actions=[{"type": "adjust_stock", "productName": "coca", "delta": 5}, {"type": "bogus"}],
        ))
        session = _make_session(backend, BusinessMode.RETAIL, agent)

        outcome = await session.submit("sumá 5 cocas")
        assert agent.calls == ["sumá 5 cocas"]
        assert outcome.pending is not None
        assert len(outcome.pending.actions) == 1
        assert outcome.messages[-1].text.startswith("Sumo 5 cocas al stock.")
        assert backend.product(1).quantity == 10

        outcome = await session.confirm()
        assert outcome.messages[-1].text == "Stock de Coca-Cola 1.5L: 10 → 15."
        assert outcome.pending is None
        assert backend.product(1).quantity == 15

    @pytest.mark.asyncio
    async def test_cancel_discards_batch(self):
        backend = _make_retail_backend()
        agent = StubAgent(AgentProposal(actions=[{"type": "increase_prices_percent", "percent": 10}]))
        session = _make_session(backend, BusinessMode.RETAIL, agent)
        await session.submit("subí 10% todo")
        outcome = session.cancel()
        assert outcome.messages[-1].text == "Listo, cancelé las acciones propuestas."
        assert session.pending is None
        outcome = await session.confirm()
        assert outcome.messages[-1].text == "No hay acciones pendientes para confirmar."
        assert backend.product(1).price == 1500

    @pytest.mark.asyncio
    async def test_newer_proposal_replaces_pending(self):
        agent = StubAgent(AgentProposal(actions=[{"type": "navigate", "target": "stock"}]))
        session = _make_session(_make_retail_backend(), BusinessMode.RETAIL, agent)
        await session.submit("mostrame algo")
        agent.proposal = AgentProposal(actions=[{"type": "navigate", "target": "deudas"}])
        await session.submit("mejor otra cosa")
        outcome = await session.confirm()
        assert outcome.messages[-1].text == "Abrí deudas."

    @pytest.mark.asyncio
    async def test_all_invalid_actions_are_not_staged(self):
        agent = StubAgent(AgentProposal(reply="Listo", actions=[{"type": "increase_prices_percent", "percent": 0}]))
        session = _make_session(_make_retail_backend(), BusinessMode.RETAIL, agent)
        outcome = await session.submit("subí 0%")
        assert outcome.pending is None
        assert outcome.messages[-1].text == "No encontré acciones para ejecutar."

    @pytest.mark.asyncio
    async def test_agent_failure_apologizes(self):
        agent = StubAgent(error=AgentServiceError("timeout"))
        session = _make_session(_make_retail_backend(), BusinessMode.RETAIL, agent)
        outcome = await session.submit("sumá 5 cocas")
        assert outcome.messages[-1].text.startswith("Perdón")
        assert outcome.pending is None

    @pytest.mark.asyncio
    async def test_without_agent_retail_falls_back_to_help(self):
        session = _make_session(_make_retail_backend(), BusinessMode.RETAIL)
        outcome = await session.submit("sumá 5 cocas")
        assert "pedidos, deudas, stock o promociones" in outcome.messages[-1].text


class TestInFlightGuard:
    @pytest.mark.asyncio
    async def test_second_holder_is_rejected(self):
        guard = InFlightGuard()
        async with guard.hold():
            assert guard.busy
            with pytest.raises(SessionBusyError):
                async with guard.hold():
                    pass
        assert not guard.busy

    @pytest.mark.asyncio
    async def test_busy_session_rejects_submission(self):
        release = asyncio.Event()

        class SlowAgent(AgentClient):
            async def propose(self, text):
                await release.wait()
                return AgentProposal()

        session = _make_session(_make_retail_backend(), BusinessMode.RETAIL, SlowAgent())
        first = asyncio.create_task(session.submit("sumá 5 cocas"))
        await asyncio.sleep(0)
        assert session.busy
        with pytest.raises(SessionBusyError):
            await session.submit("ver pedidos")
        release.set()
        await first
        assert not session.busy
