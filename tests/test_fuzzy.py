"""Tests for the Fuzzy Entity Matcher."""

from datetime import datetime

from command_engine.matching.fuzzy import (
    MatchStrategy,
    best_match,
    extract_dni,
    find_appointment,
    find_patient,
    find_product,
    score_name,
)
from command_engine.models.business import Appointment, Patient, Product


def _make_patients():
    return [
        Patient(id=1, full_name="Ana María López", dni="28.555.111"),
        Patient(id=2, full_name="Ana López", dni="30.123.456"),
        Patient(id=3, full_name="Juan Pérez", dni="25000111"),
    ]


def _make_products():
    return [
        Product(id=1, name="Galletitas de coco", price=800, quantity=10, categories=["Almacén"]),
        Product(id=2, name="Coca-Cola 1.5L", price=1500, quantity=24, categories=["Bebidas"]),
        Product(id=3, name="Agua mineral", price=600, quantity=5, categories=["Bebidas"]),
    ]


class TestScoring:
    def test_completeness_breaks_ties(self):
        short = score_name("ana lopez", "Ana López", MatchStrategy.QUERY_TOKENS_IN_NAME)
        long = score_name("ana lopez", "Ana María López", MatchStrategy.QUERY_TOKENS_IN_NAME)
        assert short.matched_token_count == long.matched_token_count == 2
        assert short.completeness_ratio == 1.0
        assert round(long.completeness_ratio, 2) == 0.67
        assert short.rank_key() > long.rank_key()

    def test_tie_break_selects_most_complete_name(self):
        names = ["Ana María López", "Ana López"]
        best = best_match("ana lopez", names, MatchStrategy.QUERY_TOKENS_IN_NAME, name_of=lambda n: n)
        assert best == "Ana López"

    def test_exact_tie_keeps_first_candidate(self):
        names = ["Juan Pérez", "Juan Perez"]
        best = best_match("juan perez", names, MatchStrategy.QUERY_TOKENS_IN_NAME, name_of=lambda n: n)
        assert best == "Juan Pérez"

    def test_no_overlap_returns_none(self):
        assert best_match("carlos", ["Ana López"], MatchStrategy.QUERY_TOKENS_IN_NAME, name_of=lambda n: n) is None
        assert best_match("", ["Ana López"], MatchStrategy.QUERY_TOKENS_IN_NAME, name_of=lambda n: n) is None

    def test_name_tokens_in_text_matches_substrings(self):
        score = score_name("recordale a perezoso", "Juan Pérez", MatchStrategy.NAME_TOKENS_IN_TEXT)
        assert score.matched_token_count == 1


class TestPatients:
    def test_dni_override(self):
        patient = find_patient("abrí la ficha del dni 30123456", _make_patients())
        assert patient.id == 2

    def test_dni_with_thousands_dots(self):
        assert extract_dni("DNI: 30.123.456") == "30123456"
        assert find_patient("historia de 25.000.111", _make_patients()).id == 3

    def test_dni_beats_name_tokens(self):
        patient = find_patient("Juan Pérez dni 28555111", _make_patients())
        assert patient.id == 1

    def test_unknown_dni_falls_back_to_name(self):
        patient = find_patient("ana lopez dni 99999999", _make_patients())
        assert patient.id == 2

    def test_name_particles_do_not_count(self):
        patients = [Patient(id=4, full_name="María de la Cruz"), Patient(id=3, full_name="Juan Pérez")]
        assert find_patient("abrí la historia de juan", patients).id == 3
        score = score_name("historia de la cruz", "María de la Cruz", MatchStrategy.QUERY_TOKENS_IN_NAME)
        assert (score.matched_token_count, score.total_token_count) == (1, 2)

    def test_no_dni(self):
        assert extract_dni("turno a las 14") is None


class TestAppointments:
    def test_owner_named_inside_command(self):
        appointments = [
            Appointment(id=10, patient_name="Ana López", date_time=datetime(2026, 10, 14, 10)),
            Appointment(id=11, patient_name="Juan Pérez", date_time=datetime(2026, 10, 14, 11)),
        ]
        appt = find_appointment("mandale el recordatorio del turno a Juan Pérez", appointments)
        assert appt.id == 11


class TestProducts:
    def test_plural_and_beverage_boost(self):
        assert find_product("sumá 10 cocas", _make_products()).id == 2

    def test_beverage_synonym_without_name_overlap(self):
        assert find_product("bajá 2 gaseosas", _make_products()).id == 2

    def test_name_match(self):
        assert find_product("galletitas", _make_products()).id == 1
        assert find_product("agua mineral", _make_products()).id == 3

    def test_unknown_product(self):
        assert find_product("fideos", _make_products()) is None
