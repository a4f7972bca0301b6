"""Tests for the Text Normalizer."""

from command_engine.text.normalize import fold, normalize, strip_accents, tokens


class TestNormalize:
    def test_strips_accents_and_lowercases(self):
        assert normalize("Mañana a las 14 con José PÉREZ") == "manana a las 14 con jose perez"

    def test_collapses_punctuation_runs(self):
        assert normalize("¿Cuántos pacientes?!  --  hoy...") == "cuantos pacientes hoy"

    def test_empty_and_symbol_only(self):
        assert normalize("") == ""
        assert normalize("¡¿...?!") == ""

    def test_idempotent(self):
        text = "Recordá el turno de María Núñez, DNI 30.123.456"
        assert normalize(normalize(text)) == normalize(text)

    def test_tokens(self):
        assert tokens("Ana  López") == ["ana", "lopez"]
        assert tokens("  ") == []


class TestFold:
    def test_keeps_date_and_time_punctuation(self):
        assert fold("El  Miércoles 20/10 a las 14:30") == "el miercoles 20/10 a las 14:30"

    def test_strip_accents_keeps_case(self):
        assert strip_accents("Ñandú Álvarez") == "Nandu Alvarez"
