"""Tests for the Temporal Expression Parser."""

from datetime import date, datetime, time

import pytest

from command_engine.models.temporal import TemporalExpression
from command_engine.temporal.parser import parse_temporal

# Wednesday
NOW = datetime(2026, 10, 14, 9, 30)


class TestRelativeDays:
    @pytest.mark.parametrize(
        "text,offset",
        [("turno para hoy", 0), ("mañana", 1), ("pasado mañana", 2), ("PASADO MANANA", 2)],
    )
    def test_relative_day_offsets(self, text, offset):
        expr = parse_temporal(text, now=NOW)
        assert expr.has_date and not expr.has_time
        assert expr.base_date == date(2026, 10, 14 + offset)
        assert expr.target_date is None

    def test_relative_day_label(self):
        assert parse_temporal("pasado mañana", now=NOW).target_label == "pasado mañana"


class TestWeekdays:
    def test_same_weekday_is_today(self):
        assert parse_temporal("el miércoles", now=NOW).base_date == date(2026, 10, 14)

    def test_emphasis_on_same_weekday_skips_a_week(self):
        assert parse_temporal("el próximo miércoles", now=NOW).base_date == date(2026, 10, 21)
        assert parse_temporal("el miercoles siguiente", now=NOW).base_date == date(2026, 10, 14)

    def test_emphasis_on_other_weekday_is_not_special_cased(self):
        assert parse_temporal("el lunes", now=NOW).base_date == date(2026, 10, 19)
        assert parse_temporal("el próximo lunes", now=NOW).base_date == date(2026, 10, 19)

    def test_weekday_label(self):
        assert parse_temporal("el viernes", now=NOW).target_label == "viernes 16 de octubre"


class TestTimes:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("a las 14", time(14, 0)),
            ("a las 2pm", time(14, 0)),
            ("a las 12am", time(0, 0)),
            ("para las 9:15", time(9, 15)),
            ("9 hs", time(9, 0)),
            ("18:45 horas", time(18, 45)),
        ],
    )
    def test_time_forms(self, text, expected):
        expr = parse_temporal(text, now=NOW)
        assert expr.has_time and not expr.has_date
        assert expr.time_of_day == expected

    def test_time_only_label(self):
        assert parse_temporal("a las 2pm", now=NOW).target_label == "a las 14:00"

    @pytest.mark.parametrize("text", ["a las 13pm", "a las 25", "a las 10:75"])
    def test_invalid_times_rejected(self, text):
        assert parse_temporal(text, now=NOW) is None


class TestCalendarDates:
    def test_numeric_date_with_time(self):
        expr = parse_temporal("el 20/10 a las 14:30", now=NOW)
        assert expr.has_date and expr.has_time
        assert expr.target_date == datetime(2026, 10, 20, 14, 30)
        assert expr.target_label == "martes 20 de octubre, 14:30 hs"

    def test_numeric_date_rolls_to_next_year_when_past(self):
        expr = parse_temporal("el 3/2", now=NOW)
        assert expr.base_date == date(2027, 2, 3)
        assert expr.target_label == "03/02/2027"

    def test_explicit_year_is_kept_even_when_past(self):
        assert parse_temporal("1/2/26", now=NOW).base_date == date(2026, 2, 1)

    def test_invalid_numeric_date_ignored(self):
        assert parse_temporal("el 31/02", now=NOW) is None

    def test_long_form_date(self):
        assert parse_temporal("el 15 de marzo de 2027", now=NOW).base_date == date(2027, 3, 15)
        assert parse_temporal("el 5 de setiembre", now=NOW).base_date == date(2027, 9, 5)

    def test_relative_day_beats_weekday(self):
        assert parse_temporal("mañana lunes", now=NOW).base_date == date(2026, 10, 15)


class TestNoMatch:
    def test_plain_text_returns_none(self):
        assert parse_temporal("mandale saludos a Ana", now=NOW) is None
        assert parse_temporal("", now=NOW) is None

    def test_target_date_requires_both_components(self):
        with pytest.raises(ValueError):
            TemporalExpression(has_date=True, target_date=datetime(2026, 10, 20, 10, 0))
