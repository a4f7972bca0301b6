"""
Temporal Expression Parser: Spanish date/time cues in free text.

Rules, first match per category wins:
  Date:  relative day (pasado mañana / mañana / hoy)
         > weekday name (with "próximo"/"siguiente" emphasis)
         > numeric date dd/mm[/yy[yy]]
         > long-form date "dd de <mes>[ de yyyy]"
  Time:  "(a las|para las|a la|las) H[:MM][am|pm]"
         > "H[:MM] (hs|horas|h)"

Both components found: combined into `target_date` plus a formatted label.
One component found: label only. Neither: None.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from command_engine.models.temporal import TemporalExpression
from command_engine.text.normalize import fold

WEEKDAY_NAMES = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]
MONTH_NAMES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]

# Folded (accent-free) lookups
_WEEKDAY_INDEX = {
    "lunes": 0,
    "martes": 1,
    "miercoles": 2,
    "jueves": 3,
    "viernes": 4,
    "sabado": 5,
    "domingo": 6,
}
_MONTH_INDEX = {name: i + 1 for i, name in enumerate(MONTH_NAMES)}
_MONTH_INDEX["setiembre"] = 9

# Longest first so "manana" never matches inside "pasado manana"
_RELATIVE_DAYS = [
    (re.compile(r"\bpasado\s+manana\b"), 2, "pasado mañana"),
    (re.compile(r"\bmanana\b"), 1, "mañana"),
    (re.compile(r"\bhoy\b"), 0, "hoy"),
]

_WEEKDAY_RE = re.compile(
    r"\b(?:(proximo|proxima|siguiente)\s+)?"
    r"(lunes|martes|miercoles|jueves|viernes|sabado|domingo)\b"
)
_NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2}|\d{4}))?\b")
_LONG_DATE_RE = re.compile(
    r"\b(\d{1,2})\s+de\s+(" + "|".join(list(_MONTH_INDEX)) + r")(?:\s+(?:de|del)\s+(\d{2}|\d{4}))?\b"
)
_TIME_PATTERNS = [
    re.compile(r"\b(?:a las|para las|a la|las)\s+(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b"),
    re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(hs|horas|h)\b"),
]


def _expand_year(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    year = int(raw)
    return 2000 + year if len(raw) == 2 else year


def _build_date(day: int, month: int, year: Optional[int], today: date) -> Optional[date]:
    """Build a date, rolling an implicit year forward when already past."""
    try:
        result = date(year or today.year, month, day)
    except ValueError:
        return None
    if year is None and result < today:
        try:
            result = date(today.year + 1, month, day)
        except ValueError:
            return None  # 29/02 with no leap year ahead
    return result


def _format_day(value: date) -> str:
    return f"{WEEKDAY_NAMES[value.weekday()]} {value.day} de {MONTH_NAMES[value.month - 1]}"


def _format_time(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def _parse_date(text: str, today: date) -> Optional[Tuple[date, str]]:
    for pattern, offset, label in _RELATIVE_DAYS:
        if pattern.search(text):
            return today + timedelta(days=offset), label

    match = _WEEKDAY_RE.search(text)
    if match:
        emphasis, name = match.group(1), match.group(2)
        diff = (_WEEKDAY_INDEX[name] - today.weekday() + 7) % 7
        # Only the same-weekday case rolls a week; other diffs stay as-is
        if diff == 0 and emphasis:
            diff = 7
        target = today + timedelta(days=diff)
        return target, _format_day(target)

    match = _NUMERIC_DATE_RE.search(text)
    if match:
        target = _build_date(
            int(match.group(1)), int(match.group(2)), _expand_year(match.group(3)), today
        )
        if target:
            return target, target.strftime("%d/%m/%Y")

    match = _LONG_DATE_RE.search(text)
    if match:
        target = _build_date(
            int(match.group(1)), _MONTH_INDEX[match.group(2)], _expand_year(match.group(3)), today
        )
        if target:
            return target, _format_day(target)

    return None


def _parse_time(text: str) -> Optional[Tuple[time, str]]:
    for pattern in _TIME_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        hour = int(match.group(1))
        minute = int(match.group(2)) if match.group(2) else 0
        suffix = match.group(3)
        if suffix in ("am", "pm"):
            if hour > 12:
                return None  # "13pm" has no 12-hour reading
            if suffix == "pm" and hour < 12:
                hour += 12
            elif suffix == "am" and hour == 12:
                hour = 0
        if hour > 23 or minute > 59:
            return None
        parsed = time(hour, minute)
        return parsed, f"a las {_format_time(parsed)}"
    return None


def parse_temporal(raw_text: str, now: Optional[datetime] = None) -> Optional[TemporalExpression]:
    """Extract a date and/or time from `raw_text`, relative to `now`."""
    text = fold(raw_text)
    if not text:
        return None
    now = now or datetime.now()
    today = now.date()

    date_part = _parse_date(text, today)
    time_part = _parse_time(text)

    if date_part and time_part:
        day, _ = date_part
        clock, _ = time_part
        combined = datetime.combine(day, clock)
        return TemporalExpression(
            has_date=True,
            has_time=True,
            target_date=combined,
            target_label=f"{_format_day(day)}, {_format_time(clock)} hs",
            base_date=day,
            time_of_day=clock,
        )

    if not date_part and not time_part:
        return None

    labels = [part[1] for part in (date_part, time_part) if part]
    return TemporalExpression(
        has_date=date_part is not None,
        has_time=time_part is not None,
        target_label=" ".join(labels),
        base_date=date_part[0] if date_part else None,
        time_of_day=time_part[0] if time_part else None,
    )
