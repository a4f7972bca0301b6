"""
Fuzzy Entity Matcher: token-overlap ranking of named business records.

One scorer, two comparison directions:
  QUERY_TOKENS_IN_NAME  a name token matches when it is one of the query's tokens
                        (direct lookup, e.g. "historia clínica de ana lópez")
  NAME_TOKENS_IN_TEXT   a name token matches when the whole normalized query
                        contains it as a substring (names inside longer commands)

Ranking: matched tokens, then completeness (matched / total), then total
tokens (longer, more specific names). Earlier candidates win exact ties.
Name particles (de, del, la, las, los, y) are left out of both counts.
"""

import re
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

from pydantic import BaseModel

from command_engine.models.business import Appointment, Patient, Product
from command_engine.text.normalize import fold, normalize

T = TypeVar("T")

_DNI_PATTERNS = [
    re.compile(r"\bdni\s*:?\s*(\d{6,})\b"),
    re.compile(r"\b(\d{7,8})\b"),
]
_THOUSANDS_DOT = re.compile(r"(?<=\d)\.(?=\d{3}\b)")

BEVERAGE_SYNONYMS = {"coca", "cola", "bebida", "bebidas", "gaseosa", "gaseosas", "agua", "jugo", "cerveza"}
BEVERAGE_CATEGORY_HINT = "bebida"

# Connectives inside names ("María de la Cruz") never count as matches
NAME_PARTICLES = {"de", "del", "la", "las", "los", "y"}


class MatchStrategy(str, Enum):
    QUERY_TOKENS_IN_NAME = "query_tokens_in_name"
    NAME_TOKENS_IN_TEXT = "name_tokens_in_text"


class MatchScore(BaseModel):
    """Transient ranking record. Never persisted."""

    matched_token_count: int
    total_token_count: int
    bonus: int = 0

    @property
    def completeness_ratio(self) -> float:
        if self.total_token_count == 0:
            return 0.0
        return self.matched_token_count / self.total_token_count

    def rank_key(self) -> tuple:
        return (
            self.matched_token_count + self.bonus,
            self.completeness_ratio,
            self.total_token_count,
        )


def score_name(query: str, name: str, strategy: MatchStrategy) -> MatchScore:
    """Score one candidate name against an already-normalized query."""
    all_tokens = [t for t in normalize(name).split(" ") if t]
    name_tokens = [t for t in all_tokens if t not in NAME_PARTICLES] or all_tokens
    if strategy == MatchStrategy.QUERY_TOKENS_IN_NAME:
        query_tokens = set(query.split(" "))
        matched = sum(1 for t in name_tokens if t in query_tokens)
    else:
        matched = sum(1 for t in name_tokens if t in query)
    return MatchScore(matched_token_count=matched, total_token_count=len(name_tokens))


def best_match(
    query: str,
    candidates: Iterable[T],
    strategy: MatchStrategy,
    name_of: Callable[[T], str],
    bonus_of: Optional[Callable[[T], int]] = None,
) -> Optional[T]:
    """Return the highest-ranked candidate, or None when nothing overlaps."""
    normalized = normalize(query)
    if not normalized:
        return None

    best: Optional[T] = None
    best_key: Optional[tuple] = None
    for candidate in candidates:
        score = score_name(normalized, name_of(candidate), strategy)
        if bonus_of is not None:
            score.bonus = bonus_of(candidate)
        if score.matched_token_count + score.bonus == 0:
            continue
        key = score.rank_key()
        if best_key is None or key > best_key:
            best, best_key = candidate, key
    return best


# --- Identity numbers ---

def extract_dni(text: str) -> Optional[str]:
    """Find a "dni 30123456" cue or a bare 7-8 digit token."""
    folded = _THOUSANDS_DOT.sub("", fold(text))
    for pattern in _DNI_PATTERNS:
        match = pattern.search(folded)
        if match:
            return match.group(1)
    return None


def digits_only(value: Optional[str]) -> str:
    return re.sub(r"\D", "", value or "")


# --- Entity lookups ---

def find_patient(text: str, patients: Sequence[Patient]) -> Optional[Patient]:
    """
    Resolve a patient from a command.

    An identity number in the text bypasses fuzzy scoring entirely: the first
    patient whose stored DNI has the same digits wins.
    """
    dni = extract_dni(text)
    if dni:
        for patient in patients:
            if digits_only(patient.dni) == dni:
                return patient
    return best_match(
        text,
        patients,
        MatchStrategy.QUERY_TOKENS_IN_NAME,
        name_of=lambda p: p.full_name,
    )


def find_appointment(text: str, appointments: Sequence[Appointment]) -> Optional[Appointment]:
    """Resolve the appointment whose patient is named somewhere in `text`."""
    return best_match(
        text,
        appointments,
        MatchStrategy.NAME_TOKENS_IN_TEXT,
        name_of=lambda a: a.patient_name,
    )


def _product_bonus(query_tokens: set) -> Callable[[Product], int]:
    wants_beverage = bool(query_tokens & BEVERAGE_SYNONYMS)

    def bonus(product: Product) -> int:
        categories = [normalize(c) for c in product.categories]
        points = sum(1 for c in categories if c and c in query_tokens)
        if wants_beverage and any(BEVERAGE_CATEGORY_HINT in c for c in categories):
            points += 1
        return points

    return bonus


def find_product(text: str, products: List[Product]) -> Optional[Product]:
    """Resolve a product by name tokens, boosted by category keywords."""
    words = normalize(text).split(" ")
    # "cocas" should still hit "Coca-Cola"
    singulars = [w[:-1] for w in words if len(w) > 3 and w.endswith("s")]
    query_tokens = set(words + singulars)
    return best_match(
        " ".join(words + singulars),
        products,
        MatchStrategy.QUERY_TOKENS_IN_NAME,
        name_of=lambda p: p.name,
        bonus_of=_product_bonus(query_tokens),
    )
