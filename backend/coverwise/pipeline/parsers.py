"""Scalar parsers: evidence text to canonical numbers, durations and flags.

All parsers are total: text they cannot read resolves to a documented
default (0 / False / None) instead of raising.  Whether that default stands
for "unknown" is tracked by the caller (see confidence.ResolutionLog).

Amounts are integer INR.  Suffix priority is crore → lakh → plain number,
so "1.5 Cr" is never read as 1.5 (or 2).
"""

import math
import re
from typing import Any

from coverwise.pipeline.evidence import EvidenceField

# ═══════════════════════════════════════════════════
# 1. AMOUNTS
# ═══════════════════════════════════════════════════

CRORE = 10_000_000
LAKH = 100_000

_CURRENCY_RE = re.compile(r"₹|\brs\b\.?|\binr\b", re.IGNORECASE)
_CRORE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:crores?|crs?|c)\b")
_LAKH_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:lakhs?|lacs?|l)\b")
_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 → 3)."""
    if value < 0:
        return -int(math.floor(-value + 0.5))
    return int(math.floor(value + 0.5))


def _clean_amount_text(text: str) -> str:
    s = _CURRENCY_RE.sub(" ", text)
    s = s.replace(",", "")
    return s.lower()


def extract_number(value: Any) -> int:
    """Parse an INR amount from evidence text.

    Handles:
      - ₹ / Rs. / INR prefixes and Indian or western digit grouping
      - crore suffixes (cr, crore, crores) ×1,00,00,000
      - lakh suffixes (l, lakh, lakhs, lac, lacs) ×1,00,000
      - plain decimal numbers (first number in the text)

    Returns 0 when there is no numeric token.
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return round_half_up(float(value)) if math.isfinite(value) else 0
    if not isinstance(value, str) or not value.strip():
        return 0

    s = _clean_amount_text(value)

    crore = _CRORE_RE.search(s)
    if crore:
        return round_half_up(float(crore.group(1)) * CRORE)
    lakh = _LAKH_RE.search(s)
    if lakh:
        return round_half_up(float(lakh.group(1)) * LAKH)
    plain = _NUMBER_RE.search(re.sub(r"\s+", "", s))
    if plain:
        return round_half_up(float(plain.group(1)))
    return 0


# ═══════════════════════════════════════════════════
# 2. DURATIONS
# ═══════════════════════════════════════════════════

_YEARS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:years?|yrs?)\b")
_MONTHS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:months?|mths?)\b")
_DAYS_RE = re.compile(r"(\d+)\s*days?\b")


def extract_months(value: Any) -> int:
    """Parse a duration in months; years win over months, months over days.

    "2 years" → 24, "24 months" → 24, "90 days" → 3.  Unparsable → 0.
    """
    if not isinstance(value, str) or not value.strip():
        return 0
    s = value.lower()

    years = _YEARS_RE.search(s)
    if years:
        return round_half_up(float(years.group(1)) * 12)
    months = _MONTHS_RE.search(s)
    if months:
        return round_half_up(float(months.group(1)))
    days = _DAYS_RE.search(s)
    if days:
        return round_half_up(int(days.group(1)) / 30)
    return 0


def extract_days(value: Any) -> int:
    """Parse a day count ("60 days before admission" → 60).  Unparsable → 0."""
    if not isinstance(value, str) or not value.strip():
        return 0
    days = _DAYS_RE.search(value.lower())
    return int(days.group(1)) if days else 0


_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:%|percent\b|per\s*cent\b)", re.IGNORECASE)


def extract_percent(value: Any) -> float | None:
    """First percentage in the text ("1% of SI per day" → 1.0), else None."""
    if not isinstance(value, str):
        return None
    match = _PERCENT_RE.search(value)
    return float(match.group(1)) if match else None


# ═══════════════════════════════════════════════════
# 3. AVAILABILITY
# ═══════════════════════════════════════════════════

# Permissive on purpose: a loose "any" still reads as generous cover.
UNLIMITED_KEYWORDS = ("unlimited", "any", "no limit", "not restricted")
NEGATION_KEYWORDS = ("not covered", "excluded")


def is_unlimited(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    lower = value.lower()
    return any(keyword in lower for keyword in UNLIMITED_KEYWORDS)


def is_covered(field: EvidenceField) -> bool:
    """The single place the three-state model narrows to a boolean.

    True only for an explicit statement whose value is not itself a negation;
    excluded and not_mentioned are both False here.
    """
    if not field.is_explicit:
        return False
    lower = field.value.lower()
    return not any(keyword in lower for keyword in NEGATION_KEYWORDS)


# ═══════════════════════════════════════════════════
# 4. DISPLAY
# ═══════════════════════════════════════════════════

def _indian_grouping(amount: int) -> str:
    digits = str(abs(amount))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        pairs = []
        while len(head) > 2:
            pairs.insert(0, head[-2:])
            head = head[:-2]
        if head:
            pairs.insert(0, head)
        digits = ",".join(pairs + [tail])
    return f"-{digits}" if amount < 0 else digits


def format_inr_grouped(amount: int) -> str:
    """Full amount with Indian digit grouping: 1234567 → "₹12,34,567"."""
    return f"₹{_indian_grouping(int(amount))}"


def format_inr(amount: int) -> str:
    """Compact display used for every money field: ₹1.5Cr, ₹10.0L, ₹50,000."""
    amount = int(amount)
    if amount >= CRORE:
        return f"₹{amount / CRORE:.1f}Cr"
    if amount >= LAKH:
        return f"₹{amount / LAKH:.1f}L"
    return format_inr_grouped(amount)
