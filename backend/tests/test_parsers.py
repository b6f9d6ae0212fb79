"""Tests for the scalar parsers: amounts, durations, availability, display."""

import pytest

from coverwise.pipeline.evidence import EvidenceField, EvidenceStatus
from coverwise.pipeline.parsers import (
    extract_days,
    extract_months,
    extract_number,
    extract_percent,
    format_inr,
    format_inr_grouped,
    is_covered,
    is_unlimited,
    round_half_up,
)


# ═══════════════════════════════════════════════════
# extract_number
# ═══════════════════════════════════════════════════

class TestExtractNumber:

    @pytest.mark.parametrize("text, expected", [
        ("₹10,00,000", 1_000_000),
        ("₹5,00,000", 500_000),
        ("10L", 1_000_000),
        ("10 Lakh", 1_000_000),
        ("2.5 lakhs", 250_000),
        ("3 lacs", 300_000),
        ("1.5 Cr", 15_000_000),
        ("1 crore", 10_000_000),
        ("Rs. 50,000", 50_000),
        ("INR 75000", 75_000),
        ("₹18,500 per annum", 18_500),
    ])
    def test_contract_examples(self, text, expected):
        assert extract_number(text) == expected

    def test_crore_beats_lakh(self):
        assert extract_number("1 Cr (i.e. 100 lakh)") == 10_000_000

    def test_lakh_beats_plain_number(self):
        assert extract_number("Room 1, SI 5 lakh") == 500_000

    def test_suffix_needs_word_boundary(self):
        # "cashless" must not read as a crore suffix
        assert extract_number("10000 cashless hospitals") == 10_000
        assert extract_number("14,000+ network hospitals") == 14_000

    @pytest.mark.parametrize("value", ["", "   ", "Not mentioned", None, True, [], {}])
    def test_unreadable_is_zero(self, value):
        assert extract_number(value) == 0

    def test_numbers_pass_through_rounded(self):
        assert extract_number(500000) == 500000
        assert extract_number(2.5) == 3
        assert extract_number(float("nan")) == 0

    @pytest.mark.parametrize("text", ["₹10,00,000", "1.5 Cr", "10L", "₹5,00,000", ""])
    def test_idempotent_on_own_output(self, text):
        once = extract_number(text)
        assert extract_number(str(once)) == once


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(1096.0) == 1096
    assert round_half_up(-2.5) == -3


# ═══════════════════════════════════════════════════
# Durations
# ═══════════════════════════════════════════════════

class TestExtractMonths:

    def test_months(self):
        assert extract_months("24 months") == 24

    def test_years(self):
        assert extract_months("2 years") == 24
        assert extract_months("3 yrs") == 36

    def test_years_win_over_months(self):
        assert extract_months("2 years (24 months)") == 24
        assert extract_months("1 year or 6 months") == 12

    def test_days_fall_back(self):
        assert extract_months("30 days") == 1
        assert extract_months("90 days") == 3

    @pytest.mark.parametrize("value", ["", "none", None, 24])
    def test_unreadable_is_zero(self, value):
        assert extract_months(value) == 0


def test_extract_days():
    assert extract_days("60 days before admission") == 60
    assert extract_days("1 day") == 1
    assert extract_days("2 months") == 0
    assert extract_days(None) == 0


def test_extract_percent():
    assert extract_percent("1% of SI per day") == 1.0
    assert extract_percent("up to 2.5 percent of sum insured") == 2.5
    assert extract_percent("₹5,000 per day") is None
    assert extract_percent(None) is None


# ═══════════════════════════════════════════════════
# Availability
# ═══════════════════════════════════════════════════

class TestIsUnlimited:

    @pytest.mark.parametrize("text", ["Unlimited", "Any room", "No limit on ICU", "Not restricted"])
    def test_keywords(self, text):
        assert is_unlimited(text) is True

    def test_permissive_substring(self):
        assert is_unlimited("many conditions apply") is True

    @pytest.mark.parametrize("text", ["₹5,000 per day", "", None])
    def test_non_matching(self, text):
        assert is_unlimited(text) is False


class TestIsCovered:

    def test_explicit_is_covered(self):
        assert is_covered(EvidenceField(EvidenceStatus.EXPLICIT, "60 days")) is True

    def test_explicit_negation_is_not_covered(self):
        assert is_covered(EvidenceField(EvidenceStatus.EXPLICIT, "Not covered")) is False
        assert is_covered(EvidenceField(EvidenceStatus.EXPLICIT, "Maternity excluded")) is False

    def test_excluded_and_not_mentioned_are_false(self):
        assert is_covered(EvidenceField(EvidenceStatus.EXCLUDED, "Maternity")) is False
        assert is_covered(EvidenceField()) is False


# ═══════════════════════════════════════════════════
# Display
# ═══════════════════════════════════════════════════

class TestFormatInr:

    def test_crore(self):
        assert format_inr(15_000_000) == "₹1.5Cr"
        assert format_inr(10_000_000) == "₹1.0Cr"

    def test_lakh(self):
        assert format_inr(1_000_000) == "₹10.0L"
        assert format_inr(250_000) == "₹2.5L"

    def test_below_lakh_uses_indian_grouping(self):
        assert format_inr(50_000) == "₹50,000"
        assert format_inr(999) == "₹999"
        assert format_inr(0) == "₹0"

    def test_grouped(self):
        assert format_inr_grouped(1_234_567) == "₹12,34,567"
        assert format_inr_grouped(10_000_000) == "₹1,00,00,000"
        assert format_inr_grouped(18_500) == "₹18,500"
