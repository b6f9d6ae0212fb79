"""Shared fixtures for the CoverWise test suite."""

import pytest

from coverwise.config import METRO_CITIES, TIER2_CITIES, VERDICT_THRESHOLDS
from coverwise.pipeline.verdict import CityTierTable


def ev(value: str, status: str = "explicit", evidence: str = "") -> dict:
    """Evidence field dict shaped like extractor output."""
    return {"status": status, "value": value, "evidence": evidence or value}


NOT_MENTIONED = {"status": "not_mentioned", "value": "", "evidence": ""}


# ═══════════════════════════════════════════════════
# Raw extraction fixtures (dicts shaped like real LLM output)
# ═══════════════════════════════════════════════════

@pytest.fixture
def raw_full():
    """A well-documented family floater with every section stated."""
    return {
        "policy_metadata": {
            "insurer": "Star Health",
            "policy_name": "Family Health Optima",
            "document_source": "Policy schedule + wordings",
            "policy_date": "2024-04-01",
            "extraction_confidence": 0.92,
        },
        "coverage": {
            "sum_insured": ev("₹10,00,000"),
            "annual_premium": ev("₹18,500"),
            "room_rent": ev("Single private AC room up to ₹5,000 per day"),
            "icu_charges": ev("Covered up to actuals"),
            "pre_hospitalization": ev("60 days"),
            "post_hospitalization": ev("90 days"),
            "domiciliary_hospitalization": ev("Covered up to 10% of sum insured"),
            "daycare_procedures": ev("All day care procedures covered"),
        },
        "waiting_periods": {
            "general": ev("30 days"),
            "pre_existing_disease": ev("2 years"),
            "specific_ailments": [
                {"condition": "Cataract", **ev("24 months")},
                {"condition": "Hernia", **ev("2 years")},
            ],
        },
        "sub_limits": {
            "room_rent_limit": ev("₹5,000 per day"),
            "icu_limit": ev("No limit"),
            "disease_specific_limits": [
                {"condition": "Cancer treatment", "limit": "₹2 Lakh", "evidence": "Cancer capped at 2 L"},
                {"condition": "Cataract", "limit": "₹40,000 per eye", "evidence": "Cataract ₹40,000/eye"},
            ],
        },
        "restoration": ev("100% restoration once per policy year"),
        "riders": {
            "critical_illness": ev("₹5 Lakh"),
            "personal_accident": ev("Not covered", status="excluded"),
            "maternity": NOT_MENTIONED,
        },
        "network": {"cashless_hospitals": ev("14,000+ network hospitals")},
        "exclusions": {
            "explicit_exclusions": ["Cosmetic surgery", "Self-inflicted injury"],
            "evidence": "Section 4 exclusions",
        },
        "notes": "Schedule and wordings read together",
    }


@pytest.fixture
def raw_sparse():
    """A thin schedule that only states SI and insurer."""
    return {
        "policy_metadata": {"insurer": "Acko", "policy_name": "", "extraction_confidence": 0.95},
        "coverage": {"sum_insured": ev("5 Lakh")},
    }


@pytest.fixture
def city_table():
    return CityTierTable.from_config(METRO_CITIES, TIER2_CITIES, VERDICT_THRESHOLDS)


def analysis_doc(sum_insured=1_200_000, city="Mumbai", serious=None, verdict="Sufficient"):
    """Sufficiency-analysis dict shaped like analyst output."""
    return {
        "policyholderInfo": {"name": "Policyholder", "age": 40, "city": city},
        "page1": {"verdict": verdict, "oneLineSummary": "..."},
        "details": {"gaps": {"serious": list(serious or []), "nonSerious": []}},
        "metadata": {"extractedFields": {"sum_insured": sum_insured}},
    }
