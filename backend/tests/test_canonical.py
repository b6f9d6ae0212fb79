"""Tests for the canonical policy builder and its record invariants."""

import json
from datetime import datetime, timezone

import pytest

from conftest import NOT_MENTIONED, ev
from coverwise.pipeline.canonical import (
    DailyLimit,
    Percentage,
    SubLimit,
    Unlimited,
    WaitingPeriod,
    build_canonical_policy,
)
from coverwise.pipeline.evidence import EvidenceStatus, RawExtraction

FIXED_NOW = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)


# ═══════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════

def _build(data: dict, **kwargs):
    kwargs.setdefault("policy_id", "pol-001")
    kwargs.setdefault("now", FIXED_NOW)
    return build_canonical_policy(RawExtraction.from_dict(data), "policy.pdf", **kwargs)


def _with_coverage(**fields) -> dict:
    return {"coverage": {"sum_insured": ev("₹10,00,000"), **fields}}


# ═══════════════════════════════════════════════════
# Record invariants
# ═══════════════════════════════════════════════════

class TestSubLimitInvariants:

    def test_capped_needs_amount(self):
        with pytest.raises(ValueError):
            SubLimit(capped=True, limit_amount=None, unlimited=False, display="?")

    def test_unlimited_forbids_amount(self):
        with pytest.raises(ValueError):
            SubLimit(capped=False, limit_amount=5000, unlimited=True, display="?")

    def test_capped_and_unlimited_are_exclusive(self):
        with pytest.raises(ValueError):
            SubLimit(capped=True, limit_amount=5000, unlimited=True, display="?")

    def test_constructors(self):
        capped = SubLimit.capped_at(200_000)
        assert capped.capped and not capped.unlimited
        assert capped.display == "₹2.0L"
        assert SubLimit.no_cap().display == "Not specified"
        assert SubLimit.no_cap(EvidenceStatus.EXPLICIT).display == "Unlimited"


class TestWaitingPeriod:

    @pytest.mark.parametrize("months, days", [(1, 30), (24, 731), (36, 1096), (0, 0)])
    def test_days_derived_from_months(self, months, days):
        assert WaitingPeriod.from_months(months).days == days

    def test_inconsistent_days_rejected(self):
        with pytest.raises(ValueError):
            WaitingPeriod(months=24, days=720)


# ═══════════════════════════════════════════════════
# Full build
# ═══════════════════════════════════════════════════

class TestBuildFullPolicy:

    def test_identity_and_basic_info(self, raw_full):
        policy = _build(raw_full)
        assert policy.policy_id == "pol-001"
        assert policy.upload_date == FIXED_NOW.isoformat()
        assert policy.file_name == "policy.pdf"
        assert policy.basic_info.insurer == "Star Health"
        assert policy.basic_info.plan_name == "Family Health Optima"
        assert policy.basic_info.inception_date == "2024-04-01"

    def test_money(self, raw_full):
        coverage = _build(raw_full).coverage
        assert coverage.base_si.amount == 1_000_000
        assert coverage.base_si.display == "₹10.0L"
        assert coverage.annual_premium.amount == 18_500
        assert coverage.annual_premium.display == "₹18,500/year"
        assert coverage.annual_premium.premium_per_month == 1541.67

    def test_room_rent_daily_limit(self, raw_full):
        room_rent = _build(raw_full).coverage.room_rent
        assert room_rent == DailyLimit(amount=5000, display="₹5,000/day")

    def test_sub_limits(self, raw_full):
        limits = _build(raw_full).sub_limits
        assert limits.cancer.capped and limits.cancer.limit_amount == 200_000
        assert limits.cardiac.unlimited and limits.cardiac.source_status is EvidenceStatus.NOT_MENTIONED
        assert limits.room_rent.limit_amount == 5000
        assert limits.icu_charges.unlimited and limits.icu_charges.display == "Unlimited"
        assert limits.other_major["cataract"].limit_amount == 40_000

    def test_waiting_periods(self, raw_full):
        wp = _build(raw_full).waiting_periods
        assert wp.general_waiting_period.months == 1
        assert wp.pre_existing_disease.months == 24
        assert wp.pre_existing_disease.days == 731
        assert wp.specific_diseases["cataract"].months == 24
        assert wp.specific_diseases["hernia"].covered is True

    def test_coverage_details(self, raw_full):
        details = _build(raw_full).coverage_details
        assert details.pre_hospitalization.days_before_admission == 60
        assert details.post_hospitalization.days_after_discharge == 90
        assert details.post_hospitalization.display == "90 days after discharge"
        assert details.domiciliary_care.limit_type == "percentage_of_si"
        assert details.domiciliary_care.limit_percent == 10.0
        assert details.domiciliary_care.minimum_hospitalization_days == 3
        assert details.daycare_procedures.covered is True

    def test_riders_keep_three_states(self, raw_full):
        riders = _build(raw_full).riders
        assert riders.critical_illness.available and riders.critical_illness.coverage_amount == 500_000
        assert riders.personal_accident.available is False
        assert riders.personal_accident.status is EvidenceStatus.EXCLUDED
        assert riders.maternity.available is False
        assert riders.maternity.status is EvidenceStatus.NOT_MENTIONED

    def test_restoration_network_exclusions(self, raw_full):
        policy = _build(raw_full)
        assert policy.restoration.type == "limited"
        assert policy.restoration.times_per_year == 1
        assert policy.network.hospital_network_count.total == 14_000
        assert policy.network.cashless_available is True
        assert policy.exclusions.major_exclusions == ("Cosmetic surgery", "Self-inflicted injury")
        assert policy.exclusions.pre_existing_exclusion.applies is True
        assert policy.exclusions.pre_existing_exclusion.waiting_period_months == 24

    def test_completeness(self, raw_full):
        meta = _build(raw_full).extraction_metadata
        assert meta.missing_fields == ("riders.maternity",)
        # computed 16/17 = 0.94, extractor reported 0.92 → the lower wins
        assert meta.extraction_confidence == 0.92
        assert meta.reported_confidence == 0.92
        assert meta.manual_verification_needed is False

    def test_to_dict_is_json_ready(self, raw_full):
        data = _build(raw_full).to_dict()
        json.dumps(data)
        assert data["coverage"]["room_rent"] == {
            "type": "daily_limit", "amount": 5000, "percent_of_si": None,
            "unlimited": False, "currency": "INR", "display": "₹5,000/day",
        }
        assert data["sub_limits"]["cancer"]["source_status"] == "explicit"
        assert data["extraction_metadata"]["missing_fields"] == ["riders.maternity"]


class TestBuildSparsePolicy:

    def test_defaults_and_review_flag(self, raw_sparse):
        policy = _build(raw_sparse)
        meta = policy.extraction_metadata
        assert policy.coverage.base_si.amount == 500_000
        assert policy.coverage.annual_premium.display == "Not specified"
        assert policy.waiting_periods.general_waiting_period.months == 1
        assert policy.waiting_periods.pre_existing_disease.months == 36
        assert policy.waiting_periods.pre_existing_disease.days == 1096
        assert policy.restoration.type is None
        assert "coverage.annual_premium" in meta.missing_fields
        assert "waiting_periods.pre_existing_disease" in meta.missing_fields
        assert "coverage.sum_insured" not in meta.missing_fields
        assert meta.extraction_confidence < 0.7
        assert meta.manual_verification_needed is True

    def test_extracted_by_override(self, raw_sparse):
        policy = _build(raw_sparse, extracted_by="unit-test")
        assert policy.extraction_metadata.extracted_by == "unit-test"

    def test_generated_id_when_not_given(self, raw_sparse):
        policy = build_canonical_policy(RawExtraction.from_dict(raw_sparse), "a.pdf")
        assert len(policy.policy_id) == 32


# ═══════════════════════════════════════════════════
# Room rent variants
# ═══════════════════════════════════════════════════

class TestRoomRent:

    def test_percentage(self):
        room_rent = _build(_with_coverage(room_rent=ev("1% of SI per day"))).coverage.room_rent
        assert room_rent == Percentage(percent_of_si=1.0, display="1% of SI/day")
        assert room_rent.to_dict()["amount"] is None

    def test_unlimited(self):
        room_rent = _build(_with_coverage(room_rent=ev("Any room category"))).coverage.room_rent
        assert isinstance(room_rent, Unlimited)
        assert room_rent.to_dict()["unlimited"] is True

    def test_not_mentioned_wording_is_never_unlimited(self):
        field = {"status": "not_mentioned", "value": "Not stated anywhere", "evidence": ""}
        policy = _build(_with_coverage(room_rent=field))
        assert policy.coverage.room_rent == DailyLimit(amount=None, display="Not specified")
        assert "coverage.room_rent" in policy.extraction_metadata.missing_fields

    def test_excluded(self):
        policy = _build(_with_coverage(room_rent=ev("Room rent", status="excluded")))
        assert policy.coverage.room_rent == DailyLimit(amount=None, display="Not covered")
        assert "coverage.room_rent" not in policy.extraction_metadata.missing_fields

    def test_category_without_amount_is_missing(self):
        policy = _build(_with_coverage(room_rent=ev("Single private AC room")))
        assert policy.coverage.room_rent == DailyLimit(amount=None, display="Single private AC room")
        assert "coverage.room_rent" in policy.extraction_metadata.missing_fields


# ═══════════════════════════════════════════════════
# Edge cases
# ═══════════════════════════════════════════════════

class TestEdgeCases:

    def test_unreadable_sum_insured_defaults_to_zero_and_is_missing(self):
        policy = _build({"coverage": {"sum_insured": ev("As per schedule")}})
        assert policy.coverage.base_si.amount == 0
        assert "coverage.sum_insured" in policy.extraction_metadata.missing_fields

    def test_disease_limits_map_to_categories(self):
        policy = _build({"sub_limits": {"disease_specific_limits": [
            {"condition": "Heart surgery", "limit": "₹3 Lakh"},
            {"condition": "Kidney transplant", "limit": "₹4 Lakh"},
            {"condition": "Dialysis", "limit": "₹50,000"},
            {"condition": "Knee replacement", "limit": "₹1.5 Lakh"},
            {"condition": "Bariatric surgery", "limit": "No limit"},
        ]}})
        limits = policy.sub_limits
        assert limits.cardiac.limit_amount == 300_000
        assert limits.organ_transplant.limit_amount == 400_000
        assert limits.dialysis.limit_amount == 50_000
        assert limits.orthopedic_implants.limit_amount == 150_000
        assert limits.other_major["bariatric_surgery"].unlimited is True

    def test_lower_cap_wins_for_repeated_category(self):
        policy = _build({"sub_limits": {"disease_specific_limits": [
            {"condition": "Cancer", "limit": "₹3 Lakh"},
            {"condition": "Chemotherapy", "limit": "₹1 Lakh"},
        ]}})
        assert policy.sub_limits.cancer.limit_amount == 100_000

    def test_icu_falls_back_to_coverage_wording(self):
        policy = _build(_with_coverage(icu_charges=ev("ICU up to ₹5,000 per day")))
        assert policy.sub_limits.icu_charges.limit_amount == 5000

    def test_excluded_general_waiting_period_is_zero(self):
        policy = _build({"waiting_periods": {"general": ev("No initial waiting period", status="excluded")}})
        assert policy.waiting_periods.general_waiting_period.months == 0
        assert "waiting_periods.general" not in policy.extraction_metadata.missing_fields

    def test_post_hospitalization_in_months(self):
        policy = _build(_with_coverage(post_hospitalization=ev("2 months after discharge")))
        assert policy.coverage_details.post_hospitalization.days_after_discharge == 61

    def test_domiciliary_without_amount_uses_standard_percent(self):
        details = _build(_with_coverage(domiciliary_hospitalization=ev("Covered"))).coverage_details
        assert details.domiciliary_care.limit_percent == 10
        assert details.domiciliary_care.display == "10% of SI (standard)"

    def test_domiciliary_fixed_amount(self):
        details = _build(_with_coverage(domiciliary_hospitalization=ev("Up to ₹50,000"))).coverage_details
        assert details.domiciliary_care.limit_type == "fixed_amount"
        assert details.domiciliary_care.limit_amount == 50_000

    def test_unlimited_restoration(self):
        policy = _build({"coverage": {"sum_insured": ev("10 L")}, "restoration": ev("Unlimited restoration")})
        assert policy.restoration.type == "unlimited"
        assert policy.restoration.times_per_year is None

    def test_excluded_specific_ailment(self):
        policy = _build({"waiting_periods": {"specific_ailments": [
            {"condition": "Maternity", "status": "excluded", "value": "Not covered"},
            {"condition": "Cataract", **NOT_MENTIONED},
        ]}})
        specific = policy.waiting_periods.specific_diseases
        assert specific["maternity"].covered is False
        assert "cataract" not in specific

    def test_excluded_ped_waiting_period_is_zero(self):
        policy = _build({"waiting_periods": {
            "pre_existing_disease": ev("No PED waiting period", status="excluded"),
        }})
        ped = policy.waiting_periods.pre_existing_disease
        assert ped.months == 0
        assert ped.days == 0
        assert ped.note == "No pre-existing disease waiting period"
        assert "waiting_periods.pre_existing_disease" not in policy.extraction_metadata.missing_fields
        assert policy.exclusions.pre_existing_exclusion.waiting_period_months == 0


# ═══════════════════════════════════════════════════
# Unreadable list items and disease categories
# ═══════════════════════════════════════════════════

class TestUnreadableListItems:

    def test_stated_but_unreadable_disease_limit(self):
        policy = _build({"sub_limits": {"disease_specific_limits": [
            {"condition": "Cancer", "limit": "Sub-limit as per policy schedule"},
        ]}})
        cancer = policy.sub_limits.cancer
        assert cancer.capped is False
        assert cancer.display == "Not specified"
        assert cancer.source_status is EvidenceStatus.EXPLICIT
        assert "sub_limits.disease_specific_limits.cancer" in policy.extraction_metadata.missing_fields

    def test_unlimited_disease_limit_is_not_missing(self):
        policy = _build({"sub_limits": {"disease_specific_limits": [
            {"condition": "Bariatric surgery", "limit": "No limit"},
        ]}})
        assert policy.sub_limits.other_major["bariatric_surgery"].display == "Unlimited"
        assert not any(
            path.startswith("sub_limits.disease_specific_limits")
            for path in policy.extraction_metadata.missing_fields
        )

    def test_unreadable_ailment_period(self):
        policy = _build({"waiting_periods": {"specific_ailments": [
            {"condition": "Cataract", **ev("As per annexure")},
        ]}})
        cataract = policy.waiting_periods.specific_diseases["cataract"]
        assert cataract.months == 0
        assert cataract.covered is None
        assert cataract.note == "As per annexure"
        assert "waiting_periods.specific_ailments.cataract" in policy.extraction_metadata.missing_fields

    def test_list_items_stay_out_of_the_score(self, raw_full):
        baseline = _build(raw_full).extraction_metadata.extraction_confidence
        raw_full["sub_limits"]["disease_specific_limits"].append(
            {"condition": "Hernia", "limit": "As per schedule"},
        )
        policy = _build(raw_full)
        assert policy.extraction_metadata.extraction_confidence == baseline
        assert "sub_limits.disease_specific_limits.hernia" in policy.extraction_metadata.missing_fields

    def test_unreadable_room_rent_sub_limit_is_not_unlimited(self):
        policy = _build({"sub_limits": {"room_rent_limit": ev("As per plan")}})
        assert policy.sub_limits.room_rent.display == "Not specified"
        assert "sub_limits.room_rent_limit" in policy.extraction_metadata.missing_fields


class TestDiseaseCategories:

    def test_kidney_stones_are_not_dialysis(self):
        policy = _build({"sub_limits": {"disease_specific_limits": [
            {"condition": "Kidney stones (renal calculi)", "limit": "₹40,000"},
        ]}})
        limits = policy.sub_limits
        assert limits.dialysis.capped is False
        assert limits.other_major["kidney_stones_renal_calculi"].limit_amount == 40_000

    @pytest.mark.parametrize("condition, category", [
        ("Haemodialysis", "dialysis"),
        ("Chronic kidney disease (CKD)", "dialysis"),
        ("Renal failure", "dialysis"),
        ("Hip replacement", "orthopedic_implants"),
        ("Knee implants", "orthopedic_implants"),
        ("Tumours", "cancer"),
    ])
    def test_named_categories(self, condition, category):
        policy = _build({"sub_limits": {"disease_specific_limits": [
            {"condition": condition, "limit": "₹75,000"},
        ]}})
        assert getattr(policy.sub_limits, category).limit_amount == 75_000
        assert policy.sub_limits.other_major == {}

    @pytest.mark.parametrize("condition, key", [
        ("Cochlear implant", "cochlear_implant"),
        ("Dental implants", "dental_implants"),
        ("Chipped tooth", "chipped_tooth"),
    ])
    def test_near_misses_go_to_other_major(self, condition, key):
        policy = _build({"sub_limits": {"disease_specific_limits": [
            {"condition": condition, "limit": "₹20,000"},
        ]}})
        assert policy.sub_limits.orthopedic_implants.capped is False
        assert policy.sub_limits.other_major[key].limit_amount == 20_000
