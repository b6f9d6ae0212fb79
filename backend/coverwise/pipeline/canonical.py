"""Canonical policy builder: evidence-based extraction to the typed policy record.

The builder never calls an LLM.  It takes the RawExtraction produced by the
evidence-based prompt and enforces the invariants the parsers alone cannot:

  - room rent is exactly one of DailyLimit / Percentage / Unlimited
  - a sub-limit is either capped (with an amount) or unlimited (without one)
  - waiting periods carry months and days, days = round(months × 30.44)
  - every money field has an integer and a display string from format_inr
  - manual_verification_needed follows the completeness report

Scalars that cannot be read default to 0 / False and are listed in
``extraction_metadata.missing_fields``.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Union

from coverwise.config import (
    DAYS_PER_MONTH,
    DEFAULT_GENERAL_WAITING_MONTHS,
    DEFAULT_PED_WAITING_MONTHS,
    DOMICILIARY_MIN_HOSPITALIZATION_DAYS,
    DOMICILIARY_STANDARD_PERCENT,
    EXTRACTED_BY,
    TRACE_ENABLED,
)
from coverwise.pipeline.confidence import ResolutionLog, assess_completeness
from coverwise.pipeline.evidence import (
    EvidenceField,
    EvidenceStatus,
    RawExtraction,
)
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

logger = logging.getLogger(__name__)


def _trace(msg: str):
    """Emit a trace-level debug message when COVERWISE_TRACE is enabled."""
    if TRACE_ENABLED:
        logger.debug(f"[TRACE] {msg}")


def _plain(value: Any) -> Any:
    """Convert the record tree to JSON-ready builtins."""
    if hasattr(value, "to_dict") and not isinstance(value, type):
        return value.to_dict()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


# ═══════════════════════════════════════════════════
# 1. RECORD TYPES
# ═══════════════════════════════════════════════════

@dataclass(frozen=True)
class MoneyAmount:
    amount: int
    display: str
    currency: str = "INR"

    @classmethod
    def of(cls, amount: int) -> "MoneyAmount":
        return cls(amount=amount, display=format_inr(amount))


@dataclass(frozen=True)
class PremiumAmount:
    amount: int
    display: str
    premium_per_month: float
    currency: str = "INR"


# ── Room rent: exactly one variant ──

@dataclass(frozen=True)
class DailyLimit:
    amount: int | None
    display: str

    kind: ClassVar[str] = "daily_limit"

    def to_dict(self) -> dict:
        return {
            "type": self.kind, "amount": self.amount, "percent_of_si": None,
            "unlimited": False, "currency": "INR", "display": self.display,
        }


@dataclass(frozen=True)
class Percentage:
    percent_of_si: float
    display: str

    kind: ClassVar[str] = "percentage"

    def to_dict(self) -> dict:
        return {
            "type": self.kind, "amount": None, "percent_of_si": self.percent_of_si,
            "unlimited": False, "currency": "INR", "display": self.display,
        }


@dataclass(frozen=True)
class Unlimited:
    display: str = "Any Room / Unlimited"

    kind: ClassVar[str] = "unlimited"

    def to_dict(self) -> dict:
        return {
            "type": self.kind, "amount": None, "percent_of_si": None,
            "unlimited": True, "currency": "INR", "display": self.display,
        }


RoomRent = Union[DailyLimit, Percentage, Unlimited]


@dataclass(frozen=True)
class Coverage:
    base_si: MoneyAmount
    annual_premium: PremiumAmount
    room_rent: RoomRent


@dataclass(frozen=True)
class SubLimit:
    capped: bool
    limit_amount: int | None
    unlimited: bool
    display: str
    source_status: EvidenceStatus = EvidenceStatus.NOT_MENTIONED

    def __post_init__(self):
        if self.capped == self.unlimited:
            raise ValueError("SubLimit must be either capped or unlimited")
        if (self.limit_amount is not None) != self.capped:
            raise ValueError("SubLimit.limit_amount is set iff the limit is capped")

    @classmethod
    def capped_at(cls, amount: int, status: EvidenceStatus = EvidenceStatus.EXPLICIT) -> "SubLimit":
        return cls(capped=True, limit_amount=amount, unlimited=False,
                   display=format_inr(amount), source_status=status)

    @classmethod
    def no_cap(cls, status: EvidenceStatus = EvidenceStatus.NOT_MENTIONED, display: str | None = None) -> "SubLimit":
        if display is None:
            display = "Not specified" if status is EvidenceStatus.NOT_MENTIONED else "Unlimited"
        return cls(capped=False, limit_amount=None, unlimited=True,
                   display=display, source_status=status)


@dataclass(frozen=True)
class SubLimits:
    cancer: SubLimit = field(default_factory=SubLimit.no_cap)
    cardiac: SubLimit = field(default_factory=SubLimit.no_cap)
    organ_transplant: SubLimit = field(default_factory=SubLimit.no_cap)
    dialysis: SubLimit = field(default_factory=SubLimit.no_cap)
    orthopedic_implants: SubLimit = field(default_factory=SubLimit.no_cap)
    icu_charges: SubLimit = field(default_factory=SubLimit.no_cap)
    room_rent: SubLimit = field(default_factory=SubLimit.no_cap)
    other_major: dict[str, SubLimit] = field(default_factory=dict)


@dataclass(frozen=True)
class WaitingPeriod:
    months: int
    days: int
    note: str = ""
    covered: bool | None = None

    def __post_init__(self):
        if self.days != round_half_up(self.months * DAYS_PER_MONTH):
            raise ValueError("WaitingPeriod.days must equal round(months × 30.44)")

    @classmethod
    def from_months(cls, months: int, note: str = "", covered: bool | None = None) -> "WaitingPeriod":
        return cls(months=months, days=round_half_up(months * DAYS_PER_MONTH),
                   note=note, covered=covered)


@dataclass(frozen=True)
class PreExistingWaitingPeriod(WaitingPeriod):
    can_be_waived: bool = False


@dataclass(frozen=True)
class WaitingPeriods:
    general_waiting_period: WaitingPeriod
    pre_existing_disease: PreExistingWaitingPeriod
    specific_diseases: dict[str, WaitingPeriod] = field(default_factory=dict)


@dataclass(frozen=True)
class HospitalizationCover:
    covered: bool
    status: EvidenceStatus
    note: str = "In-patient hospitalization coverage"


@dataclass(frozen=True)
class PreHospitalization:
    covered: bool
    status: EvidenceStatus
    days_before_admission: int
    display: str


@dataclass(frozen=True)
class PostHospitalization:
    covered: bool
    status: EvidenceStatus
    days_after_discharge: int
    display: str


@dataclass(frozen=True)
class DomiciliaryCare:
    covered: bool
    status: EvidenceStatus
    limit_type: str           # "fixed_amount" | "percentage_of_si"
    limit_amount: int
    limit_percent: float
    display: str
    minimum_hospitalization_days: int = DOMICILIARY_MIN_HOSPITALIZATION_DAYS
    note: str = "When hospitalization is not possible and treatment is taken at home"


@dataclass(frozen=True)
class DaycareCover:
    covered: bool
    status: EvidenceStatus
    note: str


@dataclass(frozen=True)
class CoverageDetails:
    hospitalization: HospitalizationCover
    pre_hospitalization: PreHospitalization
    post_hospitalization: PostHospitalization
    domiciliary_care: DomiciliaryCare
    daycare_procedures: DaycareCover


@dataclass(frozen=True)
class Rider:
    available: bool
    status: EvidenceStatus
    coverage_amount: int
    coverage_display: str
    waiting_period_months: int | None = None


@dataclass(frozen=True)
class Riders:
    critical_illness: Rider
    personal_accident: Rider
    maternity: Rider


@dataclass(frozen=True)
class PreExistingExclusion:
    applies: bool
    waiting_period_months: int
    note: str


@dataclass(frozen=True)
class Exclusions:
    major_exclusions: tuple[str, ...]
    pre_existing_exclusion: PreExistingExclusion


@dataclass(frozen=True)
class Restoration:
    type: str | None          # "unlimited" | "limited" | None
    times_per_year: int | None
    note: str
    example: str


@dataclass(frozen=True)
class NetworkCount:
    total: int
    note: str


@dataclass(frozen=True)
class Network:
    hospital_network_count: NetworkCount
    cashless_available: bool


@dataclass(frozen=True)
class BasicInfo:
    insurer: str
    plan_name: str
    inception_date: str | None
    source: str


@dataclass(frozen=True)
class ExtractionMetadata:
    extracted_by: str
    extraction_confidence: float
    reported_confidence: float | None
    extraction_timestamp: str
    missing_fields: tuple[str, ...]
    manual_verification_needed: bool
    extraction_notes: str


@dataclass(frozen=True)
class CanonicalPolicy:
    policy_id: str
    upload_date: str
    file_name: str
    extraction_metadata: ExtractionMetadata
    basic_info: BasicInfo
    coverage: Coverage
    sub_limits: SubLimits
    waiting_periods: WaitingPeriods
    coverage_details: CoverageDetails
    riders: Riders
    exclusions: Exclusions
    restoration: Restoration
    network: Network

    def to_dict(self) -> dict:
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}


# ═══════════════════════════════════════════════════
# 2. SECTION BUILDERS
# ═══════════════════════════════════════════════════

def _amount(log: ResolutionLog, path: str, source: EvidenceField) -> int:
    amount = extract_number(source.value) if source.is_explicit else 0
    log.record(path, source, amount > 0)
    return amount


def _not_covered_display(source: EvidenceField) -> str:
    return "Not specified" if not source.is_mentioned else "Not covered"


def build_room_rent(source: EvidenceField, log: ResolutionLog) -> RoomRent:
    """Pick the single room-rent variant the evidence supports.

    Only explicit evidence is read, so a not_mentioned value such as
    "not stated anywhere" must not trip the permissive unlimited test.
    """
    path = "coverage.room_rent"
    value = source.value if source.is_explicit else ""

    if value and is_unlimited(value):
        log.record(path, source, True)
        return Unlimited()

    percent = extract_percent(value)
    if percent:
        log.record(path, source, True)
        return Percentage(percent_of_si=percent, display=f"{percent:g}% of SI/day")

    amount = extract_number(value) if is_covered(source) else 0
    log.record(path, source, amount > 0)
    if amount > 0:
        return DailyLimit(amount=amount, display=f"{format_inr_grouped(amount)}/day")

    if is_covered(source):
        # Room category without an amount, e.g. "Single private AC room"
        display = value
    else:
        display = _not_covered_display(source)
    return DailyLimit(amount=None, display=display)


def _cap_from(source: EvidenceField) -> SubLimit | None:
    """A capped SubLimit when the evidence states a finite amount, else None."""
    if not source.is_explicit or is_unlimited(source.value):
        return None
    amount = extract_number(source.value)
    if amount <= 0:
        return None
    return SubLimit.capped_at(amount, source.status)


def _sub_limit(path: str, source: EvidenceField, log: ResolutionLog) -> SubLimit:
    cap = _cap_from(source)
    readable = log.record(path, source, cap is not None or is_unlimited(source.value))
    if cap:
        return cap
    if source.is_explicit and not readable:
        return SubLimit.no_cap(source.status, display="Not specified")
    return SubLimit.no_cap(source.status)


# Order matters: "kidney transplant" is a transplant, not dialysis.
# Kidney stones, cochlear or dental implants fall through to other_major.
_DISEASE_CATEGORIES = (
    ("cancer", re.compile(r"\b(?:cancer|oncolog\w*|chemo\w*|tumou?rs?)\b")),
    ("cardiac", re.compile(r"\b(?:cardiac|heart|angioplasty|bypass)\b")),
    ("organ_transplant", re.compile(r"\b(?:transplant\w*|organ donors?)\b")),
    ("dialysis", re.compile(r"\b(?:ha?emo)?dialysis\b|\brenal failure\b|\bckd\b|\bchronic kidney disease\b")),
    ("orthopedic_implants", re.compile(
        r"\b(?:orthop\w*|joint replacement|arthroplasty|knee|hip)\b"
        r"|\b(?:joint|knee|hip|spinal|orthopa?edic) implants?\b"
    )),
)


def _disease_category(condition: str) -> str | None:
    lower = condition.lower()
    for key, pattern in _DISEASE_CATEGORIES:
        if pattern.search(lower):
            return key
    return None


def _tighter(current: SubLimit | None, new: SubLimit) -> SubLimit:
    """Keep the lower cap when a category is limited twice."""
    if current is None or not current.capped:
        return new
    if new.capped and new.limit_amount < current.limit_amount:
        return new
    return current


def build_sub_limits(raw: RawExtraction, log: ResolutionLog) -> SubLimits:
    named: dict[str, SubLimit] = {}
    other: dict[str, SubLimit] = {}

    for item in raw.sub_limits.disease_specific_limits:
        category = _disease_category(item.condition)
        key = category or _slug(item.condition)
        if is_unlimited(item.limit):
            limit = SubLimit.no_cap(EvidenceStatus.EXPLICIT)
        else:
            amount = extract_number(item.limit)
            if amount > 0:
                limit = SubLimit.capped_at(amount)
            else:
                # Stated but unreadable, never shown as unlimited
                limit = SubLimit.no_cap(EvidenceStatus.EXPLICIT, display="Not specified")
                log.note_missing(f"sub_limits.disease_specific_limits.{_slug(item.condition)}")
        _trace(f"SUB_LIMIT condition={item.condition!r} limit={item.limit!r} -> {key} {limit.display}")
        if category:
            named[category] = _tighter(named.get(category), limit)
        else:
            other[key] = _tighter(other.get(key), limit)

    room_rent_cap = _sub_limit("sub_limits.room_rent_limit", raw.sub_limits.room_rent_limit, log)

    icu_source = raw.sub_limits.icu_limit
    icu_cap = _sub_limit("sub_limits.icu_limit", icu_source, log)
    if not icu_source.is_mentioned:
        # Fall back to the coverage wording, e.g. "ICU up to ₹5,000 per day"
        icu_cap = _cap_from(raw.coverage.icu_charges) or SubLimit.no_cap(raw.coverage.icu_charges.status)

    return SubLimits(
        **named,
        icu_charges=icu_cap,
        room_rent=room_rent_cap,
        other_major=other,
    )


def build_waiting_periods(raw: RawExtraction, log: ResolutionLog) -> WaitingPeriods:
    wp = raw.waiting_periods

    general_months = extract_months(wp.general.value) if wp.general.is_explicit else 0
    log.record("waiting_periods.general", wp.general, general_months > 0)
    if wp.general.status is EvidenceStatus.EXCLUDED:
        general = WaitingPeriod.from_months(0, note="No initial waiting period")
    elif general_months > 0:
        general = WaitingPeriod.from_months(general_months, note="Standard waiting period for initial enrollment")
    else:
        general = WaitingPeriod.from_months(
            DEFAULT_GENERAL_WAITING_MONTHS,
            note="Not stated in the document; standard initial waiting period assumed",
        )

    ped_source = wp.pre_existing_disease
    ped_months = extract_months(ped_source.value) if ped_source.is_explicit else 0
    log.record("waiting_periods.pre_existing_disease", ped_source, ped_months > 0)
    if ped_source.status is EvidenceStatus.EXCLUDED:
        ped_months = 0
        ped_note = "No pre-existing disease waiting period"
    elif ped_months <= 0:
        ped_months = DEFAULT_PED_WAITING_MONTHS
        ped_note = "Not stated in the document; 36-month pre-existing disease waiting period assumed"
    else:
        ped_note = "Pre-existing conditions have separate waiting period"
    pre_existing = PreExistingWaitingPeriod(
        months=ped_months,
        days=round_half_up(ped_months * DAYS_PER_MONTH),
        note=ped_note,
        can_be_waived=False,
    )

    specific: dict[str, WaitingPeriod] = {}
    for ailment in wp.specific_ailments:
        key = _slug(ailment.condition)
        if is_covered(ailment.field):
            months = extract_months(ailment.field.value)
            if months <= 0:
                log.note_missing(f"waiting_periods.specific_ailments.{key}")
                _trace(f"WAITING ailment={ailment.condition!r} unreadable period {ailment.field.value!r}")
            specific[key] = WaitingPeriod.from_months(
                months, note=ailment.field.value, covered=True if months > 0 else None,
            )
        elif ailment.field.is_mentioned:
            specific[key] = WaitingPeriod.from_months(
                0, note=ailment.field.value or "Not covered", covered=False,
            )

    return WaitingPeriods(
        general_waiting_period=general,
        pre_existing_disease=pre_existing,
        specific_diseases=specific,
    )


def _hospitalization_days(source: EvidenceField) -> int:
    if not source.is_explicit:
        return 0
    days = extract_days(source.value)
    if days:
        return days
    return round_half_up(extract_months(source.value) * DAYS_PER_MONTH)


def _days_display(source: EvidenceField, days: int, suffix: str) -> str:
    if days > 0:
        return f"{days} days {suffix}"
    if is_covered(source):
        return "Covered (duration not stated)"
    return _not_covered_display(source)


def build_coverage_details(raw: RawExtraction, log: ResolutionLog) -> CoverageDetails:
    cov = raw.coverage

    pre_days = _hospitalization_days(cov.pre_hospitalization)
    post_days = _hospitalization_days(cov.post_hospitalization)
    log.record("coverage.pre_hospitalization", cov.pre_hospitalization, pre_days > 0)
    log.record("coverage.post_hospitalization", cov.post_hospitalization, post_days > 0)

    dom = cov.domiciliary_hospitalization
    dom_covered = is_covered(dom)
    dom_percent = extract_percent(dom.value) if dom_covered else None
    dom_amount = extract_number(dom.value) if dom_covered and dom_percent is None else 0
    log.record("coverage.domiciliary_hospitalization", dom, bool(dom.value))
    if dom_percent is not None:
        domiciliary = DomiciliaryCare(
            covered=True, status=dom.status, limit_type="percentage_of_si",
            limit_amount=0, limit_percent=dom_percent, display=f"{dom_percent:g}% of SI",
        )
    elif dom_amount > 0:
        domiciliary = DomiciliaryCare(
            covered=True, status=dom.status, limit_type="fixed_amount",
            limit_amount=dom_amount, limit_percent=0, display=format_inr(dom_amount),
        )
    elif dom_covered:
        domiciliary = DomiciliaryCare(
            covered=True, status=dom.status, limit_type="percentage_of_si",
            limit_amount=0, limit_percent=DOMICILIARY_STANDARD_PERCENT,
            display=f"{DOMICILIARY_STANDARD_PERCENT}% of SI (standard)",
        )
    else:
        domiciliary = DomiciliaryCare(
            covered=False, status=dom.status, limit_type="percentage_of_si",
            limit_amount=0, limit_percent=0, display=_not_covered_display(dom),
        )

    daycare = cov.daycare_procedures
    daycare_covered = is_covered(daycare)
    log.record("coverage.daycare_procedures", daycare, bool(daycare.value))

    icu = cov.icu_charges
    log.record("coverage.icu_charges", icu, bool(icu.value))

    return CoverageDetails(
        hospitalization=HospitalizationCover(
            covered=is_covered(cov.sum_insured), status=cov.sum_insured.status,
        ),
        pre_hospitalization=PreHospitalization(
            covered=is_covered(cov.pre_hospitalization),
            status=cov.pre_hospitalization.status,
            days_before_admission=pre_days,
            display=_days_display(cov.pre_hospitalization, pre_days, "before admission"),
        ),
        post_hospitalization=PostHospitalization(
            covered=is_covered(cov.post_hospitalization),
            status=cov.post_hospitalization.status,
            days_after_discharge=post_days,
            display=_days_display(cov.post_hospitalization, post_days, "after discharge"),
        ),
        domiciliary_care=domiciliary,
        daycare_procedures=DaycareCover(
            covered=daycare_covered,
            status=daycare.status,
            note=daycare.value if daycare_covered else _not_covered_display(daycare),
        ),
    )


def _rider(path: str, source: EvidenceField, log: ResolutionLog, with_waiting: bool = False) -> Rider:
    available = is_covered(source)
    amount = extract_number(source.value) if available else 0
    log.record(path, source, bool(source.value))
    if amount > 0:
        display = format_inr(amount)
    elif available:
        display = "Available (amount not stated)"
    else:
        display = "Not available"
    return Rider(
        available=available,
        status=source.status,
        coverage_amount=amount,
        coverage_display=display,
        waiting_period_months=(extract_months(source.value) if available else 0) if with_waiting else None,
    )


def build_riders(raw: RawExtraction, log: ResolutionLog) -> Riders:
    r = raw.riders
    return Riders(
        critical_illness=_rider("riders.critical_illness", r.critical_illness, log),
        personal_accident=_rider("riders.personal_accident", r.personal_accident, log),
        maternity=_rider("riders.maternity", r.maternity, log, with_waiting=True),
    )


def build_restoration(source: EvidenceField, log: ResolutionLog) -> Restoration:
    log.record("restoration", source, bool(source.value))
    if not is_covered(source):
        return Restoration(
            type=None, times_per_year=0,
            note="Not specified" if not source.is_mentioned else "Not available",
            example="No restoration benefit",
        )
    # "unlimited" contains "limited", so test it first
    if "unlimited" in source.value.lower():
        return Restoration(
            type="unlimited", times_per_year=None, note=source.value,
            example="SI can be restored unlimited times per claim year",
        )
    return Restoration(
        type="limited", times_per_year=1, note=source.value,
        example="SI can be restored once per claim year",
    )


def build_network(source: EvidenceField, log: ResolutionLog) -> Network:
    count = _amount(log, "network.cashless_hospitals", source)
    return Network(
        hospital_network_count=NetworkCount(
            total=count,
            note=f"{count:,} cashless network hospitals" if count > 0 else "Not specified",
        ),
        cashless_available=is_covered(source),
    )


# ═══════════════════════════════════════════════════
# 3. ENTRY POINT
# ═══════════════════════════════════════════════════

def build_canonical_policy(
    raw: RawExtraction,
    file_name: str,
    *,
    policy_id: str | None = None,
    now: datetime | None = None,
    extracted_by: str | None = None,
) -> CanonicalPolicy:
    """Assemble the canonical policy record from an evidence-based extraction."""
    log = ResolutionLog()
    timestamp = (now or datetime.now(timezone.utc)).isoformat()

    cov = raw.coverage
    base_si = _amount(log, "coverage.sum_insured", cov.sum_insured)
    premium = _amount(log, "coverage.annual_premium", cov.annual_premium)
    room_rent = build_room_rent(cov.room_rent, log)
    _trace(f"COVERAGE si={base_si} premium={premium} room_rent={room_rent.to_dict()}")

    coverage = Coverage(
        base_si=MoneyAmount.of(base_si),
        annual_premium=PremiumAmount(
            amount=premium,
            display=f"{format_inr_grouped(premium)}/year" if premium > 0 else "Not specified",
            premium_per_month=round(premium / 12, 2) if premium > 0 else 0,
        ),
        room_rent=room_rent,
    )
    coverage_details = build_coverage_details(raw, log)
    sub_limits = build_sub_limits(raw, log)
    waiting_periods = build_waiting_periods(raw, log)
    riders = build_riders(raw, log)
    restoration = build_restoration(raw.restoration, log)
    network = build_network(raw.network.cashless_hospitals, log)

    ped = raw.waiting_periods.pre_existing_disease
    exclusions = Exclusions(
        major_exclusions=raw.exclusions.explicit_exclusions,
        pre_existing_exclusion=PreExistingExclusion(
            applies=ped.is_explicit,
            waiting_period_months=waiting_periods.pre_existing_disease.months,
            note=("Pre-existing conditions excluded for waiting period"
                  if ped.is_explicit else "Not specified"),
        ),
    )

    report = assess_completeness(log, raw.policy_metadata.extraction_confidence)
    meta = raw.policy_metadata

    policy = CanonicalPolicy(
        policy_id=policy_id or uuid.uuid4().hex,
        upload_date=timestamp,
        file_name=file_name,
        extraction_metadata=ExtractionMetadata(
            extracted_by=extracted_by or EXTRACTED_BY,
            extraction_confidence=report.confidence,
            reported_confidence=report.reported_confidence,
            extraction_timestamp=timestamp,
            missing_fields=tuple(report.missing_fields),
            manual_verification_needed=report.manual_verification_needed,
            extraction_notes=raw.notes or "Evidence-based extraction with document quotes",
        ),
        basic_info=BasicInfo(
            insurer=meta.insurer,
            plan_name=meta.policy_name,
            inception_date=meta.policy_date or None,
            source=meta.document_source or "User uploaded PDF",
        ),
        coverage=coverage,
        sub_limits=sub_limits,
        waiting_periods=waiting_periods,
        coverage_details=coverage_details,
        riders=riders,
        exclusions=exclusions,
        restoration=restoration,
        network=network,
    )
    logger.info(
        f"Canonical policy {policy.policy_id} built from {file_name}: SI={coverage.base_si.display}, "
        f"confidence={report.confidence:.2f}, missing={len(report.missing_fields)}"
    )
    return policy
