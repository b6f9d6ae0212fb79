"""Deterministic sufficiency verdict: recomputes and overrides the AI's verdict.

The sufficiency analyst (an LLM) proposes a verdict.  This engine never lets it
stand unchallenged: it recomputes the verdict from the sum insured, the
policyholder's city tier and the serious-gap list, and replaces the proposal
with its own.  Disagreements are logged and written into the reasoning.

Priority table (first match wins):
  1. Insufficient           SI below the tier's floor
  2. Sufficient, with gaps  any serious gap
  3. Sufficient             SI at or above the tier's target
  4. Borderline             everything else

A missing sum insured is never read as ₹0: the engine skips and the proposed
verdict passes through untouched.
"""

from __future__ import annotations

import copy
import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from coverwise.config import TRACE_ENABLED
from coverwise.pipeline.parsers import extract_number, format_inr_grouped

logger = logging.getLogger(__name__)


def _trace(msg: str):
    """Emit a trace-level debug message when COVERWISE_TRACE is enabled."""
    if TRACE_ENABLED:
        logger.debug(f"[TRACE] {msg}")


# ═══════════════════════════════════════════════════
# 1. VERDICTS AND CITY TIERS
# ═══════════════════════════════════════════════════

class Verdict(str, Enum):
    INSUFFICIENT = "Insufficient"
    BORDERLINE = "Borderline"
    SUFFICIENT_WITH_GAPS = "Sufficient, with gaps"
    SUFFICIENT = "Sufficient"

    @property
    def severity(self) -> int:
        """0 = worst.  Used for ordering, not for rule evaluation."""
        return _SEVERITY[self]

    @classmethod
    def parse(cls, raw: Any) -> "Verdict | None":
        if isinstance(raw, Verdict):
            return raw
        if not isinstance(raw, str):
            return None
        key = re.sub(r"\s+", " ", raw).strip().lower()
        for verdict in cls:
            if verdict.value.lower() == key:
                return verdict
        return None


_SEVERITY = {
    Verdict.INSUFFICIENT: 0,
    Verdict.BORDERLINE: 1,
    Verdict.SUFFICIENT_WITH_GAPS: 2,
    Verdict.SUFFICIENT: 3,
}


class CityTier(Enum):
    METRO = "Metro"
    TIER_2 = "Tier-2"
    TIER_3 = "Tier-3/Unknown"

    @property
    def label(self) -> str:
        return self.value


@dataclass(frozen=True)
class TierThresholds:
    insufficient_below: int
    sufficient_from: int

    def __post_init__(self):
        if self.insufficient_below > self.sufficient_from:
            raise ValueError("insufficient_below must not exceed sufficient_from")


@dataclass(frozen=True)
class CityTierTable:
    """Immutable city lists plus per-tier SI thresholds, injected into the engine."""

    metro_cities: tuple[str, ...]
    tier2_cities: tuple[str, ...]
    thresholds: tuple[tuple[CityTier, TierThresholds], ...]

    @classmethod
    def from_config(
        cls,
        metro_cities: Iterable[str],
        tier2_cities: Iterable[str],
        thresholds: dict[str, dict[str, int]],
    ) -> "CityTierTable":
        missing = [tier.name for tier in CityTier if tier.name not in thresholds]
        if missing:
            raise ValueError(f"Verdict thresholds missing for tiers: {', '.join(missing)}")
        return cls(
            metro_cities=tuple(c.strip() for c in metro_cities if c.strip()),
            tier2_cities=tuple(c.strip() for c in tier2_cities if c.strip()),
            thresholds=tuple(
                (tier, TierThresholds(**thresholds[tier.name])) for tier in CityTier
            ),
        )

    def classify(self, city: str) -> CityTier:
        """Case-insensitive containment; metro is tested before tier-2."""
        lower = (city or "").lower()
        if any(c.lower() in lower for c in self.metro_cities):
            return CityTier.METRO
        if any(c.lower() in lower for c in self.tier2_cities):
            return CityTier.TIER_2
        return CityTier.TIER_3

    def thresholds_for(self, tier: CityTier) -> TierThresholds:
        return dict(self.thresholds)[tier]


# ═══════════════════════════════════════════════════
# 2. CONTEXT AND RESULT
# ═══════════════════════════════════════════════════

def coerce_sum_insured(raw: Any) -> int | None:
    """Numeric SI, or None when it is absent or carries no digits."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return extract_number(raw) if math.isfinite(raw) else None
    if isinstance(raw, str) and re.search(r"\d", raw):
        return extract_number(raw)
    return None


def _get(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


@dataclass(frozen=True)
class VerdictContext:
    sum_insured: int | None
    city: str
    serious_gaps: tuple[str, ...] = ()
    proposed_verdict: str | None = None

    @property
    def has_serious_gaps(self) -> bool:
        return len(self.serious_gaps) > 0

    @classmethod
    def from_analysis(cls, analysis: dict) -> "VerdictContext":
        """Read the facts out of a sufficiency-analysis document."""
        gaps = _get(analysis, "details", "gaps", "serious")
        if not isinstance(gaps, list):
            gaps = []
        proposed = _get(analysis, "page1", "verdict")
        return cls(
            sum_insured=coerce_sum_insured(_get(analysis, "metadata", "extractedFields", "sum_insured")),
            city=_get(analysis, "policyholderInfo", "city") or "Not mentioned",
            serious_gaps=tuple(str(g) for g in gaps),
            proposed_verdict=proposed if isinstance(proposed, str) else None,
        )

    @classmethod
    def from_policy(
        cls,
        policy,
        city: str,
        serious_gaps: Iterable[str] = (),
        proposed_verdict: str | None = None,
    ) -> "VerdictContext":
        """Build a context from a CanonicalPolicy; an unread SI stays unknown."""
        missing = policy.extraction_metadata.missing_fields
        sum_insured = None if "coverage.sum_insured" in missing else policy.coverage.base_si.amount
        return cls(
            sum_insured=sum_insured,
            city=city or "Not mentioned",
            serious_gaps=tuple(serious_gaps),
            proposed_verdict=proposed_verdict,
        )


class EnforcementStatus(str, Enum):
    OVERRIDDEN = "overridden"
    CONFIRMED = "confirmed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class VerdictResult:
    verdict: str | None
    enforced: bool
    reasoning: str
    status: EnforcementStatus
    city_tier: CityTier | None = None
    computed_verdict: Verdict | None = None

    def to_dict(self) -> dict:
        return {
            "verdict": self.verdict,
            "enforced": self.enforced,
            "reasoning": self.reasoning,
            "enforcement": self.status.value,
            "city_tier": self.city_tier.label if self.city_tier else None,
        }


# ═══════════════════════════════════════════════════
# 3. RULE ENGINE
# ═══════════════════════════════════════════════════

def compute_verdict(sum_insured: int, tier: CityTier, has_serious_gaps: bool, table: CityTierTable) -> Verdict:
    """Apply the priority table.  Thresholds are strict: SI == floor is not Insufficient."""
    limits = table.thresholds_for(tier)
    if sum_insured < limits.insufficient_below:
        return Verdict.INSUFFICIENT
    if has_serious_gaps:
        return Verdict.SUFFICIENT_WITH_GAPS
    if sum_insured >= limits.sufficient_from:
        return Verdict.SUFFICIENT
    return Verdict.BORDERLINE


def _rule_explanation(verdict: Verdict, sum_insured: int, tier: CityTier, table: CityTierTable) -> str:
    limits = table.thresholds_for(tier)
    if verdict is Verdict.INSUFFICIENT:
        return f"SI below {format_inr_grouped(limits.insufficient_below)} for {tier.label} city"
    if verdict is Verdict.SUFFICIENT_WITH_GAPS:
        return "serious coverage gaps present"
    if verdict is Verdict.SUFFICIENT:
        return f"SI at or above {format_inr_grouped(limits.sufficient_from)} for {tier.label} city, no serious gaps"
    return (f"SI between {format_inr_grouped(limits.insufficient_below)} and "
            f"{format_inr_grouped(limits.sufficient_from)} for {tier.label} city")


def evaluate(context: VerdictContext, table: CityTierTable) -> VerdictResult:
    """Recompute the verdict for one context and decide override / confirm / skip."""
    if context.sum_insured is None:
        logger.info(f"Verdict enforcement skipped: sum insured missing (city={context.city})")
        return VerdictResult(
            verdict=context.proposed_verdict,
            enforced=False,
            reasoning="Not enforced: sum insured missing or unreadable; proposed verdict kept",
            status=EnforcementStatus.SKIPPED,
        )

    tier = table.classify(context.city)
    computed = compute_verdict(context.sum_insured, tier, context.has_serious_gaps, table)
    reasoning = (
        f"Enforced based on: SI={format_inr_grouped(context.sum_insured)}, City={context.city} "
        f"({tier.label}), SeriousGaps={context.has_serious_gaps}; {_rule_explanation(computed, context.sum_insured, tier, table)}"
    )
    _trace(f"VERDICT si={context.sum_insured} city={context.city!r} tier={tier.name} "
           f"gaps={len(context.serious_gaps)} proposed={context.proposed_verdict!r} computed={computed.value!r}")

    proposed = Verdict.parse(context.proposed_verdict)
    if proposed is computed:
        return VerdictResult(
            verdict=computed.value,
            enforced=False,
            reasoning=reasoning,
            status=EnforcementStatus.CONFIRMED,
            city_tier=tier,
            computed_verdict=computed,
        )

    logger.warning(
        f"Verdict override: AI said {context.proposed_verdict!r}, engine says {computed.value!r} "
        f"(SI={format_inr_grouped(context.sum_insured)}, city={context.city}, tier={tier.label}, "
        f"serious_gaps={context.has_serious_gaps})"
    )
    return VerdictResult(
        verdict=computed.value,
        enforced=True,
        reasoning=reasoning,
        status=EnforcementStatus.OVERRIDDEN,
        city_tier=tier,
        computed_verdict=computed,
    )


def enforce_verdict(analysis: dict, table: CityTierTable) -> dict:
    """Apply the engine to a sufficiency-analysis document.

    Returns a new dict; the input is not mutated.  Documents without
    ``page1`` or ``metadata.extractedFields`` only get
    ``metadata.verdictEnforcement = "skipped"``.
    """
    result = copy.deepcopy(analysis)
    metadata = result.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
        result["metadata"] = metadata

    if not isinstance(result.get("page1"), dict) or not isinstance(metadata.get("extractedFields"), dict):
        logger.info("Verdict enforcement skipped: analysis has no page1 or extractedFields")
        metadata["verdictEnforcement"] = EnforcementStatus.SKIPPED.value
        return result

    outcome = evaluate(VerdictContext.from_analysis(result), table)
    if outcome.status is not EnforcementStatus.SKIPPED:
        result["page1"]["verdict"] = outcome.verdict
    metadata["verdictEnforced"] = outcome.enforced
    metadata["verdictEnforcement"] = outcome.status.value
    metadata["verdictReasoning"] = outcome.reasoning
    metadata["cityTier"] = outcome.city_tier.label if outcome.city_tier else None
    return result
