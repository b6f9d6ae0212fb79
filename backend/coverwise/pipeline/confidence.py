"""Extraction completeness assessor: decides when a human must re-check a policy.

The canonical builder records every scalar it tries to resolve.  The
report turns that log into an extraction confidence and the
``manual_verification_needed`` flag.

Resolution rules
────────────────
1. ``excluded`` evidence is a definite fact → resolved.
2. ``explicit`` evidence the parser could read → resolved.
3. ``explicit`` evidence the parser could not read → unresolved
   (the field defaults to 0 / False in the canonical record).
4. ``not_mentioned`` → unresolved.

Unresolved fields are listed in ``missing_fields`` so a ₹0 default is never
mistaken for a stated ₹0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from coverwise.config import MANUAL_REVIEW_THRESHOLD
from coverwise.pipeline.evidence import EvidenceField, EvidenceStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldResolution:
    path: str
    status: EvidenceStatus
    resolved: bool


@dataclass
class ResolutionLog:
    """Collects one FieldResolution per canonical scalar, in build order."""

    entries: list[FieldResolution] = field(default_factory=list)
    # List-item paths (per-ailment, per-disease) unreadable but outside the score
    unscored_missing: list[str] = field(default_factory=list)

    def record(self, path: str, source: EvidenceField, parsed_ok: bool) -> bool:
        if source.status is EvidenceStatus.EXCLUDED:
            resolved = True
        elif source.status is EvidenceStatus.EXPLICIT:
            resolved = parsed_ok
        else:
            resolved = False
        self.entries.append(FieldResolution(path=path, status=source.status, resolved=resolved))
        return resolved

    def note_missing(self, path: str):
        self.unscored_missing.append(path)

    @property
    def missing_fields(self) -> list[str]:
        return [e.path for e in self.entries if not e.resolved] + self.unscored_missing

    def is_missing(self, path: str) -> bool:
        return path in self.missing_fields


@dataclass(frozen=True)
class CompletenessReport:
    confidence: float
    computed_confidence: float
    reported_confidence: float | None
    missing_fields: list[str]
    manual_verification_needed: bool
    resolved_count: int
    total_count: int

    def to_dict(self) -> dict:
        return {
            "confidence": self.confidence,
            "computed_confidence": self.computed_confidence,
            "reported_confidence": self.reported_confidence,
            "missing_fields": list(self.missing_fields),
            "manual_verification_needed": self.manual_verification_needed,
            "resolved_count": self.resolved_count,
            "total_count": self.total_count,
        }


def _valid_reported(reported: float | None) -> float | None:
    if reported is None:
        return None
    if not 0.0 <= reported <= 1.0:
        logger.warning(f"Ignoring out-of-range extractor confidence {reported!r}")
        return None
    return reported


def assess_completeness(
    log: ResolutionLog,
    reported_confidence: float | None = None,
    threshold: float = MANUAL_REVIEW_THRESHOLD,
) -> CompletenessReport:
    """Score how much of the policy was resolvable.

    The computed score is resolved/total.  When the extractor reported its own
    confidence, the lower of the two is used: a self-assessed 0.95 cannot
    hide half the fields being unreadable, and vice versa.
    """
    total = len(log.entries)
    resolved = sum(1 for e in log.entries if e.resolved)
    computed = round(resolved / total, 2) if total else 0.0

    reported = _valid_reported(reported_confidence)
    confidence = min(computed, reported) if reported is not None else computed
    needs_review = confidence < threshold

    if needs_review:
        logger.info(
            f"Extraction confidence {confidence:.2f} below {threshold:.2f} "
            f"({resolved}/{total} fields resolved) — manual verification needed"
        )

    return CompletenessReport(
        confidence=confidence,
        computed_confidence=computed,
        reported_confidence=reported,
        missing_fields=log.missing_fields,
        manual_verification_needed=needs_review,
        resolved_count=resolved,
        total_count=total,
    )
