"""Three-state evidence model for the raw LLM extraction.

Every leaf the extractor returns is an evidence field: a status
(explicit / excluded / not_mentioned), the value as worded in the policy,
and the supporting quote.  Absence of a statement is its own truth value
and is never read as "false"; only ``parsers.is_covered`` narrows a field
to a boolean.

``parse_extraction_payload`` is the one place where a malformed document
becomes fatal (``ExtractionFormatError``); everything below the top-level
shape is loaded leniently.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from coverwise.errors import ExtractionFormatError

logger = logging.getLogger(__name__)


class EvidenceStatus(str, Enum):
    EXPLICIT = "explicit"
    EXCLUDED = "excluded"
    NOT_MENTIONED = "not_mentioned"

    @classmethod
    def parse(cls, raw: Any) -> "EvidenceStatus":
        """Normalize an extractor status string; unknown values become NOT_MENTIONED."""
        if isinstance(raw, EvidenceStatus):
            return raw
        if not isinstance(raw, str) or not raw.strip():
            return cls.NOT_MENTIONED
        key = re.sub(r"[\s\-]+", "_", raw.strip().lower())
        try:
            return cls(key)
        except ValueError:
            logger.warning(f"Unknown evidence status {raw!r} — treating as not_mentioned")
            return cls.NOT_MENTIONED


# Bare-string leaves carry no status; these wordings decide it
_BARE_NOT_MENTIONED_RE = re.compile(r"\b(?:not (?:mentioned|stated|specified|found)|n/a)\b", re.IGNORECASE)
_BARE_NEGATION_RE = re.compile(r"\b(?:not covered|excluded)\b", re.IGNORECASE)


def _bare_status(value: str) -> EvidenceStatus:
    if _BARE_NOT_MENTIONED_RE.search(value):
        return EvidenceStatus.NOT_MENTIONED
    if _BARE_NEGATION_RE.search(value):
        return EvidenceStatus.EXCLUDED
    return EvidenceStatus.EXPLICIT


def _text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw.strip()
    return str(raw)


@dataclass(frozen=True)
class EvidenceField:
    status: EvidenceStatus = EvidenceStatus.NOT_MENTIONED
    value: str = ""
    evidence: str = ""

    @property
    def is_explicit(self) -> bool:
        return self.status is EvidenceStatus.EXPLICIT

    @property
    def is_mentioned(self) -> bool:
        return self.status is not EvidenceStatus.NOT_MENTIONED

    @classmethod
    def from_raw(cls, raw: Any) -> "EvidenceField":
        """Load a field.

        A bare string has no status of its own: "Not mentioned" wording stays
        not_mentioned, "Not covered" / "Excluded" wording is excluded, and
        anything else is an explicit value without a quote.
        """
        if isinstance(raw, EvidenceField):
            return raw
        if isinstance(raw, dict):
            return cls(
                status=EvidenceStatus.parse(raw.get("status")),
                value=_text(raw.get("value")),
                evidence=_text(raw.get("evidence")),
            )
        if isinstance(raw, (str, int, float)) and not isinstance(raw, bool) and _text(raw):
            value = _text(raw)
            return cls(status=_bare_status(value), value=value)
        return NOT_MENTIONED_FIELD

    def to_dict(self) -> dict:
        return {"status": self.status.value, "value": self.value, "evidence": self.evidence}


NOT_MENTIONED_FIELD = EvidenceField()


@dataclass(frozen=True)
class NamedEvidence:
    """An evidence field about one named ailment (e.g. a cataract waiting period)."""

    condition: str
    field: EvidenceField


@dataclass(frozen=True)
class DiseaseLimit:
    condition: str
    limit: str
    evidence: str = ""


# ═══════════════════════════════════════════════════
# RAW EXTRACTION TREE
# ═══════════════════════════════════════════════════

def _section(data: dict, key: str) -> dict:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _fields(section: dict, names: tuple[str, ...]) -> dict[str, EvidenceField]:
    return {name: EvidenceField.from_raw(section.get(name)) for name in names}


def _items(section: dict, key: str) -> list[dict]:
    value = section.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


@dataclass(frozen=True)
class PolicyMetadata:
    insurer: str = ""
    policy_name: str = ""
    document_source: str = ""
    policy_date: str = ""
    extraction_confidence: float | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "PolicyMetadata":
        confidence = data.get("extraction_confidence")
        try:
            confidence = float(confidence) if confidence is not None and confidence != "" else None
        except (TypeError, ValueError):
            confidence = None
        return cls(
            insurer=_text(data.get("insurer")),
            policy_name=_text(data.get("policy_name")),
            document_source=_text(data.get("document_source")),
            policy_date=_text(data.get("policy_date")),
            extraction_confidence=confidence,
        )


@dataclass(frozen=True)
class CoverageEvidence:
    sum_insured: EvidenceField = NOT_MENTIONED_FIELD
    annual_premium: EvidenceField = NOT_MENTIONED_FIELD
    room_rent: EvidenceField = NOT_MENTIONED_FIELD
    icu_charges: EvidenceField = NOT_MENTIONED_FIELD
    pre_hospitalization: EvidenceField = NOT_MENTIONED_FIELD
    post_hospitalization: EvidenceField = NOT_MENTIONED_FIELD
    domiciliary_hospitalization: EvidenceField = NOT_MENTIONED_FIELD
    daycare_procedures: EvidenceField = NOT_MENTIONED_FIELD

    @classmethod
    def from_dict(cls, data: dict) -> "CoverageEvidence":
        return cls(**_fields(data, (
            "sum_insured", "annual_premium", "room_rent", "icu_charges",
            "pre_hospitalization", "post_hospitalization",
            "domiciliary_hospitalization", "daycare_procedures",
        )))


@dataclass(frozen=True)
class WaitingPeriodEvidence:
    general: EvidenceField = NOT_MENTIONED_FIELD
    pre_existing_disease: EvidenceField = NOT_MENTIONED_FIELD
    specific_ailments: tuple[NamedEvidence, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "WaitingPeriodEvidence":
        ailments = tuple(
            NamedEvidence(condition=_text(item.get("condition")), field=EvidenceField.from_raw(item))
            for item in _items(data, "specific_ailments")
            if _text(item.get("condition"))
        )
        return cls(
            **_fields(data, ("general", "pre_existing_disease")),
            specific_ailments=ailments,
        )


@dataclass(frozen=True)
class SubLimitEvidence:
    room_rent_limit: EvidenceField = NOT_MENTIONED_FIELD
    icu_limit: EvidenceField = NOT_MENTIONED_FIELD
    disease_specific_limits: tuple[DiseaseLimit, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "SubLimitEvidence":
        limits = tuple(
            DiseaseLimit(
                condition=_text(item.get("condition")),
                limit=_text(item.get("limit")),
                evidence=_text(item.get("evidence")),
            )
            for item in _items(data, "disease_specific_limits")
            if _text(item.get("condition"))
        )
        return cls(
            **_fields(data, ("room_rent_limit", "icu_limit")),
            disease_specific_limits=limits,
        )


@dataclass(frozen=True)
class RiderEvidence:
    critical_illness: EvidenceField = NOT_MENTIONED_FIELD
    personal_accident: EvidenceField = NOT_MENTIONED_FIELD
    maternity: EvidenceField = NOT_MENTIONED_FIELD

    @classmethod
    def from_dict(cls, data: dict) -> "RiderEvidence":
        return cls(**_fields(data, ("critical_illness", "personal_accident", "maternity")))


@dataclass(frozen=True)
class NetworkEvidence:
    cashless_hospitals: EvidenceField = NOT_MENTIONED_FIELD

    @classmethod
    def from_dict(cls, data: dict) -> "NetworkEvidence":
        return cls(**_fields(data, ("cashless_hospitals",)))


@dataclass(frozen=True)
class ExclusionEvidence:
    explicit_exclusions: tuple[str, ...] = ()
    evidence: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "ExclusionEvidence":
        raw = data.get("explicit_exclusions")
        items = raw if isinstance(raw, list) else []
        return cls(
            explicit_exclusions=tuple(_text(x) for x in items if _text(x)),
            evidence=_text(data.get("evidence")),
        )


@dataclass(frozen=True)
class RawExtraction:
    policy_metadata: PolicyMetadata = field(default_factory=PolicyMetadata)
    coverage: CoverageEvidence = field(default_factory=CoverageEvidence)
    waiting_periods: WaitingPeriodEvidence = field(default_factory=WaitingPeriodEvidence)
    sub_limits: SubLimitEvidence = field(default_factory=SubLimitEvidence)
    restoration: EvidenceField = NOT_MENTIONED_FIELD
    riders: RiderEvidence = field(default_factory=RiderEvidence)
    network: NetworkEvidence = field(default_factory=NetworkEvidence)
    exclusions: ExclusionEvidence = field(default_factory=ExclusionEvidence)
    notes: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "RawExtraction":
        return cls(
            policy_metadata=PolicyMetadata.from_dict(_section(data, "policy_metadata")),
            coverage=CoverageEvidence.from_dict(_section(data, "coverage")),
            waiting_periods=WaitingPeriodEvidence.from_dict(_section(data, "waiting_periods")),
            sub_limits=SubLimitEvidence.from_dict(_section(data, "sub_limits")),
            restoration=EvidenceField.from_raw(data.get("restoration")),
            riders=RiderEvidence.from_dict(_section(data, "riders")),
            network=NetworkEvidence.from_dict(_section(data, "network")),
            exclusions=ExclusionEvidence.from_dict(_section(data, "exclusions")),
            notes=_text(data.get("notes")),
        )


TOP_LEVEL_SECTIONS = (
    "policy_metadata", "coverage", "waiting_periods", "sub_limits",
    "restoration", "riders", "network", "exclusions",
)

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)
_BARE_JSON_RE = re.compile(r"(\{.*\})", re.DOTALL)


def load_json_object(text: str) -> dict:
    """Pull the JSON object out of a model reply (fenced, bare, or wrapped in prose).

    Raises ExtractionFormatError with a preview of the payload when the text
    is not a JSON object.  There is no repair of broken JSON.
    """
    if not isinstance(text, str) or not text.strip():
        raise ExtractionFormatError("Empty extraction payload", text if isinstance(text, str) else "")

    match = _FENCED_JSON_RE.search(text) or _BARE_JSON_RE.search(text)
    candidate = match.group(1) if match else text.strip()
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ExtractionFormatError(f"Extraction payload is not valid JSON: {e.msg}", text) from e
    if not isinstance(data, dict):
        raise ExtractionFormatError("Extraction payload is not a JSON object", text)
    return data


def parse_extraction_payload(payload: str | dict) -> RawExtraction:
    """Parse the extractor output into a RawExtraction.

    Accepts the model text or an already-decoded dict.  A document carrying
    none of the top-level sections is rejected rather than turned into an
    all-not_mentioned policy.
    """
    if isinstance(payload, dict):
        data = payload
        preview_source = repr(payload)
    else:
        data = load_json_object(payload)
        preview_source = payload

    if not any(key in data for key in TOP_LEVEL_SECTIONS):
        raise ExtractionFormatError(
            "Extraction payload is missing the policy extraction shape "
            f"(expected one of: {', '.join(TOP_LEVEL_SECTIONS)})",
            preview_source,
        )
    return RawExtraction.from_dict(data)
