"""Pipeline orchestrator: the two LLM-backed entry points.

  extract_policy       policy text → evidence extraction (LLM) → CanonicalPolicy
  analyze_sufficiency  policy text → sufficiency analysis (LLM) → enforced verdict

The LLM is only ever asked for facts and a proposed verdict.  Canonicalization
and the final verdict are deterministic (canonical.py, verdict.py).
"""

import logging

from coverwise.config import get_city_tier_table
from coverwise.errors import PolicyUnreadableError
from coverwise.pipeline.canonical import CanonicalPolicy, build_canonical_policy
from coverwise.pipeline.evidence import parse_extraction_payload
from coverwise.pipeline.llm_client import call_llm, parse_json_payload
from coverwise.pipeline.prompts import EXTRACTION_SYSTEM_PROMPT, SUFFICIENCY_SYSTEM_PROMPT
from coverwise.pipeline.verdict import CityTierTable, enforce_verdict

logger = logging.getLogger(__name__)

# Fields a policy record is useless without
CRITICAL_MONEY_FIELDS = ("coverage.sum_insured", "coverage.annual_premium")


def _missing_critical_fields(policy: CanonicalPolicy) -> list[str]:
    missing = []
    if not policy.basic_info.insurer:
        missing.append("insurer")
    if not policy.basic_info.plan_name:
        missing.append("plan_name")
    missing.extend(
        path for path in CRITICAL_MONEY_FIELDS
        if path in policy.extraction_metadata.missing_fields
    )
    return missing


async def extract_policy(policy_text: str, file_name: str) -> dict:
    """Run the evidence-based extraction and build the canonical policy.

    Returns:
        {"policy_id": str,
         "extracted_data": CanonicalPolicy as dict,
         "extraction_metadata": {"confidence", "missing_fields", "needs_verification"}}
    """
    reply = await call_llm(
        policy_text,
        EXTRACTION_SYSTEM_PROMPT,
        task_label="Policy extraction",
    )
    raw = parse_extraction_payload(parse_json_payload(reply))
    policy = build_canonical_policy(raw, file_name)

    critical = _missing_critical_fields(policy)
    if critical:
        logger.warning(f"Policy {policy.policy_id} ({file_name}) is missing critical fields: {', '.join(critical)}")

    meta = policy.extraction_metadata
    return {
        "policy_id": policy.policy_id,
        "extracted_data": policy.to_dict(),
        "extraction_metadata": {
            "confidence": meta.extraction_confidence,
            "missing_fields": list(meta.missing_fields),
            "needs_verification": meta.manual_verification_needed,
        },
    }


async def analyze_sufficiency(policy_text: str, table: CityTierTable | None = None) -> dict:
    """Ask the analyst model for a sufficiency report, then enforce the verdict."""
    reply = await call_llm(
        policy_text,
        SUFFICIENCY_SYSTEM_PROMPT,
        task_label="Sufficiency analysis",
    )
    analysis = parse_json_payload(reply)

    if analysis.get("error") is True:
        message = analysis.get("message") or "Unable to extract key policy details"
        raise PolicyUnreadableError(message)

    enforced = enforce_verdict(analysis, table or get_city_tier_table())
    metadata = enforced.get("metadata", {})
    logger.info(
        f"Sufficiency analysis done: verdict={enforced.get('page1', {}).get('verdict')!r} "
        f"enforcement={metadata.get('verdictEnforcement')} tier={metadata.get('cityTier')}"
    )
    return enforced
