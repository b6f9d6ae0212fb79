#!/usr/bin/env python3
"""CLI tool to run the canonical builder & verdict engine on saved JSON.

Accepts either shape:
  - a raw evidence-based extraction (policy_metadata / coverage / ...)
      → builds the canonical policy; with --city also runs the verdict engine
  - a sufficiency analysis (page1 / metadata.extractedFields / ...)
      → enforces the verdict

Usage:
    python run_checks.py <file.json>                         # Pretty print
    python run_checks.py <file.json> --city Mumbai           # + verdict
    python run_checks.py <file.json> --city Pune --gap "Room rent capped"
    python run_checks.py <file.json> --json                  # Output raw JSON
    python run_checks.py <file.json> --trace                 # COVERWISE_TRACE debug output
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

# Ensure the backend package is importable
sys.path.insert(0, str(Path(__file__).resolve().parent))


def load_document(ref: str) -> dict:
    path = Path(ref)
    if not path.exists():
        print(f"File '{ref}' not found.")
        sys.exit(1)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        print(f"'{ref}' is not valid JSON: {e}")
        sys.exit(1)
    if not isinstance(data, dict):
        print(f"'{ref}' does not contain a JSON object.")
        sys.exit(1)
    return data


def _is_analysis(data: dict) -> bool:
    return "page1" in data or "extractedFields" in (data.get("metadata") or {})


def run_policy(data: dict, file_name: str, city: str | None, gaps: list[str], output_json: bool):
    from coverwise.config import get_city_tier_table
    from coverwise.pipeline.canonical import build_canonical_policy
    from coverwise.pipeline.evidence import parse_extraction_payload
    from coverwise.pipeline.verdict import VerdictContext, evaluate

    policy = build_canonical_policy(parse_extraction_payload(data), file_name)
    result = None
    if city:
        result = evaluate(VerdictContext.from_policy(policy, city, gaps), get_city_tier_table())

    if output_json:
        output = {"policy": policy.to_dict()}
        if result:
            output["verdict"] = result.to_dict()
        print(json.dumps(output, indent=2, ensure_ascii=False))
        return

    meta = policy.extraction_metadata
    print(f"\n{'═' * 70}")
    print(f"  CoverWise Check Runner — {policy.basic_info.insurer or '?'} / {policy.basic_info.plan_name or '?'}")
    print(f"{'═' * 70}\n")
    print(f"  Sum insured      {policy.coverage.base_si.display}")
    print(f"  Annual premium   {policy.coverage.annual_premium.display}")
    print(f"  Room rent        {policy.coverage.room_rent.display}")
    print(f"  PED waiting      {policy.waiting_periods.pre_existing_disease.months} months")
    print(f"  Restoration      {policy.restoration.type or 'none'}")
    print(f"  Network          {policy.network.hospital_network_count.note}")
    print()
    review = "⚠ manual verification needed" if meta.manual_verification_needed else "✓ ok"
    print(f"  Confidence {meta.extraction_confidence:.2f}  {review}")
    if meta.missing_fields:
        print(f"  Missing ({len(meta.missing_fields)}):")
        for path in meta.missing_fields:
            print(f"    ✗ {path}")
    if result:
        _print_verdict(result.to_dict())
    print(f"{'═' * 70}\n")


def run_analysis(data: dict, output_json: bool):
    from coverwise.config import get_city_tier_table
    from coverwise.pipeline.verdict import enforce_verdict

    enforced = enforce_verdict(data, get_city_tier_table())
    if output_json:
        print(json.dumps(enforced, indent=2, ensure_ascii=False))
        return

    meta = enforced.get("metadata", {})
    print(f"\n{'═' * 70}")
    print("  CoverWise Check Runner — sufficiency analysis")
    print(f"{'═' * 70}")
    _print_verdict({
        "verdict": (enforced.get("page1") or {}).get("verdict"),
        "enforced": meta.get("verdictEnforced", False),
        "enforcement": meta.get("verdictEnforcement"),
        "city_tier": meta.get("cityTier"),
        "reasoning": meta.get("verdictReasoning", ""),
    })
    print(f"{'═' * 70}\n")


def _print_verdict(result: dict):
    icon = {"overridden": "⚠", "confirmed": "✓", "skipped": "—"}.get(result["enforcement"], "?")
    print(f"\n  VERDICT {icon} {result['verdict']}  [{result['enforcement']}, tier={result['city_tier']}]")
    if result.get("reasoning"):
        print(f"    {result['reasoning']}")
    print()


def main():
    parser = argparse.ArgumentParser(
        description="CoverWise CLI — Canonicalize policies and enforce verdicts on saved JSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("file", help="Raw extraction or sufficiency analysis JSON file")
    parser.add_argument("--city", help="Policyholder city (raw extraction only)")
    parser.add_argument("--gap", action="append", default=[], help="Serious gap (repeatable)")
    parser.add_argument("--trace", action="store_true", help="Enable COVERWISE_TRACE debug output")
    parser.add_argument("--json", action="store_true", help="Output raw JSON instead of pretty print")

    args = parser.parse_args()

    # Must be set before coverwise.config is imported
    if args.trace:
        os.environ["COVERWISE_TRACE"] = "1"
        logging.basicConfig(level=logging.DEBUG, format="%(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    data = load_document(args.file)
    if _is_analysis(data):
        run_analysis(data, output_json=args.json)
    else:
        run_policy(data, Path(args.file).name, args.city, args.gap, output_json=args.json)


if __name__ == "__main__":
    main()
