#!/usr/bin/env python3
"""Schema generation worker.

Takes one page record, the rule set, the generator's draft graph and the
page HTML (all from files), and writes the canonical JSON-LD plus diagnostics.
Fetching HTML and calling the generator happen upstream.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from neamegraph.config.organization import DEFAULT_ORGANIZATION
from neamegraph.contracts.draft_graph import GraphParseError
from neamegraph.pages.page_types import PageClassification
from neamegraph.pipeline.page_schema import PipelineError, build_page_schema
from neamegraph.rules.selector import RuleSelectionError, rule_from_record
from neamegraph.validation.graph_validator import format_issue, validate_graph


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)


def _read_json(path: str):
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _check_only(path: str, origin: str) -> int:
    result = validate_graph(Path(path).read_text(encoding="utf-8"), origin)
    for issue in result.issues:
        print(format_issue(issue))
    print(f"valid={result.valid} no_commerce_schema={result.no_commerce_schema} nodes={result.stats.get('total_nodes', 0)}")
    return 0 if result.valid else 1


def main() -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Canonicalize and check a generated JSON-LD graph for one page")
    parser.add_argument("--page", help="Page record JSON file")
    parser.add_argument("--rules", help="JSON file with a list of rule records")
    parser.add_argument("--draft", help="Draft graph produced by the generator")
    parser.add_argument("--html", help="Raw page HTML (optional)")
    parser.add_argument("--out", help="Write the result JSON here instead of stdout")
    parser.add_argument("--check", help="Only validate an existing graph file")
    parser.add_argument(
        "--origin",
        default=os.environ.get("CANONICAL_BASE_URL", DEFAULT_ORGANIZATION.origin),
        help="Canonical site origin",
    )
    args = parser.parse_args()

    if args.check:
        return _check_only(args.check, args.origin)
    if not (args.page and args.rules and args.draft):
        parser.error("--page, --rules and --draft are required unless --check is given")

    classification = PageClassification.from_record(_read_json(args.page))
    rules = [rule_from_record(r) for r in _read_json(args.rules)]
    draft_text = Path(args.draft).read_text(encoding="utf-8")
    raw_html = Path(args.html).read_text(encoding="utf-8") if args.html else None

    try:
        result = build_page_schema(
            draft_text=draft_text,
            classification=classification,
            rules=rules,
            raw_html=raw_html,
            canonical_origin=args.origin,
        )
    except (GraphParseError, RuleSelectionError, PipelineError) as e:
        logger.error("Schema generation failed for %s: %s", classification.path, e)
        return 2

    for issue in result.validation.issues:
        logger.warning(format_issue(issue))
    payload = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    if args.out:
        Path(args.out).write_text(payload, encoding="utf-8")
        print(f"[schema] wrote {args.out} hash={result.schema_hash[:12]} valid={result.validation.valid}")
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
