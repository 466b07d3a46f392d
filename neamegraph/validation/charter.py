"""Schema quality charter checks.

Advisory only: findings never block output. Each finding is a string
prefixed with its weight so callers can count them:
- "CHARTER VIOLATION: ..." / "... CONSISTENCY VIOLATION: ..." / "... DOMAIN VIOLATION: ..."
- "CHARTER WARNING: ..."
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Tuple

from neamegraph.config.organization import DEFAULT_ORGANIZATION, OrganizationConfig
from neamegraph.graph.nodes import (
    COMMERCE_PROPERTIES,
    FAQ_TYPES,
    MAIN_SUBJECT_PROPERTIES,
    OFFER_TYPES,
    ORG_LINK_PROPERTIES,
    ORGANIZATION_TYPES,
    PAGE_TYPE,
    WEBSITE_TYPE,
    has_any_type,
    has_type,
    links_to,
    node_id,
    node_types,
)
from neamegraph.graph.reference_index import ReferenceIndex
from neamegraph.pages.page_types import PageClassification


logger = logging.getLogger(__name__)

ITEM_DOMAIN = "Beer"

CHARTER_RULES: Dict[str, str] = {
    "must_link_to_canonical_org": "Every schema graph must include the canonical Organization node and link to it.",
    "must_link_to_website": "Every WebPage schema must link to the main Website node via isPartOf.",
    "require_visible_faq_for_faq_schema": "FAQ schema is only generated when the Q&As are visible on-page.",
    "disallow_invented_data": "No invented or unverified awards, ratings, or other facts.",
    "enforce_stable_ids": "Entities use stable, predictable @id patterns without duplication.",
    "one_main_entity_per_page": "Each page has a single clear main entity, not multiple competing ones.",
}


def _nodes(graph: Any) -> List[Dict[str, Any]]:
    if not isinstance(graph, dict) or not isinstance(graph.get("@graph"), list):
        return []
    return [n for n in graph["@graph"] if isinstance(n, dict)]


def check_charter(
    graph: Dict[str, Any],
    classification: PageClassification,
    *,
    org_config: OrganizationConfig = DEFAULT_ORGANIZATION,
) -> List[str]:
    nodes = _nodes(graph)
    index = ReferenceIndex(nodes)
    org_id = org_config.org_id
    website_id = org_config.website_id
    findings: List[str] = []

    # Canonical Organization present and linked to
    if org_id not in index:
        findings.append(f"CHARTER VIOLATION: Missing canonical Organization node (@id: {org_id})")
    else:
        linked = any(links_to(n.get(p), org_id) for n in nodes for p in ORG_LINK_PROPERTIES)
        if not linked:
            findings.append("CHARTER WARNING: No entities link to the canonical Organization node")

    # WebPage -> WebSite
    pages = [n for n in nodes if has_type(n, PAGE_TYPE)]
    if pages and not all(links_to(n.get("isPartOf"), website_id) for n in pages):
        findings.append("CHARTER WARNING: Not all WebPage nodes link to the main Website via isPartOf")

    # FAQ only when visible on the page
    if not classification.faq_allowed and any(has_any_type(n, FAQ_TYPES) for n in nodes):
        findings.append("CHARTER WARNING: FAQ schema present but FAQ mode is disabled or no FAQ content detected")

    # Stable ids
    duplicates = index.duplicates()
    if duplicates:
        findings.append("CHARTER VIOLATION: Duplicate @id values found: " + ", ".join(sorted(duplicates)))

    # One main entity per page
    with_subject = [n for n in pages if any(n.get(p) for p in MAIN_SUBJECT_PROPERTIES)]
    if len(with_subject) > 1:
        findings.append(
            "CHARTER WARNING: Multiple WebPage nodes with mainEntity/about detected - "
            "page may have competing primary entities"
        )

    # Exactly one Organization and one WebSite
    org_count = sum(1 for n in nodes if has_any_type(n, ORGANIZATION_TYPES))
    website_count = sum(1 for n in nodes if has_type(n, WEBSITE_TYPE))
    if org_count != 1 or website_count != 1:
        findings.append(
            "ORG CONSISTENCY VIOLATION: Expected exactly one Organization and one WebSite node, "
            f"found Org={org_count}, WebSite={website_count}."
        )

    # Item domain is non-transactional
    if classification.domain == ITEM_DOMAIN:
        offending = []
        for n in nodes:
            found = [t for t in node_types(n) if t in OFFER_TYPES] + [p for p in COMMERCE_PROPERTIES if n.get(p)]
            if found:
                offending.append(f"{node_id(n) or 'unknown'} ({', '.join(found)})")
        if offending:
            findings.append("BEER DOMAIN VIOLATION: Found Offer/commerce schema in Beer-domain output: " + "; ".join(offending))

    if findings:
        violations, warnings = charter_counts(findings)
        logger.warning("Charter compliance: %d violations, %d warnings", violations, warnings)
    return findings


def charter_counts(findings: List[str]) -> Tuple[int, int]:
    """(violations, warnings) in a list of charter findings."""
    violations = sum(1 for f in findings if "VIOLATION" in f)
    warnings = sum(1 for f in findings if "WARNING" in f)
    return violations, warnings
