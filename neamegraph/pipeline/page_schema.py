"""One page through the whole engine: rule -> parse -> canonicalize -> checks.

Parse and rule-selection failures are hard errors and propagate. Validator and
charter findings are soft and always come back with the graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from neamegraph.canonical.canonicalizer import canonicalize
from neamegraph.config.organization import DEFAULT_ORGANIZATION, OrganizationConfig
from neamegraph.contracts.draft_graph import dump_graph, parse_draft_graph
from neamegraph.ingestion.url_utils import schema_hash
from neamegraph.pages.page_types import PageClassification
from neamegraph.rules.selector import Rule, select_rule
from neamegraph.validation.charter import charter_counts, check_charter
from neamegraph.validation.graph_validator import ValidationResult, validate_graph


logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """The page cannot go through automatic schema generation."""


@dataclass(frozen=True)
class PageSchemaResult:
    rule: Dict[str, Any]
    graph: Dict[str, Any]
    jsonld: str
    schema_hash: str
    validation: ValidationResult
    charter_warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        violations, warnings = charter_counts(self.charter_warnings)
        return {
            "rule": self.rule,
            "jsonld": self.jsonld,
            "schema_hash": self.schema_hash,
            "validation": self.validation.to_dict(),
            "charter_warnings": list(self.charter_warnings),
            "charter_violations": violations,
            "charter_warning_count": warnings,
        }


def build_page_schema(
    *,
    draft_text: str,
    classification: PageClassification,
    rules: Sequence[Rule],
    raw_html: Optional[str] = None,
    org_config: OrganizationConfig = DEFAULT_ORGANIZATION,
    canonical_origin: Optional[str] = None,
) -> PageSchemaResult:
    if classification.is_home_page:
        raise PipelineError("Homepage schema is maintained manually and is never generated")

    origin = canonical_origin or org_config.origin
    rule = select_rule(classification, rules)
    draft = parse_draft_graph(draft_text)
    graph = canonicalize(draft, classification, raw_html, org_config, origin)

    validation = validate_graph(graph, origin)
    charter = check_charter(graph, classification, org_config=org_config)
    jsonld = dump_graph(graph)
    logger.info(
        "Built schema for %s with rule %s: %d nodes, valid=%s, %d charter finding(s)",
        classification.path or "<no path>",
        rule.id,
        len(graph["@graph"]),
        validation.valid,
        len(charter),
    )
    return PageSchemaResult(
        rule=rule.identity(),
        graph=graph,
        jsonld=jsonld,
        schema_hash=schema_hash(jsonld),
        validation=validation,
        charter_warnings=charter,
    )
