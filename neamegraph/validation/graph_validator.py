"""Structural validation of a JSON-LD graph.

Read-only: checks never mutate the input. Findings:
- Structure: `@context` / `@graph` presence (missing either stops here)
- Required Nodes: an Organization (error), a page node (warning)
- Invalid Reference: references to ids absent from the graph (external URLs exempt)
- Circular Dependency: reference cycles reachable from the Organization
- URL Consistency: `url` / `@id` values off the canonical origin
- Missing Property: per-type required properties
- Duplicate ID: the same `@id` on several nodes
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Set, Union

from neamegraph.graph.nodes import (
    BRAND_TYPE,
    ORGANIZATION_TYPES,
    PAGE_TYPE,
    has_any_type,
    has_commerce_schema,
    has_type,
    is_page_like,
    iter_references,
    node_id,
)
from neamegraph.graph.reference_index import ReferenceIndex
from neamegraph.ingestion.url_utils import is_external_reference, is_same_origin


SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    severity: str
    category: str
    message: str
    path: Optional[str] = None


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)
    no_commerce_schema: bool = True

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == SEVERITY_ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == SEVERITY_WARNING]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _empty_stats() -> Dict[str, Any]:
    return {"total_nodes": 0, "node_types": {}, "references": 0}


def _error(category: str, message: str, path: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(SEVERITY_ERROR, category, message, path)


def _warning(category: str, message: str, path: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(SEVERITY_WARNING, category, message, path)


def _find_cycles(index: ReferenceIndex, start: str) -> List[List[str]]:
    """Depth-first walk from `start`; each branch carries its own path."""
    cycles: List[List[str]] = []
    seen: Set[tuple] = set()

    def visit(nid: str, path: List[str]) -> None:
        if nid in path:
            cycle = path + [nid]
            key = tuple(cycle)
            if key not in seen:
                seen.add(key)
                cycles.append(cycle)
            return
        if nid not in index:
            return
        here = path + [nid]
        for target in index.neighbours(nid):
            visit(target, here)

    visit(start, [])
    return cycles


def validate_graph(graph: Union[str, Dict[str, Any]], canonical_origin: Optional[str] = None) -> ValidationResult:
    stats = _empty_stats()
    if isinstance(graph, (str, bytes)):
        try:
            graph = json.loads(graph)
        except ValueError as e:
            return ValidationResult(valid=False, issues=[_error("JSON Parse", f"Invalid JSON: {e}")], stats=stats)

    issues: List[ValidationIssue] = []
    if not isinstance(graph, dict):
        issues.append(_error("Structure", "Top-level value is not a JSON object"))
        return ValidationResult(valid=False, issues=issues, stats=stats)
    if not graph.get("@context"):
        issues.append(_error("Structure", "Missing @context property"))
    nodes = graph.get("@graph")
    if not isinstance(nodes, list):
        issues.append(_error("Structure", "Missing or invalid @graph array"))
    if issues:
        return ValidationResult(valid=False, issues=issues, stats=stats)

    index = ReferenceIndex(nodes)
    stats = {
        "total_nodes": len(nodes),
        "node_types": dict(index.type_counts),
        "references": index.reference_count,
    }

    # Required nodes
    if not any(has_any_type(n, ORGANIZATION_TYPES) for n in index.nodes):
        issues.append(_error("Required Nodes", "Missing Organization node"))
    if not any(is_page_like(n) for n in index.nodes):
        issues.append(_warning("Required Nodes", "Missing WebPage node"))

    # Dangling references
    for i, node in enumerate(index.nodes):
        where = node_id(node) or f"node-{i}"
        for prop, target in iter_references(node):
            if target in index or is_external_reference(target, canonical_origin):
                continue
            issues.append(
                _error(
                    "Invalid Reference",
                    f'Dangling reference: "{prop}" references non-existent node "{target}"',
                    where,
                )
            )

    # Cycles reachable from the Organization
    org = next((n for n in index.nodes if has_any_type(n, ORGANIZATION_TYPES) and node_id(n)), None)
    if org is not None:
        for cycle in _find_cycles(index, node_id(org)):
            issues.append(_warning("Circular Dependency", "Circular reference detected: " + " → ".join(cycle)))

    # URL consistency
    if canonical_origin:
        for node in index.nodes:
            url = node.get("url")
            if isinstance(url, str) and not is_same_origin(url, canonical_origin):
                issues.append(
                    _warning("URL Consistency", f'Node URL "{url}" does not use canonical base URL', node_id(node))
                )
            nid = node_id(node)
            if nid and not nid.startswith("#") and not is_same_origin(nid, canonical_origin):
                issues.append(_warning("URL Consistency", f'Node @id "{nid}" does not use canonical base URL'))

    # Per-type required properties
    for node in index.nodes:
        nid = node_id(node)
        if has_type(node, "Organization"):
            if not node.get("name"):
                issues.append(_error("Missing Property", 'Organization node missing required "name" property', nid))
            if not node.get("url"):
                issues.append(_warning("Missing Property", 'Organization node missing "url" property', nid))
        if has_type(node, PAGE_TYPE) and not node.get("name") and not node.get("headline"):
            issues.append(_warning("Missing Property", 'WebPage node missing "name" or "headline" property', nid))
        if has_type(node, BRAND_TYPE) and not node.get("name"):
            issues.append(_error("Missing Property", 'Brand node missing required "name" property', nid))

    # Duplicate ids
    for nid, count in index.duplicates().items():
        issues.append(_error("Duplicate ID", f'Duplicate @id found: "{nid}" appears {count} times'))

    valid = not any(i.severity == SEVERITY_ERROR for i in issues)
    return ValidationResult(
        valid=valid,
        issues=issues,
        stats=stats,
        no_commerce_schema=not has_commerce_schema(index.nodes),
    )


def format_issue(issue: ValidationIssue) -> str:
    path = f" ({issue.path})" if issue.path else ""
    return f"[{issue.severity.upper()}] [{issue.category}] {issue.message}{path}"
