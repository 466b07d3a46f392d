"""Draft graph -> canonical graph.

The step order matters: later steps rely on earlier ones (the item name used
by breadcrumbs comes from the Brand built in the item-detail step, and the
final sweep catches references orphaned by id rewrites).
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from neamegraph.canonical import graph_steps, item_pages
from neamegraph.canonical.context import CanonicalContext
from neamegraph.config.organization import DEFAULT_ORGANIZATION, OrganizationConfig
from neamegraph.graph.nodes import CONTEXT, Node
from neamegraph.pages.page_types import PageClassification


logger = logging.getLogger(__name__)

Step = Callable[[List[Node], CanonicalContext], List[Node]]

STEPS: Sequence[Tuple[str, Step]] = (
    ("website", graph_steps.enforce_website),
    ("organization", graph_steps.enforce_organization),
    ("page_links", graph_steps.repair_page_links),
    ("faq", graph_steps.remove_faq),
    ("dangling_references", graph_steps.remove_dangling_references),
    ("item_detail", item_pages.canonicalize_item_detail),
    ("breadcrumbs", item_pages.normalize_breadcrumbs),
    ("collection", item_pages.link_collection),
    ("external_identifier", item_pages.inject_external_identifier),
    ("page_hero", item_pages.apply_page_hero),
    ("reference_sweep", graph_steps.remove_dangling_references),
)


def canonicalize(
    draft_graph: Dict[str, Any],
    classification: PageClassification,
    raw_html: Optional[str] = None,
    org_config: OrganizationConfig = DEFAULT_ORGANIZATION,
    canonical_origin: Optional[str] = None,
) -> Dict[str, Any]:
    """Return a new canonical graph; `draft_graph` is left untouched."""
    ctx = CanonicalContext.build(classification, org_config, canonical_origin, raw_html)
    graph = copy.deepcopy(draft_graph) if isinstance(draft_graph, dict) else {}

    raw_nodes = graph.get("@graph")
    nodes: List[Node] = [n for n in raw_nodes if isinstance(n, dict)] if isinstance(raw_nodes, list) else []
    for name, step in STEPS:
        before = len(nodes)
        nodes = step(nodes, ctx)
        logger.debug("step %s: %d -> %d nodes", name, before, len(nodes))

    graph["@context"] = graph.get("@context") or CONTEXT
    graph["@graph"] = nodes
    return graph
