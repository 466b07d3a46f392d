"""Structural canonicalization steps that apply to every page.

Each step takes the current node list and returns a new one. Nodes that a
step changes are shallow-copied first; untouched nodes are passed through.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Set

from neamegraph.canonical.context import CanonicalContext
from neamegraph.config.organization import build_organization_node, build_website_node
from neamegraph.graph.nodes import (
    FAQ_TYPES,
    ORGANIZATION_TYPES,
    PAGE_TYPE,
    WEBSITE_TYPE,
    Node,
    has_any_type,
    has_type,
    is_bare_reference_to,
    is_reference,
    node_id,
    node_types,
    ref,
    with_types,
)
from neamegraph.ingestion.url_utils import is_external_reference


logger = logging.getLogger(__name__)

# Properties whose plain-string items are node ids rather than literals.
STRING_ID_PROPERTIES = ("hasPart",)


def enforce_website(nodes: List[Node], ctx: CanonicalContext) -> List[Node]:
    """Exactly one WebSite node, carrying the fixed id and publisher."""
    website_id = ctx.website_id
    existing: Optional[Node] = None
    out: List[Node] = []
    for node in nodes:
        if node_id(node) == website_id:
            if existing is None:
                existing = node
                out.append(node)
            continue
        if has_type(node, WEBSITE_TYPE):
            logger.debug("Dropping extra WebSite node %s", node_id(node))
            continue
        out.append(node)

    if existing is None:
        website = build_website_node(ctx.org_config)
        website["url"] = ctx.canonical_origin
        logger.info("Synthesized WebSite node %s", website_id)
        return out + [website]

    website = dict(existing)
    website["@type"] = WEBSITE_TYPE
    website["url"] = ctx.canonical_origin
    website["publisher"] = ref(ctx.org_id)
    return [website if n is existing else n for n in out]


def enforce_organization(nodes: List[Node], ctx: CanonicalContext) -> List[Node]:
    """Replace every Organization-ish node with one built from configuration.

    The Organization and WebSite nodes lead the returned list.
    """
    org = build_organization_node(ctx.org_config)
    website: Optional[Node] = None
    rest: List[Node] = []
    dropped = 0
    for node in nodes:
        nid = node_id(node)
        if nid == ctx.website_id and website is None:
            website = node
            continue
        if nid == ctx.org_id or has_any_type(node, ORGANIZATION_TYPES):
            dropped += 1
            continue
        rest.append(node)
    if dropped:
        logger.debug("Replaced %d draft Organization node(s) with configured node", dropped)
    head = [org] + ([website] if website is not None else [])
    return head + rest


def repair_page_links(nodes: List[Node], ctx: CanonicalContext) -> List[Node]:
    """WebPage nodes point `isPartOf` at the WebSite and `publisher` at the Organization."""
    out: List[Node] = []
    for node in nodes:
        if not has_type(node, PAGE_TYPE):
            out.append(node)
            continue
        page = dict(node)
        page["isPartOf"] = ref(ctx.website_id)
        if not is_bare_reference_to(page.get("publisher"), ctx.org_id):
            page["publisher"] = ref(ctx.org_id)
        out.append(page)
    return out


def remove_faq(nodes: List[Node], ctx: CanonicalContext) -> List[Node]:
    """Strip FAQ types unless the page is flagged as carrying visible FAQ content."""
    if ctx.classification.faq_allowed:
        return nodes
    out: List[Node] = []
    removed = 0
    for node in nodes:
        types = node_types(node)
        remaining = [t for t in types if t not in FAQ_TYPES]
        if len(remaining) == len(types):
            out.append(node)
        elif remaining:
            out.append(with_types(node, remaining))
        else:
            removed += 1
    if removed:
        logger.info("Removed %d FAQ node(s)", removed)
    return out


def _keeps(target: str, ids: Set[str], canonical_origin: str) -> bool:
    return target in ids or is_external_reference(target, canonical_origin)


def _clean_value(key: str, value: Any, ids: Set[str], canonical_origin: str) -> Any:
    """Cleaned property value, or None when nothing resolvable is left."""
    string_ids = key in STRING_ID_PROPERTIES
    if isinstance(value, list):
        kept: List[Any] = []
        removed = 0
        for item in value:
            if is_reference(item):
                if _keeps(item["@id"], ids, canonical_origin):
                    kept.append(item)
                else:
                    removed += 1
            elif string_ids and isinstance(item, str):
                if item in ids:
                    kept.append(ref(item))
                elif is_external_reference(item, canonical_origin):
                    kept.append(item)
                else:
                    removed += 1
            else:
                kept.append(item)
        # Only a list emptied by this cleanup is deleted; literal [] stays.
        return None if removed and not kept else kept
    if is_reference(value):
        return value if _keeps(value["@id"], ids, canonical_origin) else None
    if string_ids and isinstance(value, str):
        if value in ids:
            return ref(value)
        return value if is_external_reference(value, canonical_origin) else None
    return value


def remove_dangling_references(nodes: List[Node], ctx: CanonicalContext) -> List[Node]:
    """Drop references to ids missing from the graph; delete properties left empty."""
    ids = {nid for nid in (node_id(n) for n in nodes) if nid}
    out: List[Node] = []
    dropped = 0
    for node in nodes:
        cleaned: Dict[str, Any] = {}
        changed = False
        for key, value in node.items():
            if key.startswith("@"):
                cleaned[key] = value
                continue
            new_value = _clean_value(key, value, ids, ctx.canonical_origin)
            if new_value is None:
                changed = True
                dropped += 1
                continue
            if new_value != value:
                changed = True
            cleaned[key] = new_value
        out.append(cleaned if changed else node)
    if dropped:
        logger.info("Removed %d dangling reference propert(ies)", dropped)
    return out


def rename_references(nodes: List[Node], old_id: str, new_id: str) -> List[Node]:
    """Repoint top-level references from `old_id` to `new_id`."""
    if old_id == new_id:
        return nodes
    out: List[Node] = []
    for node in nodes:
        changed = False
        copy: Dict[str, Any] = {}
        for key, value in node.items():
            if key.startswith("@"):
                copy[key] = value
            elif isinstance(value, list):
                items = [ref(new_id) if is_reference(i) and i["@id"] == old_id else i for i in value]
                changed = changed or items != value
                copy[key] = items
            elif is_reference(value) and value["@id"] == old_id:
                copy[key] = ref(new_id)
                changed = True
            else:
                copy[key] = value
        out.append(copy if changed else node)
    return out
