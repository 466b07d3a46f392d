"""Type and reference predicates over JSON-LD nodes.

Nodes stay plain dicts. A node may carry several overlapping `@type` tags,
so every rule asks "has type X" instead of dispatching on a class.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple


Node = Dict[str, Any]

CONTEXT = "https://schema.org"

ORGANIZATION_TYPES = ("Organization", "Corporation")
WEBSITE_TYPE = "WebSite"
PAGE_TYPE = "WebPage"
BRAND_TYPE = "Brand"
PRODUCT_TYPE = "Product"
FAQ_TYPES = ("FAQPage", "Question", "Answer")
OFFER_TYPES = ("Offer", "AggregateOffer")
COMMERCE_PROPERTIES = ("offers", "price", "priceCurrency", "availability")

# Properties through which other nodes point at the Organization.
ORG_LINK_PROPERTIES = ("publisher", "manufacturer", "parentOrganization", "brand")
MAIN_SUBJECT_PROPERTIES = ("mainEntity", "about")


def node_types(node: Any) -> List[str]:
    if not isinstance(node, dict):
        return []
    raw = node.get("@type")
    if raw is None:
        return []
    if isinstance(raw, list):
        return [t for t in raw if isinstance(t, str) and t]
    return [raw] if isinstance(raw, str) and raw else []


def has_type(node: Any, type_name: str) -> bool:
    return type_name in node_types(node)


def has_any_type(node: Any, type_names: Iterable[str]) -> bool:
    types = node_types(node)
    return any(t in types for t in type_names)


def is_page_like(node: Any) -> bool:
    """WebPage or any specialised *Page type (AboutPage, CollectionPage, ...)."""
    return any(t == PAGE_TYPE or t.endswith("Page") for t in node_types(node))


def node_id(node: Any) -> Optional[str]:
    if not isinstance(node, dict):
        return None
    value = node.get("@id")
    return value if isinstance(value, str) and value else None


def ref(target_id: str) -> Dict[str, str]:
    return {"@id": target_id}


def is_reference(value: Any) -> bool:
    """`{"@id": ...}` optionally with other `@`-keywords; embedded nodes with data don't count."""
    if not isinstance(value, dict):
        return False
    target = value.get("@id")
    if not isinstance(target, str) or not target:
        return False
    return all(isinstance(k, str) and k.startswith("@") for k in value)


def is_reference_to(value: Any, target_id: str) -> bool:
    return is_reference(value) and value["@id"] == target_id


def is_bare_reference_to(value: Any, target_id: str) -> bool:
    """Exactly `{"@id": target_id}`, nothing else."""
    return isinstance(value, dict) and value == {"@id": target_id}


def links_to(value: Any, target_id: str) -> bool:
    """Reference or plain string id pointing at `target_id`; for a list, any item."""
    if isinstance(value, list):
        return any(links_to(item, target_id) for item in value)
    if isinstance(value, str):
        return value == target_id
    return is_reference_to(value, target_id)


def iter_references(node: Node) -> Iterator[Tuple[str, str]]:
    """Yield (property, referenced id) for every reference-shaped value of a node.

    Only top-level property values and list items are inspected; `@`-keywords
    are skipped.
    """
    if not isinstance(node, dict):
        return
    for key, value in node.items():
        if key.startswith("@"):
            continue
        items = value if isinstance(value, list) else [value]
        for item in items:
            if is_reference(item):
                yield key, item["@id"]


def with_types(node: Node, types: List[str]) -> Node:
    """Copy of `node` with its type set replaced, keeping string form for one type."""
    out = dict(node)
    if isinstance(node.get("@type"), list) or len(types) != 1:
        out["@type"] = list(types)
    else:
        out["@type"] = types[0]
    return out


def ensure_types(node: Node, required: Iterable[str]) -> Node:
    types = node_types(node)
    missing = [t for t in required if t not in types]
    if not missing:
        return node
    return with_types(node, types + missing)


def has_commerce_schema(nodes: Iterable[Any]) -> bool:
    """Offer types or transactional properties anywhere in the graph."""
    for node in nodes:
        if not isinstance(node, dict):
            continue
        if has_any_type(node, OFFER_TYPES):
            return True
        if any(node.get(p) for p in COMMERCE_PROPERTIES):
            return True
    return False


def image_url_of(value: Any) -> Optional[str]:
    """Extract a URL from an image-ish value (string, ImageObject, or list of either)."""
    if not value:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, list):
        for item in value:
            url = image_url_of(item)
            if url:
                return url
        return None
    if isinstance(value, dict):
        for key in ("url", "contentUrl"):
            v = value.get(key)
            if isinstance(v, str) and v.strip():
                return v.strip()
    return None
