"""Human-oriented summary of a canonical graph (main entity, key facts, images)."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

from neamegraph.graph.nodes import (
    BRAND_TYPE,
    MAIN_SUBJECT_PROPERTIES,
    ORGANIZATION_TYPES,
    has_any_type,
    has_commerce_schema,
    image_url_of,
    is_reference,
    node_id,
    node_types,
)
from neamegraph.ingestion.url_utils import resolve_url


logger = logging.getLogger(__name__)

ARTICLE_TYPES = ("NewsArticle", "BlogPosting", "Article")

# additionalProperty name (lowercased) -> key fact
BRAND_FACT_NAMES: Dict[str, str] = {
    "abv": "abv",
    "style": "style",
    "colour": "colour",
    "color": "colour",
    "aroma": "aroma",
    "taste": "taste",
    "tasting notes": "tasting_notes",
    "water source": "water_source",
    "hops": "hops",
    "awards": "awards",
    "award": "awards",
    "heritage": "heritage",
    "formats": "formats",
    "provenance": "provenance",
    "geographical protection": "provenance",
    "geographical protection status": "provenance",
}


@dataclass(frozen=True)
class MainEntityInfo:
    type: str
    name: str
    id: Optional[str] = None


@dataclass(frozen=True)
class SchemaSummary:
    main_entity: Optional[MainEntityInfo] = None
    has_organization: bool = False
    collections: List[Dict[str, str]] = field(default_factory=list)
    key_facts: Dict[str, Any] = field(default_factory=dict)
    has_main_entity: bool = False
    no_commerce_schema: bool = True
    page_type: Optional[str] = None
    images: Dict[str, Optional[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _name_of(value: Any, by_id: Dict[str, Dict[str, Any]]) -> Optional[str]:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return _name_of(value[0], by_id) if value else None
    if isinstance(value, dict):
        if value.get("name"):
            return value["name"]
        if is_reference(value):
            return (by_id.get(value["@id"]) or {}).get("name")
    return None


def _brand_facts(entity: Dict[str, Any]) -> Dict[str, Any]:
    facts: Dict[str, Any] = {"type": "beer"}
    raw = entity.get("additionalProperty")
    props = raw if isinstance(raw, list) else [raw] if isinstance(raw, dict) else []
    extra = []
    for prop in props:
        if not isinstance(prop, dict) or not prop.get("value"):
            continue
        raw_name = str(prop.get("name") or "")
        key = BRAND_FACT_NAMES.get(raw_name.lower())
        if key:
            facts[key] = prop["value"]
        else:
            extra.append({"name": raw_name, "value": prop["value"]})
    if extra:
        facts["extra_properties"] = extra
    facts["has_image"] = bool(entity.get("image"))
    facts["has_logo"] = bool(entity.get("logo"))
    return facts


def _image(value: Any, canonical_origin: str) -> Optional[str]:
    url = image_url_of(value)
    return resolve_url(url, canonical_origin) if url else None


def summarize_graph(graph: Union[str, Dict[str, Any]], canonical_origin: str = "") -> SchemaSummary:
    if isinstance(graph, str):
        try:
            graph = json.loads(graph)
        except ValueError as e:
            logger.warning("Cannot summarize unparseable graph: %s", e)
            return SchemaSummary()
    if not isinstance(graph, dict) or not isinstance(graph.get("@graph"), list):
        return SchemaSummary()

    nodes = [n for n in graph["@graph"] if isinstance(n, dict)]
    by_id = {}
    for n in nodes:
        by_id.setdefault(node_id(n), n)

    org = next((n for n in nodes if "#organization" in (node_id(n) or "") or has_any_type(n, ORGANIZATION_TYPES)), None)
    page = next((n for n in nodes if any("Page" in t for t in node_types(n))), None)

    entity = None
    if page is not None:
        for prop in MAIN_SUBJECT_PROPERTIES:
            if is_reference(page.get(prop)):
                entity = by_id.get(page[prop]["@id"])
                break
    info = None
    if entity is not None:
        info = MainEntityInfo(
            type=", ".join(node_types(entity)),
            name=entity.get("name") or "Unnamed entity",
            id=node_id(entity),
        )

    collections = [
        {"name": n["name"], "url": n["url"]}
        for n in nodes
        if "CollectionPage" in node_types(n) and n.get("name") and n.get("url")
    ]

    facts: Dict[str, Any] = {}
    if entity is not None:
        types = node_types(entity)
        if entity.get("description"):
            facts["description"] = entity["description"]
        if BRAND_TYPE in types:
            facts.update(_brand_facts(entity))
        elif any(t in ARTICLE_TYPES for t in types):
            facts["type"] = "article"
            facts["headline"] = entity.get("headline")
            facts["date_published"] = entity.get("datePublished")
            author = _name_of(entity.get("author"), by_id)
            if author:
                facts["author"] = author
            publisher = _name_of(entity.get("publisher"), by_id)
            if publisher:
                facts["publisher"] = publisher
        elif any("Page" in t for t in types):
            facts["type"] = "page"
            facts["page_type"] = next(t for t in types if "Page" in t)
            about = _name_of(entity.get("about"), by_id)
            if about:
                facts["about"] = about

    return SchemaSummary(
        main_entity=info,
        has_organization=org is not None,
        collections=collections,
        key_facts=facts,
        has_main_entity=entity is not None,
        no_commerce_schema=not has_commerce_schema(nodes),
        page_type=info.type if info else None,
        images={
            "web_page_image": _image(page.get("image") if page else None, canonical_origin),
            "entity_image": _image(entity.get("image") if entity else None, canonical_origin),
            "entity_logo": _image(entity.get("logo") if entity else None, canonical_origin),
        },
    )
