"""Page-kind specific canonicalization.

Item detail pages (`/beers/<slug>`) are Brand-first and non-transactional:
- the Brand node at `<page url>#brand` is the primary entity
- a legacy Product node survives only as a link-only stub
- the WebPage node becomes `<page url>#webpage` (WebPage + AboutPage)
- breadcrumbs are always Home > Beers > <item name>

The collection page (`/beers`) links its ItemList entries to those Brand ids.
Every other page gets a hero image on its WebPage node(s) and main entity.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from neamegraph.canonical.context import CanonicalContext
from neamegraph.canonical.graph_steps import rename_references
from neamegraph.config.organization import image_object
from neamegraph.graph.nodes import (
    BRAND_TYPE,
    COMMERCE_PROPERTIES,
    MAIN_SUBJECT_PROPERTIES,
    OFFER_TYPES,
    PAGE_TYPE,
    PRODUCT_TYPE,
    Node,
    has_any_type,
    has_type,
    image_url_of,
    is_reference,
    node_id,
    node_types,
    ref,
    with_types,
)
from neamegraph.images.resolver import resolve_images, resolve_page_hero
from neamegraph.ingestion.url_utils import comparable_url, resolve_url, strip_fragment
from neamegraph.pages.page_types import (
    ITEM_COLLECTION_NAME,
    ITEM_COLLECTION_PATH,
    PAGE_KIND_ITEM_COLLECTION,
    PAGE_KIND_ITEM_DETAIL,
)


logger = logging.getLogger(__name__)

BREADCRUMB_TYPE = "BreadcrumbList"
ITEM_LIST_TYPE = "ItemList"
DETAIL_PAGE_TYPES = (PAGE_TYPE, "AboutPage")
COLLECTION_PAGE_TYPES = (PAGE_TYPE, "CollectionPage")

# Descriptive properties the Brand may inherit from a legacy Product node.
BRAND_COPY_PROPERTIES = ("description", "alternateName", "slogan", "additionalProperty", "image", "logo")

# Link-only shape of the legacy Product node.
SECONDARY_KEEP_PROPERTIES = ("@type", "@id", "url")

FALLBACK_ITEM_NAME = "Beer"


# -----------------------------
# Lookups
# -----------------------------
def _url_matches(node: Node, url: Optional[str]) -> bool:
    value = node.get("url")
    return bool(url) and isinstance(value, str) and comparable_url(value) == comparable_url(url)


def find_page_node(nodes: List[Node], url: Optional[str]) -> Optional[Node]:
    """The WebPage node for `url`; falls back to the first WebPage node."""
    pages = [n for n in nodes if has_type(n, PAGE_TYPE)]
    if url:
        for n in pages:
            if node_id(n) == f"{url}#webpage" or _url_matches(n, url):
                return n
    return pages[0] if pages else None


def _find(nodes: List[Node], nid: str, type_name: str, url: Optional[str], *, exclude: Optional[Node] = None) -> Optional[Node]:
    for n in nodes:
        if n is not exclude and node_id(n) == nid:
            return n
    for n in nodes:
        if n is not exclude and has_type(n, type_name) and _url_matches(n, url):
            return n
    return None


def _page_subject(nodes: List[Node], page: Optional[Node], type_name: str) -> Optional[Node]:
    """Node of `type_name` that the page's mainEntity/about already points at."""
    if page is None:
        return None
    for prop in MAIN_SUBJECT_PROPERTIES:
        value = page.get(prop)
        for item in value if isinstance(value, list) else [value]:
            if not is_reference(item):
                continue
            target = next((n for n in nodes if node_id(n) == item["@id"]), None)
            if target is not None and has_type(target, type_name):
                return target
    return None


def _replace(nodes: List[Node], old: Optional[Node], new: Node) -> List[Node]:
    if old is None:
        return nodes + [new]
    return [new if n is old else n for n in nodes]


def _drop_offers(nodes: List[Node]) -> List[Node]:
    kept = [n for n in nodes if not has_any_type(n, OFFER_TYPES)]
    if len(kept) != len(nodes):
        logger.info("Removed %d Offer node(s) from non-transactional page", len(nodes) - len(kept))
    return kept


def _drop_id_duplicates(nodes: List[Node], keep: Node) -> List[Node]:
    nid = node_id(keep)
    return [n for n in nodes if n is keep or nid is None or node_id(n) != nid]


def _with_page_types(node: Node, page_types: tuple) -> Node:
    others = [t for t in node_types(node) if t not in page_types]
    return with_types(node, others + list(page_types))


# -----------------------------
# Item detail
# -----------------------------
def display_name(page: Optional[Node], ctx: CanonicalContext) -> str:
    """Page title without the site suffix, else the title-cased slug."""
    name = page.get("name") if page else None
    if isinstance(name, str) and name.strip():
        cleaned = name
        for suffix in (ctx.org_config.site_name, ctx.org_config.name):
            if suffix:
                cleaned = re.sub(r"\s*\|\s*" + re.escape(suffix) + r"\s*$", "", cleaned, flags=re.IGNORECASE)
        cleaned = cleaned.strip()
        if cleaned:
            return cleaned
    slug = ctx.classification.slug
    if slug:
        return re.sub(r"\b\w", lambda m: m.group(0).upper(), slug.replace("-", " ")).strip()
    return FALLBACK_ITEM_NAME


def _property_list(value: Any) -> List[Any]:
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        return [value]
    return []


def _add_property_value(props: List[Any], name: str, value: str) -> None:
    if any(isinstance(p, dict) and p.get("name") == name for p in props):
        return
    props.append({"@type": "PropertyValue", "name": name, "value": value})


def enrich_from_metadata(entity: Node, ctx: CanonicalContext) -> Node:
    c = ctx.classification
    out = dict(entity)
    props = _property_list(out.get("additionalProperty"))
    if c.abv is not None:
        _add_property_value(props, "ABV", f"{c.abv:g}%")
    if c.style:
        _add_property_value(props, "Style", c.style)
    if c.notes:
        _add_property_value(props, "Tasting notes", c.notes)
    if props:
        out["additionalProperty"] = props
    if c.launch_year is not None:
        out["foundingDate"] = str(c.launch_year)
    return out


def _first_url(*values: Any) -> Optional[str]:
    for v in values:
        url = image_url_of(v)
        if url:
            return url
    return None


def canonicalize_item_detail(nodes: List[Node], ctx: CanonicalContext) -> List[Node]:
    if ctx.page_kind != PAGE_KIND_ITEM_DETAIL or not ctx.page_url:
        return nodes
    url = ctx.page_url
    brand_id = f"{url}#brand"
    webpage_id = f"{url}#webpage"

    page = find_page_node(nodes, url)
    name = display_name(page, ctx)

    primary = _find(nodes, brand_id, BRAND_TYPE, url) or _page_subject(nodes, page, BRAND_TYPE)
    secondary = _find(nodes, f"{url}#product", PRODUCT_TYPE, url, exclude=primary)
    if secondary is not None and has_type(secondary, BRAND_TYPE):
        secondary = None

    # Primary entity
    brand: Dict[str, Any] = dict(primary) if primary is not None else {"@type": BRAND_TYPE}
    if not has_type(brand, BRAND_TYPE):
        brand = with_types(brand, node_types(brand) + [BRAND_TYPE])
    brand["@id"] = brand_id
    brand["name"] = name
    brand["url"] = url
    brand["mainEntityOfPage"] = ref(webpage_id)
    for prop in COMMERCE_PROPERTIES:
        brand.pop(prop, None)
    if secondary is not None:
        for prop in BRAND_COPY_PROPERTIES:
            if prop not in brand and secondary.get(prop):
                brand[prop] = secondary[prop]
    if "description" not in brand and page is not None and page.get("description"):
        brand["description"] = page["description"]
    brand = enrich_from_metadata(brand, ctx)

    # Images: markup -> metadata override -> legacy node -> existing entity -> org logo
    images = resolve_images(ctx.raw_html, name, ctx.canonical_origin, entity_slug=ctx.classification.slug)
    org_logo = ctx.org_config.logo_url
    hero_url = (
        (images.hero.resolved_url if images.hero else None)
        or ctx.classification.hero_image_url
        or _first_url(secondary.get("image") if secondary else None, brand.get("image"))
        or org_logo
    )
    logo_url = (
        (images.logo.resolved_url if images.logo else None)
        or ctx.classification.logo_url
        or _first_url(secondary.get("logo") if secondary else None, brand.get("logo"))
        or org_logo
    )
    hero = image_object(hero_url, caption=f"{name} hero image")
    logo = image_object(logo_url, caption=f"{name} logo")
    brand["image"] = hero
    brand["logo"] = logo

    # Page node
    web: Dict[str, Any]
    if page is not None:
        web = _with_page_types(page, DETAIL_PAGE_TYPES)
    else:
        web = {
            "@type": list(DETAIL_PAGE_TYPES),
            "name": name,
            "isPartOf": ref(ctx.website_id),
            "publisher": ref(ctx.org_id),
        }
        logger.info("Synthesized WebPage node for %s", url)
    web["@id"] = webpage_id
    web["url"] = url
    web["image"] = hero
    for prop in MAIN_SUBJECT_PROPERTIES:
        web[prop] = ref(brand_id)

    out = _replace(nodes, page, web)
    out = _replace(out, primary, brand)

    if secondary is not None:
        stub = {k: secondary[k] for k in SECONDARY_KEEP_PROPERTIES if k in secondary}
        stub.setdefault("url", url)
        stub["brand"] = ref(brand_id)
        stub["image"] = hero
        stub["logo"] = logo
        out = _replace(out, secondary, stub)

    out = _drop_id_duplicates(out, web)
    out = _drop_id_duplicates(out, brand)
    if page is not None and node_id(page) and node_id(page) != webpage_id:
        out = rename_references(out, node_id(page), webpage_id)
    if primary is not None and node_id(primary) and node_id(primary) != brand_id:
        out = rename_references(out, node_id(primary), brand_id)
    logger.info("Canonicalized item detail page %s as Brand %r", url, name)
    return _drop_offers(out)


def normalize_breadcrumbs(nodes: List[Node], ctx: CanonicalContext) -> List[Node]:
    """Home > collection > item, whatever the draft supplied."""
    if ctx.page_kind != PAGE_KIND_ITEM_DETAIL or not ctx.page_url:
        return nodes
    url = ctx.page_url
    page = find_page_node(nodes, url)
    brand = next((n for n in nodes if node_id(n) == f"{url}#brand"), None)
    name = brand.get("name") if brand else None
    if not isinstance(name, str) or not name:
        name = display_name(page, ctx)

    linked = page.get("breadcrumb") if page else None
    linked_id = linked["@id"] if is_reference(linked) else None
    existing = None
    for n in nodes:
        if has_type(n, BREADCRUMB_TYPE) and (node_id(n) in (f"{url}#breadcrumbs", linked_id)):
            existing = n
            break
    if existing is None:
        existing = next((n for n in nodes if has_type(n, BREADCRUMB_TYPE)), None)

    origin = ctx.canonical_origin
    crumbs = dict(existing) if existing is not None else {"@type": BREADCRUMB_TYPE}
    crumbs["@id"] = node_id(existing) or f"{url}#breadcrumbs"
    crumbs["itemListElement"] = [
        {"@type": "ListItem", "position": 1, "name": "Home", "item": origin + "/"},
        {"@type": "ListItem", "position": 2, "name": ITEM_COLLECTION_NAME, "item": origin + ITEM_COLLECTION_PATH},
        {"@type": "ListItem", "position": 3, "name": name, "item": url},
    ]
    out = _replace(nodes, existing, crumbs)
    out = _drop_id_duplicates(out, crumbs)
    if page is not None:
        web = dict(page)
        web["breadcrumb"] = ref(crumbs["@id"])
        out = _replace(out, page, web)
    return out


# -----------------------------
# Collection page
# -----------------------------
def _list_item_url(entry: Any, origin: str) -> Optional[str]:
    if not isinstance(entry, dict):
        return None
    item = entry.get("item")
    raw: Optional[str] = None
    if isinstance(item, str):
        raw = item
    elif isinstance(item, dict):
        if isinstance(item.get("url"), str):
            raw = item["url"]
        elif isinstance(item.get("@id"), str):
            raw = strip_fragment(item["@id"])
    if not raw:
        return None
    return comparable_url(resolve_url(raw, origin))


def link_collection(nodes: List[Node], ctx: CanonicalContext) -> List[Node]:
    if ctx.page_kind != PAGE_KIND_ITEM_COLLECTION:
        return nodes
    entities: Dict[str, str] = {}
    for type_name in (BRAND_TYPE, PRODUCT_TYPE):
        for n in nodes:
            nid = node_id(n)
            if nid and has_type(n, type_name) and isinstance(n.get("url"), str):
                entities.setdefault(comparable_url(n["url"]), nid)

    out = nodes
    item_list = next((n for n in nodes if has_type(n, ITEM_LIST_TYPE)), None)
    if item_list is not None:
        raw_entries = item_list.get("itemListElement")
        entries = raw_entries if isinstance(raw_entries, list) else ([raw_entries] if raw_entries else [])
        linked = 0
        new_entries: List[Any] = []
        for entry in entries:
            target = entities.get(_list_item_url(entry, ctx.canonical_origin) or "")
            if target is None:
                new_entries.append(entry)
                continue
            entry = dict(entry)
            entry["item"] = ref(target)
            new_entries.append(entry)
            linked += 1
        updated = dict(item_list)
        if entries:
            updated["itemListElement"] = new_entries
        updated["numberOfItems"] = len(new_entries)
        out = _replace(out, item_list, updated)
        logger.info("Linked %d of %d collection entries to entity ids", linked, len(entries))
        item_list = updated

    page = find_page_node(out, ctx.page_url)
    if page is not None:
        web = _with_page_types(page, COLLECTION_PAGE_TYPES)
        list_id = node_id(item_list) if item_list is not None else None
        if list_id:
            for prop in MAIN_SUBJECT_PROPERTIES:
                web[prop] = ref(list_id)
        out = _replace(out, page, web)
    return _drop_offers(out)


# -----------------------------
# External identifiers
# -----------------------------
_QID_RE = re.compile(r"(Q\d+)$", re.IGNORECASE)


def wikidata_url(qid: str) -> str:
    value = qid.strip()
    if value.startswith("http://") or value.startswith("https://"):
        return value
    return f"https://www.wikidata.org/wiki/{value.upper()}"


def _same_identifier(a: str, b: str) -> bool:
    if a == b:
        return True
    ma, mb = _QID_RE.search(a.rstrip("/")), _QID_RE.search(b.rstrip("/"))
    return bool(ma and mb and "wikidata" in a and "wikidata" in b and ma.group(1).upper() == mb.group(1).upper())


def inject_external_identifier(nodes: List[Node], ctx: CanonicalContext) -> List[Node]:
    qid = ctx.classification.wikidata_qid
    if not qid:
        return nodes
    target_id = f"{ctx.page_url}#brand" if ctx.page_kind == PAGE_KIND_ITEM_DETAIL and ctx.page_url else None
    entity = None
    if target_id:
        entity = next((n for n in nodes if node_id(n) == target_id), None)
    if entity is None:
        entity = next((n for n in nodes if has_type(n, BRAND_TYPE)), None)
    if entity is None:
        return nodes

    link = wikidata_url(qid)
    same_as = entity.get("sameAs")
    links = [same_as] if isinstance(same_as, str) else list(same_as) if isinstance(same_as, list) else []
    if any(isinstance(s, str) and _same_identifier(s, link) for s in links):
        if isinstance(same_as, list):
            return nodes
    else:
        links.append(link)
    updated = dict(entity)
    updated["sameAs"] = links
    return _replace(nodes, entity, updated)


# -----------------------------
# Hero image for every other page
# -----------------------------
def apply_page_hero(nodes: List[Node], ctx: CanonicalContext) -> List[Node]:
    if ctx.page_kind == PAGE_KIND_ITEM_DETAIL:
        return nodes
    found = resolve_page_hero(ctx.raw_html, ctx.canonical_origin)
    hero_url = found.url if found else ctx.org_config.default_hero_url
    if not hero_url:
        return nodes
    hero = image_object(hero_url, caption=found.caption if found else None)

    out: List[Node] = []
    for n in nodes:
        if has_type(n, PAGE_TYPE):
            n = dict(n)
            n["image"] = hero
            n["primaryImageOfPage"] = hero
        out.append(n)

    page = find_page_node(out, ctx.page_url)
    main_id = None
    if page is not None:
        for prop in MAIN_SUBJECT_PROPERTIES:
            if is_reference(page.get(prop)):
                main_id = page[prop]["@id"]
                break
    if not main_id or main_id in (ctx.org_id, ctx.website_id):
        return out
    entity = next((n for n in out if node_id(n) == main_id), None)
    if entity is None or has_type(entity, PAGE_TYPE):
        return out
    updated = dict(entity)
    updated["image"] = hero
    if not updated.get("logo"):
        updated["logo"] = image_object(ctx.org_config.logo_url)
    return _replace(out, entity, updated)
