"""Hero/logo image resolution from raw page HTML.

Candidates come from, in order of trust:
- `og:image` meta tag (meta-primary)
- `twitter:image` meta tag (meta-secondary)
- inline `<img>` elements

Image-optimizer URLs (`/_next/image?url=...`) are unwrapped so matching runs
on the real asset path. Persisted URLs prefer the unwrapped asset-host URL;
the wrapper is kept only when the inner URL lives elsewhere.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup

from neamegraph.ingestion.url_utils import is_absolute_http, resolve_url


logger = logging.getLogger(__name__)


SOURCE_META_PRIMARY = "meta-primary"
SOURCE_META_SECONDARY = "meta-secondary"
SOURCE_INLINE = "inline"

OPTIMIZER_PATH = "/_next/image"
ASSET_HOST = "https://snsites.co.uk"
ASSET_PREFIX = ASSET_HOST + "/sites/default/files/"
LEGACY_CMS_PATH = "/sites/default/files/"

# Paths that 404 on the live site regardless of how they are reached.
BLOCKED_PATH_PATTERNS = (
    "/themes/custom/shepherdneame/images/beers/",
    "/sites/default/files/styles/d8/public/image/",
    "/sites/default/files/image/2023-03/",
    "/styles/sn_wysiwyg_",
    "sprite",
    "favicon",
    "icon-",
    "logo-sheps",
    "/icons/",
)

HERO_KEYWORDS = ("page_hero", "hero_")
LOGO_KEYWORDS = ("logo", "lockup", "pumpclip", "badge", "roundel")
PACKSHOT_KEYWORDS = ("bottle", "pack", "can")

RELATED_HEADINGS = (
    "collection",
    "you might also like",
    "other beers",
    "related beers",
    "more beers",
    "discover more",
)
RELATED_CLASS_PATTERNS = ("carousel", "slider", "related", "collection-strip", "beer-grid", "other-beers")
RELATED_ID_PATTERNS = ("related", "collection")
SECTION_TAGS = ("section", "aside", "div", "ul", "ol", "li", "nav", "figure")
MAX_SECTION_DEPTH = 10


@dataclass(frozen=True)
class ImageCandidate:
    display_url: str
    inner_url: str
    resolved_url: str
    is_wrapped: bool
    source: str
    alt: str = ""
    in_related_section: bool = False


@dataclass(frozen=True)
class ResolvedImages:
    hero: Optional[ImageCandidate] = None
    logo: Optional[ImageCandidate] = None


@dataclass(frozen=True)
class PageHero:
    url: str
    caption: Optional[str] = None


# -----------------------------
# URL handling
# -----------------------------
def unwrap_optimizer_url(display_url: str) -> Optional[str]:
    """Inner URL of an image-optimizer wrapper, decoded exactly once."""
    p = urlparse(display_url)
    if p.path != OPTIMIZER_PATH:
        return None
    values = parse_qs(p.query).get("url")
    if not values or not values[0]:
        return None
    return values[0]


def _absolute_inner(inner: str, canonical_origin: str) -> str:
    if is_absolute_http(inner):
        return inner
    if inner.startswith("//"):
        return "https:" + inner
    if inner.startswith("/sites/") or inner.startswith("sites/"):
        return urljoin(ASSET_HOST + "/", inner)
    return resolve_url(inner, canonical_origin)


def persistable_url(inner_url: str, display_url: str) -> str:
    if inner_url.startswith(ASSET_PREFIX):
        return inner_url
    return display_url


def make_candidate(raw: str, source: str, canonical_origin: str, *, alt: str = "", in_related_section: bool = False) -> ImageCandidate:
    display = resolve_url(raw, canonical_origin)
    inner = unwrap_optimizer_url(display)
    wrapped = inner is not None
    inner_url = _absolute_inner(inner, canonical_origin) if wrapped else display
    return ImageCandidate(
        display_url=display,
        inner_url=inner_url,
        resolved_url=persistable_url(inner_url, display),
        is_wrapped=wrapped,
        source=source,
        alt=alt,
        in_related_section=in_related_section,
    )


def is_blocked(candidate: ImageCandidate, canonical_origin: str) -> bool:
    lower = candidate.inner_url.lower()
    if any(p in lower for p in BLOCKED_PATH_PATTERNS):
        return True
    # Legacy CMS paths on the canonical host are only alive behind the optimizer.
    if candidate.is_wrapped:
        return False
    site = _bare_host(canonical_origin)
    p = urlparse(lower)
    return bool(site) and _bare_host(lower) == site and p.path.startswith(LEGACY_CMS_PATH)


def _bare_host(url: str) -> str:
    """Lowercased host without scheme, port or a leading `www.`."""
    host = (urlparse(url or "").hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


# -----------------------------
# Candidate collection
# -----------------------------
def _is_in_related_section(img) -> bool:
    depth = 0
    for parent in img.parents:
        if depth >= MAX_SECTION_DEPTH or parent.name in ("main", "article", "body", "html", "[document]"):
            break
        depth += 1
        classes = " ".join(parent.get("class") or []).lower()
        pid = (parent.get("id") or "").lower()
        if any(p in classes for p in RELATED_CLASS_PATTERNS) or any(p in pid for p in RELATED_ID_PATTERNS):
            return True
        if parent.name in SECTION_TAGS:
            for h in parent.find_all(["h2", "h3", "h4"]):
                text = h.get_text(" ", strip=True).lower()
                if any(k in text for k in RELATED_HEADINGS):
                    return True
    return False


def collect_candidates(soup: BeautifulSoup, canonical_origin: str) -> List[ImageCandidate]:
    candidates: List[ImageCandidate] = []

    og = soup.find("meta", attrs={"property": "og:image"}) or soup.find("meta", attrs={"name": "og:image"})
    if og and og.get("content"):
        candidates.append(make_candidate(og["content"], SOURCE_META_PRIMARY, canonical_origin))

    tw = soup.find("meta", attrs={"name": "twitter:image"}) or soup.find("meta", attrs={"property": "twitter:image"})
    if tw and tw.get("content"):
        candidates.append(make_candidate(tw["content"], SOURCE_META_SECONDARY, canonical_origin))

    for img in soup.find_all("img"):
        src = img.get("src") or img.get("data-src")
        if not src or src.startswith("data:"):
            continue
        candidates.append(
            make_candidate(
                src,
                SOURCE_INLINE,
                canonical_origin,
                alt=img.get("alt") or "",
                in_related_section=_is_in_related_section(img),
            )
        )
    return candidates


# -----------------------------
# Matching predicates
# -----------------------------
def _filename(url: str) -> str:
    return urlparse(url.lower()).path.rsplit("/", 1)[-1]


def is_hero_like(c: ImageCandidate) -> bool:
    lower = c.inner_url.lower()
    return any(k in lower for k in HERO_KEYWORDS)


def is_logo_like(c: ImageCandidate) -> bool:
    name = _filename(c.inner_url)
    return any(k in name for k in LOGO_KEYWORDS)


class EntityMatcher:
    """Does a URL (or alt text) mention the entity by name or slug?"""

    def __init__(self, entity_name: str, entity_slug: Optional[str] = None):
        self.compact = re.sub(r"[^a-z0-9]", "", (entity_name or "").lower())
        slug = (entity_slug or entity_name or "").lower()
        slug = re.sub(r"\s+", "-", slug.strip())
        self.slug = re.sub(r"[^a-z0-9-]", "", slug)
        self.slug_underscore = self.slug.replace("-", "_")

    def matches(self, c: ImageCandidate, *, use_alt: bool = False) -> bool:
        texts = [c.inner_url.lower()]
        if use_alt and c.alt:
            texts.append(c.alt.lower())
        for text in texts:
            if self.compact and self.compact in re.sub(r"[^a-z0-9]", "", text):
                return True
            if self.slug and self.slug in text:
                return True
            if self.slug_underscore and self.slug_underscore in text:
                return True
        return False

    def is_packshot(self, c: ImageCandidate) -> bool:
        name = _filename(c.inner_url)
        return any(k in name for k in PACKSHOT_KEYWORDS) and self.matches(c)


# -----------------------------
# Priority chains
# -----------------------------
Predicate = Callable[[ImageCandidate, EntityMatcher], bool]

HERO_PRIORITY: Sequence[Tuple[str, Predicate]] = (
    ("primary meta tag with hero keyword", lambda c, m: c.source == SOURCE_META_PRIMARY and is_hero_like(c)),
    ("wrapped with hero keyword", lambda c, m: c.is_wrapped and is_hero_like(c)),
    ("hero keyword", lambda c, m: is_hero_like(c)),
    ("wrapped with entity name", lambda c, m: c.is_wrapped and m.matches(c)),
    ("entity name", lambda c, m: m.matches(c)),
    ("pack shot with entity name", lambda c, m: m.is_packshot(c)),
    ("primary meta tag", lambda c, m: c.source == SOURCE_META_PRIMARY),
)

LOGO_PRIORITY: Sequence[Tuple[str, Predicate]] = (
    ("wrapped entity logo in main content", lambda c, m: c.is_wrapped and not c.in_related_section and m.matches(c, use_alt=True) and is_logo_like(c)),
    ("entity logo in main content", lambda c, m: not c.in_related_section and m.matches(c, use_alt=True) and is_logo_like(c)),
    ("wrapped entity logo", lambda c, m: c.is_wrapped and m.matches(c, use_alt=True) and is_logo_like(c)),
    ("entity logo", lambda c, m: m.matches(c, use_alt=True) and is_logo_like(c)),
    ("wrapped logo in main content", lambda c, m: c.is_wrapped and not c.in_related_section and is_logo_like(c)),
    ("logo in main content", lambda c, m: not c.in_related_section and is_logo_like(c)),
    ("wrapped logo", lambda c, m: c.is_wrapped and is_logo_like(c)),
    ("logo", lambda c, m: is_logo_like(c)),
)


def pick_candidate(
    candidates: Sequence[ImageCandidate],
    priority: Sequence[Tuple[str, Predicate]],
    matcher: EntityMatcher,
) -> Tuple[Optional[str], Optional[ImageCandidate]]:
    """First candidate satisfying the earliest rule in `priority`."""
    for label, predicate in priority:
        for c in candidates:
            if predicate(c, matcher):
                return label, c
    return None, None


def candidate_pool(candidates: Sequence[ImageCandidate]) -> List[ImageCandidate]:
    """Asset-host candidates when there are any, else everything (wrapped and og:image first)."""
    on_asset_host = [c for c in candidates if c.inner_url.lower().startswith(ASSET_PREFIX)]
    if on_asset_host:
        return on_asset_host
    return sorted(candidates, key=lambda c: (not c.is_wrapped, c.source != SOURCE_META_PRIMARY))


def resolve_images(
    raw_html: str,
    entity_name: str,
    canonical_origin: str,
    *,
    entity_slug: Optional[str] = None,
) -> ResolvedImages:
    if not raw_html or not raw_html.strip():
        return ResolvedImages()
    soup = BeautifulSoup(raw_html, "lxml")
    candidates = [c for c in collect_candidates(soup, canonical_origin) if not is_blocked(c, canonical_origin)]
    pool = candidate_pool(candidates)
    matcher = EntityMatcher(entity_name, entity_slug)

    hero_rule, hero = pick_candidate(pool, HERO_PRIORITY, matcher)
    logo_rule, logo = pick_candidate(pool, LOGO_PRIORITY, matcher)
    logger.debug(
        "Image resolution for %r: %d candidates, hero=%s (%s), logo=%s (%s)",
        entity_name,
        len(candidates),
        hero.resolved_url if hero else None,
        hero_rule,
        logo.resolved_url if logo else None,
        logo_rule,
    )
    return ResolvedImages(hero=hero, logo=logo)


# -----------------------------
# Generic page hero (non item-detail pages)
# -----------------------------
_IMAGE_EXT_RE = re.compile(r"\.(jpg|jpeg|png|webp|gif|avif)(\?|$|#)", re.IGNORECASE)
_SOCIAL_PATTERNS = ("facebook", "twitter", "instagram", "linkedin", "youtube", "x.com", "social")


def _page_image_url(raw: str, canonical_origin: str) -> Optional[str]:
    if not raw or not raw.strip():
        return None
    display = resolve_url(raw, canonical_origin)
    inner = unwrap_optimizer_url(display)
    if inner is not None:
        return _absolute_inner(inner, canonical_origin)
    return display


def is_likely_image_url(url: str) -> bool:
    lower = url.lower()
    return bool(_IMAGE_EXT_RE.search(lower)) or LEGACY_CMS_PATH in lower or "/styles/" in lower or "snsites.co.uk" in lower


def should_exclude_image(src: str, alt: str = "", class_name: str = "") -> bool:
    s, a, k = src.lower(), alt.lower(), class_name.lower()
    if s.endswith(".svg") or "/icons/" in s or "favicon" in s or "sprite" in s:
        return True
    if "logo" in s or "logo" in a or "logo" in k:
        return True
    if any(p in s or p in a or p in k for p in _SOCIAL_PATTERNS):
        return True
    if "icon" in a or "icon" in k:
        return True
    return "pixel" in s or "tracking" in s


def resolve_page_hero(raw_html: str, canonical_origin: str) -> Optional[PageHero]:
    """Hero image for pages without a primary item entity."""
    if not raw_html or not raw_html.strip():
        return None
    soup = BeautifulSoup(raw_html, "lxml")

    for attrs in ({"property": "og:image"}, {"name": "og:image"}, {"name": "twitter:image"}):
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content"):
            url = _page_image_url(meta["content"], canonical_origin)
            if url and is_likely_image_url(url):
                return PageHero(url=url)

    container = soup.find("main") or soup.find("body")
    if container is None:
        return None
    imgs = []
    for img in container.find_all("img"):
        src = img.get("src") or img.get("data-src")
        if not src or src.startswith("data:"):
            continue
        alt = img.get("alt") or ""
        if should_exclude_image(src, alt, " ".join(img.get("class") or [])):
            continue
        imgs.append((img, src, alt))

    for _, src, alt in imgs:
        url = _page_image_url(src, canonical_origin)
        if url and "page_hero" in url.lower():
            return PageHero(url=url, caption=alt or None)

    for img, src, alt in imgs:
        srcset = img.get("srcset") or ""
        first = srcset.split(",")[0].strip().split(" ")[0] if srcset.strip() else ""
        url = _page_image_url(first or src, canonical_origin)
        if url and LEGACY_CMS_PATH in url.lower():
            return PageHero(url=url, caption=alt or None)

    for _, src, alt in imgs:
        url = _page_image_url(src, canonical_origin)
        if url and is_likely_image_url(url):
            return PageHero(url=url, caption=alt or None)
    return None
