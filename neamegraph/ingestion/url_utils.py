"""URL helpers shared by the canonicalizer, validator and image resolver."""

from __future__ import annotations

import hashlib
from typing import Optional
from urllib.parse import urljoin, urlparse, urlunparse


def origin_of(url: str) -> str:
    """Return `scheme://host` for a URL (lowercased), or "" if it has no host."""
    if not url:
        return ""
    p = urlparse(url.strip())
    if not p.netloc:
        return ""
    scheme = (p.scheme or "https").lower()
    return f"{scheme}://{p.netloc.lower()}"


def normalize_path(path: str) -> str:
    """Normalize a page path.

    - Strip scheme + host when a full URL is given
    - Ensure a leading slash
    - Remove a trailing slash (except for root)
    - Lowercase
    """
    normalized = (path or "").strip()
    if normalized.startswith("http://") or normalized.startswith("https://"):
        normalized = urlparse(normalized).path
    if not normalized.startswith("/"):
        normalized = "/" + normalized
    if normalized != "/" and normalized.endswith("/"):
        normalized = normalized.rstrip("/") or "/"
    return normalized.lower()


def page_url(canonical_origin: str, path: Optional[str]) -> Optional[str]:
    """Canonical URL of a page: origin + path, no trailing slash."""
    if path is None or not str(path).strip():
        return None
    base = (canonical_origin or "").rstrip("/")
    p = str(path).strip()
    if p.startswith("http://") or p.startswith("https://"):
        p = urlparse(p).path
    if not p.startswith("/"):
        p = "/" + p
    if p != "/" and p.endswith("/"):
        p = p.rstrip("/")
    return base + p


def is_absolute_http(url: str) -> bool:
    lower = (url or "").lower()
    return lower.startswith("http://") or lower.startswith("https://")


def is_same_origin(url: str, canonical_origin: Optional[str]) -> bool:
    if not canonical_origin:
        return False
    return origin_of(url) == origin_of(canonical_origin)


def is_external_reference(ref_id: str, canonical_origin: Optional[str]) -> bool:
    """True for absolute http(s) URLs outside the canonical origin.

    Without an origin nothing counts as external: every reference is local.
    """
    if not canonical_origin or not isinstance(ref_id, str):
        return False
    return is_absolute_http(ref_id) and not is_same_origin(ref_id, canonical_origin)


def resolve_url(raw: str, canonical_origin: str) -> str:
    """Resolve a possibly relative or protocol-relative URL against the origin.

    Absolute URLs come back untouched (no re-encoding of their query).
    """
    value = (raw or "").strip()
    if not value:
        return ""
    if is_absolute_http(value):
        return value
    if value.startswith("//"):
        return "https:" + value
    return urljoin((canonical_origin or "").rstrip("/") + "/", value)


def comparable_url(url: str) -> str:
    """Form used to compare two page URLs: lowercased host + path, no fragment/query/trailing slash."""
    if not url:
        return ""
    p = urlparse(url.strip())
    scheme = (p.scheme or "https").lower()
    netloc = (p.netloc or "").lower()
    path = (p.path or "/").rstrip("/").lower() or "/"
    return urlunparse((scheme, netloc, path, "", "", ""))


def strip_fragment(url: str) -> str:
    return (url or "").split("#", 1)[0]


def schema_hash(text: str) -> str:
    """Stable hash for a serialized graph."""
    return hashlib.sha256((text or "").encode("utf-8")).hexdigest()
