"""Page classification record consumed by the rule selector and canonicalizer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from neamegraph.ingestion.url_utils import normalize_path


logger = logging.getLogger(__name__)


DOMAINS = ("Corporate", "Beer", "Pub")
DEFAULT_DOMAIN = "Corporate"

# Item collection (index) page and the detail pages beneath it.
ITEM_COLLECTION_PATH = "/beers"
ITEM_COLLECTION_NAME = "Beers"

PAGE_KIND_ITEM_DETAIL = "item_detail"
PAGE_KIND_ITEM_COLLECTION = "item_collection"
PAGE_KIND_OTHER = "other"


def _number(value: Any, cast, field_name: str):
    """Numeric column value; tolerates "4.5%" style strings, unparseable -> None."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().rstrip("%").strip()
    if not text:
        return None
    try:
        return cast(float(text)) if cast is int else cast(text)
    except (ValueError, OverflowError):
        logger.warning("Ignoring unparseable %s value %r", field_name, value)
        return None


@dataclass(frozen=True)
class PageClassification:
    """Read-only page metadata.

    Only `domain`, `page_type` and `category` drive rule selection; the rest
    feeds canonicalization (FAQ flags, item attributes, image overrides).
    """

    domain: Optional[str] = DEFAULT_DOMAIN
    page_type: Optional[str] = None
    category: Optional[str] = None
    path: Optional[str] = None
    has_faq: bool = False
    faq_mode: Optional[str] = None
    is_home_page: bool = False
    abv: Optional[float] = None
    style: Optional[str] = None
    launch_year: Optional[int] = None
    wikidata_qid: Optional[str] = None
    notes: Optional[str] = None
    hero_image_url: Optional[str] = None
    logo_url: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "PageClassification":
        """Build from a persisted page row (snake_case columns)."""
        r = record or {}

        def _opt_str(key: str) -> Optional[str]:
            v = r.get(key)
            if v is None:
                return None
            s = str(v).strip()
            return s or None

        abv = r.get("beer_abv", r.get("abv"))
        launch_year = r.get("beer_launch_year", r.get("launch_year"))
        return cls(
            domain=_opt_str("domain") or DEFAULT_DOMAIN,
            page_type=_opt_str("page_type"),
            category=_opt_str("category"),
            path=_opt_str("path"),
            has_faq=r.get("has_faq") is True,
            faq_mode=_opt_str("faq_mode"),
            is_home_page=bool(r.get("is_home_page")),
            abv=_number(abv, float, "beer_abv"),
            style=_opt_str("beer_style") or _opt_str("style"),
            launch_year=_number(launch_year, int, "beer_launch_year"),
            wikidata_qid=_opt_str("wikidata_qid"),
            notes=_opt_str("notes"),
            hero_image_url=_opt_str("hero_image_url"),
            logo_url=_opt_str("logo_url"),
        )

    @property
    def faq_allowed(self) -> bool:
        return self.has_faq is True and self.faq_mode != "ignore"

    @property
    def slug(self) -> str:
        if not self.path:
            return ""
        return normalize_path(self.path).rstrip("/").split("/")[-1]


def page_kind(classification: PageClassification) -> str:
    """Classify a page as item detail, item collection or anything else."""
    if not classification.path:
        return PAGE_KIND_OTHER
    path = normalize_path(classification.path)
    if path == ITEM_COLLECTION_PATH:
        return PAGE_KIND_ITEM_COLLECTION
    if path.startswith(ITEM_COLLECTION_PATH + "/"):
        return PAGE_KIND_ITEM_DETAIL
    return PAGE_KIND_OTHER
