"""Per-call inputs shared by the canonicalization steps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from neamegraph.config.organization import OrganizationConfig
from neamegraph.ingestion.url_utils import origin_of, page_url
from neamegraph.pages.page_types import PageClassification, page_kind


@dataclass(frozen=True)
class CanonicalContext:
    classification: PageClassification
    org_config: OrganizationConfig
    canonical_origin: str
    raw_html: str = ""

    @classmethod
    def build(
        cls,
        classification: PageClassification,
        org_config: OrganizationConfig,
        canonical_origin: Optional[str],
        raw_html: Optional[str],
    ) -> "CanonicalContext":
        origin = origin_of(canonical_origin or "") or org_config.origin
        return cls(
            classification=classification,
            org_config=org_config,
            canonical_origin=origin,
            raw_html=raw_html or "",
        )

    @property
    def org_id(self) -> str:
        return self.org_config.org_id

    @property
    def website_id(self) -> str:
        return self.org_config.website_id

    @property
    def page_kind(self) -> str:
        return page_kind(self.classification)

    @property
    def page_url(self) -> Optional[str]:
        return page_url(self.canonical_origin, self.classification.path)
