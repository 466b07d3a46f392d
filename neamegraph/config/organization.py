"""Canonical Organization configuration.

The Organization and WebSite nodes of every generated graph are built from
this record. The canonicalizer receives it as a parameter; nothing reads it
from module state except as a default.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class PostalAddress:
    street_address: str
    address_locality: str
    address_region: str
    postal_code: str
    address_country: str


@dataclass(frozen=True)
class OrganizationConfig:
    name: str
    url: str
    description: str
    logo_url: str
    same_as: Tuple[str, ...] = ()
    founding_date: Optional[str] = None
    founder_name: Optional[str] = None
    address: Optional[PostalAddress] = None
    # Short name used by the WebSite node and stripped from page titles.
    site_name: Optional[str] = None
    default_hero_url: Optional[str] = None
    types: Tuple[str, ...] = field(default=("Organization", "Corporation"))

    @property
    def origin(self) -> str:
        return self.url.rstrip("/")

    @property
    def org_id(self) -> str:
        return f"{self.origin}/#organization"

    @property
    def website_id(self) -> str:
        return f"{self.origin}/#website"


DEFAULT_ORGANIZATION = OrganizationConfig(
    name="Shepherd Neame Limited",
    url="https://www.shepherdneame.co.uk",
    description=(
        "Shepherd Neame Limited is listed on the Aquis Stock Exchange and is Britain's oldest brewer, "
        "based in Faversham, Kent. It owns and operates a large estate of pubs and hotels across Kent, "
        "London and the South East."
    ),
    logo_url="https://www.shepherdneame.co.uk/sites/default/files/shepherd-neame-logo-square-1024.png",
    same_as=(
        "https://en.wikipedia.org/wiki/Shepherd_Neame_Brewery",
        "https://www.wikidata.org/wiki/Q748035",
        "https://www.instagram.com/shepherdneame",
        "https://www.facebook.com/shepherdneame",
        "https://www.linkedin.com/company/shepherd-neame/",
        "https://twitter.com/shepherdneame",
    ),
    founding_date="1698",
    founder_name="Richard Marsh",
    address=PostalAddress(
        street_address="17 Court Street",
        address_locality="Faversham",
        address_region="Kent",
        postal_code="ME13 7AX",
        address_country="United Kingdom",
    ),
    site_name="Shepherd Neame",
    default_hero_url="https://snsites.co.uk/sites/default/files/styles/page_hero/public/shepherd-neame-brewery-hero.jpg",
)


def image_object(url: str, *, caption: Optional[str] = None) -> Dict[str, Any]:
    obj: Dict[str, Any] = {"@type": "ImageObject", "url": url, "contentUrl": url}
    if caption:
        obj["caption"] = caption
    return obj


def build_organization_node(config: OrganizationConfig) -> Dict[str, Any]:
    """Organization node built purely from configuration."""
    node: Dict[str, Any] = {
        "@type": list(config.types),
        "@id": config.org_id,
        "name": config.name,
        "url": config.url,
        "description": config.description,
        "logo": image_object(config.logo_url),
    }
    if config.same_as:
        node["sameAs"] = list(config.same_as)
    if config.founding_date:
        node["foundingDate"] = config.founding_date
    if config.founder_name:
        node["founder"] = {"@type": "Person", "name": config.founder_name}
    if config.address is not None:
        a = config.address
        node["address"] = {
            "@type": "PostalAddress",
            "streetAddress": a.street_address,
            "addressLocality": a.address_locality,
            "addressRegion": a.address_region,
            "postalCode": a.postal_code,
            "addressCountry": a.address_country,
        }
    return node


def build_website_node(config: OrganizationConfig) -> Dict[str, Any]:
    """WebSite node synthesized when the draft has none."""
    node: Dict[str, Any] = {
        "@type": "WebSite",
        "@id": config.website_id,
        "url": config.url,
        "publisher": {"@id": config.org_id},
    }
    if config.site_name:
        node["name"] = config.site_name
    return node
