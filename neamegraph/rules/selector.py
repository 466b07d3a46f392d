"""Generation ruleset selection by specificity.

Keys are tried from most to least specific:
    (domain, page_type, category) -> (domain, page_type, None)
    -> (domain, None, None) -> (None, None, None)
A `None` in a key matches only a rule whose field is also null. The newest
active rule at the first matching level wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from jsonschema import Draft202012Validator

from neamegraph.pages.page_types import DEFAULT_DOMAIN, PageClassification


logger = logging.getLogger(__name__)


RULE_RECORD_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["id", "body", "created_at"],
    "properties": {
        "id": {"type": ["string", "integer"]},
        "name": {"type": ["string", "null"]},
        "domain": {"type": ["string", "null"]},
        "page_type": {"type": ["string", "null"]},
        "category": {"type": ["string", "null"]},
        "body": {"type": "string"},
        "is_active": {"type": "boolean"},
        "created_at": {"type": "string", "minLength": 1},
    },
    "additionalProperties": True,
}

_RULE_VALIDATOR = Draft202012Validator(RULE_RECORD_SCHEMA)

RuleKey = Tuple[Optional[str], Optional[str], Optional[str]]


class RuleSelectionError(Exception):
    """No active rule matches the page at any specificity level."""


@dataclass(frozen=True)
class Rule:
    id: str
    body: str
    created_at: datetime
    name: Optional[str] = None
    domain: Optional[str] = None
    page_type: Optional[str] = None
    category: Optional[str] = None
    active: bool = True

    @property
    def key(self) -> RuleKey:
        return (self.domain, self.page_type, self.category)

    def identity(self) -> Dict[str, Any]:
        """Identifying fields echoed back to callers (not the body)."""
        return {
            "id": self.id,
            "name": self.name,
            "domain": self.domain,
            "page_type": self.page_type,
            "category": self.category,
        }


def _parse_created_at(value: str) -> datetime:
    s = value.strip().replace("Z", "+00:00")
    parsed = datetime.fromisoformat(s)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def rule_from_record(record: Dict[str, Any]) -> Rule:
    """Build a Rule from a persisted row; raises ValueError on malformed records."""
    errors = []
    for e in sorted(_RULE_VALIDATOR.iter_errors(record), key=lambda x: list(x.path)):
        path = ".".join(str(p) for p in e.path) if e.path else "<root>"
        errors.append(f"{path}: {e.message}")
    if errors:
        raise ValueError("Invalid rule record: " + "; ".join(errors))
    return Rule(
        id=str(record["id"]),
        name=record.get("name"),
        domain=record.get("domain") or None,
        page_type=record.get("page_type") or None,
        category=record.get("category") or None,
        body=record["body"],
        active=record.get("is_active", True) is True,
        created_at=_parse_created_at(record["created_at"]),
    )


def specificity_keys(classification: PageClassification) -> List[RuleKey]:
    domain = classification.domain or DEFAULT_DOMAIN
    return [
        (domain, classification.page_type, classification.category),
        (domain, classification.page_type, None),
        (domain, None, None),
        (None, None, None),
    ]


def _newest(rules: Sequence[Rule]) -> Rule:
    # Ties on created_at fall back to id so input order never matters.
    return max(rules, key=lambda r: (r.created_at, r.id))


def select_rule(classification: PageClassification, rules: Sequence[Rule]) -> Rule:
    active = [r for r in rules if r.active]
    seen = set()
    for key in specificity_keys(classification):
        if key in seen:
            continue
        seen.add(key)
        matches = [r for r in active if r.key == key]
        if matches:
            chosen = _newest(matches)
            logger.info("Selected rule %s (%s) for key %s", chosen.id, chosen.name or "unnamed", key)
            return chosen
    raise RuleSelectionError(
        f'No active rule found for domain "{classification.domain or DEFAULT_DOMAIN}". '
        "Create a rule for this domain first."
    )
