"""Draft graph contract utilities.

The "draft graph" is the JSON-LD payload returned by the external generator.
This module defines:
- A JSON Schema for the envelope (top-level object carrying an `@graph` array)
- Parsing of the raw generator text (code fences and stray prose tolerated)
- Serialization of a canonical graph

Anything that fails here is a hard parse error: no partial graph is produced.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

from jsonschema import Draft202012Validator


DRAFT_GRAPH_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["@graph"],
    "properties": {
        "@context": {},
        "@graph": {"type": "array"},
    },
    "additionalProperties": True,
}


_VALIDATOR = Draft202012Validator(DRAFT_GRAPH_SCHEMA)

_FENCE_RE = re.compile(r"```(?:json|jsonld|json-ld)?\s*([\s\S]*?)```", re.IGNORECASE)


class GraphParseError(Exception):
    """Draft graph is not JSON or lacks the `@graph` array."""

    def __init__(self, message: str, *, details: str = ""):
        super().__init__(message)
        self.details = details


def validate_draft_envelope(payload: Any) -> List[str]:
    """Return a list of human-readable validation errors (empty means valid)."""
    errors = []
    for e in sorted(_VALIDATOR.iter_errors(payload), key=lambda x: list(x.path)):
        path = ".".join(str(p) for p in e.path) if e.path else "<root>"
        errors.append(f"{path}: {e.message}")
    return errors


def _extract_json_text(text: str) -> str:
    content = (text or "").strip()
    if content.startswith("```"):
        m = _FENCE_RE.search(content)
        if m:
            content = m.group(1).strip()
    start = content.find("{")
    end = content.rfind("}")
    if start != -1 and end > start:
        content = content[start : end + 1]
    return content


def parse_draft_graph(text: str) -> Dict[str, Any]:
    """Parse generator output into a graph dict or raise GraphParseError."""
    content = _extract_json_text(text)
    try:
        payload = json.loads(content)
    except (TypeError, ValueError) as e:
        raise GraphParseError(f"Invalid JSON: {e}", details=(text or "")[:500]) from e
    errors = validate_draft_envelope(payload)
    if errors:
        raise GraphParseError("Missing or invalid @graph array: " + "; ".join(errors), details=content[:500])
    return payload


def dump_graph(graph: Dict[str, Any]) -> str:
    return json.dumps(graph, indent=2, ensure_ascii=False)
