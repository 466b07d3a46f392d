"""Id lookup and adjacency view over a list of graph nodes."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from neamegraph.graph.nodes import Node, iter_references, node_id, node_types


class ReferenceIndex:
    """Read-only index built once per graph.

    - `by_id`: first node for each `@id`
    - `id_counts`: how many nodes carry each `@id` (duplicates > 1)
    - `edges`: outgoing (property, target id) pairs per node id
    """

    def __init__(self, nodes: Sequence[Any]):
        self.nodes: List[Node] = [n for n in nodes if isinstance(n, dict)]
        self.by_id: Dict[str, Node] = {}
        self.id_counts: Dict[str, int] = {}
        self.edges: Dict[str, List[Tuple[str, str]]] = {}
        self.type_counts: Dict[str, int] = {}
        self.reference_count = 0

        for node in self.nodes:
            for t in node_types(node):
                self.type_counts[t] = self.type_counts.get(t, 0) + 1
            refs = list(iter_references(node))
            self.reference_count += len(refs)
            nid = node_id(node)
            if nid is None:
                continue
            self.id_counts[nid] = self.id_counts.get(nid, 0) + 1
            if nid not in self.by_id:
                self.by_id[nid] = node
                self.edges[nid] = refs

    @property
    def ids(self) -> Set[str]:
        return set(self.by_id)

    def get(self, nid: str) -> Optional[Node]:
        return self.by_id.get(nid)

    def __contains__(self, nid: object) -> bool:
        return nid in self.by_id

    def neighbours(self, nid: str) -> List[str]:
        return [target for _, target in self.edges.get(nid, [])]

    def duplicates(self) -> Dict[str, int]:
        return {nid: count for nid, count in self.id_counts.items() if count > 1}

    def first_of_type(self, type_name: str) -> Optional[Node]:
        for node in self.nodes:
            if type_name in node_types(node):
                return node
        return None

    def referrers(self, target_id: str, properties: Optional[Sequence[str]] = None) -> List[Node]:
        """Nodes holding a reference to `target_id` (optionally via given properties)."""
        out: List[Node] = []
        for node in self.nodes:
            for prop, target in iter_references(node):
                if target != target_id:
                    continue
                if properties is not None and prop not in properties:
                    continue
                out.append(node)
                break
        return out
