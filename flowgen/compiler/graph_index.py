"""
Graph lookups and node synthesis helpers shared by the normalization passes.
"""

from __future__ import annotations

from collections import deque
from typing import Dict, List, Optional, Set

from flowgen.ir.flow_schema import FlowDraft, FlowNode, NodeKind, NodePosition
from flowgen.ir.node_types import DEFAULT_LABELS, default_data


class GraphIndex:
    def adjacency(self, draft: FlowDraft) -> Dict[str, List[str]]:
        graph: Dict[str, List[str]] = {node.id: [] for node in draft.nodes}
        for edge in draft.edges:
            graph.setdefault(edge.source, []).append(edge.target)
            graph.setdefault(edge.target, [])
        return graph

    def reachable(self, draft: FlowDraft, source: str) -> Set[str]:
        graph = self.adjacency(draft)
        if source not in graph:
            return set()
        queue = deque([source])
        visited: Set[str] = set()
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            for nxt in graph[current]:
                if nxt not in visited:
                    queue.append(nxt)
        return visited

    def has_path(self, draft: FlowDraft, source: str, target: str) -> bool:
        return target in self.reachable(draft, source)

    def single_target(self, draft: FlowDraft, node_id: str) -> Optional[str]:
        for edge in draft.edges:
            if edge.source == node_id:
                return edge.target
        return None


def claim_node_id(draft: FlowDraft, base: str) -> str:
    """Return `base`, or `base-N` with the smallest N that no node uses yet."""

    taken = {node.id for node in draft.nodes}
    if base not in taken:
        return base
    suffix = 1
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"


def next_auto_position(draft: FlowDraft, spacing: float, origin_y: float) -> NodePosition:
    position = NodePosition(x=draft.layout_cursor * spacing, y=origin_y)
    draft.layout_cursor += 1
    return position


def synthesize_node(
    draft: FlowDraft,
    kind: NodeKind,
    *,
    position: NodePosition,
    index: Optional[int] = None,
) -> FlowNode:
    """Create a node of `kind` with a fresh id and insert it into the draft."""

    slug_index = sum(1 for node in draft.nodes if node.kind == kind)
    node = FlowNode(
        id=claim_node_id(draft, f"{kind.value}-{slug_index}"),
        kind=kind,
        label=DEFAULT_LABELS[kind],
        slug=f"{kind.value}-{slug_index}",
        position=position,
        data=default_data(kind),
    )
    if index is None:
        draft.nodes.append(node)
    else:
        draft.nodes.insert(index, node)
    return node


def reassign_slugs(draft: FlowDraft) -> None:
    counters: Dict[NodeKind, int] = {}
    for node in draft.nodes:
        position = counters.get(node.kind, 0)
        node.slug = f"{node.kind.value}-{position}"
        counters[node.kind] = position + 1
