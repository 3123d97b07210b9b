"""
Topology guarantees: terminal nodes, message emission and autowiring.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Set, Tuple

from flowgen.compiler.graph_index import (
    GraphIndex,
    next_auto_position,
    reassign_slugs,
    synthesize_node,
)
from flowgen.compiler.normalization_passes import NormalizationConfig, NormalizationPass
from flowgen.ir.flow_schema import FlowDraft, FlowEdge, FlowNode, NodeKind, NodePosition
from flowgen.ir.node_types import MESSAGE_PRODUCER_KINDS

LOGGER = logging.getLogger(__name__)


def _dedupe_edges(draft: FlowDraft) -> None:
    seen: Set[Tuple[str, str, str, str]] = set()
    edges: List[FlowEdge] = []
    for edge in draft.edges:
        if edge.source == edge.target or edge.key() in seen:
            continue
        seen.add(edge.key())
        edges.append(edge)
    draft.edges = edges


class TerminalNodesPass(NormalizationPass):
    """Make sure the draft has exactly one start (first) and one end (last) node."""

    name = "terminal_nodes"

    def apply(self, draft: FlowDraft) -> FlowDraft:
        start = self._single_start(draft)
        end = self._single_end(draft)
        draft.nodes = [start] + [
            node for node in draft.nodes if node is not start and node is not end
        ] + [end]
        _dedupe_edges(draft)
        return draft

    def _single_start(self, draft: FlowDraft) -> FlowNode:
        starts = draft.nodes_of(NodeKind.START)
        if not starts:
            start = synthesize_node(
                draft,
                NodeKind.START,
                position=NodePosition(
                    x=-self.config.layout_spacing_x, y=self.config.layout_origin_y
                ),
                index=0,
            )
            draft.warn(f"Added missing start node '{start.id}'.")
            return start

        keep = starts[0]
        for extra in starts[1:]:
            for edge in draft.edges:
                if edge.source == extra.id:
                    edge.source = keep.id
            draft.edges = [edge for edge in draft.edges if edge.target != extra.id]
            draft.nodes = [node for node in draft.nodes if node is not extra]
            draft.warn(f"Merged extra start node '{extra.id}' into '{keep.id}'.")
        return keep

    def _single_end(self, draft: FlowDraft) -> FlowNode:
        ends = draft.nodes_of(NodeKind.END)
        if not ends:
            end = synthesize_node(
                draft,
                NodeKind.END,
                position=next_auto_position(
                    draft, self.config.layout_spacing_x, self.config.layout_origin_y
                ),
            )
            draft.warn(f"Added missing end node '{end.id}'.")
            return end

        keep = ends[0]
        for extra in ends[1:]:
            for edge in draft.edges:
                if edge.target == extra.id:
                    edge.target = keep.id
            draft.edges = [edge for edge in draft.edges if edge.source != extra.id]
            draft.nodes = [node for node in draft.nodes if node is not extra]
            draft.warn(f"Merged extra end node '{extra.id}' into '{keep.id}'.")
        return keep


class TopologyPass(NormalizationPass):
    """
    Guarantee message emission after text/llm nodes and wire every dangling
    node (zero outgoing connections) into a linear path ending at `end`.
    Connections the model produced are never removed by autowiring.
    """

    name = "topology"

    def __init__(self, config: Optional[NormalizationConfig] = None) -> None:
        super().__init__(config)
        self.index = GraphIndex()

    def apply(self, draft: FlowDraft) -> FlowDraft:
        self._ensure_message_emission(draft)
        self._autowire(draft)
        reassign_slugs(draft)
        return draft

    def _emits_message(self, draft: FlowDraft, producer: FlowNode) -> bool:
        nodes = draft.node_map()
        target_id = self.index.single_target(draft, producer.id)
        if target_id is None:
            return False
        if nodes[target_id].kind == NodeKind.AIRESPONSE:
            return True
        return any(
            nodes[edge.target].kind == NodeKind.AIRESPONSE
            for edge in draft.outgoing(target_id)
        )

    def _ensure_message_emission(self, draft: FlowDraft) -> None:
        # Walk backwards so a producer feeding another producer can reuse its emitter.
        producers = [node for node in draft.nodes if node.kind in MESSAGE_PRODUCER_KINDS]
        for producer in reversed(producers):
            if self._emits_message(draft, producer):
                continue

            emitter = synthesize_node(
                draft,
                NodeKind.AIRESPONSE,
                position=next_auto_position(
                    draft, self.config.layout_spacing_x, self.config.layout_origin_y
                ),
                index=draft.nodes.index(producer) + 1,
            )
            existing = draft.outgoing(producer.id)
            source_handle = self.config.default_source_handle
            if existing:
                current = existing[0]
                source_handle = current.source_handle
                draft.edges[draft.edges.index(current)] = FlowEdge(
                    source=emitter.id,
                    target=current.target,
                    source_handle=self.config.default_source_handle,
                    target_handle=current.target_handle,
                )
            draft.edges.append(
                FlowEdge(
                    source=producer.id,
                    target=emitter.id,
                    source_handle=source_handle,
                    target_handle=self.config.default_target_handle,
                )
            )
            draft.warn(f"Added airesponse node '{emitter.id}' after '{producer.id}'.")

    def _autowire(self, draft: FlowDraft) -> None:
        order = list(draft.nodes)
        end = draft.first_of(NodeKind.END)
        for position, node in enumerate(order):
            if node.kind == NodeKind.END or draft.outgoing(node.id):
                continue
            if position + 1 < len(order):
                target = order[position + 1]
            elif end is not None:
                target = end
            else:
                continue
            if (
                end is not None
                and target is not end
                and self.index.has_path(draft, target.id, node.id)
            ):
                target = end
            draft.edges.append(
                FlowEdge(
                    source=node.id,
                    target=target.id,
                    source_handle=self.config.default_source_handle,
                    target_handle=self.config.default_target_handle,
                )
            )
            draft.warn(f"Auto-wired dangling node '{node.id}' -> '{target.id}'.")
            LOGGER.debug("Autowired %s -> %s", node.id, target.id)
