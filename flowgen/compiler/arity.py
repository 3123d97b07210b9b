"""
Per-kind output arity rules for flow nodes.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from flowgen.compiler.normalization_passes import NormalizationPass
from flowgen.ir.flow_schema import FlowDraft, FlowEdge, FlowNode, NodeKind
from flowgen.ir.node_types import SINGLE_OUTPUT_KINDS

LOGGER = logging.getLogger(__name__)

ERROR_HANDLES = frozenset({"error", "err", "fail", "failure", "onerror"})


def _free_key(taken: Iterable[str], base: str) -> str:
    used = set(taken)
    if base not in used:
        return base
    suffix = 1
    while f"{base}-{suffix}" in used:
        suffix += 1
    return f"{base}-{suffix}"


class ArityEnforcementPass(NormalizationPass):
    """
    Enforce outgoing-edge rules per node kind.

    Single-output kinds keep their first edge in original order. `condition`
    and `routing` nodes always get a fallback edge to the end node, `api`
    nodes keep at most a success and an error edge. Running the pass on an
    already-legal draft changes nothing.
    """

    name = "arity_enforcement"

    def apply(self, draft: FlowDraft) -> FlowDraft:
        end = draft.first_of(NodeKind.END)
        for node in list(draft.nodes):
            if node.kind == NodeKind.END:
                self._drop(draft, draft.outgoing(node.id), "end nodes have no outgoing connections")
            elif node.kind in SINGLE_OUTPUT_KINDS:
                self._drop(
                    draft,
                    draft.outgoing(node.id)[1:],
                    f"'{node.kind.value}' nodes allow a single outgoing connection",
                )
            elif node.kind == NodeKind.CONDITION:
                self._enforce_condition(draft, node, end)
            elif node.kind == NodeKind.ROUTING:
                self._enforce_routing(draft, node, end)
            elif node.kind == NodeKind.API:
                self._enforce_api(draft, node, end)
        return draft

    def _drop(self, draft: FlowDraft, doomed: List[FlowEdge], reason: str) -> None:
        if not doomed:
            return
        doomed_ids = {id(edge) for edge in doomed}
        draft.edges = [edge for edge in draft.edges if id(edge) not in doomed_ids]
        for edge in doomed:
            draft.warn(f"Dropped connection {edge.source} -> {edge.target}: {reason}.")

    def _add_fallback(
        self, draft: FlowDraft, node: FlowNode, end: Optional[FlowNode], outgoing: List[FlowEdge]
    ) -> None:
        if end is None or any(edge.target == end.id for edge in outgoing):
            return
        edge = FlowEdge(
            source=node.id,
            target=end.id,
            source_handle=_free_key(
                (item.source_handle for item in outgoing), self.config.fallback_handle
            ),
            target_handle=self.config.default_target_handle,
        )
        draft.edges.append(edge)
        outgoing.append(edge)
        draft.warn(f"Added fallback connection {node.id} -> {end.id}.")

    def _enforce_condition(
        self, draft: FlowDraft, node: FlowNode, end: Optional[FlowNode]
    ) -> None:
        outgoing = draft.outgoing(node.id)
        self._add_fallback(draft, node, end, outgoing)

        route_map = node.data.get("routeMap")
        route_map = dict(route_map) if isinstance(route_map, dict) else {}
        for edge in outgoing:
            if edge.target in route_map.values():
                continue
            route_map[_free_key(route_map, edge.source_handle)] = edge.target
        node.data["routeMap"] = route_map

    def _enforce_routing(
        self, draft: FlowDraft, node: FlowNode, end: Optional[FlowNode]
    ) -> None:
        outgoing = draft.outgoing(node.id)
        branches = [
            edge
            for edge in outgoing
            if not edge.source_handle.startswith(self.config.fallback_handle)
        ]
        intent_ids = node.data.get("intentIds")
        intent_map = node.data.get("intentMap")
        has_ids = isinstance(intent_ids, list) and bool(intent_ids)
        has_map = isinstance(intent_map, dict) and bool(intent_map)

        if not has_ids and not has_map:
            derived = self._derive_intents(branches)
            node.data["intentIds"] = list(derived)
            node.data["intentMap"] = derived
        elif not has_map:
            node.data["intentMap"] = {
                str(intent): edge.target for intent, edge in zip(intent_ids, branches)
            }
        elif not has_ids:
            node.data["intentIds"] = list(intent_map)

        self._add_fallback(draft, node, end, outgoing)

    def _derive_intents(self, branches: List[FlowEdge]) -> Dict[str, Any]:
        derived: Dict[str, Any] = {}
        for index, edge in enumerate(branches):
            handle = edge.source_handle
            if handle == self.config.default_source_handle or handle in derived:
                handle = _free_key(derived, f"intent-{index}")
            derived[handle] = edge.target
        return derived

    def _enforce_api(self, draft: FlowDraft, node: FlowNode, end: Optional[FlowNode]) -> None:
        kept: List[FlowEdge] = []
        extra: List[FlowEdge] = []
        for edge in draft.outgoing(node.id):
            if len(kept) == 2 or (kept and edge.target == kept[0].target):
                extra.append(edge)
            else:
                kept.append(edge)
        self._drop(draft, extra, "api nodes keep one success and one error connection")

        success: Optional[FlowEdge] = None
        error: Optional[FlowEdge] = None
        flagged = [edge for edge in kept if edge.source_handle.lower() in ERROR_HANDLES]
        if len(kept) == 2:
            error = flagged[0] if flagged else kept[1]
            success = kept[0] if error is kept[1] else kept[1]
        elif len(kept) == 1:
            only = kept[0]
            if end is not None and only.target == end.id:
                success = error = only
            elif end is not None:
                synthesized = FlowEdge(
                    source=node.id,
                    target=end.id,
                    source_handle=(
                        self.config.success_handle if flagged else self.config.error_handle
                    ),
                    target_handle=self.config.default_target_handle,
                )
                draft.edges.append(synthesized)
                if flagged:
                    success, error = synthesized, only
                    draft.warn(f"Added success connection {node.id} -> {end.id}.")
                else:
                    success, error = only, synthesized
                    draft.warn(f"Added error connection {node.id} -> {end.id}.")
            else:
                success = only

        node.data["successNodeId"] = success.target if success else None
        node.data["errorNodeId"] = error.target if error else None
        LOGGER.debug(
            "api node %s success=%s error=%s",
            node.id,
            node.data["successNodeId"],
            node.data["errorNodeId"],
        )
