"""
Structural validation utilities for normalized flows.
"""

from __future__ import annotations

from collections import deque
from typing import List, Set

from flowgen.ir.flow_schema import Flow, NodeKind
from flowgen.ir.node_types import SINGLE_OUTPUT_KINDS


class FlowValidationError(ValueError):
    """Raised when a flow violates a structural invariant."""


def reachable_from(flow: Flow, start_id: str) -> Set[str]:
    outgoing = flow.outgoing_map()
    seen: Set[str] = set()
    queue = deque([start_id])
    while queue:
        current = queue.popleft()
        if current in seen:
            continue
        seen.add(current)
        for edge in outgoing.get(current, []):
            if edge.target not in seen:
                queue.append(edge.target)
    return seen


def collect_structural_errors(flow: Flow) -> List[str]:
    """Return every hard-invariant violation found in `flow`."""

    errors: List[str] = []
    ids = [node.id for node in flow.nodes]
    if len(ids) != len(set(ids)):
        errors.append("Node ids must be unique.")

    for kind in (NodeKind.START, NodeKind.END):
        count = sum(1 for node in flow.nodes if node.kind == kind)
        if count != 1:
            errors.append(f"Flow must contain exactly one '{kind.value}' node, found {count}.")

    nodes = flow.node_map()
    for edge in flow.connections:
        if edge.source not in nodes:
            errors.append(f"Connection source does not exist: {edge.source}")
        if edge.target not in nodes:
            errors.append(f"Connection target does not exist: {edge.target}")

    outgoing = flow.outgoing_map()
    for node in flow.nodes:
        count = len(outgoing.get(node.id, []))
        if node.kind == NodeKind.END:
            if count:
                errors.append(f"End node '{node.id}' must not have outgoing connections.")
            continue
        if count == 0:
            errors.append(f"Node '{node.id}' has no outgoing connection.")
        if node.kind in SINGLE_OUTPUT_KINDS and count > 1:
            errors.append(
                f"Node '{node.id}' ({node.kind.value}) allows one outgoing connection, found {count}."
            )
        if node.kind == NodeKind.API:
            if count > 2:
                errors.append(f"API node '{node.id}' allows at most two outgoing connections.")
            if count == 2:
                success = node.data.get("successNodeId")
                error = node.data.get("errorNodeId")
                if not success or not error or success == error:
                    errors.append(
                        f"API node '{node.id}' must declare distinct successNodeId and errorNodeId."
                    )
    return errors


def collect_reachability_warnings(flow: Flow) -> List[str]:
    starts = [node for node in flow.nodes if node.kind == NodeKind.START]
    ends = [node for node in flow.nodes if node.kind == NodeKind.END]
    if len(starts) != 1 or len(ends) != 1:
        return []

    reachable = reachable_from(flow, starts[0].id)
    warnings: List[str] = []
    for node in flow.nodes:
        if node.id not in reachable:
            warnings.append(f"Node '{node.id}' is not reachable from start.")
    if ends[0].id in reachable:
        return warnings

    warnings.append("End node is not reachable from start; the flow contains a cycle.")
    return warnings


def validate_flow_graph(flow: Flow) -> Flow:
    errors = collect_structural_errors(flow)
    if errors:
        raise FlowValidationError(errors[0])
    return flow
