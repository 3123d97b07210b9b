from __future__ import annotations

import pytest

from flowgen.ir.flow_schema import Flow, FlowEdge, FlowNode, NodeKind
from flowgen.ir.validators import (
    FlowValidationError,
    collect_reachability_warnings,
    collect_structural_errors,
    reachable_from,
    validate_flow_graph,
)


def _node(node_id: str, kind: NodeKind, **data) -> FlowNode:
    return FlowNode(id=node_id, kind=kind, slug=f"{kind.value}-0", data=data)


def _flow(nodes, pairs) -> Flow:
    return Flow(
        nodes=nodes,
        connections=[FlowEdge(source=source, target=target) for source, target in pairs],
    )


def test_valid_flow_passes() -> None:
    flow = _flow(
        [_node("s", NodeKind.START), _node("m", NodeKind.AIRESPONSE), _node("e", NodeKind.END)],
        [("s", "m"), ("m", "e")],
    )

    assert collect_structural_errors(flow) == []
    assert collect_reachability_warnings(flow) == []
    assert validate_flow_graph(flow) is flow
    assert reachable_from(flow, "s") == {"s", "m", "e"}


def test_structural_errors_are_collected() -> None:
    flow = _flow(
        [
            _node("s", NodeKind.START),
            _node("t", NodeKind.TEXT),
            _node("a", NodeKind.API, successNodeId="e", errorNodeId="e"),
            _node("e", NodeKind.END),
        ],
        [("s", "t"), ("s", "a"), ("a", "t"), ("a", "e"), ("e", "s"), ("t", "ghost")],
    )

    errors = collect_structural_errors(flow)

    assert "Connection target does not exist: ghost" in errors
    assert "End node 'e' must not have outgoing connections." in errors
    assert any("'s' (start) allows one outgoing connection" in error for error in errors)
    assert any("distinct successNodeId and errorNodeId" in error for error in errors)
    with pytest.raises(FlowValidationError):
        validate_flow_graph(flow)


def test_missing_terminals_and_dangling_nodes_are_errors() -> None:
    flow = _flow([_node("t", NodeKind.TEXT)], [])

    errors = collect_structural_errors(flow)

    assert "Flow must contain exactly one 'start' node, found 0." in errors
    assert "Flow must contain exactly one 'end' node, found 0." in errors
    assert "Node 't' has no outgoing connection." in errors
    assert collect_reachability_warnings(flow) == []


def test_unreachable_nodes_and_cycles_are_warnings() -> None:
    flow = _flow(
        [
            _node("s", NodeKind.START),
            _node("a", NodeKind.SET),
            _node("b", NodeKind.SET),
            _node("orphan", NodeKind.LISTEN),
            _node("e", NodeKind.END),
        ],
        [("s", "a"), ("a", "b"), ("b", "a"), ("orphan", "e")],
    )

    warnings = collect_reachability_warnings(flow)

    assert "Node 'orphan' is not reachable from start." in warnings
    assert "Node 'e' is not reachable from start." in warnings
    assert warnings[-1] == "End node is not reachable from start; the flow contains a cycle."
