from __future__ import annotations

from flowgen.compiler.arity import ArityEnforcementPass
from flowgen.compiler.normalization_passes import (
    AssignIdentityPass,
    NormalizeConnectionsPass,
    ResolveTypesPass,
)
from flowgen.compiler.topology import TerminalNodesPass, TopologyPass
from flowgen.ir.flow_schema import FlowDraft, NodeKind


def _topology(raw_nodes, raw_edges=None) -> FlowDraft:
    draft = FlowDraft(raw_nodes=raw_nodes, raw_edges=raw_edges or [])
    for normalization_pass in (
        ResolveTypesPass(),
        AssignIdentityPass(),
        NormalizeConnectionsPass(),
        TerminalNodesPass(),
        ArityEnforcementPass(),
        TopologyPass(),
    ):
        draft = normalization_pass.apply(draft)
    return draft


def _edges(draft: FlowDraft):
    return [(edge.source, edge.target) for edge in draft.edges]


def test_empty_draft_becomes_start_to_end() -> None:
    draft = _topology([])

    assert [node.id for node in draft.nodes] == ["start-0", "end-0"]
    assert _edges(draft) == [("start-0", "end-0")]
    assert draft.nodes[0].position.x < draft.nodes[1].position.x


def test_start_and_end_are_moved_to_the_extremities() -> None:
    draft = _topology(
        [
            {"type": "end", "id": "fin"},
            {"type": "set", "id": "s"},
            {"type": "start", "id": "go"},
        ]
    )

    assert [node.id for node in draft.nodes] == ["go", "s", "fin"]
    assert _edges(draft) == [("go", "s"), ("s", "fin")]


def test_extra_start_and_end_nodes_are_merged() -> None:
    draft = _topology(
        [
            {"type": "start", "id": "s1"},
            {"type": "start", "id": "s2"},
            {"type": "set", "id": "x"},
            {"type": "end", "id": "e1"},
            {"type": "end", "id": "e2"},
        ],
        [{"source": "s2", "target": "x"}, {"source": "x", "target": "e2"}],
    )

    assert [node.id for node in draft.nodes] == ["s1", "x", "e1"]
    assert _edges(draft) == [("s1", "x"), ("x", "e1")]
    assert sum("Merged extra" in warning for warning in draft.report.warnings) == 2


def test_text_node_gets_airesponse_and_keeps_its_downstream_edge() -> None:
    draft = _topology(
        [{"type": "text", "id": "t"}, {"type": "set", "id": "s"}],
        [{"source": "t", "target": "s", "targetHandle": "in"}],
    )
    nodes = draft.node_map()
    emitter_id = draft.outgoing("t")[0].target

    assert nodes[emitter_id].kind == NodeKind.AIRESPONSE
    assert [node.id for node in draft.nodes] == ["start-0", "t", emitter_id, "s", "end-0"]
    repointed = draft.outgoing(emitter_id)
    assert [(edge.target, edge.target_handle) for edge in repointed] == [("s", "in")]


def test_producer_already_followed_by_airesponse_is_left_alone() -> None:
    draft = _topology(
        [
            {"type": "llm", "id": "think"},
            {"type": "text", "id": "say"},
            {"type": "message", "id": "reply"},
        ],
        [{"source": "think", "target": "say"}, {"source": "say", "target": "reply"}],
    )

    assert len(draft.nodes_of(NodeKind.AIRESPONSE)) == 1
    assert ("think", "say") in _edges(draft)


def test_chained_producers_share_one_synthesized_emitter() -> None:
    draft = _topology([{"type": "text", "id": "t"}, {"type": "llm", "id": "l"}], [{"source": "t", "target": "l"}])

    emitters = draft.nodes_of(NodeKind.AIRESPONSE)
    assert len(emitters) == 1
    assert draft.outgoing("l")[0].target == emitters[0].id
    assert draft.outgoing("t")[0].target == "l"


def test_autowiring_never_replaces_existing_edges() -> None:
    draft = _topology(
        [
            {"type": "set", "id": "a"},
            {"type": "set", "id": "b"},
            {"type": "set", "id": "c"},
        ],
        [{"source": "a", "target": "c"}],
    )

    assert _edges(draft) == [("a", "c"), ("start-0", "a"), ("b", "c"), ("c", "end-0")]


def test_autowiring_does_not_close_a_cycle() -> None:
    draft = _topology(
        [{"type": "set", "id": "a"}, {"type": "set", "id": "b"}],
        [{"source": "b", "target": "a"}],
    )

    assert ("a", "end-0") in _edges(draft)
    assert ("a", "b") not in _edges(draft)


def test_slugs_follow_final_node_order() -> None:
    draft = _topology([{"type": "text"}, {"type": "text"}])

    assert [node.slug for node in draft.nodes] == [
        "start-0",
        "text-0",
        "airesponse-0",
        "text-1",
        "airesponse-1",
        "end-0",
    ]
    ids = [node.id for node in draft.nodes]
    assert len(ids) == len(set(ids))
