"""
Normalization pipeline for LLM-produced conversation flows.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from flowgen.compiler.arity import ArityEnforcementPass
from flowgen.compiler.normalization_passes import (
    AssignIdentityPass,
    InferFieldsPass,
    NormalizationConfig,
    NormalizationPass,
    NormalizeConnectionsPass,
    ResolveTypesPass,
)
from flowgen.compiler.topology import TerminalNodesPass, TopologyPass
from flowgen.ir.flow_schema import FlowDraft, FlowOptions

LOGGER = logging.getLogger(__name__)


def default_passes(config: Optional[NormalizationConfig] = None) -> List[NormalizationPass]:
    config = config or NormalizationConfig()
    return [
        ResolveTypesPass(config),
        AssignIdentityPass(config),
        NormalizeConnectionsPass(config),
        TerminalNodesPass(config),
        ArityEnforcementPass(config),
        TopologyPass(config),
        # Autowiring can hand a first edge to api nodes; settle their paths.
        ArityEnforcementPass(config),
        InferFieldsPass(config),
    ]


def build_draft(
    payload: Any,
    *,
    instruction: str = "",
    options: Optional[FlowOptions] = None,
) -> FlowDraft:
    draft = FlowDraft(instruction=instruction or "", options=options or FlowOptions())
    if isinstance(payload, list):
        draft.raw_nodes = list(payload)
        return draft
    if not isinstance(payload, dict):
        if payload is not None:
            draft.warn("Flow payload is not a JSON object; treated as an empty flow.")
        return draft

    nodes = payload.get("nodes")
    if isinstance(nodes, list):
        draft.raw_nodes = list(nodes)
    elif nodes is not None:
        draft.warn("Ignored 'nodes': expected an array.")

    edges = payload.get("connections")
    if edges is None:
        edges = payload.get("edges")
    if isinstance(edges, list):
        draft.raw_edges = list(edges)
    elif edges is not None:
        draft.warn("Ignored 'connections': expected an array.")
    return draft


class FlowNormalizer:
    def __init__(
        self,
        passes: Optional[List[NormalizationPass]] = None,
        config: Optional[NormalizationConfig] = None,
    ) -> None:
        self.config = config or NormalizationConfig()
        self.passes = passes or default_passes(self.config)

    def normalize(
        self,
        payload: Any,
        *,
        instruction: str = "",
        options: Optional[FlowOptions] = None,
    ) -> FlowDraft:
        draft = build_draft(payload, instruction=instruction, options=options)
        return self.run(draft)

    def run(self, draft: FlowDraft) -> FlowDraft:
        current = draft
        for normalization_pass in self.passes:
            try:
                current = normalization_pass.apply(current)
            except Exception as exc:
                raise RuntimeError(
                    f"Normalization pass '{normalization_pass.name}' failed: {exc}"
                ) from exc
            current.trace.append(normalization_pass.name)
            LOGGER.debug(
                "pass=%s nodes=%d connections=%d",
                normalization_pass.name,
                len(current.nodes),
                len(current.edges),
            )
        return current
