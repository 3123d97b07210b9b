from flowgen.compiler.arity import ArityEnforcementPass
from flowgen.compiler.graph_index import GraphIndex
from flowgen.compiler.normalization_passes import (
    AssignIdentityPass,
    InferFieldsPass,
    NormalizationConfig,
    NormalizationPass,
    NormalizeConnectionsPass,
    ResolveTypesPass,
)
from flowgen.compiler.normalizer import FlowNormalizer, build_draft, default_passes
from flowgen.compiler.topology import TerminalNodesPass, TopologyPass

__all__ = [
    "ArityEnforcementPass",
    "AssignIdentityPass",
    "FlowNormalizer",
    "GraphIndex",
    "InferFieldsPass",
    "NormalizationConfig",
    "NormalizationPass",
    "NormalizeConnectionsPass",
    "ResolveTypesPass",
    "TerminalNodesPass",
    "TopologyPass",
    "build_draft",
    "default_passes",
]
