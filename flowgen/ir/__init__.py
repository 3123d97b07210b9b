from flowgen.ir.flow_schema import (
    Flow,
    FlowDraft,
    FlowEdge,
    FlowNode,
    FlowOptions,
    FlowResult,
    NodeKind,
    NodePosition,
    ValidationReport,
)
from flowgen.ir.node_types import NODE_TYPE_ALIASES, resolve_kind
from flowgen.ir.validators import (
    FlowValidationError,
    collect_reachability_warnings,
    collect_structural_errors,
    validate_flow_graph,
)

__all__ = [
    "Flow",
    "FlowDraft",
    "FlowEdge",
    "FlowNode",
    "FlowOptions",
    "FlowResult",
    "NodeKind",
    "NodePosition",
    "ValidationReport",
    "NODE_TYPE_ALIASES",
    "resolve_kind",
    "FlowValidationError",
    "collect_reachability_warnings",
    "collect_structural_errors",
    "validate_flow_graph",
]
