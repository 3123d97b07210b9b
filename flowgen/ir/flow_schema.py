"""
Typed representation of conversation flows produced by the normalizer.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NodeKind(str, Enum):
    START = "start"
    LLM = "llm"
    TEXT = "text"
    AIRESPONSE = "airesponse"
    LISTEN = "listen"
    SET = "set"
    CONDITION = "condition"
    ROUTING = "routing"
    API = "api"
    CODE = "code"
    USERDATACAPTURE = "userdatacapture"
    END = "end"


class NodePosition(BaseModel):
    x: float = 0.0
    y: float = 0.0


class FlowNode(BaseModel):
    """One step of a conversation flow; `kind` is serialized as `type`."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    kind: NodeKind = Field(alias="type")
    label: str = ""
    slug: str = ""
    position: NodePosition = Field(default_factory=NodePosition)
    data: Dict[str, Any] = Field(default_factory=dict)


class FlowEdge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str
    target: str
    source_handle: str = Field(default="a", alias="sourceHandle")
    target_handle: str = Field(default="b", alias="targetHandle")

    def key(self) -> tuple:
        return (self.source, self.target, self.source_handle, self.target_handle)


class Flow(BaseModel):
    nodes: List[FlowNode] = Field(default_factory=list)
    connections: List[FlowEdge] = Field(default_factory=list)
    variables: List[Any] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def node_map(self) -> Dict[str, FlowNode]:
        return {node.id: node for node in self.nodes}

    def outgoing_map(self) -> Dict[str, List[FlowEdge]]:
        mapping: Dict[str, List[FlowEdge]] = {node.id: [] for node in self.nodes}
        for edge in self.connections:
            mapping.setdefault(edge.source, []).append(edge)
        return mapping


class ValidationReport(BaseModel):
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class FlowOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    max_nodes: Optional[int] = Field(default=None, alias="maxNodes", ge=0)
    allow_node_types: Optional[List[str]] = Field(default=None, alias="allowNodeTypes")
    complexity: Optional[str] = None


class FlowResult(BaseModel):
    flow: Flow
    parsed: Optional[Any] = None
    validation: ValidationReport = Field(default_factory=ValidationReport)

    def to_payload(self) -> Dict[str, Any]:
        return dump_model(self)


class RawNode(BaseModel):
    """A model-supplied node whose type resolved to a canonical kind."""

    kind: NodeKind
    source_type: str = ""
    payload: Dict[str, Any] = Field(default_factory=dict)


class FlowDraft(BaseModel):
    """Working state threaded through every normalization pass."""

    instruction: str = ""
    options: FlowOptions = Field(default_factory=FlowOptions)
    raw_nodes: List[Any] = Field(default_factory=list)
    raw_edges: List[Any] = Field(default_factory=list)
    resolved_nodes: List[RawNode] = Field(default_factory=list)
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)
    report: ValidationReport = Field(default_factory=ValidationReport)
    layout_cursor: int = 0
    trace: List[str] = Field(default_factory=list)

    def node_map(self) -> Dict[str, FlowNode]:
        return {node.id: node for node in self.nodes}

    def nodes_of(self, kind: NodeKind) -> List[FlowNode]:
        return [node for node in self.nodes if node.kind == kind]

    def first_of(self, kind: NodeKind) -> Optional[FlowNode]:
        for node in self.nodes:
            if node.kind == kind:
                return node
        return None

    def outgoing(self, node_id: str) -> List[FlowEdge]:
        return [edge for edge in self.edges if edge.source == node_id]

    def warn(self, message: str) -> None:
        self.report.warnings.append(message)

    def suggest(self, message: str) -> None:
        self.report.suggestions.append(message)

    def to_flow(self, variables: Any = None, metadata: Any = None) -> Flow:
        return Flow(
            nodes=list(self.nodes),
            connections=list(self.edges),
            variables=list(variables) if isinstance(variables, list) else [],
            metadata=dict(metadata) if isinstance(metadata, dict) else {},
        )


def dump_model(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)
