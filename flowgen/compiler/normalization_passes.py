"""
Normalization passes that turn a raw LLM flow payload into canonical nodes and edges.
"""

from __future__ import annotations

import logging
import math
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set, Tuple

from pydantic import BaseModel

from flowgen.ir.flow_schema import FlowDraft, FlowEdge, FlowNode, NodeKind, NodePosition, RawNode
from flowgen.ir.node_types import (
    DEFAULT_LABELS,
    TERMINAL_KINDS,
    default_data,
    fill_data_defaults,
    resolve_kind,
)

LOGGER = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"https?://[^\s<>\"'`]+", re.IGNORECASE)
HTTP_VERB_PATTERN = re.compile(r"\b(GET|POST|PUT|PATCH|DELETE)\b", re.IGNORECASE)


class NormalizationConfig(BaseModel):
    layout_spacing_x: float = 250.0
    layout_origin_y: float = 100.0
    default_source_handle: str = "a"
    default_target_handle: str = "b"
    fallback_handle: str = "fallback"
    success_handle: str = "success"
    error_handle: str = "error"


class NormalizationPass(ABC):
    name = "base"

    def __init__(self, config: Optional[NormalizationConfig] = None) -> None:
        self.config = config or NormalizationConfig()

    @abstractmethod
    def apply(self, draft: FlowDraft) -> FlowDraft:
        raise NotImplementedError


def _usable_id(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    # NaN and Infinity are not valid JSON output.
    return number if math.isfinite(number) else None


def _explicit_position(raw: Any) -> Optional[NodePosition]:
    if not isinstance(raw, dict):
        return None
    x = _number(raw.get("x"))
    y = _number(raw.get("y"))
    if x is None or y is None:
        return None
    return NodePosition(x=x, y=y)


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class ResolveTypesPass(NormalizationPass):
    name = "resolve_types"

    def apply(self, draft: FlowDraft) -> FlowDraft:
        allowed = self._allowed_kinds(draft)
        max_nodes = draft.options.max_nodes
        resolved: List[RawNode] = []
        kept_steps = 0

        for index, raw in enumerate(draft.raw_nodes):
            if not isinstance(raw, dict):
                draft.warn(f"Dropped node #{index}: expected a JSON object.")
                continue
            raw_type = raw.get("type", raw.get("kind"))
            kind = resolve_kind(raw_type)
            if kind is None:
                draft.warn(f"Dropped node with unknown type '{raw_type}'.")
                continue
            if allowed is not None and kind not in allowed:
                draft.warn(f"Dropped '{kind.value}' node: type is not in allowNodeTypes.")
                continue
            if kind not in TERMINAL_KINDS:
                if max_nodes is not None and kept_steps >= max_nodes:
                    draft.warn(
                        f"Dropped '{kind.value}' node #{index}: flow exceeds maxNodes={max_nodes}."
                    )
                    continue
                kept_steps += 1
            if isinstance(raw_type, str) and raw_type != kind.value:
                LOGGER.debug("Resolved node type alias %r to %s", raw_type, kind.value)
            resolved.append(RawNode(kind=kind, source_type=str(raw_type), payload=raw))

        draft.resolved_nodes = resolved
        return draft

    @staticmethod
    def _allowed_kinds(draft: FlowDraft) -> Optional[Set[NodeKind]]:
        names = draft.options.allow_node_types
        if names is None:
            return None
        allowed: Set[NodeKind] = set(TERMINAL_KINDS)
        for name in names:
            kind = resolve_kind(name)
            if kind is None:
                draft.warn(f"Ignored unknown entry '{name}' in allowNodeTypes.")
                continue
            allowed.add(kind)
        return allowed


class AssignIdentityPass(NormalizationPass):
    name = "assign_identity"

    def apply(self, draft: FlowDraft) -> FlowDraft:
        explicit_ids = self._explicit_ids(draft)
        claimed: Set[str] = {node_id for node_id in explicit_ids if node_id}
        counters: Dict[NodeKind, int] = {}
        nodes: List[FlowNode] = []

        for index, raw in enumerate(draft.resolved_nodes):
            slot = counters.get(raw.kind, 0)
            counters[raw.kind] = slot + 1
            slug = f"{raw.kind.value}-{slot}"

            node_id = explicit_ids[index]
            if node_id is None:
                node_id = self._claim(slug, claimed)

            position = _explicit_position(raw.payload.get("position"))
            if position is None:
                position = NodePosition(
                    x=index * self.config.layout_spacing_x,
                    y=self.config.layout_origin_y,
                )

            nodes.append(
                FlowNode(
                    id=node_id,
                    kind=raw.kind,
                    label=self._label(raw),
                    slug=slug,
                    position=position,
                    data=self._data(raw),
                )
            )

        draft.nodes = nodes
        draft.layout_cursor = len(nodes)
        return draft

    @staticmethod
    def _explicit_ids(draft: FlowDraft) -> List[Optional[str]]:
        seen: Set[str] = set()
        ids: List[Optional[str]] = []
        for raw in draft.resolved_nodes:
            node_id = _usable_id(raw.payload.get("id"))
            if node_id is not None and node_id in seen:
                draft.warn(f"Duplicate node id '{node_id}' reassigned.")
                node_id = None
            if node_id is not None:
                seen.add(node_id)
            ids.append(node_id)
        return ids

    @staticmethod
    def _claim(base: str, claimed: Set[str]) -> str:
        candidate = base
        suffix = 1
        while candidate in claimed:
            candidate = f"{base}-{suffix}"
            suffix += 1
        claimed.add(candidate)
        return candidate

    @staticmethod
    def _label(raw: RawNode) -> str:
        label = raw.payload.get("label")
        if isinstance(label, str) and label.strip():
            return label.strip()
        data = raw.payload.get("data")
        if isinstance(data, dict):
            nested = data.get("label")
            if isinstance(nested, str) and nested.strip():
                return nested.strip()
        return DEFAULT_LABELS[raw.kind]

    @staticmethod
    def _data(raw: RawNode) -> Dict[str, Any]:
        data = raw.payload.get("data")
        merged: Dict[str, Any] = dict(data) if isinstance(data, dict) else {}
        # Models sometimes put config keys beside `data` instead of inside it.
        for key in default_data(raw.kind):
            if key not in merged and key in raw.payload:
                merged[key] = raw.payload[key]
        return fill_data_defaults(raw.kind, merged)


class NormalizeConnectionsPass(NormalizationPass):
    name = "normalize_connections"

    def apply(self, draft: FlowDraft) -> FlowDraft:
        by_id = {node.id: node.id for node in draft.nodes}
        by_slug = {node.slug: node.id for node in draft.nodes}
        seen: Set[Tuple[str, str, str, str]] = set()
        edges: List[FlowEdge] = []

        for index, raw in enumerate(draft.raw_edges):
            if not isinstance(raw, dict):
                draft.warn(f"Dropped connection #{index}: expected a JSON object.")
                continue
            pair = self._endpoints(raw)
            if pair is None:
                draft.warn(f"Dropped connection #{index}: missing endpoints.")
                continue
            raw_source, raw_target = pair
            source = by_id.get(raw_source) or by_slug.get(raw_source)
            target = by_id.get(raw_target) or by_slug.get(raw_target)
            if source is None or target is None:
                draft.warn(
                    f"Dropped connection {raw_source} -> {raw_target}: unknown node id."
                )
                continue
            if source == target:
                draft.warn(f"Dropped self-connection on '{source}'.")
                continue

            edge = FlowEdge(
                source=source,
                target=target,
                source_handle=self._handle(raw.get("sourceHandle"), self.config.default_source_handle),
                target_handle=self._handle(raw.get("targetHandle"), self.config.default_target_handle),
            )
            if edge.key() in seen:
                draft.warn(f"Dropped duplicate connection {source} -> {target}.")
                continue
            seen.add(edge.key())
            edges.append(edge)

        draft.edges = edges
        return draft

    @staticmethod
    def _endpoints(raw: Dict[str, Any]) -> Optional[Tuple[str, str]]:
        for source_key, target_key in (("from", "to"), ("source", "target")):
            source = _usable_id(raw.get(source_key))
            target = _usable_id(raw.get(target_key))
            if source and target:
                return source, target
        return None

    @staticmethod
    def _handle(value: Any, default: str) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return default


class InferFieldsPass(NormalizationPass):
    """
    Back-fill `api` node url/method from literal tokens in the instruction.
    Only the first api node missing either field is touched.
    """

    name = "infer_fields"

    def apply(self, draft: FlowDraft) -> FlowDraft:
        url, method = extract_http_hints(draft.instruction)
        if url is None and method is None:
            return draft

        for node in draft.nodes_of(NodeKind.API):
            missing_url = _is_missing(node.data.get("url"))
            missing_method = _is_missing(node.data.get("method"))
            if not (missing_url or missing_method):
                continue
            if missing_url and url is not None:
                node.data["url"] = url
                draft.suggest(f"Inferred url '{url}' for api node '{node.id}' from the instruction.")
            if missing_method and method is not None:
                node.data["method"] = method
                draft.suggest(
                    f"Inferred method '{method}' for api node '{node.id}' from the instruction."
                )
            break
        return draft


def extract_http_hints(text: str) -> Tuple[Optional[str], Optional[str]]:
    if not text:
        return None, None
    url_match = URL_PATTERN.search(text)
    url = url_match.group(0).rstrip(".,;:!?)]}") if url_match else None
    # Verbs inside the URL path (e.g. /delete) are not instructions.
    remainder = URL_PATTERN.sub(" ", text)
    verb_match = HTTP_VERB_PATTERN.search(remainder)
    method = verb_match.group(1).upper() if verb_match else None
    return url, method
