"""
Natural-language to raw flow JSON generation agent.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel, Field

from flowgen.ir.flow_schema import FlowOptions, NodeKind
from flowgen.llm import resolve_model_id

LOGGER = logging.getLogger(__name__)


class LLMProtocol(Protocol):
    def invoke(self, prompt: Any, **kwargs: Any) -> Any:  # pragma: no cover - protocol only
        ...


class FlowGeneratorConfig(BaseModel):
    temperature: float = 0.0
    model_id: str = Field(default_factory=resolve_model_id)


class GeneratedFlowPayload(BaseModel):
    parsed: Optional[Dict[str, Any]] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    model_id: str = ""
    usage: Dict[str, int] = Field(default_factory=dict)
    raw_text: str = ""

    def describe(self) -> str:
        if not self.usage:
            return f"Generated with model {self.model_id}."
        counts = ", ".join(f"{key}={value}" for key, value in sorted(self.usage.items()))
        return f"Generated with model {self.model_id} ({counts})."


def _extract_json_block(raw: str) -> Optional[str]:
    raw = raw.strip()
    fenced = re.search(r"```(?:json)?\s*(\{.*\})\s*```", raw, re.DOTALL)
    if fenced:
        return fenced.group(1)
    if raw.startswith("{") and raw.endswith("}"):
        return raw
    match = re.search(r"\{.*\}", raw, re.DOTALL)
    return match.group(0) if match else None


def _response_text(response: Any) -> str:
    text = getattr(response, "content", None)
    if text is None:
        text = str(response)
    if isinstance(text, list):
        parts = []
        for item in text:
            if isinstance(item, dict):
                parts.append(str(item.get("text", "")))
            else:
                parts.append(str(item))
        text = " ".join(parts)
    return str(text)


def _usage(response: Any) -> Dict[str, int]:
    usage = getattr(response, "usage_metadata", None)
    if not isinstance(usage, dict):
        metadata = getattr(response, "response_metadata", None)
        usage = metadata.get("usage") if isinstance(metadata, dict) else None
    if not isinstance(usage, dict):
        return {}
    return {
        str(key): int(value)
        for key, value in usage.items()
        if isinstance(value, int) and not isinstance(value, bool)
    }


def build_flow_prompt(instruction: str, options: Optional[FlowOptions] = None) -> str:
    options = options or FlowOptions()
    kinds = ", ".join(kind.value for kind in NodeKind)
    limits = []
    if options.max_nodes is not None:
        limits.append(f"- Use at most {options.max_nodes} nodes besides start and end")
    if options.allow_node_types:
        limits.append(f"- Only use these node types: {', '.join(options.allow_node_types)}")
    if options.complexity:
        limits.append(f"- Target complexity: {options.complexity}")
    limit_text = "\n".join(limits) or "- None"
    return f"""
You design chatbot conversation flows. Return a single JSON object only,
with no markdown and no explanations.

Schema summary:
- nodes: list of {{id, type, label, data}}
- connections: list of {{source, target, sourceHandle, targetHandle}}
- variables: list of variable names the flow uses
- metadata: object

Node types: {kinds}
Rules:
- Begin with one start node and finish with one end node
- text and llm nodes must be followed by an airesponse node
- condition nodes branch with one connection per branch (sourceHandle = branch id)
- routing nodes branch per intent (data.intentIds, data.intentMap)
- api nodes use data.method and data.url, with one success and one error connection

Limits:
{limit_text}

Instruction:
{instruction}
"""


class FlowGeneratorAgent:
    def __init__(
        self,
        llm: Optional[LLMProtocol] = None,
        config: Optional[FlowGeneratorConfig] = None,
    ) -> None:
        self.llm = llm
        self.config = config or FlowGeneratorConfig()

    def generate(
        self, instruction: str, options: Optional[FlowOptions] = None
    ) -> GeneratedFlowPayload:
        if self.llm is None:
            LOGGER.warning("FlowGeneratorAgent has no LLM configured; using an empty flow.")
            return GeneratedFlowPayload(model_id=self.config.model_id)

        try:
            response = self.llm.invoke(build_flow_prompt(instruction, options))
        except Exception as exc:
            LOGGER.warning("FlowGeneratorAgent fallback to empty flow: %s", exc)
            return GeneratedFlowPayload(model_id=self.config.model_id)

        text = _response_text(response)
        parsed: Optional[Dict[str, Any]] = None
        block = _extract_json_block(text)
        if block is None:
            LOGGER.warning("No JSON object found in LLM response.")
        else:
            try:
                candidate = json.loads(block)
            except json.JSONDecodeError as exc:
                LOGGER.warning("LLM response is not valid JSON: %s", exc)
            else:
                if isinstance(candidate, dict):
                    parsed = candidate
                else:
                    LOGGER.warning("LLM response JSON is not an object.")

        return GeneratedFlowPayload(
            parsed=parsed,
            payload=parsed or {},
            model_id=self.config.model_id,
            usage=_usage(response),
            raw_text=text,
        )
