from flowgen.agents.flow_generator import (
    FlowGeneratorAgent,
    FlowGeneratorConfig,
    GeneratedFlowPayload,
    LLMProtocol,
)

__all__ = [
    "FlowGeneratorAgent",
    "FlowGeneratorConfig",
    "GeneratedFlowPayload",
    "LLMProtocol",
]
