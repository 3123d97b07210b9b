"""
Shared LLM configuration for flow generation.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

FLOWGEN_DEFAULT_MODEL_ID = "us.anthropic.claude-sonnet-4-20250514-v1:0"


def resolve_model_id(model_id: Optional[str] = None) -> str:
    return model_id or os.getenv("FLOWGEN_MODEL_ID") or FLOWGEN_DEFAULT_MODEL_ID


def build_chat_bedrock_converse(
    *,
    model_id: Optional[str] = None,
    region_name: Optional[str] = None,
    temperature: float = 0.0,
) -> Any:
    """
    Build a ChatBedrockConverse client for flow generation.
    """

    from langchain_aws import ChatBedrockConverse

    resolved_region = region_name or os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")
    kwargs: Dict[str, Any] = {
        "model": resolve_model_id(model_id),
        "temperature": temperature,
    }
    if resolved_region:
        kwargs["region_name"] = resolved_region
    return ChatBedrockConverse(**kwargs)
