"""
FastAPI router for the conversation flow generator.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from flowgen.agents.flow_generator import FlowGeneratorConfig
from flowgen.ir.flow_schema import FlowOptions, dump_model
from flowgen.main import FlowGenerator

try:  # Optional runtime dependency
    from fastapi import APIRouter, HTTPException
except ImportError:  # pragma: no cover
    APIRouter = None  # type: ignore[assignment]
    HTTPException = RuntimeError  # type: ignore[assignment]


class NormalizeRequest(BaseModel):
    instruction: str = ""
    payload: Optional[Any] = None
    options: FlowOptions = Field(default_factory=FlowOptions)


class GenerateRequest(BaseModel):
    instruction: str
    options: FlowOptions = Field(default_factory=FlowOptions)


def build_router(generator: Optional[FlowGenerator] = None) -> Any:
    if APIRouter is None:
        return None

    router = APIRouter(prefix="/flowgen", tags=["flowgen"])

    def _generator() -> FlowGenerator:
        if generator is not None:
            return generator
        from flowgen.llm import build_chat_bedrock_converse

        config = FlowGeneratorConfig()
        llm = build_chat_bedrock_converse(
            model_id=config.model_id, temperature=config.temperature
        )
        return FlowGenerator(llm=llm, config=config)

    @router.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @router.post("/normalize")
    def normalize_flow(request: NormalizeRequest) -> Dict[str, Any]:
        try:
            result = (generator or FlowGenerator()).normalize(
                request.payload, request.instruction, request.options
            )
            return dump_model(result)
        except Exception as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    @router.post("/generate")
    def generate_flow(request: GenerateRequest) -> Dict[str, Any]:
        try:
            result = _generator().generate(request.instruction, request.options)
            return dump_model(result)
        except Exception as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    return router


router = build_router()
