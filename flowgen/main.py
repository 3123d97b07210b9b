"""
Flow generator orchestration entrypoint.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from flowgen.agents.flow_generator import FlowGeneratorAgent, FlowGeneratorConfig, LLMProtocol
from flowgen.ir.flow_schema import FlowResult, dump_model
from flowgen.services.flow_service import FlowService, OptionsInput

LOGGER = logging.getLogger(__name__)


class FlowGenerator:
    def __init__(
        self,
        llm: Optional[LLMProtocol] = None,
        service: Optional[FlowService] = None,
        config: Optional[FlowGeneratorConfig] = None,
    ) -> None:
        self.agent = FlowGeneratorAgent(llm=llm, config=config)
        self.service = service or FlowService()

    def generate(self, instruction: str, options: OptionsInput = None) -> FlowResult:
        flow_options = self.service.coerce_options(options)
        generated = self.agent.generate(instruction, flow_options)
        result = self.service.normalize(
            generated.payload,
            instruction=instruction,
            options=options,
            model_descriptor=generated.describe(),
        )
        result.parsed = generated.parsed
        return result

    def normalize(
        self,
        payload: Any,
        instruction: str = "",
        options: OptionsInput = None,
    ) -> FlowResult:
        return self.service.normalize(payload, instruction=instruction, options=options)


def _read_instruction(text: Optional[str], file_path: Optional[str]) -> str:
    if text:
        return text
    if file_path:
        return Path(file_path).read_text(encoding="utf-8")
    return ""


def _load_payload(raw_json: Optional[str], json_file: Optional[str]) -> Optional[Any]:
    if raw_json:
        text, origin = raw_json, "--payload-json"
    elif json_file:
        text, origin = Path(json_file).read_text(encoding="utf-8"), json_file
    else:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        LOGGER.warning(
            "Payload from %s is not valid JSON, normalizing an empty flow: %s", origin, exc
        )
        return {}


def _build_options(args: argparse.Namespace) -> Dict[str, Any]:
    options: Dict[str, Any] = {}
    if args.max_nodes is not None:
        options["maxNodes"] = args.max_nodes
    if args.allow_node_types:
        options["allowNodeTypes"] = [
            item.strip() for item in args.allow_node_types.split(",") if item.strip()
        ]
    if args.complexity:
        options["complexity"] = args.complexity
    return options


def run(argv: Optional[list] = None) -> Dict[str, Any]:
    parser = argparse.ArgumentParser(description="Conversation flow generator")
    parser.add_argument("--instruction", type=str, default=None)
    parser.add_argument("--instruction-file", type=str, default=None)
    parser.add_argument("--payload-json", type=str, default=None)
    parser.add_argument("--payload-file", type=str, default=None)
    parser.add_argument("--max-nodes", type=int, default=None)
    parser.add_argument("--allow-node-types", type=str, default=None)
    parser.add_argument("--complexity", type=str, default=None)
    parser.add_argument("--output-file", type=str, default=None)
    parser.add_argument("--log-level", type=str, default="WARNING")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper())
    instruction = _read_instruction(args.instruction, args.instruction_file)
    payload = _load_payload(args.payload_json, args.payload_file)
    options = _build_options(args)

    if payload is not None:
        result = FlowGenerator().normalize(payload, instruction, options)
    else:
        if not instruction:
            parser.error("Provide --payload-json/--payload-file or an instruction.")
        from flowgen.llm import build_chat_bedrock_converse

        config = FlowGeneratorConfig()
        llm = build_chat_bedrock_converse(
            model_id=config.model_id, temperature=config.temperature
        )
        result = FlowGenerator(llm=llm, config=config).generate(instruction, options)

    payload_out = dump_model(result)
    output = json.dumps(payload_out, indent=2, sort_keys=True)
    print(output)
    if args.output_file:
        Path(args.output_file).write_text(output, encoding="utf-8")
    return payload_out


def main() -> None:
    run()


if __name__ == "__main__":
    main()
