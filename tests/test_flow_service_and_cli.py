from __future__ import annotations

import json

import pytest

from flowgen.ir.flow_schema import FlowOptions
from flowgen.main import FlowGenerator, run
from flowgen.services.flow_service import FlowService


def test_coerce_options_accepts_aliases_and_models() -> None:
    options = FlowService.coerce_options({"maxNodes": 3, "allowNodeTypes": ["text"]})

    assert options.max_nodes == 3
    assert options.allow_node_types == ["text"]
    assert FlowService.coerce_options(options) is options
    assert FlowService.coerce_options(None) == FlowOptions()


def test_coerce_options_ignores_invalid_values(caplog) -> None:
    options = FlowService.coerce_options({"maxNodes": -2})

    assert options == FlowOptions()
    assert "Ignoring invalid flow options" in caplog.text


def test_rejected_options_are_reported_as_warnings() -> None:
    result = FlowService().normalize({"nodes": []}, options={"maxNodes": -1})

    assert result.validation.warnings[0].startswith("Ignored invalid flow options (maxNodes:")
    assert FlowService.check_options("fast") == (
        FlowOptions(),
        "Ignored flow options: expected a JSON object.",
    )
    assert FlowService.check_options(None) == (FlowOptions(), None)


def test_generator_reports_rejected_options() -> None:
    result = FlowGenerator().generate("anything", {"maxNodes": "many"})

    assert any("Ignored invalid flow options" in item for item in result.validation.warnings)


def test_max_nodes_and_allow_list_limit_model_nodes() -> None:
    payload = {
        "nodes": [
            {"type": "listen", "id": "a"},
            {"type": "code", "id": "b"},
            {"type": "listen", "id": "c"},
            {"type": "listen", "id": "d"},
        ]
    }
    result = FlowService().normalize(
        payload, options={"maxNodes": 2, "allowNodeTypes": ["listen"]}
    )

    assert [node.id for node in result.flow.nodes] == ["start-0", "a", "c", "end-0"]
    assert any("allowNodeTypes" in warning for warning in result.validation.warnings)
    assert any("maxNodes=2" in warning for warning in result.validation.warnings)


def test_model_descriptor_is_the_first_suggestion() -> None:
    result = FlowService().normalize(
        {"nodes": [{"type": "api"}]},
        instruction="GET https://example.com/ping",
        model_descriptor="Generated with model m.",
    )

    assert result.validation.suggestions[0] == "Generated with model m."
    assert len(result.validation.suggestions) == 3


def test_payload_shape_uses_wire_names() -> None:
    payload = FlowService().normalize({"nodes": [{"type": "text", "id": "t"}]}).to_payload()

    assert set(payload) == {"flow", "parsed", "validation"}
    assert set(payload["flow"]) == {"nodes", "connections", "variables", "metadata"}
    assert set(payload["validation"]) == {"errors", "warnings", "suggestions"}
    node = payload["flow"]["nodes"][1]
    assert node["type"] == "text"
    assert set(node["position"]) == {"x", "y"}
    assert {"sourceHandle", "targetHandle"} <= set(payload["flow"]["connections"][0])


def test_cli_normalizes_inline_payload(capsys, tmp_path) -> None:
    out_file = tmp_path / "flow.json"
    result = run(
        [
            "--payload-json",
            json.dumps({"nodes": [{"type": "say", "id": "hello"}]}),
            "--instruction",
            "greet the user",
            "--output-file",
            str(out_file),
        ]
    )

    printed = json.loads(capsys.readouterr().out)
    assert printed == result
    assert json.loads(out_file.read_text(encoding="utf-8")) == result
    assert [node["type"] for node in result["flow"]["nodes"]] == [
        "start",
        "text",
        "airesponse",
        "end",
    ]


def test_cli_reads_payload_file_and_options(capsys, tmp_path) -> None:
    payload_file = tmp_path / "payload.json"
    payload_file.write_text(
        json.dumps([{"type": "listen", "id": "a"}, {"type": "code", "id": "b"}]),
        encoding="utf-8",
    )

    result = run(["--payload-file", str(payload_file), "--allow-node-types", "listen, end"])

    capsys.readouterr()
    assert [node["id"] for node in result["flow"]["nodes"]] == ["start-0", "a", "end-0"]


def test_cli_requires_payload_or_instruction(capsys) -> None:
    with pytest.raises(SystemExit):
        run([])
    assert "instruction" in capsys.readouterr().err


def test_cli_malformed_payload_normalizes_empty_flow(capsys, tmp_path, caplog) -> None:
    result = run(["--payload-json", "{nodes: oops"])

    assert [node["id"] for node in result["flow"]["nodes"]] == ["start-0", "end-0"]
    assert result["parsed"] == {}
    assert "not valid JSON" in caplog.text

    payload_file = tmp_path / "broken.json"
    payload_file.write_text("[{", encoding="utf-8")
    from_file = run(["--payload-file", str(payload_file), "--max-nodes", "-3"])

    capsys.readouterr()
    assert [node["type"] for node in from_file["flow"]["nodes"]] == ["start", "end"]
    assert from_file["validation"]["warnings"][0].startswith("Ignored invalid flow options")
