"""
Flow-stage service: option coercion, normalization and result assembly.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError

from flowgen.compiler.normalizer import FlowNormalizer
from flowgen.ir.flow_schema import FlowOptions, FlowResult
from flowgen.ir.validators import collect_reachability_warnings, collect_structural_errors

LOGGER = logging.getLogger(__name__)

OptionsInput = Union[FlowOptions, Dict[str, Any], None]


class FlowService:
    def __init__(self, normalizer: Optional[FlowNormalizer] = None) -> None:
        self.normalizer = normalizer or FlowNormalizer()

    @staticmethod
    def check_options(options: OptionsInput) -> Tuple[FlowOptions, Optional[str]]:
        """Return usable options and, when the input was rejected, the reason."""

        if isinstance(options, FlowOptions):
            return options, None
        if options is None:
            return FlowOptions(), None
        if not isinstance(options, dict):
            return FlowOptions(), "Ignored flow options: expected a JSON object."
        try:
            return FlowOptions.model_validate(options), None
        except ValidationError as exc:
            LOGGER.warning("Ignoring invalid flow options: %s", exc)
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in exc.errors()
            )
            return FlowOptions(), f"Ignored invalid flow options ({problems})."

    @classmethod
    def coerce_options(cls, options: OptionsInput) -> FlowOptions:
        return cls.check_options(options)[0]

    def normalize(
        self,
        payload: Any,
        *,
        instruction: str = "",
        options: OptionsInput = None,
        model_descriptor: Optional[str] = None,
    ) -> FlowResult:
        flow_options, rejected = self.check_options(options)
        draft = self.normalizer.normalize(
            payload,
            instruction=instruction,
            options=flow_options,
        )
        if rejected:
            draft.report.warnings.insert(0, rejected)
        variables = payload.get("variables") if isinstance(payload, dict) else None
        metadata = payload.get("metadata") if isinstance(payload, dict) else None
        flow = draft.to_flow(variables=variables, metadata=metadata)

        report = draft.report
        report.errors.extend(collect_structural_errors(flow))
        report.warnings.extend(collect_reachability_warnings(flow))
        if model_descriptor:
            report.suggestions.insert(0, model_descriptor)
        if report.errors:
            LOGGER.error("Normalized flow still violates invariants: %s", report.errors)

        return FlowResult(
            flow=flow,
            parsed=payload,
            validation=report,
        )
