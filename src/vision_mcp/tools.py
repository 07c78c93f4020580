"""The seven image-analysis tools.

Each tool is a parameter model plus a small handler that picks an
instruction template, splices any hint into the prompt and calls
:func:`analysis.analyze`.  :func:`call_tool` is the boundary: whatever
happens inside, it returns an MCP reply dict and never raises.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .analysis import analyze, validate_prompt
from .client import VisionClient
from .config import VisionConfig
from .envelope import error_response, to_error, to_protocol_reply, to_success
from .log import sanitize_arguments
from .prompts import (
    DATA_VIZ_ANALYSIS_PROMPT,
    DIAGRAM_UNDERSTANDING_PROMPT,
    ERROR_DIAGNOSIS_PROMPT,
    GENERAL_IMAGE_ANALYSIS_PROMPT,
    TEXT_EXTRACTION_PROMPT,
    UI_DIFF_CHECK_PROMPT,
    UI_TO_ARTIFACT_PROMPTS,
)
from .retry import is_transient, with_retry

log = logging.getLogger(__name__)


@dataclass
class ToolContext:
    config: VisionConfig
    client: VisionClient
    sleep: Callable[[float], Awaitable[None]] | None = None

    @classmethod
    def from_config(cls, config: VisionConfig) -> "ToolContext":
        return cls(config=config, client=VisionClient(config))


# ---------------------------------------------------------------------------
# Parameter models
# ---------------------------------------------------------------------------

def _check_source(value: str) -> str:
    if not value.strip():
        raise ValueError("Image source cannot be empty")
    if ".." in value:
        raise ValueError('File path cannot contain ".."')
    return value.strip()


class _Params(BaseModel):
    model_config = ConfigDict(extra="ignore")

    prompt: str = Field(description="What you want from the image.")


class ImageParams(_Params):
    image_source: str = Field(description="Local file path or remote URL to the image.")

    @field_validator("image_source")
    @classmethod
    def check_image_source(cls, value: str) -> str:
        return _check_source(value)


class UiToArtifactParams(ImageParams):
    output_type: Literal["code", "prompt", "spec", "description"] = Field(
        description="Type of artifact to generate from the UI."
    )

    @field_validator("output_type", mode="before")
    @classmethod
    def normalize_output_type(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class TextExtractionParams(ImageParams):
    programming_language: str | None = Field(
        default=None,
        description="Optional hint about the programming language in the image (e.g. python, go).",
    )


class ErrorDiagnosisParams(ImageParams):
    context: str | None = Field(
        default=None,
        description='When the error occurred, e.g. "during deployment".',
    )


class DiagramParams(ImageParams):
    diagram_type: str | None = Field(
        default=None,
        description="Diagram type hint (architecture, flowchart, uml, er-diagram, sequence).",
    )


class DataVizParams(ImageParams):
    analysis_focus: str | None = Field(
        default=None,
        description="Focus area (trends, anomalies, comparisons, performance metrics).",
    )


class UiDiffParams(_Params):
    expected_image_source: str = Field(description="Path or URL of the expected/reference design.")
    actual_image_source: str = Field(description="Path or URL of the actual implementation.")

    @field_validator("expected_image_source", "actual_image_source")
    @classmethod
    def check_image_sources(cls, value: str) -> str:
        return _check_source(value)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def with_hint(prompt: str, tag: str, hint: str | None, sentence: str) -> str:
    if not hint or not hint.strip():
        return prompt
    return f"{prompt}\n\n<{tag}>{sentence.format(hint.strip())}</{tag}>"


async def ui_to_artifact(params: UiToArtifactParams, ctx: ToolContext) -> str:
    validate_prompt(params.prompt, "ui_to_artifact")
    return await analyze(
        UI_TO_ARTIFACT_PROMPTS[params.output_type],
        params.prompt,
        [params.image_source],
        "ui_to_artifact",
        config=ctx.config,
        client=ctx.client,
    )


async def extract_text(params: TextExtractionParams, ctx: ToolContext) -> str:
    validate_prompt(params.prompt, "extract_text_from_screenshot")
    prompt = with_hint(
        params.prompt, "language_hint", params.programming_language, "The code is in {}."
    )
    return await analyze(
        TEXT_EXTRACTION_PROMPT, prompt, [params.image_source],
        "extract_text_from_screenshot", config=ctx.config, client=ctx.client,
    )


async def diagnose_error(params: ErrorDiagnosisParams, ctx: ToolContext) -> str:
    validate_prompt(params.prompt, "diagnose_error_screenshot")
    prompt = with_hint(params.prompt, "error_context", params.context, "This error occurred {}.")
    return await analyze(
        ERROR_DIAGNOSIS_PROMPT, prompt, [params.image_source],
        "diagnose_error_screenshot", config=ctx.config, client=ctx.client,
    )


async def understand_diagram(params: DiagramParams, ctx: ToolContext) -> str:
    validate_prompt(params.prompt, "understand_technical_diagram")
    prompt = with_hint(
        params.prompt, "diagram_type_hint", params.diagram_type, "This is a {} diagram."
    )
    return await analyze(
        DIAGRAM_UNDERSTANDING_PROMPT, prompt, [params.image_source],
        "understand_technical_diagram", config=ctx.config, client=ctx.client,
    )


async def analyze_data_visualization(params: DataVizParams, ctx: ToolContext) -> str:
    validate_prompt(params.prompt, "analyze_data_visualization")
    prompt = with_hint(
        params.prompt, "analysis_focus", params.analysis_focus, "Focus particularly on: {}."
    )
    return await analyze(
        DATA_VIZ_ANALYSIS_PROMPT, prompt, [params.image_source],
        "analyze_data_visualization", config=ctx.config, client=ctx.client,
    )


_DIFF_PREAMBLE = (
    "<images>\n"
    "The first image is EXPECTED/REFERENCE design (the target).\n"
    "The second image is ACTUAL/CURRENT implementation (what needs to be checked).\n"
    "</images>\n\n"
)


async def ui_diff_check(params: UiDiffParams, ctx: ToolContext) -> str:
    validate_prompt(params.prompt, "ui_diff_check")
    return await analyze(
        UI_DIFF_CHECK_PROMPT,
        _DIFF_PREAMBLE + params.prompt,
        [params.expected_image_source, params.actual_image_source],
        "ui_diff_check",
        config=ctx.config,
        client=ctx.client,
    )


async def analyze_image(params: ImageParams, ctx: ToolContext) -> str:
    validate_prompt(params.prompt, "analyze_image")
    return await analyze(
        GENERAL_IMAGE_ANALYSIS_PROMPT, params.prompt, [params.image_source],
        "analyze_image", config=ctx.config, client=ctx.client,
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    params: type[_Params]
    handler: Callable[[Any, ToolContext], Awaitable[str]]

    def input_schema(self) -> dict[str, Any]:
        schema = self.params.model_json_schema()
        props = {
            name: {k: v for k, v in prop.items() if k != "title"}
            for name, prop in schema.get("properties", {}).items()
        }
        return {
            "type": "object",
            "properties": props,
            "required": list(schema.get("required", [])),
        }


TOOLS: dict[str, ToolSpec] = {
    spec.name: spec
    for spec in [
        ToolSpec(
            name="ui_to_artifact",
            description=(
                "Convert a UI screenshot into an artifact. output_type selects what to produce: "
                "'code' (semantic HTML + CSS), 'prompt' (a prompt that recreates the UI), "
                "'spec' (design tokens, components, layout rules) or 'description' "
                "(natural-language walkthrough). Use only when the user wants one of these."
            ),
            params=UiToArtifactParams,
            handler=ui_to_artifact,
        ),
        ToolSpec(
            name="extract_text_from_screenshot",
            description=(
                "Extract text from a screenshot with OCR, preserving formatting: code, terminal "
                "output, logs, configuration files and documents. Pass programming_language "
                "when the image contains code in a known language."
            ),
            params=TextExtractionParams,
            handler=extract_text,
        ),
        ToolSpec(
            name="diagnose_error_screenshot",
            description=(
                "Diagnose an error message, stack trace or exception shown in a screenshot and "
                "propose concrete fixes. Pass context to say when the error occurred."
            ),
            params=ErrorDiagnosisParams,
            handler=diagnose_error,
        ),
        ToolSpec(
            name="understand_technical_diagram",
            description=(
                "Explain a technical diagram: architecture diagrams, flowcharts, UML, ER and "
                "sequence diagrams. Pass diagram_type as a hint when known."
            ),
            params=DiagramParams,
            handler=understand_diagram,
        ),
        ToolSpec(
            name="analyze_data_visualization",
            description=(
                "Analyse charts, graphs and dashboards to extract trends, comparisons and "
                "anomalies. Pass analysis_focus to steer the analysis."
            ),
            params=DataVizParams,
            handler=analyze_data_visualization,
        ),
        ToolSpec(
            name="ui_diff_check",
            description=(
                "Compare two UI screenshots, an expected design and an actual implementation, "
                "and report visual differences with severity and suggested fixes."
            ),
            params=UiDiffParams,
            handler=ui_diff_check,
        ),
        ToolSpec(
            name="analyze_image",
            description=(
                "General-purpose image analysis for anything the specialised tools do not "
                "cover. Describe exactly what you want in prompt."
            ),
            params=ImageParams,
            handler=analyze_image,
        ),
    ]
}


def _format_validation_error(exc: pydantic.ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Validation failed: " + ", ".join(parts)


async def call_tool(name: str, arguments: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
    """Run one tool call end to end and return the MCP reply."""
    spec = TOOLS.get(name)
    if spec is None:
        return to_protocol_reply(to_error(f"Unknown tool: {name}"))

    try:
        params = spec.params.model_validate(arguments)
    except pydantic.ValidationError as exc:
        log.warning("Invalid tool arguments", extra={"tool": name, "errors": exc.error_count()})
        return to_protocol_reply(to_error(_format_validation_error(exc)))

    log.info("Tool call started", extra={"tool": name, "arguments": sanitize_arguments(arguments)})
    run = with_retry(
        spec.handler,
        ctx.config.retry_count,
        ctx.config.retry_delay_ms,
        retry_on=is_transient,
        sleep=ctx.sleep,
    )
    try:
        result = await run(params, ctx)
    except Exception as exc:  # noqa: BLE001
        response = error_response(exc)
        context = {k: v for k, v in (response.context or {}).items() if k != "stack"}
        log.error(
            "Tool call failed",
            extra={"tool": name, "error": response.error, "error_context": context},
        )
        return to_protocol_reply(response)
    return to_protocol_reply(to_success(result))
