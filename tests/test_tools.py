from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from vision_mcp import tools
from vision_mcp.client import VisionClient
from vision_mcp.config import VisionConfig
from vision_mcp.prompts import UI_TO_ARTIFACT_PROMPTS
from vision_mcp.tools import TOOLS, ToolContext, call_tool, with_hint


class _Api:
    """Scripted chat-completions endpoint that records request bodies."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.bodies: list[dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(json.loads(request.content))
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def _ok(text: str = "done") -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": text}}]})


def _ctx(api: _Api, delays: list[float] | None = None, **overrides) -> ToolContext:
    config = VisionConfig(
        api_key="sk-test-0123456789abcdef",
        base_url="https://vision.test/v1",
        retry_delay_ms=100,
        **overrides,
    )

    async def _sleep(seconds: float) -> None:
        if delays is not None:
            delays.append(seconds)

    client = VisionClient(config, transport=httpx.MockTransport(api))
    return ToolContext(config=config, client=client, sleep=_sleep)


def _png(path: Path) -> str:
    path.write_bytes(b"\x89PNG\r\n\x1a\n" + b"\0" * 64)
    return str(path)


def _text(reply: dict) -> str:
    return reply["content"][0]["text"]


def test_registry_exposes_seven_tools() -> None:
    assert list(TOOLS) == [
        "ui_to_artifact",
        "extract_text_from_screenshot",
        "diagnose_error_screenshot",
        "understand_technical_diagram",
        "analyze_data_visualization",
        "ui_diff_check",
        "analyze_image",
    ]


def test_input_schemas_list_required_fields() -> None:
    ui = TOOLS["ui_to_artifact"].input_schema()
    assert ui["type"] == "object"
    assert set(ui["required"]) == {"prompt", "image_source", "output_type"}
    assert ui["properties"]["output_type"]["enum"] == ["code", "prompt", "spec", "description"]
    assert "title" not in ui["properties"]["prompt"]

    diff = TOOLS["ui_diff_check"].input_schema()
    assert set(diff["required"]) == {"prompt", "expected_image_source", "actual_image_source"}

    ocr = TOOLS["extract_text_from_screenshot"].input_schema()
    assert "programming_language" in ocr["properties"]
    assert "programming_language" not in ocr["required"]


@pytest.mark.parametrize(
    ("hint", "expected"),
    [
        (None, "Read it"),
        ("", "Read it"),
        ("   ", "Read it"),
        (" python ", "Read it\n\n<language_hint>The code is in python.</language_hint>"),
    ],
)
def test_with_hint(hint: str | None, expected: str) -> None:
    assert with_hint("Read it", "language_hint", hint, "The code is in {}.") == expected


@pytest.mark.asyncio
async def test_ui_to_artifact_selects_template(tmp_path: Path) -> None:
    api = _Api(_ok("<div></div>"))
    reply = await call_tool(
        "ui_to_artifact",
        {"image_source": _png(tmp_path / "ui.png"), "output_type": "CODE", "prompt": "Build it"},
        _ctx(api),
    )
    assert reply == {"content": [{"type": "text", "text": "<div></div>"}], "isError": False}
    messages = api.bodies[0]["messages"]
    assert messages[0]["content"] == UI_TO_ARTIFACT_PROMPTS["code"]
    assert messages[1]["content"][-1]["text"] == "Build it"


@pytest.mark.asyncio
async def test_ui_to_artifact_rejects_unknown_output_type(tmp_path: Path) -> None:
    api = _Api(_ok())
    reply = await call_tool(
        "ui_to_artifact",
        {"image_source": _png(tmp_path / "ui.png"), "output_type": "poem", "prompt": "x"},
        _ctx(api),
    )
    assert reply["isError"] is True
    assert _text(reply).startswith("Error: Validation failed: output_type:")
    assert api.bodies == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("tool", "extra", "suffix"),
    [
        (
            "extract_text_from_screenshot",
            {"programming_language": "rust"},
            "<language_hint>The code is in rust.</language_hint>",
        ),
        (
            "diagnose_error_screenshot",
            {"context": "during deployment"},
            "<error_context>This error occurred during deployment.</error_context>",
        ),
        (
            "understand_technical_diagram",
            {"diagram_type": "sequence"},
            "<diagram_type_hint>This is a sequence diagram.</diagram_type_hint>",
        ),
        (
            "analyze_data_visualization",
            {"analysis_focus": "anomalies"},
            "<analysis_focus>Focus particularly on: anomalies.</analysis_focus>",
        ),
    ],
)
async def test_hints_are_spliced_into_user_prompt(
    tmp_path: Path, tool: str, extra: dict, suffix: str
) -> None:
    api = _Api(_ok())
    args = {"image_source": _png(tmp_path / "shot.png"), "prompt": "Look", **extra}
    reply = await call_tool(tool, args, _ctx(api))
    assert reply["isError"] is False
    text = api.bodies[0]["messages"][1]["content"][-1]["text"]
    assert text == f"Look\n\n{suffix}"


@pytest.mark.asyncio
async def test_ui_diff_check_orders_expected_then_actual(tmp_path: Path) -> None:
    expected = tmp_path / "expected.png"
    expected.write_bytes(b"\x89PNG\r\n\x1a\nEXPECTED")
    actual = tmp_path / "actual.jpg"
    actual.write_bytes(b"\xff\xd8\xffACTUAL")
    api = _Api(_ok("2 differences"))
    reply = await call_tool(
        "ui_diff_check",
        {
            "expected_image_source": str(expected),
            "actual_image_source": str(actual),
            "prompt": "Compare",
        },
        _ctx(api),
    )
    assert _text(reply) == "2 differences"
    content = api.bodies[0]["messages"][1]["content"]
    assert content[0]["image_url"]["url"].startswith("data:image/png;")
    assert content[1]["image_url"]["url"].startswith("data:image/jpeg;")
    text = content[2]["text"]
    assert text.startswith("<images>\nThe first image is EXPECTED")
    assert text.endswith("</images>\n\nCompare")


@pytest.mark.asyncio
async def test_missing_file_reply(tmp_path: Path) -> None:
    api = _Api(_ok())
    missing = str(tmp_path / "missing.png")
    reply = await call_tool("analyze_image", {"image_source": missing, "prompt": "?"}, _ctx(api))
    assert reply == {
        "content": [{"type": "text", "text": f"Error: Image file not found: {missing}"}],
        "isError": True,
    }
    assert api.bodies == []


@pytest.mark.asyncio
async def test_empty_prompt_reply_without_io(tmp_path: Path) -> None:
    api = _Api(_ok())
    delays: list[float] = []
    reply = await call_tool(
        "analyze_image",
        {"image_source": "https://example.com/a.png", "prompt": ""},
        _ctx(api, delays),
    )
    assert _text(reply) == "Error: Validation error: Prompt is required for image analysis"
    assert reply["isError"] is True
    assert api.bodies == []
    assert delays == []


@pytest.mark.asyncio
async def test_path_traversal_is_rejected() -> None:
    api = _Api(_ok())
    reply = await call_tool(
        "analyze_image", {"image_source": "../../etc/passwd.png", "prompt": "?"}, _ctx(api)
    )
    assert reply["isError"] is True
    assert 'cannot contain ".."' in _text(reply)


@pytest.mark.asyncio
async def test_missing_required_argument() -> None:
    reply = await call_tool("analyze_image", {"prompt": "?"}, _ctx(_Api(_ok())))
    assert reply["isError"] is True
    assert "image_source" in _text(reply)


@pytest.mark.asyncio
async def test_unknown_tool() -> None:
    reply = await call_tool("paint_picture", {}, _ctx(_Api(_ok())))
    assert reply == {
        "content": [{"type": "text", "text": "Error: Unknown tool: paint_picture"}],
        "isError": True,
    }


@pytest.mark.asyncio
async def test_transient_api_failure_is_retried(tmp_path: Path) -> None:
    api = _Api(httpx.Response(503, text="busy"), httpx.Response(502, text="bad gw"), _ok("finally"))
    delays: list[float] = []
    reply = await call_tool(
        "analyze_image",
        {"image_source": _png(tmp_path / "a.png"), "prompt": "?"},
        _ctx(api, delays),
    )
    assert reply == {"content": [{"type": "text", "text": "finally"}], "isError": False}
    assert len(api.bodies) == 3
    assert delays == [0.1, 0.2]


@pytest.mark.asyncio
async def test_retry_exhaustion_reports_api_error(tmp_path: Path) -> None:
    api = _Api(httpx.Response(503, text="busy"))
    delays: list[float] = []
    reply = await call_tool(
        "analyze_image",
        {"image_source": _png(tmp_path / "a.png"), "prompt": "?"},
        _ctx(api, delays, retry_count=1),
    )
    assert reply["isError"] is True
    assert _text(reply) == "Error: API error: analyze_image analysis failed: HTTP 503: busy"
    assert len(api.bodies) == 2
    assert delays == [0.1]


@pytest.mark.asyncio
async def test_permanent_api_failure_is_not_retried(tmp_path: Path) -> None:
    api = _Api(httpx.Response(401, text="bad key"))
    delays: list[float] = []
    reply = await call_tool(
        "analyze_image",
        {"image_source": _png(tmp_path / "a.png"), "prompt": "?"},
        _ctx(api, delays),
    )
    assert "HTTP 401: bad key" in _text(reply)
    assert len(api.bodies) == 1
    assert delays == []


@pytest.mark.asyncio
async def test_remote_404_is_validation_error(monkeypatch: pytest.MonkeyPatch) -> None:
    from vision_mcp import sources

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    real_download = sources.download_image

    async def _download(url: str, **kwargs: Any):
        return await real_download(url, transport=httpx.MockTransport(handler))

    monkeypatch.setattr(sources, "download_image", _download)
    api = _Api(_ok())
    reply = await call_tool(
        "analyze_image",
        {"image_source": "https://example.com/missing.png", "prompt": "?"},
        _ctx(api),
    )
    assert _text(reply).startswith("Error: Validation error: Failed to download image: HTTP 404")
    assert api.bodies == []


def test_tool_context_from_config() -> None:
    config = VisionConfig(api_key="sk-test-0123456789abcdef")
    ctx = ToolContext.from_config(config)
    assert ctx.client.config is config
    assert ctx.sleep is None
    assert tools.TOOLS["analyze_image"].params is tools.ImageParams
