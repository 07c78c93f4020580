"""Shared analysis pipeline every tool goes through.

prompt check -> image resolution -> message assembly -> model call.
"""
from __future__ import annotations

import logging
from typing import Any, Sequence

from .client import VisionClient
from .config import VisionConfig
from .errors import ToolExecutionError
from .sources import ResolvedImage, resolve

log = logging.getLogger(__name__)


def validate_prompt(prompt: str, tool_name: str) -> None:
    if not prompt or not prompt.strip():
        raise ToolExecutionError(
            "Prompt is required for image analysis",
            tool_name,
            code="VALIDATION_ERROR",
            operation="validate_prompt",
        )


def build_messages(
    system_prompt: str,
    user_prompt: str,
    images: Sequence[ResolvedImage],
) -> list[dict[str, Any]]:
    """System turn first, then one user turn: image blocks before the text."""
    content: list[dict[str, Any]] = [image.to_content_block() for image in images]
    content.append({"type": "text", "text": user_prompt})
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": content},
    ]


async def resolve_images(sources: Sequence[str], config: VisionConfig) -> list[ResolvedImage]:
    # One at a time: prompts refer to "the first image" / "the second image".
    resolved: list[ResolvedImage] = []
    for source in sources:
        resolved.append(
            await resolve(
                source,
                config.max_image_mb,
                inline_remote=config.inline_remote_images,
            )
        )
    return resolved


async def run_analysis(
    system_prompt: str,
    user_prompt: str,
    images: Sequence[ResolvedImage],
    tool_name: str,
    client: VisionClient,
) -> str:
    try:
        messages = build_messages(system_prompt, user_prompt, images)
        result = await client.send(messages)
    except Exception as exc:  # noqa: BLE001
        log.error(
            "%s analysis failed", tool_name,
            extra={"tool": tool_name, "error_type": type(exc).__name__, "error_message": str(exc)},
        )
        raise ToolExecutionError(
            f"{tool_name} analysis failed: {exc}",
            tool_name,
            code="EXECUTION_ERROR",
            operation="run_analysis",
        ) from exc
    log.info("%s analysis completed successfully", tool_name)
    return result


async def analyze(
    system_prompt: str,
    user_prompt: str,
    sources: Sequence[str],
    tool_name: str,
    *,
    config: VisionConfig,
    client: VisionClient,
) -> str:
    """Validate, resolve every source in order, and ask the model.

    Resolver errors surface unchanged; only the model call is re-wrapped
    as :class:`ToolExecutionError`.
    """
    validate_prompt(user_prompt, tool_name)
    images = await resolve_images(sources, config)
    return await run_analysis(system_prompt, user_prompt, images, tool_name, client)
