"""
MCP (Model Context Protocol) server for vision-mcp.

Exposes seven image-analysis tools (UI to code, OCR, error diagnosis,
diagram understanding, chart analysis, UI diffing and general image
questions) backed by an OpenAI-compatible vision model.

Protocol: JSON-RPC 2.0 over stdio (one JSON object per line).  stdout is
reserved for protocol frames; all logging goes to stderr and the log file.

Usage
-----
Run directly:
    python -m vision_mcp.mcp_server

Or via the CLI:
    vision-mcp serve

MCP client entry
----------------
{
  "mcpServers": {
    "vision": {
      "command": "vision-mcp",
      "args": ["serve"],
      "env": {"VISION_MCP_API_KEY": "sk-..."}
    }
  }
}
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

from .config import VisionConfig, load_config
from .tools import TOOLS, ToolContext, call_tool

log = logging.getLogger(__name__)

SUPPORTED_PROTOCOL_VERSIONS = {"2024-11-05", "2025-03-26"}
DEFAULT_PROTOCOL_VERSION = "2024-11-05"

_context: ToolContext | None = None


def _get_context() -> ToolContext:
    global _context
    if _context is None:
        _context = ToolContext.from_config(load_config())
    return _context


def set_context(ctx: ToolContext | None) -> None:
    global _context
    _context = ctx


# ---------------------------------------------------------------------------
# Tool schema registry, one entry per exposed tool
# ---------------------------------------------------------------------------

_TOOL_SCHEMAS: list[dict[str, Any]] = [
    {
        "name": spec.name,
        "description": spec.description,
        "inputSchema": spec.input_schema(),
    }
    for spec in TOOLS.values()
]


async def _call_tool(name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Dispatch a tool call and return the MCP ``tools/call`` result."""
    return await call_tool(name, arguments, _get_context())


# ---------------------------------------------------------------------------
# JSON-RPC 2.0 helpers
# ---------------------------------------------------------------------------

def _ok(request_id: Any, result: Any) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _err(request_id: Any, code: int, message: str) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


def _write(obj: dict) -> None:
    sys.stdout.write(json.dumps(obj) + "\n")
    sys.stdout.flush()


# ---------------------------------------------------------------------------
# Main request handler
# ---------------------------------------------------------------------------

async def _handle(line: str) -> None:
    try:
        req = json.loads(line)
    except json.JSONDecodeError:
        _write(_err(None, -32700, "Parse error"))
        return
    if not isinstance(req, dict):
        _write(_err(None, -32600, "Invalid Request"))
        return

    req_id = req.get("id")
    method = req.get("method", "")
    params = req.get("params") or {}
    if not isinstance(params, dict):
        if req_id is not None:
            _write(_err(req_id, -32602, "Invalid params: params must be an object"))
        return

    if method == "initialize":
        client_ver = params.get("protocolVersion", DEFAULT_PROTOCOL_VERSION)
        agreed_ver = client_ver if client_ver in SUPPORTED_PROTOCOL_VERSIONS else DEFAULT_PROTOCOL_VERSION
        config = _get_context().config
        _write(_ok(req_id, {
            "protocolVersion": agreed_ver,
            "capabilities": {"tools": {}},
            "serverInfo": {
                "name": config.server_name,
                "version": config.server_version,
            },
        }))

    elif method in ("notifications/initialized", "initialized"):
        # Notification, no response needed
        pass

    elif method == "tools/list":
        _write(_ok(req_id, {"tools": _TOOL_SCHEMAS}))

    elif method == "tools/call":
        tool_name = params.get("name", "")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            _write(_err(req_id, -32602, "Invalid params: arguments must be an object"))
            return
        try:
            reply = await _call_tool(tool_name, arguments)
        except Exception as exc:  # noqa: BLE001
            log.exception("tools/call dispatch failed", extra={"tool": tool_name})
            _write(_err(req_id, -32603, f"Internal error: {exc}"))
            return
        _write(_ok(req_id, reply))

    elif method == "ping":
        _write(_ok(req_id, {}))

    else:
        if req_id is not None:
            _write(_err(req_id, -32601, f"Method not found: {method}"))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def _run() -> None:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)

    # Each request runs as its own task so slow tool calls do not block
    # pings or other calls; responses are matched by id, not order.
    pending: set[asyncio.Task[None]] = set()
    while True:
        line_bytes = await reader.readline()
        if not line_bytes:
            break
        line = line_bytes.decode(errors="replace").strip()
        if line:
            task = asyncio.create_task(_handle(line))
            pending.add(task)
            task.add_done_callback(pending.discard)

    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    log.info("stdin closed, server stopped")


def serve(config: VisionConfig) -> None:
    set_context(ToolContext.from_config(config))
    log.info(
        "Starting Vision MCP Server",
        extra={"server": config.server_name, "version": config.server_version, "tools": len(TOOLS)},
    )
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        log.info("Received SIGINT, shutting down")


def main() -> None:
    from .cli import main as cli_main

    cli_main(["serve"])


if __name__ == "__main__":
    main()
