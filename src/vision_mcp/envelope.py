"""Uniform success/error envelope and its MCP reply shape."""
from __future__ import annotations

import json
import time
import traceback
from dataclasses import dataclass
from typing import Any, Callable

from .errors import ApiError, ImageNotFoundError, ToolExecutionError, ValidationError


@dataclass
class StandardResponse:
    success: bool
    data: Any = None
    error: str | None = None
    timestamp: int = 0
    context: dict[str, Any] | None = None

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success, "timestamp": self.timestamp}
        if self.success:
            out["data"] = self.data
        else:
            out["error"] = self.error
        if self.context:
            out["context"] = self.context
        return out


def _now_ms() -> int:
    return int(time.time() * 1000)


def to_success(data: Any, *, clock: Callable[[], int] = _now_ms) -> StandardResponse:
    return StandardResponse(success=True, data=data, timestamp=clock())


_ERROR_FIELDS = ("status_code", "url", "details", "tool_name", "code", "operation")


def _error_fields(exc: BaseException) -> dict[str, Any]:
    fields = {name: getattr(exc, name, None) for name in _ERROR_FIELDS}
    return {name: value for name, value in fields.items() if value}


def to_error(
    message: str,
    cause: BaseException | None = None,
    *,
    clock: Callable[[], int] = _now_ms,
) -> StandardResponse:
    """Failure envelope; *cause* contributes its name, stack and typed fields."""
    context = None
    if cause is not None:
        context = {
            "name": type(cause).__name__,
            **_error_fields(cause),
            "stack": "".join(traceback.format_exception(type(cause), cause, cause.__traceback__)),
        }
        inner = cause.__cause__
        if inner is not None:
            context["cause"] = {"name": type(inner).__name__, **_error_fields(inner)}
    return StandardResponse(success=False, error=message, timestamp=clock(), context=context)


def to_protocol_reply(response: StandardResponse) -> dict[str, Any]:
    if response.success:
        data = response.data
        text = data if isinstance(data, str) else json.dumps(data, indent=2, ensure_ascii=False)
        return {"content": [{"type": "text", "text": text}], "isError": False}
    return {
        "content": [{"type": "text", "text": f"Error: {response.error}"}],
        "isError": True,
    }


def _category(exc: BaseException) -> str:
    match exc:
        case ImageNotFoundError():
            return "Image file not found"
        case ValidationError() | ToolExecutionError(code="VALIDATION_ERROR"):
            return "Validation error"
        case ApiError():
            return "API error"
        case ToolExecutionError() if exc.__cause__ is not None:
            # Execution failures are filed under whatever actually went wrong.
            return _category(exc.__cause__)
        case _:
            return "Unexpected error"


def describe_error(exc: BaseException) -> str:
    """Category-prefixed, human-readable message for any failure."""
    return f"{_category(exc)}: {exc}"


def error_response(exc: BaseException) -> StandardResponse:
    return to_error(describe_error(exc), exc)
