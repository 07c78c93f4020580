from __future__ import annotations


class VisionError(RuntimeError):
    pass


class ConfigError(VisionError):
    pass


class ImageNotFoundError(VisionError, FileNotFoundError):
    """A local image path that does not exist; the message is the path."""


class ValidationError(VisionError):
    def __init__(self, message: str, *, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class ApiError(VisionError):
    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = False,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
        self.url = url


class ToolExecutionError(VisionError):
    """Orchestration failure attributed to one tool.

    ``code`` is ``VALIDATION_ERROR`` for input rejected before any I/O and
    ``EXECUTION_ERROR`` when the model call failed; in the latter case the
    original exception is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        tool_name: str,
        *,
        code: str = "TOOL_EXECUTION_ERROR",
        operation: str = "",
    ) -> None:
        super().__init__(message)
        self.tool_name = tool_name
        self.code = code
        self.operation = operation


RETRYABLE_HTTP_STATUSES = {429, 500, 502, 503, 504}


def is_retryable_status(status_code: int | None) -> bool:
    return status_code in RETRYABLE_HTTP_STATUSES
