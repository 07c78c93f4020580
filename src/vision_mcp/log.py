"""Logging setup for the stdio server.

stdout carries JSON-RPC frames, so every record goes to stderr and to a
daily log file instead.  Structured metadata passed via ``extra=`` is
appended to the line as JSON, and secrets are masked before anything is
written.
"""
from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

LOG_DIR = Path.home() / ".vision"

_REDACT_PATTERNS = [
    re.compile(r"\bBearer\s+([A-Za-z0-9._\-+=]{12,})", re.IGNORECASE),
    re.compile(r"\b(sk-[A-Za-z0-9_-]{12,})\b"),
    re.compile(r"\b[A-Z0-9_]*(?:KEY|TOKEN|SECRET)\s*[=:]\s*([^\s\"']{8,})"),
]

_SENSITIVE_KEYS = ("password", "token", "secret", "key", "auth")

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def redact(text: str) -> str:
    for pattern in _REDACT_PATTERNS:
        text = pattern.sub(_mask, text)
    return text


def _mask(match: re.Match[str]) -> str:
    full = match.group(0)
    token = match.group(1)
    return full.replace(token, f"{token[:4]}...{token[-4:]}")


def sanitize_arguments(arguments: dict[str, Any]) -> dict[str, Any]:
    """Copy of tool arguments safe to log: sensitive keys are replaced."""
    return {
        k: "[REDACTED]" if any(s in k.lower() for s in _SENSITIVE_KEYS) else v
        for k, v in arguments.items()
    }


class SecretRedactor(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.getMessage())
        record.args = None
        return True


class MetadataFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        meta = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if meta:
            line += " " + redact(json.dumps(meta, default=str, ensure_ascii=False))
        return line


def default_log_path(now: datetime | None = None) -> Path:
    stamp = (now or datetime.now()).strftime("%Y-%m-%d")
    return LOG_DIR / f"vision-mcp-{stamp}.log"


def configure_logging(level: str = "INFO", log_path: str = "") -> logging.Logger:
    """Route the ``vision_mcp`` logger tree to stderr and a log file.

    A log file that cannot be opened is reported on stderr; the server keeps
    running with stderr only.
    """
    root = logging.getLogger("vision_mcp")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = MetadataFormatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    path = Path(log_path).expanduser() if log_path else default_log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    except OSError as exc:
        sys.stderr.write(f"Failed to initialize log file '{path}': {exc}\n")

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(SecretRedactor())
        root.addHandler(handler)
    return root
