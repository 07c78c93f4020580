from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import ConfigError

CONFIG_PATH = Path.home() / ".config" / "vision-mcp" / "config.yml"

# (field, preferred env var, legacy env var).  Preferred wins when both are set.
_ENV_VARS: list[tuple[str, str, str | None]] = [
    ("api_key",              "VISION_MCP_API_KEY",        "OPENAI_API_KEY"),
    ("base_url",             "VISION_MCP_API_URL",        "OPENAI_BASE_URL"),
    ("model",                "VISION_MCP_MODEL",          "OPENAI_VISION_MODEL"),
    ("temperature",          "VISION_MCP_TEMPERATURE",    "OPENAI_MODEL_TEMPERATURE"),
    ("top_p",                "VISION_MCP_TOP_P",          "OPENAI_MODEL_TOP_P"),
    ("max_tokens",           "VISION_MCP_MAX_TOKENS",     "OPENAI_MODEL_MAX_TOKENS"),
    ("timeout_ms",           "VISION_MCP_TIMEOUT",        "OPENAI_TIMEOUT"),
    ("retry_count",          "VISION_MCP_RETRY_COUNT",    "OPENAI_RETRY_COUNT"),
    ("retry_delay_ms",       "VISION_MCP_RETRY_DELAY",    None),
    ("max_image_mb",         "VISION_MCP_MAX_IMAGE_MB",   None),
    ("inline_remote_images", "VISION_MCP_INLINE_REMOTE_IMAGES", None),
    ("server_name",          "VISION_MCP_SERVER_NAME",    "SERVER_NAME"),
    ("server_version",       "VISION_MCP_SERVER_VERSION", "SERVER_VERSION"),
    ("log_level",            "VISION_MCP_LOG_LEVEL",      None),
    ("log_path",             "VISION_MCP_LOG_PATH",       None),
]

_PLACEHOLDER_MARKERS = ("your_", "api_key", "sk-your-openai-api-key")

_COMPLETIONS_SUFFIX = "/chat/completions"


@dataclass(frozen=True)
class VisionConfig:
    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o"
    temperature: float = 0.7
    top_p: float = 1.0
    max_tokens: int = 2048
    timeout_ms: int = 60000
    retry_count: int = 2              # retries after the first attempt
    retry_delay_ms: int = 1000        # backoff base, doubled per attempt
    max_image_mb: float = 20.0        # local files only; downloads use sources.MAX_DOWNLOAD_MB
    inline_remote_images: bool = True
    server_name: str = "vision-mcp-server"
    server_version: str = "0.1.0"
    log_level: str = "INFO"
    log_path: str = ""                # empty = ~/.vision/vision-mcp-YYYY-MM-DD.log

    @property
    def completions_url(self) -> str:
        base = self.base_url.rstrip("/")
        if _COMPLETIONS_SUFFIX in base:
            return base
        return f"{base}{_COMPLETIONS_SUFFIX}"

    def redacted(self) -> dict[str, Any]:
        data = asdict(self)
        key = data["api_key"]
        data["api_key"] = f"{key[:3]}...{key[-4:]}" if len(key) > 12 else "***"
        data["completions_url"] = self.completions_url
        return data


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for field_name, preferred, legacy in _ENV_VARS:
        value = env.get(preferred) or (env.get(legacy) if legacy else None)
        if value is not None and value.strip():
            out[field_name] = value.strip()
    return out


def _as_float(name: str, raw: Any, low: float, high: float) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if not low <= value <= high:
        raise ConfigError(f"{name} must be between {low} and {high}, got {value}")
    return value


def _as_int(name: str, raw: Any, low: int) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < low:
        raise ConfigError(f"{name} must be >= {low}, got {value}")
    return value


def _as_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _check_api_key(api_key: str) -> str:
    if not api_key.strip():
        raise ConfigError("VISION_MCP_API_KEY or OPENAI_API_KEY environment variable is required")
    lowered = api_key.lower()
    if any(marker in lowered for marker in _PLACEHOLDER_MARKERS):
        raise ConfigError("API key appears to be a placeholder. Please set your actual API key.")
    return api_key.strip()


def _validate(cfg: dict[str, Any]) -> VisionConfig:
    defaults = asdict(VisionConfig())
    unknown = set(cfg) - set(defaults)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
    merged = {**defaults, **cfg}

    base_url = str(merged["base_url"]).strip()
    if not base_url.startswith(("http://", "https://")):
        raise ConfigError(f"base_url must be an http(s) URL, got {base_url!r}")
    model = str(merged["model"]).strip()
    if not model:
        raise ConfigError("model must not be empty")

    return VisionConfig(
        api_key=_check_api_key(str(merged["api_key"] or "")),
        base_url=base_url,
        model=model,
        temperature=_as_float("temperature", merged["temperature"], 0.0, 2.0),
        top_p=_as_float("top_p", merged["top_p"], 0.0, 1.0),
        max_tokens=_as_int("max_tokens", merged["max_tokens"], 1),
        timeout_ms=_as_int("timeout_ms", merged["timeout_ms"], 1),
        retry_count=_as_int("retry_count", merged["retry_count"], 0),
        retry_delay_ms=_as_int("retry_delay_ms", merged["retry_delay_ms"], 0),
        max_image_mb=_as_float("max_image_mb", merged["max_image_mb"], 0.001, 1024.0),
        inline_remote_images=_as_bool(merged["inline_remote_images"]),
        server_name=str(merged["server_name"]).strip() or defaults["server_name"],
        server_version=str(merged["server_version"]).strip() or defaults["server_version"],
        log_level=str(merged["log_level"]).strip().upper() or defaults["log_level"],
        log_path=str(merged["log_path"] or "").strip(),
    )


def read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(raw).__name__}")
    return raw


def load_config(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> VisionConfig:
    """Build the process configuration: defaults < YAML file < environment.

    Raises :class:`ConfigError` on any invalid or missing required value so
    the server can refuse to start.
    """
    env = os.environ if env is None else env
    if path is None:
        override = env.get("VISION_MCP_CONFIG", "").strip()
        path = Path(override).expanduser() if override else CONFIG_PATH
    cfg = read_config_file(path)
    cfg.update(_env_overrides(env))
    return _validate(cfg)
