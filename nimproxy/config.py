"""
Config loader for nimproxy.
Reads config.yaml once at startup and freezes it into a GatewaySettings
object. Everything downstream receives settings explicitly; nothing reads
module globals except the loader cache below.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from nimproxy.models import ModelMap

load_dotenv()

_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

_config: dict | None = None

DEFAULT_BACKEND_URL = "https://integrate.api.nvidia.com/v1"
DEFAULT_FALLBACK_MODEL = "meta/llama-3.1-8b-instruct"

# Client-facing name -> NIM model id
DEFAULT_MODEL_MAPPING = {
    "gpt-3.5-turbo": "nvidia/llama-3.1-nemotron-ultra-253b-v1",
    "gpt-4": "qwen/qwen3-coder-480b-a35b-instruct",
    "gpt-4-turbo": "moonshotai/kimi-k2-instruct-0905",
    "gpt-4o": "deepseek-ai/deepseek-v3.1",
    "claude-3-opus": "openai/gpt-oss-120b",
    "claude-3-sonnet": "openai/gpt-oss-20b",
    "gemini-pro": "qwen/qwen3-next-80b-a3b-thinking",
}


def _resolve_env_vars(value: str) -> str:
    """Replace ${ENV_VAR} patterns with actual environment variable values."""
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, "")
    return re.sub(r"\$\{(\w+)\}", replacer, value)


def _walk_and_resolve(obj):
    """Recursively resolve env vars in all string values."""
    if isinstance(obj, dict):
        return {k: _walk_and_resolve(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_walk_and_resolve(v) for v in obj]
    elif isinstance(obj, str):
        return _resolve_env_vars(obj)
    return obj


def _default_path() -> Path:
    env_path = os.environ.get("NIMPROXY_CONFIG")
    return Path(env_path) if env_path else _CONFIG_PATH


def load_config(path: Path | None = None) -> dict:
    """Load and cache config from YAML file."""
    global _config
    if _config is not None and path is None:
        return _config

    config_path = Path(path) if path else _default_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    _config = _walk_and_resolve(raw)
    return _config


def get_config() -> dict:
    """
    Return cached config, loading if necessary.
    A missing config file is not fatal: built-in defaults apply.
    """
    if _config is not None:
        return _config
    try:
        return load_config()
    except FileNotFoundError:
        return {}


def _as_bool(value, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _as_float(value) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def _as_int(value) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


@dataclass(frozen=True)
class GatewaySettings:
    """Process-wide, read-only gateway configuration."""
    backend_url: str = DEFAULT_BACKEND_URL
    api_key: str = ""
    timeout: float | None = None          # None = wait on the backend forever
    host: str = "0.0.0.0"
    port: int = 3000
    show_reasoning: bool = False
    enable_thinking: bool = False
    default_temperature: float = 0.6
    default_max_tokens: int = 4096
    model_map: ModelMap = field(default_factory=lambda: ModelMap(DEFAULT_MODEL_MAPPING))
    fallback_model: str = DEFAULT_FALLBACK_MODEL
    owned_by: str = "nvidia-nim-proxy"
    service_name: str = "OpenAI to NVIDIA NIM Proxy"
    cors_origins: tuple[str, ...] = ("*",)
    log_level: str = "INFO"
    log_file: str = ""

    @classmethod
    def from_config(cls, cfg: dict) -> "GatewaySettings":
        """Build settings from a (resolved) config dict. Empty values fall back to defaults."""
        backend = cfg.get("backend", {}) or {}
        server = cfg.get("server", {}) or {}
        features = cfg.get("features", {}) or {}
        defaults = cfg.get("defaults", {}) or {}
        models = cfg.get("models", {}) or {}
        log_cfg = cfg.get("logging", {}) or {}
        base = cls()

        mapping = models.get("mapping")
        temperature = _as_float(defaults.get("temperature"))
        max_tokens = _as_int(defaults.get("max_tokens"))
        origins = server.get("cors_origins")

        return cls(
            backend_url=(backend.get("url") or base.backend_url).rstrip("/"),
            api_key=backend.get("api_key") or "",
            timeout=_as_float(backend.get("timeout")),
            host=server.get("host") or base.host,
            port=int(server.get("port") or base.port),
            show_reasoning=_as_bool(features.get("show_reasoning")),
            enable_thinking=_as_bool(features.get("enable_thinking")),
            default_temperature=temperature if temperature is not None else base.default_temperature,
            default_max_tokens=max_tokens if max_tokens is not None else base.default_max_tokens,
            model_map=ModelMap(mapping) if mapping is not None else base.model_map,
            fallback_model=models.get("fallback") or base.fallback_model,
            owned_by=models.get("owned_by") or base.owned_by,
            service_name=server.get("service_name") or base.service_name,
            cors_origins=tuple(origins) if origins else base.cors_origins,
            log_level=log_cfg.get("level") or base.log_level,
            log_file=log_cfg.get("file") or "",
        )

    def redacted(self) -> dict:
        """Settings as a plain dict with the credential masked."""
        return {
            "backend_url": self.backend_url,
            "api_key": "***redacted***" if self.api_key else "",
            "timeout": self.timeout,
            "host": self.host,
            "port": self.port,
            "show_reasoning": self.show_reasoning,
            "enable_thinking": self.enable_thinking,
            "default_temperature": self.default_temperature,
            "default_max_tokens": self.default_max_tokens,
            "fallback_model": self.fallback_model,
            "owned_by": self.owned_by,
        }


def get_settings(path: Path | None = None) -> GatewaySettings:
    """Load config (explicit path, $NIMPROXY_CONFIG, or ./config.yaml) into settings."""
    cfg = load_config(path) if path else get_config()
    return GatewaySettings.from_config(cfg)
