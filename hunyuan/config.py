"""
Typed configuration model with precedence-based loader.

Precedence (lowest to highest):
    defaults < config file (YAML) < profile < env vars < CLI flags
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from hunyuan.errors import ConfigurationError
from hunyuan.llm.api import DEFAULT_ACTION, DEFAULT_BASE_URL, DEFAULT_CHAT_MODEL, DEFAULT_SERVICE
from hunyuan.llm.retry import RetryPolicy
from hunyuan.llm.types import ChatOptions


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class CredentialsConfig:
    secret_id: str = ""
    secret_key: str = ""


@dataclass
class ApiConfig:
    base_url: str = DEFAULT_BASE_URL
    host: str = ""
    service: str = DEFAULT_SERVICE
    action: str = DEFAULT_ACTION
    version: str = "2023-09-01"
    region: str = ""
    timeout_seconds: float = 120.0


@dataclass
class ChatConfig:
    model: str = DEFAULT_CHAT_MODEL
    temperature: float | None = None
    top_p: float | None = None
    enable_enhancement: bool | None = None
    tools: list[str] = field(default_factory=list)
    proxy_tool_calls: bool = False
    max_tool_rounds: int = 10


@dataclass
class RetryConfig:
    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay_seconds: float = 10.0


@dataclass
class ToolsConfig:
    timeout_seconds: float = 30.0
    plugins_enabled: bool = False


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class HunyuanConfig:
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)

    def default_options(self) -> ChatOptions:
        """Project the chat section onto the client's default ``ChatOptions``."""
        return ChatOptions(
            model=self.chat.model or None,
            temperature=self.chat.temperature,
            top_p=self.chat.top_p,
            enable_enhancement=self.chat.enable_enhancement,
            tool_names=frozenset(self.chat.tools) if self.chat.tools else None,
            proxy_tool_calls=self.chat.proxy_tool_calls,
        )

    def retry_policy(self) -> RetryPolicy:
        try:
            return RetryPolicy(
                max_attempts=self.retry.max_attempts,
                initial_delay_s=self.retry.initial_delay_seconds,
                backoff_multiplier=self.retry.backoff_multiplier,
                max_delay_s=self.retry.max_delay_seconds,
            )
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def to_dict(self, *, redact: bool = True) -> dict:
        d = asdict(self)
        if redact and d["credentials"]["secret_key"]:
            d["credentials"]["secret_key"] = "***"
        return d


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_dotpath(obj: Any, dotpath: str, value: Any) -> None:
    """Walk obj via dotpath and set the final attribute."""
    parts = dotpath.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay into base, returning a new dict."""
    merged = dict(base)
    for k, v in overlay.items():
        if k in merged and isinstance(merged[k], dict) and isinstance(v, dict):
            merged[k] = _deep_merge(merged[k], v)
        else:
            merged[k] = v
    return merged


def _coerce(name: str, value: str, target_type: type) -> Any:
    """Coerce a string env value to the target type."""
    if target_type is bool:
        return value.lower() in ("1", "true", "yes", "on")
    if target_type is list:
        return [s.strip() for s in value.split(",") if s.strip()]
    try:
        if target_type is int:
            return int(value)
        if target_type is float:
            return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name}={value!r} is not a valid {target_type.__name__}") from e
    return value


def _build_section(cls: type, raw: dict) -> Any:
    """Build a dataclass section from a raw dict, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: v for k, v in (raw or {}).items() if k in valid_fields}
    return cls(**filtered)


# ---------------------------------------------------------------------------
# ENV var mapping
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "HUNYUAN_SECRET_ID":             ("credentials.secret_id", str),
    "HUNYUAN_SECRET_KEY":            ("credentials.secret_key", str),
    "HUNYUAN_BASE_URL":              ("api.base_url", str),
    "HUNYUAN_REGION":                ("api.region", str),
    "HUNYUAN_TIMEOUT":               ("api.timeout_seconds", float),
    "HUNYUAN_MODEL":                 ("chat.model", str),
    "HUNYUAN_TEMPERATURE":           ("chat.temperature", float),
    "HUNYUAN_TOP_P":                 ("chat.top_p", float),
    "HUNYUAN_TOOLS":                 ("chat.tools", list),
    "HUNYUAN_PROXY_TOOL_CALLS":      ("chat.proxy_tool_calls", bool),
    "HUNYUAN_MAX_TOOL_ROUNDS":       ("chat.max_tool_rounds", int),
    "HUNYUAN_RETRY_MAX_ATTEMPTS":    ("retry.max_attempts", int),
    "HUNYUAN_TOOLS_TIMEOUT":         ("tools.timeout_seconds", float),
    "HUNYUAN_TOOLS_PLUGINS_ENABLED": ("tools.plugins_enabled", bool),
}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> HunyuanConfig:
    """
    Build a HunyuanConfig by layering sources in precedence order:

        defaults  <  config file  <  profile  <  env vars  <  CLI flags

    Parameters
    ----------
    config_path : path to YAML config file (optional)
    profile : name of a profile to apply from the config file
    cli_overrides : dict of dotpath -> value CLI flag overrides
    """
    raw: dict[str, Any] = {}

    # --- 1. Config file ---
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.is_file():
            with p.open("r", encoding="utf-8") as f:
                try:
                    file_data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigurationError(f"Invalid YAML in {p}: {e}") from e
            if not isinstance(file_data, dict):
                raise ConfigurationError(f"Config file {p} must contain a mapping")
            raw = _deep_merge(raw, file_data)

    # --- 2. Profile overlay ---
    if profile:
        profile_data = raw.get("profiles", {}).get(profile)
        if profile_data is None:
            raise ConfigurationError(f"Unknown profile: {profile!r}")
        raw = _deep_merge(raw, profile_data)

    # --- Build sections from raw ---
    cfg = HunyuanConfig(
        credentials=_build_section(CredentialsConfig, raw.get("credentials", {})),
        api=_build_section(ApiConfig, raw.get("api", {})),
        chat=_build_section(ChatConfig, raw.get("chat", {})),
        retry=_build_section(RetryConfig, raw.get("retry", {})),
        tools=_build_section(ToolsConfig, raw.get("tools", {})),
        profiles=raw.get("profiles", {}),
    )

    # --- 3. Env var overrides ---
    for env_var, (dotpath, target_type) in _ENV_MAP.items():
        val = os.environ.get(env_var)
        if val is not None:
            _apply_dotpath(cfg, dotpath, _coerce(env_var, val, target_type))

    # --- 4. CLI flag overrides ---
    if cli_overrides:
        for dotpath, value in cli_overrides.items():
            _apply_dotpath(cfg, dotpath, value)

    return cfg
