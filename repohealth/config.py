"""Configuration loading for repohealth (.repohealth.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_FILENAME = ".repohealth.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class LLMConfig:
    """Generative backend settings; unset values fall back to the environment."""

    model: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: float = 0.4
    max_tokens: int = 3000
    request_timeout: float = 120.0


@dataclass
class GitHubConfig:
    token: Optional[str] = None
    base_url: str = "https://api.github.com"
    request_timeout: float = 15.0
    max_important_files: int = 10
    max_file_length: int = 20_000


@dataclass
class RateLimitConfig:
    max_requests: int = 10
    window_seconds: float = 60.0
    sweep_interval: Optional[float] = 60.0


@dataclass
class CacheConfig:
    path: Optional[Path] = None
    ttl_days: int = 7
    recent_limit: int = 10


@dataclass
class PromptConfig:
    max_files: int = 6
    max_file_length: int = 2500
    max_tree_lines: int = 40


@dataclass
class ServiceConfig:
    """Represents the settings defined in .repohealth.yml."""

    root: Path
    llm: LLMConfig = field(default_factory=LLMConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    prompt: PromptConfig = field(default_factory=PromptConfig)
    max_body_size: int = 10 * 1024


def load_config(config_path: Path) -> ServiceConfig:
    """Load configuration from disk, returning defaults when no file exists."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ServiceConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = ServiceConfig(root=root)

    llm_data = _as_dict(data.get("llm"))
    if llm_data:
        llm = config.llm
        llm.model = _as_str(llm_data.get("model"))
        llm.base_url = _as_str(llm_data.get("base_url"))
        llm.api_key = _as_str(llm_data.get("api_key"))
        llm.temperature = _or_default(_as_float(llm_data.get("temperature")), llm.temperature)
        llm.max_tokens = _or_default(_as_int(llm_data.get("max_tokens")), llm.max_tokens)
        llm.request_timeout = _or_default(
            _as_float(llm_data.get("request_timeout")), llm.request_timeout
        )

    github_data = _as_dict(data.get("github"))
    if github_data:
        github = config.github
        github.token = _as_str(github_data.get("token"))
        github.base_url = _as_str(github_data.get("base_url")) or github.base_url
        github.request_timeout = _or_default(
            _as_float(github_data.get("request_timeout")), github.request_timeout
        )
        github.max_important_files = _or_default(
            _as_int(github_data.get("max_important_files")), github.max_important_files
        )
        github.max_file_length = _or_default(
            _as_int(github_data.get("max_file_length")), github.max_file_length
        )

    rate_data = _as_dict(data.get("rate_limit"))
    if rate_data:
        rate = config.rate_limit
        rate.max_requests = _or_default(_as_int(rate_data.get("max_requests")), rate.max_requests)
        rate.window_seconds = _or_default(
            _as_float(rate_data.get("window_seconds")), rate.window_seconds
        )
        if "sweep_interval" in rate_data:
            rate.sweep_interval = _as_float(rate_data.get("sweep_interval"))

    cache_data = _as_dict(data.get("cache"))
    if cache_data:
        cache = config.cache
        cache_path = _as_str(cache_data.get("path"))
        cache.path = (root / cache_path) if cache_path else None
        cache.ttl_days = _or_default(_as_int(cache_data.get("ttl_days")), cache.ttl_days)
        cache.recent_limit = _or_default(
            _as_int(cache_data.get("recent_limit")), cache.recent_limit
        )

    prompt_data = _as_dict(data.get("prompt"))
    if prompt_data:
        prompt = config.prompt
        prompt.max_files = _or_default(_as_int(prompt_data.get("max_files")), prompt.max_files)
        prompt.max_file_length = _or_default(
            _as_int(prompt_data.get("max_file_length")), prompt.max_file_length
        )
        prompt.max_tree_lines = _or_default(
            _as_int(prompt_data.get("max_tree_lines")), prompt.max_tree_lines
        )

    config.max_body_size = _or_default(_as_int(data.get("max_body_size")), config.max_body_size)
    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME and config_path.suffix not in {".yml", ".yaml"}:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _or_default(value, default):
    return default if value is None else value


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None
