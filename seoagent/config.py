"""Configuration loading for seoagent (seoagent.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .models import RepoSettings, RepositoryTarget

CONFIG_FILENAME = "seoagent.yml"

_CONTENT_FREQUENCIES = ("daily", "weekly", "biweekly", "monthly")


class ConfigError(RuntimeError):
    """Raised when the configuration file is missing or malformed."""


@dataclass
class AIConfig:
    """Chat-completion endpoint settings."""

    model: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    temperature: float = 0.7
    max_tokens: Optional[int] = 2048
    request_timeout: float = 60.0


@dataclass
class ImageConfig:
    model: str = "dall-e-3"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    width: int = 1200
    height: int = 630
    format: str = "webp"
    quality: int = 85


@dataclass
class AnalyticsConfig:
    """Search Console access."""

    token: Optional[str] = None
    base_url: Optional[str] = None


@dataclass
class EmailConfig:
    sender: str
    recipients: List[str] = field(default_factory=list)
    smtp_host: str = "localhost"
    smtp_port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    daily_report: bool = True


@dataclass
class AgentConfig:
    """Represents the settings defined in seoagent.yml."""

    root: Path
    data_dir: Path
    repositories: List[RepositoryTarget] = field(default_factory=list)
    ai: AIConfig = field(default_factory=AIConfig)
    images: Optional[ImageConfig] = None
    analytics: Optional[AnalyticsConfig] = None
    email: Optional[EmailConfig] = None
    max_fixes_per_run: int = 10
    measurement_window_days: int = 14
    repo_timeout_seconds: float = 900.0
    max_workers: int = 1

    def repository(self, repo_id: str) -> Optional[RepositoryTarget]:
        for target in self.repositories:
            if target.id == repo_id:
                return target
        return None


def load_config(config_path: Path) -> AgentConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    if not config_file.exists():
        raise ConfigError(f"Configuration file not found: {config_file}")
    root = config_file.parent

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    data_dir_value = _as_str(data.get("data_dir")) or ".seoagent"
    data_dir = Path(data_dir_value).expanduser()
    if not data_dir.is_absolute():
        data_dir = root / data_dir

    ai_data = _as_dict(data.get("ai"))
    ai = AIConfig(
        model=_as_str(ai_data.get("model")),
        base_url=_as_str(ai_data.get("base_url")),
        api_key=_as_str(ai_data.get("api_key")),
        temperature=_as_float(ai_data.get("temperature")) if "temperature" in ai_data else 0.7,
        max_tokens=_as_int(ai_data.get("max_tokens")) if "max_tokens" in ai_data else 2048,
        request_timeout=_as_float(ai_data.get("request_timeout")) or 60.0,
    )

    image_data = _as_dict(data.get("images"))
    images = None
    if image_data:
        images = ImageConfig(
            model=_as_str(image_data.get("model")) or "dall-e-3",
            base_url=_as_str(image_data.get("base_url")),
            api_key=_as_str(image_data.get("api_key")),
            width=_as_int(image_data.get("width")) or 1200,
            height=_as_int(image_data.get("height")) or 630,
            format=_as_str(image_data.get("format")) or "webp",
            quality=_as_int(image_data.get("quality")) or 85,
        )

    analytics_data = _as_dict(data.get("analytics"))
    analytics = None
    if analytics_data:
        analytics = AnalyticsConfig(
            token=_as_str(analytics_data.get("token")),
            base_url=_as_str(analytics_data.get("base_url")),
        )

    email_data = _as_dict(data.get("email"))
    email = None
    if email_data:
        sender = _as_str(email_data.get("from")) or _as_str(email_data.get("sender"))
        if not sender:
            raise ConfigError("email.from is required when email is configured")
        email = EmailConfig(
            sender=sender,
            recipients=_as_str_list(email_data.get("to")),
            smtp_host=_as_str(email_data.get("smtp_host")) or "localhost",
            smtp_port=_as_int(email_data.get("smtp_port")) or 587,
            username=_as_str(email_data.get("username")),
            password=_as_str(email_data.get("password")),
            use_tls=_default_bool(email_data.get("use_tls"), True),
            daily_report=_default_bool(email_data.get("daily_report"), True),
        )

    repositories = _parse_repositories(data.get("repositories"))

    config = AgentConfig(
        root=root,
        data_dir=data_dir,
        repositories=repositories,
        ai=ai,
        images=images,
        analytics=analytics,
        email=email,
        max_fixes_per_run=_as_int(data.get("max_fixes_per_run")) or 10,
        measurement_window_days=_as_int(data.get("measurement_window_days")) or 14,
        repo_timeout_seconds=_as_float(data.get("repo_timeout_seconds")) or 900.0,
        max_workers=max(1, _as_int(data.get("max_workers")) or 1),
    )
    _apply_env_overrides(config)
    return config


def _apply_env_overrides(config: AgentConfig) -> None:
    env = os.environ
    if not config.ai.api_key:
        config.ai.api_key = env.get("SEOAGENT_AI_API_KEY") or env.get("OPENAI_API_KEY")
    if config.images is not None and not config.images.api_key:
        config.images.api_key = env.get("SEOAGENT_IMAGE_API_KEY") or config.ai.api_key
    if config.analytics is not None and not config.analytics.token:
        config.analytics.token = env.get("SEOAGENT_SEARCH_CONSOLE_TOKEN")
    if config.email is not None and not config.email.password:
        config.email.password = env.get("SEOAGENT_SMTP_PASSWORD")


def _parse_repositories(value: Any) -> List[RepositoryTarget]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError("repositories must be a list")

    targets: List[RepositoryTarget] = []
    seen: set[str] = set()
    for index, raw in enumerate(value):
        if not isinstance(raw, dict):
            raise ConfigError(f"repositories[{index}] must be a mapping")
        repo_id = _as_str(raw.get("id"))
        url = _as_str(raw.get("url"))
        if not repo_id or not url:
            raise ConfigError(f"repositories[{index}] requires both id and url")
        if repo_id in seen:
            raise ConfigError(f"Duplicate repository id: {repo_id}")
        seen.add(repo_id)

        search_console = _as_str(raw.get("search_console"))
        if search_console is None:
            search_console = _as_str(_as_dict(raw.get("search_console")).get("property_url"))

        targets.append(
            RepositoryTarget(
                id=repo_id,
                url=url,
                branch=_as_str(raw.get("branch")) or "main",
                domain=(_as_str(raw.get("domain")) or "").rstrip("/"),
                search_console=search_console,
                settings=_parse_settings(_as_dict(raw.get("settings")), repo_id),
            )
        )
    return targets


def _parse_settings(data: Mapping[str, Any], repo_id: str) -> RepoSettings:
    frequency = (_as_str(data.get("content_frequency")) or "weekly").lower()
    if frequency not in _CONTENT_FREQUENCIES:
        raise ConfigError(
            f"{repo_id}: content_frequency must be one of {', '.join(_CONTENT_FREQUENCIES)}"
        )

    limits: Dict[str, int] = {}
    for kind, raw_limit in _as_dict(data.get("daily_limits")).items():
        limit = _as_int(raw_limit)
        if limit is None or limit < 0:
            raise ConfigError(f"{repo_id}: daily limit for '{kind}' must be a non-negative integer")
        limits[str(kind)] = limit

    return RepoSettings(
        content_frequency=frequency,
        tone=_as_str(data.get("tone")) or "professional",
        topics=tuple(_as_str_list(data.get("topics"))),
        exclude_paths=tuple(_as_str_list(data.get("exclude_paths"))),
        daily_limits=limits,
        custom_instructions=_as_str(data.get("custom_instructions")),
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
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


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _default_bool(value: Any, default: bool) -> bool:
    parsed = _as_bool(value)
    return default if parsed is None else parsed


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "AIConfig",
    "AgentConfig",
    "AnalyticsConfig",
    "CONFIG_FILENAME",
    "ConfigError",
    "EmailConfig",
    "ImageConfig",
    "load_config",
]
