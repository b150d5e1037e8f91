"""Runtime settings assembled from defaults and environment overrides.

Settings are never written back to disk; every process starts from the
defaults below plus ``REPOPANEL_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from ..ai.client import ClientSettings

__all__ = ["Settings", "load_settings", "apply_overrides", "redact_secret"]

LOGGER = logging.getLogger(__name__)
_ENV_OVERRIDES: Mapping[str, str] = {
    "REPOPANEL_API_KEY": "api_key",
    "REPOPANEL_BASE_URL": "base_url",
    "REPOPANEL_MODEL": "model",
    "REPOPANEL_ORGANIZATION": "organization",
    "REPOPANEL_GIT": "git_executable",
    "REPOPANEL_REPOSITORY": "repository",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "REPOPANEL_DEBUG_LOGGING": "debug_logging",
    "REPOPANEL_WATCH_FILES": "watch_files",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "REPOPANEL_REQUEST_TIMEOUT": "request_timeout",
    "REPOPANEL_TEMPERATURE": "temperature",
    "REPOPANEL_STALE_WINDOW": "stale_window",
    "REPOPANEL_DEBOUNCE_SECONDS": "debounce_seconds",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "REPOPANEL_MAX_RETRIES": "max_retries",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_API_KEY_FALLBACK_ENV = "OPENAI_API_KEY"


@dataclass(slots=True)
class Settings:
    """Configuration for one repository panel process."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    organization: str | None = None
    temperature: float = 0.2
    request_timeout: float = 60.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    stale_window: float = 2.0
    debounce_seconds: float = 1.0
    initial_commits_limit: int = 20
    expanded_commits_limit: int = 50
    git_executable: str = "git"
    repository: str | None = None
    watch_files: bool = True
    debug_logging: bool = False

    def client_settings(self) -> ClientSettings:
        return ClientSettings(
            base_url=self.base_url,
            api_key=self.api_key,
            model=self.model,
            organization=self.organization,
            request_timeout=self.request_timeout,
            max_retries=self.max_retries,
            retry_min_seconds=self.retry_min_seconds,
            retry_max_seconds=self.retry_max_seconds,
            temperature=self.temperature,
            debug_logging=self.debug_logging,
        )

    def repository_path(self) -> Path:
        return Path(self.repository or os.getcwd()).expanduser()


def load_settings(
    *,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Return defaults with environment and explicit overrides applied."""

    env = os.environ if environ is None else environ
    settings = _apply_env_overrides(Settings(), env)
    if not settings.api_key:
        fallback_key = env.get(_API_KEY_FALLBACK_ENV)
        if fallback_key:
            settings = replace(settings, api_key=fallback_key)
    if overrides:
        settings = apply_overrides(settings, overrides, source="runtime")
    if settings.expanded_commits_limit < settings.initial_commits_limit:
        LOGGER.warning(
            "expanded_commits_limit (%s) is below initial_commits_limit (%s); using the initial limit",
            settings.expanded_commits_limit,
            settings.initial_commits_limit,
        )
        settings = replace(settings, expanded_commits_limit=settings.initial_commits_limit)
    LOGGER.debug(
        "Settings loaded: model=%s base_url=%s api_key=%s",
        settings.model,
        settings.base_url,
        redact_secret(settings.api_key) or "<unset>",
    )
    return settings


def apply_overrides(settings: Settings, overrides: Mapping[str, Any], *, source: str = "runtime") -> Settings:
    allowed = {field.name for field in fields(Settings)}
    filtered: Dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in allowed or value is None:
            continue
        filtered[key] = value
    if filtered:
        LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
        settings = replace(settings, **filtered)
    return settings


def _apply_env_overrides(settings: Settings, env: Mapping[str, str]) -> Settings:
    overrides: Dict[str, Any] = {}
    for env_name, field_name in _ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value is not None:
            overrides[field_name] = value
    for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value is not None:
            overrides[field_name] = value.strip().lower() in _TRUE_VALUES
    for env_name, field_name in _INT_ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value is None:
            continue
        try:
            overrides[field_name] = int(value, 10)
        except ValueError:
            LOGGER.warning("Environment override %s=%s is not a valid integer", env_name, value)
    for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value is None:
            continue
        try:
            overrides[field_name] = float(value)
        except ValueError:
            LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
    if overrides:
        settings = apply_overrides(settings, overrides, source="environment")
    return settings


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
