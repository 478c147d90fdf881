"""
Service configuration.

Settings are read from an optional YAML file and then overridden by
environment variables. The YAML file location is taken from
``SKILL_VALIDATOR_CONFIG`` unless a path is passed explicitly.

Example config.yaml:

    server:
      host: 0.0.0.0
      port: 3200
    llm:
      provider: anthropic
      model: claude-sonnet-4-20250514
    quality:
      timeout_s: 60
    issues:
      debounce_ms: 500
    log_level: INFO
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError

SERVICE_NAME = "skill-validator"
DEFAULT_MODEL = "claude-sonnet-4-20250514"

# (yaml section, yaml key, settings attribute, env var, caster)
_FIELDS = [
    ("server", "host", "host", "VALIDATOR_HOST", str),
    ("server", "port", "port", "VALIDATOR_PORT", int),
    ("llm", "provider", "llm_provider", "LLM_PROVIDER", str),
    ("llm", "model", "llm_model", "LLM_MODEL", str),
    ("llm", "api_key", "api_key", "ANTHROPIC_API_KEY", str),
    ("quality", "timeout_s", "quality_timeout_s", "QUALITY_TIMEOUT_S", float),
    ("issues", "debounce_ms", "issue_debounce_ms", "ISSUE_DEBOUNCE_MS", int),
    (None, "log_level", "log_level", "LOG_LEVEL", str),
]


@dataclass
class Settings:
    """
    Runtime settings for the validator service.

    Attributes:
        host: Interface the HTTP server binds to.
        port: HTTP port.
        llm_provider: LLM provider used by the quality scorer.
        llm_model: Model name passed to the provider.
        api_key: Provider API key; quality scoring is unavailable without it.
        quality_timeout_s: Upper bound for one quality-scoring request.
        issue_debounce_ms: Delay used to coalesce issue persistence.
        log_level: Level for the package logger.
    """

    host: str = "0.0.0.0"
    port: int = 3200
    llm_provider: str = "anthropic"
    llm_model: str = DEFAULT_MODEL
    api_key: Optional[str] = None
    quality_timeout_s: float = 60.0
    issue_debounce_ms: int = 500
    log_level: str = "INFO"
    service_name: str = SERVICE_NAME
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def load(
        cls,
        path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        """
        Build settings from YAML (if any) and the environment.

        Args:
            path: Explicit config file. Defaults to ``$SKILL_VALIDATOR_CONFIG``.
            environ: Environment mapping, ``os.environ`` by default.

        Returns:
            Populated Settings.

        Raises:
            ConfigError: If the file cannot be parsed or a value has the wrong type.
        """
        env = os.environ if environ is None else environ
        settings = cls()

        if path is None and env.get("SKILL_VALIDATOR_CONFIG"):
            path = Path(env["SKILL_VALIDATOR_CONFIG"])
        if path is not None:
            settings._apply_yaml(path)

        settings._apply_env(env)
        return settings

    def _apply_yaml(self, path: Path) -> None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        for section, key, attr, _env, caster in _FIELDS:
            source = data if section is None else data.get(section) or {}
            if key in source and source[key] is not None:
                setattr(self, attr, _cast(caster, source[key], f"{section or ''}.{key}"))

        known = {"server", "llm", "quality", "issues", "log_level"}
        self.extra = {k: v for k, v in data.items() if k not in known}

    def _apply_env(self, env: Mapping[str, str]) -> None:
        for _section, _key, attr, env_var, caster in _FIELDS:
            value = env.get(env_var)
            if value:
                setattr(self, attr, _cast(caster, value, env_var))


def _cast(caster: Any, value: Any, name: str) -> Any:
    try:
        return caster(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from e
