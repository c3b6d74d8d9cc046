"""
Config system - Layered agent configuration.

Merge order (later overrides earlier):
1. AgentConfig dataclass defaults
2. zephyr.yaml / zephyr.yml / zephyr.json in the project directory
3. .env file (read with python-dotenv)
4. Environment variables (ZE_* prefix, ``__`` for nesting)
5. Manual overrides
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, MISSING
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values


DEFAULT_API_URL = "https://zeapi.zephyrcloud.app"
CONFIG_FILENAMES = ("zephyr.yaml", "zephyr.yml", "zephyr.json")

# Plain environment variables that map onto config keys without the
# generic ZE_ prefix scheme.
ENV_ALIASES = {
    "ZE_API": "api_url",
    "ZE_API_GATE": "api_url",
}

# Variables under the ZE_ prefix that are not configuration.
_RESERVED_ENV = {"ZE_USER_TOKEN", "ZE_SECRET_TOKEN", "ZE_OUTPUT_FORMAT"}


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class AgentConfig:
    """Typed agent configuration."""

    api_url: str = DEFAULT_API_URL
    resolve_timeout: float = 30.0
    upload_timeout: float = 60.0
    version_info_timeout: float = 5.0
    max_retries: int = 3
    retry_base_delay: float = 0.5
    upload_concurrency: int = 6
    fail_on_unresolved_remotes: bool = False
    base_href: Optional[str] = None
    target: Optional[str] = None
    env_prefix: str = "ZE_PUBLIC_"
    app_config_ttl: float = 60.0
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.upload_concurrency < 1:
            raise ConfigError("upload_concurrency must be >= 1")
        if self.max_retries < 0:
            raise ConfigError("max_retries must be >= 0")
        self.api_url = self.api_url.rstrip("/")

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    overrides > environment variables > .env file > config files > defaults
    """

    def __init__(self, env_prefix: str = "ZE_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        project_dir: Optional[str] = None,
        env_prefix: str = "ZE_",
        env_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from all sources.

        Args:
            project_dir: Directory searched for zephyr.yaml / zephyr.json
            env_prefix: Prefix for environment variables
            env_file: Path to .env file (defaults to project_dir/.env)
            environ: Environment mapping (defaults to os.environ)
            overrides: Manual overrides (highest precedence)

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)
        base = Path(project_dir or ".")

        for name in CONFIG_FILENAMES:
            path = base / name
            if path.exists():
                loader._load_file(path)
                break

        loader._load_env_file(env_file or str(base / ".env"))

        loader._load_from_env(os.environ if environ is None else environ)

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_file(self, path: Path):
        """Load config from YAML or JSON file."""
        with open(path, encoding="utf-8") as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        if data is None:
            return
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
        self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        """Load config from .env file."""
        if not Path(path).exists():
            return
        self._load_from_env(
            {k: v for k, v in dotenv_values(path).items() if v is not None}
        )

    def _load_from_env(self, environ: Mapping[str, str]):
        """Load config from environment variables."""
        for key, value in environ.items():
            if key in ENV_ALIASES:
                self.config_data[ENV_ALIASES[key]] = value
            elif key.startswith(self.env_prefix) and key not in _RESERVED_ENV:
                if key.startswith("ZE_PUBLIC_"):
                    continue
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert ZE_EXTRA__FOO to nested dict."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def to_agent_config(self) -> AgentConfig:
        """Instantiate and validate an AgentConfig from the merged data."""
        known = {f.name: f for f in fields(AgentConfig)}
        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = dict(self.config_data.get("extra", {}) or {})

        for key, value in self.config_data.items():
            if key == "extra":
                continue
            if key not in known:
                extra[key] = value
                continue
            kwargs[key] = self._coerce(known[key], value)

        kwargs["extra"] = extra
        try:
            return AgentConfig(**kwargs)
        except TypeError as e:
            raise ConfigError(f"Invalid agent configuration: {e}") from e

    def _coerce(self, f, value: Any) -> Any:
        default = f.default if f.default is not MISSING else None
        if value is None or default is None:
            return value
        try:
            if isinstance(default, bool):
                if isinstance(value, str):
                    return value.lower() in ("true", "yes", "1")
                return bool(value)
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            if isinstance(default, str):
                return str(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value for '{f.name}': {value!r}") from e
        return value


def load_config(
    project_dir: Optional[str] = None,
    *,
    env_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> AgentConfig:
    """Shortcut: load every layer and return the typed config."""
    return ConfigLoader.load(
        project_dir=project_dir,
        env_file=env_file,
        environ=environ,
        overrides=overrides,
    ).to_agent_config()
