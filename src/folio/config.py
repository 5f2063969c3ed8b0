"""Folio configuration loading and validation.

Reads folio.toml from a config directory, parses all sections, and returns
a validated FolioConfig dataclass.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_FILENAME = "folio.toml"

# Environment override for [folio].base_url.
BASE_URL_ENV = "FOLIO_API_BASE_URL"

DEFAULT_TIMEOUT_S = 20.0
DEFAULT_SEARCH_DEBOUNCE_MS = 250

# Pattern matching ${VAR_NAME}; supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(Exception):
    """Raised when folio configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from [folio.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class ViewConfig:
    """Per-view overrides from a [views.<name>] section.

    ``None`` means "use the preset's default".
    """

    page_size: int | None = None
    search_debounce_ms: int | None = None
    endpoint: str | None = None


@dataclass
class FolioConfig:
    """Top-level folio configuration."""

    base_url: str
    timeout_s: float = DEFAULT_TIMEOUT_S
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    views: dict[str, ViewConfig] = field(default_factory=dict)

    @classmethod
    def default(cls, base_url: str = "http://localhost:3000/api") -> FolioConfig:
        """Return a configuration with every optional value at its default."""
        return cls(base_url=base_url)

    def view(self, name: str) -> ViewConfig:
        """Return overrides for view *name* (empty when not configured)."""
        return self.views.get(name, ViewConfig())


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float, None) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _positive_int(value: Any, key: str, *, allow_zero: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"Invalid {key}: {value!r}. Must be an integer.")
    if value < 0 or (value == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        raise ConfigError(f"Invalid {key}: {value!r}. Must be a {qualifier} integer.")
    return value


def _parse_logging(folio_section: dict) -> LoggingConfig:
    """Parse the optional [folio.logging] sub-section."""
    logging_section = folio_section.get("logging", {})
    if not isinstance(logging_section, dict):
        raise ConfigError("folio.logging must be a table")

    level = str(logging_section.get("level", "INFO")).upper()
    log_format = str(logging_section.get("format", "text")).lower()
    if log_format not in ("text", "json"):
        raise ConfigError(
            f"Invalid folio.logging.format: {log_format!r}. Expected 'text' or 'json'."
        )
    return LoggingConfig(
        level=level,
        format=log_format,
        log_root=logging_section.get("log_root"),
    )


def _parse_views(data: dict) -> dict[str, ViewConfig]:
    """Parse the optional [views.<name>] sections."""
    views_section = data.get("views", {})
    if not isinstance(views_section, dict):
        raise ConfigError("[views] must be a table of per-view tables")

    views: dict[str, ViewConfig] = {}
    for name, raw in views_section.items():
        if not isinstance(raw, dict):
            raise ConfigError(f"[views.{name}] must be a table")

        page_size = raw.get("page_size")
        if page_size is not None:
            page_size = _positive_int(page_size, f"views.{name}.page_size")

        debounce = raw.get("search_debounce_ms")
        if debounce is not None:
            debounce = _positive_int(
                debounce, f"views.{name}.search_debounce_ms", allow_zero=True
            )

        endpoint = raw.get("endpoint")
        if endpoint is not None:
            if not isinstance(endpoint, str) or not endpoint.strip("/ "):
                raise ConfigError(f"views.{name}.endpoint must be a non-empty string")
            endpoint = endpoint.strip("/ ")

        views[name] = ViewConfig(
            page_size=page_size,
            search_debounce_ms=debounce,
            endpoint=endpoint,
        )
    return views


def load_config(config_dir: Path) -> FolioConfig:
    """Load and validate a folio.toml from *config_dir*.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or lacks required fields.
    """
    toml_path = config_dir / CONFIG_FILENAME

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    data = resolve_env_vars(data)

    # --- [folio] section (required) ---
    folio_section = data.get("folio")
    if not isinstance(folio_section, dict):
        raise ConfigError("Missing [folio] section in config")

    base_url = os.environ.get(BASE_URL_ENV) or folio_section.get("base_url")
    if not isinstance(base_url, str) or not base_url.strip():
        raise ConfigError("Missing required field: folio.base_url")
    base_url = base_url.strip().rstrip("/")
    if not base_url.startswith(("http://", "https://")):
        raise ConfigError(f"Invalid folio.base_url: {base_url!r}. Expected an http(s) URL.")

    raw_timeout = folio_section.get("timeout_s", DEFAULT_TIMEOUT_S)
    try:
        timeout_s = float(raw_timeout)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid folio.timeout_s: {raw_timeout!r}") from exc
    if timeout_s <= 0:
        raise ConfigError(f"Invalid folio.timeout_s: {timeout_s!r}. Must be positive.")

    return FolioConfig(
        base_url=base_url,
        timeout_s=timeout_s,
        logging=_parse_logging(folio_section),
        views=_parse_views(data),
    )
