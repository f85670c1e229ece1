"""Service configuration loading and validation.

Reads ``janus.toml`` from a config directory, resolves ``${VAR}`` references
against the environment, and returns a validated ``JanusConfig`` dataclass.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from janus.auth import AccessToken, StaticTokenSource
from janus.calendar.google import GOOGLE_AUTH_PROVIDER_ID, GOOGLE_CALENDAR_API_BASE_URL
from janus.calendar.http import DEFAULT_TIMEOUT_S
from janus.calendar.outlook import GRAPH_API_BASE_URL, MICROSOFT_AUTH_PROVIDER_ID
from janus.calendar.registry import ProviderEndpoint, ProviderSettings
from janus.calendar.types import ProviderId
from janus.core.logging import LOG_FORMATS

CONFIG_FILENAME = "janus.toml"
DEFAULT_PORT = 8000

# Pattern matching ${VAR_NAME}.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

# [auth.tokens] keys may use either the calendar provider id or the auth
# library's account-provider id.
_TOKEN_KEY_ALIASES: dict[str, str] = {
    ProviderId.google.value: GOOGLE_AUTH_PROVIDER_ID,
    ProviderId.outlook.value: MICROSOFT_AUTH_PROVIDER_ID,
    MICROSOFT_AUTH_PROVIDER_ID: MICROSOFT_AUTH_PROVIDER_ID,
}


class ConfigError(Exception):
    """Raised when configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from the [janus.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class AuthConfig:
    """Local-development auth settings from the [auth] section.

    ``tokens`` maps an auth provider id (``google`` / ``microsoft``) to a
    bearer token issued to ``dev_user_id``.
    """

    dev_user_id: str | None = None
    tokens: dict[str, str] = field(default_factory=dict)


@dataclass
class JanusConfig:
    """Parsed and validated service configuration."""

    name: str = "janus"
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    default_provider: ProviderId = ProviderId.google
    cors_origins: list[str] = field(default_factory=list)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    providers: ProviderSettings = field(default_factory=ProviderSettings)
    auth: AuthConfig = field(default_factory=AuthConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings; other leaf values pass through.

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


def _require_table(value: Any, path: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"[{path}] must be a table")
    return value


def _parse_port(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ConfigError(f"janus.port must be an integer, got {raw!r}")
    try:
        port = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"janus.port must be an integer, got {raw!r}") from exc
    if not 1 <= port <= 65535:
        raise ConfigError(f"janus.port must be between 1 and 65535, got {port}")
    return port


def _parse_logging(section: dict[str, Any]) -> LoggingConfig:
    level = str(section.get("level", "INFO")).upper()
    log_format = str(section.get("format", "text")).lower()
    if log_format not in LOG_FORMATS:
        raise ConfigError(
            f"Invalid janus.logging.format: {log_format!r}. Expected one of: "
            f"{', '.join(LOG_FORMATS)}"
        )
    log_root = section.get("log_root")
    return LoggingConfig(
        level=level,
        format=log_format,
        log_root=str(log_root) if log_root else None,
    )


def _parse_endpoint(section: dict[str, Any], path: str, default_url: str) -> ProviderEndpoint:
    api_base_url = str(section.get("api_base_url", default_url)).strip().rstrip("/")
    if not api_base_url.startswith(("http://", "https://")):
        raise ConfigError(f"{path}.api_base_url must be an http(s) URL, got {api_base_url!r}")
    try:
        timeout_s = float(section.get("timeout_s", DEFAULT_TIMEOUT_S))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{path}.timeout_s must be a number") from exc
    if timeout_s <= 0:
        raise ConfigError(f"{path}.timeout_s must be positive, got {timeout_s}")
    return ProviderEndpoint(api_base_url=api_base_url, timeout_s=timeout_s)


def _parse_auth(section: dict[str, Any]) -> AuthConfig:
    dev_user_id = section.get("dev_user_id")
    if dev_user_id is not None and (not isinstance(dev_user_id, str) or not dev_user_id.strip()):
        raise ConfigError("auth.dev_user_id must be a non-empty string when set")

    tokens_section = _require_table(section.get("tokens"), "auth.tokens")
    tokens: dict[str, str] = {}
    for key, value in tokens_section.items():
        auth_provider_id = _TOKEN_KEY_ALIASES.get(str(key).lower())
        if auth_provider_id is None:
            raise ConfigError(f"Unknown provider in [auth.tokens]: {key!r}")
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"auth.tokens.{key} must be a non-empty string")
        tokens[auth_provider_id] = value.strip()

    if tokens and dev_user_id is None:
        raise ConfigError("auth.dev_user_id is required when [auth.tokens] is set")

    return AuthConfig(
        dev_user_id=dev_user_id.strip() if dev_user_id else None,
        tokens=tokens,
    )


def load_config(config_dir: Path) -> JanusConfig:
    """Load and validate ``janus.toml`` from *config_dir*.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or holds invalid values.
    """
    toml_path = Path(config_dir) / CONFIG_FILENAME

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    data = resolve_env_vars(data)

    janus_section = data.get("janus")
    if not isinstance(janus_section, dict):
        raise ConfigError("Missing [janus] section in config")

    name = str(janus_section.get("name", "janus")).strip()
    if not name:
        raise ConfigError("janus.name must be a non-empty string")

    default_provider_raw = str(janus_section.get("default_provider", ProviderId.google.value))
    try:
        default_provider = ProviderId(default_provider_raw.lower())
    except ValueError as exc:
        valid = ", ".join(p.value for p in ProviderId)
        raise ConfigError(
            f"Invalid janus.default_provider: {default_provider_raw!r}. Expected one of: {valid}"
        ) from exc

    cors_origins = janus_section.get("cors_origins", [])
    if not isinstance(cors_origins, list) or not all(isinstance(o, str) for o in cors_origins):
        raise ConfigError("janus.cors_origins must be a list of strings")

    providers_section = _require_table(data.get("providers"), "providers")
    providers = ProviderSettings(
        google=_parse_endpoint(
            _require_table(providers_section.get("google"), "providers.google"),
            "providers.google",
            GOOGLE_CALENDAR_API_BASE_URL,
        ),
        outlook=_parse_endpoint(
            _require_table(providers_section.get("outlook"), "providers.outlook"),
            "providers.outlook",
            GRAPH_API_BASE_URL,
        ),
    )

    return JanusConfig(
        name=name,
        host=str(janus_section.get("host", "127.0.0.1")),
        port=_parse_port(janus_section.get("port", DEFAULT_PORT)),
        default_provider=default_provider,
        cors_origins=list(cors_origins),
        logging=_parse_logging(_require_table(janus_section.get("logging"), "janus.logging")),
        providers=providers,
        auth=_parse_auth(_require_table(data.get("auth"), "auth")),
    )


def build_token_source(config: JanusConfig) -> StaticTokenSource:
    """Seed a ``StaticTokenSource`` from ``[auth.tokens]`` for local runs."""
    source = StaticTokenSource()
    if config.auth.dev_user_id:
        for auth_provider_id, token in config.auth.tokens.items():
            source.set_token(
                provider_id=auth_provider_id,
                user_id=config.auth.dev_user_id,
                token=AccessToken(access_token=token),
            )
    return source
