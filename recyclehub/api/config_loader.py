"""Configuration loading for the prediction API.

Settings come from an optional JSON file (``config/api.json``) with CLI
overrides applied by :mod:`recyclehub.api.main`. The upstream classifier URL
may also be supplied through an environment variable so deployments can keep
it out of the file.
"""
from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

DEFAULT_UPSTREAM_URL_ENV = "EXTERNAL_PREDICT_URL"


class ConfigError(ValueError):
    """Raised when the configuration file cannot be used."""


@dataclass(frozen=True)
class ProxyConfig:
    """Where (and how long) to forward prediction requests.

    An empty ``upstream_url`` selects mock mode.
    """

    upstream_url: str | None = None
    timeout_seconds: float = 30.0

    @property
    def mock_mode(self) -> bool:
        return not (self.upstream_url or "").strip()

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        environ: Mapping[str, str] | None = None,
    ) -> ProxyConfig:
        env = os.environ if environ is None else environ

        url = data.get("upstream_url")
        if url is not None and not isinstance(url, str):
            raise ConfigError("proxy.upstream_url must be a string")

        env_name = data.get("upstream_url_env", DEFAULT_UPSTREAM_URL_ENV)
        if not isinstance(env_name, str):
            raise ConfigError("proxy.upstream_url_env must be a string")
        if not (url or "").strip() and env_name:
            url = env.get(env_name)

        timeout = data.get("timeout_seconds", cls.timeout_seconds)
        try:
            timeout_value = float(timeout)
        except (TypeError, ValueError) as exc:
            raise ConfigError("proxy.timeout_seconds must be a number") from exc
        if not math.isfinite(timeout_value) or timeout_value <= 0:
            raise ConfigError("proxy.timeout_seconds must be a positive finite number")

        return cls(
            upstream_url=(url or "").strip() or None,
            timeout_seconds=timeout_value,
        )


@dataclass
class ServerSettings:
    host: str = "0.0.0.0"
    port: int = 8080

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ServerSettings:
        host = data.get("host", cls.host)
        if not isinstance(host, str) or not host:
            raise ConfigError("server.host must be a non-empty string")
        try:
            port = int(data.get("port", cls.port))
        except (TypeError, ValueError) as exc:
            raise ConfigError("server.port must be an integer") from exc
        return cls(host=host, port=port)


@dataclass
class AppConfig:
    server: ServerSettings = field(default_factory=ServerSettings)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)

    def with_upstream_url(self, url: str | None) -> AppConfig:
        return AppConfig(server=self.server, proxy=replace(self.proxy, upstream_url=url))


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{name}' section must be an object")
    return value


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from ``path`` (or defaults when ``None``).

    Raises ``FileNotFoundError`` when ``path`` does not exist and
    ``ConfigError`` when it is not a usable JSON object.
    """
    data: Mapping[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {config_path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise ConfigError(f"{config_path} must contain a JSON object")
        logger.info("Loaded configuration from %s", config_path)

    return AppConfig(
        server=ServerSettings.from_dict(_section(data, "server")),
        proxy=ProxyConfig.from_dict(_section(data, "proxy"), environ=environ),
    )


__all__ = [
    "AppConfig",
    "ConfigError",
    "DEFAULT_UPSTREAM_URL_ENV",
    "ProxyConfig",
    "ServerSettings",
    "load_config",
]
