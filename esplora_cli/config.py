"""Configuration loader for the Esplora endpoint."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml

from .errors import EsploraError


class ConfigurationError(EsploraError):
    """Raised when configuration is invalid."""


DEFAULT_BASE_URL = "https://blockstream.info/api"
DEFAULT_CONFIG_PATH = Path.home() / ".esplora.yaml"
ENV_URL_KEYS = ("ESPLORA_URL", "ESPLORA_API_URL")
_CONFIG_PATH_OVERRIDE: Path | None = None


@dataclass(frozen=True)
class EsploraConfig:
    """Connection details for an Esplora-compatible server."""

    base_url: str = DEFAULT_BASE_URL


def set_default_config_path(path: str | Path | None) -> None:
    """Read *path* instead of ``~/.esplora.yaml`` on later loads; ``None`` resets it."""

    global _CONFIG_PATH_OVERRIDE
    if path is None or path == "":
        _CONFIG_PATH_OVERRIDE = None
    else:
        _CONFIG_PATH_OVERRIDE = Path(path).expanduser()


def _read_esplora_section(path: Path, *, required: bool) -> dict[str, Any]:
    """Return the ``esplora`` mapping of the YAML document at *path*."""

    try:
        text = path.read_text()
    except FileNotFoundError:
        if required:
            raise ConfigurationError(f"Esplora config file not found: {path}") from None
        return {}

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"{path} is not valid YAML: {exc}") from exc

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ConfigurationError(f"{path} must hold a YAML mapping with an 'esplora' section")
    section = document.get("esplora") or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected 'esplora' to be a mapping in {path}")
    return section


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value:
            return value
    return default


def normalize_base_url(raw: str) -> str:
    """Validate *raw* and strip trailing slashes so paths can be appended."""

    parsed = urlparse(raw)
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.netloc:
        raise ConfigurationError(f"Invalid Esplora URL: {raw}")
    return raw.rstrip("/")


def load_esplora_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> EsploraConfig:
    """Resolve the base URL from overrides, environment, YAML, then the default."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None or _CONFIG_PATH_OVERRIDE is not None
    path = (
        Path(config_path).expanduser()
        if config_path is not None
        else _CONFIG_PATH_OVERRIDE or DEFAULT_CONFIG_PATH
    )

    section = _read_esplora_section(path, required=explicit_path)

    override_map = dict(overrides or {})
    env_url = _first_value(*(env_map.get(key) for key in ENV_URL_KEYS))

    resolved_url = _first_value(
        override_map.get("url"), env_url, section.get("url"), default=DEFAULT_BASE_URL
    )
    if not isinstance(resolved_url, str):
        raise ConfigurationError(f"Esplora URL must be a string, got {resolved_url!r}")
    return EsploraConfig(base_url=normalize_base_url(resolved_url))
