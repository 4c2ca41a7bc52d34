"""Configuration loading helpers for order-relay."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import RelayConfig

CONFIG_FILENAME = "relay_config.yaml"

# Environment variable -> (section, field)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "CLOVER_BASE_URL": ("upstream", "base_url"),
    "CLOVER_ACCESS_TOKEN": ("upstream", "access_token"),
    "CLOVER_MERCHANT_ID": ("upstream", "merchant_id"),
    "CLOVER_PAGE_SIZE": ("upstream", "page_size"),
    "MONGODB_URI": ("mongo", "uri"),
    "MONGODB_DB": ("mongo", "database"),
    "MONGODB_COLLECTION": ("mongo", "collection"),
    "PUSHER_APP_ID": ("pusher", "app_id"),
    "PUSHER_KEY": ("pusher", "key"),
    "PUSHER_SECRET": ("pusher", "secret"),
    "PUSHER_CLUSTER": ("pusher", "cluster"),
    "POLL_INTERVAL_SECONDS": ("polling", "interval_seconds"),
    "POLL_WINDOW_HOURS": ("polling", "window_hours"),
    "IGNORE_ITEMS": ("polling", "ignore_items"),
}


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


def apply_env_overrides(payload: dict, environ: Mapping[str, str]) -> dict:
    """Overlay environment variables onto a raw configuration mapping."""

    merged = {section: dict(values or {}) for section, values in payload.items()}
    for env_name, (section, field) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        merged.setdefault(section, {})[field] = value
    return merged


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from the relay home directory."""

    project_root: Path | None = None
    data_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("ORDER_RELAY_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO, env overlay and validation."""

    def __init__(
        self,
        locator: ConfigLocator | None = None,
        environ: Mapping[str, str] | None = None,
        path: Path | None = None,
    ) -> None:
        self.locator = locator or ConfigLocator()
        self.environ = os.environ if environ is None else environ
        self.path = path or self.locator.config_path()

    def load(self) -> RelayConfig:
        """Read file + environment; raise ``ConfigurationError`` on invalid input."""

        payload = _read_file(self.path) if self.path.exists() else {}
        payload = apply_env_overrides(payload, self.environ)
        try:
            return RelayConfig.model_validate(payload)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    def load_validated(self) -> RelayConfig:
        """Load and insist every required setting is present."""

        config = self.load()
        missing = config.missing_settings()
        if missing:
            raise ConfigurationError(
                "Missing required settings: " + ", ".join(missing), missing=missing
            )
        return config

    def save(self, config: RelayConfig) -> Path:
        _write_file(self.path, config.model_dump(mode="json"))
        return self.path

    def init_template(self, overwrite: bool = False) -> Path:
        """Write a default configuration file unless one already exists."""

        if self.path.exists() and not overwrite:
            return self.path
        return self.save(RelayConfig())


__all__ = ["CONFIG_FILENAME", "ConfigLocator", "ConfigRepository", "ENV_OVERRIDES", "apply_env_overrides"]
