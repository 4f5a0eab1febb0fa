from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML config (default: config/vehicle_lists.yml)
- Validate against the packaged config_schema.json (unknown keys rejected)
- Apply defaults for every optional key

A missing default config file is not an error: load_config_or_default() falls
back to AppConfig() so the CLI works without any YAML at all.
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/vehicle_lists.yml")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    """Database fallback settings; environment variables take precedence."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
    table: str = "documents"


@dataclass(frozen=True)
class AppConfig:
    batch_size: int = 500  # 1 バッチあたりの最大書き込み件数
    created_by: str = "admin"
    error_log_dir: str = "./logs"
    lists_collection: str = "lists"
    vehicles_collection: str = "vehicleno"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing / not JSON, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    db_raw = data.get("database", {})
    collections = data.get("collections", {})
    defaults = AppConfig()
    return AppConfig(
        batch_size=data.get("batch_size", defaults.batch_size),
        created_by=data.get("created_by", defaults.created_by),
        error_log_dir=data.get("error_log_dir", defaults.error_log_dir),
        lists_collection=collections.get("lists", defaults.lists_collection),
        vehicles_collection=collections.get("vehicles", defaults.vehicles_collection),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
            table=db_raw.get("table", "documents"),
        ),
    )


def load_config_or_default(path: Path | None = None) -> AppConfig:
    """Load an explicit path strictly; the default path only if it exists."""
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return AppConfig()
