from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from finrecon.models.config_models import DatabaseConfig, FiscalConfig, ImportConfig

"""Config loader.

Responsibilities:
- Load YAML config/import.yml
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults (uploaded_by="importer", empty registry)
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: If the schema file is missing or invalid, or the config
            data fails schema validation (missing required keys, wrong types,
            unknown keys).
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


def _fiscal_config(raw: dict[str, Any] | None) -> FiscalConfig | None:
    if raw is None:
        return None
    return FiscalConfig(
        current_financial_year=raw.get("current_financial_year"),
        financial_year_start=raw.get("financial_year_start"),
        financial_year_end=raw.get("financial_year_end"),
        reporting_month=raw.get("reporting_month"),
    )


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top level must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    registry = data.get("registry", {})
    return ImportConfig(
        source_directory=data["source_directory"],
        tenant_id=data["tenant_id"],
        uploads=dict(data["uploads"]),
        uploaded_by=data.get("uploaded_by", "importer"),
        fiscal_year=_fiscal_config(data.get("fiscal_year")),
        registry_clients=list(registry.get("clients", [])),
        registry_product_lines=list(registry.get("product_lines", [])),
        database=db,
    )
