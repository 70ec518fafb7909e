from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_PHONE_COLUMNS,
    DEFAULT_TRACKED_FIELDS,
    ColorPair,
    ColumnMap,
    DateFormat,
    HighlightColors,
    ReconcileConfig,
    TableSource,
)

"""Config loader.

Responsibilities:
- Load the YAML run configuration (default: config/reconcile.yml)
- Validate it against the packaged JSON schema (config_schema.json)
- Apply defaults (timezone=UTC, default tracked fields, default colors)
- Build the immutable ReconcileConfig passed through every component
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/reconcile.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails validation (missing required keys, wrong types,
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


def _table_source(raw: dict[str, Any]) -> TableSource:
    return TableSource(path=raw["path"], sheet=raw["sheet"], header_row=raw.get("header_row", 1))


def _color_pair(raw: list[str] | None, default: ColorPair) -> ColorPair:
    if not raw:
        return default
    bg, fg = (c.lstrip("#").upper() for c in raw)
    return ColorPair(background=bg, foreground=fg)


def _colors(raw: dict[str, Any]) -> HighlightColors:
    base = HighlightColors()
    return HighlightColors(
        new_member=_color_pair(raw.get("new_member"), base.new_member),
        changed_field=_color_pair(raw.get("changed_field"), base.changed_field),
        changed_id=_color_pair(raw.get("changed_id"), base.changed_id),
        invalid_phone=_color_pair(raw.get("invalid_phone"), base.invalid_phone),
    )


def _check_timezone(tz: str) -> None:
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {tz}") from e


def build_config(data: dict[str, Any]) -> ReconcileConfig:
    """Validate a parsed config mapping and build ReconcileConfig."""
    _validate_config_schema(data)

    tz = data.get("timezone", "UTC")
    _check_timezone(tz)

    columns = ColumnMap(**data.get("columns", {}))
    return ReconcileConfig(
        roster=_table_source(data["roster"]),
        incoming=_table_source(data["incoming"]),
        columns=columns,
        tracked_fields=tuple(data.get("tracked_fields", DEFAULT_TRACKED_FIELDS)),
        phone_columns=tuple(data.get("phone_columns", DEFAULT_PHONE_COLUMNS)),
        date_format=DateFormat.parse(data.get("date_format", DateFormat.AU.value)),
        timezone=tz,
        prompt_before_id_update=data.get("prompt_before_id_update", True),
        auto_apply_id_updates=data.get("auto_apply_id_updates", False),
        dedupe_contacts=data.get("dedupe_contacts", True),
        debug=data.get("debug", False),
        chunk_size=data.get("chunk_size", 500),
        chunk_pause_seconds=float(data.get("chunk_pause_seconds", 0.0)),
        colors=_colors(data.get("highlight_colors", {})),
    )


def load_config(path: Path) -> ReconcileConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top level must be a mapping")
    return build_config(data)
