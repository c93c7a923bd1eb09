"""
Configuration management and loading.

Reads settings from an optional YAML file, then applies environment
variable overrides.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from ai_answer_cache.core.pricing import DEFAULT_PRICING, PricingTable
from ai_answer_cache.storage.db import DEFAULT_DB_PATH

DEFAULT_CACHE_TTL_SECONDS = 30 * 24 * 3600

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""
    api_key: Optional[str] = None
    default_model: str = "gpt-4o"
    cheap_model: str = "gpt-3.5-turbo"
    cache_enabled: bool = True
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    monitoring_enabled: bool = True
    db_path: str = DEFAULT_DB_PATH
    request_timeout_seconds: float = 60.0
    app_url: str = "http://localhost:3000"
    pricing: PricingTable = field(default=DEFAULT_PRICING)

    def __post_init__(self):
        """Validate numeric and model settings."""
        if self.cache_ttl_seconds <= 0:
            raise ValueError("cache_ttl_seconds must be > 0")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")
        if not self.default_model or not self.cheap_model:
            raise ValueError("model names cannot be empty")

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


# YAML section -> {yaml key: Settings field}
_SECTIONS: Dict[str, Dict[str, str]] = {
    "models": {"default": "default_model", "cheap": "cheap_model"},
    "cache": {"enabled": "cache_enabled", "ttl_seconds": "cache_ttl_seconds"},
    "monitoring": {"enabled": "monitoring_enabled"},
    "storage": {"db_path": "db_path"},
}
_TOP_LEVEL = {"api_key": "api_key", "request_timeout_seconds": "request_timeout_seconds",
              "app_url": "app_url"}

_ENVIRONMENT = {
    "OPENAI_API_KEY": "api_key",
    "DEFAULT_MODEL": "default_model",
    "CHEAP_MODEL": "cheap_model",
    "CACHE_ENABLED": "cache_enabled",
    "CACHE_TTL_SECONDS": "cache_ttl_seconds",
    "MONITORING_ENABLED": "monitoring_enabled",
    "AI_ANSWER_CACHE_DB": "db_path",
    "REQUEST_TIMEOUT_SECONDS": "request_timeout_seconds",
    "APP_URL": "app_url",
}

_BOOL_FIELDS = {"cache_enabled", "monitoring_enabled"}
_INT_FIELDS = {"cache_ttl_seconds"}
_FLOAT_FIELDS = {"request_timeout_seconds"}


def load_settings(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load and validate settings.

    Strict validation rejects unknown keys so a typo cannot silently
    disable caching or monitoring.

    Args:
        path: Optional path to a YAML configuration file
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated Settings object

    Raises:
        FileNotFoundError: If the config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_load_yaml(path))

    env = os.environ if environ is None else environ
    for name, field_name in _ENVIRONMENT.items():
        raw = env.get(name)
        if raw is not None and raw.strip() != "":
            values[field_name] = _coerce(field_name, raw, name)

    return Settings(**values)


def _load_yaml(path: str) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = set(_SECTIONS) | set(_TOP_LEVEL) | {"pricing"}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    values: Dict[str, Any] = {}
    for key, field_name in _TOP_LEVEL.items():
        if key in raw_config:
            values[field_name] = _coerce(field_name, raw_config[key], key)

    for section, keys in _SECTIONS.items():
        if section not in raw_config:
            continue
        data = raw_config[section]
        if not isinstance(data, dict):
            raise ValueError(f"'{section}' must be a dictionary")
        unknown = set(data.keys()) - set(keys)
        if unknown:
            raise ValueError(f"Unknown {section} keys: {unknown}")
        for key, field_name in keys.items():
            if key in data:
                values[field_name] = _coerce(field_name, data[key], f"{section}.{key}")

    if "pricing" in raw_config:
        values["pricing"] = _parse_pricing(raw_config["pricing"])

    return values


def _parse_pricing(data: Any) -> PricingTable:
    """Parse ``{model: {input: x, output: y}}`` into a PricingTable.

    Raises:
        ValueError: If the pricing section is invalid
    """
    if not isinstance(data, dict) or not data:
        raise ValueError("'pricing' must be a non-empty dictionary")

    for model, rates in data.items():
        if not isinstance(rates, dict):
            raise ValueError(f"Pricing for '{model}' must be a dictionary")
        if set(rates.keys()) != {"input", "output"}:
            raise ValueError(f"Pricing for '{model}' needs exactly 'input' and 'output'")
        for side in ("input", "output"):
            price = rates[side]
            if isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
                raise ValueError(f"'pricing.{model}.{side}' must be a number >= 0")

    return PricingTable.from_mapping(data)


def _coerce(field_name: str, raw: Any, source: str) -> Any:
    """Convert a YAML or environment value to the type of its Settings field."""
    if field_name in _BOOL_FIELDS:
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"'{source}' must be a boolean, got {raw!r}")

    if isinstance(raw, bool) and field_name in _INT_FIELDS | _FLOAT_FIELDS:
        raise ValueError(f"'{source}' must be a number, got {raw!r}")

    if field_name in _INT_FIELDS:
        if isinstance(raw, float) and not raw.is_integer():
            raise ValueError(f"'{source}' must be an integer, got {raw!r}")
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"'{source}' must be an integer, got {raw!r}")

    if field_name in _FLOAT_FIELDS:
        try:
            return float(raw)
        except (TypeError, ValueError):
            raise ValueError(f"'{source}' must be a number, got {raw!r}")

    if not isinstance(raw, str):
        raise ValueError(f"'{source}' must be a string")
    return raw.strip()
