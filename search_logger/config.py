"""Configuration module — a frozen dataclass built from defaults, YAML and env vars."""

import copy
import logging
import os
from dataclasses import dataclass, fields

import yaml

from search_logger.models import resolve_timezone

logger = logging.getLogger(__name__)

DEFAULT_DICTIONARY_URL = "https://api.dictionaryapi.dev/api/v2/entries/en"


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _timezone_name(value) -> str:
    name = str(value).strip()
    resolve_timezone(name)
    return name


def _optional_url(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class AppConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    webhook_url: str | None = None
    rest_url: str | None = None
    dictionary_base_url: str = DEFAULT_DICTIONARY_URL
    enable_enrichment: bool = True
    request_timeout: float = 5.0
    local_timezone: str = "Asia/Jakarta"
    log_request_details: bool = False
    log_level: str = "INFO"


# Field name -> environment variable that overrides it
ENV_VARS = {
    "host": "SERVER_HOST",
    "port": "SERVER_PORT",
    "webhook_url": "DISCORD_WEBHOOK_URL",
    "rest_url": "LOG_ENDPOINT_URL",
    "dictionary_base_url": "DICTIONARY_API_URL",
    "enable_enrichment": "ENABLE_ENRICHMENT",
    "request_timeout": "REQUEST_TIMEOUT",
    "local_timezone": "LOCAL_TIMEZONE",
    "log_request_details": "LOG_REQUEST_DETAILS",
    "log_level": "LOG_LEVEL",
}

_CONVERTERS = {
    "port": int,
    "webhook_url": _optional_url,
    "rest_url": _optional_url,
    "enable_enrichment": _parse_bool,
    "request_timeout": float,
    "local_timezone": _timezone_name,
    "log_request_details": _parse_bool,
    "log_level": lambda v: str(v).upper(),
}


def load_yaml_config(path: str | None) -> dict:
    """Load overrides from a YAML file. Returns an empty dict if there is none."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as exc:
        logger.warning("Invalid YAML in %s, using defaults: %s", path, exc)
        return {}

    if not isinstance(data, dict):
        return {}
    logger.info("Loaded YAML config from %s", path)
    return data


def load_config(path: str | None = None, environ=None) -> AppConfig:
    """Build AppConfig from dataclass defaults, then YAML, then env vars.

    Pass ``environ`` for testability; when None, ``os.environ`` is used.
    The YAML path falls back to the ``CONFIG_PATH`` environment variable.
    """
    env = os.environ if environ is None else environ
    known = {f.name for f in fields(AppConfig)}

    values = {}
    yaml_data = load_yaml_config(path or env.get("CONFIG_PATH"))
    for key, value in copy.deepcopy(yaml_data).items():
        if key in known:
            values[key] = value
        else:
            logger.warning("Ignoring unknown config key %r", key)

    for name, var in ENV_VARS.items():
        if var in env:
            values[name] = env[var]

    for name, value in list(values.items()):
        convert = _CONVERTERS.get(name)
        if convert is not None:
            values[name] = convert(value)

    return AppConfig(**values)
