"""
Config Loader — Build SyncSettings from a YAML file, a master JSON key,
or individual env vars.

Sources, lowest priority first:
1. YAML file: --config PATH or RESOURCE_SYNC_CONFIG_FILE
2. Master JSON key: single RESOURCE_SYNC_CONFIG env var
3. Individual keys: MONGO_CONNECTION_URL, GIT_RESOURCES_REPO, ...

## Usage

    # Option 1: Master config (one secret)
    export RESOURCE_SYNC_CONFIG='{"mongo_url": "mongodb://...", "repo_url": "https://...", ...}'

    # Option 2: Individual keys
    export MONGO_CONNECTION_URL="mongodb://localhost:27017"
    export GIT_RESOURCES_REPO="https://github.com/org/resources.git"

Keys in the YAML file and the master JSON may use either the field name
(`mongo_url`) or the env var name (`MONGO_CONNECTION_URL`).
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import ConfigError

logger = logging.getLogger(__name__)


# field name -> environment variable
ENV_VARS: Dict[str, str] = {
    "mongo_url": "MONGO_CONNECTION_URL",
    "mongo_db": "MONGO_DB_NAME",
    "mongo_collection": "MONGO_COLLECTION_NAME",
    "repo_url": "GIT_RESOURCES_REPO",
    "repo_dir": "LOCAL_REPO_DIR",
    "poll_interval_seconds": "POLL_INTERVAL_SECONDS",
    "data_dir": "DATA_DIR",
    "records_field": "RECORDS_FIELD",
    "git_timeout_seconds": "GIT_TIMEOUT_SECONDS",
    "mongo_timeout_ms": "MONGO_TIMEOUT_MS",
    "alert_webhook_url": "ALERT_WEBHOOK_URL",
}

REQUIRED_FIELDS: List[str] = [
    "mongo_url",
    "mongo_db",
    "mongo_collection",
    "repo_url",
    "repo_dir",
]

MASTER_CONFIG_VAR = "RESOURCE_SYNC_CONFIG"
CONFIG_FILE_VAR = "RESOURCE_SYNC_CONFIG_FILE"


class SyncSettings(BaseModel):
    """Everything the sync service needs to run."""

    # Document store
    mongo_url: str
    mongo_db: str
    mongo_collection: str
    mongo_timeout_ms: int = 5000

    # Repository
    repo_url: str
    repo_dir: Path
    git_timeout_seconds: float = 300

    # Records
    data_dir: str = "data"
    records_field: str = "sgciResources"

    # Monitor
    poll_interval_seconds: float = 2

    # Alerts
    alert_webhook_url: Optional[str] = None

    @field_validator("poll_interval_seconds", "git_timeout_seconds", "mongo_timeout_ms")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("alert_webhook_url")
    @classmethod
    def _blank_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    def redacted(self) -> Dict[str, Any]:
        """Settings as a dict with credentials stripped from URLs."""
        data = self.model_dump(mode="json")
        for key in ("mongo_url", "repo_url", "alert_webhook_url"):
            if data.get(key):
                data[key] = _redact_url(data[key])
        return data


def _redact_url(url: str) -> str:
    """Hide the userinfo part of a URL (tokens, passwords)."""
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest.split("/", 1)[0]:
        return url
    host = rest.split("@", 1)[1]
    return f"{scheme}://***@{host}"


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Accept both field names and env var names."""
    by_env = {env: field for field, env in ENV_VARS.items()}
    result: Dict[str, Any] = {}
    for key, value in data.items():
        field = by_env.get(key, key)
        if field in ENV_VARS and value not in (None, ""):
            result[field] = value
    return result


def load_yaml_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML config file."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return _normalize_keys(data)


def collect_raw(config_file: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Merge all configuration sources without validating.

    Returns:
        Dict of field name -> raw value
    """
    raw: Dict[str, Any] = {}

    config_file = config_file or os.environ.get(CONFIG_FILE_VAR)
    if config_file:
        raw.update(load_yaml_file(config_file))
        logger.info(f"Loaded configuration from {config_file}")

    master_config = os.environ.get(MASTER_CONFIG_VAR)
    if master_config:
        try:
            data = json.loads(master_config)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid {MASTER_CONFIG_VAR} JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{MASTER_CONFIG_VAR} must be a JSON object")
        raw.update(_normalize_keys(data))
        logger.info(f"Loaded configuration from {MASTER_CONFIG_VAR}")

    for field, env_var in ENV_VARS.items():
        value = os.environ.get(env_var)
        if value:
            raw[field] = value

    return raw


def missing_fields(raw: Dict[str, Any]) -> List[str]:
    """Required fields with no value in any source."""
    return [f for f in REQUIRED_FIELDS if not raw.get(f)]


def load_settings(
    config_file: Optional[Union[str, Path]] = None,
    **overrides: Any,
) -> SyncSettings:
    """
    Load and validate settings from all sources.

    Args:
        config_file: Optional YAML file (lowest priority)
        **overrides: Values that win over every source (e.g. CLI flags)

    Raises:
        ConfigError: Required values missing or a value is invalid
    """
    raw = collect_raw(config_file)
    raw.update({k: v for k, v in overrides.items() if v is not None})

    missing = missing_fields(raw)
    if missing:
        names = ", ".join(ENV_VARS[f] for f in missing)
        raise ConfigError(f"Missing required configuration: {names}")

    try:
        return SyncSettings(**raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{ENV_VARS.get(str(err['loc'][0]), err['loc'][0])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from e
