"""
Configuration Validator — Report which options are set and which are missing.

Unlike load_settings(), this never raises: it is meant for the
check-config command and for logging at startup.

## Usage

    from resource_sync.config.validator import check_settings

    report = check_settings()
    if not report.configured:
        for name in report.missing:
            print(f"Missing {name}: {report.guidance[name]}")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..errors import ConfigError
from .loader import ENV_VARS, REQUIRED_FIELDS, SyncSettings, collect_raw, load_settings

logger = logging.getLogger(__name__)


GUIDANCE: Dict[str, str] = {
    "MONGO_CONNECTION_URL": "MongoDB connection string, e.g. mongodb://localhost:27017",
    "MONGO_DB_NAME": "Database holding the resource collection",
    "MONGO_COLLECTION_NAME": "Collection replaced on every sync",
    "GIT_RESOURCES_REPO": "Clone URL of the resource repository",
    "LOCAL_REPO_DIR": "Local working copy path (wiped at startup)",
}


@dataclass
class ConfigReport:
    """Result of a configuration check."""

    configured: bool
    missing: List[str] = field(default_factory=list)
    present: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    guidance: Dict[str, str] = field(default_factory=dict)
    settings: Optional[SyncSettings] = None

    def to_dict(self) -> Dict:
        return {
            "configured": self.configured,
            "missing": self.missing,
            "present": self.present,
            "errors": self.errors,
            "guidance": self.guidance,
            "settings": self.settings.redacted() if self.settings else None,
        }


def check_settings(config_file: Optional[Union[str, Path]] = None) -> ConfigReport:
    """Check every configuration source and describe what is missing."""
    try:
        raw = collect_raw(config_file)
    except ConfigError as e:
        return ConfigReport(configured=False, errors=[str(e)])

    present = [ENV_VARS[f] for f in ENV_VARS if raw.get(f)]
    missing = [ENV_VARS[f] for f in REQUIRED_FIELDS if not raw.get(f)]

    report = ConfigReport(
        configured=False,
        missing=missing,
        present=present,
        guidance={name: GUIDANCE[name] for name in missing},
    )

    if missing:
        return report

    try:
        report.settings = load_settings(config_file)
    except ConfigError as e:
        report.errors.append(str(e))
        return report

    report.configured = True
    return report
