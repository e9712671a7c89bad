"""Effective configuration: saved setup > environment (.env) > defaults."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from .engine.settings import CheckSettings, settings_from_env, settings_from_mapping
from .storage import get_settings

SETTING_PREFIX = "runtime."

SETUP_FIELDS = (
    "block_ips",
    "sinkhole_markers",
    "registry_url",
    "registry_enabled",
    "listed_marker",
    "registry_timeout",
    "https_timeout",
    "max_redirects",
    "dns_timeout",
    "dns_server",
    "verify_tls",
    "deadline",
    "max_concurrency",
    "useragent",
    "host",
    "port",
)


def load_saved_values(db_path: Optional[Path] = None) -> Dict[str, Optional[str]]:
    saved = get_settings(prefix=SETTING_PREFIX, db_path=db_path)
    return {key[len(SETTING_PREFIX):]: value for key, value in saved.items() if key[len(SETTING_PREFIX):] in SETUP_FIELDS}


def load_effective_settings(db_path: Optional[Path] = None, use_saved: bool = True) -> CheckSettings:
    settings = settings_from_env()
    if use_saved:
        settings = settings_from_mapping(load_saved_values(db_path), base=settings)
    return settings
