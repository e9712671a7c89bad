from __future__ import annotations

"""Compatibility facade for the blockcheck engine.

Public imports remain stable while implementation lives in `blockcheck.engine`.
"""

from .engine.runtime import *  # noqa: F401,F403
from .engine.runtime import _run_coro_sync
from .engine.settings import CheckSettings, pick_user_agent, settings_from_env, settings_from_mapping

__all__ = [
    "CHECK",
    "CheckResult",
    "CheckSettings",
    "InvalidInput",
    "STATUS_BLOCKED",
    "STATUS_CLEAN",
    "logger",
    "normalize_domain",
    "parse_domains_payload",
    "pick_user_agent",
    "run_checks",
    "settings_from_env",
    "settings_from_mapping",
    "verdict_status",
    "_run_coro_sync",
]
