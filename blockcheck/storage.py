from __future__ import annotations

"""Persistence facade for blockcheck.

Saved runs are history: checks are always computed fresh and never read
back. `domain_history` follows one host's verdicts across saved runs. The
same DB holds the saved setup used as a configuration layer by the CLI and
server. Implementation lives in `blockcheck.storage_parts.db`.
"""

from .storage_parts.db import (
    count_reports,
    delete_report,
    domain_history,
    get_db_path,
    get_report,
    get_setting,
    get_settings,
    init_db,
    list_reports,
    reset_reports,
    save_check,
    set_setting,
    tally_results,
)

__all__ = [
    "count_reports",
    "delete_report",
    "domain_history",
    "get_db_path",
    "get_report",
    "get_setting",
    "get_settings",
    "init_db",
    "list_reports",
    "reset_reports",
    "save_check",
    "set_setting",
    "tally_results",
]
