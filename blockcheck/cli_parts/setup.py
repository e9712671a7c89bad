from __future__ import annotations

import sys
from typing import Dict, Optional

from rich import box
from rich.panel import Panel
from rich.table import Table

from ..config import SETTING_PREFIX, SETUP_FIELDS, load_effective_settings
from ..engine.settings import CheckSettings
from ..output import console, err_console
from ..storage import set_setting

SETUP_LABELS = {
    "block_ips": "Block IPs (comma)",
    "sinkhole_markers": "Sinkhole markers (comma)",
    "registry_url": "Registry URL",
    "registry_enabled": "Registry enabled",
    "listed_marker": "Listed marker",
    "registry_timeout": "Registry timeout",
    "https_timeout": "HTTPS timeout",
    "max_redirects": "Max redirects",
    "dns_timeout": "DNS timeout",
    "dns_server": "DNS server",
    "verify_tls": "Verify TLS",
    "deadline": "Deadline",
    "max_concurrency": "Max concurrency",
    "useragent": "User-Agent",
    "host": "Server host",
    "port": "Server port",
}


def _display_value(settings: CheckSettings, key: str) -> str:
    value = settings.summary().get(key, getattr(settings, key, None))
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    if value is None:
        return "-"
    return str(value)


def _values_from_settings(settings: CheckSettings) -> Dict[str, Optional[str]]:
    values: Dict[str, Optional[str]] = {}
    for key in SETUP_FIELDS:
        text = _display_value(settings, key)
        values[key] = None if text in {"-", "system"} else text
    return values


def setup_mode() -> None:
    """Interactive setup editor for persisted runtime defaults."""
    if not sys.stdin.isatty():
        err_console.print("[red]--setup requires interactive terminal.[/red]")
        return

    values = _values_from_settings(load_effective_settings())
    keys = list(SETUP_FIELDS)
    console.print(Panel.fit("Blockcheck Setup", border_style="blue"))
    console.print(f"Select ID 1-{len(keys)} to edit a single field. Use 0 to save and exit.")
    console.print("Use '-' to clear a value (falls back to environment/defaults).")
    console.print("Use 0 for Deadline or Max concurrency to remove the limit.")

    def _render_table(title: str) -> None:
        table = Table(title=title, box=box.SIMPLE_HEAVY)
        table.add_column("ID", style="cyan", justify="right")
        table.add_column("Key", style="cyan")
        table.add_column("Value", overflow="fold")
        for idx, key in enumerate(keys, start=1):
            table.add_row(str(idx), SETUP_LABELS[key], values[key] or "-")
        console.print(table)

    while True:
        _render_table("Current Setup")
        console.print("0 save and exit")
        choice = input(f"Select field [1-{len(keys)}] or 0 to save: ").strip()
        if choice == "0":
            break
        if not choice.isdigit() or not 1 <= int(choice) <= len(keys):
            err_console.print(f"[red]Invalid selection.[/red] Use 0-{len(keys)}.")
            continue
        key = keys[int(choice) - 1]
        raw = input(f"{SETUP_LABELS[key]} [{values[key] or ''}]: ").strip()
        if raw == "":
            continue
        values[key] = None if raw == "-" else raw

    for key in keys:
        set_setting(f"{SETTING_PREFIX}{key}", values[key])

    _render_table("Saved Setup")
