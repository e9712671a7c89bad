from __future__ import annotations

"""Terminal rendering helpers for blockcheck.

This module contains presentation-only logic for the result table, the
detail view and the configuration/status panels. It does not perform network
operations.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .engine.settings import CheckSettings
from .storage import count_reports, get_db_path

console = Console()
err_console = Console(stderr=True)

SUMMARY_DOMAIN_WIDTH = 32
SUMMARY_FLAG_WIDTH = 9
SUMMARY_STATUS_WIDTH = 9
KV_FIELD_WIDTH = 22


def fmt_td(td: Optional[timedelta]) -> str:
    if td is None:
        return "-"
    total_seconds = int(td.total_seconds())
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def _table_width() -> int:
    try:
        return max(80, int(console.size.width) - 2)
    except Exception:
        return 100


def _flag_text(value: Any) -> str:
    if value is True:
        return "[red]yes[/red]"
    if value is False:
        return "[green]no[/green]"
    return "-"


def _status_text(status: Optional[str]) -> str:
    if status == "Blocked":
        return "[bold red]Blocked[/bold red]"
    if status == "Clean":
        return "[green]Clean[/green]"
    return "-"


def _detected_by(item: Dict[str, Any]) -> str:
    methods = [
        label
        for key, label in (("dns_blocked", "dns"), ("sni_blocked", "sni"), ("official_blocked", "official"))
        if item.get(key)
    ]
    return ", ".join(methods) if methods else "-"


def summarize(results: List[Dict[str, Any]]) -> Dict[str, int]:
    blocked = sum(1 for item in results if item.get("status") == "Blocked")
    return {
        "total": len(results),
        "blocked": blocked,
        "clean": len(results) - blocked,
        "dns": sum(1 for item in results if item.get("dns_blocked")),
        "sni": sum(1 for item in results if item.get("sni_blocked")),
        "official": sum(1 for item in results if item.get("official_blocked")),
    }


def output(results: Optional[List[Dict[str, Any]]], elapsed: Optional[timedelta] = None) -> None:
    """Render the compact summary table shown after a check."""
    if not results:
        err_console.print("[yellow]No results to display.[/yellow]")
        return

    table = Table(box=box.SIMPLE_HEAVY, show_header=True, header_style="bold cyan", width=_table_width(), pad_edge=False)
    table.add_column("Domain", style="cyan", min_width=SUMMARY_DOMAIN_WIDTH, overflow="fold")
    table.add_column("DNS", justify="center", width=SUMMARY_FLAG_WIDTH, no_wrap=True)
    table.add_column("SNI", justify="center", width=SUMMARY_FLAG_WIDTH, no_wrap=True)
    table.add_column("Official", justify="center", width=SUMMARY_FLAG_WIDTH, no_wrap=True)
    table.add_column("Status", justify="center", width=SUMMARY_STATUS_WIDTH, no_wrap=True)

    for item in results:
        domain = str(item.get("domain") or "-")
        original = str(item.get("input") or "").strip()
        if original and original.lower() != domain:
            domain = f"{domain}\n[dim]{original}[/dim]"
        table.add_row(
            domain,
            _flag_text(item.get("dns_blocked")),
            _flag_text(item.get("sni_blocked")),
            _flag_text(item.get("official_blocked")),
            _status_text(item.get("status")),
        )

    console.print(table)
    counts = summarize(results)
    console.print(
        Panel.fit(
            f"[bold]Domains:[/bold] {counts['total']}  "
            f"[bold red]Blocked:[/bold red] {counts['blocked']}  "
            f"[bold green]Clean:[/bold green] {counts['clean']}  "
            f"[bold]Elapsed:[/bold] {fmt_td(elapsed)}",
            border_style="cyan",
        )
    )


def output_detail(results: Optional[List[Dict[str, Any]]]) -> None:
    """Render per-domain evidence for `--detail` mode."""
    if not results:
        return

    for item in results:
        detail = item.get("detail") or {}
        if not detail:
            continue
        table = Table(
            title=f"{item.get('domain')} ({item.get('status')})",
            box=box.MINIMAL_DOUBLE_HEAD,
            title_justify="left",
            show_header=False,
        )
        table.add_column("Field", style="cyan", width=KV_FIELD_WIDTH, no_wrap=True)
        table.add_column("Value", overflow="fold")
        table.add_row("Detected by", _detected_by(item))
        table.add_row("Resolved IPs", ", ".join(detail.get("ips") or []) or "-")
        table.add_row("DNS error", str(detail.get("dns_error") or "-"))
        table.add_row("HTTPS outcome", str(detail.get("sni_outcome") or "-"))
        table.add_row("Final URL", str(detail.get("final_url") or "-"))
        table.add_row("HTTP status", str(detail.get("http_status") or "-"))
        table.add_row("HTTPS error", str(detail.get("sni_error") or "-"))
        table.add_row("Registry status", str(detail.get("official_status") or "-"))
        if detail.get("incomplete"):
            table.add_row("Note", "[yellow]deadline exceeded, network checks incomplete[/yellow]")
        if detail.get("error"):
            table.add_row("Error", f"[red]{detail['error']}[/red]")
        console.print(table)


def print_check_status(settings: CheckSettings, target_count: Optional[int] = None) -> None:
    table = Table(title="Check Status", box=box.MINIMAL_DOUBLE_HEAD, title_justify="left", show_header=False)
    table.add_column("Field", style="cyan", width=KV_FIELD_WIDTH, no_wrap=True)
    table.add_column("Value", overflow="fold")

    for key, value in settings.summary().items():
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value) or "-"
        table.add_row(key.replace("_", " ").title(), "-" if value is None else str(value))
    if target_count is not None:
        table.add_row("Targets", str(target_count))
    table.add_row("Reports DB", str(get_db_path()))
    table.add_row("Reports Count", str(count_reports()))

    console.print(table)


def show_reports_catalog(reports: List[Dict[str, Any]], domain: Optional[str] = None) -> None:
    if not reports:
        suffix = f" for {domain}" if domain else ""
        err_console.print(f"[yellow]No reports found in database{suffix}.[/yellow]")
        return

    title = f"Stored Reports with {domain}" if domain else "Stored Reports"
    table = Table(title=title, box=box.SIMPLE_HEAVY, title_justify="left")
    table.add_column("ID", justify="right", style="cyan", width=5, no_wrap=True)
    table.add_column("Created", width=19, no_wrap=True)
    table.add_column("Target", overflow="fold")
    table.add_column("Domains", justify="right", width=8, no_wrap=True)
    table.add_column("Blocked", justify="right", width=8, no_wrap=True)
    table.add_column("DNS/SNI/Official", justify="center", width=16, no_wrap=True)
    table.add_column("Elapsed", justify="right", width=10, no_wrap=True)

    for report in reports:
        elapsed = "-"
        if report.get("elapsed_seconds") is not None:
            elapsed = fmt_td(timedelta(seconds=float(report["elapsed_seconds"])))
        blocked = int(report.get("blocked_count") or 0)
        table.add_row(
            str(report.get("id")),
            str(report.get("created_at")),
            str(report.get("target")),
            str(report.get("result_count")),
            f"[red]{blocked}[/red]" if blocked else "0",
            f"{report.get('dns_count', 0)}/{report.get('sni_count', 0)}/{report.get('official_count', 0)}",
            elapsed,
        )

    console.print(table)


def show_domain_history(domain: str, history: List[Dict[str, Any]]) -> None:
    """Per-run verdicts of one domain, newest first."""
    if not history:
        err_console.print(f"[yellow]No saved checks for[/yellow] {domain}")
        return

    table = Table(title=f"History of {history[0]['domain']}", box=box.SIMPLE_HEAVY, title_justify="left")
    table.add_column("Report", justify="right", style="cyan", width=7, no_wrap=True)
    table.add_column("Created", width=19, no_wrap=True)
    table.add_column("DNS", justify="center", width=SUMMARY_FLAG_WIDTH, no_wrap=True)
    table.add_column("SNI", justify="center", width=SUMMARY_FLAG_WIDTH, no_wrap=True)
    table.add_column("Official", justify="center", width=SUMMARY_FLAG_WIDTH, no_wrap=True)
    table.add_column("Status", width=SUMMARY_STATUS_WIDTH, no_wrap=True)
    for item in history:
        table.add_row(
            f"#{item['check_id']}",
            str(item.get("created_at")),
            _flag_text(item.get("dns_blocked")),
            _flag_text(item.get("sni_blocked")),
            _flag_text(item.get("official_blocked")),
            _status_text(item.get("status")),
        )
    console.print(table)
