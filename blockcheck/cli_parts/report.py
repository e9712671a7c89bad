from __future__ import annotations

import sys
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from rich.panel import Panel

from ..output import console, err_console, output, show_domain_history, show_reports_catalog
from ..storage import delete_report, domain_history, get_report, list_reports, reset_reports

CATALOG_LIMIT = 100


def parse_report_ids(raw_ids: str) -> List[int]:
    """Comma-separated report IDs, de-duplicated in input order."""
    ids: List[int] = []
    for chunk in (part.strip() for part in raw_ids.split(",")):
        if not chunk:
            continue
        if not chunk.isdigit():
            raise ValueError(f"Invalid report id: {chunk}")
        if int(chunk) not in ids:
            ids.append(int(chunk))
    if not ids:
        raise ValueError("No report IDs provided")
    return ids


def show_report(selector: str) -> bool:
    report = get_report(selector)
    if not report:
        err_console.print(f"[red]Report not found:[/red] {selector}")
        return False
    elapsed = None
    if report.get("elapsed_seconds") is not None:
        elapsed = timedelta(seconds=float(report["elapsed_seconds"]))
    console.print(
        Panel.fit(
            f"[bold]Report[/bold] #{report['id']}  [bold]Target:[/bold] {report['target']}  "
            f"[bold]Created:[/bold] {report['created_at']}",
            border_style="blue",
        )
    )
    output(report.get("results"), elapsed)
    return True


def history_mode(domain: str) -> None:
    """Print how one domain was judged across saved runs (`--history`)."""
    show_domain_history(domain, domain_history(domain))


class _ReportMenu:
    """Interactive `--report` loop. `domain_filter` narrows the catalog."""

    def __init__(self) -> None:
        self.domain_filter: Optional[str] = None
        self.actions: Dict[str, Callable[[], None]] = {
            "1": self.show,
            "2": self.delete,
            "3": self.filter,
            "4": self.history,
            "99": self.reset,
        }

    def render(self) -> None:
        show_reports_catalog(list_reports(limit=CATALOG_LIMIT, domain=self.domain_filter), domain=self.domain_filter)
        console.print("1 show   2 delete   3 filter by domain   4 domain history   99 reset db")

    def show(self) -> None:
        show_report(input("Report ID, target or domain [latest]: ").strip() or "latest")

    def delete(self) -> None:
        try:
            report_ids = parse_report_ids(input("Report IDs (comma-separated): ").strip())
        except ValueError as exc:
            err_console.print(f"[red]{exc}[/red]")
            return
        deleted = [report_id for report_id in report_ids if delete_report(report_id)]
        for report_id in report_ids:
            if report_id not in deleted:
                err_console.print(f"[red]Report not found:[/red] {report_id}")
        console.print(f"[cyan]Delete summary:[/cyan] {len(deleted)}/{len(report_ids)} deleted")

    def filter(self) -> None:
        self.domain_filter = input("Domain or URL (empty = all reports): ").strip() or None

    def history(self) -> None:
        domain = input("Domain or URL: ").strip()
        if domain:
            history_mode(domain)

    def reset(self) -> None:
        if input("Type RESET to delete every saved report: ").strip() != "RESET":
            console.print("[yellow]Reset cancelled.[/yellow]")
            return
        console.print(f"[green]DB reset completed.[/green] Removed reports: {reset_reports()}")

    def run(self) -> None:
        while True:
            self.render()
            choice = input("Select action (Enter to exit): ").strip()
            if not choice:
                return
            action = self.actions.get(choice)
            if action is None:
                err_console.print(f"[red]Unknown action:[/red] {choice}")
                continue
            action()


def report_mode(report_selector: Optional[str]) -> None:
    """Report manager used by `--report`.

    `latest`, an ID, a target or a checked domain prints one report; `list`
    prints the catalog. Without a selector on a TTY an interactive menu opens.
    """
    if report_selector and report_selector not in {"choose", "list"}:
        show_report(report_selector)
        return
    if report_selector == "list" or not sys.stdin.isatty():
        show_reports_catalog(list_reports(limit=CATALOG_LIMIT))
        return
    try:
        _ReportMenu().run()
    except KeyboardInterrupt:
        console.print("\n[yellow]Report mode interrupted.[/yellow]")
