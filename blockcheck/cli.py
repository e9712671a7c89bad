from __future__ import annotations

"""Command-line interface for blockcheck.

This module translates CLI flags into `CheckSettings`, runs checks through
`blockcheck.core`, and handles setup/report/server workflows.
"""

import argparse
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .cli_parts.check_flow import (
    collect_targets as _collect_targets,
    print_json_output as _print_json_output,
    run_silent as _run_silent,
    run_with_rich_progress as _run_with_rich_progress,
)
from .cli_parts.report import history_mode as _history_mode
from .cli_parts.report import report_mode as _report_mode
from .cli_parts.setup import setup_mode as _setup_mode
from .config import load_effective_settings
from .core import CheckSettings
from .output import console, err_console, output, output_detail, print_check_status
from .storage import save_check
from .version import __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blockcheck",
        description=(
            f"blockcheck v.{__version__} - Indonesian domain block checker\n"
            "Signals: TrustPositif registry, DNS poisoning, SNI/connection interference.\n"
            "CLI options > saved setup (--setup) > environment (.env) > built-in defaults."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    target_group = parser.add_argument_group("Target")
    target_group.add_argument(
        "-d",
        "--domain",
        action="append",
        help="Domain or URL to check. Repeatable, comma-separated values accepted.",
    )
    target_group.add_argument("-f", "--file", help="File with domains or URLs, one per line.")

    runtime_group = parser.add_argument_group("Runtime Overrides (Advanced)")
    runtime_group.add_argument("--timeout", dest="https_timeout", type=float, help="HTTPS probe timeout in seconds.")
    runtime_group.add_argument("--registry-timeout", type=float, help="Registry lookup timeout in seconds.")
    runtime_group.add_argument("--dns-timeout", type=float, help="DNS lookup timeout in seconds.")
    runtime_group.add_argument("--deadline", type=float, help="Per-domain deadline for DNS+HTTPS checks in seconds.")
    runtime_group.add_argument("--dns", dest="dns_server", help="DNS server (default: system resolver).")
    runtime_group.add_argument("--useragent", help="User-Agent string or 'random'.")
    runtime_group.add_argument("--max-redirects", type=int, help="Redirects followed by the HTTPS probe.")
    runtime_group.add_argument("--max-concurrency", type=int, help="Maximum domains checked at once.")
    runtime_group.add_argument("--no-registry", action="store_true", help="Skip the official registry lookup.")
    runtime_group.add_argument("--insecure", action="store_true", help="Disable TLS certificate verification.")

    output_group = parser.add_argument_group("Output")
    output_group.add_argument("--json", help="JSON-only output (forces --silent).", action="store_true")
    output_group.add_argument("--detail", help="Include per-domain evidence.", action="store_true")
    output_group.add_argument("--silent", help="Silent mode (hide progress).", action="store_true")
    output_group.add_argument("--status", help="Print effective configuration and continue.", action="store_true")

    setup_group = parser.add_argument_group("Setup and Reports")
    setup_group.add_argument("--setup", help="Interactive setup: save runtime defaults in the local DB.", action="store_true")
    setup_group.add_argument("--save", help="Store this run in the local reports DB.", action="store_true")
    setup_group.add_argument(
        "--report",
        nargs="?",
        const="choose",
        help="Show stored runs: latest, an ID, a target, a checked domain or 'list'. Without value opens the menu.",
    )
    setup_group.add_argument("--history", metavar="DOMAIN", help="Show saved verdicts of one domain across runs.")

    server_group = parser.add_argument_group("Server")
    server_group.add_argument("--serve", help="Run the HTTP API and dashboard.", action="store_true")
    server_group.add_argument("--host", help="Listen address for --serve.")
    server_group.add_argument("--port", type=int, help="Listen port for --serve.")
    return parser


def build_cli_settings(args: argparse.Namespace, base: CheckSettings) -> CheckSettings:
    return base.with_overrides(
        https_timeout=args.https_timeout,
        registry_timeout=args.registry_timeout,
        dns_timeout=args.dns_timeout,
        deadline=args.deadline,
        dns_server=args.dns_server,
        useragent=args.useragent,
        max_redirects=args.max_redirects,
        max_concurrency=args.max_concurrency,
        registry_enabled=False if args.no_registry else None,
        verify_tls=False if args.insecure else None,
        host=args.host,
        port=args.port,
    )


def _read_stdin_lines() -> List[str]:
    return [line.strip() for line in sys.stdin.read().splitlines() if line.strip()]


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entrypoint.

    Responsible for argument parsing, config layering and mode dispatch.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.json:
        args.silent = True

    if args.setup:
        _setup_mode()
        return
    if args.report is not None:
        _report_mode(args.report)
        return
    if args.history:
        _history_mode(args.history)
        return

    settings = build_cli_settings(args, load_effective_settings())

    if args.serve:
        from .server import serve

        serve(settings, host=args.host, port=args.port)
        return

    if args.file and not Path(args.file).is_file():
        err_console.print(f"[red]File not found:[/red] {args.file}")
        return

    stdin_lines: Optional[List[str]] = None
    if not args.domain and not args.file and not sys.stdin.isatty():
        stdin_lines = _read_stdin_lines()

    try:
        domains = _collect_targets(args.domain, args.file, stdin_lines)
    except OSError as exc:
        err_console.print(f"[red]Cannot read file:[/red] {args.file} ({exc})")
        return

    if args.status and not args.json:
        print_check_status(settings, target_count=len(domains) if domains else None)

    if not domains:
        if args.status:
            return
        parser.print_help(sys.stderr)
        return

    start_time = datetime.now()
    if args.silent:
        results = _run_silent(domains, settings)
    else:
        results = _run_with_rich_progress(domains, settings)
    elapsed = datetime.now() - start_time

    rows = [item.to_dict(detail=args.detail) for item in results]
    if args.save:
        target = domains[0] if len(domains) == 1 else (args.file or f"{len(domains)} domains")
        report_id = save_check(str(target), settings.summary(), rows, elapsed)
        if not args.json:
            console.print(f"[green]Saved report #[/green]{report_id}")

    if args.json:
        _print_json_output({"results": rows})
        return
    output(rows, elapsed)
    if args.detail:
        output_detail(rows)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        try:
            sys.exit(0)
        except SystemExit:
            os._exit(0)
