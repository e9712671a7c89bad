from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from ..engine.runtime import CheckResult, _run_coro_sync, run_checks
from ..engine.settings import CheckSettings
from ..output import console


def load_domains_from_file(file_path: str) -> List[str]:
    with Path(file_path).open("r", encoding="utf-8") as fh:
        return [line.strip() for line in fh if line.strip() and not line.lstrip().startswith("#")]


def collect_targets(domain_args: Optional[List[str]], file_path: Optional[str], stdin_lines: Optional[List[str]]) -> List[str]:
    """Merge CLI targets keeping their order: -d values, then file, then stdin."""
    targets: List[str] = []
    for value in domain_args or []:
        targets.extend(part for part in value.split(",") if part.strip())
    if file_path:
        targets.extend(load_domains_from_file(file_path))
    if stdin_lines:
        targets.extend(line for line in stdin_lines if line.strip())
    return targets


def run_with_rich_progress(domains: List[str], settings: CheckSettings) -> List[CheckResult]:
    """Execute checks with a Rich progress bar bound to async callbacks."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[bold cyan]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task_id = progress.add_task("Checking domains", total=max(len(domains), 1))

        def cb(done: int, total: int) -> None:
            progress.update(task_id, total=max(total, 1), completed=done)

        return _run_coro_sync(run_checks(domains, settings, progress_callback=cb))


def run_silent(domains: List[str], settings: CheckSettings) -> List[CheckResult]:
    return _run_coro_sync(run_checks(domains, settings))


def print_json_output(payload: Any) -> None:
    try:
        sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2))
        sys.stdout.write("\n")
    except BrokenPipeError:
        # Piped into `head` and the like.
        return
