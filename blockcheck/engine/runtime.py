from __future__ import annotations

"""Core check engine for blockcheck.

This module contains the runtime used by the CLI, the HTTP server and
Python callers:
- verdict aggregation (`verdict_status`, `CheckResult`)
- batch orchestration (`run_checks`): normalize, one registry call, then
  DNS + HTTPS probes per domain in parallel
- sync bridge (`_run_coro_sync`, `CHECK`)

Keep logic in this file side-effect free where possible, because it is imported
from both `blockcheck/cli.py` and `blockcheck/server.py`.
"""

import asyncio
import logging
import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import httpx

from .detectors import DnsDetector, DnsFinding, SniDetector, SniFinding, SniOutcome
from .normalize import normalize_domain, normalize_inputs
from .registry import RegistryClient, is_listed
from .settings import CheckSettings, pick_user_agent, settings_from_env

STATUS_BLOCKED = "Blocked"
STATUS_CLEAN = "Clean"

logger = logging.getLogger("blockcheck")
logger.setLevel(getattr(logging, os.getenv("BLOCKCHECK_LOG_LEVEL", "INFO").upper(), logging.INFO))
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))
    logger.addHandler(handler)


class InvalidInput(ValueError):
    """Request body does not carry a `domains` list of strings."""


def parse_domains_payload(payload: Any) -> List[str]:
    if not isinstance(payload, dict):
        raise InvalidInput("Invalid input")
    domains = payload.get("domains")
    if not isinstance(domains, list):
        raise InvalidInput("Invalid input")
    if any(not isinstance(item, str) for item in domains):
        raise InvalidInput("Invalid input")
    return list(domains)


def verdict_status(dns_blocked: bool, sni_blocked: bool, official_blocked: bool) -> str:
    if dns_blocked or sni_blocked or official_blocked:
        return STATUS_BLOCKED
    return STATUS_CLEAN


@dataclass
class CheckResult:
    input: str
    domain: str
    dns_blocked: bool = False
    sni_blocked: bool = False
    official_blocked: bool = False
    detail: Dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> str:
        return verdict_status(self.dns_blocked, self.sni_blocked, self.official_blocked)

    def to_dict(self, detail: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "input": self.input,
            "domain": self.domain,
            "dns_blocked": self.dns_blocked,
            "sni_blocked": self.sni_blocked,
            "official_blocked": self.official_blocked,
            "status": self.status,
        }
        if detail:
            data["detail"] = dict(self.detail)
        return data


def _base_detail(official_status: Optional[str]) -> Dict[str, Any]:
    return {
        "ips": [],
        "dns_error": None,
        "sni_outcome": None,
        "final_url": None,
        "http_status": None,
        "sni_error": None,
        "official_status": official_status,
        "incomplete": False,
        "error": None,
    }


async def _check_domain(
    raw: str,
    domain: str,
    official_status: Optional[str],
    settings: CheckSettings,
    dns_detector: DnsDetector,
    sni_detector: SniDetector,
) -> CheckResult:
    result = CheckResult(
        input=raw,
        domain=domain,
        official_blocked=is_listed(official_status, settings.listed_marker),
        detail=_base_detail(official_status),
    )

    async def _probe() -> None:
        dns_finding, sni_finding = await asyncio.gather(
            dns_detector.check(domain),
            sni_detector.probe(domain),
        )
        _apply_dns(result, dns_finding)
        _apply_sni(result, sni_finding)

    try:
        if settings.deadline:
            await asyncio.wait_for(_probe(), timeout=settings.deadline)
        else:
            await _probe()
    except asyncio.TimeoutError:
        logger.info("Deadline of %.1fs exceeded for %s", settings.deadline, domain)
        result.dns_blocked = False
        result.sni_blocked = False
        result.detail["incomplete"] = True
    except Exception as exc:
        logger.exception("Unexpected failure while checking %s", domain)
        result.dns_blocked = False
        result.sni_blocked = False
        result.detail["error"] = f"{exc.__class__.__name__}: {exc}"
    return result


def _apply_dns(result: CheckResult, finding: DnsFinding) -> None:
    result.dns_blocked = finding.blocked
    result.detail["ips"] = list(finding.ips)
    result.detail["dns_error"] = finding.error


def _apply_sni(result: CheckResult, finding: SniFinding) -> None:
    result.sni_blocked = finding.blocked
    result.detail["sni_outcome"] = finding.outcome.value
    result.detail["final_url"] = finding.final_url
    result.detail["http_status"] = finding.http_status
    result.detail["sni_error"] = finding.error


def build_http_client(settings: CheckSettings, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """Shared client for registry and HTTPS probes of one batch."""
    return httpx.AsyncClient(
        verify=settings.verify_tls,
        follow_redirects=True,
        max_redirects=settings.max_redirects,
        timeout=httpx.Timeout(settings.https_timeout),
        transport=transport,
    )


async def run_checks(
    domains: List[str],
    settings: Optional[CheckSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
    resolver: Any = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> List[CheckResult]:
    """Main orchestrator used by CLI, HTTP server and Python API.

    Flow:
    1. normalize inputs, dropping those that normalize to empty
    2. one batched registry lookup for every canonical domain
    3. DNS + HTTPS probes for all domains concurrently
    4. return results in input order

    `client` and `resolver` are injectable for tests; by default a client is
    built from `settings` and closed on exit.
    """
    settings = settings or CheckSettings()
    pairs = normalize_inputs(domains)
    if not pairs:
        return []

    headers = {"User-Agent": pick_user_agent(settings.useragent)}
    owns_client = client is None
    http_client = client or build_http_client(settings)
    io_workers = max(8, min(256, len(pairs) * 2))
    io_executor = ThreadPoolExecutor(max_workers=io_workers)
    try:
        official: Dict[str, Optional[str]] = {}
        if settings.registry_enabled:
            registry = RegistryClient(
                http_client,
                url=settings.registry_url,
                timeout=settings.registry_timeout,
                headers=headers,
            )
            official = await registry.lookup([domain for _, _, domain in pairs])

        dns_detector = DnsDetector(
            settings.block_ips,
            dns_server=settings.dns_server,
            timeout=settings.dns_timeout,
            resolver=resolver,
            io_executor=io_executor,
        )
        sni_detector = SniDetector(
            http_client,
            settings.sinkhole_markers,
            timeout=settings.https_timeout,
            headers=headers,
        )

        semaphore = asyncio.Semaphore(settings.max_concurrency) if settings.max_concurrency else None
        total = len(pairs)
        done = 0

        async def worker(raw: str, domain: str) -> CheckResult:
            nonlocal done
            try:
                if semaphore is None:
                    return await _check_domain(raw, domain, official.get(domain), settings, dns_detector, sni_detector)
                async with semaphore:
                    return await _check_domain(raw, domain, official.get(domain), settings, dns_detector, sni_detector)
            finally:
                done += 1
                if progress_callback:
                    progress_callback(done, total)

        results = await asyncio.gather(*(worker(raw, domain) for _, raw, domain in pairs))
    finally:
        # Hung resolver threads are abandoned, not joined.
        io_executor.shutdown(wait=False, cancel_futures=True)
        if owns_client:
            await http_client.aclose()

    blocked = sum(1 for r in results if r.status == STATUS_BLOCKED)
    logger.debug("Checked %d domain(s): %d blocked, %d clean", len(results), blocked, len(results) - blocked)
    return list(results)


def _run_coro_sync(coro: Any) -> Any:
    """Run async code from sync callers (CLI, Flask views, public API).

    If already inside an event loop, execute in a helper thread to avoid
    `RuntimeError: asyncio.run() cannot be called from a running event loop`.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    outcome: Dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["result"] = asyncio.run(coro)
        except Exception as exc:  # pragma: no cover - fallback path
            outcome["error"] = exc

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    thread.join()

    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("result")


def CHECK(
    domains: Union[str, Iterable[str]],
    settings: Optional[CheckSettings] = None,
    detail: bool = False,
    **overrides: Any,
) -> List[dict]:
    """Public synchronous Python API entrypoint.

    Example:
    `CHECK(["https://example.com/x", "example.org"], https_timeout=4.0)`
    """
    if isinstance(domains, str):
        items = [domains]
    else:
        items = list(domains)
    effective = (settings or settings_from_env()).with_overrides(**overrides)
    results = _run_coro_sync(run_checks(items, effective))
    return [item.to_dict(detail=detail) for item in results]


__all__ = [
    "STATUS_BLOCKED",
    "STATUS_CLEAN",
    "CheckResult",
    "CHECK",
    "InvalidInput",
    "SniOutcome",
    "build_http_client",
    "logger",
    "normalize_domain",
    "parse_domains_payload",
    "run_checks",
    "verdict_status",
]
