from __future__ import annotations

"""Network-observed blocking signals.

- `DnsDetector`: A-record lookup checked against the poisoned-IP set.
  Resolution failures are *not* blocking evidence (dead domains fail too).
- `SniDetector`: one HTTPS fetch with redirects followed. A redirect into an
  ISP sinkhole or a transport failure (reset, TLS failure, timeout) *is*
  blocking evidence, because filtered SNI connections are usually reset
  mid-handshake on the target networks.
"""

import asyncio
import enum
import ipaddress
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, List, Optional, Tuple

import dns.exception
import dns.resolver
import httpx

logger = logging.getLogger("blockcheck")


def _describe_error(exc: BaseException) -> str:
    message = str(exc).strip()
    return f"{exc.__class__.__name__}: {message}" if message else exc.__class__.__name__


@dataclass
class DnsFinding:
    blocked: bool = False
    ips: List[str] = field(default_factory=list)
    matched: List[str] = field(default_factory=list)
    error: Optional[str] = None


class DnsDetector:
    """Resolve IPv4 addresses and intersect them with `block_ips`.

    `resolver` is anything exposing dnspython's `resolve(name, rdtype)`; by
    default a system-configured `dns.resolver.Resolver` is created lazily.
    """

    def __init__(
        self,
        block_ips: Iterable[str],
        dns_server: Optional[str] = None,
        timeout: float = 3.0,
        resolver: Any = None,
        io_executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.block_ips: FrozenSet[str] = frozenset(block_ips)
        self.dns_server = dns_server
        self.timeout = timeout
        self.io_executor = io_executor
        self._resolver = resolver

    def _build_resolver(self) -> Any:
        resolver = dns.resolver.Resolver()
        if self.dns_server:
            resolver.nameservers = [self.dns_server]
        resolver.timeout = self.timeout
        resolver.lifetime = max(self.timeout * 2, self.timeout + 1.0)
        return resolver

    def _resolve_ipv4(self, domain: str) -> List[str]:
        if self._resolver is None:
            self._resolver = self._build_resolver()
        answers = self._resolver.resolve(domain, "A")
        ips: List[str] = []
        for rr in answers:
            ip_text = str(rr).strip()
            try:
                ipaddress.IPv4Address(ip_text)
            except ValueError:
                continue
            if ip_text not in ips:
                ips.append(ip_text)
        return ips

    async def check(self, domain: str) -> DnsFinding:
        loop = asyncio.get_running_loop()
        try:
            ips = await loop.run_in_executor(self.io_executor, self._resolve_ipv4, domain)
        except dns.exception.DNSException as exc:
            logger.debug("DNS lookup failed for %s: %s", domain, _describe_error(exc))
            return DnsFinding(error=_describe_error(exc))
        except Exception as exc:
            logger.debug("DNS lookup error for %s: %s", domain, _describe_error(exc))
            return DnsFinding(error=_describe_error(exc))

        matched = [ip for ip in ips if ip in self.block_ips]
        return DnsFinding(blocked=bool(matched), ips=ips, matched=matched)


class SniOutcome(str, enum.Enum):
    COMPLETED = "completed"
    SINKHOLE_REDIRECT = "sinkhole-redirect"
    TRANSPORT_FAILED = "transport-failed"


@dataclass
class SniFinding:
    outcome: SniOutcome
    final_url: Optional[str] = None
    http_status: Optional[int] = None
    error: Optional[str] = None

    @property
    def blocked(self) -> bool:
        return self.outcome is not SniOutcome.COMPLETED


def host_matches_marker(url: Optional[str], markers: Tuple[str, ...]) -> bool:
    host = (httpx.URL(url).host if url else "") or ""
    host = host.lower()
    return any(marker and marker.lower() in host for marker in markers)


class SniDetector:
    """Single HTTPS attempt per domain; no retry.

    The shared `client` must follow redirects with a bounded
    `max_redirects`. Status codes are never treated as failures: any
    completed response is inspected. `timeout` bounds the whole attempt,
    redirect hops and body included.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        sinkhole_markers: Tuple[str, ...],
        timeout: float = 3.5,
        headers: Optional[dict] = None,
    ):
        self.client = client
        self.sinkhole_markers = tuple(sinkhole_markers)
        self.timeout = timeout
        self.headers = dict(headers or {})

    async def _fetch(self, url: str) -> Tuple[str, int]:
        # The body is read in full: resets after the headers are the usual
        # filtering signature.
        async with self.client.stream(
            "GET",
            url,
            timeout=self.timeout,
            follow_redirects=True,
            headers=self.headers,
        ) as response:
            await response.aread()
            return str(response.url), response.status_code

    async def probe(self, domain: str) -> SniFinding:
        url = f"https://{domain}"
        try:
            final_url, status = await asyncio.wait_for(self._fetch(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            error = f"TimeoutError: no complete response within {self.timeout:g}s"
            logger.debug("HTTPS probe for %s failed: %s", domain, error)
            return SniFinding(SniOutcome.TRANSPORT_FAILED, error=error)
        except httpx.HTTPError as exc:
            logger.debug("HTTPS probe for %s failed: %s", domain, _describe_error(exc))
            return SniFinding(SniOutcome.TRANSPORT_FAILED, error=_describe_error(exc))
        except Exception as exc:
            # Socket/TLS errors surfacing outside httpx's hierarchy count the same way.
            logger.debug("HTTPS probe for %s raised: %s", domain, _describe_error(exc))
            return SniFinding(SniOutcome.TRANSPORT_FAILED, error=_describe_error(exc))

        if host_matches_marker(final_url, self.sinkhole_markers):
            return SniFinding(SniOutcome.SINKHOLE_REDIRECT, final_url=final_url, http_status=status)
        return SniFinding(SniOutcome.COMPLETED, final_url=final_url, http_status=status)
