from __future__ import annotations

"""Client for the official TrustPositif blocklist registry.

One batched POST per check request. Any failure (network, timeout, bad
payload) degrades to "no verdicts" so the batch still completes with
`official_blocked = false` everywhere.
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional

import httpx

from .settings import DEFAULT_LISTED_MARKER, DEFAULT_REGISTRY_URL

logger = logging.getLogger("blockcheck")


def normalize_records(payload: Any) -> List[Dict[str, Any]]:
    """Coerce a registry payload to a list of records.

    A single object becomes a one-element list, a list is kept as-is and
    anything else becomes an empty list.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        return [payload]
    return []


def build_official_verdict(records: Iterable[Any]) -> Dict[str, Optional[str]]:
    """Map lowercase domain name -> raw status token from registry records."""
    verdict: Dict[str, Optional[str]] = {}
    for item in records:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip().lower()
        if not name:
            continue
        status = item.get("status")
        verdict[name] = None if status is None else str(status).strip()
    return verdict


def is_listed(status: Optional[str], listed_marker: str = DEFAULT_LISTED_MARKER) -> bool:
    # Every token other than the marker counts as "not listed".
    return status is not None and status.upper() == listed_marker.upper()


class RegistryClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str = DEFAULT_REGISTRY_URL,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.client = client
        self.url = url
        self.timeout = timeout
        self.headers = dict(headers or {})

    async def fetch_records(self, domains: List[str]) -> List[Dict[str, Any]]:
        names = list(OrderedDict.fromkeys(d for d in domains if d))
        if not names:
            return []
        try:
            response = await self.client.post(
                self.url,
                data={"name": " ".join(names)},
                headers=self.headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except Exception as exc:
            message = str(exc).strip()
            logger.warning(
                "Registry lookup failed for %d domain(s): %s%s",
                len(names),
                exc.__class__.__name__,
                f": {message}" if message else "",
            )
            return []
        records = normalize_records(payload)
        logger.debug("Registry returned %d record(s) for %d domain(s)", len(records), len(names))
        return records

    async def lookup(self, domains: List[str]) -> Dict[str, Optional[str]]:
        """Return the official verdict map for `domains` (one network call)."""
        return build_official_verdict(await self.fetch_records(domains))
