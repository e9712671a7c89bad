"""Runtime configuration for blockcheck checks.

`CheckSettings` is built once (CLI start, server start or `CHECK()` call) and
passed down to the detectors. Values are layered by the callers:
CLI flags > saved setup > environment (.env) > built-in defaults.
"""

from __future__ import annotations

import os
import random
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

# Addresses returned by poisoned resolvers of Indonesian ISPs.
DEFAULT_BLOCK_IPS: Tuple[str, ...] = (
    "125.160.17.84",
    "36.86.63.185",
    "118.97.115.30",
    "103.111.1.1",
)
# Hosts of the ISP block-notice pages.
DEFAULT_SINKHOLE_MARKERS: Tuple[str, ...] = ("internetpositif", "uzone.id")
DEFAULT_REGISTRY_URL = "https://trustpositif.komdigi.go.id/Rest_server/getrecordsname_home"
DEFAULT_LISTED_MARKER = "ADA"

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:124.0) Gecko/20100101 Firefox/124.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Mobile Safari/537.36",
]

ENV_PREFIX = "BLOCKCHECK_"


def pick_user_agent(useragent: Optional[str]) -> str:
    if useragent and useragent.strip().lower() != "random":
        return useragent.strip()
    return random.choice(USER_AGENTS)


def _split_list(raw: Optional[str]) -> Tuple[str, ...]:
    if raw is None:
        return ()
    items = [chunk.strip().lower() for chunk in raw.replace("\n", ",").split(",")]
    return tuple(item for item in items if item)


def _parse_float(value: Any, default: Optional[float]) -> Optional[float]:
    if value is None or str(value).strip() == "":
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _parse_int(value: Any, default: Optional[int]) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _parse_limit(value: Any, default: Any, cast: Any) -> Any:
    """Like `_parse_float`/`_parse_int`, but `0` (or `none`/`off`) clears the limit."""
    if value is not None and str(value).strip().lower() in {"0", "0.0", "none", "off"}:
        return None
    if cast is int:
        return _parse_int(value, default)
    return _parse_float(value, default)


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return default


@dataclass(frozen=True)
class CheckSettings:
    block_ips: FrozenSet[str] = field(default_factory=lambda: frozenset(DEFAULT_BLOCK_IPS))
    sinkhole_markers: Tuple[str, ...] = DEFAULT_SINKHOLE_MARKERS
    registry_url: str = DEFAULT_REGISTRY_URL
    registry_enabled: bool = True
    listed_marker: str = DEFAULT_LISTED_MARKER
    registry_timeout: float = 10.0
    https_timeout: float = 3.5
    max_redirects: int = 5
    dns_timeout: float = 3.0
    dns_server: Optional[str] = None
    verify_tls: bool = True
    deadline: Optional[float] = None
    max_concurrency: Optional[int] = None
    useragent: str = "random"
    host: str = "0.0.0.0"
    port: int = 8000

    def with_overrides(self, **overrides: Any) -> "CheckSettings":
        """Return a copy with every non-None override applied.

        A `deadline` or `max_concurrency` of 0 removes that limit.
        """
        values = {k: v for k, v in overrides.items() if v is not None}
        if "block_ips" in values:
            values["block_ips"] = frozenset(str(ip).strip() for ip in values["block_ips"] if str(ip).strip())
        if "sinkhole_markers" in values:
            values["sinkhole_markers"] = tuple(
                str(m).strip().lower() for m in values["sinkhole_markers"] if str(m).strip()
            )
        for key in ("deadline", "max_concurrency"):
            if key in values and values[key] <= 0:
                values[key] = None
        return replace(self, **values)

    def summary(self) -> Dict[str, Any]:
        return {
            "block_ips": sorted(self.block_ips),
            "sinkhole_markers": list(self.sinkhole_markers),
            "registry_url": self.registry_url,
            "registry_enabled": self.registry_enabled,
            "listed_marker": self.listed_marker,
            "registry_timeout": self.registry_timeout,
            "https_timeout": self.https_timeout,
            "max_redirects": self.max_redirects,
            "dns_timeout": self.dns_timeout,
            "dns_server": self.dns_server or "system",
            "verify_tls": self.verify_tls,
            "deadline": self.deadline,
            "max_concurrency": self.max_concurrency,
            "useragent": self.useragent,
        }


def settings_from_mapping(values: Mapping[str, Any], base: Optional[CheckSettings] = None) -> CheckSettings:
    """Layer loosely typed key/value pairs (env or saved setup) on `base`.

    Keys are field names. Malformed values keep the value from `base`.
    """
    current = base or CheckSettings()
    overrides: Dict[str, Any] = {}

    block_ips = _split_list(values.get("block_ips"))
    if block_ips:
        overrides["block_ips"] = block_ips
    markers = _split_list(values.get("sinkhole_markers"))
    if markers:
        overrides["sinkhole_markers"] = markers

    for key in ("registry_url", "listed_marker", "dns_server", "useragent", "host"):
        raw = values.get(key)
        if raw is not None and str(raw).strip():
            overrides[key] = str(raw).strip()

    for key in ("registry_timeout", "https_timeout", "dns_timeout"):
        overrides[key] = _parse_float(values.get(key), getattr(current, key))

    overrides["max_redirects"] = _parse_int(values.get("max_redirects"), current.max_redirects)
    overrides["port"] = _parse_int(values.get("port"), current.port)

    overrides["registry_enabled"] = _parse_bool(values.get("registry_enabled"), current.registry_enabled)
    overrides["verify_tls"] = _parse_bool(values.get("verify_tls"), current.verify_tls)
    limits = {
        "deadline": _parse_limit(values.get("deadline"), current.deadline, float),
        "max_concurrency": _parse_limit(values.get("max_concurrency"), current.max_concurrency, int),
    }
    return replace(current.with_overrides(**overrides), **limits)


def settings_from_env(environ: Optional[Mapping[str, str]] = None, base: Optional[CheckSettings] = None) -> CheckSettings:
    env = os.environ if environ is None else environ
    aliases = {"dns": "dns_server"}
    values: Dict[str, Any] = {}
    for key, raw in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        values[aliases.get(name, name)] = raw
    return settings_from_mapping(values, base=base)
