from __future__ import annotations

from typing import List, Optional, Tuple
from urllib.parse import urlparse

SCHEME_DELIMITER = "://"


def _hostname_from_url(text: str) -> Optional[str]:
    """Structured branch: URL-parse `text` and return its hostname.

    Returns None when the URL is malformed or carries no host.
    """
    try:
        host = urlparse(text).hostname
    except ValueError:
        return None
    return host or None


def _hostname_from_plain(text: str) -> str:
    return text.split("/", 1)[0]


def normalize_domain(value: Optional[str]) -> str:
    """Return the canonical (lowercase, scheme/path stripped) host for `value`.

    Never raises. An empty result means the input carries nothing to check.

    Examples:
    - "https://Example.COM/path?x=1" -> "example.com"
    - "example.com/path" -> "example.com"
    - "  " -> ""
    """
    text = (value or "").strip().lower()
    if not text:
        return ""
    if SCHEME_DELIMITER in text:
        host = _hostname_from_url(text)
        # Unparsable URLs are kept as typed.
        return host if host is not None else text
    return _hostname_from_plain(text)


def normalize_inputs(values: List[str]) -> List[Tuple[int, str, str]]:
    """Pair every non-empty input with its canonical form.

    Returns `(position, original_input, canonical_domain)` tuples in input
    order. Inputs that normalize to an empty string are dropped.
    """
    pairs: List[Tuple[int, str, str]] = []
    for position, raw in enumerate(values):
        domain = normalize_domain(raw)
        if not domain:
            continue
        pairs.append((position, raw, domain))
    return pairs
