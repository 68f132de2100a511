"""
Origin and target URL checks used before a request is forwarded.

Both helpers treat unparseable input as an ordinary outcome: they return
``None`` / ``False`` instead of raising, and the caller decides which
rejection applies.
"""

from typing import Optional

import httpx

ALLOWED_TARGET_SCHEMES = ("http", "https")


def parse_absolute_url(value: str) -> Optional[httpx.URL]:
    """Parse ``value`` as an absolute URL with a host, or return None."""
    try:
        url = httpx.URL(value)
    except (httpx.InvalidURL, TypeError, ValueError):
        return None
    if not url.is_absolute_url or not url.host:
        return None
    return url


def get_root_domain(value: str) -> Optional[str]:
    """
    Return the root domain an allow-list entry is compared against.

    ``www.`` is dropped, then the last two labels are kept, or the last three
    when both of the final two labels are at most three characters long
    (``example.co.uk``). This is a length heuristic and not a public suffix
    lookup; allow-lists in use are written against exactly this behaviour.
    """
    url = parse_absolute_url(value)
    if url is None:
        return None

    # Browsers send Origin with IDNA hosts in punycode form
    hostname = url.raw_host.decode("ascii")
    if ":" in hostname:
        hostname = f"[{hostname}]"
    if hostname.startswith("www."):
        hostname = hostname[4:]

    parts = hostname.split(".")
    if len(parts) <= 2:
        return hostname
    if len(parts[-1]) <= 3 and len(parts[-2]) <= 3:
        return ".".join(parts[-3:])
    return ".".join(parts[-2:])


def parse_target_url(value: str) -> Optional[httpx.URL]:
    """Return the parsed target if it is an absolute http(s) URL."""
    url = parse_absolute_url(value)
    if url is None or url.scheme not in ALLOWED_TARGET_SCHEMES:
        return None
    return url


def is_valid_url(value: str) -> bool:
    return parse_target_url(value) is not None
