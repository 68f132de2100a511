from dataclasses import dataclass
from typing import FrozenSet, Optional

from llama_proxy.vars import allowed_domains_raw, proxy_timeout_raw


@dataclass(frozen=True)
class ProxySettings:
    """Read-only settings for a single pass through the forwarding pipeline."""

    allowed_domains: FrozenSet[str] = frozenset()
    timeout: Optional[float] = None

    def allows(self, root_domain: Optional[str]) -> bool:
        return bool(root_domain) and root_domain in self.allowed_domains


def parse_allowed_domains(raw: str) -> FrozenSet[str]:
    """Split a comma-separated domain list. Entries are trimmed, never lower-cased."""
    if not raw:
        return frozenset()
    return frozenset(d.strip() for d in raw.split(",") if d.strip())


def parse_timeout(raw: str) -> Optional[float]:
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"PROXY_TIMEOUT must be a number of seconds, got {raw!r}") from e


def load_settings() -> ProxySettings:
    return ProxySettings(
        allowed_domains=parse_allowed_domains(allowed_domains_raw()),
        timeout=parse_timeout(proxy_timeout_raw()),
    )
