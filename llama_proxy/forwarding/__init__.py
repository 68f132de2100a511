from .domains import get_root_domain, is_valid_url, parse_target_url
from .errors import (
    ForwardingError,
    InvalidTarget,
    MissingTarget,
    OriginRejected,
    UpstreamFailure,
    UpstreamTimeout,
)
from .handler import forward_request
from .headers import apply_cors_headers, transfer_headers
from .settings import ProxySettings, load_settings

__all__ = [
    "ForwardingError",
    "InvalidTarget",
    "MissingTarget",
    "OriginRejected",
    "ProxySettings",
    "UpstreamFailure",
    "UpstreamTimeout",
    "apply_cors_headers",
    "forward_request",
    "get_root_domain",
    "is_valid_url",
    "load_settings",
    "parse_target_url",
    "transfer_headers",
]
