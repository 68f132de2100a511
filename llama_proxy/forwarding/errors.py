from typing import Optional


class ForwardingError(Exception):
    """A request that ends before (or instead of) a relayed upstream response."""

    status_code = 500
    detail = "Internal Server Error"
    reason = "error"

    def __init__(self, detail: Optional[str] = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class OriginRejected(ForwardingError):
    status_code = 403
    detail = "Forbidden: Origin not allowed"
    reason = "origin_rejected"


class MissingTarget(ForwardingError):
    status_code = 400
    detail = "Bad Request: Missing url parameter"
    reason = "missing_url"


class InvalidTarget(ForwardingError):
    status_code = 400
    detail = "Bad Request: Invalid url parameter"
    reason = "invalid_url"


class UpstreamFailure(ForwardingError):
    status_code = 502
    detail = "Bad Gateway: cannot reach target"
    reason = "connection_failed"


class UpstreamTimeout(UpstreamFailure):
    status_code = 504
    detail = "Gateway Timeout"
    reason = "timeout"
