"""
Helpers for logging failures of the outbound call.
"""

import logging


def _safe_str(obj) -> str:
    """Convert an object to a string, falling back when __str__ misbehaves."""
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def format_exception_message(exception: Exception) -> str:
    """
    Describe an exception as ``<Type>: <message>``, chasing the ``__cause__``
    chain so wrapped transport errors (e.g. an ``httpcore`` error behind an
    ``httpx.ConnectError``) stay visible.

    Args:
        exception: The exception to format

    Returns:
        A single-line description of the exception and its causes
    """
    if exception is None:
        return "None"

    parts = []
    seen = set()
    current = exception
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        message = _safe_str(current)
        name = type(current).__name__
        parts.append(f"{name}: {message}" if message else name)
        current = current.__cause__
    return " <- ".join(parts)


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with its cause chain and traceback.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    message = f"{_safe_str(prefix)} Exception: {format_exception_message(exception)}"
    logger.log(level, message, exc_info=exception if exception is not None else False)
