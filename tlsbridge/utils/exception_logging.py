"""
Helpers for turning exceptions into log-safe text, including exception groups
raised from anyio task groups inside the HTTP client.
"""


def _safe_str(obj) -> str:
    """Convert ``obj`` to a string, falling back when __str__ itself fails."""
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def format_exception_message(exception: Exception) -> str:
    """
    Format an exception message, expanding sub-exceptions of exception groups
    and falling back to the underlying cause when the message is empty.

    Never raises.

    Args:
        exception: The exception to format

    Returns:
        A single-line description of the exception
    """
    if exception is None:
        return "None"

    sub_exceptions = []
    if hasattr(exception, "exceptions"):
        sub_exceptions = _safe_get_exceptions(exception)

    if sub_exceptions:
        parts = [
            f"{type(sub_exc).__name__}: {_safe_str(sub_exc)}"
            for sub_exc in sub_exceptions
        ]
        return f"{_safe_str(exception)} (Sub-exceptions: {'; '.join(parts)})"

    message = _safe_str(exception)
    cause = getattr(exception, "__cause__", None)
    if not message and cause is not None:
        # httpx wraps transport errors; the cause carries the OS/TLS text
        return format_exception_message(cause)
    return message or type(exception).__name__
