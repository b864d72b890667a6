"""
Exception formatting and logging helpers that never raise themselves.

anyio task groups wrap transport errors in exception groups, so both
helpers flatten ``.exceptions`` into a single readable line.
"""

import logging
from typing import Optional


def _safe_str(obj) -> str:
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} (string conversion failed)>"


def _safe_get_exceptions(exception) -> list:
    try:
        return list(getattr(exception, "exceptions", None) or [])
    except Exception:
        return []


def format_exception_message(
    exception: Optional[BaseException], default: str = ""
) -> str:
    """
    Describe an exception in one line.

    Exception groups are rendered with their sub-exceptions. Falls back to
    ``default`` when the exception carries no text at all.
    """
    if exception is None:
        return default or "None"

    main = _safe_str(exception)
    sub_exceptions = _safe_get_exceptions(exception)
    if sub_exceptions:
        parts = [
            f"{type(sub).__name__}: {format_exception_message(sub, default)}"
            for sub in sub_exceptions
        ]
        main = f"{main} (Sub-exceptions: {'; '.join(parts)})"

    return main or default


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception and, for exception groups, each sub-exception.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g. "[Proxy]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        safe_prefix = _safe_str(prefix) if prefix is not None else ""
        sub_exceptions = _safe_get_exceptions(exception)
        if not sub_exceptions:
            logger.log(
                level,
                f"{safe_prefix} Exception: {_safe_str(exception)}",
                exc_info=exception if exception is not None else False,
            )
            return

        logger.log(
            level,
            f"{safe_prefix} Exception with {len(sub_exceptions)} sub-exceptions: {_safe_str(exception)}",
        )
        for i, sub_exc in enumerate(sub_exceptions):
            logger.log(
                level,
                f"{safe_prefix} Sub-exception {i + 1}: {type(sub_exc).__name__}: {_safe_str(sub_exc)}",
                exc_info=sub_exc,
            )
    except Exception:
        # Logging must never take the request down with it
        try:
            logger.log(logging.ERROR, f"{prefix} Exception (logging failed)")
        except Exception:
            return
