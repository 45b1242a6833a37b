"""
Utility functions for exception logging, particularly for chained transport errors.

httpx wraps the low level socket or TLS failure in its own exception and keeps
the original one on ``__cause__``/``__context__``. The helpers below walk that
chain so the log line and the error envelope show the real reason.
"""

import logging
from typing import List

MAX_CHAIN_DEPTH = 8


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.

    Args:
        obj: The object to convert to string

    Returns:
        A string representation of the object, falling back to safe alternatives
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            try:
                return f"<{type(obj).__name__} object (string conversion failed)>"
            except Exception:
                return "<object (all string conversions failed)>"


def _describe(exception) -> str:
    text = _safe_str(exception)
    name = type(exception).__name__
    return f"{name}: {text}" if text else name


def exception_chain(exception: BaseException) -> List[BaseException]:
    """
    Return the exception followed by its causes, oldest last.

    Stops on cycles and after MAX_CHAIN_DEPTH entries.
    """
    chain: List[BaseException] = []
    seen = set()
    current = exception
    while current is not None and len(chain) < MAX_CHAIN_DEPTH:
        if id(current) in seen:
            break
        seen.add(id(current))
        chain.append(current)
        try:
            current = current.__cause__ or current.__context__
        except Exception:
            break
    return chain


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception together with the exceptions that caused it.
    This function never raises, even for broken exception objects or logger failures.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        safe_prefix = _safe_str(prefix) if prefix is not None else ""
        if exception is None:
            logger.log(level, f"{safe_prefix} Exception: None")
            return

        causes = exception_chain(exception)[1:]
        main_message = f"{safe_prefix} Exception: {_safe_str(exception)}"
        try:
            logger.log(level, main_message, exc_info=exception)
        except Exception:
            logger.log(level, main_message)

        for i, cause in enumerate(causes):
            try:
                logger.log(level, f"{safe_prefix} Caused by ({i + 1}): {_describe(cause)}")
            except Exception:
                continue
    except Exception:
        try:
            if logger is not None:
                logger.log(logging.ERROR, "Exception logging failed")
        except Exception:
            pass


def format_exception_message(exception: Exception) -> str:
    """
    Format an exception message, appending the root cause when it differs.
    Never raises.

    Args:
        exception: The exception to format

    Returns:
        A formatted string describing the exception
    """
    try:
        if exception is None:
            return "None"

        main_str = _safe_str(exception) or type(exception).__name__
        chain = exception_chain(exception)
        if len(chain) < 2:
            return main_str

        root = _describe(chain[-1])
        if root == main_str or _safe_str(chain[-1]) == main_str:
            return main_str
        return f"{main_str} (caused by {root})"
    except Exception:
        try:
            return f"<{type(exception).__name__} (formatting failed)>"
        except Exception:
            return "<exception (all formatting failed)>"
