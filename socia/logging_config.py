"""Centralized logging configuration for the Socia backend."""

import logging
import sys
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger to write to stdout."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def get_logger(name: str) -> logging.Logger:
    """Get a named logger (e.g. "socia.relay")."""
    return logging.getLogger(name)


_auth_logger = get_logger("socia.auth")
_relay_logger = get_logger("socia.relay")


def log_auth_event(event: str, subject: str, success: bool, detail: str | None = None) -> None:
    """Log an authentication event as a single line."""
    status = "OK" if success else "FAILED"
    line = f"AUTH {event.upper()} | {subject} | {status}"
    if detail:
        line += f" | {detail}"
    if success:
        _auth_logger.info(line)
    else:
        _auth_logger.warning(line)


def log_relay_event(
    event: str,
    user_id: str,
    conversation_id: str | None = None,
    detail: str | None = None,
) -> None:
    """Log a relay event (connect, drop, deliver...) at debug level."""
    line = f"RELAY {event.upper()} | user={user_id}"
    if conversation_id:
        line += f" | conv={conversation_id}"
    if detail:
        line += f" | {detail}"
    _relay_logger.debug(line)


async def advisory(
    operation: str,
    func: Callable[..., Awaitable[T]],
    *args: Any,
    logger: logging.Logger | None = None,
    **kwargs: Any,
) -> T | None:
    """Run a best-effort coroutine; log and swallow any failure.

    Returns the coroutine's result, or None if it raised.
    """
    try:
        return await func(*args, **kwargs)
    except Exception as e:
        (logger or _relay_logger).warning(f"Advisory operation '{operation}' failed: {e}")
        return None
