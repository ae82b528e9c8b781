"""Utility functions for edgemap."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from edgemap.exceptions import RetryExhaustedError, generate_correlation_id
from edgemap.models import ReplaceRule

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

# Locale served from the bare base URL, without a locale segment
DEFAULT_LOCALE = "en"


def log_with_correlation(
    logger: logging.Logger,
    level: int,
    message: str,
    correlation_id: str | None = None,
    **kwargs: Any,
) -> None:
    """
    Log a message with correlation ID and additional context.

    Args:
        logger: Logger instance to use.
        level: Logging level (e.g., logging.INFO, logging.ERROR).
        message: Log message format string.
        correlation_id: Optional correlation ID. If None, generates a new one.
        **kwargs: Additional context to include in log extra fields.
    """
    corr_id = correlation_id or generate_correlation_id()
    extra = {"correlation_id": corr_id, **kwargs}
    logger.log(level, message, extra=extra)


# URL utilities


def generate_url(base_url: str, page_path: str, locale: str) -> str:
    """
    Build the absolute URL of a page in a locale.

    The default locale is served without a locale segment. Exactly one
    slash separates the base URL, the locale segment and the path.

    Args:
        base_url: Site base URL, with or without a trailing slash.
        page_path: Page path, with or without a leading slash ("" for the root).
        locale: Locale code.

    Returns:
        Absolute page URL.

    Example:
        >>> generate_url("https://example.com", "games/slots", "no")
        'https://example.com/no/games/slots'
        >>> generate_url("https://example.com/", "", "en")
        'https://example.com/'
    """
    base = base_url.rstrip("/") + "/"
    locale_segment = "" if locale == DEFAULT_LOCALE else f"{locale.strip('/')}/"
    path_segment = page_path.lstrip("/")
    return f"{base}{locale_segment}{path_segment}"


def resolve_endpoint(base_url: str, url: str) -> str:
    """Resolve a site-relative endpoint (leading "/") against the base URL."""
    if url.startswith("/"):
        return base_url.rstrip("/") + url
    return url


def top_level_segment(path: str) -> str:
    """Return the first path segment, ignoring one leading slash."""
    if path.startswith("/"):
        path = path[1:]
    return path.split("/", 1)[0]


def apply_replacements(text: str, rules: Iterable[ReplaceRule]) -> str:
    """
    Apply literal substitutions in declaration order.

    Every occurrence of each pattern is replaced.

    Args:
        text: Serialised document.
        rules: Replacement rules.

    Returns:
        Text after all substitutions.
    """
    for rule in rules:
        text = text.replace(rule.pattern, rule.value)
    return text


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    retries: int,
    description: str,
    correlation_id: str | None = None,
) -> T:
    """
    Run an async operation, re-invoking it after failures.

    The operation is attempted at most ``retries + 1`` times. No delay is
    added between attempts; backoff belongs to the transport.

    Args:
        operation: Zero-argument coroutine factory.
        retries: Number of extra attempts after the first failure.
        description: Name of the operation for logs and errors.
        correlation_id: Optional correlation ID for log grouping.

    Returns:
        The first successful result.

    Raises:
        RetryExhaustedError: If every attempt failed. ``__cause__`` is the
            last failure.
    """
    errors: list[Exception] = []
    attempts = retries + 1
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as e:
            errors.append(e)
            if attempt < attempts:
                log_with_correlation(
                    LOGGER,
                    logging.WARNING,
                    f"{description} failed (attempt {attempt}/{attempts}): {e}",
                    correlation_id=correlation_id,
                    attempt=attempt,
                )
    raise RetryExhaustedError(description, errors, correlation_id=correlation_id) from errors[-1]


async def gather_or_cancel(*aws: Awaitable[Any]) -> list[Any]:
    """
    Await concurrently; on the first failure cancel the rest and re-raise.

    No sibling is still running (or issuing requests) once the error
    reaches the caller.

    Returns:
        Results in argument order.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
