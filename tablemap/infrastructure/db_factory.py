"""
Database connection factory utilities for tablemap.

Validates connection URIs, defines the driver contract the Connection facade
consumes and opens asyncpg connections. Establishing a connection retries
transient transport failures with exponential backoff using tenacity; once a
connection exists, statements are never retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol, runtime_checkable
from urllib.parse import parse_qs, urlsplit

import asyncpg
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tablemap.config import Settings, get_settings
from tablemap.exceptions import ConnectionError
from tablemap.utils.logging import get_logger

log = get_logger(__name__)

SUPPORTED_SCHEMES = frozenset({"postgres", "postgresql"})

# Failures worth another connection attempt; authentication or a missing
# database will not fix themselves.
_TRANSIENT_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
)


@runtime_checkable
class Driver(Protocol):
    """
    Asynchronous database client consumed by the Connection facade.

    ``asyncpg.Connection`` satisfies this protocol; tests substitute in-memory
    fakes.
    """

    async def fetch(self, query: str, *args: Any) -> list:
        ...

    async def execute(self, query: str, *args: Any) -> str:
        ...

    def cursor(self, query: str, *args: Any, prefetch: Optional[int] = None) -> Any:
        ...

    def transaction(self) -> Any:
        ...

    async def close(self) -> None:
        ...

    def is_closed(self) -> bool:
        ...


def redact_dsn(dsn: str) -> str:
    """Replace the password in a connection URI with ``***``."""
    try:
        parts = urlsplit(dsn)
    except ValueError:
        return "<malformed uri>"
    if not parts.password:
        return dsn
    userinfo, _, hosts = parts.netloc.rpartition("@")
    user = userinfo.split(":", 1)[0]
    return parts._replace(netloc=f"{user}:***@{hosts}").geturl()


def validate_uri(uri: str) -> str:
    """
    Check that ``uri`` is a usable PostgreSQL connection URI.

    Raises
    ------
    ConnectionError
        If the URI is empty, uses another scheme, names no host or carries an
        invalid port.
    """
    if not isinstance(uri, str) or not uri.strip():
        raise ConnectionError("connection URI is empty", operation="connect")
    uri = uri.strip()
    try:
        parts = urlsplit(uri)
    except ValueError as exc:
        raise ConnectionError(f"malformed connection URI: {exc}", operation="connect") from exc

    if parts.scheme not in SUPPORTED_SCHEMES:
        raise ConnectionError(
            f"unsupported scheme '{parts.scheme}' in {redact_dsn(uri)}; "
            f"expected one of {', '.join(sorted(SUPPORTED_SCHEMES))}",
            operation="connect",
        )

    # asyncpg accepts several comma-separated hosts; check each one.
    hosts = parts.netloc.rpartition("@")[2]
    has_host = False
    for entry in filter(None, hosts.split(",")):
        try:
            host = urlsplit(f"//{entry}")
            host.port  # raises ValueError for a non-numeric port
        except ValueError as exc:
            raise ConnectionError(
                f"malformed host '{entry}' in {redact_dsn(uri)}: {exc}", operation="connect"
            ) from exc
        has_host = has_host or bool(host.hostname)
    if not has_host and "host" not in parse_qs(parts.query):
        raise ConnectionError(f"no host in {redact_dsn(uri)}", operation="connect")
    return uri


async def open_driver(
    uri: Optional[str] = None, settings: Optional[Settings] = None
) -> asyncpg.Connection:
    """
    Open an asyncpg connection with automatic retry for transient failures.

    Parameters
    ----------
    uri : str | None
        Connection URI. Defaults to the DSN derived from settings.
    settings : Settings | None
        Timeouts and retry policy. Defaults to ``get_settings()``.

    Raises
    ------
    ConnectionError
        If the URI is malformed (before any I/O) or every attempt failed.
    """
    settings = settings or get_settings()
    dsn = validate_uri(uri if uri is not None else settings.dsn())

    retrying = AsyncRetrying(
        stop=stop_after_attempt(settings.connect_attempts),
        wait=wait_exponential(multiplier=settings.connect_backoff, max=10),
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        before_sleep=before_sleep_log(log, logging.WARNING),
        reraise=True,
    )
    try:
        async for attempt in retrying:
            with attempt:
                driver = await asyncpg.connect(
                    dsn,
                    timeout=settings.connect_timeout,
                    command_timeout=settings.command_timeout,
                )
    except (
        OSError,
        asyncio.TimeoutError,
        ValueError,
        asyncpg.exceptions.PostgresError,
        asyncpg.exceptions.InterfaceError,
    ) as exc:
        log.warning(
            "Connection failed", extra={"dsn": redact_dsn(dsn), "error": str(exc)}
        )
        raise ConnectionError(
            f"could not connect to {redact_dsn(dsn)}: {exc}", operation="connect"
        ) from exc
    return driver


__all__ = ["Driver", "SUPPORTED_SCHEMES", "open_driver", "redact_dsn", "validate_uri"]
