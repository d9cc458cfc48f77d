"""Thread-local Postgres connections for catalog stores."""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Any, Iterator

import psycopg


logger = logging.getLogger("preservation_catalog.postgres_runtime")

_LOCAL = threading.local()

CONNECT_ATTEMPTS = 3
CONNECT_BACKOFF_SECONDS = 0.05


def is_postgres_dsn(value: str | None) -> bool:
    if not value:
        return False
    return value.startswith("postgres://") or value.startswith("postgresql://")


@contextmanager
def postgres_threadlocal_connection(
    dsn: str,
    *,
    attempts: int = CONNECT_ATTEMPTS,
    backoff_seconds: float = CONNECT_BACKOFF_SECONDS,
) -> Iterator[psycopg.Connection[Any]]:
    """Yield this thread's connection for ``dsn``; commit on success, roll back on error."""
    key = str(dsn or "").strip()
    connection = _acquire(key, attempts=attempts, backoff_seconds=backoff_seconds)
    try:
        yield connection
    except BaseException:
        try:
            connection.rollback()
        except psycopg.Error:
            _discard(key)
        raise
    else:
        try:
            connection.commit()
        except psycopg.Error:
            _discard(key)
            raise
    finally:
        if _unusable(connection):
            _discard(key)


def _connections() -> dict[str, psycopg.Connection[Any]]:
    cache = getattr(_LOCAL, "connections", None)
    if cache is None:
        cache = {}
        _LOCAL.connections = cache
    return cache


def _acquire(key: str, *, attempts: int, backoff_seconds: float) -> psycopg.Connection[Any]:
    cache = _connections()
    cached = cache.get(key)
    if cached is not None and not _unusable(cached):
        return cached
    if cached is not None:
        _discard(key)
    last_error: psycopg.OperationalError | None = None
    for attempt in range(max(1, attempts)):
        try:
            connection = psycopg.connect(key)
        except psycopg.OperationalError as exc:
            last_error = exc
            logger.warning("postgres connect attempt %s/%s failed: %s", attempt + 1, attempts, exc)
            if attempt + 1 < attempts:
                time.sleep(backoff_seconds * (2**attempt))
            continue
        cache[key] = connection
        return connection
    assert last_error is not None
    raise last_error


def _discard(key: str) -> None:
    connection = _connections().pop(key, None)
    if connection is None:
        return
    try:
        connection.close()
    except psycopg.Error:
        logger.debug("ignoring error while closing discarded postgres connection", exc_info=True)


def _unusable(connection: psycopg.Connection[Any]) -> bool:
    return bool(getattr(connection, "closed", False)) or bool(getattr(connection, "broken", False))
