# Overview: Retry, row locking and duplicate-submission guards shared by services.

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager

from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)

from ..extensions import db

logger = logging.getLogger(__name__)

# Connectivity-class failures worth retrying. Integrity/programming errors are terminal.
TRANSIENT_ERRORS = (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)


class SubmissionInProgressError(RuntimeError):
    """Raised when the same caller already has this operation in flight."""


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(exc, TRANSIENT_ERRORS)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.5, sleep=time.sleep):
    """
    Execute a read operation with retry on transient database failures.

    Backoff is linear: backoff_base * attempt_number between attempts
    (0.5s, 1.0s, ... with the defaults). Non-transient errors propagate
    immediately. Results are returned as-is, including None, so logical
    "not found" outcomes never consume a retry.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except SQLAlchemyError as exc:
            if not is_transient(exc):
                raise
            db.session.rollback()
            if attempt >= attempts:
                raise
            delay = backoff_base * attempt
            logger.warning(
                "Transient database error on attempt %s/%s, retrying in %.2fs: %s",
                attempt, attempts, delay, exc,
            )
            sleep(delay)


class SingleFlight:
    """
    At most one in-progress call per (caller, operation) within this process.

    Absorbs duplicate submissions from repeated user action. It is not a
    cross-process concurrency control.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight: set[tuple[str, str]] = set()

    @contextmanager
    def claim(self, caller_key, operation: str):
        key = (str(caller_key), operation)
        with self._lock:
            if key in self._in_flight:
                raise SubmissionInProgressError(f"{operation} already in progress")
            self._in_flight.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(key)

    def is_in_flight(self, caller_key, operation: str) -> bool:
        with self._lock:
            return (str(caller_key), operation) in self._in_flight


submission_guard = SingleFlight()


def pad_to_minimum(started_at: float, minimum_seconds: float, *, clock=time.monotonic, sleep=time.sleep) -> float:
    """Sleep until at least minimum_seconds have passed since started_at. Returns the pad slept."""
    remaining = minimum_seconds - (clock() - started_at)
    if remaining > 0:
        sleep(remaining)
        return remaining
    return 0.0
