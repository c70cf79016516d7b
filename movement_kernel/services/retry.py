"""
retry_on_conflict -- re-run an operation that lost an optimistic-lock race.

Retry contract:
    ``operation`` must perform its own fresh read, typically by opening a
    new ``session_scope()``.  Re-running it against the session that raised
    is useless: that session holds the stale row and must be rolled back.

Usage:
    def complete():
        with session_scope() as session:
            return MovementService(session, ...).complete(movement_id, actor_id=user)

    info = retry_on_conflict(complete, max_attempts=3)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from movement_kernel.exceptions import ConcurrentModificationError
from movement_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


def retry_on_conflict(
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> T:
    """Call ``operation`` until it succeeds or ``max_attempts`` conflicts occurred.

    Only ConcurrentModificationError is retried.  Anything else propagates
    on the first occurrence, including an IllegalTransitionError surfaced by
    the fresh read (e.g. the other writer already completed the movement).

    Raises:
        ValueError: ``max_attempts`` < 1.
        ConcurrentModificationError: the last attempt also conflicted.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 1
    while True:
        try:
            return operation()
        except ConcurrentModificationError as exc:
            if attempt >= max_attempts:
                logger.warning(
                    "conflict_retries_exhausted",
                    extra={
                        "entity_type": exc.entity_type,
                        "entity_id": exc.entity_id,
                        "attempts": attempt,
                    },
                )
                raise
            logger.info(
                "conflict_retry",
                extra={
                    "entity_type": exc.entity_type,
                    "entity_id": exc.entity_id,
                    "attempt": attempt,
                },
            )
            attempt += 1
