"""Optimistic-concurrency retry for registry writes.

Provides write_with_retry() -- load a snapshot, compute a new one, and try
to install it with a compare-and-swap save.  A ConcurrentWriteConflict
means another invocation won the race: reload and recompute immediately.
Contention windows are short, so there is no sleeping between attempts.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import tenacity

from stacked.exceptions import ConcurrentWriteConflict

if TYPE_CHECKING:
    from stacked.models.registry import RegistryDocument
    from stacked.storage.repositories import RegistryRepository

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class WriteResult:
    """Result of a retry-guarded registry write.

    Attributes:
        document: The registry after the write (or the unchanged snapshot).
        attempts: Total attempts (1 = first try succeeded).
        written: False when the mutation produced no change and nothing was saved.
    """

    document: RegistryDocument
    attempts: int
    written: bool


def write_with_retry(
    store: RegistryRepository,
    mutate: Callable[[RegistryDocument], RegistryDocument],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> WriteResult:
    """Apply *mutate* to a fresh snapshot and save it, retrying on conflict.

    *mutate* must be a pure function of the snapshot it is given; it runs
    again on every retry.  Returning the snapshot unchanged skips the save.

    Raises:
        ConcurrentWriteConflict: If every attempt lost the race.
        Anything *mutate* raises (validation errors are never retried).
    """
    retryer = tenacity.Retrying(
        retry=tenacity.retry_if_exception_type(ConcurrentWriteConflict),
        wait=tenacity.wait_none(),
        stop=tenacity.stop_after_attempt(max_attempts),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    for attempt in retryer:
        with attempt:
            snapshot = store.load()
            updated = mutate(snapshot)
            number = attempt.retry_state.attempt_number
            if updated is snapshot:
                return WriteResult(document=snapshot, attempts=number, written=False)
            saved = store.save(updated, snapshot.version)
            return WriteResult(document=saved, attempts=number, written=True)
    raise AssertionError("unreachable: tenacity either returns or reraises")
