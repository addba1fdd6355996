"""Snapshot-then-decide with optimistic retry.

Every mutating operation reads one consistent snapshot, computes its whole
decision in memory, and commits it as a single change set guarded by the
snapshot's version. On a version conflict the decision is thrown away and
recomputed from a fresh snapshot; a partial decision is never applied.
"""
import logging
from typing import Callable, Optional, TypeVar

import config
from models.domain_models import ChangeSet, Snapshot
from stores import GameStore, VersionConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

Decision = Callable[[Snapshot], tuple[T, ChangeSet]]


async def commit_with_retry(store: GameStore, decide: Decision, *, attempts: Optional[int] = None, label: str = "operation") -> T:
    """Run `decide` against fresh snapshots until its change set commits.

    `decide` must be pure with respect to the store: it may raise a fatal
    GameRuleError (nothing is written) or return `(result, changes)`.

    Raises:
        VersionConflict: if every attempt lost the race.
    """
    attempts = attempts or config.COMMIT_ATTEMPTS
    for attempt in range(1, attempts + 1):
        snapshot = await store.snapshot()
        result, changes = decide(snapshot)
        if changes.is_empty():
            return result
        try:
            await store.commit(changes, expected_version=snapshot.version)
            return result
        except VersionConflict:
            if attempt == attempts:
                logger.error(f"{label}: giving up after {attempts} version conflicts")
                raise
            logger.warning(f"{label}: version conflict on attempt {attempt}/{attempts}, recomputing")
    raise VersionConflict(f"{label}: no commit attempts were made")
