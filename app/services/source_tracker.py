"""Lifecycle transitions for Source records."""

from typing import Dict, FrozenSet
from uuid import UUID

from app.config.logger import app_logger
from app.models.source import Source, SourceStatus
from app.services.errors import InvalidSourceTransition, PersistenceError
from app.services.result_store import ResultStore

# pending -> processing -> completed | failed. A source that never started
# may still be failed directly.
ALLOWED_TRANSITIONS: Dict[SourceStatus, FrozenSet[SourceStatus]] = {
    SourceStatus.pending: frozenset({SourceStatus.processing, SourceStatus.failed}),
    SourceStatus.processing: frozenset({SourceStatus.completed, SourceStatus.failed}),
    SourceStatus.completed: frozenset(),
    SourceStatus.failed: frozenset(),
}


class SourceStateTracker:
    """Moves one Source through its lifecycle against the result store.

    Repeating the transition that produced the current status is a no-op
    (no write). Any other backwards or sideways move, such as ``fail`` after
    ``complete``, raises InvalidSourceTransition.
    """

    def __init__(self, store: ResultStore):
        self.store = store

    async def start(self, source_id: UUID) -> Source:
        return await self._transition(source_id, SourceStatus.processing)

    async def complete(self, source_id: UUID) -> Source:
        return await self._transition(source_id, SourceStatus.completed)

    async def fail(self, source_id: UUID) -> Source:
        return await self._transition(source_id, SourceStatus.failed)

    async def _transition(self, source_id: UUID, target: SourceStatus) -> Source:
        source = await self.store.get_source(source_id)
        if source is None:
            raise PersistenceError(f"Source {source_id} not found")

        current = SourceStatus(source.status)
        if current == target:
            return source
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidSourceTransition(str(source_id), current.value, target.value)

        updated = await self.store.update_source_status(source_id, target)
        app_logger.info(f"Source {source_id}: {current.value} -> {target.value}")
        return updated
