"""Discarding of draft ChangeSets."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from callflow.db import changeset_store
from callflow.db.database import write_transaction
from callflow.errors import InvalidStateTransition, NotFoundError
from callflow.models import ChangeSet, ChangeSetStatus
from callflow.services.state_machine import ensure_transition

if TYPE_CHECKING:
    from callflow.db.graph_store import GraphStore

logger = logging.getLogger(__name__)


class DraftCleanup:
    """Hard-deletes a draft's graph and marks the ChangeSet discarded."""

    def __init__(self, graph_store: GraphStore) -> None:
        self._store = graph_store

    async def discard(self, change_set_id: str) -> ChangeSet:
        """Discard a draft or validated ChangeSet. Irreversible."""
        try:
            async with write_transaction():
                changeset = await changeset_store.get_changeset(change_set_id)
                if changeset is None:
                    raise NotFoundError(
                        f"ChangeSet '{change_set_id}' not found",
                        change_set_id=change_set_id,
                    )
                ensure_transition(changeset.status, ChangeSetStatus.DISCARDED)

                segments_deleted, transitions_deleted = await self._store.delete_scope(
                    changeset.flow_id, changeset.scope
                )
                discarded = await changeset_store.update_status(
                    change_set_id, ChangeSetStatus.DISCARDED, is_active=False
                )
        except InvalidStateTransition as e:
            logger.warning(f"Rejected discard of ChangeSet {change_set_id}: {e.message}")
            raise

        logger.info(
            f"Discarded ChangeSet {change_set_id}: deleted {segments_deleted} segments "
            f"and {transitions_deleted} transitions"
        )
        return discarded
