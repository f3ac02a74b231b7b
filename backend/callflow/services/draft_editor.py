"""DraftEditor - Graph edits scoped to an editable ChangeSet.

Each edit checks the ChangeSet status and writes the graph inside one write
transaction, so a concurrent publish or discard either lands before the
check (and the edit is rejected) or after the write.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from callflow.db import changeset_store
from callflow.db.database import write_transaction
from callflow.errors import InvalidStateTransition, NotFoundError
from callflow.models import (
    ChangeSet,
    Segment,
    SegmentCreate,
    SegmentUpdate,
    Transition,
    TransitionCreate,
    TransitionUpdate,
)
from callflow.services.state_machine import is_editable

if TYPE_CHECKING:
    from callflow.db.graph_store import GraphStore


class DraftEditor:
    """Segment and transition edits on draft or validated ChangeSets."""

    def __init__(self, graph_store: GraphStore) -> None:
        self._store = graph_store

    async def require_editable_scope(self, change_set_id: str) -> ChangeSet:
        """Return the ChangeSet if its graph may still be edited.

        Published, discarded and archived scopes are read-only.
        """
        changeset = await changeset_store.get_changeset(change_set_id)
        if changeset is None:
            raise NotFoundError(
                f"ChangeSet '{change_set_id}' not found", change_set_id=change_set_id
            )
        if not is_editable(changeset.status):
            raise InvalidStateTransition(
                changeset.status.value,
                "edit",
                f"ChangeSet '{change_set_id}' is {changeset.status.value} and cannot be edited",
            )
        return changeset

    async def _segment_in(self, changeset: ChangeSet, segment_id: str) -> Segment:
        segment = await self._store.get_segment(segment_id)
        if segment is None or segment.scope != changeset.scope:
            raise NotFoundError(
                f"Segment '{segment_id}' not found in ChangeSet '{changeset.change_set_id}'"
            )
        return segment

    async def _transition_in(self, changeset: ChangeSet, transition_id: str) -> Transition:
        transition = await self._store.get_transition(transition_id)
        if transition is None or transition.scope != changeset.scope:
            raise NotFoundError(
                f"Transition '{transition_id}' not found in ChangeSet "
                f"'{changeset.change_set_id}'"
            )
        return transition

    # ==================== Segments ====================

    async def create_segment(self, change_set_id: str, data: SegmentCreate) -> Segment:
        async with write_transaction():
            changeset = await self.require_editable_scope(change_set_id)
            return await self._store.create_segment(
                changeset.flow_id, changeset.scope, data
            )

    async def update_segment(
        self, change_set_id: str, segment_id: str, data: SegmentUpdate
    ) -> Segment:
        async with write_transaction():
            changeset = await self.require_editable_scope(change_set_id)
            await self._segment_in(changeset, segment_id)
            return await self._store.update_segment(segment_id, data)

    async def delete_segment(self, change_set_id: str, segment_id: str) -> None:
        """Delete a segment together with its transitions."""
        async with write_transaction():
            changeset = await self.require_editable_scope(change_set_id)
            await self._segment_in(changeset, segment_id)
            await self._store.delete_segment(segment_id)

    async def reorder_segments(self, change_set_id: str, orders: dict[str, int]) -> int:
        async with write_transaction():
            changeset = await self.require_editable_scope(change_set_id)
            return await self._store.update_segment_order(
                changeset.flow_id, changeset.scope, orders
            )

    # ==================== Transitions ====================

    async def create_transition(
        self, change_set_id: str, data: TransitionCreate
    ) -> Transition:
        async with write_transaction():
            changeset = await self.require_editable_scope(change_set_id)
            return await self._store.create_transition(
                changeset.flow_id, changeset.scope, data
            )

    async def update_transition(
        self, change_set_id: str, transition_id: str, data: TransitionUpdate
    ) -> Transition:
        async with write_transaction():
            changeset = await self.require_editable_scope(change_set_id)
            await self._transition_in(changeset, transition_id)
            return await self._store.update_transition(transition_id, data)

    async def delete_transition(self, change_set_id: str, transition_id: str) -> None:
        async with write_transaction():
            changeset = await self.require_editable_scope(change_set_id)
            await self._transition_in(changeset, transition_id)
            await self._store.delete_transition(transition_id)
