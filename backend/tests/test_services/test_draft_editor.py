"""Tests for the DraftEditor service."""

import asyncio

import pytest

from callflow.db import changeset_store, graph_store
from callflow.db.graph_store import GraphStore
from callflow.errors import ConflictError, InvalidStateTransition, NotFoundError
from callflow.models import (
    ChangeSetStatus,
    SegmentCreate,
    SegmentUpdate,
    TransitionCreate,
    TransitionUpdate,
)
from callflow.services.cleanup import DraftCleanup
from callflow.services.draft_editor import DraftEditor
from callflow.services.draft_resolver import DraftResolver
from callflow.services.ownership import StoreOwnershipResolver
from callflow.services.publisher import PublishOrchestrator


class DiscardBeforeWriteStore(GraphStore):
    """Starts a discard of the ChangeSet just before each segment insert."""

    def __init__(self) -> None:
        self.discards: list[asyncio.Task] = []

    async def create_segment(self, flow_id, scope, segment):
        self.discards.append(asyncio.create_task(DraftCleanup(graph_store).discard(scope)))
        await asyncio.sleep(0)
        return await super().create_segment(flow_id, scope, segment)


@pytest.fixture
def editor() -> DraftEditor:
    return DraftEditor(graph_store)


@pytest.fixture
async def draft(published_graph):
    return await DraftResolver(graph_store, StoreOwnershipResolver()).create_draft("F1")


class TestEdits:
    """Tests for edits on an editable draft."""

    @pytest.mark.asyncio
    async def test_segment_edits(self, editor, draft):
        created = await editor.create_segment(
            draft.change_set_id, SegmentCreate(name="C", type_id="play", order=3)
        )
        assert created.scope == draft.scope

        updated = await editor.update_segment(
            draft.change_set_id, created.segment_id, SegmentUpdate(display_name="Goodbye")
        )
        assert updated.display_name == "Goodbye"

        assert await editor.reorder_segments(draft.change_set_id, {created.segment_id: 0}) == 1
        names = [s.name for s in await graph_store.list_segments("F1", draft.scope)]
        assert names[0] == "C"

        await editor.delete_segment(draft.change_set_id, created.segment_id)
        assert await graph_store.get_segment(created.segment_id) is None
        assert await graph_store.count_scope("F1", None) == (2, 1)

    @pytest.mark.asyncio
    async def test_transition_edits(self, editor, draft):
        a = await graph_store.get_segment_by_name("F1", draft.scope, "A")
        b = await graph_store.get_segment_by_name("F1", draft.scope, "B")

        created = await editor.create_transition(
            draft.change_set_id,
            TransitionCreate(
                source_segment_id=a.segment_id, result_name="fail", target_segment_id=b.segment_id
            ),
        )
        updated = await editor.update_transition(
            draft.change_set_id, created.transition_id, TransitionUpdate(target_segment_id=None)
        )
        assert updated.is_terminal

        await editor.delete_transition(draft.change_set_id, created.transition_id)
        assert await graph_store.count_scope("F1", draft.scope) == (2, 1)

    @pytest.mark.asyncio
    async def test_validated_is_editable(self, editor, draft):
        await changeset_store.update_status(draft.change_set_id, ChangeSetStatus.VALIDATED)

        created = await editor.create_segment(
            draft.change_set_id, SegmentCreate(name="C", type_id="play")
        )

        assert created.scope == draft.scope

    @pytest.mark.asyncio
    async def test_duplicate_name(self, editor, draft):
        with pytest.raises(ConflictError):
            await editor.create_segment(draft.change_set_id, SegmentCreate(name="A", type_id="menu"))


class TestRejectedEdits:
    """Edits outside an editable draft change nothing."""

    @pytest.mark.asyncio
    async def test_unknown_changeset(self, editor, flow):
        with pytest.raises(NotFoundError):
            await editor.create_segment("missing", SegmentCreate(name="C", type_id="play"))

    @pytest.mark.asyncio
    async def test_after_discard(self, editor, draft):
        await DraftCleanup(graph_store).discard(draft.change_set_id)

        with pytest.raises(InvalidStateTransition):
            await editor.create_segment(draft.change_set_id, SegmentCreate(name="C", type_id="play"))

        assert await graph_store.count_scope("F1", draft.scope) == (0, 0)

    @pytest.mark.asyncio
    async def test_after_publish(self, editor, draft):
        await PublishOrchestrator(graph_store).publish(draft.change_set_id, "bob")
        a = await graph_store.get_segment_by_name("F1", draft.scope, "A")

        with pytest.raises(InvalidStateTransition):
            await editor.update_segment(draft.change_set_id, a.segment_id, SegmentUpdate(name="A2"))

        assert (await graph_store.get_segment(a.segment_id)).name == "A"

    @pytest.mark.asyncio
    async def test_segment_of_another_scope(self, editor, draft, published_graph):
        with pytest.raises(NotFoundError):
            await editor.update_segment(
                draft.change_set_id, published_graph["A"], SegmentUpdate(name="A2")
            )
        with pytest.raises(NotFoundError):
            await editor.delete_segment(draft.change_set_id, published_graph["B"])

        assert await graph_store.count_scope("F1", None) == (2, 1)
        assert (await graph_store.get_segment(published_graph["A"])).name == "A"

    @pytest.mark.asyncio
    async def test_transition_of_another_scope(self, editor, draft):
        [live] = await graph_store.list_transitions("F1", None)

        with pytest.raises(NotFoundError):
            await editor.delete_transition(draft.change_set_id, live.transition_id)

        assert await graph_store.get_transition(live.transition_id) is not None


class TestConcurrentDiscard:
    """A discard started during an edit runs after the edit, never between check and write."""

    @pytest.mark.asyncio
    async def test_discard_waits_for_edit(self, draft):
        store = DiscardBeforeWriteStore()

        created = await DraftEditor(store).create_segment(
            draft.change_set_id, SegmentCreate(name="C", type_id="play")
        )
        [discard] = store.discards
        await discard

        assert created.scope == draft.scope
        assert await graph_store.get_segment(created.segment_id) is None
        assert await graph_store.count_scope("F1", draft.scope) == (0, 0)
        assert (await changeset_store.get_changeset(draft.change_set_id)).status == ChangeSetStatus.DISCARDED
