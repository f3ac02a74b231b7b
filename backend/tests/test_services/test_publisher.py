"""Tests for the PublishOrchestrator service."""

import asyncio

import pytest

from callflow.db import changeset_store, graph_store
from callflow.errors import IntegrityViolation, InvalidStateTransition, NotFoundError
from callflow.models import ChangeSetStatus, SegmentUpdate, TransitionCreate
from callflow.services.cleanup import DraftCleanup
from callflow.services.cloner import GraphCloner
from callflow.services.draft_resolver import DraftResolver
from callflow.services.ownership import StoreOwnershipResolver
from callflow.services.publisher import PublishOrchestrator


class FailingCloner(GraphCloner):
    """Copies the graph into the published scope, then fails."""

    async def clone(self, flow_id, source_scope, target_scope):
        id_map = await super().clone(flow_id, source_scope, target_scope)
        if target_scope is None:
            raise IntegrityViolation("injected failure")
        return id_map


async def _graph_signature(flow_id: str, scope: str | None):
    graph = await graph_store.get_graph(flow_id, scope)
    names = {s.segment_id: s.name for s in graph.segments}
    segments = {(s.name, s.type_id, s.order) for s in graph.segments}
    transitions = {
        (names[t.source_segment_id], t.result_name, names.get(t.target_segment_id))
        for t in graph.transitions
    }
    return segments, transitions


async def _archived(flow_id: str):
    return [
        c
        for c in await changeset_store.list_changesets(flow_id, include_archived=True)
        if c.status == ChangeSetStatus.ARCHIVED
    ]


@pytest.fixture
def drafts() -> DraftResolver:
    return DraftResolver(graph_store, StoreOwnershipResolver())


@pytest.fixture
def publisher() -> PublishOrchestrator:
    return PublishOrchestrator(graph_store)


class TestPublish:
    """Tests for publishing drafts."""

    @pytest.mark.asyncio
    async def test_example_scenario(self, drafts, publisher, published_graph):
        """Rename A to A2 and add a fail edge, then publish."""
        d1 = await drafts.get_or_create_draft("F1")
        a_draft = await graph_store.get_segment_by_name("F1", d1.scope, "A")
        b_draft = await graph_store.get_segment_by_name("F1", d1.scope, "B")
        await graph_store.update_segment(a_draft.segment_id, SegmentUpdate(name="A2"))
        await graph_store.create_transition(
            "F1",
            d1.scope,
            TransitionCreate(
                source_segment_id=a_draft.segment_id,
                result_name="fail",
                target_segment_id=b_draft.segment_id,
            ),
        )

        published = await publisher.publish(d1.change_set_id, "bob")

        assert published.status == ChangeSetStatus.PUBLISHED
        assert published.published_by == "bob"
        assert published.date_published is not None

        # Archived X1 holds the original graph under the original ids
        [x1] = await _archived("F1")
        assert x1.customer_id == "acme"
        assert x1.created_by is None
        assert x1.published_by is None
        assert x1.version_name.startswith("Archived at ")
        assert x1.description == f"Previous published version, replaced by: {d1.version_name}"
        assert await _graph_signature("F1", x1.scope) == (
            {("A", "menu", 1), ("B", "disconnect", 2)},
            {("A", "ok", "B")},
        )
        assert (await graph_store.get_segment(published_graph["A"])).scope == x1.change_set_id

        # Live holds the draft content with fresh ids
        assert await _graph_signature("F1", None) == (
            {("A2", "menu", 1), ("B", "disconnect", 2)},
            {("A2", "ok", "B"), ("A2", "fail", "B")},
        )
        live_ids = {s.segment_id for s in await graph_store.list_segments("F1", None)}
        assert not live_ids & set(published_graph.values())
        assert not live_ids & {a_draft.segment_id, b_draft.segment_id}

    @pytest.mark.asyncio
    async def test_draft_rows_kept(self, drafts, publisher, published_graph):
        draft = await drafts.create_draft("F1")
        before = await _graph_signature("F1", draft.scope)

        await publisher.publish(draft.change_set_id, "bob")

        assert await _graph_signature("F1", draft.scope) == before
        assert await _graph_signature("F1", None) == before

    @pytest.mark.asyncio
    async def test_no_orphans_after_publish(self, drafts, publisher, published_graph):
        draft = await drafts.create_draft("F1")

        await publisher.publish(draft.change_set_id, "bob")

        [archived] = await _archived("F1")
        for scope in (None, draft.scope, archived.scope):
            assert await graph_store.find_orphan_transitions("F1", scope) == []

    @pytest.mark.asyncio
    async def test_publish_validated(self, drafts, publisher, flow):
        draft = await drafts.create_draft("F1")
        await changeset_store.update_status(draft.change_set_id, ChangeSetStatus.VALIDATED)

        published = await publisher.publish(draft.change_set_id, "bob")

        assert published.status == ChangeSetStatus.PUBLISHED

    @pytest.mark.asyncio
    async def test_successive_publishes_keep_every_archive(self, drafts, publisher, published_graph):
        first = await drafts.create_draft("F1")
        await publisher.publish(first.change_set_id, "bob")
        second = await drafts.create_draft("F1")
        await publisher.publish(second.change_set_id, "carol")

        archived = await _archived("F1")
        assert len(archived) == 2
        for changeset in archived:
            assert await graph_store.count_scope("F1", changeset.scope) == (2, 1)

    @pytest.mark.asyncio
    async def test_archive_keeps_authorship_of_replaced_version(self, drafts, publisher, published_graph):
        first = await drafts.create_draft("F1", created_by="alice")
        first = await publisher.publish(first.change_set_id, "bob")
        second = await drafts.create_draft("F1", created_by="dave")

        await publisher.publish(second.change_set_id, "carol")

        archives = await _archived("F1")
        [x2] = [c for c in archives if c.description.endswith(second.version_name)]
        assert x2.created_by == "alice"
        assert x2.published_by == "bob"
        assert x2.date_published == first.date_published

    @pytest.mark.asyncio
    async def test_unknown_changeset(self, publisher):
        with pytest.raises(NotFoundError):
            await publisher.publish("missing", "bob")


class TestIllegalPublish:
    """Publishing from a final status is rejected and changes nothing."""

    @pytest.mark.asyncio
    async def test_publish_twice(self, drafts, publisher, published_graph):
        draft = await drafts.create_draft("F1")
        await publisher.publish(draft.change_set_id, "bob")
        live_before = await graph_store.get_graph("F1", None)

        with pytest.raises(InvalidStateTransition):
            await publisher.publish(draft.change_set_id, "bob")

        assert await graph_store.get_graph("F1", None) == live_before
        assert len(await _archived("F1")) == 1

    @pytest.mark.asyncio
    async def test_publish_discarded(self, drafts, publisher, published_graph):
        draft = await drafts.create_draft("F1")
        await DraftCleanup(graph_store).discard(draft.change_set_id)

        with pytest.raises(InvalidStateTransition):
            await publisher.publish(draft.change_set_id, "bob")

        assert await _archived("F1") == []

    @pytest.mark.asyncio
    async def test_publish_archived(self, drafts, publisher, published_graph):
        draft = await drafts.create_draft("F1")
        await publisher.publish(draft.change_set_id, "bob")
        [archived] = await _archived("F1")

        with pytest.raises(InvalidStateTransition):
            await publisher.publish(archived.change_set_id, "bob")

        assert (await changeset_store.get_changeset(archived.change_set_id)).status == ChangeSetStatus.ARCHIVED

    @pytest.mark.asyncio
    async def test_concurrent_publish_of_same_changeset(self, drafts, publisher, published_graph):
        draft = await drafts.create_draft("F1")

        results = await asyncio.gather(
            publisher.publish(draft.change_set_id, "bob"),
            publisher.publish(draft.change_set_id, "carol"),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], InvalidStateTransition)
        assert len(await _archived("F1")) == 1
        assert await graph_store.count_scope("F1", None) == (2, 1)


class TestReadsDuringPublish:
    """Readers outside the publish see the live graph before or after it, never in between."""

    @staticmethod
    async def _watch(done: asyncio.Event) -> tuple[set, set]:
        counts, graphs = set(), set()
        while True:
            counts.add(await graph_store.count_scope("F1", None))
            segments, transitions = await _graph_signature("F1", None)
            graphs.add((frozenset(segments), frozenset(transitions)))
            if done.is_set():
                return counts, graphs

    @staticmethod
    async def _publish(publisher: PublishOrchestrator, change_set_id: str, done: asyncio.Event):
        try:
            return await publisher.publish(change_set_id, "bob")
        finally:
            done.set()

    @staticmethod
    async def _renamed_draft(drafts: DraftResolver):
        draft = await drafts.create_draft("F1")
        segment = await graph_store.get_segment_by_name("F1", draft.scope, "A")
        await graph_store.update_segment(segment.segment_id, SegmentUpdate(name="A2"))
        return draft

    @pytest.mark.asyncio
    async def test_live_scope_never_partial(self, drafts, publisher, published_graph):
        draft = await self._renamed_draft(drafts)
        before = await _graph_signature("F1", None)
        done = asyncio.Event()

        (counts, graphs), published = await asyncio.gather(
            self._watch(done), self._publish(publisher, draft.change_set_id, done)
        )

        after = await _graph_signature("F1", None)
        assert published.status == ChangeSetStatus.PUBLISHED
        assert counts == {(2, 1)}
        assert graphs <= {
            (frozenset(before[0]), frozenset(before[1])),
            (frozenset(after[0]), frozenset(after[1])),
        }

    @pytest.mark.asyncio
    async def test_failed_publish_never_visible(self, drafts, published_graph):
        draft = await self._renamed_draft(drafts)
        before = await _graph_signature("F1", None)
        publisher = PublishOrchestrator(graph_store, FailingCloner(graph_store))
        done = asyncio.Event()

        (counts, graphs), error = await asyncio.gather(
            self._watch(done),
            self._publish(publisher, draft.change_set_id, done),
            return_exceptions=True,
        )

        assert isinstance(error, IntegrityViolation)
        assert counts == {(2, 1)}
        assert graphs == {(frozenset(before[0]), frozenset(before[1]))}


class TestPublishAtomicity:
    """A failure part-way through publishing rolls everything back."""

    @pytest.mark.asyncio
    async def test_injected_failure(self, drafts, published_graph):
        draft = await drafts.create_draft("F1")
        segment = await graph_store.get_segment_by_name("F1", draft.scope, "A")
        await graph_store.update_segment(segment.segment_id, SegmentUpdate(name="A2"))
        live_before = await graph_store.get_graph("F1", None)
        draft_before = await graph_store.get_graph("F1", draft.scope)
        publisher = PublishOrchestrator(graph_store, FailingCloner(graph_store))

        with pytest.raises(IntegrityViolation):
            await publisher.publish(draft.change_set_id, "bob")

        assert await graph_store.get_graph("F1", None) == live_before
        assert await graph_store.get_graph("F1", draft.scope) == draft_before
        assert await _archived("F1") == []
        assert (await changeset_store.get_changeset(draft.change_set_id)).status == ChangeSetStatus.DRAFT

        # The draft can still be published afterwards
        published = await PublishOrchestrator(graph_store).publish(draft.change_set_id, "bob")
        assert published.status == ChangeSetStatus.PUBLISHED
