"""Tests for ChangeSet and flow persistence."""

import pytest

from callflow.db import changeset_store, flow_store
from callflow.errors import ConflictError
from callflow.models import ChangeSetStatus, FlowCreate


class TestFlowStore:
    """Tests for the flow registry."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, flow):
        fetched = await flow_store.get_flow("F1")

        assert fetched == flow
        assert fetched.init_segment == "A"

    @pytest.mark.asyncio
    async def test_duplicate(self, flow):
        with pytest.raises(ConflictError):
            await flow_store.create_flow(FlowCreate(flow_id="F1"))

    @pytest.mark.asyncio
    async def test_list(self, flow):
        await flow_store.create_flow(FlowCreate(flow_id="F0"))

        flows, total = await flow_store.list_flows()

        assert total == 2
        assert [f.flow_id for f in flows] == ["F0", "F1"]


class TestChangeSetStore:
    """Tests for ChangeSet records."""

    @pytest.mark.asyncio
    async def test_create_defaults_to_draft(self, flow):
        changeset = await changeset_store.create_changeset("F1", created_by="alice")

        fetched = await changeset_store.get_changeset(changeset.change_set_id)
        assert fetched.status == ChangeSetStatus.DRAFT
        assert fetched.is_active
        assert fetched.created_by == "alice"
        assert fetched.scope == changeset.change_set_id

    @pytest.mark.asyncio
    async def test_find_active_draft_ignores_other_statuses(self, flow):
        await changeset_store.create_changeset("F1", ChangeSetStatus.ARCHIVED)
        assert await changeset_store.find_active_draft("F1") is None

        draft = await changeset_store.create_changeset("F1")
        assert (await changeset_store.find_active_draft("F1")).change_set_id == draft.change_set_id

    @pytest.mark.asyncio
    async def test_list_excludes_archived(self, flow):
        await changeset_store.create_changeset("F1", ChangeSetStatus.ARCHIVED)
        draft = await changeset_store.create_changeset("F1")

        assert [c.change_set_id for c in await changeset_store.list_changesets("F1")] == [draft.change_set_id]
        assert len(await changeset_store.list_changesets("F1", include_archived=True)) == 2

    @pytest.mark.asyncio
    async def test_update_status(self, flow):
        draft = await changeset_store.create_changeset("F1")

        published = await changeset_store.update_status(
            draft.change_set_id,
            ChangeSetStatus.PUBLISHED,
            published_by="bob",
            mark_published=True,
        )

        assert published.status == ChangeSetStatus.PUBLISHED
        assert published.published_by == "bob"
        assert published.date_published is not None

    @pytest.mark.asyncio
    async def test_update_missing(self, flow):
        assert await changeset_store.update_status("missing", ChangeSetStatus.DISCARDED) is None
