"""ChangeSetService - Entry point to the draft/publish versioning engine.

Wires the draft resolver, publish orchestrator, cleanup and validator
together behind one object used by the API layer.
"""

from __future__ import annotations

import logging

from callflow.db import changeset_store
from callflow.db.database import write_transaction
from callflow.db.graph_store import GraphStore, graph_store as default_graph_store
from callflow.errors import FlowValidationError, NotFoundError
from callflow.models import ChangeSet, ChangeSetStatus
from callflow.services.cleanup import DraftCleanup
from callflow.services.cloner import GraphCloner
from callflow.services.draft_editor import DraftEditor
from callflow.services.draft_resolver import DraftResolver
from callflow.services.flow_validator import FlowValidator
from callflow.services.ownership import OwnershipResolver, StoreOwnershipResolver
from callflow.services.publisher import PublishOrchestrator
from callflow.services.state_machine import can_transition, ensure_transition

logger = logging.getLogger(__name__)


class ChangeSetService:
    """Draft, validate, publish and discard operations on ChangeSets."""

    def __init__(
        self,
        graph_store: GraphStore | None = None,
        ownership: OwnershipResolver | None = None,
        validator: FlowValidator | None = None,
        cloner: GraphCloner | None = None,
    ) -> None:
        self._store = graph_store or default_graph_store
        cloner = cloner or GraphCloner(self._store)
        self._validator = validator or FlowValidator(self._store)
        self._drafts = DraftResolver(
            self._store, ownership or StoreOwnershipResolver(), cloner
        )
        self._publisher = PublishOrchestrator(self._store, cloner)
        self._cleanup = DraftCleanup(self._store)
        self._editor = DraftEditor(self._store)

    @property
    def validator(self) -> FlowValidator:
        return self._validator

    @property
    def editor(self) -> DraftEditor:
        return self._editor

    async def create_draft(
        self,
        flow_id: str,
        created_by: str | None = None,
        version_name: str | None = None,
        description: str | None = None,
    ) -> ChangeSet:
        return await self._drafts.create_draft(
            flow_id, created_by=created_by, version_name=version_name, description=description
        )

    async def get_or_create_draft(
        self,
        flow_id: str,
        created_by: str | None = None,
        version_name: str | None = None,
        description: str | None = None,
    ) -> ChangeSet:
        return await self._drafts.get_or_create_draft(
            flow_id, created_by=created_by, version_name=version_name, description=description
        )

    async def _check_structure(self, changeset: ChangeSet) -> None:
        result = await self._validator.validate(changeset.flow_id, changeset.scope)
        if not result.is_valid:
            raise FlowValidationError(
                f"ChangeSet '{changeset.change_set_id}' failed validation "
                f"with {len(result.errors)} error(s)",
                result,
            )

    async def validate(self, change_set_id: str) -> ChangeSet:
        """Run structural validation and move a draft to validated.

        Raises:
            FlowValidationError: The draft graph has structural errors;
                the ChangeSet stays a draft
        """
        async with write_transaction():
            changeset = await self.get(change_set_id)
            ensure_transition(changeset.status, ChangeSetStatus.VALIDATED)
            await self._check_structure(changeset)

            validated = await changeset_store.update_status(
                change_set_id, ChangeSetStatus.VALIDATED
            )

        logger.info(f"Validated ChangeSet {change_set_id}")
        return validated

    async def publish(
        self, change_set_id: str, published_by: str, check_structure: bool = False
    ) -> ChangeSet:
        """Publish a ChangeSet.

        With check_structure, the graph is validated in the same transaction
        as the publish, so no edit can slip in between. A ChangeSet that may
        not be published is left to the publisher to reject.
        """
        if not check_structure:
            return await self._publisher.publish(change_set_id, published_by)

        async with write_transaction():
            changeset = await self.get(change_set_id)
            if can_transition(changeset.status, ChangeSetStatus.PUBLISHED):
                await self._check_structure(changeset)
            return await self._publisher.publish(change_set_id, published_by)

    async def discard(self, change_set_id: str) -> ChangeSet:
        return await self._cleanup.discard(change_set_id)

    async def list_by_flow(
        self, flow_id: str, include_archived: bool = False
    ) -> list[ChangeSet]:
        return await changeset_store.list_changesets(flow_id, include_archived)

    async def get(self, change_set_id: str) -> ChangeSet:
        changeset = await changeset_store.get_changeset(change_set_id)
        if changeset is None:
            raise NotFoundError(
                f"ChangeSet '{change_set_id}' not found", change_set_id=change_set_id
            )
        return changeset

    async def require_editable_scope(self, change_set_id: str) -> ChangeSet:
        return await self._editor.require_editable_scope(change_set_id)


_changeset_service: ChangeSetService | None = None


def get_changeset_service() -> ChangeSetService:
    """Get the global ChangeSet service instance."""
    global _changeset_service
    if _changeset_service is None:
        _changeset_service = ChangeSetService()
    return _changeset_service
