"""DraftResolver - Finds or creates the editable draft of a flow."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from callflow.db import changeset_store
from callflow.db.database import write_transaction
from callflow.models import ChangeSet, ChangeSetStatus
from callflow.services.cloner import GraphCloner

if TYPE_CHECKING:
    from callflow.db.graph_store import GraphStore
    from callflow.services.ownership import OwnershipResolver

logger = logging.getLogger(__name__)


class DraftResolver:
    """Creates draft ChangeSets seeded with a copy of the live graph."""

    def __init__(
        self,
        graph_store: GraphStore,
        ownership: OwnershipResolver,
        cloner: GraphCloner | None = None,
    ) -> None:
        self._store = graph_store
        self._ownership = ownership
        self._cloner = cloner or GraphCloner(graph_store)

    async def create_draft(
        self,
        flow_id: str,
        created_by: str | None = None,
        version_name: str | None = None,
        description: str | None = None,
    ) -> ChangeSet:
        """Create a new draft and clone the published graph into its scope.

        Several drafts of one flow may exist at the same time.

        Raises:
            NotFoundError: The flow is not registered
            MissingOwnership: The flow has no owning customer/project
        """
        async with write_transaction():
            ownership = await self._ownership.resolve(flow_id)
            today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
            draft = await changeset_store.create_changeset(
                flow_id,
                ChangeSetStatus.DRAFT,
                customer_id=ownership.customer_id,
                project_id=ownership.project_id,
                version_name=version_name or f"Draft {today}",
                description=description or f"Draft changes for {flow_id}",
                created_by=created_by,
            )
            id_map = await self._cloner.clone(flow_id, None, draft.scope)

        logger.info(
            f"Created draft {draft.change_set_id} for flow {flow_id} "
            f"({len(id_map)} segments cloned)"
        )
        return draft

    async def get_or_create_draft(
        self,
        flow_id: str,
        created_by: str | None = None,
        version_name: str | None = None,
        description: str | None = None,
    ) -> ChangeSet:
        """Return the newest active draft of a flow, creating one if none exists.

        An existing draft is returned as-is; its scope is never re-cloned.
        """
        async with write_transaction():
            existing = await changeset_store.find_active_draft(flow_id)
            if existing is not None:
                return existing
            return await self.create_draft(
                flow_id,
                created_by=created_by,
                version_name=version_name,
                description=description,
            )
