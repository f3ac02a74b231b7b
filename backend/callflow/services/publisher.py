"""PublishOrchestrator - Promotes a draft scope to the published graph.

Publishing runs as a single transaction:
1. create an archived ChangeSet for the outgoing published graph
2. re-tag every published segment and transition to the archived scope
3. clone the draft scope into the published scope
4. mark the draft ChangeSet as published

Any failure rolls back all four steps. The draft's own rows are left in
place, so its scope stays readable as the record of what was published.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from callflow.db import changeset_store
from callflow.db.database import write_transaction
from callflow.errors import InvalidStateTransition, NotFoundError, VersioningError
from callflow.models import ChangeSet, ChangeSetStatus
from callflow.services.cloner import GraphCloner
from callflow.services.state_machine import ensure_transition

if TYPE_CHECKING:
    from callflow.db.graph_store import GraphStore

logger = logging.getLogger(__name__)


class PublishOrchestrator:
    """Atomically swaps a flow's published graph for a draft's graph."""

    def __init__(self, graph_store: GraphStore, cloner: GraphCloner | None = None) -> None:
        self._store = graph_store
        self._cloner = cloner or GraphCloner(graph_store)

    async def publish(self, change_set_id: str, published_by: str) -> ChangeSet:
        """Publish a draft or validated ChangeSet.

        Args:
            change_set_id: The ChangeSet whose scope becomes the published graph
            published_by: Acting user, recorded on the published record

        Returns:
            The ChangeSet in its published state

        Raises:
            NotFoundError: No such ChangeSet
            InvalidStateTransition: The ChangeSet is not draft or validated
            IntegrityViolation: The draft graph has unresolvable references
        """
        try:
            async with write_transaction():
                # Status is read inside the transaction so concurrent publishes
                # of the same ChangeSet cannot both pass the check
                changeset = await changeset_store.get_changeset(change_set_id)
                if changeset is None:
                    raise NotFoundError(
                        f"ChangeSet '{change_set_id}' not found",
                        change_set_id=change_set_id,
                    )
                ensure_transition(changeset.status, ChangeSetStatus.PUBLISHED)

                flow_id = changeset.flow_id
                # Archive carries the authorship of the outgoing published graph
                previous = await changeset_store.find_latest_published(flow_id)
                archived = await changeset_store.create_changeset(
                    flow_id,
                    ChangeSetStatus.ARCHIVED,
                    customer_id=changeset.customer_id,
                    project_id=changeset.project_id,
                    version_name=f"Archived at {datetime.now(timezone.utc).isoformat()}",
                    description=(
                        "Previous published version, replaced by: "
                        f"{changeset.version_name or changeset.change_set_id}"
                    ),
                    created_by=previous.created_by if previous else None,
                    published_by=previous.published_by if previous else None,
                    date_published=previous.date_published if previous else None,
                )

                segments_archived, transitions_archived = await self._store.retag_scope(
                    flow_id, None, archived.change_set_id
                )

                await self._cloner.clone(flow_id, changeset.scope, None)

                published = await changeset_store.update_status(
                    change_set_id,
                    ChangeSetStatus.PUBLISHED,
                    published_by=published_by,
                    mark_published=True,
                )
        except InvalidStateTransition as e:
            logger.warning(f"Rejected publish of ChangeSet {change_set_id}: {e.message}")
            raise
        except VersioningError as e:
            if e.recoverable:
                raise
            logger.exception(f"Publish of ChangeSet {change_set_id} failed, rolled back")
            raise

        logger.info(
            f"Published ChangeSet {change_set_id} for flow {flow_id} by {published_by}; "
            f"archived previous graph as {archived.change_set_id} "
            f"({segments_archived} segments, {transitions_archived} transitions)"
        )
        return published
