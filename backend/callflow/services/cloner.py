"""GraphCloner - Copies a flow's segment graph from one scope to another.

Cloning runs in two passes. The first pass copies every segment and records
an old -> new segment id map. Only once that map is complete does the second
pass copy transitions, rewriting source and target ids through the map. Graphs
may contain cycles and self-loops, so a transition can reference a segment
that is copied later in iteration order.

The cloner never commits: callers run it inside write_transaction().
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from callflow.errors import IntegrityViolation
from callflow.models import SegmentCreate, TransitionCreate

if TYPE_CHECKING:
    from callflow.db.graph_store import GraphStore

logger = logging.getLogger(__name__)


class GraphCloner:
    """Copies all segments and transitions of a scope into another scope."""

    def __init__(self, graph_store: GraphStore) -> None:
        self._store = graph_store

    async def clone(
        self, flow_id: str, source_scope: str | None, target_scope: str | None
    ) -> dict[str, str]:
        """Clone every segment and transition of source_scope into target_scope.

        Args:
            flow_id: The flow whose graph is copied
            source_scope: Scope to read from (None = published)
            target_scope: Scope to write to (None = published)

        Returns:
            Mapping of source segment id -> new segment id

        Raises:
            IntegrityViolation: A transition references a segment that is
                not part of the source scope
        """
        if source_scope == target_scope:
            raise ValueError("Source and target scope must differ")

        # Pass 1: segments
        id_map: dict[str, str] = {}
        for segment in await self._store.list_segments(flow_id, source_scope):
            copy = await self._store.create_segment(
                flow_id,
                target_scope,
                SegmentCreate(
                    name=segment.name,
                    type_id=segment.type_id,
                    display_name=segment.display_name,
                    order=segment.order,
                    config=segment.config,
                    hooks=segment.hooks,
                ),
            )
            id_map[segment.segment_id] = copy.segment_id

        # Pass 2: transitions
        transitions = await self._store.list_transitions(flow_id, source_scope)
        for transition in transitions:
            new_source = id_map.get(transition.source_segment_id)
            if new_source is None:
                raise IntegrityViolation(
                    f"Transition '{transition.result_name}' ({transition.transition_id}) "
                    f"has a source segment outside its scope",
                    transition_id=transition.transition_id,
                    segment_id=transition.source_segment_id,
                )

            new_target = None
            if transition.target_segment_id is not None:
                new_target = id_map.get(transition.target_segment_id)
                if new_target is None:
                    raise IntegrityViolation(
                        f"Transition '{transition.result_name}' ({transition.transition_id}) "
                        f"targets segment '{transition.target_segment_id}' outside its scope",
                        transition_id=transition.transition_id,
                        segment_id=transition.target_segment_id,
                    )

            await self._store.create_transition(
                flow_id,
                target_scope,
                TransitionCreate(
                    source_segment_id=new_source,
                    result_name=transition.result_name,
                    target_segment_id=new_target,
                    order=transition.order,
                    context_key=transition.context_key,
                    params=transition.params,
                ),
            )

        logger.debug(
            f"Cloned flow {flow_id} from scope {source_scope or 'published'} "
            f"to {target_scope or 'published'}: "
            f"{len(id_map)} segments, {len(transitions)} transitions"
        )
        return id_map
