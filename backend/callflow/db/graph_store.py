"""GraphStore - Storage abstraction layer for scoped segment graphs.

Every segment and transition carries a scope: None for the live (published)
graph, or a ChangeSet id for a draft or historical snapshot. All lookups
use ``scope IS ?`` so the same predicate addresses both kinds of scope.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any

import aiosqlite
from pydantic import BaseModel

from callflow.db.database import get_db, read_snapshot, write_transaction
from callflow.errors import ConflictError, NotFoundError
from callflow.models import (
    ConfigItem,
    FlowGraph,
    Segment,
    SegmentCreate,
    SegmentUpdate,
    Transition,
    TransitionCreate,
    TransitionUpdate,
)


def _generate_id() -> str:
    """Generate a unique ID."""
    return str(uuid.uuid4())


def _now() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def _scope_label(scope: str | None) -> str:
    return scope or "published"


# Columns an update may set back to NULL
_NULLABLE_SEGMENT_FIELDS = frozenset({"display_name", "hooks"})
_NULLABLE_TRANSITION_FIELDS = frozenset({"target_segment_id", "context_key", "params"})


def _explicit_changes(update: BaseModel, nullable: frozenset[str]) -> dict[str, Any]:
    """Fields set on an update request, minus None values for required fields."""
    changes = {field: getattr(update, field) for field in update.model_fields_set}
    return {
        field: value
        for field, value in changes.items()
        if value is not None or field in nullable
    }


def _row_to_segment(row: aiosqlite.Row) -> Segment:
    hooks = row["hooks_json"]
    return Segment(
        segment_id=row["segment_id"],
        flow_id=row["flow_id"],
        name=row["name"],
        type_id=row["type_id"],
        display_name=row["display_name"],
        scope=row["scope"],
        order=row["segment_order"],
        config=[ConfigItem(**item) for item in json.loads(row["config_json"])],
        hooks=json.loads(hooks) if hooks else None,
        date_created=row["date_created"],
        date_updated=row["date_updated"],
    )


def _row_to_transition(row: aiosqlite.Row) -> Transition:
    params = row["params_json"]
    return Transition(
        transition_id=row["transition_id"],
        flow_id=row["flow_id"],
        source_segment_id=row["source_segment_id"],
        result_name=row["result_name"],
        target_segment_id=row["target_segment_id"],
        scope=row["scope"],
        order=row["transition_order"],
        context_key=row["context_key"],
        params=json.loads(params) if params else None,
        date_created=row["date_created"],
    )


class GraphStore:
    """Storage for segment/transition graphs, partitioned by scope."""

    # ==================== Segments ====================

    async def create_segment(
        self, flow_id: str, scope: str | None, segment: SegmentCreate
    ) -> Segment:
        """Create a new segment in the given scope of a flow."""
        segment_id = _generate_id()
        now = _now()
        config = [item.model_dump() for item in segment.config]

        async with write_transaction() as db:
            existing = await self.get_segment_by_name(flow_id, scope, segment.name)
            if existing is not None:
                raise ConflictError(
                    f"Segment '{segment.name}' already exists for flow '{flow_id}' "
                    f"in scope '{_scope_label(scope)}'"
                )

            await db.execute(
                """
                INSERT INTO segments (
                    segment_id, flow_id, name, type_id, display_name, scope,
                    segment_order, config_json, hooks_json, date_created, date_updated
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    segment_id,
                    flow_id,
                    segment.name,
                    segment.type_id,
                    segment.display_name,
                    scope,
                    segment.order,
                    json.dumps(config),
                    json.dumps(segment.hooks) if segment.hooks is not None else None,
                    now,
                    now,
                ),
            )

        return Segment(
            segment_id=segment_id,
            flow_id=flow_id,
            name=segment.name,
            type_id=segment.type_id,
            display_name=segment.display_name,
            scope=scope,
            order=segment.order,
            config=segment.config,
            hooks=segment.hooks,
            date_created=now,
            date_updated=now,
        )

    async def get_segment(self, segment_id: str) -> Segment | None:
        """Get a segment by ID."""
        db = await get_db()
        cursor = await db.execute(
            "SELECT * FROM segments WHERE segment_id = ?",
            (segment_id,),
        )
        row = await cursor.fetchone()

        if row is None:
            return None

        return _row_to_segment(row)

    async def get_segment_by_name(
        self, flow_id: str, scope: str | None, name: str
    ) -> Segment | None:
        """Get a segment by its name within a flow scope."""
        db = await get_db()
        cursor = await db.execute(
            "SELECT * FROM segments WHERE flow_id = ? AND scope IS ? AND name = ?",
            (flow_id, scope, name),
        )
        row = await cursor.fetchone()

        if row is None:
            return None

        return _row_to_segment(row)

    async def update_segment(
        self, segment_id: str, update: SegmentUpdate
    ) -> Segment | None:
        """Update a segment with the fields explicitly set on the request.

        An explicit None clears display_name or hooks; it is ignored for
        the required fields.
        """
        async with write_transaction() as db:
            current = await self.get_segment(segment_id)
            if current is None:
                return None

            changes = _explicit_changes(update, _NULLABLE_SEGMENT_FIELDS)

            new_name = changes.get("name")
            if new_name is not None and new_name != current.name:
                clash = await self.get_segment_by_name(
                    current.flow_id, current.scope, new_name
                )
                if clash is not None:
                    raise ConflictError(
                        f"Segment '{new_name}' already exists for flow "
                        f"'{current.flow_id}' in scope '{_scope_label(current.scope)}'"
                    )

            updated = current.model_copy(update={**changes, "date_updated": _now()})

            await db.execute(
                """
                UPDATE segments
                SET name = ?, type_id = ?, display_name = ?, segment_order = ?,
                    config_json = ?, hooks_json = ?, date_updated = ?
                WHERE segment_id = ?
                """,
                (
                    updated.name,
                    updated.type_id,
                    updated.display_name,
                    updated.order,
                    json.dumps([item.model_dump() for item in updated.config]),
                    json.dumps(updated.hooks) if updated.hooks is not None else None,
                    updated.date_updated,
                    segment_id,
                ),
            )

        return updated

    async def delete_segment(self, segment_id: str) -> bool:
        """Delete a segment together with its outgoing and incoming transitions."""
        async with write_transaction() as db:
            await db.execute(
                """
                DELETE FROM transitions
                WHERE source_segment_id = ? OR target_segment_id = ?
                """,
                (segment_id, segment_id),
            )
            cursor = await db.execute(
                "DELETE FROM segments WHERE segment_id = ?",
                (segment_id,),
            )
            return cursor.rowcount > 0

    async def list_segments(self, flow_id: str, scope: str | None) -> list[Segment]:
        """List all segments of a flow scope in display order."""
        db = await get_db()
        cursor = await db.execute(
            """
            SELECT * FROM segments
            WHERE flow_id = ? AND scope IS ?
            ORDER BY segment_order ASC, name ASC
            """,
            (flow_id, scope),
        )
        rows = await cursor.fetchall()
        return [_row_to_segment(row) for row in rows]

    async def update_segment_order(
        self, flow_id: str, scope: str | None, orders: dict[str, int]
    ) -> int:
        """Set the order attribute of several segments at once.

        Segment IDs outside the given flow scope are ignored. Returns the
        number of segments updated.
        """
        now = _now()
        updated = 0
        async with write_transaction() as db:
            for segment_id, order in orders.items():
                cursor = await db.execute(
                    """
                    UPDATE segments SET segment_order = ?, date_updated = ?
                    WHERE segment_id = ? AND flow_id = ? AND scope IS ?
                    """,
                    (order, now, segment_id, flow_id, scope),
                )
                updated += cursor.rowcount
        return updated

    # ==================== Transitions ====================

    async def _require_segment_in_scope(
        self, flow_id: str, scope: str | None, segment_id: str, role: str
    ) -> Segment:
        segment = await self.get_segment(segment_id)
        if segment is None or segment.flow_id != flow_id or segment.scope != scope:
            raise NotFoundError(
                f"{role} segment '{segment_id}' not found in scope "
                f"'{_scope_label(scope)}' of flow '{flow_id}'"
            )
        return segment

    async def _result_name_taken(
        self, source_segment_id: str, result_name: str, exclude_id: str | None = None
    ) -> bool:
        db = await get_db()
        cursor = await db.execute(
            """
            SELECT transition_id FROM transitions
            WHERE source_segment_id = ? AND result_name = ?
            """,
            (source_segment_id, result_name),
        )
        rows = await cursor.fetchall()
        return any(row["transition_id"] != exclude_id for row in rows)

    async def create_transition(
        self, flow_id: str, scope: str | None, transition: TransitionCreate
    ) -> Transition:
        """Create a transition between two segments of the same scope."""
        transition_id = _generate_id()
        now = _now()

        async with write_transaction() as db:
            await self._require_segment_in_scope(
                flow_id, scope, transition.source_segment_id, "Source"
            )
            if transition.target_segment_id is not None:
                await self._require_segment_in_scope(
                    flow_id, scope, transition.target_segment_id, "Target"
                )

            if await self._result_name_taken(
                transition.source_segment_id, transition.result_name
            ):
                raise ConflictError(
                    f"Transition '{transition.result_name}' already exists for this segment"
                )

            await db.execute(
                """
                INSERT INTO transitions (
                    transition_id, flow_id, source_segment_id, result_name,
                    target_segment_id, scope, transition_order, context_key,
                    params_json, date_created
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    transition_id,
                    flow_id,
                    transition.source_segment_id,
                    transition.result_name,
                    transition.target_segment_id,
                    scope,
                    transition.order,
                    transition.context_key,
                    json.dumps(transition.params) if transition.params is not None else None,
                    now,
                ),
            )

        return Transition(
            transition_id=transition_id,
            flow_id=flow_id,
            source_segment_id=transition.source_segment_id,
            result_name=transition.result_name,
            target_segment_id=transition.target_segment_id,
            scope=scope,
            order=transition.order,
            context_key=transition.context_key,
            params=transition.params,
            date_created=now,
        )

    async def get_transition(self, transition_id: str) -> Transition | None:
        """Get a transition by ID."""
        db = await get_db()
        cursor = await db.execute(
            "SELECT * FROM transitions WHERE transition_id = ?",
            (transition_id,),
        )
        row = await cursor.fetchone()

        if row is None:
            return None

        return _row_to_transition(row)

    async def update_transition(
        self, transition_id: str, update: TransitionUpdate
    ) -> Transition | None:
        """Update a transition with the fields explicitly set on the request.

        An explicit None target makes the transition terminal; an explicit
        None also clears context_key or params.
        """
        async with write_transaction() as db:
            current = await self.get_transition(transition_id)
            if current is None:
                return None

            changes = _explicit_changes(update, _NULLABLE_TRANSITION_FIELDS)

            new_result = changes.get("result_name")
            if new_result is not None and new_result != current.result_name:
                if await self._result_name_taken(
                    current.source_segment_id, new_result, exclude_id=transition_id
                ):
                    raise ConflictError(
                        f"Transition '{new_result}' already exists for this segment"
                    )

            new_target = changes.get("target_segment_id")
            if new_target is not None:
                await self._require_segment_in_scope(
                    current.flow_id, current.scope, new_target, "Target"
                )

            updated = current.model_copy(update=changes)

            await db.execute(
                """
                UPDATE transitions
                SET result_name = ?, target_segment_id = ?, transition_order = ?,
                    context_key = ?, params_json = ?
                WHERE transition_id = ?
                """,
                (
                    updated.result_name,
                    updated.target_segment_id,
                    updated.order,
                    updated.context_key,
                    json.dumps(updated.params) if updated.params is not None else None,
                    transition_id,
                ),
            )

        return updated

    async def delete_transition(self, transition_id: str) -> bool:
        """Delete a transition."""
        async with write_transaction() as db:
            cursor = await db.execute(
                "DELETE FROM transitions WHERE transition_id = ?",
                (transition_id,),
            )
            return cursor.rowcount > 0

    async def list_transitions(
        self, flow_id: str, scope: str | None
    ) -> list[Transition]:
        """List all transitions of a flow scope."""
        db = await get_db()
        cursor = await db.execute(
            """
            SELECT * FROM transitions
            WHERE flow_id = ? AND scope IS ?
            ORDER BY source_segment_id ASC, transition_order ASC, result_name ASC
            """,
            (flow_id, scope),
        )
        rows = await cursor.fetchall()
        return [_row_to_transition(row) for row in rows]

    # ==================== Whole-scope operations ====================

    async def get_graph(self, flow_id: str, scope: str | None) -> FlowGraph:
        """Get every segment and transition of a flow scope."""
        async with read_snapshot():
            return FlowGraph(
                flow_id=flow_id,
                scope=scope,
                segments=await self.list_segments(flow_id, scope),
                transitions=await self.list_transitions(flow_id, scope),
            )

    async def count_scope(self, flow_id: str, scope: str | None) -> tuple[int, int]:
        """Count (segments, transitions) in a flow scope."""
        db = await get_db()
        cursor = await db.execute(
            """
            SELECT
                (SELECT COUNT(*) FROM segments WHERE flow_id = ? AND scope IS ?) AS segments,
                (SELECT COUNT(*) FROM transitions WHERE flow_id = ? AND scope IS ?) AS transitions
            """,
            (flow_id, scope, flow_id, scope),
        )
        row = await cursor.fetchone()
        return row["segments"], row["transitions"]

    async def retag_scope(
        self, flow_id: str, from_scope: str | None, to_scope: str | None
    ) -> tuple[int, int]:
        """Move every segment and transition of a scope to another scope in place.

        Identifiers are kept, so no relational remapping is needed. Returns
        the number of (segments, transitions) moved.
        """
        async with write_transaction() as db:
            cursor = await db.execute(
                "UPDATE segments SET scope = ? WHERE flow_id = ? AND scope IS ?",
                (to_scope, flow_id, from_scope),
            )
            segments_moved = cursor.rowcount
            cursor = await db.execute(
                "UPDATE transitions SET scope = ? WHERE flow_id = ? AND scope IS ?",
                (to_scope, flow_id, from_scope),
            )
            transitions_moved = cursor.rowcount
        return segments_moved, transitions_moved

    async def delete_scope(self, flow_id: str, scope: str) -> tuple[int, int]:
        """Hard-delete every segment and transition of a ChangeSet scope.

        Returns the number of (segments, transitions) deleted. The live scope
        can never be deleted this way.
        """
        if scope is None:
            raise ValueError("Refusing to delete the published scope")

        async with write_transaction() as db:
            cursor = await db.execute(
                "DELETE FROM transitions WHERE flow_id = ? AND scope = ?",
                (flow_id, scope),
            )
            transitions_deleted = cursor.rowcount
            cursor = await db.execute(
                "DELETE FROM segments WHERE flow_id = ? AND scope = ?",
                (flow_id, scope),
            )
            segments_deleted = cursor.rowcount
        return segments_deleted, transitions_deleted

    async def find_orphan_transitions(
        self, flow_id: str, scope: str | None
    ) -> list[dict[str, Any]]:
        """Find transitions whose source or target is not a segment of the same scope."""
        db = await get_db()
        cursor = await db.execute(
            """
            SELECT t.transition_id, t.result_name, t.source_segment_id, t.target_segment_id
            FROM transitions t
            LEFT JOIN segments s ON s.segment_id = t.source_segment_id
            LEFT JOIN segments g ON g.segment_id = t.target_segment_id
            WHERE t.flow_id = ? AND t.scope IS ?
              AND (
                s.segment_id IS NULL
                OR s.scope IS NOT t.scope
                OR (t.target_segment_id IS NOT NULL
                    AND (g.segment_id IS NULL OR g.scope IS NOT t.scope))
              )
            """,
            (flow_id, scope),
        )
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]


# Global instance
graph_store = GraphStore()
