"""Database operations for the flow registry."""

from datetime import datetime, timezone

import aiosqlite

from callflow.db.database import get_db, write_transaction
from callflow.errors import ConflictError
from callflow.models.flow import Flow, FlowCreate


def _row_to_flow(row: aiosqlite.Row) -> Flow:
    """Convert a database row to a Flow model."""
    return Flow(
        flow_id=row["flow_id"],
        name=row["name"],
        customer_id=row["customer_id"],
        project_id=row["project_id"],
        init_segment=row["init_segment"],
        is_active=bool(row["is_active"]),
        date_created=row["date_created"],
    )


async def create_flow(data: FlowCreate) -> Flow:
    """Register a new flow."""
    now = datetime.now(timezone.utc).isoformat()
    async with write_transaction() as db:
        if await get_flow(data.flow_id) is not None:
            raise ConflictError(f"Flow '{data.flow_id}' already exists")

        await db.execute(
            """
            INSERT INTO flows (flow_id, name, customer_id, project_id, init_segment, is_active, date_created)
            VALUES (?, ?, ?, ?, ?, 1, ?)
            """,
            (
                data.flow_id,
                data.name,
                data.customer_id,
                data.project_id,
                data.init_segment,
                now,
            ),
        )

    return Flow(
        flow_id=data.flow_id,
        name=data.name,
        customer_id=data.customer_id,
        project_id=data.project_id,
        init_segment=data.init_segment,
        date_created=now,
    )


async def get_flow(flow_id: str) -> Flow | None:
    """Get an active flow by ID."""
    db = await get_db()
    cursor = await db.execute(
        "SELECT * FROM flows WHERE flow_id = ? AND is_active = 1",
        (flow_id,),
    )
    row = await cursor.fetchone()

    if row is None:
        return None

    return _row_to_flow(row)


async def list_flows(limit: int = 100, offset: int = 0) -> tuple[list[Flow], int]:
    """List active flows. Returns (flows, total_count)."""
    db = await get_db()

    cursor = await db.execute("SELECT COUNT(*) FROM flows WHERE is_active = 1")
    row = await cursor.fetchone()
    total = row[0] if row else 0

    cursor = await db.execute(
        """
        SELECT * FROM flows
        WHERE is_active = 1
        ORDER BY flow_id ASC
        LIMIT ? OFFSET ?
        """,
        (limit, offset),
    )
    rows = await cursor.fetchall()

    return [_row_to_flow(row) for row in rows], total
