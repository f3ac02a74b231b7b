"""Database operations for ChangeSet records.

Leaf persistence only: status legality is decided by the versioning
services before any of the update functions here is called.
"""

import uuid
from datetime import datetime, timezone

import aiosqlite

from callflow.db.database import get_db, write_transaction
from callflow.models.changeset import ChangeSet, ChangeSetStatus


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_changeset(row: aiosqlite.Row) -> ChangeSet:
    """Convert a database row to a ChangeSet model."""
    return ChangeSet(
        change_set_id=row["change_set_id"],
        flow_id=row["flow_id"],
        customer_id=row["customer_id"],
        project_id=row["project_id"],
        status=ChangeSetStatus(row["status"]),
        version_name=row["version_name"],
        description=row["description"],
        is_active=bool(row["is_active"]),
        created_by=row["created_by"],
        date_created=row["date_created"],
        published_by=row["published_by"],
        date_published=row["date_published"],
    )


async def create_changeset(
    flow_id: str,
    status: ChangeSetStatus = ChangeSetStatus.DRAFT,
    *,
    customer_id: str | None = None,
    project_id: str | None = None,
    version_name: str | None = None,
    description: str | None = None,
    created_by: str | None = None,
    published_by: str | None = None,
    date_published: str | None = None,
) -> ChangeSet:
    """Insert a new ChangeSet row and return it."""
    change_set_id = str(uuid.uuid4())
    now = _now()

    async with write_transaction() as db:
        await db.execute(
            """
            INSERT INTO changesets (
                change_set_id, flow_id, customer_id, project_id, status,
                version_name, description, is_active, created_by, date_created,
                published_by, date_published
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?, ?, ?)
            """,
            (
                change_set_id,
                flow_id,
                customer_id,
                project_id,
                status.value,
                version_name,
                description,
                created_by,
                now,
                published_by,
                date_published,
            ),
        )

    return ChangeSet(
        change_set_id=change_set_id,
        flow_id=flow_id,
        customer_id=customer_id,
        project_id=project_id,
        status=status,
        version_name=version_name,
        description=description,
        created_by=created_by,
        date_created=now,
        published_by=published_by,
        date_published=date_published,
    )


async def get_changeset(change_set_id: str) -> ChangeSet | None:
    """Get a ChangeSet by ID."""
    db = await get_db()
    cursor = await db.execute(
        "SELECT * FROM changesets WHERE change_set_id = ?",
        (change_set_id,),
    )
    row = await cursor.fetchone()

    if row is None:
        return None

    return _row_to_changeset(row)


async def find_active_draft(flow_id: str) -> ChangeSet | None:
    """Get the newest active draft ChangeSet of a flow, if any."""
    db = await get_db()
    cursor = await db.execute(
        """
        SELECT * FROM changesets
        WHERE flow_id = ? AND status = ? AND is_active = 1
        ORDER BY date_created DESC, rowid DESC
        LIMIT 1
        """,
        (flow_id, ChangeSetStatus.DRAFT.value),
    )
    row = await cursor.fetchone()

    if row is None:
        return None

    return _row_to_changeset(row)


async def find_latest_published(flow_id: str) -> ChangeSet | None:
    """Get the most recently published ChangeSet of a flow, if any."""
    db = await get_db()
    cursor = await db.execute(
        """
        SELECT * FROM changesets
        WHERE flow_id = ? AND status = ?
        ORDER BY date_published DESC, rowid DESC
        LIMIT 1
        """,
        (flow_id, ChangeSetStatus.PUBLISHED.value),
    )
    row = await cursor.fetchone()

    if row is None:
        return None

    return _row_to_changeset(row)


async def list_changesets(
    flow_id: str, include_archived: bool = False
) -> list[ChangeSet]:
    """List active ChangeSets of a flow, newest first."""
    db = await get_db()

    conditions = ["flow_id = ?", "is_active = 1"]
    params: list = [flow_id]

    if not include_archived:
        conditions.append("status != ?")
        params.append(ChangeSetStatus.ARCHIVED.value)

    where_clause = " AND ".join(conditions)
    cursor = await db.execute(
        f"""
        SELECT * FROM changesets
        WHERE {where_clause}
        ORDER BY date_created DESC, rowid DESC
        """,
        params,
    )
    rows = await cursor.fetchall()

    return [_row_to_changeset(row) for row in rows]


async def update_status(
    change_set_id: str,
    status: ChangeSetStatus,
    *,
    is_active: bool | None = None,
    published_by: str | None = None,
    mark_published: bool = False,
) -> ChangeSet | None:
    """Update the status of a ChangeSet.

    With mark_published, also stamps date_published and published_by.
    """
    assignments = ["status = ?"]
    params: list = [status.value]

    if is_active is not None:
        assignments.append("is_active = ?")
        params.append(1 if is_active else 0)

    if mark_published:
        assignments.append("date_published = ?")
        params.append(_now())
        assignments.append("published_by = ?")
        params.append(published_by)

    params.append(change_set_id)

    async with write_transaction() as db:
        cursor = await db.execute(
            f"UPDATE changesets SET {', '.join(assignments)} WHERE change_set_id = ?",
            params,
        )
        if cursor.rowcount == 0:
            return None

    return await get_changeset(change_set_id)
