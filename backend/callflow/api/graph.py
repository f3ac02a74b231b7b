"""API routes for editing the graph of a draft ChangeSet."""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from callflow.api.errors import http_error
from callflow.db import graph_store
from callflow.errors import VersioningError
from callflow.models import (
    ChangeSet,
    Segment,
    SegmentCreate,
    SegmentUpdate,
    Transition,
    TransitionCreate,
    TransitionUpdate,
)
from callflow.services import get_changeset_service

router = APIRouter(prefix="/changesets/{change_set_id}", tags=["graph"])


class SegmentOrderUpdate(BaseModel):
    """Request to reorder segments."""

    orders: dict[str, int]


async def _readable(change_set_id: str) -> ChangeSet:
    try:
        return await get_changeset_service().get(change_set_id)
    except VersioningError as e:
        raise http_error(e)


# ==================== Segments ====================


@router.get("/segments", response_model=list[Segment])
async def list_segments(change_set_id: str):
    """List the segments of a ChangeSet's graph."""
    changeset = await _readable(change_set_id)
    return await graph_store.list_segments(changeset.flow_id, changeset.scope)


@router.post("/segments", response_model=Segment, status_code=201)
async def create_segment(change_set_id: str, data: SegmentCreate):
    """Create a segment in a draft."""
    try:
        return await get_changeset_service().editor.create_segment(change_set_id, data)
    except VersioningError as e:
        raise http_error(e)


@router.put("/segments/order")
async def update_segment_order(change_set_id: str, data: SegmentOrderUpdate):
    """Reorder segments of a draft."""
    try:
        updated = await get_changeset_service().editor.reorder_segments(
            change_set_id, data.orders
        )
    except VersioningError as e:
        raise http_error(e)
    return {"updated": updated}


@router.get("/segments/{segment_id}", response_model=Segment)
async def get_segment(change_set_id: str, segment_id: str):
    """Get a segment of a ChangeSet's graph."""
    changeset = await _readable(change_set_id)
    segment = await graph_store.get_segment(segment_id)
    if segment is None or segment.scope != changeset.scope:
        raise HTTPException(status_code=404, detail="Segment not found")
    return segment


@router.put("/segments/{segment_id}", response_model=Segment)
async def update_segment(change_set_id: str, segment_id: str, data: SegmentUpdate):
    """Update a segment in a draft. Fields sent as null are cleared."""
    try:
        return await get_changeset_service().editor.update_segment(
            change_set_id, segment_id, data
        )
    except VersioningError as e:
        raise http_error(e)


@router.delete("/segments/{segment_id}")
async def delete_segment(change_set_id: str, segment_id: str):
    """Delete a segment and its transitions from a draft."""
    try:
        await get_changeset_service().editor.delete_segment(change_set_id, segment_id)
    except VersioningError as e:
        raise http_error(e)
    return {"deleted": True}


# ==================== Transitions ====================


@router.get("/transitions", response_model=list[Transition])
async def list_transitions(change_set_id: str):
    """List the transitions of a ChangeSet's graph."""
    changeset = await _readable(change_set_id)
    return await graph_store.list_transitions(changeset.flow_id, changeset.scope)


@router.post("/transitions", response_model=Transition, status_code=201)
async def create_transition(change_set_id: str, data: TransitionCreate):
    """Create a transition in a draft."""
    try:
        return await get_changeset_service().editor.create_transition(change_set_id, data)
    except VersioningError as e:
        raise http_error(e)


@router.put("/transitions/{transition_id}", response_model=Transition)
async def update_transition(
    change_set_id: str, transition_id: str, data: TransitionUpdate
):
    """Update a transition in a draft. A null target makes it terminal."""
    try:
        return await get_changeset_service().editor.update_transition(
            change_set_id, transition_id, data
        )
    except VersioningError as e:
        raise http_error(e)


@router.delete("/transitions/{transition_id}")
async def delete_transition(change_set_id: str, transition_id: str):
    """Delete a transition from a draft."""
    try:
        await get_changeset_service().editor.delete_transition(change_set_id, transition_id)
    except VersioningError as e:
        raise http_error(e)
    return {"deleted": True}
