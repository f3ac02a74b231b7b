"""API routes for the flow registry and published graphs."""

from fastapi import APIRouter, HTTPException

from callflow.api.errors import http_error
from callflow.db import flow_store, graph_store
from callflow.errors import VersioningError
from callflow.models import (
    ChangeSet,
    Flow,
    FlowCreate,
    FlowGraph,
    FlowsResponse,
    FlowValidationResult,
)
from callflow.services import get_changeset_service

router = APIRouter(prefix="/flows", tags=["flows"])


@router.get("", response_model=FlowsResponse)
async def list_flows(limit: int = 100, offset: int = 0):
    """List registered flows."""
    flows, total = await flow_store.list_flows(limit=limit, offset=offset)
    return FlowsResponse(flows=flows, total=total)


@router.post("", response_model=Flow, status_code=201)
async def create_flow(data: FlowCreate):
    """Register a new flow."""
    try:
        return await flow_store.create_flow(data)
    except VersioningError as e:
        raise http_error(e)


@router.get("/{flow_id}", response_model=Flow)
async def get_flow(flow_id: str):
    """Get a flow by ID."""
    flow = await flow_store.get_flow(flow_id)
    if flow is None:
        raise HTTPException(status_code=404, detail="Flow not found")
    return flow


@router.get("/{flow_id}/graph", response_model=FlowGraph)
async def get_published_graph(flow_id: str):
    """Get the published graph of a flow."""
    flow = await flow_store.get_flow(flow_id)
    if flow is None:
        raise HTTPException(status_code=404, detail="Flow not found")
    return await graph_store.get_graph(flow_id, None)


@router.get("/{flow_id}/validation", response_model=FlowValidationResult)
async def validate_published_graph(flow_id: str):
    """Run structural validation on the published graph of a flow."""
    try:
        return await get_changeset_service().validator.validate(flow_id, None)
    except VersioningError as e:
        raise http_error(e)


@router.get("/{flow_id}/changesets", response_model=list[ChangeSet])
async def list_flow_changesets(flow_id: str, include_archived: bool = False):
    """List the active ChangeSets of a flow, newest first."""
    return await get_changeset_service().list_by_flow(flow_id, include_archived)
