"""API routes for the ChangeSet lifecycle."""

from fastapi import APIRouter

from callflow.api.errors import http_error
from callflow.db import graph_store
from callflow.errors import VersioningError
from callflow.models import (
    ChangeSet,
    ChangeSetCreate,
    FlowGraph,
    FlowValidationResult,
    PublishRequest,
)
from callflow.services import get_changeset_service

router = APIRouter(prefix="/changesets", tags=["changesets"])


@router.post("", response_model=ChangeSet, status_code=201)
async def create_draft(data: ChangeSetCreate):
    """Create a new draft seeded from the published graph."""
    try:
        return await get_changeset_service().create_draft(
            data.flow_id,
            created_by=data.created_by,
            version_name=data.version_name,
            description=data.description,
        )
    except VersioningError as e:
        raise http_error(e)


@router.post("/draft", response_model=ChangeSet)
async def get_or_create_draft(data: ChangeSetCreate):
    """Get the active draft of a flow, creating one if needed."""
    try:
        return await get_changeset_service().get_or_create_draft(
            data.flow_id,
            created_by=data.created_by,
            version_name=data.version_name,
            description=data.description,
        )
    except VersioningError as e:
        raise http_error(e)


@router.get("/{change_set_id}", response_model=ChangeSet)
async def get_changeset(change_set_id: str):
    """Get a ChangeSet by ID."""
    try:
        return await get_changeset_service().get(change_set_id)
    except VersioningError as e:
        raise http_error(e)


@router.get("/{change_set_id}/graph", response_model=FlowGraph)
async def get_changeset_graph(change_set_id: str):
    """Get the graph held in a ChangeSet's scope."""
    try:
        changeset = await get_changeset_service().get(change_set_id)
    except VersioningError as e:
        raise http_error(e)
    return await graph_store.get_graph(changeset.flow_id, changeset.scope)


@router.get("/{change_set_id}/validation", response_model=FlowValidationResult)
async def check_changeset(change_set_id: str):
    """Run structural validation without changing the ChangeSet's status."""
    service = get_changeset_service()
    try:
        changeset = await service.get(change_set_id)
        return await service.validator.validate(changeset.flow_id, changeset.scope)
    except VersioningError as e:
        raise http_error(e)


@router.post("/{change_set_id}/validate", response_model=ChangeSet)
async def validate_changeset(change_set_id: str):
    """Validate a draft and mark it validated."""
    try:
        return await get_changeset_service().validate(change_set_id)
    except VersioningError as e:
        raise http_error(e)


@router.post("/{change_set_id}/publish", response_model=ChangeSet)
async def publish_changeset(change_set_id: str, data: PublishRequest):
    """Publish a draft, archiving the current published graph."""
    try:
        return await get_changeset_service().publish(
            change_set_id, data.published_by, check_structure=True
        )
    except VersioningError as e:
        raise http_error(e)


@router.post("/{change_set_id}/discard", response_model=ChangeSet)
async def discard_changeset(change_set_id: str):
    """Discard a draft and delete its graph."""
    try:
        return await get_changeset_service().discard(change_set_id)
    except VersioningError as e:
        raise http_error(e)
