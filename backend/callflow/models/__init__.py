"""Pydantic models for the call-flow configuration service."""

from callflow.models.changeset import (
    ChangeSet,
    ChangeSetCreate,
    ChangeSetStatus,
    PublishRequest,
)
from callflow.models.flow import (
    Flow,
    FlowCreate,
    FlowGraph,
    FlowOwnership,
    FlowsResponse,
    FlowValidationResult,
    ValidationIssue,
)
from callflow.models.segment import ConfigItem, Segment, SegmentCreate, SegmentUpdate
from callflow.models.transition import Transition, TransitionCreate, TransitionUpdate

__all__ = [
    # Versioning
    "ChangeSet",
    "ChangeSetCreate",
    "ChangeSetStatus",
    "PublishRequest",
    # Flows
    "Flow",
    "FlowCreate",
    "FlowGraph",
    "FlowOwnership",
    "FlowsResponse",
    "FlowValidationResult",
    "ValidationIssue",
    # Graph
    "ConfigItem",
    "Segment",
    "SegmentCreate",
    "SegmentUpdate",
    "Transition",
    "TransitionCreate",
    "TransitionUpdate",
]
